"""Project intake endpoints: every new project starts from a raw input."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel

from reqflow.db.models import NotificationPriority, NotificationType, ProjectSource
from reqflow.schemas import DocumentOut, ProjectOut
from reqflow.services.dependencies import get_notification_service, get_project_service
from reqflow.services.notifications import NotificationService
from reqflow.services.projects import ProjectService, parse_email_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inputs", tags=["inputs"])


class ManualInput(BaseModel):
    content: str
    name: str | None = None
    organization_name: str | None = None
    contact_person_name: str | None = None
    contact_email: str | None = None


class TranscriptInput(BaseModel):
    content: str
    source: str | None = None


class FileInput(BaseModel):
    filename: str
    text: str


def _created(project: Any, document: Any) -> dict[str, Any]:
    return {
        "project": ProjectOut.from_orm_obj(project).model_dump(mode="json"),
        "document": DocumentOut.from_orm_obj(document).model_dump(mode="json"),
    }


@router.post("/manual", status_code=status.HTTP_201_CREATED)
async def create_manual_input(
    body: ManualInput, service: ProjectService = Depends(get_project_service)  # noqa: B008
) -> dict[str, Any]:
    project, document = await service.create_with_raw_input(
        ProjectSource.MANUAL,
        body.content,
        name=body.name,
        organization_name=body.organization_name,
        contact_person_name=body.contact_person_name,
        contact_email=body.contact_email,
    )
    return _created(project, document)


@router.post("/transcript", status_code=status.HTTP_201_CREATED)
async def create_transcript_input(
    body: TranscriptInput, service: ProjectService = Depends(get_project_service)  # noqa: B008
) -> dict[str, Any]:
    project, document = await service.create_with_raw_input(
        ProjectSource.TRANSCRIPT, body.content, source_detail=body.source
    )
    return _created(project, document)


@router.post("/file", status_code=status.HTTP_201_CREATED)
async def create_file_input(
    body: FileInput, service: ProjectService = Depends(get_project_service)  # noqa: B008
) -> dict[str, Any]:
    # Text extraction from uploaded files happens upstream; only the text arrives here.
    project, document = await service.create_with_raw_input(
        ProjectSource.FILE, body.text, source_detail=body.filename
    )
    return _created(project, document)


@router.post("/email", status_code=status.HTTP_201_CREATED)
async def create_email_input(
    payload: Any = Body(...),  # noqa: B008
    service: ProjectService = Depends(get_project_service),  # noqa: B008
    notifications: NotificationService = Depends(get_notification_service),  # noqa: B008
) -> dict[str, Any]:
    """Create a project from an email forwarded by the mail automation."""
    project, document = await service.create_from_email(parse_email_payload(payload))
    try:
        await notifications.create(
            project_id=project.project_id,
            type=NotificationType.PROJECT_UPDATE.value,
            title="New Requirement Received from Email",
            message=f"New requirement received from {project.contact_email}: {project.name}",
            priority=NotificationPriority.HIGH.value,
            action_url=f"/project/{project.project_id}",
            metadata={"source": ProjectSource.EMAIL.value, "sender_email": project.contact_email},
        )
    except Exception:
        logger.exception(f"Failed to create notification for email project {project.project_id}")
    return _created(project, document)
