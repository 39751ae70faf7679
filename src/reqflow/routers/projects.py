"""Project and document endpoints."""
from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from reqflow.db.dependencies import get_project_repo
from reqflow.db.models import DocumentType, ProjectStatus
from reqflow.db.repositories import ProjectRepository
from reqflow.schemas import DocumentOut, ProjectOut, ProjectSummaryOut
from reqflow.services.dependencies import get_project_service
from reqflow.services.projects import ProjectService

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    organization_name: str | None = None
    contact_person_name: str | None = None
    contact_email: str | None = None


class DocumentContent(BaseModel):
    content: dict[str, Any]


@router.get("")
async def list_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: ProjectStatus | None = None,
    repo: ProjectRepository = Depends(get_project_repo),  # noqa: B008
) -> dict[str, Any]:
    projects, total = await repo.list(page=page, limit=limit, status=status.value if status else None)
    return {
        "projects": [ProjectSummaryOut.from_orm_obj(p).model_dump(mode="json") for p in projects],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.get("/{project_id}")
async def get_project(
    project_id: str, service: ProjectService = Depends(get_project_service)  # noqa: B008
) -> dict[str, Any]:
    project, documents = await service.get_with_documents(project_id)
    return {
        "project": ProjectOut.from_orm_obj(project).model_dump(mode="json"),
        "documents": [DocumentOut.from_orm_obj(d).model_dump(mode="json") for d in documents],
    }


@router.put("/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: str,
    body: ProjectUpdate,
    service: ProjectService = Depends(get_project_service),  # noqa: B008
) -> ProjectOut:
    project = await service.update_details(project_id, body.model_dump(exclude_none=True))
    return ProjectOut.from_orm_obj(project)


@router.get("/{project_id}/documents")
async def list_documents(
    project_id: str,
    type: DocumentType | None = None,
    service: ProjectService = Depends(get_project_service),  # noqa: B008
) -> list[DocumentOut]:
    _, documents = await service.get_with_documents(project_id)
    if type is not None:
        documents = [d for d in documents if d.type == type.value]
    return [DocumentOut.from_orm_obj(d) for d in documents]


@router.get("/{project_id}/documents/latest/{doc_type}", response_model=DocumentOut)
async def get_latest_document(
    project_id: str,
    doc_type: DocumentType,
    service: ProjectService = Depends(get_project_service),  # noqa: B008
) -> DocumentOut:
    return DocumentOut.from_orm_obj(await service.latest_document(project_id, doc_type))


@router.get("/{project_id}/documents/{document_id}", response_model=DocumentOut)
async def get_document(
    project_id: str,
    document_id: str,
    service: ProjectService = Depends(get_project_service),  # noqa: B008
) -> DocumentOut:
    return DocumentOut.from_orm_obj(await service.get_document(project_id, document_id))


@router.put("/{project_id}/documents/{document_id}", response_model=DocumentOut)
async def update_document_in_place(
    project_id: str,
    document_id: str,
    body: DocumentContent,
    service: ProjectService = Depends(get_project_service),  # noqa: B008
) -> DocumentOut:
    """Overwrite a document without creating a version. Prefer ``/version``."""
    document = await service.update_in_place(project_id, document_id, body.content)
    return DocumentOut.from_orm_obj(document)


@router.post(
    "/{project_id}/documents/{document_id}/version",
    response_model=DocumentOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_document_version(
    project_id: str,
    document_id: str,
    body: DocumentContent,
    service: ProjectService = Depends(get_project_service),  # noqa: B008
) -> DocumentOut:
    document = await service.branch_version(project_id, document_id, body.content)
    return DocumentOut.from_orm_obj(document)
