"""Notification feed endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from reqflow.core.settings import Settings, get_settings
from reqflow.db.models import NotificationPriority
from reqflow.schemas import NotificationOut
from reqflow.services.dependencies import get_notification_service
from reqflow.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationCreate(BaseModel):
    project_id: str
    type: str
    title: str
    message: str
    priority: str = NotificationPriority.MEDIUM.value
    action_url: str | None = None
    metadata: dict[str, Any] | None = None


@router.get("")
async def list_notifications(
    limit: int | None = Query(None, ge=1, le=200),
    skip: int = Query(0, ge=0),
    include_archived: bool = False,
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> dict[str, Any]:
    items = await service.list(
        include_archived=include_archived,
        limit=limit or settings.notification_page_size,
        skip=skip,
    )
    return {
        "notifications": [NotificationOut.from_orm_obj(n).model_dump(mode="json") for n in items],
        "count": len(items),
    }


@router.get("/count")
async def unread_count(
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
) -> dict[str, int]:
    return {"count": await service.unread_count()}


@router.get("/since")
async def notifications_since(
    sequence: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=200),
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> dict[str, Any]:
    """Notifications created after ``sequence``; poll again with ``last_sequence``."""
    items, last = await service.list_since(sequence, limit=limit or settings.notification_page_size)
    return {
        "notifications": [NotificationOut.from_orm_obj(n).model_dump(mode="json") for n in items],
        "last_sequence": last,
    }


@router.put("/read-all")
async def mark_all_as_read(
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
) -> dict[str, int]:
    return {"modified_count": await service.mark_all_as_read()}


@router.delete("/cleanup")
async def cleanup_notifications(
    days_old: int = Query(30, ge=0, alias="daysOld"),
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
) -> dict[str, int]:
    return {"deleted_count": await service.cleanup(days_old)}


@router.post("", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
async def create_notification(
    body: NotificationCreate,
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
) -> NotificationOut:
    notification = await service.create(
        project_id=body.project_id,
        type=body.type,
        title=body.title,
        message=body.message,
        priority=body.priority,
        action_url=body.action_url,
        metadata=body.metadata,
    )
    return NotificationOut.from_orm_obj(notification)


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_as_read(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
) -> NotificationOut:
    return NotificationOut.from_orm_obj(await service.mark_as_read(notification_id))


@router.put("/{notification_id}/archive", response_model=NotificationOut)
async def archive_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),  # noqa: B008
) -> NotificationOut:
    return NotificationOut.from_orm_obj(await service.archive(notification_id))
