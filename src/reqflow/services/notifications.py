"""Notification dispatcher and feed."""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from reqflow.core.errors import NotFoundError, ValidationError
from reqflow.db.models import (
    Notification,
    NotificationPriority,
    NotificationType,
    utcnow,
)
from reqflow.db.repositories import NotificationRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    message: str
    priority: NotificationPriority


PROCESS_TEMPLATES: dict[str, NotificationTemplate] = {
    "REQUIREMENTS": NotificationTemplate(
        "Requirements Extracted",
        "Your project requirements have been successfully extracted and are ready for review.",
        NotificationPriority.HIGH,
    ),
    "BRD": NotificationTemplate(
        "BRD Generated",
        "Your Business Requirements Document has been generated and is ready for review.",
        NotificationPriority.HIGH,
    ),
    "BLUEPRINT": NotificationTemplate(
        "Blueprint Created",
        "Your technical blueprint has been created and is ready for implementation.",
        NotificationPriority.HIGH,
    ),
    "DRAFT": NotificationTemplate(
        "Draft Document Created",
        "A new draft document has been created for your project.",
        NotificationPriority.MEDIUM,
    ),
}

DEFAULT_TEMPLATE = NotificationTemplate(
    "Process Completed",
    "Your process has been completed successfully.",
    NotificationPriority.MEDIUM,
)


def event_project_id(event: Mapping[str, Any]) -> str | None:
    """Extract the project identifier from a completion event.

    Completions carry it as ``project_info.id`` or as a bare ``project_id``
    (``projectId`` from older callers).
    """
    project_info = event.get("project_info")
    if isinstance(project_info, Mapping) and project_info.get("id"):
        return str(project_info["id"])
    for key in ("project_id", "projectId"):
        if event.get(key):
            return str(event[key])
    return None


class NotificationService:
    def __init__(self, repo: NotificationRepository) -> None:
        self._repo = repo

    async def create(
        self,
        project_id: str,
        type: str,
        title: str,
        message: str,
        priority: str = NotificationPriority.MEDIUM.value,
        action_url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Notification:
        if not project_id or not type or not title or not message:
            raise ValidationError("project_id, type, title, and message are required")
        try:
            type_value = NotificationType(type).value
            priority_value = NotificationPriority(priority).value
        except ValueError as err:
            raise ValidationError(str(err)) from err

        try:
            notification = await self._repo.add(
                project_id=project_id,
                type=type_value,
                title=title,
                message=message,
                priority=priority_value,
                action_url=action_url,
                meta=metadata or {},
            )
            await self._repo.commit()
        except Exception:
            await self._repo.rollback()
            raise
        logger.info(f"Notification created: {notification.notification_id} for project {project_id}")
        return notification

    async def create_process_notification(
        self, event: Mapping[str, Any], stage: str
    ) -> Notification:
        project_id = event_project_id(event)
        if not project_id:
            raise ValidationError("Project ID is required for notification")
        template = PROCESS_TEMPLATES.get(stage, DEFAULT_TEMPLATE)
        return await self.create(
            project_id=project_id,
            type=stage if stage in NotificationType.__members__ else NotificationType.SYSTEM.value,
            title=template.title,
            message=template.message,
            priority=template.priority.value,
            action_url=f"/project/{project_id}",
            metadata={
                "document_id": event.get("document_id"),
                "process_type": stage,
                "source": "processing_service",
                "original_data": dict(event),
            },
        )

    async def list(
        self, include_archived: bool = False, limit: int = 50, skip: int = 0
    ) -> Sequence[Notification]:
        return await self._repo.list(include_archived=include_archived, limit=limit, skip=skip)

    async def list_since(self, sequence: int, limit: int = 50) -> tuple[Sequence[Notification], int]:
        """Notifications created after ``sequence`` plus the sequence to poll from next."""
        items = await self._repo.list_since(sequence, limit=limit)
        last = items[-1].id if items else max(sequence, 0)
        return items, last

    async def unread_count(self) -> int:
        return await self._repo.unread_count()

    async def _require(self, notification_id: str) -> Notification:
        notification = await self._repo.get(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return notification

    async def mark_as_read(self, notification_id: str) -> Notification:
        await self._require(notification_id)
        await self._repo.mark_as_read(notification_id)
        await self._repo.commit()
        return await self._require(notification_id)

    async def mark_all_as_read(self) -> int:
        modified = await self._repo.mark_all_as_read()
        await self._repo.commit()
        return modified

    async def archive(self, notification_id: str) -> Notification:
        await self._require(notification_id)
        await self._repo.archive(notification_id)
        await self._repo.commit()
        return await self._require(notification_id)

    async def cleanup(self, days_old: int = 30) -> int:
        """Delete archived notifications untouched for ``days_old`` days."""
        cutoff = utcnow() - timedelta(days=days_old)
        deleted = await self._repo.delete_archived_before(cutoff)
        await self._repo.commit()
        logger.info(f"Deleted {deleted} archived notifications older than {days_old} days")
        return deleted
