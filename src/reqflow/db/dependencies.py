"""FastAPI dependency helpers for repositories."""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .base import get_session
from .repositories import DocumentRepository, NotificationRepository, ProjectRepository


def get_project_repo(
    session: AsyncSession = Depends(get_session),  # noqa: B008 - FastAPI DI
) -> ProjectRepository:
    return ProjectRepository(session)


def get_document_repo(
    session: AsyncSession = Depends(get_session),  # noqa: B008 - FastAPI DI
) -> DocumentRepository:
    return DocumentRepository(session)


def get_notification_repo(
    session: AsyncSession = Depends(get_session),  # noqa: B008 - FastAPI DI
) -> NotificationRepository:
    return NotificationRepository(session)
