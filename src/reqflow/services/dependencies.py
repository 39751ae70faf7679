"""FastAPI dependency helpers for services."""
from __future__ import annotations

from fastapi import Depends

from reqflow.core.settings import Settings, get_settings
from reqflow.db.dependencies import get_document_repo, get_notification_repo, get_project_repo
from reqflow.db.repositories import DocumentRepository, NotificationRepository, ProjectRepository
from reqflow.services.dispatcher import StageDispatcher
from reqflow.services.ingest import CompletionIngest
from reqflow.services.lease import RedisDispatchLease
from reqflow.services.notifications import NotificationService
from reqflow.services.processing_client import ProcessingServiceClient, get_processing_client
from reqflow.services.projects import ProjectService


def get_dispatch_lease(
    settings: Settings = Depends(get_settings),  # noqa: B008 - FastAPI DI
) -> RedisDispatchLease | None:
    if not settings.dispatch_lease_enabled:
        return None
    return RedisDispatchLease(ttl=settings.dispatch_lease_ttl)


def get_project_service(
    projects: ProjectRepository = Depends(get_project_repo),  # noqa: B008
    documents: DocumentRepository = Depends(get_document_repo),  # noqa: B008
) -> ProjectService:
    return ProjectService(projects, documents)


def get_notification_service(
    repo: NotificationRepository = Depends(get_notification_repo),  # noqa: B008
) -> NotificationService:
    return NotificationService(repo)


def get_dispatcher(
    projects: ProjectRepository = Depends(get_project_repo),  # noqa: B008
    documents: DocumentRepository = Depends(get_document_repo),  # noqa: B008
    client: ProcessingServiceClient = Depends(get_processing_client),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
    lease: RedisDispatchLease | None = Depends(get_dispatch_lease),  # noqa: B008
) -> StageDispatcher:
    return StageDispatcher(projects, documents, client, settings, lease=lease)


def get_ingest(
    projects: ProjectRepository = Depends(get_project_repo),  # noqa: B008
    documents: DocumentRepository = Depends(get_document_repo),  # noqa: B008
    notifications: NotificationService = Depends(get_notification_service),  # noqa: B008
    lease: RedisDispatchLease | None = Depends(get_dispatch_lease),  # noqa: B008
) -> CompletionIngest:
    return CompletionIngest(projects, documents, notifications, lease=lease)
