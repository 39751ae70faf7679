"""Completion ingest for asynchronous stage results.

The processing service posts each stage result back on its own schedule.
Results are matched to a project only by identifier and stage, so every
completion becomes a new version and the most recent arrival is "latest".
The notification emitted afterwards is a side channel: its failure is
logged and never undoes the document and project writes.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from reqflow.core.errors import IngestError, ValidationError
from reqflow.db.models import DocumentType, ProjectStatus
from reqflow.pipelines.content import validate_content
from reqflow.pipelines.interfaces import (
    DispatchLeaseProtocol,
    DocumentRepositoryProtocol,
    IngestResult,
    ProjectRepositoryProtocol,
)
from reqflow.services.notifications import NotificationService, event_project_id

logger = logging.getLogger(__name__)

# Payload key -> stage, checked in order
STAGE_MARKERS: tuple[tuple[str, DocumentType], ...] = (
    ("blueprint", DocumentType.BLUEPRINT),
    ("brd", DocumentType.BRD),
    ("brd_text", DocumentType.BRD),
    ("requirements", DocumentType.REQUIREMENTS),
    ("draft", DocumentType.DRAFT),
)


def detect_stage(payload: Mapping[str, Any]) -> DocumentType:
    for key, doc_type in STAGE_MARKERS:
        if key in payload:
            return doc_type
    raise IngestError(
        "Unrecognised completion payload",
        details={"keys": sorted(payload.keys())},
    )


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_content(doc_type: DocumentType, payload: Mapping[str, Any]) -> dict[str, Any]:
    """Shape a completion payload into the stored document content."""
    if doc_type is DocumentType.REQUIREMENTS:
        if not payload.get("requirements"):
            raise IngestError("project_info.id and requirements are required")
        return {
            "project_info": payload.get("project_info"),
            "requirements": payload["requirements"],
            "constraints": payload.get("constraints") or [],
            "preferred_format": payload.get("preferred_format") or "Markdown",
            "timestamp": _timestamp(),
        }
    if doc_type is DocumentType.BRD:
        if payload.get("brd_text"):
            return {
                "brd": payload["brd_text"],
                "format": payload.get("format") or "Markdown",
                "project_info": payload.get("project_info"),
                "timestamp": _timestamp(),
            }
        if not payload.get("brd"):
            raise IngestError("project_id and brd are required")
        return {
            "project_id": payload.get("project_id"),
            "brd": payload["brd"],
            "timestamp": _timestamp(),
        }
    if doc_type is DocumentType.BLUEPRINT:
        if not payload.get("blueprint"):
            raise IngestError("project_id and blueprint are required")
        return {
            "project_id": payload.get("project_id"),
            "blueprint": payload["blueprint"],
            "preferred_format": payload.get("preferred_format") or "Markdown",
            "timestamp": _timestamp(),
        }
    if doc_type is DocumentType.DRAFT:
        draft = payload.get("draft")
        if not draft:
            raise IngestError("projectId and draft are required")
        body = dict(draft) if isinstance(draft, Mapping) else {"draft": draft}
        return {**body, "timestamp": payload.get("timestamp") or _timestamp()}
    raise IngestError(f"{doc_type.value} documents are not produced by the processing service")


class CompletionIngest:
    def __init__(
        self,
        projects: ProjectRepositoryProtocol,
        documents: DocumentRepositoryProtocol,
        notifications: NotificationService,
        lease: DispatchLeaseProtocol | None = None,
    ) -> None:
        self._projects = projects
        self._documents = documents
        self._notifications = notifications
        self._lease = lease

    async def ingest(
        self, payload: Mapping[str, Any], stage: DocumentType | str | None = None
    ) -> IngestResult:
        if not isinstance(payload, Mapping):
            raise IngestError("Completion payload must be an object")
        if stage is None:
            doc_type = detect_stage(payload)
        else:
            try:
                doc_type = DocumentType(stage)
            except ValueError as err:
                raise IngestError(f"Unknown completion stage: {stage}") from err
        project_id = event_project_id(payload)
        if not project_id:
            raise IngestError(f"Missing project identifier in {doc_type.value} completion")
        try:
            content = validate_content(doc_type, build_content(doc_type, payload))
        except ValidationError as err:
            raise IngestError(err.message, details=err.details) from err

        try:
            await self._projects.ensure_placeholder(project_id)
            document = await self._documents.append(project_id, doc_type, content)
            await self._projects.set_status(project_id, ProjectStatus.COMPLETED)
            await self._projects.commit()
        except Exception:
            logger.exception(f"Failed to store {doc_type.value} completion for {project_id}")
            await self._projects.rollback()
            raise
        logger.info(
            f"Stored {doc_type.value} v{document.version} ({document.document_id}) "
            f"for project {project_id}"
        )

        if self._lease is not None:
            try:
                await self._lease.release(project_id)
            except Exception:
                logger.exception(f"Failed to release dispatch lease for {project_id}")

        result = IngestResult(
            project_id=project_id,
            stage=doc_type.value,
            document_id=document.document_id,
            version=document.version,
        )
        try:
            notification = await self._notifications.create_process_notification(
                {**payload, "document_id": document.document_id}, doc_type.value
            )
            result.notification_id = notification.notification_id
        except Exception:
            logger.exception(f"Failed to create notification for project {project_id}")
        return result
