"""Interfaces (Protocols) and DTOs bridging persistence and pipeline orchestration."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from reqflow.db.models import Document, DocumentType, Project, ProjectStatus


@dataclass(slots=True)
class DispatchResult:
    project_id: str
    stage: str
    status: str
    previous_status: str


@dataclass(slots=True)
class IngestResult:
    project_id: str
    stage: str
    document_id: str
    version: int
    notification_id: str | None = None


class ProjectRepositoryProtocol(Protocol):
    async def get(self, project_id: str) -> Project | None: ...
    async def ensure_placeholder(self, project_id: str) -> Project: ...
    async def set_status(self, project_id: str, status: ProjectStatus) -> None: ...
    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...


class DocumentRepositoryProtocol(Protocol):
    async def latest(self, project_id: str, doc_type: DocumentType) -> Document | None: ...
    async def list_by_project(self, project_id: str) -> Sequence[Document]: ...
    async def append(
        self,
        project_id: str,
        doc_type: DocumentType,
        content: dict[str, Any],
        parent_document_id: str | None = None,
    ) -> Document: ...


class StageClientProtocol(Protocol):
    async def post(self, url: str, payload: dict[str, Any]) -> None: ...


class DispatchLeaseProtocol(Protocol):
    async def acquire(self, project_id: str) -> bool: ...
    async def release(self, project_id: str) -> None: ...
