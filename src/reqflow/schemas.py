"""Response models shared by the API routers."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from reqflow.db.models import Document, Notification, Project


class ProjectSummaryOut(BaseModel):
    project_id: str
    name: str
    description: str
    source: str
    status: str
    total_documents: int
    revision: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_orm_obj(cls, project: Project) -> ProjectSummaryOut:
        return cls(
            project_id=project.project_id,
            name=project.name,
            description=project.description,
            source=project.source,
            status=project.status,
            total_documents=project.total_documents,
            revision=project.revision,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectOut(ProjectSummaryOut):
    input: Any | None = None
    input_type: str
    organization_name: str
    contact_person_name: str
    contact_email: str
    metadata: dict[str, Any] = {}

    @classmethod
    def from_orm_obj(cls, project: Project) -> ProjectOut:
        return cls(
            **ProjectSummaryOut.from_orm_obj(project).model_dump(),
            input=project.input,
            input_type=project.input_type,
            organization_name=project.organization_name,
            contact_person_name=project.contact_person_name,
            contact_email=project.contact_email,
            metadata=project.meta or {},
        )


class DocumentOut(BaseModel):
    document_id: str
    project_id: str
    type: str
    content: Any
    version: int
    parent_document_id: str | None = None
    source_hash: str | None = None
    metadata: dict[str, Any] = {}
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_orm_obj(cls, document: Document) -> DocumentOut:
        return cls(
            document_id=document.document_id,
            project_id=document.project_id,
            type=document.type,
            content=document.content,
            version=document.version,
            parent_document_id=document.parent_document_id,
            source_hash=document.source_hash,
            metadata=document.meta or {},
            created_at=document.created_at,
            updated_at=document.updated_at,
        )


class NotificationOut(BaseModel):
    notification_id: str
    sequence: int
    project_id: str
    type: str
    title: str
    message: str
    status: str
    priority: str
    action_url: str | None = None
    metadata: dict[str, Any] = {}
    read_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_orm_obj(cls, notification: Notification) -> NotificationOut:
        return cls(
            notification_id=notification.notification_id,
            sequence=notification.id,
            project_id=notification.project_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            status=notification.status,
            priority=notification.priority,
            action_url=notification.action_url,
            metadata=notification.meta or {},
            read_at=notification.read_at,
            created_at=notification.created_at,
        )
