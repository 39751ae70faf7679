"""Repository implementations using SQLAlchemy async sessions."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reqflow.core.errors import DuplicateKeyError, NotFoundError

from .models import (
    Document,
    DocumentCounter,
    DocumentType,
    Notification,
    NotificationStatus,
    Project,
    ProjectSource,
    ProjectStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

# Fields a client may change on an existing project
EDITABLE_PROJECT_FIELDS = frozenset(
    {"name", "description", "organization_name", "contact_person_name", "contact_email"}
)


class _SessionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


class ProjectRepository(_SessionRepository):
    async def get(self, project_id: str) -> Project | None:
        result = await self.session.execute(
            select(Project)
            .where(Project.project_id == project_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list(
        self, page: int = 1, limit: int = 10, status: str | None = None
    ) -> tuple[Sequence[Project], int]:
        query = select(Project)
        count_query = select(func.count()).select_from(Project)
        if status:
            query = query.where(Project.status == status)
            count_query = count_query.where(Project.status == status)
        result = await self.session.execute(
            query.order_by(Project.created_at.desc(), Project.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        total = (await self.session.execute(count_query)).scalar_one()
        return list(result.scalars()), total

    async def add(self, **fields: Any) -> Project:
        fields.setdefault("project_id", str(uuid.uuid4()))
        project = Project(**fields)
        self.session.add(project)
        try:
            await self.session.flush()
        except IntegrityError as err:
            raise DuplicateKeyError(f"Project {fields['project_id']} already exists") from err
        return project

    async def ensure_placeholder(self, project_id: str) -> Project:
        """Return the project, provisioning a minimal one when it does not exist."""
        project = await self.get(project_id)
        if project is not None:
            return project
        try:
            async with self.session.begin_nested():
                self.session.add(
                    Project(
                        project_id=project_id,
                        name=f"Project {project_id[:8]}",
                        description="Auto-created from webhook",
                        source=ProjectSource.WEBHOOK.value,
                        input_type=ProjectSource.WEBHOOK.value,
                        status=ProjectStatus.CREATED.value,
                        total_documents=0,
                    )
                )
            logger.info(f"Provisioned placeholder project {project_id}")
        except IntegrityError:
            logger.info(f"Placeholder project {project_id} created concurrently")
        project = await self.get(project_id)
        assert project is not None
        return project

    async def set_status(self, project_id: str, status: ProjectStatus | str) -> None:
        await self.session.execute(
            update(Project)
            .where(Project.project_id == project_id)
            .values(
                status=ProjectStatus(status).value,
                revision=Project.revision + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

    async def increment_documents(self, project_id: str, by: int = 1) -> None:
        await self.session.execute(
            update(Project)
            .where(Project.project_id == project_id)
            .values(
                total_documents=Project.total_documents + by,
                revision=Project.revision + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

    async def update_details(self, project_id: str, fields: dict[str, Any]) -> Project | None:
        values = {k: v for k, v in fields.items() if k in EDITABLE_PROJECT_FIELDS}
        if values:
            await self.session.execute(
                update(Project)
                .where(Project.project_id == project_id)
                .values(**values, revision=Project.revision + 1, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
        return await self.get(project_id)


class DocumentRepository(_SessionRepository):
    """Append-only, versioned document storage keyed by (project, type).

    New content always becomes a new version. ``update_in_place`` exists only
    as a maintenance escape hatch.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.projects = ProjectRepository(session)

    async def get(self, project_id: str, document_id: str) -> Document | None:
        result = await self.session.execute(
            select(Document).where(
                Document.project_id == project_id, Document.document_id == document_id
            )
        )
        return result.scalar_one_or_none()

    async def latest(self, project_id: str, doc_type: DocumentType | str) -> Document | None:
        result = await self.session.execute(
            select(Document)
            .where(Document.project_id == project_id, Document.type == DocumentType(doc_type).value)
            .order_by(Document.version.desc(), Document.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_by_project(
        self, project_id: str, doc_type: DocumentType | str | None = None
    ) -> Sequence[Document]:
        query = select(Document).where(Document.project_id == project_id)
        if doc_type is not None:
            query = query.where(Document.type == DocumentType(doc_type).value)
        result = await self.session.execute(
            query.order_by(Document.created_at.desc(), Document.id.desc())
        )
        return list(result.scalars())

    async def count_by_project(self, project_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Document).where(Document.project_id == project_id)
        )
        return result.scalar_one()

    async def _next_version(self, project_id: str, doc_type: DocumentType) -> int:
        # Single atomic read-increment-write on the lineage counter
        result = await self.session.execute(
            update(DocumentCounter)
            .where(DocumentCounter.project_id == project_id, DocumentCounter.type == doc_type.value)
            .values(last_version=DocumentCounter.last_version + 1)
            .returning(DocumentCounter.last_version)
            .execution_options(synchronize_session=False)
        )
        version = result.scalar_one_or_none()
        if version is not None:
            return version

        # First write to this lineage: seed the counter past any existing rows
        existing = await self.session.execute(
            select(func.max(Document.version)).where(
                Document.project_id == project_id, Document.type == doc_type.value
            )
        )
        version = (existing.scalar_one_or_none() or 0) + 1
        try:
            async with self.session.begin_nested():
                self.session.add(
                    DocumentCounter(project_id=project_id, type=doc_type.value, last_version=version)
                )
        except IntegrityError:
            return await self._next_version(project_id, doc_type)
        return version

    async def _insert(
        self,
        project_id: str,
        doc_type: DocumentType,
        content: dict[str, Any],
        version: int,
        parent_document_id: str | None = None,
        source_hash: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> Document:
        doc = Document(
            document_id=str(uuid.uuid4()),
            project_id=project_id,
            type=doc_type.value,
            content=content,
            version=version,
            parent_document_id=parent_document_id,
            source_hash=source_hash,
            meta=meta or {},
        )
        self.session.add(doc)
        try:
            await self.session.flush()
        except IntegrityError as err:
            raise DuplicateKeyError(
                f"{doc_type.value} v{version} already exists for project {project_id}"
            ) from err
        await self.projects.increment_documents(project_id)
        return doc

    async def create_initial(
        self,
        project_id: str,
        doc_type: DocumentType | str,
        content: dict[str, Any],
        source_hash: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> Document:
        doc_type = DocumentType(doc_type)
        try:
            async with self.session.begin_nested():
                self.session.add(
                    DocumentCounter(project_id=project_id, type=doc_type.value, last_version=1)
                )
        except IntegrityError as err:
            raise DuplicateKeyError(
                f"{doc_type.value} lineage already exists for project {project_id}"
            ) from err
        return await self._insert(project_id, doc_type, content, 1, source_hash=source_hash, meta=meta)

    async def create_version(
        self, project_id: str, parent_document_id: str, content: dict[str, Any]
    ) -> Document:
        parent = await self.get(project_id, parent_document_id)
        if parent is None:
            raise NotFoundError(
                f"Document {parent_document_id} not found for project {project_id}"
            )
        doc_type = DocumentType(parent.type)
        version = await self._next_version(project_id, doc_type)
        meta = {
            **(parent.meta or {}),
            "parent_document_id": parent.document_id,
            "created_from_version": parent.version,
        }
        return await self._insert(
            project_id,
            doc_type,
            content,
            version,
            parent_document_id=parent.document_id,
            source_hash=parent.source_hash,
            meta=meta,
        )

    async def append(
        self,
        project_id: str,
        doc_type: DocumentType | str,
        content: dict[str, Any],
        parent_document_id: str | None = None,
    ) -> Document:
        """Persist ``content`` as the next version of its lineage (1 when new)."""
        doc_type = DocumentType(doc_type)
        version = await self._next_version(project_id, doc_type)
        return await self._insert(
            project_id, doc_type, content, version, parent_document_id=parent_document_id
        )

    async def update_in_place(
        self, project_id: str, document_id: str, content: dict[str, Any]
    ) -> Document:
        doc = await self.get(project_id, document_id)
        if doc is None:
            raise NotFoundError(f"Document {document_id} not found for project {project_id}")
        doc.content = content
        doc.updated_at = utcnow()
        await self.session.flush()
        return doc


class NotificationRepository(_SessionRepository):
    async def add(self, **fields: Any) -> Notification:
        fields.setdefault("notification_id", str(uuid.uuid4()))
        notification = Notification(**fields)
        self.session.add(notification)
        try:
            await self.session.flush()
        except IntegrityError as err:
            raise DuplicateKeyError(
                f"Notification {fields['notification_id']} already exists"
            ) from err
        return notification

    async def get(self, notification_id: str) -> Notification | None:
        result = await self.session.execute(
            select(Notification)
            .where(Notification.notification_id == notification_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list(
        self, include_archived: bool = False, limit: int = 50, skip: int = 0
    ) -> Sequence[Notification]:
        query = select(Notification)
        if not include_archived:
            query = query.where(Notification.status != NotificationStatus.ARCHIVED.value)
        result = await self.session.execute(
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars())

    async def list_since(self, sequence: int, limit: int = 50) -> Sequence[Notification]:
        result = await self.session.execute(
            select(Notification)
            .where(Notification.id > sequence)
            .order_by(Notification.id.asc())
            .limit(limit)
        )
        return list(result.scalars())

    async def unread_count(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.status == NotificationStatus.UNREAD.value)
        )
        return result.scalar_one()

    async def mark_as_read(self, notification_id: str) -> int:
        now = utcnow()
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.notification_id == notification_id,
                Notification.status == NotificationStatus.UNREAD.value,
            )
            .values(status=NotificationStatus.READ.value, read_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def mark_all_as_read(self) -> int:
        now = utcnow()
        result = await self.session.execute(
            update(Notification)
            .where(Notification.status == NotificationStatus.UNREAD.value)
            .values(status=NotificationStatus.READ.value, read_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def archive(self, notification_id: str) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.notification_id == notification_id,
                Notification.status != NotificationStatus.ARCHIVED.value,
            )
            .values(status=NotificationStatus.ARCHIVED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_archived_before(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(Notification)
            .where(
                Notification.status == NotificationStatus.ARCHIVED.value,
                Notification.updated_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
