"""Project register: creation with raw input, lookup and document branching."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from reqflow.core.errors import NotFoundError, ValidationError
from reqflow.db.models import Document, DocumentType, Project, ProjectSource, ProjectStatus, utcnow
from reqflow.db.repositories import DocumentRepository, ProjectRepository
from reqflow.pipelines.content import validate_content

logger = logging.getLogger(__name__)


class EmailInput(BaseModel):
    """An inbound email as forwarded by the mail automation."""

    model_config = ConfigDict(populate_by_name=True)

    source: str
    subject: str
    content: str
    metadata: dict[str, Any] | None = None
    html: str | None = None
    message_id: str | None = Field(default=None, alias="messageId")

    @field_validator("source", "subject", "content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


def parse_email_payload(payload: Any) -> EmailInput:
    """Accept a bare email object or the ``[{"output": {...}}]`` envelope."""
    if isinstance(payload, list) and payload and isinstance(payload[0], dict) and payload[0].get("output"):
        payload = payload[0]["output"]
    try:
        return EmailInput.model_validate(payload)
    except PydanticValidationError as err:
        raise ValidationError(
            "source, subject, and content are required",
            details={"fields": [".".join(str(p) for p in e["loc"]) for e in err.errors()]},
        ) from err


def organization_from_email(email: str) -> str:
    domain = email.split("@", 1)[1] if "@" in email else ""
    org = domain.split(".")[0]
    return org[:1].upper() + org[1:] if org else "Unknown Organization"


def name_from_email(email: str) -> str:
    local = email.split("@", 1)[0] if "@" in email else ""
    if not local:
        return "Unknown Contact"
    return " ".join(part[:1].upper() + part[1:] for part in local.split("."))


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class ProjectService:
    def __init__(self, projects: ProjectRepository, documents: DocumentRepository) -> None:
        self._projects = projects
        self._documents = documents

    async def create_with_raw_input(
        self,
        source: ProjectSource | str,
        text: str,
        source_detail: str | None = None,
        name: str | None = None,
        organization_name: str | None = None,
        contact_person_name: str | None = None,
        contact_email: str | None = None,
    ) -> tuple[Project, Document]:
        """Create a project in ``created`` together with its RAW_INPUT v1."""
        if not text or not text.strip():
            raise ValidationError("Content is required")
        source = ProjectSource(source)
        content = validate_content(
            DocumentType.RAW_INPUT,
            {"text": text, "source": source.value, "source_detail": source_detail},
        )
        project_id = str(uuid.uuid4())
        return await self._create(
            content,
            project_id=project_id,
            name=name or f"Requirement {project_id[:8]}",
            description=_truncate(text, 100),
            source=f"{source.value}:{source_detail}" if source_detail else source.value,
            input=text,
            input_type=source.value,
            organization_name=organization_name or "",
            contact_person_name=contact_person_name or "",
            contact_email=contact_email or "",
        )

    async def create_from_email(self, email: EmailInput) -> tuple[Project, Document]:
        """Create a project from an inbound email; the subject names the project."""
        sender = (email.metadata or {}).get("sender") or "unknown@example.com"
        received_at = (email.metadata or {}).get("received_at") or utcnow().isoformat()
        project_id = str(uuid.uuid4())
        content = validate_content(
            DocumentType.RAW_INPUT,
            {
                "text": email.content,
                "source": ProjectSource.EMAIL.value,
                "subject": email.subject,
                "content": email.content,
                "metadata": email.metadata,
                "html_content": email.html,
                "message_id": email.message_id,
                "received_at": received_at,
                "sender_email": sender,
            },
        )
        return await self._create(
            content,
            source_hash=f"email_{project_id}",
            project_id=project_id,
            name=_truncate(email.subject, 100),
            description=_truncate(email.content, 500),
            source=ProjectSource.EMAIL.value,
            input=email.model_dump(mode="json"),
            input_type=ProjectSource.EMAIL.value,
            organization_name=organization_from_email(sender),
            contact_person_name=name_from_email(sender),
            contact_email=sender,
            meta={
                "email_source": email.source,
                "original_subject": email.subject,
                "received_at": received_at,
                "sender_email": sender,
                "has_html_content": bool(email.html),
                "message_id": email.message_id,
            },
        )

    async def _create(
        self, content: dict[str, Any], source_hash: str | None = None, **fields: Any
    ) -> tuple[Project, Document]:
        project = await self._projects.add(
            status=ProjectStatus.CREATED.value, total_documents=0, **fields
        )
        document = await self._documents.create_initial(
            project.project_id, DocumentType.RAW_INPUT, content, source_hash=source_hash
        )
        await self._projects.commit()
        logger.info(f"Project created with ID: {project.project_id}")
        refreshed = await self._projects.get(project.project_id)
        assert refreshed is not None
        return refreshed, document

    async def get_with_documents(self, project_id: str) -> tuple[Project, Sequence[Document]]:
        project = await self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project with ID {project_id} does not exist")
        documents = await self._documents.list_by_project(project_id)
        return project, documents

    async def update_details(self, project_id: str, fields: dict[str, Any]) -> Project:
        project = await self._projects.update_details(project_id, fields)
        if project is None:
            raise NotFoundError(f"Project with ID {project_id} does not exist")
        await self._projects.commit()
        return project

    async def get_document(self, project_id: str, document_id: str) -> Document:
        document = await self._documents.get(project_id, document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found for project {project_id}")
        return document

    async def latest_document(self, project_id: str, doc_type: DocumentType) -> Document:
        document = await self._documents.latest(project_id, doc_type)
        if document is None:
            raise NotFoundError(f"No {doc_type.value} document found for project {project_id}")
        return document

    async def branch_version(
        self, project_id: str, parent_document_id: str, content: Any
    ) -> Document:
        """Create the next version of a document's lineage from edited content."""
        parent = await self.get_document(project_id, parent_document_id)
        validated = validate_content(parent.type, content)
        document = await self._documents.create_version(project_id, parent_document_id, validated)
        await self._documents.commit()
        logger.info(
            f"Created {document.type} v{document.version} for project {project_id} "
            f"from {parent_document_id}"
        )
        return document

    async def update_in_place(self, project_id: str, document_id: str, content: Any) -> Document:
        """Overwrite a document's content without versioning. Maintenance use only."""
        current = await self.get_document(project_id, document_id)
        validated = validate_content(current.type, content)
        document = await self._documents.update_in_place(project_id, document_id, validated)
        await self._documents.commit()
        logger.warning(f"Document {document_id} of project {project_id} overwritten in place")
        return document
