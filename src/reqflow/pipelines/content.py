"""Per-stage document content models.

Document content is stored as JSON, but its shape depends on the document
type. Each type has one model here and content is validated against it
whenever a document is written. Unknown keys are kept as-is so edited
documents round-trip without loss.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from reqflow.core.errors import ValidationError
from reqflow.db.models import DocumentType


class StageContent(BaseModel):
    model_config = ConfigDict(extra="allow")


class RawInputContent(StageContent):
    text: str
    source: str | None = None
    source_detail: str | None = None


class RequirementsContent(StageContent):
    requirements: Any
    constraints: list[Any] = []
    preferred_format: str = "Markdown"
    project_info: dict[str, Any] | None = None


class BrdContent(StageContent):
    brd: Any


class BlueprintContent(StageContent):
    blueprint: Any
    preferred_format: str = "Markdown"


class DraftContent(StageContent):
    pass


CONTENT_MODELS: dict[DocumentType, type[StageContent]] = {
    DocumentType.RAW_INPUT: RawInputContent,
    DocumentType.REQUIREMENTS: RequirementsContent,
    DocumentType.BRD: BrdContent,
    DocumentType.BLUEPRINT: BlueprintContent,
    DocumentType.DRAFT: DraftContent,
}


def validate_content(doc_type: DocumentType | str, content: Any) -> dict[str, Any]:
    """Validate ``content`` for ``doc_type`` and return its JSON-ready form."""
    doc_type = DocumentType(doc_type)
    if not isinstance(content, dict):
        raise ValidationError(f"{doc_type.value} content must be an object")
    model = CONTENT_MODELS[doc_type]
    try:
        parsed = model.model_validate(content)
    except PydanticValidationError as err:
        missing = [".".join(str(p) for p in e["loc"]) for e in err.errors()]
        raise ValidationError(
            f"Invalid {doc_type.value} content",
            details={"fields": missing},
        ) from err
    return parsed.model_dump(mode="json")
