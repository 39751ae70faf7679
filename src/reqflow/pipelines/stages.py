"""Stage definitions for the document pipeline.

raw input -> REQUIREMENTS -> BRD -> BLUEPRINT
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from reqflow.core.errors import ValidationError
from reqflow.db.models import DocumentType


class Stage(str, Enum):
    REQUIREMENTS = "REQUIREMENTS"
    BRD = "BRD"
    BLUEPRINT = "BLUEPRINT"

    @classmethod
    def parse(cls, value: str) -> Stage:
        try:
            return cls(value.strip().upper())
        except ValueError as err:
            raise ValidationError(f"Unknown stage: {value}") from err


@dataclass(frozen=True, slots=True)
class StageSpec:
    stage: Stage
    input_field: str  # field name carrying the stage input in the outbound payload
    prerequisite: DocumentType
    required: bool  # whether the prerequisite document must exist


STAGES: dict[Stage, StageSpec] = {
    Stage.REQUIREMENTS: StageSpec(
        stage=Stage.REQUIREMENTS,
        input_field="input",
        prerequisite=DocumentType.RAW_INPUT,
        required=False,
    ),
    Stage.BRD: StageSpec(
        stage=Stage.BRD,
        input_field="requirements",
        prerequisite=DocumentType.REQUIREMENTS,
        required=True,
    ),
    Stage.BLUEPRINT: StageSpec(
        stage=Stage.BLUEPRINT,
        input_field="brd",
        prerequisite=DocumentType.BRD,
        required=True,
    ),
}
