"""Stage dispatch endpoint."""
from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from reqflow.services.dependencies import get_dispatcher
from reqflow.services.dispatcher import StageDispatcher

router = APIRouter(prefix="/actions", tags=["actions"])


class DispatchRequest(BaseModel):
    # Replaces the stored prerequisite as the stage input when given
    content: Any | None = None


@router.post("/{stage}/{project_id}", status_code=status.HTTP_202_ACCEPTED)
async def dispatch_stage(
    stage: str,
    project_id: str,
    body: DispatchRequest | None = None,
    dispatcher: StageDispatcher = Depends(get_dispatcher),  # noqa: B008
) -> dict[str, Any]:
    result = await dispatcher.dispatch(project_id, stage, body.content if body else None)
    return {
        "success": True,
        "message": f"{result.stage} processing started",
        **asdict(result),
    }
