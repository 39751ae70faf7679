"""Completion callbacks posted by the processing service."""
from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Body, Depends, status

from reqflow.db.models import DocumentType
from reqflow.services.dependencies import get_ingest
from reqflow.services.ingest import CompletionIngest

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _ingest(
    ingest: CompletionIngest, payload: dict[str, Any], stage: DocumentType | None
) -> dict[str, Any]:
    result = await ingest.ingest(payload, stage)
    return {"success": True, **asdict(result)}


@router.post("/completion", status_code=status.HTTP_201_CREATED)
async def completion(
    payload: dict[str, Any] = Body(...),  # noqa: B008
    ingest: CompletionIngest = Depends(get_ingest),  # noqa: B008
) -> dict[str, Any]:
    """Accept a completion of any stage, detected from the payload keys."""
    return await _ingest(ingest, payload, None)


@router.post("/requirements", status_code=status.HTTP_201_CREATED)
async def requirements_completed(
    payload: dict[str, Any] = Body(...),  # noqa: B008
    ingest: CompletionIngest = Depends(get_ingest),  # noqa: B008
) -> dict[str, Any]:
    return await _ingest(ingest, payload, DocumentType.REQUIREMENTS)


@router.post("/brd", status_code=status.HTTP_201_CREATED)
async def brd_completed(
    payload: dict[str, Any] = Body(...),  # noqa: B008
    ingest: CompletionIngest = Depends(get_ingest),  # noqa: B008
) -> dict[str, Any]:
    return await _ingest(ingest, payload, DocumentType.BRD)


@router.post("/blueprint", status_code=status.HTTP_201_CREATED)
async def blueprint_completed(
    payload: dict[str, Any] = Body(...),  # noqa: B008
    ingest: CompletionIngest = Depends(get_ingest),  # noqa: B008
) -> dict[str, Any]:
    return await _ingest(ingest, payload, DocumentType.BLUEPRINT)


@router.post("/draft", status_code=status.HTTP_201_CREATED)
async def draft_completed(
    payload: dict[str, Any] = Body(...),  # noqa: B008
    ingest: CompletionIngest = Depends(get_ingest),  # noqa: B008
) -> dict[str, Any]:
    return await _ingest(ingest, payload, DocumentType.DRAFT)
