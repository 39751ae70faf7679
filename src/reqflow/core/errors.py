"""Error handling utilities and custom exceptions."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "app_error",
        http_status: int = status.HTTP_400_BAD_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """A required field is missing or malformed. Raised before any state change."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(
            message, code="validation_error", http_status=status.HTTP_400_BAD_REQUEST, **kwargs
        )


class NotFoundError(AppError):
    """Project, document or notification absent, or a stage precondition is unmet."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message, code="not_found", http_status=status.HTTP_404_NOT_FOUND, **kwargs)


class DispatchError(AppError):
    """The outbound stage call failed, timed out or was refused."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(
            message, code="dispatch_error", http_status=status.HTTP_502_BAD_GATEWAY, **kwargs
        )


class DispatchInProgress(AppError):
    """A dispatch lease is already held for the project."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(
            message, code="dispatch_in_progress", http_status=status.HTTP_409_CONFLICT, **kwargs
        )


class IngestError(AppError):
    """A completion payload could not be interpreted."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(
            message, code="ingest_error", http_status=status.HTTP_400_BAD_REQUEST, **kwargs
        )


class DuplicateKeyError(AppError):
    """An insert collided with an existing identity."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(
            message, code="duplicate_key", http_status=status.HTTP_409_CONFLICT, **kwargs
        )


async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.info(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Invalid request payload",
            "details": jsonable_encoder(exc.errors()),
        },
    )
