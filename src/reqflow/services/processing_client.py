"""HTTP client for the external processing service.

Every stage dispatch goes through a circuit breaker so that a service which
keeps failing is refused quickly instead of holding each request for the
full timeout. The breaker never retries: a refused or failed call surfaces
as ``DispatchError`` and the caller decides what to roll back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx
from circuitbreaker import CircuitBreaker, CircuitBreakerError

from reqflow.core.errors import DispatchError
from reqflow.core.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class ProcessingClientConfig:
    """Configuration for outbound stage calls."""

    timeout: float = 5.0  # Request timeout in seconds
    failure_threshold: int = 5  # Number of failures before opening
    recovery_timeout: int = 60  # Seconds to wait before a trial call
    name: str = "processing_service"


class ProcessingServiceClient:
    """Posts stage-advance requests to the external processing service."""

    def __init__(
        self,
        config: ProcessingClientConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self._http = http_client
        self._owns_http = http_client is None
        self.breaker = CircuitBreaker(
            failure_threshold=config.failure_threshold,
            recovery_timeout=config.recovery_timeout,
            expected_exception=httpx.HTTPError,
            name=config.name,
        )

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(headers={"Content-Type": "application/json"})
        return self._http

    async def _post(self, url: str, payload: dict[str, Any]) -> None:
        response = await self._client().post(url, json=payload, timeout=self.config.timeout)
        response.raise_for_status()

    async def post(self, url: str, payload: dict[str, Any]) -> None:
        """POST ``payload`` to ``url``; the response body is not interpreted."""
        try:
            # call_async records the outcome but does not refuse an open circuit
            if self.breaker.opened:
                raise CircuitBreakerError(self.breaker)
            await self.breaker.call_async(self._post, url, payload)
        except CircuitBreakerError as e:
            raise DispatchError(
                "Processing service temporarily unavailable (circuit open)",
                details={"url": url, "circuit_state": self.breaker.state},
            ) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Processing service timeout after {self.config.timeout}s: {url}")
            raise DispatchError(
                f"Processing service timeout after {self.config.timeout}s",
                details={"url": url, "timeout_seconds": self.config.timeout},
            ) from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Processing service returned {e.response.status_code}: {url}")
            raise DispatchError(
                f"Processing service error: {e.response.status_code}",
                details={"url": url, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Processing service request failed: {url}: {e}")
            raise DispatchError(
                f"Failed to reach processing service: {e}",
                details={"url": url, "error_type": type(e).__name__},
            ) from e

    def get_stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics."""
        return {
            "name": self.config.name,
            "state": self.breaker.state,
            "failure_count": self.breaker.failure_count,
            "config": {
                "failure_threshold": self.config.failure_threshold,
                "recovery_timeout": self.config.recovery_timeout,
                "timeout": self.config.timeout,
            },
        }

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None


@lru_cache(maxsize=1)
def get_processing_client() -> ProcessingServiceClient:
    """Get or create the process-wide processing service client."""
    settings = get_settings()
    return ProcessingServiceClient(
        ProcessingClientConfig(
            timeout=settings.dispatch_timeout,
            failure_threshold=settings.dispatch_failure_threshold,
            recovery_timeout=settings.dispatch_recovery_timeout,
        )
    )
