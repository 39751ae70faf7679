"""Shared fixtures: a throwaway SQLite database and a stubbed processing service."""
from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest
import pytest_asyncio

from reqflow import create_app
from reqflow.core.settings import get_settings
from reqflow.db.base import dispose_engine, get_session_factory, init_models
from reqflow.db.models import ProjectSource
from reqflow.db.repositories import DocumentRepository, ProjectRepository
from reqflow.services.processing_client import (
    ProcessingClientConfig,
    ProcessingServiceClient,
    get_processing_client,
)
from reqflow.services.projects import ProjectService

STAGE_URLS = {
    "REQFLOW_REQUIREMENTS_EXTRACTION_URL": "http://processing.test/requirements",
    "REQFLOW_BRD_GENERATION_URL": "http://processing.test/brd",
    "REQFLOW_BLUEPRINT_GENERATION_URL": "http://processing.test/blueprint",
}


class ProcessingServiceStub:
    """Records outbound stage calls and answers them with ``responder``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"accepted": True}
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def client(self, failure_threshold: int = 5) -> ProcessingServiceClient:
        return ProcessingServiceClient(
            ProcessingClientConfig(timeout=5.0, failure_threshold=failure_threshold),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
        )


@pytest.fixture
def settings_env(tmp_path, monkeypatch):
    monkeypatch.setenv("REQFLOW_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'reqflow.db'}")
    for key, value in STAGE_URLS.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    get_processing_client.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
    get_processing_client.cache_clear()


@pytest_asyncio.fixture
async def session_factory(settings_env):
    await dispose_engine()
    await init_models(drop=True)
    yield get_session_factory()
    await dispose_engine()


@pytest.fixture
def processing_service() -> ProcessingServiceStub:
    return ProcessingServiceStub()


@pytest.fixture
def make_project(session_factory):
    """Create a project with its raw input in a session of its own."""

    async def _make(text: str = "Users must be able to reset passwords.", **kwargs):
        async with session_factory() as session:
            service = ProjectService(ProjectRepository(session), DocumentRepository(session))
            return await service.create_with_raw_input(
                kwargs.pop("source", ProjectSource.MANUAL), text, **kwargs
            )

    return _make


@pytest_asyncio.fixture
async def api(session_factory, processing_service):
    """HTTP client for the app, with outbound stage calls going to the stub."""
    app = create_app()
    stage_client = processing_service.client()
    app.dependency_overrides[get_processing_client] = lambda: stage_client
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
