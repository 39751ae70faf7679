"""Stage dispatcher.

Advances a project to ``processing`` and asks the external processing
service to start a stage. The stage output is not returned here; it
arrives later through completion ingest, matched only by project and stage.
"""
from __future__ import annotations

import logging
from typing import Any

from reqflow.core.errors import DispatchError, DispatchInProgress, NotFoundError
from reqflow.core.settings import Settings
from reqflow.db.models import Document, Project, ProjectSource, ProjectStatus
from reqflow.pipelines.interfaces import (
    DispatchLeaseProtocol,
    DispatchResult,
    DocumentRepositoryProtocol,
    ProjectRepositoryProtocol,
    StageClientProtocol,
)
from reqflow.pipelines.stages import STAGES, Stage, StageSpec

logger = logging.getLogger(__name__)


def _raw_input_text(project: Project, raw: Document) -> Any:
    content = raw.content or {}
    if project.source == ProjectSource.EMAIL.value and content.get("content"):
        return content["content"]
    return content.get("text") or content


class StageDispatcher:
    def __init__(
        self,
        projects: ProjectRepositoryProtocol,
        documents: DocumentRepositoryProtocol,
        client: StageClientProtocol,
        settings: Settings,
        lease: DispatchLeaseProtocol | None = None,
    ) -> None:
        self._projects = projects
        self._documents = documents
        self._client = client
        self._settings = settings
        self._lease = lease

    async def _stage_input(
        self, spec: StageSpec, project: Project, override: Any | None
    ) -> Any:
        prerequisite = await self._documents.latest(project.project_id, spec.prerequisite)
        if spec.required and prerequisite is None:
            raise NotFoundError(
                f"No {spec.prerequisite.value} document found for project "
                f"{project.project_id}; run the previous stage first"
            )
        if override is not None:
            return override
        if spec.stage is Stage.REQUIREMENTS:
            if prerequisite is not None:
                return _raw_input_text(project, prerequisite)
            if project.input:
                return project.input
            raise NotFoundError(f"No raw input found for project {project.project_id}")
        assert prerequisite is not None
        return prerequisite.content

    async def dispatch(
        self, project_id: str, stage: Stage | str, content: Any | None = None
    ) -> DispatchResult:
        spec = STAGES[Stage.parse(stage)]
        project = await self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project with ID {project_id} does not exist")

        payload = {
            "project_id": project_id,
            spec.input_field: await self._stage_input(spec, project, content),
            "project_name": project.name,
            "organization_name": project.organization_name,
        }
        url = self._settings.stage_url(spec.stage.value)
        if not url:
            raise DispatchError(f"Processing service URL for {spec.stage.value} is not configured")

        if self._lease is not None and not await self._lease.acquire(project_id):
            raise DispatchInProgress(f"A stage dispatch is already outstanding for {project_id}")

        previous_status = project.status
        await self._projects.set_status(project_id, ProjectStatus.PROCESSING)
        await self._projects.commit()
        logger.info(f"Dispatching {spec.stage.value} for project {project_id} to {url}")

        try:
            await self._client.post(url, payload)
        except DispatchError:
            await self._rollback(project_id, previous_status)
            raise
        except Exception as e:
            await self._rollback(project_id, previous_status)
            raise DispatchError(f"{spec.stage.value} dispatch failed: {e}") from e

        logger.info(f"{spec.stage.value} dispatch accepted for project {project_id}")
        return DispatchResult(
            project_id=project_id,
            stage=spec.stage.value,
            status=ProjectStatus.PROCESSING.value,
            previous_status=previous_status,
        )

    async def _rollback(self, project_id: str, previous_status: str) -> None:
        logger.warning(f"Dispatch failed for project {project_id}; restoring status {previous_status}")
        await self._projects.set_status(project_id, previous_status)
        await self._projects.commit()
        if self._lease is not None:
            await self._lease.release(project_id)
