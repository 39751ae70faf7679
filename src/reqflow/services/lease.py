"""Per-project dispatch lease backed by Redis.

When enabled, a project may have at most one outstanding stage dispatch. The
lease is taken before the project flips to ``processing``, dropped when the
dispatch fails synchronously, and released by the completion that resolves
it. The TTL bounds how long a lost callback can block the project.
"""
from __future__ import annotations

import logging

from reqflow.core.redis_client import redis_delete, redis_set_if_absent

logger = logging.getLogger(__name__)


class RedisDispatchLease:
    def __init__(self, ttl: int, prefix: str = "reqflow:dispatch_lease:"):
        self.ttl = ttl
        self.prefix = prefix

    def _key(self, project_id: str) -> str:
        return f"{self.prefix}{project_id}"

    async def acquire(self, project_id: str) -> bool:
        acquired = await redis_set_if_absent(self._key(project_id), "1", ttl=self.ttl)
        if not acquired:
            logger.info(f"Dispatch lease for project {project_id} is already held")
        return acquired

    async def release(self, project_id: str) -> None:
        await redis_delete(self._key(project_id))
