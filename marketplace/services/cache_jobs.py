"""Background caching of whole mods.

A cache request never waits for GitHub. ``trigger`` answers from the cache or
the task store right away and, when there is work to do, records a pending
task and spawns ``run`` on the event loop. ``run`` fetches metadata, thumbnail
and assets in parallel, stores the assembled ``CachedMod`` and leaves the
outcome on the task record, where the cache-status endpoints can see it.

``trigger`` contains no ``await``: the "is anything in flight?" check and the
task-store write happen in the same step of the loop, so two requests for the
same mod can't both start a job.
"""

import asyncio
import logging

from marketplace.models import CachedMod, CacheTask, TaskStatus
from marketplace.services.cache import ModsCache

logger = logging.getLogger(__name__)


class CacheJobRunner:
    def __init__(self, cache: ModsCache, content_store, retention_seconds: float = 30.0):
        self._cache = cache
        self._store = content_store
        self.retention_seconds = retention_seconds
        self._jobs: set[asyncio.Task] = set()
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def trigger(self, mod_id: str) -> tuple[str, dict]:
        """Start caching ``mod_id`` unless it is cached or already in flight.

        Returns a human-readable message and the response payload.
        """
        entry = self._cache.get(mod_id)
        if entry is not None:
            return "Mod already cached", {
                "modId": mod_id,
                "status": TaskStatus.COMPLETED.value,
                "cached": True,
                "assetsCount": entry.assets_count,
                "cachedAt": entry.cached_at,
            }

        task = self._cache.get_cache_task(mod_id)
        if task is not None and task.is_active:
            return "Mod is already being cached", {
                "modId": mod_id,
                "status": task.status.value,
                "cached": False,
                "startedAt": task.started_at,
            }

        task = CacheTask(mod_id=mod_id, status=TaskStatus.PENDING, started_at=self._cache.now())
        self._cache.set_cache_task(mod_id, task)
        job = asyncio.get_running_loop().create_task(self.run(mod_id, task.task_id), name=f"cache-mod:{mod_id}")
        self._jobs.add(job)
        job.add_done_callback(self._jobs.discard)
        logger.info("Caching started for mod %s (task %s)", mod_id, task.task_id)

        return "Mod caching started", {
            "modId": mod_id,
            "status": TaskStatus.PENDING.value,
            "cached": False,
            "startedAt": task.started_at,
        }

    async def run(self, mod_id: str, task_id: str) -> None:
        """Fetch and store one mod, recording progress on its task."""
        self._update(mod_id, task_id, status=TaskStatus.IN_PROGRESS)
        try:
            info, image, assets = await asyncio.gather(
                self._store.get_mod_info(mod_id),
                self._store.get_mod_image(mod_id),
                self._store.get_mod_assets(mod_id),
            )
            if info is None:
                logger.warning("Caching mod %s failed: mod not found", mod_id)
                self._update(mod_id, task_id, status=TaskStatus.FAILED, error="Mod not found", completed_at=self._cache.now())
                return

            entry = CachedMod(info=info, assets=assets, image=image, cached_at=self._cache.now())
            self._cache.set(mod_id, entry)
            self._update(
                mod_id,
                task_id,
                status=TaskStatus.COMPLETED,
                assets_count=entry.assets_count,
                completed_at=self._cache.now(),
            )
            logger.info("Cached mod %s with %d assets", mod_id, entry.assets_count)
        except Exception as e:
            logger.exception("Caching mod %s failed", mod_id)
            self._update(mod_id, task_id, status=TaskStatus.FAILED, error=str(e) or type(e).__name__, completed_at=self._cache.now())
            return

        self._schedule_removal(mod_id, task_id)

    def _update(self, mod_id: str, task_id: str, **fields) -> None:
        current = self._cache.get_cache_task(mod_id)
        if current is None or current.task_id != task_id:
            return
        self._cache.update_cache_task(mod_id, **fields)

    def _schedule_removal(self, mod_id: str, task_id: str) -> None:
        loop = asyncio.get_running_loop()
        self._timers[task_id] = loop.call_later(self.retention_seconds, self._expire, mod_id, task_id)

    def _expire(self, mod_id: str, task_id: str) -> None:
        self._timers.pop(task_id, None)
        # No-op if a newer task has taken this mod's slot.
        self._cache.remove_cache_task(mod_id, task_id)

    @property
    def active_jobs(self) -> int:
        return len(self._jobs)

    async def drain(self) -> None:
        """Wait until every spawned job has finished."""
        while self._jobs:
            await asyncio.gather(*list(self._jobs), return_exceptions=True)

    def close(self) -> None:
        """Cancel pending task-removal timers."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
