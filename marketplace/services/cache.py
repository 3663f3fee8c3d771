"""In-memory mod cache. No Redis needed: a restart clears everything.

Holds two stores: fully assembled mods (expired lazily on read once older than
the TTL) and the records of background caching tasks, at most one per mod.

Note: Each uvicorn worker has its own cache instance. With --workers 2, a mod
may be cached twice (once per worker). Mutations are plain dict operations with
no await in between, which is what keeps them consistent on one event loop.
"""

import dataclasses
import time
from typing import Callable

from marketplace.models import CachedMod, CacheTask, TaskStatus


def _now_ms() -> int:
    return int(time.time() * 1000)


class ModsCache:
    def __init__(self, ttl_ms: int = 3_600_000, clock: Callable[[], int] = _now_ms):
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, CachedMod] = {}
        self._tasks: dict[str, CacheTask] = {}

    def now(self) -> int:
        """Current time in epoch milliseconds, as seen by this cache."""
        return self._clock()

    def _expired(self, entry: CachedMod, now: int) -> bool:
        return now - entry.cached_at > self.ttl_ms

    # -- entries ---------------------------------------------------------

    def is_cached(self, mod_id: str) -> bool:
        entry = self._entries.get(mod_id)
        if entry is None:
            return False
        if self._expired(entry, self.now()):
            del self._entries[mod_id]
            return False
        return True

    def get(self, mod_id: str) -> CachedMod | None:
        if not self.is_cached(mod_id):
            return None
        return self._entries[mod_id]

    def set(self, mod_id: str, entry: CachedMod) -> None:
        self._entries[mod_id] = entry

    def get_all(self) -> dict[str, CachedMod]:
        """Evict every stale entry, then return a copy of what is left."""
        now = self.now()
        for mod_id in [k for k, v in self._entries.items() if self._expired(v, now)]:
            del self._entries[mod_id]
        return dict(self._entries)

    # -- tasks -----------------------------------------------------------

    def set_cache_task(self, mod_id: str, task: CacheTask) -> None:
        self._tasks[mod_id] = dataclasses.replace(task)

    def get_cache_task(self, mod_id: str) -> CacheTask | None:
        task = self._tasks.get(mod_id)
        return dataclasses.replace(task) if task is not None else None

    def update_cache_task(self, mod_id: str, **fields) -> None:
        """Merge ``fields`` into the stored task. Does nothing if there is no task."""
        task = self._tasks.get(mod_id)
        if task is None:
            return
        for name, value in fields.items():
            if not hasattr(task, name):
                raise AttributeError(f"CacheTask has no field {name!r}")
            setattr(task, name, value)

    def remove_cache_task(self, mod_id: str, task_id: str | None = None) -> None:
        """Drop the task for ``mod_id``. With ``task_id``, only if that task is still the stored one."""
        task = self._tasks.get(mod_id)
        if task is None:
            return
        if task_id is not None and task.task_id != task_id:
            return
        del self._tasks[mod_id]

    def is_being_cached(self, mod_id: str) -> bool:
        task = self._tasks.get(mod_id)
        return task is not None and task.status == TaskStatus.IN_PROGRESS

    def has_active_task(self, mod_id: str) -> bool:
        """True while a task is pending or in progress."""
        task = self._tasks.get(mod_id)
        return task is not None and task.is_active
