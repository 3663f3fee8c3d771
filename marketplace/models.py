"""Records held by the mod cache.

``ModInfo`` mirrors a mod's ``mod.json``. ``CachedMod`` is the fully assembled
bundle for one mod and is never mutated once stored; ``CacheTask`` tracks one
background caching run and is updated in place as the run progresses.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict


class ModInfo(BaseModel):
    """Metadata record decoded from ``mods/<id>/mod.json``."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    name: str = ""
    description: str = ""
    author: str = ""
    clientVersionUpload: str = ""
    fileVersion: int | float = 0


@dataclass(frozen=True)
class CachedMod:
    info: ModInfo
    assets: Mapping[str, bytes]
    image: bytes | None
    cached_at: int  # epoch ms

    def __post_init__(self):
        # Read-only view so a stored entry can't be edited through get().
        object.__setattr__(self, "assets", MappingProxyType(dict(self.assets)))

    @property
    def assets_count(self) -> int:
        return len(self.assets)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})


@dataclass
class CacheTask:
    mod_id: str
    status: TaskStatus
    started_at: int  # epoch ms
    completed_at: int | None = None
    error: str | None = None
    assets_count: int | None = None
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_dict(self) -> dict:
        """Camel-cased view used in API responses; unset optional fields are omitted."""
        data = {"status": self.status.value, "startedAt": self.started_at}
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        if self.error is not None:
            data["error"] = self.error
        if self.assets_count is not None:
            data["assetsCount"] = self.assets_count
        return data
