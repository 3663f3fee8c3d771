"""Shared fixtures: a controllable clock, an in-memory content store and an ASGI client."""

import asyncio

import httpx
import pytest

from marketplace.app import create_app
from marketplace.config import Settings
from marketplace.models import ModInfo
from marketplace.services.cache import ModsCache
from marketplace.services.cache_jobs import CacheJobRunner


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeContentStore:
    """Stands in for GitHubClient; ``gate`` lets a test hold fetches open."""

    def __init__(self, mods: dict | None = None):
        self.mods = mods or {}
        self.calls: list[tuple[str, str]] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.closed = False

    async def _lookup(self, kind: str, mod_id: str):
        self.calls.append((kind, mod_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.mods.get(mod_id)

    async def list_mod_ids(self) -> list[str]:
        return list(self.mods)

    async def get_mod_info(self, mod_id: str):
        mod = await self._lookup("info", mod_id)
        return mod["info"] if mod else None

    async def get_mod_image(self, mod_id: str):
        mod = await self._lookup("image", mod_id)
        return mod.get("image") if mod else None

    async def get_mod_assets(self, mod_id: str):
        mod = await self._lookup("assets", mod_id)
        return dict(mod.get("assets", {})) if mod else {}

    async def aclose(self) -> None:
        self.closed = True


def make_mod(mod_id: str, assets: dict | None = None, image: bytes | None = b"\x89PNG-thumb") -> dict:
    return {
        "info": ModInfo(
            id=mod_id,
            name=f"{mod_id} name",
            description="A test mod",
            author="tester",
            clientVersionUpload="version-33609a8a482e4108",
            fileVersion=677,
        ),
        "image": image,
        "assets": assets if assets is not None else {"a.png": b"aaaa", "fonts/b.ttf": b"bb"},
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> ModsCache:
    return ModsCache(ttl_ms=1000, clock=clock)


@pytest.fixture
def store() -> FakeContentStore:
    return FakeContentStore({"mod-a": make_mod("mod-a"), "mod-b": make_mod("mod-b")})


@pytest.fixture
def runner(cache, store) -> CacheJobRunner:
    return CacheJobRunner(cache, store, retention_seconds=30)


@pytest.fixture
def app(cache, store):
    settings = Settings()
    settings.task_retention_seconds = 30
    return create_app(settings=settings, cache=cache, content_store=store)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.state.jobs.close()
