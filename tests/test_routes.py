"""Route tests against the ASGI app with an in-memory content store."""

import httpx

from marketplace.models import ModInfo
from marketplace.routes.mods import PLACEHOLDER_IMAGE

API = "/api/v1"


async def _cache_now(client, app, mod_id: str) -> dict:
    response = await client.post(f"{API}/mods/{mod_id}/cache")
    await app.state.jobs.drain()
    return response.json()


async def test_health(client):
    response = await client.get(f"{API}/health")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Marketplace API is running"
    assert body["timestamp"].endswith("Z")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


async def test_ready_reports_counters(client, app):
    await _cache_now(client, app, "mod-a")
    body = (await client.get(f"{API}/ready")).json()
    assert body["data"]["modsCached"] == 1
    assert body["data"]["activeJobs"] == 0


async def test_list_mods(client, app):
    response = await client.get(f"{API}/mods")
    assert response.json() == {"success": True, "data": ["mod-a", "mod-b"]}
    assert app.state.mod_ids == ["mod-a", "mod-b"]


async def test_list_mods_uses_preloaded_ids(client, app):
    app.state.mod_ids = ["preloaded"]
    response = await client.get(f"{API}/mods")
    assert response.json()["data"] == ["preloaded"]


async def test_get_mod_fetches_when_not_cached(client, store):
    response = await client.get(f"{API}/mods/mod-a")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == "mod-a"
    assert data["fileVersion"] == 677
    assert ("info", "mod-a") in store.calls


async def test_get_mod_served_from_cache(client, app, store):
    await _cache_now(client, app, "mod-a")
    store.calls.clear()

    response = await client.get(f"{API}/mods/mod-a")
    assert response.json()["data"]["name"] == "mod-a name"
    assert store.calls == []


async def test_get_mod_not_found(client):
    response = await client.get(f"{API}/mods/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Mod not found"}


async def test_image(client):
    response = await client.get(f"{API}/mods/mod-a/image")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "public, max-age=3600"
    assert response.content == b"\x89PNG-thumb"


async def test_image_placeholder_when_missing(client):
    response = await client.get(f"{API}/mods/nope/image")
    assert response.status_code == 200
    assert response.content == PLACEHOLDER_IMAGE


async def test_image_placeholder_on_error(client, store):
    store.error = RuntimeError("boom")
    response = await client.get(f"{API}/mods/mod-a/image")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content == PLACEHOLDER_IMAGE


async def test_cache_then_status(client, app, clock):
    response = await client.post(f"{API}/mods/mod-b/cache")
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Mod caching started"
    assert body["data"] == {"modId": "mod-b", "status": "pending", "cached": False, "startedAt": clock.now}

    await app.state.jobs.drain()

    status = (await client.get(f"{API}/mods/mod-b/cache-status")).json()
    assert status["success"] is True
    assert status["data"] == {
        "modId": "mod-b",
        "status": "completed",
        "cached": True,
        "assetsCount": 2,
        "cachedAt": clock.now,
    }


async def test_cache_already_cached(client, app):
    await _cache_now(client, app, "mod-a")
    body = (await client.post(f"{API}/mods/mod-a/cache")).json()
    assert body["message"] == "Mod already cached"
    assert body["data"]["cached"] is True
    assert body["data"]["assetsCount"] == 2
    assert app.state.jobs.active_jobs == 0


async def test_cache_unknown_mod_reports_failure(client, app):
    await _cache_now(client, app, "mod-c")
    data = (await client.get(f"{API}/mods/mod-c/cache-status")).json()["data"]
    assert data["status"] == "failed"
    assert data["error"] == "Mod not found"
    assert data["cached"] is False
    assert "completedAt" in data


async def test_cache_status_not_cached(client):
    data = (await client.get(f"{API}/mods/mod-a/cache-status")).json()["data"]
    assert data == {"modId": "mod-a", "status": "not_cached", "cached": False}


async def test_cache_status_expired_entry(client, app, clock):
    await _cache_now(client, app, "mod-a")
    app.state.cache.remove_cache_task("mod-a")
    clock.advance(1001)

    data = (await client.get(f"{API}/mods/mod-a/cache-status")).json()["data"]
    assert data["cached"] is False
    assert data["status"] == "not_cached"


async def test_bulk_cache_status(client, app, clock):
    await _cache_now(client, app, "mod-a")
    response = await client.post(f"{API}/mods/cache-status", json={"modIds": ["mod-a", "mod-b"]})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data[0] == {"modId": "mod-a", "status": "completed", "cached": True, "assetsCount": 2, "cachedAt": clock.now}
    assert data[1] == {"modId": "mod-b", "status": "not_cached", "cached": False}


async def test_bulk_cache_status_requires_array(client):
    for kwargs in ({"json": {"modIds": "mod-a"}}, {"json": {}}, {"json": ["mod-a"]}, {"content": b"not json"}):
        response = await client.post(f"{API}/mods/cache-status", **kwargs)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "modIds must be an array"}


async def test_list_assets(client, app, clock):
    await _cache_now(client, app, "mod-a")
    body = (await client.get(f"{API}/mods/mod-a/assets")).json()
    assert body["success"] is True
    assert body["data"]["modId"] == "mod-a"
    assert body["data"]["totalAssets"] == 2
    assert body["data"]["cachedAt"] == clock.now
    assert sorted(body["data"]["assets"], key=lambda a: a["filename"]) == [
        {"filename": "a.png", "size": 4},
        {"filename": "fonts/b.ttf", "size": 2},
    ]


async def test_list_assets_not_cached(client):
    body = (await client.get(f"{API}/mods/mod-a/assets")).json()
    assert body == {"success": False, "error": "Mod not cached. Please cache the mod first."}


async def test_download_asset(client, app):
    await _cache_now(client, app, "mod-a")
    response = await client.get(f"{API}/mods/mod-a/assets/a.png")
    assert response.status_code == 200
    assert response.content == b"aaaa"
    assert response.headers["content-type"] == "application/octet-stream"
    assert response.headers["content-disposition"] == 'attachment; filename="a.png"; filename*=UTF-8\'\'a.png'


async def test_download_nested_asset(client, app):
    await _cache_now(client, app, "mod-a")
    response = await client.get(f"{API}/mods/mod-a/assets/fonts/b.ttf")
    assert response.status_code == 200
    assert response.content == b"bb"
    assert response.headers["content-disposition"] == 'attachment; filename="b.ttf"; filename*=UTF-8\'\'b.ttf'


async def test_download_missing_asset(client, app):
    await _cache_now(client, app, "mod-a")
    response = await client.get(f"{API}/mods/mod-a/assets/nope.png")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Asset not found"}


async def test_download_from_uncached_mod(client):
    response = await client.get(f"{API}/mods/mod-a/assets/a.png")
    assert response.status_code == 404
    assert response.json()["error"] == "Mod not cached. Please cache the mod first."


async def test_download_asset_with_non_latin1_name(client, app, store):
    store.mods["mod-u"] = {"info": ModInfo(id="mod-u"), "image": None, "assets": {"icons/ロゴ.png": b"logo"}}
    await _cache_now(client, app, "mod-u")

    response = await client.get(f"{API}/mods/mod-u/assets/icons/ロゴ.png")
    assert response.status_code == 200
    assert response.content == b"logo"
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"__.png\"; filename*=UTF-8''%E3%83%AD%E3%82%B4.png"
    )


async def test_unexpected_value_error_is_a_server_error(app):
    async def broken():
        raise ValueError("internal detail")

    app.add_api_route("/broken", broken)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        response = await c.get("/broken")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
