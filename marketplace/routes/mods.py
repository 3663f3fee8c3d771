"""Mod routes: listing, metadata, thumbnails, background caching and cached assets."""

import base64
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from marketplace.errors import MOD_NOT_CACHED, AssetNotFoundError, InvalidRequestError, ModNotCachedError, ModNotFoundError
from marketplace.services.cache import ModsCache
from marketplace.services.cache_jobs import CacheJobRunner
from marketplace.services.github import GitHubClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mods", tags=["mods"])

# 1x1 PNG served when a mod has no thumbnail
PLACEHOLDER_IMAGE = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

CACHE_CONTROL = "public, max-age=3600"


def get_cache(request: Request) -> ModsCache:
    return request.app.state.cache


def get_content_store(request: Request) -> GitHubClient:
    return request.app.state.content_store


def get_job_runner(request: Request) -> CacheJobRunner:
    return request.app.state.jobs


def _content_disposition(name: str) -> str:
    """Attachment header with an ASCII fallback name and the UTF-8 name in filename*."""
    fallback = "".join(c if 32 <= ord(c) < 127 and c not in '"\\' else "_" for c in name)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name)}"


def _cache_status(cache: ModsCache, mod_id: str) -> dict:
    """Cache state of one mod: the stored entry wins over any task record."""
    entry = cache.get(mod_id)
    if entry is not None:
        return {
            "modId": mod_id,
            "status": "completed",
            "cached": True,
            "assetsCount": entry.assets_count,
            "cachedAt": entry.cached_at,
        }

    task = cache.get_cache_task(mod_id)
    if task is not None:
        return {"modId": mod_id, "cached": False, **task.to_dict()}

    return {"modId": mod_id, "status": "not_cached", "cached": False}


@router.get("", summary="List all available mod IDs")
async def list_mods(request: Request, store: GitHubClient = Depends(get_content_store)) -> dict:
    """Mod ids are loaded once at startup; an empty list is re-fetched on demand."""
    mod_ids = request.app.state.mod_ids
    if not mod_ids:
        mod_ids = await store.list_mod_ids()
        request.app.state.mod_ids = mod_ids
    return {"success": True, "data": list(mod_ids)}


@router.post(
    "/cache-status",
    summary="Check cache status for multiple mods",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {
                    "schema": {
                        "type": "object",
                        "properties": {"modIds": {"type": "array", "items": {"type": "string"}}},
                        "required": ["modIds"],
                    },
                    "example": {"modIds": ["bloxstrap-theme-old"]},
                }
            },
        }
    },
)
async def bulk_cache_status(request: Request, cache: ModsCache = Depends(get_cache)) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    mod_ids = payload.get("modIds") if isinstance(payload, dict) else None
    if not isinstance(mod_ids, list):
        raise InvalidRequestError("modIds must be an array")

    return {"success": True, "data": [_cache_status(cache, str(mod_id)) for mod_id in mod_ids]}


@router.get("/{mod_id}", summary="Get detailed information about a specific mod")
async def get_mod(
    mod_id: str,
    cache: ModsCache = Depends(get_cache),
    store: GitHubClient = Depends(get_content_store),
) -> dict:
    cached = cache.get(mod_id)
    info = cached.info if cached else await store.get_mod_info(mod_id)
    if info is None:
        raise ModNotFoundError()
    return {"success": True, "data": info.model_dump()}


@router.get("/{mod_id}/image", summary="Get mod thumbnail image", response_class=Response)
async def get_mod_image(
    mod_id: str,
    cache: ModsCache = Depends(get_cache),
    store: GitHubClient = Depends(get_content_store),
) -> Response:
    """PNG thumbnail; a placeholder is returned when the mod has none."""
    try:
        cached = cache.get(mod_id)
        image = cached.image if cached else await store.get_mod_image(mod_id)
    except Exception:
        logger.exception("Image lookup failed for mod %s", mod_id)
        return Response(content=PLACEHOLDER_IMAGE, media_type="image/png")

    return Response(
        content=image or PLACEHOLDER_IMAGE,
        media_type="image/png",
        headers={"Cache-Control": CACHE_CONTROL},
    )


@router.post("/{mod_id}/cache", summary="Cache mod assets")
async def cache_mod(mod_id: str, jobs: CacheJobRunner = Depends(get_job_runner)) -> dict:
    """Start caching in the background and answer immediately with the current state."""
    message, data = jobs.trigger(mod_id)
    return {"success": True, "message": message, "data": data}


@router.get("/{mod_id}/cache-status", summary="Check cache status for a mod")
async def cache_status(mod_id: str, cache: ModsCache = Depends(get_cache)) -> dict:
    return {"success": True, "data": _cache_status(cache, mod_id)}


@router.get("/{mod_id}/assets", summary="List cached assets for a mod")
async def list_assets(mod_id: str, cache: ModsCache = Depends(get_cache)) -> dict:
    cached = cache.get(mod_id)
    if cached is None:
        return {"success": False, "error": MOD_NOT_CACHED}

    assets = [{"filename": name, "size": len(data)} for name, data in cached.assets.items()]
    return {
        "success": True,
        "data": {
            "modId": mod_id,
            "assets": assets,
            "totalAssets": len(assets),
            "cachedAt": cached.cached_at,
        },
    }


@router.get(
    "/{mod_id}/assets/{filename:path}",
    summary="Download a specific mod asset",
    response_class=Response,
)
async def download_asset(mod_id: str, filename: str, cache: ModsCache = Depends(get_cache)) -> Response:
    cached = cache.get(mod_id)
    if cached is None:
        raise ModNotCachedError()

    data = cached.assets.get(filename)
    if data is None:
        raise AssetNotFoundError()

    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": _content_disposition(filename.rsplit("/", 1)[-1]),
            "Cache-Control": CACHE_CONTROL,
        },
    )
