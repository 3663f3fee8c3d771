"""GitHub contents API client for the mods repository.

Layout expected in the repository::

    mods/<mod-id>/mod.json
    mods/<mod-id>/mod.png
    mods/<mod-id>/assets/**

Every public method swallows transport and API errors: they are logged and
reported as "nothing found" (None, [] or {}).
"""

import asyncio
import base64
import json
import logging
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from marketplace.config import Settings
from marketplace.errors import ContentStoreError
from marketplace.models import ModInfo

logger = logging.getLogger(__name__)

_FETCH_ERRORS = (httpx.HTTPError, ContentStoreError, ValueError)


class GitHubClient:
    def __init__(
        self,
        owner: str,
        repo: str,
        token: str = "",
        branch: str | None = None,
        mods_path: str = "mods",
        base_url: str = "https://api.github.com",
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.mods_path = mods_path.strip("/")

        headers = {"Accept": "application/vnd.github.v3+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubClient":
        return cls(
            owner=settings.github_owner,
            repo=settings.github_repo,
            token=settings.github_token,
            branch=settings.github_branch,
            mods_path=settings.mods_path,
            base_url=settings.github_api_url,
            timeout=settings.github_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- low level -------------------------------------------------------

    async def _fetch(self, path: str):
        """GET the contents API entry for ``path`` and return the decoded JSON."""
        url = f"/repos/{self.owner}/{self.repo}/contents/{quote(path, safe='/')}"
        params = {"ref": self.branch} if self.branch else None
        resp = await self._client.get(url, params=params)
        if resp.status_code >= 400:
            raise ContentStoreError(path, resp.status_code, resp.reason_phrase)
        return resp.json()

    async def _file_bytes(self, payload: dict) -> bytes:
        """Decode a file entry. Files too large for inline content are downloaded raw."""
        if payload.get("encoding") == "base64":
            return base64.b64decode(payload.get("content") or "")

        download_url = payload.get("download_url")
        if not download_url:
            raise ContentStoreError(payload.get("path", "?"), 422, "no content or download_url")
        resp = await self._client.get(download_url)
        resp.raise_for_status()
        return resp.content

    async def _read_file(self, path: str) -> bytes:
        payload = await self._fetch(path)
        if not isinstance(payload, dict) or payload.get("type", "file") != "file":
            raise ContentStoreError(path, 422, "not a file")
        return await self._file_bytes(payload)

    def _mod_path(self, mod_id: str, *parts: str) -> str:
        return "/".join([self.mods_path, mod_id, *parts]).lstrip("/")

    # -- content store interface -----------------------------------------

    async def list_mod_ids(self) -> list[str]:
        """Names of the sub-directories of the mods directory."""
        try:
            listing = await self._fetch(self.mods_path)
        except _FETCH_ERRORS as e:
            logger.error("Error fetching mods list: %s", e)
            return []
        if not isinstance(listing, list):
            logger.error("Mods path %r is not a directory", self.mods_path)
            return []
        return [item["name"] for item in listing if item.get("type") == "dir"]

    async def get_mod_info(self, mod_id: str) -> ModInfo | None:
        try:
            raw = await self._read_file(self._mod_path(mod_id, "mod.json"))
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("mod.json is not a JSON object")
            data.setdefault("id", mod_id)
            return ModInfo.model_validate(data)
        except (*_FETCH_ERRORS, ValidationError) as e:
            logger.warning("Error fetching mod info for %s: %s", mod_id, e)
            return None

    async def get_mod_image(self, mod_id: str) -> bytes | None:
        try:
            return await self._read_file(self._mod_path(mod_id, "mod.png"))
        except _FETCH_ERRORS as e:
            logger.warning("Error fetching mod image for %s: %s", mod_id, e)
            return None

    async def get_mod_assets(self, mod_id: str) -> dict[str, bytes]:
        """All files under ``<mod>/assets``, keyed by path relative to that directory."""
        assets: dict[str, bytes] = {}
        root = self._mod_path(mod_id, "assets")
        try:
            await self._collect(mod_id, root, "", assets)
        except _FETCH_ERRORS as e:
            logger.warning("Error fetching assets for mod %s: %s", mod_id, e)
        return assets

    async def _collect(self, mod_id: str, path: str, prefix: str, assets: dict[str, bytes]) -> None:
        listing = await self._fetch(path)
        if not isinstance(listing, list):
            raise ContentStoreError(path, 422, "not a directory")

        files = [item for item in listing if item.get("type") == "file"]
        subdirs = [item for item in listing if item.get("type") == "dir"]

        async def fetch_one(item: dict) -> None:
            rel = prefix + item["name"]
            try:
                assets[rel] = await self._read_file(item.get("path") or f"{path}/{item['name']}")
            except _FETCH_ERRORS as e:
                logger.warning("Error fetching asset %s for mod %s: %s", rel, mod_id, e)

        async def walk(item: dict) -> None:
            sub_prefix = f"{prefix}{item['name']}/"
            try:
                await self._collect(mod_id, item.get("path") or f"{path}/{item['name']}", sub_prefix, assets)
            except _FETCH_ERRORS as e:
                logger.warning("Error fetching asset directory %s for mod %s: %s", sub_prefix, mod_id, e)

        await asyncio.gather(*[fetch_one(f) for f in files], *[walk(d) for d in subdirs])
