"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

MOD_NOT_CACHED = "Mod not cached. Please cache the mod first."


class MarketplaceError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class ModNotFoundError(MarketplaceError):
    def __init__(self):
        super().__init__("Mod not found", status_code=404)


class ModNotCachedError(MarketplaceError):
    def __init__(self):
        super().__init__(MOD_NOT_CACHED, status_code=404)


class AssetNotFoundError(MarketplaceError):
    def __init__(self):
        super().__init__("Asset not found", status_code=404)


class InvalidRequestError(MarketplaceError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class ContentStoreError(MarketplaceError):
    """Raised by the GitHub client when the contents API answers with an error."""

    def __init__(self, path: str, status: int, reason: str = ""):
        detail = f"{status} {reason}" if reason else str(status)
        super().__init__(f"GitHub API error: {detail} ({path})", status_code=502)
        self.path = path
        self.status = status


def _failure(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(MarketplaceError)
    async def handle_marketplace_error(_request: Request, exc: MarketplaceError):
        return _failure(str(exc), exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return _failure("Internal server error", 500)
