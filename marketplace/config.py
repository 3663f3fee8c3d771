"""Centralized configuration: all env vars in one place."""

import os


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.environment: str = os.getenv("ENVIRONMENT", "local")
        self.api_prefix: str = os.getenv("API_PREFIX", "/api/v1")
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))

        # GitHub content repository
        self.github_token: str = os.getenv("GITHUB_TOKEN", "")
        self.github_owner: str = os.getenv("GITHUB_OWNER", "")
        self.github_repo: str = os.getenv("GITHUB_REPO", "")
        self.github_branch: str | None = os.getenv("GITHUB_BRANCH") or None
        self.github_api_url: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
        self.github_timeout: float = float(os.getenv("GITHUB_TIMEOUT_SECONDS", "10"))
        self.mods_path: str = os.getenv("MODS_PATH", "mods").strip("/")

        # Cache
        self.cache_duration_ms: int = int(os.getenv("CACHE_DURATION_MS", "3600000"))
        self.task_retention_seconds: float = float(os.getenv("CACHE_TASK_RETENTION_SECONDS", "30"))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of missing env vars required to reach the content repository."""
        required = ["GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO"]
        return [var for var in required if not getattr(self, var.lower())]


settings = Settings()
