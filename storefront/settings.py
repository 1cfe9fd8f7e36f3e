import os

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from storefront.services.errors import ConfigurationError

load_dotenv()


class Settings(BaseModel):
    # Backend API Configuration
    backend_url: str = Field(default="", alias="BACKEND_URL")
    backend_api_prefix: str = Field(default="/api/v1", alias="BACKEND_API_PREFIX")

    # Request Orchestration
    api_timeout: float = Field(default=30.0, gt=0, alias="API_TIMEOUT")
    api_max_retries: int = Field(default=3, ge=0, alias="API_MAX_RETRIES")
    api_retry_delay: float = Field(default=1.0, ge=0, alias="API_RETRY_DELAY")
    api_retry_jitter: float = Field(default=0.0, ge=0, le=1, alias="API_RETRY_JITTER")

    # Cache Configuration
    cache_sweep_interval_minutes: float = Field(
        default=5, gt=0, alias="CACHE_SWEEP_INTERVAL"
    )

    debug: bool = Field(default=False, alias="DEBUG")

    def api_base_url(self) -> str:
        """
        Validated backend address with the API prefix applied.

        Raises:
            ConfigurationError: BACKEND_URL is missing or not an http(s) URL
        """
        raw = self.backend_url.strip()
        if not raw:
            raise ConfigurationError("BACKEND_URL environment variable is not set")

        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"BACKEND_URL is not a valid URL: {raw}") from e

        if url.scheme not in ("http", "https") or not url.host:
            raise ConfigurationError(f"BACKEND_URL must be an http(s) URL: {raw}")

        base = raw.rstrip("/")
        prefix = self.backend_api_prefix.strip().strip("/")
        if not prefix or base.endswith(f"/{prefix}"):
            return base
        return f"{base}/{prefix}"


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Read settings from the environment (or the mapping given)."""
    return Settings.model_validate(dict(os.environ if environ is None else environ))
