"""Application configuration utilities.

This module defines application settings loaded from environment variables.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application settings loaded from the environment.

    Notes
    -----
    - Environment variables are read with the ``FBD_`` prefix (e.g., ``FBD_FETCH_TIMEOUT_SECONDS``).
    - ``external_endpoints`` is a JSON list in the environment, e.g.
      ``FBD_EXTERNAL_ENDPOINTS='["https://resolver.example/api"]'``.
    - Every outbound call made by the resolution pipeline is bounded by one of the
      timeout fields below; nothing can block indefinitely.
    """

    model_config = SettingsConfigDict(env_prefix="FBD_", env_file=".env", extra="ignore")

    app_name: str = Field(default="Facebook Video Downloader", description="Application display name")
    app_version: str = Field(default="1.0.0", description="Version reported by /api/info")
    debug: bool = Field(default=False, description="Enable debug mode")

    fetch_timeout_seconds: float = Field(
        default=12.0,
        description="Total timeout for fetching the Facebook page HTML",
    )
    max_redirects: int = Field(default=5, description="Maximum redirects followed when fetching HTML")
    max_html_chars: int = Field(
        default=3_000_000,
        description="Fetched HTML is truncated to this many characters before extraction",
    )

    external_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to each external resolver attempt",
    )
    external_endpoints: list[str] = Field(
        default_factory=list,
        description="Third-party resolver endpoints; the target URL is sent as the `url` query parameter",
    )
    ytdlp_enabled: bool = Field(default=True, description="Try yt-dlp before the external endpoints")

    resolve_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description=(
            "Deadline for fetch, extraction and external resolvers together; the synthetic "
            "fallback runs after it. Keep it below the web client's 25 s request timeout"
        ),
    )

    synthetic_fallback: bool = Field(
        default=True,
        description="Return placeholder demo data when nothing could be resolved (otherwise 404)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache application settings.

    Notes
    -----
    - Cached with ``functools.lru_cache(maxsize=1)`` to provide a single settings instance
      across the process. Tests call ``get_settings.cache_clear()`` after changing the env.

    Returns
    -------
    Settings
        The application settings instance.
    """

    return Settings()
