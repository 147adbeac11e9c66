"""Settings for the POS vision service, read from the environment.

Three groups, each with its own prefix: ``LLM_`` for the vision provider and
the outbound throttle, ``APP_`` for auth, inbound limits, images and caching,
and ``LOG_`` for log output. ``APP_ENV`` selects an optional dotenv file
(``.env.development``, ``.env.testing``, ...) at the project root whose
values are exported before any group is read.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_ENV = os.getenv("APP_ENV", "development")

BASE_DIR = Path(__file__).resolve().parents[2]

ENV_FILES = {
    env: BASE_DIR / f".env.{env}"
    for env in ("development", "testing", "staging", "production")
}


def _load_env_file(app_env: str) -> Path | None:
    """Export the dotenv file for ``app_env`` into os.environ, if present.

    Each settings group is its own BaseSettings, so a shared ``env_file``
    would not reach them; exporting once covers all of them.
    """
    env_file = ENV_FILES.get(app_env, ENV_FILES["development"])
    if not env_file.is_file():
        return None
    load_dotenv(env_file, override=True)
    return env_file


ENV_FILE = _load_env_file(APP_ENV)


class LLMSettings(BaseSettings):
    """Vision provider and outbound throttle (``LLM_*``).

    Whether the provider can actually be used (e.g. a key is present) is
    checked when the client is built, not here.
    """

    provider: str = Field(
        "openai",
        description="LLM provider name (currently only openai)",
    )
    model: str = Field(
        "gpt-4o-mini",
        description="Vision-capable model name (e.g., gpt-4o-mini, gpt-4o)",
    )
    api_key: str | None = Field(
        None,
        description="API key for the provider",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (OpenAI-compatible gateways)",
    )
    timeout_seconds: float = Field(
        45.0,
        description="Per-call timeout for the provider SDK, in seconds",
    )
    min_request_interval_seconds: float = Field(
        1.0,
        description="Minimum spacing between outbound provider calls (process-wide)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Auth, inbound limits, image and cache behaviour (``APP_*``)."""

    debug: bool = Field(
        False,
        description="Run FastAPI in debug mode",
    )
    max_image_size_mb: int = Field(
        5,
        description="Maximum decoded image size in megabytes",
        ge=1,
    )
    api_key_required: bool = Field(
        True,
        description="Reject requests without a valid X-API-Key header",
    )
    api_keys: str | None = Field(
        None,
        description="Accepted X-API-Key values, comma separated",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable inbound rate limiting per API key",
    )
    rate_limit_requests: int = Field(
        30,
        description="Requests each API key (or client IP) may make per sliding window",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Length of the sliding window in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Send X-RateLimit-* and Retry-After headers on 429 responses",
    )

    product_cache_ttl_seconds: int = Field(
        3600,
        description="How long product analysis results are reused for identical images",
        ge=1,
    )
    product_cache_max_entries: int = Field(
        512,
        description="Maximum number of cached product analyses",
        ge=1,
    )

    barcode_realtime_confidence: float = Field(
        0.8,
        description="Minimum model confidence for a valid barcode in realtime mode",
        ge=0,
        le=1,
    )
    barcode_manual_confidence: float = Field(
        0.6,
        description="Minimum model confidence for a valid barcode in manual mode",
        ge=0,
        le=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """All settings groups, validated once at import.

    Invalid values fail fast at startup instead of on the first request.
    """

    app_env: str = APP_ENV
    # Each group reads its own prefixed variables when the container is built
    llm: LLMSettings = Field(default_factory=LLMSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(case_sensitive=False)


settings = Settings()
