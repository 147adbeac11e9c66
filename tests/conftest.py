"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any application import so the global
settings object is built from them rather than from a local .env file.
"""

import base64
import os

import pytest

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_MODEL", "gpt-4o-mini")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
# Route tests exercise the real throttle; keep it from sleeping between calls
os.environ.setdefault("LLM_MIN_REQUEST_INTERVAL_SECONDS", "0")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00\x10JFIF\x00" + b"\x00" * 24


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


@pytest.fixture
def png_base64() -> str:
    return base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def png_data_url(png_base64: str) -> str:
    return f"data:image/png;base64,{png_base64}"


@pytest.fixture
def jpeg_data_url() -> str:
    return "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode("ascii")


@pytest.fixture(autouse=True)
def _reset_inbound_rate_limiter():
    """Give every test a fresh inbound rate limit budget."""
    from pos_vision.core.rate_limit import get_rate_limiter

    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()
