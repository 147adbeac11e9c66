"""LLM client decorator that routes every call through a RequestThrottle."""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

from pos_vision.adapters.llm.base import AbstractLLMClient
from pos_vision.utils.request_throttle import RequestThrottle

logger = logging.getLogger(__name__)


class ThrottledLLMClient(AbstractLLMClient):
    """Serializes provider calls from all requests onto one throttle.

    Calls run in arrival order with the throttle's minimum spacing. Results
    and errors of the wrapped client pass through unchanged.
    """

    def __init__(self, inner: AbstractLLMClient, throttle: RequestThrottle) -> None:
        self.inner = inner
        self.throttle = throttle

    @property
    def model(self) -> str | None:
        return getattr(self.inner, "model", None)

    async def generate_json(
        self,
        prompt: str,
        *,
        schema: dict[str, Any] | None = None,
        images: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        queued_at = time.perf_counter()
        started_at: float | None = None

        async def _call() -> dict[str, Any]:
            nonlocal started_at
            started_at = time.perf_counter()
            return await self.inner.generate_json(
                prompt, schema=schema, images=images, **kwargs
            )

        try:
            return await self.throttle.run(_call)
        finally:
            finished_at = time.perf_counter()
            wait_ms = ((started_at or finished_at) - queued_at) * 1000
            logger.info(
                "llm.throttled_call",
                extra={
                    "model": self.model,
                    "queue_wait_ms": round(wait_ms, 2),
                    "duration_ms": round((finished_at - queued_at) * 1000, 2),
                    "pending": self.throttle.pending,
                },
            )
