"""OpenAI LLM client adapter."""

import json
import logging
from typing import Any, Sequence

import openai
from openai import AsyncOpenAI

from pos_vision.adapters.llm.base import AbstractLLMClient
from pos_vision.core.errors import LLMAppError, UpstreamRateLimitAppError, ValidationAppError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "Output JSON only. No extra text or markdown formatting."

# Options callers may forward to chat.completions.create
PASSTHROUGH_PARAMS = frozenset(
    {
        "max_tokens",
        "top_p",
        "frequency_penalty",
        "presence_penalty",
        "seed",
    }
)


def _image_part(image: str) -> dict[str, Any]:
    """Wrap a base64 image (or data URL) as a chat content part."""
    url = image if image.startswith("data:") else f"data:image/jpeg;base64,{image}"
    return {"type": "image_url", "image_url": {"url": url}}


def _retry_after_seconds(exc: openai.APIStatusError) -> float | None:
    headers = getattr(exc.response, "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class OpenAIClient(AbstractLLMClient):
    """Client for OpenAI chat completions with image input, returning JSON.

    Uses the official OpenAI Python SDK with async support. Provider errors
    are translated into domain errors so routes never see SDK types.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 45.0,
    ) -> None:
        """Initialize OpenAI async client.

        Args:
            api_key: OpenAI API key for authentication.
            model: Vision-capable model name (e.g., "gpt-4o-mini").
            base_url: Optional custom base URL for OpenAI API.
            timeout_seconds: Timeout for requests in seconds.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )
        self.model = model

    def _build_messages(self, prompt: str, images: Sequence[str] | None) -> list[dict[str, Any]]:
        if images:
            user_content: Any = [{"type": "text", "text": prompt}]
            user_content.extend(_image_part(image) for image in images)
        else:
            user_content = prompt

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

    async def generate_json(
        self,
        prompt: str,
        *,
        schema: dict[str, Any] | None = None,
        images: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Generate structured JSON using OpenAI chat completions.

        Raises:
            UpstreamRateLimitAppError: On HTTP 429 from the provider.
            ValidationAppError: On HTTP 400 (typically an unreadable image).
            LLMAppError: On any other failure, empty output, or invalid JSON.
        """
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": self._build_messages(prompt, images),
            "temperature": kwargs.pop("temperature", 0.2),
        }

        if schema is not None:
            request_params["response_format"] = {"type": "json_object"}

        for param in PASSTHROUGH_PARAMS:
            if param in kwargs:
                request_params[param] = kwargs[param]

        try:
            response = await self.client.chat.completions.create(**request_params)
        except openai.RateLimitError as exc:
            retry_after = _retry_after_seconds(exc)
            logger.warning(
                "llm.rate_limited",
                extra={"model": self.model, "retry_after_s": retry_after},
            )
            details: dict[str, Any] = {"http_status": 429, "model": self.model}
            if retry_after is not None:
                details["retry_after"] = retry_after
            raise UpstreamRateLimitAppError(
                code="llm_rate_limited",
                message="AI service rate limit reached. Please try again in a moment.",
                details=details,  # type: ignore[arg-type]
            ) from exc
        except openai.BadRequestError as exc:
            logger.warning("llm.bad_request", extra={"model": self.model, "error_msg": str(exc)})
            raise ValidationAppError(
                code="invalid_image",
                message="Invalid image format. Please try a different image.",
                details={"http_status": 400, "model": self.model},
            ) from exc
        except openai.OpenAIError as exc:
            logger.error(
                "llm.call_failed",
                extra={"model": self.model, "error_type": type(exc).__name__},
            )
            raise LLMAppError(
                code="llm_call_failed",
                message=f"OpenAI API error: {exc}",
                details={"model": self.model},
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMAppError(code="llm_empty_response", message="LLM returned empty response")

        try:
            parsed = json.loads(content.strip())
        except json.JSONDecodeError as exc:
            raise LLMAppError(
                code="llm_invalid_json",
                message=f"LLM returned invalid JSON: {exc}",
            ) from exc

        if not isinstance(parsed, dict):
            raise LLMAppError(
                code="llm_invalid_json",
                message="LLM returned JSON that is not an object",
            )
        return parsed
