from abc import ABC, abstractmethod
from typing import Any, Sequence


class AbstractLLMClient(ABC):
	"""Interface for vision-capable LLM clients that return JSON objects."""

	@abstractmethod
	async def generate_json(
		self,
		prompt: str,
		*,
		schema: dict[str, Any] | None = None,
		images: Sequence[str] | None = None,
		**kwargs: Any,
	) -> dict[str, Any]:
		"""Generate a structured JSON response from the model.

		Args:
			prompt: Instructions sent as the user message.
			schema: Optional JSON schema; enables JSON mode where supported.
			images: Optional base64-encoded images (raw base64 or data URLs).
			**kwargs: Provider-specific options (e.g., temperature, max_tokens).

		Returns:
			dict[str, Any]: Parsed JSON object returned by the model.

		Raises:
			LLMAppError: If the provider call fails or the output is not JSON.
			UpstreamRateLimitAppError: If the provider rate-limits the call.
			ValidationAppError: If the provider rejects the input (e.g., bad image).
		"""
		...
