"""Factory for the LLM client used by the AI endpoints."""

from pos_vision.adapters.llm.base import AbstractLLMClient
from pos_vision.adapters.llm.openai_client import OpenAIClient
from pos_vision.adapters.llm.throttled import ThrottledLLMClient
from pos_vision.core.config import settings
from pos_vision.core.errors import ValidationAppError
from pos_vision.utils.request_throttle import RequestThrottle

SUPPORTED_PROVIDERS = ("openai",)


def build_provider_throttle() -> RequestThrottle:
    """Create the throttle shared by every outbound provider call."""
    return RequestThrottle(
        min_interval_seconds=settings.llm.min_request_interval_seconds,
        name=f"llm:{settings.llm.provider.lower()}",
    )


def create_llm_client(throttle: RequestThrottle | None = None) -> AbstractLLMClient:
    """Instantiate the configured provider client.

    Args:
        throttle: When given, the client is wrapped so all calls share it.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ValidationAppError: If provider-specific requirements are not met.
    """
    provider = settings.llm.provider.lower()

    if provider == "openai":
        if not settings.llm.api_key:
            raise ValidationAppError(
                code="llm_missing_api_key",
                message="OpenAI provider requires LLM_API_KEY environment variable",
            )
        client: AbstractLLMClient = OpenAIClient(
            api_key=settings.llm.api_key,
            model=settings.llm.model,
            base_url=settings.llm.base_url,
            timeout_seconds=settings.llm.timeout_seconds,
        )
        if throttle is not None:
            client = ThrottledLLMClient(client, throttle)
        return client

    raise ValidationAppError(
        code="llm_unknown_provider",
        message=(
            f"Unknown LLM provider: '{provider}'. "
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        ),
    )
