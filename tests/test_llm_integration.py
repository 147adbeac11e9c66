"""Integration tests for the LLM adapter layer."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from pos_vision.adapters.llm import (
    OpenAIClient,
    ThrottledLLMClient,
    build_provider_throttle,
    create_llm_client,
)
from pos_vision.core.config import LLMSettings, settings
from pos_vision.core.errors import (
    LLMAppError,
    UpstreamRateLimitAppError,
    ValidationAppError,
)
from pos_vision.utils.request_throttle import RequestThrottle

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


def _patched_create(client: OpenAIClient, **kwargs):
    return patch.object(client.client.chat.completions, "create", new_callable=AsyncMock, **kwargs)


class TestOpenAIClientIntegration:
    """OpenAI client against a mocked chat.completions API."""

    @pytest.mark.asyncio
    async def test_generate_json_success(self) -> None:
        client = OpenAIClient(api_key="test-key-123", model="gpt-4o-mini")

        with _patched_create(client, return_value=_completion('{"barcode": "7891000315507"}')):
            result = await client.generate_json("Read barcode", schema={"type": "object"})

        assert result == {"barcode": "7891000315507"}

    @pytest.mark.asyncio
    async def test_images_are_sent_as_image_url_parts(self, png_data_url: str) -> None:
        """Images go in the user message next to the prompt text."""
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with _patched_create(client, return_value=_completion('{"ok": true}')) as mock_create:
            await client.generate_json(
                "Describe",
                schema={"type": "object"},
                images=[png_data_url, "QUJD"],
                temperature=0.1,
                max_tokens=300,
            )

        params = mock_create.call_args.kwargs
        assert params["model"] == "gpt-4o-mini"
        assert params["temperature"] == 0.1
        assert params["max_tokens"] == 300
        assert params["response_format"] == {"type": "json_object"}

        system, user = params["messages"]
        assert system["role"] == "system"
        assert user["content"][0] == {"type": "text", "text": "Describe"}
        assert user["content"][1]["image_url"]["url"] == png_data_url
        assert user["content"][2]["image_url"]["url"] == "data:image/jpeg;base64,QUJD"

    @pytest.mark.asyncio
    async def test_text_only_prompt_without_schema(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with _patched_create(client, return_value=_completion('{"a": 1}')) as mock_create:
            await client.generate_json("Plain prompt", unknown_option="ignored")

        params = mock_create.call_args.kwargs
        assert "response_format" not in params
        assert "unknown_option" not in params
        assert params["messages"][1]["content"] == "Plain prompt"

    @pytest.mark.asyncio
    async def test_rate_limit_maps_to_upstream_rate_limit_error(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")
        error = openai.RateLimitError(
            "Rate limit reached",
            response=httpx.Response(429, request=_REQUEST, headers={"retry-after": "3"}),
            body=None,
        )

        with _patched_create(client, side_effect=error):
            with pytest.raises(UpstreamRateLimitAppError) as exc_info:
                await client.generate_json("Read", schema={"type": "object"})

        assert exc_info.value.code == "llm_rate_limited"
        assert exc_info.value.retry_after == 3.0
        assert exc_info.value.details["http_status"] == 429

    @pytest.mark.asyncio
    async def test_bad_request_maps_to_invalid_image(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")
        error = openai.BadRequestError(
            "Invalid image",
            response=httpx.Response(400, request=_REQUEST),
            body=None,
        )

        with _patched_create(client, side_effect=error):
            with pytest.raises(ValidationAppError) as exc_info:
                await client.generate_json("Read", images=["QUJD"])

        assert exc_info.value.code == "invalid_image"

    @pytest.mark.asyncio
    async def test_other_provider_errors_map_to_llm_error(self) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with _patched_create(client, side_effect=openai.APIConnectionError(request=_REQUEST)):
            with pytest.raises(LLMAppError) as exc_info:
                await client.generate_json("Read")

        assert exc_info.value.code == "llm_call_failed"
        assert not isinstance(exc_info.value, UpstreamRateLimitAppError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content, code",
        [
            (None, "llm_empty_response"),
            ("   ", "llm_empty_response"),
            ("not json", "llm_invalid_json"),
            ("[1, 2]", "llm_invalid_json"),
        ],
    )
    async def test_unusable_output_raises(self, content: str | None, code: str) -> None:
        client = OpenAIClient(api_key="test-key", model="gpt-4o-mini")

        with _patched_create(client, return_value=_completion(content)):
            with pytest.raises(LLMAppError) as exc_info:
                await client.generate_json("Read")

        assert exc_info.value.code == code


class TestThrottledLLMClient:
    """Throttled decorator around a provider client."""

    @pytest.mark.asyncio
    async def test_forwards_arguments_and_result(self) -> None:
        inner = MagicMock()
        inner.model = "gpt-4o-mini"
        inner.generate_json = AsyncMock(return_value={"ok": True})
        throttle = RequestThrottle(min_interval_seconds=0)
        client = ThrottledLLMClient(inner, throttle)

        result = await client.generate_json("p", schema={"type": "object"}, images=["x"], temperature=0.3)

        assert result == {"ok": True}
        assert client.model == "gpt-4o-mini"
        inner.generate_json.assert_awaited_once_with(
            "p", schema={"type": "object"}, images=["x"], temperature=0.3
        )
        assert throttle.stats()["executed"] == 1

    @pytest.mark.asyncio
    async def test_errors_pass_through_unchanged(self) -> None:
        error = UpstreamRateLimitAppError(code="llm_rate_limited", message="slow down")
        inner = MagicMock()
        inner.generate_json = AsyncMock(side_effect=error)
        client = ThrottledLLMClient(inner, RequestThrottle(min_interval_seconds=0))

        with pytest.raises(UpstreamRateLimitAppError) as exc_info:
            await client.generate_json("p")

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_queue(self) -> None:
        active = 0
        max_active = 0
        order: list[str] = []

        async def _generate(prompt: str, **_: object) -> dict:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            order.append(prompt)
            await asyncio.sleep(0)
            active -= 1
            return {"prompt": prompt}

        inner = MagicMock()
        inner.generate_json = _generate
        client = ThrottledLLMClient(inner, RequestThrottle(min_interval_seconds=0))

        results = await asyncio.gather(*(client.generate_json(p) for p in ("a", "b", "c")))

        assert [r["prompt"] for r in results] == ["a", "b", "c"]
        assert order == ["a", "b", "c"]
        assert max_active == 1


class TestLLMFactory:
    """Provider selection from settings."""

    def test_creates_openai_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "llm", LLMSettings(provider="openai", api_key="k", model="gpt-4o"))

        client = create_llm_client()

        assert isinstance(client, OpenAIClient)
        assert client.model == "gpt-4o"

    def test_wraps_client_when_throttle_given(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            settings,
            "llm",
            LLMSettings(provider="openai", api_key="k", min_request_interval_seconds=2.5),
        )

        throttle = build_provider_throttle()
        client = create_llm_client(throttle=throttle)

        assert isinstance(client, ThrottledLLMClient)
        assert client.throttle is throttle
        assert throttle.min_interval_seconds == 2.5
        assert throttle.stats()["name"] == "llm:openai"

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "llm", LLMSettings(provider="openai", api_key=None))

        with pytest.raises(ValidationAppError) as exc_info:
            create_llm_client()

        assert exc_info.value.code == "llm_missing_api_key"

    def test_unknown_provider(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "llm", LLMSettings(provider="acme", api_key="k"))

        with pytest.raises(ValidationAppError) as exc_info:
            create_llm_client()

        assert exc_info.value.code == "llm_unknown_provider"
