"""LLM adapter layer - provider clients and the throttled wrapper."""

from pos_vision.adapters.llm.base import AbstractLLMClient
from pos_vision.adapters.llm.factory import build_provider_throttle, create_llm_client
from pos_vision.adapters.llm.openai_client import OpenAIClient
from pos_vision.adapters.llm.throttled import ThrottledLLMClient

__all__ = [
    "AbstractLLMClient",
    "OpenAIClient",
    "ThrottledLLMClient",
    "build_provider_throttle",
    "create_llm_client",
]
