"""LLM provider adapters."""

from media_engine.adapters.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    StructuredOutput,
    VisionMessage,
)
from media_engine.adapters.llm.openai import OpenAIProvider
from media_engine.adapters.llm.stub import StubLLMProvider

__all__ = [
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "StructuredOutput",
    "VisionMessage",
    "OpenAIProvider",
    "StubLLMProvider",
]
