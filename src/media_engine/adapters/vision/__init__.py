"""Vision QA scoring adapters."""

from media_engine.adapters.vision.base import VisionQAProvider
from media_engine.adapters.vision.llm import LLMVisionQAProvider
from media_engine.adapters.vision.stub import StubVisionQAProvider

__all__ = [
    "VisionQAProvider",
    "LLMVisionQAProvider",
    "StubVisionQAProvider",
]
