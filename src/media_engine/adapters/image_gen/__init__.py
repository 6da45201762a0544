"""Image generation adapters."""

from media_engine.adapters.image_gen.base import (
    ImageGenProvider,
    ImageGenRequest,
    ImageGenResult,
)
from media_engine.adapters.image_gen.openai import OpenAIImageProvider
from media_engine.adapters.image_gen.stub import StubImageGenProvider

__all__ = [
    "ImageGenProvider",
    "ImageGenRequest",
    "ImageGenResult",
    "OpenAIImageProvider",
    "StubImageGenProvider",
]
