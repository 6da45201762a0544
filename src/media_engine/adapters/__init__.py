"""Adapters for external services."""

from media_engine.adapters.catalog.base import CatalogAdapter
from media_engine.adapters.cutout.base import CutoutProvider
from media_engine.adapters.image_gen.base import ImageGenProvider
from media_engine.adapters.llm.base import LLMProvider
from media_engine.adapters.video_gen.base import VideoGenProvider
from media_engine.adapters.vision.base import VisionQAProvider

__all__ = [
    "CatalogAdapter",
    "CutoutProvider",
    "ImageGenProvider",
    "LLMProvider",
    "VideoGenProvider",
    "VisionQAProvider",
]
