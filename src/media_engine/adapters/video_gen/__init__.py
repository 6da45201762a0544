"""Video generation adapters."""

from media_engine.adapters.video_gen.base import (
    VideoGenProvider,
    VideoGenRequest,
    VideoGenResult,
)
from media_engine.adapters.video_gen.luma import LumaProvider
from media_engine.adapters.video_gen.stub import StubVideoGenProvider

__all__ = [
    "VideoGenProvider",
    "VideoGenRequest",
    "VideoGenResult",
    "LumaProvider",
    "StubVideoGenProvider",
]
