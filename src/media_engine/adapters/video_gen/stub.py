"""Stub video generation provider for testing."""

import asyncio
import hashlib

from media_engine.adapters.video_gen.base import (
    VideoGenProvider,
    VideoGenRequest,
    VideoGenResult,
)
from media_engine.logging import get_logger

logger = get_logger(__name__)


class StubVideoGenProvider(VideoGenProvider):
    """Stub provider that simulates video generation without external calls."""

    def __init__(self, latency_seconds: float = 0.05) -> None:
        self.latency_seconds = latency_seconds

    @property
    def name(self) -> str:
        return "stub"

    async def generate(self, request: VideoGenRequest) -> VideoGenResult:
        """Simulate video generation with a delay."""
        logger.info(
            "stub_video_generation_started",
            prompt=request.prompt[:100],
            duration=request.duration_seconds,
            has_reference=request.reference_image_url is not None,
        )

        await asyncio.sleep(self.latency_seconds)

        digest = hashlib.sha256(request.prompt.encode()).hexdigest()[:12]

        return VideoGenResult(
            success=True,
            video_url=f"https://stub.media.local/videos/{digest}.mp4",
            thumbnail_url=f"https://stub.media.local/thumbnails/{digest}.jpg",
            duration_seconds=float(request.duration_seconds),
            metadata={
                "provider": self.name,
                "aspect_ratio": request.aspect_ratio,
                "generation_id": digest,
            },
        )
