"""Stub image generation provider for testing."""

import asyncio
import hashlib
import io

from PIL import Image, ImageDraw

from media_engine.adapters.image_gen.base import (
    ImageGenProvider,
    ImageGenRequest,
    ImageGenResult,
)
from media_engine.logging import get_logger

logger = get_logger(__name__)


class StubImageGenProvider(ImageGenProvider):
    """Stub provider that renders a soft vertical gradient locally.

    The gradient colour is derived from the prompt so repeated requests
    produce the same image.
    """

    def __init__(self, latency_ms: int = 10) -> None:
        """Initialize the stub provider.

        Args:
            latency_ms: Simulated latency in milliseconds
        """
        self.latency_ms = latency_ms

    @property
    def name(self) -> str:
        return "stub"

    async def generate(self, request: ImageGenRequest) -> ImageGenResult:
        """Return a gradient PNG as raw bytes."""
        await asyncio.sleep(self.latency_ms / 1000)

        size = request.size or self.get_aspect_ratio_size(request.aspect_ratio)
        width, height = (int(part) for part in size.split("x"))
        # Keep test images small; the compositor rescales anyway
        width, height = max(1, width // 8), max(1, height // 8)

        seed = hashlib.sha256(request.prompt.encode()).digest()
        top = (200 + seed[0] % 56, 200 + seed[1] % 56, 200 + seed[2] % 56)
        bottom = (120 + seed[3] % 60, 120 + seed[4] % 60, 120 + seed[5] % 60)

        image = Image.new("RGB", (width, height))
        draw = ImageDraw.Draw(image)
        for y in range(height):
            t = y / max(1, height - 1)
            color = tuple(int(top[i] + (bottom[i] - top[i]) * t) for i in range(3))
            draw.line([(0, y), (width, y)], fill=color)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")

        logger.info(
            "stub_image_generated",
            prompt_length=len(request.prompt),
            aspect_ratio=request.aspect_ratio,
            size=f"{width}x{height}",
        )

        return ImageGenResult(
            success=True,
            image_data=buffer.getvalue(),
            metadata={"provider": self.name, "stub": True},
        )
