"""Stub background removal provider for testing."""

import io

import numpy as np
from PIL import Image, UnidentifiedImageError

from media_engine.adapters.cutout.base import CutoutProvider
from media_engine.errors import ProviderError
from media_engine.logging import get_logger

logger = get_logger(__name__)


class StubCutoutProvider(CutoutProvider):
    """Treats near-white pixels as background.

    Good enough for studio packshots on white and for tests; real product
    photos need a segmentation model.
    """

    def __init__(self, threshold: int = 240) -> None:
        self.threshold = threshold

    @property
    def name(self) -> str:
        return "stub"

    async def remove_background(self, image_bytes: bytes) -> bytes:
        try:
            image = Image.open(io.BytesIO(image_bytes)).convert("RGBA")
        except (UnidentifiedImageError, OSError) as e:
            raise ProviderError(self.name, f"unreadable image: {e}") from e

        pixels = np.array(image)
        background = np.all(pixels[:, :, :3] >= self.threshold, axis=2)
        pixels[:, :, 3] = np.where(background, 0, pixels[:, :, 3])

        buffer = io.BytesIO()
        Image.fromarray(pixels).save(buffer, format="PNG")

        logger.info(
            "stub_cutout_created",
            size=image.size,
            background_ratio=round(float(background.mean()), 3),
        )
        return buffer.getvalue()
