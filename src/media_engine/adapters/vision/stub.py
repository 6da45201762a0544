"""Stub vision QA provider for testing."""

import hashlib

from media_engine.adapters.vision.base import VisionQAProvider
from media_engine.domain.models import AxisScores
from media_engine.logging import get_logger

logger = get_logger(__name__)


class StubVisionQAProvider(VisionQAProvider):
    """Returns deterministic scores derived from the asset URL.

    Scores land in [floor, 1.0]; the same URL always scores the same. With
    the default floor every axis is at least 0.75, so stub jobs pass the
    default threshold.

    Args:
        floor: Minimum value of every axis
        overrides: Fixed scores keyed by asset URL
    """

    def __init__(
        self,
        floor: float = 0.75,
        overrides: dict[str, AxisScores] | None = None,
    ) -> None:
        self.floor = floor
        self.overrides = overrides or {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "stub"

    def _axis(self, digest: bytes, offset: int) -> float:
        span = 1.0 - self.floor
        return round(self.floor + span * (digest[offset] / 255), 4)

    async def score(
        self,
        asset_url: str,
        reference_url: str | None,
        product_hint: str | None = None,
    ) -> AxisScores:
        self.calls.append(asset_url)

        if asset_url in self.overrides:
            return self.overrides[asset_url]

        digest = hashlib.sha256(asset_url.encode()).digest()
        scores = AxisScores(
            similarity=self._axis(digest, 0),
            label_ocr=self._axis(digest, 1),
            quality=self._axis(digest, 2),
            temporal_stability=self._axis(digest, 3),
            ocr_text=product_hint,
        )

        logger.debug(
            "stub_vision_scored",
            asset_url=asset_url[:100],
            has_reference=reference_url is not None,
        )
        return scores
