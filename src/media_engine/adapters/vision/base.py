"""Base interface for vision QA scoring providers."""

from abc import ABC, abstractmethod

from media_engine.domain.models import AxisScores


class VisionQAProvider(ABC):
    """Abstract base class for vision scoring providers.

    A provider inspects a generated asset next to the product reference and
    returns raw per-axis scores in [0, 1]. Weighting and thresholds are
    applied by the QA scorer, not here.

    Implementations:
    - StubVisionQAProvider: Deterministic scores seeded from the asset URL
    - LLMVisionQAProvider: Vision-capable language model (0-10 rubric)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def score(
        self,
        asset_url: str,
        reference_url: str | None,
        product_hint: str | None = None,
    ) -> AxisScores:
        """Score a generated asset.

        Args:
            asset_url: URL of the generated video or its keyframe
            reference_url: Product cutout (or original image), if any
            product_hint: Short product description for label checks

        Returns:
            AxisScores with every axis in [0, 1]

        Raises:
            ProviderError: If scoring could not be performed
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is available."""
        return True
