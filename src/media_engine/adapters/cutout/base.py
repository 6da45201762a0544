"""Base interface for background removal providers."""

from abc import ABC, abstractmethod


class CutoutProvider(ABC):
    """Abstract base class for background removal providers.

    Implementations:
    - StubCutoutProvider: Thresholds near-white pixels locally with Pillow
    - RemoveBgProvider: remove.bg HTTP API
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def remove_background(self, image_bytes: bytes) -> bytes:
        """Return the product isolated on a transparent background.

        Args:
            image_bytes: Encoded source image (PNG, JPEG, WebP)

        Returns:
            PNG-encoded RGBA image

        Raises:
            ProviderError: If the image cannot be processed
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is available."""
        return True
