"""Base interface for image generation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ImageGenRequest:
    """Request for image generation."""

    prompt: str
    aspect_ratio: str = "9:16"
    quality: str = "high"
    size: str | None = None  # Override size (e.g., "1024x1536")
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageGenResult:
    """Result from image generation."""

    success: bool
    image_url: str | None = None
    image_data: bytes | None = None  # For providers that return raw bytes
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class ImageGenProvider(ABC):
    """Abstract base class for image generation providers.

    Used by the fallback compositor to produce an empty scene behind the
    real product cutout.

    Implementations:
    - StubImageGenProvider: Renders a local gradient for testing
    - OpenAIImageProvider: Uses OpenAI image generation (gpt-image-1)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def generate(self, request: ImageGenRequest) -> ImageGenResult:
        """Generate an image from the given request.

        Args:
            request: Image generation request with prompt and parameters

        Returns:
            ImageGenResult with image URL or data
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is available."""
        return True

    def get_aspect_ratio_size(self, aspect_ratio: str) -> str:
        """Convert aspect ratio to pixel dimensions.

        Args:
            aspect_ratio: Ratio string like "9:16"

        Returns:
            Size string like "1024x1536"
        """
        size_map = {
            "9:16": "1024x1536",  # Vertical
            "16:9": "1536x1024",  # Horizontal
            "1:1": "1024x1024",  # Square
        }
        return size_map.get(aspect_ratio, "1024x1536")
