"""Base interface for video generation providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class VideoGenResult:
    """Result from video generation."""

    success: bool
    video_url: str | None = None
    thumbnail_url: str | None = None
    duration_seconds: float | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class VideoGenRequest:
    """Request for video generation."""

    prompt: str
    duration_seconds: int = 6
    aspect_ratio: str = "9:16"
    reference_image_url: str | None = None  # Product cutout or original image
    negative_prompt: str | None = None
    options: dict[str, Any] | None = None


class VideoGenProvider(ABC):
    """Abstract base class for video generation providers.

    Implementations:
    - StubVideoGenProvider: Returns placeholder URLs for testing
    - LumaProvider: Luma Dream Machine (image keyframe + prompt)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def generate(self, request: VideoGenRequest) -> VideoGenResult:
        """Generate a video from the given request.

        Provider-side failures are reported through ``VideoGenResult.success``;
        callers also treat raised exceptions and timeouts as failures.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is available and healthy."""
        return True
