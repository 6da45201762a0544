"""OpenAI image generation provider."""

import base64

import httpx

from media_engine.adapters.image_gen.base import (
    ImageGenProvider,
    ImageGenRequest,
    ImageGenResult,
)
from media_engine.config import get_settings
from media_engine.logging import get_logger

logger = get_logger(__name__)


class OpenAIImageProvider(ImageGenProvider):
    """Image generation via the OpenAI Images API.

    ``gpt-image-1`` always returns base64 image data; older models may return
    a hosted URL instead. Both are passed through on the result.
    """

    SUPPORTED_SIZES = {
        "9:16": "1024x1536",
        "16:9": "1536x1024",
        "1:1": "1024x1024",
    }

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str = "https://api.openai.com/v1/images/generations",
        timeout: float = 120.0,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_image_model
        self.base_url = base_url
        self.timeout = timeout

        if not self.api_key:
            logger.warning("OpenAI API key not configured for image provider")

    @property
    def name(self) -> str:
        return f"openai-image:{self.model}"

    def _get_size(self, request: ImageGenRequest) -> str:
        if request.size:
            return request.size

        size = self.SUPPORTED_SIZES.get(request.aspect_ratio)
        if not size:
            logger.warning(
                "unsupported_aspect_ratio",
                aspect_ratio=request.aspect_ratio,
                using_default="1024x1536",
            )
            size = "1024x1536"
        return size

    async def generate(self, request: ImageGenRequest) -> ImageGenResult:
        """Generate an image using the OpenAI Images API."""
        if not self.api_key:
            return ImageGenResult(
                success=False,
                error_message="OpenAI API key not configured",
            )

        size = self._get_size(request)

        logger.info(
            "openai_image_generation_started",
            prompt_length=len(request.prompt),
            size=size,
            model=self.model,
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "prompt": request.prompt,
                        "n": 1,
                        "size": size,
                        "quality": request.quality,
                    },
                )

                if response.status_code != 200:
                    error_msg = response.text[:500]
                    logger.error(
                        "openai_image_generation_failed",
                        status_code=response.status_code,
                        error=error_msg,
                    )
                    return ImageGenResult(
                        success=False,
                        error_message=f"OpenAI image API error: {response.status_code}",
                    )

                data = response.json()

        except httpx.TimeoutException:
            logger.error("openai_image_generation_timeout")
            return ImageGenResult(success=False, error_message="OpenAI image API timeout")
        except httpx.HTTPError as e:
            logger.error("openai_image_generation_exception", error=str(e))
            return ImageGenResult(
                success=False,
                error_message=f"OpenAI image API exception: {e}",
            )

        items = data.get("data") or [{}]
        item = items[0]
        image_b64 = item.get("b64_json")
        image_url = item.get("url")

        if not image_b64 and not image_url:
            return ImageGenResult(success=False, error_message="No image in response")

        logger.info("openai_image_generation_completed", model=self.model)

        return ImageGenResult(
            success=True,
            image_url=image_url,
            image_data=base64.b64decode(image_b64) if image_b64 else None,
            metadata={"provider": self.name, "size": size},
        )
