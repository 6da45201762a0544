"""remove.bg background removal provider."""

import httpx

from media_engine.adapters.cutout.base import CutoutProvider
from media_engine.config import settings
from media_engine.errors import ProviderError
from media_engine.logging import get_logger

logger = get_logger(__name__)


class RemoveBgProvider(CutoutProvider):
    """Background removal via the remove.bg API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.remove.bg/v1.0",
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key or settings.removebg_api_key
        self.base_url = base_url
        self.timeout = timeout

        if not self.api_key:
            logger.warning("remove.bg API key not configured")

    @property
    def name(self) -> str:
        return "removebg"

    async def remove_background(self, image_bytes: bytes) -> bytes:
        if not self.api_key:
            raise ProviderError(self.name, "API key not configured")

        logger.info("removebg_request_started", input_bytes=len(image_bytes))

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/removebg",
                    headers={"X-Api-Key": self.api_key},
                    files={"image_file": ("product.png", image_bytes)},
                    data={"size": "auto", "format": "png", "type": "product"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "removebg_api_error",
                status_code=e.response.status_code,
                error=e.response.text[:300],
            )
            raise ProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("removebg_request_failed", error=str(e))
            raise ProviderError(self.name, str(e)) from e

        logger.info("removebg_request_completed", output_bytes=len(response.content))
        return response.content

    async def health_check(self) -> bool:
        """Check account access on remove.bg."""
        if not self.api_key:
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{self.base_url}/account",
                    headers={"X-Api-Key": self.api_key},
                )
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("removebg_health_check_failed", error=str(e))
            return False
