"""Luma AI video generation provider."""

import asyncio
from typing import Any

import httpx

from media_engine.adapters.video_gen.base import (
    VideoGenProvider,
    VideoGenRequest,
    VideoGenResult,
)
from media_engine.config import settings
from media_engine.logging import get_logger

logger = get_logger(__name__)


class LumaProvider(VideoGenProvider):
    """Luma AI (Dream Machine) video generation provider.

    The product reference image is sent as the first keyframe so the model
    animates the real product instead of inventing one. Generation is async
    on Luma's side; this provider polls until the generation settles.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.lumalabs.ai/dream-machine/v1",
        model: str = "ray-2",
        poll_interval: float = 5.0,
        max_poll_attempts: int = 120,  # 10 minutes max
    ) -> None:
        self.api_key = api_key or settings.luma_api_key
        self.base_url = base_url
        self.model = model
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts

        if not self.api_key:
            logger.warning("Luma API key not configured")

    @property
    def name(self) -> str:
        return "luma"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, request: VideoGenRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "model": self.model,
            "aspect_ratio": request.aspect_ratio,
            "duration": f"{5 if request.duration_seconds <= 6 else 9}s",
            "loop": False,
        }
        if request.reference_image_url:
            payload["keyframes"] = {
                "frame0": {"type": "image", "url": request.reference_image_url},
            }
        if request.options:
            payload.update(request.options)
        return payload

    async def generate(self, request: VideoGenRequest) -> VideoGenResult:
        """Submit a generation and poll for its result."""
        if not self.api_key:
            return VideoGenResult(success=False, error_message="Luma API key not configured")

        payload = self._build_payload(request)

        logger.info(
            "luma_generation_started",
            prompt_length=len(request.prompt),
            aspect_ratio=request.aspect_ratio,
            has_keyframe="keyframes" in payload,
        )

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    f"{self.base_url}/generations",
                    headers=self._headers(),
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            error_msg = f"Luma API error: {e.response.status_code} - {e.response.text}"
            logger.error("luma_api_error", error=error_msg)
            return VideoGenResult(success=False, error_message=error_msg)
        except httpx.HTTPError as e:
            logger.error("luma_generation_error", error=str(e))
            return VideoGenResult(success=False, error_message=str(e))

        generation_id = data.get("id")
        if not generation_id:
            return VideoGenResult(
                success=False,
                error_message="No generation ID returned from Luma",
            )

        logger.info("luma_generation_submitted", generation_id=generation_id)
        return await self._poll_for_completion(generation_id, request)

    async def _poll_for_completion(
        self,
        generation_id: str,
        request: VideoGenRequest,
    ) -> VideoGenResult:
        """Poll Luma API until generation completes."""
        for attempt in range(self.max_poll_attempts):
            await asyncio.sleep(self.poll_interval)

            try:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.get(
                        f"{self.base_url}/generations/{generation_id}",
                        headers=self._headers(),
                    )
                    response.raise_for_status()
                    data = response.json()
            except httpx.HTTPError as e:
                # Transient poll errors do not fail the generation
                logger.warning(
                    "luma_poll_error",
                    generation_id=generation_id,
                    error=str(e),
                    attempt=attempt + 1,
                )
                continue

            state = data.get("state", "unknown")
            logger.debug(
                "luma_poll_status",
                generation_id=generation_id,
                state=state,
                attempt=attempt + 1,
            )

            if state == "completed":
                assets = data.get("assets") or {}
                video_url = assets.get("video")
                if not video_url:
                    return VideoGenResult(
                        success=False,
                        error_message="Generation completed but no video URL found",
                    )

                logger.info("luma_generation_completed", generation_id=generation_id)
                return VideoGenResult(
                    success=True,
                    video_url=video_url,
                    thumbnail_url=assets.get("image"),
                    duration_seconds=float(request.duration_seconds),
                    metadata={
                        "provider": self.name,
                        "model": self.model,
                        "generation_id": generation_id,
                    },
                )

            if state == "failed":
                failure_reason = data.get("failure_reason", "Unknown failure")
                logger.error(
                    "luma_generation_failed",
                    generation_id=generation_id,
                    reason=failure_reason,
                )
                return VideoGenResult(
                    success=False,
                    error_message=f"Generation failed: {failure_reason}",
                    metadata={"generation_id": generation_id},
                )

        return VideoGenResult(
            success=False,
            error_message=(
                f"Generation timed out after {self.max_poll_attempts * self.poll_interval} seconds"
            ),
            metadata={"generation_id": generation_id},
        )

    async def health_check(self) -> bool:
        """Check if Luma API is accessible."""
        if not self.api_key:
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{self.base_url}/generations",
                    headers=self._headers(),
                    params={"limit": 1},
                )
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("luma_health_check_failed", error=str(e))
            return False
