"""Deterministic fallback: real product cutout composited over a background.

Used when no generated candidate passes QA. The product pixels come straight
from the cutout, so label fidelity is guaranteed; only the scene around the
product is generated (or drawn locally when generation fails).
"""

import asyncio
import hashlib
import io
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError

from media_engine.adapters.image_gen.base import ImageGenProvider, ImageGenRequest
from media_engine.config import settings
from media_engine.domain.enums import AspectRatio
from media_engine.errors import FallbackNotViableError, ProviderError
from media_engine.logging import get_logger
from media_engine.services.storage import StorageService

logger = get_logger(__name__)

SHADOW_OPACITY = 0.45
# Vertical centre of the product as a fraction of frame height
PRODUCT_CENTER_Y = 0.55


@dataclass
class FallbackConstraints:
    """What the composition must respect, taken from the job."""

    aspect_ratio: AspectRatio = AspectRatio.VERTICAL_9_16
    duration_seconds: float = 6.0
    scene_description: str | None = None
    style_tokens: list[str] = field(default_factory=list)


@dataclass
class ComposedAsset:
    """Result of a fallback composition."""

    asset_url: str
    thumbnail_url: str
    background_source: str  # "generated" or "stock"
    frame_count: int


def scene_prompt(constraints: FallbackConstraints) -> str:
    """Prompt for an empty scene with room for the product."""
    lines = [
        "Empty scene ready for product placement.",
        f"{constraints.scene_description or 'Premium studio setting'}.",
        "Leave clear central space for product overlay.",
        "Lighting: soft, professional, with subtle shadows for depth.",
        "No products, no people, no text.",
    ]
    if constraints.style_tokens:
        lines.append(f"Style: {', '.join(constraints.style_tokens)}.")
    lines.append(f"Aspect ratio: {constraints.aspect_ratio.value}")
    return "\n".join(lines)


def stock_background(size: tuple[int, int], seed: str) -> Image.Image:
    """Soft vertical gradient whose tint is derived from ``seed``."""
    width, height = size
    digest = hashlib.sha256(seed.encode()).digest()
    top = np.array([225 + digest[0] % 25, 225 + digest[1] % 25, 225 + digest[2] % 25], float)
    bottom = np.array([150 + digest[3] % 40, 150 + digest[4] % 40, 150 + digest[5] % 40], float)

    t = np.linspace(0.0, 1.0, height)[:, None]
    column = top[None, :] * (1 - t) + bottom[None, :] * t
    pixels = np.repeat(column[:, None, :], width, axis=1)
    return Image.fromarray(pixels.astype(np.uint8))


def cover_resize(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    """Scale to fill ``size`` and centre-crop the overflow."""
    width, height = size
    scale = max(width / image.width, height / image.height)
    resized = image.resize(
        (max(width, round(image.width * scale)), max(height, round(image.height * scale))),
        Image.Resampling.LANCZOS,
    )
    left = (resized.width - width) // 2
    top = (resized.height - height) // 2
    return resized.crop((left, top, left + width, top + height))


def match_brightness(product: Image.Image, background: Image.Image) -> Image.Image:
    """Nudge product brightness toward the background's, preserving alpha.

    The adjustment is capped at +/-15% so the product never looks washed out.
    """
    alpha = product.getchannel("A")
    visible = np.array(alpha) > 0
    if not visible.any():
        return product

    product_luma = float(np.array(product.convert("L"))[visible].mean())
    background_luma = float(np.array(background.convert("L")).mean())
    factor = 1.0 + (background_luma - product_luma) / 255 * 0.3
    factor = max(0.85, min(1.15, factor))

    adjusted = ImageEnhance.Brightness(product.convert("RGB")).enhance(factor)
    adjusted.putalpha(alpha)
    return adjusted


def build_product_layer(
    cutout: Image.Image,
    frame_size: tuple[int, int],
    background: Image.Image,
    product_scale: float,
) -> Image.Image:
    """Frame-sized RGBA layer holding the shadowed, light-matched product."""
    width, height = frame_size

    bbox = cutout.getchannel("A").getbbox()
    if bbox is None:
        raise FallbackNotViableError("Product cutout is fully transparent")
    product = cutout.crop(bbox)

    scale = min(height * product_scale / product.height, width * 0.85 / product.width)
    product = product.resize(
        (max(1, round(product.width * scale)), max(1, round(product.height * scale))),
        Image.Resampling.LANCZOS,
    )
    product = match_brightness(product, background)

    x = (width - product.width) // 2
    y = round(height * PRODUCT_CENTER_Y - product.height / 2)
    y = max(0, min(height - product.height, y))

    # Drop shadow: blurred product silhouette, offset down
    shadow_alpha = product.getchannel("A").point(lambda a: int(a * SHADOW_OPACITY))
    shadow = Image.new("RGBA", product.size, (0, 0, 0, 0))
    shadow.putalpha(shadow_alpha)
    blur = max(2, round(width * 0.02))
    offset = max(2, round(product.height * 0.03))

    layer = Image.new("RGBA", frame_size, (0, 0, 0, 0))
    shadow_layer = Image.new("RGBA", frame_size, (0, 0, 0, 0))
    shadow_layer.paste(shadow, (x + offset // 2, y + offset))
    layer = Image.alpha_composite(layer, shadow_layer.filter(ImageFilter.GaussianBlur(blur)))
    product_layer = Image.new("RGBA", frame_size, (0, 0, 0, 0))
    product_layer.paste(product, (x, y))
    return Image.alpha_composite(layer, product_layer)


def render_frame(
    background: Image.Image,
    product_layer: Image.Image,
    progress: float,
    zoom: float,
) -> np.ndarray:
    """One RGB frame: background zoomed by ``zoom * progress``, product on top.

    Only the background moves; the product stays pixel-stable.
    """
    width, height = background.size
    factor = 1.0 + zoom * max(0.0, min(1.0, progress))
    crop_w, crop_h = width / factor, height / factor
    left, top = (width - crop_w) / 2, (height - crop_h) / 2
    zoomed = background.resize(
        (width, height),
        Image.Resampling.BILINEAR,
        box=(left, top, left + crop_w, top + crop_h),
    )
    frame = Image.alpha_composite(zoomed.convert("RGBA"), product_layer)
    return np.array(frame.convert("RGB"))


def encode_video(
    frame_at: Callable[[float], np.ndarray],
    duration: float,
    fps: int,
    output_path: Path,
) -> None:
    """Encode frames produced on demand to H.264 MP4 with MoviePy."""
    from moviepy import VideoClip

    clip = VideoClip(frame_function=frame_at, duration=duration)
    try:
        clip.write_videofile(
            str(output_path),
            fps=fps,
            codec="libx264",
            audio=False,
            logger=None,  # Suppress moviepy progress output
        )
    finally:
        clip.close()


class FallbackCompositor:
    """Builds the fallback video from a product cutout."""

    def __init__(
        self,
        image_gen: ImageGenProvider,
        storage: StorageService,
        fps: int | None = None,
        zoom: float | None = None,
        product_scale: float | None = None,
    ) -> None:
        self.image_gen = image_gen
        self.storage = storage
        self.fps = fps or settings.fallback_fps
        self.zoom = settings.fallback_zoom if zoom is None else zoom
        self.product_scale = product_scale or settings.fallback_product_scale

    async def _load_cutout(self, cutout_url: str) -> Image.Image:
        try:
            data = await self.storage.fetch_bytes(cutout_url)
            return Image.open(io.BytesIO(data)).convert("RGBA")
        except (ProviderError, UnidentifiedImageError, OSError) as e:
            raise FallbackNotViableError(f"Product cutout is unreadable: {e}") from e

    async def _background(
        self,
        constraints: FallbackConstraints,
        size: tuple[int, int],
    ) -> tuple[Image.Image, str]:
        """Generated scene, or a stock gradient when generation fails."""
        prompt = scene_prompt(constraints)
        try:
            result = await self.image_gen.generate(
                ImageGenRequest(prompt=prompt, aspect_ratio=constraints.aspect_ratio.value)
            )
            if result.success:
                data = result.image_data
                if data is None and result.image_url:
                    data = await self.storage.fetch_bytes(result.image_url)
                if data is not None:
                    image = Image.open(io.BytesIO(data)).convert("RGB")
                    return cover_resize(image, size), "generated"
            logger.warning("fallback_background_generation_failed", error=result.error_message)
        except Exception as e:
            logger.warning(
                "fallback_background_generation_failed",
                error=str(e),
                error_type=type(e).__name__,
            )

        return stock_background(size, prompt), "stock"

    def _render_and_encode(
        self,
        background: Image.Image,
        layer: Image.Image,
        duration: float,
        output_path: Path,
    ) -> bytes:
        """Encode the clip; returns JPEG bytes of the middle frame."""

        def frame_at(t: float) -> np.ndarray:
            return render_frame(background, layer, t / duration, self.zoom)

        encode_video(frame_at, duration, self.fps, output_path)

        buffer = io.BytesIO()
        Image.fromarray(frame_at(duration / 2)).save(buffer, format="JPEG", quality=90)
        return buffer.getvalue()

    async def compose(
        self,
        cutout_url: str | None,
        constraints: FallbackConstraints,
    ) -> ComposedAsset:
        """Composite the cutout over a background for every frame.

        Args:
            cutout_url: Product cutout (RGBA PNG)
            constraints: Aspect ratio, duration and scene hints

        Returns:
            ComposedAsset with stored video and thumbnail URLs

        Raises:
            FallbackNotViableError: If there is no usable cutout
        """
        if not cutout_url:
            raise FallbackNotViableError(
                "Fallback composition is not viable: no product cutout is available"
            )

        cutout = await self._load_cutout(cutout_url)
        size = constraints.aspect_ratio.resolution
        background, source = await self._background(constraints, size)
        layer = build_product_layer(cutout, size, background, self.product_scale)
        duration = max(constraints.duration_seconds, 1.0 / self.fps)
        frame_count = max(1, round(duration * self.fps))

        logger.info(
            "fallback_composition_started",
            frame_count=frame_count,
            size=f"{size[0]}x{size[1]}",
            background_source=source,
        )

        digest = hashlib.sha256(
            f"{cutout_url}|{constraints.aspect_ratio.value}|{constraints.duration_seconds}|"
            f"{scene_prompt(constraints)}".encode()
        ).hexdigest()[:24]

        with tempfile.TemporaryDirectory(prefix="media_fallback_") as tmp:
            output_path = Path(tmp) / f"{digest}.mp4"
            thumbnail = await asyncio.to_thread(
                self._render_and_encode, background, layer, duration, output_path
            )
            video = await self.storage.store_file(output_path, f"fallback/{digest}.mp4")

        thumb = await self.storage.store_bytes(thumbnail, f"thumbnails/{digest}.jpg")

        logger.info(
            "fallback_composition_completed",
            asset_url=video.url,
            file_size=video.file_size_bytes,
        )
        return ComposedAsset(
            asset_url=video.url,
            thumbnail_url=thumb.url,
            background_source=source,
            frame_count=frame_count,
        )
