"""Tests for fallback composition."""

import io

import numpy as np
import pytest
from PIL import Image

from media_engine.adapters.image_gen.base import ImageGenProvider, ImageGenRequest, ImageGenResult
from media_engine.adapters.image_gen.stub import StubImageGenProvider
from media_engine.domain.enums import AspectRatio
from media_engine.errors import FallbackNotViableError
from media_engine.services.fallback_compositor import (
    FallbackCompositor,
    FallbackConstraints,
    build_product_layer,
    cover_resize,
    render_frame,
    scene_prompt,
    stock_background,
)


class FailingImageProvider(ImageGenProvider):
    @property
    def name(self) -> str:
        return "failing"

    async def generate(self, request: ImageGenRequest) -> ImageGenResult:
        return ImageGenResult(success=False, error_message="quota exceeded")


@pytest.fixture
async def stored_cutout(storage, cutout_png) -> str:
    asset = await storage.store_bytes(cutout_png, "cutouts/test.png")
    return asset.url


class TestCompose:
    """Tests for FallbackCompositor.compose."""

    @pytest.mark.asyncio
    async def test_compose_stores_video_and_thumbnail(self, storage, stored_cutout, fake_encoder):
        compositor = FallbackCompositor(StubImageGenProvider(latency_ms=0), storage, fps=4)

        result = await compositor.compose(
            stored_cutout,
            FallbackConstraints(aspect_ratio=AspectRatio.SQUARE_1_1, duration_seconds=2.0),
        )

        assert result.asset_url.startswith("http://assets.test/fallback/")
        assert result.thumbnail_url.startswith("http://assets.test/thumbnails/")
        assert result.background_source == "generated"
        assert result.frame_count == 8
        assert storage.path_for(result.asset_url.removeprefix("http://assets.test/")).is_file()

        call = fake_encoder[0]
        assert call["fps"] == 4
        assert call["duration"] == 2.0
        assert call["first"].shape == (1080, 1080, 3)

    @pytest.mark.asyncio
    async def test_background_failure_uses_stock(self, storage, stored_cutout, fake_encoder):
        compositor = FallbackCompositor(FailingImageProvider(), storage, fps=2)

        result = await compositor.compose(stored_cutout, FallbackConstraints(duration_seconds=1.0))

        assert result.background_source == "stock"
        assert fake_encoder[0]["first"].shape == (1280, 720, 3)

    @pytest.mark.asyncio
    async def test_same_inputs_same_output_reference(self, storage, stored_cutout, fake_encoder):
        compositor = FallbackCompositor(StubImageGenProvider(latency_ms=0), storage, fps=2)
        constraints = FallbackConstraints(duration_seconds=1.0, scene_description="beach")

        first = await compositor.compose(stored_cutout, constraints)
        second = await compositor.compose(stored_cutout, constraints)

        assert first.asset_url == second.asset_url

    @pytest.mark.asyncio
    async def test_no_cutout_is_not_viable(self, storage, fake_encoder):
        compositor = FallbackCompositor(StubImageGenProvider(latency_ms=0), storage)

        with pytest.raises(FallbackNotViableError, match="not viable"):
            await compositor.compose(None, FallbackConstraints())
        assert fake_encoder == []

    @pytest.mark.asyncio
    async def test_unreadable_cutout_is_not_viable(self, storage, fake_encoder):
        asset = await storage.store_bytes(b"not a png", "cutouts/broken.png")
        compositor = FallbackCompositor(StubImageGenProvider(latency_ms=0), storage)

        with pytest.raises(FallbackNotViableError):
            await compositor.compose(asset.url, FallbackConstraints())


class TestRendering:
    """Tests for the frame rendering helpers."""

    def test_product_pixels_are_stable_across_frames(self, cutout_png):
        cutout = Image.open(io.BytesIO(cutout_png)).convert("RGBA")
        size = (90, 160)
        background = stock_background(size, "seed")
        layer = build_product_layer(cutout, size, background, product_scale=0.5)

        first = render_frame(background, layer, 0.0, zoom=0.2)
        last = render_frame(background, layer, 1.0, zoom=0.2)

        opaque = np.array(layer.getchannel("A")) == 255
        assert opaque.any()
        assert np.array_equal(first[opaque], last[opaque])
        # The background moves
        assert not np.array_equal(first[~opaque], last[~opaque])

    def test_transparent_cutout_is_not_viable(self):
        cutout = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        background = stock_background((90, 160), "seed")

        with pytest.raises(FallbackNotViableError):
            build_product_layer(cutout, (90, 160), background, product_scale=0.5)

    def test_cover_resize_fills_frame(self):
        image = Image.new("RGB", (100, 50))
        assert cover_resize(image, (90, 160)).size == (90, 160)

    def test_stock_background_is_deterministic(self):
        first = np.array(stock_background((20, 40), "beach"))
        second = np.array(stock_background((20, 40), "beach"))
        assert np.array_equal(first, second)

    def test_scene_prompt_mentions_constraints(self):
        prompt = scene_prompt(
            FallbackConstraints(scene_description="Sunny beach", style_tokens=["vivid"])
        )

        assert "Sunny beach." in prompt
        assert "Style: vivid." in prompt
        assert prompt.endswith("Aspect ratio: 9:16")
