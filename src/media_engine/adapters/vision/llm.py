"""Vision QA scoring backed by a vision-capable language model."""

import json
from typing import Any

from media_engine.adapters.llm.base import LLMProvider, VisionMessage
from media_engine.adapters.vision.base import VisionQAProvider
from media_engine.domain.models import AxisScores
from media_engine.errors import ProviderError
from media_engine.logging import get_logger
from media_engine.utils.frame_extraction import FrameExtractor

logger = get_logger(__name__)

QA_PROMPT = """You are a quality assurance system for product videos.

Analyze these frames sampled from a generated video against the original product.
Product: {product}

Score each aspect from 0-10:
1. SIMILARITY: How similar is the product appearance to the original? (shape, colors, proportions)
2. LABEL_FIDELITY: Is the product label/text readable and accurate? (not distorted, correct text)
3. QUALITY: Overall visual quality (lighting, focus, composition)
4. TEMPORAL: Consistency across the frames (product shape and label unchanged, no flicker)

Also extract any text visible on the product label (OCR).

Respond in JSON:
{{
  "similarity": 8,
  "label": 7,
  "quality": 9,
  "temporal": 8,
  "ocr_text": "Brand Name - Product Line",
  "issues": ["minor label blur in frame 3"]
}}"""

# Axis used when the model omits one; mid-scale
DEFAULT_RAW_SCORE = 5.0


class LLMVisionQAProvider(VisionQAProvider):
    """Scores assets with a vision LLM on a 0-10 rubric, normalised to [0, 1].

    Chat vision endpoints accept images only, so the candidate clip is
    sampled into ``num_frames`` still frames (start to end) which are sent
    after the reference image.
    """

    def __init__(
        self,
        llm: LLMProvider,
        frame_extractor: FrameExtractor | None = None,
        num_frames: int = 3,
    ) -> None:
        if not llm.supports_vision:
            raise ValueError(f"LLM provider {llm.name} does not support vision")
        self.llm = llm
        self.frame_extractor = frame_extractor or FrameExtractor()
        self.num_frames = num_frames

    @property
    def name(self) -> str:
        return f"llm-vision:{self.llm.name}"

    @staticmethod
    def _normalise(data: dict[str, Any], key: str) -> float:
        raw = data.get(key)
        if raw is None:
            raw = DEFAULT_RAW_SCORE
        try:
            value = float(raw) / 10
        except (TypeError, ValueError):
            value = DEFAULT_RAW_SCORE / 10
        return max(0.0, min(1.0, value))

    async def score(
        self,
        asset_url: str,
        reference_url: str | None,
        product_hint: str | None = None,
    ) -> AxisScores:
        try:
            frames = await self.frame_extractor.extract_frames(asset_url, self.num_frames)
        except Exception as e:
            logger.error(
                "vision_qa_frame_extraction_failed", asset_url=asset_url[:100], error=str(e)
            )
            raise ProviderError(self.name, f"frame extraction failed: {e}") from e
        if not frames.frame_data_uris:
            raise ProviderError(self.name, "no frames extracted from asset")

        frame_count = len(frames.frame_data_uris)
        text = QA_PROMPT.format(product=product_hint or "N/A")
        if reference_url:
            image_urls = [reference_url, *frames.frame_data_uris]
            text += (
                f"\n\nThe first image is the original product. The next {frame_count} images "
                "are frames from the generated video, in order from start to end."
            )
        else:
            image_urls = list(frames.frame_data_uris)
            text += f"\n\nThe {frame_count} images are frames from the generated video, in order."

        try:
            response = await self.llm.complete_with_vision(
                messages=[VisionMessage(role="user", text=text, image_urls=image_urls)],
                temperature=0.0,
                max_tokens=800,
                json_mode=True,
            )
        except Exception as e:
            logger.error("vision_qa_request_failed", provider=self.llm.name, error=str(e))
            raise ProviderError(self.name, str(e)) from e

        try:
            data = json.loads(response.content)
        except json.JSONDecodeError as e:
            logger.warning("vision_qa_invalid_json", content=response.content[:200])
            raise ProviderError(self.name, "invalid JSON in QA response") from e

        if not isinstance(data, dict):
            raise ProviderError(self.name, "QA response is not a JSON object")

        issues = data.get("issues") or []
        return AxisScores(
            similarity=self._normalise(data, "similarity"),
            label_ocr=self._normalise(data, "label"),
            quality=self._normalise(data, "quality"),
            temporal_stability=self._normalise(data, "temporal"),
            ocr_text=data.get("ocr_text") or None,
            issues=[str(issue) for issue in issues] if isinstance(issues, list) else [str(issues)],
        )
