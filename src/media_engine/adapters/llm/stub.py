"""Stub LLM provider for testing."""

import json

from media_engine.adapters.llm.base import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    StructuredOutput,
    VisionMessage,
)
from media_engine.logging import get_logger

logger = get_logger(__name__)


class StubLLMProvider(LLMProvider):
    """Stub provider that returns mock LLM responses for testing.

    Args:
        canned_content: If set, returned verbatim from every ``complete`` call
            (useful for exercising malformed-output handling).
    """

    def __init__(self, canned_content: str | None = None) -> None:
        self.canned_content = canned_content
        self.calls: list[list[LLMMessage]] = []

    @property
    def name(self) -> str:
        return "stub"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,  # noqa: ARG002
        max_tokens: int = 4096,  # noqa: ARG002
        json_mode: bool = False,
        structured_output: StructuredOutput | None = None,
    ) -> LLMResponse:
        """Return a mock completion response."""
        self.calls.append(messages)
        logger.info(
            "stub_llm_complete",
            message_count=len(messages),
            json_mode=json_mode,
            structured=structured_output.name if structured_output else None,
        )

        user_message = ""
        for msg in reversed(messages):
            if msg.role == "user":
                user_message = msg.content
                break

        if self.canned_content is not None:
            content = self.canned_content
        elif structured_output or json_mode:
            content = json.dumps(
                {
                    "opening": "Close-up reveal of the product on a marble surface",
                    "main_action": user_message.strip()[:300] or "Product rotates slowly",
                    "closing": "Hero shot with the label facing camera",
                    "camera_movement": "slow push-in",
                    "lighting_notes": "soft key light from the left, gentle rim light",
                    "duration_seconds": 6,
                    "style_tokens": ["premium", "clean", "studio"],
                }
            )
        else:
            content = f"This is a stub response for: {user_message[:100]}"

        return LLMResponse(
            content=content,
            model="stub-model",
            usage={
                "prompt_tokens": len(user_message.split()),
                "completion_tokens": len(content.split()),
                "total_tokens": len(user_message.split()) + len(content.split()),
            },
            finish_reason="stop",
        )

    @property
    def supports_vision(self) -> bool:
        """Stub provider supports vision for testing."""
        return True

    async def complete_with_vision(
        self,
        messages: list[VisionMessage],
        temperature: float = 0.7,  # noqa: ARG002
        max_tokens: int = 4096,  # noqa: ARG002
        json_mode: bool = False,
    ) -> LLMResponse:
        """Return a mock QA scoring response."""
        image_count = sum(len(m.image_urls) for m in messages)
        logger.info("stub_llm_vision_complete", image_count=image_count, json_mode=json_mode)

        content = json.dumps(
            {
                "similarity": 8,
                "label": 8,
                "quality": 9,
                "temporal": 8,
                "ocr_text": "BRAND",
                "issues": [],
            }
        )
        return LLMResponse(content=content, model="stub-vision-model", finish_reason="stop")

    async def health_check(self) -> bool:
        """Stub provider is always healthy."""
        return True
