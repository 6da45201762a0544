"""Tests for brief rewriting."""

import asyncio
import json

import pytest

from media_engine.adapters.llm.base import LLMProvider, LLMResponse
from media_engine.adapters.llm.stub import StubLLMProvider
from media_engine.domain.models import ShotPlan
from media_engine.presets.categories import PACKAGED_GOODS
from media_engine.services.prompt_rewriter import (
    HARD_FIDELITY_CLAUSE,
    PRODUCT_FIDELITY_CLAUSE,
    PromptRewriter,
    fallback_plan,
    strip_forbidden,
    variation_prompt,
)


class FailingLLMProvider(LLMProvider):
    @property
    def name(self) -> str:
        return "failing"

    async def complete(self, messages, **kwargs) -> LLMResponse:
        raise ConnectionError("upstream reset")


class SlowLLMProvider(LLMProvider):
    @property
    def name(self) -> str:
        return "slow"

    async def complete(self, messages, **kwargs) -> LLMResponse:
        await asyncio.sleep(1)
        return LLMResponse(content="{}", model="slow")


def plan_json(**overrides) -> str:
    data = {
        "opening": "Can rises into frame",
        "main_action": "Slow turn showing the label",
        "closing": "Logo lockup",
        "camera_movement": "slow orbit",
        "lighting_notes": "bright summer light",
        "duration_seconds": 12,
        "style_tokens": ["fresh", " ", "vivid"],
    }
    data.update(overrides)
    return json.dumps(data)


BRIEF = "Show the lime soda can on a beach table"


class TestRewrite:
    """Tests for PromptRewriter.rewrite."""

    @pytest.mark.asyncio
    async def test_model_output_is_validated(self):
        rewriter = PromptRewriter(StubLLMProvider(canned_content=plan_json()))

        plan = await rewriter.rewrite(BRIEF, "packaged_goods", 6, PACKAGED_GOODS)

        assert plan.main_action == "Slow turn showing the label"
        assert plan.style_tokens == ["fresh", "vivid"]
        # Requested duration overrides whatever the model returned
        assert plan.duration_seconds == 6
        assert plan.hard_fidelity is False

    @pytest.mark.asyncio
    async def test_forbidden_actions_are_stripped(self):
        content = plan_json(main_action="Hand pouring the drink, then crushing the can")
        rewriter = PromptRewriter(StubLLMProvider(canned_content=content))

        plan = await rewriter.rewrite(BRIEF, "packaged_goods", 6, PACKAGED_GOODS)

        assert "pouring" not in plan.main_action.lower()
        assert "crushing" not in plan.main_action.lower()

    @pytest.mark.asyncio
    async def test_profile_reaches_system_prompt(self):
        llm = StubLLMProvider()
        await PromptRewriter(llm).rewrite(BRIEF, "packaged_goods", 6, PACKAGED_GOODS)

        system = llm.calls[0][0].content
        assert "studio tabletop" in system
        assert "opening the package" in system
        assert llm.calls[0][1].content == BRIEF

    @pytest.mark.asyncio
    async def test_hard_fidelity_adds_rules(self):
        llm = StubLLMProvider()

        plan = await PromptRewriter(llm).rewrite(
            BRIEF, "packaged_goods", 6, PACKAGED_GOODS, hard_fidelity=True
        )

        assert plan.hard_fidelity is True
        assert "MUST prioritise fidelity" in llm.calls[0][0].content

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[1, 2, 3]",
            json.dumps({"opening": "only one field"}),
            plan_json(main_action="   "),
        ],
    )
    async def test_unusable_output_falls_back_to_brief(self, content):
        rewriter = PromptRewriter(StubLLMProvider(canned_content=content))

        plan = await rewriter.rewrite(BRIEF, "packaged_goods", 8, PACKAGED_GOODS)

        assert plan == fallback_plan(BRIEF, 8)
        assert plan.main_action == BRIEF

    @pytest.mark.asyncio
    async def test_provider_error_falls_back(self):
        plan = await PromptRewriter(FailingLLMProvider()).rewrite(
            BRIEF, "packaged_goods", 6, PACKAGED_GOODS
        )
        assert plan.main_action == BRIEF

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        rewriter = PromptRewriter(SlowLLMProvider(), timeout_seconds=0.01)

        plan = await rewriter.rewrite(
            BRIEF, "packaged_goods", 6, PACKAGED_GOODS, hard_fidelity=True
        )

        assert plan.main_action == BRIEF
        assert plan.camera_movement == "locked-off static frame"


class TestBuildPrompt:
    """Tests for prompt rendering."""

    def test_prompt_sections(self):
        plan = fallback_plan(BRIEF, 6)

        prompt = PromptRewriter.build_prompt(plan, has_product=True)

        assert prompt.startswith("Opening: Product reveal with soft lighting")
        assert f"Main: {BRIEF}" in prompt
        assert "Duration: 6s" in prompt
        assert PRODUCT_FIDELITY_CLAUSE.rstrip(".") in prompt
        assert "SHARP, READABLE" not in prompt

    def test_hard_fidelity_clause(self):
        plan = fallback_plan(BRIEF, 6, hard_fidelity=True)

        prompt = PromptRewriter.build_prompt(plan, has_product=False)

        assert HARD_FIDELITY_CLAUSE.rstrip(".") in prompt
        assert PRODUCT_FIDELITY_CLAUSE.rstrip(".") not in prompt

    def test_negative_prompt_is_deduplicated(self):
        negatives = PromptRewriter.build_negative_prompt(PACKAGED_GOODS).split(", ")

        assert negatives[0] == "blurry"
        assert "illegible label" in negatives
        assert len(negatives) == len({n.lower() for n in negatives})


class TestHelpers:
    """Tests for module helpers."""

    def test_variation_prompt_cycles(self):
        assert variation_prompt("Base", 0) == "Base. Variation: slight left angle"
        assert variation_prompt("Base", 5) == "Base. Variation: slight right angle"

    def test_strip_forbidden_cleans_separators(self):
        assert strip_forbidden("Turn the can, pouring, then smile", ["pouring"]) == (
            "Turn the can, then smile"
        )

    def test_shot_plan_rejects_blank_fields(self):
        with pytest.raises(ValueError):
            ShotPlan(
                opening=" ",
                main_action="a",
                closing="b",
                camera_movement="c",
                lighting_notes="d",
                duration_seconds=6,
            )
