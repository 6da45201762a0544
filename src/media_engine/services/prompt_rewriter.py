"""Brief-to-shot-plan rewriting using LLM providers."""

import asyncio
import json
import re

from pydantic import ValidationError

from media_engine.adapters.llm.base import LLMMessage, LLMProvider, StructuredOutput
from media_engine.domain.models import CategoryProfile, ShotPlan
from media_engine.logging import get_logger
from media_engine.presets.categories import BASE_NEGATIVE_RULES

logger = get_logger(__name__)

PRODUCT_FIDELITY_CLAUSE = "CRITICAL: Maintain exact product appearance and label fidelity throughout."
HARD_FIDELITY_CLAUSE = (
    "CRITICAL: Product label must be SHARP, READABLE, and UNCHANGED across all frames. "
    "Minimal camera movement. Focus on product visibility."
)

# Applied per candidate index so parallel candidates explore different framings
VARIATION_MODIFIERS: tuple[str, ...] = (
    "slight left angle",
    "slight right angle",
    "closer zoom",
    "wider shot",
)


def fallback_plan(brief: str, duration_seconds: float, hard_fidelity: bool = False) -> ShotPlan:
    """Deterministic plan built from the raw brief when the model is unusable."""
    return ShotPlan(
        opening="Product reveal with soft lighting",
        main_action=brief.strip() or "Product showcase",
        closing="Product hero shot with brand focus",
        camera_movement="locked-off static frame" if hard_fidelity else "slow orbit",
        lighting_notes="soft diffused lighting",
        duration_seconds=duration_seconds,
        style_tokens=["professional", "clean", "product-focused"],
        hard_fidelity=hard_fidelity,
    )


def strip_forbidden(text: str, forbidden: tuple[str, ...] | list[str]) -> str:
    """Remove forbidden action phrases (case-insensitive) from text."""
    result = text
    for phrase in forbidden:
        phrase = phrase.strip()
        if not phrase:
            continue
        result = re.sub(re.escape(phrase), "", result, flags=re.IGNORECASE)
    # Collapse whitespace and dangling separators left behind
    result = re.sub(r"\s+([,.;])", r"\1", result)
    result = re.sub(r"([,;])\s*([,;.])", r"\2", result)
    result = re.sub(r"\s{2,}", " ", result)
    return result.strip(" ,;")


def variation_prompt(prompt: str, candidate_index: int) -> str:
    """Prompt for one candidate: the shared prompt plus its framing modifier."""
    modifier = VARIATION_MODIFIERS[candidate_index % len(VARIATION_MODIFIERS)]
    return f"{prompt}. Variation: {modifier}"


class PromptRewriter:
    """Turns a free-text brief into a validated ShotPlan.

    The model is constrained to a JSON schema; anything it returns is parsed
    and validated into a ShotPlan. Every failure mode (provider error,
    timeout, invalid JSON, schema violation) yields ``fallback_plan`` instead
    of an exception.
    """

    SYSTEM_PROMPT = """You are a video production director. Convert user briefs into structured shot plans for {duration}-second product videos.

Niche: {niche}
Context tokens: {context_tokens}
Forbidden actions: {forbidden_actions}

CRITICAL RULES:
- Product label/packaging must remain SHARP and READABLE in all frames
- NO morphing, distortion, or alteration of product appearance
- Camera movements must be SLOW and STABLE
- Product must be clearly visible throughout
- Never include any forbidden action

Return a JSON object with:
- opening: Opening shot description (1-2 seconds)
- main_action: Main product showcase action
- closing: Closing shot description
- camera_movement: Camera movement style
- lighting_notes: Lighting recommendations
- duration_seconds: Total duration
- style_tokens: Array of style keywords"""

    HARD_FIDELITY_RULES = """

A previous attempt failed quality review because the product drifted from its reference.
This plan MUST prioritise fidelity over creativity:
- Locked-off or near-static camera, no orbit, no fast push-in
- Product centred and fully in frame for the whole shot
- Label facing camera and legible in every frame
- No hands, no interaction with the product, no transformations"""

    def __init__(
        self,
        llm_provider: LLMProvider,
        timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the rewriter.

        Args:
            llm_provider: Provider used for the structured completion
            timeout_seconds: Upper bound for the model call; None waits indefinitely
        """
        self.llm = llm_provider
        self.timeout_seconds = timeout_seconds

    def _build_messages(
        self,
        brief: str,
        niche: str,
        duration_seconds: float,
        profile: CategoryProfile,
        hard_fidelity: bool,
    ) -> list[LLMMessage]:
        system = self.SYSTEM_PROMPT.format(
            duration=duration_seconds,
            niche=niche,
            context_tokens=", ".join(profile.context_tokens) or "professional, clean",
            forbidden_actions=", ".join(profile.forbidden_actions) or "none",
        )
        if hard_fidelity:
            system += self.HARD_FIDELITY_RULES

        return [
            LLMMessage(role="system", content=system),
            LLMMessage(role="user", content=brief),
        ]

    def _parse(
        self,
        content: str,
        brief: str,
        duration_seconds: float,
        profile: CategoryProfile,
        hard_fidelity: bool,
    ) -> ShotPlan:
        """Parse and validate model output.

        Raises:
            ValueError: On invalid JSON or a schema violation
        """
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"LLM returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("LLM returned a non-object JSON value")

        try:
            plan = ShotPlan.model_validate({**data, "hard_fidelity": hard_fidelity})
        except ValidationError as e:
            raise ValueError(f"LLM output failed shot plan validation: {e}") from e

        main_action = strip_forbidden(plan.main_action, profile.forbidden_actions)
        if main_action != plan.main_action:
            logger.info("rewrite_forbidden_actions_stripped", niche=profile.niche)

        return plan.model_copy(
            update={
                "main_action": main_action or brief.strip(),
                # The job's requested duration is authoritative
                "duration_seconds": duration_seconds,
            }
        )

    async def rewrite(
        self,
        brief: str,
        niche: str,
        duration_seconds: float,
        profile: CategoryProfile,
        hard_fidelity: bool = False,
    ) -> ShotPlan:
        """Rewrite a brief into a shot plan. Never raises.

        Args:
            brief: User's free-text brief
            niche: Niche key of the job
            duration_seconds: Requested video duration
            profile: Resolved category profile (context and forbidden actions)
            hard_fidelity: Produce the stricter retry variant

        Returns:
            A validated ShotPlan (model-written or the deterministic fallback)
        """
        logger.info(
            "rewrite_started",
            niche=niche,
            brief_length=len(brief),
            llm_provider=self.llm.name,
            hard_fidelity=hard_fidelity,
        )

        messages = self._build_messages(brief, niche, duration_seconds, profile, hard_fidelity)

        try:
            response = await asyncio.wait_for(
                self.llm.complete(
                    messages=messages,
                    temperature=0.2 if hard_fidelity else 0.7,
                    max_tokens=1024,
                    structured_output=StructuredOutput(
                        name="shot_plan",
                        schema=ShotPlan.llm_schema(),
                        description="Structured product video shot plan",
                    ),
                ),
                timeout=self.timeout_seconds,
            )
            plan = self._parse(response.content, brief, duration_seconds, profile, hard_fidelity)
        except TimeoutError:
            logger.warning("rewrite_timeout", timeout_seconds=self.timeout_seconds)
            return fallback_plan(brief, duration_seconds, hard_fidelity)
        except ValueError as e:
            logger.warning("rewrite_invalid_output", error=str(e))
            return fallback_plan(brief, duration_seconds, hard_fidelity)
        except Exception as e:
            logger.warning("rewrite_provider_error", error=str(e), error_type=type(e).__name__)
            return fallback_plan(brief, duration_seconds, hard_fidelity)

        logger.info("rewrite_completed", niche=niche, style_tokens=len(plan.style_tokens))
        return plan

    @staticmethod
    def build_prompt(plan: ShotPlan, has_product: bool, hard_fidelity: bool | None = None) -> str:
        """Render a shot plan as the generation prompt.

        Args:
            plan: The shot plan
            has_product: Whether a product reference image accompanies the request
            hard_fidelity: Append the hard-fidelity clause; defaults to the plan's flag
        """
        if hard_fidelity is None:
            hard_fidelity = plan.hard_fidelity

        parts = [
            f"Opening: {plan.opening}",
            f"Main: {plan.main_action}",
            f"Closing: {plan.closing}",
            f"Camera: {plan.camera_movement}",
            f"Lighting: {plan.lighting_notes}",
            f"Duration: {plan.duration_seconds:g}s",
        ]
        if plan.style_tokens:
            parts.append(f"Style: {', '.join(plan.style_tokens)}")
        if has_product:
            parts.append(PRODUCT_FIDELITY_CLAUSE)
        if hard_fidelity:
            parts.append(HARD_FIDELITY_CLAUSE)

        return ". ".join(part.rstrip(".") for part in parts)

    @staticmethod
    def build_negative_prompt(profile: CategoryProfile) -> str:
        """Comma-separated negatives: base rules then the profile's, deduplicated."""
        seen: set[str] = set()
        negatives: list[str] = []
        for rule in (*BASE_NEGATIVE_RULES, *profile.negative_rules):
            key = rule.strip().lower()
            if key and key not in seen:
                seen.add(key)
                negatives.append(rule.strip())
        return ", ".join(negatives)
