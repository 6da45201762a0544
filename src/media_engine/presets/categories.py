"""Built-in category profiles.

Each profile carries the QA weights, pass threshold, and prompt vocabulary
for one product niche. Rows in ``media_category_profiles`` override these;
niches known to neither fall back to ``DEFAULT_PROFILE``.
"""

from media_engine.domain.models import CategoryProfile

# Base negatives applied to every generation regardless of niche
BASE_NEGATIVE_RULES: tuple[str, ...] = (
    "blurry",
    "distorted",
    "morphing",
    "text changes",
    "shaky camera",
    "warped label",
    "extra products",
)

DEFAULT_PROFILE = CategoryProfile(
    niche="default",
    display_name="General",
    product_fidelity_weight=0.40,
    label_ocr_weight=0.30,
    quality_weight=0.30,
    temporal_stability_weight=0.00,
    qa_pass_threshold=0.70,
    context_tokens=("professional", "clean"),
    source="default",
)


# =============================================================================
# PROFILE DEFINITIONS
# =============================================================================

PACKAGED_GOODS = CategoryProfile(
    niche="packaged_goods",
    display_name="Packaged Goods",
    product_fidelity_weight=0.40,
    label_ocr_weight=0.30,
    quality_weight=0.30,
    temporal_stability_weight=0.00,
    qa_pass_threshold=0.70,
    context_tokens=("studio tabletop", "label facing camera", "clean backdrop"),
    forbidden_actions=("opening the package", "pouring", "crushing", "tearing"),
    negative_rules=("illegible label", "changed logo", "wrong packaging colour"),
    source="registry",
)

SOCIAL_PRODUCT = CategoryProfile(
    niche="social_product",
    display_name="Social Product",
    product_fidelity_weight=0.40,
    label_ocr_weight=0.25,
    quality_weight=0.25,
    temporal_stability_weight=0.10,
    qa_pass_threshold=0.70,
    context_tokens=("lifestyle setting", "natural light", "scroll-stopping"),
    forbidden_actions=("unboxing", "eating", "throwing"),
    negative_rules=("cluttered background",),
    source="registry",
)

BEAUTY = CategoryProfile(
    niche="beauty",
    display_name="Beauty & Cosmetics",
    product_fidelity_weight=0.40,
    label_ocr_weight=0.30,
    quality_weight=0.20,
    temporal_stability_weight=0.10,
    qa_pass_threshold=0.75,
    context_tokens=("vanity surface", "soft glow", "pastel backdrop", "water droplets"),
    forbidden_actions=("applying to skin", "spilling", "squeezing the tube"),
    negative_rules=("smudged label", "melted product", "skin close-up"),
    source="registry",
)

FASHION = CategoryProfile(
    niche="fashion",
    display_name="Fashion & Apparel",
    product_fidelity_weight=0.45,
    label_ocr_weight=0.10,
    quality_weight=0.30,
    temporal_stability_weight=0.15,
    qa_pass_threshold=0.70,
    context_tokens=("fabric texture", "editorial lighting", "flat lay"),
    forbidden_actions=("tearing", "cutting", "wringing"),
    negative_rules=("altered pattern", "wrong colourway"),
    source="registry",
)

ELECTRONICS = CategoryProfile(
    niche="electronics",
    display_name="Electronics",
    product_fidelity_weight=0.45,
    label_ocr_weight=0.20,
    quality_weight=0.25,
    temporal_stability_weight=0.10,
    qa_pass_threshold=0.72,
    context_tokens=("dark gradient backdrop", "rim light", "reflective surface"),
    forbidden_actions=("disassembling", "dropping", "submerging in water"),
    negative_rules=("extra ports", "changed screen content", "melted edges"),
    source="registry",
)

FOOD_BEVERAGE = CategoryProfile(
    niche="food_beverage",
    display_name="Food & Beverage",
    product_fidelity_weight=0.35,
    label_ocr_weight=0.35,
    quality_weight=0.20,
    temporal_stability_weight=0.10,
    qa_pass_threshold=0.70,
    context_tokens=("condensation", "fresh ingredients", "warm kitchen light"),
    forbidden_actions=("opening the can", "drinking", "biting"),
    negative_rules=("wrong flavour text", "deformed bottle"),
    source="registry",
)

HOME_DECOR = CategoryProfile(
    niche="home_decor",
    display_name="Home & Decor",
    product_fidelity_weight=0.45,
    label_ocr_weight=0.10,
    quality_weight=0.35,
    temporal_stability_weight=0.10,
    qa_pass_threshold=0.68,
    context_tokens=("cosy interior", "daylight through window", "styled shelf"),
    forbidden_actions=("breaking", "burning"),
    negative_rules=("warped proportions",),
    source="registry",
)


# =============================================================================
# PROFILE REGISTRY
# =============================================================================

PROFILES: dict[str, CategoryProfile] = {
    "packaged_goods": PACKAGED_GOODS,
    "social_product": SOCIAL_PRODUCT,
    "beauty": BEAUTY,
    "fashion": FASHION,
    "electronics": ELECTRONICS,
    "food_beverage": FOOD_BEVERAGE,
    "home_decor": HOME_DECOR,
}


def get_profile(niche: str) -> CategoryProfile | None:
    """Get a built-in profile by niche key.

    Args:
        niche: Niche key (case-insensitive)

    Returns:
        The profile, or None if the niche is not built in
    """
    return PROFILES.get(niche.strip().lower())

