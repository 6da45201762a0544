"""Built-in category profiles."""

from media_engine.presets.categories import (
    BASE_NEGATIVE_RULES,
    DEFAULT_PROFILE,
    PROFILES,
    get_profile,
)

__all__ = [
    "BASE_NEGATIVE_RULES",
    "DEFAULT_PROFILE",
    "PROFILES",
    "get_profile",
]
