"""Tests for category profile resolution."""

import pytest

from media_engine.db.models import CategoryProfileModel
from media_engine.errors import ConfigMissingError
from media_engine.presets.categories import DEFAULT_PROFILE, PROFILES
from media_engine.services.category_profiles import CategoryProfileResolver


class TestCategoryProfileResolver:
    """Tests for CategoryProfileResolver."""

    def test_registry_profile(self):
        profile = CategoryProfileResolver().resolve("packaged_goods")

        assert profile.source == "registry"
        assert profile.qa_pass_threshold == pytest.approx(0.7)
        assert sum(profile.weights.values()) == pytest.approx(1.0)

    def test_lookup_is_case_insensitive(self):
        assert CategoryProfileResolver().resolve("  Packaged_Goods ").niche == "packaged_goods"

    def test_unknown_niche_uses_default(self):
        profile = CategoryProfileResolver().resolve("garden_furniture")

        assert profile.niche == "garden_furniture"
        assert profile.source == "default"
        assert profile.weights == DEFAULT_PROFILE.weights

    def test_lookup_raises_for_unknown_niche(self):
        with pytest.raises(ConfigMissingError):
            CategoryProfileResolver().lookup("garden_furniture")

    def test_database_row_overrides_registry(self, session):
        session.add(
            CategoryProfileModel(
                niche="packaged_goods",
                display_name="Packaged Goods (strict)",
                qa_pass_threshold=0.85,
                forbidden_actions=["shaking"],
            )
        )
        session.commit()

        profile = CategoryProfileResolver(session).resolve("packaged_goods")

        assert profile.source == "database"
        assert profile.qa_pass_threshold == pytest.approx(0.85)
        assert profile.forbidden_actions == ("shaking",)

    def test_inactive_row_is_ignored(self, session):
        session.add(
            CategoryProfileModel(
                niche="packaged_goods",
                display_name="Retired",
                qa_pass_threshold=0.99,
                is_active=False,
            )
        )
        session.commit()

        assert CategoryProfileResolver(session).resolve("packaged_goods").source == "registry"

    def test_list_profiles_merges_database_rows(self, session):
        session.add(CategoryProfileModel(niche="pet_supplies", display_name="Pet Supplies"))
        session.commit()

        niches = [p.niche for p in CategoryProfileResolver(session).list_profiles()]

        assert "pet_supplies" in niches
        assert set(PROFILES) <= set(niches)
        assert niches == sorted(niches)

    def test_profile_snapshot_round_trip(self):
        profile = PROFILES["beauty"]

        assert profile.from_dict(profile.to_dict()).weights == profile.weights
