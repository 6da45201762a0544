"""Category profile resolution."""

from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from media_engine.db.models import CategoryProfileModel
from media_engine.domain.models import CategoryProfile
from media_engine.errors import ConfigMissingError
from media_engine.logging import get_logger
from media_engine.presets.categories import DEFAULT_PROFILE, PROFILES, get_profile

logger = get_logger(__name__)


def profile_from_row(row: CategoryProfileModel) -> CategoryProfile:
    """Convert a database row to a domain profile."""
    return CategoryProfile(
        niche=row.niche,
        display_name=row.display_name,
        product_fidelity_weight=row.product_fidelity_weight,
        label_ocr_weight=row.label_ocr_weight,
        quality_weight=row.quality_weight,
        temporal_stability_weight=row.temporal_stability_weight,
        qa_pass_threshold=row.qa_pass_threshold,
        context_tokens=tuple(row.context_tokens or ()),
        forbidden_actions=tuple(row.forbidden_actions or ()),
        negative_rules=tuple(row.negative_rules or ()),
        source="database",
    )


class CategoryProfileResolver:
    """Looks up per-niche QA configuration.

    Sources are consulted in order: active rows in ``media_category_profiles``,
    the built-in registry, then the default profile. A missing niche is never
    an error for callers.
    """

    def __init__(self, session: Session | None = None) -> None:
        self.session = session

    def _load_row(self, niche: str) -> CategoryProfile | None:
        if self.session is None:
            return None
        try:
            row = self.session.execute(
                select(CategoryProfileModel).where(
                    CategoryProfileModel.niche == niche,
                    CategoryProfileModel.is_active.is_(True),
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            # A failed read leaves the transaction unusable on PostgreSQL
            self.session.rollback()
            logger.warning("category_profile_db_read_failed", niche=niche, error=str(e))
            return None
        return profile_from_row(row) if row else None

    def lookup(self, niche: str) -> CategoryProfile:
        """Find a configured profile.

        Raises:
            ConfigMissingError: If neither the database nor the registry knows the niche
        """
        key = niche.strip().lower()
        profile = self._load_row(key) or get_profile(key)
        if profile is None:
            raise ConfigMissingError(niche)
        return profile

    def resolve(self, niche: str) -> CategoryProfile:
        """Resolve the profile for a niche, falling back to the default."""
        try:
            profile = self.lookup(niche)
        except ConfigMissingError:
            logger.info("category_profile_defaulted", niche=niche)
            return replace(DEFAULT_PROFILE, niche=niche.strip().lower() or DEFAULT_PROFILE.niche)

        logger.debug("category_profile_resolved", niche=niche, source=profile.source)
        return profile

    def list_profiles(self) -> list[CategoryProfile]:
        """All known profiles, database rows overriding the registry."""
        profiles = dict(PROFILES)
        if self.session is not None:
            try:
                rows = self.session.execute(
                    select(CategoryProfileModel).where(CategoryProfileModel.is_active.is_(True))
                ).scalars()
                for row in rows:
                    profiles[row.niche] = profile_from_row(row)
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.warning("category_profile_list_failed", error=str(e))
        return [profiles[key] for key in sorted(profiles)]
