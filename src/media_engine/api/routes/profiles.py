"""Category profile endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel

from media_engine.api.deps import SessionDep
from media_engine.domain.models import CategoryProfile
from media_engine.services.category_profiles import CategoryProfileResolver

router = APIRouter(prefix="/profiles", tags=["Category Profiles"])


class CategoryProfileResponse(BaseModel):
    """Resolved category profile."""

    niche: str
    display_name: str
    product_fidelity_weight: float
    label_ocr_weight: float
    quality_weight: float
    temporal_stability_weight: float
    qa_pass_threshold: float
    context_tokens: list[str]
    forbidden_actions: list[str]
    negative_rules: list[str]
    source: str


def _to_response(profile: CategoryProfile) -> CategoryProfileResponse:
    return CategoryProfileResponse(**profile.to_dict())


@router.get(
    "",
    response_model=list[CategoryProfileResponse],
    summary="List category profiles",
)
async def list_profiles(session: SessionDep) -> list[CategoryProfileResponse]:
    """All configured profiles (database rows override built-ins)."""
    return [_to_response(p) for p in CategoryProfileResolver(session).list_profiles()]


@router.get(
    "/{niche}",
    response_model=CategoryProfileResponse,
    summary="Resolve category profile",
    description="Profile used for a niche; unknown niches resolve to the default profile.",
)
async def get_profile(niche: str, session: SessionDep) -> CategoryProfileResponse:
    """Resolve the profile for a niche."""
    return _to_response(CategoryProfileResolver(session).resolve(niche))
