"""Application services."""

from media_engine.services.candidate_generator import CandidateGenerator
from media_engine.services.category_profiles import CategoryProfileResolver
from media_engine.services.fallback_compositor import FallbackCompositor, FallbackConstraints
from media_engine.services.orchestrator import JobOrchestrator
from media_engine.services.preprocessor import Preprocessor
from media_engine.services.prompt_rewriter import PromptRewriter
from media_engine.services.providers import ProviderSet, build_provider_set
from media_engine.services.qa import QAScorer
from media_engine.services.selector import Selector
from media_engine.services.storage import StorageService, StoredAsset

__all__ = [
    "CandidateGenerator",
    "CategoryProfileResolver",
    "FallbackCompositor",
    "FallbackConstraints",
    "JobOrchestrator",
    "Preprocessor",
    "PromptRewriter",
    "ProviderSet",
    "QAScorer",
    "Selector",
    "StorageService",
    "StoredAsset",
    "build_provider_set",
]
