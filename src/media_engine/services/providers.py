"""Provider selection and the injectable provider bundle."""

from dataclasses import dataclass

from media_engine.adapters.catalog.base import CatalogAdapter
from media_engine.adapters.catalog.rest import RestCatalogAdapter
from media_engine.adapters.catalog.stub import StubCatalogAdapter
from media_engine.adapters.cutout.base import CutoutProvider
from media_engine.adapters.cutout.removebg import RemoveBgProvider
from media_engine.adapters.cutout.stub import StubCutoutProvider
from media_engine.adapters.image_gen.base import ImageGenProvider
from media_engine.adapters.image_gen.openai import OpenAIImageProvider
from media_engine.adapters.image_gen.stub import StubImageGenProvider
from media_engine.adapters.llm.base import LLMProvider
from media_engine.adapters.llm.openai import OpenAIProvider
from media_engine.adapters.llm.stub import StubLLMProvider
from media_engine.adapters.video_gen.base import VideoGenProvider
from media_engine.adapters.video_gen.luma import LumaProvider
from media_engine.adapters.video_gen.stub import StubVideoGenProvider
from media_engine.adapters.vision.base import VisionQAProvider
from media_engine.adapters.vision.llm import LLMVisionQAProvider
from media_engine.adapters.vision.stub import StubVisionQAProvider
from media_engine.config import Settings, get_settings
from media_engine.logging import get_logger
from media_engine.services.storage import StorageService

logger = get_logger(__name__)


@dataclass
class ProviderSet:
    """Every external collaborator the pipeline talks to."""

    llm: LLMProvider
    video_gen: VideoGenProvider
    image_gen: ImageGenProvider
    cutout: CutoutProvider
    vision: VisionQAProvider
    catalog: CatalogAdapter
    storage: StorageService

    def describe(self) -> dict[str, str]:
        """Provider names, for logs and health output."""
        return {
            "llm": self.llm.name,
            "video_gen": self.video_gen.name,
            "image_gen": self.image_gen.name,
            "cutout": self.cutout.name,
            "vision": self.vision.name,
            "catalog": self.catalog.name,
        }


def get_llm_provider(settings: Settings) -> LLMProvider:
    """Get the configured LLM provider for shot plan rewriting."""
    provider = settings.llm_provider.lower()
    if provider == "openai":
        return OpenAIProvider(api_key=settings.openai_api_key, model=settings.openai_model)
    return StubLLMProvider()


def get_video_gen_provider(settings: Settings) -> VideoGenProvider:
    """Get the configured video generation provider."""
    provider = settings.video_gen_provider.lower()
    if provider == "luma":
        return LumaProvider(api_key=settings.luma_api_key)
    return StubVideoGenProvider()


def get_image_gen_provider(settings: Settings) -> ImageGenProvider:
    """Get the configured image generation provider."""
    provider = settings.image_gen_provider.lower()
    if provider == "openai":
        return OpenAIImageProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_image_model,
        )
    return StubImageGenProvider()


def get_cutout_provider(settings: Settings) -> CutoutProvider:
    """Get the configured background removal provider."""
    provider = settings.cutout_provider.lower()
    if provider == "removebg":
        return RemoveBgProvider(api_key=settings.removebg_api_key)
    return StubCutoutProvider()


def get_vision_provider(settings: Settings) -> VisionQAProvider:
    """Get the configured vision QA provider."""
    provider = settings.vision_provider.lower()
    if provider == "llm":
        return LLMVisionQAProvider(
            OpenAIProvider(api_key=settings.openai_api_key, model=settings.openai_vision_model)
        )
    return StubVisionQAProvider()


def get_catalog_adapter(settings: Settings) -> CatalogAdapter:
    """Get the configured catalog adapter."""
    provider = settings.catalog_provider.lower()
    if provider == "rest":
        return RestCatalogAdapter(
            base_url=settings.catalog_api_url,
            api_key=settings.catalog_api_key,
        )
    return StubCatalogAdapter()


def build_provider_set(settings: Settings | None = None) -> ProviderSet:
    """Build the provider bundle described by settings."""
    settings = settings or get_settings()
    providers = ProviderSet(
        llm=get_llm_provider(settings),
        video_gen=get_video_gen_provider(settings),
        image_gen=get_image_gen_provider(settings),
        cutout=get_cutout_provider(settings),
        vision=get_vision_provider(settings),
        catalog=get_catalog_adapter(settings),
        storage=StorageService(
            base_path=settings.storage_path,
            public_url=settings.storage_public_url,
        ),
    )
    logger.debug("provider_set_built", **providers.describe())
    return providers
