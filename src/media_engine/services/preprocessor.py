"""Product asset preprocessing: cutout and mask creation."""

import asyncio
import io
from uuid import UUID

from PIL import Image, UnidentifiedImageError

from media_engine.adapters.catalog.base import CatalogAdapter
from media_engine.adapters.cutout.base import CutoutProvider
from media_engine.domain.models import PreparedAsset
from media_engine.errors import ProviderError, ProviderTimeoutError
from media_engine.logging import get_logger
from media_engine.services.storage import StorageService

logger = get_logger(__name__)


def mask_from_cutout(cutout_png: bytes) -> bytes:
    """Derive a single-channel PNG mask from a cutout's alpha channel.

    Raises:
        ProviderError: If the cutout is not a readable image
    """
    try:
        image = Image.open(io.BytesIO(cutout_png)).convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise ProviderError("cutout", f"cutout is not a valid image: {e}") from e

    buffer = io.BytesIO()
    image.getchannel("A").save(buffer, format="PNG")
    return buffer.getvalue()


class Preprocessor:
    """Turns a product image reference into cutout and mask references.

    Outputs are keyed by the SHA256 of the source image bytes, so preparing
    the same image twice yields the same references.
    """

    def __init__(
        self,
        cutout: CutoutProvider,
        storage: StorageService,
        catalog: CatalogAdapter | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.cutout = cutout
        self.storage = storage
        self.catalog = catalog
        self.timeout_seconds = timeout_seconds

    async def resolve_image(
        self,
        tenant_id: UUID,
        product_id: UUID | None,
        explicit_url: str | None,
    ) -> str | None:
        """Pick the product image: an explicit URL wins over a catalog lookup."""
        if explicit_url:
            return explicit_url
        if product_id is None or self.catalog is None:
            return None

        try:
            url = await self.catalog.get_product_image_url(tenant_id, product_id)
        except ProviderError as e:
            logger.warning("catalog_image_lookup_failed", product_id=str(product_id), error=str(e))
            return None

        logger.info("catalog_image_resolved", product_id=str(product_id), found=url is not None)
        return url

    async def prepare(self, image_ref: str | None) -> PreparedAsset:
        """Create (or reuse) the cutout and mask for a product image.

        Returns an empty PreparedAsset when no image is given or the reference
        is neither an http(s) URL nor a file of this storage. If the image
        cannot be downloaded or segmented the source reference is kept but no
        cutout is produced.
        """
        if not image_ref:
            return PreparedAsset()
        if not self.storage.is_fetchable(image_ref):
            logger.warning("preprocess_image_refused", image_ref=image_ref[:100])
            return PreparedAsset()

        try:
            source = await self.storage.fetch_bytes(image_ref)
        except ProviderError as e:
            logger.warning("preprocess_download_failed", image_ref=image_ref[:100], error=str(e))
            return PreparedAsset(source_url=image_ref)

        checksum = self.storage.compute_checksum(source)
        cutout_key = f"cutouts/{checksum}.png"
        mask_key = f"masks/{checksum}.png"

        if self.storage.exists(cutout_key) and self.storage.exists(mask_key):
            logger.info("preprocess_reused", checksum=checksum[:12])
            return PreparedAsset(
                source_url=image_ref,
                cutout_url=self.storage.url_for(cutout_key),
                mask_url=self.storage.url_for(mask_key),
                checksum=checksum,
            )

        try:
            cutout_png = await asyncio.wait_for(
                self.cutout.remove_background(source),
                timeout=self.timeout_seconds,
            )
            mask_png = mask_from_cutout(cutout_png)
        except TimeoutError:
            error = ProviderTimeoutError(self.cutout.name, self.timeout_seconds or 0)
            logger.warning("preprocess_cutout_failed", error=str(error))
            return PreparedAsset(source_url=image_ref, checksum=checksum)
        except ProviderError as e:
            logger.warning("preprocess_cutout_failed", error=str(e))
            return PreparedAsset(source_url=image_ref, checksum=checksum)

        cutout = await self.storage.store_bytes(cutout_png, cutout_key)
        mask = await self.storage.store_bytes(mask_png, mask_key)

        logger.info(
            "preprocess_completed",
            checksum=checksum[:12],
            provider=self.cutout.name,
            cutout_bytes=cutout.file_size_bytes,
        )
        return PreparedAsset(
            source_url=image_ref,
            cutout_url=cutout.url,
            mask_url=mask.url,
            checksum=checksum,
        )
