"""PostgREST-style catalog adapter."""

from uuid import UUID

import httpx

from media_engine.adapters.catalog.base import CatalogAdapter, CatalogProduct
from media_engine.config import settings
from media_engine.errors import ProviderError
from media_engine.logging import get_logger

logger = get_logger(__name__)


class RestCatalogAdapter(CatalogAdapter):
    """Reads products from a PostgREST ``products`` table.

    Expects ``id``, ``tenant_id``, ``name``, ``description`` and an
    ``images`` array (first entry is the primary image) or ``image_url``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        table: str = "products",
        timeout: float = 15.0,
    ) -> None:
        self.base_url = (base_url or settings.catalog_api_url or "").rstrip("/")
        self.api_key = api_key or settings.catalog_api_key
        self.table = table
        self.timeout = timeout

        if not self.base_url:
            logger.warning("Catalog API URL not configured")

    @property
    def name(self) -> str:
        return "rest"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_product(self, tenant_id: UUID, product_id: UUID) -> CatalogProduct | None:
        if not self.base_url:
            raise ProviderError(self.name, "catalog API URL not configured")

        params = {
            "id": f"eq.{product_id}",
            "tenant_id": f"eq.{tenant_id}",
            "select": "id,tenant_id,name,description,images,image_url",
            "limit": "1",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/{self.table}",
                    headers=self._headers(),
                    params=params,
                )
                response.raise_for_status()
                rows = response.json()
        except httpx.HTTPError as e:
            logger.error("catalog_lookup_failed", product_id=str(product_id), error=str(e))
            raise ProviderError(self.name, str(e)) from e

        if not rows:
            logger.info("catalog_product_not_found", product_id=str(product_id))
            return None

        row = rows[0]
        images = row.get("images") or []
        image_url = row.get("image_url") or (images[0] if images else None)

        return CatalogProduct(
            id=UUID(str(row["id"])),
            tenant_id=UUID(str(row["tenant_id"])),
            name=row.get("name") or "",
            description=row.get("description"),
            image_url=image_url,
        )
