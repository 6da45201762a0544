"""Base interface for product catalog lookups."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import UUID


@dataclass
class CatalogProduct:
    """The subset of a catalog product the pipeline reads."""

    id: UUID
    tenant_id: UUID
    name: str
    description: str | None = None
    image_url: str | None = None


class CatalogAdapter(ABC):
    """Read-only access to the tenant's product catalog.

    Implementations:
    - StubCatalogAdapter: In-memory products for testing
    - RestCatalogAdapter: PostgREST-style ``products`` endpoint
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter name identifier."""
        ...

    @abstractmethod
    async def get_product(self, tenant_id: UUID, product_id: UUID) -> CatalogProduct | None:
        """Fetch a product scoped to a tenant.

        Returns:
            The product, or None if it does not exist for this tenant

        Raises:
            ProviderError: If the catalog could not be reached
        """
        ...

    async def get_product_image_url(self, tenant_id: UUID, product_id: UUID) -> str | None:
        """Primary image URL of a product, if any."""
        product = await self.get_product(tenant_id, product_id)
        return product.image_url if product else None
