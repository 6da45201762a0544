"""Stub catalog adapter for testing."""

from uuid import UUID

from media_engine.adapters.catalog.base import CatalogAdapter, CatalogProduct


class StubCatalogAdapter(CatalogAdapter):
    """In-memory catalog keyed by (tenant_id, product_id)."""

    def __init__(self, products: list[CatalogProduct] | None = None) -> None:
        self._products: dict[tuple[UUID, UUID], CatalogProduct] = {}
        for product in products or []:
            self.add(product)

    @property
    def name(self) -> str:
        return "stub"

    def add(self, product: CatalogProduct) -> None:
        self._products[(product.tenant_id, product.id)] = product

    async def get_product(self, tenant_id: UUID, product_id: UUID) -> CatalogProduct | None:
        return self._products.get((tenant_id, product_id))
