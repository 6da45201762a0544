"""Product catalog adapters."""

from media_engine.adapters.catalog.base import CatalogAdapter, CatalogProduct
from media_engine.adapters.catalog.rest import RestCatalogAdapter
from media_engine.adapters.catalog.stub import StubCatalogAdapter

__all__ = [
    "CatalogAdapter",
    "CatalogProduct",
    "RestCatalogAdapter",
    "StubCatalogAdapter",
]
