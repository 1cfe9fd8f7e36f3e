"""
Typed adapters over the backend catalog API.
"""

from storefront.catalog.base import BaseAdapter
from storefront.catalog.inventory import InventoryService, InventoryStatus
from storefront.catalog.products import (
    DEFAULT_PRODUCT_COLORS,
    Product,
    ProductCatalog,
    ProductColor,
    enrich_product,
)

__all__ = [
    "BaseAdapter",
    "InventoryService",
    "InventoryStatus",
    "DEFAULT_PRODUCT_COLORS",
    "Product",
    "ProductCatalog",
    "ProductColor",
    "enrich_product",
]
