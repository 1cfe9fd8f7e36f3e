"""
Inventory availability adapter.

Stock counts change quickly, so entries live for CacheTTL.SHORT only.
"""

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from storefront.catalog.base import BaseAdapter
from storefront.services.cache import CacheTTL

INVENTORY_PREFIX = "inventory:"


class InventoryStatus(BaseModel):
    """Availability of a single product."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    available_units: int = Field(alias="availableUnits")
    total_units: int | None = Field(default=None, alias="totalUnits")
    is_available: bool | None = Field(default=None, alias="isAvailable")

    @property
    def in_stock(self) -> bool:
        if self.is_available is not None:
            return self.is_available
        return self.available_units > 0


class InventoryService(BaseAdapter):
    @property
    def cache_prefix(self) -> str:
        return INVENTORY_PREFIX

    async def get_availability(self, product_id: str) -> InventoryStatus:
        return await self.fetch(
            self.cache_key(product_id),
            CacheTTL.SHORT,
            f"/inventory/{quote(product_id, safe='')}/available",
            InventoryStatus,
        )
