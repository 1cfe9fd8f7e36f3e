"""
Product catalog adapter.

Backend endpoints (all under the API prefix):
- GET   /products[?includeInactive=true]
- GET   /products/in-stock
- GET   /products/pre-orders
- GET   /products/{id}
- GET   /products/slug/{slug}
- PATCH /products/{id}/stock
"""

from typing import Any
from urllib.parse import quote

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.catalog.base import BaseAdapter
from storefront.catalog.inventory import INVENTORY_PREFIX
from storefront.services.cache import CacheTTL


class ProductColor(BaseModel):
    """Colour variant shown on the product page."""

    id: str
    name: str
    hex: str
    gradient: str


class Product(BaseModel):
    """Catalog product as returned by the backend."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    slug: str
    name: str
    concept: str | None = None
    original_character: str | None = Field(default=None, alias="originalCharacter")
    description: str = ""
    short_description: str | None = Field(default=None, alias="shortDescription")
    price: float
    original_price: float | None = Field(default=None, alias="originalPrice")
    deposit_amount: float | None = Field(default=None, alias="depositAmount")
    pre_order: bool = Field(default=False, alias="preOrder")
    in_stock: bool = Field(default=False, alias="inStock")
    stock_count: int = Field(default=0, alias="stockCount")
    images: list[str] = Field(default_factory=list)
    colors: list[ProductColor] | None = None
    age_range: str | None = Field(default=None, alias="ageRange")
    features: list[str] = Field(default_factory=list)
    category: str = ""
    badge: str | None = None
    active: bool = True
    view_count: int = Field(default=0, alias="viewCount")
    order_count: int = Field(default=0, alias="orderCount")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    @field_validator("images", "features", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        # the backend sometimes sends null or a bare string here
        return value if isinstance(value, list) else []


DEFAULT_PRODUCT_COLORS = [
    ProductColor(id="aqua", name="Aqua", hex="#4ECDC4", gradient="from-teal-400 to-cyan-500"),
    ProductColor(id="dusk", name="Anochecer", hex="#6366F1", gradient="from-indigo-500 to-purple-600"),
    ProductColor(id="quartz", name="Cuarzo", hex="#EC4899", gradient="from-pink-500 to-rose-600"),
    ProductColor(id="flare", name="Destello", hex="#F59E0B", gradient="from-amber-500 to-orange-600"),
    ProductColor(id="forest", name="Bosque", hex="#10B981", gradient="from-green-500 to-emerald-600"),
    ProductColor(id="lavender", name="Lavanda", hex="#A78BFA", gradient="from-purple-400 to-violet-500"),
]

PLACEHOLDER_IMAGE = "/assets/products/placeholder.jpg"


def enrich_product(product: Product) -> Product:
    """Fill in display defaults for colours and images."""
    return product.model_copy(
        update={
            "colors": product.colors or DEFAULT_PRODUCT_COLORS[:4],
            "images": product.images or [PLACEHOLDER_IMAGE],
        }
    )


class ProductCatalog(BaseAdapter):
    """
    Cached, typed access to the product catalog.

    Listings and single products are cached for CacheTTL.LONG. A stock update
    drops every ``products:`` key plus the product's inventory entry.
    """

    @property
    def cache_prefix(self) -> str:
        return "products:"

    async def _fetch_products(self, key: str, endpoint: str) -> list[Product]:
        products = await self.fetch(key, CacheTTL.LONG, endpoint, list[Product])
        return [enrich_product(p) for p in products]

    async def _fetch_product(self, key: str, endpoint: str) -> Product:
        product = await self.fetch(key, CacheTTL.LONG, endpoint, Product)
        return enrich_product(product)

    async def list_products(self, include_inactive: bool = False) -> list[Product]:
        """All active products (optionally inactive ones too)."""
        if include_inactive:
            return await self._fetch_products(
                self.cache_key("all", "inactive"),
                "/products?includeInactive=true",
            )
        return await self._fetch_products(self.cache_key("all"), "/products")

    async def list_in_stock(self) -> list[Product]:
        return await self._fetch_products(
            self.cache_key("inStock"), "/products/in-stock"
        )

    async def list_pre_orders(self) -> list[Product]:
        return await self._fetch_products(
            self.cache_key("preOrders"), "/products/pre-orders"
        )

    async def get_product(self, product_id: str) -> Product:
        return await self._fetch_product(
            self.cache_key("id", product_id),
            f"/products/{quote(product_id, safe='')}",
        )

    async def get_product_by_slug(self, slug: str) -> Product:
        """Single product by slug. A missing slug raises ProtocolError(404)."""
        return await self._fetch_product(
            self.cache_key("slug", slug),
            f"/products/slug/{quote(slug, safe='')}",
        )

    async def update_stock(
        self,
        product_id: str,
        stock_count: int,
        update_in_stock: bool | None = None,
    ) -> Product:
        """Set the stock count and evict every cached read it affects."""
        if stock_count < 0:
            raise ValueError(f"stock_count must be >= 0, got {stock_count}")

        body: dict[str, Any] = {"stockCount": stock_count}
        if update_in_stock is not None:
            body["updateInStock"] = update_in_stock

        payload = await self.client.patch(
            f"/products/{quote(product_id, safe='')}/stock", body=body
        )
        # evict before decoding, the write has already happened
        removed = await self.coordinator.invalidate_by_pattern(self.cache_prefix)
        await self.coordinator.invalidate(f"{INVENTORY_PREFIX}{product_id}")
        logger.info(
            f"Stock for product {product_id} set to {stock_count}, "
            f"{removed} cached catalog reads dropped"
        )
        return enrich_product(self.decode(payload, Product))
