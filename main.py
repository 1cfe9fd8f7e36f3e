"""
Storefront data-access entry point.
Builds the backend client and cache, starts the cache sweeper and warms the catalog.
"""

import asyncio

from loguru import logger

from storefront.catalog import ProductCatalog
from storefront.services import (
    ApiClient,
    CacheCoordinator,
    CacheStore,
    CacheSweeper,
    ServiceError,
)
from storefront.settings import load_settings


async def main() -> None:
    """Run the data layer until interrupted."""
    settings = load_settings()

    # Missing/invalid BACKEND_URL fails here, before any request is made
    client = ApiClient.from_settings(settings)
    store = CacheStore(debug=settings.debug)
    coordinator = CacheCoordinator(store, debug=settings.debug)
    sweeper = CacheSweeper(store, interval_minutes=settings.cache_sweep_interval_minutes)
    catalog = ProductCatalog(client, coordinator)

    logger.info(f"Starting storefront data layer against {client.base_url}")

    try:
        sweeper.start()

        logger.info("Warming product catalog cache...")
        try:
            products = await catalog.list_products()
            logger.info(f"Catalog warmed: {len(products)} products")
        except ServiceError as e:
            logger.warning(f"Catalog warm-up failed, continuing without it: {e}")

        logger.info("Storefront data layer is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)

    except asyncio.CancelledError:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        if sweeper.is_running():
            sweeper.stop()
        await client.close()
        logger.info("Storefront data layer stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
