"""
Base adapter for backend resources.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from storefront.services.client import ApiClient, Payload, expect_structured
from storefront.services.coordinator import CacheCoordinator
from storefront.services.errors import ProtocolError

T = TypeVar("T")


class BaseAdapter(ABC):
    """
    Abstract base class for typed wrappers around backend resources.

    All adapters should:
    - Use ApiClient for HTTP requests (timeouts, retries)
    - Go through CacheCoordinator for cacheable reads
    - Return Pydantic models
    """

    def __init__(self, client: ApiClient, coordinator: CacheCoordinator):
        self.client = client
        self.coordinator = coordinator

    @property
    @abstractmethod
    def cache_prefix(self) -> str:
        """Prefix shared by every cache key this adapter writes."""
        ...

    def cache_key(self, *parts: object) -> str:
        return self.cache_prefix + ":".join(str(part) for part in parts)

    def decode(self, payload: Payload, type_: type[T] | Any) -> T:
        """Check a payload against ``type_`` (a model, list[Model], ...)."""
        data = expect_structured(payload)
        try:
            return TypeAdapter(type_).validate_python(data)
        except ValidationError as e:
            raise ProtocolError(
                payload.status,
                f"Unexpected response shape: {e.error_count()} validation errors",
                retryable=False,
                service_id=self.client.service_id,
            ) from e

    async def fetch(
        self,
        key: str,
        ttl: timedelta,
        endpoint: str,
        type_: type[T] | Any,
    ) -> T:
        """Cached GET of ``endpoint`` decoded as ``type_``."""

        async def produce() -> T:
            payload = await self.client.get(endpoint)
            return self.decode(payload, type_)

        return await self.coordinator.get_or_compute(key, ttl, produce)
