"""
Service layer infrastructure - resilient access to the storefront backend.

Provides:
- ApiClient: HTTP client with per-attempt timeouts, retries and backoff
- CacheStore: In-memory TTL cache
- CacheCoordinator: Cache-aside with single-flight producers
- CacheSweeper: Periodic removal of expired entries
- RequestLog: Bounded history of backend requests
"""

from storefront.services.errors import (
    ServiceError,
    ProtocolError,
    NetworkError,
    RequestTimeoutError,
    ConfigurationError,
)
from storefront.services.backoff import backoff_delay
from storefront.services.cache import CacheStore, CacheEntry, CacheStats, CacheTTL
from storefront.services.deduplicator import RequestDeduplicator
from storefront.services.coordinator import CacheCoordinator
from storefront.services.request_log import RequestLog, RequestLogEntry
from storefront.services.client import (
    ApiClient,
    Payload,
    RawText,
    RequestOptions,
    StructuredPayload,
    expect_structured,
)
from storefront.services.sweeper import CacheSweeper

__all__ = [
    # Errors
    "ServiceError",
    "ProtocolError",
    "NetworkError",
    "RequestTimeoutError",
    "ConfigurationError",
    # Backoff
    "backoff_delay",
    # Cache
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    "CacheTTL",
    "CacheCoordinator",
    "CacheSweeper",
    # Deduplicator
    "RequestDeduplicator",
    # Client
    "ApiClient",
    "Payload",
    "RawText",
    "RequestOptions",
    "StructuredPayload",
    "expect_structured",
    "RequestLog",
    "RequestLogEntry",
]
