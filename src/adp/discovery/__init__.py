"""Manifest discovery and caching"""

from adp.discovery.cache import (
    MISS,
    CacheEntry,
    CacheStats,
    DiscoveryCache,
    DiscoveryError,
    DiscoveryTimeoutError,
)
from adp.discovery.client import (
    INFO_ACTION,
    DiscoveryClient,
    discover_manifest,
    manifest_from_response,
)

__all__ = [
    "MISS",
    "CacheEntry",
    "CacheStats",
    "DiscoveryCache",
    "DiscoveryError",
    "DiscoveryTimeoutError",
    "INFO_ACTION",
    "DiscoveryClient",
    "discover_manifest",
    "manifest_from_response",
]
