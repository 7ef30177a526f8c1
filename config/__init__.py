"""Configuration module for the reindexer.

Provides settings for the cache, service discovery and logging.
"""

from .settings import (
    Settings,
    CacheConfig,
    DiscoveryConfig,
    LoggingConfig,
)

__all__ = [
    'Settings',
    'CacheConfig',
    'DiscoveryConfig',
    'LoggingConfig',
]
