"""Settings for the reindexer service.

Values come from built-in defaults, then an optional YAML file, then
environment variables (highest precedence).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "reindexer.yaml"


class CacheConfig(BaseModel):
    """Distributed cache holding queue status entries."""
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    instance_name: str = Field(default="reindexer:", description="Prefix for every cache key")
    status_ttl_seconds: int = Field(
        default=3600, ge=0, description="Queue entry expiry renewed on each update; 0 disables"
    )


class DiscoveryConfig(BaseModel):
    """Service discovery used to locate the gateway."""
    server_addresses: List[str] = Field(default_factory=list, description="Discovery servers, asked in order")
    server_secure_token: str = Field(default="", description="Token presented to discovery servers")
    gateway_service_type: str = Field(default="gateway", description="Service type of the gateway")
    gateway_address: Optional[str] = Field(default=None, description="Static gateway address, skips discovery")
    gateway_address_cache_seconds: float = Field(default=600, gt=0, description="Sliding cache window")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    use_json: bool = False
    log_file: Optional[str] = None


class Settings(BaseModel):
    """Reindexer configuration."""
    service_name: str = "reindexer"
    host: str = Field(default="0.0.0.0", description="Interface the HTTP server binds to")
    port: int = Field(default=8080, gt=0, lt=65536, description="HTTP server port")
    secure_token: str = Field(default="", description="Service-to-service token for gateway calls")
    http_timeout_seconds: float = Field(default=30, gt=0, description="Outbound request timeout")

    cache: CacheConfig = Field(default_factory=CacheConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> 'Settings':
        """Load settings from YAML (if present) and the environment."""
        data = _read_yaml(config_path or os.getenv("REINDEXER_CONFIG") or DEFAULT_CONFIG_PATH)
        _apply_env(data, os.environ)
        return cls.model_validate(data)

    @classmethod
    def from_env(cls) -> 'Settings':
        """Create settings from environment variables only."""
        data: Dict[str, Any] = {}
        _apply_env(data, os.environ)
        return cls.model_validate(data)


def _read_yaml(path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    logger.info(f"Loaded configuration from {path}")
    return data


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# environment variable -> (section or None, key, converter)
_ENV_MAP = {
    'SERVICE_NAME': (None, 'service_name', str),
    'HOST': (None, 'host', str),
    'PORT': (None, 'port', int),
    'SECURE_TOKEN': (None, 'secure_token', str),
    'HTTP_TIMEOUT_SECONDS': (None, 'http_timeout_seconds', float),
    'REDIS_URL': ('cache', 'redis_url', str),
    'CACHE_INSTANCE_NAME': ('cache', 'instance_name', str),
    'QUEUE_STATUS_TTL_SECONDS': ('cache', 'status_ttl_seconds', int),
    'SERVICE_DISCOVERY_SERVER_ADDRESSES': (
        'discovery', 'server_addresses',
        lambda v: [a.strip() for a in v.split(",") if a.strip()]
    ),
    'SERVICE_DISCOVERY_SERVER_SECURE_TOKEN': ('discovery', 'server_secure_token', str),
    'GATEWAY_SERVICE_TYPE': ('discovery', 'gateway_service_type', str),
    'GATEWAY_ADDRESS': ('discovery', 'gateway_address', str),
    'GATEWAY_ADDRESS_CACHE_SECONDS': ('discovery', 'gateway_address_cache_seconds', float),
    'LOG_LEVEL': ('logging', 'level', str),
    'LOG_JSON': ('logging', 'use_json', _parse_bool),
    'LOG_FILE': ('logging', 'log_file', str),
}


def _apply_env(data: Dict[str, Any], environ) -> None:
    for name, (section, key, convert) in _ENV_MAP.items():
        value = environ.get(name)
        if value is None or value == "":
            continue
        target = data if section is None else data.setdefault(section, {})
        target[key] = convert(value)
