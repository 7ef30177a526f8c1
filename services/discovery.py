"""Gateway address resolution through the service discovery server."""

import asyncio
import logging
import time
from typing import List, Optional, Protocol

import aiohttp

logger = logging.getLogger(__name__)


class ServiceLocator(Protocol):
    async def resolve_gateway_address(self) -> Optional[str]: ...


class DiscoveryServiceLocator:
    """Resolves and caches the gateway address.

    Addresses come from the discovery servers, asked in order. A resolved
    address is cached with a sliding expiration: every cache hit pushes the
    expiry forward. Failed lookups are not cached and yield ``None``.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        server_addresses: List[str],
        secure_token: str = "",
        service_type: str = "gateway",
        cache_seconds: float = 600,
        static_address: Optional[str] = None,
    ):
        self.session = session
        self.server_addresses = server_addresses
        self.secure_token = secure_token
        self.service_type = service_type
        self.cache_seconds = cache_seconds
        self.static_address = static_address

        self._cached_address: Optional[str] = None
        self._expires_at = 0.0

    async def resolve_gateway_address(self) -> Optional[str]:
        if self.static_address:
            return self.static_address

        now = time.monotonic()
        if self._cached_address is not None and now < self._expires_at:
            self._expires_at = now + self.cache_seconds
            return self._cached_address

        address = await self._download_address()
        if address is None:
            self.invalidate()
            return None

        self._cached_address = address
        self._expires_at = time.monotonic() + self.cache_seconds
        return address

    def invalidate(self) -> None:
        self._cached_address = None
        self._expires_at = 0.0

    async def _download_address(self) -> Optional[str]:
        logger.info(f"Getting address for '{self.service_type}' microservice.")

        for server in self.server_addresses:
            url = f"{server.rstrip('/')}/api/services/service-type/{self.service_type}"
            try:
                async with self.session.get(
                    url, headers={"Authorization": f"SecureToken {self.secure_token}"}
                ) as response:
                    if response.status != 200:
                        logger.warning(
                            f"Discovery server {server} answered with status {response.status}"
                        )
                        continue
                    services = await response.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                logger.error(f"Discovery server {server} is not reachable: {e}")
                continue

            if not services:
                continue

            address = services[0].get("address")
            if not address:
                continue

            address = f"{address.rstrip('/')}/api/"
            logger.info(f"Address for '{self.service_type}' microservice was retrieved ({address}).")
            return address

        logger.warning(f"Address for '{self.service_type}' microservice wasn't retrieved.")
        return None
