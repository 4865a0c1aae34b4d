import asyncio
import ipaddress
import socket
import logging
from typing import Optional

import aiodns

logger = logging.getLogger(__name__)

class HostResolver:
    """Resolves the scan target to the IP address used for geolocation"""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    def is_valid_ip(self, value: str) -> bool:
        """Check if string is a valid IPv4 or IPv6 address"""
        try:
            ipaddress.ip_address(value)
            return True
        except ValueError:
            return False

    async def resolve_ip(self, host: str) -> Optional[str]:
        """First address of the host, or None when it cannot be resolved"""
        if not host or not host.strip():
            return None
        host = host.strip()
        if self.is_valid_ip(host):
            return host

        ip = await self._query_a_record(host)
        if ip:
            return ip
        return await self._system_lookup(host)

    async def _query_a_record(self, host: str) -> Optional[str]:
        resolver = aiodns.DNSResolver(timeout=self.timeout)
        try:
            result = await asyncio.wait_for(resolver.query(host, 'A'), timeout=self.timeout)
            if result:
                return result[0].host
        except asyncio.TimeoutError:
            logger.debug(f"DNS resolution timeout for {host}")
        except aiodns.error.DNSError as e:
            logger.debug(f"DNS resolution failed for {host}: {e}")
        return None

    async def _system_lookup(self, host: str) -> Optional[str]:
        # Hosts-file names such as "localhost" are not answered by DNS queries
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(host, None, type=socket.SOCK_STREAM),
                timeout=self.timeout
            )
        except (asyncio.TimeoutError, OSError) as e:
            logger.debug(f"System resolution failed for {host}: {e}")
            return None
        for family, _, _, _, sockaddr in infos:
            if family in (socket.AF_INET, socket.AF_INET6):
                return sockaddr[0]
        return None
