import asyncio
import ssl
import logging
from typing import Optional

from core.models import CertificateInfo, PortStatus, ProbeOutcome, Protocol
from core.scan_config import ProbeTimeoutPolicy
from scanner.certificate import CertificateInspector

logger = logging.getLogger(__name__)

UDP_PROBE_PAYLOAD = b"test"
CLOSE_TIMEOUT = 2.0

SERVICE_NAMES = {
    21: "ftp", 22: "ssh", 23: "telnet", 25: "smtp", 53: "domain",
    80: "http", 110: "pop3", 111: "rpcbind", 135: "msrpc", 139: "netbios-ssn",
    143: "imap", 389: "ldap", 443: "https", 445: "microsoft-ds", 993: "imaps",
    995: "pop3s", 1433: "ms-sql-s", 1521: "oracle", 3306: "mysql",
    3389: "ms-wbt-server", 5432: "postgresql", 5900: "vnc", 6379: "redis",
    8080: "http-proxy", 8443: "https-alt", 9200: "elasticsearch",
    11211: "memcached", 27017: "mongodb",
}


def get_service_name(port: int) -> Optional[str]:
    """Well-known service name for a port, if any"""
    return SERVICE_NAMES.get(port)


async def _close_writer(writer: asyncio.StreamWriter):
    try:
        writer.close()
        await asyncio.wait_for(writer.wait_closed(), timeout=CLOSE_TIMEOUT)
    except (asyncio.TimeoutError, ConnectionError, OSError, ssl.SSLError):
        # Peer already gone
        pass


def _insecure_tls_context() -> ssl.SSLContext:
    # Certificates are extracted, not trusted
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class TCPProbe:
    """One connect-and-inspect cycle against a single TCP port"""

    def __init__(self, policy: ProbeTimeoutPolicy, inspector: Optional[CertificateInspector] = None):
        self.policy = policy
        self.inspector = inspector or CertificateInspector()
        self._tls_context = _insecure_tls_context()

    async def probe(self, host: str, port: int, address: Optional[str] = None) -> ProbeOutcome:
        """Probe host:port, connecting to address when the host was resolved already"""
        address = address or host
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(address, port),
                timeout=self.policy.timeout
            )
        except (asyncio.TimeoutError, OSError) as e:
            # Refused, timed out and unreachable are all reported as closed
            logger.debug(f"TCP {host}:{port} closed: {e!r}")
            return ProbeOutcome(host=host, port=port, protocol=Protocol.TCP, status=PortStatus.CLOSED)

        banner = None
        try:
            if self.policy.enable_banner:
                banner = await self.grab_banner(reader, port)
        finally:
            await _close_writer(writer)

        certificate = None
        if self.policy.enable_tls and port in self.policy.tls_ports:
            certificate = await self.grab_certificate(host, port, address)

        return ProbeOutcome(
            host=host,
            port=port,
            protocol=Protocol.TCP,
            status=PortStatus.OPEN,
            service=get_service_name(port),
            banner=banner,
            is_tls=certificate is not None,
            certificate=certificate,
        )

    async def grab_banner(self, reader: asyncio.StreamReader, port: int) -> Optional[str]:
        """Read one newline-terminated line within the banner deadline"""
        try:
            line = await asyncio.wait_for(reader.readline(), timeout=self.policy.banner_timeout)
        except (asyncio.TimeoutError, ValueError, ConnectionError, OSError) as e:
            logger.debug(f"Banner grab failed for port {port}: {e!r}")
            return None

        if not line.endswith(b"\n"):
            # EOF before a full line
            return None

        banner = line.decode('utf-8', errors='ignore').rstrip("\r\n")
        return banner or None

    async def grab_certificate(self, host: str, port: int,
                               address: Optional[str] = None) -> Optional[CertificateInfo]:
        """Separate TLS handshake to read the leaf certificate; SNI carries the host name"""
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(address or host, port, ssl=self._tls_context, server_hostname=host),
                timeout=self.policy.timeout
            )
        except (asyncio.TimeoutError, OSError, ssl.SSLError) as e:
            logger.debug(f"TLS handshake failed for {host}:{port}: {e!r}")
            return None

        try:
            return self.inspector.inspect_session(writer.get_extra_info('ssl_object'))
        finally:
            await _close_writer(writer)


class _DatagramProbeProtocol(asyncio.DatagramProtocol):
    def error_received(self, exc):
        logger.debug(f"UDP error received: {exc!r}")


class UDPProbe:
    """One connect-and-write cycle against a single UDP port"""

    def __init__(self, policy: ProbeTimeoutPolicy, payload: bytes = UDP_PROBE_PAYLOAD):
        self.policy = policy
        self.payload = payload

    async def probe(self, host: str, port: int, address: Optional[str] = None) -> ProbeOutcome:
        status = PortStatus.CLOSED
        try:
            await asyncio.wait_for(self._send(address or host, port), timeout=self.policy.timeout)
            # Write succeeded; no response is awaited
            status = PortStatus.OPEN
        except (asyncio.TimeoutError, OSError) as e:
            logger.debug(f"UDP {host}:{port} closed: {e!r}")

        return ProbeOutcome(host=host, port=port, protocol=Protocol.UDP, status=status)

    async def _send(self, host: str, port: int):
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            _DatagramProbeProtocol,
            remote_addr=(host, port)
        )
        try:
            transport.sendto(self.payload)
        finally:
            transport.close()

