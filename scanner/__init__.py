"""
Scanner modules: probes, the worker pool engine and post-scan collaborators.
"""

from .port_scanner import PortScanner, ScanEngine, scan_range
from .probes import TCPProbe, UDPProbe
from .certificate import CertificateInspector
from .host_resolver import HostResolver
from .geolocation import GeolocationClient
from .nmap_executor import NmapScriptRunner

__all__ = [
    'PortScanner',
    'ScanEngine',
    'scan_range',
    'TCPProbe',
    'UDPProbe',
    'CertificateInspector',
    'HostResolver',
    'GeolocationClient',
    'NmapScriptRunner',
]
