import asyncio
import math
import shutil
import time
import logging
from typing import Dict, List, Optional

import nmap

from core.models import NmapScriptResult, Protocol
from core.security_utils import SecurityUtils

logger = logging.getLogger(__name__)

# Extra time nmap gets on top of the probe timeout
SCRIPT_TIMEOUT_SLACK = 5

AVAILABLE_SCRIPTS: Dict[str, str] = {
    "ssh-hostkey": "Grabs SSH host keys",
    "ssl-cert": "Retrieves SSL certificate info",
    "ssl-enum-ciphers": "Enumerates SSL ciphers",
    "http-title": "Grabs HTTP page title",
    "http-methods": "Finds supported HTTP methods",
    "smb-enum-shares": "Enumerates SMB shares",
    "smb-os-discovery": "Detects SMB OS",
    "mysql-info": "Gets MySQL server info",
    "mongodb-info": "Gets MongoDB info",
    "redis-info": "Gets Redis server info",
    "ftp-anon": "Checks for anonymous FTP",
    "banner": "Grabs service banner",
}

SCRIPT_CATEGORIES: Dict[str, List[str]] = {
    "SERVICE DETECTION & INFORMATION": ["ssh-hostkey", "mysql-info", "mongodb-info", "redis-info", "banner"],
    "SSL/TLS ANALYSIS": ["ssl-cert", "ssl-enum-ciphers"],
    "HTTP RECONNAISSANCE": ["http-title", "http-methods"],
    "SMB/WINDOWS ENUMERATION": ["smb-enum-shares", "smb-os-discovery"],
    "FTP RECONNAISSANCE": ["ftp-anon"],
}


def list_available_scripts() -> Dict[str, str]:
    return dict(AVAILABLE_SCRIPTS)


def validate_script(script: str) -> bool:
    return script in AVAILABLE_SCRIPTS


class NmapScriptRunner:
    """Runs NSE scripts against single ports through python-nmap"""

    def __init__(self, nmap_path: Optional[str] = None):
        self.nmap_path = nmap_path or shutil.which("nmap")
        if not self.nmap_path:
            logger.warning("Nmap not found in system PATH, script execution disabled")

    @property
    def available(self) -> bool:
        return self.nmap_path is not None

    def build_arguments(self, protocol: str, script: str) -> str:
        scan_type = "-sU" if protocol == Protocol.UDP.value else "-sT"
        return f"{scan_type} -sV --script={script}"

    async def run_script(self, host: str, port: int, protocol: str, script: str,
                         timeout: float) -> NmapScriptResult:
        """Run one script; every failure ends up in the result's error field"""
        started = time.monotonic()
        result = NmapScriptResult(script=script, port=port, protocol=protocol)

        if not SecurityUtils.is_safe_script_name(script):
            result.error = f"invalid script name: {script!r}"
        elif not self.available:
            result.error = "nmap not installed"
        else:
            if not validate_script(script):
                logger.warning(f"Script {script} is not in the known script list, running anyway")
            loop = asyncio.get_running_loop()
            try:
                output = await loop.run_in_executor(
                    None, self._scan, host, port, protocol, script, timeout
                )
                result.output = output
                result.status = "success"
            except nmap.PortScannerError as e:
                logger.warning(f"Nmap script {script} on {host}:{port}/{protocol} failed: {e}")
                result.error = str(e)

        result.duration_seconds = time.monotonic() - started
        return result

    async def run_scripts(self, host: str, port: int, protocol: str, scripts: List[str],
                          timeout: float) -> List[NmapScriptResult]:
        """Run several scripts against one port, one after another"""
        results = []
        for script in scripts:
            results.append(await self.run_script(host, port, protocol, script, timeout))
        return results

    def _scan(self, host: str, port: int, protocol: str, script: str, timeout: float) -> str:
        scanner = nmap.PortScanner(nmap_search_path=(self.nmap_path,))
        arguments = self.build_arguments(protocol, script)
        logger.info(f"Running nmap {arguments} -p {port} {host}")
        scanner.scan(
            hosts=host,
            ports=str(port),
            arguments=arguments,
            timeout=int(math.ceil(timeout)) + SCRIPT_TIMEOUT_SLACK
        )
        return self._script_output(scanner, port, protocol)

    @staticmethod
    def _script_output(scanner, port: int, protocol: str) -> str:
        lines = []
        for scan_host in scanner.all_hosts():
            try:
                port_info = scanner[scan_host][protocol][port]
            except KeyError:
                continue
            for name, output in port_info.get('script', {}).items():
                lines.append(f"{name}: {output.strip()}")
        return "\n".join(lines)
