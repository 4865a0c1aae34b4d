import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError

from core.aggregator import ResultAggregator
from core.models import NmapScriptResult, PortStatus, ProbeOutcome, Protocol, ScanReport, ScanTarget
from core.scan_config import ConfigurationError, ProbeTimeoutPolicy, ScanConfig
from scanner.geolocation import GeolocationClient
from scanner.host_resolver import HostResolver
from scanner.nmap_executor import NmapScriptRunner
from scanner.probes import TCPProbe, UDPProbe

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 10

ProgressSink = Callable[[int, int], None]


class ScanEngine:
    """Fixed pool of async workers draining a bounded queue of ports"""

    def __init__(self, policy: ProbeTimeoutPolicy,
                 progress_sink: Optional[ProgressSink] = None,
                 tcp_probe: Optional[TCPProbe] = None,
                 udp_probe: Optional[UDPProbe] = None,
                 host_resolver: Optional[HostResolver] = None):
        self.policy = policy
        self.progress_sink = progress_sink
        self.tcp_probe = tcp_probe or TCPProbe(policy)
        self.udp_probe = None
        if policy.enable_udp:
            self.udp_probe = udp_probe or UDPProbe(policy)
        self.host_resolver = host_resolver or HostResolver()

    async def scan(self, target: ScanTarget) -> ScanReport:
        """Probe every port of the target and return ordered outcomes with statistics"""
        start_time = datetime.now()
        logger.info(
            f"Scanning {target.host} ports {target.start_port}-{target.end_port} "
            f"with {self.policy.max_workers} workers"
        )

        address = await self.host_resolver.resolve_ip(target.host)
        if not address:
            logger.warning(f"Could not resolve {target.host}, probing by name")

        outcomes = await self.collect(target, address)

        ordered, statistics = ResultAggregator(target, start_time).aggregate(outcomes)
        logger.info(
            f"Scan of {target.host} finished in {statistics.duration_seconds:.2f}s: "
            f"{statistics.open_ports} open, {statistics.closed_ports} closed"
        )
        return ScanReport(target=target, outcomes=ordered, statistics=statistics)

    async def collect(self, target: ScanTarget, address: Optional[str] = None) -> List[ProbeOutcome]:
        """Run the worker pool; outcomes come back in completion order"""
        worker_count = self.policy.max_workers
        queue: asyncio.Queue = asyncio.Queue(maxsize=worker_count)
        outcomes: List[ProbeOutcome] = []
        total = target.port_count
        completed = 0

        async def feed():
            for port in target.ports():
                await queue.put(port)
            # One end-of-work marker per worker closes the queue
            for _ in range(worker_count):
                await queue.put(None)

        async def work():
            nonlocal completed
            while True:
                port = await queue.get()
                if port is None:
                    return

                outcomes.append(await self._run_probe(self.tcp_probe, Protocol.TCP, target.host, port, address))
                if self.udp_probe is not None:
                    outcomes.append(await self._run_probe(self.udp_probe, Protocol.UDP, target.host, port, address))

                completed += 1
                if completed % PROGRESS_INTERVAL == 0:
                    self._report_progress(completed, total)

                if self.policy.rate_limit > 0:
                    await asyncio.sleep(self.policy.rate_limit)

        await asyncio.gather(feed(), *(work() for _ in range(worker_count)))
        return outcomes

    async def _run_probe(self, probe, protocol: Protocol, host: str, port: int,
                         address: Optional[str]) -> ProbeOutcome:
        try:
            return await probe.probe(host, port, address)
        except Exception as e:
            logger.debug(f"{protocol.value} probe of {host}:{port} failed unexpectedly: {e!r}")
            return ProbeOutcome(host=host, port=port, protocol=protocol, status=PortStatus.CLOSED)

    def _report_progress(self, completed: int, total: int):
        if self.progress_sink is None:
            return
        try:
            self.progress_sink(completed, total)
        except Exception as e:
            logger.warning(f"Progress reporting failed: {e}")


class PortScanner:
    """Full scan for one config: engine, then geolocation and nmap scripts"""

    def __init__(self, config: ScanConfig,
                 progress_sink: Optional[ProgressSink] = None,
                 host_resolver: Optional[HostResolver] = None,
                 geolocation_client: Optional[GeolocationClient] = None,
                 script_runner: Optional[NmapScriptRunner] = None):
        self.config = config
        self.progress_sink = progress_sink
        self.host_resolver = host_resolver or HostResolver()
        self.geolocation_client = geolocation_client or GeolocationClient()
        self.script_runner = script_runner or NmapScriptRunner()

    async def run(self) -> ScanReport:
        engine = ScanEngine(self.config.to_policy(), progress_sink=self.progress_sink,
                            host_resolver=self.host_resolver)
        report = await engine.scan(self.config.to_target())

        if self.config.enable_geolocation:
            report = await self._attach_geolocation(report)

        scripts = self.config.nmap_scripts_list()
        if scripts:
            report = report.model_copy(update={'script_results': await self._run_scripts(report, scripts)})

        return report

    def scan(self) -> ScanReport:
        """Synchronous wrapper for run()"""
        return asyncio.run(self.run())

    async def _attach_geolocation(self, report: ScanReport) -> ScanReport:
        ip = await self.host_resolver.resolve_ip(self.config.host)
        if not ip:
            logger.warning(f"Could not resolve {self.config.host}, skipping geolocation")
            return report

        geolocation = await self.geolocation_client.lookup(ip)
        statistics = report.statistics.model_copy(update={'target_geolocation': geolocation})
        return report.model_copy(update={'statistics': statistics})

    async def _run_scripts(self, report: ScanReport, scripts: List[str]) -> List[NmapScriptResult]:
        results: List[NmapScriptResult] = []
        for outcome in report.open_outcomes:
            if outcome.protocol != Protocol.TCP:
                continue
            results.extend(await self.script_runner.run_scripts(
                self.config.host, outcome.port, outcome.protocol.value, scripts,
                timeout=self.config.timeout_seconds
            ))
        return results


async def scan_range(host: str, start_port: int, end_port: int, policy: ProbeTimeoutPolicy,
                     progress_sink: Optional[ProgressSink] = None) -> ScanReport:
    """Convenience function: scan one host range with the given policy"""
    try:
        target = ScanTarget(host=host, start_port=start_port, end_port=end_port)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
    return await ScanEngine(policy, progress_sink=progress_sink).scan(target)
