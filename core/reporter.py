from core.models import GeoLocation, PortStatus, ProbeOutcome, ScanReport, ScanStatistics, NmapScriptResult
from core.scan_config import ScanConfig
import json
import sys
from contextlib import contextmanager
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.markup import escape
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, TextIO

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    PortStatus.OPEN: ("green", "[+]"),
    PortStatus.FILTERED: ("yellow", "[!]"),
    PortStatus.CLOSED: ("red", "[-]"),
}

def outcome_to_json(outcome: ProbeOutcome) -> Dict[str, Any]:
    """JSON object for one outcome, with optional fields left out when empty"""
    return outcome.model_dump(mode='json', by_alias=True, exclude_none=True)

def statistics_to_json(statistics: ScanStatistics) -> Dict[str, Any]:
    return statistics.model_dump(mode='json', exclude_none=True)

class ReportGenerator:
    """Renders scan results as rich text or JSON lines"""

    def __init__(self, json_output: bool = False, quiet: bool = False, verbose: bool = False,
                 output_dir: str = "reports", console: Optional[Console] = None,
                 stream: Optional[TextIO] = None):
        self.json_output = json_output
        self.quiet = quiet
        self.verbose = verbose
        self.output_dir = Path(output_dir)
        self.stream = stream or sys.stdout
        self.console = console or Console(file=self.stream, highlight=False)

    @property
    def decorated(self) -> bool:
        return not (self.quiet or self.json_output)

    def print_banner(self):
        if not self.decorated:
            return
        self.console.print(Panel.fit(
            "TCP & UDP Scanning         Banner Grabbing\n"
            "SSL/TLS Certificates       Geolocation Lookup\n"
            "Nmap Script Integration    Concurrent Workers",
            title="PortProbe - Port Scanner",
            border_style="cyan",
        ))

    def print_config_info(self, config: ScanConfig):
        if not self.decorated:
            return

        table = Table(title="SCAN CONFIGURATION", show_header=False, title_style="bold cyan")
        table.add_column("Setting", style="bold")
        table.add_column("Value")
        table.add_row("Target Host", escape(config.host))
        port_range = f"{config.start_port}-{config.end_port} ({config.port_count} ports)"
        if config.is_full_scan():
            port_range += ", full range"
        table.add_row("Port Range", port_range)
        table.add_row("Workers", str(config.max_workers))
        table.add_row("Timeout", f"{config.timeout_seconds:g}s")
        table.add_row("Rate Limit", f"{config.rate_limit_ms}ms")
        table.add_row("Profile", config.profile or "none")

        features = []
        if config.banner_grabbing:
            features.append("Banner Grabbing")
        if config.enable_ssl:
            features.append("SSL/TLS Certs")
        if config.enable_udp:
            features.append("UDP Scan")
        if config.enable_geolocation:
            features.append("Geolocation")
        if config.nmap_scripts:
            features.append(f"Nmap Scripts ({config.nmap_scripts})")
        if features:
            table.add_row("Features", escape(", ".join(features)))

        self.console.print(table)

    @contextmanager
    def progress(self, total: int) -> Iterator[Optional[Any]]:
        """Yields a progress sink, or None when output is not decorated"""
        if not self.decorated:
            yield None
            return

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=self.console,
            transient=True,
        )
        with progress:
            task_id = progress.add_task("Scanning", total=total)

            def sink(completed: int, total: int):
                progress.update(task_id, completed=completed, total=total)

            yield sink

    def print_results(self, outcomes: List[ProbeOutcome]):
        for outcome in outcomes:
            self.print_outcome(outcome)

    def print_outcome(self, outcome: ProbeOutcome):
        if self.json_output:
            self.stream.write(json.dumps(outcome_to_json(outcome)) + "\n")
            return

        if self.quiet:
            if outcome.is_open:
                self.stream.write(f"{outcome.host}:{outcome.port}\n")
            return

        if not outcome.is_open and not self.verbose:
            return

        color, symbol = STATUS_STYLES[outcome.status]
        line = f"[{color}]{escape(symbol)}[/{color}] {escape(outcome.host)}:{outcome.port}/{outcome.protocol.value}"
        if outcome.service:
            line += f" ({escape(outcome.service)})"
        if outcome.banner:
            line += f" - [cyan]{escape(outcome.banner)}[/cyan]"
        if outcome.is_tls:
            line += " [magenta]\\[HTTPS][/magenta]"
        self.console.print(line)

        if outcome.certificate and self.verbose:
            cert = outcome.certificate
            self.console.print("    [S] SSL Certificate:", markup=False)
            self.console.print(f"      Subject: {cert.subject}", markup=False)
            self.console.print(f"      Issuer: {cert.issuer}", markup=False)
            self.console.print(
                f"      Valid: {cert.valid_from:%Y-%m-%d} to {cert.valid_to:%Y-%m-%d}"
                + (" (EXPIRED)" if cert.is_expired else ""),
                markup=False,
            )
            if cert.dns_names:
                self.console.print(f"      DNS Names: {', '.join(cert.dns_names)}", markup=False)
            self.console.print(f"      Key: {cert.public_key_bits} bits, {cert.signature_algorithm}", markup=False)
            self.console.print(f"      Fingerprint (SHA-256): {cert.fingerprint_sha256}", markup=False)

    def print_geolocation(self, geo: GeoLocation):
        if not self.decorated:
            return
        self.console.print(f"[G] Geolocation of {geo.ip}:", markup=False)
        if geo.error:
            self.console.print(f"      Lookup failed: {geo.error}", markup=False)
            return
        if geo.country:
            self.console.print(f"      Country: {geo.country} ({geo.country_code})", markup=False)
        if geo.city:
            self.console.print(f"      City: {geo.city}", markup=False)
        if geo.isp:
            self.console.print(f"      ISP: {geo.isp}", markup=False)
        if geo.latitude != 0 and geo.longitude != 0:
            self.console.print(f"      Coordinates: {geo.latitude:.4f}, {geo.longitude:.4f}", markup=False)

    def print_script_results(self, results: List[NmapScriptResult]):
        if self.json_output:
            for result in results:
                self.stream.write(json.dumps(result.model_dump(mode='json', exclude_none=True)) + "\n")
            return
        if not self.decorated:
            return
        for result in results:
            header = f"[N] {result.script} on {result.port}/{result.protocol.value} ({result.duration_seconds:.1f}s)"
            self.console.print(header, markup=False)
            if result.status == "success":
                for line in (result.output or "(no output)").splitlines():
                    self.console.print(f"      {line}", markup=False)
            else:
                self.console.print(f"      Error: {result.error}", markup=False)

    def print_statistics(self, statistics: ScanStatistics):
        if self.json_output:
            self.stream.write(json.dumps({"statistics": statistics_to_json(statistics)}) + "\n")
            return
        if self.quiet:
            return

        if statistics.target_geolocation:
            self.print_geolocation(statistics.target_geolocation)

        table = Table(title="SCAN STATISTICS", show_header=False, title_style="bold cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Total Ports Scanned", str(statistics.total_ports))
        table.add_row("Open Ports", f"[green]{statistics.open_ports}[/green]")
        table.add_row("Closed Ports", f"[red]{statistics.closed_ports}[/red]")
        table.add_row("Filtered Ports", f"[yellow]{statistics.filtered_ports}[/yellow]")
        table.add_row("Scan Duration", f"{statistics.duration_seconds:.2f}s")
        table.add_row("Ports/Second", f"{statistics.ports_per_second:.1f}")
        self.console.print(table)

    def print_report(self, report: ScanReport):
        self.print_results(report.outcomes)
        self.print_script_results(report.script_results)
        self.print_statistics(report.statistics)

    def save_report(self, report: ScanReport, output_path: Optional[str] = None) -> bool:
        """
        Save scan report to JSON file
        """
        try:
            if not output_path:
                self.output_dir.mkdir(parents=True, exist_ok=True)
                timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                filename = f"scan_{report.target.host}_{timestamp}.json"
                output_path = self.output_dir / filename

            data = report.model_dump(mode='json', by_alias=True, exclude_none=True)

            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            logger.info(f"Report saved to {output_path}")
            return True

        except OSError as e:
            logger.error(f"Failed to save report: {e}")
            return False

    def print_error(self, message: str):
        """Print error message"""
        Console(stderr=True, highlight=False).print(f"[bold red]Error:[/bold red] {escape(message)}")
