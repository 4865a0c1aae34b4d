#!/usr/bin/env python3
"""
PortProbe - concurrent TCP/UDP port scanner
Command line entry point
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from core.enhanced_logging import init_enhanced_logging
from core.reporter import ReportGenerator
from core.scan_config import PROFILE_SETTINGS, ConfigurationError, ScanConfig, load_scan_config
from scanner.nmap_executor import SCRIPT_CATEGORIES, list_available_scripts
from scanner.port_scanner import PortScanner

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

PROFILE_USE_CASES = {
    'aggressive': "Fast scanning of trusted networks",
    'default': "Balanced speed and reliability",
    'conservative': "Slower but safer scanning",
}


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        prog="portprobe",
        description="PortProbe - concurrent TCP/UDP port scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --host example.com
  %(prog)s --host scanme.nmap.org --start 1 --end 100 --nmap ssh-hostkey,ssl-cert
  %(prog)s --host 10.0.0.5 --profile aggressive --json
        """
    )

    parser.add_argument('--host', help='Target host to scan')
    parser.add_argument('--start', type=int, dest='start_port', help='Starting port number (default: 1)')
    parser.add_argument('--end', type=int, dest='end_port', help='Ending port number (default: 1024)')
    parser.add_argument('--workers', type=int, dest='max_workers', help='Number of concurrent workers (default: 100)')
    parser.add_argument('--timeout', type=int, dest='timeout_seconds', help='Connection timeout in seconds (default: 1)')
    parser.add_argument('--rate-limit', type=int, dest='rate_limit_ms', help='Per-worker delay between ports in milliseconds (default: 10)')
    parser.add_argument('--profile', help='Scanning profile: ' + ', '.join(PROFILE_SETTINGS))
    parser.add_argument('--banners', action=argparse.BooleanOptionalAction, dest='banner_grabbing', help='Banner grabbing (default: on)')
    parser.add_argument('--ssl', action=argparse.BooleanOptionalAction, dest='enable_ssl', help='SSL/TLS certificate grabbing (default: on)')
    parser.add_argument('--udp', action=argparse.BooleanOptionalAction, dest='enable_udp', help='UDP scanning (default: off)')
    parser.add_argument('--geo', action=argparse.BooleanOptionalAction, dest='enable_geolocation', help='Geolocation lookup (default: on)')
    parser.add_argument('--nmap', dest='nmap_scripts', help="Nmap scripts to run on open ports (comma-separated, e.g. 'ssh-hostkey,ssl-cert')")
    parser.add_argument('--output', help='Also save the full report as JSON to this file')
    parser.add_argument('--save', action='store_true', help='Save the full report as JSON in the output directory')
    parser.add_argument('--output-dir', dest='output_dir', help='Directory for saved reports (default: reports)')
    parser.add_argument('--log-dir', dest='logs_dir', help='Directory for log files (default: logs)')
    parser.add_argument('--no-log-file', action='store_true', help='Do not write log files')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output, including closed ports and certificates')
    parser.add_argument('--quiet', '-q', action='store_true', help='Only print host:port of open ports')
    parser.add_argument('--json', action='store_true', dest='json_output', help='Output results as JSON lines')
    parser.add_argument('--profiles', action='store_true', help='Show available profiles and exit')
    parser.add_argument('--nmap-help', action='store_true', help='Show available nmap scripts and exit')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    return parser


def print_profiles():
    print("\nAVAILABLE SCANNING PROFILES:\n")
    for index, (name, preset) in enumerate(PROFILE_SETTINGS.items(), start=1):
        timeout_ms = preset['timeout_ms']
        timeout = f"{timeout_ms}ms" if timeout_ms < 1000 else f"{timeout_ms / 1000:g}s"
        print(f"{index}. {name.upper()}")
        print(f"   Workers: {preset['workers']}, Timeout: {timeout}, Rate Limit: {preset['rate_limit_ms']}ms")
        print(f"   Use Case: {PROFILE_USE_CASES.get(name, '')}\n")
    print("USE: portprobe --host example.com --profile aggressive")


def print_nmap_scripts():
    descriptions = list_available_scripts()
    print("\nAVAILABLE NMAP SCRIPTS\n")
    for category, scripts in SCRIPT_CATEGORIES.items():
        print(f"{category}:")
        for script in scripts:
            print(f"  {script:<20} | {descriptions[script]}")
        print()
    print("Scripts run against every open TCP port once the scan finishes.")
    print("Requires nmap to be installed. Always obtain authorization before testing!")


def config_overrides(args: argparse.Namespace) -> dict:
    fields = [
        'host', 'start_port', 'end_port', 'max_workers', 'timeout_seconds', 'rate_limit_ms',
        'profile', 'banner_grabbing', 'enable_ssl', 'enable_udp', 'enable_geolocation',
        'nmap_scripts', 'logs_dir', 'output_dir',
    ]
    return {name: getattr(args, name) for name in fields}


def run(config: ScanConfig, reporter: ReportGenerator, output: Optional[str] = None, save: bool = False):
    reporter.print_banner()
    reporter.print_config_info(config)

    with reporter.progress(config.port_count) as sink:
        report = PortScanner(config, progress_sink=sink).scan()

    reporter.print_report(report)
    if output or save:
        reporter.save_report(report, output)
    return report


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.profiles:
        print_profiles()
        return 0

    if args.nmap_help:
        print_nmap_scripts()
        return 0

    reporter = ReportGenerator(json_output=args.json_output, quiet=args.quiet, verbose=args.verbose)

    try:
        config = load_scan_config(**config_overrides(args))
    except ConfigurationError as e:
        reporter.print_error(f"Configuration error: {e}")
        return 1

    reporter.output_dir = config.output_dir

    audit = init_enhanced_logging(
        logs_dir=config.logs_dir,
        verbose=args.verbose,
        quiet=args.quiet or args.json_output,
        log_to_file=not args.no_log_file,
    )
    audit.log_scan_event('scan_started', config.host, config.to_dict())

    try:
        report = run(config, reporter, args.output, args.save)
    except KeyboardInterrupt:
        print("\n\nScan interrupted by user", file=sys.stderr)
        return 130
    except (OSError, RuntimeError, asyncio.CancelledError) as e:
        logger.exception("Scan failed")
        reporter.print_error(f"Scan error: {e}")
        audit.log_scan_event('scan_failed', config.host, {'error': str(e)})
        return 1

    audit.log_scan_event('scan_finished', config.host, report.statistics.model_dump(mode='json'))
    return 0


if __name__ == '__main__':
    sys.exit(main())
