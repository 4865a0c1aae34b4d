"""
Core modules for PortProbe: models, configuration, aggregation and reporting.
"""

from .models import (
    CertificateInfo,
    GeoLocation,
    NmapScriptResult,
    PortStatus,
    ProbeOutcome,
    Protocol,
    ScanReport,
    ScanStatistics,
    ScanTarget,
)

from .scan_config import ConfigurationError, ProbeTimeoutPolicy, ScanConfig, load_scan_config
from .aggregator import ResultAggregator
from .reporter import ReportGenerator

__all__ = [
    'CertificateInfo',
    'GeoLocation',
    'NmapScriptResult',
    'PortStatus',
    'ProbeOutcome',
    'Protocol',
    'ScanReport',
    'ScanStatistics',
    'ScanTarget',
    'ConfigurationError',
    'ProbeTimeoutPolicy',
    'ScanConfig',
    'load_scan_config',
    'ResultAggregator',
    'ReportGenerator',
]
