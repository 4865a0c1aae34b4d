#!/usr/bin/env python3
"""
Scan Configuration
Validated scan settings, named profiles and the probe policy derived from them
"""

import os
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from core.models import ScanTarget
from core.security_utils import SecurityUtils

MIN_PORT = 1
MAX_PORT = 65535
BANNER_READ_TIMEOUT = 1.0
DEFAULT_TLS_PORTS = frozenset({443, 8443})

# Profile presets; timeouts are in milliseconds
PROFILE_SETTINGS: Dict[str, Dict[str, int]] = {
    'aggressive': {
        'workers': 500,
        'timeout_ms': 500,
        'rate_limit_ms': 0,
    },
    'default': {
        'workers': 100,
        'timeout_ms': 1000,
        'rate_limit_ms': 10,
    },
    'conservative': {
        'workers': 50,
        'timeout_ms': 3000,
        'rate_limit_ms': 50,
    },
}

ENV_PREFIX = 'PORTPROBE_'

ENV_FIELDS = {
    'host': 'HOST',
    'start_port': 'START_PORT',
    'end_port': 'END_PORT',
    'max_workers': 'WORKERS',
    'timeout_seconds': 'TIMEOUT',
    'rate_limit_ms': 'RATE_LIMIT_MS',
    'profile': 'PROFILE',
    'nmap_scripts': 'NMAP_SCRIPTS',
    'logs_dir': 'LOGS_DIR',
    'output_dir': 'OUTPUT_DIR',
}


class ConfigurationError(ValueError):
    """Raised when scan settings are unusable; nothing has been scanned yet."""


class ProbeTimeoutPolicy(BaseModel):
    """Effective limits and feature toggles shared by every worker of a scan."""
    model_config = ConfigDict(frozen=True)

    max_workers: int = Field(ge=1)
    timeout: float = Field(gt=0)
    rate_limit: float = Field(default=0.0, ge=0)
    enable_udp: bool = False
    enable_banner: bool = True
    enable_tls: bool = True
    banner_timeout: float = Field(default=BANNER_READ_TIMEOUT, gt=0)
    tls_ports: FrozenSet[int] = DEFAULT_TLS_PORTS


class ScanConfig(BaseModel):
    """Scan settings as given by the user, with the selected profile applied."""

    host: str
    start_port: int = Field(default=1, ge=MIN_PORT, le=MAX_PORT)
    end_port: int = Field(default=1024, ge=MIN_PORT, le=MAX_PORT)
    max_workers: int = Field(default=100, ge=1)
    timeout_seconds: float = 1
    rate_limit_ms: int = Field(default=10, ge=0)

    # Feature flags
    banner_grabbing: bool = True
    enable_ssl: bool = True
    enable_udp: bool = False
    enable_geolocation: bool = True

    # Profile and nmap
    profile: Optional[str] = None
    nmap_scripts: str = ""

    tls_ports: FrozenSet[int] = DEFAULT_TLS_PORTS
    logs_dir: Path = Path('logs')
    output_dir: Path = Path('reports')

    @field_validator('host')
    @classmethod
    def _check_host(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("host cannot be empty")
        if not SecurityUtils.is_safe_host(value):
            raise ValueError(f"host contains forbidden characters: {value!r}")
        return value

    @field_validator('timeout_seconds')
    @classmethod
    def _floor_timeout(cls, value: float) -> float:
        # Whole seconds, never below one
        return float(max(int(value), 1))

    @field_validator('profile')
    @classmethod
    def _check_profile(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip().lower()
        if value not in PROFILE_SETTINGS:
            raise ValueError(f"unknown profile {value!r} (choose from {', '.join(PROFILE_SETTINGS)})")
        return value

    @field_validator('nmap_scripts')
    @classmethod
    def _check_scripts(cls, value: str) -> str:
        for script in SecurityUtils.split_script_list(value):
            if not SecurityUtils.is_safe_script_name(script):
                raise ValueError(f"invalid nmap script name: {script!r}")
        return value.strip()

    @model_validator(mode='after')
    def _apply_profile(self) -> 'ScanConfig':
        if self.end_port < self.start_port:
            raise ValueError("end port must be greater than or equal to start port")

        if self.profile:
            preset = PROFILE_SETTINGS[self.profile]
            self.max_workers = preset['workers']
            self.timeout_seconds = preset['timeout_ms'] / 1000
            self.rate_limit_ms = preset['rate_limit_ms']
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> 'ScanConfig':
        """Build a config from PORTPROBE_* variables (and .env), then explicit overrides"""
        load_dotenv()
        values: Dict[str, Any] = {}
        for field_name, suffix in ENV_FIELDS.items():
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw is not None and raw != '':
                values[field_name] = raw
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @property
    def port_count(self) -> int:
        return self.end_port - self.start_port + 1

    def is_full_scan(self) -> bool:
        return self.start_port == MIN_PORT and self.end_port == MAX_PORT

    def nmap_scripts_list(self) -> List[str]:
        return SecurityUtils.split_script_list(self.nmap_scripts)

    def to_target(self) -> ScanTarget:
        return ScanTarget(host=self.host, start_port=self.start_port, end_port=self.end_port)

    def to_policy(self) -> ProbeTimeoutPolicy:
        return ProbeTimeoutPolicy(
            max_workers=self.max_workers,
            timeout=self.timeout_seconds,
            rate_limit=self.rate_limit_ms / 1000,
            enable_udp=self.enable_udp,
            enable_banner=self.banner_grabbing,
            enable_tls=self.enable_ssl,
            tls_ports=self.tls_ports,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


def _describe(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item.get('loc', ()))
        message = item.get('msg', 'invalid value')
        messages.append(f"{location}: {message}" if location else message)
    return '; '.join(messages)


def load_scan_config(**overrides: Any) -> ScanConfig:
    """Build and validate a config, raising ConfigurationError on bad input"""
    try:
        return ScanConfig.from_env(**overrides)
    except ValidationError as e:
        raise ConfigurationError(_describe(e)) from e
