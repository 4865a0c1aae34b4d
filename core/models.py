from datetime import datetime
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator

class Protocol(str, Enum):
    """Transport protocol of a probe."""
    TCP = "tcp"
    UDP = "udp"

class PortStatus(str, Enum):
    """Outcome of a single port probe."""
    OPEN = "open"
    CLOSED = "closed"
    FILTERED = "filtered"

class ScanTarget(BaseModel):
    """Host and inclusive port range to scan."""
    model_config = ConfigDict(frozen=True)

    host: str
    start_port: int = Field(ge=1, le=65535)
    end_port: int = Field(ge=1, le=65535)

    @model_validator(mode='after')
    def _check_order(self) -> 'ScanTarget':
        if self.end_port < self.start_port:
            raise ValueError("end port must be greater than or equal to start port")
        return self

    @property
    def port_count(self) -> int:
        return self.end_port - self.start_port + 1

    def ports(self):
        return range(self.start_port, self.end_port + 1)

class CertificateInfo(BaseModel):
    """Metadata extracted from a server's leaf certificate."""
    model_config = ConfigDict(frozen=True)

    subject: str
    issuer: str
    valid_from: datetime
    valid_to: datetime
    dns_names: List[str] = []
    is_expired: bool
    fingerprint_sha256: str = Field(serialization_alias="fingerprint")
    public_key_bits: int
    signature_algorithm: str

class ProbeOutcome(BaseModel):
    """Result of probing one (port, protocol) pair."""
    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(ge=1, le=65535)
    protocol: Protocol
    status: PortStatus
    service: Optional[str] = None
    banner: Optional[str] = None
    is_tls: bool = Field(default=False, serialization_alias="is_ssl")
    certificate: Optional[CertificateInfo] = Field(default=None, serialization_alias="ssl_info")

    @property
    def is_open(self) -> bool:
        return self.status == PortStatus.OPEN

class GeoLocation(BaseModel):
    """Geolocation of the scanned host's IP address."""
    ip: str
    country: str = ""
    country_code: str = ""
    region: str = ""
    city: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    isp: str = ""
    error: Optional[str] = None

class ScanStatistics(BaseModel):
    """Summary computed once, after every probe has finished."""
    target_host: str
    total_ports: int
    open_ports: int
    closed_ports: int
    filtered_ports: int = 0
    start_time: datetime
    end_time: datetime
    duration_seconds: float
    ports_per_second: float
    target_geolocation: Optional[GeoLocation] = None

class NmapScriptResult(BaseModel):
    """Output of one nmap NSE script run against one port."""
    script: str
    port: int
    protocol: Protocol
    output: str = ""
    status: str = "error"
    error: Optional[str] = None
    duration_seconds: float = 0.0

class ScanReport(BaseModel):
    """Everything a finished scan produced."""
    target: ScanTarget
    outcomes: List[ProbeOutcome]
    statistics: ScanStatistics
    script_results: List[NmapScriptResult] = []

    @property
    def open_outcomes(self) -> List[ProbeOutcome]:
        return [outcome for outcome in self.outcomes if outcome.is_open]
