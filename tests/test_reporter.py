import io
import json
from datetime import datetime, timedelta

from core.models import (
    CertificateInfo,
    NmapScriptResult,
    PortStatus,
    ProbeOutcome,
    Protocol,
    ScanReport,
    ScanStatistics,
    ScanTarget,
)
from core.reporter import ReportGenerator, outcome_to_json

START = datetime(2024, 1, 1, 12, 0, 0)


def make_certificate_info():
    return CertificateInfo(
        subject="CN=example.test",
        issuer="CN=Example CA",
        valid_from=START,
        valid_to=START + timedelta(days=90),
        dns_names=["example.test"],
        is_expired=False,
        fingerprint_sha256="ab" * 32,
        public_key_bits=2048,
        signature_algorithm="sha256WithRSAEncryption",
    )


def make_report():
    target = ScanTarget(host="example.test", start_port=442, end_port=443)
    outcomes = [
        ProbeOutcome(host="example.test", port=442, protocol=Protocol.TCP, status=PortStatus.CLOSED),
        ProbeOutcome(host="example.test", port=443, protocol=Protocol.TCP, status=PortStatus.OPEN,
                     service="https", is_tls=True, certificate=make_certificate_info()),
    ]
    statistics = ScanStatistics(
        target_host="example.test", total_ports=2, open_ports=1, closed_ports=1,
        start_time=START, end_time=START + timedelta(seconds=1),
        duration_seconds=1.0, ports_per_second=2.0,
    )
    return ScanReport(target=target, outcomes=outcomes, statistics=statistics)


def test_outcome_json_uses_wire_names():
    data = outcome_to_json(make_report().outcomes[1])

    assert data["is_ssl"] is True
    assert data["ssl_info"]["fingerprint"] == "ab" * 32
    assert data["ssl_info"]["public_key_bits"] == 2048
    assert data["protocol"] == "tcp"
    assert data["status"] == "open"
    assert "is_tls" not in data
    assert "certificate" not in data


def test_empty_optional_fields_are_omitted():
    data = outcome_to_json(make_report().outcomes[0])

    assert data == {"host": "example.test", "port": 442, "protocol": "tcp", "status": "closed", "is_ssl": False}


def test_json_lines_output_ends_with_statistics():
    stream = io.StringIO()

    ReportGenerator(json_output=True, stream=stream).print_report(make_report())

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["port"] for line in lines[:-1]] == [442, 443]
    assert lines[-1]["statistics"]["open_ports"] == 1
    assert lines[-1]["statistics"]["total_ports"] == 2


def test_quiet_output_lists_open_ports_only():
    stream = io.StringIO()

    ReportGenerator(quiet=True, stream=stream).print_report(make_report())

    assert stream.getvalue() == "example.test:443\n"


def test_text_output_hides_closed_ports_unless_verbose():
    stream = io.StringIO()
    ReportGenerator(stream=stream).print_results(make_report().outcomes)
    text = stream.getvalue()

    assert "example.test:443/tcp" in text
    assert "442" not in text

    stream = io.StringIO()
    ReportGenerator(verbose=True, stream=stream).print_results(make_report().outcomes)
    text = stream.getvalue()

    assert "example.test:442/tcp" in text
    assert "Fingerprint (SHA-256)" in text


def test_script_results_in_json_mode():
    stream = io.StringIO()
    result = NmapScriptResult(script="ssl-cert", port=443, protocol=Protocol.TCP, error="nmap not installed")

    ReportGenerator(json_output=True, stream=stream).print_script_results([result])

    data = json.loads(stream.getvalue())
    assert data["script"] == "ssl-cert"
    assert data["status"] == "error"
    assert data["error"] == "nmap not installed"


def test_save_report_writes_json(tmp_path):
    path = tmp_path / "report.json"

    assert ReportGenerator(stream=io.StringIO()).save_report(make_report(), str(path))

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["target"]["host"] == "example.test"
    assert data["outcomes"][1]["ssl_info"]["subject"] == "CN=example.test"
    assert data["statistics"]["closed_ports"] == 1


def test_save_report_default_location(tmp_path):
    generator = ReportGenerator(stream=io.StringIO(), output_dir=str(tmp_path / "reports"))

    assert generator.save_report(make_report())
    saved = list((tmp_path / "reports").glob("scan_example.test_*.json"))
    assert len(saved) == 1


def test_save_report_failure_returns_false(tmp_path):
    missing = tmp_path / "missing" / "report.json"

    assert ReportGenerator(stream=io.StringIO()).save_report(make_report(), str(missing)) is False
