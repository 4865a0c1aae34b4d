import asyncio

import nmap
import pytest

from core.models import Protocol
from scanner import nmap_executor
from scanner.nmap_executor import NmapScriptRunner, list_available_scripts, validate_script


class FakePortScanner:
    instances = []

    def __init__(self, nmap_search_path=()):
        self.nmap_search_path = nmap_search_path
        self.scan_kwargs = None
        FakePortScanner.instances.append(self)

    def scan(self, hosts, ports, arguments, timeout):
        self.scan_kwargs = dict(hosts=hosts, ports=ports, arguments=arguments, timeout=timeout)
        return {}

    def all_hosts(self):
        return ["127.0.0.1"]

    def __getitem__(self, host):
        return {"tcp": {22: {"state": "open", "script": {"ssh-hostkey": "  2048 aa:bb (RSA)\n"}}}}


class FailingPortScanner(FakePortScanner):
    def scan(self, hosts, ports, arguments, timeout):
        raise nmap.PortScannerError("nmap exited with status 1")


@pytest.fixture
def fake_nmap(monkeypatch):
    FakePortScanner.instances = []
    monkeypatch.setattr(nmap, "PortScanner", FakePortScanner)
    return FakePortScanner


def test_missing_nmap_is_reported_in_result(monkeypatch):
    monkeypatch.setattr(nmap_executor.shutil, "which", lambda name: None)
    runner = NmapScriptRunner()

    result = asyncio.run(runner.run_script("127.0.0.1", 22, "tcp", "ssh-hostkey", timeout=1))

    assert runner.available is False
    assert result.status == "error"
    assert result.error == "nmap not installed"
    assert result.output == ""


def test_successful_script_collects_output(fake_nmap):
    runner = NmapScriptRunner(nmap_path="/usr/bin/nmap")

    result = asyncio.run(runner.run_script("127.0.0.1", 22, "tcp", "ssh-hostkey", timeout=1))

    assert result.status == "success"
    assert result.error is None
    assert result.output == "ssh-hostkey: 2048 aa:bb (RSA)"
    assert result.protocol == Protocol.TCP
    assert result.duration_seconds >= 0

    scanner = fake_nmap.instances[0]
    assert scanner.nmap_search_path == ("/usr/bin/nmap",)
    assert scanner.scan_kwargs == {
        "hosts": "127.0.0.1",
        "ports": "22",
        "arguments": "-sT -sV --script=ssh-hostkey",
        "timeout": 6,
    }


def test_nmap_failure_is_reported_in_result(monkeypatch):
    monkeypatch.setattr(nmap, "PortScanner", FailingPortScanner)
    runner = NmapScriptRunner(nmap_path="/usr/bin/nmap")

    result = asyncio.run(runner.run_script("127.0.0.1", 22, "tcp", "ssh-hostkey", timeout=1))

    assert result.status == "error"
    assert "nmap exited with status 1" in result.error


def test_unsafe_script_name_never_reaches_nmap(fake_nmap):
    runner = NmapScriptRunner(nmap_path="/usr/bin/nmap")

    result = asyncio.run(runner.run_script("127.0.0.1", 22, "tcp", "--script-args=x", timeout=1))

    assert result.status == "error"
    assert result.error.startswith("invalid script name")
    assert fake_nmap.instances == []


def test_run_scripts_runs_each_in_order(fake_nmap):
    runner = NmapScriptRunner(nmap_path="/usr/bin/nmap")

    results = asyncio.run(runner.run_scripts("127.0.0.1", 22, "tcp", ["ssh-hostkey", "banner"], timeout=2))

    assert [r.script for r in results] == ["ssh-hostkey", "banner"]
    assert [s.scan_kwargs["arguments"] for s in fake_nmap.instances] == [
        "-sT -sV --script=ssh-hostkey",
        "-sT -sV --script=banner",
    ]


def test_udp_scripts_use_udp_scan():
    runner = NmapScriptRunner(nmap_path="/usr/bin/nmap")

    assert runner.build_arguments("udp", "banner") == "-sU -sV --script=banner"
    assert runner.build_arguments("tcp", "banner") == "-sT -sV --script=banner"


def test_script_catalogue():
    scripts = list_available_scripts()

    assert "ssl-cert" in scripts
    assert validate_script("http-title")
    assert not validate_script("made-up-script")
