"""Shared test fixtures for netfluss tests."""

from __future__ import annotations

from concurrent.futures import Future
from unittest.mock import MagicMock, patch

import pytest

from netfluss.aggregator import NetworkMonitor
from netfluss.config import MonitorConfig
from netfluss.metadata import InterfaceMetadataResolver
from netfluss.models import AdapterType, InterfaceMetadata, InterfaceSample, WifiInfo
from netfluss.processes import ProcessTrafficSampler
from netfluss.sampler import CounterSampler


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualExecutor:
    """Executor whose jobs only run when the test says so."""

    def __init__(self) -> None:
        self.pending: list[tuple[Future, object, tuple]] = []
        self.submitted = 0

    def submit(self, fn, *args):
        future: Future = Future()
        self.pending.append((future, fn, args))
        self.submitted += 1
        return future

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args in pending:
            try:
                future.set_result(fn(*args))
            except Exception as exc:
                future.set_exception(exc)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def mock_psutil_counters():
    """Mock psutil counters and interface stats for en0 and lo0."""
    en0_io = MagicMock(bytes_recv=1000, bytes_sent=500)
    lo0_io = MagicMock(bytes_recv=42, bytes_sent=42)
    en0_stats = MagicMock(isup=True, speed=1000, flags="up,broadcast,running,multicast")
    lo0_stats = MagicMock(isup=True, speed=0, flags="up,loopback,running")

    with patch(
        "psutil.net_io_counters", return_value={"en0": en0_io, "lo0": lo0_io}
    ) as counters, patch("psutil.net_if_stats", return_value={"en0": en0_stats, "lo0": lo0_stats}):
        yield counters


@pytest.fixture
def counter_sampler():
    """CounterSampler whose readings are set by the test."""
    sampler = MagicMock(spec=CounterSampler)
    sampler.fetch_samples.return_value = []
    return sampler


@pytest.fixture
def metadata_resolver():
    resolver = MagicMock(spec=InterfaceMetadataResolver)
    resolver.interface_info.return_value = {
        "en0": InterfaceMetadata(type=AdapterType.WIFI, display_name="Wi-Fi"),
        "en7": InterfaceMetadata(type=AdapterType.ETHERNET, display_name="USB LAN"),
    }
    resolver.wifi_info.return_value = {
        "en0": WifiInfo(mode="Wi-Fi (5 GHz)", tx_rate_mbps=866.0, ssid="home"),
    }
    return resolver


@pytest.fixture
def process_sampler():
    sampler = MagicMock(spec=ProcessTrafficSampler)
    sampler.sample.return_value = {}
    return sampler


@pytest.fixture
def network_monitor(counter_sampler, metadata_resolver, process_sampler, clock, manual_executor):
    """NetworkMonitor wired to fakes; side channels run only on demand."""
    monitor = NetworkMonitor(
        config=MonitorConfig(),
        counter_sampler=counter_sampler,
        metadata_resolver=metadata_resolver,
        process_sampler=process_sampler,
        internal_ip_lookup=lambda: "192.168.1.20",
        gateway_lookup=lambda: "192.168.1.1",
        external_ip_lookup=lambda url: "203.0.113.7",
        reconnector=MagicMock(),
        clock=clock,
        executor=manual_executor,
    )
    yield monitor
    monitor.close()


def make_sample(name: str, rx: int, tx: int, up: bool = True, baudrate: int = 0) -> InterfaceSample:
    return InterfaceSample(name=name, flags=0x1 if up else 0, rx_bytes=rx, tx_bytes=tx, baudrate=baudrate)
