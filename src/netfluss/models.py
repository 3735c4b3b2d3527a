"""Value types shared by the samplers, the aggregator and the UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

PLACEHOLDER = "—"

# BSD interface flags (net/if.h)
IFF_UP = 0x1
IFF_BROADCAST = 0x2
IFF_LOOPBACK = 0x8
IFF_POINTOPOINT = 0x10
IFF_RUNNING = 0x40
IFF_MULTICAST = 0x8000


class AdapterType(str, Enum):
    """Classification of a network interface."""

    WIFI = "wifi"
    ETHERNET = "ethernet"
    OTHER = "other"


@dataclass(frozen=True)
class InterfaceSample:
    """Raw counters of one interface at one point in time."""

    name: str
    flags: int
    rx_bytes: int
    tx_bytes: int
    baudrate: int = 0

    @property
    def is_up(self) -> bool:
        return bool(self.flags & IFF_UP)


@dataclass(frozen=True)
class InterfaceMetadata:
    """Type and display name of an interface."""

    type: AdapterType
    display_name: str


@dataclass(frozen=True)
class WifiInfo:
    """Wireless-only attributes of an interface."""

    mode: str
    tx_rate_mbps: float
    ssid: str | None = None


@dataclass(frozen=True)
class AdapterStatus:
    """Per-tick view of one adapter."""

    id: str
    display_name: str
    type: AdapterType
    is_up: bool
    link_speed_bps: int | None
    wifi_mode: str | None
    wifi_tx_rate_mbps: float | None
    wifi_ssid: str | None
    rx_bytes: int
    tx_bytes: int
    rx_rate_bps: float
    tx_rate_bps: float


@dataclass(frozen=True)
class RateTotals:
    rx_rate_bps: float = 0.0
    tx_rate_bps: float = 0.0


@dataclass(frozen=True)
class AppTraffic:
    """Estimated current throughput of one application."""

    key: str
    name: str
    rx_rate_bps: float
    tx_rate_bps: float

    @property
    def total_rate_bps(self) -> float:
        return self.rx_rate_bps + self.tx_rate_bps


class ByteCounts(NamedTuple):
    rx: int
    tx: int


# process display name -> cumulative bytes
ProcessByteSnapshot = dict[str, ByteCounts]


@dataclass(frozen=True)
class NetworkSnapshot:
    """Everything published to the presentation layer for one tick."""

    adapters: tuple[AdapterStatus, ...] = ()
    totals: RateTotals = field(default_factory=RateTotals)
    top_apps: tuple[AppTraffic, ...] = ()
    top_apps_error: str | None = None
    internal_ip: str = PLACEHOLDER
    gateway_ip: str = PLACEHOLDER
    external_ip: str = PLACEHOLDER
    reconnecting: frozenset[str] = frozenset()
    tick: int = 0
    timestamp: float = 0.0

    def adapter(self, adapter_id: str) -> AdapterStatus | None:
        for adapter in self.adapters:
            if adapter.id == adapter_id:
                return adapter
        return None
