"""Interface classification and wireless metadata."""

from __future__ import annotations

import json
import logging
import re
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from netfluss.commands import CommandError, run_command
from netfluss.models import AdapterType, InterfaceMetadata, WifiInfo

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

logger = logging.getLogger(__name__)

WIFI_GENERIC = "Wi-Fi"
WIFI_BANDS = {
    "6": "Wi-Fi (6 GHz)",
    "5": "Wi-Fi (5 GHz)",
    "2.4": "Wi-Fi (2.4 GHz)",
}

_WIFI_PORTS = ("wi-fi", "airport")
_ETHERNET_PORT_WORDS = ("ethernet", "lan")
_GHZ_RE = re.compile(r"(\d+(?:\.\d+)?)\s*GHz", re.IGNORECASE)
_BITRATE_RE = re.compile(r"([\d.]+)\s*MBit/s", re.IGNORECASE)

ARPHRD_ETHER = "1"


def band_from_channel(channel: object) -> str | None:
    """Return the band key ("2.4", "5" or "6") for a channel description.

    system_profiler reports channels like ``"149 (5GHz, 80MHz)"``; a bare
    channel number is ambiguous between bands and yields None.
    """
    if not isinstance(channel, str):
        return None
    match = _GHZ_RE.search(channel)
    if match is None:
        return None
    value = float(match.group(1))
    if value >= 5.9:
        return "6"
    if value >= 4.9:
        return "5"
    if value >= 2.0:
        return "2.4"
    return None


def band_from_frequency(mhz: float) -> str | None:
    if 2400 <= mhz < 2500:
        return "2.4"
    if 4900 <= mhz < 5925:
        return "5"
    if 5925 <= mhz <= 7125:
        return "6"
    return None


def wifi_mode_label(band: str | None) -> str:
    return WIFI_BANDS.get(band or "", WIFI_GENERIC)


def classify_hardware_port(port: str) -> AdapterType:
    lowered = port.lower()
    if lowered in _WIFI_PORTS:
        return AdapterType.WIFI
    words = re.split(r"[^a-z0-9]+", lowered)
    if any(word in _ETHERNET_PORT_WORDS for word in words):
        return AdapterType.ETHERNET
    return AdapterType.OTHER


def parse_hardware_ports(output: str) -> dict[str, str]:
    """Map BSD device names to hardware port names from networksetup output."""
    ports: dict[str, str] = {}
    current_port = ""
    for line in output.splitlines():
        text = line.strip()
        if text.startswith("Hardware Port:"):
            current_port = text[len("Hardware Port:") :].strip()
        elif text.startswith("Device:") and current_port:
            device = text[len("Device:") :].strip()
            if device:
                ports[device] = current_port
    return ports


def _dicts(value: Any) -> list[dict]:
    """Return the dict entries of a JSON list, ignoring anything else."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def parse_airport_json(data: Any) -> dict[str, WifiInfo]:
    """Extract per-interface Wi-Fi info from ``system_profiler -json`` output."""
    result: dict[str, WifiInfo] = {}
    if not isinstance(data, dict):
        return result
    for section in _dicts(data.get("SPAirPortDataType")):
        for iface in _dicts(section.get("spairport_airport_interfaces")):
            name = iface.get("_name")
            if not name or not isinstance(name, str):
                continue
            network = iface.get("spairport_current_network_information")
            if not isinstance(network, dict):
                network = {}
            band = band_from_channel(network.get("spairport_network_channel"))
            try:
                tx_rate = float(network.get("spairport_network_rate") or 0)
            except (TypeError, ValueError):
                tx_rate = 0.0
            ssid = network.get("_name")
            result[name] = WifiInfo(
                mode=wifi_mode_label(band),
                tx_rate_mbps=tx_rate,
                ssid=ssid if isinstance(ssid, str) and ssid else None,
            )
    return result


def parse_iw_link(output: str) -> WifiInfo:
    """Parse ``iw dev <if> link`` output."""
    ssid = None
    band = None
    tx_rate = 0.0
    for line in output.splitlines():
        text = line.strip()
        if text.startswith("SSID:"):
            ssid = text[len("SSID:") :].strip() or None
        elif text.startswith("freq:"):
            try:
                band = band_from_frequency(float(text[len("freq:") :].split()[0]))
            except (IndexError, ValueError):
                band = None
        elif text.startswith("tx bitrate:"):
            match = _BITRATE_RE.search(text)
            if match:
                tx_rate = float(match.group(1))
    return WifiInfo(mode=wifi_mode_label(band), tx_rate_mbps=tx_rate, ssid=ssid)


@dataclass
class _Cached:
    value: dict
    fetched_at: float


@dataclass
class InterfaceMetadataResolver:
    """Resolve interface types, display names and Wi-Fi attributes.

    Both lookups shell out to slower system tools, so results are cached
    for a short time. A failed lookup returns an empty mapping.
    """

    platform: str = field(default_factory=lambda: sys.platform)
    info_ttl: float = 5.0
    wifi_ttl: float = 10.0
    sys_class_net: Path = Path("/sys/class/net")
    clock: Callable[[], float] = time.monotonic
    _info_cache: _Cached | None = None
    _wifi_cache: _Cached | None = None

    def interface_info(self) -> dict[str, InterfaceMetadata]:
        now = self.clock()
        if self._info_cache is not None and now - self._info_cache.fetched_at < self.info_ttl:
            return self._info_cache.value
        if self.platform == "darwin":
            info = self._darwin_interface_info()
        elif self.platform.startswith("linux"):
            info = self._linux_interface_info()
        else:
            info = {}
        self._info_cache = _Cached(info, now)
        return info

    def wifi_info(self) -> dict[str, WifiInfo]:
        now = self.clock()
        if self._wifi_cache is not None and now - self._wifi_cache.fetched_at < self.wifi_ttl:
            return self._wifi_cache.value
        if self.platform == "darwin":
            info = self._darwin_wifi_info()
        elif self.platform.startswith("linux"):
            info = self._linux_wifi_info()
        else:
            info = {}
        self._wifi_cache = _Cached(info, now)
        return info

    def _darwin_interface_info(self) -> dict[str, InterfaceMetadata]:
        try:
            output = run_command(["/usr/sbin/networksetup", "-listallhardwareports"], timeout=5.0)
        except CommandError as exc:
            logger.debug("Hardware port lookup failed: %s", exc)
            return {}
        return {
            device: InterfaceMetadata(type=classify_hardware_port(port), display_name=port)
            for device, port in parse_hardware_ports(output).items()
        }

    def _linux_interface_info(self) -> dict[str, InterfaceMetadata]:
        info: dict[str, InterfaceMetadata] = {}
        try:
            entries = list(self.sys_class_net.iterdir())
        except OSError as exc:
            logger.debug("Cannot list %s: %s", self.sys_class_net, exc)
            return {}
        for entry in entries:
            info[entry.name] = InterfaceMetadata(
                type=self._linux_type(entry), display_name=entry.name
            )
        return info

    @staticmethod
    def _linux_type(entry: Path) -> AdapterType:
        if (entry / "wireless").exists() or (entry / "phy80211").exists():
            return AdapterType.WIFI
        try:
            arp_type = (entry / "type").read_text().strip()
        except OSError:
            return AdapterType.OTHER
        if arp_type == ARPHRD_ETHER and (entry / "device").exists():
            return AdapterType.ETHERNET
        return AdapterType.OTHER

    def _darwin_wifi_info(self) -> dict[str, WifiInfo]:
        try:
            output = run_command(
                ["/usr/sbin/system_profiler", "SPAirPortDataType", "-json"], timeout=5.0
            )
            return parse_airport_json(json.loads(output))
        except (CommandError, ValueError) as exc:
            logger.debug("Wi-Fi lookup failed: %s", exc)
            return {}

    def _linux_wifi_info(self) -> dict[str, WifiInfo]:
        result: dict[str, WifiInfo] = {}
        for name, meta in self.interface_info().items():
            if meta.type is not AdapterType.WIFI:
                continue
            try:
                output = run_command(["iw", "dev", name, "link"], timeout=2.0)
            except CommandError as exc:
                logger.debug("Wi-Fi lookup for %s failed: %s", name, exc)
                continue
            result[name] = parse_iw_link(output)
        return result
