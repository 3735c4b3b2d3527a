"""Runtime configuration."""

from __future__ import annotations

from dataclasses import dataclass

from netfluss.addresses import EXTERNAL_IP_URL

MIN_REFRESH_INTERVAL = 0.2
MAX_REFRESH_INTERVAL = 10.0


def clamp_interval(interval: float) -> float:
    return max(MIN_REFRESH_INTERVAL, min(interval, MAX_REFRESH_INTERVAL))


@dataclass
class MonitorConfig:
    """Settings read by the poll loop on every tick."""

    refresh_interval: float = 1.0
    show_top_apps: bool = False
    top_apps_limit: int = 5
    use_bits: bool = False
    show_inactive: bool = False
    show_other_adapters: bool = False
    top_apps_min_interval: float = 2.0
    gateway_refresh_interval: float = 10.0
    external_ip_refresh_interval: float = 60.0
    external_ip_url: str = EXTERNAL_IP_URL
