"""Local, gateway and external IP address lookups."""

from __future__ import annotations

import logging
import socket
import sys

import psutil
import requests

from netfluss.commands import CommandError, run_command
from netfluss.models import PLACEHOLDER

logger = logging.getLogger(__name__)

EXTERNAL_IP_URL = "https://api.ipify.org"
PREFERRED_INTERFACE = "en0"


def _usable_ipv4(ip: str) -> bool:
    return bool(ip) and ip != "0.0.0.0" and not ip.startswith(("169.254.", "127."))


def primary_internal_ip() -> str:
    """Return the main LAN IPv4 address, preferring en0."""
    try:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (psutil.Error, OSError) as exc:
        logger.debug("Address enumeration failed: %s", exc)
        return PLACEHOLDER
    fallback = None
    for name, iface_addrs in addrs.items():
        st = stats.get(name)
        if st is None or not st.isup or "loopback" in (getattr(st, "flags", "") or ""):
            continue
        for addr in iface_addrs:
            if addr.family != socket.AF_INET or not _usable_ipv4(addr.address):
                continue
            if name == PREFERRED_INTERFACE:
                return addr.address
            if fallback is None:
                fallback = addr.address
    return fallback or PLACEHOLDER


def parse_route_gateway(output: str) -> str | None:
    """Parse ``route -n get default`` (macOS) or ``ip route show default``."""
    for line in output.splitlines():
        text = line.strip()
        if text.startswith("gateway:"):
            gateway = text[len("gateway:") :].strip()
            return gateway or None
        parts = text.split()
        if parts and parts[0] == "default" and "via" in parts:
            index = parts.index("via") + 1
            if index < len(parts):
                return parts[index]
    return None


def default_gateway_ip(platform: str | None = None) -> str:
    platform = platform or sys.platform
    if platform == "darwin":
        command = ["/sbin/route", "-n", "get", "default"]
    else:
        command = ["ip", "route", "show", "default"]
    try:
        output = run_command(command, timeout=3.0)
    except CommandError as exc:
        logger.debug("Gateway lookup failed: %s", exc)
        return PLACEHOLDER
    return parse_route_gateway(output) or PLACEHOLDER


def fetch_external_ip(url: str = EXTERNAL_IP_URL, timeout: float = 5.0) -> str | None:
    """Ask a public echo service for this host's external address."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.debug("External IP lookup failed: %s", exc)
        return None
    ip = response.text.strip()
    return ip or None
