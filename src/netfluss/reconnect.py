"""Power-cycle network adapters."""

from __future__ import annotations

import logging
import time

from netfluss.commands import CommandError, run_command, run_quietly
from netfluss.metadata import parse_hardware_ports
from netfluss.models import AdapterType

logger = logging.getLogger(__name__)

NETWORKSETUP = "/usr/sbin/networksetup"
OSASCRIPT = "/usr/bin/osascript"
WIFI_OFF_SECONDS = 1.5


def is_safe_interface_name(name: str) -> bool:
    """Interface names are interpolated into a shell script; allow only [A-Za-z0-9]."""
    return bool(name) and name.isascii() and name.isalnum()


def hardware_port_name(bsd_name: str) -> str:
    """Return the hardware port (e.g. "Wi-Fi") for a BSD name, or the name itself."""
    try:
        output = run_command([NETWORKSETUP, "-listallhardwareports"], timeout=5.0)
    except CommandError as exc:
        logger.debug("Hardware port lookup failed: %s", exc)
        return bsd_name
    return parse_hardware_ports(output).get(bsd_name, bsd_name)


def power_cycle(bsd_name: str, adapter_type: AdapterType, sleep=time.sleep) -> None:
    """Turn an adapter off and on again. Failures are logged, not raised."""
    if not is_safe_interface_name(bsd_name):
        logger.warning("Refusing to reconnect interface with unsafe name %r", bsd_name)
        return
    if adapter_type is AdapterType.WIFI:
        port = hardware_port_name(bsd_name)
        run_quietly([NETWORKSETUP, "-setairportpower", port, "off"])
        sleep(WIFI_OFF_SECONDS)
        run_quietly([NETWORKSETUP, "-setairportpower", port, "on"])
    elif adapter_type is AdapterType.ETHERNET:
        script = (
            f'do shell script "ifconfig {bsd_name} down && sleep 1 && '
            f'ifconfig {bsd_name} up" with administrator privileges'
        )
        run_quietly([OSASCRIPT, "-e", script], timeout=120.0)
