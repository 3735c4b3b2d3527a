"""Interface counter sampling using psutil."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import psutil

from netfluss.models import (
    IFF_BROADCAST,
    IFF_LOOPBACK,
    IFF_MULTICAST,
    IFF_POINTOPOINT,
    IFF_RUNNING,
    IFF_UP,
    InterfaceSample,
)

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

_FLAG_NAMES = {
    "up": IFF_UP,
    "broadcast": IFF_BROADCAST,
    "loopback": IFF_LOOPBACK,
    "pointopoint": IFF_POINTOPOINT,
    "running": IFF_RUNNING,
    "multicast": IFF_MULTICAST,
}


def flags_from_stats(stats: Any | None) -> int:
    """Build a BSD flag bitmask from a psutil ``snicstats`` entry."""
    if stats is None:
        return 0
    flags = 0
    for name in (getattr(stats, "flags", "") or "").split(","):
        flags |= _FLAG_NAMES.get(name.strip(), 0)
    if stats.isup:
        flags |= IFF_UP
    else:
        flags &= ~IFF_UP
    return flags


@dataclass
class CounterSampler:
    """Read raw per-interface byte counters from the OS."""

    def fetch_samples(self) -> list[InterfaceSample]:
        """Return one sample per interface that exposes link-level counters.

        Any failure to enumerate interfaces yields an empty list, which the
        caller treats as "no data this tick".
        """
        try:
            counters = psutil.net_io_counters(pernic=True, nowrap=False)
            stats = psutil.net_if_stats()
        except (psutil.Error, OSError) as exc:
            logger.debug("Interface enumeration failed: %s", exc)
            return []
        samples = []
        for name, io in counters.items():
            st = stats.get(name)
            speed_mbps = st.speed if st is not None and st.speed > 0 else 0
            samples.append(
                InterfaceSample(
                    name=name,
                    flags=flags_from_stats(st),
                    rx_bytes=int(io.bytes_recv),
                    tx_bytes=int(io.bytes_sent),
                    baudrate=int(speed_mbps) * 1_000_000,
                )
            )
        return samples
