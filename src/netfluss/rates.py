"""Rate computation from cumulative counters and rate formatting."""

from __future__ import annotations

from netfluss.models import PLACEHOLDER

BYTE_UNITS = ("B/s", "KB/s", "MB/s", "GB/s", "TB/s")
BIT_UNITS = ("b/s", "Kb/s", "Mb/s", "Gb/s", "Tb/s")


def rate(current: int, previous: int | None, delta_time: float) -> float:
    """Convert two readings of a cumulative counter into a per-second rate.

    A missing previous reading or a non-positive interval yields 0. A counter
    that went backwards (interface reset, wraparound, replaced adapter) is
    treated as no traffic for the interval.
    """
    if previous is None or delta_time <= 0:
        return 0.0
    delta = current - previous if current >= previous else 0
    return delta / delta_time


def _scale(value: float, units: tuple[str, ...]) -> str:
    unit_index = 0
    while value >= 1000.0 and unit_index < len(units) - 1:
        value /= 1000.0
        unit_index += 1
    if value < 10:
        text = f"{value:.2f}"
    elif value < 100:
        text = f"{value:.1f}"
    else:
        text = f"{value:.0f}"
    return f"{text} {units[unit_index]}"


def format_rate(bytes_per_second: float, use_bits: bool = False) -> str:
    """Format a rate in bytes/second using decimal (SI) units."""
    value = max(0.0, bytes_per_second)
    if use_bits:
        return _scale(value * 8.0, BIT_UNITS)
    return _scale(value, BYTE_UNITS)


def format_link_speed(bits_per_second: int | None, use_bits: bool = False) -> str:
    """Format a link speed given in bits/second."""
    if bits_per_second is None:
        return PLACEHOLDER
    if use_bits:
        return _scale(float(bits_per_second), BIT_UNITS)
    return _scale(bits_per_second / 8.0, BYTE_UNITS)


def format_mbps(value: float | None) -> str:
    if value is None:
        return PLACEHOLDER
    if value >= 1000:
        return f"{value / 1000.0:.1f} Gb/s"
    return f"{value:.0f} Mb/s"
