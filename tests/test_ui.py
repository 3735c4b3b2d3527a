"""Tests for presentation helpers."""

from __future__ import annotations

from netfluss.config import MonitorConfig
from netfluss.models import AdapterStatus, AdapterType, NetworkSnapshot
from netfluss.ui import describe_link, visible_adapters


def make_adapter(adapter_id, adapter_type, is_up=True, **kwargs):
    fields = dict(
        id=adapter_id,
        display_name=adapter_id,
        type=adapter_type,
        is_up=is_up,
        link_speed_bps=None,
        wifi_mode=None,
        wifi_tx_rate_mbps=None,
        wifi_ssid=None,
        rx_bytes=0,
        tx_bytes=0,
        rx_rate_bps=0.0,
        tx_rate_bps=0.0,
    )
    fields.update(kwargs)
    return AdapterStatus(**fields)


class TestVisibleAdapters:
    """Test adapter display filters."""

    def test_default_hides_inactive_and_other(self):
        """By default only active Wi-Fi and Ethernet adapters are shown."""
        snapshot = NetworkSnapshot(
            adapters=(
                make_adapter("en0", AdapterType.WIFI),
                make_adapter("en7", AdapterType.ETHERNET, is_up=False),
                make_adapter("utun0", AdapterType.OTHER),
            )
        )
        shown = visible_adapters(snapshot, MonitorConfig())
        assert [a.id for a in shown] == ["en0"]

    def test_show_all(self):
        """Both filters can be turned off."""
        snapshot = NetworkSnapshot(
            adapters=(
                make_adapter("en7", AdapterType.ETHERNET, is_up=False),
                make_adapter("utun0", AdapterType.OTHER),
            )
        )
        config = MonitorConfig(show_inactive=True, show_other_adapters=True)
        assert len(visible_adapters(snapshot, config)) == 2


class TestDescribeLink:
    """Test the link column text."""

    def test_wifi(self):
        """Wi-Fi links show mode, SSID and rate."""
        adapter = make_adapter(
            "en0",
            AdapterType.WIFI,
            wifi_mode="Wi-Fi (5 GHz)",
            wifi_ssid="home",
            wifi_tx_rate_mbps=866.0,
        )
        assert describe_link(adapter, use_bits=False) == "Wi-Fi (5 GHz) · home · 866 Mb/s"

    def test_ethernet(self):
        """Ethernet links show the link speed."""
        adapter = make_adapter("en7", AdapterType.ETHERNET, link_speed_bps=1_000_000_000)
        assert describe_link(adapter, use_bits=True) == "1.00 Gb/s"

    def test_other(self):
        """Other adapters have no link text."""
        assert describe_link(make_adapter("utun0", AdapterType.OTHER), use_bits=False) == ""
