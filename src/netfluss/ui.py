"""Interactive TUI using textual."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Header, Static

from netfluss.models import AdapterType
from netfluss.rates import format_link_speed, format_mbps, format_rate

if TYPE_CHECKING:
    from netfluss.aggregator import NetworkMonitor
    from netfluss.config import MonitorConfig
    from netfluss.models import AdapterStatus, NetworkSnapshot

RESTRICTED_MESSAGE = "No data — possibly restricted"


def visible_adapters(snapshot: NetworkSnapshot, config: MonitorConfig) -> list[AdapterStatus]:
    """Apply the inactive/other-adapter display filters."""
    adapters = []
    for adapter in snapshot.adapters:
        if not config.show_inactive and not adapter.is_up:
            continue
        if not config.show_other_adapters and adapter.type is AdapterType.OTHER:
            continue
        adapters.append(adapter)
    return adapters


def describe_link(adapter: AdapterStatus, use_bits: bool) -> str:
    if adapter.type is AdapterType.WIFI:
        parts = [adapter.wifi_mode or "Wi-Fi"]
        if adapter.wifi_ssid:
            parts.append(adapter.wifi_ssid)
        if adapter.wifi_tx_rate_mbps:
            parts.append(format_mbps(adapter.wifi_tx_rate_mbps))
        return " · ".join(parts)
    if adapter.type is AdapterType.ETHERNET:
        return format_link_speed(adapter.link_speed_bps, use_bits)
    return ""


class SummaryDisplay(Static):
    """Widget displaying totals and addresses."""

    def update_summary(self, snapshot: NetworkSnapshot, use_bits: bool) -> None:
        totals = snapshot.totals
        text = (
            f"↓ {format_rate(totals.rx_rate_bps, use_bits)} | "
            f"↑ {format_rate(totals.tx_rate_bps, use_bits)} | "
            f"Internal: {snapshot.internal_ip} | "
            f"Gateway: {snapshot.gateway_ip} | "
            f"External: {snapshot.external_ip}"
        )
        self.update(text)


class NetflussApp(App[None]):
    """Main netfluss TUI application."""

    CSS = """
    Screen {
        background: $surface;
    }
    #summary-display {
        dock: top;
        height: 1;
        background: $primary-background;
        color: $text;
        padding: 0 1;
    }
    #adapter-container {
        height: 1fr;
    }
    #apps-container {
        height: 12;
    }
    DataTable {
        height: 100%;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("b", "toggle_bits", "Bits/Bytes"),
        Binding("t", "toggle_top_apps", "Top Apps"),
        Binding("i", "toggle_inactive", "Inactive"),
        Binding("o", "toggle_other", "Other"),
        Binding("r", "reconnect", "Reconnect"),
    ]

    def __init__(self, monitor: NetworkMonitor) -> None:
        super().__init__()
        self._monitor = monitor
        self._config = monitor.config
        self._shown: list[AdapterStatus] = []

    def compose(self) -> ComposeResult:
        """Compose the app layout."""
        yield Header()
        yield SummaryDisplay(id="summary-display")
        yield Container(DataTable(id="adapter-table"), id="adapter-container")
        yield Container(DataTable(id="apps-table"), id="apps-container")
        yield Footer()

    def on_mount(self) -> None:
        """Set up the tables and start refresh timer."""
        adapters = self.query_one("#adapter-table", DataTable)
        adapters.add_columns("Adapter", "Device", "Status", "Download", "Upload", "Link")
        adapters.cursor_type = "row"
        apps = self.query_one("#apps-table", DataTable)
        apps.add_columns("Application", "Download", "Upload")
        self.set_interval(self._config.refresh_interval, self._refresh_tables)

    def _refresh_tables(self) -> None:
        snapshot = self._monitor.snapshot()
        use_bits = self._config.use_bits
        self.query_one("#summary-display", SummaryDisplay).update_summary(snapshot, use_bits)

        table = self.query_one("#adapter-table", DataTable)
        cursor = table.cursor_row
        table.clear()
        self._shown = visible_adapters(snapshot, self._config)
        for adapter in self._shown:
            if adapter.id in snapshot.reconnecting:
                status = "reconnecting"
            else:
                status = "up" if adapter.is_up else "down"
            table.add_row(
                adapter.display_name[:30],
                adapter.id,
                status,
                format_rate(adapter.rx_rate_bps, use_bits),
                format_rate(adapter.tx_rate_bps, use_bits),
                describe_link(adapter, use_bits),
            )
        if self._shown:
            table.move_cursor(row=min(cursor, len(self._shown) - 1))

        container = self.query_one("#apps-container", Container)
        container.display = self._config.show_top_apps
        apps = self.query_one("#apps-table", DataTable)
        apps.clear()
        if snapshot.top_apps_error:
            apps.add_row(f"{RESTRICTED_MESSAGE} ({snapshot.top_apps_error})", "", "")
        for app in snapshot.top_apps:
            apps.add_row(
                app.name[:40],
                format_rate(app.rx_rate_bps, use_bits),
                format_rate(app.tx_rate_bps, use_bits),
            )

    def action_toggle_bits(self) -> None:
        self._config.use_bits = not self._config.use_bits
        self._refresh_tables()

    def action_toggle_top_apps(self) -> None:
        self._config.show_top_apps = not self._config.show_top_apps
        self._refresh_tables()

    def action_toggle_inactive(self) -> None:
        self._config.show_inactive = not self._config.show_inactive
        self._refresh_tables()

    def action_toggle_other(self) -> None:
        self._config.show_other_adapters = not self._config.show_other_adapters
        self._refresh_tables()

    def action_reconnect(self) -> None:
        """Power-cycle the selected adapter."""
        table = self.query_one("#adapter-table", DataTable)
        row = table.cursor_row
        if 0 <= row < len(self._shown):
            adapter = self._shown[row]
            if self._monitor.reconnect(adapter):
                self.notify(f"Reconnecting {adapter.display_name}")
