"""Poll loop that turns interface counters into one published snapshot per tick."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from netfluss.addresses import default_gateway_ip, fetch_external_ip, primary_internal_ip
from netfluss.channels import SideChannel
from netfluss.config import MonitorConfig, clamp_interval
from netfluss.metadata import InterfaceMetadataResolver
from netfluss.models import (
    PLACEHOLDER,
    AdapterStatus,
    AdapterType,
    InterfaceMetadata,
    InterfaceSample,
    NetworkSnapshot,
    ProcessByteSnapshot,
    RateTotals,
    WifiInfo,
)
from netfluss.processes import ProcessTrafficSampler, rates
from netfluss.rates import rate
from netfluss.reconnect import is_safe_interface_name, power_cycle
from netfluss.sampler import CounterSampler

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from concurrent.futures import Executor, Future
    from typing import Any

logger = logging.getLogger(__name__)

# Process snapshots closer together than this give meaningless rates.
MIN_PROCESS_ELAPSED = 0.1


@dataclass
class RateTracker:
    """Previous interface samples, owned and mutated only by the poll loop."""

    last_samples: dict[str, InterfaceSample] = field(default_factory=dict)
    last_update: float | None = None

    def advance(
        self,
        samples: Iterable[InterfaceSample],
        info_map: dict[str, InterfaceMetadata],
        wifi_map: dict[str, WifiInfo],
        now: float,
    ) -> tuple[list[AdapterStatus], RateTotals]:
        """Compute adapter statuses for a new reading and make it the baseline."""
        samples = list(samples)
        delta_time = now - self.last_update if self.last_update is not None else 0.0
        adapters = []
        total_rx = 0.0
        total_tx = 0.0
        for sample in samples:
            previous = self.last_samples.get(sample.name)
            rx_rate = rate(sample.rx_bytes, previous.rx_bytes if previous else None, delta_time)
            tx_rate = rate(sample.tx_bytes, previous.tx_bytes if previous else None, delta_time)
            info = info_map.get(sample.name)
            adapter_type = info.type if info else AdapterType.OTHER
            wifi = wifi_map.get(sample.name)
            link_speed = (
                sample.baudrate
                if adapter_type is AdapterType.ETHERNET and sample.baudrate > 0
                else None
            )
            adapters.append(
                AdapterStatus(
                    id=sample.name,
                    display_name=info.display_name if info else sample.name,
                    type=adapter_type,
                    is_up=sample.is_up,
                    link_speed_bps=link_speed,
                    wifi_mode=wifi.mode if wifi else None,
                    wifi_tx_rate_mbps=wifi.tx_rate_mbps if wifi else None,
                    wifi_ssid=wifi.ssid if wifi else None,
                    rx_bytes=sample.rx_bytes,
                    tx_bytes=sample.tx_bytes,
                    rx_rate_bps=rx_rate,
                    tx_rate_bps=tx_rate,
                )
            )
            total_rx += rx_rate
            total_tx += tx_rate
        adapters.sort(key=lambda a: (a.display_name.casefold(), a.id))
        self.last_samples = {sample.name: sample for sample in samples}
        self.last_update = now
        return adapters, RateTotals(rx_rate_bps=total_rx, tx_rate_bps=total_tx)


@dataclass
class NetworkMonitor:
    """Sample adapters on a fixed cadence and publish a combined snapshot.

    Ticks run on a single poll thread and are serialized, so the rate
    baseline needs no further locking. Slow lookups (process traffic,
    gateway and external IP) run on a worker pool as side channels and are
    merged into a later tick once they finish.
    """

    config: MonitorConfig = field(default_factory=MonitorConfig)
    counter_sampler: CounterSampler = field(default_factory=CounterSampler)
    metadata_resolver: InterfaceMetadataResolver = field(
        default_factory=InterfaceMetadataResolver
    )
    process_sampler: ProcessTrafficSampler = field(default_factory=ProcessTrafficSampler)
    internal_ip_lookup: Callable[[], str] = primary_internal_ip
    gateway_lookup: Callable[[], str] = default_gateway_ip
    external_ip_lookup: Callable[[str], str | None] = fetch_external_ip
    reconnector: Callable[[str, AdapterType], None] = power_cycle
    clock: Callable[[], float] = time.monotonic
    executor: Executor | None = None
    _tracker: RateTracker = field(default_factory=RateTracker)
    _snapshot: NetworkSnapshot = field(default_factory=NetworkSnapshot)
    _tick_count: int = 0
    _process_snapshot: ProcessByteSnapshot | None = None
    _process_snapshot_time: float | None = None
    _reconnects: dict[str, Future] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _tick_lock: threading.Lock = field(default_factory=threading.Lock)
    _thread: threading.Thread | None = None
    _stop_event: threading.Event | None = None
    _interval: float | None = None
    _owns_executor: bool = field(default=False, init=False)
    _top_apps_channel: SideChannel[ProcessByteSnapshot] = field(init=False, repr=False)
    _gateway_channel: SideChannel[str] = field(init=False, repr=False)
    _external_ip_channel: SideChannel[str | None] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.executor is None:
            self.executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="netfluss")
            self._owns_executor = True
        self._top_apps_channel = SideChannel(
            name="process traffic",
            fetch=self.process_sampler.sample,
            min_interval=self.config.top_apps_min_interval,
            executor=self.executor,
            clock=self.clock,
        )
        self._gateway_channel = SideChannel(
            name="gateway",
            fetch=self.gateway_lookup,
            min_interval=self.config.gateway_refresh_interval,
            executor=self.executor,
            clock=self.clock,
        )
        self._external_ip_channel = SideChannel(
            name="external IP",
            fetch=lambda: self.external_ip_lookup(self.config.external_ip_url),
            min_interval=self.config.external_ip_refresh_interval,
            executor=self.executor,
            clock=self.clock,
        )

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None

    @property
    def interval(self) -> float | None:
        with self._lock:
            return self._interval

    def start(self, interval: float) -> None:
        """Poll every ``interval`` seconds (clamped to 0.2-10 s), first tick now.

        Starting again with the same clamped interval is a no-op; a different
        interval replaces the running schedule.
        """
        clamped = clamp_interval(interval)
        with self._lock:
            if self._thread is not None and self._interval == clamped:
                return
            if self._stop_event is not None:
                self._stop_event.set()
            self._interval = clamped
            self.config.refresh_interval = clamped
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._poll_loop,
                args=(clamped, stop_event),
                name="netfluss-poll",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
        logger.debug("Polling every %.2fs", clamped)
        thread.start()

    def stop(self) -> None:
        """Cancel the poll schedule."""
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
            self._interval = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)

    def close(self) -> None:
        """Stop polling and release the worker pool if this monitor created it."""
        self.stop()
        if self._owns_executor and self.executor is not None:
            self.executor.shutdown(wait=False, cancel_futures=True)

    def _poll_loop(self, interval: float, stop_event: threading.Event) -> None:
        next_tick = time.monotonic()
        while not stop_event.is_set():
            with self._tick_lock:
                # A replaced schedule must not tick after its successor started.
                if stop_event.is_set():
                    break
                try:
                    self._tick()
                except Exception:
                    logger.exception("Poll tick failed")
            next_tick += interval
            delay = next_tick - time.monotonic()
            if delay < 0:
                next_tick = time.monotonic()
                delay = 0.0
            stop_event.wait(delay)

    def snapshot(self) -> NetworkSnapshot:
        """Return the most recently published snapshot."""
        with self._lock:
            return self._snapshot

    def _publish(self, snapshot: NetworkSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def tick(self) -> NetworkSnapshot:
        """Run one aggregation cycle and return the published snapshot."""
        with self._tick_lock:
            return self._tick()

    @staticmethod
    def _fetch(what: str, fetch: Callable[[], Any], default: Any) -> Any:
        try:
            return fetch()
        except Exception as exc:
            logger.debug("%s lookup failed: %s", what, exc)
            return default

    def _tick(self) -> NetworkSnapshot:
        now = self.clock()
        samples = self._fetch("Counter", self.counter_sampler.fetch_samples, [])
        info_map = self._fetch("Interface info", self.metadata_resolver.interface_info, {})
        wifi_map = self._fetch("Wi-Fi info", self.metadata_resolver.wifi_info, {})
        internal_ip = self._fetch("Internal IP", self.internal_ip_lookup, PLACEHOLDER)
        adapters, totals = self._tracker.advance(samples, info_map, wifi_map, now)
        self._tick_count += 1
        snapshot = replace(
            self.snapshot(),
            adapters=tuple(adapters),
            totals=totals,
            internal_ip=internal_ip or PLACEHOLDER,
            tick=self._tick_count,
            timestamp=time.time(),
        )
        # Interface rates go out before any side channel is looked at.
        self._publish(snapshot)
        snapshot = replace(snapshot, **self._service_side_channels())
        self._publish(snapshot)
        return snapshot

    def _service_side_channels(self) -> dict[str, object]:
        changes: dict[str, object] = {}
        changes.update(self._update_top_apps())

        gateway = self._gateway_channel.collect()
        if gateway is not None:
            changes["gateway_ip"] = (gateway.value if gateway.ok else None) or PLACEHOLDER
        self._gateway_channel.min_interval = self.config.gateway_refresh_interval
        self._gateway_channel.request()

        external = self._external_ip_channel.collect()
        if external is not None:
            changes["external_ip"] = (external.value if external.ok else None) or PLACEHOLDER
        self._external_ip_channel.min_interval = self.config.external_ip_refresh_interval
        self._external_ip_channel.request()

        changes["reconnecting"] = self._collect_reconnects()
        return changes

    def _update_top_apps(self) -> dict[str, object]:
        if not self.config.show_top_apps:
            # Drop any finished sample so re-enabling starts from a fresh baseline.
            self._top_apps_channel.collect()
            self._top_apps_channel.reset()
            self._process_snapshot = None
            self._process_snapshot_time = None
            return {"top_apps": (), "top_apps_error": None}
        changes: dict[str, object] = {}
        result = self._top_apps_channel.collect()
        if result is not None and result.ok:
            previous = self._process_snapshot
            previous_time = self._process_snapshot_time
            if previous and previous_time is not None:
                elapsed = result.started_at - previous_time
                if elapsed >= MIN_PROCESS_ELAPSED:
                    changes["top_apps"] = tuple(
                        rates(result.value, previous, elapsed, self.config.top_apps_limit)
                    )
            changes["top_apps_error"] = None
            self._process_snapshot = result.value
            self._process_snapshot_time = result.started_at
        elif result is not None:
            changes["top_apps"] = ()
            changes["top_apps_error"] = str(result.error)
            self._process_snapshot = None
            self._process_snapshot_time = None
        self._top_apps_channel.min_interval = self.config.top_apps_min_interval
        self._top_apps_channel.request()
        return changes

    def reconnect(self, adapter: AdapterStatus) -> bool:
        """Power-cycle a Wi-Fi or Ethernet adapter in the background.

        Returns False if the adapter cannot be reconnected or already is
        being reconnected.
        """
        if adapter.type not in (AdapterType.WIFI, AdapterType.ETHERNET):
            return False
        if not is_safe_interface_name(adapter.id):
            logger.warning("Not reconnecting %r: unexpected interface name", adapter.id)
            return False
        with self._lock:
            if adapter.id in self._reconnects:
                return False
            self._reconnects[adapter.id] = self.executor.submit(
                self.reconnector, adapter.id, adapter.type
            )
            self._snapshot = replace(self._snapshot, reconnecting=frozenset(self._reconnects))
        logger.info("Reconnecting %s", adapter.id)
        return True

    def _collect_reconnects(self) -> frozenset[str]:
        with self._lock:
            for adapter_id, future in list(self._reconnects.items()):
                if future.done():
                    del self._reconnects[adapter_id]
            return frozenset(self._reconnects)
