"""Per-process traffic estimation from netstat connection counters.

macOS has no cheap per-process byte counter, but ``netstat -n -b -v``
lists every socket with cumulative rx/tx bytes and the owning pid. Summing
those per process and diffing two samples gives an approximate rate.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import PurePosixPath

import psutil

from netfluss.commands import CommandError, run_command
from netfluss.models import AppTraffic, ByteCounts, ProcessByteSnapshot
from netfluss.rates import rate

logger = logging.getLogger(__name__)

NETSTAT_COMMAND = ("/usr/sbin/netstat", "-n", "-b", "-v")

# Multi-word header names, joined so the header splits like the data rows.
_HEADER_ALIASES = {
    "Local Address": "Local-Address",
    "Foreign Address": "Foreign-Address",
}


class ProcessSamplerError(Exception):
    """Process traffic could not be sampled."""


class SchemaError(ProcessSamplerError):
    """netstat output does not have the expected columns."""


@dataclass(frozen=True)
class ColumnIndices:
    """Positions of the columns needed from a netstat row.

    Indices are for TCP rows. UDP rows have no state column, so every
    column after it moves one to the left.
    """

    rx: int
    tx: int
    pid: int | None = None
    state: int | None = None

    def for_protocol(self, proto: str) -> ColumnIndices:
        if self.state is None or not proto.startswith("udp"):
            return self

        def shift(index: int | None) -> int | None:
            if index is None or index < self.state:
                return index
            return index - 1

        return ColumnIndices(rx=shift(self.rx), tx=shift(self.tx), pid=shift(self.pid))


def resolve_columns(header: str) -> ColumnIndices:
    """Locate the byte and pid columns in a netstat header line."""
    for name, alias in _HEADER_ALIASES.items():
        header = header.replace(name, alias)
    columns = [column.lower() for column in header.split()]
    missing = [name for name in ("rxbytes", "txbytes") if name not in columns]
    if missing:
        raise SchemaError(
            f"netstat output has no {'/'.join(missing)} column; "
            "per-process byte counters are unavailable"
        )
    return ColumnIndices(
        rx=columns.index("rxbytes"),
        tx=columns.index("txbytes"),
        pid=columns.index("pid") if "pid" in columns else None,
        state=columns.index("(state)") if "(state)" in columns else None,
    )


def _pid_from_token(token: str) -> int | None:
    """Return the pid of a ``name:pid`` token, or None for anything else."""
    if ":" not in token:
        return None
    tail = token.rsplit(":", 1)[1]
    return int(tail) if tail.isdigit() else None


def _parse_int(parts: list[str], index: int | None) -> int | None:
    if index is None or index >= len(parts):
        return None
    try:
        return int(parts[index])
    except ValueError:
        return None


def parse_netstat(output: str) -> dict[int, ByteCounts]:
    """Sum cumulative socket bytes per pid.

    Raises SchemaError if no usable header is found and
    ProcessSamplerError if not a single row could be parsed.
    """
    columns: ColumnIndices | None = None
    schema_error: SchemaError | None = None
    parsed_rows = 0
    per_pid: dict[int, ByteCounts] = {}
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            continue
        if parts[0] == "Proto":
            try:
                columns = resolve_columns(line)
            except SchemaError as exc:
                schema_error = exc
                columns = None
            continue
        proto = parts[0]
        if columns is None or not proto.startswith(("tcp", "udp")):
            continue
        indices = columns.for_protocol(proto)
        rx = _parse_int(parts, indices.rx)
        tx = _parse_int(parts, indices.tx)
        if rx is None or tx is None:
            continue
        # Newer netstat appends a "name:pid" token; older releases only have
        # the numeric pid column. Addresses (columns 3 and 4) never match.
        pid = next(
            (p for p in (_pid_from_token(t) for t in parts[5:]) if p is not None),
            None,
        )
        if pid is None:
            pid = _parse_int(parts, indices.pid)
        if pid is None or pid <= 0:
            continue
        parsed_rows += 1
        if rx == 0 and tx == 0:
            continue
        prev = per_pid.get(pid, ByteCounts(0, 0))
        per_pid[pid] = ByteCounts(prev.rx + rx, prev.tx + tx)
    if parsed_rows == 0:
        if schema_error is not None:
            raise schema_error
        raise ProcessSamplerError("netstat returned no parsable connection rows")
    return per_pid


def display_name_from_path(path: str) -> str | None:
    """Derive an application name from an executable path.

    Executables inside an application bundle are named after the outermost
    bundle, so helpers nested in ``Foo.app`` are reported as ``Foo``.
    """
    if not path:
        return None
    lowered = path.lower()
    bundle_end = lowered.find(".app/")
    if bundle_end != -1:
        name = PurePosixPath(path[:bundle_end]).name
        if name:
            return name
    name = PurePosixPath(path).stem
    return name or None


def rates(
    current: ProcessByteSnapshot,
    previous: ProcessByteSnapshot,
    elapsed: float,
    limit: int,
) -> list[AppTraffic]:
    """Rank processes by combined rx+tx rate between two snapshots.

    A process missing from the previous snapshot has no baseline yet and
    reports no traffic for this interval.
    """
    if elapsed <= 0 or limit <= 0:
        return []
    apps = []
    for name, counts in current.items():
        prev = previous.get(name)
        rx_rate = rate(counts.rx, prev.rx if prev else None, elapsed)
        tx_rate = rate(counts.tx, prev.tx if prev else None, elapsed)
        if rx_rate <= 0 and tx_rate <= 0:
            continue
        apps.append(AppTraffic(key=name, name=name, rx_rate_bps=rx_rate, tx_rate_bps=tx_rate))
    apps.sort(key=lambda app: app.total_rate_bps, reverse=True)
    return apps[:limit]


@dataclass
class ProcessTrafficSampler:
    """Snapshot cumulative network bytes per application."""

    command: tuple[str, ...] = NETSTAT_COMMAND
    timeout: float = 10.0
    _names: dict[int, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def sample(self) -> ProcessByteSnapshot:
        try:
            output = run_command(self.command, timeout=self.timeout)
        except CommandError as exc:
            raise ProcessSamplerError(f"cannot run netstat ({exc.reason})") from exc
        per_pid = parse_netstat(output)
        snapshot: ProcessByteSnapshot = {}
        with self._lock:
            for pid, counts in per_pid.items():
                name = self._process_name(pid) or f"PID {pid}"
                prev = snapshot.get(name, ByteCounts(0, 0))
                snapshot[name] = ByteCounts(prev.rx + counts.rx, prev.tx + counts.tx)
            self._cleanup_stale_names(per_pid.keys())
        return snapshot

    def _process_name(self, pid: int) -> str | None:
        """Get a cached display name for a pid, resolving it if needed."""
        if pid in self._names:
            return self._names[pid]
        try:
            proc = psutil.Process(pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return None
        try:
            name = display_name_from_path(proc.exe())
        except (psutil.AccessDenied, psutil.ZombieProcess, OSError):
            name = None
        except psutil.NoSuchProcess:
            return None
        if name is None:
            try:
                name = proc.name() or None
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                return None
        if name is not None:
            self._names[pid] = name
        return name

    def _cleanup_stale_names(self, active_pids) -> None:
        """Forget names of pids that no longer own sockets."""
        stale = set(self._names) - set(active_pids)
        for pid in stale:
            del self._names[pid]
