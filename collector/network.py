"""
Network throughput from cumulative byte counters.

Sources only report the running totals; `RateTracker` keeps the previous
observation and turns two of them into bytes/sec.
"""

from __future__ import annotations

import subprocess
import sys
import time
from typing import Callable, Protocol, Tuple

import psutil

from collector.models import NetworkCounterState

NETSTAT_TIMEOUT_S = 10.0


class NetworkStatsError(Exception):
    """Counters could not be read, or no rate can be derived from them."""


class ClockRegressionError(NetworkStatsError):
    """Wall clock moved backwards between two observations."""


class NetworkStatsSource(Protocol):
    def read_counters(self) -> Tuple[int, int]:
        """Return cumulative (bytes_received, bytes_sent)."""
        ...


class PsutilNetworkSource:
    def read_counters(self) -> Tuple[int, int]:
        try:
            counters = psutil.net_io_counters()
        except (OSError, psutil.Error) as exc:
            raise NetworkStatsError(f"psutil.net_io_counters failed: {exc}") from exc
        if counters is None:
            raise NetworkStatsError("no network interfaces reported")
        return counters.bytes_recv, counters.bytes_sent


def parse_netstat_output(text: str) -> Tuple[int, int]:
    """
    Pull the byte counters out of `netstat -e`:

        Interface Statistics

                                   Received            Sent

        Bytes                    3035468923       259134588
        ...

    Line 4 holds the totals; fields 1 and 2 are received and sent. The row
    must be exactly `<label> <received> <sent>`: on Linux `netstat -e` is
    the extended socket table, whose rows are longer.
    """
    lines = text.splitlines()
    if len(lines) < 5:
        raise NetworkStatsError("Unexpected output from netstat -e")

    parts = lines[4].split()
    if len(parts) != 3:
        raise NetworkStatsError(f"Unexpected output from netstat -e: {lines[4].strip()!r}")

    try:
        received = int(parts[1])
        sent = int(parts[2])
    except ValueError as exc:
        raise NetworkStatsError(f"non-numeric byte counters in netstat -e: {parts[1:3]}") from exc
    if received < 0 or sent < 0:
        raise NetworkStatsError(f"negative byte counters in netstat -e: {parts[1:3]}")
    return received, sent


def netstat_supported() -> bool:
    # Only Windows' netstat prints interface byte totals for -e.
    return sys.platform == "win32"


class NetstatNetworkSource:
    """Shells out to `netstat -e` (the Windows interface statistics table)."""

    command = ["cmd", "/C", "netstat", "-e"]

    def __init__(self, timeout: float = NETSTAT_TIMEOUT_S) -> None:
        self.timeout = timeout

    def read_counters(self) -> Tuple[int, int]:
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise NetworkStatsError(f"netstat -e failed: {exc}") from exc
        return parse_netstat_output(result.stdout)


def make_network_source(name: str) -> NetworkStatsSource:
    if name == "psutil":
        return PsutilNetworkSource()
    if name == "netstat":
        return NetstatNetworkSource()
    raise ValueError(f"unknown network source: {name!r}")


class RateTracker:
    """
    Owns the last counter observation and derives download/upload rates.

    Elapsed time is measured in whole wall-clock seconds on both sides of
    the division. The first successful update only records a baseline and
    reports (0.0, 0.0).
    """

    def __init__(self, source: NetworkStatsSource, clock: Callable[[], float] = time.time) -> None:
        self._source = source
        self._clock = clock
        self._state = NetworkCounterState()

    @property
    def state(self) -> NetworkCounterState:
        return self._state

    def update(self) -> Tuple[float, float]:
        received, sent = self._source.read_counters()
        now = int(self._clock())

        prev = self._state
        if prev.last_sample_time == 0:
            self._store(received, sent, now)
            return 0.0, 0.0

        elapsed = now - prev.last_sample_time
        if elapsed < 0:
            # Re-baseline; the next tick measures against the new clock.
            self._store(received, sent, now)
            raise ClockRegressionError(
                f"clock moved back {-elapsed}s since last sample; baseline reset"
            )
        if elapsed == 0:
            raise NetworkStatsError("no time elapsed since last sample")

        # Python ints never wrap: a counter reset shows up as a negative rate.
        download_rate = (received - prev.bytes_received) / elapsed
        upload_rate = (sent - prev.bytes_sent) / elapsed

        self._store(received, sent, now)
        return float(download_rate), float(upload_rate)

    def _store(self, received: int, sent: int, now: int) -> None:
        self._state = NetworkCounterState(
            bytes_received=received,
            bytes_sent=sent,
            last_sample_time=now,
        )
