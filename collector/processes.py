from __future__ import annotations

from typing import Iterable, Iterator, Protocol

import psutil

from collector.models import ProcessUsage


class SystemStatsSource(Protocol):
    def cpu_percent(self) -> float: ...

    def used_memory(self) -> int: ...

    def processes(self) -> Iterable[ProcessUsage]: ...


class PsutilSystemSource:
    """
    Global CPU, used memory and the process table from psutil.

    Both the global and per-process CPU figures are deltas since the
    previous call, so the first reading after start-up is 0.0. The
    constructor primes the global counter; psutil keeps `Process` objects
    between `process_iter` calls, which primes the per-process ones after
    the first tick.
    """

    def __init__(self) -> None:
        psutil.cpu_percent(interval=None)

    def cpu_percent(self) -> float:
        return float(psutil.cpu_percent(interval=None))

    def used_memory(self) -> int:
        return psutil.virtual_memory().used

    def processes(self) -> Iterator[ProcessUsage]:
        # process_iter skips processes that exit mid-scan and fills
        # access-denied attributes with None.
        for proc in psutil.process_iter(["name", "cpu_percent"]):
            info = proc.info
            yield ProcessUsage(info.get("name") or "", info.get("cpu_percent"))


def select_heaviest(snapshot: Iterable[ProcessUsage]) -> str:
    """
    Name of the process with the highest CPU usage, or "" if none is above
    0%. Ties keep the first process seen in the snapshot's order.
    """
    max_cpu_usage = 0.0
    heaviest_process_name = ""

    for usage in snapshot:
        cpu_usage = usage.cpu_percent or 0.0
        if cpu_usage > max_cpu_usage:
            max_cpu_usage = cpu_usage
            heaviest_process_name = usage.name

    return heaviest_process_name
