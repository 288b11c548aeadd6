"""
Data carried through one tick of the agent.

A `Sample` is built fresh every tick, encoded to line protocol and dropped.
`NetworkCounterState` is the only thing that survives between ticks and
belongs to `collector.network.RateTracker`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional

# Reserved "not measured this tick" value, distinct from a real zero.
SENTINEL = -1.0

BYTES_PER_GIB = 1024 ** 3


class ProcessUsage(NamedTuple):
    name: str
    cpu_percent: Optional[float]


@dataclass
class NetworkCounterState:
    bytes_received: int = 0
    bytes_sent: int = 0
    # 0 means no baseline yet
    last_sample_time: int = 0


@dataclass(frozen=True)
class Sample:
    """
    One tick's worth of measurements.

    Units
    -----
    cpu_usage : percent (0-100)
    ram_usage : GiB
    gpu_usage : percent, SENTINEL when unavailable or excluded
    gpu_temp : degrees Celsius, SENTINEL when unavailable or excluded
    gpu_power : watts, SENTINEL when unavailable or excluded
    download_rate, upload_rate : bytes/sec, SENTINEL when the read failed
    timestamp : nanoseconds since the Unix epoch
    """

    cpu_usage: float
    ram_usage: float
    heaviest_process_name: str
    gpu_usage: float
    gpu_temp: float
    gpu_power: float
    download_rate: float
    upload_rate: float
    timestamp: int
