"""
Builds one `Sample` per tick.

Every source is read on its own; a failure in one only turns its own
field(s) into the sentinel, the rest of the sample is kept.
"""

from __future__ import annotations

import logging
from typing import Callable, Tuple, TypeVar

from config import config
from collector.gpu import UNAVAILABLE, GpuStatsSource, NvidiaSmiSource, probe_gpu
from collector.models import BYTES_PER_GIB, SENTINEL, Sample
from collector.network import NetworkStatsError, RateTracker, make_network_source
from collector.processes import PsutilSystemSource, SystemStatsSource, select_heaviest

log = logging.getLogger(__name__)

T = TypeVar("T")


def _guarded(label: str, default: T, read: Callable[[], T]) -> T:
    try:
        return read()
    except Exception as exc:
        log.warning("Failed to read %s: %s", label, exc)
        return default


def _non_negative(direction: str, rate: float) -> float:
    # A counter reset or wrap gives a negative delta.
    if rate < 0:
        log.warning("%s byte counter went backwards (%s B/s); reporting as unavailable", direction, rate)
        return SENTINEL
    return rate


class MetricsSampler:
    def __init__(
        self,
        system: SystemStatsSource,
        rates: RateTracker,
        gpu: GpuStatsSource,
        exclude_gpu: bool = False,
    ) -> None:
        self.system = system
        self.rates = rates
        self.gpu = gpu
        self.exclude_gpu = exclude_gpu

    @classmethod
    def from_config(cls, cfg: config.AgentConfig) -> "MetricsSampler":
        return cls(
            system=PsutilSystemSource(),
            rates=RateTracker(make_network_source(cfg.network_source)),
            gpu=NvidiaSmiSource(),
            exclude_gpu=cfg.exclude_gpu,
        )

    def cpu_usage(self) -> float:
        return _guarded("CPU usage", SENTINEL, self.system.cpu_percent)

    def ram_usage(self) -> float:
        return _guarded(
            "RAM usage",
            SENTINEL,
            lambda: self.system.used_memory() / BYTES_PER_GIB,
        )

    def heaviest_process(self) -> str:
        return _guarded(
            "process table",
            "",
            lambda: select_heaviest(self.system.processes()),
        )

    def network_rates(self) -> Tuple[float, float]:
        try:
            download_rate, upload_rate = self.rates.update()
        except NetworkStatsError as exc:
            log.warning("Failed to get network traffic: %s", exc)
            return SENTINEL, SENTINEL

        return _non_negative("download", download_rate), _non_negative("upload", upload_rate)

    def gpu_stats(self) -> Tuple[float, float, float]:
        return _guarded("GPU stats", UNAVAILABLE, lambda: probe_gpu(self.gpu, self.exclude_gpu))

    def sample(self, timestamp: int) -> Sample:
        cpu_usage = self.cpu_usage()
        ram_usage = self.ram_usage()
        heaviest_process_name = self.heaviest_process()
        download_rate, upload_rate = self.network_rates()
        gpu_usage, gpu_temp, gpu_power = self.gpu_stats()

        return Sample(
            cpu_usage=cpu_usage,
            ram_usage=ram_usage,
            heaviest_process_name=heaviest_process_name,
            gpu_usage=gpu_usage,
            gpu_temp=gpu_temp,
            gpu_power=gpu_power,
            download_rate=download_rate,
            upload_rate=upload_rate,
            timestamp=timestamp,
        )
