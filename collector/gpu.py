"""GPU utilization, temperature and power via nvidia-smi."""

from __future__ import annotations

import logging
import subprocess
from typing import Protocol, Tuple

from collector.models import SENTINEL

log = logging.getLogger(__name__)

NVIDIA_SMI_TIMEOUT_S = 10.0
UNAVAILABLE = (SENTINEL, SENTINEL, SENTINEL)


class GpuStatsSource(Protocol):
    def query(self) -> str:
        """Raw `usage, temp, power` CSV. Raises OSError/SubprocessError if the tool can't run."""
        ...


class NvidiaSmiSource:
    command = [
        "nvidia-smi",
        "--query-gpu=utilization.gpu,temperature.gpu,power.draw",
        "--format=csv,noheader,nounits",
    ]

    def __init__(self, timeout: float = NVIDIA_SMI_TIMEOUT_S) -> None:
        self.timeout = timeout

    def query(self) -> str:
        result = subprocess.run(
            self.command,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=self.timeout,
            check=True,
        )
        return result.stdout


def _parse_field(raw: str) -> float:
    try:
        return float(raw.strip())
    except ValueError:
        return SENTINEL


def parse_gpu_output(text: str) -> Tuple[float, float, float]:
    """
    Each field is parsed on its own, so "45, [N/A], 120" still keeps the
    usage and power readings. Only the first GPU line is used.
    """
    line = next((ln for ln in text.splitlines() if ln.strip()), "")
    fields = line.split(",")
    values = [_parse_field(fields[i]) if i < len(fields) else SENTINEL for i in range(3)]
    return values[0], values[1], values[2]


def probe_gpu(source: GpuStatsSource, excluded: bool) -> Tuple[float, float, float]:
    if excluded:
        return UNAVAILABLE

    try:
        output = source.query()
    except (OSError, subprocess.SubprocessError) as exc:
        # No GPU, no driver or no nvidia-smi on PATH.
        log.debug("GPU query unavailable: %s", exc)
        return UNAVAILABLE

    return parse_gpu_output(output)
