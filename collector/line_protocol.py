"""
InfluxDB line protocol for a single `Sample`.

    system_metrics,host=localhost cpu_usage=12.5,...,upload_rate=512 1700000000000000000

Escaping follows the InfluxDB rules: measurement names escape commas and
spaces, tag keys/values also escape `=`, string field values escape
backslashes and double quotes. Line breaks inside string values are
escaped too, so a record never spans more than one line.
"""

from __future__ import annotations

import math
from typing import Dict, List, Tuple

from collector.models import SENTINEL, Sample

MEASUREMENT = "system_metrics"
TAGS: Dict[str, str] = {"host": "localhost"}


def _escape_measurement(value: str) -> str:
    return value.replace(",", r"\,").replace(" ", r"\ ")


def _escape_tag(value: str) -> str:
    return value.replace(",", r"\,").replace("=", r"\=").replace(" ", r"\ ")


def _escape_string(value: str) -> str:
    # Records are newline-delimited; line breaks become backslash escapes.
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def format_float(value: float) -> str:
    # NaN/Inf have no line-protocol spelling; report them as not measured.
    if not math.isfinite(value):
        value = SENTINEL
    s = repr(float(value))
    # Whole numbers go out without the trailing ".0", like influxdb-client does.
    if s.endswith(".0"):
        s = s[:-2]
    return s


def _fields(sample: Sample) -> List[Tuple[str, str]]:
    return [
        ("cpu_usage", format_float(sample.cpu_usage)),
        ("ram_usage", format_float(sample.ram_usage)),
        ("heaviest_process", f'"{_escape_string(sample.heaviest_process_name)}"'),
        ("gpu_usage", format_float(sample.gpu_usage)),
        ("gpu_temp", format_float(sample.gpu_temp)),
        ("gpu_power", format_float(sample.gpu_power)),
        ("download_rate", format_float(sample.download_rate)),
        ("upload_rate", format_float(sample.upload_rate)),
    ]


def encode(sample: Sample) -> str:
    tags = "".join(f",{_escape_tag(k)}={_escape_tag(v)}" for k, v in TAGS.items())
    fields = ",".join(f"{key}={value}" for key, value in _fields(sample))
    return f"{_escape_measurement(MEASUREMENT)}{tags} {fields} {int(sample.timestamp)}"
