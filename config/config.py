import argparse
import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from collector.network import netstat_supported

# Seconds between ticks. No default: the agent refuses to start without one
# unless it is passed on the command line.
SAMPLE_INTERVAL = os.getenv("SYSMON_INTERVAL")
EXCLUDE_GPU = os.getenv("SYSMON_EXCLUDE_GPU", "false")
NETWORK_SOURCE = os.getenv("SYSMON_NETWORK_SOURCE", "psutil")
HTTP_TIMEOUT = os.getenv("SYSMON_HTTP_TIMEOUT", "10")
LOG_LEVEL = os.getenv("SYSMON_LOG_LEVEL", "INFO")

_INFLUXDB_URL = os.getenv("INFLUXDB_URL")
_INFLUXDB_TOKEN = os.getenv("INFLUXDB_TOKEN")
_INFLUXDB_ORG = os.getenv("INFLUXDB_ORG")
_INFLUXDB_BUCKET = os.getenv("INFLUXDB_BUCKET")

NETWORK_SOURCES = ("psutil", "netstat")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@dataclass(frozen=True)
class AgentConfig:
    interval: int
    exclude_gpu: bool
    influxdb_url: str
    influxdb_token: str
    influxdb_org: str
    influxdb_bucket: str
    network_source: str = "psutil"
    timeout: float = 10.0
    log_level: str = "INFO"


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"invalid interval: {text!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"interval must be positive, got {value}")
    return value


def _positive_float(text: str) -> float:
    try:
        value = float(text)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"invalid timeout: {text!r}")
    # NaN fails this comparison too.
    if not value > 0:
        raise argparse.ArgumentTypeError(f"timeout must be positive, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """
    Flags mirror the environment variables above; an env var set for a
    required option turns the flag into an override.
    """
    parser = argparse.ArgumentParser(
        prog="hostmetrics-agent",
        description="Sample host CPU/RAM/process/network/GPU metrics and write them to InfluxDB",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=_positive_int,
        default=SAMPLE_INTERVAL,
        required=SAMPLE_INTERVAL is None,
        help="Interval for querying in seconds",
    )
    parser.add_argument(
        "--exclude-gpu",
        action=argparse.BooleanOptionalAction,
        default=_env_flag(EXCLUDE_GPU),
        help="Skip GPU probing (--no-exclude-gpu overrides SYSMON_EXCLUDE_GPU)",
    )
    for name, env_value, help_text in (
        ("url", _INFLUXDB_URL, "InfluxDB URL"),
        ("token", _INFLUXDB_TOKEN, "InfluxDB token"),
        ("org", _INFLUXDB_ORG, "InfluxDB organization"),
        ("bucket", _INFLUXDB_BUCKET, "InfluxDB bucket"),
    ):
        parser.add_argument(
            f"--influxdb-{name}",
            default=env_value,
            required=env_value is None,
            help=help_text,
        )
    parser.add_argument(
        "--network-source",
        choices=NETWORK_SOURCES,
        default=NETWORK_SOURCE,
        help="Where cumulative network byte counters come from",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=HTTP_TIMEOUT,
        help="HTTP timeout for each write, in seconds",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level name")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> AgentConfig:
    parser = build_parser()
    # argparse runs `type` over string defaults too, so env values are
    # validated the same way as flags.
    args = parser.parse_args(argv)
    if args.network_source == "netstat" and not netstat_supported():
        parser.error("--network-source netstat needs the Windows netstat; use psutil on this platform")
    return AgentConfig(
        interval=args.interval,
        exclude_gpu=args.exclude_gpu,
        influxdb_url=args.influxdb_url,
        influxdb_token=args.influxdb_token,
        influxdb_org=args.influxdb_org,
        influxdb_bucket=args.influxdb_bucket,
        network_source=args.network_source,
        timeout=args.timeout,
        log_level=args.log_level.upper(),
    )


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def get_target_summary(cfg: AgentConfig) -> str:
    return f"{cfg.influxdb_url} org={cfg.influxdb_org} bucket={cfg.influxdb_bucket}"
