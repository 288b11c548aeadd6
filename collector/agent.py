"""
Headless sampling loop for the host metrics agent.

Each tick samples CPU, RAM, the heaviest process, network rates and GPU
stats, encodes them as one line-protocol record and posts it to InfluxDB.
Ticks run strictly one after another; a slow write delays the next sample.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Callable, List, Optional

from config import config
from collector.line_protocol import encode
from collector.sampler import MetricsSampler
from delivery.influx import InfluxWriter

log = logging.getLogger(__name__)


class AgentState(enum.Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    ENCODING = "encoding"
    DELIVERING = "delivering"
    SLEEPING = "sleeping"


class Agent:
    def __init__(
        self,
        sampler: MetricsSampler,
        writer: InfluxWriter,
        interval: float,
        sleep: Callable[[float], None] = time.sleep,
        clock_ns: Callable[[], int] = time.time_ns,
    ) -> None:
        self.sampler = sampler
        self.writer = writer
        self.interval = interval
        self._sleep = sleep
        self._clock_ns = clock_ns
        self.state = AgentState.IDLE

    def tick(self) -> str:
        timestamp = self._clock_ns()

        self.state = AgentState.SAMPLING
        sample = self.sampler.sample(timestamp)

        self.state = AgentState.ENCODING
        line = encode(sample)
        log.debug("Encoded sample: %s", line)

        self.state = AgentState.DELIVERING
        self.writer.write(line)
        return line

    def run(self, max_ticks: Optional[int] = None) -> None:
        """Tick, sleep, repeat. Runs until killed unless `max_ticks` is set."""
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            try:
                self.tick()
            except Exception:
                log.exception("Tick failed; continuing with the next one")
            ticks += 1

            self.state = AgentState.SLEEPING
            self._sleep(self.interval)
        self.state = AgentState.IDLE


def main(argv: Optional[List[str]] = None) -> int:
    cfg = config.parse_args(argv)
    config.configure_logging(cfg.log_level)

    log.info(
        "Starting host metrics agent: interval=%ss exclude_gpu=%s network_source=%s target=%s",
        cfg.interval,
        cfg.exclude_gpu,
        cfg.network_source,
        config.get_target_summary(cfg),
    )

    writer = InfluxWriter.from_config(cfg)
    agent = Agent(MetricsSampler.from_config(cfg), writer, cfg.interval)
    try:
        agent.run()
    except KeyboardInterrupt:
        log.info("Interrupted, stopping")
    finally:
        writer.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
