"""Tests for the sampling loop."""

from unittest.mock import MagicMock, patch

import pytest

from collector.agent import Agent, AgentState, main
from tests.fakes import FailingNetworkSource

TS = 1700000000000000000


@pytest.fixture
def writer():
    w = MagicMock()
    w.write.return_value = True
    return w


class TestAgent:
    def test_tick_writes_one_encoded_record(self, make_sampler, writer):
        agent = Agent(make_sampler(), writer, interval=5, sleep=MagicMock(), clock_ns=lambda: TS)

        line = agent.tick()

        writer.write.assert_called_once_with(line)
        assert line.startswith("system_metrics,host=localhost cpu_usage=12.5,")
        assert 'heaviest_process="chrome"' in line
        assert line.endswith(f" {TS}")
        assert agent.state is AgentState.DELIVERING

    def test_tick_with_failing_network(self, make_sampler, writer):
        sampler = make_sampler(network_source=FailingNetworkSource())
        agent = Agent(sampler, writer, interval=5, sleep=MagicMock(), clock_ns=lambda: TS)

        line = agent.tick()

        assert "download_rate=-1,upload_rate=-1" in line
        assert "gpu_usage=45,gpu_temp=70,gpu_power=120" in line

    def test_failed_delivery_does_not_stop_the_loop(self, make_sampler, writer):
        writer.write.return_value = False
        sleep = MagicMock()
        agent = Agent(make_sampler(), writer, interval=3, sleep=sleep, clock_ns=lambda: TS)

        agent.run(max_ticks=3)

        assert writer.write.call_count == 3
        assert sleep.call_count == 3

    def test_run_sleeps_full_interval_between_ticks(self, make_sampler, writer):
        sleep = MagicMock()
        agent = Agent(make_sampler(), writer, interval=7, sleep=sleep, clock_ns=lambda: TS)

        agent.run(max_ticks=2)

        assert [c.args for c in sleep.call_args_list] == [(7,), (7,)]
        assert agent.state is AgentState.IDLE

    def test_state_while_sleeping(self, make_sampler, writer):
        seen = []
        agent = Agent(make_sampler(), writer, interval=1, clock_ns=lambda: TS)
        agent._sleep = lambda _: seen.append(agent.state)

        agent.run(max_ticks=1)

        assert seen == [AgentState.SLEEPING]

    def test_unexpected_tick_error_is_logged_and_loop_continues(self, make_sampler, writer, caplog):
        writer.write.side_effect = [RuntimeError("socket exploded"), True]
        agent = Agent(make_sampler(), writer, interval=1, sleep=MagicMock(), clock_ns=lambda: TS)

        agent.run(max_ticks=2)

        assert writer.write.call_count == 2
        assert "Tick failed" in caplog.text

    def test_timestamps_come_from_clock(self, make_sampler, writer):
        stamps = iter([TS, TS + 1])
        agent = Agent(make_sampler(), writer, interval=1, sleep=MagicMock(), clock_ns=lambda: next(stamps))

        assert agent.tick().endswith(f" {TS}")
        assert agent.tick().endswith(f" {TS + 1}")


class TestMain:
    ARGV = [
        "--interval", "2",
        "--exclude-gpu",
        "--influxdb-url", "http://influx:8086",
        "--influxdb-token", "secret",
        "--influxdb-org", "home",
        "--influxdb-bucket", "metrics",
    ]

    def test_wires_config_into_agent_and_stops_on_interrupt(self):
        with patch("collector.agent.MetricsSampler") as sampler_cls, patch(
            "collector.agent.InfluxWriter"
        ) as writer_cls, patch("collector.agent.Agent") as agent_cls, patch(
            "collector.agent.config.configure_logging"
        ):
            agent_cls.return_value.run.side_effect = KeyboardInterrupt

            assert main(self.ARGV) == 0

        cfg = sampler_cls.from_config.call_args.args[0]
        assert cfg.interval == 2
        assert cfg.exclude_gpu is True
        writer_cls.from_config.assert_called_once_with(cfg)
        agent_cls.assert_called_once_with(
            sampler_cls.from_config.return_value, writer_cls.from_config.return_value, 2
        )
        writer_cls.from_config.return_value.close.assert_called_once_with()
