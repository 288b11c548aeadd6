import pytest

from collector.models import ProcessUsage
from collector.network import RateTracker
from collector.sampler import MetricsSampler
from tests.fakes import FakeClock, FakeGpu, FakeNetworkSource, FakeSystem


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_system():
    return FakeSystem(
        processes=[
            ProcessUsage("systemd", 0.0),
            ProcessUsage("chrome", 55.0),
            ProcessUsage("python", 30.0),
        ]
    )


@pytest.fixture
def fake_gpu():
    return FakeGpu()


@pytest.fixture
def make_sampler(clock, fake_system, fake_gpu):
    """Sampler wired to fakes; the network source repeats one reading by default."""

    def _make(network_source=None, exclude_gpu=False, system=None, gpu=None):
        source = network_source or FakeNetworkSource([(1000, 500)] * 10)
        return MetricsSampler(
            system=system or fake_system,
            rates=RateTracker(source, clock=clock),
            gpu=gpu or fake_gpu,
            exclude_gpu=exclude_gpu,
        )

    return _make
