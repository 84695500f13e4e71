"""
Pytest configuration for the perfme test suite.

Provides:
- A Loguru-to-standard-logging bridge so ``caplog`` sees package logs
- Isolated hierarchy registries
- Deterministic clock, memory probe and GC fakes for the engine
- A Hypothesis profile for property-based tests
"""

import contextlib
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

# Add the src directory to the Python path
src_path = str(Path(__file__).parent.parent / "src")
sys.path.insert(0, src_path)

import pytest
from hypothesis import settings
from loguru import logger

from perfme.config import MeasureSettings
from perfme.engine.capabilities import MeasurementCapabilities
from perfme.hierarchy import HierarchyRegistry

settings.register_profile("perfme", max_examples=100, deadline=None)
settings.load_profile("perfme")


# ============================================================================
# LOGURU INTEGRATION
# ============================================================================

@pytest.fixture(autouse=True, scope="function")
def capture_loguru_logs_globally(caplog):
    """Route Loguru records into pytest's caplog for the duration of a test."""

    class PropagateHandler(logging.Handler):
        def emit(self, record):
            logging.getLogger(record.name or "perfme").handle(record)

    caplog.set_level(logging.DEBUG)
    handler_id = logger.add(
        PropagateHandler(),
        format="{message}",
        level="DEBUG",
        enqueue=False,
    )

    yield

    with contextlib.suppress(ValueError):
        logger.remove(handler_id)


# ============================================================================
# REGISTRY FIXTURES
# ============================================================================

@pytest.fixture
def fast_settings() -> MeasureSettings:
    """Settings small enough for unit tests: one size, no delay."""
    return MeasureSettings(
        data_unit_sizes=[10],
        data_units_count=5,
        series_size=1,
        series_count=1,
        delay=0,
    )


@pytest.fixture
def registry(fast_settings) -> HierarchyRegistry:
    """A fresh registry that leaves the process-wide default untouched."""
    return HierarchyRegistry(settings=fast_settings)


# ============================================================================
# CAPABILITY FAKES
# ============================================================================

class FakeClock:
    """
    Manually driven millisecond clock.

    ``tick`` is added after every reading, so a series that does no work still
    reports a duration of ``tick`` ms. Measured functions may call ``advance``
    to simulate work.
    """

    def __init__(self, tick: float = 0.0, start: float = 0.0):
        self.tick = tick
        self.current = start
        self.readings = 0

    def advance(self, ms: float) -> None:
        self.current += ms

    def now(self) -> float:
        self.readings += 1
        value = self.current
        self.current += self.tick
        return value


class FakeMemoryProbe:
    """Returns the scripted readings in order, repeating the last one."""

    def __init__(self, readings: Optional[Iterable[int]] = None):
        self.readings: List[int] = list(readings or [0])
        self.calls = 0

    def memory_used(self) -> int:
        index = min(self.calls, len(self.readings) - 1)
        self.calls += 1
        return self.readings[index]


class CountingGarbageCollector:
    def __init__(self):
        self.calls = 0

    def try_force_gc(self) -> None:
        self.calls += 1


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_memory() -> FakeMemoryProbe:
    return FakeMemoryProbe()


@pytest.fixture
def counting_gc() -> CountingGarbageCollector:
    return CountingGarbageCollector()


@pytest.fixture
def capabilities(fake_clock, fake_memory, counting_gc) -> MeasurementCapabilities:
    """Deterministic capabilities; real clock and psutil are never touched."""
    return MeasurementCapabilities(clock=fake_clock, memory=fake_memory, gc=counting_gc)
