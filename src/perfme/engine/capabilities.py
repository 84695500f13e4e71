"""
Clock, memory probe and garbage-collection hooks used while sampling.

Each capability is a small protocol with a default implementation so tests can
inject deterministic fakes. Missing capabilities degrade measurement precision
and are never an error.
"""

import gc
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import psutil
from loguru import logger


class Clock(Protocol):
    """Monotonic clock in milliseconds."""

    def now(self) -> float:
        ...


class MemoryProbe(Protocol):
    """Process memory in bytes; 0 when unavailable."""

    def memory_used(self) -> int:
        ...


class GarbageCollector(Protocol):
    """Best-effort collection request."""

    def try_force_gc(self) -> None:
        ...


class PerfCounterClock:
    """Clock backed by ``time.perf_counter_ns``."""

    def now(self) -> float:
        return time.perf_counter_ns() / 1_000_000


class ProcessMemoryProbe:
    """Resident set size of the current process, read through psutil."""

    def __init__(self, process: Optional[psutil.Process] = None):
        self._process = process
        if self._process is None:
            try:
                self._process = psutil.Process()
            except psutil.Error as e:
                logger.debug(f"Memory probe unavailable: {e}")

    def memory_used(self) -> int:
        if self._process is None:
            return 0
        try:
            return self._process.memory_info().rss
        except psutil.Error as e:
            logger.debug(f"Memory probe failed: {e}")
            return 0


class DefaultGarbageCollector:
    """Full ``gc.collect()``."""

    def try_force_gc(self) -> None:
        try:
            gc.collect()
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Garbage collection request failed: {e}")


@dataclass
class MeasurementCapabilities:
    """The clock, memory probe and GC hook a run samples with."""
    clock: Clock = field(default_factory=PerfCounterClock)
    memory: MemoryProbe = field(default_factory=ProcessMemoryProbe)
    gc: GarbageCollector = field(default_factory=DefaultGarbageCollector)


__all__ = [
    'Clock',
    'MemoryProbe',
    'GarbageCollector',
    'PerfCounterClock',
    'ProcessMemoryProbe',
    'DefaultGarbageCollector',
    'MeasurementCapabilities',
]
