"""
Raw sample collection for one leaf at one data size.

Measure leaves are timed in series: each series calls the function
``series_size`` times, cycling through the dataset, and yields one wall-clock
duration. Memory passes, when enabled, run afterwards as a separate loop of
single calls bracketed by memory probes. Evaluate leaves are called once per
datum and their return values are the samples.

Registered functions and generators are opaque. Any exception they raise is
wrapped in ``MeasurementError`` with the original as ``__cause__`` and ends
the run.

The dataset is handed to every leaf of a sharing group unchanged; functions
must not mutate the data they receive.
"""

import inspect
from dataclasses import dataclass
from numbers import Real
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from ..config import ResolvedRunConfig
from ..exceptions import MeasurementError
from ..hierarchy.models import EvaluateLeaf, Leaf, MeasureLeaf, join_path
from .capabilities import MeasurementCapabilities


@dataclass
class MeasureSamples:
    """Per-series durations in milliseconds and optional per-pass memory deltas in bytes."""
    durations: List[float]
    memory: Optional[List[int]] = None


def generate_dataset(leaf: Leaf, generator: Callable[[int], Any], data_size: int, count: int) -> List[Any]:
    """
    Call ``generator(data_size)`` ``count`` times.

    Raises:
        MeasurementError: MEASURE_002 if the generator raises
    """
    try:
        return [generator(data_size) for _ in range(count)]
    except Exception as e:
        raise MeasurementError(
            f"Data generator of {join_path(leaf.path)} failed at data size {data_size}: {e}",
            error_code="MEASURE_002",
            context={"path": leaf.path, "data_size": data_size},
        ) from e


async def _no_pause(delay_ms: float) -> bool:
    return False


class Sampler:
    """
    Collects raw samples with the injected capabilities.

    Args:
        capabilities: Clock, memory probe and GC hook
        series_size: Calls per timed series
        series_count: Timed series per leaf and size
        delay: Milliseconds handed to ``pause`` after each series
        force_gc: Request a collection before each series
        memory_measurements_count: Memory passes; falsy disables memory sampling
        pause: Coroutine function waiting ``delay`` ms; returns True when the run
            was stopped, which abandons the leaf's remaining series
    """

    def __init__(
        self,
        capabilities: MeasurementCapabilities,
        series_size: int,
        series_count: int,
        delay: float = 0,
        force_gc: bool = False,
        memory_measurements_count: Optional[int] = None,
        pause: Optional[Callable[[float], Awaitable[bool]]] = None,
    ):
        self.capabilities = capabilities
        self.series_size = series_size
        self.series_count = series_count
        self.delay = delay
        self.force_gc = force_gc
        self.memory_measurements_count = memory_measurements_count
        self._pause = pause or _no_pause

    @classmethod
    def from_config(
        cls,
        capabilities: MeasurementCapabilities,
        config: ResolvedRunConfig,
        pause: Optional[Callable[[float], Awaitable[bool]]] = None,
    ) -> "Sampler":
        """Sampler for an effective run configuration; memory passes only when it measures memory."""
        return cls(
            capabilities,
            series_size=config.series_size,
            series_count=config.series_count,
            delay=config.delay,
            force_gc=config.force_gc,
            memory_measurements_count=config.memory_measurements_count if config.measures_memory else None,
            pause=pause,
        )

    @property
    def measures_memory(self) -> bool:
        return bool(self.memory_measurements_count)

    def _failure(self, leaf: Leaf, data_size: int, error: Exception) -> MeasurementError:
        return MeasurementError(
            f"{join_path(leaf.path)} raised at data size {data_size}: {error}",
            error_code="MEASURE_001",
            context={"path": leaf.path, "data_size": data_size},
        )

    async def _run_series(self, leaf: MeasureLeaf, dataset: Sequence[Any]) -> float:
        clock = self.capabilities.clock
        fn = leaf.fn
        count = len(dataset)

        if leaf.is_async:
            start = clock.now()
            for i in range(self.series_size):
                result = fn(dataset[i % count])
                if inspect.isawaitable(result):
                    await result
            return clock.now() - start

        start = clock.now()
        for i in range(self.series_size):
            fn(dataset[i % count])
        return clock.now() - start

    async def _run_memory_passes(self, leaf: MeasureLeaf, dataset: Sequence[Any]) -> List[int]:
        probe = self.capabilities.memory
        count = len(dataset)
        deltas = []
        for i in range(self.memory_measurements_count):
            self.capabilities.gc.try_force_gc()
            before = probe.memory_used()
            result = leaf.fn(dataset[i % count])
            if inspect.isawaitable(result):
                await result
            after = probe.memory_used()
            deltas.append(max(0, after - before))
        return deltas

    async def sample_measure(
        self, leaf: MeasureLeaf, dataset: Sequence[Any], data_size: int
    ) -> Optional[MeasureSamples]:
        """
        Time ``series_count`` series, then run the memory passes.

        Returns:
            The samples, or None if the run was stopped between series

        Raises:
            MeasurementError: MEASURE_001 if the function raises
        """
        durations: List[float] = []
        for _ in range(self.series_count):
            if self.force_gc:
                self.capabilities.gc.try_force_gc()
            try:
                durations.append(await self._run_series(leaf, dataset))
            except Exception as e:
                raise self._failure(leaf, data_size, e) from e

            if await self._pause(self.delay):
                logger.debug(
                    f"Stopped {join_path(leaf.path)} at size {data_size} "
                    f"after {len(durations)} of {self.series_count} series"
                )
                return None

        memory = None
        if self.measures_memory:
            try:
                memory = await self._run_memory_passes(leaf, dataset)
            except Exception as e:
                raise self._failure(leaf, data_size, e) from e

        return MeasureSamples(durations=durations, memory=memory)

    async def sample_evaluate(
        self, leaf: EvaluateLeaf, dataset: Sequence[Any], data_size: int
    ) -> List[float]:
        """
        Call the function once per datum and collect its numeric results.

        Raises:
            MeasurementError: MEASURE_001 if the function raises, MEASURE_003 if
                it returns something other than a real number
        """
        values = []
        for datum in dataset:
            try:
                value = leaf.fn(datum)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                raise self._failure(leaf, data_size, e) from e

            if isinstance(value, bool) or not isinstance(value, Real):
                raise MeasurementError(
                    f"{join_path(leaf.path)} must return a number, got {type(value).__name__}",
                    error_code="MEASURE_003",
                    context={"path": leaf.path, "data_size": data_size},
                )
            values.append(value)
        return values


__all__ = ['MeasureSamples', 'generate_dataset', 'Sampler']
