"""
Reduction of raw samples into result records.

Throughput is derived from per-call durations: the mean duration gives the
average calls per second, the longest duration gives the minimum and the
shortest gives the maximum. A zero duration yields ``inf``; an empty sample
set yields ``nan`` summaries, although the run never reduces empty sets.
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..hierarchy.models import EvaluateLeaf, MeasureLeaf
from .results import CustomMeasurementResult, MeasurementResult
from .sampler import MeasureSamples

MS_PER_SECOND = 1000.0


def summarize(values: Sequence[float]) -> Tuple[float, float, float]:
    """``(mean, min, max)`` of ``values``; all ``nan`` when empty."""
    if len(values) == 0:
        return float('nan'), float('nan'), float('nan')
    array = np.asarray(values, dtype=float)
    return float(np.mean(array)), float(np.min(array)), float(np.max(array))


def throughput(durations_ms: Sequence[float]) -> np.ndarray:
    """Calls per second for each duration; zero durations give ``inf``."""
    with np.errstate(divide='ignore', invalid='ignore'):
        return MS_PER_SECOND / np.asarray(durations_ms, dtype=float)


def reduce_measure_samples(
    leaf: MeasureLeaf,
    data_size: int,
    samples: MeasureSamples,
    series_size: int,
) -> MeasurementResult:
    """Build the MeasurementResult of one leaf at one data size."""
    per_call = np.asarray(summarize(samples.durations)) / series_size
    duration, duration_min, duration_max = (float(value) for value in per_call)
    ops_avg, ops_fastest, ops_slowest = (float(value) for value in throughput(per_call))

    memory_avg: Optional[float] = None
    memory_min: Optional[float] = None
    memory_max: Optional[float] = None
    memory: Optional[List[int]] = None
    if samples.memory is not None:
        memory = list(samples.memory)
        memory_avg, memory_min, memory_max = summarize(memory)

    return MeasurementResult(
        path=list(leaf.path),
        title=leaf.title,
        data_size=data_size,
        series=throughput(samples.durations).tolist(),
        avg=ops_avg,
        min=ops_slowest,
        max=ops_fastest,
        ops_per_second=ops_avg,
        duration=duration,
        duration_min=duration_min,
        duration_max=duration_max,
        memory=memory,
        memory_avg=memory_avg,
        memory_min=memory_min,
        memory_max=memory_max,
    )


def reduce_evaluate_values(
    leaf: EvaluateLeaf,
    data_size: int,
    values: Sequence[float],
) -> CustomMeasurementResult:
    """Build the CustomMeasurementResult of one evaluate leaf at one data size."""
    avg, lowest, highest = summarize(values)
    return CustomMeasurementResult(
        path=list(leaf.path),
        title=leaf.title,
        data_size=data_size,
        values=list(values),
        avg=avg,
        min=lowest,
        max=highest,
        custom_chart_id=leaf.custom_chart.id,
    )


__all__ = ['MS_PER_SECOND', 'summarize', 'throughput', 'reduce_measure_samples', 'reduce_evaluate_values']
