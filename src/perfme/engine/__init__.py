"""Measurement engine: selection, planning, sampling, statistics and run control."""

from .matching import LevelFilter, matches_level, matches_path_pattern, matches_any
from .plan import PlannedLeaf, PlanGroup, ExecutionPlan, collect_leaves, build_plan
from .capabilities import (
    Clock,
    MemoryProbe,
    GarbageCollector,
    PerfCounterClock,
    ProcessMemoryProbe,
    DefaultGarbageCollector,
    MeasurementCapabilities,
)
from .sampler import MeasureSamples, Sampler, generate_dataset
from .results import MeasurementResult, CustomMeasurementResult, MeasurementProgress
from .statistics import summarize, throughput, reduce_measure_samples, reduce_evaluate_values
from .controller import RunState, RunSummary, RunController, progress_percent, run_measurements

__all__ = [
    'LevelFilter',
    'matches_level',
    'matches_path_pattern',
    'matches_any',
    'PlannedLeaf',
    'PlanGroup',
    'ExecutionPlan',
    'collect_leaves',
    'build_plan',
    'Clock',
    'MemoryProbe',
    'GarbageCollector',
    'PerfCounterClock',
    'ProcessMemoryProbe',
    'DefaultGarbageCollector',
    'MeasurementCapabilities',
    'MeasureSamples',
    'Sampler',
    'generate_dataset',
    'MeasurementResult',
    'CustomMeasurementResult',
    'MeasurementProgress',
    'summarize',
    'throughput',
    'reduce_measure_samples',
    'reduce_evaluate_values',
    'RunState',
    'RunSummary',
    'RunController',
    'progress_percent',
    'run_measurements',
]
