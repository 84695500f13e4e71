"""
Run controller.

A run walks the execution plan group by group, then data size by data size,
then leaf by leaf, sampling and reducing each (leaf, size) pair and emitting
one ``MeasurementProgress`` per pair. Everything runs on one asyncio loop; a
leaf is measured to completion before the next starts.

Stop and skip are cooperative. Both are checked at the start of each group, at
the start of each data size and before each leaf. Stop additionally wakes the
delay between series, and the leaf being measured at that moment is dropped
without a result.
"""

import asyncio
import inspect
import math
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Set, Union

from loguru import logger

from ..config import ResolvedRunConfig, RunConfiguration
from ..exceptions import MeasurementError, RunStateError, log_and_raise
from ..hierarchy.models import EvaluateLeaf, MeasureLeaf, owner_path_key
from ..hierarchy.registry import HierarchyRegistry, default_registry
from .capabilities import MeasurementCapabilities
from .plan import ExecutionPlan, PlanGroup, PlannedLeaf, build_plan
from .results import MeasurementProgress
from .sampler import Sampler, generate_dataset
from .statistics import reduce_evaluate_values, reduce_measure_samples

ConfigLike = Union[RunConfiguration, Mapping[str, Any], None]
ProgressCallback = Callable[[MeasurementProgress], Any]


class RunState(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    STOPPING = 'stopping'
    COMPLETED = 'completed'


@dataclass
class RunSummary:
    """
    Outcome of one run.

    Attributes:
        results_emitted: Progress events delivered to the observer
        progress: Percentage of the last event, or 100 for an empty plan
        stopped: The run ended because stop() was requested
        failed: A registered function or generator raised
        error: The exception that ended a failed run
        skipped: Owner path keys skipped during the run
    """
    results_emitted: int = 0
    progress: int = 0
    stopped: bool = False
    failed: bool = False
    error: Optional[BaseException] = None
    skipped: List[str] = field(default_factory=list)


def progress_percent(done: int, total: int) -> int:
    """Rounded percentage with halves rounded up; an empty plan counts as done."""
    if total <= 0:
        return 100
    return min(100, int(math.floor(done * 100 / total + 0.5)))


def _coerce_config(config: ConfigLike) -> RunConfiguration:
    if config is None:
        return RunConfiguration()
    if isinstance(config, RunConfiguration):
        return config
    return RunConfiguration.from_mapping(config)


async def _notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    outcome = callback(*args)
    if inspect.isawaitable(outcome):
        await outcome


class RunController:
    """
    Drives measurement runs over a registry's hierarchy.

    Args:
        registry: Hierarchy and default settings; the process-wide default when None
        capabilities: Clock, memory probe and GC hook; real ones when None
    """

    def __init__(
        self,
        registry: Optional[HierarchyRegistry] = None,
        capabilities: Optional[MeasurementCapabilities] = None,
    ):
        self.registry = registry if registry is not None else default_registry
        self.capabilities = capabilities if capabilities is not None else MeasurementCapabilities()
        self._lock = threading.Lock()
        self._state = RunState.IDLE
        self._stop_requested = False
        self._skipped: Set[str] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake: Optional[asyncio.Event] = None
        self._last_summary: Optional[RunSummary] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def last_summary(self) -> Optional[RunSummary]:
        return self._last_summary

    @property
    def skipped(self) -> frozenset:
        with self._lock:
            return frozenset(self._skipped)

    # --- Control surface ---

    def stop(self) -> None:
        """Request the current run to stop; safe to call from any thread."""
        with self._lock:
            self._stop_requested = True
            if self._state is RunState.RUNNING:
                self._state = RunState.STOPPING
            loop, wake = self._loop, self._wake
        logger.info("Stop requested")

        if loop is None or wake is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            wake.set()
        else:
            loop.call_soon_threadsafe(wake.set)

    def skip(self, owner_path_key: str) -> None:
        """Skip the remaining sizes and leaves of the group with this key."""
        with self._lock:
            self._skipped.add(owner_path_key)
        logger.info(f"Skip requested for {owner_path_key}")

    def skip_subgroup(self, group: str, subgroup: str) -> None:
        """
        Skip by legacy group/subgroup names.

        Every leaf whose legacy record has this group and subgroup has its
        owning group skipped.
        """
        keys = {
            owner_path_key(record.path)
            for record in self.registry.get_registered_leaves()
            if record.group == group and record.sub_group == subgroup
        }
        if not keys:
            logger.warning(f"No leaves registered under {group}/{subgroup}; nothing to skip")
        for key in sorted(keys):
            self.skip(key)

    def _is_skipped(self, group: PlanGroup) -> bool:
        return group.owner_path_key in self._skipped

    async def _pause(self, delay_ms: float) -> bool:
        if self._stop_requested:
            return True
        if delay_ms > 0 and self._wake is not None:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=delay_ms / 1000)
            except asyncio.TimeoutError:
                pass
        else:
            await asyncio.sleep(0)
        return self._stop_requested

    # --- Runs ---

    async def start(
        self,
        config: ConfigLike = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[Callable[[RunSummary], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> RunSummary:
        """
        Run every selected leaf at every configured data size.

        Callbacks may be plain functions or coroutine functions. ``on_complete``
        is called once when the plan is exhausted or the run was stopped;
        ``on_error`` is called once instead when a registered function or
        generator raises, after which the error is re-raised.

        Args:
            config: RunConfiguration or mapping of overrides; None uses the settings
            on_progress: Receives one MeasurementProgress per (leaf, data size)
            on_complete: Receives the RunSummary
            on_error: Receives the exception that ended the run

        Returns:
            RunSummary of the run

        Raises:
            RunStateError: A run is already in progress on this controller
            ConfigError: The configuration is invalid
            MeasurementError: A registered function or generator raised
        """
        run_config = _coerce_config(config)
        with self._lock:
            if self._state in (RunState.RUNNING, RunState.STOPPING):
                log_and_raise(
                    RunStateError(
                        "A measurement run is already in progress",
                        context={"state": self._state.value},
                    ),
                    logger,
                    level="warning",
                )
            self._state = RunState.RUNNING
            self._stop_requested = False
            self._skipped = set()
            self._loop = asyncio.get_running_loop()
            self._wake = asyncio.Event()

        summary = RunSummary()
        try:
            resolved = run_config.resolve(self.registry.get_settings())
            plan = build_plan(
                self.registry.get_hierarchy(),
                resolved.selected_paths,
                resolved.data_unit_sizes,
            )
            await self._execute(plan, resolved, on_progress, summary)
        except Exception as e:
            summary.failed = True
            summary.error = e
            summary.skipped = sorted(self._skipped)
            self._finish(summary)
            logger.error(f"Measurement run failed: {e}")
            await _notify(on_error, e)
            raise
        except BaseException:
            summary.stopped = True
            self._finish(summary)
            raise

        summary.stopped = self._stop_requested
        summary.skipped = sorted(self._skipped)
        self._finish(summary)
        logger.info(
            f"Measurement run {'stopped' if summary.stopped else 'completed'}: "
            f"{summary.results_emitted} result(s), progress {summary.progress}%"
        )
        await _notify(on_complete, summary)
        return summary

    def _finish(self, summary: RunSummary) -> None:
        with self._lock:
            self._state = RunState.COMPLETED
            self._loop = None
            self._wake = None
            self._last_summary = summary

    def run(
        self,
        config: ConfigLike = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[Callable[[RunSummary], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> RunSummary:
        """Blocking form of ``start`` on a fresh event loop."""
        return asyncio.run(self.start(config, on_progress, on_complete, on_error))

    async def _execute(
        self,
        plan: ExecutionPlan,
        config: ResolvedRunConfig,
        on_progress: Optional[ProgressCallback],
        summary: RunSummary,
    ) -> None:
        if config.is_degenerate or plan.is_empty:
            logger.info("Nothing to measure; run completes immediately")
            summary.progress = 100
            return

        logger.info(
            f"Starting measurement run: {plan.leaf_count} leaf(s) in {len(plan.groups)} group(s) "
            f"at {len(plan.data_unit_sizes)} data size(s)"
        )
        sampler = Sampler.from_config(self.capabilities, config, pause=self._pause)
        done = 0

        for group in plan:
            if self._stop_requested:
                break
            if self._is_skipped(group):
                logger.info(f"Skipping group {group.owner_path_key}")
                continue

            for data_size in plan.data_unit_sizes:
                if self._stop_requested or self._is_skipped(group):
                    break

                shared = None
                if config.share_data and group.shared_generator is not None:
                    shared = generate_dataset(
                        group.leaves[0].leaf, group.shared_generator, data_size, config.data_units_count
                    )

                for planned in group.leaves:
                    if self._stop_requested or self._is_skipped(group):
                        break

                    event = await self._measure_leaf(planned, data_size, shared, config, sampler)
                    if event is None:
                        break

                    done += data_size
                    progress = progress_percent(done, plan.total_work)
                    progress_event = MeasurementProgress(
                        path=list(planned.path),
                        title=planned.title,
                        data_size=data_size,
                        progress=progress,
                        **event,
                    )
                    summary.results_emitted += 1
                    summary.progress = progress
                    await _notify(on_progress, progress_event)

    async def _measure_leaf(
        self,
        planned: PlannedLeaf,
        data_size: int,
        shared: Optional[List[Any]],
        config: ResolvedRunConfig,
        sampler: Sampler,
    ) -> Optional[dict]:
        leaf = planned.leaf
        dataset = shared
        if dataset is None:
            dataset = generate_dataset(leaf, leaf.data_generator, data_size, config.data_units_count)

        if isinstance(leaf, MeasureLeaf):
            samples = await sampler.sample_measure(leaf, dataset, data_size)
            if samples is None:
                return None
            return {'result': reduce_measure_samples(leaf, data_size, samples, config.series_size)}

        if isinstance(leaf, EvaluateLeaf):
            values = await sampler.sample_evaluate(leaf, dataset, data_size)
            return {'custom_result': reduce_evaluate_values(leaf, data_size, values)}

        raise MeasurementError(
            f"Unsupported leaf type {type(leaf).__name__}",
            error_code="MEASURE_001",
            context={"path": leaf.path, "data_size": data_size},
        )


def run_measurements(
    config: ConfigLike = None,
    registry: Optional[HierarchyRegistry] = None,
    capabilities: Optional[MeasurementCapabilities] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[MeasurementProgress]:
    """
    Run once on a new controller and return every progress event.

    Raises:
        MeasurementError: A registered function or generator raised
    """
    events: List[MeasurementProgress] = []

    def collect(event: MeasurementProgress) -> Any:
        events.append(event)
        if on_progress is not None:
            return on_progress(event)
        return None

    RunController(registry=registry, capabilities=capabilities).run(config, collect)
    return events


__all__ = [
    'RunState',
    'RunSummary',
    'RunController',
    'progress_percent',
    'run_measurements',
]
