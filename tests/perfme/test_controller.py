"""Tests for run control: traversal order, progress, sharing, stop, skip and failure."""

import asyncio
import threading

import pytest

from perfme.config import RunConfiguration
from perfme.engine.controller import RunController, RunState, progress_percent, run_measurements
from perfme.exceptions import ConfigError, MeasurementError, RunStateError


def _identity(x):
    return x


class CountingGenerator:
    def __init__(self):
        self.calls = 0

    def __call__(self, size):
        self.calls += 1
        return list(range(size))


@pytest.fixture
def controller(registry, capabilities):
    return RunController(registry=registry, capabilities=capabilities)


class TestProgressPercent:
    @pytest.mark.parametrize("done,total,expected", [
        (0, 0, 100),
        (0, 10, 0),
        (1, 8, 13),
        (1, 200, 1),
        (1, 3, 33),
        (10, 10, 100),
    ])
    def test_rounding(self, done, total, expected):
        assert progress_percent(done, total) == expected


class TestTraversal:
    def test_shared_generator_called_once_per_datum(self, registry, controller):
        generator = CountingGenerator()
        with registry.describe("Group"):
            registry.measure("first", _identity, generator)
            registry.measure("second", _identity, generator)

        events = []
        controller.run({"dataUnitSizes": [10], "dataUnitsCount": 5}, events.append)

        assert len(events) == 2
        assert [e.data_size for e in events] == [10, 10]
        assert generator.calls == 5

    def test_disabling_sharing_changes_only_generator_calls(self, registry, capabilities):
        generator = CountingGenerator()
        with registry.describe("Group"):
            registry.measure("first", _identity, generator)
            registry.measure("second", _identity, generator)

        shared = run_measurements({"shareData": True, "dataUnitSizes": [1, 2]},
                                  registry=registry, capabilities=capabilities)
        shared_calls = generator.calls
        generator.calls = 0
        unshared = run_measurements({"shareData": False, "dataUnitSizes": [1, 2]},
                                    registry=registry, capabilities=capabilities)

        assert shared_calls == 2 * 5
        assert generator.calls == 2 * 2 * 5
        assert [(e.path, e.data_size) for e in shared] == [(e.path, e.data_size) for e in unshared]
        assert [sorted(e.to_wire()) for e in shared] == [sorted(e.to_wire()) for e in unshared]

    def test_order_is_group_then_size_then_leaf(self, registry, controller):
        with registry.describe("A"):
            registry.measure("a1", _identity, range)
            registry.measure("a2", _identity, range)
        with registry.describe("B"):
            registry.measure("b1", _identity, range)

        events = []
        controller.run({"dataUnitSizes": [1, 2]}, events.append)

        assert [(e.title, e.data_size) for e in events] == [
            ("a1", 1), ("a2", 1), ("a1", 2), ("a2", 2), ("b1", 1), ("b1", 2),
        ]

    def test_every_leaf_once_per_size_without_selection(self, registry, controller):
        with registry.describe("A"):
            registry.measure("a1", _identity, range)
            with registry.describe("Inner"):
                registry.measure("i1", _identity, range)
        registry.measure("top", _identity, range)

        events = []
        controller.run({"dataUnitSizes": [3, 1, 2]}, events.append)

        pairs = [(tuple(e.path), e.data_size) for e in events]
        assert len(pairs) == len(set(pairs)) == 9

    def test_selection_runs_only_matching_leaves(self, registry, controller):
        with registry.describe("Encoding"):
            with registry.describe("JSON"):
                registry.measure("x", _identity, range)
            with registry.describe("Binary"):
                registry.measure("y", _identity, range)

        events = []
        controller.run({"selectedPaths": [[None, "Binary"]]}, events.append)

        assert [e.path for e in events] == [["Encoding", "Binary", "y"]]

    def test_evaluate_leaf_emits_custom_result(self, registry, controller):
        chart = registry.create_custom_chart("Doubled")
        with registry.describe("Eval"):
            registry.evaluate(chart, "double", lambda x: x * 2, lambda size: size)

        events = []
        controller.run({"dataUnitSizes": [4], "dataUnitsCount": 3}, events.append)

        (event,) = events
        assert event.result is None
        assert event.custom_result.values == [8, 8, 8]
        assert event.custom_result.avg == event.custom_result.min == event.custom_result.max == 8
        assert event.to_wire()["customResult"]["customChartId"] == chart.id

    def test_async_leaf_is_measured(self, registry, controller):
        calls = []

        async def target(x):
            calls.append(x)
            await asyncio.sleep(0)

        with registry.describe("Async"):
            registry.measure_async("sleep", target, lambda size: size)

        events = []
        controller.run({"seriesSize": 3, "seriesCount": 2}, events.append)

        assert len(events) == 1
        assert len(calls) == 6

    def test_async_progress_callback_is_awaited(self, registry, controller):
        registry.measure("top", _identity, range)
        received = []

        async def on_progress(event):
            await asyncio.sleep(0)
            received.append(event)

        controller.run(None, on_progress)
        assert len(received) == 1


class TestProgress:
    def test_monotonic_and_ends_at_100(self, registry, controller):
        with registry.describe("A"):
            registry.measure("a1", _identity, range)
            registry.measure("a2", _identity, range)
        with registry.describe("B"):
            registry.measure("b1", _identity, range)

        events = []
        summary = controller.run({"dataUnitSizes": [1, 5, 10]}, events.append)

        progress = [e.progress for e in events]
        assert progress == sorted(progress)
        assert progress[-1] == 100
        assert summary.progress == 100
        assert summary.results_emitted == 9

    def test_progress_weighted_by_data_size(self, registry, controller):
        registry.measure("top", _identity, range)

        events = []
        controller.run({"dataUnitSizes": [1, 3]}, events.append)

        assert [e.progress for e in events] == [25, 100]


class TestDegenerateRuns:
    @pytest.mark.parametrize("config", [
        {"dataUnitSizes": []},
        {"seriesCount": 0},
        {"selectedPaths": [["Missing"]]},
    ])
    def test_completes_immediately_at_100(self, registry, controller, config):
        registry.measure("top", _identity, range)
        events = []
        completed = []

        summary = controller.run(config, events.append, on_complete=completed.append)

        assert events == []
        assert summary.progress == 100
        assert completed == [summary]
        assert controller.state is RunState.COMPLETED

    def test_empty_registry(self, registry, controller):
        summary = controller.run()
        assert summary.results_emitted == 0
        assert summary.progress == 100

    def test_groups_without_leaves(self, registry, controller):
        with registry.describe("Empty"):
            with registry.describe("Nested"):
                pass
        completed = []

        summary = controller.run(None, on_complete=completed.append)

        assert summary.results_emitted == 0
        assert summary.progress == 100
        assert completed == [summary]

    def test_invalid_config_raises_config_error(self, controller):
        with pytest.raises(ConfigError):
            controller.run({"seriesCount": -1})
        assert controller.state is RunState.IDLE


class TestSkip:
    def test_skip_before_group_starts(self, registry, controller):
        with registry.describe("First"):
            registry.measure("f", _identity, range)
        with registry.describe("Second"):
            registry.measure("s", _identity, range)
        with registry.describe("Third"):
            registry.measure("t", _identity, range)

        def on_progress(event):
            events.append(event)
            controller.skip("Second")

        events = []
        summary = controller.run({"dataUnitSizes": [1, 2]}, on_progress)

        assert [e.title for e in events] == ["f", "f", "t", "t"]
        assert summary.skipped == ["Second"]

    def test_skip_mid_group_stops_remaining_leaves_and_sizes(self, registry, controller):
        with registry.describe("G"):
            registry.measure("a", _identity, range)
            registry.measure("b", _identity, range)
        registry.measure("after", _identity, range)

        def on_progress(event):
            events.append(event)
            if event.title == "a":
                controller.skip("G")

        events = []
        controller.run({"dataUnitSizes": [1, 2]}, on_progress)

        assert [(e.title, e.data_size) for e in events] == [("a", 1), ("after", 1), ("after", 2)]

    def test_skip_subgroup_maps_legacy_names(self, registry, controller):
        with registry.describe("Encoding"):
            with registry.describe("JSON"):
                registry.measure("x", _identity, range)
            with registry.describe("Binary"):
                registry.measure("y", _identity, range)

        def on_progress(event):
            events.append(event)
            controller.skip_subgroup("Encoding", "Binary")

        events = []
        controller.run({"dataUnitSizes": [1]}, on_progress)

        assert [e.title for e in events] == ["x"]
        assert "Encoding > Binary" in controller.last_summary.skipped

    def test_skip_set_resets_between_runs(self, registry, controller):
        registry.measure("top", _identity, range)

        controller.run(None, lambda event: controller.skip("top"))
        events = []
        controller.run(None, events.append)

        assert len(events) == 1

    def test_skip_is_logged(self, registry, controller, caplog):
        with registry.describe("G"):
            registry.measure("a", _identity, range)
        registry.measure("after", _identity, range)

        controller.run(None, lambda event: controller.skip("G"))

        assert "Skip requested for G" in caplog.text


class TestStop:
    def test_stop_from_progress_callback_ends_run(self, registry, controller):
        with registry.describe("G"):
            registry.measure("a", _identity, range)
            registry.measure("b", _identity, range)

        events = []
        completed = []

        def on_progress(event):
            events.append(event)
            controller.stop()

        summary = controller.run({"dataUnitSizes": [1, 2]}, on_progress, on_complete=completed.append)

        assert len(events) == 1
        assert summary.stopped
        assert completed == [summary]
        assert controller.state is RunState.COMPLETED

    def test_stop_cancels_delay_and_drops_partial_leaf(self, registry, controller):
        series_calls = []
        registry.measure("slow", series_calls.append, range)
        events = []

        async def scenario():
            asyncio.get_running_loop().call_later(0.05, controller.stop)
            return await controller.start({"seriesCount": 1000, "delay": 60_000}, events.append)

        summary = asyncio.run(scenario())

        assert events == []
        assert len(series_calls) == 1
        assert summary.stopped

    def test_stop_during_series_finishes_the_series(self, registry, controller):
        series_calls = []

        def target(x):
            series_calls.append(x)
            if len(series_calls) == 2:
                controller.stop()

        registry.measure("slow", target, range)

        events = []
        summary = controller.run({"seriesCount": 1000, "seriesSize": 4}, events.append)

        assert events == []
        assert len(series_calls) == 4
        assert summary.stopped

    def test_stop_from_another_thread(self, registry, capabilities):
        started = threading.Event()

        def target(x):
            started.set()

        registry.measure("waiting", target, range)
        controller = RunController(registry=registry, capabilities=capabilities)

        stopper = threading.Thread(target=lambda: (started.wait(5), controller.stop()))
        stopper.start()
        summary = controller.run({"seriesCount": 100, "delay": 60_000})
        stopper.join(5)

        assert summary.stopped
        assert summary.results_emitted == 0

    def test_stop_flag_resets_on_start(self, registry, controller):
        registry.measure("top", _identity, range)
        controller.stop()

        events = []
        summary = controller.run(None, events.append)

        assert len(events) == 1
        assert not summary.stopped


class TestFailure:
    def test_target_failure_is_fatal(self, registry, controller):
        calls = []

        def target(x):
            calls.append(x)
            if len(calls) == 3:
                raise RuntimeError("third call")

        with registry.describe("G"):
            registry.measure("broken", target, range)
            registry.measure("never", _identity, range)

        events = []
        errors = []
        completed = []
        with pytest.raises(MeasurementError) as excinfo:
            controller.run({"seriesCount": 10}, events.append,
                           on_complete=completed.append, on_error=errors.append)

        assert events == []
        assert errors == [excinfo.value]
        assert completed == []
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert controller.state is RunState.COMPLETED
        assert controller.last_summary.failed

    def test_no_events_after_failing_leaf(self, registry, controller):
        with registry.describe("G"):
            registry.measure("ok", _identity, range)
            registry.measure("broken", lambda x: 1 / 0, range)
            registry.measure("later", _identity, range)

        events = []
        with pytest.raises(MeasurementError):
            controller.run({"dataUnitSizes": [1, 2]}, events.append)

        assert [e.title for e in events] == ["ok"]

    def test_generator_failure_is_fatal(self, registry, controller):
        def generator(size):
            raise ValueError("bad size")

        registry.measure("top", _identity, generator)

        with pytest.raises(MeasurementError) as excinfo:
            controller.run()

        assert excinfo.value.error_code == "MEASURE_002"

    def test_failure_is_logged(self, registry, controller, caplog):
        registry.measure("top", lambda x: 1 / 0, range)

        with pytest.raises(MeasurementError):
            controller.run()

        assert "Measurement run failed" in caplog.text


class TestRunState:
    def test_concurrent_start_is_rejected(self, registry, controller, caplog):
        async def scenario():
            async def target(x):
                await asyncio.sleep(0)

            registry.measure_async("async", target, range)
            first = asyncio.ensure_future(controller.start({"seriesCount": 50, "delay": 1}))
            await asyncio.sleep(0)
            with pytest.raises(RunStateError):
                await controller.start()
            controller.stop()
            return await first

        summary = asyncio.run(scenario())
        assert summary.stopped
        assert "RunStateError: A measurement run is already in progress" in caplog.text

    def test_controller_is_reusable(self, registry, controller):
        registry.measure("top", _identity, range)

        first = controller.run()
        second = controller.run()

        assert first.results_emitted == second.results_emitted == 1

    def test_accepts_run_configuration_model(self, registry, controller):
        registry.measure("top", _identity, range)
        summary = controller.run(RunConfiguration(data_unit_sizes=[1, 2, 3]))
        assert summary.results_emitted == 3

    def test_settings_used_when_config_omits_fields(self, registry, controller):
        registry.measure("top", _identity, range)
        registry.measure_settings(dataUnitSizes=[7, 8])

        events = []
        controller.run(None, events.append)

        assert [e.data_size for e in events] == [7, 8]


class TestMemoryAndGarbageCollection:
    def test_memory_deltas_reach_the_result(self, registry, controller, fake_memory):
        fake_memory.readings = [100, 150, 100, 130]
        registry.measure("top", _identity, range)

        events = []
        controller.run({"memoryMeasurementsCount": 2}, events.append)

        assert len(events) == 1
        result = events[0].result
        assert result.memory == [50, 30]
        assert result.memory_avg == 40.0
        assert result.memory_min == 30
        assert result.memory_max == 50

    def test_memory_absent_without_count(self, registry, controller, fake_memory):
        registry.measure("top", _identity, range)

        events = []
        controller.run(None, events.append)

        assert events[0].result.memory is None
        assert events[0].result.memory_avg is None
        assert fake_memory.calls == 0

    def test_zero_count_disables_memory(self, registry, controller, fake_memory):
        registry.measure("top", _identity, range)

        events = []
        controller.run({"memoryMeasurementsCount": 0}, events.append)

        assert events[0].result.memory is None
        assert fake_memory.calls == 0

    def test_force_gc_collects_before_each_series(self, registry, controller, counting_gc):
        registry.measure("top", _identity, range)

        controller.run({"forceGC": True, "seriesCount": 3})

        assert counting_gc.calls == 3

    def test_no_collection_by_default(self, registry, controller, counting_gc):
        registry.measure("top", _identity, range)

        controller.run({"seriesCount": 3})

        assert counting_gc.calls == 0


class TestAsyncLeaves:
    def test_sync_function_registered_as_async(self, registry, controller):
        seen = []
        registry.measure_async("sync", seen.append, range)

        events = []
        controller.run({"seriesCount": 2}, events.append)

        assert len(events) == 1
        assert events[0].result is not None
        assert len(events[0].result.series) == 2
        assert len(seen) == 2

    def test_coroutine_function_is_awaited(self, registry, controller):
        awaited = []

        async def target(x):
            awaited.append(x)

        registry.measure("async", target, range)

        events = []
        controller.run({"seriesCount": 2}, events.append)

        assert len(events) == 1
        assert len(awaited) == 2
