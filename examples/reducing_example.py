"""
Example script comparing ways of summing a list.

Registers two groups of candidate functions, runs them over a few data sizes
and logs ops/sec per function. An evaluate group charts the memory footprint
of the generated data next to the timings.
"""

import math
import random
import sys

from loguru import logger

import perfme
from perfme import (
    create_custom_chart,
    describe,
    evaluate,
    measure,
    measure_settings,
    run_measurements,
)


def _objects(size):
    return [{"value": random.random()} for _ in range(size)]


def _numbers(size):
    return [random.random() for _ in range(size)]


def _sum_for(array):
    result = 0.0
    for value in array:
        result += value
    return result


def register():
    measure_settings(seriesSize=1000, seriesCount=5, dataUnitSizes=[10, 100, 1000], delay=0)

    with describe("Reducing"):
        with describe("Objects"):
            measure("sum generator", lambda array: sum(item["value"] for item in array), _objects)
            measure("for loop", lambda array: _sum_for(item["value"] for item in array), _objects)

        with describe("Numbers"):
            measure("sum", sum, _numbers)
            measure("math.fsum", math.fsum, _numbers)
            measure("for loop", _sum_for, _numbers)

    bytes_chart = create_custom_chart("Bytes", metrics=["avg"], view=["absolute"])
    with describe("Footprint"):
        evaluate(bytes_chart, "list size", sys.getsizeof, _numbers)


def main():
    register()

    def report(event):
        if event.result is not None:
            logger.info(
                f"[{event.progress:3d}%] {' > '.join(event.path)} @ {event.data_size}: "
                f"{event.result.ops_per_second:,.0f} ops/s"
            )
        else:
            logger.info(
                f"[{event.progress:3d}%] {' > '.join(event.path)} @ {event.data_size}: "
                f"avg {event.custom_result.avg:,.0f}"
            )

    events = run_measurements({"selectedPaths": [["Reducing", "Numbers"], ["Footprint"]]}, on_progress=report)
    logger.success(f"perfme {perfme.__version__}: {len(events)} result(s)")


if __name__ == "__main__":
    main()
