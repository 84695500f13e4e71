"""
Result records and progress events.

Python attribute names are snake_case; the camelCase names used on the wire
(``dataSize``, ``opsPerSecond``, ``customChartId``, ...) are aliases, and
``to_wire()`` produces the event dictionaries observers and transports expect.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _WireRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class MeasurementResult(_WireRecord):
    """
    Statistics of a measure leaf at one data size.

    Durations are per single call in milliseconds; ``avg``/``min``/``max`` are
    calls per second. ``min`` comes from the slowest series and ``max`` from the
    fastest. Memory fields are present only when memory passes ran.
    """

    path: List[str]
    title: str
    data_size: int = Field(alias="dataSize")
    series: List[float] = Field(description="Per-series throughput, 1000 / series duration")
    avg: float
    min: float
    max: float
    ops_per_second: float = Field(alias="opsPerSecond")
    duration: float
    duration_min: float = Field(alias="durationMin")
    duration_max: float = Field(alias="durationMax")
    memory: Optional[List[int]] = None
    memory_avg: Optional[float] = Field(default=None, alias="memoryAvg")
    memory_min: Optional[float] = Field(default=None, alias="memoryMin")
    memory_max: Optional[float] = Field(default=None, alias="memoryMax")


class CustomMeasurementResult(_WireRecord):
    """Values returned by an evaluate leaf at one data size and their summary."""

    path: List[str]
    title: str
    data_size: int = Field(alias="dataSize")
    values: List[float]
    avg: float
    min: float
    max: float
    custom_chart_id: str = Field(alias="customChartId")


class MeasurementProgress(_WireRecord):
    """One event per completed (leaf, data size); carries exactly one result."""

    path: List[str]
    title: str
    data_size: int = Field(alias="dataSize")
    progress: int = Field(ge=0, le=100)
    result: Optional[MeasurementResult] = None
    custom_result: Optional[CustomMeasurementResult] = Field(default=None, alias="customResult")

    @model_validator(mode='after')
    def check_single_result(self) -> 'MeasurementProgress':
        if (self.result is None) == (self.custom_result is None):
            raise ValueError("exactly one of result and custom_result must be set")
        return self


__all__ = ['MeasurementResult', 'CustomMeasurementResult', 'MeasurementProgress']
