"""
Pydantic models for measurement settings and run configuration.

Three layers are involved when a run starts:

- ``MeasureSettings``: process-wide defaults held by a registry and adjusted
  with ``measure_settings(...)`` or a YAML settings file.
- ``RunConfiguration``: per-run overrides supplied by the caller; every field
  is optional and unset fields fall back to the settings.
- ``ResolvedRunConfig``: the frozen merge of the two that the engine reads.

Field names are snake_case in Python and keep their camelCase wire names
(``dataUnitSizes``, ``forceGC``, ...) as aliases, so both spellings are accepted
on input and ``model_dump(by_alias=True)`` reproduces the wire format.
"""

from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import ConfigError


# A per-level filter: None matches anything, a string matches exactly,
# a list matches any of its members.
PathFilter = Optional[Union[str, List[str]]]
SelectionPattern = List[PathFilter]

DEFAULT_DATA_UNIT_SIZES = [
    1, 2, 3, 4, 5, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100, 200, 300, 400, 500, 1000,
]


def _validation_errors(error: ValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
        for err in error.errors()
    ]


class _AliasedModel(BaseModel):
    """Shared behaviour for models whose fields carry camelCase aliases."""

    @classmethod
    def normalize_keys(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Map alias keys onto field names so later keys override earlier ones predictably."""
        alias_to_name = {
            field.alias: name for name, field in cls.model_fields.items() if field.alias
        }
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            normalized[alias_to_name.get(key, key)] = value
        return normalized

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None):
        """
        Validate a plain mapping, raising ConfigError instead of ValidationError.

        Args:
            data: Mapping using field names and/or camelCase aliases

        Returns:
            Validated model instance

        Raises:
            ConfigError: If any value fails validation (CONFIG_003)
        """
        try:
            return cls.model_validate(cls.normalize_keys(data or {}))
        except ValidationError as e:
            errors = _validation_errors(e)
            logger.error(f"{cls.__name__} validation failed: {errors}")
            raise ConfigError(
                f"Invalid {cls.__name__}: {len(errors)} validation error(s)",
                error_code="CONFIG_003",
                context={"validation_errors": errors},
            ) from e

    def to_wire(self) -> Dict[str, Any]:
        """Dump using the camelCase wire names, omitting unset optional values."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _check_positive_sizes(sizes: Optional[List[int]]) -> Optional[List[int]]:
    if sizes is None:
        return None
    for size in sizes:
        if size <= 0:
            raise ValueError(f"data unit sizes must be positive integers, got {size}")
    return sizes


class MeasureSettings(_AliasedModel):
    """
    Process-wide measurement defaults.

    Attributes:
        data_unit_sizes: Data sizes passed to the generators, in run order
        data_units_count: Number of synthetic data units generated per size
        series_size: Calls of the measured function per timed series
        series_count: Timed series per function per data size
        delay: Pause after each series, in milliseconds
        force_gc: Collect garbage before each series
        memory_measurements_count: Memory sampling passes; None disables memory measurement
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="forbid",
    )

    data_unit_sizes: List[int] = Field(
        default_factory=lambda: list(DEFAULT_DATA_UNIT_SIZES),
        alias="dataUnitSizes",
        description="Ordered data sizes handed to each data generator",
    )
    data_units_count: int = Field(default=100, ge=1, alias="dataUnitsCount")
    series_size: int = Field(default=1000, ge=1, alias="seriesSize")
    series_count: int = Field(default=10, ge=0, alias="seriesCount")
    delay: float = Field(default=1, ge=0, description="Milliseconds to wait after each series")
    force_gc: bool = Field(default=False, alias="forceGC")
    memory_measurements_count: Optional[int] = Field(
        default=None, ge=0, alias="memoryMeasurementsCount"
    )

    @field_validator('data_unit_sizes')
    @classmethod
    def validate_data_unit_sizes(cls, v: List[int]) -> List[int]:
        return _check_positive_sizes(v)

    def merged(self, overrides: Mapping[str, Any]) -> 'MeasureSettings':
        """
        Return a new settings object with ``overrides`` applied on top.

        Unknown keys and invalid values raise ConfigError; ``None`` values are
        applied as given, which only makes sense for memory_measurements_count.
        """
        base = self.model_dump()
        base.update(self.normalize_keys(overrides))
        return type(self).from_mapping(base)


class RunConfiguration(_AliasedModel):
    """
    Per-run overrides. Every field is optional.

    ``selected_paths`` holds selection patterns with OR semantics; an empty or
    missing list selects every registered leaf. ``share_data`` controls the
    per-group shared dataset optimization and defaults to enabled.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    selected_paths: Optional[List[SelectionPattern]] = Field(default=None, alias="selectedPaths")
    data_unit_sizes: Optional[List[int]] = Field(default=None, alias="dataUnitSizes")
    data_units_count: Optional[int] = Field(default=None, ge=1, alias="dataUnitsCount")
    series_size: Optional[int] = Field(default=None, ge=1, alias="seriesSize")
    series_count: Optional[int] = Field(default=None, ge=0, alias="seriesCount")
    delay: Optional[float] = Field(default=None, ge=0)
    force_gc: Optional[bool] = Field(default=None, alias="forceGC")
    memory_measurements_count: Optional[int] = Field(
        default=None, ge=0, alias="memoryMeasurementsCount"
    )
    share_data: Optional[bool] = Field(default=None, alias="shareData")

    SETTING_FIELDS: ClassVar[tuple] = (
        'data_unit_sizes',
        'data_units_count',
        'series_size',
        'series_count',
        'delay',
        'force_gc',
        'memory_measurements_count',
    )

    @field_validator('data_unit_sizes')
    @classmethod
    def validate_data_unit_sizes(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return _check_positive_sizes(v)

    def resolve(self, settings: MeasureSettings) -> 'ResolvedRunConfig':
        """Merge these overrides over ``settings``."""
        values = {}
        for name in self.SETTING_FIELDS:
            override = getattr(self, name)
            values[name] = override if override is not None else getattr(settings, name)

        values['selected_paths'] = list(self.selected_paths or [])
        values['share_data'] = True if self.share_data is None else self.share_data

        resolved = ResolvedRunConfig(**values)
        logger.debug(f"Resolved run configuration: {resolved.to_wire()}")
        return resolved


class ResolvedRunConfig(_AliasedModel):
    """Effective, immutable configuration of one run."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    selected_paths: List[SelectionPattern] = Field(default_factory=list, alias="selectedPaths")
    data_unit_sizes: List[int] = Field(alias="dataUnitSizes")
    data_units_count: int = Field(alias="dataUnitsCount")
    series_size: int = Field(alias="seriesSize")
    series_count: int = Field(alias="seriesCount")
    delay: float
    force_gc: bool = Field(alias="forceGC")
    memory_measurements_count: Optional[int] = Field(default=None, alias="memoryMeasurementsCount")
    share_data: bool = Field(default=True, alias="shareData")

    @property
    def measures_memory(self) -> bool:
        return bool(self.memory_measurements_count)

    @property
    def is_degenerate(self) -> bool:
        """True when the configuration cannot produce any result."""
        return not self.data_unit_sizes or self.series_count == 0


__all__ = [
    'PathFilter',
    'SelectionPattern',
    'DEFAULT_DATA_UNIT_SIZES',
    'MeasureSettings',
    'RunConfiguration',
    'ResolvedRunConfig',
]
