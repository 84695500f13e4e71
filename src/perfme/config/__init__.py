"""Measurement settings, run configuration and settings-file loading."""

from .models import (
    PathFilter,
    SelectionPattern,
    DEFAULT_DATA_UNIT_SIZES,
    MeasureSettings,
    RunConfiguration,
    ResolvedRunConfig,
)
from .loader import read_settings_mapping, load_settings_file

__all__ = [
    'PathFilter',
    'SelectionPattern',
    'DEFAULT_DATA_UNIT_SIZES',
    'MeasureSettings',
    'RunConfiguration',
    'ResolvedRunConfig',
    'read_settings_mapping',
    'load_settings_file',
]
