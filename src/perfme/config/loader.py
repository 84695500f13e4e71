"""
YAML settings file handling.

A settings file is a flat mapping of MeasureSettings fields, written with
either the snake_case field names or the camelCase wire names::

    dataUnitSizes: [10, 100, 1000]
    seriesCount: 20
    force_gc: true
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from ..exceptions import ConfigError
from .models import MeasureSettings


def read_settings_mapping(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a YAML settings file into a dictionary.

    Args:
        path: Location of the YAML file

    Returns:
        The parsed mapping (empty for an empty file)

    Raises:
        ConfigError: CONFIG_001 if the file is missing, CONFIG_002 on YAML
            syntax errors, CONFIG_004 if the document is not a mapping
    """
    settings_path = Path(path)
    if not settings_path.is_file():
        raise ConfigError(
            f"Settings file not found: {settings_path}",
            error_code="CONFIG_001",
            context={"settings_path": str(settings_path)},
        )

    try:
        with settings_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Error parsing YAML settings: {e}",
            error_code="CONFIG_002",
            context={"settings_path": str(settings_path)},
        ) from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(
            f"Settings file must contain a mapping, got {type(raw).__name__}",
            error_code="CONFIG_004",
            context={"settings_path": str(settings_path)},
        )
    return raw


def load_settings_file(
    path: Union[str, Path],
    base: Optional[MeasureSettings] = None,
) -> MeasureSettings:
    """
    Load measurement settings from YAML, layered over ``base`` (or the defaults).

    Args:
        path: Location of the YAML file
        base: Settings the file overrides; built-in defaults when None

    Returns:
        Validated MeasureSettings

    Raises:
        ConfigError: If the file cannot be read or its values are invalid
    """
    overrides = read_settings_mapping(path)
    logger.debug(f"Loaded {len(overrides)} setting(s) from {path}")
    return (base or MeasureSettings()).merged(overrides)


__all__ = [
    'read_settings_mapping',
    'load_settings_file',
]
