"""
perfme - a performance-measurement harness for comparing candidate functions.

Functions are registered into a nested ``describe`` hierarchy together with a
data generator, and a run measures every selected function at every requested
data size, streaming one progress event per (function, data size) pair.

This module also owns the Loguru logging configuration used by the whole
package. Logging is initialized on import, except under pytest where the test
suite installs its own sinks.
"""

__version__ = "0.1.0"

import sys
import os
from pathlib import Path
from typing import Optional, Dict, Union, TextIO
from loguru import logger
import warnings


# --- Logger Configuration Classes and Types ---

class LoggingConfigError(Exception):
    """Exception raised when logging configuration fails validation or setup."""
    pass


class LoggerState:
    """
    Tracks which Loguru sinks perfme has installed.

    Keeping the sink ids around lets tests and embedding applications tear the
    package's logging down again without touching sinks they added themselves.
    """

    def __init__(self):
        self._initialized = False
        self._test_mode = False
        self._sink_ids = []

    def is_initialized(self) -> bool:
        """Check if logger has been initialized."""
        return self._initialized

    def is_test_mode(self) -> bool:
        """Check if logger is in test mode."""
        return self._test_mode

    def mark_initialized(self, test_mode: bool = False):
        """Mark logger as initialized."""
        self._initialized = True
        self._test_mode = test_mode

    def add_sink_id(self, sink_id: int):
        """Track sink IDs for cleanup."""
        self._sink_ids.append(sink_id)

    @property
    def sink_ids(self):
        return list(self._sink_ids)

    def reset(self):
        """Reset logger state."""
        self._initialized = False
        self._test_mode = False
        self._sink_ids.clear()


_logger_state = LoggerState()


# --- Configuration Validation Functions ---

def validate_log_level(level: str) -> str:
    """
    Validate a log level name.

    Args:
        level: Log level string to validate

    Returns:
        Upper-cased log level name

    Raises:
        LoggingConfigError: If log level is invalid
    """
    valid_levels = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
    level_upper = level.upper()

    if level_upper not in valid_levels:
        raise LoggingConfigError(
            f"Invalid log level '{level}'. Must be one of: {', '.join(sorted(valid_levels))}"
        )

    return level_upper


def validate_output_destination(destination: Union[str, Path, TextIO, None]) -> Union[str, TextIO, None]:
    """
    Validate a log destination, creating the parent directory of file targets.

    Args:
        destination: File path or file-like object

    Returns:
        The stream itself, or the file path as a string

    Raises:
        LoggingConfigError: If destination is invalid
    """
    if destination is None:
        return None

    if hasattr(destination, 'write'):
        return destination

    try:
        path_dest = Path(destination)

        if not path_dest.parent.exists():
            try:
                path_dest.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise LoggingConfigError(
                    f"Cannot create directory for log destination '{destination}': {e}"
                )

        return str(path_dest)
    except (TypeError, ValueError) as e:
        raise LoggingConfigError(
            f"Invalid output destination '{destination}': {e}"
        )


# --- Core Logging Configuration Functions ---

def configure_console_logging(
    level: str = "INFO",
    format_template: Optional[str] = None,
    colorize: bool = True,
    destination: TextIO = sys.stderr
) -> int:
    """
    Add a console sink.

    Args:
        level: Log level for console output
        format_template: Custom format template (uses default if None)
        colorize: Enable colored console output
        destination: Console stream (default: sys.stderr)

    Returns:
        Sink ID for tracking and cleanup

    Raises:
        LoggingConfigError: If configuration fails
    """
    try:
        validated_level = validate_log_level(level)

        if format_template is None:
            format_template = (
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
            )

        sink_id = logger.add(
            destination,
            level=validated_level,
            format=format_template,
            colorize=colorize
        )

        _logger_state.add_sink_id(sink_id)
        return sink_id

    except Exception as e:
        raise LoggingConfigError(f"Failed to configure console logging: {e}") from e


def configure_file_logging(
    log_file_path: Union[str, Path],
    level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    compression: str = "zip",
    format_template: Optional[str] = None,
    encoding: str = "utf-8",
) -> int:
    """
    Add a rotating file sink.

    Args:
        log_file_path: Path to log file (may contain Loguru time placeholders)
        level: Log level for file output
        rotation: Log rotation setting
        retention: Log retention setting
        compression: Compression method for rotated logs
        format_template: Custom format template (uses default if None)
        encoding: File encoding

    Returns:
        Sink ID for tracking and cleanup

    Raises:
        LoggingConfigError: If configuration fails
    """
    try:
        validated_level = validate_log_level(level)
        validated_path = validate_output_destination(log_file_path)

        if format_template is None:
            format_template = (
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{name}:{function}:{line} - {message}"
            )

        sink_id = logger.add(
            validated_path,
            rotation=rotation,
            retention=retention,
            compression=compression,
            level=validated_level,
            format=format_template,
            encoding=encoding
        )

        _logger_state.add_sink_id(sink_id)
        return sink_id

    except Exception as e:
        raise LoggingConfigError(f"Failed to configure file logging: {e}") from e


# --- Test-Specific Entry Points ---

def configure_test_logging(
    console_level: str = "DEBUG",
    console_destination: Optional[TextIO] = None,
    enable_file_logging: bool = False,
    file_destination: Optional[Union[str, Path]] = None,
) -> Dict[str, int]:
    """
    Replace all sinks with an uncolored console sink (and optionally a file sink).

    Args:
        console_level: Console log level for tests
        console_destination: Console destination (None uses sys.stderr)
        enable_file_logging: Whether to enable file logging in tests
        file_destination: File destination for test logs

    Returns:
        Dictionary mapping sink types to sink IDs

    Raises:
        LoggingConfigError: If test logging configuration fails
    """
    try:
        reset_logging()

        sink_ids = {}
        console_dest = console_destination if console_destination is not None else sys.stderr
        sink_ids['console'] = configure_console_logging(
            level=console_level,
            destination=console_dest,
            colorize=False,
        )

        if enable_file_logging and file_destination:
            sink_ids['file'] = configure_file_logging(log_file_path=file_destination)

        _logger_state.mark_initialized(test_mode=True)
        return sink_ids

    except LoggingConfigError:
        raise
    except Exception as e:
        raise LoggingConfigError(f"Failed to configure test logging: {e}") from e


def reset_logging():
    """
    Remove every Loguru sink and forget the tracked sink ids.

    Raises:
        LoggingConfigError: If reset fails
    """
    try:
        logger.remove()
        _logger_state.reset()
    except Exception as e:
        raise LoggingConfigError(f"Failed to reset logging configuration: {e}") from e


# --- Production Logging Initialization ---

def default_log_directory() -> Path:
    """Directory used for file logs when none is given: ``~/.perfme/logs``."""
    return Path.home() / ".perfme" / "logs"


def initialize_production_logging(
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_dir: Optional[Union[str, Path]] = None,
) -> Dict[str, int]:
    """
    Install the default console and daily file sinks.

    Args:
        console_level: Console logging level
        file_level: File logging level
        log_dir: Directory for log files (``~/.perfme/logs`` if None)

    Returns:
        Dictionary mapping sink types to sink IDs

    Raises:
        LoggingConfigError: If production logging initialization fails
    """
    try:
        logger.remove()

        sink_ids = {}
        sink_ids['console'] = configure_console_logging(level=console_level)

        log_dir = Path(log_dir) if log_dir is not None else default_log_directory()
        log_file_path = log_dir / "perfme_{time:YYYYMMDD}.log"

        sink_ids['file'] = configure_file_logging(
            log_file_path=log_file_path,
            level=file_level,
        )

        _logger_state.mark_initialized(test_mode=False)
        logger.debug("--- perfme logger initialized ---")

        return sink_ids

    except LoggingConfigError:
        raise
    except Exception as e:
        raise LoggingConfigError(f"Failed to initialize production logging: {e}") from e


# --- Module-Level Logger State Access ---

def get_logger_state() -> LoggerState:
    """Get current logger state for inspection."""
    return _logger_state


def is_logging_initialized() -> bool:
    """Check if logging has been initialized."""
    return _logger_state.is_initialized()


def is_test_mode() -> bool:
    """Check if logging is in test mode."""
    return _logger_state.is_test_mode()


def _auto_initialize_logging():
    """Initialize production logging unless already configured or running under pytest."""
    if not _logger_state.is_initialized() and not _is_pytest_running():
        try:
            initialize_production_logging()
        except LoggingConfigError as e:
            warnings.warn(f"Failed to initialize production logging: {e}. Using basic stderr logging.")
            logger.add(sys.stderr, level="INFO")
            _logger_state.mark_initialized(test_mode=False)


def _is_pytest_running() -> bool:
    """Detect if code is running under pytest."""
    return "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ


_auto_initialize_logging()

# --- End Logger Configuration ---

# Public API. Imported after the logger so submodules can use ``from perfme import logger``.
from perfme.exceptions import (  # noqa: E402
    PerfmeError,
    ConfigError,
    RegistrationError,
    MeasurementError,
    RunStateError,
)
from perfme.config import (  # noqa: E402
    MeasureSettings,
    RunConfiguration,
    ResolvedRunConfig,
    load_settings_file,
)
from perfme.hierarchy import (  # noqa: E402
    GroupNode,
    MeasureLeaf,
    EvaluateLeaf,
    CustomChart,
    HierarchyRegistry,
    default_registry,
    describe,
    measure,
    measure_async,
    evaluate,
    create_custom_chart,
    measure_settings,
    get_settings,
    get_hierarchy,
    get_registered_leaves,
)
from perfme.engine import (  # noqa: E402
    matches_path_pattern,
    build_plan,
    MeasurementResult,
    CustomMeasurementResult,
    MeasurementProgress,
    RunController,
    RunState,
    RunSummary,
    run_measurements,
)

__all__ = [
    '__version__',
    'logger',
    'LoggingConfigError',
    'configure_console_logging',
    'configure_file_logging',
    'configure_test_logging',
    'reset_logging',
    'initialize_production_logging',
    'get_logger_state',
    'is_logging_initialized',
    'is_test_mode',
    # Exceptions
    'PerfmeError',
    'ConfigError',
    'RegistrationError',
    'MeasurementError',
    'RunStateError',
    # Configuration
    'MeasureSettings',
    'RunConfiguration',
    'ResolvedRunConfig',
    'load_settings_file',
    # Registration
    'GroupNode',
    'MeasureLeaf',
    'EvaluateLeaf',
    'CustomChart',
    'HierarchyRegistry',
    'default_registry',
    'describe',
    'measure',
    'measure_async',
    'evaluate',
    'create_custom_chart',
    'measure_settings',
    'get_settings',
    'get_hierarchy',
    'get_registered_leaves',
    # Engine
    'matches_path_pattern',
    'build_plan',
    'MeasurementResult',
    'CustomMeasurementResult',
    'MeasurementProgress',
    'RunController',
    'RunState',
    'RunSummary',
    'run_measurements',
]
