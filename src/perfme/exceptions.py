"""
perfme Exception Hierarchy

Domain-specific exceptions used across registration, configuration and
measurement runs:

- PerfmeError: Base exception for all perfme-specific errors
- ConfigError: Invalid settings or run configuration values
- RegistrationError: Invalid hierarchy declarations (duplicate titles, mixing kinds)
- MeasurementError: A registered function or data generator failed during a run
- RunStateError: A control request that does not fit the controller's state

Each exception carries an error code for programmatic handling and a context
dictionary for debugging.

Usage Examples:
    >>> try:
    ...     controller.run(config, on_progress)
    ... except MeasurementError as e:
    ...     logger.error(f"Run failed: {e}")
    ...     if e.error_code == "MEASURE_002":
    ...         # the data generator raised, not the measured function
    ...         ...
"""

import sys
from typing import Any, Dict, Optional


class PerfmeError(Exception):
    """
    Base exception class for all perfme-specific errors.

    Attributes:
        error_code (str): Unique identifier for programmatic error handling
        context (Dict[str, Any]): Additional context information for debugging

    Error Codes:
        PERFME_001: Generic perfme error
        PERFME_002: Unexpected internal error
    """

    def __init__(
        self,
        message: str,
        error_code: str = "PERFME_001",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Initialize the error with message, error code, and context.

        Args:
            message: Human-readable error description
            error_code: Unique identifier for programmatic error handling
            context: Additional context information for debugging
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = dict(context) if context else {}

        if hasattr(sys, '_getframe'):
            frame = sys._getframe(1)
            # Skip the __init__ frames of subclasses chaining up to this one.
            while frame is not None and frame.f_code.co_name == '__init__' and frame.f_locals.get('self') is self:
                frame = frame.f_back
            if frame is not None:
                self.context.setdefault('source_function', frame.f_code.co_name)

    @property
    def message(self) -> str:
        return super().__str__()

    def with_context(self, context: Dict[str, Any]) -> 'PerfmeError':
        """
        Add additional context to the exception and return self for chaining.

        Example:
            >>> raise PerfmeError("Operation failed").with_context({
            ...     "path": ["Sorting", "quick"],
            ...     "data_size": 100,
            ... })
        """
        self.context.update(context)
        return self

    def __str__(self) -> str:
        message = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{message} [Error Code: {self.error_code}, Context: {context_str}]"
        return f"{message} [Error Code: {self.error_code}]"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"context={self.context!r})"
        )


class ConfigError(PerfmeError):
    """
    Settings and run configuration errors.

    Error Codes:
        CONFIG_001: Settings file not found
        CONFIG_002: YAML parsing error
        CONFIG_003: Pydantic validation failure
        CONFIG_004: Settings file does not contain a mapping
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_003",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)

        if context and 'validation_errors' in context:
            self.context['validation_errors'] = context['validation_errors']


class RegistrationError(PerfmeError):
    """
    Hierarchy registration errors.

    Raised by the registry while a hierarchy is being declared; the measurement
    engine assumes every hierarchy it reads passed these checks.

    Error Codes:
        REGISTRY_001: Title is empty or not a string
        REGISTRY_002: Duplicate title among siblings
        REGISTRY_003: Measure and evaluate leaves mixed in one group
        REGISTRY_004: Function or data generator is not callable
        REGISTRY_005: Invalid custom chart
        REGISTRY_006: Registry cleared while a group is still open
    """

    def __init__(
        self,
        message: str,
        error_code: str = "REGISTRY_001",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)


class MeasurementError(PerfmeError):
    """
    Failures raised by registered code during a run.

    Any exception from a measured function or data generator is fatal for the
    whole run; it is wrapped in this class with the original chained as
    ``__cause__``.

    Error Codes:
        MEASURE_001: Measured function raised
        MEASURE_002: Data generator raised
        MEASURE_003: Evaluate function returned a non-numeric value
    """

    def __init__(
        self,
        message: str,
        error_code: str = "MEASURE_001",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)

        if context:
            if 'path' in context:
                self.context['path'] = list(context['path'])
            if 'data_size' in context:
                self.context['data_size'] = context['data_size']


class RunStateError(PerfmeError):
    """
    Control requests that do not fit the controller's current state.

    Error Codes:
        RUN_001: A run is already in progress on this controller
    """

    def __init__(
        self,
        message: str,
        error_code: str = "RUN_001",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, error_code, context)


def log_and_raise(
    exception: PerfmeError,
    logger: Optional[Any] = None,
    level: str = "error"
) -> None:
    """
    Log an exception with its context and then raise it.

    Args:
        exception: The exception to log and raise
        logger: Logger instance to use (optional)
        level: Log level ("error", "warning", "critical")

    Raises:
        The provided exception after logging
    """
    if logger is not None:
        log_method = getattr(logger, level, logger.error)
        log_method(f"{exception.__class__.__name__}: {exception.message}")

        for key, value in exception.context.items():
            log_method(f"  {key}: {value}")

    raise exception


__all__ = [
    'PerfmeError',
    'ConfigError',
    'RegistrationError',
    'MeasurementError',
    'RunStateError',
    'log_and_raise',
]
