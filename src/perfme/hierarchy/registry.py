"""
Registration of measured functions into a ``describe`` hierarchy.

``HierarchyRegistry`` records groups and leaves as they are declared and
validates each declaration on the spot, so the engine can rely on unique
sibling titles and on groups never mixing measure and evaluate leaves.

Usage:
    >>> registry = HierarchyRegistry()
    >>> with registry.describe("Sorting"):
    ...     registry.measure("sorted", sorted, lambda size: list(range(size, 0, -1)))
    ...     registry.measure("list.sort", lambda data: list(data).sort(),
    ...                      lambda size: list(range(size, 0, -1)))

The module-level functions (``describe``, ``measure``, ...) delegate to a
process-wide ``default_registry`` for scripts that declare measurements at
import time.
"""

import inspect
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..config import MeasureSettings, load_settings_file
from ..exceptions import RegistrationError
from .models import (
    ROOT_TITLE,
    CustomChart,
    EvaluateLeaf,
    GroupNode,
    HierarchyNode,
    LegacyLeafRecord,
    MeasureLeaf,
    NodeKind,
    join_path,
)

CHART_METRICS = ('avg', 'min', 'max')
CHART_VIEWS = ('relative', 'absolute')
CHART_X_AXES = ('category', 'linear')


def _location(path: Sequence[str]) -> str:
    return join_path(path) if path else 'root'


class HierarchyRegistry:
    """
    Recorder for one measurement hierarchy and its default settings.

    Declarations nest through ``describe``; the group currently being declared
    is the top of an internal stack. A lock serializes declarations so that a
    registry shared between threads never observes a half-built group.
    """

    def __init__(self, settings: Optional[MeasureSettings] = None):
        self._lock = threading.RLock()
        self._root = GroupNode(title=ROOT_TITLE, path=())
        self._stack: List[GroupNode] = [self._root]
        self._chart_count = 0
        self._charts: List[CustomChart] = []
        self._settings = settings if settings is not None else MeasureSettings()

    # --- Validation ---

    def _check_title(self, title: Any, parent: GroupNode) -> None:
        if not isinstance(title, str) or not title.strip():
            raise RegistrationError(
                f"Title must be a non-empty string, got {title!r} at path {_location(parent.path)}",
                error_code="REGISTRY_001",
                context={"path": list(parent.path)},
            )
        if parent.find_child(title) is not None:
            raise RegistrationError(
                f'Duplicate title "{title}" at path {_location(parent.path)}',
                error_code="REGISTRY_002",
                context={"path": list(parent.path), "title": title},
            )

    @staticmethod
    def _check_callable(value: Any, name: str, title: str) -> None:
        if not callable(value):
            raise RegistrationError(
                f'{name} for "{title}" must be callable, got {type(value).__name__}',
                error_code="REGISTRY_004",
                context={"title": title, "argument": name},
            )

    @staticmethod
    def _check_kind(parent: GroupNode, kind: NodeKind, title: str) -> None:
        other = NodeKind.EVALUATE if kind is NodeKind.MEASURE else NodeKind.MEASURE
        if parent.has_child_kind(other):
            raise RegistrationError(
                f'Cannot register {kind.value} "{title}" next to {other.value} leaves '
                f'at path {_location(parent.path)}',
                error_code="REGISTRY_003",
                context={"path": list(parent.path), "title": title},
            )

    # --- Declarations ---

    @property
    def current_group(self) -> GroupNode:
        return self._stack[-1]

    @contextmanager
    def _open_group(self, title: str) -> Iterator[GroupNode]:
        with self._lock:
            parent = self.current_group
            self._check_title(title, parent)
            group = GroupNode(title=title, path=parent.path + (title,))
            parent.children.append(group)
            self._stack.append(group)
        logger.debug(f"Entered group {join_path(group.path)}")
        try:
            yield group
        finally:
            with self._lock:
                self._stack.pop()

    def describe(self, title: str, runner: Optional[Callable[[], Any]] = None):
        """
        Declare a group.

        With ``runner`` the group is declared, ``runner()`` is called inside it,
        and the new ``GroupNode`` is returned. Without it a context manager is
        returned and everything declared in the ``with`` body lands in the group.

        Raises:
            RegistrationError: Empty or duplicate title, or a non-callable runner
        """
        if runner is None:
            return self._open_group(title)

        self._check_callable(runner, "runner", title)
        with self._open_group(title) as group:
            runner()
        return group

    def _add_leaf(self, leaf_factory: Callable[[Tuple[str, ...]], HierarchyNode],
                  title: str, kind: NodeKind) -> HierarchyNode:
        with self._lock:
            parent = self.current_group
            self._check_title(title, parent)
            self._check_kind(parent, kind, title)
            leaf = leaf_factory(parent.path + (title,))
            parent.children.append(leaf)
        logger.debug(f"Registered {kind.value} leaf {join_path(leaf.path)}")
        return leaf

    def measure(
        self,
        title: str,
        fn: Callable[[Any], Any],
        data_generator: Callable[[int], Any],
        is_async: Optional[bool] = None,
    ) -> MeasureLeaf:
        """
        Declare a timed function in the current group.

        ``is_async`` defaults to whether ``fn`` is a coroutine function.
        """
        self._check_callable(fn, "fn", title)
        self._check_callable(data_generator, "data_generator", title)
        if is_async is None:
            is_async = inspect.iscoroutinefunction(fn)

        return self._add_leaf(
            lambda path: MeasureLeaf(
                title=title, path=path, fn=fn, data_generator=data_generator, is_async=is_async
            ),
            title,
            NodeKind.MEASURE,
        )

    def measure_async(
        self,
        title: str,
        fn: Callable[[Any], Any],
        data_generator: Callable[[int], Any],
    ) -> MeasureLeaf:
        """Declare a function whose every call is awaited."""
        return self.measure(title, fn, data_generator, is_async=True)

    def evaluate(
        self,
        custom_chart: CustomChart,
        title: str,
        fn: Callable[[Any], float],
        data_generator: Callable[[int], Any],
    ) -> EvaluateLeaf:
        """Declare a function whose numeric result is charted on ``custom_chart``."""
        if not isinstance(custom_chart, CustomChart):
            raise RegistrationError(
                f'Evaluate "{title}" needs a chart from create_custom_chart(), '
                f'got {type(custom_chart).__name__}',
                error_code="REGISTRY_005",
                context={"title": title},
            )
        self._check_callable(fn, "fn", title)
        self._check_callable(data_generator, "data_generator", title)

        return self._add_leaf(
            lambda path: EvaluateLeaf(
                title=title,
                path=path,
                fn=fn,
                data_generator=data_generator,
                custom_chart=custom_chart,
            ),
            title,
            NodeKind.EVALUATE,
        )

    def create_custom_chart(
        self,
        y_axis_title: str,
        metrics: Optional[Sequence[str]] = None,
        view: Optional[Sequence[str]] = None,
        x_axis: Optional[Sequence[str]] = None,
    ) -> CustomChart:
        """
        Create a chart with the next ``custom_<n>`` id.

        Raises:
            RegistrationError: Unknown metric, view or axis name (REGISTRY_005)
        """
        options = {
            'metrics': (metrics, CHART_METRICS),
            'view': (view, CHART_VIEWS),
            'x_axis': (x_axis, CHART_X_AXES),
        }
        values: Dict[str, Tuple[str, ...]] = {}
        for name, (given, allowed) in options.items():
            chosen = tuple(given) if given is not None else allowed
            unknown = [item for item in chosen if item not in allowed]
            if unknown or not chosen:
                raise RegistrationError(
                    f"Invalid chart {name} {list(chosen)}; allowed values are {list(allowed)}",
                    error_code="REGISTRY_005",
                    context={"option": name},
                )
            values[name] = chosen

        with self._lock:
            self._chart_count += 1
            chart = CustomChart(id=f"custom_{self._chart_count}", y_axis_title=y_axis_title, **values)
            self._charts.append(chart)
        return chart

    # --- Settings ---

    def measure_settings(self, **overrides: Any) -> MeasureSettings:
        """
        Override process-wide defaults; accepts field names or camelCase keys.

        Raises:
            ConfigError: Unknown key or invalid value
        """
        with self._lock:
            self._settings = self._settings.merged(overrides)
            logger.debug(f"Measure settings updated: {self._settings.to_wire()}")
            return self._settings

    def load_settings(self, path: Union[str, Path]) -> MeasureSettings:
        """Apply a YAML settings file on top of the current settings."""
        with self._lock:
            self._settings = load_settings_file(path, base=self._settings)
            return self._settings

    def get_settings(self) -> MeasureSettings:
        return self._settings

    # --- Introspection ---

    def get_hierarchy(self) -> GroupNode:
        """Root group; its title is the synthetic ``__root__`` and its path is empty."""
        return self._root

    def iter_leaves(self) -> Iterator[Union[MeasureLeaf, EvaluateLeaf]]:
        return self._root.iter_leaves()

    def get_registered_leaves(self) -> List[LegacyLeafRecord]:
        """Flat group/subgroup/title records for every leaf in declaration order."""
        with self._lock:
            return [LegacyLeafRecord.from_leaf(leaf) for leaf in self._root.iter_leaves()]

    def get_custom_charts(self) -> List[CustomChart]:
        return list(self._charts)

    def get_hierarchy_info(self) -> List[Dict[str, Any]]:
        """Titles, paths and kinds of every top-level node, recursively."""
        with self._lock:
            return [child.to_info() for child in self._root.children]

    def get_groups(self) -> Dict[str, Dict[str, List[str]]]:
        """
        Legacy ``{group: {subgroup: [titles]}}`` listing.

        Within a group, subgroups holding evaluate leaves come before the rest;
        otherwise first-appearance order is kept.
        """
        groups: Dict[str, Dict[str, List[str]]] = {}
        evaluate_subgroups: Dict[str, List[str]] = {}

        for record in self.get_registered_leaves():
            subgroups = groups.setdefault(record.group, {})
            subgroups.setdefault(record.sub_group, []).append(record.title)
            if record.kind is NodeKind.EVALUATE:
                evaluated = evaluate_subgroups.setdefault(record.group, [])
                if record.sub_group not in evaluated:
                    evaluated.append(record.sub_group)

        ordered: Dict[str, Dict[str, List[str]]] = {}
        for group, subgroups in groups.items():
            first = evaluate_subgroups.get(group, [])
            keys = first + [key for key in subgroups if key not in first]
            ordered[group] = {key: subgroups[key] for key in keys}
        return ordered

    def clear(self) -> None:
        """Forget every declaration and chart; settings are kept."""
        with self._lock:
            if len(self._stack) > 1:
                raise RegistrationError(
                    f"Cannot clear the registry inside group {join_path(self.current_group.path)}",
                    error_code="REGISTRY_006",
                )
            self._root = GroupNode(title=ROOT_TITLE, path=())
            self._stack = [self._root]
            self._chart_count = 0
            self._charts = []
        logger.debug("Hierarchy registry cleared")


default_registry = HierarchyRegistry()


def describe(title: str, runner: Optional[Callable[[], Any]] = None):
    """Declare a group on the default registry."""
    return default_registry.describe(title, runner)


def measure(title: str, fn: Callable[[Any], Any], data_generator: Callable[[int], Any],
            is_async: Optional[bool] = None) -> MeasureLeaf:
    """Declare a measured function on the default registry."""
    return default_registry.measure(title, fn, data_generator, is_async=is_async)


def measure_async(title: str, fn: Callable[[Any], Any],
                  data_generator: Callable[[int], Any]) -> MeasureLeaf:
    return default_registry.measure_async(title, fn, data_generator)


def evaluate(custom_chart: CustomChart, title: str, fn: Callable[[Any], float],
             data_generator: Callable[[int], Any]) -> EvaluateLeaf:
    return default_registry.evaluate(custom_chart, title, fn, data_generator)


def create_custom_chart(y_axis_title: str, metrics: Optional[Sequence[str]] = None,
                        view: Optional[Sequence[str]] = None,
                        x_axis: Optional[Sequence[str]] = None) -> CustomChart:
    return default_registry.create_custom_chart(y_axis_title, metrics=metrics, view=view, x_axis=x_axis)


def measure_settings(**overrides: Any) -> MeasureSettings:
    return default_registry.measure_settings(**overrides)


def get_settings() -> MeasureSettings:
    return default_registry.get_settings()


def get_hierarchy() -> GroupNode:
    return default_registry.get_hierarchy()


def get_registered_leaves() -> List[LegacyLeafRecord]:
    return default_registry.get_registered_leaves()


def get_hierarchy_info() -> List[Dict[str, Any]]:
    return default_registry.get_hierarchy_info()


def get_groups() -> Dict[str, Dict[str, List[str]]]:
    return default_registry.get_groups()


__all__ = [
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
    'get_hierarchy_info',
    'get_groups',
]
