"""
Hierarchy node types.

A hierarchy is a tree of ``GroupNode`` objects whose leaves are either
``MeasureLeaf`` (timed functions) or ``EvaluateLeaf`` (functions returning a
number that is charted directly). Every node carries its ``path``: the titles
from the top-level group down to the node itself, excluding the synthetic root.

The engine only reads these objects; building them is the registry's job.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Optional, Sequence, Tuple, Union

PATH_SEPARATOR = " > "
ROOT_TITLE = "__root__"


class NodeKind(str, Enum):
    """Tag of a hierarchy node, matching the wire ``type`` field."""
    DESCRIBE = 'describe'
    MEASURE = 'measure'
    EVALUATE = 'evaluate'


def join_path(path: Sequence[str]) -> str:
    """Render a path the way keys and log messages show it: ``a > b > c``."""
    return PATH_SEPARATOR.join(path)


def owner_path_key(path: Sequence[str]) -> str:
    """
    Key of the group that owns a leaf.

    The path of the parent group for nested leaves, or the leaf's own single
    segment for a leaf registered at the top level. Leaves sharing a key are
    measured together and skipped together.
    """
    if len(path) > 1:
        return join_path(path[:-1])
    return path[0]


@dataclass(frozen=True)
class CustomChart:
    """
    Chart that evaluate leaves report into.

    Attributes:
        id: Registry-assigned identifier (``custom_<n>``)
        y_axis_title: Label of the value axis
        metrics: Which of avg/min/max the chart shows
        view: Absolute and/or relative presentation
        x_axis: Category and/or linear data-size axis
    """
    id: str
    y_axis_title: str
    metrics: Tuple[str, ...] = ('avg', 'min', 'max')
    view: Tuple[str, ...] = ('relative', 'absolute')
    x_axis: Tuple[str, ...] = ('category', 'linear')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'options': {
                'metrics': list(self.metrics),
                'view': list(self.view),
                'xAxis': list(self.x_axis),
                'yAxisTitle': self.y_axis_title,
            },
        }


@dataclass(frozen=True)
class MeasureLeaf:
    """A function timed over series of calls, one datum per call."""
    title: str
    path: Tuple[str, ...]
    fn: Callable[[Any], Any]
    data_generator: Callable[[int], Any]
    is_async: bool = False

    kind: ClassVar[NodeKind] = NodeKind.MEASURE

    @property
    def owner_path_key(self) -> str:
        return owner_path_key(self.path)

    def to_info(self) -> Dict[str, Any]:
        return {'type': self.kind.value, 'title': self.title, 'path': list(self.path)}


@dataclass(frozen=True)
class EvaluateLeaf:
    """A function whose numeric return value is recorded once per datum."""
    title: str
    path: Tuple[str, ...]
    fn: Callable[[Any], float]
    data_generator: Callable[[int], Any]
    custom_chart: CustomChart

    kind: ClassVar[NodeKind] = NodeKind.EVALUATE

    @property
    def owner_path_key(self) -> str:
        return owner_path_key(self.path)

    def to_info(self) -> Dict[str, Any]:
        return {
            'type': self.kind.value,
            'title': self.title,
            'path': list(self.path),
            'customChartId': self.custom_chart.id,
        }


Leaf = Union[MeasureLeaf, EvaluateLeaf]


@dataclass
class GroupNode:
    """A ``describe`` block: an ordered list of groups and leaves."""
    title: str
    path: Tuple[str, ...]
    children: List[Union['GroupNode', MeasureLeaf, EvaluateLeaf]] = field(default_factory=list)

    kind: ClassVar[NodeKind] = NodeKind.DESCRIBE

    @property
    def is_root(self) -> bool:
        return not self.path

    def find_child(self, title: str) -> Optional[Union['GroupNode', MeasureLeaf, EvaluateLeaf]]:
        for child in self.children:
            if child.title == title:
                return child
        return None

    def has_child_kind(self, kind: NodeKind) -> bool:
        return any(child.kind is kind for child in self.children)

    def iter_leaves(self) -> Iterator[Leaf]:
        """Yield leaves depth-first, children in declaration order."""
        for child in self.children:
            if isinstance(child, GroupNode):
                yield from child.iter_leaves()
            else:
                yield child

    def to_info(self) -> Dict[str, Any]:
        return {
            'type': self.kind.value,
            'title': self.title,
            'path': list(self.path),
            'children': [child.to_info() for child in self.children],
        }


HierarchyNode = Union[GroupNode, MeasureLeaf, EvaluateLeaf]


@dataclass(frozen=True)
class LegacyLeafRecord:
    """
    Flat group/subgroup/title view of a leaf.

    ``group`` is the first path segment; ``sub_group`` is the segment before the
    leaf title, or the first segment again for leaves at depth one or two.
    """
    group: str
    sub_group: str
    title: str
    fn: Callable[[Any], Any]
    data_generator: Callable[[int], Any]
    path: Tuple[str, ...]
    kind: NodeKind
    is_async: bool = False
    custom_chart: Optional[CustomChart] = None

    @classmethod
    def from_leaf(cls, leaf: Leaf) -> 'LegacyLeafRecord':
        path = leaf.path
        return cls(
            group=path[0],
            sub_group=path[-2] if len(path) > 1 else path[0],
            title=leaf.title,
            fn=leaf.fn,
            data_generator=leaf.data_generator,
            path=path,
            kind=leaf.kind,
            is_async=getattr(leaf, 'is_async', False),
            custom_chart=getattr(leaf, 'custom_chart', None),
        )


__all__ = [
    'PATH_SEPARATOR',
    'ROOT_TITLE',
    'NodeKind',
    'join_path',
    'owner_path_key',
    'CustomChart',
    'MeasureLeaf',
    'EvaluateLeaf',
    'Leaf',
    'GroupNode',
    'HierarchyNode',
    'LegacyLeafRecord',
]
