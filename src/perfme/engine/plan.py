"""
Execution plan building.

The plan turns a registered hierarchy into the ordered list of groups a run
walks through. Leaves are collected depth-first in declaration order, filtered
by the selection patterns, and grouped by the key of the group that owns them.
A group whose leaves all declare the very same data generator object is marked
as sharing it, so the run generates that group's data once per size.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from loguru import logger

from ..hierarchy.models import EvaluateLeaf, GroupNode, Leaf, MeasureLeaf, NodeKind
from .matching import LevelFilter, matches_any


@dataclass(frozen=True)
class PlannedLeaf:
    """A leaf with its position in declaration order."""
    leaf: Leaf
    registration_index: int

    @property
    def path(self) -> Tuple[str, ...]:
        return self.leaf.path

    @property
    def title(self) -> str:
        return self.leaf.title

    @property
    def kind(self) -> NodeKind:
        return self.leaf.kind

    @property
    def owner_path_key(self) -> str:
        return self.leaf.owner_path_key

    @property
    def data_generator(self) -> Callable[[int], Any]:
        return self.leaf.data_generator


@dataclass
class PlanGroup:
    """Leaves measured together; the unit of data sharing and of skip."""
    owner_path_key: str
    leaves: List[PlannedLeaf] = field(default_factory=list)
    shared_generator: Optional[Callable[[int], Any]] = None

    def __len__(self) -> int:
        return len(self.leaves)


@dataclass
class ExecutionPlan:
    """
    Ordered groups of a run.

    Attributes:
        groups: Groups in order of first appearance; never empty groups
        data_unit_sizes: Data sizes every leaf is measured at, in order
        total_work: Sum of sizes times included leaves; the progress denominator
    """
    groups: List[PlanGroup]
    data_unit_sizes: Tuple[int, ...]
    total_work: int

    def __iter__(self) -> Iterator[PlanGroup]:
        return iter(self.groups)

    @property
    def leaf_count(self) -> int:
        return sum(len(group) for group in self.groups)

    @property
    def is_empty(self) -> bool:
        return not self.groups or not self.data_unit_sizes


def collect_leaves(root: GroupNode) -> List[PlannedLeaf]:
    """Every leaf under ``root`` depth-first, numbered from 0 in declaration order."""
    planned = []
    for index, leaf in enumerate(root.iter_leaves()):
        if not isinstance(leaf, (MeasureLeaf, EvaluateLeaf)):
            raise TypeError(f"Unexpected hierarchy node {type(leaf).__name__} at {leaf!r}")
        planned.append(PlannedLeaf(leaf=leaf, registration_index=index))
    return planned


def _shared_generator(leaves: Sequence[PlannedLeaf]) -> Optional[Callable[[int], Any]]:
    first = leaves[0].data_generator
    if all(planned.data_generator is first for planned in leaves):
        return first
    return None


def build_plan(
    root: GroupNode,
    selected_paths: Optional[Sequence[Sequence[LevelFilter]]] = None,
    data_unit_sizes: Sequence[int] = (),
) -> ExecutionPlan:
    """
    Build the execution plan of a run.

    Args:
        root: Root group of the hierarchy
        selected_paths: Selection patterns, OR-combined; empty selects every leaf
        data_unit_sizes: Data sizes of the run, in run order

    Returns:
        ExecutionPlan with groups in first-appearance order and leaves in
        declaration order within each group
    """
    included = [
        planned for planned in collect_leaves(root)
        if matches_any(planned.path, selected_paths)
    ]

    groups: dict = {}
    for planned in included:
        groups.setdefault(planned.owner_path_key, PlanGroup(owner_path_key=planned.owner_path_key))
        groups[planned.owner_path_key].leaves.append(planned)

    ordered = list(groups.values())
    for group in ordered:
        group.leaves.sort(key=lambda planned: planned.registration_index)
        group.shared_generator = _shared_generator(group.leaves)

    sizes = tuple(data_unit_sizes)
    plan = ExecutionPlan(groups=ordered, data_unit_sizes=sizes, total_work=sum(sizes) * len(included))

    logger.debug(
        f"Built plan: {plan.leaf_count} leaf(s) in {len(plan.groups)} group(s), "
        f"{len(sizes)} size(s), total work {plan.total_work}"
    )
    return plan


__all__ = ['PlannedLeaf', 'PlanGroup', 'ExecutionPlan', 'collect_leaves', 'build_plan']
