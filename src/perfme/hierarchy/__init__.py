"""Hierarchy of measured functions: node types and the registration API."""

from .models import (
    PATH_SEPARATOR,
    NodeKind,
    CustomChart,
    MeasureLeaf,
    EvaluateLeaf,
    Leaf,
    GroupNode,
    HierarchyNode,
    LegacyLeafRecord,
    join_path,
    owner_path_key,
)
from .registry import (
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
    get_hierarchy_info,
    get_groups,
)

__all__ = [
    'PATH_SEPARATOR',
    'NodeKind',
    'CustomChart',
    'MeasureLeaf',
    'EvaluateLeaf',
    'Leaf',
    'GroupNode',
    'HierarchyNode',
    'LegacyLeafRecord',
    'join_path',
    'owner_path_key',
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
