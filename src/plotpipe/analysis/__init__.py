"""
plotpipe Analysis Package (Functional Core)

Pure transformation functions with no I/O.  Everything here accepts
Datasets / DataFrames and returns new ones.

Modules:
- mapping:    Visual-role mapping resolution
- groups:     Gap-row layout for the single-trace grouping strategy
- transforms: Row, grouping and per-group transforms
- stats:      Binning, kernel density and polynomial smoothing
"""

from .mapping import (
    ROLES,
    Constant,
    const,
    merge_mappings,
    resolve_mapping,
)

from .groups import (
    insert_separators,
    order_by_group,
    separator_mask,
    split_segments,
)

from .transforms import (
    filter_rows,
    mutate,
    arrange,
    group_by,
    ungroup,
    require_groups,
    summarise,
    slice_max,
    slice_min,
    group_apply,
)

from .stats import (
    Bin,
    Density,
    Smooth,
    silverman_bandwidth,
    fit_polynomial,
)

__all__ = [
    # Mapping
    'ROLES',
    'Constant',
    'const',
    'merge_mappings',
    'resolve_mapping',
    # Groups
    'insert_separators',
    'order_by_group',
    'separator_mask',
    'split_segments',
    # Transforms
    'filter_rows',
    'mutate',
    'arrange',
    'group_by',
    'ungroup',
    'require_groups',
    'summarise',
    'slice_max',
    'slice_min',
    'group_apply',
    # Stats
    'Bin',
    'Density',
    'Smooth',
    'silverman_bandwidth',
    'fit_polynomial',
]
