"""
Layer Construction

Turns a Dataset plus a resolved mapping into an immutable Layer of trace
records.  This is where the grouping strategy is decided.

Package Location: src/plotpipe/pipeline/layering.py

Single-Trace Rule:
    A grouped Dataset feeding a continuous mark (line, path, ribbon) is
    written as ONE trace with a gap row between groups: ``n`` rows in
    ``k`` groups become ``n + k - 1`` rows, keeping legend entries and
    hover targets constant as group count grows.  ``single_trace=False``
    emits one trace per group instead, labelled by the group key.
    Discrete marks ignore grouping unless the layer opts out.

Colour Split Rule:
    A ``color`` role backed by a non-numeric column splits the layer into
    one trace per colour level (order of first appearance, missing values
    last as ``'NA'``); the single-trace rule then applies within each
    level.  Numeric colour columns stay on one trace as a colour array.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..analysis.groups import insert_separators, order_by_group
from ..analysis.mapping import describe_reference, group_columns, resolve_mapping
from ..data.dataset import Dataset, group_label
from ..errors import EmptyDatasetError, MappingResolutionError
from ..plotting.marks import MarkSpec, get_mark
from .scene import Layer, Trace

log = logging.getLogger(__name__)


def build_layer(
    source: Dataset,
    mapping: Mapping[str, Any],
    mark: str,
    *,
    name: Optional[str] = None,
    single_trace: bool = True,
    hoverable: bool = True,
    showlegend: bool = True,
    allow_empty: bool = False,
    colorway: Sequence[str] = (),
    attrs: Optional[Mapping[str, Any]] = None,
    stat: Optional[str] = None,
) -> Layer:
    """
    Build one Layer from *source*.

    Args:
        source: Dataset snapshot the layer draws.
        mapping: Fully merged role mapping for this layer.
        mark: Mark tag (see :data:`plotpipe.plotting.marks.MARKS`).
        name: Legend label; defaults to the ``y`` column name or the mark.
        single_trace: Grouping strategy for grouped data (see module doc).
        hoverable: Whether the layer's traces respond to hover.
        showlegend: Whether the layer's traces get legend entries.
        allow_empty: Permit a zero-row layer.
        colorway: Palette for categorical colour levels.
        attrs: Extra Plotly trace attributes applied at render time.
        stat: Name of the stat that produced *source*, if any.

    Returns:
        Immutable Layer.

    Raises:
        ValueError: Unknown mark or role.
        EmptyDatasetError: *source* has no rows and *allow_empty* is False.
        MappingResolutionError: A mapped role does not resolve, or a role
            the mark requires is not mapped.
    """
    spec = get_mark(mark)

    if source.empty and not allow_empty:
        raise EmptyDatasetError(
            f"Layering '{mark}' needs at least one row, but the current "
            f"dataset is empty (columns: {source.columns})"
        )

    frame = source.frame
    columns, constants = resolve_mapping(frame, mapping)
    for role in spec.required:
        if role not in columns.columns and role not in constants:
            raise MappingResolutionError(role, None, source.columns)

    extra_keys = group_columns(frame, mapping)
    keys = source.groups + tuple(c for c in extra_keys if c not in source.groups)
    keyed = Dataset(frame, keys)
    codes = keyed.group_codes()
    per_group = bool(keys) and not single_trace
    # one legend label per group code
    labels = [group_label(key) for key, _ in keyed.group_index()] if per_group else []

    base_name = name or describe_reference(mapping.get('y')) or mark
    traces: List[Trace] = []

    for level, mask, color in _color_splits(columns, colorway):
        sub = columns.loc[mask].reset_index(drop=True)
        sub_codes = codes[mask]
        label = base_name if level is None else (level if name is None else f"{name}: {level}")
        common = dict(
            constants=dict(constants),
            hoverable=hoverable,
            showlegend=showlegend,
            legendgroup=label,
            color=color,
        )

        if per_group:
            order = np.argsort(sub_codes, kind='stable')
            bounds = np.flatnonzero(np.diff(sub_codes[order])) + 1
            for positions in np.split(order, bounds):
                if positions.size == 0:
                    continue
                part = _order(sub.iloc[positions].reset_index(drop=True), spec)
                grp = labels[int(sub_codes[positions[0]])]
                trace_name = grp if level is None else f"{label} / {grp}"
                traces.append(Trace(mark, trace_name, part, **common))
        elif spec.continuous and keys:
            sort_by = 'x' if spec.sort_x and 'x' in sub.columns else None
            traces.append(Trace(mark, label, insert_separators(sub, sub_codes, sort_by), **common))
        else:
            traces.append(Trace(mark, label, _order(sub, spec), **common))

    layer = Layer(
        mark=mark,
        mapping=dict(mapping),
        data=source,
        name=name,
        traces=tuple(traces),
        attrs=dict(attrs or {}),
        stat=stat,
    )
    log.debug(
        f"Built {mark} layer with {len(traces)} trace(s)",
        extra={
            "mark": mark,
            "rows": len(source),
            "traces": len(traces),
            "layer_rows": layer.n_rows,
            "groups": list(keys),
        },
    )
    return layer


def _order(frame: pd.DataFrame, spec: MarkSpec) -> pd.DataFrame:
    """Sort a single run by ``x`` when the mark connects rows in x order."""
    if not spec.sort_x or 'x' not in frame.columns or frame.empty:
        return frame
    ordered, _ = order_by_group(frame, np.zeros(len(frame), dtype=np.int64), sort_by='x')
    return ordered


def _color_splits(
    columns: pd.DataFrame,
    colorway: Sequence[str],
) -> List[Tuple[Optional[str], np.ndarray, Optional[str]]]:
    """
    Return ``(level_label, row_mask, colour)`` per colour level.

    A single ``(None, all_rows, None)`` entry when colour is unmapped,
    literal, or numeric.
    """
    n = len(columns)
    if 'color' not in columns.columns or pd.api.types.is_numeric_dtype(columns['color']):
        return [(None, np.ones(n, dtype=bool), None)]

    level_codes, levels = pd.factorize(columns['color'])
    palette = list(colorway) or [None]
    out: List[Tuple[Optional[str], np.ndarray, Optional[str]]] = []
    for i, level in enumerate(levels):
        out.append((str(level), level_codes == i, palette[i % len(palette)]))
    if (level_codes == -1).any():
        i = len(levels)
        out.append(('NA', level_codes == -1, palette[i % len(palette)]))
    if not out:
        # empty frame: no levels
        out.append((None, np.ones(n, dtype=bool), None))
    return out
