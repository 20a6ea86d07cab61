"""
Dataset Transforms (Functional Core)

Pure functions only.  Each takes a Dataset and returns a new Dataset; the
input is never modified.  These are the building blocks of Transform steps.

Package Location: src/plotpipe/analysis/transforms.py

Grouping Rule:
    Transforms that work per group (``summarise``, ``slice_max``,
    ``slice_min``, ``group_apply``) visit groups in order of first
    appearance and concatenate results in that order.  ``group_apply``
    refuses ungrouped data; the others fall back to treating the whole
    Dataset as one group.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..data.dataset import Dataset
from ..errors import MissingGroupKeyError

Predicate = Union[str, Callable[[pd.DataFrame], Any], Sequence[bool], np.ndarray]
Aggregation = Union[Tuple[str, Union[str, Callable[[pd.Series], Any]]], Callable[[pd.DataFrame], Any]]


# ---------------------------------------------------------------------------
# Row-wise transforms
# ---------------------------------------------------------------------------

def filter_rows(ds: Dataset, predicate: Predicate) -> Dataset:
    """
    Keep rows matching *predicate*; grouping key is preserved.

    Args:
        ds: Input dataset.
        predicate: One of

            * a pandas query string (``"cut == 'Ideal'"``);
            * a callable ``f(frame) -> boolean mask``;
            * a boolean array-like of length ``len(ds)``.

    Returns:
        Filtered Dataset (may be empty).
    """
    frame = ds.frame
    if isinstance(predicate, str):
        out = frame.query(predicate)
    else:
        mask = predicate(frame) if callable(predicate) else predicate
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (len(frame),):
            raise ValueError(
                f"filter mask has shape {mask.shape}, expected ({len(frame)},)"
            )
        out = frame.loc[mask]
    return ds.with_frame(out)


def mutate(ds: Dataset, **columns: Any) -> Dataset:
    """
    Add or replace columns.

    Each keyword value may be a callable ``f(frame)`` (evaluated against the
    frame as it stands after earlier keywords), an array of ``len(ds)``
    values, or a scalar broadcast to every row.
    """
    frame = ds.frame
    for name, value in columns.items():
        frame[name] = value(frame) if callable(value) else value
    return ds.with_frame(frame)


def arrange(ds: Dataset, *columns: str, descending: bool = False) -> Dataset:
    """Stable sort by *columns*; grouping key is preserved."""
    _require_columns(ds, columns, 'arrange')
    frame = ds.frame.sort_values(list(columns), ascending=not descending, kind='mergesort')
    return ds.with_frame(frame)


def _require_columns(ds: Dataset, columns: Sequence[str], operation: str) -> None:
    missing = [c for c in columns if c not in ds]
    if missing:
        raise ValueError(f"{operation}: dataset is missing required columns: {missing}")


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def group_by(ds: Dataset, *columns: str, add: bool = False) -> Dataset:
    """
    Attach a grouping key.

    Args:
        ds: Input dataset.
        *columns: Grouping columns, in priority order.
        add: Append to the existing key instead of replacing it.

    Raises:
        MissingGroupKeyError: If any column is absent.
    """
    missing = [c for c in columns if c not in ds]
    if missing:
        raise MissingGroupKeyError(missing, operation='group_by')
    keys = tuple(columns)
    if add:
        keys = ds.groups + tuple(c for c in keys if c not in ds.groups)
    return ds.with_frame(ds.frame, groups=keys)


def ungroup(ds: Dataset) -> Dataset:
    return ds.with_frame(ds.frame, groups=())


def require_groups(ds: Dataset, operation: str = '') -> None:
    """Raise ``MissingGroupKeyError`` when *ds* carries no grouping key."""
    if not ds.is_grouped:
        raise MissingGroupKeyError((), operation=operation)


# ---------------------------------------------------------------------------
# Per-group transforms
# ---------------------------------------------------------------------------

def summarise(ds: Dataset, **aggregations: Aggregation) -> Dataset:
    """
    Collapse each group to one row.

    Each keyword defines an output column from either a
    ``(column, func)`` pair, where *func* is a pandas reduction name (``'mean'``)
    or a callable on the column Series, or from a callable on the group frame.

    Output columns are the grouping columns followed by the aggregations.
    As with dplyr, the last grouping column is peeled off the key, so a
    single-key Dataset comes back ungrouped.  An ungrouped input yields a
    single row.
    """
    if not aggregations:
        raise ValueError("summarise requires at least one aggregation")

    rows: List[Dict[str, Any]] = []
    for key, sub in ds.iter_groups():
        row: Dict[str, Any] = dict(zip(ds.groups, key))
        for name, agg in aggregations.items():
            row[name] = _aggregate(sub, name, agg)
        rows.append(row)

    columns = list(ds.groups) + list(aggregations)
    if not rows and not ds.is_grouped:
        # dplyr returns one row of empty-input reductions; keep that shape
        row = {name: _aggregate(ds.frame, name, agg) for name, agg in aggregations.items()}
        rows.append(row)
    frame = pd.DataFrame(rows, columns=columns)
    return Dataset(frame, ds.groups[:-1])


def _aggregate(sub: pd.DataFrame, name: str, agg: Aggregation) -> Any:
    if callable(agg):
        return agg(sub)
    try:
        column, func = agg
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"summarise: aggregation '{name}' must be (column, func) or a callable"
        ) from exc
    if column not in sub.columns:
        raise ValueError(f"summarise: column '{column}' not found for '{name}'")
    return sub[column].agg(func)


def slice_max(ds: Dataset, column: str, n: int = 1) -> Dataset:
    """Keep the *n* rows with the largest *column* per group (largest first)."""
    return _slice_extreme(ds, column, n, largest=True)


def slice_min(ds: Dataset, column: str, n: int = 1) -> Dataset:
    """Keep the *n* rows with the smallest *column* per group (smallest first)."""
    return _slice_extreme(ds, column, n, largest=False)


def _slice_extreme(ds: Dataset, column: str, n: int, largest: bool) -> Dataset:
    _require_columns(ds, [column], 'slice_max' if largest else 'slice_min')
    parts: List[pd.DataFrame] = []
    for _, sub in ds.iter_groups():
        parts.append(sub.nlargest(n, column) if largest else sub.nsmallest(n, column))
    frame = pd.concat(parts, ignore_index=True) if parts else ds.frame.iloc[0:0]
    return ds.with_frame(frame)


def group_apply(ds: Dataset, func: Callable[[pd.DataFrame], pd.DataFrame]) -> Dataset:
    """
    Apply *func* to each group's rows and concatenate the results.

    Grouping columns missing from a result are re-attached from the group
    key, so the output keeps the input's grouping key.

    Raises:
        MissingGroupKeyError: If *ds* is ungrouped.
    """
    require_groups(ds, 'group_apply')

    parts: List[pd.DataFrame] = []
    for key, sub in ds.iter_groups():
        out = func(sub)
        if not isinstance(out, pd.DataFrame):
            raise TypeError(
                f"group_apply: function must return a DataFrame, got {type(out).__name__}"
            )
        out = out.copy()
        for col, value in zip(ds.groups, key):
            if col not in out.columns:
                out[col] = value
        parts.append(out)

    if not parts:
        return ds
    return ds.with_frame(pd.concat(parts, ignore_index=True))
