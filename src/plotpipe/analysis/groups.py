"""
Group Separators (Functional Core)

Pure functions for the single-trace grouping strategy: every group of a
continuous mark is written into one table, with a gap row between
consecutive groups so the renderer breaks the line there instead of
connecting the last point of one group to the first point of the next.

Package Location: src/plotpipe/analysis/groups.py

Gap Row Rule:
    A gap row holds a missing value (NaN) in every column.  A table of
    ``n`` rows in ``k`` groups becomes ``n + (k - 1)`` rows: no leading or
    trailing gap, exactly one gap between neighbouring groups.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd


def order_by_group(
    frame: pd.DataFrame,
    codes: np.ndarray,
    sort_by: Optional[str] = None,
) -> Tuple[pd.DataFrame, np.ndarray]:
    """
    Reorder rows so each group is contiguous, groups in code order.

    Rows keep their original relative order inside a group unless *sort_by*
    names a column, in which case each group is sorted by it (stable).

    Args:
        frame: Rows to reorder.
        codes: One group code per row (see ``Dataset.group_codes``).
        sort_by: Optional column to sort by within each group.

    Returns:
        Tuple ``(ordered_frame, ordered_codes)``; the frame has a fresh
        ``RangeIndex``.
    """
    if len(frame) != len(codes):
        raise ValueError(
            f"codes length {len(codes)} does not match frame length {len(frame)}"
        )

    work = frame.reset_index(drop=True).assign(_grp=np.asarray(codes))
    keys = ['_grp'] if sort_by is None else ['_grp', sort_by]
    work = work.sort_values(keys, kind='mergesort').reset_index(drop=True)
    ordered_codes = work['_grp'].to_numpy()
    return work.drop(columns='_grp'), ordered_codes


def insert_separators(
    frame: pd.DataFrame,
    codes: np.ndarray,
    sort_by: Optional[str] = None,
) -> pd.DataFrame:
    """
    Lay all groups into one table with a gap row between groups.

    Args:
        frame: Rows to lay out.
        codes: One group code per row.
        sort_by: Optional column to sort by within each group (``'x'`` for
            line marks; ``None`` keeps data order for paths).

    Returns:
        New DataFrame of ``len(frame) + n_groups - 1`` rows (``0`` rows when
        *frame* is empty).  Integer columns are widened to float so they can
        hold the NaN gaps.
    """
    if frame.empty:
        return frame.reset_index(drop=True).copy()

    ordered, ordered_codes = order_by_group(frame, codes, sort_by=sort_by)

    # Row positions where a new group begins
    breaks = np.flatnonzero(np.diff(ordered_codes)) + 1
    if breaks.size == 0:
        return ordered

    n = len(ordered)
    # Shift each row right by the number of gaps inserted before it
    shift = np.searchsorted(breaks, np.arange(n), side='right')
    target = np.arange(n) + shift

    return ordered.set_axis(target, axis=0).reindex(np.arange(n + breaks.size))


def separator_mask(frame: pd.DataFrame) -> np.ndarray:
    """Return a boolean array marking gap rows (every value missing)."""
    if frame.empty:
        return np.zeros(0, dtype=bool)
    return frame.isna().all(axis=1).to_numpy()


def split_segments(frame: pd.DataFrame) -> List[pd.DataFrame]:
    """
    Split a gap-separated table back into its contiguous runs.

    Used by the ribbon renderer, which draws one closed polygon per run.

    Returns:
        List of sub-frames (fresh index each), empty runs dropped.
    """
    if frame.empty:
        return []
    gaps = separator_mask(frame)
    run_id = np.cumsum(gaps)
    keep = ~gaps
    out: List[pd.DataFrame] = []
    for rid in np.unique(run_id[keep]):
        out.append(frame.loc[keep & (run_id == rid)].reset_index(drop=True))
    return out
