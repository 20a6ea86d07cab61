"""
Dataset model.

A ``Dataset`` is an immutable, ordered table (a pandas DataFrame) plus an
optional grouping key.  The wrapped frame is copied on the way in and on the
way out, so a Dataset captured by a layer can never change underneath it.

Group Order Rule:
    Groups are numbered in order of first appearance in the rows, never by
    sorted key.  Re-evaluating the same Dataset always yields the same
    groups in the same order.
"""

from __future__ import annotations

from typing import Any, Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import MissingGroupKeyError


class Dataset:
    """
    Immutable table with an optional ordered grouping key.

    Args:
        frame: Source rows.  The index is discarded; row order is kept.
        groups: Column names whose distinct value combinations partition
            the rows.  Every name must be a column of *frame*.

    Raises:
        MissingGroupKeyError: If a grouping column is absent from *frame*.
    """

    __slots__ = ('_frame', '_groups')

    def __init__(self, frame: pd.DataFrame, groups: Sequence[str] = ()) -> None:
        if isinstance(groups, str):
            groups = (groups,)
        groups = tuple(groups)
        missing = [g for g in groups if g not in frame.columns]
        if missing:
            raise MissingGroupKeyError(missing)
        self._frame = frame.reset_index(drop=True).copy()
        self._groups = groups

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def frame(self) -> pd.DataFrame:
        """A copy of the rows; mutating it does not affect the Dataset."""
        return self._frame.copy()

    @property
    def groups(self) -> Tuple[str, ...]:
        return self._groups

    @property
    def columns(self) -> List[str]:
        return list(self._frame.columns)

    @property
    def is_grouped(self) -> bool:
        return bool(self._groups)

    @property
    def empty(self) -> bool:
        return self._frame.empty

    def __len__(self) -> int:
        return len(self._frame)

    def __contains__(self, column: object) -> bool:
        return column in self._frame.columns

    def column(self, name: str) -> pd.Series:
        """Return a copy of one column."""
        return self._frame[name].copy()

    def with_frame(self, frame: pd.DataFrame, groups: Any = None) -> 'Dataset':
        """
        Return a new Dataset over *frame*.

        Args:
            frame: Replacement rows.
            groups: New grouping key.  ``None`` keeps the current key.
        """
        return Dataset(frame, self._groups if groups is None else groups)

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def group_codes(self) -> np.ndarray:
        """
        Return one integer group code per row.

        Codes run from 0 in order of first appearance.  An ungrouped Dataset
        puts every row in group 0.
        """
        if not self._groups:
            return np.zeros(len(self._frame), dtype=np.int64)
        if self._frame.empty:
            return np.zeros(0, dtype=np.int64)
        return (
            self._frame
            .groupby(list(self._groups), sort=False, dropna=False)
            .ngroup()
            .to_numpy(dtype=np.int64)
        )

    def group_index(self) -> List[Tuple[Tuple[Any, ...], np.ndarray]]:
        """
        Partition row positions by group, in order of first appearance.

        Returns:
            List of ``(key, positions)`` pairs where *key* is a tuple of the
            grouping column values and *positions* an int array of row
            positions.  An ungrouped, non-empty Dataset yields a single
            ``((), all_positions)`` pair; an empty Dataset yields ``[]``.
        """
        if self._frame.empty:
            return []
        codes = self.group_codes()

        # one stable sort, then split at code boundaries
        order = np.argsort(codes, kind='stable')
        bounds = np.flatnonzero(np.diff(codes[order])) + 1
        chunks = np.split(order, bounds)

        if not self._groups:
            return [((), chunks[0])]
        firsts = [chunk[0] for chunk in chunks]
        key_rows = self._frame.iloc[firsts][list(self._groups)]
        keys = key_rows.itertuples(index=False, name=None)
        return list(zip(keys, chunks))

    def iter_groups(self) -> Iterator[Tuple[Tuple[Any, ...], pd.DataFrame]]:
        """Yield ``(key, sub_frame)`` pairs in group order."""
        for key, positions in self.group_index():
            yield key, self._frame.iloc[positions].reset_index(drop=True)

    def n_groups(self) -> int:
        codes = self.group_codes()
        return int(codes.max()) + 1 if codes.size else 0

    # ------------------------------------------------------------------
    # Comparison / display
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dataset):
            return NotImplemented
        return self._groups == other._groups and self._frame.equals(other._frame)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        grp = f", groups={list(self._groups)}" if self._groups else ''
        return f"Dataset(rows={len(self._frame)}, columns={self.columns}{grp})"


def group_label(key: Tuple[Any, ...]) -> str:
    """Render a group key tuple as a legend label (``'a'`` or ``'a / 1'``)."""
    return ' / '.join(str(v) for v in key)
