"""
Tabular Source loaders (Imperative Shell).

The only place plotpipe reads files.  Every loader returns a
:class:`~plotpipe.data.dataset.Dataset`; everything downstream is pure.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Union

import pandas as pd

from .dataset import Dataset

log = logging.getLogger(__name__)

DataLike = Union[Dataset, pd.DataFrame, Mapping[str, Sequence[Any]], List[Dict[str, Any]]]


def as_dataset(data: DataLike, groups: Sequence[str] = ()) -> Dataset:
    """
    Coerce supported in-memory inputs to a Dataset.

    Accepts a ``Dataset`` (returned as-is unless *groups* is given), a
    ``DataFrame``, a dict of columns, or a list of row dicts.

    Args:
        data: Input rows.
        groups: Grouping key to attach.

    Returns:
        Dataset over the input rows.

    Raises:
        TypeError: For any other input type.
    """
    if isinstance(data, Dataset):
        return data.with_frame(data.frame, groups=groups) if groups else data
    if isinstance(data, pd.DataFrame):
        return Dataset(data, groups)
    if isinstance(data, Mapping):
        return Dataset(pd.DataFrame(dict(data)), groups)
    if isinstance(data, list):
        return from_records(data, groups)
    raise TypeError(
        f"Cannot build a Dataset from {type(data).__name__}; expected a "
        f"Dataset, DataFrame, dict of columns, or list of records"
    )


def from_records(records: List[Dict[str, Any]], groups: Sequence[str] = ()) -> Dataset:
    """Build a Dataset from a list of row dicts (column order of first appearance)."""
    return Dataset(pd.DataFrame.from_records(records), groups)


def read_csv(
    path: Union[str, Path],
    groups: Sequence[str] = (),
    **read_kwargs: Any,
) -> Dataset:
    """
    Load a CSV file into a Dataset.

    Args:
        path: CSV file path.
        groups: Grouping key to attach.
        **read_kwargs: Forwarded to :func:`pandas.read_csv`.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    df = pd.read_csv(path, **read_kwargs)
    log.info(
        f"Loaded {len(df)} rows from {path.name}",
        extra={"source": str(path), "rows": len(df), "columns": list(df.columns)},
    )
    return Dataset(df, groups)


def read_json(
    path: Union[str, Path],
    groups: Sequence[str] = (),
    **read_kwargs: Any,
) -> Dataset:
    """
    Load a JSON file of records (``[{...}, {...}]``) into a Dataset.

    Args:
        path: JSON file path.
        groups: Grouping key to attach.
        **read_kwargs: Forwarded to :func:`pandas.read_json`; ``orient``
            defaults to ``'records'``.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    read_kwargs.setdefault('orient', 'records')
    df = pd.read_json(path, **read_kwargs)
    log.info(
        f"Loaded {len(df)} rows from {path.name}",
        extra={"source": str(path), "rows": len(df), "columns": list(df.columns)},
    )
    return Dataset(df, groups)
