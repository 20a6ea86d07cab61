"""
Visual-Role Mapping (Functional Core)

A mapping associates visual roles (``x``, ``y``, ``color``, ...) with:

* a column reference: any ``str``;
* a computed expression: a callable ``f(frame) -> array-like``;
* a literal: ``const(value)`` for strings, or any non-string scalar.

Resolution turns a mapping plus a DataFrame into a table of role-named
columns and a dict of literal values.  Anything that does not resolve
raises :class:`~plotpipe.errors.MappingResolutionError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..errors import MappingResolutionError

# Roles understood by the renderer.  ``group`` is structural: it names
# extra grouping columns and never becomes a data column.
ROLES: Tuple[str, ...] = (
    'x', 'y', 'ymin', 'ymax', 'xend', 'yend',
    'text', 'color', 'size', 'hovertext', 'group',
)


@dataclass(frozen=True)
class Constant:
    """A literal value for a visual role (``const('gray')``)."""

    value: Any


def const(value: Any) -> Constant:
    """Mark *value* as a literal so strings are not read as column names."""
    return Constant(value)


def merge_mappings(
    base: Optional[Mapping[str, Any]],
    override: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Overlay *override* on *base*.

    A role set to ``None`` in *override* is removed from the result, which
    lets a layer drop an inherited role (e.g. ``color=None``).
    """
    merged: Dict[str, Any] = dict(base or {})
    for role, ref in (override or {}).items():
        if ref is None:
            merged.pop(role, None)
        else:
            merged[role] = ref
    return merged


def validate_roles(mapping: Mapping[str, Any]) -> None:
    """Raise ``ValueError`` for role names the renderer does not know."""
    unknown = sorted(set(mapping) - set(ROLES))
    if unknown:
        raise ValueError(f"Unknown visual role(s): {unknown}. Known roles: {list(ROLES)}")


def group_columns(frame: pd.DataFrame, mapping: Mapping[str, Any]) -> Tuple[str, ...]:
    """
    Return the columns named by the ``group`` role (``str`` or list of ``str``).

    Raises:
        MappingResolutionError: If a named column is absent.
    """
    ref = mapping.get('group')
    if ref is None:
        return ()
    cols = (ref,) if isinstance(ref, str) else tuple(ref)
    for col in cols:
        if col not in frame.columns:
            raise MappingResolutionError('group', col, list(frame.columns))
    return cols


def describe_reference(ref: Any) -> Optional[str]:
    """Human-readable label for a reference (axis titles, trace names)."""
    if isinstance(ref, str):
        return ref
    name = getattr(ref, '__name__', None)
    if callable(ref) and name and name != '<lambda>':
        return name
    return None


def resolve_mapping(
    frame: pd.DataFrame,
    mapping: Mapping[str, Any],
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Resolve every role in *mapping* against *frame*.

    Args:
        frame: Source rows.
        mapping: Role → reference table.

    Returns:
        Tuple ``(columns, constants)``:

        * ``columns``: DataFrame with one column per data-backed role,
          same length and order as *frame*;
        * ``constants``: ``{role: value}`` for literal roles.

    Raises:
        MappingResolutionError: A string reference is not a column, or a
            computed expression fails to evaluate against *frame*.
        ValueError: Unknown role name, or an expression returns an array of
            the wrong length.
    """
    validate_roles(mapping)

    columns: Dict[str, Any] = {}
    constants: Dict[str, Any] = {}

    for role, ref in mapping.items():
        if role == 'group':
            continue

        if isinstance(ref, Constant):
            constants[role] = ref.value
        elif isinstance(ref, str):
            if ref not in frame.columns:
                raise MappingResolutionError(role, ref, list(frame.columns))
            columns[role] = frame[ref].to_numpy()
        elif callable(ref):
            try:
                values = ref(frame)
            except KeyError as exc:
                raise MappingResolutionError(role, exc.args[0] if exc.args else ref,
                                             list(frame.columns)) from exc
            if np.ndim(values) == 0:
                constants[role] = values
                continue
            values = np.asarray(values)
            if len(values) != len(frame):
                raise ValueError(
                    f"Expression for role '{role}' returned {len(values)} values "
                    f"for {len(frame)} rows"
                )
            columns[role] = values
        else:
            constants[role] = ref

    return pd.DataFrame(columns, index=pd.RangeIndex(len(frame))), constants
