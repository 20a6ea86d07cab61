"""
Scene Model

The accumulating, immutable structure threaded through a pipeline:

    Scene
      ├── layers   : Tuple[Layer, ...]      (append-only, in step order)
      │     └── traces : Tuple[Trace, ...]  (what the renderer draws)
      ├── layout   : Layout                 (exactly one per scene)
      ├── current  : Dataset                (read by the next step)
      └── mapping  : Dict[str, Any]         (pipeline-wide default roles)

Every pipeline step returns a new Scene; none is ever modified in place.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import pandas as pd

from ..config import PipelineOptions
from ..data.dataset import Dataset


# ---------------------------------------------------------------------------
# Trace / Layer
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Trace:
    """
    One renderable mark: a legend entry's worth of resolved data.

    Attributes:
        mark: Mark tag (``'line'``, ``'point'``, ...).
        name: Legend label.
        frame: Role-named columns (``x``, ``y``, ...), gap rows included.
        constants: Literal role values (``{'color': 'gray'}``).
        hoverable: Whether the mark responds to hover.
        showlegend: Whether the mark gets a legend entry.
        legendgroup: Plotly legend group, shared by a layer's traces.
        color: Colour assigned from the colorway for a categorical level.
    """

    mark: str
    name: str
    frame: pd.DataFrame
    constants: Mapping[str, Any] = field(default_factory=dict)
    hoverable: bool = True
    showlegend: bool = True
    legendgroup: Optional[str] = None
    color: Optional[str] = None

    def __len__(self) -> int:
        return len(self.frame)

    def values(self, role: str) -> list:
        """Role values as a list (gap rows as ``None``); ``[]`` if unmapped."""
        if role not in self.frame.columns:
            return []
        s = self.frame[role]
        return s.astype(object).where(s.notna(), None).tolist()


@dataclass(frozen=True, eq=False)
class Layer:
    """
    Product of one Layering step.

    ``data`` is the Dataset snapshot the layer was built from (the stat
    output for statistical layers).  Datasets are immutable, so later
    transforms on the scene never reach an existing layer.
    """

    mark: str
    mapping: Mapping[str, Any]
    data: Dataset
    name: Optional[str]
    traces: Tuple[Trace, ...]
    attrs: Mapping[str, Any] = field(default_factory=dict)
    stat: Optional[str] = None

    @property
    def n_rows(self) -> int:
        """Rows across all traces, gap rows included."""
        return sum(len(t) for t in self.traces)

    def with_attrs(self, attrs: Mapping[str, Any], hoverable: Optional[bool] = None) -> 'Layer':
        """Return a copy with *attrs* merged in (and hover toggled if given)."""
        merged = _deep_merge(dict(self.attrs), attrs)
        traces = self.traces
        if hoverable is not None:
            traces = tuple(replace(t, hoverable=hoverable) for t in traces)
        return replace(self, attrs=merged, traces=traces)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def _deep_merge(base: Dict[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge *update* into a copy of *base*; nested dicts merge per key."""
    out = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, MappingABC) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        elif isinstance(value, MappingABC):
            out[key] = _deep_merge({}, value)
        else:
            out[key] = copy.deepcopy(value)
    return out


class Layout(MappingABC):
    """
    Immutable, nested Plotly layout description.

    Merging is last-write-wins per field, recursing into nested dicts such
    as ``xaxis``; merging the same fields twice is a no-op.
    """

    __slots__ = ('_fields',)

    def __init__(self, fields: Optional[Mapping[str, Any]] = None) -> None:
        self._fields: Dict[str, Any] = _deep_merge({}, fields or {})

    def merge(self, fields: Mapping[str, Any]) -> 'Layout':
        return Layout(_deep_merge(self._fields, fields))

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._fields)

    def __getitem__(self, key: str) -> Any:
        return copy.deepcopy(self._fields[key])

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Layout):
            return self._fields == other._fields
        if isinstance(other, MappingABC):
            return self._fields == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Layout({self._fields!r})"


# ---------------------------------------------------------------------------
# Scene
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Scene:
    """
    Immutable pipeline state.

    Attributes:
        current: Dataset the next step reads.
        mapping: Pipeline-wide default role mapping.
        layers: Layers in the order they were added.
        layout: The scene's single layout.
        options: Options fixed at pipeline initiation.
        stat_data: Output of the most recent statistical layer, kept
            whichever dataset ``original_data`` leaves current.
    """

    current: Dataset
    mapping: Mapping[str, Any] = field(default_factory=dict)
    layers: Tuple[Layer, ...] = ()
    layout: Layout = field(default_factory=Layout)
    options: PipelineOptions = field(default_factory=PipelineOptions)
    stat_data: Optional[Dataset] = None

    @property
    def original_data(self) -> bool:
        return self.options.original_data

    def evolve(self, **changes: Any) -> 'Scene':
        """Return a copy with *changes* applied."""
        return replace(self, **changes)

    def __repr__(self) -> str:
        return (
            f"Scene(layers={len(self.layers)}, current={self.current!r}, "
            f"layout_keys={list(self.layout)})"
        )
