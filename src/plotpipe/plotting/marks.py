"""
Mark Registry (Functional Core)

Maps each mark type to its grouping behaviour, the visual roles it needs,
and the function that turns one trace record into a Plotly trace.

Package Location: src/plotpipe/plotting/marks.py

Continuous vs Discrete Rule:
    Continuous marks (``line``, ``path``, ``ribbon``) connect rows, so a
    grouped layer is drawn as one trace with gap rows between groups
    unless the layer opts out.  Discrete marks (``point``, ``text``,
    ``bar``, ``segment``) draw one primitive per row and never get gap
    rows; they stay on one trace unless the layer opts out.  With
    ``single_trace=False`` every mark, discrete or not, is split into one
    trace per group.

Segment Gap Rule:
    Each segment is emitted as ``[start, end, None]`` so Plotly draws
    exactly one line per row with no connecting line between rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from ..analysis.groups import split_segments

# ---------------------------------------------------------------------------
# Styling constants
# ---------------------------------------------------------------------------

_RIBBON_OPACITY = 0.35
_CONTINUOUS_COLORSCALE = 'Viridis'


@dataclass(frozen=True)
class MarkSpec:
    """
    Rendering contract for one mark type.

    Attributes:
        name: Mark tag used in Layering steps.
        continuous: Whether rows of a trace are connected (gap-row grouping).
        sort_x: Sort rows by ``x`` within each group before drawing.
        required: Roles that must resolve for the mark to be drawn.
        build: ``trace_record -> plotly trace``.
    """

    name: str
    continuous: bool
    sort_x: bool
    required: Tuple[str, ...]
    build: Callable[[Any], Any]


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def _values(frame: pd.DataFrame, role: str) -> Optional[List[Any]]:
    """Role column as a plain list with missing values as ``None``."""
    if role not in frame.columns:
        return None
    s = frame[role]
    return s.astype(object).where(s.notna(), None).tolist()


def _is_numeric(frame: pd.DataFrame, role: str) -> bool:
    return role in frame.columns and pd.api.types.is_numeric_dtype(frame[role])


def _fixed_color(trace: Any) -> Optional[str]:
    color = trace.constants.get('color')
    return color if color is not None else trace.color


def _common(trace: Any) -> Dict[str, Any]:
    """Trace attributes shared by every mark: legend and hover behaviour."""
    kw: Dict[str, Any] = dict(name=trace.name, showlegend=trace.showlegend)
    if trace.legendgroup:
        kw['legendgroup'] = trace.legendgroup

    if not trace.hoverable:
        kw['hoverinfo'] = 'skip'
        return kw

    hovertext = _values(trace.frame, 'hovertext')
    if hovertext is None and 'hovertext' in trace.constants:
        hovertext = str(trace.constants['hovertext'])
    if hovertext is not None:
        kw['hovertext'] = hovertext
        kw['hoverinfo'] = 'text'
    return kw


def _marker(trace: Any) -> Dict[str, Any]:
    """Marker dict for per-row marks: numeric colour/size columns or literals."""
    marker: Dict[str, Any] = {}
    if _is_numeric(trace.frame, 'color'):
        marker['color'] = _values(trace.frame, 'color')
        marker['colorscale'] = _CONTINUOUS_COLORSCALE
        marker['showscale'] = True
    else:
        color = _fixed_color(trace)
        if color is not None:
            marker['color'] = color

    if _is_numeric(trace.frame, 'size'):
        marker['size'] = _values(trace.frame, 'size')
    elif 'size' in trace.constants:
        marker['size'] = trace.constants['size']
    return marker


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _build_lines(trace: Any) -> go.Scatter:
    line: Dict[str, Any] = {}
    color = _fixed_color(trace)
    if color is not None:
        line['color'] = color
    if 'size' in trace.constants:
        line['width'] = trace.constants['size']
    return go.Scatter(
        x=_values(trace.frame, 'x'),
        y=_values(trace.frame, 'y'),
        mode='lines',
        connectgaps=False,   # gap rows separate groups
        line=line,
        **_common(trace),
    )


def _build_points(trace: Any) -> go.Scatter:
    return go.Scatter(
        x=_values(trace.frame, 'x'),
        y=_values(trace.frame, 'y'),
        mode='markers',
        marker=_marker(trace),
        **_common(trace),
    )


def _build_text(trace: Any) -> go.Scatter:
    text = _values(trace.frame, 'text')
    if text is None:
        text = str(trace.constants.get('text', ''))
    textfont: Dict[str, Any] = {}
    color = _fixed_color(trace)
    if color is not None:
        textfont['color'] = color
    if 'size' in trace.constants:
        textfont['size'] = trace.constants['size']
    return go.Scatter(
        x=_values(trace.frame, 'x'),
        y=_values(trace.frame, 'y'),
        mode='text',
        text=text,
        textfont=textfont,
        **_common(trace),
    )


def _build_bars(trace: Any) -> go.Bar:
    return go.Bar(
        x=_values(trace.frame, 'x'),
        y=_values(trace.frame, 'y'),
        marker=_marker(trace),
        **_common(trace),
    )


def _build_ribbon(trace: Any) -> go.Scatter:
    """
    Closed polygon per gap-separated run: along ``ymax`` left to right, back
    along ``ymin`` right to left.  Polygons are joined with ``None`` breaks.
    """
    xs: List[Any] = []
    ys: List[Any] = []
    for seg in split_segments(trace.frame[['x', 'ymin', 'ymax']]):
        if xs:
            xs.append(None)
            ys.append(None)
        x = _values(seg, 'x')
        xs.extend(x + x[::-1])
        ys.extend(_values(seg, 'ymax') + _values(seg, 'ymin')[::-1])

    color = _fixed_color(trace)
    kw = _common(trace)
    kw.pop('hovertext', None)   # polygon vertices no longer align with rows
    if kw.get('hoverinfo') == 'text':
        kw.pop('hoverinfo')
    return go.Scatter(
        x=xs,
        y=ys,
        mode='lines',
        fill='toself',
        line=dict(width=0, color=color) if color else dict(width=0),
        fillcolor=color,
        opacity=_RIBBON_OPACITY,
        **kw,
    )


def _build_segments(trace: Any) -> go.Scatter:
    """Vectorise rows -> flat Scatter ``(x, y)`` using the None-gap pattern."""
    frame = trace.frame
    n = len(frame)

    # 3 slots per segment: start, end, None (segment break)
    x = np.empty(n * 3, dtype=object)
    x[0::3] = _values(frame, 'x')
    x[1::3] = _values(frame, 'xend')
    x[2::3] = None

    y = np.empty(n * 3, dtype=object)
    y[0::3] = _values(frame, 'y')
    y[1::3] = _values(frame, 'yend')
    y[2::3] = None

    kw = _common(trace)
    if isinstance(kw.get('hovertext'), list):
        hover: List[str] = []
        for txt in kw['hovertext']:
            txt = '' if txt is None else str(txt)
            hover += [txt, txt, '']
        kw['hovertext'] = hover

    line: Dict[str, Any] = {}
    color = _fixed_color(trace)
    if color is not None:
        line['color'] = color
    if 'size' in trace.constants:
        line['width'] = trace.constants['size']

    return go.Scatter(
        x=x.tolist(),
        y=y.tolist(),
        mode='lines',
        line=line,
        **kw,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

MARKS: Dict[str, MarkSpec] = {
    spec.name: spec
    for spec in (
        MarkSpec('line',    continuous=True,  sort_x=True,  required=('x', 'y'),                 build=_build_lines),
        MarkSpec('path',    continuous=True,  sort_x=False, required=('x', 'y'),                 build=_build_lines),
        MarkSpec('ribbon',  continuous=True,  sort_x=True,  required=('x', 'ymin', 'ymax'),      build=_build_ribbon),
        MarkSpec('point',   continuous=False, sort_x=False, required=('x', 'y'),                 build=_build_points),
        MarkSpec('text',    continuous=False, sort_x=False, required=('x', 'y', 'text'),         build=_build_text),
        MarkSpec('bar',     continuous=False, sort_x=False, required=('x', 'y'),                 build=_build_bars),
        MarkSpec('segment', continuous=False, sort_x=False, required=('x', 'y', 'xend', 'yend'), build=_build_segments),
    )
}


def get_mark(name: str) -> MarkSpec:
    """
    Look up a mark by name.

    Raises:
        ValueError: For unknown mark names, listing the known ones.
    """
    try:
        return MARKS[name]
    except KeyError:
        raise ValueError(
            f"Unknown mark type '{name}'. Known marks: {sorted(MARKS)}"
        ) from None
