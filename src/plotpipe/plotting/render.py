"""
Scene Renderer

Converts a finished Scene into a ``plotly.graph_objects.Figure``.  This is
the only place Plotly figures are assembled; Scenes themselves stay plain
data.

Package Location: src/plotpipe/plotting/render.py

Layout Rule:
    Renderer defaults (template, hovermode, colorway, axis titles taken
    from the first layer's ``x`` / ``y`` references) are applied first;
    the Scene's own Layout is merged over them, so every user edit wins.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Union

import plotly.graph_objects as go

from ..analysis.mapping import describe_reference
from .marks import get_mark

if TYPE_CHECKING:
    from ..pipeline.scene import Scene

log = logging.getLogger(__name__)


def to_figure(scene: 'Scene') -> go.Figure:
    """
    Render every layer of *scene*, in order, into one Figure.

    Args:
        scene: Scene produced by a pipeline.

    Returns:
        Plotly Figure with one trace per trace record.
    """
    fig = go.Figure()

    for layer in scene.layers:
        spec = get_mark(layer.mark)
        for record in layer.traces:
            trace = spec.build(record)
            if layer.attrs:
                trace.update(dict(layer.attrs))
            fig.add_trace(trace)

    fig.update_layout(**_default_layout(scene))
    fig.update_layout(**scene.layout.to_dict())

    log.debug(
        f"Rendered {len(fig.data)} trace(s) from {len(scene.layers)} layer(s)",
        extra={"layers": len(scene.layers), "traces": len(fig.data)},
    )
    return fig


def _default_layout(scene: 'Scene') -> Dict[str, Any]:
    options = scene.options
    layout: Dict[str, Any] = dict(
        template=options.template,
        hovermode=options.hovermode,
        colorway=list(options.colorway),
        legend=dict(orientation='v', x=1.01, y=1.0, xanchor='left'),
    )
    if scene.layers:
        first = scene.layers[0]
        x_title = describe_reference(first.mapping.get('x'))
        y_title = describe_reference(first.mapping.get('y'))
        if x_title:
            layout['xaxis'] = dict(title=dict(text=x_title))
        if y_title:
            layout['yaxis'] = dict(title=dict(text=y_title))
    if any(layer.mark == 'bar' for layer in scene.layers):
        layout['barmode'] = 'overlay'
    return layout


def write_html(scene: 'Scene', path: Union[str, Path], **kwargs: Any) -> Path:
    """
    Render *scene* and write it as a standalone HTML file.

    Extra keyword arguments go to ``Figure.write_html`` (``include_plotlyjs``
    and friends).

    Returns:
        The written path.
    """
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    to_figure(scene).write_html(str(out_path), **kwargs)
    log.info(f"Figure saved → {out_path}", extra={"output_path": str(out_path)})
    return out_path
