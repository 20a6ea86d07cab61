"""
plotpipe Plotting Package

Mark registry and the Scene → Plotly Figure renderer.

Modules:
    marks:  Per-mark grouping behaviour, required roles and trace builders.
    render: ``to_figure`` / ``write_html`` for finished Scenes.
"""

from .marks import MARKS, MarkSpec, get_mark
from .render import to_figure, write_html

__all__ = [
    # Marks
    'MARKS',
    'MarkSpec',
    'get_mark',
    # Rendering
    'to_figure',
    'write_html',
]
