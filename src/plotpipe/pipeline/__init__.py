"""
plotpipe Pipeline Package

Scene model, step types, the ``apply`` engine and the fluent ``Pipeline``
chain built on top of it.

Modules:
- scene:    Trace, Layer, Layout and Scene (all immutable)
- layering: Layer construction and the single-trace grouping strategy
- steps:    Step types and ``apply(scene, step)``
- chain:    ``Pipeline`` fluent interface
"""

from .scene import Layer, Layout, Scene, Trace
from .layering import build_layer
from .steps import (
    Layering,
    LayoutEdit,
    ScopedTransform,
    StyleEdit,
    Transform,
    apply,
    apply_all,
)
from .chain import Pipeline

__all__ = [
    # Scene
    'Layer',
    'Layout',
    'Scene',
    'Trace',
    'build_layer',
    # Steps
    'Layering',
    'LayoutEdit',
    'ScopedTransform',
    'StyleEdit',
    'Transform',
    'apply',
    'apply_all',
    # Chain
    'Pipeline',
]
