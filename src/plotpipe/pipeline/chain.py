"""
Fluent Pipeline

Left-to-right chain syntax over the pipeline engine.  Every method applies
one step and returns a NEW ``Pipeline``; the receiver is never changed, so
any intermediate pipeline can be reused as a branch point.

Usage::

    from plotpipe import Pipeline, const

    fig = (
        Pipeline(df, x='year', y='price')
        .group_by('city')
        .add_lines(color=const('gray'), hoverable=False, name='all cities')
        .scoped(lambda p: p.filter("city == 'Houston'").add_lines(name='Houston'))
        .layout(dragmode='pan')
        .rangeslider()
        .figure()
    )
"""

from __future__ import annotations

from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import plotly.graph_objects as go

from ..analysis import transforms as tf
from ..analysis.mapping import ROLES
from ..analysis.stats import Bin, Density, Smooth
from ..config import PipelineOptions
from ..data.dataset import Dataset
from ..data.sources import DataLike, as_dataset
from ..plotting.render import to_figure, write_html
from .scene import Layer, Layout, Scene
from .steps import Layering, LayoutEdit, ScopedTransform, StyleEdit, Transform, apply


def _split_roles(kwargs: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Separate visual-role keywords from Plotly trace attributes."""
    roles = {k: v for k, v in kwargs.items() if k in ROLES}
    attrs = {k: v for k, v in kwargs.items() if k not in ROLES}
    return roles, attrs


class Pipeline:
    """
    Immutable handle on a Scene with chainable steps.

    Args:
        data: Tabular source (Dataset, DataFrame, dict of columns or list
            of records).
        mapping: Default role → column mapping for every layer.
        original_data: Statistical passthrough flag; overrides the value in
            *options* when given.  ``True`` keeps raw rows current after a
            stat layer, ``False`` exposes the stat output.
        options: Pipeline options (``PipelineOptions()`` by default).
        **roles: Extra default roles, merged over *mapping*.
    """

    __slots__ = ('_scene',)

    def __init__(
        self,
        data: DataLike,
        mapping: Optional[Mapping[str, Any]] = None,
        *,
        original_data: Optional[bool] = None,
        options: Optional[PipelineOptions] = None,
        **roles: Any,
    ) -> None:
        options = options or PipelineOptions()
        if original_data is not None:
            options = replace(options, original_data=original_data)
        merged = dict(mapping or {})
        merged.update(roles)
        self._scene = Scene(current=as_dataset(data), mapping=merged, options=options)

    @classmethod
    def from_scene(cls, scene: Scene) -> 'Pipeline':
        obj = cls.__new__(cls)
        obj._scene = scene
        return obj

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def data(self) -> Dataset:
        """The current dataset, as the next step will see it."""
        return self._scene.current

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return self._scene.layers

    @property
    def layout_fields(self) -> Layout:
        return self._scene.layout

    def then(self, step: Any) -> 'Pipeline':
        """Apply an arbitrary step object."""
        return Pipeline.from_scene(apply(self._scene, step))

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def transform(self, func: Callable[[Dataset], Dataset], name: str = '') -> 'Pipeline':
        return self.then(Transform(func, name))

    def filter(self, predicate: tf.Predicate) -> 'Pipeline':
        return self.then(Transform(partial(tf.filter_rows, predicate=predicate), 'filter'))

    def mutate(self, **columns: Any) -> 'Pipeline':
        return self.then(Transform(partial(tf.mutate, **columns), 'mutate'))

    def group_by(self, *columns: str, add: bool = False) -> 'Pipeline':
        return self.then(Transform(lambda ds: tf.group_by(ds, *columns, add=add), 'group_by'))

    def ungroup(self) -> 'Pipeline':
        return self.then(Transform(tf.ungroup, 'ungroup'))

    def arrange(self, *columns: str, descending: bool = False) -> 'Pipeline':
        return self.then(
            Transform(lambda ds: tf.arrange(ds, *columns, descending=descending), 'arrange')
        )

    def summarise(self, **aggregations: tf.Aggregation) -> 'Pipeline':
        return self.then(Transform(partial(tf.summarise, **aggregations), 'summarise'))

    def slice_max(self, column: str, n: int = 1) -> 'Pipeline':
        return self.then(Transform(partial(tf.slice_max, column=column, n=n), 'slice_max'))

    def slice_min(self, column: str, n: int = 1) -> 'Pipeline':
        return self.then(Transform(partial(tf.slice_min, column=column, n=n), 'slice_min'))

    def group_apply(self, func: Callable[[Any], Any]) -> 'Pipeline':
        return self.then(Transform(partial(tf.group_apply, func=func), 'group_apply'))

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def add_layer(
        self,
        mark: str,
        *,
        data: Optional[DataLike] = None,
        name: Optional[str] = None,
        stat: Any = None,
        single_trace: Optional[bool] = None,
        hoverable: Optional[bool] = None,
        showlegend: bool = True,
        allow_empty: bool = False,
        inherit: bool = True,
        **kwargs: Any,
    ) -> 'Pipeline':
        """
        Append a layer of *mark*.

        Keyword arguments named after visual roles (``x``, ``y``, ``color``,
        ...) override the pipeline mapping; any other keyword is passed to
        the Plotly trace as an attribute (``line_dash='dot'``).
        """
        roles, attrs = _split_roles(kwargs)
        return self.then(Layering(
            mark=mark,
            mapping=roles,
            name=name,
            data=as_dataset(data) if data is not None else None,
            stat=stat,
            single_trace=single_trace,
            hoverable=hoverable,
            showlegend=showlegend,
            allow_empty=allow_empty,
            inherit=inherit,
            attrs=attrs,
        ))

    def add_lines(self, **kwargs: Any) -> 'Pipeline':
        return self.add_layer('line', **kwargs)

    def add_paths(self, **kwargs: Any) -> 'Pipeline':
        return self.add_layer('path', **kwargs)

    def add_markers(self, **kwargs: Any) -> 'Pipeline':
        return self.add_layer('point', **kwargs)

    def add_text(self, **kwargs: Any) -> 'Pipeline':
        return self.add_layer('text', **kwargs)

    def add_bars(self, **kwargs: Any) -> 'Pipeline':
        return self.add_layer('bar', **kwargs)

    def add_ribbons(self, **kwargs: Any) -> 'Pipeline':
        return self.add_layer('ribbon', **kwargs)

    def add_segments(self, **kwargs: Any) -> 'Pipeline':
        return self.add_layer('segment', **kwargs)

    def add_histogram(self, column: Optional[str] = None, bins: int = 10, **kwargs: Any) -> 'Pipeline':
        """Bar layer of bin counts of *column* (default: the mapped ``x``)."""
        return self.add_layer('bar', stat=Bin(column=column, bins=bins), **kwargs)

    def add_density(
        self,
        column: Optional[str] = None,
        n: int = 512,
        bw: Optional[float] = None,
        **kwargs: Any,
    ) -> 'Pipeline':
        """Line layer of a Gaussian kernel density estimate."""
        return self.add_layer('line', stat=Density(column=column, n=n, bw=bw), **kwargs)

    def add_smooth(
        self,
        degree: int = 1,
        se: bool = True,
        level: float = 0.95,
        n: int = 80,
        **kwargs: Any,
    ) -> 'Pipeline':
        """
        Fitted polynomial line, preceded by its confidence ribbon when *se*.

        The ribbon is added first so the line draws on top of it.
        """
        stat = Smooth(degree=degree, level=level, n=n)
        out = self
        if se:
            ribbon_kwargs = dict(kwargs)
            ribbon_kwargs.setdefault('showlegend', False)
            ribbon_kwargs.setdefault('hoverable', False)
            out = out.add_layer('ribbon', stat=stat, **ribbon_kwargs)
        return out.add_layer('line', stat=stat, **kwargs)

    # ------------------------------------------------------------------
    # Branching / styling / layout
    # ------------------------------------------------------------------

    def scoped(self, func: Callable[['Pipeline'], 'Pipeline'], name: str = '') -> 'Pipeline':
        """
        Run *func* on a copy of this pipeline, keeping only the layers it adds.

        The current dataset after this call is the same as before it, no
        matter what *func* filters or summarises.
        """
        def _run(scene: Scene) -> Scene:
            result = func(Pipeline.from_scene(scene))
            if not isinstance(result, Pipeline):
                raise TypeError(
                    f"scoped function must return a Pipeline, got {type(result).__name__}"
                )
            return result.scene

        return self.then(ScopedTransform(_run, name))

    def style(
        self,
        layers: Optional[Sequence[int]] = None,
        hoverable: Optional[bool] = None,
        **attrs: Any,
    ) -> 'Pipeline':
        return self.then(StyleEdit(attrs=attrs, layers=layers, hoverable=hoverable))

    def layout(self, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> 'Pipeline':
        merged = dict(fields or {})
        merged.update(kwargs)
        return self.then(LayoutEdit(merged))

    def rangeslider(self, visible: bool = True, **kwargs: Any) -> 'Pipeline':
        """Add (or hide) a range slider under the x axis."""
        return self.layout(xaxis={'rangeslider': dict(visible=visible, **kwargs)})

    def hide_legend(self) -> 'Pipeline':
        return self.layout(showlegend=False)

    # ------------------------------------------------------------------
    # Render handoff
    # ------------------------------------------------------------------

    def figure(self) -> go.Figure:
        return to_figure(self._scene)

    def write_html(self, path: Union[str, Path], **kwargs: Any) -> Path:
        return write_html(self._scene, path, **kwargs)

    def __repr__(self) -> str:
        return f"Pipeline({self._scene!r})"
