"""
Pipeline Engine

``apply(scene, step)`` is the single entry point: it takes a Scene and one
step and returns a new Scene.  Steps:

    Transform        current dataset -> func(current dataset); layers kept
    Layering         append one Layer built from the current dataset
    LayoutEdit       merge fields into the scene's single Layout
    ScopedTransform  run a sub-pipeline on a copy; keep only its new layers
    StyleEdit        restyle already-built layers

Package Location: src/plotpipe/pipeline/steps.py

Scoping Rule:
    A ScopedTransform lets a chain branch without breaking left-to-right
    syntax: filter to one subgroup, add a layer, and carry on from the
    unfiltered data.  Whatever the sub-pipeline does to its copy's current
    dataset is discarded; only appended layers (and layout edits) survive.

Statistical Passthrough Rule:
    A Layering step with a ``stat`` draws ``stat(current)``.  Afterwards the
    current dataset is the raw input when ``options.original_data`` is True
    (the default) and the stat output otherwise.  The stat output is kept on
    ``scene.stat_data`` in both cases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import singledispatch
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ..analysis.mapping import Constant, merge_mappings
from ..data.dataset import Dataset
from ..errors import PipelineError
from .layering import build_layer
from .scene import Scene

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Step types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Transform:
    """Replace the current dataset with ``func(current)``."""

    func: Callable[[Dataset], Dataset]
    name: str = ''


@dataclass(frozen=True)
class Layering:
    """
    Append one layer.

    Attributes:
        mark: Mark tag.
        mapping: Role overrides on top of the pipeline mapping (``None``
            values drop an inherited role).
        name: Legend label.
        data: Layer-specific dataset; defaults to the scene's current one.
        stat: Statistical summary drawn instead of the raw rows.
        single_trace: Grouping strategy; ``None`` uses the pipeline option.
        hoverable: Hover toggle; ``None`` uses the pipeline option.
        showlegend: Legend toggle.
        allow_empty: Permit a zero-row layer.
        inherit: Start from the pipeline mapping (``False`` starts empty).
        attrs: Extra Plotly trace attributes.
    """

    mark: str
    mapping: Mapping[str, Any] = field(default_factory=dict)
    name: Optional[str] = None
    data: Optional[Dataset] = None
    stat: Any = None
    single_trace: Optional[bool] = None
    hoverable: Optional[bool] = None
    showlegend: bool = True
    allow_empty: bool = False
    inherit: bool = True
    attrs: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LayoutEdit:
    """Merge *fields* into the layout (last write wins per field)."""

    fields: Mapping[str, Any]


@dataclass(frozen=True)
class ScopedTransform:
    """Run ``func(scene_copy) -> scene`` and keep only the layers it adds."""

    func: Callable[[Scene], Scene]
    name: str = ''


@dataclass(frozen=True)
class StyleEdit:
    """
    Restyle existing layers.

    Attributes:
        attrs: Plotly trace attributes merged into each selected layer.
        layers: Layer indices (negative allowed); ``None`` selects all.
        hoverable: Hover toggle for the selected layers' traces.
    """

    attrs: Mapping[str, Any] = field(default_factory=dict)
    layers: Optional[Sequence[int]] = None
    hoverable: Optional[bool] = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def apply(scene: Scene, step: Any) -> Scene:
    """
    Apply one pipeline step to *scene* and return the resulting Scene.

    Raises:
        TypeError: If *step* is not a known step type.
        PipelineError: Whatever the step itself raises; *scene* is untouched.
    """
    try:
        return _apply(step, scene)
    except PipelineError as exc:
        log.debug(
            f"{type(step).__name__} step failed: {exc}",
            extra={"step": type(step).__name__, "error": type(exc).__name__},
        )
        raise


@singledispatch
def _apply(step: Any, scene: Scene) -> Scene:
    raise TypeError(f"Not a pipeline step: {type(step).__name__}")


@_apply.register
def _(step: Transform, scene: Scene) -> Scene:
    result = step.func(scene.current)
    if not isinstance(result, Dataset):
        raise TypeError(
            f"Transform {step.name or step.func!r} must return a Dataset, "
            f"got {type(result).__name__}"
        )
    log.debug(
        f"Transform {step.name or 'anonymous'}: {len(scene.current)} -> {len(result)} rows",
        extra={"step": "transform", "rows_in": len(scene.current), "rows_out": len(result)},
    )
    # a plain transform supersedes any earlier stat output
    return scene.evolve(current=result, stat_data=None)


@_apply.register
def _(step: Layering, scene: Scene) -> Scene:
    source = step.data if step.data is not None else scene.current
    options = scene.options

    if step.stat is not None:
        base = scene.mapping if step.inherit else {}
        drawn = step.stat.compute(source, merge_mappings(base, step.mapping))
        mapping = _stat_mapping(base, step.mapping, step.stat.default_mapping, drawn)
        stat_name = step.stat.name
    else:
        drawn = source
        mapping = merge_mappings(scene.mapping if step.inherit else {}, step.mapping)
        stat_name = None

    layer = build_layer(
        drawn,
        mapping,
        step.mark,
        name=step.name,
        single_trace=options.single_trace if step.single_trace is None else step.single_trace,
        hoverable=options.default_hoverable if step.hoverable is None else step.hoverable,
        showlegend=step.showlegend,
        allow_empty=step.allow_empty,
        colorway=options.colorway,
        attrs=step.attrs,
        stat=stat_name,
    )

    changes: dict = {'layers': scene.layers + (layer,)}
    if step.stat is not None:
        changes['stat_data'] = drawn
        if not options.original_data:
            changes['current'] = drawn

    log.debug(
        f"Layering {step.mark}: layer {len(scene.layers)} ({layer.n_rows} rows)",
        extra={"step": "layering", "mark": step.mark, "stat": stat_name},
    )
    return scene.evolve(**changes)


@_apply.register
def _(step: LayoutEdit, scene: Scene) -> Scene:
    return scene.evolve(layout=scene.layout.merge(step.fields))


@_apply.register
def _(step: ScopedTransform, scene: Scene) -> Scene:
    branch = step.func(scene.evolve())
    if not isinstance(branch, Scene):
        raise TypeError(
            f"Scoped sub-pipeline must return a Scene, got {type(branch).__name__}"
        )
    added = branch.layers[len(scene.layers):]
    log.debug(
        f"Scoped {step.name or 'sub-pipeline'} added {len(added)} layer(s)",
        extra={"step": "scoped", "layers_added": len(added)},
    )
    return scene.evolve(layers=scene.layers + tuple(added), layout=branch.layout)


@_apply.register
def _(step: StyleEdit, scene: Scene) -> Scene:
    n = len(scene.layers)
    if step.layers is None:
        selected = set(range(n))
    else:
        selected = set()
        for idx in step.layers:
            if not -n <= idx < n:
                raise IndexError(f"Layer index {idx} out of range for {n} layer(s)")
            selected.add(idx % n)

    layers = tuple(
        layer.with_attrs(step.attrs, hoverable=step.hoverable) if i in selected else layer
        for i, layer in enumerate(scene.layers)
    )
    return scene.evolve(layers=layers)


def apply_all(scene: Scene, steps: Iterable[Any]) -> Scene:
    """Apply *steps* left to right."""
    for step in steps:
        scene = apply(scene, step)
    return scene


def _stat_mapping(
    base: Mapping[str, Any],
    overrides: Mapping[str, Any],
    defaults: Mapping[str, Any],
    drawn: Dataset,
) -> dict:
    """
    Mapping for drawing a stat's output.

    Inherited roles survive only if they still resolve on the output (a
    grouping column carried through, a literal colour or size).  A role the stat
    fills by default is overridden only by a reference to an output column
    (``y='density'`` on a histogram); otherwise the override named the
    stat's input and is not redrawn.
    """
    inherited = {
        role: ref for role, ref in base.items()
        if _is_literal(ref) or (isinstance(ref, str) and ref in drawn)
    }
    extra = {
        role: ref for role, ref in overrides.items()
        if role not in defaults or (isinstance(ref, str) and ref in drawn)
    }
    return merge_mappings(merge_mappings(inherited, defaults), extra)


def _is_literal(ref: Any) -> bool:
    """``const()`` values and bare non-string scalars (``size=3``)."""
    if isinstance(ref, Constant):
        return True
    return not isinstance(ref, str) and not callable(ref)
