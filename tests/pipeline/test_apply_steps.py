import time

import numpy as np
import pandas as pd
import pytest

from plotpipe.analysis import filter_rows, group_by
from plotpipe.analysis.groups import separator_mask
from plotpipe.data import Dataset
from plotpipe.errors import EmptyDatasetError, MappingResolutionError
from plotpipe.pipeline import (
    Layering,
    Layout,
    LayoutEdit,
    Scene,
    ScopedTransform,
    StyleEdit,
    Transform,
    apply,
    apply_all,
)


def _grouped_scene():
    """3 groups x 4 rows, grouped by ``g``."""
    frame = pd.DataFrame(
        {
            "g": np.repeat(["a", "b", "c"], 4),
            "t": np.tile(np.arange(4), 3),
            "v": np.arange(12, dtype=float),
        }
    )
    return Scene(current=Dataset(frame, ["g"]), mapping={"x": "t", "y": "v"})


def test_grouped_line_is_one_trace_with_gap_rows():
    scene = apply(_grouped_scene(), Transform(lambda ds: ds))
    scene = apply(scene, Layering("line"))

    (layer,) = scene.layers
    (trace,) = layer.traces
    assert layer.n_rows == 12 + 2
    assert separator_mask(trace.frame).sum() == 2


def test_single_trace_opt_out_emits_one_trace_per_group():
    scene = apply(_grouped_scene(), Layering("line", single_trace=False))
    (layer,) = scene.layers
    assert [t.name for t in layer.traces] == ["a", "b", "c"]
    assert [len(t) for t in layer.traces] == [4, 4, 4]


def test_discrete_marks_ignore_grouping():
    scene = apply(_grouped_scene(), Layering("point"))
    (trace,) = scene.layers[0].traces
    assert len(trace) == 12
    assert not separator_mask(trace.frame).any()


def test_group_role_adds_grouping_for_one_layer():
    scene = apply_all(
        _grouped_scene(),
        [Transform(lambda ds: ds.with_frame(ds.frame, groups=())), Layering("path", mapping={"group": "g"})],
    )
    assert scene.layers[0].n_rows == 14
    assert not scene.current.is_grouped


def test_scoped_transform_never_changes_current():
    scene = _grouped_scene()

    def houston_only(branch):
        branch = apply(branch, Transform(lambda ds: filter_rows(ds, "g == 'a'")))
        return apply(branch, Layering("line", name="highlight"))

    out = apply(scene, ScopedTransform(houston_only))
    assert out.current == scene.current
    assert len(out.layers) == 1
    assert out.layers[0].n_rows == 4


def test_scoped_transform_keeps_only_new_layers():
    scene = apply(_grouped_scene(), Layering("line"))
    out = apply(scene, ScopedTransform(lambda s: apply(s, Layering("point"))))
    assert [layer.mark for layer in out.layers] == ["line", "point"]


def test_scoped_transform_must_return_scene():
    with pytest.raises(TypeError):
        apply(_grouped_scene(), ScopedTransform(lambda s: s.current))


def test_layout_edit_is_idempotent():
    edit = LayoutEdit({"dragmode": "pan", "xaxis": {"rangeslider": {"visible": True}}})
    once = apply(_grouped_scene(), edit)
    twice = apply(once, edit)
    assert once.layout == twice.layout
    assert twice.layout == {"dragmode": "pan", "xaxis": {"rangeslider": {"visible": True}}}


def test_layout_edits_merge_nested_fields():
    scene = apply_all(
        _grouped_scene(),
        [
            LayoutEdit({"xaxis": {"title": {"text": "Year"}}}),
            LayoutEdit({"xaxis": {"rangeslider": {"visible": True}}, "title": "Sales"}),
            LayoutEdit({"title": "Sales by city"}),
        ],
    )
    assert scene.layout["xaxis"] == {"title": {"text": "Year"}, "rangeslider": {"visible": True}}
    assert scene.layout["title"] == "Sales by city"
    assert Layout({"a": 1}) == Layout({"a": 1})


def test_layer_snapshot_survives_later_transforms():
    scene = apply(_grouped_scene(), Layering("line"))
    scene = apply(scene, Transform(lambda ds: filter_rows(ds, "g == 'a'")))
    assert len(scene.current) == 4
    assert len(scene.layers[0].data) == 12


def test_transform_must_return_dataset():
    with pytest.raises(TypeError):
        apply(_grouped_scene(), Transform(lambda ds: ds.frame))


def test_unknown_step_raises():
    with pytest.raises(TypeError):
        apply(_grouped_scene(), "add lines")


def test_empty_dataset_raises_unless_allowed():
    scene = apply(_grouped_scene(), Transform(lambda ds: filter_rows(ds, "v > 100")))
    with pytest.raises(EmptyDatasetError):
        apply(scene, Layering("line"))
    out = apply(scene, Layering("line", allow_empty=True))
    assert out.layers[0].n_rows == 0


def test_unresolvable_role_raises():
    with pytest.raises(MappingResolutionError) as err:
        apply(_grouped_scene(), Layering("line", mapping={"y": "price"}))
    assert err.value.role == "y"


def test_required_role_must_be_mapped():
    with pytest.raises(MappingResolutionError) as err:
        apply(_grouped_scene(), Layering("segment"))
    assert err.value.role == "xend"
    assert err.value.reference is None


def test_inherit_false_starts_from_empty_mapping():
    with pytest.raises(MappingResolutionError):
        apply(_grouped_scene(), Layering("line", mapping={"x": "t"}, inherit=False))


def test_failed_step_leaves_scene_untouched():
    scene = _grouped_scene()
    with pytest.raises(MappingResolutionError):
        apply(scene, Layering("line", mapping={"y": "price"}))
    assert scene.layers == ()


def test_categorical_color_splits_traces():
    scene = apply(_grouped_scene(), Layering("point", mapping={"color": "g"}))
    traces = scene.layers[0].traces
    assert [t.name for t in traces] == ["a", "b", "c"]
    assert len({t.color for t in traces}) == 3


def test_style_edit_updates_selected_layers():
    scene = apply_all(_grouped_scene(), [Layering("line"), Layering("point")])
    out = apply(scene, StyleEdit({"opacity": 0.5}, layers=[-1], hoverable=False))
    assert out.layers[0].attrs == {}
    assert out.layers[1].attrs == {"opacity": 0.5}
    assert not any(t.hoverable for t in out.layers[1].traces)
    with pytest.raises(IndexError):
        apply(scene, StyleEdit({"opacity": 0.5}, layers=[2]))


def test_grouping_transform_then_layer():
    frame = pd.DataFrame({"g": ["x", "y", "x", "y"], "t": [0, 0, 1, 1], "v": [1.0, 2.0, 3.0, 4.0]})
    scene = Scene(current=Dataset(frame), mapping={"x": "t", "y": "v"})
    scene = apply_all(scene, [Transform(lambda ds: group_by(ds, "g")), Layering("line")])
    values = scene.layers[0].traces[0].values("y")
    assert values == [1.0, 3.0, None, 2.0, 4.0]


def _many_groups_scene(n_groups):
    frame = pd.DataFrame(
        {
            "g": np.repeat(np.arange(n_groups), 2),
            "t": np.tile([0, 1], n_groups),
            "v": np.arange(2 * n_groups, dtype=float),
        }
    )
    return Scene(current=Dataset(frame, ["g"]), mapping={"x": "t", "y": "v"})


def test_single_trace_layer_never_builds_group_index(monkeypatch):
    def _fail(self):
        raise AssertionError("group_index called on the single-trace path")

    monkeypatch.setattr(Dataset, "group_index", _fail)
    scene = apply(_many_groups_scene(50_000), Layering("line"))
    assert scene.layers[0].n_rows == 100_000 + 49_999


def test_many_groups_layer_builds_quickly():
    scene = _many_groups_scene(50_000)
    start = time.perf_counter()
    scene = apply(scene, Layering("line"))
    elapsed = time.perf_counter() - start

    (trace,) = scene.layers[0].traces
    assert len(trace) == 100_000 + 49_999
    assert separator_mask(trace.frame).sum() == 49_999
    assert elapsed < 5.0


def test_per_group_traces_with_many_groups():
    scene = apply(_many_groups_scene(2_000), Layering("line", single_trace=False))
    traces = scene.layers[0].traces
    assert len(traces) == 2_000
    assert traces[1500].name == "1500"
    assert traces[1500].values("y") == [3000.0, 3001.0]


def test_single_trace_opt_out_splits_discrete_marks():
    scene = apply(_grouped_scene(), Layering("point", single_trace=False))
    (layer,) = scene.layers
    assert [t.name for t in layer.traces] == ["a", "b", "c"]
    assert not any(separator_mask(t.frame).any() for t in layer.traces)
