import numpy as np
import pandas as pd

from plotpipe import Pipeline
from plotpipe.analysis import Bin
from plotpipe.config import PipelineOptions
from plotpipe.data import Dataset
from plotpipe.pipeline import Layering, Scene, Transform, apply


def _values(n, seed=0):
    rng = np.random.default_rng(seed)
    return pd.DataFrame({"v": rng.normal(size=n), "g": ["a", "b"] * (n // 2)})


def test_pre_and_post_transform_datasets_differ_in_size():
    pre = Pipeline(_values(50), x="v").add_histogram(bins=10)
    post = Pipeline(_values(50), x="v", original_data=False).add_histogram(bins=10)
    assert len(pre.data) == 50
    assert len(post.data) == 10


def test_stat_output_is_kept_either_way():
    for flag in (True, False):
        scene = Pipeline(_values(50), x="v", original_data=flag).add_histogram(bins=10).scene
        assert len(scene.stat_data) == 10
        assert scene.original_data is flag


def test_histogram_layer_draws_bins_regardless_of_flag():
    for flag in (True, False):
        layer = Pipeline(_values(50), x="v", original_data=flag).add_histogram(bins=10).layers[0]
        assert layer.stat == "bin"
        assert layer.n_rows == 10
        assert sum(layer.traces[0].values("y")) == 50


def test_annotation_sees_binned_rows_downstream():
    p = (
        Pipeline(_values(100), x="v", original_data=False)
        .add_histogram(bins=10)
        .add_text(x="x", y="count", text=lambda f: f["count"].astype(str))
    )
    annotation = p.layers[1]
    assert len(annotation.data) == 10
    assert annotation.n_rows == 10


def test_grouped_stat_output_keeps_groups():
    p = Pipeline(_values(40), x="v", original_data=False).group_by("g").add_histogram(bins=5)
    assert p.data.groups == ("g",)
    assert len(p.data) == 10


def test_histogram_can_plot_density_column():
    layer = Pipeline(_values(50), x="v").add_histogram(bins=10, y="density").layers[0]
    assert layer.mapping["y"] == "density"


def test_plain_transform_clears_stat_output():
    scene = Scene(current=Dataset(_values(50)), mapping={"x": "v"}, options=PipelineOptions(original_data=False))
    scene = apply(scene, Layering("bar", stat=Bin(bins=10)))
    assert scene.stat_data is not None
    scene = apply(scene, Transform(lambda ds: ds))
    assert scene.stat_data is None
    assert len(scene.current) == 10


def test_inherited_literal_survives_on_stat_layer():
    layer = Pipeline(_values(50), x="v", size=3).add_histogram(bins=10).layers[0]
    assert layer.mapping["size"] == 3
    assert layer.traces[0].constants["size"] == 3


def test_inherited_input_column_is_dropped_on_stat_layer():
    layer = Pipeline(_values(50), x="v", text="v").add_histogram(bins=10).layers[0]
    assert "text" not in layer.mapping
