import time

import numpy as np
import pandas as pd
import pytest

from plotpipe.data import Dataset, group_label
from plotpipe.errors import MissingGroupKeyError


def _frame():
    return pd.DataFrame(
        {
            "g": ["b", "a", "b", "c", "a"],
            "x": [1, 2, 3, 4, 5],
        },
        index=[10, 11, 12, 13, 14],
    )


def test_group_codes_follow_first_appearance():
    ds = Dataset(_frame(), groups=["g"])
    assert ds.group_codes().tolist() == [0, 1, 0, 2, 1]
    assert ds.n_groups() == 3


def test_ungrouped_dataset_is_one_group():
    ds = Dataset(_frame())
    assert ds.group_codes().tolist() == [0] * 5
    (key, positions), = ds.group_index()
    assert key == ()
    assert positions.tolist() == [0, 1, 2, 3, 4]


def test_empty_dataset_has_no_groups():
    ds = Dataset(_frame().iloc[0:0], groups="g")
    assert ds.empty
    assert ds.group_index() == []
    assert len(ds.group_codes()) == 0


def test_index_is_discarded_and_order_kept():
    ds = Dataset(_frame())
    assert list(ds.frame.index) == [0, 1, 2, 3, 4]
    assert ds.column("x").tolist() == [1, 2, 3, 4, 5]


def test_frame_is_copied_in_and_out():
    src = _frame()
    ds = Dataset(src)
    src.loc[10, "x"] = 99
    out = ds.frame
    out["x"] = 0
    assert ds.column("x").tolist() == [1, 2, 3, 4, 5]


def test_missing_group_column_raises():
    with pytest.raises(MissingGroupKeyError) as err:
        Dataset(_frame(), groups=["g", "nope"])
    assert err.value.keys == ("nope",)


def test_iter_groups_yields_keys_and_rows():
    ds = Dataset(_frame(), groups=["g"])
    groups = [(key, sub["x"].tolist()) for key, sub in ds.iter_groups()]
    assert groups == [(("b",), [1, 3]), (("a",), [2, 5]), (("c",), [4])]


def test_missing_values_form_their_own_group():
    frame = pd.DataFrame({"g": ["a", None, "a", None], "x": [1, 2, 3, 4]})
    ds = Dataset(frame, groups=["g"])
    assert ds.group_codes().tolist() == [0, 1, 0, 1]


def test_equality_compares_rows_and_groups():
    a = Dataset(_frame(), groups=["g"])
    b = Dataset(_frame().reset_index(drop=True), groups=["g"])
    c = Dataset(_frame())
    assert a == b
    assert a != c
    assert "x" in a and "y" not in a


def test_with_frame_keeps_or_replaces_groups():
    ds = Dataset(_frame(), groups=["g"])
    assert ds.with_frame(ds.frame).groups == ("g",)
    assert ds.with_frame(ds.frame, groups=()).groups == ()


def test_group_label_joins_values():
    assert group_label(("a",)) == "a"
    assert group_label(("a", 1)) == "a / 1"


def test_group_index_scales_to_many_groups():
    n_groups = 50_000
    frame = pd.DataFrame(
        {
            "g": np.tile(np.arange(n_groups), 2),
            "x": np.arange(2 * n_groups),
        }
    )
    ds = Dataset(frame, groups="g")

    start = time.perf_counter()
    index = ds.group_index()
    elapsed = time.perf_counter() - start

    assert len(index) == n_groups
    assert ds.n_groups() == n_groups
    key, positions = index[123]
    assert key == (123,)
    assert positions.tolist() == [123, n_groups + 123]
    assert elapsed < 5.0
