import numpy as np
import pandas as pd
import pytest

from plotpipe.analysis import (
    arrange,
    filter_rows,
    group_apply,
    group_by,
    mutate,
    slice_max,
    slice_min,
    summarise,
    ungroup,
)
from plotpipe.data import Dataset
from plotpipe.errors import MissingGroupKeyError


def _sales(groups=()):
    frame = pd.DataFrame(
        {
            "city": ["Houston", "Austin", "Houston", "Dallas", "Austin", "Houston"],
            "year": [2000, 2000, 2001, 2000, 2001, 2002],
            "sales": [10, 4, 12, 7, 5, 9],
        }
    )
    return Dataset(frame, groups)


def test_filter_by_query_keeps_groups():
    out = filter_rows(_sales(["city"]), "city == 'Houston'")
    assert len(out) == 3
    assert out.groups == ("city",)


def test_filter_by_callable_and_mask():
    assert len(filter_rows(_sales(), lambda f: f["sales"] > 8)) == 3
    assert len(filter_rows(_sales(), [True, False] * 3)) == 3


def test_filter_mask_of_wrong_length_raises():
    with pytest.raises(ValueError):
        filter_rows(_sales(), [True, False])


def test_filter_does_not_touch_input():
    ds = _sales()
    filter_rows(ds, "sales > 100")
    assert len(ds) == 6


def test_mutate_sees_earlier_columns():
    out = mutate(_sales(), double=lambda f: f["sales"] * 2, quad=lambda f: f["double"] * 2, tag="x")
    assert out.column("quad").tolist() == [40, 16, 48, 28, 20, 36]
    assert set(out.column("tag")) == {"x"}


def test_arrange_is_stable_and_checks_columns():
    out = arrange(_sales(), "year")
    assert out.column("sales").tolist() == [10, 4, 7, 12, 5, 9]
    assert arrange(_sales(), "sales", descending=True).column("sales").tolist()[0] == 12
    with pytest.raises(ValueError):
        arrange(_sales(), "month")


def test_group_by_missing_column_raises():
    with pytest.raises(MissingGroupKeyError) as err:
        group_by(_sales(), "city", "state")
    assert err.value.keys == ("state",)
    assert err.value.operation == "group_by"


def test_group_by_add_and_ungroup():
    ds = group_by(group_by(_sales(), "city"), "year", add=True)
    assert ds.groups == ("city", "year")
    assert ungroup(ds).groups == ()


def test_summarise_one_row_per_group_in_first_appearance_order():
    out = summarise(_sales(["city"]), total=("sales", "sum"), n=lambda f: len(f))
    frame = out.frame
    assert frame["city"].tolist() == ["Houston", "Austin", "Dallas"]
    assert frame["total"].tolist() == [31, 9, 7]
    assert frame["n"].tolist() == [3, 2, 1]
    assert out.groups == ()


def test_summarise_peels_last_group_key():
    out = summarise(_sales(["city", "year"]), total=("sales", "sum"))
    assert out.groups == ("city",)
    assert len(out) == 6


def test_summarise_ungrouped_yields_single_row():
    out = summarise(_sales(), mean=("sales", "mean"))
    assert len(out) == 1
    assert out.column("mean").iloc[0] == pytest.approx(47 / 6)


def test_summarise_rejects_bad_aggregation():
    with pytest.raises(ValueError):
        summarise(_sales(), total="sales")


def test_slice_max_and_min_per_group():
    top = slice_max(_sales(["city"]), "sales")
    assert top.frame.set_index("city")["sales"].to_dict() == {"Houston": 12, "Austin": 5, "Dallas": 7}
    low = slice_min(_sales(), "sales", n=2)
    assert low.column("sales").tolist() == [4, 5]


def test_group_apply_requires_groups():
    with pytest.raises(MissingGroupKeyError) as err:
        group_apply(_sales(), lambda f: f)
    assert err.value.keys == ()


def test_group_apply_reattaches_group_columns():
    def cumulative(frame):
        return pd.DataFrame({"year": frame["year"], "running": np.cumsum(frame["sales"])})

    out = group_apply(_sales(["city"]), cumulative)
    assert out.groups == ("city",)
    assert out.frame.loc[out.frame["city"] == "Houston", "running"].tolist() == [10, 22, 31]
