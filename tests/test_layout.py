import numpy as np
import pandas as pd
import pytest
from pandas.testing import assert_frame_equal

from corviz import (
    MantelTbl, cor_tbl, parallel_layout, combination_layout,
    InvalidArgument, InvalidState, UnsupportedInputType,
)

GEOM = ["x", "y", "xend", "yend", "start_label", "end_label", "start_filter", "end_filter"]


@pytest.fixture
def links():
    return pd.DataFrame({"start": ["a", "b", "a"], "end": ["x", "y", "z"], "r": [0.1, 0.2, 0.3]})


def _sym5():
    names = list("abcde")
    R = np.eye(5)
    R[0, 1] = R[1, 0] = 0.5
    return pd.DataFrame(R, index=names, columns=names)


# ---------------- parallel ----------------
def test_parallel_vertical(links):
    out = parallel_layout(links)
    assert list(out.columns) == GEOM + ["start", "end", "r"]
    # n = max(2, 3) = 3；start 两个标签等距落在 [3, 1]
    assert out["y"].tolist() == pytest.approx([3.0, 1.0, 3.0])
    assert out["yend"].tolist() == pytest.approx([3.0, 2.0, 1.0])
    assert out["x"].tolist() == [0.0, 0.0, 0.0]
    assert out["xend"].tolist() == [1.0, 1.0, 1.0]
    assert out["start_filter"].tolist() == [True, True, False]
    assert out["end_filter"].tolist() == [True, True, True]


def test_parallel_horizontal_with_overrides(links):
    out = parallel_layout(links, horiz=True, start_y=0.5, end_y=2)
    assert out["x"].tolist() == pytest.approx([3.0, 1.0, 3.0])
    assert out["xend"].tolist() == pytest.approx([3.0, 2.0, 1.0])
    assert out["y"].tolist() == [0.5] * 3
    assert out["yend"].tolist() == [2.0] * 3


def test_parallel_explicit_order(links):
    out = parallel_layout(links, sort_start=["b", "a"], sort_end=["z", "y", "x"])
    assert out["y"].tolist() == [1.0, 2.0, 1.0]
    assert out["yend"].tolist() == [1.0, 2.0, 3.0]
    # sort_end 单独给也生效
    only_end = parallel_layout(links, sort_end=["z", "y", "x"])
    assert only_end["yend"].tolist() == [1.0, 2.0, 3.0]
    assert only_end["y"].tolist() == pytest.approx([3.0, 1.0, 3.0])


def test_parallel_order_length_mismatch(links):
    with pytest.raises(InvalidArgument, match="sort_start"):
        parallel_layout(links, sort_start=["a"])
    with pytest.raises(InvalidArgument, match="sort_end"):
        parallel_layout(links, sort_end=["x", "y"])


def test_parallel_selectors_and_text_coercion():
    df = pd.DataFrame({"id": [1, 2, 3], "g": [10, 20, 10], "h": ["p", None, "q"]})
    out = parallel_layout(df, start_var="g", end_var=2)
    assert out["start_label"].tolist() == ["10", "20", "10"]
    assert out["end_filter"].tolist() == [True, False, True]
    assert np.isnan(out["yend"].iloc[1])
    assert np.isfinite(out["x"]).all() and np.isfinite(out["xend"]).all()
    with pytest.raises(InvalidArgument):
        parallel_layout(df, start_var="missing")


def test_parallel_numpy_integer_selector():
    df = pd.DataFrame({"id": [1, 2, 3], "g": ["p", "q", "p"], "h": ["x", "y", "z"]})
    out = parallel_layout(df, start_var=np.int64(1), end_var=np.int32(2))
    assert out["start_label"].tolist() == ["p", "q", "p"]
    assert out["end_label"].tolist() == ["x", "y", "z"]


def test_parallel_integer_labels_stored_as_float():
    # 含缺失值的整数列在 pandas 里是 float64
    df = pd.DataFrame({"g": [1, 2, None], "h": ["x", "y", "z"]})
    out = parallel_layout(df, sort_start=[2, 1])
    assert out["start_label"].tolist()[:2] == ["1", "2"]
    assert out["y"].tolist()[:2] == [1.0, 2.0]
    assert np.isnan(out["y"].iloc[2])


def test_parallel_accepts_cor_tbl():
    tbl = cor_tbl(_sym5())
    out = parallel_layout(tbl)
    assert out["start_label"].tolist() == tbl.data["row_name"].tolist()
    assert out["end_label"].tolist() == tbl.data["col_name"].tolist()


def test_parallel_is_idempotent(links):
    out = parallel_layout(links, horiz=True)
    again = parallel_layout(out[links.columns], horiz=True)
    assert_frame_equal(out, again)


# ---------------- combination ----------------
def test_combination_single_spec_upper():
    data = pd.DataFrame({"spec": ["s1", "s1"], "env": ["a", "b"]})
    out = combination_layout(data, type="upper", show_diag=False, col_names=list("abcde"))
    assert out["x"].tolist() == pytest.approx([1.4, 1.4])
    assert out["y"].tolist() == pytest.approx([2.0, 2.0])
    # 行名倒序 e, d, c, b, a -> xend = 5..1 - 1，yend = 1..5
    assert out["xend"].tolist() == [0.0, 1.0]
    assert out["yend"].tolist() == [5.0, 4.0]
    assert out["start_filter"].tolist() == [True, False]


def test_combination_grid_shift():
    data = pd.DataFrame({"spec": ["s1"], "env": ["a"]})
    up_diag = combination_layout(data, type="upper", show_diag=True, col_names=list("abcde"))
    low = combination_layout(data, type="lower", show_diag=False, col_names=list("abcde"))
    low_diag = combination_layout(data, type="lower", show_diag=True, col_names=list("abcde"))
    assert up_diag["xend"].tolist() == [-1.0]
    assert low["xend"].tolist() == [2.0]
    assert low_diag["xend"].tolist() == [3.0]
    assert low["x"].tolist() == pytest.approx([0.5 + 0.82 * 5])
    assert low["y"].tolist() == pytest.approx([0.5 + 0.70 * 5])


def test_combination_row_names_take_precedence():
    data = pd.DataFrame({"spec": ["s1"], "env": ["a"]})
    out = combination_layout(data, type="upper", row_names=list("abc"), col_names=list("xyz"))
    assert out["yend"].tolist() == [3.0]


def test_combination_two_specs():
    data = pd.DataFrame({"spec": ["s1", "s2"], "env": ["a", "b"]})
    out = combination_layout(data, type="upper", col_names=list("abcde"))
    assert out["x"].tolist() == pytest.approx([0.4, 1.5])
    assert out["y"].tolist() == pytest.approx([2.8, 1.5])

    lower = combination_layout(data, type="lower", col_names=list("abcde"))
    assert lower["x"].tolist() == pytest.approx([4.5, 5.6])
    assert lower["y"].tolist() == pytest.approx([4.5, 3.2])


def test_combination_integer_labels_with_missing():
    data = pd.DataFrame({"spec": ["s1"] * 3, "env": [1, 2, None]})
    out = combination_layout(data, type="upper", col_names=[1, 2, 3])
    assert out["end_label"].tolist()[:2] == ["1", "2"]
    # 行名倒序 3, 2, 1 -> xend = 2, 1, 0，yend = 1, 2, 3
    assert out["xend"].tolist()[:2] == [0.0, 1.0]
    assert out["yend"].tolist()[:2] == [3.0, 2.0]
    assert np.isnan(out["xend"].iloc[2]) and np.isnan(out["yend"].iloc[2])
    assert out["end_filter"].tolist() == [True, True, False]


def test_combination_many_specs():
    data = pd.DataFrame({"spec": ["s1", "s2", "s3"], "env": ["a", "b", "c"]})
    names = [f"v{i}" for i in range(10)]
    upper = combination_layout(data, type="upper", col_names=names)
    lower = combination_layout(data, type="lower", col_names=names)
    assert upper["x"].tolist() == pytest.approx([-2.0, 0.75, 3.5])
    assert upper["y"].tolist() == pytest.approx([9.5, 5.5, 1.5])
    assert lower["x"].tolist() == pytest.approx([8.0, 10.75, 13.5])
    assert lower["y"].tolist() == pytest.approx([9.5, 6.5, 3.5])
    # env 不在网格里：坐标缺失
    assert np.isnan(upper["xend"]).all()


def test_combination_sort_start():
    data = pd.DataFrame({"spec": ["s1", "s2"], "env": ["a", "b"]})
    out = combination_layout(data, type="upper", col_names=list("abcde"), sort_start=["s2", "s1"])
    assert out["x"].tolist() == pytest.approx([1.5, 0.4])
    with pytest.raises(InvalidArgument):
        combination_layout(data, type="upper", col_names=list("abcde"), sort_start=["s1"])


def test_combination_from_cor_tbl_matches_explicit():
    data = MantelTbl(pd.DataFrame({
        "spec": ["s1", "s1", "s2"], "env": ["a", "c", "e"], "r": [0.1, 0.2, 0.3], "p_value": [0.1, 0.01, 0.5],
    }))
    tbl = cor_tbl(_sym5())
    via_tbl = combination_layout(data, cor_tbl=tbl)
    explicit = combination_layout(data, type="upper", show_diag=False, col_names=list("abcde"))
    assert_frame_equal(via_tbl, explicit)
    assert list(via_tbl.columns[len(GEOM):]) == ["spec", "env", "r", "p_value"]


def test_combination_cor_tbl_errors():
    data = pd.DataFrame({"spec": ["s1"], "env": ["a"]})
    general = cor_tbl(pd.DataFrame(np.ones((2, 3)), index=["a", "b"], columns=["x", "y", "z"]))
    with pytest.raises(InvalidState):
        combination_layout(data, cor_tbl=general)
    with pytest.raises(UnsupportedInputType):
        combination_layout(data, cor_tbl=_sym5())
    with pytest.raises(UnsupportedInputType):
        combination_layout(data, cor_tbl=cor_tbl(_sym5(), type="full"))
    with pytest.raises(InvalidArgument):
        combination_layout(data, type="lower", cor_tbl=cor_tbl(_sym5()))


def test_combination_argument_errors():
    data = pd.DataFrame({"spec": ["s1"], "env": ["a"]})
    with pytest.raises(UnsupportedInputType):
        combination_layout(data, type="full", col_names=list("abc"))
    with pytest.raises(InvalidArgument):
        combination_layout(data, col_names=list("abc"))
    with pytest.raises(InvalidArgument):
        combination_layout(data, type="upper")


def test_combination_is_idempotent():
    data = pd.DataFrame({"spec": ["s1", "s2", "s1"], "env": ["a", "b", "c"]})
    out = combination_layout(data, type="lower", show_diag=True, col_names=list("abcd"))
    again = combination_layout(out[data.columns], type="lower", show_diag=True, col_names=list("abcd"))
    assert_frame_equal(out, again)
