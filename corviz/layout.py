# corviz/layout.py
"""
这里的 layout 不是网络图布局，只是把原始数据整理成方便画连线的坐标表：
每行加上 x, y, xend, yend, start_label, end_label, start_filter, end_filter，
后面接原始列。
"""
from __future__ import annotations
import logging
from typing import Any, Optional, Sequence, Union
import numpy as np, pandas as pd

from .cortbl import CorTbl, MantelTbl
from .errors import InvalidArgument, InvalidState, UnsupportedInputType

logger = logging.getLogger(__name__)

Selector = Union[str, int, None]

# spec 点相对矩阵的位置，按 n 缩放：
#   m == 1 / 2：直接给出各点的 x、y 系数
#   m >= 3：线段两端的系数，中间等距取 m 个点
SPEC_POINT_OFFSETS = {
    "upper": {
        1: ((0.18,), (0.30,)),
        2: ((-0.02, 0.20), (0.46, 0.20)),
        3: ((-0.25, 0.30), (0.90, 0.10)),
    },
    "lower": {
        1: ((0.82,), (0.70,)),
        2: ((0.80, 1.02), (0.80, 0.54)),
        3: ((0.75, 1.30), (0.90, 0.30)),
    },
}


def _as_frame(data: Any) -> pd.DataFrame:
    if isinstance(data, (CorTbl, MantelTbl)):
        data = data.data
    elif not isinstance(data, pd.DataFrame):
        data = pd.DataFrame(data)
    return data.reset_index(drop=True)


def _pick(df: pd.DataFrame, var: Selector, default_pos: int) -> pd.Series:
    """按列名或列号取列；None 时取第 default_pos 列。"""
    if var is None:
        if df.shape[1] <= default_pos:
            raise InvalidArgument(f"data needs at least {default_pos + 1} columns, got {df.shape[1]}")
        return df.iloc[:, default_pos]
    if var in df.columns:
        return df[var]
    if pd.api.types.is_integer(var) and -df.shape[1] <= var < df.shape[1]:
        return df.iloc[:, var]
    raise InvalidArgument(f"column {var!r} not found in data")


def _label_text(v) -> str:
    # 含缺失值的整数列会被存成 float：1.0 -> "1"
    if isinstance(v, (float, np.floating)) and float(v).is_integer():
        return str(int(v))
    return str(v)


def _as_text(s: pd.Series) -> pd.Series:
    """转成字符串，缺失值保持缺失。"""
    out = s.astype(object)
    mask = out.notna()
    out[mask] = out[mask].map(_label_text)
    return out


def _label_order(uniq: Sequence, sort: Optional[Sequence], which: str) -> list:
    if sort is None:
        return list(uniq)
    sort = [_label_text(v) for v in sort]
    if len(sort) != len(uniq):
        raise InvalidArgument(f"Length of 'sort_{which}' and unique elements of '{which}' don't match.")
    return sort


def _fill(value: Optional[float], default: float, size: int) -> np.ndarray:
    return np.full(size, default if value is None else value, dtype=float)


def _bind(df: pd.DataFrame, x, y, xend, yend, start: pd.Series, end: pd.Series) -> pd.DataFrame:
    pos = pd.DataFrame({
        "x": x,
        "y": y,
        "xend": xend,
        "yend": yend,
        "start_label": start.to_numpy(),
        "end_label": end.to_numpy(),
        "start_filter": (~start.duplicated() & start.notna()).to_numpy(),
        "end_filter": (~end.duplicated() & end.notna()).to_numpy(),
    })
    return pd.concat([pos, df], axis=1)


def parallel_layout(data: Any,
                    start_var: Selector = None,
                    end_var: Selector = None,
                    horiz: bool = False,
                    sort_start: Optional[Sequence] = None,
                    sort_end: Optional[Sequence] = None,
                    start_x: Optional[float] = None,
                    start_y: Optional[float] = None,
                    end_x: Optional[float] = None,
                    end_y: Optional[float] = None) -> pd.DataFrame:
    """
    两条平行轴：start 标签一条、end 标签一条。
      - 轨道数 n = max(start 去重数, end 去重数)
      - 未指定顺序：按首次出现顺序，位置在 [n, 1] 上等距
      - 指定 sort_start / sort_end：位置为 len..1，长度必须等于去重数
      - horiz=False 时位置落在 y / yend，x / xend 固定（默认 0 / 1）；horiz=True 反之
    """
    df = _as_frame(data)
    start = _as_text(_pick(df, start_var, 0))
    end = _as_text(_pick(df, end_var, 1))

    uniq_start = pd.unique(start.dropna())
    uniq_end = pd.unique(end.dropna())
    n = max(len(uniq_start), len(uniq_end))
    order_start = _label_order(uniq_start, sort_start, "start")
    order_end = _label_order(uniq_end, sort_end, "end")

    if sort_start is None:
        start_pos = dict(zip(order_start, np.linspace(n, 1, len(order_start))))
    else:
        start_pos = dict(zip(order_start, np.arange(len(order_start), 0, -1, dtype=float)))
    if sort_end is None:
        end_pos = dict(zip(order_end, np.linspace(n, 1, len(order_end))))
    else:
        end_pos = dict(zip(order_end, np.arange(len(order_end), 0, -1, dtype=float)))

    s = start.map(start_pos).to_numpy(dtype=float)
    e = end.map(end_pos).to_numpy(dtype=float)
    size = len(df)
    if horiz:
        x, y, xend, yend = s, _fill(start_y, 0.0, size), e, _fill(end_y, 1.0, size)
    else:
        x, y, xend, yend = _fill(start_x, 0.0, size), s, _fill(end_x, 1.0, size), e

    logger.debug("[layout] parallel rows=%d tracks=%d horiz=%s", size, n, horiz)
    return _bind(df, x, y, xend, yend, start, end)


def spec_point_coords(type: str, n: int, m: int):
    """m 个 spec 点的坐标（矩阵外侧，upper 在右上，lower 在右下）。"""
    if m == 0:
        return np.empty(0), np.empty(0)
    xs, ys = SPEC_POINT_OFFSETS[type][min(m, 3)]
    if m >= 3:
        x = np.linspace(0.5 + xs[0] * n, 0.5 + xs[1] * n, m)
        y = np.linspace(0.5 + ys[0] * n, 0.5 + ys[1] * n, m)
        return x, y
    return 0.5 + np.asarray(xs) * n, 0.5 + np.asarray(ys) * n


def grid_anchor_coords(type: str, n: int, show_diag: bool):
    """矩阵一侧的锚点：xend = n..1，yend = 1..n；upper 左移、lower 右移 1（含对角线移 2）。"""
    shift = 2 if show_diag else 1
    if type == "upper":
        shift = -shift
    return np.arange(n, 0, -1, dtype=float) + shift, np.arange(1, n + 1, dtype=float)


def combination_layout(data: Any,
                       type: Optional[str] = None,
                       show_diag: Optional[bool] = None,
                       row_names: Optional[Sequence] = None,
                       col_names: Optional[Sequence] = None,
                       start_var: Selector = None,
                       end_var: Selector = None,
                       cor_tbl: Optional[CorTbl] = None,
                       sort_start: Optional[Sequence] = None) -> pd.DataFrame:
    """
    组合图（如 mantel 检验 + 相关矩阵）：start 标签是矩阵外的 spec 点，
    end 标签连到三角矩阵的行上。
      - 给 cor_tbl 时，type / show_diag / 行名都取自它，且必须是对称表
      - 否则用 type / show_diag（默认 False）/ row_names（缺省用 col_names），行名倒序排
    """
    if cor_tbl is not None:
        if not isinstance(cor_tbl, CorTbl):
            raise UnsupportedInputType(f"cor_tbl must be a CorTbl, got {cor_tbl.__class__.__name__}")
        if not cor_tbl.is_symmetric():
            raise InvalidState("Need a symmetric cor_tbl.")
        if type is not None and type != cor_tbl.type:
            raise InvalidArgument(f"type={type!r} disagrees with cor_tbl type {cor_tbl.type!r}")
        if show_diag is not None and bool(show_diag) != cor_tbl.show_diag:
            raise InvalidArgument(f"show_diag={show_diag!r} disagrees with cor_tbl show_diag {cor_tbl.show_diag!r}")
        type, show_diag = cor_tbl.type, cor_tbl.show_diag
        names = cor_tbl.row_names
    else:
        names = row_names if row_names is not None else col_names
        if names is None:
            raise InvalidArgument("row_names or col_names is required when cor_tbl is not given")
        show_diag = bool(show_diag) if show_diag is not None else False

    if type == "full":
        raise UnsupportedInputType("The 'type' of cor_tbl is not supported.")
    if type not in ("upper", "lower"):
        raise InvalidArgument(f"type must be 'upper' or 'lower', got {type!r}")

    grid = [_label_text(v) for v in reversed(list(names))]
    df = _as_frame(data)
    start = _as_text(_pick(df, start_var, 0))
    end = _as_text(_pick(df, end_var, 1))
    spec_names = _label_order(pd.unique(start.dropna()), sort_start, "start")

    n, m = len(grid), len(spec_names)
    sx, sy = spec_point_coords(type, n, m)
    gx, gy = grid_anchor_coords(type, n, show_diag)

    x = start.map(dict(zip(spec_names, sx))).to_numpy(dtype=float)
    y = start.map(dict(zip(spec_names, sy))).to_numpy(dtype=float)
    xend = end.map(dict(zip(grid, gx))).to_numpy(dtype=float)
    yend = end.map(dict(zip(grid, gy))).to_numpy(dtype=float)

    logger.debug("[layout] combination type=%s show_diag=%s n=%d m=%d rows=%d",
                 type, show_diag, n, m, len(df))
    return _bind(df, x, y, xend, yend, start, end)
