# corviz/cortbl.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import numpy as np, pandas as pd

from .errors import InvalidArgument

TRI_TYPES = ("full", "upper", "lower")


@dataclass(frozen=True, eq=False)
class CorTbl:
    """
    相关矩阵的“长表”形式，一行一对变量：
      - data: 列 row_name / col_name / r / [p_value] / 其它
      - type: full / upper / lower（对称矩阵只保留一个三角）
      - show_diag: 是否包含对角线
      - row_names / col_names: 矩阵原始行列顺序
      - is_general: 行列是两组不同变量（非对称）
    """
    data: pd.DataFrame
    type: str = "full"
    show_diag: bool = True
    row_names: Tuple = ()
    col_names: Tuple = ()
    is_general: bool = False

    def __post_init__(self):
        if self.type not in TRI_TYPES:
            raise InvalidArgument(f"type must be one of {TRI_TYPES}, got {self.type!r}")
        miss = [c for c in ("row_name", "col_name") if c not in self.data.columns]
        if miss:
            raise InvalidArgument(f"cor_tbl data is missing columns: {miss}")

    def __len__(self) -> int:
        return len(self.data)

    @property
    def columns(self) -> list:
        return list(self.data.columns)

    def has_p_value(self) -> bool:
        return "p_value" in self.data.columns

    def is_symmetric(self) -> bool:
        """行列是同一组变量（可画成三角矩阵）。"""
        return (not self.is_general) and len(self.row_names) > 0 \
            and list(self.row_names) == list(self.col_names)


@dataclass(frozen=True, eq=False)
class MantelTbl:
    """Mantel 检验结果：spec / env / r / p_value。"""
    data: pd.DataFrame

    def __post_init__(self):
        miss = [c for c in ("spec", "env") if c not in self.data.columns]
        if miss:
            raise InvalidArgument(f"mantel table is missing columns: {miss}")

    def __len__(self) -> int:
        return len(self.data)

    def as_cor_tbl(self) -> CorTbl:
        df = self.data.rename(columns={"spec": "row_name", "env": "col_name"})
        return CorTbl(
            df,
            type="full",
            show_diag=True,
            row_names=tuple(pd.unique(df["row_name"].dropna())),
            col_names=tuple(pd.unique(df["col_name"].dropna())),
            is_general=True,
        )


def _matrix_names(m, names: Optional[Sequence], axis: int) -> np.ndarray:
    if names is not None:
        out = np.asarray(list(names), dtype=object)
    elif isinstance(m, pd.DataFrame):
        out = np.asarray(list(m.index if axis == 0 else m.columns), dtype=object)
    else:
        out = np.asarray([f"V{i+1}" for i in range(np.shape(m)[axis])], dtype=object)
    if len(out) != np.shape(m)[axis]:
        raise InvalidArgument(f"got {len(out)} names for a matrix axis of length {np.shape(m)[axis]}")
    return out


def triangle_mask(n_row: int, n_col: int, type: str, show_diag: bool) -> np.ndarray:
    """upper: 列号 > 行号（含对角则 >=）；lower 反之；full 全保留。"""
    ones = np.ones((n_row, n_col), dtype=bool)
    if type == "full":
        return ones
    if type == "upper":
        return np.triu(ones, k=0 if show_diag else 1)
    if type == "lower":
        return np.tril(ones, k=0 if show_diag else -1)
    raise InvalidArgument(f"type must be one of {TRI_TYPES}, got {type!r}")


def cor_tbl(corr,
            p_value=None,
            type: Optional[str] = None,
            show_diag: Optional[bool] = None,
            row_names: Optional[Sequence] = None,
            col_names: Optional[Sequence] = None) -> CorTbl:
    """
    相关矩阵（ndarray / DataFrame）-> CorTbl。
    对称矩阵默认 type='upper', show_diag=False（去掉重复的对）；其余为 full。
    """
    R = np.asarray(corr, dtype=float)
    if R.ndim != 2:
        raise InvalidArgument(f"corr must be a 2-D matrix, got ndim={R.ndim}")
    rn = _matrix_names(corr, row_names, 0)
    cn = _matrix_names(corr, col_names, 1)

    square = R.shape[0] == R.shape[1] and list(rn) == list(cn)
    symmetric = square and np.allclose(R, R.T, equal_nan=True)
    if type is None:
        type = "upper" if symmetric else "full"
    if show_diag is None:
        show_diag = not symmetric
    if type != "full" and not symmetric:
        raise InvalidArgument(f"type={type!r} needs a symmetric matrix with matching row/col names")

    P = None
    if p_value is not None:
        P = np.asarray(p_value, dtype=float)
        if P.shape != R.shape:
            raise InvalidArgument(f"p_value shape {P.shape} does not match corr shape {R.shape}")

    # 按列展开：同一列内行名变化最快
    cols, rows = np.nonzero(triangle_mask(R.shape[0], R.shape[1], type, bool(show_diag)).T)
    df = pd.DataFrame({
        "row_name": rn[rows],
        "col_name": cn[cols],
        "r": R[rows, cols],
    })
    if P is not None:
        df["p_value"] = P[rows, cols]

    return CorTbl(
        df,
        type=type,
        show_diag=bool(show_diag),
        row_names=tuple(rn),
        col_names=tuple(cn),
        is_general=not square,
    )
