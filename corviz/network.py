# corviz/network.py
from __future__ import annotations
import logging, math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
import numpy as np, pandas as pd, networkx as nx

from . import config
from .cortbl import CorTbl, MantelTbl, cor_tbl
from .errors import InvalidArgument, UnsupportedInputType

logger = logging.getLogger(__name__)

# 检验结果里 p 值矩阵可能的字段名（correlate / corr.test / rcorr 风格）
_P_KEYS = ("p_value", "p.value", "p", "P")


class InputKind(Enum):
    COR_TBL = "cor_tbl"
    MANTEL_TBL = "mantel_tbl"
    MATRIX = "matrix"
    PAIRS = "pairs"
    TEST_RESULT = "test_result"
    NETWORKX = "networkx"
    IGRAPH = "igraph"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, eq=False)
class CorNetwork:
    """nodes: name + 节点属性；edges: from / to + 边属性（可含 weight）。"""
    nodes: pd.DataFrame
    edges: pd.DataFrame

    def summary(self) -> dict:
        n = len(self.nodes); m = len(self.edges)
        return {
            "nodes": n,
            "edges": m,
            "avg_degree": 0.0 if n == 0 else (2 * m) / n,
        }

    def to_networkx(self, directed: bool = False) -> nx.Graph:
        return as_networkx(self, directed=directed)

    def to_igraph(self, directed: bool = False):
        return as_igraph(self, directed=directed)


def _get(x: Any, key: str):
    if isinstance(x, Mapping):
        return x.get(key)
    return getattr(x, key, None)


def _is_igraph(x: Any) -> bool:
    try:
        import igraph as ig
    except ImportError:
        return False
    return isinstance(x, ig.Graph)


def _is_numeric_frame(df: pd.DataFrame) -> bool:
    return df.shape[1] > 0 and all(pd.api.types.is_numeric_dtype(t) for t in df.dtypes)


def classify_input(x: Any) -> InputKind:
    # DataFrame 也能 getattr 出 r 列，所以检验结果要放在表格类型之后判断
    if isinstance(x, CorTbl):
        return InputKind.COR_TBL
    if isinstance(x, MantelTbl):
        return InputKind.MANTEL_TBL
    if isinstance(x, nx.Graph):
        return InputKind.NETWORKX
    if _is_igraph(x):
        return InputKind.IGRAPH
    if isinstance(x, np.ndarray):
        return InputKind.MATRIX if x.ndim == 2 else InputKind.UNSUPPORTED
    if isinstance(x, pd.DataFrame):
        if _is_numeric_frame(x):
            return InputKind.MATRIX
        return InputKind.PAIRS if x.shape[1] >= 2 else InputKind.UNSUPPORTED
    if _get(x, "r") is not None:
        return InputKind.TEST_RESULT
    return InputKind.UNSUPPORTED


def _pairs_to_cor_tbl(df: pd.DataFrame) -> CorTbl:
    """前两列当作变量对；有 r 列按对称表处理，否则按 general 表（只按 p 过滤）。"""
    data = df.copy()
    cols = list(data.columns)
    cols[0], cols[1] = "row_name", "col_name"
    # R 导出的表用 p.value
    if "p_value" not in cols and "p.value" in cols:
        cols[cols.index("p.value")] = "p_value"
    data.columns = cols
    return CorTbl(
        data.reset_index(drop=True),
        type="full",
        show_diag=True,
        row_names=tuple(pd.unique(data["row_name"].dropna())),
        col_names=tuple(pd.unique(data["col_name"].dropna())),
        is_general="r" not in data.columns,
    )


def _test_result_to_cor_tbl(x: Any, **kwargs) -> CorTbl:
    r = _get(x, "r")
    p, key = None, None
    for key in _P_KEYS:
        p = _get(x, key)
        if p is not None:
            break
    if p is not None and key == "P":
        # Hmisc::rcorr 的 P 对角线是 NA
        p = np.array(p, dtype=float)
        np.fill_diagonal(p, 0.0)
    return cor_tbl(r, p_value=p, **kwargs)


def to_cor_tbl(x: Any, kind: Optional[InputKind] = None, **kwargs) -> CorTbl:
    """把各类表格/矩阵/检验结果统一成 CorTbl；kwargs 仅对矩阵类输入有效（传给 cor_tbl）。"""
    kind = kind or classify_input(x)
    if kind is InputKind.UNSUPPORTED:
        raise UnsupportedInputType(f"{type(x).__name__} hasn't been realized yet.")
    if kwargs and kind not in (InputKind.MATRIX, InputKind.TEST_RESULT):
        raise InvalidArgument(f"extra arguments {sorted(kwargs)} are not used for {kind.value} input")
    if kind is InputKind.COR_TBL:
        return x
    if kind is InputKind.MANTEL_TBL:
        return x.as_cor_tbl()
    if kind is InputKind.MATRIX:
        return cor_tbl(x, **kwargs)
    if kind is InputKind.PAIRS:
        return _pairs_to_cor_tbl(x)
    if kind is InputKind.TEST_RESULT:
        return _test_result_to_cor_tbl(x, **kwargs)
    # networkx / igraph 图没有对应的相关表
    raise UnsupportedInputType(f"{type(x).__name__} can't be converted to a cor_tbl.")


def _is_finite(v) -> bool:
    return v is not None and math.isfinite(v)


def filter_edges(tbl: CorTbl,
                 r_thres: Optional[float] = config.R_THRES,
                 r_absolute: bool = config.R_ABSOLUTE,
                 p_thres: Optional[float] = config.P_THRES) -> pd.DataFrame:
    """
    阈值过滤（缺失值一律丢弃）：
      - 对称表：|r| > r_thres（或 r > r_thres）且 p_value < p_thres，缺哪个阈值就跳过哪个
      - general 表：只按 p_value 过滤
    """
    x = tbl.data
    use_p = tbl.has_p_value() and _is_finite(p_thres)
    keep = pd.Series(True, index=x.index)
    if not tbl.is_general and _is_finite(r_thres):
        if "r" not in x.columns:
            raise InvalidArgument("r_thres is set but the table has no 'r' column")
        r = x["r"].abs() if r_absolute else x["r"]
        keep &= r > r_thres
    if use_p:
        keep &= x["p_value"] < p_thres
    return x[keep]


def rename_edges(df: pd.DataFrame, from_col: str = "row_name", to_col: str = "col_name") -> pd.DataFrame:
    """两列标签改名为 from / to 并挪到最前，其余列保持顺序。"""
    rest = [c for c in df.columns if c not in (from_col, to_col)]
    out = df[[from_col, to_col] + rest].rename(columns={from_col: "from", to_col: "to"})
    return out.reset_index(drop=True)


def _unique_names(*cols: pd.Series) -> pd.DataFrame:
    s = pd.concat([c.reset_index(drop=True) for c in cols], ignore_index=True).dropna()
    return pd.DataFrame({"name": pd.unique(s)})


def _cor_tbl_to_network(tbl: CorTbl, simplify, weight, r_thres, r_absolute, p_thres) -> CorNetwork:
    edges = rename_edges(filter_edges(tbl, r_thres=r_thres, r_absolute=r_absolute, p_thres=p_thres))
    logger.debug("[network] kept %d/%d edges (general=%s, r_thres=%s, r_absolute=%s, p_thres=%s)",
                 len(edges), len(tbl), tbl.is_general, r_thres, r_absolute, p_thres)

    # 注意：from 取过滤后的边，另一侧取过滤前的 col_name（保留原行为，不要在此基础上扩展）
    if simplify:
        nodes = _unique_names(edges["from"], tbl.data["col_name"])
    else:
        nodes = _unique_names(tbl.data["col_name"], tbl.data["row_name"])

    if weight is not None:
        if weight not in edges.columns:
            raise InvalidArgument(f"don't find {weight} in edges table.")
        edges = edges.rename(columns={weight: "weight"})
    return CorNetwork(nodes=nodes, edges=edges)


def _networkx_to_network(G: nx.Graph) -> CorNetwork:
    rows = [{"name": n, **{k: v for k, v in d.items() if k != "name"}} for n, d in G.nodes(data=True)]
    nodes = pd.DataFrame(rows) if rows else pd.DataFrame({"name": []})
    edges = nx.to_pandas_edgelist(G, source="from", target="to")
    return CorNetwork(nodes=nodes, edges=edges)


def _igraph_to_network(g) -> CorNetwork:
    vs = g.get_vertex_dataframe()   # index = 顶点 id
    es = g.get_edge_dataframe()     # source / target 是顶点 id
    if "name" in vs.columns:
        names = vs["name"].tolist()
        vs = vs[["name"] + [c for c in vs.columns if c != "name"]]
    else:
        names = list(vs.index)
        vs.insert(0, "name", names)
    es = es.rename(columns={"source": "from", "target": "to"})
    es["from"] = [names[int(i)] for i in es["from"]]
    es["to"] = [names[int(i)] for i in es["to"]]
    return CorNetwork(nodes=vs.reset_index(drop=True), edges=es.reset_index(drop=True))


def as_cor_network(x: Any,
                   simplify: bool = True,
                   weight: Optional[str] = None,
                   r_thres: Optional[float] = config.R_THRES,
                   r_absolute: bool = config.R_ABSOLUTE,
                   p_thres: Optional[float] = config.P_THRES,
                   **kwargs) -> CorNetwork:
    """
    各种相关分析结果 -> CorNetwork：
      - CorTbl / MantelTbl / 相关矩阵 / 变量对表格 / 检验结果（r + p）走阈值过滤
      - networkx / igraph 图直接取节点表和边表
    kwargs 传给 cor_tbl()（只对矩阵和检验结果有效）。
    """
    kind = classify_input(x)
    logger.debug("[network] input kind=%s", kind.value)
    if kind is InputKind.NETWORKX:
        return _networkx_to_network(x)
    if kind is InputKind.IGRAPH:
        return _igraph_to_network(x)
    tbl = to_cor_tbl(x, kind, **kwargs)
    return _cor_tbl_to_network(tbl, simplify, weight, r_thres, r_absolute, p_thres)


def as_networkx(net: CorNetwork, directed: bool = False) -> nx.Graph:
    G = nx.DiGraph() if directed else nx.Graph()
    for row in net.nodes.to_dict("records"):
        name = row.pop("name")
        G.add_node(name, **row)
    for row in net.edges.to_dict("records"):
        u, v = row.pop("from"), row.pop("to")
        G.add_edge(u, v, **row)
    return G


def as_igraph(net: CorNetwork, directed: bool = False):
    try:
        import igraph as ig
    except ImportError as e:
        raise RuntimeError("需要安装 igraph： pip install igraph") from e
    return ig.Graph.DataFrame(net.edges, directed=directed, vertices=net.nodes, use_vids=False)
