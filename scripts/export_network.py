#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
相关矩阵 -> 相关网络，导出 CSV（可选 GEXF）：
- 输入：corr.csv（方阵，首列为行名），可选 pval.csv（同形状）
- 按 r / p 阈值过滤边
- 导出：nodes.csv / edges.csv / [graph.gexf] / [layout.csv（平行布局）]

示例：
  python scripts/export_network.py --corr data/corr.csv --pval data/pval.csv \
    --r-thres 0.5 --p-thres 0.01 --outdir out --gexf --parallel
"""
from __future__ import annotations
import os, math, argparse, sys, numpy as np, pandas as pd, networkx as nx
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))
from corviz import as_cor_network, cor_tbl, parallel_layout  # type: ignore


def sanitize_for_gexf(G: nx.Graph) -> None:
    """GEXF 只接受基础类型；numpy 标量转 Python，NaN 属性删掉。"""
    def fix(v):
        if isinstance(v, np.generic):
            v = v.item()
        if isinstance(v, float) and math.isnan(v):
            return None
        return v
    for _, data in list(G.nodes(data=True)) + [(None, d) for _, _, d in G.edges(data=True)]:
        for k in list(data.keys()):
            vv = fix(data[k])
            if vv is None: del data[k]
            else: data[k] = vv


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--corr", required=True, help="相关系数矩阵 CSV（首列为行名）")
    ap.add_argument("--pval", default=None, help="p 值矩阵 CSV（与 corr 同形状）")
    ap.add_argument("--r-thres", type=float, default=0.6)
    ap.add_argument("--p-thres", type=float, default=0.05)
    ap.add_argument("--no-absolute", action="store_true", help="按 r > r_thres 而不是 |r| > r_thres 过滤")
    ap.add_argument("--keep-isolated", action="store_true", help="保留没有边的节点（simplify=False）")
    ap.add_argument("--weight", default="r", help="改名为 weight 的边属性列")
    ap.add_argument("--outdir", default="out")
    ap.add_argument("--gexf", action="store_true", help="同时导出 graph.gexf")
    ap.add_argument("--parallel", action="store_true", help="同时导出边的平行布局 layout.csv")
    args = ap.parse_args()

    os.makedirs(args.outdir, exist_ok=True)
    corr = pd.read_csv(args.corr, index_col=0)
    pval = pd.read_csv(args.pval, index_col=0) if args.pval else None
    print(f"[read] corr shape={corr.shape} pval={'yes' if pval is not None else 'no'}")

    net = as_cor_network(
        cor_tbl(corr, p_value=pval),
        simplify=not args.keep_isolated,
        weight=args.weight,
        r_thres=args.r_thres,
        r_absolute=not args.no_absolute,
        p_thres=args.p_thres,
    )
    s = net.summary()
    print(f"[network] nodes={s['nodes']} edges={s['edges']} avg_degree={s['avg_degree']:.2f}")

    nodes_csv = os.path.join(args.outdir, "nodes.csv")
    edges_csv = os.path.join(args.outdir, "edges.csv")
    net.nodes.to_csv(nodes_csv, index=False)
    net.edges.to_csv(edges_csv, index=False)
    print(f"[ok] write -> {nodes_csv}")
    print(f"[ok] write -> {edges_csv}")

    if args.gexf:
        G = net.to_networkx()
        sanitize_for_gexf(G)
        gexf_path = os.path.join(args.outdir, "graph.gexf")
        nx.write_gexf(G, gexf_path)
        print(f"[ok] write -> {gexf_path}")

    if args.parallel:
        layout_csv = os.path.join(args.outdir, "layout.csv")
        parallel_layout(net.edges).to_csv(layout_csv, index=False)
        print(f"[ok] write -> {layout_csv}")


if __name__ == "__main__":
    main()
