#!/usr/bin/env python3
"""Plot the juror/startup suggestion graph and juror load charts."""
from __future__ import annotations

import argparse
import statistics
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib import colors as mpl_colors
from matplotlib.lines import Line2D
import networkx as nx

from loaders import read_rows
from match_config import load_config_file

LAYOUT_CHOICES = ("bipartite", "spring")
DEFAULT_SEED = 42
JUROR_COLOR = "#4c72b0"
STARTUP_COLOR = "#dd8452"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Visualize juror/startup suggestions")
    ap.add_argument("--suggestions", default=Path("matches") / "suggestions.csv", type=Path)
    ap.add_argument("--loads", default=Path("matches") / "juror_loads.csv", type=Path)
    ap.add_argument("--out-dir", default=Path("match_graphs"), type=Path, help="Directory for generated images")
    ap.add_argument("--layouts", nargs="+", default=list(LAYOUT_CHOICES), choices=LAYOUT_CHOICES)
    ap.add_argument("--config", type=Path, help="Optional JSON config (DETERMINISTIC_SEED drives the spring layout)")
    ap.add_argument("--round", dest="round_name", default=None)
    ap.add_argument("--dpi", default=150, type=int)
    return ap.parse_args(argv)


def _to_float(value, default: float = 0.0) -> float:
    try:
        return float(str(value).replace(",", "."))
    except (TypeError, ValueError):
        return default


def _to_int(value, default: int = 0) -> int:
    try:
        return int(float(str(value)))
    except (TypeError, ValueError):
        return default


def build_suggestion_graph(rows: Iterable[Mapping[str, object]]) -> nx.Graph:
    """Bipartite graph: juror and startup nodes, one weighted edge per suggestion.

    ``rows`` use the ``suggestions.csv`` columns (see ``suggest_matches.suggestion_rows``).
    """

    graph = nx.Graph()
    for row in rows:
        juror = f"J:{row['juror_id']}"
        startup = f"S:{row['startup_id']}"
        if juror not in graph:
            graph.add_node(juror, bipartite=0, kind="juror", label=str(row.get("juror_name") or row["juror_id"]))
        if startup not in graph:
            graph.add_node(startup, bipartite=1, kind="startup", label=str(row.get("startup_name") or row["startup_id"]))
        graph.add_edge(
            juror,
            startup,
            weight=_to_float(row.get("total_score")),
            rank=_to_int(row.get("rank"), 1),
            reason=str(row.get("reason") or ""),
        )
    return graph


def layout_graph(graph: nx.Graph, layout: str, seed: Optional[int] = None) -> Dict[str, Tuple[float, float]]:
    if len(graph.nodes) == 1:
        return {next(iter(graph.nodes)): (0.0, 0.0)}
    if layout == "bipartite":
        jurors = sorted(n for n, kind in graph.nodes(data="kind") if kind == "juror")
        return nx.bipartite_layout(graph, jurors)
    return nx.spring_layout(graph, seed=DEFAULT_SEED if seed is None else seed)


def draw_suggestion_graph(
    graph: nx.Graph,
    out_path: Path,
    *,
    layout: str = "bipartite",
    seed: Optional[int] = None,
    dpi: int = 150,
) -> Path:
    if not graph.nodes:
        raise RuntimeError("Graph has no nodes")
    positions = layout_graph(graph, layout, seed)
    fig, ax = plt.subplots(figsize=(13, 9))
    node_colors = [JUROR_COLOR if kind == "juror" else STARTUP_COLOR for _, kind in graph.nodes(data="kind")]
    nx.draw_networkx_nodes(graph, positions, node_color=node_colors, node_size=750, alpha=0.92, ax=ax, linewidths=1.2, edgecolors="#2f2f2f")
    nx.draw_networkx_labels(
        graph,
        positions,
        labels=dict(graph.nodes(data="label")),
        font_size=8,
        ax=ax,
        bbox=dict(boxstyle="round,pad=0.2", facecolor="#ffffff", alpha=0.65, linewidth=0),
    )
    if graph.edges:
        weights = [w for _, _, w in graph.edges(data="weight")]
        norm = mpl_colors.Normalize(vmin=min(weights), vmax=max(max(weights), min(weights) + 1e-6))
        cmap = plt.get_cmap("viridis")
        nx.draw_networkx_edges(
            graph,
            positions,
            width=[0.8 + 2.2 * norm(w) for w in weights],
            edge_color=[cmap(norm(w)) for w in weights],
            alpha=0.8,
            ax=ax,
        )
        sm = plt.cm.ScalarMappable(norm=norm, cmap=cmap)
        sm.set_array([])
        cbar = fig.colorbar(sm, ax=ax, fraction=0.046, pad=0.04)
        cbar.set_label("Match score")
    handles = [
        Line2D([0], [0], marker="o", color="w", markerfacecolor=JUROR_COLOR, markersize=10, label="Juror"),
        Line2D([0], [0], marker="o", color="w", markerfacecolor=STARTUP_COLOR, markersize=10, label="Startup"),
    ]
    ax.legend(handles=handles, loc="upper right", fontsize=8)
    ax.set_title(f"Juror suggestions ({layout} layout)")
    ax.set_axis_off()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return out_path


def plot_juror_loads(rows: Iterable[Mapping[str, object]], out_path: Path, *, dpi: int = 150) -> Optional[Path]:
    """Bar chart of current load against capacity, one bar pair per juror."""

    data = [
        (str(r.get("juror_name") or r["juror_id"]), _to_int(r.get("current_load")), _to_int(r.get("capacity_limit")))
        for r in rows
    ]
    if not data:
        return None
    names = [d[0] for d in data]
    loads = [d[1] for d in data]
    capacities = [d[2] for d in data]
    xs = range(len(names))
    fig, ax = plt.subplots(figsize=(max(8, len(names) * 0.6), 5))
    ax.bar([x - 0.2 for x in xs], loads, width=0.4, color="#55a868", label="Current load")
    ax.bar([x + 0.2 for x in xs], capacities, width=0.4, color="#c4c4c4", label="Capacity")
    over = [x for x, (load, cap) in enumerate(zip(loads, capacities)) if load > cap]
    for x in over:
        ax.annotate("over", (x - 0.2, loads[x]), ha="center", va="bottom", fontsize=7, color="#cb181d")
    ax.set_xticks(list(xs))
    ax.set_xticklabels(names, rotation=30, ha="right")
    ax.set_ylabel("Assignments")
    ax.set_title("Juror load vs capacity")
    ax.legend(loc="upper right", fontsize=8)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return out_path


def plot_score_hist(rows: Iterable[Mapping[str, object]], out_path: Path, *, dpi: int = 150) -> Optional[Path]:
    scores = [_to_float(r.get("total_score")) for r in rows]
    if not scores:
        return None
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.hist(scores, bins=20, color="#6baed6", edgecolor="#1f1f1f", alpha=0.85)
    ax.set_xlabel("Suggested match score")
    ax.set_ylabel("Suggestions")
    ax.set_title("Suggestion score distribution")
    ax.axvline(statistics.median(scores), color="#cb181d", linestyle="--", linewidth=1, label="median")
    ax.legend(loc="upper right", fontsize=8)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return out_path


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    config = load_config_file(args.config, args.round_name)
    rows: List[Dict[str, object]] = read_rows(args.suggestions)
    graph = build_suggestion_graph(rows)
    if graph.nodes:
        for layout in args.layouts:
            path = draw_suggestion_graph(
                graph,
                args.out_dir / f"suggestions_{layout}.png",
                layout=layout,
                seed=config.deterministic_seed,
                dpi=args.dpi,
            )
            print(f"Wrote graph to {path}")
    hist = plot_score_hist(rows, args.out_dir / "score_distribution.png", dpi=args.dpi)
    if hist:
        print(f"Wrote analysis chart to {hist}")
    if args.loads.exists():
        chart = plot_juror_loads(read_rows(args.loads), args.out_dir / "juror_loads.png", dpi=args.dpi)
        if chart:
            print(f"Wrote analysis chart to {chart}")


if __name__ == "__main__":
    main()
