"""Coverage-first assignment on top of the per-juror suggestions.

Builds a flow network ``source -> juror -> startup -> sink`` where

* source -> juror has the juror's remaining capacity,
* juror -> startup exists only for eligible pairs, capacity 1, cost ``-score``,
* startup -> sink has the number of jurors the startup still needs.

``networkx.max_flow_min_cost`` then fills as many startup slots as possible
and, among those fillings, prefers the highest total score.  The result is a
proposal for the operator, shaped like the reconciler's ``desired`` input.
"""
from __future__ import annotations

import csv
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import networkx as nx

from load_tracker import LoadTracker
from match_config import MatchConfig, build_config
from participants import Conflict, ExistingAssignment, Juror, Startup
from suggest_matches import score_all
from taxonomy import DEFAULT_TAXONOMY, Taxonomy

log = logging.getLogger(__name__)

SOURCE = "__source__"
SINK = "__sink__"
# Scores carry two decimals; flow costs must be integers.
COST_SCALE = 100

DESIRED_COLUMNS = ("startup_id", "juror_id", "total_score", "origin")


def _juror_node(juror_id: str) -> str:
    return f"J:{juror_id}"


def _startup_node(startup_id: str) -> str:
    return f"S:{startup_id}"


@dataclass
class GlobalAssignment:
    pairs: List[Tuple[str, str, float]] = field(default_factory=list)
    retained: List[Tuple[str, str]] = field(default_factory=list)
    shortfall: Dict[str, int] = field(default_factory=dict)

    def desired_keys(self) -> List[Tuple[str, str]]:
        return sorted(set(self.retained) | {(s, j) for s, j, _ in self.pairs})


def build_flow_network(
    startups: Sequence[Startup],
    jurors: Sequence[Juror],
    edges: Iterable[Tuple[str, str, float]],
    juror_capacity: Dict[str, int],
    startup_need: Dict[str, int],
) -> nx.DiGraph:
    graph = nx.DiGraph()
    graph.add_node(SOURCE)
    graph.add_node(SINK)
    for juror in sorted(jurors, key=lambda j: j.id):
        graph.add_edge(SOURCE, _juror_node(juror.id), capacity=juror_capacity.get(juror.id, 0), weight=0)
    for startup in sorted(startups, key=lambda s: s.id):
        graph.add_edge(_startup_node(startup.id), SINK, capacity=startup_need.get(startup.id, 0), weight=0)
    for juror_id, startup_id, total in sorted(edges, key=lambda e: (e[0], e[1])):
        graph.add_edge(
            _juror_node(juror_id),
            _startup_node(startup_id),
            capacity=1,
            weight=-int(round(total * COST_SCALE)),
        )
    return graph


def assign_globally(
    startups: Sequence[Startup],
    jurors: Sequence[Juror],
    round_name: Optional[str],
    *,
    conflicts: Iterable[Conflict] = (),
    existing: Iterable[ExistingAssignment] = (),
    config: Optional[MatchConfig] = None,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> GlobalAssignment:
    config = config or build_config(round_name=round_name)
    existing = list(existing)
    startups = list(startups)
    jurors = list(jurors)
    wanted = (round_name or "").strip().lower()
    in_round = [
        a for a in existing if a.is_active and (not wanted or a.round_name.strip().lower() == wanted)
    ]
    tracker = LoadTracker.from_assignments(existing, round_name, (j.id for j in jurors))
    covered = Counter(a.startup_id for a in in_round)

    rankings = score_all(
        startups,
        jurors,
        round_name,
        conflicts=conflicts,
        existing=existing,
        config=config,
        taxonomy=taxonomy,
    )
    edges = [
        (ranking.juror.id, slot.startup.id, slot.score.total_score)
        for ranking in rankings
        for slot in ranking.ranked
    ]
    scores = {(s, j): total for j, s, total in edges}
    juror_capacity = {j.id: tracker.remaining(j, config.default_capacity) for j in jurors}
    startup_need = {
        s.id: max(0, config.target_jurors_per_startup - covered.get(s.id, 0)) for s in startups
    }

    graph = build_flow_network(startups, jurors, edges, juror_capacity, startup_need)
    flow = nx.max_flow_min_cost(graph, SOURCE, SINK) if edges else {}

    result = GlobalAssignment(retained=sorted({a.key for a in in_round}))
    filled: Counter = Counter()
    for juror in jurors:
        for target, units in flow.get(_juror_node(juror.id), {}).items():
            if units <= 0 or not target.startswith("S:"):
                continue
            startup_id = target[2:]
            result.pairs.append((startup_id, juror.id, scores[(startup_id, juror.id)]))
            filled[startup_id] += 1
    result.pairs.sort(key=lambda p: (p[0], p[1]))
    for startup in sorted(startups, key=lambda s: s.id):
        missing = startup_need[startup.id] - filled[startup.id]
        if missing > 0:
            result.shortfall[startup.id] = missing
    if result.shortfall:
        log.warning(
            "%d startup(s) could not reach %d jurors",
            len(result.shortfall),
            config.target_jurors_per_startup,
        )
    return result


def write_desired_csv(path: Path, assignment: GlobalAssignment) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=DESIRED_COLUMNS)
        writer.writeheader()
        for startup_id, juror_id in assignment.retained:
            writer.writerow({"startup_id": startup_id, "juror_id": juror_id, "total_score": "", "origin": "existing"})
        for startup_id, juror_id, total in assignment.pairs:
            writer.writerow(
                {"startup_id": startup_id, "juror_id": juror_id, "total_score": f"{total:.2f}", "origin": "new"}
            )
    return path
