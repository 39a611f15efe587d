#!/usr/bin/env python3
"""Generate ranked per-juror startup suggestions for one evaluation round.

For each juror every startup is first checked against the hard exclusions
(conflicts of interest, existing assignments in the round).  Excluded pairs are
logged for the operator; the rest are scored and the best ``TOP_K_PER_JUROR``
are kept.  Suggestions are advisory: loads are not updated while generating,
so the same startup can appear in several jurors' shortlists.

Outputs (in ``--out-dir``):
  suggestions.csv         one row per suggested pair, ranked per juror
  why_not_assigned.csv    one row per excluded pair with the reason
  juror_loads.csv         load/capacity snapshot per juror
  desired_assignments.csv only with --global-pass
"""
from __future__ import annotations

import argparse
import csv
import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from constraints import ExclusionIndex
from diagnostics import detect_data_inconsistencies
from load_tracker import LoadTracker
from loaders import configure_logging, load_inputs
from match_config import MatchConfig, build_config, load_config_file, read_overrides
from participants import Conflict, ExistingAssignment, Juror, Startup
from scorer import MatchScore, score
from taxonomy import DEFAULT_TAXONOMY, Taxonomy, build_taxonomy

log = logging.getLogger(__name__)

SUGGESTION_COLUMNS = (
    "juror_id",
    "juror_name",
    "rank",
    "startup_id",
    "startup_name",
    "total_score",
    "vertical",
    "stage",
    "region",
    "thesis",
    "load_penalty",
    "reason",
    "current_load",
    "capacity_limit",
)
EXCLUSION_COLUMNS = ("startup_id", "startup_name", "juror_id", "juror_name", "reason")
LOAD_COLUMNS = ("juror_id", "juror_name", "current_load", "capacity_limit", "remaining")


@dataclass(frozen=True)
class SuggestionSlot:
    startup: Startup
    score: MatchScore


@dataclass(frozen=True)
class SuggestionSet:
    juror: Juror
    suggestions: Tuple[SuggestionSlot, ...]
    current_load: int
    capacity_limit: int


@dataclass(frozen=True)
class ExclusionRecord:
    startup_id: str
    startup_name: str
    juror_id: str
    juror_name: str
    reason: str


class SuggestionResult(NamedTuple):
    suggestions: List[SuggestionSet]
    exclusions: List[ExclusionRecord]


@dataclass
class JurorRanking:
    """Every eligible pair for one juror, best first, before truncation."""

    juror: Juror
    ranked: List[SuggestionSlot] = field(default_factory=list)
    exclusions: List[ExclusionRecord] = field(default_factory=list)
    current_load: int = 0
    capacity_limit: int = 0


def sort_key(slot: SuggestionSlot) -> Tuple[float, str]:
    return (-slot.score.total_score, slot.startup.id)


def rank_juror(
    juror: Juror,
    startups: Sequence[Startup],
    exclusions: ExclusionIndex,
    current_load: int,
    config: MatchConfig,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> JurorRanking:
    ranking = JurorRanking(
        juror=juror,
        current_load=current_load,
        capacity_limit=LoadTracker.capacity_for(juror, config.default_capacity),
    )
    for startup in startups:
        excluded, reason = exclusions.check(juror.id, startup.id)
        if excluded:
            ranking.exclusions.append(
                ExclusionRecord(startup.id, startup.name, juror.id, juror.name, reason)
            )
            continue
        ranking.ranked.append(
            SuggestionSlot(startup, score(juror, startup, current_load, config, taxonomy))
        )
    ranking.ranked.sort(key=sort_key)
    return ranking


def score_all(
    startups: Sequence[Startup],
    jurors: Sequence[Juror],
    round_name: Optional[str],
    *,
    conflicts: Iterable[Conflict] = (),
    existing: Iterable[ExistingAssignment] = (),
    config: Optional[MatchConfig] = None,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    workers: int = 1,
) -> List[JurorRanking]:
    """Rank every eligible startup for every juror (results in juror order)."""

    config = config or build_config(round_name=round_name)
    existing = list(existing)
    jurors = list(jurors)
    index = ExclusionIndex(conflicts, existing, round_name)
    tracker = LoadTracker.from_assignments(existing, round_name, (j.id for j in jurors))
    startups = tuple(startups)

    if workers <= 1 or len(jurors) <= 1:
        return [
            rank_juror(juror, startups, index, tracker.current_load(juror.id), config, taxonomy)
            for juror in jurors
        ]

    results: Dict[int, JurorRanking] = {}
    with ProcessPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(
                rank_juror, juror, startups, index, tracker.current_load(juror.id), config, taxonomy
            ): pos
            for pos, juror in enumerate(jurors)
        }
        for fut in as_completed(futures):
            results[futures[fut]] = fut.result()
    return [results[pos] for pos in range(len(jurors))]


def generate(
    startups: Sequence[Startup],
    jurors: Sequence[Juror],
    round_name: Optional[str],
    *,
    conflicts: Iterable[Conflict] = (),
    existing: Iterable[ExistingAssignment] = (),
    config: Optional[MatchConfig] = None,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    workers: int = 1,
) -> SuggestionResult:
    config = config or build_config(round_name=round_name)
    rankings = score_all(
        startups,
        jurors,
        round_name,
        conflicts=conflicts,
        existing=existing,
        config=config,
        taxonomy=taxonomy,
        workers=workers,
    )
    suggestions: List[SuggestionSet] = []
    exclusions: List[ExclusionRecord] = []
    for ranking in rankings:
        suggestions.append(
            SuggestionSet(
                juror=ranking.juror,
                suggestions=tuple(ranking.ranked[: config.top_k_per_juror]),
                current_load=ranking.current_load,
                capacity_limit=ranking.capacity_limit,
            )
        )
        exclusions.extend(ranking.exclusions)
    log.info(
        "Round %s: %d suggestion(s) across %d juror(s), %d excluded pair(s)",
        round_name or "-",
        sum(len(s.suggestions) for s in suggestions),
        len(suggestions),
        len(exclusions),
    )
    return SuggestionResult(suggestions, exclusions)


# -------------------- CSV outputs --------------------

def suggestion_rows(suggestion_sets: Iterable[SuggestionSet]) -> List[Dict[str, object]]:
    rows: List[Dict[str, object]] = []
    for entry in suggestion_sets:
        for rank, slot in enumerate(entry.suggestions, start=1):
            parts = slot.score.components
            rows.append(
                {
                    "juror_id": entry.juror.id,
                    "juror_name": entry.juror.name,
                    "rank": rank,
                    "startup_id": slot.startup.id,
                    "startup_name": slot.startup.name,
                    "total_score": f"{slot.score.total_score:.2f}",
                    "vertical": f"{parts.vertical:.2f}",
                    "stage": f"{parts.stage:.2f}",
                    "region": f"{parts.region:.2f}",
                    "thesis": f"{parts.thesis:.2f}",
                    "load_penalty": f"{parts.load_penalty:.2f}",
                    "reason": slot.score.reason,
                    "current_load": entry.current_load,
                    "capacity_limit": entry.capacity_limit,
                }
            )
    return rows


def _write_rows(path: Path, columns: Sequence[str], rows: Iterable[Dict[str, object]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=columns)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


def write_suggestions_csv(path: Path, suggestion_sets: Iterable[SuggestionSet]) -> Path:
    return _write_rows(path, SUGGESTION_COLUMNS, suggestion_rows(suggestion_sets))


def write_exclusions_csv(path: Path, exclusions: Iterable[ExclusionRecord]) -> Path:
    rows = (
        {
            "startup_id": e.startup_id,
            "startup_name": e.startup_name,
            "juror_id": e.juror_id,
            "juror_name": e.juror_name,
            "reason": e.reason,
        }
        for e in exclusions
    )
    return _write_rows(path, EXCLUSION_COLUMNS, rows)


def write_loads_csv(path: Path, suggestion_sets: Iterable[SuggestionSet]) -> Path:
    rows = (
        {
            "juror_id": s.juror.id,
            "juror_name": s.juror.name,
            "current_load": s.current_load,
            "capacity_limit": s.capacity_limit,
            "remaining": max(0, s.capacity_limit - s.current_load),
        }
        for s in suggestion_sets
    )
    return _write_rows(path, LOAD_COLUMNS, rows)


# -------------------- CLI --------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Suggest startups for each juror", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--startups", default="startups.csv", help="Startups CSV/JSON (path or https URL)")
    ap.add_argument("--jurors", default="jurors.csv", help="Jurors CSV/JSON (path or https URL)")
    ap.add_argument("--conflicts", default=None, help="Optional conflicts CSV/JSON")
    ap.add_argument("--assignments", default=None, help="Optional existing assignments CSV/JSON")
    ap.add_argument("--round", dest="round_name", default="screening", help="Round name (e.g. screening, pitching)")
    ap.add_argument("--config", type=Path, help="Optional JSON file with config overrides")
    ap.add_argument("--out-dir", default=Path("matches"), type=Path, help="Directory for generated CSV files")
    ap.add_argument("--cache-dir", default=Path(".cache"), type=Path, help="Where downloaded inputs are cached")
    ap.add_argument("--refresh", action="store_true", help="Re-download URL inputs even if cached")
    ap.add_argument("--workers", default=1, type=int, help="Worker processes for scoring")
    ap.add_argument("--global-pass", action="store_true", help="Also solve a coverage-maximising assignment (min-cost flow)")
    ap.add_argument("--log-level", default="WARNING", help="Logging level for diagnostics")
    return ap.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    from global_assignment import assign_globally, write_desired_csv

    args = parse_args(argv)
    configure_logging(args.log_level)
    config = load_config_file(args.config, args.round_name)
    taxonomy = build_taxonomy(read_overrides(args.config).get("TAXONOMY"))
    inputs = load_inputs(
        args.startups,
        args.jurors,
        args.conflicts,
        args.assignments,
        cache_dir=args.cache_dir,
        force=args.refresh,
    )
    for warning in inputs.warnings:
        print(f"WARNING: {warning}")
    for issue in detect_data_inconsistencies(inputs.startups, inputs.jurors, taxonomy):
        print(f"DATA ({issue.severity}): {issue.message}: {', '.join(issue.items)}")

    result = generate(
        inputs.startups,
        inputs.jurors,
        args.round_name,
        conflicts=inputs.conflicts,
        existing=inputs.existing,
        config=config,
        taxonomy=taxonomy,
        workers=args.workers,
    )
    out_dir: Path = args.out_dir
    written = [
        write_suggestions_csv(out_dir / "suggestions.csv", result.suggestions),
        write_exclusions_csv(out_dir / "why_not_assigned.csv", result.exclusions),
        write_loads_csv(out_dir / "juror_loads.csv", result.suggestions),
    ]
    if args.global_pass:
        plan = assign_globally(
            inputs.startups,
            inputs.jurors,
            args.round_name,
            conflicts=inputs.conflicts,
            existing=inputs.existing,
            config=config,
            taxonomy=taxonomy,
        )
        written.append(write_desired_csv(out_dir / "desired_assignments.csv", plan))
        for startup_id, missing in plan.shortfall.items():
            print(f"Startup {startup_id} is {missing} juror(s) short of the target")
    for path in written:
        print(f"Wrote: {path.resolve()}")


if __name__ == "__main__":
    main()
