#!/usr/bin/env python3
"""Summarize an assignment set per juror and per startup.

Reads a desired/confirmed assignment CSV (``startup_id,juror_id`` plus an
optional ``status``) and emits a per-juror CSV with load against capacity, a
per-startup coverage CSV against the jurors-per-startup target, and a short
plaintext summary.
"""

from __future__ import annotations

import argparse
import csv
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from load_tracker import LoadTracker
from loaders import load_jurors, load_startups, read_rows
from match_config import load_config_file
from participants import STATUS_CANCELLED, Juror, Startup, trim

Pair = Tuple[str, str]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Generate per-juror and per-startup assignment reports", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--assigned", default=Path("matches") / "desired_assignments.csv", type=Path, help="CSV with startup_id,juror_id pairs")
    ap.add_argument("--startups", default="startups.csv", type=Path, help="Startups CSV/JSON")
    ap.add_argument("--jurors", default="jurors.csv", type=Path, help="Jurors CSV/JSON")
    ap.add_argument("--round", dest="round_name", default=None, help="Round whose config applies")
    ap.add_argument("--config", type=Path, help="Optional JSON file with config overrides")
    ap.add_argument("--out", default=Path("reports") / "juror_report.csv", type=Path, help="Where to write the per-juror CSV report")
    ap.add_argument("--coverage", default=Path("reports") / "startup_coverage.csv", type=Path, help="Where to write the per-startup coverage CSV")
    ap.add_argument("--summary", default=Path("reports") / "assignment_report.txt", type=Path, help="Optional plaintext summary (set to '-' to skip)")
    return ap.parse_args(argv)


def load_pairs(path: Path) -> List[Pair]:
    pairs: List[Pair] = []
    seen = set()
    for row in read_rows(path):
        if trim(row.get("status")).lower() == STATUS_CANCELLED:
            continue
        pair = (trim(row.get("startup_id")), trim(row.get("juror_id")))
        if all(pair) and pair not in seen:
            seen.add(pair)
            pairs.append(pair)
    return pairs


def coverage_by_startup(
    pairs: Iterable[Pair],
    startups: Sequence[Startup],
    target: int,
) -> Tuple[List[Dict[str, object]], List[str]]:
    jurors_for: Dict[str, List[str]] = defaultdict(list)
    for startup_id, juror_id in pairs:
        jurors_for[startup_id].append(juror_id)

    rows: List[Dict[str, object]] = []
    under: List[str] = []
    for startup in sorted(startups, key=lambda s: s.id):
        assigned = sorted(jurors_for.get(startup.id, []))
        shortfall = max(0, target - len(assigned))
        if shortfall:
            under.append(startup.id)
        rows.append(
            {
                "StartupId": startup.id,
                "Startup": startup.name,
                "Jurors": " | ".join(assigned),
                "Assigned": len(assigned),
                "Target": target,
                "Shortfall": shortfall,
                "FullyAssigned": f"{min(len(assigned), target)}/{target}",
            }
        )
    return rows, under


def build_juror_report(
    pairs: Iterable[Pair],
    jurors: Sequence[Juror],
    default_capacity: int,
) -> List[Dict[str, object]]:
    counts: Dict[str, int] = defaultdict(int)
    startups_for: Dict[str, List[str]] = defaultdict(list)
    for startup_id, juror_id in pairs:
        counts[juror_id] += 1
        startups_for[juror_id].append(startup_id)
    tracker = LoadTracker(counts)

    report: List[Dict[str, object]] = []
    for juror in sorted(jurors, key=lambda j: j.id):
        load = tracker.current_load(juror.id)
        capacity = tracker.capacity_for(juror, default_capacity)
        report.append(
            {
                "JurorId": juror.id,
                "Juror": juror.name,
                "Assigned": load,
                "Capacity": capacity,
                "Remaining": max(0, capacity - load),
                "OverCapacity": "YES" if load > capacity else "NO",
                "Startups": " | ".join(sorted(startups_for.get(juror.id, []))),
            }
        )
    return report


def write_csv(rows: List[Dict[str, object]], path: Path) -> None:
    if not rows:
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = list(rows[0].keys())
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def write_summary(
    juror_rows: List[Dict[str, object]],
    coverage_rows: List[Dict[str, object]],
    under: List[str],
    target: int,
    path: Path,
) -> None:
    lines = [
        f"Jurors: {len(juror_rows)}",
        f"Startups: {len(coverage_rows)}",
        f"Assignments: {sum(int(r['Assigned']) for r in juror_rows)}",
        "",
    ]
    fully = len(coverage_rows) - len(under)
    lines.append(f"Startups fully assigned ({target} jurors): {fully}/{len(coverage_rows)}")
    if under:
        lines.append("Startups below target: " + ", ".join(under))
    over = [str(r["JurorId"]) for r in juror_rows if r["OverCapacity"] == "YES"]
    lines.append(f"Jurors over capacity: {len(over)}")
    if over:
        lines.append("  " + ", ".join(over))
    idle = [str(r["JurorId"]) for r in juror_rows if int(r["Assigned"]) == 0]
    if idle:
        lines.append(f"Jurors without assignments: {', '.join(idle)}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    config = load_config_file(args.config, args.round_name)
    pairs = load_pairs(args.assigned)
    startups = load_startups(args.startups)
    jurors = load_jurors(args.jurors)

    juror_rows = build_juror_report(pairs, jurors, config.default_capacity)
    coverage_rows, under = coverage_by_startup(pairs, startups, config.target_jurors_per_startup)
    write_csv(juror_rows, args.out)
    write_csv(coverage_rows, args.coverage)
    print(f"Wrote: {args.out.resolve()}")
    print(f"Wrote: {args.coverage.resolve()}")
    if str(args.summary) != "-":
        write_summary(juror_rows, coverage_rows, under, config.target_jurors_per_startup, args.summary)
        print(f"Wrote: {args.summary.resolve()}")


if __name__ == "__main__":
    main()
