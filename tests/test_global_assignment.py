from __future__ import annotations

import csv
from pathlib import Path

from global_assignment import assign_globally, write_desired_csv
from match_config import build_config
from participants import Conflict
from tests.utils import assignment, make_juror, make_startup


def _jurors(n: int, **kw):
    return [make_juror(f"J{i}", **kw) for i in range(1, n + 1)]


def test_every_startup_reaches_target_when_capacity_allows() -> None:
    startups = [make_startup(f"S{i}") for i in range(1, 4)]
    jurors = _jurors(4, limit=3)
    result = assign_globally(startups, jurors, "screening")

    per_startup = {}
    per_juror = {}
    for startup_id, juror_id, _ in result.pairs:
        per_startup[startup_id] = per_startup.get(startup_id, 0) + 1
        per_juror[juror_id] = per_juror.get(juror_id, 0) + 1
    assert per_startup == {"S1": 3, "S2": 3, "S3": 3}
    assert all(count <= 3 for count in per_juror.values())
    assert result.shortfall == {}
    assert len(set((s, j) for s, j, _ in result.pairs)) == len(result.pairs)


def test_conflicts_and_existing_assignments_respected() -> None:
    startups = [make_startup("S1")]
    jurors = _jurors(4)
    conflicts = [Conflict("J1", "S1")]
    existing = [assignment("J2", "S1", "screening")]
    result = assign_globally(startups, jurors, "screening", conflicts=conflicts, existing=existing)

    new_jurors = sorted(j for _, j, _ in result.pairs)
    assert new_jurors == ["J3", "J4"]
    assert result.retained == [("S1", "J2")]
    assert result.desired_keys() == [("S1", "J2"), ("S1", "J3"), ("S1", "J4")]


def test_shortfall_reported_when_pool_too_small() -> None:
    startups = [make_startup("S1"), make_startup("S2")]
    jurors = _jurors(2, limit=1)
    result = assign_globally(startups, jurors, "screening")

    assert len(result.pairs) == 2
    assert sum(result.shortfall.values()) == 4


def test_prefers_higher_scores_once_coverage_is_fixed() -> None:
    startups = [make_startup("S1", verticals=["Fintech"])]
    jurors = [
        make_juror("J1", verticals=["Climate"]),
        make_juror("J2", verticals=["Fintech"]),
        make_juror("J3", verticals=["Fintech"]),
    ]
    config = build_config({"TARGET_JURORS_PER_STARTUP": 2})
    result = assign_globally(startups, jurors, "screening", config=config)
    assert sorted(j for _, j, _ in result.pairs) == ["J2", "J3"]


def test_empty_pool() -> None:
    result = assign_globally([make_startup("S1")], [], "screening")
    assert result.pairs == []
    assert result.shortfall == {"S1": 3}


def test_desired_csv_lists_existing_and_new(tmp_path: Path) -> None:
    startups = [make_startup("S1")]
    jurors = _jurors(3)
    result = assign_globally(startups, jurors, "screening", existing=[assignment("J1", "S1")])
    path = write_desired_csv(tmp_path / "desired.csv", result)
    with path.open(encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [(r["startup_id"], r["juror_id"], r["origin"]) for r in rows] == [
        ("S1", "J1", "existing"),
        ("S1", "J2", "new"),
        ("S1", "J3", "new"),
    ]
