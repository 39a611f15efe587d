from __future__ import annotations

import csv
from pathlib import Path

import pytest

from constraints import REASON_ASSIGNED, REASON_CONFLICT
from match_config import build_config
from participants import Conflict
from suggest_matches import (
    EXCLUSION_COLUMNS,
    SUGGESTION_COLUMNS,
    generate,
    score_all,
    write_exclusions_csv,
    write_loads_csv,
    write_suggestions_csv,
)
from tests.utils import assignment, make_juror, make_startup


@pytest.fixture
def pool():
    startups = [
        make_startup("S3", verticals=["Fintech"], stage="Seed", regions=["Europe"]),
        make_startup("S1", verticals=["Fintech"], stage="Seed", regions=["Europe"]),
        make_startup("S2", verticals=["Climate"], stage="Series A", regions=["Asia"]),
        make_startup("S4", verticals=["Fintech", "Climate"], stage="Seed", regions=["Africa"]),
        make_startup("S5", verticals=["Healthcare"], stage="Series B", regions=["North America"]),
    ]
    jurors = [
        make_juror("J2", verticals=["Fintech"], stages=["Seed"], regions=["Europe"], limit=4),
        make_juror("J1", verticals=["Climate"], stages=["Series A"], regions=["Global"]),
        make_juror("J3", verticals=["Healthcare"], stages=["Series B"], regions=["North America"], limit=2),
    ]
    return startups, jurors


def _ids(entry):
    return [slot.startup.id for slot in entry.suggestions]


def test_suggestions_are_ranked_and_truncated(pool) -> None:
    startups, jurors = pool
    result = generate(startups, jurors, "screening")

    assert [s.juror.id for s in result.suggestions] == ["J2", "J1", "J3"]
    j2 = result.suggestions[0]
    # S1 and S3 tie; the lower startup id goes first.
    assert _ids(j2) == ["S1", "S3", "S4"]
    assert j2.capacity_limit == 4
    assert j2.current_load == 0
    for entry in result.suggestions:
        assert len(entry.suggestions) <= 3
        totals = [slot.score.total_score for slot in entry.suggestions]
        assert totals == sorted(totals, reverse=True)


def test_result_unpacks_as_pair(pool) -> None:
    startups, jurors = pool
    suggestions, exclusions = generate(startups, jurors, "screening")
    assert len(suggestions) == 3
    assert exclusions == []


def test_top_k_from_config(pool) -> None:
    startups, jurors = pool
    config = build_config({"TOP_K_PER_JUROR": 1})
    result = generate(startups, jurors, "screening", config=config)
    assert all(len(entry.suggestions) == 1 for entry in result.suggestions)


def test_hard_exclusions_are_logged_and_never_suggested(pool) -> None:
    startups, jurors = pool
    conflicts = [Conflict("J2", "S1", "advisor")]
    existing = [
        assignment("J2", "S3", "screening"),
        assignment("J2", "S4", "pitching"),
        assignment("J1", "S2", "screening", status="cancelled"),
    ]
    result = generate(startups, jurors, "screening", conflicts=conflicts, existing=existing)

    j2 = result.suggestions[0]
    assert "S1" not in _ids(j2)
    assert "S3" not in _ids(j2)
    assert j2.current_load == 1
    assert "S2" in _ids(result.suggestions[1])

    excluded = {(e.juror_id, e.startup_id): e.reason for e in result.exclusions}
    assert excluded == {("J2", "S1"): REASON_CONFLICT, ("J2", "S3"): REASON_ASSIGNED}
    record = next(e for e in result.exclusions if e.startup_id == "S1")
    assert record.startup_name == "Startup S1"
    assert record.juror_name == "Juror J2"


def test_pairs_are_never_both_suggested_and_excluded(pool) -> None:
    startups, jurors = pool
    conflicts = [Conflict("J1", "S2"), Conflict("J3", "S5")]
    existing = [assignment("J2", "S1")]
    result = generate(startups, jurors, "screening", conflicts=conflicts, existing=existing)

    suggested = {(e.juror.id, slot.startup.id) for e in result.suggestions for slot in e.suggestions}
    excluded = {(e.juror_id, e.startup_id) for e in result.exclusions}
    assigned = {(a.juror_id, a.startup_id) for a in existing}
    assert not suggested & excluded
    assert not suggested & assigned


def test_generation_is_deterministic(pool, tmp_path: Path) -> None:
    startups, jurors = pool
    conflicts = [Conflict("J1", "S4")]
    first = generate(startups, jurors, "screening", conflicts=conflicts)
    second = generate(list(reversed(startups)), jurors, "screening", conflicts=conflicts)
    assert first.suggestions == second.suggestions

    a = write_suggestions_csv(tmp_path / "a.csv", first.suggestions)
    b = write_suggestions_csv(tmp_path / "b.csv", generate(startups, jurors, "screening", conflicts=conflicts).suggestions)
    assert a.read_bytes() == b.read_bytes()


def test_worker_pool_matches_serial_run(pool) -> None:
    startups, jurors = pool
    conflicts = [Conflict("J3", "S5")]
    existing = [assignment("J1", "S4")]
    serial = generate(startups, jurors, "screening", conflicts=conflicts, existing=existing)
    parallel = generate(startups, jurors, "screening", conflicts=conflicts, existing=existing, workers=2)
    assert parallel == serial


def test_empty_inputs_give_empty_result() -> None:
    result = generate([], [], "screening")
    assert result.suggestions == []
    assert result.exclusions == []
    only_jurors = generate([], [make_juror("J1")], "screening")
    assert only_jurors.suggestions[0].suggestions == ()


def test_over_capacity_juror_still_receives_suggestions() -> None:
    startups = [make_startup("S1"), make_startup("S2")]
    juror = make_juror("J1", limit=1)
    existing = [assignment("J1", "S9"), assignment("J1", "S8")]
    result = generate(startups, [juror], "screening", existing=existing)
    entry = result.suggestions[0]
    assert entry.current_load == 2
    assert _ids(entry) == ["S1", "S2"]
    assert all(slot.score.components.load_penalty == 0.0 for slot in entry.suggestions)


def test_score_all_keeps_every_eligible_pair(pool) -> None:
    startups, jurors = pool
    rankings = score_all(startups, jurors, "screening", conflicts=[Conflict("J2", "S5")])
    assert [len(r.ranked) for r in rankings] == [4, 5, 5]


def test_csv_outputs(pool, tmp_path: Path) -> None:
    startups, jurors = pool
    result = generate(startups, jurors, "screening", conflicts=[Conflict("J2", "S1")])

    suggestions_path = write_suggestions_csv(tmp_path / "out" / "suggestions.csv", result.suggestions)
    with suggestions_path.open(encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert tuple(rows[0].keys()) == SUGGESTION_COLUMNS
    assert rows[0]["juror_id"] == "J2"
    assert rows[0]["rank"] == "1"
    assert rows[0]["startup_id"] == "S3"
    assert rows[0]["total_score"] == "9.00"

    exclusions_path = write_exclusions_csv(tmp_path / "out" / "why_not_assigned.csv", result.exclusions)
    with exclusions_path.open(encoding="utf-8") as handle:
        excluded = list(csv.DictReader(handle))
    assert tuple(excluded[0].keys()) == EXCLUSION_COLUMNS
    assert excluded[0]["reason"] == REASON_CONFLICT

    loads_path = write_loads_csv(tmp_path / "out" / "juror_loads.csv", result.suggestions)
    with loads_path.open(encoding="utf-8") as handle:
        loads = {row["juror_id"]: row for row in csv.DictReader(handle)}
    assert loads["J3"]["capacity_limit"] == "2"
    assert loads["J1"]["remaining"] == "10"
