from __future__ import annotations

from constraints import REASON_ASSIGNED, REASON_CONFLICT, ExclusionIndex, is_excluded
from participants import Conflict
from tests.utils import assignment


def test_conflict_excludes_pair() -> None:
    conflicts = [Conflict("J1", "S1", "former employer")]
    assert is_excluded("J1", "S1", conflicts, []) == (True, REASON_CONFLICT)
    assert is_excluded("J1", "S2", conflicts, []) == (False, "")
    assert is_excluded("J2", "S1", conflicts, []) == (False, "")


def test_conflict_wins_over_existing_assignment() -> None:
    conflicts = [Conflict("J1", "S1")]
    existing = [assignment("J1", "S1")]
    assert is_excluded("J1", "S1", conflicts, existing) == (True, REASON_CONFLICT)


def test_existing_assignment_is_scoped_to_round() -> None:
    existing = [assignment("J1", "S1", "screening")]
    assert is_excluded("J1", "S1", [], existing, "screening") == (True, REASON_ASSIGNED)
    assert is_excluded("J1", "S1", [], existing, "Screening") == (True, REASON_ASSIGNED)
    assert is_excluded("J1", "S1", [], existing, "pitching") == (False, "")
    assert is_excluded("J1", "S1", [], existing) == (True, REASON_ASSIGNED)


def test_cancelled_assignment_does_not_exclude() -> None:
    existing = [assignment("J1", "S1", status="cancelled")]
    assert is_excluded("J1", "S1", [], existing, "screening") == (False, "")


def test_index_matches_linear_check() -> None:
    conflicts = [Conflict("J1", "S1"), Conflict("J2", "S3")]
    existing = [
        assignment("J1", "S1"),
        assignment("J1", "S2"),
        assignment("J2", "S2", "pitching"),
        assignment("J3", "S3", status="cancelled"),
    ]
    index = ExclusionIndex(conflicts, existing, "screening")
    for juror in ("J1", "J2", "J3"):
        for startup in ("S1", "S2", "S3"):
            assert index.check(juror, startup) == is_excluded(juror, startup, conflicts, existing, "screening")
