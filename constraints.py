"""Hard exclusions between jurors and startups.

Only two rules block a pair outright, checked in this order:

1. a declared conflict of interest for the exact pair;
2. an active assignment for the exact pair in the current round.

Capacity never blocks a pair; it is handled as a score penalty instead.
"""
from __future__ import annotations

from typing import Iterable, Optional, Set, Tuple

from participants import Conflict, ExistingAssignment

REASON_CONFLICT = "Conflict of interest"
REASON_ASSIGNED = "Already assigned"


def _same_round(assignment: ExistingAssignment, round_name: Optional[str]) -> bool:
    if round_name is None:
        return True
    return assignment.round_name.strip().lower() == round_name.strip().lower()


def is_excluded(
    juror_id: str,
    startup_id: str,
    conflicts: Iterable[Conflict],
    existing_assignments: Iterable[ExistingAssignment],
    round_name: Optional[str] = None,
) -> Tuple[bool, str]:
    for conflict in conflicts:
        if conflict.juror_id == juror_id and conflict.startup_id == startup_id:
            return True, REASON_CONFLICT
    for assignment in existing_assignments:
        if (
            assignment.juror_id == juror_id
            and assignment.startup_id == startup_id
            and assignment.is_active
            and _same_round(assignment, round_name)
        ):
            return True, REASON_ASSIGNED
    return False, ""


class ExclusionIndex:
    """Set-based lookups for the same rules as :func:`is_excluded`."""

    def __init__(
        self,
        conflicts: Iterable[Conflict] = (),
        existing_assignments: Iterable[ExistingAssignment] = (),
        round_name: Optional[str] = None,
    ) -> None:
        self.round_name = round_name
        self.conflicts: Set[Tuple[str, str]] = {(c.juror_id, c.startup_id) for c in conflicts}
        self.assigned: Set[Tuple[str, str]] = {
            (a.juror_id, a.startup_id)
            for a in existing_assignments
            if a.is_active and _same_round(a, round_name)
        }

    def check(self, juror_id: str, startup_id: str) -> Tuple[bool, str]:
        pair = (juror_id, startup_id)
        if pair in self.conflicts:
            return True, REASON_CONFLICT
        if pair in self.assigned:
            return True, REASON_ASSIGNED
        return False, ""
