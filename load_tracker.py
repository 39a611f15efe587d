"""Per-juror assignment counts seeded from persisted assignments."""
from __future__ import annotations

from collections import Counter
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from participants import ExistingAssignment, Juror


class LoadTracker:
    """Read-only view of how many active assignments each juror carries.

    The counts are fixed at construction; suggestions generated afterwards do
    not change them until the operator commits a new assignment set.
    """

    def __init__(self, loads: Mapping[str, int]) -> None:
        self._loads: Mapping[str, int] = MappingProxyType(dict(loads))

    @classmethod
    def from_assignments(
        cls,
        existing: Iterable[ExistingAssignment],
        round_name: Optional[str] = None,
        juror_ids: Iterable[str] = (),
    ) -> "LoadTracker":
        wanted = round_name.strip().lower() if round_name else None
        counts: Counter = Counter({jid: 0 for jid in juror_ids})
        for assignment in existing:
            if not assignment.is_active:
                continue
            if wanted is not None and assignment.round_name.strip().lower() != wanted:
                continue
            counts[assignment.juror_id] += 1
        return cls(counts)

    @property
    def loads(self) -> Mapping[str, int]:
        return self._loads

    def current_load(self, juror_id: str) -> int:
        return int(self._loads.get(juror_id, 0))

    @staticmethod
    def capacity_for(juror: Juror, default_capacity: int) -> int:
        if juror.evaluation_limit is not None and juror.evaluation_limit > 0:
            return juror.evaluation_limit
        return default_capacity

    def remaining(self, juror: Juror, default_capacity: int) -> int:
        return max(0, self.capacity_for(juror, default_capacity) - self.current_load(juror.id))

    def snapshot(self) -> Dict[str, int]:
        return dict(sorted(self._loads.items()))
