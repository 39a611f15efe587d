"""Startup, juror, conflict and assignment records used by the matching engine."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Literal, Mapping, Optional, Tuple, Union

log = logging.getLogger(__name__)

LIST_SPLIT = re.compile(r"[|;,]")

STATUS_ASSIGNED = "assigned"
STATUS_CANCELLED = "cancelled"


def trim(s) -> str:
    return "" if s is None else str(s).strip()


def split_list(value) -> Tuple[str, ...]:
    """Split a ``a | b, c`` style cell (or pass through a list) into clean tokens."""

    if value is None:
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        parts = [str(v) for v in value if v is not None]
    else:
        parts = LIST_SPLIT.split(str(value))
    return tuple(p.strip() for p in parts if p and p.strip())


def to_capacity(value, *, owner: str = "") -> Optional[int]:
    text = trim(str(value)) if value is not None else ""
    if not text:
        return None
    try:
        capacity = int(float(text))
    except ValueError:
        log.warning("%s: ignoring non-numeric evaluation limit %r", owner or "juror", value)
        return None
    return capacity if capacity > 0 else None


@dataclass(frozen=True)
class Startup:
    id: str
    name: str
    verticals: Tuple[str, ...] = ()
    stage: str = ""
    regions: Tuple[str, ...] = ()
    description: str = ""
    kind: Literal["startup"] = field(default="startup", init=False)

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "Startup":
        return cls(
            id=trim(row.get("id")),
            name=trim(row.get("name")),
            verticals=split_list(row.get("verticals")),
            stage=trim(row.get("stage")),
            regions=split_list(row.get("regions")),
            description=trim(row.get("description")),
        )


@dataclass(frozen=True)
class Juror:
    id: str
    name: str
    target_verticals: Tuple[str, ...] = ()
    preferred_stages: Tuple[str, ...] = ()
    preferred_regions: Tuple[str, ...] = ()
    evaluation_limit: Optional[int] = None
    thesis_keywords: Tuple[str, ...] = ()
    fund_focus: str = ""
    kind: Literal["juror"] = field(default="juror", init=False)

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "Juror":
        juror_id = trim(row.get("id"))
        return cls(
            id=juror_id,
            name=trim(row.get("name")),
            target_verticals=split_list(row.get("target_verticals")),
            preferred_stages=split_list(row.get("preferred_stages")),
            preferred_regions=split_list(row.get("preferred_regions")),
            evaluation_limit=to_capacity(row.get("evaluation_limit"), owner=juror_id),
            thesis_keywords=split_list(row.get("thesis_keywords")),
            fund_focus=trim(row.get("fund_focus")),
        )


Participant = Union[Startup, Juror]


def describe(participant: Participant) -> str:
    """Short operator-facing label for either kind of participant."""

    if participant.kind == "startup":
        stage = f", {participant.stage}" if participant.stage else ""
        return f"{participant.name} (startup{stage})"
    if participant.kind == "juror":
        focus = f", {participant.fund_focus}" if participant.fund_focus else ""
        return f"{participant.name} (juror{focus})"
    raise ValueError(f"Unknown participant kind: {participant.kind}")


@dataclass(frozen=True)
class Conflict:
    juror_id: str
    startup_id: str
    conflict_type: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "Conflict":
        return cls(
            juror_id=trim(row.get("juror_id")),
            startup_id=trim(row.get("startup_id")),
            conflict_type=trim(row.get("conflict_type")),
        )


@dataclass(frozen=True)
class ExistingAssignment:
    """A persisted juror/startup pairing for one round."""

    juror_id: str
    startup_id: str
    round_name: str
    status: str = STATUS_ASSIGNED
    id: str = ""
    created_at: str = ""
    meeting_scheduled_date: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.startup_id, self.juror_id)

    @property
    def is_active(self) -> bool:
        return self.status.strip().lower() != STATUS_CANCELLED

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "ExistingAssignment":
        return cls(
            juror_id=trim(row.get("juror_id")),
            startup_id=trim(row.get("startup_id")),
            round_name=trim(row.get("round_name")),
            status=trim(row.get("status")).lower() or STATUS_ASSIGNED,
            id=trim(row.get("id")),
            created_at=trim(row.get("created_at")),
            meeting_scheduled_date=trim(row.get("meeting_scheduled_date")),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "juror_id": self.juror_id,
            "startup_id": self.startup_id,
            "round_name": self.round_name,
            "status": self.status,
            "created_at": self.created_at,
            "meeting_scheduled_date": self.meeting_scheduled_date,
        }


ASSIGNMENT_COLUMNS = (
    "id",
    "juror_id",
    "startup_id",
    "round_name",
    "status",
    "created_at",
    "meeting_scheduled_date",
)
