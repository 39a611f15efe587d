"""Builders and CSV writers shared by the matching tests."""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

from participants import ASSIGNMENT_COLUMNS, ExistingAssignment, Juror, Startup

STARTUP_COLUMNS: Sequence[str] = ("id", "name", "verticals", "stage", "regions", "description")
JUROR_COLUMNS: Sequence[str] = (
    "id",
    "name",
    "target_verticals",
    "preferred_stages",
    "preferred_regions",
    "evaluation_limit",
    "thesis_keywords",
    "fund_focus",
)
CONFLICT_COLUMNS: Sequence[str] = ("juror_id", "startup_id", "conflict_type")


def make_startup(
    sid: str,
    *,
    name: Optional[str] = None,
    verticals: Iterable[str] = ("Fintech",),
    stage: str = "Seed",
    regions: Iterable[str] = ("Europe",),
    description: str = "",
) -> Startup:
    return Startup(
        id=sid,
        name=name or f"Startup {sid}",
        verticals=tuple(verticals),
        stage=stage,
        regions=tuple(regions),
        description=description,
    )


def make_juror(
    jid: str,
    *,
    name: Optional[str] = None,
    verticals: Iterable[str] = ("Fintech",),
    stages: Iterable[str] = ("Seed",),
    regions: Iterable[str] = ("Europe",),
    limit: Optional[int] = None,
    keywords: Iterable[str] = (),
) -> Juror:
    return Juror(
        id=jid,
        name=name or f"Juror {jid}",
        target_verticals=tuple(verticals),
        preferred_stages=tuple(stages),
        preferred_regions=tuple(regions),
        evaluation_limit=limit,
        thesis_keywords=tuple(keywords),
    )


def assignment(
    jid: str,
    sid: str,
    round_name: str = "screening",
    *,
    status: str = "assigned",
    aid: str = "",
    created_at: str = "",
    meeting: str = "",
) -> ExistingAssignment:
    return ExistingAssignment(
        juror_id=jid,
        startup_id=sid,
        round_name=round_name,
        status=status,
        id=aid,
        created_at=created_at,
        meeting_scheduled_date=meeting,
    )


def _write(path: Path, columns: Sequence[str], rows: Iterable[Dict[str, object]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=columns)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


def write_startups(path: Path, startups: Iterable[Startup]) -> Path:
    rows = (
        {
            "id": s.id,
            "name": s.name,
            "verticals": " | ".join(s.verticals),
            "stage": s.stage,
            "regions": " | ".join(s.regions),
            "description": s.description,
        }
        for s in startups
    )
    return _write(path, STARTUP_COLUMNS, rows)


def write_jurors(path: Path, jurors: Iterable[Juror]) -> Path:
    rows = (
        {
            "id": j.id,
            "name": j.name,
            "target_verticals": " | ".join(j.target_verticals),
            "preferred_stages": " | ".join(j.preferred_stages),
            "preferred_regions": " | ".join(j.preferred_regions),
            "evaluation_limit": "" if j.evaluation_limit is None else str(j.evaluation_limit),
            "thesis_keywords": " | ".join(j.thesis_keywords),
            "fund_focus": j.fund_focus,
        }
        for j in jurors
    )
    return _write(path, JUROR_COLUMNS, rows)


def write_conflicts(path: Path, pairs: Iterable[Sequence[str]]) -> Path:
    rows = ({"juror_id": j, "startup_id": s, "conflict_type": "prior relationship"} for j, s in pairs)
    return _write(path, CONFLICT_COLUMNS, rows)


def write_assignment_rows(path: Path, records: Iterable[ExistingAssignment]) -> Path:
    return _write(path, ASSIGNMENT_COLUMNS, (r.to_row() for r in records))


def write_pairs(path: Path, pairs: Iterable[Sequence[str]]) -> Path:
    return _write(path, ("startup_id", "juror_id"), ({"startup_id": s, "juror_id": j} for s, j in pairs))
