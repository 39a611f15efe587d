#!/usr/bin/env python3
"""Turn an approved assignment set into a minimal set of storage changes.

Confirming a round must not wipe out assignments that already progressed
(a meeting was scheduled, an evaluation is in review).  ``reconcile`` compares
the operator's desired ``(startup_id, juror_id)`` pairs with the persisted
records and sorts every key into exactly one group:

  keep    persisted and still desired
  insert  desired but not persisted, or persisted only as a cancelled record
  cancel  persisted, no longer desired, and already progressed in a round
          that tracks meetings (soft removal)
  delete  persisted and no longer desired otherwise (hard removal)

``apply_plan`` pushes the groups to a store in the order insert, cancel,
delete and only commits when all of them went through.
"""
from __future__ import annotations

import argparse
import csv
import logging
import os
import sys
import tempfile
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from loaders import configure_logging, load_assignments, read_rows
from match_config import DEFAULT_CONFIG, load_config_file
from participants import (
    ASSIGNMENT_COLUMNS,
    STATUS_ASSIGNED,
    STATUS_CANCELLED,
    ExistingAssignment,
    trim,
)

log = logging.getLogger(__name__)

Key = Tuple[str, str]

GROUP_ORDER = ("insert", "cancel", "delete")
PLAN_COLUMNS = ("action", "startup_id", "juror_id", "id", "status", "meeting_scheduled_date")
PLAN_ACTIONS = {"duplicates": "duplicate"}


class ReconciliationError(RuntimeError):
    """A storage group failed; earlier groups may already be applied."""

    def __init__(
        self,
        group: str,
        failed: int,
        succeeded: Dict[str, int],
        pending: Dict[str, int],
    ) -> None:
        self.group = group
        self.failed = failed
        self.succeeded = dict(succeeded)
        self.pending = dict(pending)
        done = ", ".join(f"{g}={n}" for g, n in self.succeeded.items()) or "none"
        todo = ", ".join(f"{g}={n}" for g, n in self.pending.items()) or "none"
        super().__init__(
            f"Failed to {group} {failed} assignment(s); applied: {done}; not attempted: {todo}"
        )


@dataclass
class ReconcilePlan:
    round_name: str
    keep: List[ExistingAssignment] = field(default_factory=list)
    insert: List[Key] = field(default_factory=list)
    cancel: List[ExistingAssignment] = field(default_factory=list)
    delete: List[ExistingAssignment] = field(default_factory=list)
    duplicates: List[ExistingAssignment] = field(default_factory=list)
    # Cancelled records whose key is desired again; the key is re-inserted.
    superseded: List[ExistingAssignment] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "keep": len(self.keep),
            "insert": len(self.insert),
            "cancel": len(self.cancel),
            "delete": len(self.delete),
            "duplicates": len(self.duplicates),
            "superseded": len(self.superseded),
        }

    def keys(self, group: str) -> Set[Key]:
        items = getattr(self, group)
        return {item if isinstance(item, tuple) else item.key for item in items}

    @property
    def is_noop(self) -> bool:
        return not (self.insert or self.cancel or self.delete)


def has_progressed(record: ExistingAssignment, statuses: Iterable[str]) -> bool:
    if trim(record.meeting_scheduled_date):
        return True
    return record.status.strip().lower() in {s.lower() for s in statuses}


def dedupe_existing(
    existing: Iterable[ExistingAssignment],
) -> Tuple[Dict[Key, ExistingAssignment], List[ExistingAssignment]]:
    """Keep one record per key: active before cancelled, then most recently created.

    Records without ``created_at`` count as oldest; equal timestamps go to the
    record that appears later in the input.
    """

    best: Dict[Key, Tuple[Tuple[bool, str, int], ExistingAssignment]] = {}
    dropped: List[ExistingAssignment] = []
    for pos, record in enumerate(existing):
        rank = (record.is_active, trim(record.created_at), pos)
        current = best.get(record.key)
        if current is None:
            best[record.key] = (rank, record)
        elif rank >= current[0]:
            dropped.append(current[1])
            best[record.key] = (rank, record)
        else:
            dropped.append(record)
    return {key: entry[1] for key, entry in best.items()}, dropped


def reconcile(
    desired: Iterable[Key],
    existing: Iterable[ExistingAssignment],
    round_name: str,
    *,
    progression_rounds: Optional[Iterable[str]] = None,
    progression_statuses: Optional[Iterable[str]] = None,
) -> ReconcilePlan:
    if progression_rounds is None:
        progression_rounds = DEFAULT_CONFIG["PROGRESSION_ROUNDS"]
    if progression_statuses is None:
        progression_statuses = DEFAULT_CONFIG["PROGRESSION_STATUSES"]
    rounds = {r.lower() for r in progression_rounds}
    statuses = tuple(progression_statuses)
    tracks_progression = (round_name or "").strip().lower() in rounds

    by_key, dropped = dedupe_existing(existing)
    if dropped:
        log.warning("Removed %d duplicate assignment record(s) before reconciling", len(dropped))

    wanted: Set[Key] = {(trim(s), trim(j)) for s, j in desired}
    plan = ReconcilePlan(round_name=round_name, duplicates=sorted(dropped, key=lambda r: (r.key, r.id)))
    inserts: Set[Key] = wanted - set(by_key)
    for key in sorted(by_key):
        record = by_key[key]
        if key in wanted and not record.is_active:
            plan.superseded.append(record)
            inserts.add(key)
        elif key in wanted:
            plan.keep.append(record)
        elif tracks_progression and has_progressed(record, statuses):
            plan.cancel.append(record)
        else:
            plan.delete.append(record)
    plan.insert = sorted(inserts)
    if plan.superseded:
        log.info("Re-inserting %d pair(s) whose stored record is cancelled", len(plan.superseded))
    log.info("Reconcile %s: %s", round_name, plan.counts())
    return plan


# -------------------- applying a plan --------------------

class AssignmentStore(Protocol):
    def insert_assignments(self, round_name: str, keys: Sequence[Key]) -> None: ...

    def cancel_assignments(self, round_name: str, records: Sequence[ExistingAssignment]) -> None: ...

    def delete_assignments(self, round_name: str, records: Sequence[ExistingAssignment]) -> None: ...

    def commit(self) -> None: ...


@dataclass
class ApplyReport:
    round_name: str
    kept: int = 0
    inserted: int = 0
    cancelled: int = 0
    deleted: int = 0


def apply_plan(plan: ReconcilePlan, store: AssignmentStore) -> ApplyReport:
    """Apply ``plan`` once; raise :class:`ReconciliationError` on the first failing group."""

    actions = {
        "insert": (store.insert_assignments, plan.insert),
        "cancel": (store.cancel_assignments, plan.cancel),
        "delete": (store.delete_assignments, plan.delete),
    }
    succeeded: Dict[str, int] = {}
    for pos, group in enumerate(GROUP_ORDER):
        action, items = actions[group]
        if not items:
            succeeded[group] = 0
            continue
        try:
            action(plan.round_name, list(items))
        except Exception as exc:
            pending = {g: len(actions[g][1]) for g in GROUP_ORDER[pos + 1:]}
            log.error("Reconciliation of %s stopped at %s: %s", plan.round_name, group, exc)
            raise ReconciliationError(group, len(items), succeeded, pending) from exc
        succeeded[group] = len(items)
    store.commit()
    return ApplyReport(
        round_name=plan.round_name,
        kept=len(plan.keep),
        inserted=succeeded["insert"],
        cancelled=succeeded["cancel"],
        deleted=succeeded["delete"],
    )


def next_assignment_id(ids: Iterable[str]) -> str:
    taken = set(ids)
    max_n = 0
    for aid in taken:
        if aid.startswith("A") and aid[1:].isdigit():
            max_n = max(max_n, int(aid[1:]))
    n = max_n + 1
    while f"A{n}" in taken:
        n += 1
    return f"A{n}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class CsvAssignmentStore:
    """Assignments kept in one CSV file; changes are staged until ``commit``."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.records: List[ExistingAssignment] = load_assignments(path) if path.exists() else []
        self.dirty = False

    def _matches(self, round_name: str, records: Sequence[ExistingAssignment]):
        targets = {(r.id, r.key) for r in records}
        wanted = round_name.strip().lower()
        return lambda rec: rec.round_name.strip().lower() == wanted and (rec.id, rec.key) in targets

    def insert_assignments(self, round_name: str, keys: Sequence[Key]) -> None:
        stamp = _now()
        for startup_id, juror_id in keys:
            new_id = next_assignment_id(r.id for r in self.records)
            self.records.append(
                ExistingAssignment(
                    juror_id=juror_id,
                    startup_id=startup_id,
                    round_name=round_name,
                    status=STATUS_ASSIGNED,
                    id=new_id,
                    created_at=stamp,
                )
            )
        self.dirty = True

    def cancel_assignments(self, round_name: str, records: Sequence[ExistingAssignment]) -> None:
        hit = self._matches(round_name, records)
        self.records = [replace(r, status=STATUS_CANCELLED) if hit(r) else r for r in self.records]
        self.dirty = True

    def delete_assignments(self, round_name: str, records: Sequence[ExistingAssignment]) -> None:
        hit = self._matches(round_name, records)
        self.records = [r for r in self.records if not hit(r)]
        self.dirty = True

    def commit(self) -> None:
        if not self.dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", newline="", dir=self.path.parent, delete=False
        ) as tmp:
            writer = csv.DictWriter(tmp, fieldnames=ASSIGNMENT_COLUMNS)
            writer.writeheader()
            for record in self.records:
                writer.writerow(record.to_row())
            tmp_path = Path(tmp.name)
        os.replace(tmp_path, self.path)
        self.dirty = False

    def for_round(self, round_name: str) -> List[ExistingAssignment]:
        wanted = round_name.strip().lower()
        return [r for r in self.records if r.round_name.strip().lower() == wanted]


def load_desired(path: Path) -> List[Key]:
    keys: List[Key] = []
    for row in read_rows(path):
        startup_id = trim(row.get("startup_id"))
        juror_id = trim(row.get("juror_id"))
        if startup_id and juror_id:
            keys.append((startup_id, juror_id))
    return keys


def write_plan_csv(path: Path, plan: ReconcilePlan) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=PLAN_COLUMNS)
        writer.writeheader()
        for action in ("keep", "cancel", "delete", "duplicates", "superseded"):
            for record in getattr(plan, action):
                writer.writerow(
                    {
                        "action": PLAN_ACTIONS.get(action, action),
                        "startup_id": record.startup_id,
                        "juror_id": record.juror_id,
                        "id": record.id,
                        "status": record.status,
                        "meeting_scheduled_date": record.meeting_scheduled_date,
                    }
                )
        for startup_id, juror_id in plan.insert:
            writer.writerow({"action": "insert", "startup_id": startup_id, "juror_id": juror_id})
    return path


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Reconcile approved assignments with the stored set", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--desired", required=True, type=Path, help="CSV with startup_id,juror_id of the approved set")
    ap.add_argument("--assignments", default="assignments.csv", type=Path, help="Stored assignments CSV (updated in place)")
    ap.add_argument("--round", dest="round_name", required=True, help="Round being confirmed")
    ap.add_argument("--config", type=Path, help="Optional JSON file with config overrides")
    ap.add_argument("--plan-out", type=Path, default=None, help="Optional CSV listing every planned action")
    ap.add_argument("--dry-run", action="store_true", help="Only print the plan; do not touch the assignments file")
    ap.add_argument("--log-level", default="WARNING", help="Logging level for diagnostics")
    return ap.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    config = load_config_file(args.config, args.round_name)
    store = CsvAssignmentStore(args.assignments)
    plan = reconcile(
        load_desired(args.desired),
        store.for_round(args.round_name),
        args.round_name,
        progression_rounds=config.progression_rounds,
        progression_statuses=config.progression_statuses,
    )
    counts = plan.counts()
    print(" ".join(f"{k}={v}" for k, v in counts.items()))
    if args.plan_out:
        print(f"Wrote: {write_plan_csv(args.plan_out, plan).resolve()}")
    if args.dry_run or plan.is_noop:
        return 0
    try:
        report = apply_plan(plan, store)
    except ReconciliationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    print(
        f"Round {report.round_name} confirmed: kept {report.kept}, inserted {report.inserted}, "
        f"cancelled {report.cancelled}, deleted {report.deleted}"
    )
    print(f"Wrote: {args.assignments.resolve()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
