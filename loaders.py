"""Read startups, jurors, conflicts and assignments from CSV/JSON exports.

Every input may be a local path or an ``https://`` URL (e.g. a spreadsheet CSV
export).  URLs are downloaded once into a cache directory and re-used unless
``force`` is set.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import ssl
import sys
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, TypeVar, Union

import certifi

from participants import ASSIGNMENT_COLUMNS, Conflict, ExistingAssignment, Juror, Startup

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

DEFAULT_CACHE_DIR = Path(".cache")
USER_AGENT = "Mozilla/5.0 (JurorMatcher/1.0)"

Source = Union[str, Path]
T = TypeVar("T")


def configure_logging(level: str = "INFO") -> None:
    """Route library log records to stderr for command-line runs."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
    )


# ---------------------------- I/O ------------------------------------

def is_url(source: Source) -> bool:
    return urllib.parse.urlparse(str(source)).scheme in ("http", "https")


def cache_path_for(url: str, cache_dir: Path) -> Path:
    parsed = urllib.parse.urlparse(url)
    stem = (Path(parsed.path).name or "download").replace(".", "_")
    gid = urllib.parse.parse_qs(parsed.query).get("gid", [""])[0]
    suffix = f"_{gid}" if gid else ""
    return cache_dir / f"{stem}{suffix}.csv"


def download_if_needed(url: str, dest: Path, force: bool = False) -> Path:
    if dest.exists() and not force:
        return dest
    ctx = ssl.create_default_context(cafile=certifi.where())
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    with urllib.request.urlopen(req, context=ctx) as resp:
        data = resp.read()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    log.info("Downloaded %s -> %s (%d bytes)", url, dest, len(data))
    return dest


def resolve_source(source: Source, cache_dir: Path = DEFAULT_CACHE_DIR, force: bool = False) -> Path:
    if is_url(source):
        url = str(source)
        return download_if_needed(url, cache_path_for(url, cache_dir), force=force)
    return Path(source)


def read_rows(path: Path) -> List[Dict[str, object]]:
    """Return dict rows from a CSV file or a JSON array of objects."""

    if path.suffix.lower() == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a JSON array of records")
        return [dict(row) for row in data if isinstance(row, dict)]
    text = path.read_bytes().decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text))
    rows: List[Dict[str, object]] = []
    for row in reader:
        cleaned = {(k or "").strip().lower(): v for k, v in row.items() if k}
        if any((str(v or "")).strip() for v in cleaned.values()):
            rows.append(cleaned)
    return rows


def _parse(path: Path, factory: Callable[[Dict[str, object]], T], label: str) -> List[T]:
    out: List[T] = []
    for row in read_rows(path):
        record = factory(row)
        if not record.id:
            log.warning("%s: skipping %s row without an id", path, label)
            continue
        out.append(record)
    return out


def load_startups(source: Source, **kw) -> List[Startup]:
    return _parse(resolve_source(source, **kw), Startup.from_row, "startup")


def load_jurors(source: Source, **kw) -> List[Juror]:
    return _parse(resolve_source(source, **kw), Juror.from_row, "juror")


def load_conflicts(source: Source, **kw) -> List[Conflict]:
    return [c for c in (Conflict.from_row(r) for r in read_rows(resolve_source(source, **kw))) if c.juror_id and c.startup_id]


def load_assignments(source: Source, **kw) -> List[ExistingAssignment]:
    rows = read_rows(resolve_source(source, **kw))
    return [a for a in (ExistingAssignment.from_row(r) for r in rows) if a.juror_id and a.startup_id]


def write_assignments(path: Path, assignments: List[ExistingAssignment]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=ASSIGNMENT_COLUMNS)
        writer.writeheader()
        for assignment in assignments:
            writer.writerow(assignment.to_row())


@dataclass
class MatchInputs:
    startups: List[Startup]
    jurors: List[Juror]
    conflicts: List[Conflict] = field(default_factory=list)
    existing: List[ExistingAssignment] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _optional(loader: Callable[..., List[T]], source: Optional[Source], label: str, warnings: List[str], **kw) -> List[T]:
    if source is None:
        return []
    try:
        return loader(source, **kw)
    except (OSError, urllib.error.URLError, ValueError) as exc:
        message = f"Could not load {label} from {source} ({exc}); suggestions may not reflect existing {label}"
        log.warning("%s", message)
        warnings.append(message)
        return []


def load_inputs(
    startups: Source,
    jurors: Source,
    conflicts: Optional[Source] = None,
    assignments: Optional[Source] = None,
    *,
    cache_dir: Path = DEFAULT_CACHE_DIR,
    force: bool = False,
) -> MatchInputs:
    """Load everything a matching run needs.

    Startups and jurors are required and errors propagate.  Conflicts and
    assignments degrade to empty lists with a warning.
    """

    kw = {"cache_dir": cache_dir, "force": force}
    for required in (startups, jurors):
        if not is_url(required) and not Path(required).exists():
            raise FileNotFoundError(f"Input file not found: {required}")
    warnings: List[str] = []
    result = MatchInputs(
        startups=load_startups(startups, **kw),
        jurors=load_jurors(jurors, **kw),
    )
    result.conflicts = _optional(load_conflicts, conflicts, "conflicts", warnings, **kw)
    result.existing = _optional(load_assignments, assignments, "assignments", warnings, **kw)
    result.warnings = warnings
    log.info(
        "Loaded %d startups, %d jurors, %d conflicts, %d assignments",
        len(result.startups),
        len(result.jurors),
        len(result.conflicts),
        len(result.existing),
    )
    return result
