"""Spot startups the juror pool cannot cover and records missing key data."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from participants import Juror, Startup
from taxonomy import DEFAULT_TAXONOMY, WILDCARD_REGIONS, Taxonomy

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"


@dataclass(frozen=True)
class DataInconsistency:
    kind: str
    severity: str
    message: str
    items: Tuple[str, ...]


def detect_data_inconsistencies(
    startups: Sequence[Startup],
    jurors: Sequence[Juror],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> List[DataInconsistency]:
    """Compare normalized startup attributes with what the juror pool covers."""

    juror_verticals = {v for j in jurors for v in taxonomy.vertical.normalize_all(j.target_verticals)}
    juror_stages = {s for j in jurors for s in taxonomy.stage.normalize_all(j.preferred_stages)}
    juror_regions = {r for j in jurors for r in taxonomy.region.normalize_all(j.preferred_regions)}
    any_region = bool(juror_regions & WILDCARD_REGIONS)

    no_vertical: List[str] = []
    no_stage: List[str] = []
    no_region: List[str] = []
    missing_verticals: List[str] = []
    for startup in startups:
        verticals = taxonomy.vertical.normalize_all(startup.verticals)
        stage = taxonomy.stage.normalize(startup.stage)
        regions = taxonomy.region.normalize_all(startup.regions)
        if not verticals:
            missing_verticals.append(startup.name)
        elif not juror_verticals.intersection(verticals):
            no_vertical.append(startup.name)
        if stage and stage not in juror_stages:
            no_stage.append(startup.name)
        if regions and not any_region and not juror_regions.intersection(regions):
            no_region.append(startup.name)
    jurors_without_verticals = [
        j.name for j in jurors if not taxonomy.vertical.normalize_all(j.target_verticals)
    ]

    found: List[DataInconsistency] = []
    checks = (
        ("vertical_mismatch", SEVERITY_HIGH, no_vertical, "startup(s) have verticals with no matching juror preferences"),
        ("stage_mismatch", SEVERITY_MEDIUM, no_stage, "startup(s) have stages with no matching juror preferences"),
        ("region_mismatch", SEVERITY_LOW, no_region, "startup(s) have regions with no matching juror preferences"),
        ("missing_data", SEVERITY_HIGH, missing_verticals, "startup(s) have no verticals defined"),
        ("missing_data", SEVERITY_HIGH, jurors_without_verticals, "juror(s) have no target verticals defined"),
    )
    for kind, severity, names, text in checks:
        if names:
            found.append(DataInconsistency(kind, severity, f"{len(names)} {text}", tuple(names)))
    return found
