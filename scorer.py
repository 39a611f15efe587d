"""Explainable juror/startup compatibility scores.

A score is the sum of five components, each scaled to ``weight / 10`` so the
default weights (summing to 100) give a maximum of 10:

* vertical: share of the startup's verticals the juror targets;
* stage: full credit when the startup's stage is one the juror prefers;
* region: share of the startup's regions the juror covers ("Global" and
  "Other" cover everything);
* thesis: share of the juror's thesis keywords found in the startup profile;
* load_penalty: how much of the juror's capacity is still free.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from load_tracker import LoadTracker
from match_config import MatchConfig
from participants import Juror, Startup
from taxonomy import DEFAULT_TAXONOMY, WILDCARD_REGIONS, Taxonomy

NO_MATCH_REASON = "No strong match"
REASON_SEPARATOR = " + "
REASON_LIMIT = 2


@dataclass(frozen=True)
class ScoreComponents:
    vertical: float = 0.0
    stage: float = 0.0
    region: float = 0.0
    thesis: float = 0.0
    load_penalty: float = 0.0

    def total(self) -> float:
        return self.vertical + self.stage + self.region + self.thesis + self.load_penalty


@dataclass(frozen=True)
class MatchScore:
    juror_id: str
    startup_id: str
    total_score: float
    components: ScoreComponents
    reason: str

    @property
    def key(self):
        return (self.startup_id, self.juror_id)


def _ratio(matched: int, total: int) -> float:
    return matched / max(1, total)


def _thesis_text(startup: Startup, verticals: Sequence[str], stage: str, with_description: bool) -> str:
    # Raw stage too, so keywords like "early" still hit "Early Seed".
    raw_stage = (startup.stage or "").strip()
    parts = [startup.name or "", " ".join(verticals), raw_stage]
    if stage and stage != raw_stage:
        parts.append(stage)
    if with_description and startup.description:
        parts.append(startup.description)
    return " ".join(parts).lower()


def build_reason(verticals: Sequence[str], stage: str, regions: Sequence[str]) -> str:
    labels: List[str] = list(verticals[:REASON_LIMIT])
    if stage:
        labels.append(stage)
    labels.extend(regions[:REASON_LIMIT])
    return REASON_SEPARATOR.join(labels) if labels else NO_MATCH_REASON


def score(
    juror: Juror,
    startup: Startup,
    current_load: int,
    config: MatchConfig,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> MatchScore:
    """Score one eligible pair; missing optional fields contribute zero."""

    item_verticals = taxonomy.vertical.normalize_all(startup.verticals)
    item_stage = taxonomy.stage.normalize(startup.stage)
    item_regions = taxonomy.region.normalize_all(startup.regions)
    juror_verticals = set(taxonomy.vertical.normalize_all(juror.target_verticals))
    juror_stages = set(taxonomy.stage.normalize_all(juror.preferred_stages))
    juror_regions = set(taxonomy.region.normalize_all(juror.preferred_regions))

    matched_verticals = [v for v in item_verticals if v in juror_verticals]
    vertical = config.vertical_weight / 10 * _ratio(len(matched_verticals), len(item_verticals))

    stage_matched = bool(item_stage) and item_stage in juror_stages
    stage = config.stage_weight / 10 if stage_matched else 0.0

    if juror_regions & WILDCARD_REGIONS:
        matched_regions = list(item_regions)
    else:
        matched_regions = [r for r in item_regions if r in juror_regions]
    region = config.region_weight / 10 * _ratio(len(matched_regions), len(item_regions))

    thesis = 0.0
    keywords = [str(k).strip().lower() for k in juror.thesis_keywords or () if k and str(k).strip()]
    if keywords:
        text = _thesis_text(startup, item_verticals, item_stage, config.match_description)
        hits = sum(1 for keyword in keywords if keyword in text)
        thesis = config.thesis_weight / 10 * hits / len(keywords)

    capacity = LoadTracker.capacity_for(juror, config.default_capacity)
    load_penalty = config.load_penalty_weight / 10 * (1 - current_load / capacity)
    if config.clamp_load_penalty:
        load_penalty = max(0.0, load_penalty)

    components = ScoreComponents(
        vertical=vertical,
        stage=stage,
        region=region,
        thesis=thesis,
        load_penalty=load_penalty,
    )
    reason = build_reason(matched_verticals, item_stage if stage_matched else "", matched_regions)
    return MatchScore(
        juror_id=juror.id,
        startup_id=startup.id,
        total_score=round(components.total(), 2),
        components=components,
        reason=reason,
    )
