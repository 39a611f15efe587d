"""Canonical category tables for startup and juror attributes.

Regions, stages and verticals arrive from intake forms and spreadsheets in
many spellings ("EU", "emea", "Series C", "B2B").  Each category is backed by a
``TaxonomyTable`` that maps a canonical label to the aliases it accepts.
Lookups are trimmed and case-insensitive; a value with no known alias is
returned unchanged so no data is ever dropped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

log = logging.getLogger(__name__)

REGION = "region"
STAGE = "stage"
VERTICAL = "vertical"
CATEGORIES = (REGION, STAGE, VERTICAL)

# Juror region tokens that match any startup region.
WILDCARD_REGIONS = frozenset({"Global", "Other"})

REGION_ALIASES: Dict[str, List[str]] = {
    "Europe": ["EU", "Europe", "European Union", "EMEA"],
    "North America": ["NA", "North America", "USA", "US", "United States", "Canada"],
    "Asia": ["Asia", "APAC", "Asia Pacific", "Asia Pacific (APAC)", "SEA", "Southeast Asia"],
    "Middle East": ["ME", "Middle East", "MENA", "Middle East & North Africa (MENA)", "Gulf"],
    "Africa": ["Africa", "Sub-Saharan Africa", "North Africa"],
    "Latin America": ["LATAM", "Latin America", "Latin America (LATAM)", "South America", "Central America"],
    "Global": ["Global", "Worldwide", "International"],
    "Other": ["Other", "Others", "Rest of World", "ROW"],
}

STAGE_ALIASES: Dict[str, List[str]] = {
    "Pre-Seed": ["Pre-Seed", "Preseed", "Pre Seed", "Idea", "Concept"],
    "Seed": ["Seed", "Early Seed", "Late Seed"],
    "Series A": ["Series A", "A", "Post-Seed"],
    "Series B": ["Series B", "B", "Growth"],
    "Series C+": ["Series C", "C", "Series D", "D", "Late Stage", "IPO"],
}

VERTICAL_ALIASES: Dict[str, List[str]] = {
    "Fintech": ["Fintech", "Financial Technology", "Finance", "Banking", "Payments"],
    "Healthcare": ["Healthcare", "Health", "MedTech", "Digital Health", "Biotech"],
    "Enterprise": ["Enterprise", "B2B", "SaaS", "Enterprise Software"],
    "Consumer": ["Consumer", "B2C", "E-commerce", "Retail"],
    "Climate": ["Climate", "CleanTech", "Green Tech", "Sustainability"],
    "AI/ML": [
        "AI",
        "ML",
        "Artificial Intelligence",
        "Artificial Intelligence (AI/ML)",
        "Machine Learning",
        "Deep Learning",
    ],
    "EdTech": ["EdTech", "Education", "Learning", "E-learning"],
    "PropTech": ["PropTech", "Real Estate", "Property Technology"],
    "Mobility": ["Mobility", "Transportation", "Automotive", "Logistics"],
}


def _fold(value: str) -> str:
    return (value or "").strip().casefold()


@dataclass(frozen=True)
class TaxonomyTable:
    """One category's canonical labels and their accepted aliases."""

    name: str
    aliases: Mapping[str, FrozenSet[str]]
    _index: Mapping[str, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: Dict[str, str] = {}
        frozen: Dict[str, FrozenSet[str]] = {}
        for canonical, variants in self.aliases.items():
            label = canonical.strip()
            if not label:
                raise ValueError(f"{self.name}: empty canonical label")
            accepted = frozenset({label, *(v.strip() for v in variants if v and v.strip())})
            for alias in accepted:
                key = _fold(alias)
                owner = index.get(key)
                if owner is not None and owner != label:
                    raise ValueError(
                        f"{self.name}: alias {alias!r} claimed by both {owner!r} and {label!r}"
                    )
                index[key] = label
            frozen[label] = accepted
        object.__setattr__(self, "aliases", frozen)
        object.__setattr__(self, "_index", index)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(self.aliases)

    def is_canonical(self, value: str) -> bool:
        return value in self.aliases

    def normalize(self, raw: Optional[str]) -> str:
        trimmed = (raw or "").strip()
        return self._index.get(trimmed.casefold(), trimmed)

    def normalize_all(self, values: Optional[Iterable[str]]) -> List[str]:
        seen = set()
        out: List[str] = []
        for raw in values or ():
            label = self.normalize(raw)
            if not label or label in seen:
                continue
            seen.add(label)
            out.append(label)
        return out

    def with_aliases(self, extra: Mapping[str, Iterable[str]]) -> "TaxonomyTable":
        merged: Dict[str, List[str]] = {k: list(v) for k, v in self.aliases.items()}
        for canonical, variants in (extra or {}).items():
            merged.setdefault(canonical, []).extend(variants)
        return TaxonomyTable(self.name, merged)


@dataclass(frozen=True)
class Taxonomy:
    region: TaxonomyTable
    stage: TaxonomyTable
    vertical: TaxonomyTable

    def table(self, category: str) -> TaxonomyTable:
        if category not in CATEGORIES:
            raise KeyError(f"Unknown taxonomy category: {category}")
        return getattr(self, category)

    def normalize(self, category: str, raw: Optional[str]) -> str:
        return self.table(category).normalize(raw)

    def normalize_all(self, category: str, values: Optional[Iterable[str]]) -> List[str]:
        return self.table(category).normalize_all(values)


def build_taxonomy(extra_aliases: Optional[Mapping[str, Mapping[str, Iterable[str]]]] = None) -> Taxonomy:
    """Build a taxonomy from the built-in tables plus operator-supplied aliases.

    ``extra_aliases`` is keyed by category (``region``/``stage``/``vertical``)
    and may introduce new canonical labels as well as extend existing ones.
    """

    extra = {k.lower(): v for k, v in (extra_aliases or {}).items()}
    unknown = set(extra) - set(CATEGORIES)
    if unknown:
        raise KeyError(f"Unknown taxonomy categories: {', '.join(sorted(unknown))}")
    tables = {
        REGION: TaxonomyTable(REGION, REGION_ALIASES),
        STAGE: TaxonomyTable(STAGE, STAGE_ALIASES),
        VERTICAL: TaxonomyTable(VERTICAL, VERTICAL_ALIASES),
    }
    for category, aliases in extra.items():
        tables[category] = tables[category].with_aliases(aliases)
    return Taxonomy(**tables)


DEFAULT_TAXONOMY = build_taxonomy()


# -------------------- validation reports --------------------

STATUS_NORMALIZED = "normalized"
STATUS_INVALID = "invalid"


@dataclass(frozen=True)
class FieldReport:
    field: str
    original: str
    normalized: str
    status: str
    warning: str = ""


def _check_values(
    table: TaxonomyTable, field_name: str, values: Iterable[str]
) -> List[FieldReport]:
    reports: List[FieldReport] = []
    for raw in values or ():
        normalized = table.normalize(raw)
        if not normalized:
            continue
        if table.is_canonical(normalized):
            if normalized != raw:
                reports.append(FieldReport(field_name, raw, normalized, STATUS_NORMALIZED))
            continue
        reports.append(
            FieldReport(
                field_name,
                raw,
                normalized,
                STATUS_INVALID,
                f"{normalized!r} is not a known {table.name}",
            )
        )
    return reports


def normalize_startup(startup, taxonomy: Taxonomy = DEFAULT_TAXONOMY):
    """Return ``(normalized_startup, reports)`` for one startup record."""

    reports: List[FieldReport] = []
    reports += _check_values(taxonomy.vertical, "verticals", startup.verticals)
    reports += _check_values(taxonomy.stage, "stage", [startup.stage] if startup.stage else [])
    reports += _check_values(taxonomy.region, "regions", startup.regions)
    normalized = replace(
        startup,
        verticals=tuple(taxonomy.vertical.normalize_all(startup.verticals)),
        stage=taxonomy.stage.normalize(startup.stage),
        regions=tuple(taxonomy.region.normalize_all(startup.regions)),
    )
    _log_invalid(startup.id, reports)
    return normalized, reports


def normalize_juror(juror, taxonomy: Taxonomy = DEFAULT_TAXONOMY):
    """Return ``(normalized_juror, reports)`` for one juror record."""

    reports: List[FieldReport] = []
    reports += _check_values(taxonomy.vertical, "target_verticals", juror.target_verticals)
    reports += _check_values(taxonomy.stage, "preferred_stages", juror.preferred_stages)
    reports += _check_values(taxonomy.region, "preferred_regions", juror.preferred_regions)
    normalized = replace(
        juror,
        target_verticals=tuple(taxonomy.vertical.normalize_all(juror.target_verticals)),
        preferred_stages=tuple(taxonomy.stage.normalize_all(juror.preferred_stages)),
        preferred_regions=tuple(taxonomy.region.normalize_all(juror.preferred_regions)),
    )
    _log_invalid(juror.id, reports)
    return normalized, reports


def _log_invalid(entity_id: str, reports: List[FieldReport]) -> None:
    invalid = [r for r in reports if r.status == STATUS_INVALID]
    if invalid:
        log.warning(
            "%s: %d value(s) outside the canonical taxonomy: %s",
            entity_id,
            len(invalid),
            ", ".join(f"{r.field}={r.normalized}" for r in invalid),
        )
