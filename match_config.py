"""Matching configuration: defaults, overrides and per-round settings.

Config dictionaries use the same upper-case keys as ``DEFAULT_CONFIG``.  A JSON
override file may set any subset of them, plus a ``ROUNDS`` block whose
entries are merged on top for a specific round::

    {
      "WEIGHTS": {"vertical": 50, "thesis": 0},
      "ROUNDS": {"pitching": {"TOP_K_PER_JUROR": 5}}
    }
"""
from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

log = logging.getLogger(__name__)

WEIGHT_KEYS = ("vertical", "stage", "region", "thesis", "load_penalty")

DEFAULT_CONFIG = {
    "WEIGHTS": {
        "vertical": 40,
        "stage": 20,
        "region": 20,
        "thesis": 10,
        "load_penalty": 10,
    },
    "TARGET_JURORS_PER_STARTUP": 3,
    "TOP_K_PER_JUROR": 3,
    # Capacity used for jurors without an evaluation limit.
    "DEFAULT_CAPACITY": 10,
    "DETERMINISTIC_SEED": None,
    # Over-capacity jurors get a zero load component instead of a negative one.
    "CLAMP_LOAD_PENALTY": True,
    # Include the startup description in thesis keyword matching.
    "MATCH_DESCRIPTION": False,
    # Rounds with a meeting-scheduling step; removed assignments there are cancelled, not deleted.
    "PROGRESSION_ROUNDS": ["pitching"],
    "PROGRESSION_STATUSES": ["scheduled", "completed", "cancelled", "in_review"],
    "ROUNDS": {},
    "TAXONOMY": {},
}

# Column names used by the external data-access record.
RECORD_WEIGHT_FIELDS = {
    "vertical_weight": "vertical",
    "stage_weight": "stage",
    "region_weight": "region",
    "thesis_weight": "thesis",
    "load_penalty_weight": "load_penalty",
}


class MatchConfigError(ValueError):
    """Raised when a matching configuration cannot be used."""


@dataclass(frozen=True)
class MatchConfig:
    vertical_weight: float
    stage_weight: float
    region_weight: float
    thesis_weight: float
    load_penalty_weight: float
    target_jurors_per_startup: int
    top_k_per_juror: int
    default_capacity: int
    deterministic_seed: Optional[int] = None
    clamp_load_penalty: bool = True
    match_description: bool = False
    progression_rounds: Tuple[str, ...] = ("pitching",)
    progression_statuses: Tuple[str, ...] = ("scheduled", "completed", "cancelled", "in_review")

    @property
    def weights(self) -> Dict[str, float]:
        return {
            "vertical": self.vertical_weight,
            "stage": self.stage_weight,
            "region": self.region_weight,
            "thesis": self.thesis_weight,
            "load_penalty": self.load_penalty_weight,
        }

    @property
    def max_score(self) -> float:
        return sum(self.weights.values()) / 10.0

    def tracks_progression(self, round_name: Optional[str]) -> bool:
        wanted = (round_name or "").strip().lower()
        return wanted in {r.lower() for r in self.progression_rounds}

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> "MatchConfig":
        """Build from a stored ``matching_config`` row (snake_case columns).

        Missing columns keep their defaults.
        """

        overrides: dict = {"WEIGHTS": {}}
        for column, key in RECORD_WEIGHT_FIELDS.items():
            if record.get(column) is not None:
                overrides["WEIGHTS"][key] = record[column]
        for column, key in (
            ("target_jurors_per_startup", "TARGET_JURORS_PER_STARTUP"),
            ("target_reviewers_per_item", "TARGET_JURORS_PER_STARTUP"),
            ("top_k_per_juror", "TOP_K_PER_JUROR"),
            ("top_k_per_reviewer", "TOP_K_PER_JUROR"),
            ("deterministic_seed", "DETERMINISTIC_SEED"),
        ):
            if record.get(column) is not None:
                overrides[key] = record[column]
        return build_config(overrides)


def deep_update(dst: dict, src: dict) -> dict:
    """Recursively merge ``src`` into ``dst`` (in-place)."""

    for key, value in (src or {}).items():
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            deep_update(dst[key], value)
        else:
            dst[key] = copy.deepcopy(value)
    return dst


def merge_config(overrides: Optional[dict] = None, round_name: Optional[str] = None) -> dict:
    """Return the raw config dict with overrides and the round block applied."""

    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if overrides:
        deep_update(cfg, overrides)
    if round_name:
        rounds = cfg.get("ROUNDS") or {}
        block = rounds.get(round_name) or rounds.get(round_name.lower())
        if block:
            deep_update(cfg, block)
    return cfg


def _to_number(key: str, value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MatchConfigError(f"{key} must be a number, got {value!r}") from None


def _to_int(key: str, value) -> int:
    number = _to_number(key, value)
    if number != int(number):
        raise MatchConfigError(f"{key} must be an integer, got {value!r}")
    return int(number)


def build_config(overrides: Optional[dict] = None, round_name: Optional[str] = None) -> MatchConfig:
    cfg = merge_config(overrides, round_name)

    weights = cfg["WEIGHTS"]
    unknown = set(weights) - set(WEIGHT_KEYS)
    if unknown:
        raise KeyError(f"Unknown weight(s): {', '.join(sorted(unknown))}")
    values = {key: _to_number(f"WEIGHTS.{key}", weights[key]) for key in WEIGHT_KEYS}
    negative = [key for key, value in values.items() if value < 0]
    if negative:
        raise MatchConfigError(f"Weights must be non-negative: {', '.join(negative)}")
    total = sum(values.values())
    if abs(total - 100.0) > 0.01:
        log.warning("Matching weights sum to %.2f, not 100; scores will not top out at 10", total)

    top_k = _to_int("TOP_K_PER_JUROR", cfg["TOP_K_PER_JUROR"])
    if top_k <= 0:
        raise MatchConfigError("TOP_K_PER_JUROR must be positive")
    capacity = _to_int("DEFAULT_CAPACITY", cfg["DEFAULT_CAPACITY"])
    if capacity <= 0:
        raise MatchConfigError("DEFAULT_CAPACITY must be positive")
    target = _to_int("TARGET_JURORS_PER_STARTUP", cfg["TARGET_JURORS_PER_STARTUP"])
    if target < 0:
        raise MatchConfigError("TARGET_JURORS_PER_STARTUP must not be negative")
    seed = cfg.get("DETERMINISTIC_SEED")

    return MatchConfig(
        vertical_weight=values["vertical"],
        stage_weight=values["stage"],
        region_weight=values["region"],
        thesis_weight=values["thesis"],
        load_penalty_weight=values["load_penalty"],
        target_jurors_per_startup=target,
        top_k_per_juror=top_k,
        default_capacity=capacity,
        deterministic_seed=None if seed is None else _to_int("DETERMINISTIC_SEED", seed),
        clamp_load_penalty=bool(cfg["CLAMP_LOAD_PENALTY"]),
        match_description=bool(cfg["MATCH_DESCRIPTION"]),
        progression_rounds=tuple(cfg["PROGRESSION_ROUNDS"] or ()),
        progression_statuses=tuple(s.lower() for s in cfg["PROGRESSION_STATUSES"] or ()),
    )


def read_overrides(path: Optional[Path]) -> dict:
    """Read a JSON override file; a missing or malformed file yields ``{}``."""

    if path is None:
        return {}
    if not path.exists():
        log.warning("Config file %s not found; using default matching config", path)
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("Could not read config file %s (%s); using default matching config", path, exc)
        return {}
    if not isinstance(data, dict):
        log.warning("Config file %s does not hold a JSON object; using default matching config", path)
        return {}
    return data


def load_config_file(path: Optional[Path], round_name: Optional[str] = None) -> MatchConfig:
    overrides = read_overrides(path)
    if round_name and path is not None and overrides:
        if round_name not in (overrides.get("ROUNDS") or {}):
            log.info("No round-specific config for %r in %s", round_name, path)
    return build_config(overrides, round_name)
