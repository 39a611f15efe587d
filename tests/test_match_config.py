from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from match_config import DEFAULT_CONFIG, MatchConfig, MatchConfigError, build_config, deep_update, load_config_file


def test_defaults() -> None:
    cfg = build_config()
    assert cfg.weights == {"vertical": 40, "stage": 20, "region": 20, "thesis": 10, "load_penalty": 10}
    assert cfg.top_k_per_juror == 3
    assert cfg.target_jurors_per_startup == 3
    assert cfg.default_capacity == 10
    assert cfg.max_score == pytest.approx(10.0)
    assert cfg.clamp_load_penalty is True
    assert cfg.tracks_progression("pitching")
    assert not cfg.tracks_progression("screening")


def test_deep_update_merges_nested_dicts() -> None:
    dst = {"WEIGHTS": {"vertical": 40, "stage": 20}, "TOP_K_PER_JUROR": 3}
    deep_update(dst, {"WEIGHTS": {"stage": 5}, "TOP_K_PER_JUROR": 4})
    assert dst == {"WEIGHTS": {"vertical": 40, "stage": 5}, "TOP_K_PER_JUROR": 4}


def test_overrides_do_not_leak_into_defaults() -> None:
    build_config({"WEIGHTS": {"vertical": 70}})
    assert DEFAULT_CONFIG["WEIGHTS"]["vertical"] == 40


def test_round_block_applies_on_top() -> None:
    overrides = {"TOP_K_PER_JUROR": 4, "ROUNDS": {"pitching": {"TOP_K_PER_JUROR": 6, "WEIGHTS": {"thesis": 0, "vertical": 50}}}}
    assert build_config(overrides, "screening").top_k_per_juror == 4
    pitching = build_config(overrides, "pitching")
    assert pitching.top_k_per_juror == 6
    assert pitching.thesis_weight == 0
    assert pitching.vertical_weight == 50


def test_weights_off_100_warn(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="match_config"):
        cfg = build_config({"WEIGHTS": {"vertical": 60}})
    assert cfg.max_score == pytest.approx(12.0)
    assert "sum to 120.00" in caplog.text


@pytest.mark.parametrize(
    "overrides",
    [
        {"WEIGHTS": {"stage": -1}},
        {"TOP_K_PER_JUROR": 0},
        {"DEFAULT_CAPACITY": 0},
        {"TOP_K_PER_JUROR": "many"},
        {"TOP_K_PER_JUROR": 2.5},
    ],
)
def test_invalid_values_raise(overrides) -> None:
    with pytest.raises(MatchConfigError):
        build_config(overrides)


def test_unknown_weight_raises() -> None:
    with pytest.raises(KeyError):
        build_config({"WEIGHTS": {"popularity": 5}})


def test_from_record_maps_columns() -> None:
    cfg = MatchConfig.from_record(
        {
            "vertical_weight": 30,
            "stage_weight": 30,
            "region_weight": 20,
            "thesis_weight": 10,
            "load_penalty_weight": 10,
            "target_reviewers_per_item": 2,
            "top_k_per_juror": 5,
            "deterministic_seed": 7,
        }
    )
    assert cfg.vertical_weight == 30
    assert cfg.stage_weight == 30
    assert cfg.target_jurors_per_startup == 2
    assert cfg.top_k_per_juror == 5
    assert cfg.deterministic_seed == 7


def test_missing_config_file_falls_back(tmp_path: Path, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="match_config"):
        cfg = load_config_file(tmp_path / "absent.json", "pitching")
    assert cfg == build_config(round_name="pitching")
    assert "not found" in caplog.text


def test_malformed_config_file_falls_back(tmp_path: Path) -> None:
    path = tmp_path / "cfg.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config_file(path) == build_config()


def test_config_file_round_overrides(tmp_path: Path) -> None:
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"ROUNDS": {"pitching": {"TOP_K_PER_JUROR": 2}}}), encoding="utf-8")
    assert load_config_file(path, "pitching").top_k_per_juror == 2
    assert load_config_file(path, "screening").top_k_per_juror == 3
