import logging

import pytest

from motionstab.config import StabilizerConfig, load_config


def test_defaults():
    cfg = StabilizerConfig()
    assert cfg.algorithm == "feature"
    assert cfg.smoother == "gaussian"
    assert cfg.window_size == 30
    assert cfg.estimator_params().min_inlier_ratio == 0.5


def test_out_of_range_values_are_clamped(caplog):
    with caplog.at_level(logging.WARNING, logger="motionstab.config"):
        cfg = StabilizerConfig(stabilization_strength=1.5, window_size=0, crop_ratio=2.0, boundary_constraint=-1.0)
    assert cfg.stabilization_strength == 1.0
    assert cfg.window_size == 1
    assert cfg.crop_ratio == 1.0
    assert cfg.boundary_constraint == 0.0
    assert "clamped" in caplog.text


def test_inverted_thresholds_are_swapped():
    cfg = StabilizerConfig(motion_threshold_low=0.3, motion_threshold_high=0.05)
    assert (cfg.motion_threshold_low, cfg.motion_threshold_high) == (0.05, 0.3)
    ap = cfg.adaptive_params()
    assert ap.threshold_low == 0.05 and ap.threshold_high == 0.3


@pytest.mark.parametrize("field, value", [("algorithm", "lidar"), ("smoother", "median"), ("border_policy", "wrap")])
def test_unknown_names_rejected(field, value):
    with pytest.raises(ValueError):
        StabilizerConfig(**{field: value})


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="stabilisation"):
        StabilizerConfig.from_dict({"stabilisation": 0.5})


def test_dict_round_trip():
    cfg = StabilizerConfig(algorithm="opticalflow", window_size=12)
    assert StabilizerConfig.from_dict(cfg.to_dict()) == cfg


def test_load_config(tmp_path):
    path = tmp_path / "stab.yaml"
    path.write_text("algorithm: hybrid\nsmoother: adaptive\nwindow_size: 15\nborder_policy: deform\n")
    cfg = load_config(path)
    assert cfg.algorithm == "hybrid"
    assert cfg.smoother == "adaptive"
    assert cfg.window_size == 15
    assert cfg.border_policy == "deform"


def test_load_config_empty_and_invalid(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    assert load_config(empty) == StabilizerConfig()

    bad = tmp_path / "bad.yaml"
    bad.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        load_config(bad)
