import json

import pytest

from risk_threshold.config import PipelineConfig, load_config
from risk_threshold.errors import ConfigurationError


def test_defaults_match_business_setup():
    config = PipelineConfig()
    assert config.minority_trigger == 0.05
    assert config.target_ratio == 0.5
    assert config.n_folds == 10
    assert config.grid_points == 100
    assert (config.grid_start, config.grid_stop) == (0.01, 0.99)
    assert config.cost_ratio == 10.0


def test_file_then_overrides(tmp_path):
    path = tmp_path / "risk.json"
    path.write_text(json.dumps({"n_folds": 5, "fn_weight": 1000.0, "fp_weight": 100.0}))

    config = load_config(str(path), n_folds=3, seed=None)
    assert config.n_folds == 3
    assert config.fn_weight == 1000.0
    assert config.cost_ratio == 10.0
    assert config.seed == 42


@pytest.mark.parametrize("values", [
    {"n_folds": 1},
    {"minority_trigger": 0.0},
    {"grid_start": 0.0},
    {"grid_start": 0.9, "grid_stop": 0.1},
    {"fp_weight": 0.0, "fn_weight": 0.0},
    {"base_estimator": "svm"},
])
def test_invalid_values(values):
    with pytest.raises(ConfigurationError):
        load_config(**values)


def test_missing_file():
    with pytest.raises(ConfigurationError):
        load_config("/nonexistent/risk.json")


def test_non_object_file(tmp_path):
    path = tmp_path / "risk.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_free_false_positives_ratio():
    assert PipelineConfig(fp_weight=0.0).cost_ratio == float("inf")
