import pytest
from fastapi.testclient import TestClient

from risk_threshold import api
from risk_threshold.config import PipelineConfig
from risk_threshold.train import run_training


@pytest.fixture
def client(tmp_path, raw_csv):
    model_out = tmp_path / "pipeline.joblib"
    threshold_out = tmp_path / "threshold.json"
    run_training(
        raw_csv,
        PipelineConfig(n_folds=5),
        model_out_path=str(model_out),
        threshold_out_path=str(threshold_out),
        out_dir=str(tmp_path / "artifacts"),
        plots=False,
    )
    api.load_artifacts(str(model_out), str(threshold_out))
    yield TestClient(api.app)
    api.MODEL = None
    api.THRESHOLD = None


def test_health(client):
    rv = client.get("/health")
    assert rv.status_code == 200
    data = rv.json()
    assert data["status"] == "healthy"
    assert data["model_loaded"] is True


def test_threshold(client):
    rv = client.get("/threshold")
    assert rv.status_code == 200
    data = rv.json()
    assert 0.0 < data["threshold"] < 1.0
    assert data["fn_weight"] == 10.0
    assert data["features"] == ["f0", "f1", "f2", "constant"]


def test_predict_applies_threshold(client):
    rv = client.post("/predict", json={"features": {"f0": 1.5, "f1": 1.5, "f2": 1.5, "constant": 7.0}})
    assert rv.status_code == 200
    data = rv.json()
    assert 0.0 <= data["risk_probability"] <= 1.0
    expected = "risk" if data["risk_probability"] >= data["threshold"] else "benign"
    # Rounded probability can only disagree right at the threshold
    if abs(data["margin"]) > 1e-4:
        assert data["decision"] == expected


def test_predict_imputes_missing_features(client):
    rv = client.post("/predict", json={"features": {"f0": None, "f1": 0.2}})
    assert rv.status_code == 200


def test_predict_rejects_unknown_features(client):
    rv = client.post("/predict", json={"features": {"balance": 10.0}})
    assert rv.status_code == 422


def test_batch(client):
    accounts = [{"features": {"f0": v, "f1": v, "f2": v}} for v in (-2.0, 0.0, 3.0)]
    rv = client.post("/predict/batch", json={"accounts": accounts})
    assert rv.status_code == 200
    data = rv.json()
    assert data["total_processed"] == 3
    probs = [p["risk_probability"] for p in data["predictions"]]
    assert probs[0] < probs[2]


def test_unloaded_model_returns_503(monkeypatch):
    monkeypatch.setattr(api, "MODEL", None)
    monkeypatch.setattr(api, "THRESHOLD", None)
    client = TestClient(api.app)
    assert client.post("/predict", json={"features": {"f0": 1.0}}).status_code == 503
    assert client.get("/health").json()["status"] == "unhealthy"


def test_load_artifacts_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        api.load_artifacts(str(tmp_path / "nope.joblib"), str(tmp_path / "nope.json"))
