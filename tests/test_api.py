"""
Test suite for the FastAPI serving endpoint.
"""

import shutil

import pytest
import yaml
from fastapi.testclient import TestClient
from pydantic import ValidationError

from churnml.serving import api
from churnml.serving.api import CustomerData, app, get_confidence_level


@pytest.fixture
def client(trained_model_dir, monkeypatch):
    """Client whose lifespan loads the small trained model."""
    monkeypatch.setenv('MODEL_DIR', str(trained_model_dir))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def client_without_model(temp_directory, monkeypatch):
    monkeypatch.setenv('MODEL_DIR', str(temp_directory))
    with TestClient(app) as test_client:
        yield test_client


class TestCustomerData:
    """Test input validation."""

    def test_valid(self, sample_customer):
        customer = CustomerData(**sample_customer)
        assert customer.contract == "Month-to-month"

    def test_customer_id_optional(self, sample_customer):
        del sample_customer['customer_id']
        assert CustomerData(**sample_customer).customer_id is None

    def test_total_charges_may_be_blank(self, sample_customer):
        sample_customer['total_charges'] = None
        assert CustomerData(**sample_customer).total_charges is None

    @pytest.mark.parametrize("field,value", [
        ('female', 2),
        ('tenure', -1),
        ('monthly_charges', -5.0),
        ('contract', 'Weekly'),
        ('payment_method', 'Bank transfer (automatic)'),
        ('online_security', 'Maybe'),
    ])
    def test_invalid(self, sample_customer, field, value):
        sample_customer[field] = value
        with pytest.raises(ValidationError):
            CustomerData(**sample_customer)


def test_confidence_levels():
    assert get_confidence_level(0.95) == "High"
    assert get_confidence_level(0.05) == "High"
    assert get_confidence_level(0.7) == "Medium"
    assert get_confidence_level(0.5) == "Low"


class TestAPI:
    """Test cases for the churn serving API."""

    def test_health_check(self, client):
        """Test the health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["model_loaded"] is True
        assert data["uptime_seconds"] >= 0

    def test_single_prediction(self, client, sample_customer):
        """Test single customer prediction."""
        response = client.post("/predict", json=sample_customer)

        assert response.status_code == 200
        data = response.json()
        assert data["customer_id"] == "7590-VHVEG"
        assert data["churn"] in ("Yes", "No")
        assert data["prediction"] == (1 if data["churn"] == "Yes" else 0)
        assert 0 <= data["probability"] <= 1
        assert data["confidence"] in ("High", "Medium", "Low")
        assert data["model_version"] == "elastic_net"

    def test_prediction_applies_saved_threshold(self, client, sample_customer):
        data = client.post("/predict", json=sample_customer).json()
        threshold = api.artifacts.threshold
        assert data["prediction"] == int(data["probability"] >= threshold)

    def test_blank_total_charges_is_imputed(self, client, sample_customer):
        sample_customer['total_charges'] = None
        response = client.post("/predict", json=sample_customer)
        assert response.status_code == 200

    def test_invalid_input_returns_422(self, client, sample_customer):
        sample_customer['contract'] = 'Weekly'
        response = client.post("/predict", json=sample_customer)
        assert response.status_code == 422

    def test_batch_prediction(self, client, sample_customer):
        """Test batch prediction endpoint."""
        second = dict(sample_customer, customer_id="0002-BBBBB", contract="Two year", tenure=60,
                      total_charges=1800.0)
        response = client.post("/predict/batch", json={"customers": [sample_customer, second]})

        assert response.status_code == 200
        data = response.json()
        assert data["total_processed"] == 2
        assert [p["customer_id"] for p in data["predictions"]] == ["7590-VHVEG", "0002-BBBBB"]

    def test_batch_too_large(self, client, sample_customer):
        response = client.post("/predict/batch", json={"customers": [sample_customer] * 1001})
        assert response.status_code == 400
        assert "max 1000" in response.json()["detail"]

    def test_model_info(self, client):
        response = client.get("/model/info")
        assert response.status_code == 200
        data = response.json()
        assert data["algorithm"] == "elastic_net"
        assert data["model_type"] == "Pipeline"
        assert "contract" in data["input_columns"]
        assert data["total_features"] == len(data["feature_names"])
        assert "roc_auc" in data["metrics"]


class TestAPIWithoutModel:

    def test_health_reports_unhealthy(self, client_without_model):
        data = client_without_model.get("/health").json()
        assert data["status"] == "unhealthy"
        assert data["model_loaded"] is False

    def test_predict_returns_503(self, client_without_model, sample_customer):
        assert client_without_model.post("/predict", json=sample_customer).status_code == 503
        assert client_without_model.post(
            "/predict/batch", json={"customers": [sample_customer]}
        ).status_code == 503
        assert client_without_model.get("/model/info").status_code == 503


class TestPredictionErrors:
    """Errors raised while scoring map to 400 (bad values) or 500 (anything else)."""

    def test_value_error_returns_400(self, client, sample_customer, monkeypatch):
        def reject(X):
            raise ValueError("Input contains NaN")

        monkeypatch.setattr(api.artifacts.model, 'predict_proba', reject)

        response = client.post("/predict", json=sample_customer)
        assert response.status_code == 400
        assert "Input contains NaN" in response.json()["detail"]

        response = client.post("/predict/batch", json={"customers": [sample_customer]})
        assert response.status_code == 400

    def test_other_error_returns_500(self, client, sample_customer, monkeypatch):
        def crash(X):
            raise RuntimeError("model backend crashed")

        monkeypatch.setattr(api.artifacts.model, 'predict_proba', crash)

        response = client.post("/predict", json=sample_customer)
        assert response.status_code == 500
        assert "model backend crashed" in response.json()["detail"]

        response = client.post("/predict/batch", json={"customers": [sample_customer]})
        assert response.status_code == 500


def test_model_info_with_undefined_metrics(trained_model_dir, tmp_path, monkeypatch):
    """A single-class test split leaves NaN AUCs in metrics.yaml."""
    model_dir = tmp_path / "models"
    shutil.copytree(trained_model_dir, model_dir)
    metrics = yaml.safe_load((model_dir / "metrics.yaml").read_text())
    metrics['roc_auc'] = float('nan')
    metrics['pr_auc'] = float('nan')
    (model_dir / "metrics.yaml").write_text(yaml.dump(metrics))

    monkeypatch.setenv('MODEL_DIR', str(model_dir))
    with TestClient(app) as test_client:
        response = test_client.get("/model/info")

    assert response.status_code == 200
    data = response.json()["metrics"]
    assert data["roc_auc"] is None
    assert data["pr_auc"] is None
    assert data["accuracy"] == pytest.approx(metrics["accuracy"])
