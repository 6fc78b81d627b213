"""Test configuration and fixtures."""

import pytest
import pandas as pd
import numpy as np
import tempfile
from pathlib import Path

from churnml.data_generation.generate_churn_data import TelcoChurnGenerator, CreditCardGenerator
from churnml.pipeline.preprocessing import clean_telco_data


@pytest.fixture
def raw_telco_data():
    """Raw telco records in the public CSV layout."""
    return TelcoChurnGenerator(seed=42).generate_dataset(num_customers=300, churn_rate=0.3)


@pytest.fixture
def clean_telco(raw_telco_data):
    return clean_telco_data(raw_telco_data)


@pytest.fixture
def creditcard_data():
    return CreditCardGenerator(seed=7).generate_dataset(num_transactions=400, fraud_rate=0.1)


@pytest.fixture
def sample_customer():
    """One customer in the clean schema, as the API and form receive it."""
    return {
        "customer_id": "7590-VHVEG",
        "female": 1,
        "senior_citizen": 0,
        "partner": 1,
        "dependents": 0,
        "tenure": 1,
        "phone_service": 0,
        "paperless_billing": 1,
        "monthly_charges": 29.85,
        "total_charges": 29.85,
        "multiple_lines": "No phone service",
        "internet_service": "DSL",
        "online_security": "No",
        "online_backup": "Yes",
        "device_protection": "No",
        "tech_support": "No",
        "streaming_tv": "No",
        "streaming_movies": "No",
        "contract": "Month-to-month",
        "payment_method": "Electronic check",
    }


@pytest.fixture
def temp_directory():
    """Create temporary directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


def make_config(**overrides):
    """Small, fast training configuration with tracking switched off."""
    config = {
        'random_seed': 42,
        'data': {'dataset': 'telco', 'test_size': 0.25},
        'feature_engineering': {
            'missing_values': {'numeric_strategy': 'median', 'categorical_strategy': 'most_frequent'},
            'categorical_encoding': {'method': 'one_hot'},
            'scaling': {'enabled': True, 'method': 'standard'},
        },
        'imbalance': {'method': 'none'},
        'model': {
            'algorithm': 'elastic_net',
            'elastic_net': {'C': 1.0, 'l1_ratio': 0.5, 'max_iter': 2000},
        },
        'cross_validation': {'n_splits': 3, 'repeats': 1},
        'comparison': {'enabled': False},
        'tuning': {'enabled': False},
        'threshold': {'method': 'f1_optimal'},
        'mlflow': {'enabled': False},
    }
    for key, value in overrides.items():
        config[key] = value
    return config


@pytest.fixture
def sample_config():
    """Sample configuration for testing."""
    return make_config()


@pytest.fixture(scope="session")
def trained_model_dir(tmp_path_factory):
    """Artifact directory from one small training run, shared across tests."""
    from churnml.pipeline.training_pipeline import ChurnMLPipeline

    df = TelcoChurnGenerator(seed=11).generate_dataset(num_customers=300, churn_rate=0.3)
    output_dir = tmp_path_factory.mktemp("models")
    ChurnMLPipeline(make_config()).run_pipeline(df, output_dir)
    return output_dir
