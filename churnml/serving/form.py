"""
Plain helpers behind the Streamlit churn form, kept free of Streamlit calls.
"""

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import yaml

from churnml.pipeline.preprocessing import (
    TELCO_BINARY_FEATURES, TELCO_CATEGORIES, TELCO_NUMERIC_FEATURES,
)
from churnml.serving.artifacts import ModelArtifacts

logger = logging.getLogger(__name__)

FORM_FIELDS = TELCO_BINARY_FEATURES + TELCO_NUMERIC_FEATURES + list(TELCO_CATEGORIES)

FIELD_LABELS = {
    'female': 'Female',
    'senior_citizen': 'Senior citizen',
    'partner': 'Partner',
    'dependents': 'Dependents',
    'phone_service': 'Phone service',
    'paperless_billing': 'Paperless billing',
    'tenure': 'Tenure (months)',
    'monthly_charges': 'Monthly charges',
    'total_charges': 'Total charges',
    'multiple_lines': 'Multiple lines',
    'internet_service': 'Internet service',
    'online_security': 'Online security',
    'online_backup': 'Online backup',
    'device_protection': 'Device protection',
    'tech_support': 'Tech support',
    'streaming_tv': 'Streaming TV',
    'streaming_movies': 'Streaming movies',
    'contract': 'Contract',
    'payment_method': 'Payment method',
}

EVALUATION_IMAGES = {
    'ROC curve': 'roc_curve.png',
    'Precision-recall curve': 'pr_curve.png',
    'Confusion matrix': 'confusion_matrix.png',
}


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return math.isnan(value)
    return False


def find_missing_inputs(values: Dict[str, Any]) -> List[str]:
    """Return the labels of form fields left empty, in form order."""
    return [FIELD_LABELS[name] for name in FORM_FIELDS if _is_empty(values.get(name))]


def build_customer_frame(values: Dict[str, Any],
                         input_columns: Optional[List[str]] = None) -> pd.DataFrame:
    """One-row frame in the clean telco schema, reordered to ``input_columns`` when given."""
    row = {name: values.get(name) for name in FORM_FIELDS}
    for name in TELCO_BINARY_FEATURES:
        row[name] = int(row[name])
    for name in TELCO_NUMERIC_FEATURES:
        row[name] = float(row[name])

    df = pd.DataFrame([row])
    if input_columns:
        df = df.reindex(columns=input_columns)
    return df


def predict_customer(artifacts: ModelArtifacts, values: Dict[str, Any]) -> Dict[str, Any]:
    """Score one customer; raises ValueError when inputs are missing."""
    missing = find_missing_inputs(values)
    if missing:
        raise ValueError(f"Missing inputs: {', '.join(missing)}")

    df = build_customer_frame(values, artifacts.input_columns)
    probability = float(artifacts.model.predict_proba(df)[0, 1])
    prediction = int(probability >= artifacts.threshold)
    logger.info(f"Form prediction: prob={probability:.3f}, pred={prediction}")

    return {
        'churn': 'Yes' if prediction == 1 else 'No',
        'prediction': prediction,
        'probability': probability,
        'threshold': artifacts.threshold,
    }


def load_evaluation_artifacts(model_dir: Union[str, Path]) -> Dict[str, Any]:
    """Collect the metrics table and evaluation plots written by training.

    Missing files are simply left out, so a partial directory still renders.
    """
    model_dir = Path(model_dir)
    result: Dict[str, Any] = {'metrics': None, 'images': {}}

    metrics_path = model_dir / 'metrics.yaml'
    if metrics_path.exists():
        with open(metrics_path, 'r', encoding='utf-8') as f:
            metrics = yaml.safe_load(f) or {}
        result['metrics'] = (
            pd.DataFrame(sorted(metrics.items()), columns=['metric', 'value'])
            .set_index('metric')
        )

    for title, filename in EVALUATION_IMAGES.items():
        path = model_dir / filename
        if path.exists():
            result['images'][title] = path

    return result
