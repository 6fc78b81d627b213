"""Serving utilities: REST API, Streamlit form helpers and artifact loading."""

from .artifacts import ModelArtifacts, load_model_artifacts
from .form import find_missing_inputs, build_customer_frame, predict_customer, load_evaluation_artifacts

__all__ = [
    'ModelArtifacts',
    'load_model_artifacts',
    'find_missing_inputs',
    'build_customer_frame',
    'predict_customer',
    'load_evaluation_artifacts',
]
