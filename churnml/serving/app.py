"""
Streamlit page for scoring a single customer.

Run with: streamlit run churnml/serving/app.py
"""

import logging
import os

import streamlit as st

from churnml.pipeline.preprocessing import TELCO_BINARY_FEATURES, TELCO_CATEGORIES, TELCO_NUMERIC_FEATURES
from churnml.serving.artifacts import ModelArtifacts, load_model_artifacts
from churnml.serving.form import FIELD_LABELS, find_missing_inputs, load_evaluation_artifacts, predict_customer

logger = logging.getLogger(__name__)


@st.cache_resource
def get_artifacts(model_dir: str) -> ModelArtifacts:
    return load_model_artifacts(model_dir)


def render_inputs() -> dict:
    values = {}
    left, right = st.columns(2)

    with left:
        for name in TELCO_BINARY_FEATURES:
            values[name] = st.selectbox(
                FIELD_LABELS[name], options=[0, 1], index=None,
                format_func=lambda v: "Yes" if v == 1 else "No",
                placeholder="Select...",
            )
        for name in TELCO_NUMERIC_FEATURES:
            values[name] = st.number_input(FIELD_LABELS[name], min_value=0.0, value=None, step=1.0)

    with right:
        for name, options in TELCO_CATEGORIES.items():
            values[name] = st.selectbox(FIELD_LABELS[name], options=options, index=None, placeholder="Select...")

    return values


def render_prediction(artifacts: ModelArtifacts):
    st.markdown("### Customer")
    with st.form("customer"):
        values = render_inputs()
        submitted = st.form_submit_button("Predict churn")

    if not submitted:
        return

    missing = find_missing_inputs(values)
    if missing:
        st.error(f"Please fill in every field before predicting. Missing: {', '.join(missing)}")
        return

    result = predict_customer(artifacts, values)
    col1, col2 = st.columns(2)
    col1.metric("Churn", result['churn'])
    col2.metric("Probability", f"{result['probability']:.1%}")
    st.caption(f"Decision threshold: {result['threshold']:.3f} ({artifacts.algorithm})")


def render_evaluation(model_dir: str):
    st.markdown("### Model evaluation")
    evaluation = load_evaluation_artifacts(model_dir)

    if evaluation['metrics'] is None and not evaluation['images']:
        st.info("No evaluation artifacts available.")
        return

    if evaluation['metrics'] is not None:
        st.dataframe(evaluation['metrics'], width="stretch")

    for title, path in evaluation['images'].items():
        with st.expander(title, expanded=False):
            st.image(str(path))


def main():
    st.set_page_config(page_title="Customer churn prediction", layout="wide")
    st.title("Customer churn prediction")

    model_dir = os.getenv('MODEL_DIR', './models')
    try:
        artifacts = get_artifacts(model_dir)
    except FileNotFoundError as e:
        st.error(f"No trained model found: {e}")
        st.stop()

    render_prediction(artifacts)
    render_evaluation(model_dir)


if __name__ == "__main__":
    main()
