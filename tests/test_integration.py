"""
Integration tests for the training pipeline.
"""
import pytest
import pandas as pd
import numpy as np
from pathlib import Path
import yaml
from unittest.mock import patch, MagicMock

from conftest import make_config
from churnml.data_generation.generate_churn_data import generate_and_save
from churnml.pipeline.training_pipeline import ChurnMLPipeline


def test_training_pipeline_integration(temp_directory):
    """Test the complete telco pipeline end-to-end from a CSV file."""
    data_path = generate_and_save('telco', 400, str(temp_directory), seed=42, rate=0.3)

    config = make_config(
        comparison={
            'enabled': True, 'metric': 'roc_auc', 'select_best': False,
            'algorithms': ['logistic_regression', 'knn', 'decision_tree'],
        },
        tuning={
            'enabled': True, 'method': 'grid', 'scoring': 'roc_auc',
            'param_grid': {'elastic_net': {'C': [0.1, 1.0], 'l1_ratio': [0.0, 1.0]}},
        },
    )
    config['feature_engineering']['missing_values'] = {'numeric_strategy': 'knn', 'n_neighbors': 5}

    config_path = temp_directory / "config.yaml"
    with open(config_path, 'w') as f:
        yaml.dump(config, f)

    output_path = temp_directory / "models"

    pipeline = ChurnMLPipeline(config)
    metrics = pipeline.run_pipeline(str(data_path), str(output_path))

    # Verify outputs exist
    for name in [
        "best_model.joblib", "optimal_threshold.txt", "input_columns.txt", "feature_names.txt",
        "metrics.yaml", "training_config.yaml", "inspection.yaml",
        "roc_curve.png", "pr_curve.png", "confusion_matrix.png",
        "model_comparison.csv", "tuning_results.csv",
    ]:
        assert (output_path / name).exists(), name

    with open(output_path / "metrics.yaml", 'r') as f:
        saved = yaml.safe_load(f)

    for key in ['roc_auc', 'pr_auc', 'f1_score', 'kappa', 'cv_roc_auc', 'optimal_threshold']:
        assert key in saved
    assert 0 <= saved['roc_auc'] <= 1
    assert saved['roc_auc'] == pytest.approx(metrics['roc_auc'])

    comparison = pd.read_csv(output_path / "model_comparison.csv", index_col=0)
    assert set(comparison.index) == {'logistic_regression', 'knn', 'decision_tree'}

    tuning = pd.read_csv(output_path / "tuning_results.csv")
    assert len(tuning) == 4

    with open(output_path / "training_config.yaml", 'r') as f:
        saved_config = yaml.safe_load(f)
    assert saved_config['model']['elastic_net']['C'] in (0.1, 1.0)

    with open(output_path / "inspection.yaml", 'r') as f:
        inspection = yaml.safe_load(f)
    assert inspection['n_rows'] == 400

    threshold = float((output_path / "optimal_threshold.txt").read_text())
    assert threshold == pytest.approx(metrics['optimal_threshold'])


def test_fraud_pipeline_with_downsampling(temp_directory, creditcard_data):
    """Credit card data with random forest and down-sampling."""
    config = make_config(
        data={'dataset': 'creditcard', 'test_size': 0.25},
        imbalance={'method': 'downsample'},
        model={'algorithm': 'random_forest', 'random_forest': {'n_estimators': 20, 'n_jobs': 1}},
        threshold={'method': 'precision_recall_curve'},
    )
    config['feature_engineering']['scaling'] = {'enabled': True, 'method': 'robust'}

    pipeline = ChurnMLPipeline(config)
    metrics = pipeline.run_pipeline(creditcard_data, temp_directory)

    assert pipeline.target_col == 'class'
    assert 'class' not in pipeline.input_columns
    assert 'amount' in pipeline.feature_names
    assert [name for name, _ in pipeline.model.steps][-2:] == ['sampler', 'model']
    assert 0 <= metrics['pr_auc'] <= 1
    assert (temp_directory / 'best_model.joblib').exists()


def test_pipeline_logs_to_mlflow(temp_directory, raw_telco_data):
    """Run with tracking enabled against a mocked MLflow module."""
    config = make_config(mlflow={'enabled': True, 'experiment_name': 'test_experiment'})

    with patch('churnml.utils.experiment_tracking.mlflow') as mock_mlflow:
        mock_mlflow.create_experiment.return_value = "1"
        run = MagicMock()
        run.__exit__.return_value = False
        mock_mlflow.start_run.return_value = run

        ChurnMLPipeline(config).run_pipeline(raw_telco_data, temp_directory)

    mock_mlflow.start_run.assert_called_once_with(run_name='telco_elastic_net')
    logged_metrics = {c.args[0] for c in mock_mlflow.log_metric.call_args_list}
    assert {'roc_auc', 'cv_roc_auc', 'optimal_threshold'} <= logged_metrics
    mock_mlflow.log_artifacts.assert_called_once_with(str(temp_directory))
    mock_mlflow.sklearn.log_model.assert_called_once()


def test_cli_main(temp_directory, monkeypatch):
    """The churnml-train entry point reads a YAML config and writes artifacts."""
    from churnml.pipeline import training_pipeline

    data_path = generate_and_save('telco', 300, str(temp_directory / "data"), seed=3)
    config_path = temp_directory / "config.yaml"
    config_path.write_text(yaml.dump(make_config()))
    output_path = temp_directory / "out"

    monkeypatch.setattr('sys.argv', [
        'churnml-train', '--config', str(config_path), '--data', str(data_path), '--output', str(output_path),
    ])
    training_pipeline.main()

    assert (output_path / 'best_model.joblib').exists()
