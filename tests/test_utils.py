"""
Test suite for utilities and experiment tracking.
"""

import pytest
import pandas as pd
import numpy as np
from unittest.mock import patch, MagicMock

from churnml.utils.experiment_tracking import ExperimentTracker
from churnml.utils.model_utils import ThresholdOptimizer, ModelEvaluator, ModelComparator
from churnml.utils import plotting
from churnml.utils.plotting import (
    average_precision_from_curve, plot_roc_curve, plot_pr_curve, plot_confusion_matrix,
)


MLFLOW_CONFIG = {
    'tracking_uri': 'file:./test_mlruns',
    'experiment_name': 'test_experiment'
}


class TestExperimentTracker:
    """Test experiment tracking functionality."""

    @patch('mlflow.create_experiment')
    @patch('mlflow.get_experiment_by_name')
    @patch('mlflow.set_experiment')
    @patch('mlflow.set_tracking_uri')
    def test_init(self, mock_set_uri, mock_set_exp, mock_get_exp, mock_create_exp, monkeypatch):
        """Test ExperimentTracker initialization."""
        monkeypatch.delenv('MLFLOW_TRACKING_URI', raising=False)
        mock_create_exp.return_value = "test_exp_id"

        tracker = ExperimentTracker(MLFLOW_CONFIG)

        assert tracker.tracking_uri == 'file:./test_mlruns'
        assert tracker.experiment_name == 'test_experiment'
        mock_set_uri.assert_called_once_with('file:./test_mlruns')
        mock_set_exp.assert_called_once_with(experiment_id="test_exp_id")

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_tracking_uri_from_environment(self, mock_mlflow, monkeypatch):
        monkeypatch.setenv('MLFLOW_TRACKING_URI', 'http://tracking:5000')
        mock_mlflow.create_experiment.return_value = "1"

        tracker = ExperimentTracker(MLFLOW_CONFIG)

        assert tracker.tracking_uri == 'http://tracking:5000'
        mock_mlflow.set_tracking_uri.assert_called_once_with('http://tracking:5000')

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_existing_experiment_is_reused(self, mock_mlflow):
        mock_mlflow.create_experiment.side_effect = Exception("already exists")
        experiment = MagicMock(lifecycle_stage="active", experiment_id="7")
        mock_mlflow.get_experiment_by_name.return_value = experiment

        ExperimentTracker(MLFLOW_CONFIG)

        mock_mlflow.set_experiment.assert_called_once_with(experiment_id="7")

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_start_run(self, mock_mlflow):
        """Test starting MLflow run."""
        mock_mlflow.create_experiment.return_value = "1"
        tracker = ExperimentTracker(MLFLOW_CONFIG)
        tracker.start_run("test_run")

        mock_mlflow.start_run.assert_called_once_with(run_name="test_run")

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_log_params(self, mock_mlflow):
        """Test logging parameters."""
        mock_mlflow.create_experiment.return_value = "1"
        tracker = ExperimentTracker(MLFLOW_CONFIG)
        tracker.log_params({'model': {'C': 0.01}, 'n_splits': 5})

        assert mock_mlflow.log_param.call_count == 2
        mock_mlflow.log_param.assert_any_call('model.C', '0.01')
        mock_mlflow.log_param.assert_any_call('n_splits', '5')

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_log_metrics(self, mock_mlflow):
        """Test logging metrics."""
        mock_mlflow.create_experiment.return_value = "1"
        tracker = ExperimentTracker(MLFLOW_CONFIG)
        tracker.log_metrics({'roc_auc': 0.85, 'f1_score': 0.62})

        assert mock_mlflow.log_metric.call_count == 2
        mock_mlflow.log_metric.assert_any_call('roc_auc', 0.85, step=None)

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_logging_failure_does_not_raise(self, mock_mlflow):
        mock_mlflow.create_experiment.return_value = "1"
        mock_mlflow.log_metric.side_effect = RuntimeError("tracking server down")
        mock_mlflow.sklearn.log_model.side_effect = RuntimeError("tracking server down")

        tracker = ExperimentTracker(MLFLOW_CONFIG)
        tracker.log_metrics({'roc_auc': 0.85})
        tracker.log_model(object(), "model")

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_log_model(self, mock_mlflow):
        mock_mlflow.create_experiment.return_value = "1"
        tracker = ExperimentTracker(MLFLOW_CONFIG)
        model = object()
        tracker.log_model(model, "model")

        mock_mlflow.sklearn.log_model.assert_called_once_with(model, name="model")

    @patch('churnml.utils.experiment_tracking.mlflow')
    def test_disabled_tracker_is_noop(self, mock_mlflow):
        tracker = ExperimentTracker({'enabled': False})

        with tracker.start_run("ignored"):
            tracker.log_params({'a': 1})
            tracker.log_metrics({'b': 2.0})
            tracker.log_dict({'c': 3}, "c.yaml")

        mock_mlflow.set_tracking_uri.assert_not_called()
        mock_mlflow.start_run.assert_not_called()
        mock_mlflow.log_param.assert_not_called()
        mock_mlflow.log_metric.assert_not_called()

    def test_flatten_dict(self):
        """Test dictionary flattening."""
        tracker = ExperimentTracker({'enabled': False})
        nested_dict = {
            'model': {
                'C': 0.01,
                'params': {
                    'max_iter': 100
                }
            }
        }

        flattened = tracker._flatten_dict(nested_dict)

        assert flattened == {'model.C': '0.01', 'model.params.max_iter': '100'}
        assert tracker._flatten_dict({'C': 1}, prefix='tuned') == {'tuned.C': '1'}


class TestThresholdOptimizer:
    """Test threshold optimization."""

    y_true = np.array([0, 0, 1, 1, 0, 1, 1, 0])
    y_proba = np.array([0.1, 0.3, 0.7, 0.9, 0.2, 0.8, 0.6, 0.4])

    def test_default(self):
        assert ThresholdOptimizer().optimize(self.y_true, self.y_proba) == 0.5

    @pytest.mark.parametrize("method", ['f1_optimal', 'precision_recall_curve', 'youden_j'])
    def test_methods_separate_classes(self, method):
        threshold = ThresholdOptimizer(method=method).optimize(self.y_true, self.y_proba)

        assert 0.0 <= threshold <= 1.0
        # Every threshold in (0.4, 0.6] separates this toy data perfectly
        assert 0.4 < threshold <= 0.6

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="cost_sensitive"):
            ThresholdOptimizer(method='cost_sensitive').optimize(self.y_true, self.y_proba)


class TestModelEvaluator:
    """Test model evaluation."""

    y_true = np.array([0, 0, 1, 1, 0, 1, 1, 0])
    y_pred = np.array([0, 0, 1, 1, 0, 0, 1, 0])
    y_proba = np.array([0.1, 0.3, 0.7, 0.9, 0.2, 0.4, 0.8, 0.3])

    def test_calculate_metrics(self):
        """Test metrics calculation."""
        metrics = ModelEvaluator().calculate_metrics(self.y_true, self.y_pred, self.y_proba)

        required_metrics = [
            'accuracy', 'precision', 'recall', 'f1_score', 'balanced_accuracy',
            'roc_auc', 'pr_auc', 'specificity', 'sensitivity', 'npv', 'ppv'
        ]
        for metric in required_metrics:
            assert metric in metrics
            assert 0 <= metrics[metric] <= 1

        assert metrics['true_positives'] == 3
        assert metrics['false_negatives'] == 1
        assert metrics['specificity'] == 1.0
        assert metrics['sensitivity'] == 0.75
        assert metrics['roc_auc'] == 1.0
        assert -1 <= metrics['kappa'] <= 1

    def test_single_class_gives_nan_auc(self):
        metrics = ModelEvaluator().calculate_metrics(np.zeros(4), np.zeros(4), np.full(4, 0.2))
        assert np.isnan(metrics['roc_auc'])
        assert np.isnan(metrics['pr_auc'])
        assert metrics['accuracy'] == 1.0

    def test_confusion_matrix_frame(self):
        frame = ModelEvaluator().confusion_matrix_frame(self.y_true, self.y_pred)

        assert list(frame.index) == ['No', 'Yes']
        assert list(frame.columns) == ['No', 'Yes']
        assert frame.loc['Yes', 'No'] == 1
        assert frame.loc['No', 'No'] == 4

    def test_curve_points(self):
        curves = ModelEvaluator().curve_points(self.y_true, self.y_proba)
        assert curves['fpr'][0] == 0.0 and curves['tpr'][-1] == 1.0
        assert len(curves['precision']) == len(curves['recall'])

    def test_classification_report(self):
        report = ModelEvaluator().generate_classification_report(self.y_true, self.y_pred)
        assert 'Yes' in report and 'No' in report


class TestModelComparator:

    def test_compare_and_best(self):
        comparator = ModelComparator()
        comparator.add_scores('knn', {'roc_auc': 0.71})
        comparator.add_scores('elastic_net', {'roc_auc': 0.84})
        comparator.add_scores('broken', {'roc_auc': float('nan')})

        table = comparator.compare_models('roc_auc')

        assert table.index[0] == 'elastic_net'
        assert comparator.get_best_model('roc_auc') == 'elastic_net'

    def test_add_model_computes_metrics(self):
        comparator = ModelComparator()
        comparator.add_model('m', TestModelEvaluator.y_true, TestModelEvaluator.y_pred, TestModelEvaluator.y_proba)
        assert 'f1_score' in comparator.compare_models().columns

    def test_empty(self):
        comparator = ModelComparator()
        assert comparator.compare_models().empty
        assert comparator.get_best_model() is None


class TestPlotting:

    def test_plots_written(self, temp_directory):
        evaluator = ModelEvaluator()
        y_true = TestModelEvaluator.y_true
        curves = evaluator.curve_points(y_true, TestModelEvaluator.y_proba)

        roc = plot_roc_curve(curves['fpr'], curves['tpr'], temp_directory / 'roc_curve.png')
        pr = plot_pr_curve(curves['precision'], curves['recall'], temp_directory / 'pr_curve.png',
                           baseline=float(y_true.mean()))
        cm = plot_confusion_matrix(
            evaluator.confusion_matrix_frame(y_true, TestModelEvaluator.y_pred),
            temp_directory / 'plots' / 'confusion_matrix.png',
        )

        for path in (roc, pr, cm):
            assert path.exists()
            assert path.stat().st_size > 0

    def test_average_precision_matches_sklearn(self):
        from sklearn.metrics import average_precision_score

        y_true = np.array([0, 1, 0, 1, 1, 0, 0, 1, 0, 0])
        y_proba = np.array([0.2, 0.9, 0.6, 0.4, 0.7, 0.1, 0.3, 0.35, 0.5, 0.05])
        curves = ModelEvaluator().curve_points(y_true, y_proba)

        assert average_precision_from_curve(curves['precision'], curves['recall']) == pytest.approx(
            average_precision_score(y_true, y_proba)
        )

    def test_pr_legend_reports_pr_auc_metric(self, temp_directory, monkeypatch):
        y_true = np.array([0, 1, 0, 1, 1, 0, 0, 1, 0, 0])
        y_proba = np.array([0.2, 0.9, 0.6, 0.4, 0.7, 0.1, 0.3, 0.35, 0.5, 0.05])
        evaluator = ModelEvaluator()
        pr_auc = evaluator.calculate_metrics(y_true, (y_proba >= 0.5).astype(int), y_proba)['pr_auc']
        curves = evaluator.curve_points(y_true, y_proba)

        figures = []
        monkeypatch.setattr(plotting.plt, 'close', figures.append)
        plot_pr_curve(curves['precision'], curves['recall'], temp_directory / 'pr_curve.png')

        labels = [t.get_text() for t in figures[0].axes[0].get_legend().get_texts()]
        assert labels == [f"AUPRC (AP) = {pr_auc:.3f}"]
