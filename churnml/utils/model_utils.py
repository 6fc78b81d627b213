"""
Model utilities for threshold optimization and evaluation.
"""

import numpy as np
import pandas as pd
from typing import Dict, Optional
from sklearn.metrics import (
    roc_auc_score, average_precision_score, f1_score,
    precision_score, recall_score, accuracy_score,
    balanced_accuracy_score, cohen_kappa_score,
    precision_recall_curve, roc_curve, confusion_matrix,
    classification_report
)
import logging

logger = logging.getLogger(__name__)

class ThresholdOptimizer:
    """Pick the probability cut-off that turns scores into churn labels."""

    METHODS = ('default', 'f1_optimal', 'precision_recall_curve', 'youden_j')

    def __init__(self, method: str = 'default'):
        """
        Initialize threshold optimizer.

        Args:
            method: Optimization method ('default', 'f1_optimal', 'precision_recall_curve', 'youden_j')
        """
        self.method = method

    def optimize(self, y_true: np.ndarray, y_proba: np.ndarray) -> float:
        """
        Find optimal threshold.

        Args:
            y_true: True binary labels
            y_proba: Predicted probabilities

        Returns:
            Optimal threshold value
        """
        if self.method == 'default':
            return 0.5
        elif self.method == 'f1_optimal':
            return self._optimize_f1(y_true, y_proba)
        elif self.method == 'precision_recall_curve':
            return self._optimize_precision_recall(y_true, y_proba)
        elif self.method == 'youden_j':
            return self._optimize_youden_j(y_true, y_proba)
        else:
            raise ValueError(f"Unknown optimization method: {self.method}")

    def _optimize_f1(self, y_true: np.ndarray, y_proba: np.ndarray) -> float:
        """Find threshold that maximizes F1 score."""
        thresholds = np.linspace(0.05, 0.95, 91)
        best_f1 = 0
        best_threshold = 0.5

        for threshold in thresholds:
            y_pred = (y_proba >= threshold).astype(int)
            f1 = f1_score(y_true, y_pred, zero_division=0)

            if f1 > best_f1:
                best_f1 = f1
                best_threshold = float(threshold)

        logger.info(f"Optimal threshold for F1: {best_threshold:.3f} (F1: {best_f1:.3f})")
        return best_threshold

    def _optimize_precision_recall(self, y_true: np.ndarray, y_proba: np.ndarray) -> float:
        """Find threshold using precision-recall curve."""
        precision, recall, thresholds = precision_recall_curve(y_true, y_proba)

        # The last precision/recall pair has no threshold
        f1_scores = 2 * (precision[:-1] * recall[:-1]) / (precision[:-1] + recall[:-1] + 1e-8)
        if len(f1_scores) == 0:
            return 0.5
        best_threshold = float(np.clip(thresholds[np.argmax(f1_scores)], 0.0, 1.0))
        logger.info(f"Optimal threshold from PR curve: {best_threshold:.3f}")
        return best_threshold

    def _optimize_youden_j(self, y_true: np.ndarray, y_proba: np.ndarray) -> float:
        """Find threshold using Youden's J statistic (sensitivity + specificity - 1)."""
        fpr, tpr, thresholds = roc_curve(y_true, y_proba)

        j_scores = tpr - fpr
        # roc_curve prepends an infinite threshold
        best_threshold = float(np.clip(thresholds[np.argmax(j_scores)], 0.0, 1.0))
        logger.info(f"Optimal threshold from Youden's J: {best_threshold:.3f}")
        return best_threshold

class ModelEvaluator:
    """Confusion-matrix and curve based evaluation of a binary classifier."""

    def __init__(self, positive_label: str = 'Yes', negative_label: str = 'No'):
        self.positive_label = positive_label
        self.negative_label = negative_label

    def calculate_metrics(self,
                         y_true: np.ndarray,
                         y_pred: np.ndarray,
                         y_proba: np.ndarray) -> Dict[str, float]:
        """
        Calculate comprehensive evaluation metrics.

        Args:
            y_true: True binary labels
            y_pred: Predicted binary labels
            y_proba: Predicted probabilities

        Returns:
            Dictionary of metrics
        """
        y_true = np.asarray(y_true).astype(int)
        y_pred = np.asarray(y_pred).astype(int)
        y_proba = np.asarray(y_proba, dtype=float)
        metrics = {}

        metrics['accuracy'] = accuracy_score(y_true, y_pred)
        metrics['precision'] = precision_score(y_true, y_pred, zero_division=0)
        metrics['recall'] = recall_score(y_true, y_pred, zero_division=0)
        metrics['f1_score'] = f1_score(y_true, y_pred, zero_division=0)
        metrics['balanced_accuracy'] = balanced_accuracy_score(y_true, y_pred)
        metrics['kappa'] = cohen_kappa_score(y_true, y_pred) if len(np.unique(np.r_[y_true, y_pred])) > 1 else 0.0

        # AUROC / AUPRC are undefined with a single class present
        if len(np.unique(y_true)) > 1:
            metrics['roc_auc'] = roc_auc_score(y_true, y_proba)
            metrics['pr_auc'] = average_precision_score(y_true, y_proba)
        else:
            logger.warning("Only one class present in y_true; ROC/PR AUC set to NaN")
            metrics['roc_auc'] = float('nan')
            metrics['pr_auc'] = float('nan')

        tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
        metrics['true_negatives'] = int(tn)
        metrics['false_positives'] = int(fp)
        metrics['false_negatives'] = int(fn)
        metrics['true_positives'] = int(tp)

        metrics['specificity'] = tn / (tn + fp) if (tn + fp) > 0 else 0
        metrics['sensitivity'] = tp / (tp + fn) if (tp + fn) > 0 else 0
        metrics['npv'] = tn / (tn + fn) if (tn + fn) > 0 else 0
        metrics['ppv'] = tp / (tp + fp) if (tp + fp) > 0 else 0

        return {k: float(v) for k, v in metrics.items()}

    def confusion_matrix_frame(self, y_true: np.ndarray, y_pred: np.ndarray) -> pd.DataFrame:
        """Labelled 2x2 confusion matrix, rows are actual classes."""
        matrix = confusion_matrix(np.asarray(y_true).astype(int), np.asarray(y_pred).astype(int), labels=[0, 1])
        labels = [self.negative_label, self.positive_label]
        return pd.DataFrame(
            matrix,
            index=pd.Index(labels, name='Actual'),
            columns=pd.Index(labels, name='Predicted'),
        )

    def curve_points(self, y_true: np.ndarray, y_proba: np.ndarray) -> Dict[str, np.ndarray]:
        """ROC and precision-recall curve coordinates."""
        fpr, tpr, roc_thresholds = roc_curve(y_true, y_proba)
        precision, recall, pr_thresholds = precision_recall_curve(y_true, y_proba)
        return {
            'fpr': fpr,
            'tpr': tpr,
            'roc_thresholds': roc_thresholds,
            'precision': precision,
            'recall': recall,
            'pr_thresholds': pr_thresholds,
        }

    def generate_classification_report(self,
                                     y_true: np.ndarray,
                                     y_pred: np.ndarray) -> str:
        """Generate detailed classification report."""
        return classification_report(
            y_true, y_pred, labels=[0, 1],
            target_names=[self.negative_label, self.positive_label],
            zero_division=0,
        )

class ModelComparator:
    """Compare multiple models."""

    def __init__(self):
        """Initialize comparator."""
        self.results = {}

    def add_model(self,
                  name: str,
                  y_true: np.ndarray,
                  y_pred: np.ndarray,
                  y_proba: np.ndarray):
        """Add model results for comparison."""
        evaluator = ModelEvaluator()
        self.results[name] = evaluator.calculate_metrics(y_true, y_pred, y_proba)

    def add_scores(self, name: str, scores: Dict[str, float]):
        """Add precomputed (e.g. cross-validated) scores for a model."""
        self.results[name] = dict(scores)

    def compare_models(self, metric: str = 'roc_auc') -> pd.DataFrame:
        """Create comparison table, best model first."""
        if not self.results:
            return pd.DataFrame()

        comparison_df = pd.DataFrame(self.results).T

        if metric in comparison_df.columns:
            comparison_df = comparison_df.sort_values(metric, ascending=False)

        return comparison_df

    def get_best_model(self, metric: str = 'roc_auc') -> Optional[str]:
        """Get name of best performing model."""
        best_score = -np.inf
        best_model = None

        for model_name, metrics in self.results.items():
            score = metrics.get(metric)
            if score is not None and not np.isnan(score) and score > best_score:
                best_score = score
                best_model = model_name

        return best_model
