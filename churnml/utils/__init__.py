"""Utility modules for the ML pipeline."""

from .experiment_tracking import ExperimentTracker
from .model_utils import (
    ThresholdOptimizer,
    ModelEvaluator,
    ModelComparator,
)
from .plotting import plot_roc_curve, plot_pr_curve, plot_confusion_matrix

__all__ = [
    'ExperimentTracker',
    'ThresholdOptimizer',
    'ModelEvaluator',
    'ModelComparator',
    'plot_roc_curve',
    'plot_pr_curve',
    'plot_confusion_matrix',
]
