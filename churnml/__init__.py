"""
Churn ML Course Pipeline

End-to-end binary classification workflow for customer churn (and credit
card fraud): data cleaning, inspection, preprocessing recipes, resampling,
model comparison, tuning, threshold selection, evaluation and serving.
"""

__version__ = "1.0.0"

from .data_generation import TelcoChurnGenerator, CreditCardGenerator
from .pipeline import (
    CategoricalEncoder,
    MissingValueHandler,
    DataValidator,
    DataScaler,
    DataInspector,
)
from .utils import (
    ExperimentTracker,
    ThresholdOptimizer,
    ModelEvaluator,
    ModelComparator,
)

__all__ = [
    'TelcoChurnGenerator',
    'CreditCardGenerator',
    'CategoricalEncoder',
    'MissingValueHandler',
    'DataValidator',
    'DataScaler',
    'DataInspector',
    'ExperimentTracker',
    'ThresholdOptimizer',
    'ModelEvaluator',
    'ModelComparator',
]
