#!/usr/bin/env python3
"""
Example: Resampling Strategies for Credit Card Fraud

Fraud is rare, so the sampler step matters. This script fits a random
forest with each resampling method and reports test-set AUPRC and recall.
"""

import logging

from churnml.data_generation import CreditCardGenerator
from churnml.pipeline.training_pipeline import ChurnMLPipeline
from churnml.utils import ModelComparator

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def example_fraud_resampling():
    logger.info("=== Resampling Example ===")
    df = CreditCardGenerator(seed=42).generate_dataset(num_transactions=20000, fraud_rate=0.005)

    comparator = ModelComparator()
    for method in ['none', 'upsample', 'downsample', 'smote']:
        config = {
            'data': {'dataset': 'creditcard', 'test_size': 0.3},
            'feature_engineering': {'scaling': {'enabled': True, 'method': 'robust'}},
            'imbalance': {'method': method},
            'model': {'algorithm': 'random_forest', 'random_forest': {'n_estimators': 100}},
            'cross_validation': {'n_splits': 3},
            'threshold': {'method': 'default'},
            'mlflow': {'enabled': False},
        }
        ml = ChurnMLPipeline(config)
        X, y = ml.prepare_features(ml.clean_data(df))
        X_train, X_test, y_train, y_test = ml.split_data(X, y)
        ml.train_model(X_train, y_train)
        comparator.add_scores(method, ml.evaluate_model(X_test, y_test))

    table = comparator.compare_models('pr_auc')[['pr_auc', 'roc_auc', 'recall', 'precision']]
    logger.info(f"\nResampling comparison:\n{table}")
    return table


if __name__ == "__main__":
    example_fraud_resampling()
