"""
Model factory and hyperparameter search spaces.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import optuna
import sklearn
import lightgbm as lgb
import xgboost as xgb
from sklearn.linear_model import LogisticRegression
from sklearn.neighbors import KNeighborsClassifier
from sklearn.tree import DecisionTreeClassifier
from sklearn.ensemble import RandomForestClassifier
from sklearn.utils.fixes import parse_version

logger = logging.getLogger(__name__)

# From 1.8 the penalty follows l1_ratio and passing it is deprecated
LEGACY_PENALTY = parse_version(sklearn.__version__).release < (1, 8)

ALGORITHMS = (
    'logistic_regression', 'elastic_net', 'knn', 'decision_tree',
    'random_forest', 'lightgbm', 'xgboost',
)

# Grids are keyed with the pipeline step prefix so they can be handed to
# GridSearchCV or Pipeline.set_params directly.
DEFAULT_PARAM_GRIDS: Dict[str, Dict[str, List[Any]]] = {
    'logistic_regression': {
        'model__C': [0.01, 0.1, 1.0, 10.0],
    },
    'elastic_net': {
        # l1_ratio is glmnet's alpha, C is the inverse of its lambda
        'model__l1_ratio': [0.0, 0.25, 0.5, 0.75, 1.0],
        'model__C': [float(c) for c in np.logspace(-3, 1, 5)],
    },
    'knn': {
        'model__n_neighbors': [3, 5, 7, 9, 11, 15],
        'model__weights': ['uniform', 'distance'],
    },
    'decision_tree': {
        'model__max_depth': [3, 5, 8, None],
        'model__min_samples_leaf': [1, 5, 20],
        'model__ccp_alpha': [0.0, 0.001, 0.01],
    },
    'random_forest': {
        'model__n_estimators': [200, 500],
        'model__max_features': ['sqrt', 0.5],
        'model__min_samples_leaf': [1, 5],
    },
    'lightgbm': {
        'model__n_estimators': [200, 500],
        'model__num_leaves': [15, 31, 63],
        'model__learning_rate': [0.03, 0.1],
    },
    'xgboost': {
        'model__n_estimators': [200, 500],
        'model__max_depth': [3, 6],
        'model__learning_rate': [0.03, 0.1],
    },
}


def create_model(algorithm: str, params: Optional[Dict[str, Any]] = None, random_state: int = 42):
    """Instantiate the classifier for ``algorithm`` with ``params`` layered on top of defaults."""
    params = dict(params or {})
    logger.info(f"Creating model: {algorithm}")

    if algorithm == 'logistic_regression':
        return LogisticRegression(**{'max_iter': 1000, **params})

    if algorithm == 'elastic_net':
        defaults = {
            'solver': 'saga',
            'l1_ratio': 0.5,
            'C': 1.0,
            'max_iter': 5000,
            'random_state': random_state,
        }
        if LEGACY_PENALTY:
            defaults['penalty'] = 'elasticnet'
        return LogisticRegression(**{**defaults, **params})

    if algorithm == 'knn':
        return KNeighborsClassifier(**{'n_neighbors': 5, **params})

    if algorithm == 'decision_tree':
        return DecisionTreeClassifier(**{'random_state': random_state, **params})

    if algorithm == 'random_forest':
        defaults = {'n_estimators': 500, 'random_state': random_state, 'n_jobs': -1}
        return RandomForestClassifier(**{**defaults, **params})

    if algorithm == 'lightgbm':
        defaults = {'objective': 'binary', 'random_state': random_state, 'n_jobs': -1, 'verbose': -1}
        return lgb.LGBMClassifier(**{**defaults, **params})

    if algorithm == 'xgboost':
        defaults = {
            'random_state': random_state,
            'n_jobs': -1,
            'tree_method': 'hist',
            'eval_metric': 'logloss',
        }
        return xgb.XGBClassifier(**{**defaults, **params})

    raise ValueError(f"Unknown algorithm: {algorithm}")


def suggest_params(trial: optuna.Trial, algorithm: str) -> Dict[str, Any]:
    """Optuna search space for ``algorithm``, keyed with the ``model__`` prefix."""
    if algorithm == 'logistic_regression':
        return {'model__C': trial.suggest_float('C', 1e-3, 100.0, log=True)}

    if algorithm == 'elastic_net':
        return {
            'model__l1_ratio': trial.suggest_float('l1_ratio', 0.0, 1.0),
            'model__C': trial.suggest_float('C', 1e-3, 10.0, log=True),
        }

    if algorithm == 'knn':
        return {
            'model__n_neighbors': trial.suggest_int('n_neighbors', 3, 25, step=2),
            'model__weights': trial.suggest_categorical('weights', ['uniform', 'distance']),
        }

    if algorithm == 'decision_tree':
        return {
            'model__max_depth': trial.suggest_int('max_depth', 2, 12),
            'model__min_samples_leaf': trial.suggest_int('min_samples_leaf', 1, 50),
            'model__ccp_alpha': trial.suggest_float('ccp_alpha', 1e-5, 0.05, log=True),
        }

    if algorithm == 'random_forest':
        return {
            'model__n_estimators': trial.suggest_int('n_estimators', 100, 800, step=100),
            'model__max_features': trial.suggest_float('max_features', 0.1, 1.0),
            'model__min_samples_leaf': trial.suggest_int('min_samples_leaf', 1, 20),
        }

    if algorithm == 'lightgbm':
        return {
            'model__n_estimators': trial.suggest_int('n_estimators', 100, 1000, step=100),
            'model__num_leaves': trial.suggest_int('num_leaves', 8, 128),
            'model__learning_rate': trial.suggest_float('learning_rate', 1e-3, 0.2, log=True),
            'model__min_child_samples': trial.suggest_int('min_child_samples', 5, 100),
        }

    if algorithm == 'xgboost':
        return {
            'model__n_estimators': trial.suggest_int('n_estimators', 100, 1000, step=100),
            'model__max_depth': trial.suggest_int('max_depth', 2, 10),
            'model__learning_rate': trial.suggest_float('learning_rate', 1e-3, 0.2, log=True),
            'model__subsample': trial.suggest_float('subsample', 0.6, 1.0),
        }

    raise ValueError(f"Unknown algorithm: {algorithm}")
