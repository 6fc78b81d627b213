"""
Hyperparameter search: grid search, random search and Optuna.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import optuna
from optuna.samplers import TPESampler
from sklearn.base import clone
from sklearn.model_selection import GridSearchCV, RandomizedSearchCV, cross_val_score

from .models import DEFAULT_PARAM_GRIDS, suggest_params

logger = logging.getLogger(__name__)

SEARCH_METHODS = ('grid', 'random', 'optuna')


@dataclass
class SearchResult:
    """Outcome of a hyperparameter search."""
    best_params: Dict[str, Any]
    best_score: float
    results: pd.DataFrame


class HyperparameterSearch:
    """Tune a pipeline's ``model__*`` parameters with cross-validation."""

    def __init__(self,
                 method: str = 'grid',
                 scoring: str = 'roc_auc',
                 n_iter: int = 20,
                 cv: Any = 5,
                 random_state: int = 42,
                 n_jobs: Optional[int] = None):
        if method not in SEARCH_METHODS:
            raise ValueError(f"Unknown search method: {method}. Expected one of {SEARCH_METHODS}")
        self.method = method
        self.scoring = scoring
        self.n_iter = n_iter
        self.cv = cv
        self.random_state = random_state
        self.n_jobs = n_jobs

    def search(self,
               pipeline,
               X: pd.DataFrame,
               y: pd.Series,
               algorithm: str,
               param_grid: Optional[Dict[str, List[Any]]] = None) -> SearchResult:
        """Run the search and return the best ``model__`` parameters."""
        start_time = time.time()
        logger.info(f"[Tuning] {self.method} search for {algorithm} (scoring={self.scoring})")

        if self.method == 'optuna':
            result = self._optuna_search(pipeline, X, y, algorithm)
        else:
            grid = param_grid or DEFAULT_PARAM_GRIDS.get(algorithm)
            if not grid:
                raise ValueError(f"No parameter grid available for algorithm: {algorithm}")
            result = self._sklearn_search(pipeline, X, y, grid)

        elapsed_time = time.time() - start_time
        logger.info(f"[Tuning] Best {self.scoring}: {result.best_score:.4f} with {result.best_params} "
                    f"({len(result.results)} candidates in {elapsed_time:.2f} seconds)")
        return result

    def _sklearn_search(self, pipeline, X, y, grid: Dict[str, List[Any]]) -> SearchResult:
        if self.method == 'grid':
            searcher = GridSearchCV(
                pipeline, grid, scoring=self.scoring, cv=self.cv, n_jobs=self.n_jobs, refit=False
            )
        else:
            searcher = RandomizedSearchCV(
                pipeline, grid, n_iter=self.n_iter, scoring=self.scoring, cv=self.cv,
                n_jobs=self.n_jobs, refit=False, random_state=self.random_state
            )
        searcher.fit(X, y)

        cv_results = searcher.cv_results_
        results = pd.DataFrame(list(cv_results['params']))
        results['mean_score'] = cv_results['mean_test_score']
        results['std_score'] = cv_results['std_test_score']
        results = results.sort_values('mean_score', ascending=False).reset_index(drop=True)

        return SearchResult(
            best_params=dict(searcher.best_params_),
            best_score=float(searcher.best_score_),
            results=results,
        )

    def _optuna_search(self, pipeline, X, y, algorithm: str) -> SearchResult:
        optuna.logging.set_verbosity(optuna.logging.WARNING)

        def objective(trial: optuna.Trial) -> float:
            params = suggest_params(trial, algorithm)
            trial.set_user_attr('pipeline_params', params)
            candidate = clone(pipeline).set_params(**params)
            scores = cross_val_score(candidate, X, y, scoring=self.scoring, cv=self.cv, n_jobs=self.n_jobs)
            trial.set_user_attr('std_score', float(np.std(scores)))
            return float(np.mean(scores))

        study = optuna.create_study(
            direction='maximize',
            sampler=TPESampler(seed=self.random_state),
            study_name=f'{algorithm}_tuning',
        )
        study.optimize(objective, n_trials=self.n_iter, show_progress_bar=False)

        rows = []
        for trial in study.trials:
            if trial.value is None:
                continue
            row = dict(trial.user_attrs.get('pipeline_params', {}))
            row['mean_score'] = trial.value
            row['std_score'] = trial.user_attrs.get('std_score', np.nan)
            rows.append(row)
        results = pd.DataFrame(rows).sort_values('mean_score', ascending=False).reset_index(drop=True)

        return SearchResult(
            best_params=dict(study.best_trial.user_attrs['pipeline_params']),
            best_score=float(study.best_value),
            results=results,
        )
