"""
Feature Engineering Pipeline

This module handles categorical encoding and assembles the preprocessing
recipe (imputation, dummy encoding, scaling) used in front of every model.
"""

import pandas as pd
import numpy as np
import logging
import time
from typing import Dict, List, Optional, Union, Any
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import OneHotEncoder, OrdinalEncoder

from .preprocessing import MissingValueHandler, DataScaler, split_feature_types

logger = logging.getLogger(__name__)


class CategoricalEncoder(BaseEstimator, TransformerMixin):
    """Encode text columns as dummy variables or integer codes."""

    def __init__(self,
                 method: str = 'one_hot',
                 categories: Union[str, Dict[str, List[str]]] = 'auto'):
        """
        Initialize categorical encoder.

        Args:
            method: Encoding method ('one_hot', 'label_encoding')
            categories: 'auto' to learn levels from the data, or a mapping of
                column name to its fixed list of levels
        """
        self.method = method
        self.categories = categories

    def _levels_for(self, X: pd.DataFrame) -> Union[str, List[List[str]]]:
        if self.categories == 'auto' or not self.categories:
            return 'auto'
        levels = []
        for feature in self.categorical_features_:
            known = self.categories.get(feature)
            if known is None:
                known = sorted(X[feature].astype(str).unique().tolist())
            levels.append(list(known))
        return levels

    def fit(self, X: pd.DataFrame, y: Optional[pd.Series] = None):
        """Fit the categorical encoder."""
        start_time = time.time()
        logger.info(f"Fitting categorical encoder with method: {self.method}")

        _, self.categorical_features_ = split_feature_types(X)
        self.encoder_ = None

        if self.categorical_features_:
            levels = self._levels_for(X)
            if self.method == 'one_hot':
                self.encoder_ = OneHotEncoder(
                    categories=levels, handle_unknown='ignore', sparse_output=False
                )
            elif self.method == 'label_encoding':
                self.encoder_ = OrdinalEncoder(
                    categories=levels, handle_unknown='use_encoded_value', unknown_value=-1
                )
            else:
                raise ValueError(f"Unknown encoding method: {self.method}")

            self.encoder_.fit(X[self.categorical_features_].astype(str))

        elapsed_time = time.time() - start_time
        logger.info(f"Fitted categorical encoder for {len(self.categorical_features_)} features in {elapsed_time:.2f} seconds")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Transform categorical features."""
        if self.encoder_ is None:
            return X.copy()

        encoded = self.encoder_.transform(X[self.categorical_features_].astype(str))

        if self.method == 'one_hot':
            dummy_names = list(self.encoder_.get_feature_names_out(self.categorical_features_))
            dummies = pd.DataFrame(encoded.astype(int), columns=dummy_names, index=X.index)
            return pd.concat([X.drop(columns=self.categorical_features_), dummies], axis=1)

        X_transformed = X.copy()
        X_transformed[self.categorical_features_] = pd.DataFrame(
            encoded.astype(int), columns=self.categorical_features_, index=X.index
        )
        return X_transformed

    def get_feature_names_out(self, input_features=None):
        """Get names of the columns produced for categorical features."""
        if self.encoder_ is None:
            return np.array([], dtype=object)
        if self.method == 'one_hot':
            return self.encoder_.get_feature_names_out(self.categorical_features_)
        return np.asarray(self.categorical_features_, dtype=object)


def create_preprocessing_pipeline(config: Dict,
                                  categories: Union[str, Dict[str, List[str]]] = 'auto') -> List[Any]:
    """Create the preprocessing recipe from configuration.

    Returns an ordered list of transformers: imputation, categorical
    encoding, then scaling when enabled.
    """
    pipeline_steps = []
    start_time = time.time()
    fe_config = config.get('feature_engineering', {})

    # Missing value handling (must come first)
    mv_config = fe_config.get('missing_values', {})
    pipeline_steps.append(MissingValueHandler(
        numeric_strategy=mv_config.get('numeric_strategy', 'median'),
        categorical_strategy=mv_config.get('categorical_strategy', 'most_frequent'),
        n_neighbors=mv_config.get('n_neighbors', 5),
        add_indicator=mv_config.get('add_indicator', False)
    ))

    encoding_config = fe_config.get('categorical_encoding', {})
    pipeline_steps.append(CategoricalEncoder(
        method=encoding_config.get('method', 'one_hot'),
        categories=categories
    ))

    # Scaling AFTER encoding
    scaling_config = fe_config.get('scaling', {})
    if scaling_config.get('enabled', True):
        pipeline_steps.append(DataScaler(method=scaling_config.get('method', 'standard')))

    elapsed_time = time.time() - start_time
    logger.info(f"Created preprocessing pipeline with {len(pipeline_steps)} steps in {elapsed_time:.2f} seconds")
    return pipeline_steps
