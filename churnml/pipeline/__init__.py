"""Pipeline utilities and shared components."""

from .feature_engineering import (
    CategoricalEncoder,
    create_preprocessing_pipeline
)

from .preprocessing import (
    MissingValueHandler,
    DataValidator,
    DataScaler,
    clean_telco_data,
    clean_creditcard_data,
    split_feature_types,
)
from .inspection import DataInspector
from .resampling import create_sampler
from .models import create_model, DEFAULT_PARAM_GRIDS
from .tuning import HyperparameterSearch, SearchResult

__all__ = [
    'CategoricalEncoder',
    'create_preprocessing_pipeline',
    'MissingValueHandler',
    'DataValidator',
    'DataScaler',
    'clean_telco_data',
    'clean_creditcard_data',
    'split_feature_types',
    'DataInspector',
    'create_sampler',
    'create_model',
    'DEFAULT_PARAM_GRIDS',
    'HyperparameterSearch',
    'SearchResult',
]
