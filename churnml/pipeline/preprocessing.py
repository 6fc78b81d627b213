"""
Data preprocessing utilities for cleaning, missing values, scaling, and validation.
"""

import pandas as pd
import numpy as np
import logging
import time
from typing import Dict, List
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import StandardScaler, MinMaxScaler, RobustScaler
from sklearn.impute import SimpleImputer, KNNImputer

logger = logging.getLogger(__name__)

# Option sets shared by cleaning, validation, encoding and the serving layer
INTERNET_ADDON_OPTIONS = ['No', 'No internet service', 'Yes']

TELCO_CATEGORIES: Dict[str, List[str]] = {
    'multiple_lines': ['No', 'No phone service', 'Yes'],
    'internet_service': ['DSL', 'Fiber optic', 'No'],
    'online_security': INTERNET_ADDON_OPTIONS,
    'online_backup': INTERNET_ADDON_OPTIONS,
    'device_protection': INTERNET_ADDON_OPTIONS,
    'tech_support': INTERNET_ADDON_OPTIONS,
    'streaming_tv': INTERNET_ADDON_OPTIONS,
    'streaming_movies': INTERNET_ADDON_OPTIONS,
    'contract': ['Month-to-month', 'One year', 'Two year'],
    'payment_method': ['Bank transfer', 'Credit card', 'Electronic check', 'Mailed check'],
}

TELCO_BINARY_FEATURES = [
    'female', 'senior_citizen', 'partner', 'dependents',
    'phone_service', 'paperless_billing',
]

TELCO_NUMERIC_FEATURES = ['tenure', 'monthly_charges', 'total_charges']

TELCO_RAW_COLUMNS = {
    'customerID': 'customer_id',
    'SeniorCitizen': 'senior_citizen',
    'Partner': 'partner',
    'Dependents': 'dependents',
    'tenure': 'tenure',
    'PhoneService': 'phone_service',
    'MultipleLines': 'multiple_lines',
    'InternetService': 'internet_service',
    'OnlineSecurity': 'online_security',
    'OnlineBackup': 'online_backup',
    'DeviceProtection': 'device_protection',
    'TechSupport': 'tech_support',
    'StreamingTV': 'streaming_tv',
    'StreamingMovies': 'streaming_movies',
    'Contract': 'contract',
    'PaperlessBilling': 'paperless_billing',
    'PaymentMethod': 'payment_method',
    'MonthlyCharges': 'monthly_charges',
    'TotalCharges': 'total_charges',
    'Churn': 'churn',
}

CREDITCARD_FEATURES = ['time'] + [f'v{i}' for i in range(1, 29)] + ['amount']


def _yes_no_to_int(series: pd.Series) -> pd.Series:
    """Map Yes/No text (or already-numeric flags) to 0/1."""
    if pd.api.types.is_numeric_dtype(series):
        return series.astype('Int64') if series.isnull().any() else series.astype(int)
    mapped = series.astype(str).str.strip().str.lower().map({'yes': 1, 'no': 0, '1': 1, '0': 0})
    return mapped.astype('Int64') if mapped.isnull().any() else mapped.astype(int)


def clean_telco_data(df: pd.DataFrame) -> pd.DataFrame:
    """Convert raw telco churn records into the snake_case modelling schema.

    Frames that already use the clean schema pass through unchanged apart
    from dtype coercion, so the function is safe to call twice.
    """
    start_time = time.time()
    logger.info("Cleaning telco churn data...")

    cleaned = df.rename(columns=TELCO_RAW_COLUMNS).copy()

    if 'gender' in cleaned.columns:
        cleaned['female'] = (cleaned['gender'].astype(str).str.strip() == 'Female').astype(int)
        cleaned = cleaned.drop(columns=['gender'])

    for col in TELCO_BINARY_FEATURES + ['churn']:
        if col in cleaned.columns:
            cleaned[col] = _yes_no_to_int(cleaned[col])

    # TotalCharges is blank for brand new customers
    for col in TELCO_NUMERIC_FEATURES:
        if col in cleaned.columns:
            cleaned[col] = pd.to_numeric(cleaned[col], errors='coerce')

    if 'payment_method' in cleaned.columns:
        cleaned['payment_method'] = cleaned['payment_method'].str.replace(
            ' (automatic)', '', regex=False
        )

    for col in TELCO_CATEGORIES:
        if col in cleaned.columns:
            cleaned[col] = cleaned[col].astype(object).where(cleaned[col].notna(), np.nan)

    elapsed_time = time.time() - start_time
    logger.info(f"Cleaned {len(cleaned)} telco records "
                f"({int(cleaned['total_charges'].isnull().sum()) if 'total_charges' in cleaned else 0} "
                f"blank total_charges) in {elapsed_time:.2f} seconds")
    return cleaned


def clean_creditcard_data(df: pd.DataFrame) -> pd.DataFrame:
    """Lower-case credit card transaction columns and check they are numeric."""
    cleaned = df.rename(columns={col: col.lower() for col in df.columns}).copy()

    non_numeric = [col for col in CREDITCARD_FEATURES + ['class']
                   if col in cleaned.columns and not pd.api.types.is_numeric_dtype(cleaned[col])]
    for col in non_numeric:
        cleaned[col] = pd.to_numeric(cleaned[col], errors='coerce')
    if non_numeric:
        logger.warning(f"Coerced non-numeric credit card columns: {non_numeric}")

    if 'class' in cleaned.columns:
        cleaned['class'] = cleaned['class'].astype(int)

    logger.info(f"Cleaned {len(cleaned)} credit card transactions")
    return cleaned


def split_feature_types(X: pd.DataFrame):
    """Return (numeric, categorical) column lists; anything non-numeric is categorical."""
    numeric = X.select_dtypes(include=[np.number, 'bool']).columns.tolist()
    categorical = [col for col in X.columns if col not in numeric]
    return numeric, categorical


class MissingValueHandler(BaseEstimator, TransformerMixin):
    """Handle missing values with different strategies for numeric and categorical features."""

    def __init__(self,
                 numeric_strategy: str = 'median',
                 categorical_strategy: str = 'most_frequent',
                 n_neighbors: int = 5,
                 add_indicator: bool = False):
        """
        Initialize missing value handler.

        Args:
            numeric_strategy: Strategy for numeric features ('mean', 'median', 'constant', 'knn')
            categorical_strategy: Strategy for categorical features ('most_frequent', 'constant')
            n_neighbors: Neighbours used by the KNN imputer
            add_indicator: Whether to add binary indicator for missing values
        """
        self.numeric_strategy = numeric_strategy
        self.categorical_strategy = categorical_strategy
        self.n_neighbors = n_neighbors
        self.add_indicator = add_indicator

    def _numeric_imputer(self):
        if self.numeric_strategy == 'knn':
            return KNNImputer(n_neighbors=self.n_neighbors, keep_empty_features=True)
        if self.numeric_strategy in ('mean', 'median'):
            return SimpleImputer(strategy=self.numeric_strategy, keep_empty_features=True)
        if self.numeric_strategy == 'constant':
            return SimpleImputer(strategy='constant', fill_value=0, keep_empty_features=True)
        raise ValueError(f"Unknown numeric imputation strategy: {self.numeric_strategy}")

    def _categorical_imputer(self):
        if self.categorical_strategy == 'most_frequent':
            return SimpleImputer(strategy='most_frequent', keep_empty_features=True)
        if self.categorical_strategy == 'constant':
            return SimpleImputer(strategy='constant', fill_value='missing', keep_empty_features=True)
        raise ValueError(f"Unknown categorical imputation strategy: {self.categorical_strategy}")

    @staticmethod
    def _as_object(X: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
        block = X[columns].astype(object)
        return block.where(block.notna(), np.nan)

    def fit(self, X: pd.DataFrame, y=None):
        """Fit the missing value handler."""
        start_time = time.time()
        logger.info(f"Fitting missing value handler (numeric={self.numeric_strategy})...")

        self.numeric_features_, self.categorical_features_ = split_feature_types(X)
        self.numeric_imputer_ = None
        self.categorical_imputer_ = None

        if self.numeric_features_:
            self.numeric_imputer_ = self._numeric_imputer()
            self.numeric_imputer_.fit(X[self.numeric_features_].astype(float))

        if self.categorical_features_:
            self.categorical_imputer_ = self._categorical_imputer()
            self.categorical_imputer_.fit(self._as_object(X, self.categorical_features_))

        self.missing_indicators_ = []
        if self.add_indicator:
            self.missing_indicators_ = [col for col in X.columns if X[col].isnull().any()]

        elapsed_time = time.time() - start_time
        logger.info(f"Fitted missing value handler for {len(self.numeric_features_)} numeric "
                    f"and {len(self.categorical_features_)} categorical features in {elapsed_time:.2f} seconds")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Transform by handling missing values."""
        X_transformed = X.copy()

        # Indicators are computed before imputation
        for col in self.missing_indicators_:
            if col in X_transformed.columns:
                X_transformed[f'{col}_was_missing'] = X_transformed[col].isnull().astype(int)

        if self.numeric_imputer_ is not None:
            imputed = self.numeric_imputer_.transform(X_transformed[self.numeric_features_].astype(float))
            X_transformed[self.numeric_features_] = pd.DataFrame(
                imputed, columns=self.numeric_features_, index=X_transformed.index
            )

        if self.categorical_imputer_ is not None:
            imputed = self.categorical_imputer_.transform(self._as_object(X_transformed, self.categorical_features_))
            X_transformed[self.categorical_features_] = pd.DataFrame(
                imputed, columns=self.categorical_features_, index=X_transformed.index
            )

        return X_transformed


class DataValidator:
    """Validate data quality and consistency."""

    def __init__(self):
        self.validation_rules = {}

    def add_rule(self, feature: str, rule_type: str, **kwargs):
        """Add validation rule for a feature."""
        if feature not in self.validation_rules:
            self.validation_rules[feature] = []

        self.validation_rules[feature].append({
            'type': rule_type,
            'params': kwargs
        })

    def validate(self, df: pd.DataFrame) -> Dict[str, List[str]]:
        """Validate dataframe against rules."""
        violations = {}

        for feature, rules in self.validation_rules.items():
            if feature not in df.columns:
                continue

            feature_violations = []

            for rule in rules:
                if rule['type'] == 'range':
                    min_val = rule['params'].get('min')
                    max_val = rule['params'].get('max')

                    if min_val is not None:
                        violation_count = (df[feature] < min_val).sum()
                        if violation_count > 0:
                            feature_violations.append(f"{violation_count} values below minimum {min_val}")

                    if max_val is not None:
                        violation_count = (df[feature] > max_val).sum()
                        if violation_count > 0:
                            feature_violations.append(f"{violation_count} values above maximum {max_val}")

                elif rule['type'] == 'categorical':
                    allowed_values = rule['params'].get('allowed_values', [])
                    # Missing values are the missing_rate rule's concern
                    invalid_mask = df[feature].notna() & ~df[feature].isin(allowed_values)
                    violation_count = invalid_mask.sum()

                    if violation_count > 0:
                        feature_violations.append(f"{violation_count} invalid categorical values")

                elif rule['type'] == 'missing_rate':
                    max_missing_rate = rule['params'].get('max_rate', 0.1)
                    missing_rate = df[feature].isnull().mean()

                    if missing_rate > max_missing_rate:
                        feature_violations.append(f"Missing rate {missing_rate:.2%} exceeds {max_missing_rate:.2%}")

            if feature_violations:
                violations[feature] = feature_violations

        return violations

    def setup_telco_rules(self):
        """Setup validation rules for cleaned telco churn data."""
        self.add_rule('tenure', 'range', min=0, max=120)
        self.add_rule('monthly_charges', 'range', min=0, max=500)
        self.add_rule('total_charges', 'range', min=0, max=50000)

        for feature in TELCO_BINARY_FEATURES + ['churn']:
            self.add_rule(feature, 'categorical', allowed_values=[0, 1])

        for feature, options in TELCO_CATEGORIES.items():
            self.add_rule(feature, 'categorical', allowed_values=options)

        # Blank total_charges rows are expected, only a handful though
        self.add_rule('total_charges', 'missing_rate', max_rate=0.05)
        for feature in ['customer_id', 'tenure', 'contract', 'churn']:
            self.add_rule(feature, 'missing_rate', max_rate=0.01)

    def setup_creditcard_rules(self):
        """Setup validation rules for credit card transaction data."""
        self.add_rule('time', 'range', min=0)
        self.add_rule('amount', 'range', min=0)
        self.add_rule('class', 'categorical', allowed_values=[0, 1])

        for feature in CREDITCARD_FEATURES + ['class']:
            self.add_rule(feature, 'missing_rate', max_rate=0.01)


class DataScaler(BaseEstimator, TransformerMixin):
    """Scale numeric features while preserving categorical features."""

    def __init__(self, method: str = 'standard'):
        """
        Initialize scaler.

        Args:
            method: Scaling method ('standard', 'minmax', 'robust')
        """
        self.method = method

    def fit(self, X: pd.DataFrame, y=None):
        """Fit the scaler."""
        start_time = time.time()
        logger.info(f"Fitting data scaler with method: {self.method}")

        self.numeric_features_, _ = split_feature_types(X)

        if self.method == 'standard':
            self.scaler_ = StandardScaler()
        elif self.method == 'minmax':
            self.scaler_ = MinMaxScaler()
        elif self.method == 'robust':
            self.scaler_ = RobustScaler()
        else:
            raise ValueError(f"Unknown scaling method: {self.method}")

        if self.numeric_features_:
            self.scaler_.fit(X[self.numeric_features_].astype(float))

        elapsed_time = time.time() - start_time
        logger.info(f"Fitted scaler for {len(self.numeric_features_)} numeric features in {elapsed_time:.2f} seconds")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Transform by scaling numeric features."""
        X_transformed = X.copy()

        if self.numeric_features_:
            scaled = self.scaler_.transform(X_transformed[self.numeric_features_].astype(float))
            X_transformed[self.numeric_features_] = pd.DataFrame(
                scaled, columns=self.numeric_features_, index=X_transformed.index
            )

        return X_transformed
