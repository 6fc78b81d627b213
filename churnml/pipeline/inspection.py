"""
Exploratory data inspection: shape, types, missing values and class balance.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .preprocessing import split_feature_types

logger = logging.getLogger(__name__)


class DataInspector:
    """Summarise a raw or cleaned dataset before modelling."""

    def __init__(self, target_col: Optional[str] = None, max_levels: int = 20):
        """
        Args:
            target_col: Name of the label column, if present
            max_levels: Text columns with more distinct values than this are
                reported by count only (identifiers, free text)
        """
        self.target_col = target_col
        self.max_levels = max_levels

    def summarize(self, df: pd.DataFrame) -> Dict[str, Any]:
        """Build a plain-dict summary suitable for logging or YAML dumps."""
        numeric, categorical = split_feature_types(df)

        summary: Dict[str, Any] = {
            'n_rows': int(len(df)),
            'n_columns': int(df.shape[1]),
            'dtypes': {col: str(dtype) for col, dtype in df.dtypes.items()},
            'missing': {col: int(count) for col, count in df.isnull().sum().items() if count > 0},
        }

        if numeric:
            described = df[numeric].describe().T
            summary['numeric_summary'] = {
                col: {stat: float(value) for stat, value in row.items()}
                for col, row in described.iterrows()
            }
        else:
            summary['numeric_summary'] = {}

        levels: Dict[str, Any] = {}
        for col in categorical:
            counts = df[col].value_counts(dropna=True)
            if len(counts) > self.max_levels:
                levels[col] = {'n_unique': int(len(counts))}
            else:
                levels[col] = {str(level): int(count) for level, count in counts.items()}
        summary['categorical_levels'] = levels

        if self.target_col and self.target_col in df.columns:
            balance = df[self.target_col].value_counts(normalize=True)
            summary['class_balance'] = {str(level): float(share) for level, share in balance.items()}
            summary['imbalance_ratio'] = self.class_imbalance_ratio(df[self.target_col])

        logger.info(f"Inspected dataset: {summary['n_rows']} rows x {summary['n_columns']} columns, "
                    f"{len(summary['missing'])} columns with missing values")
        if 'class_balance' in summary:
            logger.info(f"Class balance for '{self.target_col}': {summary['class_balance']}")
        return summary

    def missing_value_report(self, df: pd.DataFrame) -> pd.DataFrame:
        """Missing counts and rates for columns that have any, worst first."""
        counts = df.isnull().sum()
        report = pd.DataFrame({
            'missing_count': counts,
            'missing_rate': counts / max(len(df), 1),
        })
        report = report[report['missing_count'] > 0]
        return report.sort_values('missing_count', ascending=False)

    @staticmethod
    def class_imbalance_ratio(y: pd.Series) -> float:
        """Majority class count divided by minority class count."""
        counts = pd.Series(y).value_counts()
        if len(counts) < 2:
            return float(np.inf)
        return float(counts.max() / counts.min())
