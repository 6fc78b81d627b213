"""Synthetic dataset generators."""

from .generate_churn_data import TelcoChurnGenerator, CreditCardGenerator, generate_and_save

__all__ = ['TelcoChurnGenerator', 'CreditCardGenerator', 'generate_and_save']
