"""
Synthetic Churn and Credit Card Data Generators

Produces data in the same raw shape as the public telco customer churn
CSV and the credit card fraud CSV so the course pipeline can run end to end
without downloading either dataset.
"""

import pandas as pd
import numpy as np
import argparse
from pathlib import Path
from typing import Dict, Optional
from faker import Faker
import logging
from tqdm import tqdm

logger = logging.getLogger(__name__)

INTERNET_ADDONS = ['OnlineSecurity', 'OnlineBackup', 'DeviceProtection',
                   'TechSupport', 'StreamingTV', 'StreamingMovies']

RAW_PAYMENT_METHODS = ['Electronic check', 'Mailed check',
                       'Bank transfer (automatic)', 'Credit card (automatic)']


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


class TelcoChurnGenerator:
    """Generate synthetic telco customer records with a churn label."""

    def __init__(self, seed: int = 42):
        """Initialize the generator with a random seed.

        Args:
            seed: Random seed for reproducibility
        """
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

    def _customer_id(self) -> str:
        # Same shape as the public dataset, e.g. 7590-VHVEG
        return self.fake.bothify('####-?????', letters='ABCDEFGHIJKLMNOPQRSTUVWXYZ')

    def generate_dataset(self, num_customers: int, churn_rate: float = 0.265) -> pd.DataFrame:
        """Generate ``num_customers`` raw telco records.

        Args:
            num_customers: Number of customer rows
            churn_rate: Approximate share of churned customers
        """
        rng = self.rng
        n = num_customers
        logger.info(f"Generating {n} telco customers (target churn rate {churn_rate:.1%})")

        gender = rng.choice(['Female', 'Male'], size=n)
        senior = (rng.random(n) < 0.16).astype(int)
        partner = rng.random(n) < 0.48
        dependents = np.where(partner, rng.random(n) < 0.5, rng.random(n) < 0.1)

        contract = rng.choice(['Month-to-month', 'One year', 'Two year'], size=n, p=[0.55, 0.21, 0.24])
        tenure_scale = np.select([contract == 'Month-to-month', contract == 'One year'], [12, 36], 55)
        tenure = np.clip(rng.exponential(tenure_scale), 1, 72).round().astype(int)
        # A few brand new customers, which is where the blank TotalCharges come from
        tenure[rng.random(n) < 0.002] = 0

        phone_service = rng.random(n) < 0.9
        multiple_lines = np.where(
            phone_service, rng.choice(['No', 'Yes'], size=n, p=[0.53, 0.47]), 'No phone service'
        )
        internet = rng.choice(['DSL', 'Fiber optic', 'No'], size=n, p=[0.34, 0.44, 0.22])

        addons = {}
        for addon in INTERNET_ADDONS:
            addons[addon] = np.where(
                internet == 'No', 'No internet service', rng.choice(['No', 'Yes'], size=n, p=[0.6, 0.4])
            )

        paperless = rng.random(n) < 0.59
        payment = rng.choice(RAW_PAYMENT_METHODS, size=n, p=[0.34, 0.23, 0.22, 0.21])

        monthly = (
            20.0
            + 5.0 * phone_service
            + 10.0 * (multiple_lines == 'Yes')
            + np.select([internet == 'DSL', internet == 'Fiber optic'], [25.0, 50.0], 0.0)
            + sum(5.0 * (addons[a] == 'Yes') for a in INTERNET_ADDONS)
            + rng.normal(0, 3, n)
        ).clip(18.25, 118.75).round(2)
        total = (monthly * tenure * rng.normal(1.0, 0.03, n)).round(2)

        # Churn driven by the usual suspects: short tenure, month-to-month,
        # fiber optic and electronic check payments
        logit = (
            -1.6
            + 1.4 * (contract == 'Month-to-month')
            - 1.0 * (contract == 'Two year')
            - 0.035 * tenure
            + 0.8 * (internet == 'Fiber optic')
            + 0.6 * (payment == 'Electronic check')
            + 0.3 * senior
            + 0.3 * paperless
            - 0.4 * (addons['TechSupport'] == 'Yes')
            - 0.3 * (addons['OnlineSecurity'] == 'Yes')
        )
        proba = _sigmoid(logit)
        # Shift the intercept so the realised rate lands near churn_rate
        proba = np.clip(proba * churn_rate / max(proba.mean(), 1e-6), 0.0, 0.98)
        churn = rng.random(n) < proba

        customer_ids = [self._customer_id() for _ in tqdm(range(n), desc="Customer IDs", disable=n < 10000)]

        yes_no = lambda arr: np.where(arr, 'Yes', 'No')
        df = pd.DataFrame({
            'customerID': customer_ids,
            'gender': gender,
            'SeniorCitizen': senior,
            'Partner': yes_no(partner),
            'Dependents': yes_no(dependents),
            'tenure': tenure,
            'PhoneService': yes_no(phone_service),
            'MultipleLines': multiple_lines,
            'InternetService': internet,
            **addons,
            'Contract': contract,
            'PaperlessBilling': yes_no(paperless),
            'PaymentMethod': payment,
            'MonthlyCharges': monthly,
            'TotalCharges': np.where(tenure == 0, ' ', total.astype(str)),
            'Churn': yes_no(churn),
        })

        logger.info(f"Generated telco dataset: {df.shape}, churn rate {churn.mean():.3f}")
        return df


class CreditCardGenerator:
    """Generate synthetic PCA-style credit card transactions with a fraud label."""

    def __init__(self, seed: int = 42, n_components: int = 28):
        self.seed = seed
        self.n_components = n_components
        self.rng = np.random.default_rng(seed)
        # Fraud shifts a handful of components, as in the real data
        self.fraud_shift = np.zeros(n_components)
        informative = self.rng.choice(n_components, size=min(8, n_components), replace=False)
        self.fraud_shift[informative] = self.rng.choice([-1, 1], size=len(informative)) * self.rng.uniform(
            1.5, 4.0, size=len(informative)
        )

    def generate_dataset(self, num_transactions: int, fraud_rate: float = 0.0017) -> pd.DataFrame:
        """Generate ``num_transactions`` rows with columns Time, V1..V28, Amount, Class."""
        rng = self.rng
        n = num_transactions
        logger.info(f"Generating {n} credit card transactions (fraud rate {fraud_rate:.2%})")

        fraud = rng.random(n) < fraud_rate
        # Guarantee both classes exist in small samples
        if n >= 2 and not fraud.any():
            fraud[rng.integers(n)] = True

        components = rng.normal(0.0, 1.0, size=(n, self.n_components))
        components[fraud] += self.fraud_shift

        time_seconds = np.sort(rng.uniform(0, 172800, n)).round()
        amount = np.where(
            fraud, rng.exponential(120.0, n), rng.lognormal(mean=3.0, sigma=1.3, size=n)
        ).round(2)

        df = pd.DataFrame(components, columns=[f'V{i}' for i in range(1, self.n_components + 1)])
        df.insert(0, 'Time', time_seconds)
        df['Amount'] = amount
        df['Class'] = fraud.astype(int)

        logger.info(f"Generated credit card dataset: {df.shape}, {int(fraud.sum())} fraudulent")
        return df


def generate_and_save(dataset: str, num_records: int, output_dir: str,
                      seed: int = 42, file_format: str = 'csv',
                      rate: Optional[float] = None) -> Path:
    """Generate a dataset and write it to ``output_dir``; returns the file path."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    if dataset == 'telco':
        kwargs: Dict[str, float] = {'churn_rate': rate} if rate is not None else {}
        df = TelcoChurnGenerator(seed=seed).generate_dataset(num_records, **kwargs)
        stem = 'telco_churn'
    elif dataset == 'creditcard':
        kwargs = {'fraud_rate': rate} if rate is not None else {}
        df = CreditCardGenerator(seed=seed).generate_dataset(num_records, **kwargs)
        stem = 'creditcard'
    else:
        raise ValueError(f"Unknown dataset: {dataset}")

    if file_format == 'csv':
        path = out_dir / f'{stem}.csv'
        df.to_csv(path, index=False)
    elif file_format == 'parquet':
        path = out_dir / f'{stem}.parquet'
        df.to_parquet(path, index=False)
    else:
        raise ValueError(f"Unknown file format: {file_format}")

    logger.info(f"Saved {len(df)} rows to {path}")
    return path


def main():
    """Main function for data generation."""
    parser = argparse.ArgumentParser(description="Generate synthetic churn / credit card data")
    parser.add_argument("--dataset", choices=['telco', 'creditcard'], default='telco',
                        help="Which dataset to generate")
    parser.add_argument("--num_records", type=int, default=7043,
                        help="Number of rows to generate")
    parser.add_argument("--output_dir", type=str, default="./data/raw",
                        help="Output directory")
    parser.add_argument("--format", dest="file_format", choices=['csv', 'parquet'], default='csv',
                        help="Output file format")
    parser.add_argument("--rate", type=float, default=None,
                        help="Churn rate (telco) or fraud rate (creditcard)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    path = generate_and_save(args.dataset, args.num_records, args.output_dir,
                             seed=args.seed, file_format=args.file_format, rate=args.rate)
    print("Data written to:", path)


if __name__ == "__main__":
    main()
