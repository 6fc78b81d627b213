"""
Main Training Pipeline
"""

from __future__ import annotations

import warnings
# Solver convergence chatter on tiny folds is expected during CV and tuning
warnings.filterwarnings("ignore", category=UserWarning, module="sklearn")

import argparse
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import dask
import dask.dataframe as dd
import joblib
import numpy as np
import pandas as pd
import yaml
from dask.diagnostics.progress import ProgressBar
from imblearn.pipeline import Pipeline as ImbPipeline
from sklearn.model_selection import (
    RepeatedStratifiedKFold, StratifiedKFold,
    cross_val_predict, cross_validate, train_test_split,
)

from churnml.pipeline.feature_engineering import create_preprocessing_pipeline
from churnml.pipeline.inspection import DataInspector
from churnml.pipeline.models import create_model
from churnml.pipeline.preprocessing import (
    DataValidator, TELCO_CATEGORIES, clean_creditcard_data, clean_telco_data,
)
from churnml.pipeline.resampling import create_sampler
from churnml.pipeline.tuning import HyperparameterSearch
from churnml.utils.experiment_tracking import ExperimentTracker
from churnml.utils.model_utils import ModelComparator, ModelEvaluator, ThresholdOptimizer
from churnml.utils.plotting import plot_confusion_matrix, plot_pr_curve, plot_roc_curve

logger = logging.getLogger(__name__)

CV_SCORING = {
    "roc_auc": "roc_auc",
    "pr_auc": "average_precision",
    "f1": "f1",
    "precision": "precision",
    "recall": "recall",
    "accuracy": "accuracy",
}

DATASET_DEFAULTS = {
    "telco": {"target_col": "churn", "id_col": "customer_id"},
    "creditcard": {"target_col": "class", "id_col": None},
}

# Raw text columns whose blanks sit past Dask's dtype inference sample
CSV_DTYPES = {
    "telco": {"TotalCharges": "object"},
    "creditcard": {},
}


def convert_numpy_types(obj):
    """Convert numpy types to native Python types for YAML serialization."""
    if isinstance(obj, dict):
        return {k: convert_numpy_types(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy_types(v) for v in obj]
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.generic):  # numpy scalar
        return obj.item()
    else:
        return obj


# =====================
# ChurnMLPipeline
# =====================
class ChurnMLPipeline:
    """Load, clean, split, preprocess, fit, evaluate and save a binary classifier."""

    def __init__(self, config: Dict):
        self.config = config
        self.model: Optional[ImbPipeline] = None
        self.feature_names: List[str] = []
        self.input_columns: List[str] = []
        self.best_threshold: float = 0.5
        self.inspection_summary: Dict[str, Any] = {}
        self.comparison_table: Optional[pd.DataFrame] = None
        self.tuning_results: Optional[pd.DataFrame] = None
        self.evaluation: Dict[str, np.ndarray] = {}

        data_cfg = config.get("data", {})
        self.dataset = data_cfg.get("dataset", "telco")
        if self.dataset not in DATASET_DEFAULTS:
            raise ValueError(f"Unknown dataset: {self.dataset}")
        defaults = DATASET_DEFAULTS[self.dataset]
        self.target_col = data_cfg.get("target_col", defaults["target_col"])
        self.id_col = data_cfg.get("id_col", defaults["id_col"])
        self.random_seed = config.get("random_seed", 42)
        self.algorithm = config.get("model", {}).get("algorithm", "elastic_net")

        # trackers & helpers
        self.experiment_tracker = ExperimentTracker(config.get("mlflow", {}))
        self.threshold_optimizer = ThresholdOptimizer(
            method=self.config.get("threshold", {}).get("method", "default")
        )

    # ---------- Data ----------
    def load_data(self, data_path: Union[str, Path]) -> pd.DataFrame:
        """Load parquet or CSV with Dask, falling back to pandas."""
        logger.info(f"Loading data from {data_path} using Dask")
        p = Path(data_path)

        try:
            with dask.config.set({"dataframe.convert-string": False}):
                if p.suffix.lower() == ".csv":
                    header = pd.read_csv(p, nrows=0).columns
                    dtypes = {c: t for c, t in CSV_DTYPES[self.dataset].items() if c in header}
                    ddf = dd.read_csv(p, assume_missing=True, blocksize=None, dtype=dtypes or None)
                else:
                    ddf = dd.read_parquet(p)

                logger.info(f"Dask DataFrame partitions: {ddf.npartitions}")

                sample_frac = float(self.config.get("data", {}).get("sample_fraction", 1.0))
                if sample_frac < 1.0:
                    logger.info(f"Sampling {sample_frac:.1%} of data (pre-compute)")
                    ddf = ddf.sample(frac=sample_frac, random_state=self.random_seed)

                with ProgressBar():
                    df = ddf.compute()

        except Exception as e:
            logger.warning(f"Dask loading failed: {e}. Falling back to pandas.")
            df = pd.read_csv(p) if p.suffix.lower() == ".csv" else pd.read_parquet(p)

        df = df.reset_index(drop=True)
        logger.info(f"Loaded data shape: {df.shape}")
        return df

    def clean_data(self, df: pd.DataFrame) -> pd.DataFrame:
        if self.dataset == "telco":
            return clean_telco_data(df)
        return clean_creditcard_data(df)

    def inspect_data(self, df: pd.DataFrame) -> Dict[str, Any]:
        inspector = DataInspector(target_col=self.target_col)
        self.inspection_summary = inspector.summarize(df)
        report = inspector.missing_value_report(df)
        if not report.empty:
            logger.info(f"Missing values:\n{report}")
        return self.inspection_summary

    def validate_data(self, df: pd.DataFrame) -> Dict[str, List[str]]:
        logger.info("Validating data quality...")
        validator = DataValidator()
        if self.dataset == "telco":
            validator.setup_telco_rules()
        else:
            validator.setup_creditcard_rules()
        violations = validator.validate(df)
        if violations:
            logger.warning(f"Found {len(violations)} data quality issues: {violations}")
        else:
            logger.info("Data validation passed")
        return violations

    def prepare_features(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
        if self.target_col not in df.columns:
            raise ValueError(f"Target column '{self.target_col}' not found")

        df = df[df[self.target_col].notna()]
        y = df[self.target_col].astype(int)

        excluded = [self.target_col] + ([self.id_col] if self.id_col and self.id_col in df.columns else [])
        X = df.drop(columns=excluded)
        logger.info(f"Prepared features: {len(X.columns)} columns (excluded: {excluded})")
        return X, y

    def split_data(self, X: pd.DataFrame, y: pd.Series):
        test_size = self.config.get("data", {}).get("test_size", 0.2)
        X_train, X_test, y_train, y_test = train_test_split(
            X, y, test_size=test_size, stratify=y, random_state=self.random_seed
        )
        logger.info(f"Train/test split: {len(X_train)}/{len(X_test)} rows "
                    f"(train prevalence {y_train.mean():.3f}, test prevalence {y_test.mean():.3f})")
        return X_train, X_test, y_train, y_test

    # ---------- Pipeline ----------
    def _categories(self):
        encoding_cfg = self.config.get("feature_engineering", {}).get("categorical_encoding", {})
        if self.dataset == "telco" and encoding_cfg.get("categories", "fixed") == "fixed":
            return TELCO_CATEGORIES
        return "auto"

    def build_pipeline(self, algorithm: Optional[str] = None,
                       params: Optional[Dict[str, Any]] = None) -> ImbPipeline:
        """Preprocessing recipe, optional resampler, then the classifier."""
        algorithm = algorithm or self.algorithm
        if params is None:
            params = self.config.get("model", {}).get(algorithm, {})

        steps: List[Tuple[str, Any]] = []
        for i, transformer in enumerate(create_preprocessing_pipeline(self.config, self._categories())):
            steps.append((f"step_{i}_{transformer.__class__.__name__.lower()}", transformer))

        sampler = create_sampler(self.config.get("imbalance", {}), random_state=self.random_seed)
        if sampler is not None:
            steps.append(("sampler", sampler))

        steps.append(("model", create_model(algorithm, params, random_state=self.random_seed)))
        return ImbPipeline(steps)

    def create_cv(self):
        cv_cfg = self.config.get("cross_validation", {})
        n_splits = cv_cfg.get("n_splits", 5)
        repeats = cv_cfg.get("repeats", 1)
        if repeats > 1:
            return RepeatedStratifiedKFold(n_splits=n_splits, n_repeats=repeats, random_state=self.random_seed)
        return StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=self.random_seed)

    # ---------- Model comparison ----------
    def compare_models(self, X: pd.DataFrame, y: pd.Series) -> Optional[pd.DataFrame]:
        comp_cfg = self.config.get("comparison", {})
        if not comp_cfg.get("enabled", False):
            return None

        metric = comp_cfg.get("metric", "roc_auc")
        algorithms = comp_cfg.get("algorithms", ["logistic_regression", "knn", "decision_tree", "random_forest"])
        comparator = ModelComparator()

        for algorithm in algorithms:
            start_time = time.time()
            pipeline = self.build_pipeline(algorithm)
            scores = cross_validate(pipeline, X, y, cv=self.create_cv(), scoring=CV_SCORING, error_score="raise")
            summary = {m: float(np.mean(scores[f"test_{m}"])) for m in CV_SCORING}
            comparator.add_scores(algorithm, summary)
            logger.info(f"[Compare] {algorithm}: {metric}={summary.get(metric, float('nan')):.4f} "
                        f"({time.time() - start_time:.2f} seconds)")

        self.comparison_table = comparator.compare_models(metric)
        best = comparator.get_best_model(metric)
        logger.info(f"[Compare] Best model by {metric}: {best}")

        if comp_cfg.get("select_best", False) and best:
            self.algorithm = best
            self.config.setdefault("model", {})["algorithm"] = best
        return self.comparison_table

    # ---------- HPO ----------
    def hyperparameter_search(self, X: pd.DataFrame, y: pd.Series) -> Dict[str, Any]:
        tuning_cfg = self.config.get("tuning", {})
        if not tuning_cfg.get("enabled", False):
            return {}

        scoring = tuning_cfg.get("scoring", "roc_auc")
        grid = tuning_cfg.get("param_grid", {}).get(self.algorithm)
        if grid:
            grid = {(k if k.startswith("model__") else f"model__{k}"): v for k, v in grid.items()}

        searcher = HyperparameterSearch(
            method=tuning_cfg.get("method", "grid"),
            scoring=scoring,
            n_iter=int(tuning_cfg.get("n_iter", 20)),
            cv=self.create_cv(),
            random_state=self.random_seed,
            n_jobs=tuning_cfg.get("n_jobs"),
        )
        result = searcher.search(self.build_pipeline(), X, y, self.algorithm, grid)
        self.tuning_results = result.results

        self.experiment_tracker.log_params(result.best_params, prefix="tuned")
        self.experiment_tracker.log_metrics({f"tuning_best_{scoring}": result.best_score})
        return result.best_params

    # ---------- Training ----------
    def train_model(self, X: pd.DataFrame, y: pd.Series) -> Dict[str, float]:
        logger.info(f"Starting model training ({self.algorithm})...")

        best = self.hyperparameter_search(X, y)
        if best:
            model_params = self.config.setdefault("model", {}).setdefault(self.algorithm, {})
            for k, v in best.items():
                model_params[k.replace("model__", "", 1)] = convert_numpy_types(v)

        pipeline = self.build_pipeline()

        scores = cross_validate(pipeline, X, y, cv=self.create_cv(), scoring=CV_SCORING, error_score="raise")
        cv_metrics = {f"cv_{m}": float(np.mean(scores[f"test_{m}"])) for m in CV_SCORING}
        cv_metrics.update({f"cv_{m}_std": float(np.std(scores[f"test_{m}"])) for m in CV_SCORING})
        logger.info(f"CV ROC-AUC: {cv_metrics['cv_roc_auc']:.4f} +/- {cv_metrics['cv_roc_auc_std']:.4f}")

        # Threshold from out-of-fold predictions; cross_val_predict needs a partition
        oof_cv = StratifiedKFold(
            n_splits=self.config.get("cross_validation", {}).get("n_splits", 5),
            shuffle=True, random_state=self.random_seed,
        )
        oof_proba = cross_val_predict(pipeline, X, y, cv=oof_cv, method="predict_proba")[:, 1]
        self.best_threshold = float(self.threshold_optimizer.optimize(y.to_numpy(), oof_proba))
        logger.info(f"Decision threshold (from CV): {self.best_threshold:.3f}")

        pipeline.fit(X, y)
        self.model = pipeline
        return cv_metrics

    # ---------- Evaluation ----------
    def _output_feature_names(self, X: pd.DataFrame) -> List[str]:
        Xt = X
        for name, step in self.model.steps:
            if name.startswith("step_"):
                Xt = step.transform(Xt)
        return list(Xt.columns)

    def evaluate_model(self, X: pd.DataFrame, y: pd.Series) -> Dict[str, float]:
        logger.info("Evaluating model performance on the test split...")
        if self.model is None:
            raise ValueError("Model not trained yet")

        y_proba = self.model.predict_proba(X)[:, 1]
        y_pred = (y_proba >= self.best_threshold).astype(int)

        evaluator = ModelEvaluator()
        metrics = evaluator.calculate_metrics(y.to_numpy(), y_pred, y_proba)
        metrics["optimal_threshold"] = float(self.best_threshold)
        logger.info(f"Confusion matrix:\n{evaluator.confusion_matrix_frame(y.to_numpy(), y_pred)}")
        logger.info(f"Classification report:\n{evaluator.generate_classification_report(y.to_numpy(), y_pred)}")

        self.evaluation = {"y_true": y.to_numpy(), "y_proba": y_proba, "y_pred": y_pred}
        self.input_columns = list(X.columns)
        self.feature_names = self._output_feature_names(X.head(5))
        logger.info(f"Model uses {len(self.feature_names)} features from {len(self.input_columns)} inputs")
        return metrics

    def save_plots(self, output_dir: Union[str, Path]) -> List[Path]:
        if not self.evaluation:
            return []
        out = Path(output_dir)
        evaluator = ModelEvaluator()
        y_true, y_proba, y_pred = self.evaluation["y_true"], self.evaluation["y_proba"], self.evaluation["y_pred"]

        paths = [plot_confusion_matrix(evaluator.confusion_matrix_frame(y_true, y_pred), out / "confusion_matrix.png")]
        if len(np.unique(y_true)) > 1:
            curves = evaluator.curve_points(y_true, y_proba)
            paths.append(plot_roc_curve(curves["fpr"], curves["tpr"], out / "roc_curve.png",
                                        title=f"ROC curve ({self.algorithm})"))
            paths.append(plot_pr_curve(curves["precision"], curves["recall"], out / "pr_curve.png",
                                       baseline=float(np.mean(y_true)),
                                       title=f"Precision-recall curve ({self.algorithm})"))
        return paths

    # ---------- Artifacts ----------
    def save_artifacts(self, output_dir: Union[str, Path], metrics: Dict[str, float]):
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        logger.info(f"Saving artifacts to {out}")

        # Full pipeline (preprocessing + sampler + model)
        joblib.dump(self.model, out / "best_model.joblib")

        (out / "optimal_threshold.txt").write_text(str(self.best_threshold), encoding="utf-8")
        if self.input_columns:
            (out / "input_columns.txt").write_text("\n".join(self.input_columns), encoding="utf-8")
        if self.feature_names:
            (out / "feature_names.txt").write_text("\n".join(self.feature_names), encoding="utf-8")

        clean_metrics = convert_numpy_types(metrics)
        clean_config = convert_numpy_types(self.config)
        (out / "metrics.yaml").write_text(yaml.dump(clean_metrics), encoding="utf-8")
        (out / "training_config.yaml").write_text(yaml.dump(clean_config), encoding="utf-8")
        if self.inspection_summary:
            (out / "inspection.yaml").write_text(
                yaml.dump(convert_numpy_types(self.inspection_summary)), encoding="utf-8"
            )

        if self.comparison_table is not None:
            self.comparison_table.to_csv(out / "model_comparison.csv", index_label="algorithm")
        if self.tuning_results is not None:
            self.tuning_results.to_csv(out / "tuning_results.csv", index=False)

        self.save_plots(out)

        self.experiment_tracker.log_dict(clean_config, "config.yaml")
        self.experiment_tracker.log_dict(clean_metrics, "metrics.yaml")
        if self.feature_names:
            self.experiment_tracker.log_dict(
                {"total_features": len(self.feature_names), "feature_names": self.feature_names},
                "feature_names.yaml",
            )

        logger.info("Artifacts saved successfully")

    # ---------- Orchestration ----------
    def run_pipeline(self, data: Union[str, Path, pd.DataFrame], output_dir: Union[str, Path]) -> Dict[str, float]:
        """Run every step inside one tracked run; ``data`` is a path or an in-memory frame."""
        logger.info(f"Starting {self.dataset} pipeline with {self.algorithm}...")
        run_name = self.config.get("mlflow", {}).get("run_name", f"{self.dataset}_{self.algorithm}")

        with self.experiment_tracker.start_run(run_name):
            self.experiment_tracker.log_params(self.config)

            df = data.copy() if isinstance(data, pd.DataFrame) else self.load_data(data)
            df = self.clean_data(df)
            self.inspect_data(df)
            self.validate_data(df)
            X, y = self.prepare_features(df)
            X_train, X_test, y_train, y_test = self.split_data(X, y)

            self.compare_models(X_train, y_train)
            cv_metrics = self.train_model(X_train, y_train)
            test_metrics = self.evaluate_model(X_test, y_test)
            all_metrics = {**cv_metrics, **test_metrics}
            self.experiment_tracker.log_metrics(all_metrics)

            self.save_artifacts(output_dir, all_metrics)
            self.experiment_tracker.log_artifacts(str(output_dir))
            self.experiment_tracker.log_model(self.model, "model", input_example=X_test.head(5))

        logger.info("Pipeline completed successfully!")
        logger.info(f"Test ROC-AUC: {all_metrics['roc_auc']:.4f}  PR-AUC: {all_metrics['pr_auc']:.4f}  "
                    f"F1: {all_metrics['f1_score']:.4f}")
        return all_metrics


# =====================
# CLI entrypoint
# =====================

def main():
    parser = argparse.ArgumentParser(description="Train a churn / fraud classifier")
    parser.add_argument("--config", type=str, required=True, help="Path to training configuration file")
    parser.add_argument("--data", type=str, required=True, help="Path to training data (CSV or parquet)")
    parser.add_argument("--output", type=str, default="./models", help="Output directory for artifacts")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    with open(args.config, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    np.random.seed(config.get("random_seed", 42))

    pipeline = ChurnMLPipeline(config)
    pipeline.run_pipeline(args.data, args.output)

    print("Training completed! Artifacts in:", args.output)


if __name__ == "__main__":
    main()
