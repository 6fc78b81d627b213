"""
Loading of the model artifact directory shared by the API and the web form.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import joblib
import yaml

logger = logging.getLogger(__name__)


@dataclass
class ModelArtifacts:
    """Everything serving needs from a training run."""

    model: Any
    threshold: float = 0.5
    input_columns: List[str] = field(default_factory=list)
    feature_names: List[str] = field(default_factory=list)
    config: Dict[str, Any] = field(default_factory=dict)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def algorithm(self) -> str:
        return self.config.get('model', {}).get('algorithm', 'unknown')


def _read_lines(path: Path) -> List[str]:
    with open(path, 'r', encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip()]


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_model_artifacts(model_dir: Union[str, Path]) -> ModelArtifacts:
    """Load model, threshold, column lists, config and metrics from ``model_dir``.

    Only ``best_model.joblib`` is mandatory; the other files fall back to
    defaults with a warning.
    """
    model_dir = Path(model_dir)

    model_path = model_dir / 'best_model.joblib'
    if not model_path.exists():
        raise FileNotFoundError(f"Model file not found: {model_path}")
    artifacts = ModelArtifacts(model=joblib.load(model_path))
    logger.info(f"Model loaded from {model_path}")

    threshold_path = model_dir / 'optimal_threshold.txt'
    if threshold_path.exists():
        artifacts.threshold = float(threshold_path.read_text(encoding='utf-8').strip())
        logger.info(f"Threshold loaded: {artifacts.threshold}")

    columns_path = model_dir / 'input_columns.txt'
    if columns_path.exists():
        artifacts.input_columns = _read_lines(columns_path)
    else:
        logger.warning("input_columns.txt not found - input alignment will be disabled")

    features_path = model_dir / 'feature_names.txt'
    if features_path.exists():
        artifacts.feature_names = _read_lines(features_path)
        logger.info(f"Feature names loaded: {len(artifacts.feature_names)} features")

    config_path = model_dir / 'training_config.yaml'
    if config_path.exists():
        artifacts.config = _read_yaml(config_path)

    metrics_path = model_dir / 'metrics.yaml'
    if metrics_path.exists():
        artifacts.metrics = _read_yaml(metrics_path)

    return artifacts
