"""
Static evaluation plots (ROC, precision-recall, confusion matrix).
"""

import logging
from pathlib import Path
from typing import Optional, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from sklearn.metrics import auc

logger = logging.getLogger(__name__)


def plot_roc_curve(fpr: np.ndarray, tpr: np.ndarray, out_path: Union[str, Path],
                   title: Optional[str] = None) -> Path:
    """Save a ROC curve with the AUROC in the legend."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(6, 6))
    ax.plot(fpr, tpr, lw=2, label=f"AUROC = {auc(fpr, tpr):.3f}")
    ax.plot([0, 1], [0, 1], linestyle="--", color="grey", lw=1)
    ax.set_xlabel("False positive rate (1 - specificity)")
    ax.set_ylabel("True positive rate (sensitivity)")
    ax.set_title(title or "ROC curve")
    ax.legend(loc="lower right")
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)

    logger.info(f"ROC curve saved to {out_path}")
    return out_path


def average_precision_from_curve(precision: np.ndarray, recall: np.ndarray) -> float:
    """Step-wise area under ``precision_recall_curve`` output, equal to average precision."""
    precision = np.asarray(precision, dtype=float)
    recall = np.asarray(recall, dtype=float)
    return float(-np.sum(np.diff(recall) * precision[:-1]))


def plot_pr_curve(precision: np.ndarray, recall: np.ndarray, out_path: Union[str, Path],
                  baseline: Optional[float] = None, title: Optional[str] = None,
                  average_precision: Optional[float] = None) -> Path:
    """Save a precision-recall curve; ``baseline`` is the positive class rate.

    The legend reports average precision, the ``pr_auc`` value in ``metrics.yaml``.
    """
    if average_precision is None:
        average_precision = average_precision_from_curve(precision, recall)

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(6, 6))
    ax.plot(recall, precision, lw=2, label=f"AUPRC (AP) = {average_precision:.3f}")
    if baseline is not None:
        ax.axhline(baseline, linestyle="--", color="grey", lw=1, label=f"Baseline = {baseline:.3f}")
    ax.set_xlabel("Recall")
    ax.set_ylabel("Precision")
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1.05)
    ax.set_title(title or "Precision-recall curve")
    ax.legend(loc="upper right")
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)

    logger.info(f"PR curve saved to {out_path}")
    return out_path


def plot_confusion_matrix(matrix: pd.DataFrame, out_path: Union[str, Path],
                          title: Optional[str] = None) -> Path:
    """Save a labelled confusion matrix heatmap (rows actual, columns predicted)."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    values = matrix.to_numpy()
    fig, ax = plt.subplots(figsize=(5, 4))
    image = ax.imshow(values, cmap="Blues")
    fig.colorbar(image, ax=ax)

    ax.set_xticks(range(values.shape[1]))
    ax.set_xticklabels([str(c) for c in matrix.columns])
    ax.set_yticks(range(values.shape[0]))
    ax.set_yticklabels([str(i) for i in matrix.index])
    ax.set_xlabel(matrix.columns.name or "Predicted")
    ax.set_ylabel(matrix.index.name or "Actual")

    threshold = values.max() / 2 if values.size else 0
    for i in range(values.shape[0]):
        for j in range(values.shape[1]):
            ax.text(j, i, f"{values[i, j]:d}", ha="center", va="center",
                    color="white" if values[i, j] > threshold else "black")

    ax.set_title(title or "Confusion matrix")
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)

    logger.info(f"Confusion matrix saved to {out_path}")
    return out_path
