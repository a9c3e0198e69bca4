"""
slipsense.evaluation
====================
Diagnostic metrics for the binary risk classifier.

Metrics
-------
* **Brier score** — proper scoring rule for probabilistic forecasts.
* **Log-loss**    — binary cross-entropy (clipped predictions), the
  quantity the classifier is trained to minimise.
* **Accuracy / F1** — after thresholding the probability.
* **AUC-ROC**     — NaN when only one class is present.

These are reported on the training examples only: there is no held-out
split, so they describe fit, not forecast skill.

Public API
----------
compute_metrics(y_true, y_prob)  → dict
"""

from __future__ import annotations

from typing import Dict

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    f1_score,
    log_loss,
    roc_auc_score,
)


def compute_metrics(
    y_true: np.ndarray,
    y_prob: np.ndarray,
    threshold: float = 0.5,
) -> Dict[str, float]:
    """
    Parameters
    ----------
    y_true : array-like, shape (n,)
        Binary labels.
    y_prob : array-like, shape (n,)
        Predicted probabilities (clipped to [0, 1] internally).
    threshold : float
        Cut-off for converting probabilities to labels.

    Returns
    -------
    dict
        Keys: ``brier, log_loss, accuracy, f1, auc_roc, positive_rate``.
    """
    y_true = np.asarray(y_true, dtype=np.int64)
    y_prob = np.clip(np.asarray(y_prob, dtype=np.float64), 0.0, 1.0)
    y_pred = (y_prob >= threshold).astype(np.int64)

    metrics: Dict[str, float] = {}
    metrics["brier"] = float(np.mean((y_prob - y_true) ** 2)) if len(y_true) else float("nan")
    metrics["log_loss"] = float(
        log_loss(y_true, np.clip(y_prob, 1e-7, 1.0 - 1e-7), labels=[0, 1])
    )
    metrics["accuracy"] = float(accuracy_score(y_true, y_pred))
    metrics["f1"] = float(f1_score(y_true, y_pred, zero_division=0))
    metrics["positive_rate"] = float(y_true.mean()) if len(y_true) else float("nan")

    if len(np.unique(y_true)) > 1:
        metrics["auc_roc"] = float(roc_auc_score(y_true, y_prob))
    else:
        metrics["auc_roc"] = float("nan")

    return metrics
