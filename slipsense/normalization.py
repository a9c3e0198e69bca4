"""
slipsense.normalization
=======================
Leakage-safe z-score normalisation of feature vectors.

Public API
----------
fit_normalizer(X_train, feature_names, eps)  → NormalizationParameters
NormalizationParameters.transform(X)         → np.ndarray

The scaler is fitted on the **training matrix only** and frozen; the very
same parameters are applied to inference vectors.  The standard deviation
is the population one (``ddof=0``) and ``eps`` is added to it before
dividing, so constant columns map to 0 instead of blowing up.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from .config import FEATURE_NAMES


@dataclass(frozen=True)
class NormalizationParameters:
    """Frozen per-feature ``mean`` / ``std`` (arrays are read-only)."""
    mean: np.ndarray
    std: np.ndarray
    eps: float = 1e-6
    feature_names: tuple = tuple(FEATURE_NAMES)

    def __post_init__(self):
        mean = np.array(self.mean, dtype=np.float64)
        std = np.array(self.std, dtype=np.float64)
        if mean.shape != std.shape or mean.ndim != 1:
            raise ValueError(
                f"mean/std must be 1-D and the same shape, got "
                f"{mean.shape} and {std.shape}"
            )
        mean.flags.writeable = False
        std.flags.writeable = False
        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "std", std)
        object.__setattr__(self, "feature_names", tuple(self.feature_names))

    @property
    def n_features(self) -> int:
        return len(self.mean)

    def transform(self, X) -> np.ndarray:
        """``(X - mean) / (std + eps)`` column-wise; returns a new array."""
        X = _as_matrix(X, self.feature_names)
        if X.shape[1] != self.n_features:
            raise ValueError(
                f"Expected {self.n_features} feature columns, got {X.shape[1]}"
            )
        return (X - self.mean) / (self.std + self.eps)

    def to_dict(self) -> dict:
        return {
            "feature_names": list(self.feature_names),
            "mean": self.mean.tolist(),
            "std": self.std.tolist(),
            "eps": self.eps,
        }


def fit_normalizer(
    X_train,
    feature_names: Optional[Sequence[str]] = None,
    eps: float = 1e-6,
) -> NormalizationParameters:
    """
    Fit z-score parameters on **training data only**.

    Parameters
    ----------
    X_train : np.ndarray or pd.DataFrame
        Training feature matrix ``(n, n_features)``.  A DataFrame is reduced
        to *feature_names* (default ``FEATURE_NAMES``) first.
    feature_names : sequence of str, optional
    eps : float
        Added to the standard deviation at transform time.
    """
    names: List[str] = list(feature_names or FEATURE_NAMES)
    X = _as_matrix(X_train, names)
    if len(X) == 0:
        raise ValueError("Cannot fit normalisation on an empty matrix.")

    scaler = StandardScaler()
    scaler.fit(X)
    return NormalizationParameters(
        mean=scaler.mean_,
        std=np.sqrt(scaler.var_),
        eps=eps,
        feature_names=tuple(names),
    )


def _as_matrix(X, feature_names: Sequence[str]) -> np.ndarray:
    if isinstance(X, pd.DataFrame):
        X = X[list(feature_names)]
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    return X
