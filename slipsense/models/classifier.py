"""
slipsense.models.classifier
===========================
PyTorch feed-forward binary classifier for event risk.

Architecture
------------
::

    Linear(5 → 32) → ReLU → Dropout(0.2)
      → Linear(32 → 16) → ReLU
      → Linear(16 → 1) → Sigmoid

Trained with binary cross-entropy, Adam, shuffled mini-batches, a fixed
number of epochs.  Dropout is only active in ``train()`` mode; prediction
runs in ``eval()`` under ``torch.inference_mode()`` and is deterministic.

The wrapper exposes a sklearn-style ``.fit(X, y)`` / ``.predict_proba(X)``
API so the session can treat it as an opaque 5 → probability function.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np
import torch
import torch.nn as nn
from torch.utils.data import DataLoader, TensorDataset


class TrainingError(RuntimeError):
    """Numerical failure while optimising the classifier."""


# ======================================================================== #
#  PyTorch module                                                           #
# ======================================================================== #

class _RiskNet(nn.Module):
    """Dense stack with dropout after the first hidden layer → sigmoid."""

    def __init__(self, input_size: int, hidden_sizes: Sequence[int], dropout: float):
        super().__init__()
        if not hidden_sizes:
            raise ValueError("At least one hidden layer is required.")
        layers: List[nn.Module] = []
        in_dim = input_size
        for i, out_dim in enumerate(hidden_sizes):
            layers.append(nn.Linear(in_dim, out_dim))
            layers.append(nn.ReLU())
            if i == 0 and dropout > 0:
                layers.append(nn.Dropout(dropout))
            in_dim = out_dim
        layers.append(nn.Linear(in_dim, 1))
        layers.append(nn.Sigmoid())
        self.net = nn.Sequential(*layers)

    def forward(self, x):
        # x: (B, F) → (B,)
        return self.net(x).squeeze(-1)


# ======================================================================== #
#  Sklearn-compatible wrapper                                               #
# ======================================================================== #

class RiskClassifier:
    """
    Sklearn-style wrapper around :class:`_RiskNet`.

    Parameters
    ----------
    hidden_sizes : sequence of int
        Width of each hidden layer.
    dropout : float
        Dropout rate applied after the first hidden layer (training only).
    lr : float
        Adam learning rate.
    epochs, batch_size : int
    random_seed : int
        Seeds weight init and mini-batch shuffling.
    device : str, optional
        Defaults to CUDA when available.
    """

    def __init__(
        self,
        hidden_sizes: Sequence[int] = (32, 16),
        dropout: float = 0.2,
        lr: float = 0.01,
        epochs: int = 40,
        batch_size: int = 32,
        random_seed: int = 42,
        device: Optional[str] = None,
    ):
        self.hidden_sizes = tuple(hidden_sizes)
        self.dropout = dropout
        self.lr = lr
        self.epochs = epochs
        self.batch_size = batch_size
        self.random_seed = random_seed
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        self.model_: Optional[_RiskNet] = None
        self.n_features_: Optional[int] = None
        self.loss_history_: List[float] = []

    @classmethod
    def from_config(cls, model_config) -> "RiskClassifier":
        return cls(
            hidden_sizes=model_config.hidden_sizes,
            dropout=model_config.dropout,
            lr=model_config.lr,
            epochs=model_config.epochs,
            batch_size=model_config.batch_size,
            random_seed=model_config.random_seed,
        )

    @property
    def is_fitted(self) -> bool:
        return self.model_ is not None

    def fit(self, X, y) -> "RiskClassifier":
        X = np.asarray(X, dtype=np.float32)
        y = np.asarray(y, dtype=np.float32).reshape(-1)
        if X.ndim != 2 or len(X) != len(y):
            raise ValueError(f"Bad training shapes: X{X.shape}, y{y.shape}")
        if not np.all(np.isfinite(X)):
            raise TrainingError("Training features contain NaN or infinite values.")

        torch.manual_seed(self.random_seed)
        gen = torch.Generator().manual_seed(self.random_seed)

        X_t = torch.from_numpy(X)
        y_t = torch.from_numpy(y)
        loader = DataLoader(
            TensorDataset(X_t, y_t),
            batch_size=self.batch_size,
            shuffle=True,
            generator=gen,
        )

        model = _RiskNet(X.shape[1], self.hidden_sizes, self.dropout).to(self.device)
        opt = torch.optim.Adam(model.parameters(), lr=self.lr)
        criterion = nn.BCELoss()

        history: List[float] = []
        model.train()
        for epoch in range(self.epochs):
            epoch_loss = 0.0
            for xb, yb in loader:
                xb = xb.to(self.device)
                yb = yb.to(self.device)
                opt.zero_grad()
                loss = criterion(model(xb), yb)
                if not torch.isfinite(loss):
                    raise TrainingError(
                        f"Non-finite loss ({loss.item()}) at epoch {epoch + 1}."
                    )
                loss.backward()
                opt.step()
                epoch_loss += loss.item() * xb.size(0)
            history.append(epoch_loss / len(X))

        model.eval()
        self.model_ = model
        self.n_features_ = X.shape[1]
        self.loss_history_ = history
        return self

    def predict_proba(self, X) -> np.ndarray:
        """Probability of the positive class, shape ``(n,)``."""
        if not self.is_fitted:
            raise RuntimeError("RiskClassifier is not fitted yet.")
        X = np.asarray(X, dtype=np.float32)
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.shape[1] != self.n_features_:
            raise ValueError(
                f"Expected {self.n_features_} features, got {X.shape[1]}"
            )
        self.model_.eval()
        with torch.inference_mode():
            probs = self.model_(torch.from_numpy(X).to(self.device)).cpu().numpy()
        return np.clip(probs.astype(np.float64), 0.0, 1.0)
