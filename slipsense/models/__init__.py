"""Trainable risk models (5-dim normalised vector → probability)."""

from .classifier import RiskClassifier, TrainingError

__all__ = ["RiskClassifier", "TrainingError"]
