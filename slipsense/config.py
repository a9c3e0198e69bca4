"""
slipsense.config
================
Central configuration: constants, enumerations, dataclasses and defaults.

Every training run is fully described by a `PipelineConfig` dataclass that
is serialised alongside the exported predictions for reproducibility.
"""

from __future__ import annotations

import hashlib
import json
import math
import platform
import subprocess
import warnings
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Tuple


# ---------------------------------------------------------------------------
# Catalog schema / column aliases
# ---------------------------------------------------------------------------
CATALOG_COLUMNS: List[str] = ["time", "lat", "lon", "mag", "locate"]

# Raw column name aliases, tried in order (first non-empty value wins).
COLUMN_ALIASES: Dict[str, List[str]] = {
    "date": ["DATE", "Date", "date"],
    "time": ["TIME", "Time", "time"],
    "lat": ["LAT", "Latitude"],
    "lon": ["LONG", "LON", "Longitude"],
    "mag": ["M/I", "MAG", "M"],
    "locate": ["LOCATE", "PLACE"],
}

DEFAULT_TIME: str = "00:00:00"
UNKNOWN_LOCATION: str = "-"

# Feature vector layout (order matters: it is the model input order)
FEATURE_NAMES: List[str] = [
    "lat",
    "lon",
    "prior_count",
    "prior_mean_mag",
    "hours_since_prior",
]

# Sentinel for hours_since_prior when the lookback window is empty
NO_PRIOR_EVENT_HOURS: float = 999999.0

EARTH_RADIUS_KM: float = 6371.0
KM_PER_DEG_LAT: float = 111.0

MS_PER_HOUR: int = 3600 * 1000
MS_PER_DAY: int = 24 * MS_PER_HOUR


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class RunStage(str, Enum):
    """Phases reported on the status channel of a training + scoring run."""
    IDLE = "idle"
    PREPARING = "preparing"    # feature building, gates, checks
    TRAINING = "training"      # normalizer fit + classifier optimisation
    SCORING = "scoring"        # inference features + per-event probability
    DONE = "done"
    ERROR = "error"


class FailureReason(str, Enum):
    """Why a run ended in ``RunStage.ERROR``."""
    INSUFFICIENT_DATA = "insufficient_data"
    TRAINING_FAILED = "training_failed"


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------
@dataclass
class ForecastConfig:
    """
    Spatio-temporal windowing parameters.

    ``cell_size_km`` is both the grid cell edge used to group training
    events and the search radius used at inference time.
    """
    cell_size_km: float = 50.0
    lookback_days: float = 30.0
    horizon_days: float = 7.0
    magnitude_threshold: float = 4.0

    def __post_init__(self):
        for name in ("cell_size_km", "lookback_days", "horizon_days"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValueError(f"{name} must be finite and > 0, got {value}")
        if not math.isfinite(self.magnitude_threshold):
            raise ValueError(
                f"magnitude_threshold must be finite, got {self.magnitude_threshold}"
            )

    @property
    def lookback_ms(self) -> int:
        return int(round(self.lookback_days * MS_PER_DAY))

    @property
    def horizon_ms(self) -> int:
        return int(round(self.horizon_days * MS_PER_DAY))

    def to_dict(self) -> dict:
        return {
            "cell_size_km": self.cell_size_km,
            "lookback_days": self.lookback_days,
            "horizon_days": self.horizon_days,
            "magnitude_threshold": self.magnitude_threshold,
        }


@dataclass
class ModelConfig:
    """Feed-forward classifier hyperparameters."""
    hidden_sizes: Tuple[int, ...] = (32, 16)
    dropout: float = 0.2          # applied after the first hidden layer only
    lr: float = 0.01
    epochs: int = 40
    batch_size: int = 32
    random_seed: int = 42

    def to_dict(self) -> dict:
        return {
            "hidden_sizes": list(self.hidden_sizes),
            "dropout": self.dropout,
            "lr": self.lr,
            "epochs": self.epochs,
            "batch_size": self.batch_size,
            "random_seed": self.random_seed,
        }


@dataclass
class PipelineConfig:
    """Master configuration for one training + scoring run."""

    # -- Sub-configs --
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    model: ModelConfig = field(default_factory=ModelConfig)

    # -- Minimum-data gate --
    min_events: int = 30
    min_examples: int = 30

    # -- Normalisation --
    norm_eps: float = 1e-6

    # -- Checks / output --
    skip_checks: bool = False
    output_dir: str = "runs"

    # -- Reproducibility --
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    # ----- helpers -----
    def to_dict(self) -> dict:
        return {
            "forecast": self.forecast.to_dict(),
            "model": self.model.to_dict(),
            "min_events": self.min_events,
            "min_examples": self.min_examples,
            "norm_eps": self.norm_eps,
            "skip_checks": self.skip_checks,
            "output_dir": self.output_dir,
            "created_at": self.created_at,
        }

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: str | Path) -> "PipelineConfig":
        raw = _known_keys(cls, json.loads(Path(path).read_text()))
        raw["forecast"] = ForecastConfig(
            **_known_keys(ForecastConfig, raw.get("forecast", {}), "forecast.")
        )
        mc = _known_keys(ModelConfig, raw.get("model", {}), "model.")
        if "hidden_sizes" in mc:
            mc["hidden_sizes"] = tuple(mc["hidden_sizes"])
        raw["model"] = ModelConfig(**mc)
        return cls(**raw)


def _known_keys(dc_type, raw: dict, prefix: str = "") -> dict:
    """Copy of *raw* without keys that are not fields of *dc_type* (warns)."""
    known = {f.name for f in fields(dc_type)}
    unknown = sorted(set(raw) - known)
    if unknown:
        warnings.warn(f"Ignoring unknown config keys: {[prefix + k for k in unknown]}")
    return {k: v for k, v in raw.items() if k in known}


# ---------------------------------------------------------------------------
# Environment / reproducibility snapshot
# ---------------------------------------------------------------------------
def get_environment_info() -> dict:
    """Capture runtime environment for metadata."""
    import numpy as np
    import torch

    info = {
        "python": platform.python_version(),
        "platform": platform.platform(),
        "numpy": np.__version__,
        "torch": torch.__version__,
        "timestamp": datetime.now().isoformat(),
    }
    try:
        info["git_commit"] = (
            subprocess.check_output(
                ["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL
            )
            .decode()
            .strip()
        )
    except (OSError, subprocess.CalledProcessError):
        info["git_commit"] = None
    return info


def file_hash(filepath: str | Path, algo: str = "sha256") -> str:
    """Compute hash of a file for provenance tracking."""
    h = hashlib.new(algo)
    with open(filepath, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()
