"""
Slipsense — spatio-temporal seismic risk pipeline.

Flow:
  catalog rows → date/number parsing → time-sorted events → grid cells
  → windowed training features → z-score fit → classifier training
  → radius-based inference features → per-event probability + hotspot

Modules
-------
config        : Constants, enums and configuration dataclasses
schema        : EventRecord / PredictionRecord / RunResult
ingestion     : parse_event_datetime, parse_number, load_catalog
spatial       : haversine distance and the lat/lon grid
features      : build_training_features, build_inference_features
normalization : fit_normalizer, NormalizationParameters
models/       : RiskClassifier (PyTorch feed-forward)
scoring       : score_events, select_hotspot
evaluation    : Training-set diagnostics (Brier, log-loss, AUC, …)
checks        : Ordering, leakage and data-quality assertions
session       : ForecastSession — one catalog / model / normalisation triple
export        : Predictions + metadata + summary table
"""

__version__ = "0.1.0"
