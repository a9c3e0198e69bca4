"""
slipsense.scoring
=================
Apply a trained classifier to every event of a catalog.

Public API
----------
score_events(catalog, params, model, forecast_config) → List[PredictionRecord]
select_hotspot(predictions)                          → PredictionRecord | None
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import ForecastConfig
from .features import build_inference_features, feature_matrix
from .normalization import NormalizationParameters
from .schema import PredictionRecord, events_from_frame


def score_events(
    catalog: pd.DataFrame,
    params: NormalizationParameters,
    model,
    forecast_config: ForecastConfig,
) -> List[PredictionRecord]:
    """
    Probability of a qualifying event nearby within the horizon, per event.

    Features come from the radius neighbourhood
    (:func:`features.build_inference_features`), are normalised with the
    frozen training *params*, then fed to *model* (anything with
    ``predict_proba(X) -> (n,)``).

    Returns
    -------
    list of PredictionRecord
        Same order as *catalog*.
    """
    if len(catalog) == 0:
        return []

    feats = build_inference_features(catalog, forecast_config)
    X = params.transform(feature_matrix(feats))
    probs = np.asarray(model.predict_proba(X), dtype=np.float64).reshape(-1)
    if len(probs) != len(catalog):
        raise ValueError(
            f"Model returned {len(probs)} probabilities for {len(catalog)} events"
        )

    events = events_from_frame(catalog)
    return [
        PredictionRecord(event=ev, probability=float(p))
        for ev, p in zip(events, probs)
    ]


def select_hotspot(
    predictions: Sequence[PredictionRecord],
) -> Optional[PredictionRecord]:
    """
    The single highest-probability record.

    Ties go to the record that comes last in *predictions* (the most recent
    event for a time-sorted catalog).
    """
    if not predictions:
        return None
    return max(reversed(predictions), key=lambda p: p.probability)
