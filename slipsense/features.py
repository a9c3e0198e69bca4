"""
slipsense.features
==================
Lookback / horizon window features for every event.

Public API
----------
build_training_features(catalog, forecast_config)  → (train_df, feature_meta)
build_inference_features(catalog, forecast_config) → features_df
feature_matrix(df)                                 → np.ndarray (n, 5)

Feature vector
--------------
``[lat, lon, prior_count, prior_mean_mag, hours_since_prior]``

* ``prior_count``       — events in the lookback window.
* ``prior_mean_mag``    — their mean magnitude (0 when the window is empty).
* ``hours_since_prior`` — hours since the latest of them
  (``NO_PRIOR_EVENT_HOURS`` when the window is empty).

Window convention
-----------------
All times are compared as integer epoch milliseconds.  For an event at *t*:

  past    = ``t - lookback <= time <  t``
  future  = ``t <  time <= t + horizon``

so the event itself (and anything sharing its timestamp) is never in its
own windows.

Neighbourhoods
--------------
**Training** — neighbours are the members of the event's grid cell
(``spatial.group_by_grid``).  The latest event of every cell is skipped:
its horizon is not observable, so it cannot be labelled.

**Inference** — neighbours are all events within ``cell_size_km``
great-circle distance, regardless of cells.  Every input row gets exactly
one feature vector.

The two neighbourhoods are not interchangeable: a training example and the
scoring of the same event may see different neighbours.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from .config import (
    FEATURE_NAMES,
    MS_PER_HOUR,
    NO_PRIOR_EVENT_HOURS,
    ForecastConfig,
)
from .spatial import cell_label, group_by_grid, haversine_km_vector


# ======================================================================== #
#  Training features (grid neighbourhood, labelled)                         #
# ======================================================================== #

def build_training_features(
    catalog: pd.DataFrame,
    forecast_config: ForecastConfig,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Build labelled training examples, one per event except the last of
    each grid cell.

    Parameters
    ----------
    catalog : pd.DataFrame
        Columns ``time, lat, lon, mag, locate``.
    forecast_config : ForecastConfig

    Returns
    -------
    train_df : pd.DataFrame
        ``FEATURE_NAMES + [label, cell, time, source]``; cells in order of
        first appearance, events time-ordered within a cell.
    feature_meta : dict
        ``{"feature_names": [...], "n_examples": ..., "n_positive": ..., ...}``
    """
    cfg = forecast_config
    cells = group_by_grid(catalog, cfg.cell_size_km)

    records = []
    for key, members in cells.items():
        t_ms = _to_epoch_ms(members["time"])
        mags = members["mag"].to_numpy(dtype=np.float64)
        lats = members["lat"].to_numpy(dtype=np.float64)
        lons = members["lon"].to_numpy(dtype=np.float64)
        times = members["time"].to_numpy()
        sources = members["locate"].to_numpy()
        cell = cell_label(key)

        for i in range(len(members) - 1):
            t = t_ms[i]

            lo = np.searchsorted(t_ms, t - cfg.lookback_ms, side="left")
            hi = np.searchsorted(t_ms, t, side="left")
            count, mean_mag, hours = _past_stats(t_ms[lo:hi], mags[lo:hi], t)

            f_lo = np.searchsorted(t_ms, t, side="right")
            f_hi = np.searchsorted(t_ms, t + cfg.horizon_ms, side="right")
            label = int(np.any(mags[f_lo:f_hi] >= cfg.magnitude_threshold))

            records.append((
                lats[i], lons[i], count, mean_mag, hours,
                label, cell, times[i], sources[i],
            ))

    columns = FEATURE_NAMES + ["label", "cell", "time", "source"]
    train_df = pd.DataFrame.from_records(records, columns=columns)
    train_df[FEATURE_NAMES] = train_df[FEATURE_NAMES].astype(np.float64)
    train_df["label"] = train_df["label"].astype(np.int64)
    train_df["time"] = pd.to_datetime(train_df["time"])

    meta = {
        "feature_names": list(FEATURE_NAMES),
        "n_features": len(FEATURE_NAMES),
        "n_examples": len(train_df),
        "n_positive": int(train_df["label"].sum()),
        "n_cells": len(cells),
        "neighbourhood": "grid",
        **cfg.to_dict(),
    }
    return train_df, meta


# ======================================================================== #
#  Inference features (radius neighbourhood, unlabelled)                    #
# ======================================================================== #

def build_inference_features(
    catalog: pd.DataFrame,
    forecast_config: ForecastConfig,
) -> pd.DataFrame:
    """
    Feature vectors for every event using a radius search.

    Returns
    -------
    pd.DataFrame
        ``FEATURE_NAMES`` columns, same index and row order as *catalog*.
    """
    cfg = forecast_config
    n = len(catalog)
    out = np.empty((n, len(FEATURE_NAMES)), dtype=np.float64)

    t_raw = _to_epoch_ms(catalog["time"])
    order = np.argsort(t_raw, kind="stable")
    t_ms = t_raw[order]
    lats = catalog["lat"].to_numpy(dtype=np.float64)[order]
    lons = catalog["lon"].to_numpy(dtype=np.float64)[order]
    mags = catalog["mag"].to_numpy(dtype=np.float64)[order]

    for pos in range(n):
        t = t_ms[pos]
        lo = np.searchsorted(t_ms, t - cfg.lookback_ms, side="left")
        hi = np.searchsorted(t_ms, t, side="left")

        dist = haversine_km_vector(lats[pos], lons[pos], lats[lo:hi], lons[lo:hi])
        near = dist <= cfg.cell_size_km
        count, mean_mag, hours = _past_stats(t_ms[lo:hi][near], mags[lo:hi][near], t)

        out[order[pos]] = (lats[pos], lons[pos], count, mean_mag, hours)

    return pd.DataFrame(out, columns=FEATURE_NAMES, index=catalog.index)


def feature_matrix(df: pd.DataFrame) -> np.ndarray:
    """The ``(n, 5)`` float64 model input block of a feature frame."""
    return df[FEATURE_NAMES].to_numpy(dtype=np.float64)


# ======================================================================== #
#  Helpers                                                                  #
# ======================================================================== #

def _past_stats(
    past_ms: np.ndarray,
    past_mags: np.ndarray,
    t: int,
) -> Tuple[int, float, float]:
    """(count, mean magnitude, hours since latest) of a time-sorted window."""
    count = len(past_ms)
    if count == 0:
        return 0, 0.0, NO_PRIOR_EVENT_HOURS
    mean_mag = float(past_mags.mean())
    hours = float(t - past_ms[-1]) / MS_PER_HOUR
    return count, mean_mag, hours


def _to_epoch_ms(times: pd.Series) -> np.ndarray:
    """Naive datetimes → int64 milliseconds since the epoch."""
    arr = np.asarray(times, dtype="datetime64[ns]")
    return arr.astype("datetime64[ms]").astype(np.int64)
