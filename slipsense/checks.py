"""
slipsense.checks
================
Ordering assertions, leakage guards and data-quality checks on the
training table.

Every check raises ``AssertionError`` with a descriptive message; the
session turns a failure into a ``TrainingError``.
"""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd


# ======================================================================== #
#  Ordering / window checks                                                 #
# ======================================================================== #

def assert_time_sorted(df: pd.DataFrame, time_col: str = "time") -> None:
    """Windowed computations require a non-decreasing time column."""
    times = pd.to_datetime(df[time_col])
    assert times.is_monotonic_increasing, (
        f"Catalog is not sorted by '{time_col}' "
        f"(first inversion at row {_first_inversion(times)})"
    )


def assert_cells_time_ordered(
    train_df: pd.DataFrame,
    cell_col: str = "cell",
    time_col: str = "time",
) -> None:
    """Within a grid cell, training examples must be in time order."""
    for cell, sub in train_df.groupby(cell_col, sort=False):
        assert pd.to_datetime(sub[time_col]).is_monotonic_increasing, (
            f"Training examples of cell {cell} are not time-ordered"
        )


# ======================================================================== #
#  Leakage checks                                                           #
# ======================================================================== #

def assert_no_label_in_features(feature_cols: List[str]) -> None:
    """Feature names must not look like targets or future quantities."""
    suspicious = [
        c for c in feature_cols
        if any(kw in c.lower() for kw in ("label", "target", "future"))
    ]
    assert not suspicious, (
        f"LEAKAGE: suspicious feature names: {suspicious}"
    )


# ======================================================================== #
#  Data quality                                                             #
# ======================================================================== #

def assert_finite_features(df: pd.DataFrame, feature_cols: List[str]) -> None:
    """No NaN / inf in the feature matrix."""
    block = df[feature_cols].to_numpy(dtype=np.float64)
    bad = ~np.isfinite(block)
    if bad.any():
        counts = dict(zip(feature_cols, bad.sum(axis=0).tolist()))
        raise AssertionError(f"Non-finite feature values: {counts}")


def assert_binary_labels(y: pd.Series) -> None:
    values = set(pd.unique(y))
    assert values <= {0, 1}, f"Labels must be 0/1, got {sorted(values)}"


def assert_non_negative_counts(df: pd.DataFrame, col: str = "prior_count") -> None:
    assert (df[col] >= 0).all(), f"Negative values in '{col}'"


# ======================================================================== #
#  Run all checks                                                           #
# ======================================================================== #

def run_all_checks(
    catalog: pd.DataFrame,
    train_df: pd.DataFrame,
    feature_cols: List[str],
    label_col: str = "label",
) -> None:
    """Run the full battery of ordering, leakage and quality checks."""
    assert_time_sorted(catalog)
    assert_cells_time_ordered(train_df)
    assert_no_label_in_features(feature_cols)
    assert_finite_features(train_df, feature_cols)
    assert_binary_labels(train_df[label_col])
    assert_non_negative_counts(train_df)


def _first_inversion(times: pd.Series) -> int:
    diffs = times.diff().dt.total_seconds().to_numpy()
    idx = np.flatnonzero(diffs < 0)
    return int(idx[0]) if len(idx) else -1
