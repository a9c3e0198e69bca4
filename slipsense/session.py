"""
slipsense.session
=================
One user's working context: a catalog, and the model / normalisation /
predictions produced from it.

Run flow
--------
::

    catalog (time-sorted)
        │   gate: len(catalog) >= min_events
        ▼
    build_training_features      (grid neighbourhood, labelled)
        │   gate: n_examples >= min_examples
        ▼
    run_all_checks               (optional)
        ▼
    fit_normalizer → RiskClassifier.fit
        ▼
    score_events                 (radius neighbourhood) → select_hotspot

Each stage is reported on the status channel
(``preparing → training → scoring → done`` or ``error``).  Only one run can
be in flight per session; a second call raises :class:`RunInProgressError`.
A failed run leaves the session idle with its previous outputs untouched,
so the caller can fix the data and try again.

Public API
----------
ForecastSession(config, on_status)
    .load_csv(path) / .load_rows(rows) / .load_events(events)
    .train_and_predict()              → RunResult
    await .train_and_predict_async()  → RunResult
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional

import pandas as pd

from .checks import run_all_checks
from .config import (
    CATALOG_COLUMNS,
    FEATURE_NAMES,
    FailureReason,
    PipelineConfig,
    RunStage,
)
from .evaluation import compute_metrics
from .features import build_training_features, feature_matrix
from .ingestion import load_catalog, normalize_rows, sort_catalog
from .models.classifier import RiskClassifier, TrainingError
from .normalization import NormalizationParameters, fit_normalizer
from .schema import (
    EventRecord,
    PredictionRecord,
    RunResult,
    events_from_frame,
    events_to_frame,
)
from .scoring import score_events, select_hotspot


class InsufficientDataError(Exception):
    """Too few events, or too few derived training examples, to train."""

    def __init__(self, message: str, n_events: int = 0, n_examples: Optional[int] = None):
        super().__init__(message)
        self.n_events = n_events
        self.n_examples = n_examples


class RunInProgressError(RuntimeError):
    """A training + scoring run is already active on this session."""


@dataclass(frozen=True)
class StatusUpdate:
    stage: RunStage
    message: str = ""
    reason: Optional[FailureReason] = None


StatusCallback = Callable[[StatusUpdate], None]


class ForecastSession:
    """
    Session-scoped catalog + model state.

    Parameters
    ----------
    config : PipelineConfig, optional
        Windowing, model and gate settings.  Defaults to ``PipelineConfig()``.
    on_status : callable, optional
        Receives a :class:`StatusUpdate` at every stage transition.  With
        :meth:`train_and_predict_async` it is called from the worker thread.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        on_status: Optional[StatusCallback] = None,
    ):
        self.cfg = config or PipelineConfig()
        self.on_status = on_status
        self.source_path: Optional[str] = None

        self._catalog = pd.DataFrame(columns=CATALOG_COLUMNS)
        self._run_lock = threading.Lock()

        self.model: Optional[RiskClassifier] = None
        self.normalization: Optional[NormalizationParameters] = None
        self.predictions: List[PredictionRecord] = []
        self.hotspot: Optional[PredictionRecord] = None
        self.last_result: Optional[RunResult] = None
        self.status = StatusUpdate(RunStage.IDLE, "not trained yet")

    # ------------------------------------------------------------------ #
    #  Catalog                                                             #
    # ------------------------------------------------------------------ #

    @property
    def catalog(self) -> pd.DataFrame:
        """The time-sorted catalog (``CATALOG_COLUMNS``)."""
        return self._catalog

    @property
    def events(self) -> List[EventRecord]:
        return events_from_frame(self._catalog)

    @property
    def n_events(self) -> int:
        return len(self._catalog)

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @property
    def has_results(self) -> bool:
        return self.last_result is not None

    def load_csv(self, path: str | Path) -> int:
        """Replace the catalog with the parsed rows of a CSV file."""
        df = load_catalog(path)
        self._set_catalog(df)
        self.source_path = str(path)
        return len(df)

    def load_rows(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Replace the catalog with raw dict rows (aliases resolved, bad rows dropped)."""
        df = normalize_rows(rows)
        self._set_catalog(df)
        self.source_path = None
        return len(df)

    def load_events(self, events: Iterable[EventRecord]) -> int:
        """Replace the catalog with already-parsed events."""
        df = sort_catalog(events_to_frame(events))
        self._set_catalog(df)
        self.source_path = None
        return len(df)

    def _set_catalog(self, df: pd.DataFrame) -> None:
        if self.is_running:
            raise RunInProgressError("Cannot replace the catalog while a run is active.")
        self._catalog = df

    # ------------------------------------------------------------------ #
    #  Training + scoring                                                  #
    # ------------------------------------------------------------------ #

    def train_and_predict(self) -> RunResult:
        """
        Train a fresh model on the current catalog and score every event.

        Raises
        ------
        InsufficientDataError
            Fewer than ``min_events`` events or ``min_examples`` examples.
        TrainingError
            Any failure while building features, fitting or scoring.
        RunInProgressError
            Another run is active on this session.
        """
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("A training run is already in progress.")
        try:
            return self._run()
        finally:
            self._run_lock.release()

    async def train_and_predict_async(self, timeout: Optional[float] = None) -> RunResult:
        """
        :meth:`train_and_predict` on a worker thread.

        With *timeout*, ``asyncio.TimeoutError`` is raised once it elapses;
        the worker keeps the session locked until it actually finishes.
        """
        if self.is_running:
            raise RunInProgressError("A training run is already in progress.")
        work = asyncio.to_thread(self.train_and_predict)
        if timeout is None:
            return await work
        return await asyncio.wait_for(work, timeout)

    def _run(self) -> RunResult:
        t0 = time.time()
        cfg = self.cfg
        catalog = self._catalog

        try:
            self._emit(RunStage.PREPARING, f"preparing data ({len(catalog):,} events)")
            if len(catalog) < cfg.min_events:
                raise InsufficientDataError(
                    f"Not enough data: {len(catalog)} events "
                    f"(at least {cfg.min_events} required)",
                    n_events=len(catalog),
                )

            train_df, feat_meta = build_training_features(catalog, cfg.forecast)
            if len(train_df) < cfg.min_examples:
                raise InsufficientDataError(
                    f"Too few training examples after processing: {len(train_df)} "
                    f"(at least {cfg.min_examples} required)",
                    n_events=len(catalog),
                    n_examples=len(train_df),
                )

            if not cfg.skip_checks:
                try:
                    run_all_checks(catalog, train_df, FEATURE_NAMES)
                except AssertionError as e:
                    raise TrainingError(f"Quality check failed: {e}") from e

            self._emit(
                RunStage.TRAINING,
                f"training model on {len(train_df):,} examples "
                f"({feat_meta['n_positive']:,} positive)",
            )
            params = fit_normalizer(train_df[FEATURE_NAMES], eps=cfg.norm_eps)
            X = params.transform(feature_matrix(train_df))
            y = train_df["label"].to_numpy()
            model = RiskClassifier.from_config(cfg.model).fit(X, y)
            metrics = compute_metrics(y, model.predict_proba(X))

            self._emit(RunStage.SCORING, f"scoring {len(catalog):,} events")
            predictions = score_events(catalog, params, model, cfg.forecast)
            hotspot = select_hotspot(predictions)

        except InsufficientDataError as e:
            self._emit(RunStage.ERROR, str(e), FailureReason.INSUFFICIENT_DATA)
            raise
        except TrainingError as e:
            self._emit(RunStage.ERROR, str(e), FailureReason.TRAINING_FAILED)
            raise
        except Exception as e:
            msg = f"Training failed: {type(e).__name__}: {e}"
            self._emit(RunStage.ERROR, msg, FailureReason.TRAINING_FAILED)
            raise TrainingError(msg) from e

        result = RunResult(
            predictions=predictions,
            hotspot=hotspot,
            metrics=metrics,
            n_events=len(catalog),
            n_examples=len(train_df),
            n_positive=int(feat_meta["n_positive"]),
            elapsed_s=time.time() - t0,
            feature_meta=feat_meta,
            config=cfg.to_dict(),
        )

        self.model = model
        self.normalization = params
        self.predictions = predictions
        self.hotspot = hotspot
        self.last_result = result

        self._emit(
            RunStage.DONE,
            f"done: {len(predictions):,} events scored in {result.elapsed_s:.1f}s",
        )
        return result

    def _emit(
        self,
        stage: RunStage,
        message: str = "",
        reason: Optional[FailureReason] = None,
    ) -> None:
        self.status = StatusUpdate(stage, message, reason)
        if self.on_status is not None:
            self.on_status(self.status)
