"""
slipsense.schema
================
Plain record types exchanged with callers.

Inside the pipeline a catalog travels as a pandas DataFrame with the
``CATALOG_COLUMNS`` layout; these dataclasses are the boundary form handed
to (and received from) whatever presents the results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .config import CATALOG_COLUMNS, UNKNOWN_LOCATION


@dataclass(frozen=True)
class EventRecord:
    """One seismic observation."""
    time: datetime
    lat: float
    lon: float
    mag: float
    locate: str = UNKNOWN_LOCATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "lat": self.lat,
            "lon": self.lon,
            "mag": self.mag,
            "locate": self.locate,
        }


@dataclass(frozen=True)
class PredictionRecord:
    """An event annotated with the probability of a qualifying future event."""
    event: EventRecord
    probability: float

    def to_dict(self) -> Dict[str, Any]:
        d = self.event.to_dict()
        d["probability"] = self.probability
        return d


@dataclass
class RunResult:
    """Everything one training + scoring run hands back."""
    predictions: List[PredictionRecord]
    hotspot: Optional[PredictionRecord]
    metrics: Dict[str, float] = field(default_factory=dict)
    n_events: int = 0
    n_examples: int = 0
    n_positive: int = 0
    elapsed_s: float = 0.0
    feature_meta: Dict[str, Any] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)

    def summary_row(self) -> Dict[str, Any]:
        """Flat one-line summary (for the runs table)."""
        row: Dict[str, Any] = {
            "n_events": self.n_events,
            "n_examples": self.n_examples,
            "n_positive": self.n_positive,
            "elapsed_s": round(self.elapsed_s, 2),
        }
        row.update({f"train_{k}": v for k, v in self.metrics.items()})
        if self.hotspot is not None:
            row["hotspot_probability"] = self.hotspot.probability
            row["hotspot_locate"] = self.hotspot.event.locate
            row["hotspot_time"] = self.hotspot.event.time.isoformat()
        return row


# ======================================================================== #
#  DataFrame <-> record conversion                                          #
# ======================================================================== #

def events_to_frame(events: Iterable[EventRecord]) -> pd.DataFrame:
    """Build a catalog DataFrame (``CATALOG_COLUMNS``) from records."""
    rows = [e.to_dict() for e in events]
    df = pd.DataFrame(rows, columns=CATALOG_COLUMNS)
    df["time"] = pd.to_datetime(df["time"])
    return df


def events_from_frame(df: pd.DataFrame) -> List[EventRecord]:
    """Inverse of :func:`events_to_frame`, preserving row order."""
    return [
        EventRecord(
            time=pd.Timestamp(row.time).to_pydatetime(),
            lat=float(row.lat),
            lon=float(row.lon),
            mag=float(row.mag),
            locate=str(row.locate),
        )
        for row in df[CATALOG_COLUMNS].itertuples(index=False)
    ]


def predictions_to_frame(predictions: Iterable[PredictionRecord]) -> pd.DataFrame:
    """Tabular view of scored events (``CATALOG_COLUMNS + ['probability']``)."""
    rows = [p.to_dict() for p in predictions]
    return pd.DataFrame(rows, columns=CATALOG_COLUMNS + ["probability"])
