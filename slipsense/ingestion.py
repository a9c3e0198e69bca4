"""
slipsense.ingestion
===================
Turn loosely formatted catalog rows into a clean, time-sorted event table.

Public API
----------
parse_event_datetime(date, time)  → datetime | None
parse_number(value)               → float  (NaN on failure)
normalize_catalog(raw_df)         → pd.DataFrame  (CATALOG_COLUMNS, sorted)
normalize_rows(rows)              → pd.DataFrame  (same, from dict rows)
load_catalog(path)                → pd.DataFrame  (same, from CSV)
sort_catalog(df)                  → pd.DataFrame  (stable time sort)

Row-level failures never raise: an unparseable date or a non-numeric
coordinate/magnitude simply drops the row.  The number of dropped rows is
kept in ``df.attrs["n_dropped"]``.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .config import (
    CATALOG_COLUMNS,
    COLUMN_ALIASES,
    DEFAULT_TIME,
    UNKNOWN_LOCATION,
)

# datetime64[ns] range; anything outside cannot live in the catalog table
_TIME_MIN = datetime(1677, 9, 22)
_TIME_MAX = datetime(2262, 4, 11)

_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# ======================================================================== #
#  1.  Date / time parsing                                                  #
# ======================================================================== #

def parse_event_datetime(
    date_str: Any,
    time_str: Any = None,
) -> Optional[datetime]:
    """
    Parse a catalog date + time pair into a naive local ``datetime``.

    Date tokens are split on ``/`` (or ``-`` when no slash is present).
    With three tokens the order is disambiguated by the first one:

      • first token > 31  → ``year, month, day``  (``2023-12-31``)
      • otherwise         → ``day, month, year``  (``31/12/2023``)

    Years above 2400 are Buddhist-era and shifted by −543; two-digit years
    are taken as 20xx.  The time uses ``:`` or ``.`` separators and missing
    parts default to 0.  Any other date shape falls back to
    ``pandas.to_datetime`` on ``"<date> <time>"``.

    Returns
    -------
    datetime or None
        None when the input cannot be parsed.
    """
    if _is_blank(date_str):
        return None
    sdate = str(date_str).strip()
    stime = DEFAULT_TIME if _is_blank(time_str) else str(time_str).strip()
    clock = stime.replace(".", ":")

    try:
        tokens = sdate.split("/") if "/" in sdate else sdate.split("-")
        if len(tokens) != 3:
            return _generic_parse(f"{sdate} {clock}")

        first, second, third = (int(tok.strip()) for tok in tokens)
        if first > 31:
            year, month, day = first, second, third
        else:
            day, month, year = first, second, third

        if year > 2400:
            year -= 543
        if year < 100:
            year += 2000

        hh, mm, ss = _parse_clock(clock)
        dt = datetime(year, month, day, hh, mm, ss)
    except (ValueError, TypeError, OverflowError):
        return None

    return dt if _TIME_MIN <= dt <= _TIME_MAX else None


def _parse_clock(clock: str) -> Tuple[int, int, int]:
    parts = clock.split(":")[:3]
    parts += ["0"] * (3 - len(parts))
    hh, mm, ss = (int(p.strip() or "0") for p in parts)
    return hh, mm, ss


def _generic_parse(text: str) -> Optional[datetime]:
    ts = pd.to_datetime(text)
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    dt = ts.to_pydatetime()
    return dt if _TIME_MIN <= dt <= _TIME_MAX else None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and np.isnan(value):
        return True
    return str(value).strip() == ""


# ======================================================================== #
#  2.  Numeric parsing                                                      #
# ======================================================================== #

def parse_number(value: Any) -> float:
    """
    Lenient float parser for catalog fields.

    Accepts a comma decimal separator (``"4,5"`` → 4.5) and ignores trailing
    text after a numeric prefix (``"3.2 ML"`` → 3.2).  Returns NaN when no
    number can be read.
    """
    if value is None:
        return float("nan")
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip().replace(",", ".", 1)
    m = _NUMBER_PREFIX.match(text)
    return float(m.group(0)) if m else float("nan")


# ======================================================================== #
#  3.  Table normalisation                                                  #
# ======================================================================== #

def normalize_catalog(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Resolve column aliases, parse every field and drop unusable rows.

    Parameters
    ----------
    raw : pd.DataFrame
        Rows as read from a catalog export; values may be strings.

    Returns
    -------
    pd.DataFrame
        Columns ``time, lat, lon, mag, locate`` sorted by ``time`` (stable),
        fresh ``RangeIndex``.  ``attrs["n_dropped"]`` counts discarded rows.
    """
    dates = _coalesce(raw, COLUMN_ALIASES["date"])
    clocks = _coalesce(raw, COLUMN_ALIASES["time"])
    locate = _coalesce(raw, COLUMN_ALIASES["locate"])

    times = [parse_event_datetime(d, t) for d, t in zip(dates, clocks)]

    out = pd.DataFrame({
        "time": pd.to_datetime(pd.Series(times, index=raw.index, dtype="object")),
        "lat": _coalesce(raw, COLUMN_ALIASES["lat"]).map(parse_number).astype(float),
        "lon": _coalesce(raw, COLUMN_ALIASES["lon"]).map(parse_number).astype(float),
        "mag": _coalesce(raw, COLUMN_ALIASES["mag"]).map(parse_number).astype(float),
        "locate": locate.map(lambda v: UNKNOWN_LOCATION if _is_blank(v) else str(v).strip()),
    })

    valid = (
        out["time"].notna()
        & np.isfinite(out["lat"])
        & np.isfinite(out["lon"])
        & np.isfinite(out["mag"])
    )
    out = sort_catalog(out[valid])
    out.attrs["n_dropped"] = int((~valid).sum())
    return out


def normalize_rows(rows: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Same as :func:`normalize_catalog` for an iterable of dict rows."""
    return normalize_catalog(pd.DataFrame(list(rows)))


def load_catalog(path: str | Path, **read_csv_kwargs) -> pd.DataFrame:
    """
    Read a catalog CSV (header row required) and normalise it.

    All columns are read as text so that the lenient parsers above see the
    values exactly as written.
    """
    kwargs = {
        "dtype": str,
        "keep_default_na": False,
        "skipinitialspace": True,
        "encoding": "utf-8-sig",
    }
    kwargs.update(read_csv_kwargs)
    raw = pd.read_csv(path, **kwargs)
    return normalize_catalog(raw)


def sort_catalog(df: pd.DataFrame) -> pd.DataFrame:
    """Stable sort by ``time`` with a fresh index, catalog columns only."""
    return (
        df[CATALOG_COLUMNS]
        .sort_values("time", kind="mergesort")
        .reset_index(drop=True)
    )


def _coalesce(df: pd.DataFrame, aliases: List[str]) -> pd.Series:
    """First non-blank value across the alias columns, row-wise."""
    out = pd.Series([None] * len(df), index=df.index, dtype="object")
    for col in aliases:
        if col not in df.columns:
            continue
        missing = out.map(_is_blank)
        out = out.where(~missing, df[col])
    return out
