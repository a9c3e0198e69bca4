"""
slipsense.spatial
=================
Great-circle distance and the quantised lat/lon grid.

Public API
----------
haversine_km(lat1, lon1, lat2, lon2)         → float
haversine_km_vector(lat, lon, lats, lons)    → np.ndarray
grid_cell(lat, lon, cell_size_km)            → (gx, gy)
assign_grid_cells(df, cell_size_km)          → df + ``gx, gy`` columns
group_by_grid(df, cell_size_km)              → {(gx, gy): time-sorted df}

Grid geometry
-------------
Cells are ``cell_size_km`` tall (``deg_lat = cell_size_km / 111``) and
approximately ``cell_size_km`` wide: the longitude step is widened by
``1 / cos(lat)`` so cells keep their ground size away from the equator.
Near the poles, where ``cos(lat)`` vanishes, the longitude divisor falls back
to 1 degree.

.. note::
   The grid is only used to group *training* events.  Inference looks for
   neighbours with a radius search instead (see ``features``), so an event
   near a cell edge can have different neighbours at training and scoring
   time.
"""

from __future__ import annotations

import math
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from .config import EARTH_RADIUS_KM, KM_PER_DEG_LAT

GridKey = Tuple[int, int]

_COS_EPS = 1e-12


# ======================================================================== #
#  Distance                                                                 #
# ======================================================================== #

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in km between two points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = (math.sin(dphi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2)
    # float overshoot for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def haversine_km_vector(
    lat: float,
    lon: float,
    lats: np.ndarray,
    lons: np.ndarray,
) -> np.ndarray:
    """Distances in km from one point to many (vectorised haversine)."""
    phi1 = np.radians(lat)
    phi2 = np.radians(np.asarray(lats, dtype=np.float64))
    dphi = phi2 - phi1
    dlmb = np.radians(np.asarray(lons, dtype=np.float64) - lon)
    a = np.sin(dphi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


# ======================================================================== #
#  Grid                                                                     #
# ======================================================================== #

def grid_cell(lat: float, lon: float, cell_size_km: float = 50.0) -> GridKey:
    """Integer grid coordinates ``(gx, gy)`` of a point."""
    deg_lat = cell_size_km / KM_PER_DEG_LAT
    gy = math.floor(lat / deg_lat)
    cos_lat = math.cos(math.radians(lat))
    deg_lon = deg_lat / cos_lat if abs(cos_lat) > _COS_EPS else 1.0
    gx = math.floor(lon / deg_lon)
    return int(gx), int(gy)


def assign_grid_cells(df: pd.DataFrame, cell_size_km: float = 50.0) -> pd.DataFrame:
    """
    Return a copy of *df* with integer ``gx`` / ``gy`` columns.

    Vectorised equivalent of calling :func:`grid_cell` on every row.
    """
    deg_lat = cell_size_km / KM_PER_DEG_LAT
    lat = df["lat"].to_numpy(dtype=np.float64)
    lon = df["lon"].to_numpy(dtype=np.float64)

    cos_lat = np.cos(np.radians(lat))
    safe_cos = np.where(np.abs(cos_lat) > _COS_EPS, cos_lat, 1.0)
    deg_lon = np.where(np.abs(cos_lat) > _COS_EPS, deg_lat / safe_cos, 1.0)

    out = df.copy()
    out["gy"] = np.floor(lat / deg_lat).astype(np.int64)
    out["gx"] = np.floor(lon / deg_lon).astype(np.int64)
    return out


def group_by_grid(
    df: pd.DataFrame,
    cell_size_km: float = 50.0,
) -> Dict[GridKey, pd.DataFrame]:
    """
    Partition events into grid cells.

    Returns
    -------
    dict
        ``{(gx, gy): members}`` where *members* keeps the original columns
        (plus ``gx, gy``) sorted by ``time`` with a stable sort.  Keys appear
        in order of each cell's first event in *df*.
    """
    cells = assign_grid_cells(df, cell_size_km)
    grouped = cells.groupby(["gx", "gy"], sort=False)
    return {
        (int(gx), int(gy)): members.sort_values("time", kind="mergesort")
        for (gx, gy), members in grouped
    }


def cell_label(key: GridKey) -> str:
    """``(gx, gy)`` → ``"gx,gy"`` (the metadata form of a cell key)."""
    return f"{key[0]},{key[1]}"
