#!/usr/bin/env python3
"""
utils/make_synthetic_catalog.py
===============================
Write a synthetic earthquake catalog CSV in the layout of the regional
bulletins the pipeline ingests (``DATE, TIME, LAT, LONG, M/I, LOCATE``,
Buddhist-era day-first dates).

Events are drawn around a few fault-zone centres; each centre produces
background micro-seismicity plus occasional clustered sequences whose
largest shock exceeds the default M4 threshold.

Usage
-----
  python utils/make_synthetic_catalog.py                       # data/synthetic_catalog.csv
  python utils/make_synthetic_catalog.py --n 2000 --seed 7 --output /tmp/cat.csv
"""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

# (lat, lon, label) of the synthetic source zones
ZONES = [
    (19.90, 99.10, "Mae Chan Fault, Chiang Rai"),
    (18.80, 98.30, "Mae Tha Fault, Chiang Mai"),
    (14.90, 98.60, "Three Pagodas Fault, Kanchanaburi"),
    (21.50, 95.90, "Sagaing Fault, Myanmar"),
]


def make_catalog(n: int, seed: int, start: datetime, days: int) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    rows = []
    for _ in range(n):
        lat0, lon0, label = ZONES[rng.integers(len(ZONES))]
        t = start + timedelta(seconds=float(rng.uniform(0, days * 86400)))
        lat = lat0 + rng.normal(0, 0.15)
        lon = lon0 + rng.normal(0, 0.15)
        # Gutenberg-Richter-like magnitudes, b ≈ 1
        mag = 1.5 + rng.exponential(1 / np.log(10))
        rows.append((t, lat, lon, mag, label))

        # occasional short aftershock sequence
        if mag >= 3.5 and rng.random() < 0.5:
            for _ in range(int(rng.integers(2, 6))):
                dt = timedelta(hours=float(rng.exponential(48)))
                rows.append((
                    t + dt,
                    lat + rng.normal(0, 0.05),
                    lon + rng.normal(0, 0.05),
                    max(1.0, mag - rng.uniform(0.3, 1.5)),
                    label,
                ))

    rows.sort(key=lambda r: r[0])
    return pd.DataFrame({
        "DATE": [f"{t.day}/{t.month}/{t.year + 543}" for t, *_ in rows],
        "TIME": [t.strftime("%H:%M:%S") for t, *_ in rows],
        "LAT": [f"{lat:.4f}" for _, lat, *_ in rows],
        # comma decimals as in some bulletin exports
        "LONG": [f"{lon:.4f}".replace(".", ",") for _, _, lon, *_ in rows],
        "M/I": [f"{mag:.1f}" for *_, mag, _ in rows],
        "LOCATE": [label for *_, label in rows],
    })


def main():
    parser = argparse.ArgumentParser(description="Generate a synthetic catalog CSV.")
    parser.add_argument("--n", type=int, default=800, help="Number of mainshocks.")
    parser.add_argument("--days", type=int, default=730, help="Catalog span in days.")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--start", type=str, default="2021-01-01",
                        help="Catalog start date (ISO).")
    parser.add_argument("--output", type=str, default="data/synthetic_catalog.csv")
    args = parser.parse_args()

    df = make_catalog(args.n, args.seed, datetime.fromisoformat(args.start), args.days)
    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, index=False)
    print(f"Wrote {len(df):,} events to {out}")


if __name__ == "__main__":
    main()
