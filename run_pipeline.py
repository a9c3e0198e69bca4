#!/usr/bin/env python3
"""
run_pipeline.py
===============
Train a seismic risk classifier on a catalog CSV and score every event.

Usage
-----
  # Defaults: 50 km cells, 30-day lookback, 7-day horizon, M ≥ 4.0
  python run_pipeline.py --csv data/catalog.csv

  # Custom windows
  python run_pipeline.py --csv data/catalog.csv --cell-km 25 \\
      --lookback-days 60 --horizon-days 14 --threshold 5.0

  # Config from JSON (CLI flags still override)
  python run_pipeline.py --csv data/catalog.csv --config runs/my_config.json

Pipeline Flow
-------------
::

  catalog CSV  ──→  parse dates (D/M/Y or Y-M-D, Buddhist era) + numbers
       │
       ▼
  sort by time, group into grid cells (cell-km)
       │
       ▼
  training features per cell  (lookback stats, horizon label)
       │
       ▼
  z-score fit (train only)  →  feed-forward classifier (BCE, Adam)
       │
       ▼
  inference features per event  (radius = cell-km)
       │
       ▼
  probability per event  +  hotspot  →  runs/<run>/predictions.csv

Exit codes: 0 success, 1 training failure, 2 insufficient data or invalid
configuration.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure the project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from slipsense.config import ForecastConfig, PipelineConfig, RunStage
from slipsense.export import export_run
from slipsense.models.classifier import TrainingError
from slipsense.session import (
    ForecastSession,
    InsufficientDataError,
    StatusUpdate,
)


# ======================================================================== #
#  CLI                                                                      #
# ======================================================================== #

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Slipsense seismic risk pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--csv", type=str, required=True,
                        help="Catalog CSV (DATE, TIME, LAT, LONG, M/I, LOCATE …).")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to a pipeline_config.json file.")
    parser.add_argument("--cell-km", type=float, default=None,
                        help="Grid cell size / inference radius in km (default 50).")
    parser.add_argument("--lookback-days", type=float, default=None,
                        help="Lookback window in days (default 30).")
    parser.add_argument("--horizon-days", type=float, default=None,
                        help="Forecast horizon in days (default 7).")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Magnitude threshold for a qualifying event (default 4.0).")
    parser.add_argument("--epochs", type=int, default=None,
                        help="Training epochs (default 40).")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed (default 42).")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Where run folders are written (default: runs).")
    parser.add_argument("--format", type=str, default="csv",
                        choices=["csv", "parquet"],
                        help="Prediction export format (default: csv).")
    parser.add_argument("--skip-checks", action="store_true",
                        help="Skip ordering/leakage/quality checks.")
    parser.add_argument("--top", type=int, default=10,
                        help="How many highest-risk events to print (default 10).")
    return parser.parse_args(argv)


def build_config(args) -> PipelineConfig:
    if args.config:
        cfg = PipelineConfig.load(args.config)
        print(f"Loaded config from {args.config}")
    else:
        cfg = PipelineConfig()

    fc = cfg.forecast
    cfg.forecast = ForecastConfig(
        cell_size_km=args.cell_km if args.cell_km is not None else fc.cell_size_km,
        lookback_days=args.lookback_days if args.lookback_days is not None else fc.lookback_days,
        horizon_days=args.horizon_days if args.horizon_days is not None else fc.horizon_days,
        magnitude_threshold=args.threshold if args.threshold is not None else fc.magnitude_threshold,
    )
    if args.epochs is not None:
        cfg.model.epochs = args.epochs
    if args.seed is not None:
        cfg.model.random_seed = args.seed
    if args.output_dir is not None:
        cfg.output_dir = args.output_dir
    if args.skip_checks:
        cfg.skip_checks = True
    return cfg


def print_status(update: StatusUpdate) -> None:
    marker = "✗" if update.stage == RunStage.ERROR else "→"
    print(f"  {marker} [{update.stage.value}] {update.message}")


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        cfg = build_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        return 2
    fc = cfg.forecast

    print("\nPipeline Configuration:")
    print(f"  Catalog        : {args.csv}")
    print(f"  Cell size (km) : {fc.cell_size_km}")
    print(f"  Lookback (d)   : {fc.lookback_days}")
    print(f"  Horizon (d)    : {fc.horizon_days}")
    print(f"  Threshold (M)  : {fc.magnitude_threshold}")
    print(f"  Epochs         : {cfg.model.epochs}")
    print(f"  Output dir     : {cfg.output_dir}")
    print()

    session = ForecastSession(cfg, on_status=print_status)
    n = session.load_csv(args.csv)
    dropped = session.catalog.attrs.get("n_dropped", 0)
    print(f"Loaded {n:,} events ({dropped:,} unparseable rows dropped)")

    try:
        result = asyncio.run(session.train_and_predict_async())
    except InsufficientDataError as e:
        print(f"\nInsufficient data: {e}")
        return 2
    except TrainingError as e:
        print(f"\nTraining failed: {e}")
        return 1

    run_dir = export_run(result, cfg, source_path=session.source_path, fmt=args.format)

    print(f"\n{'='*60}")
    print("  SUMMARY")
    print(f"{'='*60}")
    print(f"  Training examples : {result.n_examples:,} ({result.n_positive:,} positive)")
    for name in ("accuracy", "brier", "log_loss", "auc_roc"):
        print(f"  train {name:<11}: {result.metrics.get(name, float('nan')):.4f}")

    hs = result.hotspot
    if hs is not None:
        ev = hs.event
        print("\n  Highest-probability event:")
        print(f"    Location    : {ev.locate}")
        print(f"    Coordinates : {ev.lat:.4f}, {ev.lon:.4f}")
        print(f"    Time        : {ev.time}")
        print(f"    Magnitude   : {ev.mag}")
        print(f"    P(M ≥ {fc.magnitude_threshold}) : {hs.probability * 100:.2f}%")

    if args.top > 0:
        top = sorted(result.predictions, key=lambda p: p.probability, reverse=True)[: args.top]
        print(f"\n  Top {len(top)} events:")
        for p in top:
            print(f"    {p.event.time}  {p.event.locate[:30]:<30}  "
                  f"M{p.event.mag:<4}  {p.probability * 100:6.2f}%")

    print(f"\nResults saved to: {run_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
