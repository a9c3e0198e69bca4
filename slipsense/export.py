"""
slipsense.export
================
Prediction export, run metadata and the runs summary table.

Folder layout
-------------
::

    runs/
        summary_results.csv           ← one row per run
        run_YYYYmmdd_HHMMSS_ffffff/
            pipeline_config.json      ← config snapshot
            metadata.json             ← metrics, feature meta, env, input hash
            predictions.csv           ← every event + probability
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .config import PipelineConfig, file_hash, get_environment_info
from .schema import RunResult, predictions_to_frame


# ======================================================================== #
#  Save datasets                                                            #
# ======================================================================== #

def save_dataframe(
    df: pd.DataFrame,
    path: str | Path,
    fmt: str = "csv",
) -> str:
    """
    Save a DataFrame to disk.

    Parameters
    ----------
    df : pd.DataFrame
    path : str or Path
        Target file path (extension will be corrected).
    fmt : str
        ``'csv'`` (default) or ``'parquet'``.

    Returns
    -------
    str  – actual path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "parquet":
        path = path.with_suffix(".parquet")
        df.to_parquet(path, index=False)
    elif fmt == "csv":
        path = path.with_suffix(".csv")
        df.to_csv(path, index=False)
    else:
        raise ValueError(f"Unsupported format: {fmt}")

    return str(path)


# ======================================================================== #
#  Run metadata                                                             #
# ======================================================================== #

def save_run_metadata(
    run_dir: str | Path,
    result: RunResult,
    source_path: Optional[str] = None,
    extra: Optional[Dict] = None,
) -> str:
    """
    Write ``metadata.json`` for one run.

    Returns the path of the written file.
    """
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)

    meta = {
        "timestamp": datetime.now().isoformat(),
        "pipeline_config": result.config,
        "feature_meta": _make_serialisable(result.feature_meta),
        "metrics": _make_serialisable(result.metrics),
        "n_events": result.n_events,
        "n_examples": result.n_examples,
        "n_positive": result.n_positive,
        "elapsed_s": round(result.elapsed_s, 3),
        "hotspot": (
            _make_serialisable(result.hotspot.to_dict())
            if result.hotspot is not None else None
        ),
        "environment": get_environment_info(),
    }

    if source_path and os.path.exists(source_path):
        meta["source_file"] = {
            "name": os.path.basename(source_path),
            "sha256": file_hash(source_path),
        }

    if extra:
        meta.update(_make_serialisable(extra))

    out_path = run_dir / "metadata.json"
    out_path.write_text(json.dumps(meta, indent=2, default=str))
    return str(out_path)


def export_run(
    result: RunResult,
    config: PipelineConfig,
    source_path: Optional[str] = None,
    fmt: str = "csv",
    run_name: Optional[str] = None,
) -> Path:
    """
    Write predictions, config snapshot and metadata for one run, and append
    a row to the summary table.  Returns the run directory.

    Without *run_name* a fresh ``run_<timestamp>`` directory is created;
    an explicit *run_name* is reused (and overwritten) as given.
    """
    if run_name is None:
        run_dir = _new_run_dir(Path(config.output_dir))
        run_name = run_dir.name
    else:
        run_dir = Path(config.output_dir) / run_name
        run_dir.mkdir(parents=True, exist_ok=True)

    config.save(run_dir / "pipeline_config.json")
    save_dataframe(predictions_to_frame(result.predictions), run_dir / "predictions", fmt=fmt)
    save_run_metadata(run_dir, result, source_path=source_path)

    row = {"run": run_name, **result.summary_row()}
    update_summary_table(config.output_dir, row)
    return run_dir


# ======================================================================== #
#  Summary table                                                            #
# ======================================================================== #

def update_summary_table(
    output_dir: str | Path,
    row: Dict[str, Any],
    filename: str = "summary_results.csv",
) -> pd.DataFrame:
    """
    Append a result row to the summary CSV.  Creates the file if needed.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / filename

    new_row = pd.DataFrame([row])

    if csv_path.exists():
        existing = pd.read_csv(csv_path)
        combined = pd.concat([existing, new_row], ignore_index=True)
    else:
        combined = new_row

    combined.to_csv(csv_path, index=False)
    return combined


# ======================================================================== #
#  Internal helpers                                                         #
# ======================================================================== #

def _new_run_dir(output_dir: Path) -> Path:
    """Create and return an unused ``run_YYYYmmdd_HHMMSS_ffffff[_n]`` folder."""
    output_dir.mkdir(parents=True, exist_ok=True)
    base = datetime.now().strftime("run_%Y%m%d_%H%M%S_%f")
    candidate = output_dir / base
    n = 1
    while True:
        try:
            candidate.mkdir()
            return candidate
        except FileExistsError:
            candidate = output_dir / f"{base}_{n}"
            n += 1


def _make_serialisable(obj: Any) -> Any:
    """Recursively convert numpy / datetime types for JSON serialisation."""
    if isinstance(obj, dict):
        return {k: _make_serialisable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_make_serialisable(v) for v in obj]
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (datetime, pd.Timestamp)):
        return obj.isoformat()
    return obj
