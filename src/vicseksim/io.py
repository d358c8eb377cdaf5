"""Reading and writing run artifacts.

A single run produces ``traj.npz`` (frames of positions, headings and
velocities together with the Phi statistics of each saved frame), a CSV
table of the Phi time series and a ``run.json`` record of the configuration
and the final statistics. Noise sweeps write their table with
:func:`save_table`.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd

TRAJECTORY_KEYS = ("traj", "headings", "vel", "iterations", "times", "phi", "avg_phi")


def ensure_dir(path: str | Path) -> Path:
    """Create ``path`` (and parents) if missing and return it as a :class:`Path`."""

    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def save_trajectory(out_dir: str | Path, results: Dict[str, Any], config: Dict[str, Any], name: str = "traj") -> Path:
    """Store the saved frames of :func:`~vicseksim.simulation.run_simulation`.

    The nested configuration is embedded as a JSON string under ``config``
    so an archive can be replayed without its YAML file.
    """

    path = ensure_dir(out_dir) / f"{name}.npz"
    arrays = {key: np.asarray(results[key]) for key in TRAJECTORY_KEYS}
    np.savez(path, config=np.array(json.dumps(config)), **arrays)
    return path


def load_trajectory(path: str | Path) -> Dict[str, Any]:
    """Inverse of :func:`save_trajectory`; ``config`` is decoded back to a dict."""

    with np.load(Path(path)) as data:
        out: Dict[str, Any] = {key: data[key] for key in TRAJECTORY_KEYS}
        out["config"] = json.loads(str(data["config"]))
    return out


def save_table(out_dir: str | Path, name: str, df: pd.DataFrame) -> Path:
    """Write ``df`` as ``<name>.csv`` without the index column."""

    path = ensure_dir(out_dir) / f"{name}.csv"
    df.to_csv(path, index=False)
    return path


def git_commit_hash() -> str | None:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "HEAD"], text=True, stderr=subprocess.DEVNULL
        ).strip()
    except (subprocess.CalledProcessError, FileNotFoundError):  # pragma: no cover - git optional
        return None


def save_run_metadata(out_dir: str | Path, config: Dict[str, Any], summary: Dict[str, Any]) -> Path:
    """Write ``run.json`` with the configuration, final statistics and commit."""

    path = ensure_dir(out_dir) / "run.json"
    payload = {"config": config, "summary": summary, "git_commit": git_commit_hash()}
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


__all__ = [
    "TRAJECTORY_KEYS",
    "ensure_dir",
    "git_commit_hash",
    "load_trajectory",
    "save_run_metadata",
    "save_table",
    "save_trajectory",
]
