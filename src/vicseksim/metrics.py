"""Order parameters and running statistics for Vicsek simulations.

Implements the instantaneous order parameter

    Phi = |sum_i v_i| / (N * v0),

its burn-in aware trailing average, and the per-particle local order used
to colour particles by how aligned their neighbourhood is.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd

from .particles import headings_from_angles

ArrayLike = np.ndarray


def order_parameter(theta: ArrayLike, speed: float) -> float:
    """Compute the Vicsek order parameter for headings ``theta``.

    With constant speed ``|sum v_i| / (N * v0)`` reduces to the length of
    the mean unit heading, which is what is evaluated here. Identical
    headings give exactly ``1.0`` and rounding never pushes the value above
    it. ``0.0`` is returned for an empty swarm or ``speed == 0`` instead of
    dividing by zero.
    """

    theta = np.asarray(theta, dtype=float)
    n = theta.shape[0]
    if n == 0 or speed == 0:
        return 0.0
    if np.all(theta == theta[0]):
        return 1.0
    total = np.sum(headings_from_angles(theta), axis=0)
    return float(min(1.0, np.hypot(total[0], total[1]) / n))


def local_order(theta: ArrayLike, neighbours: Sequence[ArrayLike]) -> ArrayLike:
    """Per-particle length of the mean unit heading of its neighbours.

    Isolated particles get ``0.0``. The particle's own heading is not
    included.
    """

    theta = np.asarray(theta, dtype=float)
    out = np.zeros(theta.shape[0], dtype=float)
    for i, idx in enumerate(neighbours):
        idx = np.asarray(idx, dtype=int)
        if idx.size:
            sx = np.sum(np.cos(theta[idx]))
            sy = np.sum(np.sin(theta[idx]))
            out[i] = np.hypot(sx, sy) / idx.size
    return out


def running_average(history: Sequence[float], window: int) -> float:
    """Mean of the last ``min(window, len(history))`` entries."""

    if window <= 0:
        raise ValueError("window must be positive")
    if len(history) == 0:
        return 0.0
    tail = np.asarray(history[-window:], dtype=float)
    return float(np.mean(tail))


class OrderParameterTracker:
    """Accumulate the order parameter history and its running average.

    Parameters
    ----------
    burn_in : int
        The average is only recomputed once ``iteration >= burn_in``;
        before that it keeps its last value (initially ``0.0``).
    avg_window : int
        Length of the right-aligned averaging window.
    """

    def __init__(self, burn_in: int, avg_window: int):
        self.burn_in = int(burn_in)
        self.avg_window = int(avg_window)
        self.history: List[float] = []
        self.current_phi = 0.0
        self.avg_phi = 0.0

    def update(self, phi: float, iteration: int) -> None:
        self.current_phi = float(phi)
        self.history.append(self.current_phi)
        if iteration >= self.burn_in:
            self.avg_phi = running_average(self.history, self.avg_window)


def compute_timeseries(phi_history: Sequence[float], burn_in: int, avg_window: int) -> pd.DataFrame:
    """Replay a Phi history through the tracker and tabulate it.

    Row ``k`` describes iteration ``k + 1``: the instantaneous ``phi`` and
    the ``avg_phi`` the tracker reported after that step.
    """

    tracker = OrderParameterTracker(burn_in, avg_window)
    records = []
    for k, phi in enumerate(phi_history, start=1):
        tracker.update(phi, k)
        records.append({"iteration": k, "phi": tracker.current_phi, "avg_phi": tracker.avg_phi})
    return pd.DataFrame.from_records(records, columns=["iteration", "phi", "avg_phi"])


__all__ = [
    "OrderParameterTracker",
    "compute_timeseries",
    "local_order",
    "order_parameter",
    "running_average",
]
