"""Discrete-time Vicsek model on a periodic rectangle.

This module implements the self-propelled particle model of
Vicsek et al., "Novel Type of Phase Transition in a System of Self-Driven
Particles", Physical Review Letters 75, 1226 (1995).

Particles move at constant speed and update their headings based on local
alignment with neighbours. One step has three strictly ordered phases:

1. Find the neighbours of every particle within radius ``R`` (toroidal
   distance, self excluded).
2. Update every heading synchronously: the argument of the summed unit
   vectors of the particle and its neighbours, plus uniform angular noise
   in ``[-eta/2, eta/2]``. Isolated particles only receive the noise.
3. Move every particle by ``v0 * dt`` along its new heading and wrap it
   back onto the torus.

Example
-------
    >>> from vicseksim.rng import LCGRandom
    >>> rng = LCGRandom(42)
    >>> x = rng.uniform(0.0, 10.0, size=20).reshape(10, 2)
    >>> theta = rng.uniform(0.0, 2.0 * np.pi, size=10)
    >>> x, theta, neighbours = step_vicsek(x, theta, 1.0, 1.0, 10.0, 10.0, 2.0, 0.3, rng)

References
----------
[1] Vicsek et al. PRL 75, 1226 (1995) - Original model
[2] Chaté et al. PRE 77, 046113 (2008) - Phase diagram analysis
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

import numpy as np

from .domain import NeighborFinder, wrap
from .noise import angle_noise
from .particles import headings_from_angles
from .rng import LCGRandom

# Resultants shorter than this are treated as the zero vector (opposing
# headings cancel), whose argument is atan2(0, 0) = 0.
CANCELLATION_TOL = 1e-12


def compute_neighbors(
    x: np.ndarray,
    Lx: float,
    Ly: float,
    R: float,
    method: str = "cells",
) -> List[np.ndarray]:
    """Return neighbour indices within radius ``R`` for every particle."""

    return NeighborFinder(Lx, Ly, R, method=method).neighbors_of(np.asarray(x, dtype=float))


def mean_heading(theta: np.ndarray, i: int, idx: np.ndarray) -> float:
    """Argument of the summed unit vectors of particle ``i`` and ``idx``.

    The particle's own vector is added first, then its neighbours in index
    order. An (almost) exactly cancelling sum yields ``0.0``.
    """

    sum_x = float(np.cos(theta[i])) + float(np.sum(np.cos(theta[idx])))
    sum_y = float(np.sin(theta[i])) + float(np.sum(np.sin(theta[idx])))
    if np.hypot(sum_x, sum_y) <= CANCELLATION_TOL:
        return float(np.arctan2(0.0, 0.0))
    return float(np.arctan2(sum_y, sum_x))


def align_headings(
    theta: np.ndarray,
    neighbours: Sequence[np.ndarray],
    eta: float,
    rng: LCGRandom,
    order: Iterable[int] | None = None,
) -> np.ndarray:
    """Synchronous Vicsek heading update.

    Parameters
    ----------
    theta : ndarray, shape (N,)
        Headings before the update. Never modified.
    neighbours : sequence of ndarray
        ``neighbours[i]`` holds the neighbour indices of particle ``i``.
    eta : float
        Noise amplitude; perturbations are ``Uniform(-eta/2, eta/2)``.
    rng : LCGRandom
        Shared random source. Exactly ``N`` draws are taken, the ``i``-th
        one belonging to particle ``i``.
    order : iterable of int, optional
        Processing order of the particles. Every permutation produces the
        same result; the argument exists so that property can be checked.

    Returns
    -------
    ndarray, shape (N,)
        New headings. Not wrapped to ``[0, 2*pi)``.
    """

    theta = np.asarray(theta, dtype=float)
    n = theta.shape[0]
    noise = angle_noise(rng, eta, n)
    theta_new = np.empty_like(theta)
    for i in range(n) if order is None else order:
        idx = neighbours[i]
        if idx.size == 0:
            theta_new[i] = theta[i] + noise[i]
        else:
            theta_new[i] = mean_heading(theta, i, idx) + noise[i]
    return theta_new


def integrate_positions(
    x: np.ndarray,
    theta: np.ndarray,
    v0: float,
    dt: float,
    Lx: float,
    Ly: float,
) -> np.ndarray:
    """Return ``wrap(x + v0 * (cos theta, sin theta) * dt)``."""

    velocity = v0 * headings_from_angles(theta)
    return wrap(np.asarray(x, dtype=float) + velocity * dt, Lx, Ly)


def step_vicsek(
    x: np.ndarray,
    theta: np.ndarray,
    v0: float,
    dt: float,
    Lx: float,
    Ly: float,
    R: float,
    eta: float,
    rng: LCGRandom,
    method: str = "cells",
) -> Tuple[np.ndarray, np.ndarray, List[np.ndarray]]:
    """Advance the discrete-time Vicsek dynamics by one step.

    Returns the new positions, the new headings and the neighbour lists
    that were used for the alignment phase.
    """

    neighbours = compute_neighbors(x, Lx, Ly, R, method=method)
    theta_new = align_headings(theta, neighbours, eta, rng)
    x_new = integrate_positions(x, theta_new, v0, dt, Lx, Ly)
    return x_new, theta_new, neighbours


__all__ = [
    "CANCELLATION_TOL",
    "align_headings",
    "compute_neighbors",
    "integrate_positions",
    "mean_heading",
    "step_vicsek",
]
