"""Angular noise for the Vicsek heading update.

The Vicsek et al. (1995) model perturbs every heading by a uniform angle in
``[-eta/2, +eta/2]``. Draws come from the shared :class:`~vicseksim.rng.LCGRandom`
stream and are taken in particle index order so a run is reproducible
regardless of how the alignment loop is traversed.
"""

from __future__ import annotations

import numpy as np

from .rng import LCGRandom


def angle_noise(rng: LCGRandom, eta: float, size: int) -> np.ndarray:
    """Generate ``size`` angular perturbations from ``Uniform(-eta/2, eta/2)``.

    Parameters
    ----------
    rng : LCGRandom
        Shared random source; advanced exactly ``size`` times.
    eta : float
        Noise amplitude in radians.
    size : int
        Number of draws, typically the particle count.

    Notes
    -----
    The stream is advanced even when ``eta == 0`` so that changing the
    noise amplitude mid-run does not shift the draws of later steps.
    """

    half_eta = 0.5 * eta
    return rng.uniform(-half_eta, half_eta, size=size)


__all__ = ["angle_noise"]
