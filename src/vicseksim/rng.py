"""Seeded pseudo-random source shared by initialization and noise.

The simulator draws every random number from a single linear congruential
stream so that a run is reproduced exactly from its seed and the order of
calls. The generator mirrors the small subset of the
:class:`numpy.random.Generator` API used elsewhere in the package
(``uniform(low, high, size=None)``) so call sites read the same as with a
NumPy generator.

The recurrence is the classic ``(a * s + c) mod m`` with
``a = 9301, c = 49297, m = 233280``. Its period is short and it is not
suitable for anything beyond a toy statistical-physics model, which is all
it is used for here.
"""

from __future__ import annotations

import numpy as np

MULTIPLIER = 9301
INCREMENT = 49297
MODULUS = 233280


class LCGRandom:
    """Linear congruential generator producing uniform reals.

    Parameters
    ----------
    seed : int
        Initial state. Any integer is accepted; it is reduced modulo
        :data:`MODULUS`.

    Examples
    --------
    >>> a = LCGRandom(42)
    >>> b = LCGRandom(42)
    >>> a.uniform(0.0, 1.0) == b.uniform(0.0, 1.0)
    True
    """

    def __init__(self, seed: int = 42):
        self.seed = int(seed)
        self.state = self.seed % MODULUS

    def random(self) -> float:
        """Advance the state once and return a float in ``[0, 1)``."""

        self.state = (self.state * MULTIPLIER + INCREMENT) % MODULUS
        return self.state / MODULUS

    def uniform(self, low: float = 0.0, high: float = 1.0, size=None):
        """Draw from ``Uniform(low, high)``.

        With ``size=None`` a Python float is returned. With an integer
        ``size`` an array of that many sequential draws is returned; the
        values equal those of ``size`` consecutive scalar calls.
        """

        if size is None:
            return low + (high - low) * self.random()
        out = np.empty(int(size), dtype=float)
        for k in range(out.shape[0]):
            out[k] = low + (high - low) * self.random()
        return out

    def __repr__(self) -> str:
        return f"LCGRandom(seed={self.seed}, state={self.state})"


__all__ = ["LCGRandom", "MULTIPLIER", "INCREMENT", "MODULUS"]
