"""Particle records and the array-backed swarm state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np


@dataclass(frozen=True)
class Particle:
    """Read-only view of one particle.

    ``theta`` is the heading in radians. It is never wrapped to
    ``[0, 2*pi)``; only ``cos``/``sin`` of it are ever used.
    """

    x: float
    y: float
    theta: float

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def velocity(self, speed: float) -> Tuple[float, float]:
        """Velocity ``speed * (cos theta, sin theta)``; derived, never stored."""

        return (speed * float(np.cos(self.theta)), speed * float(np.sin(self.theta)))


@dataclass
class SwarmState:
    """Positions ``(N, 2)`` and headings ``(N,)`` of all particles.

    Particles are identified by their index, which is stable for the life of
    a run. Neighbour relations are index lists recomputed every step, so the
    state holds no references between particles.
    """

    positions: np.ndarray
    headings: np.ndarray

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=float).reshape(-1, 2)
        self.headings = np.asarray(self.headings, dtype=float).reshape(-1)
        if self.positions.shape[0] != self.headings.shape[0]:
            raise ValueError(
                f"positions and headings disagree on particle count: "
                f"{self.positions.shape[0]} != {self.headings.shape[0]}"
            )

    def __len__(self) -> int:
        return int(self.headings.shape[0])

    def __iter__(self) -> Iterator[Particle]:
        for (x, y), theta in zip(self.positions, self.headings):
            yield Particle(float(x), float(y), float(theta))

    def velocities(self, speed: float) -> np.ndarray:
        """Return velocities ``(N, 2)`` for the given speed."""

        return speed * headings_from_angles(self.headings)

    def copy(self) -> "SwarmState":
        return SwarmState(self.positions.copy(), self.headings.copy())


def headings_from_angles(theta: np.ndarray) -> np.ndarray:
    """Convert angles ``theta`` with shape ``(N,)`` to unit headings ``(N, 2)``."""

    theta = np.asarray(theta, dtype=float)
    headings = np.column_stack((np.cos(theta), np.sin(theta)))
    return headings.astype(float, copy=False)


__all__ = ["Particle", "SwarmState", "headings_from_angles"]
