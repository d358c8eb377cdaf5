"""Toroidal geometry and neighbour search on a periodic rectangle.

This module contains helpers for wrapping positions onto the torus,
computing minimum-image distances and displacements, and building/iterating
linked-cell neighbour lists.

Every distance in the package goes through
:func:`toroidal_distance` so the brute-force and linked-cell searches
return exactly the same neighbour sets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Set, Tuple

import numpy as np

ArrayLike = np.ndarray

NEIGHBOR_METHODS = ("cells", "brute")


@dataclass
class CellList:
    """Linked-cell data structure for neighbor searches."""

    cells: Dict[Tuple[int, int], List[int]]
    cell_size_x: float
    cell_size_y: float
    ncellx: int
    ncelly: int


def wrap(x: ArrayLike, Lx: float, Ly: float) -> ArrayLike:
    """Map positions onto ``[0, Lx) x [0, Ly)``.

    Parameters
    ----------
    x:
        Positions with last axis of length 2, e.g. ``(2,)`` or ``(N, 2)``.
    Lx, Ly:
        Domain side lengths.

    Returns
    -------
    ndarray
        A new array of wrapped positions. The input is not modified.

    Notes
    -----
    ``np.mod`` already returns non-negative values for negative inputs, but
    a tiny negative coordinate such as ``-1e-17`` rounds to exactly ``L``.
    Such values are mapped to ``0`` so the interval stays half-open and
    ``wrap(wrap(x)) == wrap(x)``.
    """

    out = np.array(x, dtype=float, copy=True)
    for dim, L in enumerate((Lx, Ly)):
        col = np.mod(out[..., dim], L)
        out[..., dim] = np.where(col >= L, 0.0, col)
    return out


def toroidal_distance(p1: ArrayLike, p2: ArrayLike, Lx: float, Ly: float):
    """Minimum-image distance between ``p1`` and ``p2`` on the torus.

    For each axis the separation is ``min(|d|, L - |d|)`` with ``|d|`` first
    reduced modulo ``L``, so the function is defined for any real input,
    wrapped or not. Inputs broadcast like NumPy arrays; a scalar ``float``
    is returned for a single pair.
    """

    d = np.abs(np.asarray(p2, dtype=float) - np.asarray(p1, dtype=float))
    dx = np.mod(d[..., 0], Lx)
    dy = np.mod(d[..., 1], Ly)
    dx = np.minimum(dx, Lx - dx)
    dy = np.minimum(dy, Ly - dy)
    r = np.hypot(dx, dy)
    return float(r) if np.ndim(r) == 0 else r


def toroidal_displacement(origin: ArrayLike, target: ArrayLike, Lx: float, Ly: float) -> ArrayLike:
    """Shortest signed vector from ``origin`` to ``target`` on the torus.

    The direct difference is shifted by a whole number of domain lengths so
    that each component lies within ``[-L/2, L/2]``. Useful to collaborators
    that draw links between neighbours across the periodic boundary.
    """

    d = np.asarray(target, dtype=float) - np.asarray(origin, dtype=float)
    d[..., 0] -= Lx * np.round(d[..., 0] / Lx)
    d[..., 1] -= Ly * np.round(d[..., 1] / Ly)
    return d


def pairwise_distances(x: ArrayLike, Lx: float, Ly: float) -> ArrayLike:
    """Return the full ``(N, N)`` matrix of toroidal distances.

    Entry ``[i, j]`` is ``toroidal_distance(x[i], x[j])``. The matrix is
    exactly symmetric because ``|x_j - x_i| == |x_i - x_j|`` in floating
    point. Intended for small-to-moderate N and for testing; larger
    systems should use the linked-cell search.
    """

    x = np.asarray(x, dtype=float)
    return toroidal_distance(x[:, None, :], x[None, :, :], Lx, Ly)


def build_cells(x: ArrayLike, Lx: float, Ly: float, rcut: float) -> CellList:
    """Construct a linked-cell list for neighbour searches.

    Cells are at least ``rcut`` wide on each axis, so every neighbour of a
    particle lies in its own cell or one of the eight surrounding cells.
    The structure gives neighbour queries close to O(N) for uniform point
    distributions.
    """

    ncellx = max(1, int(np.floor(Lx / rcut)))
    ncelly = max(1, int(np.floor(Ly / rcut)))
    cell_size_x = Lx / ncellx
    cell_size_y = Ly / ncelly

    cells: Dict[Tuple[int, int], List[int]] = {}
    for idx, (xi, yi) in enumerate(x):
        ix = min(max(int(np.floor(xi / cell_size_x)), 0), ncellx - 1)
        iy = min(max(int(np.floor(yi / cell_size_y)), 0), ncelly - 1)
        cells.setdefault((ix, iy), []).append(idx)

    return CellList(
        cells=cells,
        cell_size_x=cell_size_x,
        cell_size_y=cell_size_y,
        ncellx=ncellx,
        ncelly=ncelly,
    )


def _adjacent_cells(ix: int, iy: int, ncellx: int, ncelly: int) -> Set[Tuple[int, int]]:
    """Return the distinct periodic 3x3 block of cells around ``(ix, iy)``.

    With fewer than three cells along an axis the offsets wrap onto the same
    cell, so the set removes duplicates.
    """

    return {
        ((ix + ox) % ncellx, (iy + oy) % ncelly)
        for ox in (-1, 0, 1)
        for oy in (-1, 0, 1)
    }


def iter_neighbors(
    x: ArrayLike,
    cell_list: CellList,
    Lx: float,
    Ly: float,
    rcut: float,
) -> Iterator[Tuple[int, int, float]]:
    """Yield particle pairs ``(i, j, rij)`` with ``i < j`` and ``rij <= rcut``.

    Each pair is visited exactly once. Coincident particles (``rij == 0``)
    are neighbours like any other pair.
    """

    cells = cell_list.cells
    for (ix, iy), indices in cells.items():
        candidates: List[int] = []
        for key in _adjacent_cells(ix, iy, cell_list.ncellx, cell_list.ncelly):
            candidates.extend(cells.get(key, ()))
        cand = np.sort(np.asarray(candidates, dtype=int))
        for i in indices:
            others = cand[cand > i]
            if not others.size:
                continue
            rij = toroidal_distance(x[i], x[others], Lx, Ly)
            close = rij <= rcut
            for j, r in zip(others[close], rij[close]):
                yield i, int(j), float(r)


def neighbor_indices_from_celllist(
    x: ArrayLike,
    cell_list: CellList,
    Lx: float,
    Ly: float,
    rcut: float,
) -> List[np.ndarray]:
    """Return sorted neighbour index arrays for each particle using a CellList.

    Builds the per-particle lists by iterating over pairs from
    :func:`iter_neighbors` and recording each pair on both sides, so the
    relation is symmetric. A particle never appears in its own list.
    """

    neighbours: List[List[int]] = [[] for _ in range(x.shape[0])]
    for i, j, _ in iter_neighbors(x, cell_list, Lx, Ly, rcut):
        neighbours[i].append(j)
        neighbours[j].append(i)
    return [np.array(sorted(lst), dtype=int) for lst in neighbours]


def neighbor_indices_brute(x: ArrayLike, Lx: float, Ly: float, rcut: float) -> List[np.ndarray]:
    """O(N^2) neighbour lists from the full distance matrix."""

    x = np.asarray(x, dtype=float)
    if x.shape[0] == 0:
        return []
    adjacency = pairwise_distances(x, Lx, Ly) <= rcut
    np.fill_diagonal(adjacency, False)
    return [np.flatnonzero(row) for row in adjacency]


def find_neighbors(i: int, x: ArrayLike, rcut: float, Lx: float, Ly: float) -> np.ndarray:
    """Indices of all other particles within ``rcut`` of particle ``i``."""

    x = np.asarray(x, dtype=float)
    rij = toroidal_distance(x[i], x, Lx, Ly)
    mask = np.atleast_1d(rij <= rcut)
    mask[i] = False
    return np.flatnonzero(mask)


class NeighborFinder:
    """Unified API for the neighbour searches of a periodic domain.

    Parameters
    ----------
    Lx, Ly : float
        Domain dimensions.
    rcut : float
        Interaction radius for neighbor searches.
    method : {"cells", "brute"}
        Linked-cell search or full distance matrix. Both return identical
        neighbour sets.

    Examples
    --------
    >>> nf = NeighborFinder(Lx=10.0, Ly=10.0, rcut=1.0)
    >>> x = np.random.default_rng(0).uniform(0, 10, size=(100, 2))
    >>> neighbors = nf.neighbors_of(x)
    >>> # neighbors[i] holds the indices within rcut of i, excluding i
    """

    def __init__(self, Lx: float, Ly: float, rcut: float, method: str = "cells"):
        if method not in NEIGHBOR_METHODS:
            raise ValueError(f"Unknown neighbor method '{method}'")
        self.Lx = Lx
        self.Ly = Ly
        self.rcut = rcut
        self.method = method
        self._cell_list: CellList | None = None

    def neighbors_of(self, x: ArrayLike) -> List[np.ndarray]:
        """Return neighbor indices for each particle at positions ``x``.

        Parameters
        ----------
        x : ndarray, shape (N, 2)
            Current particle positions.

        Returns
        -------
        neighbors : list of ndarray
            ``neighbors[i]`` is a sorted 1D array of the indices within the
            cutoff radius of particle ``i``; ``i`` itself is excluded.
        """

        if self.method == "brute":
            return neighbor_indices_brute(x, self.Lx, self.Ly, self.rcut)
        self._cell_list = build_cells(x, self.Lx, self.Ly, self.rcut)
        return neighbor_indices_from_celllist(x, self._cell_list, self.Lx, self.Ly, self.rcut)


__all__ = [
    "CellList",
    "NEIGHBOR_METHODS",
    "NeighborFinder",
    "build_cells",
    "find_neighbors",
    "iter_neighbors",
    "neighbor_indices_brute",
    "neighbor_indices_from_celllist",
    "pairwise_distances",
    "toroidal_displacement",
    "toroidal_distance",
    "wrap",
]
