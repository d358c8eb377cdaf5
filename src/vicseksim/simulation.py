"""Simulation driver for the Vicsek model.

:class:`Simulation` owns the complete state of one run (particles, random
stream, order parameter statistics) and exposes it to rendering or analysis
code through a small interface:

- ``reset(config, domain)`` validates the parameters, reseeds the random
  stream and generates a new particle set.
- ``step()`` advances one tick: neighbour search, synchronous heading
  update, position update, statistics.
- ``get_state()`` returns an immutable :class:`SimulationSnapshot`.
- ``update_config(partial)`` changes parameters of a live run; changes to
  ``particle_count``, ``rng_seed``, ``init_headings`` or ``init_positions``
  trigger a full reset.
- ``on_domain_resize(domain)`` always resets.

The batch helpers :func:`run_simulation` and :func:`sweep_noise` drive a
:class:`Simulation` for a fixed number of steps and collect the results
into arrays / a :class:`pandas.DataFrame`.
"""

from __future__ import annotations

import warnings
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, Mapping, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import RESET_FIELDS, ConfigError, Domain, SimulationConfig
from .initial_conditions import initialize_particles
from .metrics import OrderParameterTracker, local_order, order_parameter
from .particles import Particle, SwarmState
from .rng import LCGRandom
from .vicsek import step_vicsek


class SimulationStateError(RuntimeError):
    """Raised when an operation needs a simulation that has been reset."""


def _frozen(array: np.ndarray) -> np.ndarray:
    out = np.array(array, copy=True)
    out.setflags(write=False)
    return out


def _as_config(config: SimulationConfig | Mapping[str, Any]) -> SimulationConfig:
    if isinstance(config, SimulationConfig):
        return config.validate()
    if isinstance(config, Mapping):
        return SimulationConfig.from_mapping(config)
    raise ConfigError(f"Expected SimulationConfig or mapping, got {type(config).__name__}")


def _as_domain(domain: Domain | Mapping[str, Any]) -> Domain:
    if isinstance(domain, Domain):
        return domain.validate()
    if isinstance(domain, Mapping):
        return Domain.from_mapping(domain)
    raise ConfigError(f"Expected Domain or mapping, got {type(domain).__name__}")


@dataclass(frozen=True, eq=False)
class SimulationSnapshot:
    """Read-only copy of the simulation state after some step.

    Array attributes are copies with the NumPy write flag cleared, so
    callers cannot change the running simulation through them.
    """

    positions: np.ndarray
    headings: np.ndarray
    velocities: np.ndarray
    iteration: int
    current_phi: float
    avg_phi: float
    phi_history: np.ndarray
    neighbors: Tuple[Tuple[int, ...], ...]
    trails: np.ndarray
    config: SimulationConfig
    domain: Domain

    @property
    def particles(self) -> Tuple[Particle, ...]:
        return tuple(SwarmState(self.positions, self.headings))

    def local_order(self) -> np.ndarray:
        """Per-particle neighbourhood alignment from the last neighbour search."""

        return local_order(self.headings, [np.asarray(n, dtype=int) for n in self.neighbors])


class Simulation:
    """Stateful Vicsek simulation on a periodic rectangle.

    Parameters
    ----------
    config : SimulationConfig or mapping, optional
        When given, the simulation is reset immediately.
    domain : Domain or mapping, optional
        Domain used for the initial reset; defaults to ``Domain()``.

    Examples
    --------
    >>> sim = Simulation(SimulationConfig(particle_count=50), Domain(20.0, 20.0))
    >>> for _ in range(10):
    ...     _ = sim.step()
    >>> sim.get_state().iteration
    10
    """

    def __init__(
        self,
        config: SimulationConfig | Mapping[str, Any] | None = None,
        domain: Domain | Mapping[str, Any] | None = None,
    ):
        self._config: SimulationConfig | None = None
        self._domain: Domain | None = None
        self._rng: LCGRandom | None = None
        self._swarm: SwarmState | None = None
        self._tracker: OrderParameterTracker | None = None
        self._neighbors: Tuple[Tuple[int, ...], ...] = ()
        self._trails: Deque[np.ndarray] = deque(maxlen=0)
        self.iteration = 0
        if config is not None:
            self.reset(config, domain if domain is not None else Domain())

    @property
    def ready(self) -> bool:
        return self._swarm is not None

    @property
    def config(self) -> SimulationConfig | None:
        return self._config

    @property
    def domain(self) -> Domain | None:
        return self._domain

    def require_ready(self) -> None:
        """Raise :class:`SimulationStateError` unless ``reset`` has been called."""

        if not self.ready:
            raise SimulationStateError("Simulation has not been reset yet; call reset(config, domain).")

    def reset(
        self,
        config: SimulationConfig | Mapping[str, Any],
        domain: Domain | Mapping[str, Any] | None = None,
    ) -> None:
        """(Re)initialize particles, random stream and statistics.

        ``domain`` defaults to the current domain, or ``Domain()`` on the
        first reset. Everything is validated before any state changes.
        """

        cfg = _as_config(config)
        if domain is None:
            domain = self._domain if self._domain is not None else Domain()
        dom = _as_domain(domain)

        rng = LCGRandom(cfg.rng_seed)
        x, theta = initialize_particles(
            cfg.particle_count,
            dom.width,
            dom.height,
            rng,
            positions=cfg.init_positions,
            headings=cfg.init_headings,
        )

        self._config = cfg
        self._domain = dom
        self._rng = rng
        self._swarm = SwarmState(x, theta)
        self._tracker = OrderParameterTracker(cfg.burn_in, cfg.avg_window)
        self._neighbors = ()
        self._trails = deque(maxlen=cfg.viz_trails)
        self.iteration = 0

    def step(self) -> bool:
        """Advance one tick. Returns ``False`` (and warns) before any reset."""

        if not self.ready:
            warnings.warn("step() called before reset(); ignoring.", RuntimeWarning, stacklevel=2)
            return False

        cfg = self._config
        dom = self._domain
        x, theta, neighbours = step_vicsek(
            self._swarm.positions,
            self._swarm.headings,
            cfg.speed,
            cfg.time_step,
            dom.width,
            dom.height,
            cfg.interaction_radius,
            cfg.noise_amplitude,
            self._rng,
            method=cfg.neighbor_method,
        )
        self._swarm = SwarmState(x, theta)
        self._neighbors = tuple(tuple(int(j) for j in idx) for idx in neighbours)
        self._record_trail()

        self.iteration += 1
        self._tracker.update(order_parameter(theta, cfg.speed), self.iteration)
        return True

    def _record_trail(self) -> None:
        if self._config.show_trails and self._config.viz_trails > 0:
            self._trails.append(self._swarm.positions.copy())
        else:
            self._trails.clear()

    def get_state(self) -> SimulationSnapshot:
        """Return a read-only snapshot of the current state."""

        self.require_ready()
        cfg = self._config
        n = len(self._swarm)
        if self._trails:
            trails = np.stack(list(self._trails), axis=0)
        else:
            trails = np.empty((0, n, 2), dtype=float)
        return SimulationSnapshot(
            positions=_frozen(self._swarm.positions),
            headings=_frozen(self._swarm.headings),
            velocities=_frozen(self._swarm.velocities(cfg.speed)),
            iteration=self.iteration,
            current_phi=self._tracker.current_phi,
            avg_phi=self._tracker.avg_phi,
            phi_history=_frozen(np.asarray(self._tracker.history, dtype=float)),
            neighbors=self._neighbors,
            trails=_frozen(trails),
            config=cfg,
            domain=self._domain,
        )

    def update_config(self, partial: Mapping[str, Any]) -> None:
        """Merge ``partial`` into the live configuration.

        Raises :class:`ConfigError` without touching the state when a key is
        unknown or a value invalid.
        """

        base = self._config if self._config is not None else SimulationConfig()
        new_cfg = base.merged(partial)

        if not self.ready:
            self._config = new_cfg
            return
        if RESET_FIELDS.intersection(partial):
            self.reset(new_cfg, self._domain)
            return

        self._config = new_cfg
        self._tracker.burn_in = new_cfg.burn_in
        self._tracker.avg_window = new_cfg.avg_window
        if self._trails.maxlen != new_cfg.viz_trails:
            self._trails = deque(self._trails, maxlen=new_cfg.viz_trails)

    def on_domain_resize(self, domain: Domain | Mapping[str, Any]) -> None:
        """Switch to a new domain; positions are regenerated from scratch."""

        dom = _as_domain(domain)
        if self._config is None:
            self._domain = dom
            return
        self.reset(self._config, dom)


def run_simulation(
    config: SimulationConfig | Mapping[str, Any],
    domain: Domain | Mapping[str, Any] | None = None,
    steps: int = 300,
    save_every: int = 1,
    progress: bool = False,
) -> Dict[str, Any]:
    """Run ``steps`` ticks from a fresh reset and collect the trajectory.

    Returns
    -------
    dict
        ``traj`` (F, N, 2) positions, ``headings`` (F, N) angles,
        ``vel`` (F, N, 2) velocities, ``iterations`` and ``times`` (F,),
        ``phi`` and ``avg_phi`` (F,) with the statistics reported after each
        saved step, the full ``phi_history`` (steps,), and the final
        ``snapshot``. Frame 0 is the initial state; afterwards every
        ``save_every``-th step and the last step are saved.
    """

    if steps <= 0:
        raise ValueError("steps must be positive")
    if save_every <= 0:
        raise ValueError("save_every must be positive")

    sim = Simulation(config, domain if domain is not None else Domain())
    cfg = sim.config

    frames_x: list = []
    frames_theta: list = []
    iterations: list = []
    phi: list = []
    avg_phi: list = []

    def _frame(snap: SimulationSnapshot) -> None:
        frames_x.append(np.array(snap.positions))
        frames_theta.append(np.array(snap.headings))
        iterations.append(snap.iteration)
        phi.append(snap.current_phi)
        avg_phi.append(snap.avg_phi)

    _frame(sim.get_state())
    for step in tqdm(range(1, steps + 1), desc="Simulating", unit="step", disable=not progress):
        sim.step()
        if step % save_every == 0 or step == steps:
            _frame(sim.get_state())

    snapshot = sim.get_state()
    headings = np.stack(frames_theta, axis=0)
    iterations_array = np.array(iterations, dtype=int)
    return {
        "traj": np.stack(frames_x, axis=0),
        "headings": headings,
        "vel": cfg.speed * np.stack((np.cos(headings), np.sin(headings)), axis=-1),
        "iterations": iterations_array,
        "times": iterations_array * cfg.time_step,
        "phi": np.array(phi, dtype=float),
        "avg_phi": np.array(avg_phi, dtype=float),
        "phi_history": np.array(snapshot.phi_history),
        "snapshot": snapshot,
    }


def sweep_noise(
    config: SimulationConfig | Mapping[str, Any],
    domain: Domain | Mapping[str, Any] | None,
    noise_amplitudes: Iterable[float],
    steps: int,
    progress: bool = False,
) -> pd.DataFrame:
    """Measure the order parameter as a function of the noise amplitude.

    Every amplitude gets its own reset with the same seed, followed by
    ``steps`` ticks. ``phi_std`` is the standard deviation over the same
    trailing window that ``avg_phi`` averages.
    """

    base = _as_config(config)
    dom = _as_domain(domain) if domain is not None else Domain()
    amplitudes = [float(eta) for eta in noise_amplitudes]

    records = []
    for eta in tqdm(amplitudes, desc="Sweeping noise", unit="run", disable=not progress):
        sim = Simulation(base.merged({"noise_amplitude": eta}), dom)
        for _ in range(steps):
            sim.step()
        snap = sim.get_state()
        window = snap.phi_history[-base.avg_window:]
        records.append(
            {
                "noise_amplitude": eta,
                "final_phi": snap.current_phi,
                "avg_phi": snap.avg_phi,
                "phi_std": float(np.std(window)) if window.size else 0.0,
                "iterations": snap.iteration,
            }
        )
    return pd.DataFrame.from_records(
        records,
        columns=["noise_amplitude", "final_phi", "avg_phi", "phi_std", "iterations"],
    )


__all__ = [
    "Simulation",
    "SimulationSnapshot",
    "SimulationStateError",
    "run_simulation",
    "sweep_noise",
]
