"""Top-level package for Vicsek flocking simulations on a torus.

This package implements the discrete-time Vicsek model of self-propelled
particles on a periodic rectangle together with the order parameter
statistics used to detect collective alignment. It exposes:

- :class:`Simulation`: the stateful driver (``reset``, ``step``,
  ``get_state``, ``update_config``, ``on_domain_resize``) meant to sit
  under a renderer or an analysis script.
- :class:`SimulationConfig` and :class:`Domain`: validated parameter
  records.
- ``load_config(path, overrides)``: load and validate a YAML
  configuration file (delegates to ``vicseksim.config``).
- ``simulate(config)``: batch-run a nested configuration dictionary as
  returned by ``load_config`` (delegates to ``vicseksim.simulation``).

Typical use::

    from vicseksim import Domain, Simulation, SimulationConfig

    sim = Simulation(SimulationConfig(noise_amplitude=0.3), Domain(50.0, 50.0))
    for _ in range(500):
        sim.step()
    print(sim.get_state().avg_phi)
"""

from __future__ import annotations

from typing import Any, Dict

from .config import ConfigError, Domain, SimulationConfig
from .simulation import Simulation, SimulationSnapshot, SimulationStateError


def load_config(path=None, overrides=None) -> Dict[str, Any]:
    """Load a YAML configuration and apply optional overrides.

    Thin wrapper around :func:`vicseksim.config.load_config`.

    Returns
    -------
    dict
        A validated configuration dictionary ready to be passed to
        :func:`vicseksim.simulate`.
    """

    from .config import load_config as _load_config

    return _load_config(path, overrides)


def simulate(config: Dict[str, Any]) -> Dict[str, Any]:
    """Run a batch simulation from a nested configuration dictionary.

    Uses the ``vicsek``, ``domain`` and ``run`` sections and returns the
    dictionary produced by :func:`vicseksim.simulation.run_simulation`.
    """

    from .config import domain_config, simulation_config
    from .simulation import run_simulation

    run = config.get("run", {})
    return run_simulation(
        simulation_config(config),
        domain_config(config),
        steps=int(run.get("steps", 300)),
        save_every=int(run.get("save_every", 1)),
        progress=bool(run.get("progress", False)),
    )


__all__ = [
    "ConfigError",
    "Domain",
    "Simulation",
    "SimulationConfig",
    "SimulationSnapshot",
    "SimulationStateError",
    "load_config",
    "simulate",
]
