"""Configuration utilities for Vicsek simulations on a torus.

Two layers live here:

- The immutable :class:`SimulationConfig` and :class:`Domain` records the
  simulation driver consumes, with validation that rejects bad values
  instead of clamping them.
- The nested dictionary used by files and the CLI: ``DEFAULT_CONFIG``
  (model, domain, batch run, noise sweep and output sections) and
  ``load_config(path, overrides)``.

Design notes
------------
Files and CLI overrides use a simple nested dictionary, which keeps
``--vicsek.noise_amplitude 0.3`` style overrides trivial. The driver itself
only ever sees a validated, frozen :class:`SimulationConfig`; changing a
running simulation goes through :meth:`SimulationConfig.merged`, which
returns a new record. Unusual but legal settings (for example a step
longer than the interaction radius) emit a ``RuntimeWarning``.
"""

from __future__ import annotations

import json
import math
import numbers
import warnings
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping

import yaml

from .domain import NEIGHBOR_METHODS

HEADING_MODES = ("uniform", "aligned", "cone")
POSITION_MODES = ("uniform", "grid")

# Fields whose change invalidates the particle set and the random stream.
RESET_FIELDS = frozenset({"particle_count", "rng_seed", "init_headings", "init_positions"})

DEFAULT_CONFIG: Dict[str, Any] = {
    "domain": {
        "width": 100.0,
        "height": 100.0,
    },
    "vicsek": {
        "particle_count": 300,
        "interaction_radius": 5.0,
        "noise_amplitude": 0.5,
        "speed": 1.0,
        "time_step": 1.0,
        "init_headings": "uniform",
        "init_positions": "uniform",
        "burn_in": 200,
        "avg_window": 100,
        "rng_seed": 42,
        "neighbor_method": "cells",
        "viz_trails": 50,
        "show_trails": False,
    },
    "run": {
        "steps": 300,
        "save_every": 1,
        "progress": True,
        "out_dir": "outputs/vicsek",
    },
    "sweep": {
        "noise_amplitudes": [0.0, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5, 5.0, 5.5, 6.0],
        "steps": 300,
        "out_dir": "outputs/vicsek_sweep",
    },
    "outputs": {
        "save_npz": True,
        "save_csv": True,
        "plots": True,
        "plot_options": {
            "traj_marker_size": 8,
            "traj_quiver": True,
            "traj_quiver_scale": 0.5,
            "traj_quiver_width": 0.003,
            "traj_quiver_alpha": 0.8,
        },
    },
}


class ConfigError(ValueError):
    """A configuration value is missing, unknown or out of range."""


def _require_int(name: str, value: Any, minimum: int | None = None) -> int:
    """Return ``value`` as an int or raise :class:`ConfigError`.

    Integral floats (``300.0``) are accepted; fractional values, booleans
    and non-numbers are rejected.
    """

    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigError(f"{name} must be an integer, got {value!r}.")
    if not isinstance(value, numbers.Integral):
        if not math.isfinite(value) or not float(value).is_integer():
            raise ConfigError(f"{name} must be an integer, got {value!r}.")
    value = int(value)
    if minimum is not None and value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}.")
    return value


def _require_real(name: str, value: Any, positive: bool = False) -> float:
    """Return ``value`` as a finite float that is > 0 or >= 0."""

    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise ConfigError(f"{name} must be a finite number, got {value!r}.")
    value = float(value)
    if positive and value <= 0.0:
        raise ConfigError(f"{name} must be positive, got {value}.")
    if not positive and value < 0.0:
        raise ConfigError(f"{name} must be non-negative, got {value}.")
    return value


def _require_choice(name: str, value: Any, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if value not in choices:
        raise ConfigError(f"{name} must be one of {', '.join(choices)}; got {value!r}.")
    return str(value)


@dataclass(frozen=True)
class Domain:
    """Periodic rectangle ``[0, width) x [0, height)``."""

    width: float = 100.0
    height: float = 100.0

    def validate(self) -> "Domain":
        """Return a normalized copy or raise :class:`ConfigError`."""

        return Domain(
            width=_require_real("domain.width", self.width, positive=True),
            height=_require_real("domain.height", self.height, positive=True),
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Domain":
        unknown = set(mapping) - {"width", "height"}
        if unknown:
            raise ConfigError(f"Unknown domain keys: {', '.join(sorted(unknown))}")
        return cls(**dict(mapping)).validate()


@dataclass(frozen=True)
class SimulationConfig:
    """Immutable parameters of a Vicsek simulation.

    Attributes
    ----------
    particle_count : int
        Number of particles ``N > 0``.
    interaction_radius : float
        Alignment radius ``r > 0``.
    noise_amplitude : float
        ``eta >= 0``; headings are perturbed by ``Uniform(-eta/2, eta/2)``.
    speed : float
        Particle speed ``v0 >= 0``.
    time_step : float
        ``dt > 0``.
    init_headings : {"uniform", "aligned", "cone"}
    init_positions : {"uniform", "grid"}
    burn_in : int
        Steps before the running average of Phi starts updating.
    avg_window : int
        Width of the running average window.
    rng_seed : int
        Seed of the random stream.
    neighbor_method : {"cells", "brute"}
        Neighbour search strategy; both give the same result.
    viz_trails : int
        Length of the per-particle position trail kept for display.
    show_trails : bool
        Whether trails are recorded at all.
    """

    particle_count: int = 300
    interaction_radius: float = 5.0
    noise_amplitude: float = 0.5
    speed: float = 1.0
    time_step: float = 1.0
    init_headings: str = "uniform"
    init_positions: str = "uniform"
    burn_in: int = 200
    avg_window: int = 100
    rng_seed: int = 42
    neighbor_method: str = "cells"
    viz_trails: int = 50
    show_trails: bool = False

    def validate(self) -> "SimulationConfig":
        """Return a normalized copy or raise :class:`ConfigError`."""

        if not isinstance(self.show_trails, bool):
            raise ConfigError(f"show_trails must be a boolean, got {self.show_trails!r}.")
        return SimulationConfig(
            particle_count=_require_int("particle_count", self.particle_count, minimum=1),
            interaction_radius=_require_real("interaction_radius", self.interaction_radius, positive=True),
            noise_amplitude=_require_real("noise_amplitude", self.noise_amplitude),
            speed=_require_real("speed", self.speed),
            time_step=_require_real("time_step", self.time_step, positive=True),
            init_headings=_require_choice("init_headings", self.init_headings, HEADING_MODES),
            init_positions=_require_choice("init_positions", self.init_positions, POSITION_MODES),
            burn_in=_require_int("burn_in", self.burn_in, minimum=0),
            avg_window=_require_int("avg_window", self.avg_window, minimum=1),
            rng_seed=_require_int("rng_seed", self.rng_seed),
            neighbor_method=_require_choice("neighbor_method", self.neighbor_method, NEIGHBOR_METHODS),
            viz_trails=_require_int("viz_trails", self.viz_trails, minimum=0),
            show_trails=self.show_trails,
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SimulationConfig":
        """Build a validated config from a flat mapping of field names."""

        _check_keys(mapping)
        return cls(**dict(mapping)).validate()

    def merged(self, partial: Mapping[str, Any]) -> "SimulationConfig":
        """Return a validated copy with the fields of ``partial`` replaced."""

        _check_keys(partial)
        return replace(self, **dict(partial)).validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _check_keys(mapping: Mapping[str, Any]) -> None:
    known = {f.name for f in fields(SimulationConfig)}
    unknown = set(mapping) - known
    if unknown:
        raise ConfigError(f"Unknown simulation parameters: {', '.join(sorted(unknown))}")


def _deep_update(base: MutableMapping[str, Any], update: Mapping[str, Any]) -> None:
    """Merge ``update`` into ``base`` in place, descending into nested sections.

    A user file that only sets ``vicsek.noise_amplitude`` keeps every other
    default of the ``vicsek`` section. Lists (``sweep.noise_amplitudes``) are
    replaced wholesale.
    """

    for key, value in update.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            _deep_update(base[key], value)  # type: ignore[index]
        else:
            base[key] = value


def _set_by_dotted_key(config: MutableMapping[str, Any], dotted_key: str, value: Any) -> None:
    """Set ``config["a"]["b"] = value`` for ``dotted_key == "a.b"``, creating sections."""

    keys = dotted_key.split(".")
    target: MutableMapping[str, Any] = config
    for key in keys[:-1]:
        if key not in target or not isinstance(target[key], MutableMapping):
            target[key] = {}
        target = target[key]  # type: ignore[assignment]
    target[keys[-1]] = value


def simulation_config(config: Mapping[str, Any]) -> SimulationConfig:
    """Extract the :class:`SimulationConfig` from a nested config dict."""

    vicsek = config.get("vicsek")
    if not isinstance(vicsek, Mapping):
        raise ConfigError("Simulation parameters must be given as a mapping under 'vicsek'.")
    return SimulationConfig.from_mapping(vicsek)


def domain_config(config: Mapping[str, Any]) -> Domain:
    """Extract the :class:`Domain` from a nested config dict."""

    domain = config.get("domain")
    if not isinstance(domain, Mapping):
        raise ConfigError("Domain must be given as a mapping under 'domain'.")
    return Domain.from_mapping(domain)


def _validate(config: Mapping[str, Any]) -> None:
    """Validate every section of a merged configuration.

    Raises :class:`ConfigError` for values that would prevent a correct
    simulation and emits a ``RuntimeWarning`` for settings that are legal
    but probably unintended.
    """

    sim = simulation_config(config)
    domain_config(config)

    run = config.get("run", {})
    _require_int("run.steps", run.get("steps", 1), minimum=1)
    _require_int("run.save_every", run.get("save_every", 1), minimum=1)

    sweep = config.get("sweep", {})
    _require_int("sweep.steps", sweep.get("steps", 1), minimum=1)
    amplitudes = sweep.get("noise_amplitudes", [])
    if not isinstance(amplitudes, (list, tuple)):
        raise ConfigError("sweep.noise_amplitudes must be a list.")
    for eta in amplitudes:
        _require_real("sweep.noise_amplitudes", eta)

    if sim.speed * sim.time_step > sim.interaction_radius:
        warnings.warn(
            f"Step length speed*time_step = {sim.speed * sim.time_step:.3f} exceeds "
            f"interaction_radius = {sim.interaction_radius:.3f}; particles can jump "
            "over their neighbourhood.",
            RuntimeWarning,
            stacklevel=3,
        )
    if sim.burn_in >= run.get("steps", sim.burn_in + 1):
        warnings.warn(
            "run.steps does not exceed burn_in; the running average of Phi will stay at 0.",
            RuntimeWarning,
            stacklevel=3,
        )


def default_config() -> Dict[str, Any]:
    """Return a fresh, mutable copy of :data:`DEFAULT_CONFIG`."""

    return json.loads(json.dumps(DEFAULT_CONFIG))


def load_config(
    path: str | Path | None = None,
    overrides: Iterable[tuple[str, Any]] | None = None,
) -> Dict[str, Any]:
    """Return the defaults merged with the YAML at ``path`` and ``overrides``.

    Overrides are applied after the file, in order, so CLI arguments win.
    The result is validated before it is returned and is a fresh dict the
    caller may mutate.

    Parameters
    ----------
    path:
        Path to the YAML configuration file, or ``None`` for the defaults.
    overrides:
        ``(dotted_key, value)`` pairs such as ``("vicsek.speed", 0.5)``.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    ConfigError
        If the file is not a mapping or any value is invalid.
    """

    cfg = default_config()
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(config_path)
        with config_path.open("r", encoding="utf-8") as fh:
            user_cfg = yaml.safe_load(fh) or {}
        if not isinstance(user_cfg, Mapping):
            raise ConfigError("Configuration file must define a mapping.")
        _deep_update(cfg, user_cfg)

    if overrides:
        for key, value in overrides:
            _set_by_dotted_key(cfg, key, value)

    _validate(cfg)
    return cfg


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG",
    "Domain",
    "HEADING_MODES",
    "POSITION_MODES",
    "RESET_FIELDS",
    "SimulationConfig",
    "default_config",
    "domain_config",
    "load_config",
    "simulation_config",
]
