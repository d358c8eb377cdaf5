import warnings
from pathlib import Path

import pytest

from vicseksim.config import (
    DEFAULT_CONFIG,
    ConfigError,
    Domain,
    SimulationConfig,
    default_config,
    domain_config,
    load_config,
    simulation_config,
)

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_load_config_overrides(tmp_path: Path):
    # Write a minimal YAML that overrides N
    cfg_path = tmp_path / "small.yaml"
    cfg_path.write_text("""
vicsek:
  particle_count: 10
""")

    cfg = load_config(str(cfg_path))
    assert cfg["vicsek"]["particle_count"] == 10
    # untouched keys keep their defaults
    assert cfg["vicsek"]["interaction_radius"] == 5.0
    assert cfg["domain"]["width"] == 100.0


def test_load_config_invalid_raises(tmp_path: Path):
    cfg_path = tmp_path / "bad.yaml"
    cfg_path.write_text("""
vicsek:
  particle_count: -5
""")

    with pytest.raises(ConfigError):
        load_config(str(cfg_path))


def test_unknown_parameter_rejected(tmp_path: Path):
    cfg_path = tmp_path / "typo.yaml"
    cfg_path.write_text("""
vicsek:
  noise_amplitde: 0.3
""")

    with pytest.raises(ConfigError, match="noise_amplitde"):
        load_config(cfg_path)


def test_missing_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_non_mapping_file_raises(tmp_path: Path):
    cfg_path = tmp_path / "list.yaml"
    cfg_path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigError):
        load_config(cfg_path)


def test_empty_file_gives_defaults(tmp_path: Path):
    cfg_path = tmp_path / "empty.yaml"
    cfg_path.write_text("")
    assert load_config(cfg_path) == default_config()


def test_dotted_overrides_applied():
    cfg = load_config(overrides=[("vicsek.noise_amplitude", 1.25), ("domain.height", 40.0)])
    assert cfg["vicsek"]["noise_amplitude"] == 1.25
    assert cfg["domain"]["height"] == 40.0
    assert simulation_config(cfg).noise_amplitude == 1.25
    assert domain_config(cfg) == Domain(100.0, 40.0)


def test_invalid_override_raises():
    with pytest.raises(ConfigError):
        load_config(overrides=[("vicsek.init_headings", "random")])
    with pytest.raises(ConfigError):
        load_config(overrides=[("run.steps", 0)])
    with pytest.raises(ConfigError):
        load_config(overrides=[("sweep.noise_amplitudes", [0.0, -1.0])])


def test_default_config_is_a_fresh_copy():
    cfg = default_config()
    cfg["vicsek"]["particle_count"] = 1
    assert DEFAULT_CONFIG["vicsek"]["particle_count"] == 300


def test_shipped_config_loads_cleanly():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        cfg = load_config(REPO_ROOT / "configs" / "vicsek_default.yaml")
    assert simulation_config(cfg) == SimulationConfig()
    assert cfg["sweep"]["steps"] == 400


def test_long_step_warns():
    with pytest.warns(RuntimeWarning, match="interaction_radius"):
        load_config(overrides=[("vicsek.speed", 6.0)])


def test_burn_in_longer_than_run_warns():
    with pytest.warns(RuntimeWarning, match="burn_in"):
        load_config(overrides=[("vicsek.burn_in", 500)])


class TestSimulationConfig:
    def test_defaults_are_valid(self):
        cfg = SimulationConfig()
        assert cfg.validate() == cfg
        assert cfg.particle_count == 300
        assert cfg.rng_seed == 42

    @pytest.mark.parametrize(
        "field, value",
        [
            ("particle_count", 0),
            ("particle_count", 2.5),
            ("particle_count", True),
            ("particle_count", "300"),
            ("interaction_radius", 0.0),
            ("interaction_radius", float("nan")),
            ("noise_amplitude", -0.1),
            ("speed", -1.0),
            ("time_step", 0.0),
            ("init_headings", "random"),
            ("init_positions", "gaussian"),
            ("burn_in", -1),
            ("avg_window", 0),
            ("rng_seed", 1.5),
            ("neighbor_method", "kdtree"),
            ("viz_trails", -3),
            ("show_trails", "yes"),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ConfigError):
            SimulationConfig.from_mapping({field: value})

    def test_zero_noise_and_speed_allowed(self):
        cfg = SimulationConfig.from_mapping({"noise_amplitude": 0, "speed": 0})
        assert cfg.noise_amplitude == 0.0
        assert cfg.speed == 0.0

    def test_integral_float_normalized(self):
        cfg = SimulationConfig.from_mapping({"particle_count": 50.0, "burn_in": 0})
        assert cfg.particle_count == 50
        assert isinstance(cfg.particle_count, int)

    def test_merged_returns_new_record(self):
        base = SimulationConfig()
        changed = base.merged({"noise_amplitude": 2.0})
        assert changed.noise_amplitude == 2.0
        assert base.noise_amplitude == 0.5
        with pytest.raises(ConfigError):
            base.merged({"unknown": 1})

    def test_round_trip_through_dict(self):
        cfg = SimulationConfig(particle_count=12, show_trails=True)
        assert SimulationConfig.from_mapping(cfg.to_dict()) == cfg


class TestDomain:
    def test_valid_domain(self):
        assert Domain.from_mapping({"width": 30, "height": 20.5}) == Domain(30.0, 20.5)

    @pytest.mark.parametrize("width, height", [(0.0, 10.0), (10.0, -1.0), (float("inf"), 1.0)])
    def test_invalid_domain(self, width, height):
        with pytest.raises(ConfigError):
            Domain(width, height).validate()

    def test_unknown_domain_key(self):
        with pytest.raises(ConfigError):
            Domain.from_mapping({"width": 1.0, "depth": 2.0})
