"""``vicseksim`` command line: single runs, noise sweeps and their plots.

``vicseksim run`` advances one simulation and writes ``traj.npz``,
``order_parameter.csv``, two PNG figures and ``run.json`` into
``run.out_dir``. ``vicseksim sweep`` repeats the run for every entry of
``sweep.noise_amplitudes`` and writes ``sweep.csv`` and ``sweep.png``.

Any configuration field can be overridden with ``--section.key value``;
values are parsed as JSON where possible.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

from .config import domain_config, load_config, simulation_config  # noqa: E402
from .io import ensure_dir, save_run_metadata, save_table, save_trajectory  # noqa: E402
from .metrics import compute_timeseries  # noqa: E402
from .simulation import run_simulation, sweep_noise  # noqa: E402


def _parse_overrides(unknown: List[str]) -> List[Tuple[str, str]]:
    """Pair up ``["--vicsek.speed", "0.5", ...]`` into ``[("vicsek.speed", "0.5"), ...]``."""

    overrides: List[Tuple[str, str]] = []
    i = 0
    while i < len(unknown):
        key = unknown[i]
        if not key.startswith("--"):
            raise ValueError(f"Unrecognized argument '{key}'")
        if i + 1 >= len(unknown):
            raise ValueError(f"Missing value for override '{key}'")
        overrides.append((key[2:], unknown[i + 1]))
        i += 2
    return overrides


def _convert_value(value: str):
    """Parse an override value as JSON, falling back to the raw string.

    ``--vicsek.particle_count 50`` yields an int, ``--vicsek.show_trails
    true`` a bool; anything that is not JSON stays a string.
    """

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _footer_text(config: Dict) -> str:
    """One-line parameter summary printed under each figure."""

    v = config["vicsek"]
    d = config["domain"]
    return (
        f"N={v['particle_count']}  L={d['width']}x{d['height']}  r={v['interaction_radius']}  "
        f"eta={v['noise_amplitude']}  v0={v['speed']}  dt={v['time_step']}  seed={v['rng_seed']}"
    )


def _plot_final(out_dir: Path, traj: np.ndarray, vel: np.ndarray, config: Dict) -> None:
    """Save a scatter/heading quiver plot for the final frame of a run."""

    final_pos = traj[-1]
    final_vel = vel[-1]
    plot_opts = config.get("outputs", {}).get("plot_options", {})

    fig, ax = plt.subplots(figsize=(6, 6))
    ax.scatter(
        final_pos[:, 0],
        final_pos[:, 1],
        c="C0",
        s=plot_opts.get("traj_marker_size", 8),
        alpha=0.8,
    )
    if plot_opts.get("traj_quiver", True):
        ax.quiver(
            final_pos[:, 0],
            final_pos[:, 1],
            final_vel[:, 0],
            final_vel[:, 1],
            angles="xy",
            scale_units="xy",
            scale=plot_opts.get("traj_quiver_scale", 0.5),
            width=plot_opts.get("traj_quiver_width", 0.003),
            color="C1",
            alpha=plot_opts.get("traj_quiver_alpha", 0.8),
        )
    ax.set_xlim(0, config["domain"]["width"])
    ax.set_ylim(0, config["domain"]["height"])
    ax.set_aspect("equal")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title("Final positions and headings")
    fig.text(0.01, 0.01, _footer_text(config), fontsize=7)
    fig.tight_layout()
    fig.savefig(out_dir / "traj_final.png", dpi=200)
    plt.close(fig)


def _plot_order_parameter(out_dir: Path, metrics_df: pd.DataFrame, config: Dict) -> None:
    """Plot Phi and its running average against the iteration count."""

    burn_in = config["vicsek"]["burn_in"]
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.plot(metrics_df["iteration"], metrics_df["phi"], lw=0.8, label=r"$\Phi$")
    ax.plot(metrics_df["iteration"], metrics_df["avg_phi"], lw=1.5, label=r"$\langle\Phi\rangle$")
    ax.axvline(burn_in, color="0.5", ls="--", lw=0.8, label="burn-in")
    ax.set_ylim(0.0, 1.05)
    ax.set_xlabel("Iteration")
    ax.set_ylabel(r"$\Phi$")
    ax.set_title("Vicsek order parameter")
    ax.legend()
    fig.text(0.01, 0.01, _footer_text(config), fontsize=7)
    fig.tight_layout()
    fig.savefig(out_dir / "order_parameter.png", dpi=200)
    plt.close(fig)


def _plot_sweep(out_dir: Path, sweep_df: pd.DataFrame, config: Dict) -> None:
    """Plot the averaged order parameter against the noise amplitude."""

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.errorbar(
        sweep_df["noise_amplitude"],
        sweep_df["avg_phi"],
        yerr=sweep_df["phi_std"],
        marker="o",
        capsize=3,
    )
    ax.set_ylim(0.0, 1.05)
    ax.set_xlabel(r"Noise amplitude $\eta$")
    ax.set_ylabel(r"$\langle\Phi\rangle$")
    ax.set_title("Order parameter vs noise")
    fig.text(0.01, 0.01, _footer_text(config), fontsize=7)
    fig.tight_layout()
    fig.savefig(out_dir / "sweep.png", dpi=200)
    plt.close(fig)


def run_single(config: Dict[str, Any]) -> Dict[str, Any]:
    """Execute one simulation described by ``config`` and persist outputs."""

    sim_cfg = simulation_config(config)
    domain = domain_config(config)
    run_cfg = config.get("run", {})
    out_dir = ensure_dir(run_cfg.get("out_dir", "outputs/vicsek"))

    results = run_simulation(
        sim_cfg,
        domain,
        steps=int(run_cfg.get("steps", 300)),
        save_every=int(run_cfg.get("save_every", 1)),
        progress=bool(run_cfg.get("progress", True)),
    )
    metrics_df = compute_timeseries(results["phi_history"], sim_cfg.burn_in, sim_cfg.avg_window)

    outputs_cfg = config.get("outputs", {})
    if outputs_cfg.get("save_npz", True):
        save_trajectory(out_dir, results, config)
    if outputs_cfg.get("save_csv", True):
        save_table(out_dir, "order_parameter", metrics_df)
    if outputs_cfg.get("plots", True):
        _plot_final(out_dir, results["traj"], results["vel"], config)
        _plot_order_parameter(out_dir, metrics_df, config)

    snapshot = results["snapshot"]
    summary = {
        "iterations": snapshot.iteration,
        "current_phi": snapshot.current_phi,
        "avg_phi": snapshot.avg_phi,
    }
    save_run_metadata(out_dir, config, summary)
    return {"config": config, "results": results, "metrics": metrics_df, "summary": summary, "out_dir": out_dir}


def run_sweep(config: Dict[str, Any]) -> Dict[str, Any]:
    """Run a noise sweep described by ``config['sweep']`` and persist outputs."""

    sweep_cfg = config.get("sweep", {})
    out_dir = ensure_dir(sweep_cfg.get("out_dir", "outputs/vicsek_sweep"))

    sweep_df = sweep_noise(
        simulation_config(config),
        domain_config(config),
        sweep_cfg.get("noise_amplitudes", []),
        steps=int(sweep_cfg.get("steps", 300)),
        progress=bool(config.get("run", {}).get("progress", True)),
    )

    outputs_cfg = config.get("outputs", {})
    if outputs_cfg.get("save_csv", True):
        save_table(out_dir, "sweep", sweep_df)
    if outputs_cfg.get("plots", True) and not sweep_df.empty:
        _plot_sweep(out_dir, sweep_df, config)
    save_run_metadata(out_dir, config, {"runs": int(len(sweep_df))})
    return {"config": config, "sweep": sweep_df, "out_dir": out_dir}


def cmd_run(args: argparse.Namespace, overrides: List[Tuple[str, str]]) -> None:
    """Entry point for the ``run`` CLI command."""

    override_pairs = [(k, _convert_value(v)) for k, v in overrides]
    if args.steps is not None:
        override_pairs.append(("run.steps", args.steps))
    if args.out_dir is not None:
        override_pairs.append(("run.out_dir", args.out_dir))
    config = load_config(args.config, override_pairs)
    run = run_single(config)
    summary = run["summary"]
    print(
        f"Finished {summary['iterations']} steps: "
        f"Phi={summary['current_phi']:.4f}  <Phi>={summary['avg_phi']:.4f}  -> {run['out_dir']}"
    )


def cmd_sweep(args: argparse.Namespace, overrides: List[Tuple[str, str]]) -> None:
    """Entry point for the ``sweep`` CLI command."""

    override_pairs = [(k, _convert_value(v)) for k, v in overrides]
    if args.steps is not None:
        override_pairs.append(("sweep.steps", args.steps))
    if args.out_dir is not None:
        override_pairs.append(("sweep.out_dir", args.out_dir))
    config = load_config(args.config, override_pairs)
    run = run_sweep(config)
    print(run["sweep"].to_string(index=False))
    print(f"Saved sweep to {run['out_dir']}")


def build_parser() -> argparse.ArgumentParser:
    """Parser with the ``run`` and ``sweep`` subcommands."""

    parser = argparse.ArgumentParser(
        prog="vicseksim",
        description="Vicsek model on a periodic rectangle. Extra '--section.key value' "
        "arguments override configuration fields.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a single simulation")
    run.add_argument("--config", help="Path to configuration YAML (defaults if omitted)")
    run.add_argument("--steps", type=int, help="Number of steps (overrides run.steps)")
    run.add_argument("--out-dir", help="Output directory (overrides run.out_dir)")

    sweep = subparsers.add_parser("sweep", help="Sweep the noise amplitude")
    sweep.add_argument("--config", help="Path to configuration YAML (defaults if omitted)")
    sweep.add_argument("--steps", type=int, help="Steps per noise value (overrides sweep.steps)")
    sweep.add_argument("--out-dir", help="Output directory (overrides sweep.out_dir)")

    return parser


def main(argv: Iterable[str] | None = None) -> None:
    """Console-script entry point; ``argv`` defaults to ``sys.argv[1:]``."""

    parser = build_parser()
    args, unknown = parser.parse_known_args(argv)
    overrides = _parse_overrides(unknown)

    if args.command == "run":
        cmd_run(args, overrides)
    elif args.command == "sweep":
        cmd_sweep(args, overrides)
    else:  # pragma: no cover
        parser.error(f"Unknown command {args.command}")


if __name__ == "__main__":
    main()
