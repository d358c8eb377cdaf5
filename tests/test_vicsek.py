"""Unit tests for the discrete-time Vicsek update rules."""

from __future__ import annotations

import numpy as np
import pytest

from vicseksim.metrics import order_parameter
from vicseksim.noise import angle_noise
from vicseksim.particles import Particle, SwarmState, headings_from_angles
from vicseksim.rng import LCGRandom
from vicseksim.vicsek import (
    align_headings,
    compute_neighbors,
    integrate_positions,
    mean_heading,
    step_vicsek,
)


def _random_swarm(seed: int, N: int, L: float):
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, L, size=(N, 2))
    theta = rng.uniform(-10.0, 10.0, size=N)
    return x, theta


def test_headings_are_unit_vectors_at_theta():
    theta = np.linspace(0.0, 2.0 * np.pi, 32, endpoint=False)
    headings = headings_from_angles(theta)
    norms = np.linalg.norm(headings, axis=1)
    np.testing.assert_allclose(norms, np.ones_like(norms), atol=1e-12)
    recovered = np.arctan2(headings[:, 1], headings[:, 0])
    delta = np.angle(np.exp(1j * (recovered - theta)))
    np.testing.assert_allclose(delta, np.zeros_like(delta), atol=1e-12)


def test_opposite_headings_cancel_to_zero():
    x = np.array([[1.0, 1.0], [2.0, 2.0]])
    theta = np.array([0.0, np.pi])
    neighbours = compute_neighbors(x, 10.0, 10.0, R=100.0)
    assert neighbours[0].tolist() == [1] and neighbours[1].tolist() == [0]
    new = align_headings(theta, neighbours, eta=0.0, rng=LCGRandom(42))
    np.testing.assert_array_equal(new, [0.0, 0.0])


def test_mean_heading_of_neighbourhood():
    theta = np.array([0.0, np.pi / 2, 3.0])
    avg = mean_heading(theta, 0, np.array([1]))
    np.testing.assert_allclose(avg, np.pi / 4)


def test_isolated_particle_keeps_unwrapped_heading_plus_noise():
    theta = np.array([10.0, -7.5])
    neighbours = [np.array([], dtype=int), np.array([], dtype=int)]
    new = align_headings(theta, neighbours, eta=0.8, rng=LCGRandom(11))
    expected_noise = LCGRandom(11).uniform(-0.4, 0.4, size=2)
    np.testing.assert_array_equal(new, theta + expected_noise)
    # no wrapping into (-pi, pi]
    assert new[0] > 2.0 * np.pi


def test_isolated_particle_without_noise_is_unchanged():
    theta = np.array([123.456])
    new = align_headings(theta, [np.array([], dtype=int)], eta=0.0, rng=LCGRandom(1))
    assert new[0] == 123.456


def test_noise_draws_assigned_by_index():
    x, theta = _random_swarm(0, 30, 6.0)
    neighbours = compute_neighbors(x, 6.0, 6.0, 1.5)
    new = align_headings(theta, neighbours, eta=1.2, rng=LCGRandom(9))
    noise = LCGRandom(9).uniform(-0.6, 0.6, size=30)
    for i, idx in enumerate(neighbours):
        if idx.size:
            base = mean_heading(theta, i, idx)
        else:
            base = theta[i]
        assert new[i] == base + noise[i]


def test_update_is_synchronous_and_order_independent():
    x, theta = _random_swarm(1, 80, 10.0)
    neighbours = compute_neighbors(x, 10.0, 10.0, 2.0)
    theta_before = theta.copy()

    forward = align_headings(theta, neighbours, eta=0.5, rng=LCGRandom(3))
    backward = align_headings(theta, neighbours, eta=0.5, rng=LCGRandom(3), order=range(79, -1, -1))
    shuffled_order = np.random.default_rng(2).permutation(80)
    shuffled = align_headings(theta, neighbours, eta=0.5, rng=LCGRandom(3), order=shuffled_order)

    np.testing.assert_array_equal(forward, backward)
    np.testing.assert_array_equal(forward, shuffled)
    np.testing.assert_array_equal(theta, theta_before)


def test_zero_noise_aligned_swarm_stays_aligned():
    x, _ = _random_swarm(2, 50, 10.0)
    theta = np.zeros(50)
    rng = LCGRandom(5)
    for _ in range(20):
        x, theta, _ = step_vicsek(x, theta, 0.3, 1.0, 10.0, 10.0, 2.0, 0.0, rng)
    np.testing.assert_array_equal(theta, np.zeros(50))
    assert order_parameter(theta, 0.3) == 1.0


def test_integrate_positions_wraps():
    x = np.array([[9.5, 0.2], [0.1, 5.0]])
    theta = np.array([0.0, np.pi])
    new = integrate_positions(x, theta, v0=1.0, dt=1.0, Lx=10.0, Ly=10.0)
    np.testing.assert_allclose(new, [[0.5, 0.2], [9.1, 5.0]])
    assert np.all(new >= 0.0) and np.all(new < 10.0)


def test_integrate_scales_with_speed_and_time_step():
    x = np.array([[1.0, 1.0]])
    theta = np.array([np.pi / 2])
    new = integrate_positions(x, theta, v0=0.5, dt=2.0, Lx=10.0, Ly=10.0)
    np.testing.assert_allclose(new, [[1.0, 2.0]], atol=1e-12)
    still = integrate_positions(x, theta, v0=0.0, dt=2.0, Lx=10.0, Ly=10.0)
    np.testing.assert_array_equal(still, x)


def test_step_returns_neighbours_used_for_alignment():
    x, theta = _random_swarm(3, 40, 8.0)
    rng = LCGRandom(4)
    x_new, theta_new, neighbours = step_vicsek(x, theta, 0.5, 1.0, 8.0, 8.0, 1.5, 0.3, rng)
    expected = compute_neighbors(x, 8.0, 8.0, 1.5)
    for a, b in zip(neighbours, expected):
        np.testing.assert_array_equal(a, b)
    np.testing.assert_array_equal(
        theta_new, align_headings(theta, expected, 0.3, LCGRandom(4))
    )
    np.testing.assert_array_equal(x_new, integrate_positions(x, theta_new, 0.5, 1.0, 8.0, 8.0))


def test_consensus_at_low_noise():
    rng = LCGRandom(321)
    x = rng.uniform(0.0, 10.0, size=200).reshape(100, 2)
    theta = rng.uniform(0.0, 2.0 * np.pi, size=100)
    for _ in range(300):
        x, theta, _ = step_vicsek(x, theta, 0.1, 1.0, 10.0, 10.0, 2.0, 0.1, rng)
    assert order_parameter(theta, 0.1) > 0.8


def test_disorder_at_full_circle_noise():
    rng = LCGRandom(111)
    x = rng.uniform(0.0, 10.0, size=200).reshape(100, 2)
    theta = rng.uniform(0.0, 2.0 * np.pi, size=100)
    phis = []
    for _ in range(100):
        x, theta, _ = step_vicsek(x, theta, 0.1, 1.0, 10.0, 10.0, 2.0, 2.0 * np.pi, rng)
        phis.append(order_parameter(theta, 0.1))
    assert np.mean(phis) < 0.3


def test_angle_noise_range_and_variance():
    draws = angle_noise(LCGRandom(17), 1.0, 20000)
    assert draws.shape == (20000,)
    assert np.all(draws >= -0.5) and np.all(draws < 0.5)
    assert np.var(draws) == pytest.approx(1.0 / 12.0, rel=0.05)


def test_swarm_state_records():
    swarm = SwarmState([[1.0, 2.0], [3.0, 4.0]], [0.0, np.pi / 2])
    assert len(swarm) == 2
    particles = list(swarm)
    assert particles[1] == Particle(3.0, 4.0, np.pi / 2)
    vx, vy = particles[1].velocity(2.0)
    assert vx == pytest.approx(0.0, abs=1e-12) and vy == pytest.approx(2.0)
    np.testing.assert_allclose(swarm.velocities(2.0)[0], [2.0, 0.0])
    with pytest.raises(ValueError):
        SwarmState(np.zeros((3, 2)), np.zeros(2))
