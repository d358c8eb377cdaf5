"""Tests for the seeded linear congruential random source."""

import numpy as np

from vicseksim.rng import INCREMENT, MODULUS, MULTIPLIER, LCGRandom


def test_first_draw_matches_recurrence():
    rng = LCGRandom(42)
    # (42 * 9301 + 49297) % 233280 == 206659
    assert rng.random() == 206659 / 233280
    assert rng.state == 206659


def test_state_follows_linear_recurrence():
    rng = LCGRandom(7)
    state = 7
    for _ in range(100):
        state = (state * MULTIPLIER + INCREMENT) % MODULUS
        assert rng.random() == state / MODULUS


def test_same_seed_same_sequence():
    a = LCGRandom(123)
    b = LCGRandom(123)
    seq_a = [a.uniform(-3.0, 5.0) for _ in range(50)]
    seq_b = [b.uniform(-3.0, 5.0) for _ in range(50)]
    assert seq_a == seq_b


def test_different_seeds_differ():
    a = LCGRandom(1)
    b = LCGRandom(2)
    assert [a.random() for _ in range(5)] != [b.random() for _ in range(5)]


def test_uniform_within_interval():
    rng = LCGRandom(99)
    draws = rng.uniform(2.0, 4.0, size=1000)
    assert draws.shape == (1000,)
    assert np.all(draws >= 2.0) and np.all(draws < 4.0)


def test_vector_draws_equal_sequential_scalar_draws():
    a = LCGRandom(5)
    b = LCGRandom(5)
    vec = a.uniform(-1.0, 1.0, size=20)
    scalars = np.array([b.uniform(-1.0, 1.0) for _ in range(20)])
    np.testing.assert_array_equal(vec, scalars)
    assert a.state == b.state


def test_negative_seed_is_reduced_modulo():
    rng = LCGRandom(-5)
    assert rng.state == MODULUS - 5
    assert 0.0 <= rng.random() < 1.0


def test_degenerate_interval_returns_bound():
    rng = LCGRandom(3)
    assert rng.uniform(0.0, 0.0) == 0.0
