"""
test_limiter.py — Convex limiter
=================================

Verifies:
  - t in [0, 1] and U + t P satisfies the bounds
  - Zero correction is accepted in full
  - Density and entropy bounds are hit exactly when active
  - The unconverged iteration falls back to the admissible end
  - Near-vacuum states receive no correction
"""

import numpy as np
import pytest

from idp_euler import (
    AdmissibleBoundsEvaluator,
    BoundsRecord,
    ConvexLimiter,
    build_line_graph
)
from idp_euler.bounds import EULER_BOUNDS, SHALLOW_WATER_BOUNDS


@pytest.fixture
def reference_bounds():
    """rho in [0.5, 2], s_min = 2, gamma_min = 1.4."""
    return BoundsRecord(EULER_BOUNDS, [0.5, 2.0, 2.0, 1.4])


@pytest.fixture
def reference_state(ideal_gas):
    """rho = 1, u = 0, p = 1: rho*e = 2.5 and s = 2.5."""
    return ideal_gas.from_primitive(1.0, 0.0, 1.0)


class TestLimiterBasics:
    """Range and trivial corrections."""

    def test_zero_correction(self, ideal_gas, reference_bounds, reference_state):
        t, success = ConvexLimiter(ideal_gas).limit(reference_bounds, reference_state,
                                                   np.zeros(3))
        assert t == 1.0
        assert success

    def test_small_correction_accepted(self, ideal_gas, reference_bounds, reference_state):
        P = np.array([0.1, 0.05, 0.1])
        t, success = ConvexLimiter(ideal_gas).limit(reference_bounds, reference_state, P)
        assert t == 1.0
        assert success

    def test_random_corrections(self, ideal_gas, rng):
        graph = build_line_graph(30)
        U = ideal_gas.from_primitive(rng.uniform(0.2, 2.0, 30),
                                     rng.uniform(-1.0, 1.0, 30),
                                     rng.uniform(0.2, 2.0, 30))
        evaluator = AdmissibleBoundsEvaluator(ideal_gas)
        record = evaluator.compute(U, graph)
        P = rng.normal(scale=2.0, size=U.shape)

        t, success = ConvexLimiter(ideal_gas).limit(record, U, P)
        assert np.all((t >= 0.0) & (t <= 1.0))
        np.testing.assert_array_equal(success, t >= 1.0)
        assert np.all(evaluator.is_within(record, U + t * P, rtol=1e-10))

    def test_batch_matches_single_lanes(self, ideal_gas, rng):
        U = ideal_gas.from_primitive(rng.uniform(0.5, 1.5, 8), 0.0, rng.uniform(0.5, 1.5, 8))
        record = BoundsRecord(EULER_BOUNDS, np.stack([0.9 * U[0], 1.1 * U[0],
                                                      0.9 * ideal_gas.specific_entropy(U),
                                                      np.full(8, 1.4)]))
        P = rng.normal(size=U.shape)
        limiter = ConvexLimiter(ideal_gas)

        t, _ = limiter.limit(record, U, P)
        for k in range(8):
            t_k, _ = limiter.limit(record.node(k), U[:, k], P[:, k])
            assert t_k == pytest.approx(t[k], abs=1e-14)

    def test_invalid_iteration_count(self, ideal_gas):
        with pytest.raises(ValueError):
            ConvexLimiter(ideal_gas, newton_max_iter=-1)


class TestActiveBounds:
    """The limited state sits on the active bound."""

    def test_density_minimum(self, ideal_gas, reference_bounds, reference_state):
        P = np.array([-1.0, 0.0, 0.0])
        t, success = ConvexLimiter(ideal_gas).limit(reference_bounds, reference_state, P)

        assert not success
        assert t == pytest.approx(0.5, rel=1e-14)
        assert (reference_state + t * P)[0] == pytest.approx(0.5, rel=1e-14)

    def test_density_maximum(self, ideal_gas, reference_bounds, reference_state):
        P = np.array([4.0, 0.0, 20.0])
        t, _ = ConvexLimiter(ideal_gas).limit(reference_bounds, reference_state, P)
        assert t == pytest.approx(0.25, rel=1e-14)

    def test_entropy_linear_in_t(self, ideal_gas, reference_bounds, reference_state):
        # removing energy at fixed density: rho*e = 2.5 (1 - t)
        P = np.array([0.0, 0.0, -2.5])
        t, success = ConvexLimiter(ideal_gas).limit(reference_bounds, reference_state, P)

        assert not success
        V = reference_state + t * P
        assert ideal_gas.specific_entropy(V) == pytest.approx(2.0, rel=1e-10)
        assert ideal_gas.specific_entropy(V) >= 2.0 * (1.0 - 1e-11)

    def test_entropy_converged_iteration(self, ideal_gas, reference_bounds, reference_state):
        # adding momentum: rho*e = 2.5 - 4.5 t^2 >= 2 for t <= 1/3
        P = np.array([0.0, 3.0, 0.0])
        limiter = ConvexLimiter(ideal_gas, newton_max_iter=50)
        t, _ = limiter.limit(reference_bounds, reference_state, P)

        assert t == pytest.approx(1.0 / 3.0, abs=1e-8)
        V = reference_state + t * P
        assert ideal_gas.specific_entropy(V) >= 2.0 * (1.0 - 1e-11)

    def test_few_iterations_stay_admissible(self, ideal_gas, reference_bounds, reference_state):
        P = np.array([0.0, 3.0, 0.0])
        t, _ = ConvexLimiter(ideal_gas, newton_max_iter=2).limit(
            reference_bounds, reference_state, P)

        assert 0.0 < t <= 1.0 / 3.0 + 1e-12
        V = reference_state + t * P
        assert ideal_gas.specific_entropy(V) >= 2.0 * (1.0 - 1e-11)

    def test_no_iterations_reject(self, ideal_gas, reference_bounds, reference_state):
        P = np.array([0.0, 3.0, 0.0])
        t, success = ConvexLimiter(ideal_gas, newton_max_iter=0).limit(
            reference_bounds, reference_state, P)
        assert t == 0.0
        assert not success


class TestDegenerateStates:
    """Vacuum and invalid inputs."""

    def test_near_vacuum(self, ideal_gas):
        U = ideal_gas.from_primitive(1e-10, 0.0, 1e-10)
        record = BoundsRecord(EULER_BOUNDS, [1e-10, 1.0, ideal_gas.specific_entropy(U), 1.4])
        P = np.array([-1e-9, 0.0, 0.0])

        t, success = ConvexLimiter(ideal_gas).limit(record, U, P)
        assert t == 0.0
        assert not success

    def test_nan_correction(self, ideal_gas, reference_bounds, reference_state):
        P = np.array([np.nan, 0.0, 0.0])
        t, success = ConvexLimiter(ideal_gas).limit(reference_bounds, reference_state, P)
        assert t == 0.0
        assert not success


class TestShallowWaterLimiter:
    """Kinetic energy bound of the shallow water equations."""

    def test_kinetic_energy_bound(self, shallow_water):
        U = shallow_water.from_primitive(1.0, 0.0)
        record = BoundsRecord(SHALLOW_WATER_BOUNDS, [0.5, 2.0, 0.5])
        P = np.array([0.0, 2.0])
        # |q|^2 / (2 h) = 2 t^2 <= 0.5
        t, success = ConvexLimiter(shallow_water, newton_max_iter=50).limit(record, U, P)

        assert not success
        assert t == pytest.approx(0.5, abs=1e-8)

    def test_height_bound(self, shallow_water):
        U = shallow_water.from_primitive(1.0, 0.0)
        record = BoundsRecord(SHALLOW_WATER_BOUNDS, [0.5, 2.0, 10.0])
        t, _ = ConvexLimiter(shallow_water).limit(record, U, np.array([-2.0, 0.0]))
        assert t == pytest.approx(0.25, rel=1e-14)
