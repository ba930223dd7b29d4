"""
test_boundary_conditions.py — Boundary conditions
==================================================

Verifies:
  - Dirichlet states, constant and time dependent
  - Slip walls remove the normal momentum and keep the internal energy
  - The manager applies conditions in insertion order
"""

import numpy as np
import pytest

from idp_euler import (
    BoundaryConditionManager,
    Dirichlet,
    Extrapolation,
    IdealGasEuler,
    ShallowWater,
    SlipWall
)


class TestDirichlet:
    """Prescribed boundary states."""

    def test_constant_state(self, ideal_gas):
        U = np.ones((3, 5))
        state = ideal_gas.from_primitive(0.125, 0.0, 0.1)
        Dirichlet([0, 4], state).apply(U, 0.0, ideal_gas)
        np.testing.assert_array_equal(U[:, 0], state)
        np.testing.assert_array_equal(U[:, 4], state)
        np.testing.assert_array_equal(U[:, 1:4], 1.0)

    def test_time_dependent_state(self, shallow_water):
        U = np.ones((2, 3))
        bc = Dirichlet(0, lambda t: np.array([1.0 + t, 0.0]))
        bc.apply(U, 0.5, shallow_water)
        np.testing.assert_array_equal(U[:, 0], [1.5, 0.0])

    def test_wrong_state_size(self, ideal_gas):
        with pytest.raises(ValueError):
            Dirichlet([0], np.ones(2)).apply(np.ones((3, 2)), 0.0, ideal_gas)


class TestSlipWall:
    """Inviscid wall."""

    def test_euler_normal_momentum_removed(self):
        eos = IdealGasEuler(gamma=1.4, dim=2)
        U = eos.from_primitive(np.array([1.0, 2.0]), np.array([[1.0, -0.5], [2.0, 3.0]]),
                               np.array([1.0, 0.5]))
        rho_e = eos.internal_energy(U).copy()

        SlipWall([0, 1], [1.0, 0.0]).apply(U, 0.0, eos)

        np.testing.assert_allclose(U[1], 0.0)
        np.testing.assert_allclose(U[2], [2.0, 6.0])
        np.testing.assert_allclose(eos.internal_energy(U), rho_e, rtol=1e-14)

    def test_oblique_normal(self):
        eos = ShallowWater(dim=2)
        U = eos.from_primitive(np.array([1.0]), np.array([[1.0], [1.0]]))
        SlipWall([0], [1.0, 1.0]).apply(U, 0.0, eos)
        np.testing.assert_allclose(U[1:, 0], 0.0, atol=1e-15)

    def test_one_dimensional_wall(self, ideal_gas):
        U = ideal_gas.from_primitive(np.ones(2), np.array([0.5, -0.5]), np.ones(2))
        SlipWall([1], [1.0]).apply(U, 0.0, ideal_gas)
        assert U[1, 1] == 0.0
        assert U[1, 0] == 0.5
        assert ideal_gas.pressure(U)[1] == pytest.approx(1.0)


class TestManager:
    """Collection of conditions."""

    def test_call_applies_in_order(self, ideal_gas):
        manager = BoundaryConditionManager(ideal_gas)
        manager.set_dirichlet('first', [0], np.array([1.0, 0.0, 1.0]))
        manager.set_dirichlet('second', [0], np.array([2.0, 0.0, 2.0]))
        manager.add('outflow', Extrapolation([2]))

        U = np.full((3, 3), 5.0)
        result = manager(U, 0.0)
        assert result is U
        np.testing.assert_array_equal(U[:, 0], [2.0, 0.0, 2.0])
        np.testing.assert_array_equal(U[:, 2], 5.0)

    def test_wall_registration(self, shallow_water):
        manager = BoundaryConditionManager(shallow_water)
        manager.set_wall('right', [2], [1.0])
        U = shallow_water.from_primitive(np.ones(3), np.ones(3))
        manager(U, 1.0)
        np.testing.assert_array_equal(U[1], [1.0, 1.0, 0.0])
