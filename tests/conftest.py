"""
conftest.py — Shared pytest fixtures for the idp_euler test suite
"""

import numpy as np
import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from idp_euler import IdealGasEuler, ShallowWater, build_line_graph


@pytest.fixture
def ideal_gas():
    """Air, gamma = 1.4, 1D."""
    return IdealGasEuler(gamma=1.4)


@pytest.fixture
def shallow_water():
    """Shallow water with g = 9.81, 1D."""
    return ShallowWater(gravity=9.81)


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(20160701)


@pytest.fixture
def line_graph():
    """101-node line graph on [0, 1]."""
    return build_line_graph(101)


@pytest.fixture
def periodic_graph():
    """64-node periodic line graph on [0, 1]."""
    return build_line_graph(64, periodic=True)


@pytest.fixture
def sod_state(ideal_gas, line_graph):
    """Sod shock tube data on the 101-node line graph."""
    x = line_graph.coordinates[0]
    rho = np.where(x < 0.5, 1.0, 0.125)
    p = np.where(x < 0.5, 1.0, 0.1)
    return ideal_gas.from_primitive(rho, np.zeros_like(x), p)


@pytest.fixture
def smooth_periodic_state(ideal_gas, periodic_graph):
    """Density wave advected with unit velocity at constant pressure."""
    x = periodic_graph.coordinates[0]
    rho = 1.0 + 0.5 * np.sin(2 * np.pi * x)
    return ideal_gas.from_primitive(rho, np.ones_like(x), np.ones_like(x))


@pytest.fixture
def random_states():
    """Factory for admissible random Euler states of shape (3, n)."""
    def _make(eos, rng, n, rho_range=(-4, 0), p_range=(-3, 1), u_max=2.0):
        rho = 10.0**rng.uniform(*rho_range, n)
        p = 10.0**rng.uniform(*p_range, n)
        u = rng.uniform(-u_max, u_max, n)
        return eos.from_primitive(rho, u, p)
    return _make
