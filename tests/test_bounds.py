"""
test_bounds.py — Local admissibility bounds
============================================

Verifies:
  - Neighborhood minima / maxima of density and entropy
  - Relaxation of the bounds
  - The low-order state and convex combinations of neighbors lie inside
  - Shallow water bounds
"""

import numpy as np
import pytest

from idp_euler import AdmissibleBoundsEvaluator, BoundsRecord, build_line_graph


@pytest.fixture
def random_line_state(ideal_gas, rng):
    """Random admissible state on a 20-node line graph."""
    n = 20
    U = ideal_gas.from_primitive(rng.uniform(0.1, 2.0, n),
                                 rng.uniform(-1.0, 1.0, n),
                                 rng.uniform(0.1, 2.0, n))
    return build_line_graph(n), U


class TestBoundsRecord:
    """Named access to bound values."""

    def test_access(self):
        record = BoundsRecord(('a', 'b'), [[1.0, 2.0], [3.0, 4.0]])
        np.testing.assert_array_equal(record['b'], [3.0, 4.0])
        assert len(record) == 2
        assert record.n_nodes == 2
        assert record.node(1).as_tuple() == (2.0, 4.0)
        np.testing.assert_array_equal(record.take([1, 1, 0]).values[0], [2.0, 2.0, 1.0])

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            BoundsRecord(('a', 'b'), [1.0])


class TestEulerBounds:
    """Density, entropy and gamma bounds."""

    def test_neighborhood_extrema(self, ideal_gas, random_line_state):
        graph, U = random_line_state
        record = AdmissibleBoundsEvaluator(ideal_gas).compute(U, graph)
        rho = U[0]

        for i in range(1, graph.n_nodes - 1):
            neighborhood = rho[i - 1:i + 2]
            assert record['rho_min'][i] == neighborhood.min()
            assert record['rho_max'][i] == neighborhood.max()
        assert record['rho_min'][0] == rho[:2].min()

        s = ideal_gas.specific_entropy(U)
        assert record['s_min'][5] == pytest.approx(s[4:7].min(), rel=1e-14)
        np.testing.assert_allclose(record['gamma_min'], 1.4)

    def test_single_node_form(self, ideal_gas, random_line_state):
        graph, U = random_line_state
        evaluator = AdmissibleBoundsEvaluator(ideal_gas)
        full = evaluator.compute(U, graph)

        single = evaluator.bounds(U[:, 7], U[:, [6, 8]])
        np.testing.assert_allclose(single.values, full.values[:, 7], rtol=1e-14)

    def test_low_order_state_is_inside(self, ideal_gas, random_line_state):
        graph, U = random_line_state
        evaluator = AdmissibleBoundsEvaluator(ideal_gas)
        record = evaluator.compute(U, graph)
        assert np.all(evaluator.is_within(record, U))

    def test_convex_combination_is_inside(self, ideal_gas, random_line_state, rng):
        graph, U = random_line_state
        evaluator = AdmissibleBoundsEvaluator(ideal_gas)
        record = evaluator.compute(U, graph)

        # interior nodes: random convex combination of the closed neighborhood
        weights = rng.dirichlet(np.ones(3), size=graph.n_nodes - 2).T
        V = U.copy()
        V[:, 1:-1] = weights[0] * U[:, :-2] + weights[1] * U[:, 1:-1] + weights[2] * U[:, 2:]
        assert np.all(evaluator.is_within(record, V))

    def test_outside_state_detected(self, ideal_gas, random_line_state):
        graph, U = random_line_state
        evaluator = AdmissibleBoundsEvaluator(ideal_gas)
        record = evaluator.compute(U, graph)

        V = U.copy()
        V[:, 3] *= 0.5 * record['rho_min'][3] / U[0, 3]
        assert not evaluator.is_within(record, V)[3]

    def test_relaxation(self, ideal_gas, random_line_state):
        graph, U = random_line_state
        strict = AdmissibleBoundsEvaluator(ideal_gas).compute(U, graph)
        relaxed = AdmissibleBoundsEvaluator(ideal_gas, relaxation=0.1).compute(U, graph)

        np.testing.assert_allclose(relaxed['rho_min'], 0.9 * strict['rho_min'])
        np.testing.assert_allclose(relaxed['rho_max'], 1.1 * strict['rho_max'])
        np.testing.assert_allclose(relaxed['s_min'], 0.9 * strict['s_min'])
        np.testing.assert_allclose(relaxed['gamma_min'], strict['gamma_min'])

    @pytest.mark.parametrize("relaxation", [-0.1, 1.0])
    def test_invalid_relaxation(self, ideal_gas, relaxation):
        with pytest.raises(ValueError):
            AdmissibleBoundsEvaluator(ideal_gas, relaxation=relaxation)


class TestShallowWaterBounds:
    """Water height and kinetic energy bounds."""

    def test_names_and_values(self, shallow_water):
        graph = build_line_graph(3)
        U = shallow_water.from_primitive(np.array([1.0, 2.0, 0.5]), np.array([0.0, 1.0, -2.0]))
        evaluator = AdmissibleBoundsEvaluator(shallow_water)
        record = evaluator.compute(U, graph)

        assert record.names == ('h_min', 'h_max', 'kinetic_energy_max')
        np.testing.assert_allclose(record['h_min'], [1.0, 0.5, 0.5])
        np.testing.assert_allclose(record['h_max'], [2.0, 2.0, 2.0])
        kinetic_energy = shallow_water.kinetic_energy(U)
        np.testing.assert_allclose(record['kinetic_energy_max'],
                                   [kinetic_energy[1], kinetic_energy[2], kinetic_energy[2]])
        assert np.all(evaluator.is_within(record, U))
