"""
test_graph.py — Computational graph and builders
=================================================

Verifies:
  - Lumped masses and c_ij coefficients of the line and grid graphs
  - sum_j c_ij = 0 at interior nodes (exact for constant fluxes)
  - Input validation
  - Ownership partitions cover every edge once
"""

import numpy as np
import pytest

from idp_euler import ComputationalGraph, build_grid_graph, build_line_graph


def _coefficient_sums(graph):
    """sum_j c_ij for every node, shape (dim, n)."""
    i, j = graph.edges[:, 0], graph.edges[:, 1]
    sums = np.zeros((graph.dim, graph.n_nodes))
    for d in range(graph.dim):
        sums[d] = np.bincount(i, weights=graph.c_ij[d], minlength=graph.n_nodes) \
            + np.bincount(j, weights=graph.c_ji[d], minlength=graph.n_nodes)
    return sums


class TestLineGraph:
    """1D P1 elements with lumped mass."""

    def test_masses(self):
        graph = build_line_graph(11, x_range=(0.0, 2.0))
        assert graph.mass.sum() == pytest.approx(2.0)
        assert graph.mass[0] == pytest.approx(0.1)
        assert graph.mass[5] == pytest.approx(0.2)

    def test_coefficients(self):
        graph = build_line_graph(5)
        np.testing.assert_array_equal(graph.c_ij, 0.5)
        np.testing.assert_array_equal(graph.c_ji, -0.5)
        np.testing.assert_array_equal(graph.n_ij, 1.0)
        np.testing.assert_array_equal(graph.degree, [1, 2, 2, 2, 1])

        sums = _coefficient_sums(graph)
        np.testing.assert_allclose(sums[0, 1:-1], 0.0)
        assert sums[0, 0] == 0.5 and sums[0, -1] == -0.5

    def test_periodic(self):
        graph = build_line_graph(8, periodic=True)
        assert graph.n_edges == 8
        assert graph.mass.sum() == pytest.approx(1.0)
        np.testing.assert_array_equal(graph.degree, 2)
        np.testing.assert_allclose(_coefficient_sums(graph), 0.0)
        np.testing.assert_array_equal(graph.neighbors(0), [1, 7])

    def test_too_few_nodes(self):
        with pytest.raises(ValueError):
            build_line_graph(2, periodic=True)


class TestGridGraph:
    """2D tensor grid."""

    def test_counts_and_mass(self):
        graph = build_grid_graph(6, 4, x_range=(0.0, 2.0), y_range=(0.0, 1.0))
        assert graph.n_nodes == 24
        assert graph.n_edges == 5 * 4 + 6 * 3
        assert graph.dim == 2
        assert graph.mass.sum() == pytest.approx(2.0)
        assert graph.coordinates.shape == (2, 24)

    def test_interior_coefficient_sums(self):
        graph = build_grid_graph(5, 5)
        sums = _coefficient_sums(graph)
        index = np.arange(25).reshape(5, 5)
        interior = index[1:-1, 1:-1].ravel()
        np.testing.assert_allclose(sums[:, interior], 0.0, atol=1e-15)
        # at the left boundary the coefficients point inward, along +x
        assert np.all(sums[0, index[1:-1, 0]] > 0.0)
        np.testing.assert_allclose(sums[1, index[1:-1, 0]], 0.0, atol=1e-15)

    def test_neighbors(self):
        graph = build_grid_graph(4, 3)
        # node (1, 1) has index 5
        np.testing.assert_array_equal(graph.neighbors(5), [1, 4, 6, 9])


class TestValidation:
    """Malformed descriptors are rejected."""

    def test_negative_mass(self):
        with pytest.raises(ValueError):
            ComputationalGraph(mass=[1.0, -1.0], edges=[[0, 1]], c_ij=[[0.5]], c_ji=[[-0.5]])

    def test_edge_orientation(self):
        with pytest.raises(ValueError):
            ComputationalGraph(mass=[1.0, 1.0], edges=[[1, 0]], c_ij=[[0.5]], c_ji=[[-0.5]])

    def test_duplicate_edge(self):
        with pytest.raises(ValueError):
            ComputationalGraph(mass=[1.0, 1.0], edges=[[0, 1], [0, 1]],
                               c_ij=[[0.5, 0.5]], c_ji=[[-0.5, -0.5]])

    def test_edge_out_of_range(self):
        with pytest.raises(ValueError):
            ComputationalGraph(mass=[1.0, 1.0], edges=[[0, 2]], c_ij=[[0.5]], c_ji=[[-0.5]])

    def test_directed_pairs(self):
        graph = build_line_graph(4)
        rows, cols = graph.directed_pairs()
        assert len(rows) == 2 * graph.n_edges
        np.testing.assert_array_equal(rows, [0, 1, 2, 1, 2, 3])
        np.testing.assert_array_equal(cols, [1, 2, 3, 0, 1, 2])


class TestPartitions:
    """Ownership ranges for threaded evaluation."""

    @pytest.mark.parametrize("n_workers", [1, 3, 7])
    def test_edges_covered_once(self, n_workers):
        graph = build_grid_graph(7, 5).partition(n_workers)
        assert graph.n_partitions == n_workers
        parts = graph.edge_partitions()
        combined = np.sort(np.concatenate(parts))
        np.testing.assert_array_equal(combined, np.arange(graph.n_edges))

    def test_partition_keeps_original(self):
        graph = build_line_graph(10)
        partitioned = graph.partition(2)
        assert graph.n_partitions == 1
        np.testing.assert_array_equal(partitioned.ownership, [0] * 5 + [1] * 5)

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            build_line_graph(10).partition(0)
