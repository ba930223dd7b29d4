"""
Smoothness indicator controlling the high-order graph viscosity.

    alpha_i = ( |sum_j (q_j - q_i)| / sum_j |q_j - q_i| ) ** power

with q the density (water height). alpha vanishes on linear data and is
one at local extrema, so d^H_ij = d_ij max(alpha_i, alpha_j) removes the
first-order viscosity wherever the solution is smooth.
"""

import numpy as np


class SmoothnessIndicator:
    """
    Parameters
    ----------
    eos : EquationOfState
    power : int
        Exponent applied to the normalized second variation (default 3)
    """

    def __init__(self, eos, power=3):
        if power < 1:
            raise ValueError(f"Indicator power must be >= 1, got {power}")
        self.eos = eos
        self.power = power

    def compute(self, U, graph):
        """Indicator alpha in [0, 1] of every node."""
        q = self.eos.density(U)
        rows, cols = graph.directed_pairs()
        jump = q[cols] - q[rows]

        numerator = np.zeros(graph.n_nodes)
        denominator = np.zeros(graph.n_nodes)
        np.add.at(numerator, rows, jump)
        np.add.at(denominator, rows, np.abs(jump))

        ratio = np.abs(numerator) / np.where(denominator > 0.0, denominator, 1.0)
        return np.minimum(ratio, 1.0)**self.power

    def high_order_viscosity(self, dij, alpha, graph, index=None):
        """d^H_ij = d_ij max(alpha_i, alpha_j) for the edges ``index``."""
        if index is None:
            index = np.arange(graph.n_edges)
        i = graph.edges[index, 0]
        j = graph.edges[index, 1]
        return dij * np.maximum(alpha[i], alpha[j])
