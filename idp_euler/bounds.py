"""
Local admissibility bounds computed from the low-order update.

For every node i the bounds are taken over the closed neighborhood
{i} U N(i) of the low-order state:

    Euler:          rho_min, rho_max, s_min, gamma_min
    shallow water:  h_min, h_max, kinetic_energy_max

with s = rho*e * (rho / (1 - b rho))^(-gamma_min) the surrogate specific
entropy evaluated with the smallest interpolatory gamma of the
neighborhood. Every convex combination of neighborhood states satisfies
these bounds, and the low-order state itself is one of them, so the set
described by a record is never empty.
"""

import numpy as np


EULER_BOUNDS = ('rho_min', 'rho_max', 's_min', 'gamma_min')
SHALLOW_WATER_BOUNDS = ('h_min', 'h_max', 'kinetic_energy_max')


class BoundsRecord:
    """
    Ordered tuple of scalar bounds, for one node or for all nodes.

    Attributes
    ----------
    names : tuple of str
        Bound names, in order
    values : ndarray, shape (n_bounds,) or (n_bounds, n)
    """

    def __init__(self, names, values):
        self.names = tuple(names)
        self.values = np.asarray(values, dtype=float)
        if self.values.shape[0] != len(self.names):
            raise ValueError(f"Expected {len(self.names)} bounds, got {self.values.shape[0]}")

    def __getitem__(self, name):
        return self.values[self.names.index(name)]

    def __len__(self):
        return len(self.names)

    def __repr__(self):
        return f"BoundsRecord(names={self.names}, shape={self.values.shape})"

    @property
    def n_nodes(self):
        return self.values.shape[1] if self.values.ndim > 1 else 1

    def take(self, index):
        """Record restricted to (or gathered at) the nodes ``index``."""
        return BoundsRecord(self.names, self.values[:, index])

    def node(self, i):
        return BoundsRecord(self.names, self.values[:, i])

    def as_tuple(self):
        return tuple(float(v) for v in self.values)


class AdmissibleBoundsEvaluator:
    """
    Compute the local bounds record of every node.

    Parameters
    ----------
    eos : EquationOfState
    relaxation : float
        Relative relaxation r in [0, 1): minima are scaled by (1 - r),
        maxima by (1 + r)
    """

    def __init__(self, eos, relaxation=0.0):
        if not 0.0 <= relaxation < 1.0:
            raise ValueError(f"Relaxation must be in [0, 1), got {relaxation}")
        self.eos = eos
        self.relaxation = float(relaxation)

        if eos.family == 'euler':
            self.names = EULER_BOUNDS
        elif eos.family == 'shallow_water':
            self.names = SHALLOW_WATER_BOUNDS
        else:
            raise ValueError(f"Unknown equation-of-state family: {eos.family}")

    def compute(self, U_low, graph):
        """
        Bounds of all nodes of ``graph``.

        Parameters
        ----------
        U_low : ndarray, shape (n_components, n)
            Low-order state
        graph : ComputationalGraph

        Returns
        -------
        BoundsRecord with values of shape (n_bounds, n)
        """
        rows, cols = graph.directed_pairs()
        return self._evaluate(np.asarray(U_low, dtype=float), rows, cols)

    def bounds(self, U_i, U_neighbors):
        """
        Bounds of a single node from its own low-order state and those of
        its neighbors, shape (n_components,) and (n_components, k).
        """
        U = np.column_stack([U_i, U_neighbors])
        k = U.shape[1] - 1
        record = self._evaluate(U, np.zeros(k, dtype=int), np.arange(1, k + 1))
        return record.node(0)

    def _evaluate(self, U, rows, cols):
        eos = self.eos
        r = self.relaxation

        rho = eos.density(U)
        rho_min = rho.copy()
        rho_max = rho.copy()
        np.minimum.at(rho_min, rows, rho[cols])
        np.maximum.at(rho_max, rows, rho[cols])

        if eos.family == 'shallow_water':
            kinetic_energy = eos.kinetic_energy(U)
            kinetic_energy_max = kinetic_energy.copy()
            np.maximum.at(kinetic_energy_max, rows, kinetic_energy[cols])
            values = [(1.0 - r) * rho_min, (1.0 + r) * rho_max, (1.0 + r) * kinetic_energy_max]
            return BoundsRecord(self.names, np.array(values))

        gamma = eos.interpolatory_gamma(U)
        gamma_min = gamma.copy()
        np.minimum.at(gamma_min, rows, gamma[cols])

        # entropy of each neighbor, measured with the gamma_min of node i
        rho_e = eos.internal_energy(U)
        x = rho / (1.0 - eos.covolume * rho)
        s_min = rho_e * x**(-gamma_min)
        np.minimum.at(s_min, rows, rho_e[cols] * x[cols]**(-gamma_min[rows]))

        values = [(1.0 - r) * rho_min, (1.0 + r) * rho_max, (1.0 - r) * s_min, gamma_min]
        return BoundsRecord(self.names, np.array(values))

    def is_within(self, record, U, rtol=1e-10):
        """
        Node mask of states U satisfying ``record`` up to a relative
        tolerance.
        """
        eos = self.eos
        U = np.asarray(U, dtype=float)
        rho = eos.density(U)
        first, second = self.names[0], self.names[1]

        within = (rho >= record[first] * (1.0 - rtol)) & (rho <= record[second] * (1.0 + rtol))
        if eos.family == 'shallow_water':
            kinetic_energy = eos.kinetic_energy(U)
            bound = record['kinetic_energy_max']
            return within & (kinetic_energy <= bound + rtol * np.abs(bound))

        s = eos.specific_entropy(U, gamma=record['gamma_min'])
        s_min = record['s_min']
        return within & (s >= s_min - rtol * np.abs(s_min))
