"""
Boundary conditions applied to the assembled state of a time step.

Implements:
- Dirichlet: prescribed state (constant or function of time)
- SlipWall: inviscid wall, the normal momentum is removed
- Extrapolation: do-nothing outflow

All conditions overwrite boundary nodes of U in place.
"""

import numpy as np


class BoundaryCondition:
    """Base class for boundary conditions."""

    def __init__(self, nodes):
        self.nodes = np.atleast_1d(np.asarray(nodes, dtype=int))

    def apply(self, U, t, eos):
        """
        Apply the boundary condition.

        Parameters
        ----------
        U : ndarray
            Conserved variables (n_components, n), modified in place
        t : float
            Current time
        eos : EquationOfState
            Equation-of-state policy
        """
        raise NotImplementedError


class Dirichlet(BoundaryCondition):
    """
    Prescribed state on a set of nodes.

    Parameters
    ----------
    nodes : array_like of int
    state : ndarray or callable
        Conserved state of shape (n_components,), or a function
        ``state(t)`` returning one
    """

    def __init__(self, nodes, state):
        super().__init__(nodes)
        self.state = state

    def apply(self, U, t, eos):
        state = self.state(t) if callable(self.state) else self.state
        state = eos.check_state(state)
        U[:, self.nodes] = state.reshape(eos.n_components, -1)


class SlipWall(BoundaryCondition):
    """
    Inviscid slip wall.

    The momentum component along the outward wall normal is removed,
    tangential momentum is preserved. The kinetic energy of the removed
    component is taken out of the total energy so that the internal
    energy does not change.

    Parameters
    ----------
    nodes : array_like of int
    normals : ndarray
        Unit outward normals, shape (dim,) or (dim, len(nodes))
    """

    def __init__(self, nodes, normals):
        super().__init__(nodes)
        normals = np.asarray(normals, dtype=float)
        if normals.ndim == 1:
            normals = np.repeat(normals[:, None], len(self.nodes), axis=1)
        self.normals = normals / np.linalg.norm(normals, axis=0)

    def apply(self, U, t, eos):
        m = U[eos.momentum_slice][:, self.nodes]
        m_n = np.sum(m * self.normals, axis=0)

        if eos.family == 'euler':
            rho = U[0, self.nodes]
            U[1 + eos.dim, self.nodes] -= 0.5 * m_n**2 / rho

        U[eos.momentum_slice, self.nodes] = m - m_n * self.normals


class Extrapolation(BoundaryCondition):
    """
    Do-nothing outflow condition.

    The graph formulation already treats missing neighbors as a
    zero-gradient extension of the boundary state.
    """

    def __init__(self, nodes=()):
        super().__init__(nodes)

    def apply(self, U, t, eos):
        return None


class BoundaryConditionManager:
    """
    Collection of boundary conditions applied in insertion order.

    Instances are callable as ``manager(U, t)`` and return the modified U.

    Parameters
    ----------
    eos : EquationOfState
    """

    def __init__(self, eos):
        self.eos = eos
        self.bcs = {}

    def add(self, name, bc):
        """
        Register a boundary condition.

        Parameters
        ----------
        name : str
            Boundary name, e.g. 'left' or 'walls'
        bc : BoundaryCondition
        """
        self.bcs[name] = bc

    def set_dirichlet(self, name, nodes, state):
        self.bcs[name] = Dirichlet(nodes, state)

    def set_wall(self, name, nodes, normals):
        self.bcs[name] = SlipWall(nodes, normals)

    def __call__(self, U, t):
        for bc in self.bcs.values():
            bc.apply(U, t, self.eos)
        return U
