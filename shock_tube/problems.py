"""
Library of 1D Riemann problems.

- sod:          (1, 0, 1) | (0.125, 0, 0.1), gamma = 1.4
- leblanc:      (1, 0, 1/15) | (0.001, 0, 2/3 * 1e-10), gamma = 5/3
- near_vacuum:  (1, 0, 1) | (1e-10, 0, 1e-10), gamma = 1.4
- dam_break:    shallow water, h = 1 | h = 0.1 at rest

Euler states are given as (rho, u, p), shallow water states as (h, u).
"""

from dataclasses import dataclass

import numpy as np

from idp_euler import IdealGasEuler, ShallowWater
from .exact_solution import ExactRiemannSolver, ShallowWaterExactSolution


@dataclass
class RiemannProblem:
    """
    A two-state initial value problem on a line.

    Attributes
    ----------
    name : str
    eos : EquationOfState
    left, right : tuple
        Primitive states, (rho, u, p) or (h, u)
    x_range : tuple
        Domain
    x_0 : float
        Position of the initial discontinuity
    t_end : float
        Suggested final time
    """

    name: str
    eos: object
    left: tuple
    right: tuple
    x_range: tuple = (0.0, 1.0)
    x_0: float = 0.5
    t_end: float = 0.2

    def initial_state(self, x):
        """Conserved initial state at the nodes x."""
        x = np.asarray(x, dtype=float)
        is_left = x < self.x_0
        primitive = [np.where(is_left, l, r) for l, r in zip(self.left, self.right)]

        if self.eos.family == 'shallow_water':
            h, u = primitive
            return self.eos.from_primitive(h, u)
        rho, u, p = primitive
        return self.eos.from_primitive(rho, u, p)

    def exact_solution(self):
        if self.eos.family == 'shallow_water':
            return ShallowWaterExactSolution(self.eos.gravity,
                                             h_L=self.left[0], u_L=self.left[1],
                                             h_R=self.right[0], u_R=self.right[1])
        return ExactRiemannSolver(self.eos.gamma, *self.left, *self.right)

    def boundary_states(self):
        """Conserved far-field states (left, right)."""
        left = self.initial_state(np.array([self.x_range[0]]))[:, 0]
        right = self.initial_state(np.array([self.x_range[1]]))[:, 0]
        return left, right


def sod(gamma=1.4):
    return RiemannProblem('sod', IdealGasEuler(gamma), (1.0, 0.0, 1.0), (0.125, 0.0, 0.1),
                          t_end=0.2)


def leblanc(gamma=5.0 / 3.0):
    return RiemannProblem('leblanc', IdealGasEuler(gamma),
                          (1.0, 0.0, 1.0 / 15.0), (0.001, 0.0, 2.0 / 3.0 * 1e-10),
                          x_range=(-1.0, 1.0), x_0=0.0, t_end=2.0 / 3.0)


def near_vacuum(gamma=1.4):
    return RiemannProblem('near_vacuum', IdealGasEuler(gamma),
                          (1.0, 0.0, 1.0), (1e-10, 0.0, 1e-10), t_end=0.1)


def dam_break(gravity=9.81):
    return RiemannProblem('dam_break', ShallowWater(gravity), (1.0, 0.0), (0.1, 0.0),
                          t_end=0.05)


PROBLEMS = {
    'sod': sod,
    'leblanc': leblanc,
    'near_vacuum': near_vacuum,
    'dam_break': dam_break,
}


def get_problem(name, **kwargs):
    try:
        factory = PROBLEMS[name]
    except KeyError:
        raise ValueError(f"Unknown problem: {name}. Choose from {sorted(PROBLEMS)}") from None
    return factory(**kwargs)
