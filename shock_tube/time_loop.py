"""
Outer time loop for 1D Riemann problems.

Repeatedly invokes one invariant-domain preserving step. A step rejected
with ``Restart`` is repeated from the old state with the CFL number
reduced by ``retry_factor``; the nominal CFL number is restored after
every accepted step.
"""

import logging

import numpy as np

from idp_euler import (
    BoundaryConditionManager,
    Restart,
    StepContext,
    StepOrchestrator,
    StepParameters,
    build_line_graph
)

logger = logging.getLogger(__name__)


class TimeLoop:
    """
    Forward Euler time loop on a 1D line graph.

    Parameters
    ----------
    problem : RiemannProblem
        Initial states and equation of state
    n_nodes : int
        Number of graph nodes
    cfl : float
        Nominal CFL number
    parameters : StepParameters, optional
        Step options. The default raises (and retries) on violations.
    retry_factor : float
        Factor applied to the CFL number after a rejected step
    max_retries : int
        Maximal number of retries of a single step
    """

    def __init__(self, problem, n_nodes=400, cfl=0.9, parameters=None,
                 retry_factor=0.5, max_retries=5):
        if not 0.0 < retry_factor < 1.0:
            raise ValueError(f"retry_factor must be in (0, 1), got {retry_factor}")

        self.problem = problem
        self.eos = problem.eos
        self.n_nodes = n_nodes
        self.cfl = cfl
        self.retry_factor = retry_factor
        self.max_retries = max_retries

        if parameters is None:
            parameters = StepParameters(id_violation_strategy='raise')
        self.parameters = parameters

        self.graph = build_line_graph(n_nodes, problem.x_range)
        self.x = self.graph.coordinates[0]

        left, right = problem.boundary_states()
        self.boundary_conditions = BoundaryConditionManager(self.eos)
        self.boundary_conditions.set_dirichlet('left', [0], left)
        self.boundary_conditions.set_dirichlet('right', [n_nodes - 1], right)

        self.stepper = StepOrchestrator(self.graph, self.eos, parameters,
                                        boundary_conditions=self.boundary_conditions)
        self.context = StepContext(cfl=cfl)

        self.U = problem.initial_state(self.x)
        self.t = 0.0
        self.n_steps = 0

        self.history = []
        self.time_history = []
        self.lij_history = []

    def step(self, tau=0.0):
        """
        Advance by one accepted step.

        Returns
        -------
        StepResult
        """
        for attempt in range(self.max_retries + 1):
            try:
                result = self.stepper.step(self.U, self.context, tau=tau, t=self.t)
            except Restart as restart:
                if attempt == self.max_retries:
                    break
                self.context.cfl *= self.retry_factor
                if tau > 0.0:
                    tau *= self.retry_factor
                logger.info("Step %d rejected (%s), retrying with cfl = %.4g",
                            self.n_steps + 1, restart.reason, self.context.cfl)
                continue

            self.context.cfl = self.cfl
            self.U = result.U
            self.t += result.tau
            self.n_steps += 1
            return result

        self.context.cfl = self.cfl
        raise RuntimeError(f"Step {self.n_steps + 1} rejected {self.max_retries + 1} times")

    def clipped_tau(self, t_end):
        """
        Step size for the next step: 0 (use tau_max) unless a full step
        would pass t_end, in which case t_end - t.
        """
        dij = self.stepper.build_viscosity(self.U)
        tau_max = self.stepper.compute_tau_max(dij, self.context.cfl)
        return t_end - self.t if self.t + tau_max > t_end else 0.0

    def solve(self, t_end=None, save_interval=None):
        """
        Integrate up to t_end.

        Parameters
        ----------
        t_end : float, optional
            Final time (default: the problem's suggested final time)
        save_interval : float, optional
            Time interval between snapshots

        Returns
        -------
        tuple of ndarrays
            Final primitive state
        """
        if t_end is None:
            t_end = self.problem.t_end
        if save_interval is None:
            save_interval = t_end / 50

        next_save_time = self.t
        self.history = [self.U.copy()]
        self.time_history = [self.t]

        logger.info("Starting %s: t_end = %g, nodes = %d, cfl = %g",
                    self.problem.name, t_end, self.n_nodes, self.cfl)

        while self.t < t_end:
            result = self.step(tau=self.clipped_tau(t_end))

            self.lij_history.append(result.lij)

            if self.t >= next_save_time:
                self.history.append(self.U.copy())
                self.time_history.append(self.t)
                next_save_time += save_interval

            if self.n_steps % 100 == 0:
                logger.info("Step %d: t = %.6f, tau = %.6e", self.n_steps, self.t, result.tau)

        if self.time_history[-1] < self.t:
            self.history.append(self.U.copy())
            self.time_history.append(self.t)

        logger.info("Simulation complete: %d steps, %d restarts, %d warnings",
                    self.n_steps, self.context.n_restarts, self.context.n_warnings)
        return self.get_solution()

    def get_solution(self):
        """Current primitive state: (rho, u, p) or (h, u)."""
        primitive = self.eos.to_primitive(self.U)
        return tuple(q[0] if q.ndim == 2 else q for q in primitive)

    def compute_errors(self):
        """
        L1, L2 and Linf errors against the exact solution at the current time.

        Returns
        -------
        errors : dict
        """
        exact_solution = self.problem.exact_solution()
        exact = exact_solution.sample(self.x, self.t, x_0=self.problem.x_0)

        errors = {}
        for name, num, ref in zip(exact_solution.variables, self.get_solution(), exact):
            diff = np.abs(num - ref)
            errors[f'{name}_L1'] = np.mean(diff)
            errors[f'{name}_L2'] = np.sqrt(np.mean(diff**2))
            errors[f'{name}_Linf'] = np.max(diff)

        return errors
