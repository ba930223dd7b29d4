"""
One explicit, invariant-domain preserving forward Euler step on a graph.

The step runs through a fixed sequence of states:

    IDLE -> VISCOSITY_BUILT -> LOW_ORDER_COMPUTED -> BOUNDS_COMPUTED
         -> LIMITED -> ASSEMBLED

1. Graph viscosity d_ij from pairwise wave-speed bounds and the step size
   bound tau_max = cfl * min_i m_i / (2 sum_j d_ij).
2. Low-order update
       U^L_i = U_i + tau/m_i sum_j [ -(f(U_j) - f(U_i)) . c_ij + d_ij (U_j - U_i) ]
   which stays admissible for tau <= tau_max.
3. Local bounds from the neighborhood of U^L.
4. Convex limiting of the antidiffusive fluxes p_ij = -p_ji.
5. U_i = U^L_i + sum_j l_ij p_ij / m_i, then boundary conditions.

An oversized tau or an inadmissible low-order / final state is an
invariant-domain violation, handled according to IDViolationStrategy.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .bounds import AdmissibleBoundsEvaluator
from .indicator import SmoothnessIndicator
from .limiter import ConvexLimiter
from .riemann_solver import WaveSpeedEstimator

logger = logging.getLogger(__name__)


class IDViolationStrategy(Enum):
    """Behavior on an invariant-domain or step-size violation."""

    WARN = 'warn'
    RAISE_EXCEPTION = 'raise'

    @classmethod
    def from_value(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown violation strategy: {value}") from None


class StepState(Enum):
    IDLE = 'idle'
    VISCOSITY_BUILT = 'viscosity_built'
    LOW_ORDER_COMPUTED = 'low_order_computed'
    BOUNDS_COMPUTED = 'bounds_computed'
    LIMITED = 'limited'
    ASSEMBLED = 'assembled'
    RESTART = 'restart'


_TRANSITIONS = {
    StepState.VISCOSITY_BUILT: {StepState.IDLE},
    StepState.LOW_ORDER_COMPUTED: {StepState.VISCOSITY_BUILT},
    StepState.BOUNDS_COMPUTED: {StepState.LOW_ORDER_COMPUTED},
    StepState.LIMITED: {StepState.BOUNDS_COMPUTED},
    StepState.ASSEMBLED: {StepState.LIMITED},
    StepState.RESTART: {StepState.LOW_ORDER_COMPUTED, StepState.ASSEMBLED},
}


class Restart(Exception):
    """
    Raised when a step is rejected under IDViolationStrategy.RAISE_EXCEPTION.

    The caller is expected to reduce the step size (or the CFL number) and
    repeat the step from the old state.
    """

    def __init__(self, reason, tau=None, tau_max=None):
        super().__init__(reason)
        self.reason = reason
        self.tau = tau
        self.tau_max = tau_max


@dataclass
class StepParameters:
    """
    Run time options of the time step.

    Attributes
    ----------
    limiter_passes : int
        Number of limiting passes over the remaining antidiffusive flux
    newton_max_iter : int
        Iterations of the limiter's concave bound solve
    newton_tolerance : float
        Stopping tolerance of the limiter and wave-speed iterations
    riemann_newton_max_iter : int
        Iterations tightening the wave-speed estimate (0: closed form)
    id_violation_strategy : IDViolationStrategy or str
        'warn' or 'raise'
    tau_tolerance : float
        Admissible overshoot of a prescribed tau over tau_max
    tau_tolerance_mode : str
        'relative' (tau > (1 + tol) tau_max) or 'absolute' (tau > tau_max + tol)
    relaxation : float
        Relative relaxation of the local bounds
    high_order : bool
        If False, every correction is dropped and the step is low order
    smoothness_power : int
        Exponent of the smoothness indicator
    n_workers : int
        Number of threads for the per-edge work
    """

    limiter_passes: int = 2
    newton_max_iter: int = 2
    newton_tolerance: float = 1e-10
    riemann_newton_max_iter: int = 0
    id_violation_strategy: IDViolationStrategy = IDViolationStrategy.WARN
    tau_tolerance: float = 0.1
    tau_tolerance_mode: str = 'relative'
    relaxation: float = 0.0
    high_order: bool = True
    smoothness_power: int = 3
    n_workers: int = 1

    def __post_init__(self):
        self.id_violation_strategy = IDViolationStrategy.from_value(self.id_violation_strategy)
        if self.limiter_passes < 1:
            raise ValueError(f"limiter_passes must be >= 1, got {self.limiter_passes}")
        if self.tau_tolerance < 0.0:
            raise ValueError(f"tau_tolerance must be >= 0, got {self.tau_tolerance}")
        if self.tau_tolerance_mode not in ('relative', 'absolute'):
            raise ValueError(f"Unknown tau tolerance mode: {self.tau_tolerance_mode}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")


@dataclass
class StepContext:
    """
    Mutable scalars shared by consecutive steps: the CFL number and the
    violation counters.
    """

    cfl: float = 0.9
    n_restarts: int = 0
    n_warnings: int = 0
    n_steps: int = 0

    def __post_init__(self):
        if self.cfl <= 0.0:
            raise ValueError(f"CFL number must be positive, got {self.cfl}")
        if self.cfl >= 1.0:
            logger.warning("CFL number %.3g >= 1: invariant-domain preservation "
                           "is not guaranteed", self.cfl)


@dataclass
class StepResult:
    """
    Outcome of one step.

    Attributes
    ----------
    U : ndarray
        New state (n_components, n)
    tau : float
        Step size used
    tau_max : float
        Maximal admissible step size of the old state
    lij : ndarray
        Total limiter coefficient of every edge
    dij : ndarray or None
        High-order graph viscosity, if recorded
    violation : str or None
        Description of the invariant-domain violations tolerated under 'warn'
    state : StepState
    n_limited : int
        Number of edges with l_ij < 1
    """

    U: np.ndarray
    tau: float
    tau_max: float
    lij: np.ndarray
    dij: np.ndarray = None
    violation: str = None
    state: StepState = StepState.ASSEMBLED
    n_limited: int = 0


def _scatter(values, index, n_nodes):
    """Sum the edge values (n_components, E) into the nodes ``index``."""
    return np.stack([np.bincount(index, weights=row, minlength=n_nodes) for row in values])


class StepOrchestrator:
    """
    Explicit forward Euler step with convex limiting.

    Parameters
    ----------
    graph : ComputationalGraph
        Connectivity, lumped masses and c_ij coefficients
    eos : EquationOfState
        Equation-of-state policy
    parameters : StepParameters, optional
    boundary_conditions : callable, optional
        ``boundary_conditions(U, t)``, modifies U in place

    Examples
    --------
    >>> graph = build_line_graph(101)
    >>> eos = IdealGasEuler(gamma=1.4)
    >>> stepper = StepOrchestrator(graph, eos)
    >>> context = StepContext(cfl=0.5)
    >>> result = stepper.step(U, context)
    """

    def __init__(self, graph, eos, parameters=None, boundary_conditions=None):
        if graph.dim != eos.dim:
            raise ValueError(f"Graph dimension {graph.dim} does not match "
                             f"equation of state dimension {eos.dim}")

        self.graph = graph
        self.eos = eos
        self.parameters = parameters if parameters is not None else StepParameters()
        self.boundary_conditions = boundary_conditions

        p = self.parameters
        self.estimator = WaveSpeedEstimator(eos,
                                            newton_max_iter=p.riemann_newton_max_iter,
                                            newton_tolerance=p.newton_tolerance,
                                            check_admissibility=False)
        self.bounds_evaluator = AdmissibleBoundsEvaluator(eos, relaxation=p.relaxation)
        self.limiter = ConvexLimiter(eos,
                                     newton_max_iter=p.newton_max_iter,
                                     newton_tolerance=p.newton_tolerance)
        self.indicator = SmoothnessIndicator(eos, power=p.smoothness_power)

        if p.n_workers > 1:
            partitioned = graph if graph.n_partitions > 1 else graph.partition(p.n_workers)
            self._partitions = partitioned.edge_partitions()
        else:
            self._partitions = [np.arange(graph.n_edges)]
        self._edge_order = np.concatenate(self._partitions)

        self.state = StepState.IDLE

    def _transition(self, new_state):
        if self.state not in _TRANSITIONS[new_state]:
            raise RuntimeError(f"Invalid step transition {self.state.name} -> {new_state.name}")
        logger.debug("%s -> %s", self.state.name, new_state.name)
        self.state = new_state

    def _map_edges(self, func):
        """
        Evaluate ``func(index)`` on every edge partition and gather the
        results (last axis = edges) in edge order.
        """
        if len(self._partitions) == 1:
            return func(self._partitions[0])

        with ThreadPoolExecutor(max_workers=self.parameters.n_workers) as executor:
            results = list(executor.map(func, self._partitions))

        gathered = np.concatenate(results, axis=-1)
        out = np.empty_like(gathered)
        out[..., self._edge_order] = gathered
        return out

    def build_viscosity(self, U):
        """Graph viscosity d_ij of every edge."""
        return self._map_edges(lambda index: self.estimator.edge_viscosity(U, self.graph, index))

    def compute_tau_max(self, dij, cfl):
        """tau_max = cfl * min_i m_i / (2 sum_j d_ij)."""
        graph = self.graph
        d_sum = np.bincount(graph.edges.ravel(), weights=np.repeat(dij, 2),
                            minlength=graph.n_nodes)
        active = d_sum > 0.0
        if not np.any(active):
            return np.inf
        return cfl * np.min(graph.mass[active] / (2.0 * d_sum[active]))

    def low_order_update(self, U, dij, tau):
        graph = self.graph
        i, j = graph.edges[:, 0], graph.edges[:, 1]

        F = self.eos.flux(U)
        dF = F[..., j] - F[..., i]
        dU = U[:, j] - U[:, i]

        contribution_i = -np.einsum('cde,de->ce', dF, graph.c_ij) + dij * dU
        contribution_j = np.einsum('cde,de->ce', dF, graph.c_ji) - dij * dU

        update = _scatter(contribution_i, i, graph.n_nodes) \
            + _scatter(contribution_j, j, graph.n_nodes)
        return U + tau / graph.mass * update

    def antidiffusive_flux(self, U, dij, dij_H, tau, stage_U=(), stage_dij=(), stage_weights=()):
        """
        Antidiffusive flux p_ij (n_components, E) of every edge; the flux of
        the reversed pair is -p_ij.
        """
        graph = self.graph
        i, j = graph.edges[:, 0], graph.edges[:, 1]

        dU = U[:, j] - U[:, i]
        P = (dij_H - dij) * dU

        if len(stage_U):
            F = self.eos.flux(U)
            c_tilde = 0.5 * (graph.c_ij - graph.c_ji)
            for U_s, dij_s, weight in zip(stage_U, stage_dij, stage_weights):
                F_s = self.eos.flux(U_s)
                dF = F_s[..., i] + F_s[..., j] - F[..., i] - F[..., j]
                P = P + weight * (-np.einsum('cde,de->ce', dF, c_tilde)
                                  + dij_s * (U_s[:, j] - U_s[:, i])
                                  - dij_H * dU)
        return tau * P

    def limit(self, U_low, bounds, pij):
        """
        Limit the antidiffusive fluxes and assemble the new state.

        Each pass limits the flux left over by the previous one, so the
        total coefficient accumulates as l <- l + l_pass (1 - l).

        Returns
        -------
        U : ndarray
            Limited state
        lij : ndarray
            Total limiter coefficient of every edge
        """
        graph = self.graph
        i, j = graph.edges[:, 0], graph.edges[:, 1]
        degree = graph.degree
        mass = graph.mass

        U = U_low.copy()
        remaining = pij
        lij_total = np.zeros(graph.n_edges)

        for _ in range(self.parameters.limiter_passes):
            def solve(index, U=U, remaining=remaining):
                ii, jj = i[index], j[index]
                P_ij = degree[ii] * remaining[:, index] / mass[ii]
                P_ji = -degree[jj] * remaining[:, index] / mass[jj]
                t_ij, _ = self.limiter.limit(bounds.take(ii), U[:, ii], P_ij)
                t_ji, _ = self.limiter.limit(bounds.take(jj), U[:, jj], P_ji)
                return np.minimum(t_ij, t_ji)

            lij = self._map_edges(solve)
            limited = lij * remaining
            U = U + (_scatter(limited, i, graph.n_nodes)
                     - _scatter(limited, j, graph.n_nodes)) / mass

            lij_total = lij_total + lij * (1.0 - lij_total)
            remaining = (1.0 - lij) * remaining
            if np.all(lij >= 1.0):
                break

        return U, lij_total

    def apply_boundary_conditions(self, U, t):
        if self.boundary_conditions is not None:
            self.boundary_conditions(U, t)
        return U

    def _handle_violation(self, context, reason, tau, tau_max, first):
        if self.parameters.id_violation_strategy is IDViolationStrategy.RAISE_EXCEPTION:
            context.n_restarts += 1
            self._transition(StepState.RESTART)
            logger.info("Restart requested: %s", reason)
            raise Restart(reason, tau=tau, tau_max=tau_max)

        if first:
            context.n_warnings += 1
        logger.warning("Invariant domain violation: %s (tau = %.4e, tau_max = %.4e)",
                       reason, tau, tau_max)

    def _check_stages(self, U, stage_U, stage_dij, stage_weights):
        if not len(stage_U) == len(stage_dij) == len(stage_weights):
            raise ValueError("stage_U, stage_dij and stage_weights must have equal length")
        weights = np.asarray(stage_weights, dtype=float)
        if np.any(weights < 0.0) or weights.sum() > 1.0 + 1e-12:
            raise ValueError(f"Stage weights must be non-negative and sum to at most 1, "
                             f"got {list(stage_weights)}")

        stages = [self.eos.check_state(U_s) for U_s in stage_U]
        for U_s in stages:
            if U_s.shape != U.shape:
                raise ValueError(f"Stage state shape {U_s.shape} does not match {U.shape}")
        for dij_s in stage_dij:
            if np.shape(dij_s) != (self.graph.n_edges,):
                raise ValueError("Stage viscosity must have one entry per edge")
        return stages

    def step(self, U, context, tau=0.0, stage_U=(), stage_dij=(), stage_weights=(),
             record_dij=False, t=None):
        """
        Perform one explicit step.

        Parameters
        ----------
        U : ndarray
            Old state (n_components, n), must be admissible
        context : StepContext
            CFL number and violation counters (updated in place)
        tau : float
            Step size; 0 selects tau_max
        stage_U, stage_dij, stage_weights : sequence
            States, recorded high-order viscosities and weights of earlier
            stages blended into the high-order flux
        record_dij : bool
            Return the high-order viscosity of this step in the result
        t : float, optional
            Time of the old state; boundary conditions are applied at t + tau

        Returns
        -------
        StepResult

        Raises
        ------
        Restart
            On a violation under IDViolationStrategy.RAISE_EXCEPTION
        ValueError
            If the old state is inadmissible, the inputs are malformed or
            tau is negative
        """
        p = self.parameters
        graph = self.graph

        U = self.eos.check_state(U)
        if U.shape != (self.eos.n_components, graph.n_nodes):
            raise ValueError(f"State shape {U.shape} does not match graph with "
                             f"{graph.n_nodes} nodes")
        stage_U = self._check_stages(U, stage_U, stage_dij, stage_weights)
        if not np.all(self.eos.is_admissible(U)):
            raise ValueError("Inadmissible state passed to the time step")

        self.state = StepState.IDLE
        violations = []

        def violation(reason):
            self._handle_violation(context, reason, tau, tau_max, first=not violations)
            violations.append(reason)

        dij = self.build_viscosity(U)
        tau_max = self.compute_tau_max(dij, context.cfl)
        self._transition(StepState.VISCOSITY_BUILT)

        if tau == 0.0:
            tau = tau_max
        if not np.isfinite(tau):
            raise ValueError("Cannot determine a finite step size: all wave speeds vanish")
        if tau < 0.0:
            raise ValueError(f"Step size must be non-negative, got {tau}")
        logger.debug("tau_max = %.6e, tau = %.6e", tau_max, tau)

        U_low = self.low_order_update(U, dij, tau)
        self._transition(StepState.LOW_ORDER_COMPUTED)

        if p.tau_tolerance_mode == 'relative':
            oversized = tau > (1.0 + p.tau_tolerance) * tau_max
        else:
            oversized = tau > tau_max + p.tau_tolerance
        if oversized:
            violation(f"step size {tau:.4e} exceeds tau_max {tau_max:.4e}")
        if not np.all(self.eos.is_admissible(U_low)):
            violation("low-order update left the admissible set")

        bounds = self.bounds_evaluator.compute(U_low, graph)
        self._transition(StepState.BOUNDS_COMPUTED)

        if p.high_order:
            alpha = self.indicator.compute(U, graph)
            dij_H = self.indicator.high_order_viscosity(dij, alpha, graph)
            pij = self.antidiffusive_flux(U, dij, dij_H, tau, stage_U, stage_dij, stage_weights)
            U_new, lij = self.limit(U_low, bounds, pij)
        else:
            dij_H = dij
            U_new = U_low.copy()
            lij = np.zeros(graph.n_edges)
        self._transition(StepState.LIMITED)

        U_new = self.apply_boundary_conditions(U_new, (t if t is not None else 0.0) + tau)
        self._transition(StepState.ASSEMBLED)

        if not np.all(self.eos.is_admissible(U_new)):
            violation("assembled state left the admissible set")

        context.n_steps += 1
        return StepResult(U=U_new,
                          tau=tau,
                          tau_max=tau_max,
                          lij=lij,
                          dij=dij_H.copy() if record_dij else None,
                          violation='; '.join(violations) if violations else None,
                          state=self.state,
                          n_limited=int(np.sum(lij < 1.0)) if p.high_order else 0)
