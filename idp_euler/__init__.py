"""
Invariant-domain preserving explicit time stepping on graphs

A forward Euler step for hyperbolic systems (compressible Euler, shallow
water) that never leaves the admissible set: positive density, a
minimum principle on the specific entropy, bounded kinetic energy.

Main Components
---------------
StepOrchestrator : One explicit step
    Graph viscosity from wave-speed bounds, CFL step size, low-order
    update, local bounds and convex limiting of the high-order correction.

WaveSpeedEstimator : Guaranteed upper bound on the maximal wave speed
    Closed-form, non-iterative estimate for a 1D Riemann problem.

AdmissibleBoundsEvaluator, ConvexLimiter : Convex limiting
    Local bounds from the low-order state and the largest admissible
    limiter coefficient of every edge.

Equations of state : IdealGasEuler, GeneralEulerEOS, ShallowWater

Graphs : ComputationalGraph, build_line_graph, build_grid_graph

Example Usage
-------------
>>> import numpy as np
>>> from idp_euler import (IdealGasEuler, StepContext, StepOrchestrator,
...                        build_line_graph)
>>>
>>> # Sod shock tube on 201 nodes
>>> graph = build_line_graph(201)
>>> eos = IdealGasEuler(gamma=1.4)
>>> x = graph.coordinates[0]
>>> U = eos.from_primitive(np.where(x < 0.5, 1.0, 0.125), 0.0,
...                        np.where(x < 0.5, 1.0, 0.1))
>>>
>>> # Advance one step with tau = tau_max
>>> stepper = StepOrchestrator(graph, eos)
>>> context = StepContext(cfl=0.5)
>>> result = stepper.step(U, context)
>>> U, tau = result.U, result.tau
"""

from .equation_of_state import (
    EquationOfState,
    IdealGasEuler,
    GeneralEulerEOS,
    ShallowWater,
    RiemannData
)
from .riemann_solver import WaveSpeedEstimator, positive_part, negative_part
from .bounds import AdmissibleBoundsEvaluator, BoundsRecord
from .limiter import ConvexLimiter
from .indicator import SmoothnessIndicator
from .graph import ComputationalGraph, build_line_graph, build_grid_graph
from .boundary_conditions import (
    BoundaryConditionManager,
    Dirichlet,
    SlipWall,
    Extrapolation
)
from .step import (
    StepOrchestrator,
    StepParameters,
    StepContext,
    StepResult,
    StepState,
    IDViolationStrategy,
    Restart
)

__all__ = [
    # Equations of state
    'EquationOfState',
    'IdealGasEuler',
    'GeneralEulerEOS',
    'ShallowWater',
    'RiemannData',

    # Wave speeds
    'WaveSpeedEstimator',
    'positive_part',
    'negative_part',

    # Limiting
    'AdmissibleBoundsEvaluator',
    'BoundsRecord',
    'ConvexLimiter',
    'SmoothnessIndicator',

    # Graphs
    'ComputationalGraph',
    'build_line_graph',
    'build_grid_graph',

    # Boundary conditions
    'BoundaryConditionManager',
    'Dirichlet',
    'SlipWall',
    'Extrapolation',

    # Time step
    'StepOrchestrator',
    'StepParameters',
    'StepContext',
    'StepResult',
    'StepState',
    'IDViolationStrategy',
    'Restart'
]

__version__ = '0.1.0'
