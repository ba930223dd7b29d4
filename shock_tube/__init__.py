"""
Shock Tube - 1D Riemann problems on a line graph

Drives the invariant-domain preserving step of ``idp_euler`` through
classic shock tube problems and compares with exact solutions.
"""

from .exact_solution import ExactRiemannSolver, ShallowWaterExactSolution
from .problems import RiemannProblem, PROBLEMS, get_problem
from .time_loop import TimeLoop
from .visualization import Visualizer

__version__ = "0.1.0"
__all__ = ["ExactRiemannSolver", "ShallowWaterExactSolution", "RiemannProblem",
           "PROBLEMS", "get_problem", "TimeLoop", "Visualizer"]
