#!/usr/bin/env python3
"""
Shock Tube Driver - Main Program

Solves a 1D Riemann problem with the invariant-domain preserving step,
compares the numerical solution with the exact solution and generates
visualizations.

Usage:
    python -m shock_tube.main [options]

Options:
    --problem         sod, leblanc, near_vacuum or dam_break (default: sod)
    --nodes           Number of graph nodes (default: 400)
    --cfl             CFL number (default: 0.9)
    --t-end           Final time (default: the problem's)
    --strategy        Violation strategy: warn or raise (default: raise)
    --limiter-passes  Number of limiting passes (default: 2)
    --low-order       Drop the high-order correction
    --workers         Threads for the per-edge work (default: 1)
    --output-dir      Output directory (default: 'output/results')
    --no-plots        Skip plots and animation
    --verbose         Print detailed progress
"""

import argparse
import logging
import sys
import time

from idp_euler import StepParameters
from .problems import PROBLEMS, get_problem
from .time_loop import TimeLoop
from .visualization import Visualizer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Invariant-domain preserving shock tube solver',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('--problem', type=str, default='sod', choices=sorted(PROBLEMS),
                        help='Riemann problem')
    parser.add_argument('--nodes', type=int, default=400,
                        help='Number of graph nodes')
    parser.add_argument('--cfl', type=float, default=0.9,
                        help='CFL number')
    parser.add_argument('--t-end', type=float, default=None,
                        help='Final simulation time (default: problem specific)')
    parser.add_argument('--gamma', type=float, default=None,
                        help='Ratio of specific heats (Euler problems)')
    parser.add_argument('--strategy', type=str, default='raise', choices=['warn', 'raise'],
                        help='Behavior on invariant domain violations')
    parser.add_argument('--limiter-passes', type=int, default=2,
                        help='Number of limiting passes')
    parser.add_argument('--low-order', action='store_true',
                        help='Drop the high-order correction')
    parser.add_argument('--workers', type=int, default=1,
                        help='Threads for the per-edge work')
    parser.add_argument('--output-dir', type=str, default='output/results',
                        help='Output directory')
    parser.add_argument('--no-plots', action='store_true',
                        help='Skip plots and animation')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Print detailed progress')

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    kwargs = {'gamma': args.gamma} if args.gamma is not None and args.problem != 'dam_break' else {}
    problem = get_problem(args.problem, **kwargs)
    t_end = args.t_end if args.t_end is not None else problem.t_end

    print("=" * 60)
    print("Invariant-Domain Preserving Shock Tube")
    print("=" * 60)
    print(f"\nConfiguration:")
    print(f"  Problem:        {problem.name}")
    print(f"  Model:          {problem.eos.name}")
    print(f"  Nodes:          {args.nodes}")
    print(f"  CFL number:     {args.cfl}")
    print(f"  Final time:     {t_end}")
    print(f"  Strategy:       {args.strategy}")
    print(f"  Limiter passes: {args.limiter_passes}")
    print(f"  High order:     {not args.low_order}")
    print(f"  Workers:        {args.workers}")

    parameters = StepParameters(limiter_passes=args.limiter_passes,
                                id_violation_strategy=args.strategy,
                                high_order=not args.low_order,
                                n_workers=args.workers)
    loop = TimeLoop(problem, n_nodes=args.nodes, cfl=args.cfl, parameters=parameters)

    exact = problem.exact_solution()
    if args.verbose and hasattr(exact, 'print_solution_info'):
        exact.print_solution_info()

    print("\n" + "-" * 60)
    print("Running simulation...")
    start_time = time.time()
    solution = loop.solve(t_end=t_end, save_interval=t_end / 100)
    elapsed = time.time() - start_time
    print(f"Simulation completed in {elapsed:.2f} seconds "
          f"({loop.n_steps} steps, {loop.context.n_restarts} restarts, "
          f"{loop.context.n_warnings} warnings)")

    errors = loop.compute_errors()
    viz = Visualizer(output_dir=args.output_dir)
    viz.print_error_summary(errors, exact.variables)

    x = loop.x
    lij = loop.lij_history[-1] if loop.lij_history else None
    viz.save_data(x, solution, exact.variables, loop.t, lij=lij)

    if not args.no_plots:
        print("\n" + "-" * 60)
        print("Generating visualizations...")
        reference = exact.sample(x, loop.t, x_0=problem.x_0)
        viz.plot_comparison(x, solution, reference, variables=exact.variables, t=loop.t,
                            title=f'{problem.name}: nodes={args.nodes}, t={loop.t:.4f}',
                            filename=f'{problem.name}_final_solution.png')
        if lij is not None:
            viz.plot_limiter_coefficients(x, lij, t=loop.t,
                                          filename=f'{problem.name}_limiter.png')
        viz.create_animation(x, loop.history, loop.time_history, problem.eos,
                             exact_solver=exact, filename=f'{problem.name}_animation.gif',
                             fps=15, x_0=problem.x_0)

    print("\n" + "-" * 60)
    print(f"Wave positions at t = {loop.t:.4f}:")
    for name, pos in exact.get_wave_positions(loop.t, x_0=problem.x_0).items():
        print(f"  {name}: x = {pos:.4f}")

    print("\n" + "=" * 60)
    print("All outputs saved to:", args.output_dir)
    print("=" * 60)

    return 0


if __name__ == '__main__':
    sys.exit(main())
