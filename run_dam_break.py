#!/usr/bin/env python3
"""
Circular Dam Break - 2D Shallow Water on a Grid Graph

A column of water of height h_in inside a circle of radius r_0 collapses
into still water of height h_out. The square basin is closed by slip
walls. The run checks that the water height stays positive and that the
total volume is conserved.
"""

import argparse
import logging
import os
import sys

import numpy as np
import matplotlib.pyplot as plt

from idp_euler import (
    BoundaryConditionManager,
    ShallowWater,
    StepContext,
    StepOrchestrator,
    StepParameters,
    build_grid_graph
)

logger = logging.getLogger(__name__)


def wall_conditions(eos, nx, ny):
    """Slip walls on the four sides of an nx-by-ny grid."""
    index = np.arange(nx * ny).reshape(ny, nx)
    bcs = BoundaryConditionManager(eos)
    bcs.set_wall('left', index[:, 0], [-1.0, 0.0])
    bcs.set_wall('right', index[:, -1], [1.0, 0.0])
    bcs.set_wall('bottom', index[0, :], [0.0, -1.0])
    bcs.set_wall('top', index[-1, :], [0.0, 1.0])
    return bcs


def run_dam_break(nx=81, ny=81, t_end=0.1, cfl=0.9, h_in=2.0, h_out=0.5, r_0=0.25,
                  gravity=9.81, strategy='warn', n_workers=1, save_interval=None):
    """
    Run the circular dam break on [-1, 1]^2.

    Parameters
    ----------
    nx, ny : int
        Number of grid nodes per direction
    t_end : float
        Final time
    cfl : float
        CFL number
    h_in, h_out : float
        Water height inside / outside the dam
    r_0 : float
        Dam radius
    gravity : float
    strategy : str
        Violation strategy, 'warn' or 'raise'
    n_workers : int
        Threads for the per-edge work
    save_interval : float, optional
        Time between snapshots

    Returns
    -------
    dict with keys 'graph', 'eos', 'U', 't', 'n_steps', 'context', 'history'
    """
    eos = ShallowWater(gravity=gravity, dim=2)
    graph = build_grid_graph(nx, ny, x_range=(-1.0, 1.0), y_range=(-1.0, 1.0))

    x, y = graph.coordinates
    h = np.where(x**2 + y**2 < r_0**2, h_in, h_out)
    U = eos.from_primitive(h, np.zeros((2, graph.n_nodes)))

    parameters = StepParameters(id_violation_strategy=strategy, n_workers=n_workers)
    stepper = StepOrchestrator(graph, eos, parameters,
                               boundary_conditions=wall_conditions(eos, nx, ny))
    context = StepContext(cfl=cfl)

    if save_interval is None:
        save_interval = t_end / 10

    t = 0.0
    n_steps = 0
    next_save_time = save_interval
    history = [(t, U.copy())]

    logger.info("Dam break: %dx%d nodes, t_end = %g, cfl = %g", nx, ny, t_end, cfl)

    while t < t_end:
        tau_max = stepper.compute_tau_max(stepper.build_viscosity(U), context.cfl)
        tau = t_end - t if t + tau_max > t_end else 0.0
        result = stepper.step(U, context, tau=tau, t=t)

        U = result.U
        t += result.tau
        n_steps += 1

        if t >= next_save_time:
            history.append((t, U.copy()))
            next_save_time += save_interval

        if n_steps % 50 == 0:
            logger.info("Step %d: t = %.5f, tau = %.3e, limited edges = %d",
                        n_steps, t, result.tau, result.n_limited)

    return {'graph': graph, 'eos': eos, 'U': U, 't': t, 'n_steps': n_steps,
            'context': context, 'history': history}


def plot_height(run, save_path=None, title=None):
    """Filled contours of the water height."""
    graph = run['graph']
    x, y = graph.coordinates
    ny = len(np.unique(y))
    nx = len(np.unique(x))
    h = run['eos'].water_depth(run['U'])

    fig, ax = plt.subplots(figsize=(6, 5))
    cf = ax.contourf(x.reshape(ny, nx), y.reshape(ny, nx), h.reshape(ny, nx),
                     levels=30, cmap='viridis')
    fig.colorbar(cf, ax=ax, label='h')
    ax.set_aspect('equal')
    ax.set_xlabel('x')
    ax.set_ylabel('y')
    ax.set_title(title or f"Water height at t = {run['t']:.4f}")

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved: {save_path}")
    plt.close(fig)


def run_validation_tests():
    """Lake at rest and volume conservation checks."""
    print("\n" + "=" * 60)
    print("Running Validation Tests")
    print("=" * 60)

    print("\n1. Lake at Rest")
    print("-" * 40)
    run = run_dam_break(nx=21, ny=21, t_end=0.05, h_in=1.0, h_out=1.0)
    h = run['eos'].water_depth(run['U'])
    variation = np.max(np.abs(h - 1.0))
    print(f"  Steps: {run['n_steps']}")
    print(f"  Max height variation: {variation:.3e}")
    print(f"  PASS: {variation < 1e-12}")

    print("\n2. Volume Conservation")
    print("-" * 40)
    run = run_dam_break(nx=41, ny=41, t_end=0.05)
    mass = run['graph'].mass
    U_0 = run['history'][0][1]
    volume_0 = np.sum(mass * U_0[0])
    volume = np.sum(mass * run['U'][0])
    error = abs(volume - volume_0) / volume_0
    print(f"  Initial volume: {volume_0:.12f}")
    print(f"  Final volume:   {volume:.12f}")
    print(f"  Relative error: {error:.3e}")
    print(f"  Min height: {np.min(run['U'][0]):.6f}")
    print(f"  PASS: {error < 1e-12 and np.min(run['U'][0]) > 0}")

    print("\n" + "=" * 60)
    print("Validation Complete")
    print("=" * 60)


def main(argv=None):
    """Main entry point with command line argument parsing."""
    parser = argparse.ArgumentParser(
        description='Circular dam break - 2D shallow water',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('--nx', type=int, default=81,
                        help='Number of nodes in x-direction')
    parser.add_argument('--ny', type=int, default=81,
                        help='Number of nodes in y-direction')
    parser.add_argument('--t-end', type=float, default=0.1,
                        help='Final time')
    parser.add_argument('--cfl', type=float, default=0.9,
                        help='CFL number')
    parser.add_argument('--h-in', type=float, default=2.0,
                        help='Water height inside the dam')
    parser.add_argument('--h-out', type=float, default=0.5,
                        help='Water height outside the dam')
    parser.add_argument('--strategy', choices=['warn', 'raise'], default='warn',
                        help='Behavior on invariant domain violations')
    parser.add_argument('--workers', type=int, default=1,
                        help='Threads for the per-edge work')
    parser.add_argument('--output', type=str, default='results',
                        help='Output directory')
    parser.add_argument('--no-save', action='store_true',
                        help='Do not save plots')
    parser.add_argument('--validate', action='store_true',
                        help='Run validation tests instead of main simulation')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Print detailed progress')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    if args.validate:
        run_validation_tests()
        return 0

    print("=" * 60)
    print("Circular Dam Break - 2D Shallow Water")
    print("=" * 60)

    run = run_dam_break(nx=args.nx, ny=args.ny, t_end=args.t_end, cfl=args.cfl,
                        h_in=args.h_in, h_out=args.h_out, strategy=args.strategy,
                        n_workers=args.workers)

    h = run['eos'].water_depth(run['U'])
    context = run['context']
    print(f"  Steps: {run['n_steps']}, warnings: {context.n_warnings}")
    print(f"  Water height: min={np.min(h):.4f}, max={np.max(h):.4f}")

    if not args.no_save:
        os.makedirs(args.output, exist_ok=True)
        for t, U in run['history']:
            snapshot = dict(run, t=t, U=U)
            plot_height(snapshot, save_path=os.path.join(args.output, f"height_{t:.4f}.png"))

    print("=" * 60)
    return 0


if __name__ == '__main__':
    sys.exit(main())
