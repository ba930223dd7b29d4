"""
Visualization of 1D Riemann problem results.

Provides:
- Static comparison plots (numerical vs exact)
- Limiter coefficient profiles
- Animated GIF of the solution evolution
"""

import logging
import os

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation

logger = logging.getLogger(__name__)

LABELS = {
    'rho': 'Density (ρ)',
    'u': 'Velocity (u)',
    'p': 'Pressure (p)',
    'h': 'Water height (h)',
}


def primitive_profiles(eos, U):
    """Primitive 1D profiles of U: (rho, u, p) or (h, u)."""
    return tuple(q[0] if q.ndim == 2 else q for q in eos.to_primitive(U))


class Visualizer:
    """
    Visualization tools for 1D solutions.

    Parameters
    ----------
    output_dir : str
        Directory for saving output files
    """

    def __init__(self, output_dir='output/results'):
        self.output_dir = output_dir
        os.makedirs(output_dir, exist_ok=True)

        plt.style.use('seaborn-v0_8-whitegrid')
        self.colors = {
            'numerical': '#2196F3',
            'exact': '#F44336',
            'limiter': '#9C27B0',
        }

    def _save(self, fig, filename):
        filepath = os.path.join(self.output_dir, filename)
        fig.savefig(filepath, dpi=150, bbox_inches='tight')
        plt.close(fig)
        logger.info("Saved: %s", filepath)
        return filepath

    def plot_comparison(self, x, solution, exact=None, variables=('rho', 'u', 'p'),
                        t=None, title=None, filename='final_solution.png'):
        """
        Plot a numerical solution with an optional exact solution.

        Parameters
        ----------
        x : ndarray
            Node positions
        solution : tuple of ndarrays
            Numerical primitive profiles, in the order of ``variables``
        exact : tuple of ndarrays, optional
            Exact profiles
        variables : tuple of str
            Variable names
        t : float, optional
            Time for the title
        title : str, optional
            Custom title
        filename : str
            Output filename
        """
        fig, axes = plt.subplots(1, len(variables), figsize=(14, 4))
        if exact is None:
            exact = (None,) * len(variables)

        for ax, name, num, ref in zip(axes, variables, solution, exact):
            ax.plot(x, num, 'o-', color=self.colors['numerical'],
                    markersize=1.5, linewidth=0.8, label='Numerical')
            if ref is not None:
                ax.plot(x, ref, '-', color=self.colors['exact'], linewidth=2, label='Exact')

            ax.set_xlabel('x')
            ax.set_ylabel(LABELS.get(name, name))
            ax.legend(loc='best')
            ax.set_xlim(x[0], x[-1])

        if title:
            fig.suptitle(title, fontsize=14)
        elif t is not None:
            fig.suptitle(f'Solution at t = {t:.4f}', fontsize=14)

        fig.tight_layout()
        return self._save(fig, filename)

    def plot_limiter_coefficients(self, x, lij, t=None, filename='limiter_coefficients.png'):
        """
        Plot the limiter coefficient of every edge of a line graph at the
        edge midpoints.
        """
        x_mid = 0.5 * (x[:-1] + x[1:])

        fig, ax = plt.subplots(figsize=(8, 3))
        ax.plot(x_mid, lij[:len(x_mid)], '-', color=self.colors['limiter'], linewidth=1)
        ax.set_xlabel('x')
        ax.set_ylabel('$l_{ij}$')
        ax.set_ylim(-0.05, 1.05)
        ax.set_xlim(x[0], x[-1])
        if t is not None:
            ax.set_title(f'Limiter coefficients at t = {t:.4f}')

        fig.tight_layout()
        return self._save(fig, filename)

    def create_animation(self, x, history, time_history, eos, exact_solver=None,
                         filename='animation.gif', fps=10, x_0=0.5):
        """
        Create an animated GIF of the solution evolution.

        Parameters
        ----------
        x : ndarray
            Node positions
        history : list of ndarrays
            Conserved states [U_0, U_1, ...]
        time_history : list of floats
            Time stamps
        eos : EquationOfState
        exact_solver : optional
            Exact solution for comparison
        filename : str
        fps : int
        x_0 : float
            Initial discontinuity position
        """
        profiles = [primitive_profiles(eos, U) for U in history]
        n_variables = len(profiles[0])
        variables = exact_solver.variables if exact_solver is not None \
            else ('rho', 'u', 'p')[:n_variables] if eos.family == 'euler' else ('h', 'u')

        fig, axes = plt.subplots(1, n_variables, figsize=(14, 4))

        lines_num = []
        lines_exact = []
        for ax, k, name in zip(axes, range(n_variables), variables):
            line_num, = ax.plot([], [], 'o-', color=self.colors['numerical'],
                                markersize=1.5, linewidth=0.8, label='Numerical')
            lines_num.append(line_num)
            if exact_solver is not None:
                line_exact, = ax.plot([], [], '-', color=self.colors['exact'],
                                      linewidth=2, label='Exact')
                lines_exact.append(line_exact)

            values = np.concatenate([frame[k] for frame in profiles])
            low, high = np.min(values), np.max(values)
            margin = 0.05 * (high - low) if high > low else 0.1
            ax.set_xlabel('x')
            ax.set_ylabel(LABELS.get(name, name))
            ax.set_xlim(x[0], x[-1])
            ax.set_ylim(low - margin, high + margin)
            ax.legend(loc='best')

        title = fig.suptitle('', fontsize=14)
        fig.tight_layout()

        def init():
            for line in lines_num + lines_exact:
                line.set_data([], [])
            return lines_num + lines_exact

        def animate(frame):
            t = time_history[frame]
            for line, values in zip(lines_num, profiles[frame]):
                line.set_data(x, values)

            if exact_solver is not None and t > 0:
                for line, values in zip(lines_exact, exact_solver.sample(x, t, x_0)):
                    line.set_data(x, values)

            title.set_text(f't = {t:.4f}')
            return lines_num + lines_exact

        anim = FuncAnimation(fig, animate, init_func=init,
                             frames=len(history), interval=1000 / fps, blit=True)

        filepath = os.path.join(self.output_dir, filename)
        anim.save(filepath, writer='pillow', fps=fps)
        plt.close(fig)
        logger.info("Saved: %s", filepath)
        return filepath

    def save_data(self, x, solution, variables, t, lij=None, filename='solution_data.npz'):
        """Save the primitive profiles to a NumPy archive."""
        filepath = os.path.join(self.output_dir, filename)
        arrays = dict(zip(variables, solution))
        if lij is not None:
            arrays['lij'] = lij
        np.savez(filepath, x=x, t=t, **arrays)
        logger.info("Saved: %s", filepath)
        return filepath

    def print_error_summary(self, errors, variables=('rho', 'u', 'p')):
        """Print formatted error summary."""
        print("\n" + "=" * 50)
        print("Error Summary (Numerical vs Exact)")
        print("=" * 50)
        print(f"{'Variable':<10} {'L1 Error':<15} {'L2 Error':<15} {'L∞ Error':<15}")
        print("-" * 50)
        for var in variables:
            l1 = errors[f'{var}_L1']
            l2 = errors[f'{var}_L2']
            linf = errors[f'{var}_Linf']
            print(f"{var:<10} {l1:<15.6e} {l2:<15.6e} {linf:<15.6e}")
        print("=" * 50)
