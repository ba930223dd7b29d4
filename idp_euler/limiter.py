"""
Convex limiter.

Given a bounds record, a low-order state U and a correction P, find the
largest t in [0, 1] such that U + t P satisfies every bound:

1. Linear density (water height) bounds, solved in closed form.
2. A concave functional psi(U + t P) >= 0 on [0, t_1]:

       Euler:          psi = rho*e - s_min (rho / (1 - b rho))^gamma_min
       shallow water:  psi = kinetic_energy_max - |q|^2 / (2 h)

   psi(0) >= 0 holds for the low-order state. The root is bracketed by
   [t_l, t_r]; a secant step from the left stays admissible, a Newton
   step from the right stays above the root. On exit the admissible left
   end is returned, so an unconverged iteration never admits t = 1.

All lanes are processed at once; branches are ``numpy.where`` selects.
"""

import numpy as np


class ConvexLimiter:
    """
    Parameters
    ----------
    eos : EquationOfState
    newton_max_iter : int
        Number of bracketing iterations for the concave bound
    newton_tolerance : float
        Width of the bracket [t_l, t_r] at which the iteration stops
    epsilon : float
        Relative slack on the concave bound absorbing round-off
    """

    def __init__(self, eos, newton_max_iter=2, newton_tolerance=1e-10, epsilon=1e-12):
        if newton_max_iter < 0:
            raise ValueError(f"newton_max_iter must be >= 0, got {newton_max_iter}")
        if eos.family not in ('euler', 'shallow_water'):
            raise ValueError(f"Unknown equation-of-state family: {eos.family}")
        self.eos = eos
        self.newton_max_iter = int(newton_max_iter)
        self.newton_tolerance = float(newton_tolerance)
        self.epsilon = float(epsilon)

    def limit(self, bounds, U, P):
        """
        Largest admissible coefficient t in [0, 1].

        Parameters
        ----------
        bounds : BoundsRecord
            Bounds of the nodes the states belong to
        U : ndarray, shape (n_components,) or (n_components, n)
            Low-order states
        P : ndarray, same shape as U
            Corrections

        Returns
        -------
        t : ndarray
            Limiter coefficients
        success : ndarray of bool
            True where the full correction (t = 1) was admissible
        """
        U = self.eos.check_state(U)
        P = np.asarray(P, dtype=float)

        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            t = self._limit_linear(bounds, U, P)
            t = self._limit_concave(bounds, U, P, t)

        t = np.where(np.isnan(t), 0.0, t)
        return t, t >= 1.0

    def _limit_linear(self, bounds, U, P):
        rho_min, rho_max = bounds.values[0], bounds.values[1]
        rho_U = U[0]
        rho_P = P[0]

        t_min = np.where(rho_P < 0.0, (rho_min - rho_U) / rho_P, 1.0)
        t_max = np.where(rho_P > 0.0, (rho_max - rho_U) / rho_P, 1.0)
        t = np.minimum(t_min, t_max)
        return np.where(np.isnan(t), 0.0, np.clip(t, 0.0, 1.0))

    def _psi(self, bounds, U, P, t):
        """psi(U + t P) and its derivative in t."""
        eos = self.eos
        V = U + t * P
        rho = V[0]
        v = V[eos.momentum_slice] / rho
        v_square = np.sum(v**2, axis=0)
        v_dot_P = np.sum(v * P[eos.momentum_slice], axis=0)

        if eos.family == 'shallow_water':
            kinetic_energy_max = bounds['kinetic_energy_max']
            psi = (1.0 + self.epsilon) * kinetic_energy_max - 0.5 * rho * v_square
            dpsi = 0.5 * v_square * P[0] - v_dot_P
            return psi, dpsi

        gamma = bounds['gamma_min']
        s_min = (1.0 - self.epsilon) * bounds['s_min']
        b = eos.covolume

        rho_e = V[1 + eos.dim] - 0.5 * rho * v_square
        x = rho / (1.0 - b * rho)
        psi = rho_e - s_min * x**gamma
        d_rho = 0.5 * v_square - s_min * gamma * x**(gamma - 1.0) / (1.0 - b * rho)**2
        dpsi = d_rho * P[0] - v_dot_P + P[1 + eos.dim]
        return psi, dpsi

    def _limit_concave(self, bounds, U, P, t):
        t_l = np.zeros_like(t)
        t_r = t

        psi_l, _ = self._psi(bounds, U, P, t_l)
        # low-order state already violates the bound: no correction
        t_r = np.where(psi_l < 0.0, 0.0, t_r)

        for _ in range(self.newton_max_iter):
            psi_r, dpsi_r = self._psi(bounds, U, P, t_r)
            t_l = np.where(psi_r >= 0.0, t_r, t_l)

            active = (psi_r < 0.0) & (t_r - t_l > self.newton_tolerance)
            if not np.any(active):
                break

            psi_l, _ = self._psi(bounds, U, P, t_l)
            secant = t_l + psi_l * (t_r - t_l) / (psi_l - psi_r)
            newton = np.where(dpsi_r < 0.0, t_r - psi_r / dpsi_r, t_r)

            new_t_l = np.clip(np.where(np.isnan(secant), t_l, secant), t_l, t_r)
            new_t_r = np.clip(np.where(np.isnan(newton), t_r, newton), new_t_l, t_r)
            t_l = np.where(active, new_t_l, t_l)
            t_r = np.where(active, new_t_r, t_r)

        psi_r, _ = self._psi(bounds, U, P, t_r)
        return np.where(psi_r >= 0.0, t_r, t_l)
