"""
Exact solutions of 1D Riemann problems.

A Riemann problem generates a left wave, a contact (Euler only) and a
right wave. The star state is found by a safeguarded Newton iteration on

    phi(z) = f_L(z) + f_R(z) + u_R - u_L = 0

(z the star pressure, or the star water height for shallow water), and
the solution is then sampled along the similarity variable S = (x - x_0)/t.

These solvers serve as references for the wave-speed estimates and for
the error norms of the shock tube runs.
"""

import numpy as np


def _solve_star(phi, z_guess, z_scale, tol=1e-12, max_iter=200):
    """
    Root of the increasing function phi on (0, inf).

    Newton steps are accepted if they stay inside the current bracket,
    otherwise the bracket is bisected.
    """
    z_lo = 0.0
    z_hi = max(z_guess, z_scale)
    while phi(z_hi)[0] < 0.0:
        z_hi *= 2.0

    z = min(max(z_guess, 1e-3 * z_scale), z_hi)
    for _ in range(max_iter):
        value, derivative = phi(z)
        if value < 0.0:
            z_lo = z
        else:
            z_hi = z

        if derivative > 0.0:
            z_new = z - value / derivative
            if abs(z_new - z) <= tol * z:
                return z_new
        else:
            z_new = z_lo
        if not z_lo < z_new < z_hi:
            z_new = 0.5 * (z_lo + z_hi)
            if z_hi - z_lo <= tol * z_hi:
                return z_new
        z = z_new

    return z


class ExactRiemannSolver:
    """
    Exact Riemann solver for the Euler equations of a polytropic gas.

    Handles the generation of a vacuum between two rarefactions.

    Parameters
    ----------
    gamma : float
        Ratio of specific heats (default 1.4)
    rho_L, u_L, p_L : float
        Left state (default: Sod left state)
    rho_R, u_R, p_R : float
        Right state (default: Sod right state)
    """

    variables = ('rho', 'u', 'p')

    def __init__(self, gamma=1.4,
                 rho_L=1.0, u_L=0.0, p_L=1.0,
                 rho_R=0.125, u_R=0.0, p_R=0.1):
        self.gamma = gamma
        self.rho_L = rho_L
        self.u_L = u_L
        self.p_L = p_L
        self.rho_R = rho_R
        self.u_R = u_R
        self.p_R = p_R

        self.c_L = np.sqrt(gamma * p_L / rho_L)
        self.c_R = np.sqrt(gamma * p_R / rho_R)

        self.g1 = (gamma - 1) / (2 * gamma)
        self.g2 = (gamma + 1) / (2 * gamma)
        self.g3 = 2 * gamma / (gamma - 1)
        self.g4 = 2 / (gamma - 1)
        self.g5 = 2 / (gamma + 1)
        self.g6 = (gamma - 1) / (gamma + 1)
        self.g7 = (gamma - 1) / 2

        # pressure positivity condition
        self.vacuum = self.g4 * (self.c_L + self.c_R) <= self.u_R - self.u_L

        if self.vacuum:
            self.p_star = 0.0
            self.u_star = np.nan
            self.rho_star_L = self.rho_star_R = 0.0
        else:
            self.p_star, self.u_star = self._solve_star_region()
            self.rho_star_L = self._rho_star(self.rho_L, self.p_L)
            self.rho_star_R = self._rho_star(self.rho_R, self.p_R)

        self._compute_wave_speeds()

    def _f_K(self, p, rho_K, p_K, c_K):
        """Pressure function of one wave and its derivative."""
        if p > p_K:
            # shock
            A = self.g5 / rho_K
            B = self.g6 * p_K
            f = (p - p_K) * np.sqrt(A / (p + B))
            df = np.sqrt(A / (p + B)) * (1 - (p - p_K) / (2 * (p + B)))
        else:
            # rarefaction
            f = self.g4 * c_K * ((p / p_K)**self.g1 - 1)
            df = 1 / (rho_K * c_K) * (p / p_K)**(-self.g2) if p > 0 else np.inf
        return f, df

    def _phi(self, p):
        f_L, df_L = self._f_K(p, self.rho_L, self.p_L, self.c_L)
        f_R, df_R = self._f_K(p, self.rho_R, self.p_R, self.c_R)
        return f_L + f_R + self.u_R - self.u_L, df_L + df_R

    def _solve_star_region(self, tol=1e-12, max_iter=200):
        """
        Solve for pressure and velocity in the star region.
        """
        # PVRS initial guess
        p_guess = 0.5 * (self.p_L + self.p_R) - 0.125 * (self.u_R - self.u_L) * \
            (self.rho_L + self.rho_R) * (self.c_L + self.c_R)
        p_star = _solve_star(self._phi, max(p_guess, 0.0), max(self.p_L, self.p_R),
                             tol=tol, max_iter=max_iter)

        f_L, _ = self._f_K(p_star, self.rho_L, self.p_L, self.c_L)
        f_R, _ = self._f_K(p_star, self.rho_R, self.p_R, self.c_R)
        u_star = 0.5 * (self.u_L + self.u_R) + 0.5 * (f_R - f_L)
        return p_star, u_star

    def _rho_star(self, rho_K, p_K):
        if self.p_star > p_K:
            return rho_K * ((self.p_star / p_K + self.g6) / (self.g6 * self.p_star / p_K + 1))
        return rho_K * (self.p_star / p_K)**(1 / self.gamma)

    def _compute_wave_speeds(self):
        if self.vacuum:
            self.S_HL = self.u_L - self.c_L
            self.S_TL = self.u_L + self.g4 * self.c_L
            self.S_HR = self.u_R + self.c_R
            self.S_TR = self.u_R - self.g4 * self.c_R
            self.S_contact = np.nan
            return

        if self.p_star > self.p_L:
            self.S_L = self.u_L - self.c_L * np.sqrt(self.g2 * self.p_star / self.p_L + self.g1)
            self.S_HL = self.S_TL = self.S_L
        else:
            c_star_L = self.c_L * (self.p_star / self.p_L)**self.g1
            self.S_HL = self.u_L - self.c_L
            self.S_TL = self.u_star - c_star_L

        self.S_contact = self.u_star

        if self.p_star > self.p_R:
            self.S_R = self.u_R + self.c_R * np.sqrt(self.g2 * self.p_star / self.p_R + self.g1)
            self.S_HR = self.S_TR = self.S_R
        else:
            c_star_R = self.c_R * (self.p_star / self.p_R)**self.g1
            self.S_HR = self.u_R + self.c_R
            self.S_TR = self.u_star + c_star_R

    def max_wave_speed(self):
        """Largest absolute speed of the outermost waves of the fan."""
        return max(abs(self.S_HL), abs(self.S_HR))

    def sample(self, x, t, x_0=0.5):
        """
        Sample the exact solution at position x and time t.

        Returns
        -------
        rho, u, p : ndarrays
        """
        x = np.atleast_1d(x)
        if t <= 0:
            rho = np.where(x < x_0, self.rho_L, self.rho_R)
            u = np.where(x < x_0, self.u_L, self.u_R)
            p = np.where(x < x_0, self.p_L, self.p_R)
            return rho, u, p

        S = (x - x_0) / t
        rho = np.zeros_like(S)
        u = np.zeros_like(S)
        p = np.zeros_like(S)

        for i, s in enumerate(S):
            rho[i], u[i], p[i] = self._sample_point(s)

        return rho, u, p

    def _left_fan(self, S):
        u = self.g5 * (self.c_L + self.g7 * self.u_L + S)
        c = self.g5 * (self.c_L + self.g7 * (self.u_L - S))
        return self.rho_L * (c / self.c_L)**self.g4, u, self.p_L * (c / self.c_L)**self.g3

    def _right_fan(self, S):
        u = self.g5 * (-self.c_R + self.g7 * self.u_R + S)
        c = self.g5 * (self.c_R - self.g7 * (self.u_R - S))
        return self.rho_R * (c / self.c_R)**self.g4, u, self.p_R * (c / self.c_R)**self.g3

    def _sample_point(self, S):
        """Sample the solution at the similarity variable S = (x - x0)/t."""
        if S < self.S_HL:
            return self.rho_L, self.u_L, self.p_L
        if S > self.S_HR:
            return self.rho_R, self.u_R, self.p_R

        if self.vacuum:
            if S < self.S_TL:
                return self._left_fan(S)
            if S > self.S_TR:
                return self._right_fan(S)
            return 0.0, 0.0, 0.0

        if S < self.S_TL:
            return self._left_fan(S)
        if S < self.S_contact:
            return self.rho_star_L, self.u_star, self.p_star
        if S <= self.S_TR:
            return self.rho_star_R, self.u_star, self.p_star
        return self._right_fan(S)

    def get_wave_positions(self, t, x_0=0.5):
        """Positions of the wave heads, tails and the contact at time t."""
        positions = {'left_head': x_0 + self.S_HL * t,
                     'left_tail': x_0 + self.S_TL * t,
                     'right_tail': x_0 + self.S_TR * t,
                     'right_head': x_0 + self.S_HR * t}
        if not self.vacuum:
            positions['contact'] = x_0 + self.S_contact * t
        return positions

    def print_solution_info(self):
        print("=" * 50)
        print("Exact Riemann Solution (polytropic gas)")
        print("=" * 50)
        print(f"  Left:  rho={self.rho_L}, u={self.u_L}, p={self.p_L}")
        print(f"  Right: rho={self.rho_R}, u={self.u_R}, p={self.p_R}")
        if self.vacuum:
            print("  Vacuum generated between the rarefactions")
        else:
            print(f"  p* = {self.p_star:.6e}")
            print(f"  u* = {self.u_star:.6f}")
            print(f"  rho*_L = {self.rho_star_L:.6e}, rho*_R = {self.rho_star_R:.6e}")
        print(f"  Max wave speed: {self.max_wave_speed():.6f}")
        print("=" * 50)


class ShallowWaterExactSolution:
    """
    Exact Riemann solver for the shallow water equations (wet bed).

    Parameters
    ----------
    gravity : float
    h_L, u_L : float
        Left state
    h_R, u_R : float
        Right state
    """

    variables = ('h', 'u')

    def __init__(self, gravity=9.81, h_L=1.0, u_L=0.0, h_R=0.1, u_R=0.0):
        self.gravity = gravity
        self.h_L, self.u_L = h_L, u_L
        self.h_R, self.u_R = h_R, u_R
        self.a_L = np.sqrt(gravity * h_L)
        self.a_R = np.sqrt(gravity * h_R)

        if 2 * (self.a_L + self.a_R) <= u_R - u_L:
            raise ValueError("Dry region generated; only wet-bed solutions are supported")

        self.h_star, self.u_star = self._solve_star_region()
        self._compute_wave_speeds()

    def _f_K(self, h, h_K, a_K):
        g = self.gravity
        if h > h_K:
            B = g * (h + h_K) / (2 * h * h_K)
            f = (h - h_K) * np.sqrt(B)
            df = np.sqrt(B) - (h - h_K) * g / (4 * h**2 * np.sqrt(B))
        else:
            f = 2 * (np.sqrt(g * h) - a_K)
            df = np.sqrt(g / h) if h > 0 else np.inf
        return f, df

    def _phi(self, h):
        f_L, df_L = self._f_K(h, self.h_L, self.a_L)
        f_R, df_R = self._f_K(h, self.h_R, self.a_R)
        return f_L + f_R + self.u_R - self.u_L, df_L + df_R

    def _solve_star_region(self):
        # two-rarefaction guess
        h_guess = (0.5 * (self.a_L + self.a_R) - 0.25 * (self.u_R - self.u_L))**2 / self.gravity
        h_star = _solve_star(self._phi, h_guess, max(self.h_L, self.h_R))

        f_L, _ = self._f_K(h_star, self.h_L, self.a_L)
        f_R, _ = self._f_K(h_star, self.h_R, self.a_R)
        return h_star, 0.5 * (self.u_L + self.u_R) + 0.5 * (f_R - f_L)

    def _compute_wave_speeds(self):
        a_star = np.sqrt(self.gravity * self.h_star)

        if self.h_star > self.h_L:
            q = np.sqrt(0.5 * (self.h_star + self.h_L) * self.h_star) / self.h_L
            self.S_HL = self.S_TL = self.u_L - self.a_L * q
        else:
            self.S_HL = self.u_L - self.a_L
            self.S_TL = self.u_star - a_star

        if self.h_star > self.h_R:
            q = np.sqrt(0.5 * (self.h_star + self.h_R) * self.h_star) / self.h_R
            self.S_HR = self.S_TR = self.u_R + self.a_R * q
        else:
            self.S_HR = self.u_R + self.a_R
            self.S_TR = self.u_star + a_star

    def max_wave_speed(self):
        return max(abs(self.S_HL), abs(self.S_HR))

    def get_wave_positions(self, t, x_0=0.5):
        return {'left_head': x_0 + self.S_HL * t,
                'left_tail': x_0 + self.S_TL * t,
                'right_tail': x_0 + self.S_TR * t,
                'right_head': x_0 + self.S_HR * t}

    def sample(self, x, t, x_0=0.5):
        """
        Sample the exact solution at position x and time t.

        Returns
        -------
        h, u : ndarrays
        """
        x = np.atleast_1d(x)
        if t <= 0:
            return np.where(x < x_0, self.h_L, self.h_R), np.where(x < x_0, self.u_L, self.u_R)

        S = (x - x_0) / t
        h = np.zeros_like(S)
        u = np.zeros_like(S)
        g = self.gravity

        for i, s in enumerate(S):
            if s < self.S_HL:
                h[i], u[i] = self.h_L, self.u_L
            elif s < self.S_TL:
                a = (self.u_L + 2 * self.a_L - s) / 3
                h[i], u[i] = a**2 / g, (self.u_L + 2 * self.a_L + 2 * s) / 3
            elif s <= self.S_TR:
                h[i], u[i] = self.h_star, self.u_star
            elif s <= self.S_HR:
                a = (-self.u_R + 2 * self.a_R + s) / 3
                h[i], u[i] = a**2 / g, (self.u_R - 2 * self.a_R + 2 * s) / 3
            else:
                h[i], u[i] = self.h_R, self.u_R

        return h, u
