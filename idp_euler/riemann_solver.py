"""
Guaranteed upper bound on the maximal wave speed of a 1D Riemann problem.

The estimate is based on a function phi(p) that is monotone increasing
and concave down in p:

    phi(p) = f_i(p) + f_j(p) + u_j - u_i

where f_Z is the usual shock / rarefaction wave curve of state Z. Its
root p* is the pressure of the star region. Instead of solving for p* we
bracket it between two closed-form candidates:

    phi(p_max) <  0:   p_1 = p_max,   p_2 = p_tilde
    phi(p_max) >= 0:   p_1 = p_min,   p_2 = min(p_max, p_tilde)

with p_tilde the two-rarefaction approximation, and evaluate the extreme
wave speeds lambda_1^-, lambda_3^+ at the upper end p_2 >= p*. Because
the wave speeds are increasing in p* this gives a safe over-estimate.

Every branch is a ``numpy.where`` select so that all edges of a graph are
processed at once.

References
----------
Guermond, J.-L., Popov, B. "Fast estimation from above of the maximum wave
speed in the Riemann problem for the Euler equations", J. Comput. Phys.
321 (2016).
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)


def positive_part(x):
    return np.maximum(x, 0.0)


def negative_part(x):
    """Magnitude of the negative part, max(-x, 0)."""
    return np.maximum(-x, 0.0)


class PolytropicClosedForm:
    """
    Wave curves of a (covolume) polytropic gas.

    With covolume b the density and sound speed enter through
    rho' = rho / (1 - b rho) and a' = a (1 - b rho).
    """

    def pressure_variable(self, r):
        return r.p

    def phi_of_max(self, ri, rj, p_max):
        """phi(p_max); both waves are shocks, no pow() needed."""
        def value(r):
            rho_c = r.rho / (1.0 - r.covolume * r.rho)
            radicand_inverse = 0.5 * rho_c * ((r.gamma + 1.0) * p_max + (r.gamma - 1.0) * r.p)
            return (p_max - r.p) / np.sqrt(radicand_inverse)

        return value(ri) + value(rj) + rj.u - ri.u

    def star_two_rarefaction(self, ri, rj):
        """
        Two-rarefaction approximation p_tilde >= p*.

        The positive part of the numerator is the non-vacuum condition:
        if it vanishes p* = 0 is the correct pressure.
        """
        gamma = np.minimum(ri.gamma, rj.gamma)
        a_i = ri.a * (1.0 - ri.covolume * ri.rho)
        a_j = rj.a * (1.0 - rj.covolume * rj.rho)

        factor = 0.5 * (gamma - 1.0)
        numerator = positive_part(a_i + a_j - factor * (rj.u - ri.u))
        denominator = a_i * (ri.p / rj.p)**(-factor / gamma) + a_j
        return rj.p * (numerator / denominator)**(2.0 * gamma / (gamma - 1.0))

    def _factor(self, r, p_star):
        return np.sqrt(1.0 + 0.5 * (r.gamma + 1.0) / r.gamma
                       * positive_part((p_star - r.p) / r.p))

    def lambda1_minus(self, r, p_star):
        return r.u - r.a * self._factor(r, p_star)

    def lambda3_plus(self, r, p_star):
        return r.u + r.a * self._factor(r, p_star)

    def f(self, r, p):
        """Wave curve f_Z(p) and its derivative."""
        g = r.gamma
        rho_c = r.rho / (1.0 - r.covolume * r.rho)
        a_c = r.a * (1.0 - r.covolume * r.rho)

        A = 0.5 * rho_c * ((g + 1.0) * p + (g - 1.0) * r.p)
        shock = (p - r.p) / np.sqrt(A)
        d_shock = (1.0 - 0.25 * (g + 1.0) * rho_c * (p - r.p) / A) / np.sqrt(A)

        ratio = p / r.p
        rarefaction = 2.0 * a_c / (g - 1.0) * (ratio**(0.5 * (g - 1.0) / g) - 1.0)
        d_rarefaction = a_c / (g * r.p) * ratio**(-0.5 * (g + 1.0) / g)

        is_shock = p >= r.p
        return np.where(is_shock, shock, rarefaction), np.where(is_shock, d_shock, d_rarefaction)


class ShallowWaterClosedForm:
    """
    Wave curves of the shallow water equations in terms of the water
    height h, which plays the role of the pressure variable.
    """

    def __init__(self, gravity):
        self.gravity = gravity

    def pressure_variable(self, r):
        return r.rho

    def phi_of_max(self, ri, rj, h_max):
        g = self.gravity

        def value(r):
            return (h_max - r.rho) * np.sqrt(g * (h_max + r.rho) / (2.0 * h_max * r.rho))

        return value(ri) + value(rj) + rj.u - ri.u

    def star_two_rarefaction(self, ri, rj):
        numerator = positive_part(ri.a + rj.a - 0.5 * (rj.u - ri.u))
        return numerator**2 / (4.0 * self.gravity)

    def _factor(self, r, h_star):
        x = positive_part((h_star - r.rho) / r.rho)
        return np.sqrt((1.0 + x) * (1.0 + 0.5 * x))

    def lambda1_minus(self, r, h_star):
        return r.u - r.a * self._factor(r, h_star)

    def lambda3_plus(self, r, h_star):
        return r.u + r.a * self._factor(r, h_star)

    def f(self, r, h):
        g = self.gravity
        h_Z = r.rho

        B = g * (h + h_Z) / (2.0 * h * h_Z)
        shock = (h - h_Z) * np.sqrt(B)
        d_shock = np.sqrt(B) - (h - h_Z) * g / (4.0 * h**2 * np.sqrt(B))

        rarefaction = 2.0 * (np.sqrt(g * h) - r.a)
        d_rarefaction = np.sqrt(g / h)

        is_shock = h >= h_Z
        return np.where(is_shock, shock, rarefaction), np.where(is_shock, d_shock, d_rarefaction)


class WaveSpeedEstimator:
    """
    Upper bound on the maximal signal speed between two neighboring states.

    Parameters
    ----------
    eos : EquationOfState
        Equation-of-state policy; ``eos.family`` selects the closed forms
    newton_max_iter : int
        Number of bracketing Newton/secant iterations used to tighten the
        pressure bracket (default 0: closed form only)
    newton_tolerance : float
        Relative width of the bracket at which the iteration stops
    check_admissibility : bool
        If True, inadmissible input states raise a ValueError. If False the
        caller guarantees admissible inputs.
    """

    def __init__(self, eos, newton_max_iter=0, newton_tolerance=1e-10,
                 check_admissibility=True):
        if newton_max_iter < 0:
            raise ValueError(f"newton_max_iter must be >= 0, got {newton_max_iter}")

        self.eos = eos
        self.newton_max_iter = int(newton_max_iter)
        self.newton_tolerance = float(newton_tolerance)
        self.check_admissibility = check_admissibility

        if eos.family == 'euler':
            self.closed_form = PolytropicClosedForm()
        elif eos.family == 'shallow_water':
            self.closed_form = ShallowWaterClosedForm(eos.gravity)
        else:
            raise ValueError(f"Unknown equation-of-state family: {eos.family}")

    def estimate(self, U_i, U_j, n_ij):
        """
        Estimate the maximal wave speed of the Riemann problem (U_i, U_j)
        projected onto the unit direction n_ij.

        Parameters
        ----------
        U_i, U_j : ndarray
            Conserved states, shape (n_components,) or (n_components, n)
        n_ij : ndarray
            Unit direction, shape (dim,) or (dim, n)

        Returns
        -------
        lambda_max : ndarray
            Upper bound on the maximal wave speed (>= 0)
        p_star : ndarray
            Upper end of the star-pressure bracket (star water height for
            shallow water)
        n_iterations : ndarray of int
            Number of tightening iterations spent per lane
        """
        U_i = self.eos.check_state(U_i)
        U_j = self.eos.check_state(U_j)

        admissible_i = self.eos.is_admissible(U_i)
        admissible_j = self.eos.is_admissible(U_j)
        if self.check_admissibility and not (np.all(admissible_i) and np.all(admissible_j)):
            raise ValueError("Inadmissible state passed to the wave-speed estimator")

        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            ri = self.eos.riemann_data(U_i, n_ij)
            rj = self.eos.riemann_data(U_j, n_ij)
            lambda_max, p_star, n_iterations = self.estimate_primitive(ri, rj)

        # both states invalid: degenerate estimate
        degenerate = ~admissible_i & ~admissible_j
        lambda_max = np.where(degenerate, 0.0, lambda_max)
        p_star = np.where(degenerate, 0.0, p_star)
        return lambda_max, p_star, n_iterations

    def estimate_primitive(self, ri, rj):
        """Same as ``estimate`` but for RiemannData already projected on n_ij."""
        form = self.closed_form
        p_i = form.pressure_variable(ri)
        p_j = form.pressure_variable(rj)
        p_max = np.maximum(p_i, p_j)
        p_min = np.minimum(p_i, p_j)

        p_tilde = form.star_two_rarefaction(ri, rj)
        phi_p_max = form.phi_of_max(ri, rj, p_max)

        p_1 = np.where(phi_p_max < 0.0, p_max, p_min)
        p_2 = np.where(phi_p_max < 0.0, p_tilde, np.minimum(p_max, p_tilde))

        if self.newton_max_iter > 0:
            p_2, n_iterations = self._tighten(ri, rj, p_1, p_2)
        else:
            n_iterations = np.zeros(np.shape(p_2), dtype=int)

        nu_11 = form.lambda1_minus(ri, p_2)
        nu_32 = form.lambda3_plus(rj, p_2)
        lambda_max = np.maximum(positive_part(nu_32), negative_part(nu_11))

        return lambda_max * self.eos.wave_speed_safety_factor, p_2, n_iterations

    def _tighten(self, ri, rj, p_1, p_2):
        """
        Shrink the bracket [p_1, p_2] around the root of phi.

        phi is concave and increasing: the Newton step from the left end
        stays below p*, the secant through both ends stays above it.
        """
        form = self.closed_form

        # two expansion waves: p* lies below p_min
        p_1 = np.where(p_2 < p_1, 0.0, p_1)
        n_iterations = np.zeros(np.shape(p_2), dtype=int)

        for _ in range(self.newton_max_iter):
            active = (p_2 - p_1) > self.newton_tolerance * p_2
            if not np.any(active):
                break
            n_iterations = n_iterations + active

            f_i1, df_i1 = form.f(ri, p_1)
            f_j1, df_j1 = form.f(rj, p_1)
            f_i2, _ = form.f(ri, p_2)
            f_j2, _ = form.f(rj, p_2)
            phi_1 = f_i1 + f_j1 + rj.u - ri.u
            phi_2 = f_i2 + f_j2 + rj.u - ri.u
            dphi_1 = df_i1 + df_j1

            newton = np.where(dphi_1 > 0.0, p_1 - phi_1 / dphi_1, p_1)
            slope = phi_2 - phi_1
            secant = np.where(slope > 0.0, p_1 - phi_1 * (p_2 - p_1) / slope, p_2)

            new_p_1 = np.clip(newton, p_1, p_2)
            new_p_2 = np.clip(secant, new_p_1, p_2)
            p_1 = np.where(active, new_p_1, p_1)
            p_2 = np.where(active, new_p_2, p_2)

        return p_2, n_iterations

    def edge_viscosity(self, U, graph, index=None):
        """
        Graph viscosity of the edges ``index`` (default: all edges)

            d_ij = max(lambda(U_i, U_j, n_ij) |c_ij|, lambda(U_j, U_i, n_ji) |c_ji|)
        """
        if index is None:
            index = np.arange(graph.n_edges)
        i = graph.edges[index, 0]
        j = graph.edges[index, 1]

        lambda_ij, _, _ = self.estimate(U[:, i], U[:, j], graph.n_ij[:, index])
        lambda_ji, _, _ = self.estimate(U[:, j], U[:, i], graph.n_ji[:, index])
        return np.maximum(lambda_ij * graph.norm_ij[index], lambda_ji * graph.norm_ji[index])
