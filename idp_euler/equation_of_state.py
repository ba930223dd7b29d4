"""
Equation-of-state policies for the hyperbolic systems advanced on a graph.

Each policy knows how to go between conserved and primitive variables,
evaluates the flux, and projects a state onto a direction to produce the
1D Riemann data used by the wave-speed estimator. The orchestration code
never branches on the physical model beyond the ``family`` attribute.

Implements:
- IdealGasEuler: polytropic ideal gas, U = [rho, m, E]
- GeneralEulerEOS: Euler with an arbitrary (rho, e) -> p relation
- ShallowWater: shallow water equations, U = [h, q]

States are ndarrays of shape (n_components,) or (n_components, n).
"""

import logging
from collections import namedtuple

import numpy as np

logger = logging.getLogger(__name__)


RiemannData = namedtuple('RiemannData', ['rho', 'u', 'p', 'a', 'gamma', 'covolume'])
RiemannData.__doc__ = """
Primitive 1D Riemann data of a state projected onto a direction.

rho : density (water height for shallow water)
u : normal velocity
p : pressure
a : sound speed
gamma : (local) ratio of specific heats used by the closed-form estimates
covolume : covolume constant b (zero for an ideal gas)
"""


def _project(vector, normal):
    """Dot product over the leading (spatial) axis, broadcasting the normal."""
    normal = np.asarray(normal, dtype=float)
    if normal.ndim < vector.ndim:
        normal = normal.reshape(normal.shape + (1,) * (vector.ndim - normal.ndim))
    return np.sum(vector * normal, axis=0)


class EquationOfState:
    """
    Base class of the equation-of-state capability interface.

    Attributes
    ----------
    name : str
        Human readable identifier
    dim : int
        Spatial dimension
    n_components : int
        Number of conserved components per node
    family : str
        'euler' or 'shallow_water'; selects the closed forms used by the
        wave-speed estimator, the bounds evaluator and the limiter
    exact_wave_speed_bound : bool
        True if the wave-speed estimate is a proven upper bound for this
        model. False flags a heuristic bound.
    wave_speed_safety_factor : float
        Factor (>= 1) applied to every wave-speed estimate
    """

    name = 'abstract'
    family = None
    exact_wave_speed_bound = True
    wave_speed_safety_factor = 1.0

    def __init__(self, dim=1):
        if dim not in (1, 2, 3):
            raise ValueError(f"Unsupported spatial dimension: {dim}")
        self.dim = int(dim)

    @property
    def momentum_slice(self):
        """Slice of the momentum components inside a state vector."""
        return slice(1, 1 + self.dim)

    def density(self, U):
        return np.asarray(U)[0]

    def momentum(self, U):
        return np.asarray(U)[self.momentum_slice]

    def velocity(self, U):
        return self.momentum(U) / self.density(U)

    def pressure(self, U):
        raise NotImplementedError

    def sound_speed(self, U):
        raise NotImplementedError

    def flux(self, U):
        raise NotImplementedError

    def riemann_data(self, U, normal):
        raise NotImplementedError

    def is_admissible(self, U):
        raise NotImplementedError

    def _broadcast_velocity(self, v, shape):
        """Broadcast a velocity to (dim,) + shape; a bare scalar field is taken as 1D."""
        v = np.asarray(v, dtype=float)
        if v.ndim == len(shape):
            v = v[None]
        return np.broadcast_to(v, (self.dim,) + tuple(shape))

    def check_state(self, U):
        """Validate the shape of a state array and return it as float ndarray."""
        U = np.asarray(U, dtype=float)
        if U.shape[0] != self.n_components:
            raise ValueError(
                f"{self.name} expects {self.n_components} components, got {U.shape[0]}")
        return U


class _EulerBase(EquationOfState):
    """Shared conserved-variable algebra of the compressible Euler equations."""

    family = 'euler'
    covolume = 0.0

    def __init__(self, dim=1):
        super().__init__(dim)
        self.n_components = self.dim + 2

    def total_energy(self, U):
        return np.asarray(U)[1 + self.dim]

    def internal_energy(self, U):
        """Internal energy per unit volume: rho*e = E - |m|^2 / (2 rho)."""
        rho = self.density(U)
        m = self.momentum(U)
        return self.total_energy(U) - 0.5 * np.sum(m**2, axis=0) / rho

    def specific_internal_energy(self, U):
        return self.internal_energy(U) / self.density(U)

    def interpolatory_gamma(self, U):
        raise NotImplementedError

    def specific_entropy(self, U, gamma=None):
        """
        Surrogate specific entropy s = rho*e * (rho / (1 - b rho))^(-gamma).

        For an ideal gas (b = 0) this is a strictly increasing function of
        the physical specific entropy. ``gamma`` defaults to the local
        interpolatory ratio of specific heats.
        """
        if gamma is None:
            gamma = self.interpolatory_gamma(U)
        rho = self.density(U)
        return self.internal_energy(U) * (rho / (1.0 - self.covolume * rho))**(-gamma)

    def internal_energy_from(self, rho, p):
        """Specific internal energy e(rho, p)."""
        raise NotImplementedError

    def from_primitive(self, rho, v, p):
        """
        Convert primitive variables to conserved variables.

        Parameters
        ----------
        rho : float or ndarray
            Density
        v : ndarray
            Velocity, shape (dim,) or (dim, n)
        p : float or ndarray
            Pressure

        Returns
        -------
        U : ndarray of shape (dim + 2, ...)
            Conserved variables [rho, rho*v, E]
        """
        rho = np.asarray(rho, dtype=float)
        v = self._broadcast_velocity(v, rho.shape)
        p = np.broadcast_to(np.asarray(p, dtype=float), rho.shape)

        U = np.empty((self.n_components,) + rho.shape)
        U[0] = rho
        U[self.momentum_slice] = rho * v
        U[1 + self.dim] = rho * self.internal_energy_from(rho, p) \
            + 0.5 * rho * np.sum(v**2, axis=0)
        return U

    def to_primitive(self, U):
        """Return (rho, v, p) with v of shape (dim, ...)."""
        U = np.asarray(U, dtype=float)
        return self.density(U), self.velocity(U), self.pressure(U)

    def flux(self, U):
        """
        Physical flux f(U) for the Euler equations.

        Returns
        -------
        F : ndarray of shape (dim + 2, dim, ...)
            Rows [m, m (x) v + p I, v (E + p)]
        """
        U = np.asarray(U, dtype=float)
        rho = self.density(U)
        m = self.momentum(U)
        E = self.total_energy(U)
        v = m / rho
        p = self.pressure(U)

        identity = np.eye(self.dim).reshape((self.dim, self.dim) + (1,) * rho.ndim)

        F = np.empty((self.n_components, self.dim) + rho.shape)
        F[0] = m
        F[self.momentum_slice] = m[:, None] * v[None, :] + p * identity
        F[1 + self.dim] = v * (E + p)
        return F

    def riemann_data(self, U, normal):
        U = np.asarray(U, dtype=float)
        rho = self.density(U)
        u = _project(self.momentum(U), normal) / rho
        return RiemannData(rho=rho,
                           u=u,
                           p=self.pressure(U),
                           a=self.sound_speed(U),
                           gamma=self.interpolatory_gamma(U),
                           covolume=np.full(rho.shape, self.covolume))

    def is_admissible(self, U):
        """Positive density, internal energy and pressure."""
        U = np.asarray(U, dtype=float)
        rho = self.density(U)
        with np.errstate(divide='ignore', invalid='ignore'):
            rho_e = self.internal_energy(U)
            p = self.pressure(U)
            admissible = (rho > 0) & (rho_e > 0) & (p > 0) & np.isfinite(p)
            if self.covolume > 0:
                admissible &= (1.0 - self.covolume * rho) > 0
        return admissible


class IdealGasEuler(_EulerBase):
    """
    Compressible Euler equations with a polytropic ideal gas.

    p = (gamma - 1) rho e,   c = sqrt(gamma p / rho)

    Parameters
    ----------
    gamma : float
        Ratio of specific heats (default 1.4 for air)
    dim : int
        Spatial dimension
    """

    exact_wave_speed_bound = True

    def __init__(self, gamma=1.4, dim=1):
        super().__init__(dim)
        if gamma <= 1.0:
            raise ValueError(f"Ratio of specific heats must be > 1, got {gamma}")
        self.gamma = float(gamma)
        self.name = f"ideal_gas_gamma_{self.gamma:g}"

    def pressure(self, U):
        return (self.gamma - 1.0) * self.internal_energy(U)

    def sound_speed(self, U):
        return np.sqrt(self.gamma * self.pressure(U) / self.density(U))

    def interpolatory_gamma(self, U):
        return np.full(np.shape(self.density(U)), self.gamma)

    def internal_energy_from(self, rho, p):
        return p / ((self.gamma - 1.0) * rho)


class GeneralEulerEOS(_EulerBase):
    """
    Compressible Euler equations with an arbitrary equation of state.

    The pressure and sound speed are supplied as callables of density and
    specific internal energy. For the wave-speed estimate every state is
    replaced by a local polytropic surrogate with the interpolatory ratio

        gamma_Z = 1 + p (1 - b rho) / (rho e)

    which is exact for a covolume gas but only approximate otherwise. The
    resulting wave-speed estimate is therefore flagged as not provably an
    upper bound; ``safety_factor`` inflates it for conservative callers.

    Parameters
    ----------
    pressure : callable
        p(rho, e)
    sound_speed : callable
        c(rho, e)
    internal_energy : callable
        e(rho, p), used to build states from primitive variables
    covolume : float
        Covolume constant b
    dim : int
        Spatial dimension
    safety_factor : float
        Multiplier (>= 1) applied to the wave-speed estimate
    name : str
        Identifier
    """

    exact_wave_speed_bound = False

    def __init__(self, pressure, sound_speed, internal_energy, covolume=0.0,
                 dim=1, safety_factor=1.0, name='general_eos'):
        super().__init__(dim)
        if covolume < 0.0:
            raise ValueError(f"Covolume must be non-negative, got {covolume}")
        if safety_factor < 1.0:
            raise ValueError(f"Safety factor must be >= 1, got {safety_factor}")

        self._pressure = pressure
        self._sound_speed = sound_speed
        self._internal_energy = internal_energy
        self.covolume = float(covolume)
        self.wave_speed_safety_factor = float(safety_factor)
        self.name = name

        logger.warning("%s: wave-speed estimate is not a proven upper bound "
                       "(safety factor %.3g)", name, self.wave_speed_safety_factor)

    @classmethod
    def noble_abel_stiffened_gas(cls, gamma=1.4, covolume=0.0, q=0.0, p_infinity=0.0,
                                 dim=1, safety_factor=1.0):
        """
        Noble-Abel stiffened-gas equation of state.

        p = (gamma - 1) rho (e - q) / (1 - b rho) - gamma p_inf
        c^2 = gamma (p + p_inf) / (rho (1 - b rho))
        """
        if gamma <= 1.0:
            raise ValueError(f"Ratio of specific heats must be > 1, got {gamma}")
        b = covolume

        def pressure(rho, e):
            return (gamma - 1.0) * rho * (e - q) / (1.0 - b * rho) - gamma * p_infinity

        def sound_speed(rho, e):
            p = pressure(rho, e)
            return np.sqrt(gamma * (p + p_infinity) / (rho * (1.0 - b * rho)))

        def internal_energy(rho, p):
            return (p + gamma * p_infinity) * (1.0 - b * rho) / ((gamma - 1.0) * rho) + q

        return cls(pressure, sound_speed, internal_energy, covolume=b, dim=dim,
                   safety_factor=safety_factor,
                   name=f"nasg_gamma_{gamma:g}_b_{b:g}")

    def pressure(self, U):
        return self._pressure(self.density(U), self.specific_internal_energy(U))

    def sound_speed(self, U):
        return self._sound_speed(self.density(U), self.specific_internal_energy(U))

    def interpolatory_gamma(self, U):
        rho = self.density(U)
        return 1.0 + self.pressure(U) * (1.0 - self.covolume * rho) / self.internal_energy(U)

    def internal_energy_from(self, rho, p):
        return self._internal_energy(rho, p)


class ShallowWater(EquationOfState):
    """
    Shallow water equations over a flat bottom.

    U = [h, q] with discharge q = h v. The hydrostatic "pressure" is
    g h^2 / 2 and the celerity is sqrt(g h).

    Parameters
    ----------
    gravity : float
        Gravitational acceleration
    dim : int
        Spatial dimension
    """

    family = 'shallow_water'
    exact_wave_speed_bound = True

    def __init__(self, gravity=9.81, dim=1):
        super().__init__(dim)
        if gravity <= 0.0:
            raise ValueError(f"Gravity must be positive, got {gravity}")
        self.gravity = float(gravity)
        self.n_components = self.dim + 1
        self.name = f"shallow_water_g_{self.gravity:g}"

    def water_depth(self, U):
        return self.density(U)

    def pressure(self, U):
        h = self.density(U)
        return 0.5 * self.gravity * h**2

    def sound_speed(self, U):
        return np.sqrt(self.gravity * self.density(U))

    def kinetic_energy(self, U):
        """Kinetic energy per unit area |q|^2 / (2 h)."""
        q = self.momentum(U)
        return 0.5 * np.sum(q**2, axis=0) / self.density(U)

    def from_primitive(self, h, v):
        h = np.asarray(h, dtype=float)
        v = self._broadcast_velocity(v, h.shape)
        U = np.empty((self.n_components,) + h.shape)
        U[0] = h
        U[self.momentum_slice] = h * v
        return U

    def to_primitive(self, U):
        """Return (h, v) with v of shape (dim, ...)."""
        U = np.asarray(U, dtype=float)
        return self.density(U), self.velocity(U)

    def flux(self, U):
        U = np.asarray(U, dtype=float)
        h = self.density(U)
        q = self.momentum(U)
        v = q / h

        identity = np.eye(self.dim).reshape((self.dim, self.dim) + (1,) * h.ndim)

        F = np.empty((self.n_components, self.dim) + h.shape)
        F[0] = q
        F[self.momentum_slice] = q[:, None] * v[None, :] + self.pressure(U) * identity
        return F

    def riemann_data(self, U, normal):
        U = np.asarray(U, dtype=float)
        h = self.density(U)
        return RiemannData(rho=h,
                           u=_project(self.momentum(U), normal) / h,
                           p=self.pressure(U),
                           a=self.sound_speed(U),
                           gamma=np.full(h.shape, 2.0),
                           covolume=np.zeros(h.shape))

    def is_admissible(self, U):
        U = np.asarray(U, dtype=float)
        h = self.density(U)
        return (h > 0) & np.all(np.isfinite(U), axis=0)
