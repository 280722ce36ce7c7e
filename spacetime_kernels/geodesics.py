"""Geodesic integration for backwards ray tracing through numerical spacetimes."""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Tuple

import numpy as np

from .tetrads import dot_metric

# Ray outcomes reported by trace_ray.
RAY_TRAPPED = 0
RAY_ESCAPED = 1
RAY_UNFINISHED = 2

UNIVERSE_SIZE = 29.0
MAX_STEPS = 512

_METRIC_INDICES = (
    (0, 0), (1, 0), (2, 0), (3, 0),
    (1, 1), (2, 1), (3, 1),
    (2, 2), (3, 2),
    (3, 3),
)

StateFn = Callable[[np.ndarray], Any]
DerivFn = Callable[[np.ndarray, np.ndarray, Any], np.ndarray]
StepFn = Callable[[np.ndarray, np.ndarray, np.ndarray, Any], float]
VelocityFn = Callable[[np.ndarray, Any], np.ndarray]


def _vec(v: Sequence[float]) -> np.ndarray:
    return np.array(v, dtype=float)


class VerletIntegrator:
    """Velocity Verlet integration with an adaptive step size.

    ``velocity`` holds the most recent half step velocity and is only kept
    up to date for reporting.
    """

    def __init__(self) -> None:
        self.position: Optional[np.ndarray] = None
        self.velocity: Optional[np.ndarray] = None
        self.last_v_half: Optional[np.ndarray] = None
        self.ds: float = 0.0

    def start(
        self,
        position: Sequence[float],
        velocity: Sequence[float],
        get_dX: DerivFn,
        get_dV: DerivFn,
        get_dS: StepFn,
        get_state: StateFn,
    ) -> None:
        """Take the first step from an initial position and velocity."""
        x_0 = _vec(position)
        v_0 = _vec(velocity)
        self.velocity = v_0.copy()

        st = get_state(x_0)
        acceleration = np.asarray(get_dV(x_0, v_0, st), dtype=float)
        ds = float(get_dS(x_0, v_0, acceleration, st))

        v_half = v_0 + 0.5 * ds * acceleration

        x_full_approx = x_0 + ds * np.asarray(get_dX(x_0, v_0, st), dtype=float)
        st_full_approx = get_state(x_full_approx)

        x_full = x_0 + 0.5 * ds * (
            np.asarray(get_dX(x_0, v_half, st), dtype=float)
            + np.asarray(get_dX(x_full_approx, v_half, st_full_approx), dtype=float)
        )

        self.last_v_half = v_half
        self.ds = ds
        self.position = x_full

    def next(
        self,
        get_dX: DerivFn,
        get_dV: DerivFn,
        get_dS: StepFn,
        get_state: StateFn,
        enforce_velocity_constraint: VelocityFn,
    ) -> np.ndarray:
        """Advance one step and return the coordinate rate of change."""
        if self.position is None or self.last_v_half is None:
            raise RuntimeError("the integrator has not been started")

        x_n = self.position
        v_nhalf = self.last_v_half
        ds_n1 = self.ds

        st = get_state(x_n)

        v_n = v_nhalf + 0.5 * ds_n1 * np.asarray(get_dV(x_n, v_nhalf, st), dtype=float)
        v_n = np.asarray(enforce_velocity_constraint(v_n, st), dtype=float)

        acceleration = np.asarray(get_dV(x_n, v_n, st), dtype=float)
        ds = float(get_dS(x_n, v_n, acceleration, st))

        v_half = v_n + 0.5 * ds * acceleration

        x_full_approx = x_n + ds * np.asarray(get_dX(x_n, v_n, st), dtype=float)
        st_full_approx = get_state(x_full_approx)

        x_full = x_n + 0.5 * ds * (
            np.asarray(get_dX(x_n, v_half, st), dtype=float)
            + np.asarray(get_dX(x_full_approx, v_half, st_full_approx), dtype=float)
        )

        self.position = x_full
        self.last_v_half = v_half
        self.ds = ds
        self.velocity = v_half

        return np.asarray(get_dX(x_n, v_half, st), dtype=float)


class EulerIntegrator:
    """Forward Euler integration with an adaptive step size."""

    def __init__(self) -> None:
        self.position: Optional[np.ndarray] = None
        self.velocity: Optional[np.ndarray] = None

    def start(
        self,
        position: Sequence[float],
        velocity: Sequence[float],
        get_dX: DerivFn,
        get_dV: DerivFn,
        get_dS: StepFn,
        get_state: StateFn,
    ) -> None:
        """Set the initial position and velocity."""
        self.position = _vec(position)
        self.velocity = _vec(velocity)

    def next(
        self,
        get_dX: DerivFn,
        get_dV: DerivFn,
        get_dS: StepFn,
        get_state: StateFn,
        velocity_postprocess: VelocityFn,
    ) -> np.ndarray:
        """Advance one step and return the coordinate rate of change."""
        if self.position is None or self.velocity is None:
            raise RuntimeError("the integrator has not been started")

        cposition = self.position
        cvelocity = self.velocity

        st = get_state(cposition)

        accel = np.asarray(get_dV(cposition, cvelocity, st), dtype=float)
        d_position = np.asarray(get_dX(cposition, cvelocity, st), dtype=float)
        ds = float(get_dS(cposition, cvelocity, accel, st))

        cvelocity = np.asarray(velocity_postprocess(cvelocity, st), dtype=float)

        self.position = cposition + d_position * ds
        self.velocity = cvelocity + accel * ds

        return d_position


def ct_timestep(W: float) -> float:
    """Step size scale from the conformal factor: small near black holes."""
    x_far = 0.9
    x_near = 0.6
    x = W * W
    fraction = (x - x_near) / (x_far - x_near)
    fraction = min(max(fraction, 0.0), 1.0)
    return 0.1 + (1.0 - 0.1) * fraction


def acceleration_to_precision(acceleration: Sequence[float], max_acceleration: float) -> float:
    """Step size that keeps the change in velocity per step bounded."""
    diff = float(np.linalg.norm(_vec(acceleration))) * 0.01
    with np.errstate(divide="ignore"):
        return float(np.sqrt(np.float64(max_acceleration) / np.float64(diff)))


def geodesic_acceleration(velocity: Sequence[float], christoffel: np.ndarray) -> np.ndarray:
    """``-Gamma^u_ab v^a v^b`` for Christoffel symbols indexed ``[u, a, b]``."""
    v = _vec(velocity)
    return -np.einsum("uab,a,b->u", np.asarray(christoffel, dtype=float), v, v)


def get_zp1(
    position_obs: Sequence[float],
    velocity_obs: Sequence[float],
    ref_obs: Sequence[float],
    position_emit: Sequence[float],
    velocity_emit: Sequence[float],
    ref_emit: Sequence[float],
    get_metric: Callable[[np.ndarray], np.ndarray],
) -> float:
    """One plus the redshift between an emitter and an observer."""
    guv_obs = np.asarray(get_metric(_vec(position_obs)), dtype=float)
    guv_emit = np.asarray(get_metric(_vec(position_emit)), dtype=float)
    return dot_metric(velocity_emit, ref_emit, guv_emit) / dot_metric(
        velocity_obs, ref_obs, guv_obs
    )


def pack_metric(metric: np.ndarray) -> np.ndarray:
    """The ten independent components of a symmetric 4x4 metric."""
    m = np.asarray(metric, dtype=float)
    if m.shape != (4, 4):
        raise ValueError("the metric must be a 4x4 matrix")
    return np.array([m[i, j] for i, j in _METRIC_INDICES])


def unpack_metric(components: Sequence[float]) -> np.ndarray:
    """Rebuild a symmetric 4x4 metric from its ten packed components."""
    c = _vec(components)
    if c.shape != (10,):
        raise ValueError("a packed metric has ten components")
    m = np.zeros((4, 4))
    for value, (i, j) in zip(c, _METRIC_INDICES):
        m[i, j] = value
        m[j, i] = value
    return m


def _spatial(v: np.ndarray) -> np.ndarray:
    return v[-3:]


def trace_ray(
    position: Sequence[float],
    velocity: Sequence[float],
    get_dX: DerivFn,
    get_dV: DerivFn,
    get_dS: StepFn,
    get_state: StateFn,
    universe_size: float = UNIVERSE_SIZE,
    max_steps: int = MAX_STEPS,
) -> Tuple[int, np.ndarray, np.ndarray]:
    """Integrate a ray until it leaves the universe or becomes trapped.

    The spatial part of a position or velocity is its last three components.
    Returns the outcome (RAY_TRAPPED, RAY_ESCAPED or RAY_UNFINISHED) with the
    final position and velocity.
    """
    if max_steps < 0:
        raise ValueError("max_steps cannot be negative")

    ctx = VerletIntegrator()
    ctx.start(position, velocity, get_dX, get_dV, get_dS, get_state)
    result = RAY_UNFINISHED

    with np.errstate(all="ignore"):
        for _ in range(max_steps):
            cposition = _spatial(ctx.position)
            cvelocity = ctx.velocity

            if float(cposition @ cposition) > universe_size * universe_size:
                result = RAY_ESCAPED
                break

            if not np.all(np.isfinite(_spatial(cvelocity))):
                result = RAY_TRAPPED
                break

            diff = _spatial(ctx.next(get_dX, get_dV, get_dS, get_state, lambda v, st: v))

            if float(diff @ diff) < 0.1 * 0.1:
                result = RAY_TRAPPED
                break

    return result, ctx.position, ctx.velocity