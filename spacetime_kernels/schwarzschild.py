"""Backwards ray tracing of light around a Schwarzschild black hole."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

import numpy as np

_RS = 1.0
_MAX_STEPS = 1024 * 1024
_DT = 0.005
_ESCAPE_RADIUS = 10.0

MetricFunction = Callable[[np.ndarray], np.ndarray]


@dataclass
class Tetrad:
    """Four basis vectors of a local orthonormal frame."""

    v: Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]


@dataclass
class Geodesic:
    """A position and a four-velocity."""

    position: np.ndarray
    velocity: np.ndarray


def schwarzschild_metric(position: Sequence[float]) -> np.ndarray:
    """The Schwarzschild metric with ``rs = 1`` in (t, r, theta, phi)."""
    r = np.float64(position[1])
    theta = np.float64(position[2])
    with np.errstate(all="ignore"):
        f = 1 - _RS / r
        return np.diag([-f, 1 / f, r * r, r * r * np.sin(theta) ** 2])


def schwarzschild_tetrad(position: Sequence[float]) -> Tetrad:
    """The static observer's tetrad at a position."""
    r = np.float64(position[1])
    theta = np.float64(position[2])
    with np.errstate(all="ignore"):
        f = 1 - _RS / r
        return Tetrad(
            (
                np.array([1 / np.sqrt(f), 0.0, 0.0, 0.0]),
                np.array([0.0, np.sqrt(f), 0.0, 0.0]),
                np.array([0.0, 0.0, 1 / r, 0.0]),
                np.array([0.0, 0.0, 0.0, 1 / (r * np.sin(theta))]),
            )
        )


def ray_through_pixel(
    sx: int, sy: int, screen_width: int, screen_height: int, fov_degrees: float
) -> np.ndarray:
    """Unit direction of the camera ray through a pixel."""
    fov_rad = (fov_degrees / 360.0) * 2 * math.pi
    f_stop = (screen_width // 2) / math.tan(fov_rad / 2)
    direction = np.array(
        [float(sx - screen_width // 2), float(sy - screen_height // 2), f_stop]
    )
    return direction / np.linalg.norm(direction)


def make_lightlike_geodesic(
    position: Sequence[float], direction: Sequence[float], tetrads: Tetrad
) -> Geodesic:
    """A light ray leaving ``position`` backwards in time along ``direction``."""
    e0, e1, e2, e3 = tetrads.v
    velocity = -e0 + e1 * direction[0] + e2 * direction[1] + e3 * direction[2]
    return Geodesic(np.array(position, dtype=float), np.asarray(velocity, dtype=float))


def diff(func: Callable[[np.ndarray], np.ndarray], position: Sequence[float], direction: int):
    """Central difference derivative of ``func`` along one coordinate."""
    h = 0.00001
    p_up = np.array(position, dtype=float)
    p_lo = p_up.copy()
    p_up[direction] += h
    p_lo[direction] -= h
    return (np.asarray(func(p_up)) - np.asarray(func(p_lo))) * (1 / (2 * h))


def christoffel_symbols(position: Sequence[float], get_metric: MetricFunction) -> np.ndarray:
    """Christoffel symbols of the second kind, indexed ``[mu, alpha, beta]``."""
    metric = np.asarray(get_metric(np.asarray(position, dtype=float)))
    inverse = np.linalg.inv(metric)
    # d[i, j, k] is the derivative of g_jk along coordinate i
    d = np.stack([diff(get_metric, position, i) for i in range(4)])
    combined = d.transpose(1, 2, 0) + d.transpose(1, 0, 2) - d
    return 0.5 * np.einsum("ms,sab->mab", inverse, combined)


def acceleration_of(
    position: Sequence[float], velocity: Sequence[float], get_metric: MetricFunction
) -> np.ndarray:
    """Four-acceleration given by the geodesic equation."""
    gamma = christoffel_symbols(position, get_metric)
    v = np.asarray(velocity, dtype=float)
    return -np.einsum("mab,a,b->m", gamma, v, v)


def schwarzschild_acceleration(position: Sequence[float], velocity: Sequence[float]) -> np.ndarray:
    """Geodesic acceleration in the Schwarzschild metric."""
    return acceleration_of(position, velocity, schwarzschild_metric)


def angle_to_tex(angle: Sequence[float]) -> Tuple[float, float]:
    """Map (theta, phi) to background texture coordinates."""
    theta = math.fmod(angle[0], 2 * math.pi)
    phi = float(angle[1])
    if theta >= math.pi:
        phi += math.pi
        theta -= math.pi
    phi = math.fmod(phi, 2 * math.pi)
    return phi / (2 * math.pi) + 0.5, theta / math.pi


def integrate(geodesic: Geodesic) -> Tuple[int, np.ndarray]:
    """Integrate a ray until it escapes or falls in.

    Returns the outcome and the final position.  The outcome is 0 for a
    ray that escaped, 1 for one that hit the horizon or became non-finite,
    and 2 if the step limit was reached.
    """
    position = np.array(geodesic.position, dtype=float)
    velocity = np.array(geodesic.velocity, dtype=float)
    start_time = position[0]
    result = 2

    with np.errstate(all="ignore"):
        for _ in range(_MAX_STEPS):
            acceleration = schwarzschild_acceleration(position, velocity)
            velocity = velocity + acceleration * _DT
            position = position + velocity * _DT
            radius = position[1]

            if radius > _ESCAPE_RADIUS:
                result = 0
                break
            if radius <= _RS + 0.0001 or position[0] > start_time + 1000:
                result = 1
                break
            if not np.all(np.isfinite(position)):
                result = 1
                break

    return result, position


def _c_remainder(a: int, b: int) -> int:
    return int(math.fmod(a, b))


def render_pixel(
    x: int, y: int, screen_width: int, screen_height: int, background: np.ndarray
) -> np.ndarray:
    """The colour seen through one pixel of a camera at r = 5.

    ``background`` is an image array of shape (height, width, channels).
    """
    ray_direction = ray_through_pixel(x, y, screen_width, screen_height, 90)
    camera_position = np.array([0.0, 5.0, math.pi / 2, -math.pi / 2])
    tetrads = schwarzschild_tetrad(camera_position)

    # +z towards -r, +y towards +theta, +x towards +phi
    modified_ray = np.array([-ray_direction[2], ray_direction[1], ray_direction[0]])

    result, position = integrate(make_lightlike_geodesic(camera_position, modified_ray, tetrads))
    if result in (1, 2):
        return np.zeros(3)

    background = np.asarray(background)
    height, width = background.shape[0], background.shape[1]
    sx, sy = angle_to_tex((position[2], position[3]))
    tx = _c_remainder(int(sx * width + width), width)
    ty = _c_remainder(int(sy * height + height), height)
    return np.array(background[ty, tx][:3], dtype=float)