"""Colour handling and background texture sampling for rendered rays."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from .geodesics import UNIVERSE_SIZE
from .schwarzschild import angle_to_tex as _angle_to_tex

ArrayLike = Union[float, Sequence[float], np.ndarray]

_LUMA = np.array([0.2125, 0.7154, 0.0721])
_RED = np.array([1 / 0.2125, 0.0, 0.0])
_GREEN = np.array([0.0, 1 / 0.7154, 0.0])
_BLUE = np.array([0.0, 0.0, 1 / 0.0721])

_MAX_PROBES = 32
_BIAS_FRAC = 1.3


def _mix(a, b, t):
    return a + (b - a) * t


def energy_of(colour: Sequence[float]) -> float:
    """The luminance (Y of XYZ) of a linear RGB colour."""
    return float(np.asarray(colour, dtype=float)[:3] @ _LUMA)


def redshift(colour: Sequence[float], z: float) -> np.ndarray:
    """Dim and shift a linear RGB colour towards red (z > 0) or blue (z < 0)."""
    v = np.array(colour, dtype=float)[:3]
    z = float(z)

    with np.errstate(all="ignore"):
        iemit = energy_of(v)
        iobs = iemit / (z + 1) ** 4
        v = (np.float64(iobs) / np.float64(iemit)) * v

        radiant_energy = energy_of(v)

        if z >= 0:
            result = _mix(v, radiant_energy * _RED, math.tanh(z))
        else:
            iv1pz = (1 / (1 + z)) - 1
            col = _mix(v, radiant_energy * _BLUE, math.tanh(iv1pz))

            # energy clipped away by the display spills into white
            final_energy = energy_of(np.clip(col, 0.0, 1.0))
            real_energy = energy_of(col)
            remaining = real_energy - final_energy

            col = col.copy()
            col[0] += remaining * _RED[0]
            col[1] += remaining * _GREEN[1]
            result = col

        return np.clip(result, 0.0, 1.0)


def do_redshift(colour: Sequence[float], zp1: float) -> np.ndarray:
    """Redshift a colour given one plus the redshift."""
    return redshift(colour, zp1 - 1)


def _scalar_or_array(result: np.ndarray, original: ArrayLike):
    if np.ndim(original) == 0:
        return float(result)
    return result


def linear_to_srgb(value: ArrayLike):
    """Convert linear intensity to sRGB, element-wise."""
    x = np.asarray(value, dtype=float)
    with np.errstate(invalid="ignore"):
        out = np.where(x <= 0.0031308, x * 12.92, 1.055 * np.power(x, 1.0 / 2.4) - 0.055)
    return _scalar_or_array(out, value)


def srgb_to_linear(value: ArrayLike):
    """Convert sRGB to linear intensity, element-wise."""
    x = np.asarray(value, dtype=float)
    with np.errstate(invalid="ignore"):
        out = np.where(x < 0.04045, x / 12.92, np.power((x + 0.055) / 1.055, 2.4))
    return _scalar_or_array(out, value)


def angle_to_tex(angle: Sequence[float]) -> Tuple[float, float]:
    """Map (theta, phi) to background texture coordinates."""
    return _angle_to_tex(angle)


def cartesian_to_spherical(cartesian: Sequence[float]) -> np.ndarray:
    """(x, y, z) to (r, theta, phi)."""
    c = np.asarray(cartesian, dtype=float)
    r = float(np.linalg.norm(c))
    theta = math.acos(c[2] / r)
    phi = math.atan2(c[1], c[0])
    return np.array([r, theta, phi])


def fix_ray_position_cart(
    position: Sequence[float], velocity: Sequence[float], sphere_radius: float
) -> np.ndarray:
    """Move a ray along its direction onto a sphere about the origin.

    The nearer of the two intersections is taken; a ray that misses the
    sphere is left where it is.
    """
    pos = np.asarray(position, dtype=float)
    vel = np.asarray(velocity, dtype=float)
    vel = vel / np.linalg.norm(vel)

    a = 1.0
    b = 2 * float(vel @ pos)
    c = float(pos @ pos) - sphere_radius * sphere_radius

    discrim = b * b - 4 * a * c
    if not discrim >= 0:
        return pos

    root = math.sqrt(discrim)
    t0 = (-b - root) / (2 * a)
    t1 = (-b + root) / (2 * a)
    my_t = t0 if abs(t0) < abs(t1) else t1
    return pos + my_t * vel


def circular_diff(f1: float, f2: float, period: float) -> float:
    """The signed shortest difference ``f2 - f1`` on a circle of a period."""
    a = f1 * (2 * math.pi / period)
    b = f2 * (2 * math.pi / period)
    return period * math.atan2(math.sin(b - a), math.cos(b - a)) / (2 * math.pi)


def circular_diff2(f1: Sequence[float], f2: Sequence[float]) -> Tuple[float, float]:
    """Component-wise circular difference of texture coordinates with period 1."""
    return circular_diff(f1[0], f2[0], 1.0), circular_diff(f1[1], f2[1], 1.0)


def texture_coordinate(
    position: Sequence[float], velocity: Sequence[float], universe_size: float = UNIVERSE_SIZE
) -> Tuple[float, float]:
    """Background texture coordinate, in [0, 1), of a ray that left the universe.

    Only the last three components of position and velocity are used.
    """
    position3 = np.asarray(position, dtype=float)[-3:]
    velocity3 = np.asarray(velocity, dtype=float)[-3:]

    position3 = fix_ray_position_cart(position3, velocity3, universe_size)
    spherical = cartesian_to_spherical(position3)
    sx, sy = angle_to_tex((spherical[1], spherical[2]))
    return math.fmod(sx + 1, 1.0), math.fmod(sy + 1, 1.0)


def _sample_bilinear_repeat(layer: np.ndarray, u: float, v: float) -> np.ndarray:
    height, width = layer.shape[0], layer.shape[1]
    x = u * width - 0.5
    y = v * height - 0.5
    x0 = math.floor(x)
    y0 = math.floor(y)
    fx = x - x0
    fy = y - y0
    xs = (x0 % width, (x0 + 1) % width)
    ys = (y0 % height, (y0 + 1) % height)
    top = layer[ys[0], xs[0]] * (1 - fx) + layer[ys[0], xs[1]] * fx
    bottom = layer[ys[1], xs[0]] * (1 - fx) + layer[ys[1], xs[1]] * fx
    return top * (1 - fy) + bottom * fy


def read_mipmap(mips: np.ndarray, coord: Sequence[float]) -> np.ndarray:
    """Trilinearly sample a mipmapped background and return linear RGB.

    ``mips`` has shape (levels, height, width, channels) with sRGB values.
    Every layer is full size; level i occupies its top-left 1/2**i corner,
    as the levels are laid out in the background image array.  ``coord`` is
    (u, v, level of detail) with normalised, repeating u and v.
    """
    layers = np.asarray(mips, dtype=float)
    if layers.ndim != 4:
        raise ValueError("mips must have shape (levels, height, width, channels)")
    levels = layers.shape[0]
    if levels == 0:
        raise ValueError("at least one mip level is needed")

    u, v, lod = float(coord[0]), float(coord[1]), max(float(coord[2]), 0.0)

    mip_lower = math.floor(lod)
    mip_upper = math.ceil(lod)

    def sample(level: int) -> np.ndarray:
        divisor = 2.0 ** level
        layer = layers[min(max(level, 0), levels - 1)]
        return _sample_bilinear_repeat(layer, u / divisor, v / divisor)

    weight = lod - mip_lower
    val = _mix(sample(mip_lower), sample(mip_upper), weight)[:3]
    return np.asarray(srgb_to_linear(val), dtype=float)


@dataclass(frozen=True)
class Footprint:
    """An elliptical texture footprint sampled along its major axis."""

    probes: int
    level_of_detail: float
    major_radius: float
    minor_radius: float
    theta: float


def anisotropic_footprint(
    du_dx: float, du_dy: float, dv_dx: float, dv_dy: float, max_lod: float
) -> Footprint:
    """Number of probes, mip level and shape of an anisotropic texture filter.

    The derivatives are in texels per pixel.
    """
    ann = dv_dx * dv_dx + dv_dy * dv_dy + 1
    bnn = -2 * (du_dx * dv_dx + du_dy * dv_dy)
    cnn = du_dx * du_dx + du_dy * du_dy + 1

    f = ann * cnn - bnn * bnn / 4
    a = ann / f
    b = bnn / f
    c = cnn / f

    root = math.sqrt((a - c) * (a - c) + b * b)
    a_prime = (a + c - root) / 2
    c_prime = (a + c + root) / 2

    major_radius = 1 / math.sqrt(a_prime)
    minor_radius = 1 / math.sqrt(c_prime)

    theta = math.atan2(b, (a - c) / 2)

    major_radius = max(major_radius, 1.0)
    minor_radius = max(minor_radius, 1.0)
    major_radius = max(major_radius, minor_radius)

    f_probes = 2 * (major_radius / minor_radius) - 1
    probes = min(math.floor(f_probes + 0.5), _MAX_PROBES)

    if probes < f_probes:
        minor_radius = 2 * major_radius / (probes + 1)

    lod = math.log2(minor_radius)
    if lod > max_lod:
        lod = float(max_lod)
        probes = 1

    if probes < 1:
        lod = float(max_lod)

    return Footprint(probes, lod, major_radius, minor_radius, theta)


def texture_derivatives(
    tl: Sequence[float], tr: Sequence[float], bl: Sequence[float],
    dx: int, dy: int, background_size: Sequence[int],
) -> Tuple[float, float, float, float]:
    """(du_dx, du_dy, dv_dx, dv_dy) in texels from neighbouring texture coordinates."""
    dx_vtc = np.array(circular_diff2(tl, tr)) * dx / _BIAS_FRAC * np.asarray(background_size, dtype=float)
    dy_vtc = np.array(circular_diff2(tl, bl)) * dy / _BIAS_FRAC * np.asarray(background_size, dtype=float)
    return float(dx_vtc[0]), float(dy_vtc[0]), float(dx_vtc[1]), float(dy_vtc[1])