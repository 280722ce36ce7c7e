"""Local observer frames: tetrads, Gram-Schmidt, boosts and camera rays."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple, Union

import numpy as np

from .schwarzschild import Geodesic
from .schwarzschild import make_lightlike_geodesic as _make_lightlike_geodesic

_APPROX_ZERO = 0.0001

MetricLike = Union[np.ndarray, Sequence[Sequence[float]], Callable[[np.ndarray], np.ndarray]]


def _vec(v: Sequence[float]) -> np.ndarray:
    return np.asarray(v, dtype=float)


@dataclass
class InverseTetrad:
    """Rows of the inverse tetrad matrix, used to move into the local frame."""

    v_lo: Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]

    def __post_init__(self) -> None:
        rows = tuple(_vec(r) for r in self.v_lo)
        if len(rows) != 4:
            raise ValueError("an inverse tetrad has four rows")
        self.v_lo = rows  # type: ignore[assignment]

    def into_frame_of_reference(self, v: Sequence[float]) -> np.ndarray:
        """Components of a coordinate vector in the local frame."""
        x = _vec(v)
        return np.array([float(x @ row) for row in self.v_lo])


@dataclass
class Tetrad:
    """Four basis vectors of a local frame, in coordinate components."""

    v: Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]

    def __post_init__(self) -> None:
        vectors = tuple(_vec(e) for e in self.v)
        if len(vectors) != 4:
            raise ValueError("a tetrad has four vectors")
        self.v = vectors  # type: ignore[assignment]

    @property
    def matrix(self) -> np.ndarray:
        """The tetrad as a matrix whose rows are its vectors."""
        return np.stack(self.v)

    def into_coordinate_space(self, v: Sequence[float]) -> np.ndarray:
        """The coordinate vector with local frame components ``v``."""
        x = _vec(v)
        return sum((e * x[i] for i, e in enumerate(self.v)), np.zeros(4))

    def invert(self) -> InverseTetrad:
        """The inverse of the tetrad matrix, row by row."""
        inv = np.linalg.inv(self.matrix)
        return InverseTetrad(tuple(inv[i].copy() for i in range(4)))  # type: ignore[arg-type]


def dot_metric(u: Sequence[float], v: Sequence[float], m: np.ndarray) -> float:
    """The inner product ``g(u, v)``."""
    return float(_vec(u) @ (np.asarray(m, dtype=float) @ _vec(v)))


def gram_project(u: Sequence[float], v: Sequence[float], m: np.ndarray) -> np.ndarray:
    """The projection of ``v`` onto ``u`` under the metric."""
    return (dot_metric(u, v, m) / dot_metric(u, u, m)) * _vec(u)


def normalise(v: Sequence[float], m: np.ndarray) -> np.ndarray:
    """Scale ``v`` to unit length, timelike or spacelike."""
    x = _vec(v)
    return x / math.sqrt(abs(dot_metric(x, x, m)))


def gram_schmidt(
    v0: Sequence[float], v1: Sequence[float], v2: Sequence[float], v3: Sequence[float], m: np.ndarray
) -> Tetrad:
    """Orthonormalise four vectors under the metric, in order."""
    u0 = _vec(v0)
    u1 = _vec(v1) - gram_project(u0, v1, m)
    u2 = _vec(v2) - gram_project(u0, v2, m)
    u2 = u2 - gram_project(u1, u2, m)
    u3 = _vec(v3) - gram_project(u0, v3, m)
    u3 = u3 - gram_project(u1, u3, m)
    u3 = u3 - gram_project(u2, u3, m)
    return Tetrad(tuple(normalise(u, m) for u in (u0, u1, u2, u3)))  # type: ignore[arg-type]


def local_minkowski(tetrad: Tetrad, metric: np.ndarray) -> np.ndarray:
    """The metric expressed in the tetrad's frame."""
    e = tetrad.matrix
    return e @ np.asarray(metric, dtype=float) @ e.T


def timelike_coordinate(tetrad: Tetrad, metric: np.ndarray) -> int:
    """Index of the most negative diagonal entry of the local metric, or 0."""
    minkowski = local_minkowski(tetrad, metric)
    lowest_index, lowest_value = 0, 0.0
    for i in range(4):
        if minkowski[i, i] < lowest_value:
            lowest_index, lowest_value = i, float(minkowski[i, i])
    return lowest_index


def timelike_vector(velocity: Sequence[float], tetrad: Tetrad) -> np.ndarray:
    """The four-velocity of an observer moving at ``velocity`` in the frame."""
    vel = _vec(velocity)
    speed_sq = float(vel @ vel)
    if speed_sq >= 1.0:
        raise ValueError("local velocity must be slower than light")
    lorentz = 1.0 / math.sqrt(1.0 - speed_sq)
    proper = lorentz * np.concatenate(([1.0], vel))
    return tetrad.into_coordinate_space(proper)


def boost_tetrad(velocity: Sequence[float], tetrad: Tetrad, metric: np.ndarray) -> Tetrad:
    """Lorentz boost a tetrad so that its time vector moves at ``velocity``."""
    m = np.asarray(metric, dtype=float)
    u = tetrad.v[0]
    v = timelike_vector(velocity, tetrad)
    u_l = m @ u
    v_l = m @ v
    y = -float(v_l @ u)
    boost = np.eye(4) + np.outer(v + u, v_l + u_l) / (1 + y) - 2 * np.outer(v, u_l)
    return Tetrad(tuple(boost @ e for e in tetrad.v))  # type: ignore[arg-type]


def project(u: Sequence[float], v: Sequence[float]) -> np.ndarray:
    """The Euclidean projection of ``v`` onto ``u``."""
    a, b = _vec(u), _vec(v)
    return (float(a @ b) / float(a @ a)) * a


def orthonormalise(
    i1: Sequence[float], i2: Sequence[float], i3: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Euclidean Gram-Schmidt of three 3-vectors."""
    u1 = _vec(i1)
    u2 = _vec(i2) - project(u1, i2)
    u3 = _vec(i3) - project(u1, i3)
    u3 = u3 - project(u2, u3)
    return tuple(u / np.linalg.norm(u) for u in (u1, u2, u3))  # type: ignore[return-value]


def _first_non_null(metric: np.ndarray) -> int:
    for i in range(4):
        length = metric[i, i]
        if not (-_APPROX_ZERO <= length < _APPROX_ZERO):
            return i
    raise ValueError("the metric has no nonzero diagonal component")


def _swapped(items: list, i: int, j: int) -> list:
    out = list(items)
    out[i], out[j] = out[j], out[i]
    return out


def initial_tetrads(
    position: Sequence[float], local_velocity: Sequence[float], metric: MetricLike
) -> Tetrad:
    """An oriented, boosted orthonormal frame at ``position``.

    ``metric`` is either the 4x4 metric at the position or a function that
    returns it for a position.
    """
    pos = _vec(position)
    m = np.asarray(metric(pos) if callable(metric) else metric, dtype=float)
    if m.shape != (4, 4):
        raise ValueError("the metric must be a 4x4 matrix")

    basis = [row.copy() for row in np.eye(4)]
    first = _first_non_null(m)
    ordered = _swapped(basis, 0, first)

    tetrads = gram_schmidt(*ordered, m)

    arranged = _swapped(list(tetrads.v), 0, first)
    timelike = timelike_coordinate(tetrads, m)
    arranged = _swapped(arranged, 0, timelike)
    tet = Tetrad(tuple(arranged))  # type: ignore[arg-type]

    itet = tet.invert()
    lx = itet.into_frame_of_reference([0, 1, 0, 0])
    ly = itet.into_frame_of_reference([0, 0, 1, 0])
    lz = itet.into_frame_of_reference([0, 0, 0, 1])

    ortho = orthonormalise(ly[1:], lx[1:], lz[1:])

    x_basis = np.concatenate(([0.0], ortho[1]))
    y_basis = np.concatenate(([0.0], ortho[0]))
    z_basis = np.concatenate(([0.0], ortho[2]))

    oriented = Tetrad(
        (
            tet.v[0],
            tet.into_coordinate_space(x_basis),
            tet.into_coordinate_space(y_basis),
            tet.into_coordinate_space(z_basis),
        )
    )

    return boost_tetrad(local_velocity, oriented, m)


def rotate_by_quaternion(v: Sequence[float], q: Sequence[float]) -> np.ndarray:
    """Rotate a 3-vector by a unit quaternion stored as (x, y, z, w)."""
    x = _vec(v)
    quat = _vec(q)
    qv, w = quat[:3], quat[3]
    t = 2.0 * np.cross(qv, x)
    return x + w * t + np.cross(qv, t)


def ray_through_pixel(
    screen_position: Sequence[int],
    screen_size: Sequence[int],
    fov_degrees: float,
    camera_quat: Sequence[float],
) -> np.ndarray:
    """Unit direction of the camera ray through a pixel, rotated by the camera."""
    sx, sy = int(screen_position[0]), int(screen_position[1])
    width, height = int(screen_size[0]), int(screen_size[1])
    fov_rad = (fov_degrees / 360.0) * 2 * math.pi
    f_stop = (width // 2) / math.tan(fov_rad / 2)
    direction = np.array([float(sx - width // 2), float(sy - height // 2), f_stop])
    direction = rotate_by_quaternion(direction, camera_quat)
    return direction / np.linalg.norm(direction)


def make_lightlike_geodesic(
    position: Sequence[float], direction: Sequence[float], tetrad: Tetrad
) -> Geodesic:
    """A light ray leaving ``position`` backwards in time along ``direction``."""
    return _make_lightlike_geodesic(position, direction, tetrad)