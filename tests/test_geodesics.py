import math

import numpy as np
import pytest

from spacetime_kernels.geodesics import (
    RAY_ESCAPED,
    RAY_TRAPPED,
    RAY_UNFINISHED,
    EulerIntegrator,
    VerletIntegrator,
    acceleration_to_precision,
    ct_timestep,
    geodesic_acceleration,
    get_zp1,
    pack_metric,
    unpack_metric,
    trace_ray,
)
from spacetime_kernels.schwarzschild import christoffel_symbols, schwarzschild_metric


def free_dX(x, v, st):
    return v


def free_dV(x, v, st):
    return np.zeros_like(v)


def spring_dV(x, v, st):
    return -x


def no_state(x):
    return None


def identity(v, st):
    return v


def const_step(value):
    return lambda x, v, a, st: value


def test_verlet_start_free_motion():
    ctx = VerletIntegrator()
    ctx.start([0, 0, 0], [1, 2, 3], free_dX, free_dV, const_step(0.5), no_state)
    np.testing.assert_allclose(ctx.position, [0.5, 1.0, 1.5])
    np.testing.assert_allclose(ctx.velocity, [1, 2, 3])
    assert ctx.ds == 0.5


def test_verlet_next_free_motion_is_linear():
    ctx = VerletIntegrator()
    ctx.start([1, 1, 1], [1, 0, 0], free_dX, free_dV, const_step(0.25), no_state)
    for _ in range(4):
        d = ctx.next(free_dX, free_dV, const_step(0.25), no_state, identity)
        np.testing.assert_allclose(d, [1, 0, 0])
    np.testing.assert_allclose(ctx.position, [1 + 5 * 0.25, 1, 1])


def test_verlet_conserves_oscillator_energy():
    ctx = VerletIntegrator()
    ctx.start([1.0], [0.0], free_dX, spring_dV, const_step(0.01), no_state)
    for _ in range(2000):
        ctx.next(free_dX, spring_dV, const_step(0.01), no_state, identity)
    energy = 0.5 * ctx.position[0] ** 2 + 0.5 * ctx.velocity[0] ** 2
    assert energy == pytest.approx(0.5, abs=1e-2)


def test_verlet_next_before_start_raises():
    with pytest.raises(RuntimeError):
        VerletIntegrator().next(free_dX, free_dV, const_step(1), no_state, identity)


def test_verlet_applies_velocity_constraint():
    ctx = VerletIntegrator()
    ctx.start([0, 0, 0], [3, 0, 0], free_dX, free_dV, const_step(1.0), no_state)
    ctx.next(free_dX, free_dV, const_step(1.0), no_state, lambda v, st: v / np.linalg.norm(v))
    np.testing.assert_allclose(ctx.velocity, [1, 0, 0])
    np.testing.assert_allclose(ctx.position, [4, 0, 0])


def test_euler_free_motion():
    ctx = EulerIntegrator()
    ctx.start([0, 0], [2, -1], free_dX, free_dV, const_step(0.5), no_state)
    d = ctx.next(free_dX, free_dV, const_step(0.5), no_state, identity)
    np.testing.assert_allclose(d, [2, -1])
    np.testing.assert_allclose(ctx.position, [1, -0.5])
    np.testing.assert_allclose(ctx.velocity, [2, -1])


def test_euler_postprocess_applies_after_acceleration():
    ctx = EulerIntegrator()
    ctx.start([1.0], [1.0], free_dX, spring_dV, const_step(0.5), no_state)
    ctx.next(free_dX, spring_dV, const_step(0.5), no_state, lambda v, st: 2 * v)
    np.testing.assert_allclose(ctx.position, [1.5])
    np.testing.assert_allclose(ctx.velocity, [2.0 - 0.5])


def test_euler_next_before_start_raises():
    with pytest.raises(RuntimeError):
        EulerIntegrator().next(free_dX, free_dV, const_step(1), no_state, identity)


def test_ct_timestep_limits():
    assert ct_timestep(1.0) == pytest.approx(1.0)
    assert ct_timestep(0.0) == pytest.approx(0.1)


def test_ct_timestep_monotonic():
    values = [ct_timestep(w) for w in np.linspace(0, 1, 21)]
    assert all(a <= b for a, b in zip(values, values[1:]))


def test_acceleration_to_precision():
    assert acceleration_to_precision([0, 0, 0, 100], 0.0002) == pytest.approx(math.sqrt(0.0002))
    small = acceleration_to_precision([0, 1, 0, 0], 0.0002)
    large = acceleration_to_precision([0, 10, 0, 0], 0.0002)
    assert large < small


def test_geodesic_acceleration_matches_schwarzschild():
    pos = np.array([0.0, 5.0, 1.2, 0.3])
    vel = np.array([1.0, -0.3, 0.01, 0.02])
    gamma = christoffel_symbols(pos, schwarzschild_metric)
    expected = -np.einsum("mab,a,b->m", gamma, vel, vel)
    np.testing.assert_allclose(geodesic_acceleration(vel, gamma), expected)


def test_geodesic_acceleration_flat_is_zero():
    np.testing.assert_allclose(geodesic_acceleration([1, 2, 3, 4], np.zeros((4, 4, 4))), 0)


def test_get_zp1_identical_is_one():
    metric = lambda p: np.diag([-1.0, 1.0, 1.0, 1.0])
    v = [1.0, 0.5, 0.0, 0.0]
    ref = [1.0, 0.0, 0.0, 0.0]
    assert get_zp1([0, 0, 0, 0], v, ref, [0, 1, 0, 0], v, ref, metric) == pytest.approx(1.0)


def test_get_zp1_ratio():
    metric = lambda p: np.diag([-1.0, 1.0, 1.0, 1.0])
    ref = [1.0, 0.0, 0.0, 0.0]
    zp1 = get_zp1([0] * 4, [1, 0, 0, 0], ref, [0] * 4, [2, 0, 0, 0], ref, metric)
    assert zp1 == pytest.approx(2.0)


def test_pack_unpack_round_trip():
    rng = np.random.default_rng(3)
    a = rng.normal(size=(4, 4))
    m = a + a.T
    packed = pack_metric(m)
    assert packed.shape == (10,)
    np.testing.assert_allclose(unpack_metric(packed), m)


def test_pack_order():
    m = np.arange(16, dtype=float).reshape(4, 4)
    m = m + m.T
    packed = pack_metric(m)
    assert packed[0] == m[0, 0]
    assert packed[1] == m[1, 0]
    assert packed[9] == m[3, 3]


def test_pack_unpack_errors():
    with pytest.raises(ValueError):
        pack_metric(np.eye(3))
    with pytest.raises(ValueError):
        unpack_metric([1.0] * 9)


def test_trace_ray_escapes():
    result, pos, vel = trace_ray([0, 0, 0], [1, 0, 0], free_dX, free_dV, const_step(1.0), no_state, 5, 100)
    assert result == RAY_ESCAPED
    assert pos[0] > 5


def test_trace_ray_unfinished():
    result, pos, _ = trace_ray([0, 0, 0], [1, 0, 0], free_dX, free_dV, const_step(1.0), no_state, 50, 2)
    assert result == RAY_UNFINISHED
    np.testing.assert_allclose(pos, [3, 0, 0])


def test_trace_ray_trapped_when_stuck():
    result, _, _ = trace_ray([0, 0, 0], [0, 0, 0], free_dX, free_dV, const_step(1.0), no_state, 50, 10)
    assert result == RAY_TRAPPED


def test_trace_ray_trapped_when_non_finite():
    result, _, _ = trace_ray(
        [0, 0, 0], [np.nan, 0, 0], free_dX, free_dV, const_step(1.0), no_state, 50, 10
    )
    assert result == RAY_TRAPPED


def test_trace_ray_four_vectors_use_spatial_part():
    result, pos, _ = trace_ray(
        [100.0, 0, 0, 0], [1, 0, 1, 0], free_dX, free_dV, const_step(1.0), no_state, 3, 50
    )
    assert result == RAY_ESCAPED
    assert pos[2] > 3


def test_trace_ray_negative_steps():
    with pytest.raises(ValueError):
        trace_ray([0, 0, 0], [1, 0, 0], free_dX, free_dV, const_step(1.0), no_state, 5, -1)