# spacetime_kernels

Tools for tracing light backwards through curved spacetime: the
Schwarzschild metric and its geodesics, local observer frames (tetrads),
adaptive geodesic integrators, and the colour and texture handling used to
turn traced rays into pixels.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
```

## Modules

- `spacetime_kernels.schwarzschild`: the Schwarzschild metric with
  `rs = 1` in (t, r, theta, phi) (`schwarzschild_metric`), the static
  observer's tetrad (`schwarzschild_tetrad`, `Tetrad`), camera rays
  (`ray_through_pixel`, `make_lightlike_geodesic`, `Geodesic`), Christoffel
  symbols by central differences (`diff`, `christoffel_symbols`), the
  geodesic equation (`acceleration_of`, `schwarzschild_acceleration`),
  fixed-step integration (`integrate`, which returns 0 for an escaped ray,
  1 for one that fell in or became non-finite, 2 at the step limit), and
  `render_pixel`, which looks up the colour seen by a camera at r = 5 in a
  background image array of shape (height, width, channels).
- `spacetime_kernels.tetrads`: metric inner products and Gram-Schmidt
  (`dot_metric`, `gram_project`, `normalise`, `gram_schmidt`), the metric
  in a tetrad's frame (`local_minkowski`, `timelike_coordinate`), Lorentz
  boosts (`timelike_vector`, `boost_tetrad`), Euclidean orthonormalisation
  (`project`, `orthonormalise`), `initial_tetrads`, which builds an oriented
  and boosted frame from a metric or a metric function, `Tetrad` /
  `InverseTetrad`, and camera rays rotated by a quaternion
  (`rotate_by_quaternion`, `ray_through_pixel`, `make_lightlike_geodesic`).
- `spacetime_kernels.geodesics`: `VerletIntegrator` and `EulerIntegrator`
  with caller-supplied derivative, step-size and state functions,
  `ct_timestep`, `acceleration_to_precision`, `geodesic_acceleration`,
  the redshift factor `get_zp1`, packing of a symmetric 4x4 metric into ten
  components (`pack_metric`, `unpack_metric`), and `trace_ray`, which
  reports `RAY_TRAPPED`, `RAY_ESCAPED` or `RAY_UNFINISHED`.
- `spacetime_kernels.rendering`: luminance and redshift colouring
  (`energy_of`, `redshift`, `do_redshift`), sRGB conversion
  (`linear_to_srgb`, `srgb_to_linear`), background texture coordinates
  (`angle_to_tex`, `cartesian_to_spherical`, `fix_ray_position_cart`,
  `texture_coordinate`, `circular_diff`, `circular_diff2`), trilinear
  mipmap sampling (`read_mipmap`), and anisotropic filtering
  (`texture_derivatives`, `anisotropic_footprint`, which returns a
  `Footprint`).

## Example: a ray around a Schwarzschild black hole

```python
import math
from spacetime_kernels.schwarzschild import (
    schwarzschild_tetrad, ray_through_pixel, make_lightlike_geodesic, integrate,
)

camera = [0.0, 5.0, math.pi / 2, -math.pi / 2]
tetrad = schwarzschild_tetrad(camera)
direction = ray_through_pixel(500, 400, 1000, 800, 90)
geodesic = make_lightlike_geodesic(camera, [-direction[2], direction[1], direction[0]], tetrad)
result, final_position = integrate(geodesic)
```

## Example: tracing with your own equations of motion

```python
import numpy as np
from spacetime_kernels.geodesics import trace_ray, RAY_ESCAPED

outcome, position, velocity = trace_ray(
    [0.0, 0.0, 0.0, 0.0],
    [1.0, 1.0, 0.0, 0.0],
    get_dX=lambda x, v, st: v,
    get_dV=lambda x, v, st: np.zeros(4),
    get_dS=lambda x, v, a, st: 1.0,
    get_state=lambda x: None,
)
assert outcome == RAY_ESCAPED
```

## What this package does not do

It works on plain NumPy arrays on the CPU. It does not generate or run GPU
kernels, evolve a numerical-relativity grid, construct black-hole initial
data, load background images from disk, or open a window; a caller supplies
metrics, derivative functions and image arrays, and displays the results
itself.

## Running the tests

```
pytest
```