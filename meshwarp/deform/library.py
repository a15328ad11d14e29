"""
Per-vertex deformation functions.

Every function has the signature

    fn(vertices: (n,3) ndarray, params, bounds: (min_xyz, max_xyz)) -> (n,3) ndarray

and is pure: the input array is not modified and the output depends only on
the arguments. Anything derived from the mesh extent (center, ranges, radius)
comes from `bounds`, which is a snapshot of the whole geometry; this is what
makes a chunk of the buffer deform exactly like the same rows of the full
buffer.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

from .hashing import fract_hash, value_noise
from .params import (
    BendParams,
    BoundaryParams,
    HyperParams,
    IDWParams,
    InflateParams,
    NoiseParams,
    PixelateParams,
    RippleParams,
    SineParams,
    TransformParams,
    TwistParams,
    UnsupportedTransformError,
    WarpParams,
)

logger = logging.getLogger(__name__)

Bounds = Tuple[np.ndarray, np.ndarray]
VertexTransform = Callable[[np.ndarray, TransformParams, Bounds], np.ndarray]

EPS = 1e-12
MIN_IDW_DISTANCE = 1e-3

_AXES = "xyz"


def axis_mask(axis: str) -> np.ndarray:
    """'all' | any combination of x/y/z -> boolean mask of shape (3,)."""
    a = (axis or "").lower()
    if a == "all":
        return np.ones(3, dtype=bool)
    return np.array([c in a for c in _AXES], dtype=bool)


def axis_list(axis: str) -> List[int]:
    """Ordered axis indices for sequential transforms; defaults to y."""
    a = (axis or "y").lower()
    if a == "all":
        return [0, 1, 2]
    out = [i for i, c in enumerate(_AXES) if c in a]
    return out or [1]


def axis_index(axis: str) -> int:
    a = (axis or "x").lower()[:1]
    return _AXES.index(a) if a in _AXES else 0


def _as_bounds(bounds: Sequence) -> Bounds:
    bmin = np.asarray(bounds[0], dtype=np.float64).reshape(3)
    bmax = np.asarray(bounds[1], dtype=np.float64).reshape(3)
    return bmin, bmax


def _nonzero(x: np.ndarray | float, floor: float = 1.0):
    """Replace exact zeros (degenerate extents) by `floor`."""
    return np.where(np.asarray(x) == 0.0, floor, x)


def _rotate_pair(v: np.ndarray, i: int, j: int, theta: np.ndarray, center: np.ndarray) -> None:
    """Rotate coordinates (i, j) of `v` in place about `center` by per-row angles."""
    a = v[:, i] - center[i]
    b = v[:, j] - center[j]
    c = np.cos(theta)
    s = np.sin(theta)
    v[:, i] = center[i] + a * c - b * s
    v[:, j] = center[j] + a * s + b * c


# ---------- Transforms ----------

def noise_shape(vertices: np.ndarray, params: NoiseParams, bounds: Bounds) -> np.ndarray:
    bmin, bmax = _as_bounds(bounds)
    center = 0.5 * (bmin + bmax)
    d = vertices - center
    length = np.linalg.norm(d, axis=1, keepdims=True)
    r = d / np.maximum(length, EPS)

    n = value_noise(d * float(params.scale), seed=int(params.seed))
    offset = (n - 0.5) * 2.0 * float(params.intensity)

    return vertices + r * offset[:, None] * axis_mask(params.axis)


def sine_shape(vertices: np.ndarray, params: SineParams, bounds: Bounds) -> np.ndarray:
    driver = vertices[:, axis_index(params.driver_axis)]
    disp = np.sin(driver * float(params.frequency)) * float(params.amplitude)
    return vertices + disp[:, None] * axis_mask(params.disp_axis)


def pixelate_shape(vertices: np.ndarray, params: PixelateParams, bounds: Bounds) -> np.ndarray:
    size = float(params.size)
    out = vertices.copy()
    if size <= 0:
        logger.warning("Pixelation skipped: cell size must be positive (got %s).", size)
        return out
    mask = axis_mask(params.axis)
    # halves round up, toward +inf
    out[:, mask] = np.floor(vertices[:, mask] / size + 0.5) * size
    return out


def idw_shape(vertices: np.ndarray, params: IDWParams, bounds: Bounds) -> np.ndarray:
    """Shepard-style displacement toward (weight > 0) or away from control points."""
    points = np.asarray(params.control_points, dtype=np.float64).reshape(-1, 3)
    if points.shape[0] == 0:
        logger.warning("No control points provided for IDW deformation.")
        return vertices.copy()

    weight = float(params.weight)
    factor = np.sign(weight) * abs(weight) * float(params.scale)
    power = float(params.power)

    total = np.zeros_like(vertices)
    for p in points:
        delta = p - vertices
        dist = np.maximum(np.linalg.norm(delta, axis=1), MIN_IDW_DISTANCE)
        total += delta * (factor / (dist ** power) / dist)[:, None]
    return vertices + total


def inflate_shape(vertices: np.ndarray, params: InflateParams, bounds: Bounds) -> np.ndarray:
    bmin, bmax = _as_bounds(bounds)
    center = 0.5 * (bmin + bmax)
    max_radius = float(_nonzero(np.max(bmax - bmin) * 0.5))
    d = vertices - center
    dist = np.linalg.norm(d, axis=1)
    scale = 1.0 + float(params.amount) * (dist / max_radius)
    return center + d * scale[:, None]


_TWIST_PAIRS = {0: (1, 2), 1: (0, 2), 2: (0, 1)}
_BEND_PAIRS = {0: (0, 1), 1: (1, 2), 2: (0, 2)}


def _axial_t(v: np.ndarray, axis: int, bmin: np.ndarray, bmax: np.ndarray) -> np.ndarray:
    rng = float(_nonzero(bmax[axis] - bmin[axis]))
    return (v[:, axis] - bmin[axis]) / rng - 0.5


def twist_shape(vertices: np.ndarray, params: TwistParams, bounds: Bounds) -> np.ndarray:
    bmin, bmax = _as_bounds(bounds)
    center = 0.5 * (bmin + bmax)
    angle = np.deg2rad(float(params.angle))
    out = vertices.copy()
    for axis in axis_list(params.axis):
        theta = _axial_t(out, axis, bmin, bmax) * angle
        i, j = _TWIST_PAIRS[axis]
        _rotate_pair(out, i, j, theta, center)
    return out


def bend_shape(vertices: np.ndarray, params: BendParams, bounds: Bounds) -> np.ndarray:
    bmin, bmax = _as_bounds(bounds)
    center = 0.5 * (bmin + bmax)
    angle_scale = float(params.strength) * np.pi
    out = vertices.copy()
    for axis in axis_list(params.axis):
        theta = _axial_t(out, axis, bmin, bmax) * angle_scale
        i, j = _BEND_PAIRS[axis]
        _rotate_pair(out, i, j, theta, center)
    return out


def ripple_shape(vertices: np.ndarray, params: RippleParams, bounds: Bounds) -> np.ndarray:
    bmin, bmax = _as_bounds(bounds)
    center = 0.5 * (bmin + bmax)
    amp = float(params.amplitude)
    freq = float(params.frequency)
    out = vertices.copy()
    for axis in axis_list(params.axis):
        i, j = _TWIST_PAIRS[axis]
        r = np.hypot(out[:, i] - center[i], out[:, j] - center[j])
        out[:, axis] += np.sin(r * freq) * amp
    return out


def warp_shape(vertices: np.ndarray, params: WarpParams, bounds: Bounds) -> np.ndarray:
    k = float(params.strength)
    s = float(params.scale)
    x, y, z = vertices[:, 0], vertices[:, 1], vertices[:, 2]
    return np.stack(
        [x + np.sin(y * s) * k, y + np.sin(z * s) * k, z + np.sin(x * s) * k],
        axis=1,
    )


def hyper_shape(vertices: np.ndarray, params: HyperParams, bounds: Bounds) -> np.ndarray:
    bmin, bmax = _as_bounds(bounds)
    amount = float(params.amount)
    out = vertices.copy()
    if abs(amount) < 1e-6:
        # sinh(t a) / sinh(a) -> t as a -> 0
        return out
    denom = np.sinh(amount)
    for axis in axis_list(params.axis):
        rng = float(_nonzero(bmax[axis] - bmin[axis]))
        mid = 0.5 * (bmin[axis] + bmax[axis])
        t = (out[:, axis] - mid) / rng
        out[:, axis] = mid + np.sinh(t * amount) / denom * rng
    return out


def boundary_shape(vertices: np.ndarray, params: BoundaryParams, bounds: Bounds) -> np.ndarray:
    bmin, bmax = _as_bounds(bounds)
    eps = (bmax - bmin) * float(params.threshold)
    near = (np.abs(vertices - bmin) < eps) | (np.abs(vertices - bmax) < eps)
    near = near.any(axis=1)

    out = vertices.copy()
    if not near.any():
        return out
    r = (fract_hash(vertices[near]) - 0.5) * 2.0
    out[near] += (r * float(params.jitter))[:, None]
    return out


VERTEX_TRANSFORMS: Dict[str, VertexTransform] = {
    "noise": noise_shape,
    "sine": sine_shape,
    "pixel": pixelate_shape,
    "idw": idw_shape,
    "inflate": inflate_shape,
    "twist": twist_shape,
    "bend": bend_shape,
    "ripple": ripple_shape,
    "warp": warp_shape,
    "hyper": hyper_shape,
    "boundary": boundary_shape,
}


def apply_vertex_transform(kind: str, vertices: np.ndarray, params: TransformParams, bounds: Bounds) -> np.ndarray:
    """Dispatch by kind; this is also what every worker runs on its chunk."""
    fn = VERTEX_TRANSFORMS.get(kind)
    if fn is None:
        raise UnsupportedTransformError(kind)
    v = np.ascontiguousarray(vertices, dtype=np.float64).reshape(-1, 3)
    return fn(v, params, bounds)
