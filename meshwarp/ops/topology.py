"""
Topology-changing operators.

These change the triangle count, so they run synchronously on the whole
mesh and never go through the worker pool. Both return triangle soups.
"""
from __future__ import annotations

import logging

import numpy as np

from meshwarp.core.buffer import GeometryBuffer
from meshwarp.deform.hashing import fract_hash

logger = logging.getLogger(__name__)

EDGE_MARGIN = 0.02
MAX_SUBDIV_STEPS = 2
MAX_MENGER_ITERATIONS = 5


def _split4(tris: np.ndarray) -> np.ndarray:
    a, b, c = tris[:, 0], tris[:, 1], tris[:, 2]
    ab = 0.5 * (a + b)
    bc = 0.5 * (b + c)
    ca = 0.5 * (c + a)
    out = np.stack(
        [
            np.stack([a, ab, ca], axis=1),
            np.stack([ab, b, bc], axis=1),
            np.stack([ca, bc, c], axis=1),
            np.stack([ab, bc, ca], axis=1),
        ],
        axis=1,
    )
    return out.reshape(-1, 3, 3)


def tessellate(geometry: GeometryBuffer, steps: int = 1) -> GeometryBuffer:
    """1-to-4 midpoint subdivision repeated `steps` times (x4 triangles per step)."""
    tris = geometry.triangles()
    for _ in range(max(0, int(steps))):
        if tris.shape[0] == 0:
            break
        tris = _split4(tris)
    return GeometryBuffer(vertices=tris.reshape(-1, 3))


def menger_mask(points01: np.ndarray, iterations: int) -> np.ndarray:
    """
    True where a point of the unit cube survives `iterations` Menger levels.

    A cell of the 3x3x3 split is removed when two of its three base-3 digits
    equal 1. Digits come from integer cube coordinates, so deep levels do not
    accumulate floating-point error.
    """
    iters = max(1, min(MAX_MENGER_ITERATIONS, int(iterations)))
    res = 3 ** iters
    q = np.clip(np.floor(points01 * res).astype(np.int64), 0, res - 1)

    alive = np.ones(points01.shape[0], dtype=bool)
    for level in range(iters):
        digits = (q // 3 ** (iters - 1 - level)) % 3
        alive &= (digits == 1).sum(axis=1) < 2
    return alive


def menger_carve(geometry: GeometryBuffer, iterations: int = 1, keep_ratio: float = 0.7) -> GeometryBuffer:
    """
    Carve Menger-sponge holes by dropping triangles.

    - tessellates 1..2 steps first for resolution
    - triangles touching the outer 2% of the bounding box are always kept
    - a triangle is kept if any corner lies in a surviving Menger cell
    - otherwise it is kept when a hash of its centroid is below keep_ratio
    """
    steps = max(1, min(MAX_SUBDIV_STEPS, int(iterations)))
    geom = tessellate(geometry, steps)
    if geom.n_faces == 0:
        return geom

    bmin, bmax = geom.bounds
    size = bmax - bmin
    size = np.where(size == 0.0, 1.0, size)
    edge = size * EDGE_MARGIN

    tris = geom.triangles()
    corners = tris.reshape(-1, 3)

    near = ((corners - bmin) < edge) | ((bmax - corners) < edge)
    near_tri = near.any(axis=1).reshape(-1, 3).any(axis=1)

    unit = np.clip((corners - bmin) / size, 0.0, 0.999999)
    inside_tri = menger_mask(unit, iterations).reshape(-1, 3).any(axis=1)

    ratio = min(1.0, max(0.0, float(keep_ratio)))
    lucky = fract_hash(tris.mean(axis=1)) < ratio if ratio > 0 else np.zeros(tris.shape[0], dtype=bool)

    kept = tris[near_tri | inside_tri | lucky]
    if kept.shape[0] == 0:
        logger.warning("Menger carving removed all faces; returning tessellated geometry.")
        return geom

    logger.debug("Menger carve kept %d / %d triangles", kept.shape[0], tris.shape[0])
    return GeometryBuffer(vertices=kept.reshape(-1, 3))
