"""
Single entry point that runs one transform end to end.

preprocess -> (IDW control points) -> worker pool or topology operator
-> pixelate cleanup. Normals are left to the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

import numpy as np

from meshwarp.deform.params import IDWParams, TransformParams, build_params
from meshwarp.ops.simplify import PreprocessSpec, preprocess
from meshwarp.ops.topology import menger_carve, tessellate
from meshwarp.parallel.pool import WorkerPool
from meshwarp.sample.control_points import generate_control_points, parse_control_points
from meshwarp.sample.raycast import RayIntersector

from .buffer import GeometryBuffer
from .registry import get_transform

logger = logging.getLogger(__name__)

PIXEL_AREA2_EPS = 1e-10


def resolve_control_points(
    geometry: GeometryBuffer,
    params: IDWParams,
    intersector: Optional[RayIntersector] = None,
) -> np.ndarray:
    """Explicit points, then parsed manual text, then the Poisson sampler."""
    if params.control_points:
        return np.asarray(params.control_points, dtype=np.float64).reshape(-1, 3)
    if params.manual_points:
        pts = parse_control_points(params.points_text)
        if pts.shape[0]:
            logger.info("Using %d manual control points", pts.shape[0])
            return pts
        logger.info("No valid manual control points; sampling instead")
    return generate_control_points(geometry, params, intersector)


def remove_degenerate_triangles(
    geometry: GeometryBuffer, area2_eps: float = PIXEL_AREA2_EPS
) -> Optional[GeometryBuffer]:
    """
    Drop zero-area triangles.

    Indexed buffers lose faces (vertices are kept); soups lose corner triples.
    Returns None when nothing survives.
    """
    if geometry.n_faces == 0:
        return None
    tris = geometry.triangles()
    n = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    keep = np.einsum("ij,ij->i", n, n) > area2_eps
    if geometry.faces is not None:
        f = geometry.faces
        keep &= (f[:, 0] != f[:, 1]) & (f[:, 1] != f[:, 2]) & (f[:, 2] != f[:, 0])

    if not keep.any():
        return None
    if keep.all():
        return geometry
    if geometry.faces is not None:
        return GeometryBuffer(vertices=geometry.vertices, faces=geometry.faces[keep])
    return GeometryBuffer(vertices=tris[keep].reshape(-1, 3))


def apply_transform(
    kind: str,
    params: TransformParams | Mapping[str, Any] | None,
    geometry: GeometryBuffer,
    preprocessing: Optional[PreprocessSpec] = None,
    pool: Optional[WorkerPool] = None,
    progress: Optional[Callable[[int, int], None]] = None,
    intersector: Optional[RayIntersector] = None,
) -> GeometryBuffer:
    """
    Run `kind` on `geometry` and return a new buffer with fresh bounds.

    - unknown kinds raise UnsupportedTransformError before any work
    - vertex transforms go through `pool` (a temporary pool when None)
    - tessellate / menger run synchronously
    - every failure path leaves `geometry` untouched
    """
    entry = get_transform(kind)
    p = build_params(entry.key, params)

    working = preprocess(geometry, preprocessing)
    if working is not geometry:
        logger.info("Preprocessed: %d -> %d vertices", geometry.n_vertices, working.n_vertices)

    if isinstance(p, IDWParams):
        points = resolve_control_points(working, p, intersector)
        if points.shape[0] == 0:
            logger.warning("No control points available for IDW; geometry unchanged.")
            return working.copy()
        p = p.with_control_points(points)

    if not entry.uses_workers:
        if entry.key == "tessellate":
            out = tessellate(working, p.steps)  # type: ignore[attr-defined]
        else:
            out = menger_carve(working, p.iterations, p.keep_ratio)  # type: ignore[attr-defined]
        if progress is not None:
            progress(1, 1)
        return out

    if pool is None:
        with WorkerPool() as tmp:
            out = tmp.run(entry.key, p, working, progress)
    else:
        out = pool.run(entry.key, p, working, progress)

    if entry.key == "pixel":
        cleaned = remove_degenerate_triangles(out)
        if cleaned is None:
            logger.warning("Pixelation collapsed every triangle; returning input geometry.")
            return working.copy()
        if cleaned is not out:
            logger.info("Pixelate removed %d degenerate triangles", out.n_faces - cleaned.n_faces)
        out = cleaned

    out.update_bounds()
    return out
