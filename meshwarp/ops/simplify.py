from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from meshwarp.core.buffer import GeometryBuffer

logger = logging.getLogger(__name__)

DEGENERATE_AREA2 = 1e-12
VOXEL_MIN_FRACTION = 1e-4
VOXEL_MAX_FRACTION = 0.25


@dataclass
class PreprocessSpec:
    """
    Optional simplification pass run before a transform.

    decimate:      percent of vertices to keep (100 -> off)
    merge_epsilon: vertex welding grid size (0 -> off)
    """
    decimate: float = 100.0
    merge_epsilon: float = 0.0

    @property
    def enabled(self) -> bool:
        return self.decimate < 100 or self.merge_epsilon > 0


def _first_occurrence_unique(keys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Deduplicate rows of `keys` keeping first-occurrence order.

    Returns (first_index_per_group, group_id_per_row).
    """
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)
    order = np.argsort(first, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.shape[0])
    return first[order], rank[inverse]


def _non_degenerate(vertices: np.ndarray, faces: np.ndarray, area2_eps: float) -> np.ndarray:
    a, b, c = faces[:, 0], faces[:, 1], faces[:, 2]
    distinct = (a != b) & (b != c) & (c != a)
    tris = vertices[faces]
    n = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    return distinct & (np.einsum("ij,ij->i", n, n) > area2_eps)


def decimate(geometry: GeometryBuffer, keep_percent: float) -> GeometryBuffer:
    """
    Voxel-cluster decimation.

    - voxel size from the target vertex count and the bounding volume
      (cbrt(volume / target)), clamped to [diag*1e-4, diag*0.25] and snapped
      to diag*1e-4 * 2**k
    - vertices sharing a voxel collapse to their centroid
    - faces whose corners share a cluster, or whose area vanishes, are dropped

    If no face survives the input is returned unchanged (with a warning).
    """
    n = geometry.n_vertices
    if n < 3:
        return geometry

    keep_ratio = max(0.1, min(1.0, float(keep_percent) / 100.0))
    if keep_ratio >= 0.999:
        return geometry

    bmin, _ = geometry.bounds
    size = geometry.bbox_size()
    volume = max(1e-9, float(np.prod(size)))
    target = max(4, int(np.floor(n * keep_ratio)))
    voxel = np.cbrt(volume / target)

    diag = geometry.diagonal() or 1.0
    voxel = min(max(voxel, diag * VOXEL_MIN_FRACTION), diag * VOXEL_MAX_FRACTION)

    # voxel = base * 2**level on a grid anchored at bmin: every coarser cell is a
    # union of finer ones, so fewer kept percent never means more clusters
    base = diag * VOXEL_MIN_FRACTION
    max_level = int(np.floor(np.log2(VOXEL_MAX_FRACTION / VOXEL_MIN_FRACTION)))
    level = min(max(int(np.floor(np.log2(voxel / base) + 0.5)), 0), max_level)
    voxel = base * 2.0 ** level

    keys = np.floor((geometry.vertices - bmin) / voxel).astype(np.int64)
    first, cluster = _first_occurrence_unique(keys)
    n_clusters = first.shape[0]

    counts = np.bincount(cluster, minlength=n_clusters).astype(np.float64)
    centroids = np.stack(
        [np.bincount(cluster, weights=geometry.vertices[:, k], minlength=n_clusters) for k in range(3)],
        axis=1,
    ) / counts[:, None]

    faces = cluster[geometry.face_indices()]
    faces = faces[_non_degenerate(centroids, faces, DEGENERATE_AREA2)]

    if faces.shape[0] == 0:
        logger.warning("Decimation removed all faces; returning original geometry.")
        return geometry

    logger.debug("Decimated %d -> %d vertices (voxel=%.6g)", n, n_clusters, voxel)
    return GeometryBuffer(vertices=centroids, faces=faces)


def weld_vertices(geometry: GeometryBuffer, epsilon: float) -> GeometryBuffer:
    """
    Merge vertices that quantize to the same epsilon grid cell.

    The first vertex of each cell is kept as-is; indices are remapped.
    Normals are not recomputed.
    """
    if geometry.n_vertices == 0 or epsilon <= 0:
        return geometry

    keys = np.floor(geometry.vertices / float(epsilon) + 0.5).astype(np.int64)
    first, remap = _first_occurrence_unique(keys)
    faces = remap[geometry.face_indices()]
    logger.debug("Welded %d -> %d vertices (eps=%g)", geometry.n_vertices, first.shape[0], epsilon)
    return GeometryBuffer(vertices=geometry.vertices[first], faces=faces)


def preprocess(geometry: GeometryBuffer, spec: Optional[PreprocessSpec]) -> GeometryBuffer:
    """Decimate then weld, starting from a triangle soup. A disabled spec is a no-op."""
    if spec is None or not spec.enabled:
        return geometry

    g = geometry.to_non_indexed()
    if spec.decimate < 100:
        g = decimate(g, spec.decimate)
    if spec.merge_epsilon > 0:
        g = weld_vertices(g, spec.merge_epsilon)
    return g
