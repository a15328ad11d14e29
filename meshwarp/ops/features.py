from __future__ import annotations

import numpy as np

from meshwarp.core.buffer import GeometryBuffer


def _cross(tris: np.ndarray) -> np.ndarray:
    return np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])


def compute_face_areas(geometry: GeometryBuffer) -> np.ndarray:
    if geometry.n_faces == 0:
        return np.zeros(0)
    return 0.5 * np.linalg.norm(_cross(geometry.triangles()), axis=1)


def compute_face_normals(geometry: GeometryBuffer) -> np.ndarray:
    """Unit face normals (M,3); degenerate faces get a zero normal."""
    if geometry.n_faces == 0:
        return np.zeros((0, 3))
    n = _cross(geometry.triangles())
    length = np.linalg.norm(n, axis=1, keepdims=True)
    return np.divide(n, length, out=np.zeros_like(n), where=length > 0)


def compute_vertex_normals(geometry: GeometryBuffer) -> np.ndarray:
    """
    Area-weighted vertex normals (N,3).

    For a triangle soup each vertex belongs to one triangle, so this is the
    flat face normal repeated per corner.
    """
    normals = np.zeros_like(geometry.vertices)
    if geometry.n_faces == 0:
        return normals
    faces = geometry.face_indices()
    weighted = _cross(geometry.triangles())
    for k in range(3):
        np.add.at(normals, faces[:, k], weighted)
    length = np.linalg.norm(normals, axis=1, keepdims=True)
    return np.divide(normals, length, out=np.zeros_like(normals), where=length > 0)


def ensure_vertex_normals(geometry: GeometryBuffer) -> GeometryBuffer:
    """Attach vertex normals when missing, mis-sized or not finite."""
    n = geometry.normals
    if n is None or n.shape != geometry.vertices.shape or not np.isfinite(n).all() or np.abs(n).sum() < 1e-6:
        geometry.normals = compute_vertex_normals(geometry)
    return geometry


def center_geometry(geometry: GeometryBuffer) -> GeometryBuffer:
    """Translate in place so the bounding-box center sits at the origin."""
    geometry.vertices -= geometry.center()[None, :]
    geometry.update_bounds()
    return geometry
