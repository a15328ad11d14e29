from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np

from meshwarp.core.buffer import GeometryBuffer


class RayIntersector(Protocol):
    """Anything that can report hit distances of a ray against a fixed mesh."""

    def intersect(self, origin: Sequence[float], direction: Sequence[float]) -> np.ndarray:
        """Ascending distances (>= 0) along the normalized direction."""
        ...


class TriangleRayIntersector:
    """
    Brute-force Moller-Trumbore intersector (numpy, all triangles per ray).

    Hits closer together than `merge_tol` are merged, so a ray through a
    shared edge or vertex counts as a single crossing.
    """

    def __init__(self, geometry: GeometryBuffer, *, eps: float = 1e-12, merge_tol: float | None = None):
        tris = geometry.triangles() if geometry.n_faces else np.zeros((0, 3, 3))
        self.v0 = tris[:, 0]
        self.e1 = tris[:, 1] - tris[:, 0]
        self.e2 = tris[:, 2] - tris[:, 0]
        self.eps = float(eps)
        scale = max(1.0, geometry.diagonal())
        self.merge_tol = float(merge_tol) if merge_tol is not None else 1e-9 * scale

    @property
    def n_triangles(self) -> int:
        return int(self.v0.shape[0])

    def intersect(self, origin: Sequence[float], direction: Sequence[float]) -> np.ndarray:
        if self.n_triangles == 0:
            return np.zeros(0)

        o = np.asarray(origin, dtype=np.float64).reshape(3)
        d = np.asarray(direction, dtype=np.float64).reshape(3)
        norm = np.linalg.norm(d)
        if norm == 0.0:
            return np.zeros(0)
        d = d / norm

        pvec = np.cross(d, self.e2)
        det = np.einsum("ij,ij->i", self.e1, pvec)
        ok = np.abs(det) > self.eps
        inv = np.zeros_like(det)
        inv[ok] = 1.0 / det[ok]

        tvec = o - self.v0
        u = np.einsum("ij,ij->i", tvec, pvec) * inv
        qvec = np.cross(tvec, self.e1)
        v = (qvec @ d) * inv
        t = np.einsum("ij,ij->i", self.e2, qvec) * inv

        tol = 1e-10
        hit = ok & (u >= -tol) & (v >= -tol) & (u + v <= 1.0 + tol) & (t >= 0.0)
        dist = np.sort(t[hit])
        if dist.shape[0] < 2:
            return dist
        keep = np.concatenate([[True], np.diff(dist) > self.merge_tol])
        return dist[keep]
