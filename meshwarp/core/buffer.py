from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np


class BufferLayout(str, Enum):
    """How triangles are encoded in a GeometryBuffer."""
    INDEXED = "indexed"
    TRIANGLE_SOUP = "triangle_soup"


def _bounds_of(vertices: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    if vertices.shape[0] == 0:
        return np.zeros(3), np.zeros(3)
    return vertices.min(axis=0), vertices.max(axis=0)


@dataclass
class GeometryBuffer:
    """
    Triangle mesh buffer shared by every stage of the deformation engine.

    vertices: (N,3) float64
    faces:    (M,3) integer index triples, or None for a triangle soup
              (every 3 consecutive vertices form a triangle)
    normals:  (N,3) per-vertex normals, optional

    The integer dtype of `faces` is kept as given (uint16/uint32/int64...),
    so index element width survives a round trip through the worker pool.
    `bounds` is recomputed on construction and by update_bounds().
    """
    vertices: np.ndarray
    faces: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None
    bounds: Tuple[np.ndarray, np.ndarray] = field(init=False)
    layout: BufferLayout = field(init=False)

    def __post_init__(self):
        v = np.ascontiguousarray(self.vertices, dtype=np.float64)
        if v.size == 0:
            v = v.reshape(0, 3)
        if v.ndim != 2 or v.shape[1] != 3:
            raise ValueError(f"vertices must have shape (N,3), got {v.shape}")
        self.vertices = v

        if self.faces is not None:
            f = np.ascontiguousarray(self.faces)
            if f.size == 0:
                f = f.reshape(0, 3)
            if not np.issubdtype(f.dtype, np.integer):
                raise TypeError(f"faces must be an integer array, got {f.dtype}")
            if f.ndim != 2 or f.shape[1] != 3:
                raise ValueError(f"faces must have shape (M,3), got {f.shape}")
            if f.size and (int(f.min()) < 0 or int(f.max()) >= v.shape[0]):
                raise ValueError(
                    f"face index out of range for {v.shape[0]} vertices "
                    f"(min={int(f.min())}, max={int(f.max())})"
                )
            self.faces = f

        if self.normals is not None:
            self.normals = np.ascontiguousarray(self.normals, dtype=np.float64)

        self.layout = BufferLayout.TRIANGLE_SOUP if self.faces is None else BufferLayout.INDEXED
        self.update_bounds()

    # -------------------------
    # Introspection
    # -------------------------
    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def n_faces(self) -> int:
        if self.faces is not None:
            return int(self.faces.shape[0])
        return self.n_vertices // 3

    @property
    def is_indexed(self) -> bool:
        return self.layout is BufferLayout.INDEXED

    def update_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        self.bounds = _bounds_of(self.vertices)
        return self.bounds

    def bbox_size(self) -> np.ndarray:
        return self.bounds[1] - self.bounds[0]

    def center(self) -> np.ndarray:
        return 0.5 * (self.bounds[0] + self.bounds[1])

    def diagonal(self) -> float:
        return float(np.linalg.norm(self.bbox_size()))

    def summary(self) -> Dict[str, Any]:
        return {
            "n_vertices": self.n_vertices,
            "n_faces": self.n_faces,
            "layout": self.layout.value,
            "index_dtype": None if self.faces is None else str(self.faces.dtype),
            "bounds": (self.bounds[0].tolist(), self.bounds[1].tolist()),
        }

    # -------------------------
    # Conversions
    # -------------------------
    def triangles(self) -> np.ndarray:
        """(M,3,3) corner positions of every triangle."""
        if self.faces is not None:
            return self.vertices[self.faces]
        if self.n_vertices % 3:
            raise ValueError(f"triangle soup needs a multiple of 3 vertices, got {self.n_vertices}")
        return self.vertices.reshape(-1, 3, 3)

    def to_non_indexed(self) -> "GeometryBuffer":
        if self.faces is None:
            return self.copy()
        normals = None if self.normals is None else self.normals[self.faces].reshape(-1, 3)
        return GeometryBuffer(vertices=self.triangles().reshape(-1, 3), normals=normals)

    def face_indices(self) -> np.ndarray:
        """Index triples for both layouts (arange for a soup)."""
        if self.faces is not None:
            return self.faces
        return np.arange(self.n_faces * 3, dtype=np.int64).reshape(-1, 3)

    def with_vertices(self, vertices: np.ndarray) -> "GeometryBuffer":
        """Same topology (index buffer copied verbatim), new positions, no normals."""
        return GeometryBuffer(
            vertices=vertices,
            faces=None if self.faces is None else self.faces.copy(),
        )

    def copy(self) -> "GeometryBuffer":
        return GeometryBuffer(
            vertices=self.vertices.copy(),
            faces=None if self.faces is None else self.faces.copy(),
            normals=None if self.normals is None else self.normals.copy(),
        )
