from .simplify import PreprocessSpec, decimate, weld_vertices, preprocess
from .topology import tessellate, menger_carve, menger_mask
from .features import (
    compute_face_normals,
    compute_vertex_normals,
    compute_face_areas,
    ensure_vertex_normals,
    center_geometry,
)

__all__ = [
    "PreprocessSpec",
    "decimate",
    "weld_vertices",
    "preprocess",
    "tessellate",
    "menger_carve",
    "menger_mask",
    "compute_face_normals",
    "compute_vertex_normals",
    "compute_face_areas",
    "ensure_vertex_normals",
    "center_geometry",
]
