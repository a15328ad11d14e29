from .buffer import BufferLayout, GeometryBuffer
from .registry import TransformEntry, TRANSFORM_REGISTRY, get_transform, list_transforms, is_vertex_preserving
from .geometry import GeometrySpec, build_geometry, load_geometry, save_geometry

__all__ = [
    "BufferLayout",
    "GeometryBuffer",
    "TransformEntry",
    "TRANSFORM_REGISTRY",
    "get_transform",
    "list_transforms",
    "is_vertex_preserving",
    "GeometrySpec",
    "build_geometry",
    "load_geometry",
    "save_geometry",
]
