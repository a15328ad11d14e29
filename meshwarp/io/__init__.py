from .stl import decode_stl, encode_stl, load_stl, save_stl, geometry_from_trimesh
from .meshio_bridge import load_meshio, save_meshio, geometry_from_meshio

__all__ = [
    "decode_stl",
    "encode_stl",
    "load_stl",
    "save_stl",
    "geometry_from_trimesh",
    "load_meshio",
    "save_meshio",
    "geometry_from_meshio",
]
