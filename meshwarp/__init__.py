# meshwarp/__init__.py

"""
meshwarp

Parallel triangle-mesh deformation (numpy + trimesh + meshio).

- Deterministic per-vertex transforms (noise, sine, twist, IDW, ...)
- Chunked execution on a process/thread worker pool
- Poisson-disk control points with ray-parity inside tests
- Voxel decimation, welding, subdivision and Menger carving
- STL codec plus meshio formats
"""

from .core.buffer import BufferLayout, GeometryBuffer
from .core.geometry import GeometrySpec, build_geometry, load_geometry, save_geometry
from .core.registry import get_transform, list_transforms
from .core.pipeline import apply_transform
from .core.session import DeformSession
from .deform.params import UnsupportedTransformError, build_params
from .ops.simplify import PreprocessSpec
from .parallel.pool import ChunkErrorPolicy, WorkerPool, WorkerPoolBusyError, WorkerPoolConfig

__version__ = "0.1.0"

__all__ = [
    "BufferLayout",
    "GeometryBuffer",
    "GeometrySpec",
    "build_geometry",
    "load_geometry",
    "save_geometry",
    "get_transform",
    "list_transforms",
    "apply_transform",
    "DeformSession",
    "UnsupportedTransformError",
    "build_params",
    "PreprocessSpec",
    "ChunkErrorPolicy",
    "WorkerPool",
    "WorkerPoolBusyError",
    "WorkerPoolConfig",
]
