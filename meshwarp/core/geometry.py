from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .buffer import GeometryBuffer

SURFACE_EXTS = ("stl", "obj", "ply", "glb", "gltf", "off")
MESH_EXTS = ("vtk", "vtu", "msh", "mesh", "xdmf", "xmf")


@dataclass
class GeometrySpec:
    """
    Declarative geometry source.

    Examples:
      {"kind":"file","path":"model.stl"}
      {"kind":"mesh_file","path":"case.vtu"}
      {"kind":"primitive","name":"box","params":{"extents":[10,10,10]}}
    """
    kind: str
    name: Optional[str] = None
    path: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


def _load_surface_file(path: Path) -> GeometryBuffer:
    if path.suffix.lower() == ".stl":
        from meshwarp.io.stl import load_stl
        return load_stl(path)

    import trimesh
    from meshwarp.io.stl import geometry_from_trimesh

    tm = trimesh.load_mesh(path, process=False)
    if not isinstance(tm, trimesh.Trimesh):
        raise TypeError("Loaded geometry is not a triangular mesh.")
    return geometry_from_trimesh(tm)


def build_geometry(spec: Union[Dict[str, Any], GeometrySpec]) -> GeometryBuffer:
    """
    Build a GeometryBuffer from a GeometrySpec or spec dict.

    Supported kinds:
      - file       (STL/OBJ/PLY/GLTF/OFF) via trimesh
      - mesh_file  (VTK/VTU/MSH/...) via meshio
      - primitive  (meshwarp.gen.primitives)
    """
    if isinstance(spec, dict):
        spec = GeometrySpec(**spec)

    kind = spec.kind.lower()

    if kind in ("file", "mesh_file"):
        path = Path(spec.path or "").expanduser().resolve()
        if not path.exists():
            raise FileNotFoundError(path)
        if kind == "file":
            return _load_surface_file(path)
        from meshwarp.io.meshio_bridge import load_meshio
        return load_meshio(path)

    if kind == "primitive":
        from meshwarp.gen.primitives import build_primitive
        return build_primitive(spec.name or "", **spec.params)

    raise ValueError(f"Unsupported GeometrySpec kind: {kind}")


def load_geometry(geom: Any) -> GeometryBuffer:
    """
    Convenience wrapper:
      - GeometryBuffer -> returned as-is
      - Path / str -> spec inferred from the extension
      - dict -> GeometrySpec
    """
    if isinstance(geom, GeometryBuffer):
        return geom

    if isinstance(geom, (str, Path)):
        p = Path(geom)
        ext = p.suffix.lower().lstrip(".")
        if ext in SURFACE_EXTS:
            kind = "file"
        elif ext in MESH_EXTS:
            kind = "mesh_file"
        else:
            raise ValueError(f"Unsupported mesh extension: {p.suffix!r}")
        return build_geometry(GeometrySpec(kind=kind, path=str(p)))

    if isinstance(geom, dict):
        return build_geometry(geom)

    raise TypeError(f"Unsupported geometry input type: {type(geom)}")


def save_geometry(geometry: GeometryBuffer, path: Union[str, Path], *, ascii: bool = False) -> Path:
    """Write by extension: STL through the STL codec, everything else through meshio."""
    p = Path(path)
    if p.suffix.lower() == ".stl":
        from meshwarp.io.stl import save_stl
        return save_stl(geometry, p, ascii=ascii)
    from meshwarp.io.meshio_bridge import save_meshio
    return save_meshio(geometry, p)
