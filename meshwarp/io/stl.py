from __future__ import annotations

import io
from pathlib import Path
from typing import Union

import numpy as np

from meshwarp.core.buffer import GeometryBuffer


def _to_trimesh(geometry: GeometryBuffer):
    import trimesh
    return trimesh.Trimesh(
        vertices=geometry.vertices,
        faces=geometry.face_indices(),
        process=False,
    )


def geometry_from_trimesh(tm, *, soup: bool = False) -> GeometryBuffer:
    """trimesh.Trimesh -> GeometryBuffer (indexed, or a triangle soup)."""
    vertices = np.asarray(tm.vertices, dtype=np.float64)
    faces = np.asarray(tm.faces, dtype=np.int64)
    if soup:
        return GeometryBuffer(vertices=vertices[faces].reshape(-1, 3))
    return GeometryBuffer(vertices=vertices, faces=faces)


def decode_stl(data: bytes) -> GeometryBuffer:
    """
    Binary or ASCII STL bytes -> triangle soup (3 vertices per facet).

    Stored facet normals are ignored; vertex normals are the caller's job.
    """
    import trimesh

    try:
        tm = trimesh.load_mesh(io.BytesIO(bytes(data)), file_type="stl", process=False)
    except Exception as e:
        raise ValueError(f"Could not decode STL data ({len(data)} bytes): {e}") from e
    if not isinstance(tm, trimesh.Trimesh) or len(tm.faces) == 0:
        raise ValueError("STL data did not decode to a triangle mesh.")
    return geometry_from_trimesh(tm, soup=True)


def encode_stl(geometry: GeometryBuffer, ascii: bool = False) -> bytes:
    """
    GeometryBuffer -> STL bytes.

    Binary layout: 80-byte header, uint32 LE facet count, then 50 bytes per
    facet (normal + 3 vertices as float32 LE, 2-byte attribute word).
    """
    out = _to_trimesh(geometry).export(file_type="stl_ascii" if ascii else "stl")
    if isinstance(out, str):
        return out.encode("utf-8")
    return bytes(out)


def load_stl(path: Union[str, Path]) -> GeometryBuffer:
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(p)
    return decode_stl(p.read_bytes())


def save_stl(geometry: GeometryBuffer, path: Union[str, Path], ascii: bool = False) -> Path:
    p = Path(path).expanduser()
    p.write_bytes(encode_stl(geometry, ascii=ascii))
    return p
