from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np

from meshwarp.core.buffer import GeometryBuffer


def geometry_from_meshio(mesh) -> GeometryBuffer:
    if "triangle" not in mesh.cells_dict:
        raise ValueError("Mesh does not contain triangle cells.")
    faces = np.asarray(mesh.cells_dict["triangle"], dtype=np.int64)
    vertices = np.asarray(mesh.points, dtype=np.float64)[:, :3]
    if vertices.shape[1] < 3:
        vertices = np.pad(vertices, ((0, 0), (0, 3 - vertices.shape[1])))
    return GeometryBuffer(vertices=vertices, faces=faces)


def load_meshio(path: Union[str, Path]) -> GeometryBuffer:
    """Volume/FE mesh formats (VTK/VTU/MSH/XDMF...) via meshio; triangle cells only."""
    import meshio

    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(p)
    return geometry_from_meshio(meshio.read(p))


def save_meshio(geometry: GeometryBuffer, path: Union[str, Path]) -> Path:
    import meshio

    p = Path(path).expanduser()
    meshio.write_points_cells(str(p), geometry.vertices, [("triangle", geometry.face_indices())])
    return p
