from __future__ import annotations

from typing import Any, Tuple

import numpy as np

from meshwarp.core.buffer import GeometryBuffer


def _as_3tuple(v: Any, default: Tuple[float, float, float]) -> Tuple[float, float, float]:
    if v is None:
        return default
    if isinstance(v, (int, float)):
        x = float(v)
        return (x, x, x)
    if isinstance(v, (list, tuple)) and len(v) == 3:
        return (float(v[0]), float(v[1]), float(v[2]))
    raise TypeError(f"Expected a scalar or 3-tuple, got: {type(v).__name__} {v}")


def _from_trimesh(tm, soup: bool) -> GeometryBuffer:
    from meshwarp.io.stl import geometry_from_trimesh
    return geometry_from_trimesh(tm, soup=soup)


def build_primitive(name: str, **params) -> GeometryBuffer:
    """
    Closed triangle-mesh primitives (via trimesh) for demos and tests.

    Supported:
      - "box":       extents=(x,y,z) or side=s   (aliases: "cube", "cuboid")
      - "sphere":    radius=..., subdivisions=...
      - "cylinder":  radius=..., height=..., sections=...
      - "plane":     size=(x,y), two triangles at z=0
      - "triangle":  a single triangle in the z=0 plane

    soup=True returns a triangle soup instead of an indexed buffer.
    """
    import trimesh

    key = (name or "").lower().strip()
    soup = bool(params.pop("soup", False))

    if key in {"box", "cube", "cuboid"}:
        if "side" in params and params.get("extents") is None:
            extents = _as_3tuple(params.get("side"), (1.0, 1.0, 1.0))
        else:
            extents = _as_3tuple(params.get("extents"), (1.0, 1.0, 1.0))
        ex = tuple(max(1e-12, float(e)) for e in extents)
        return _from_trimesh(trimesh.creation.box(extents=ex), soup)

    if key == "sphere":
        radius = float(params.get("radius", 1.0))
        subdivisions = int(params.get("subdivisions", 2))
        return _from_trimesh(trimesh.creation.icosphere(subdivisions=subdivisions, radius=radius), soup)

    if key == "cylinder":
        radius = float(params.get("radius", 1.0))
        height = float(params.get("height", 1.0))
        sections = int(params.get("sections", 32))
        return _from_trimesh(trimesh.creation.cylinder(radius=radius, height=height, sections=sections), soup)

    if key == "plane":
        size = params.get("size") or (1.0, 1.0)
        sx, sy = float(size[0]), float(size[1])
        v = np.array(
            [
                [-sx / 2, -sy / 2, 0.0],
                [ sx / 2, -sy / 2, 0.0],
                [ sx / 2,  sy / 2, 0.0],
                [-sx / 2,  sy / 2, 0.0],
            ],
            dtype=np.float64,
        )
        f = np.array([[0, 1, 2], [0, 2, 3]], dtype=np.int64)
        g = GeometryBuffer(vertices=v, faces=f)
        return g.to_non_indexed() if soup else g

    if key == "triangle":
        v = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], dtype=np.float64)
        if soup:
            return GeometryBuffer(vertices=v)
        return GeometryBuffer(vertices=v, faces=np.array([[0, 1, 2]], dtype=np.int64))

    raise ValueError(f"Unsupported primitive '{name}'. Supported: box/cube, sphere, cylinder, plane, triangle.")
