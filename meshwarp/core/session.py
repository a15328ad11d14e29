from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from meshwarp.deform.params import IDWParams, TransformParams, build_params
from meshwarp.ops.features import center_geometry, compute_vertex_normals, ensure_vertex_normals
from meshwarp.ops.simplify import PreprocessSpec, preprocess
from meshwarp.parallel.pool import WorkerPool, WorkerPoolConfig

from .buffer import GeometryBuffer
from .geometry import load_geometry, save_geometry
from .pipeline import apply_transform, resolve_control_points
from .registry import get_transform, list_transforms

logger = logging.getLogger(__name__)


@dataclass
class TransformStats:
    kind: str
    original_vertices: int
    original_triangles: int
    result_vertices: int
    result_triangles: int
    elapsed_s: float

    def as_text(self) -> str:
        return (
            f"Original: {self.original_vertices} vertices, {self.original_triangles} triangles | "
            f"{self.kind}: {self.result_vertices} vertices, {self.result_triangles} triangles | "
            f"{self.elapsed_s * 1000:.1f} ms"
        )


class DeformSession:
    """
    Holds everything one interactive run needs: the loaded geometry, the
    per-kind params, the simplification settings, the last IDW control points
    and one result per transform kind.

    Usage:
      with DeformSession() as s:
          s.load("part.stl")
          s.set_params("twist", angle=90, axis="z")
          s.generate("twist")
          s.export("twist", "part_twisted.stl")
    """

    def __init__(
        self,
        pool_config: Optional[WorkerPoolConfig] = None,
        preprocessing: Optional[PreprocessSpec] = None,
    ):
        self.pool_config = pool_config or WorkerPoolConfig()
        self.preprocessing = preprocessing or PreprocessSpec()
        self.geometry: Optional[GeometryBuffer] = None
        self.params: Dict[str, TransformParams] = {k: build_params(k) for k in list_transforms()}
        self.results: Dict[str, GeometryBuffer] = {}
        self._stats: Dict[str, TransformStats] = {}
        self._pool: Optional[WorkerPool] = None
        self._cp_key: Optional[Tuple[Any, ...]] = None
        self._cp: Optional[np.ndarray] = None

    # -------------------------
    # State
    # -------------------------
    @property
    def pool(self) -> WorkerPool:
        if self._pool is None:
            self._pool = WorkerPool(self.pool_config)
        return self._pool

    @property
    def control_points(self) -> Optional[np.ndarray]:
        """Control points used by the last IDW run (None before one)."""
        return None if self._cp is None else self._cp.copy()

    def load(self, source: Union[GeometryBuffer, str, Path, Dict[str, Any]], center: bool = True) -> GeometryBuffer:
        """Load a mesh, center it at the origin and drop every previous result."""
        geom = load_geometry(source)
        geom = geom.copy()
        if center:
            center_geometry(geom)
        ensure_vertex_normals(geom)

        self.geometry = geom
        self.results.clear()
        self._stats.clear()
        self._cp_key = None
        self._cp = None
        logger.info("Loaded geometry: %d vertices, %d triangles", geom.n_vertices, geom.n_faces)
        return geom

    def set_params(self, kind: str, **values: Any) -> TransformParams:
        key = get_transform(kind).key
        self.params[key] = self.params[key].replace(**values)
        return self.params[key]

    def set_preprocessing(self, decimate: float = 100.0, merge_epsilon: float = 0.0) -> PreprocessSpec:
        self.preprocessing = PreprocessSpec(decimate=decimate, merge_epsilon=merge_epsilon)
        return self.preprocessing

    # -------------------------
    # Transforms
    # -------------------------
    def _idw_points(self, working: GeometryBuffer, params: IDWParams) -> np.ndarray:
        key = (
            params.num_points, params.seed, params.rays, params.manual_points, params.points_text,
            params.control_points, self.preprocessing.decimate, self.preprocessing.merge_epsilon,
        )
        if self._cp is None or self._cp_key != key:
            self._cp = resolve_control_points(working, params)
            self._cp_key = key
            logger.info("Using %d control points for IDW deformation", self._cp.shape[0])
        return self._cp

    def generate(self, kind: str, progress=None) -> GeometryBuffer:
        """
        Run one transform on the loaded geometry.

        The result carries vertex normals and is stored in `results[kind]`.
        On error the previous result (if any) is kept.
        """
        if self.geometry is None:
            raise RuntimeError("No geometry loaded.")
        key = get_transform(kind).key
        params = self.params[key]

        start = time.perf_counter()
        working = preprocess(self.geometry, self.preprocessing)
        if isinstance(params, IDWParams):
            points = self._idw_points(working, params)
            if points.shape[0]:
                params = params.with_control_points(points)

        out = apply_transform(key, params, working, pool=self.pool, progress=progress)
        out.normals = compute_vertex_normals(out)
        elapsed = time.perf_counter() - start

        self.results[key] = out
        self._stats[key] = TransformStats(
            kind=key,
            original_vertices=self.geometry.n_vertices,
            original_triangles=self.geometry.n_faces,
            result_vertices=out.n_vertices,
            result_triangles=out.n_faces,
            elapsed_s=elapsed,
        )
        logger.info("Deformation %s complete in %.1f ms", key, elapsed * 1000)
        return out

    def stats(self, kind: str) -> TransformStats:
        key = get_transform(kind).key
        if key not in self._stats:
            raise KeyError(f"No result for '{key}' yet.")
        return self._stats[key]

    def export(self, kind: str, path: Union[str, Path], ascii: bool = False) -> Path:
        key = get_transform(kind).key
        if key not in self.results:
            raise KeyError(f"No result for '{key}' to export.")
        p = save_geometry(self.results[key], path, ascii=ascii)
        logger.info("Exported %s to %s", key, p)
        return p

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    def __enter__(self) -> "DeformSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
