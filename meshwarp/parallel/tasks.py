from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from meshwarp.deform.library import apply_vertex_transform
from meshwarp.deform.params import TransformParams


@dataclass
class DeformationTask:
    """One chunk of a job. `vertices` is owned by the task (a copy of the rows)."""
    chunk_id: int
    kind: str
    params: TransformParams
    vertices: np.ndarray
    bounds: Tuple[np.ndarray, np.ndarray]


@dataclass
class DeformationResult:
    chunk_id: int
    vertices: Optional[np.ndarray]
    success: bool
    error: Optional[str] = None
    worker: str = ""


def _worker_name() -> str:
    return f"{os.getpid()}:{threading.current_thread().name}"


def run_task(task: DeformationTask) -> DeformationResult:
    """
    Worker entry point (module level so it pickles into worker processes).

    Transform errors are reported in the result rather than raised, so the
    coordinator sees which chunk failed.
    """
    try:
        out = apply_vertex_transform(task.kind, task.vertices, task.params, task.bounds)
        return DeformationResult(chunk_id=task.chunk_id, vertices=out, success=True, worker=_worker_name())
    except Exception as e:
        return DeformationResult(
            chunk_id=task.chunk_id,
            vertices=None,
            success=False,
            error=f"{type(e).__name__}: {e}",
            worker=_worker_name(),
        )
