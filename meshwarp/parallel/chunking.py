from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Tuple

import numpy as np

DEFAULT_CHUNK_SIZE = 10_000


@dataclass(frozen=True)
class ChunkSpec:
    """
    Contiguous vertex block of a job.

    chunk_id: position in the job (0..n_chunks-1), also the reassembly slot
    start/stop: vertex rows [start, stop) of the source buffer
    """
    chunk_id: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


def plan_chunks(n_vertices: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[ChunkSpec]:
    cs = int(chunk_size)
    if cs <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [
        ChunkSpec(chunk_id=k, start=i, stop=min(i + cs, n_vertices))
        for k, i in enumerate(range(0, n_vertices, cs))
    ]


def iter_chunks(vertices: np.ndarray, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[Tuple[ChunkSpec, np.ndarray]]:
    """Yield (spec, owned copy of the rows) in increasing chunk-id order."""
    for spec in plan_chunks(vertices.shape[0], chunk_size):
        yield spec, vertices[spec.start:spec.stop].copy()


def merge_chunks(
    chunks: Dict[int, np.ndarray] | Iterable[Tuple[int, np.ndarray]],
    n_vertices: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Tuple[np.ndarray, List[int]]:
    """
    Write chunk payloads into a fresh zero-filled (n_vertices,3) buffer.

    Chunk k lands at row k*chunk_size. The result depends only on the
    (chunk_id -> payload) mapping, never on the order results arrived in.
    Returns (buffer, ids of the planned chunks that had no payload).
    """
    items = chunks.items() if isinstance(chunks, dict) else chunks
    out = np.zeros((n_vertices, 3), dtype=np.float64)
    seen = set()
    for chunk_id, payload in items:
        start = int(chunk_id) * int(chunk_size)
        rows = np.asarray(payload, dtype=np.float64).reshape(-1, 3)
        out[start:start + rows.shape[0]] = rows
        seen.add(int(chunk_id))
    planned = len(plan_chunks(n_vertices, chunk_size)) if n_vertices else 0
    missing = [k for k in range(planned) if k not in seen]
    return out, missing
