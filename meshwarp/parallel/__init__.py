from .chunking import ChunkSpec, DEFAULT_CHUNK_SIZE, plan_chunks, iter_chunks, merge_chunks
from .tasks import DeformationTask, DeformationResult, run_task
from .pool import (
    WorkerPool,
    WorkerPoolConfig,
    DeformationJob,
    ChunkErrorPolicy,
    ChunkFailedError,
    WorkerPoolBusyError,
)

__all__ = [
    "ChunkSpec",
    "DEFAULT_CHUNK_SIZE",
    "plan_chunks",
    "iter_chunks",
    "merge_chunks",
    "DeformationTask",
    "DeformationResult",
    "run_task",
    "WorkerPool",
    "WorkerPoolConfig",
    "DeformationJob",
    "ChunkErrorPolicy",
    "ChunkFailedError",
    "WorkerPoolBusyError",
]
