"""
Worker pool that deforms a vertex buffer in parallel.

A job is split into contiguous chunks (one DeformationTask each), dispatched
greedily to a fixed set of isolated workers, and reassembled by chunk id.
The coordinator is the only code touching aggregation state: it waits on the
in-flight futures and merges results one at a time, so no locking is needed
beyond the single "busy" flag that rejects overlapping jobs.
"""
from __future__ import annotations

import logging
import os
import threading
from collections import defaultdict, deque
from concurrent.futures import (
    FIRST_COMPLETED,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, Mapping, Optional, Tuple

import numpy as np

from meshwarp.core.buffer import GeometryBuffer
from meshwarp.deform.library import VERTEX_TRANSFORMS, apply_vertex_transform
from meshwarp.deform.params import TransformParams, UnsupportedTransformError, build_params

from .chunking import DEFAULT_CHUNK_SIZE, iter_chunks, merge_chunks, plan_chunks
from .tasks import DeformationResult, DeformationTask, run_task

logger = logging.getLogger(__name__)

MAX_POOL_SIZE = 8
ENV_MAX_WORKERS = "MESHWARP_MAX_WORKERS"

ProgressCallback = Callable[[int, int], None]


class ChunkErrorPolicy(str, Enum):
    """What the coordinator does when a chunk reports an error."""
    RETRY = "retry"          # resubmit up to max_retries, then zero-fill
    ZERO_FILL = "zero_fill"  # warn and leave the slice zero-filled
    FAIL = "fail"            # abort the job with ChunkFailedError


class WorkerPoolBusyError(RuntimeError):
    pass


class ChunkFailedError(RuntimeError):
    def __init__(self, chunk_id: int, error: Optional[str]):
        super().__init__(f"Chunk {chunk_id} failed: {error}")
        self.chunk_id = chunk_id
        self.error = error


@dataclass
class WorkerPoolConfig:
    """
    max_workers: None -> $MESHWARP_MAX_WORKERS, else cpu_count; always capped
                 at MAX_POOL_SIZE (8). 0 forces single-threaded execution
    executor:    "process" (isolated workers) or "thread"
    """
    max_workers: Optional[int] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    executor: str = "process"
    error_policy: ChunkErrorPolicy = ChunkErrorPolicy.RETRY
    max_retries: int = 1

    def resolved_workers(self) -> int:
        env = os.environ.get(ENV_MAX_WORKERS)
        if self.max_workers is not None:
            n = int(self.max_workers)
        elif env:
            n = int(env)
        else:
            n = os.cpu_count() or 4
        return max(0, min(n, MAX_POOL_SIZE))


def _default_executor(kind: str, n: int) -> Executor:
    k = (kind or "process").lower()
    if k == "process":
        return ProcessPoolExecutor(max_workers=n)
    if k == "thread":
        return ThreadPoolExecutor(max_workers=n, thread_name_prefix="meshwarp-worker")
    raise ValueError(f"Unknown executor kind '{kind}'. Use: process|thread")


class DeformationJob:
    """Async handle returned by WorkerPool.submit()."""

    def __init__(self, total: int):
        self.total = int(total)
        self._completed = 0
        self._future: "Future[GeometryBuffer]" = Future()

    @property
    def progress(self) -> Tuple[int, int]:
        return self._completed, self.total

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> GeometryBuffer:
        return self._future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self._future.exception(timeout=timeout)

    def add_done_callback(self, fn: Callable[["DeformationJob"], Any]) -> None:
        self._future.add_done_callback(lambda _f: fn(self))


class WorkerPool:
    """
    Fixed-size pool of deformation workers.

    - run(kind, params, geometry) blocks until the job is merged
    - submit(...) returns a DeformationJob handle
    - only one job may be in flight; a second one raises WorkerPoolBusyError
    - with zero workers the transform runs synchronously on the whole buffer
    """

    def __init__(
        self,
        config: Optional[WorkerPoolConfig] = None,
        *,
        executor_factory: Optional[Callable[[int], Executor]] = None,
    ):
        self.config = config or WorkerPoolConfig()
        self.size = self.config.resolved_workers()
        self._executor: Optional[Executor] = None
        self._lock = threading.Lock()
        self._busy = False

        if self.size > 0:
            factory = executor_factory or (lambda n: _default_executor(self.config.executor, n))
            try:
                self._executor = factory(self.size)
            except (OSError, ValueError, NotImplementedError, ImportError) as e:
                logger.warning("Failed to create workers (%s); using single-threaded processing.", e)
                self.size = 0
                self._executor = None
        logger.info("Initialized %d workers", self.size)

    # -------------------------
    # Public API
    # -------------------------
    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    def run(
        self,
        kind: str,
        params: TransformParams | Mapping[str, Any] | None,
        geometry: GeometryBuffer,
        progress: Optional[ProgressCallback] = None,
    ) -> GeometryBuffer:
        kind, params = self._resolve(kind, params)
        self._acquire()
        try:
            return self._coordinate(kind, params, geometry, progress)
        finally:
            self._release()

    def submit(
        self,
        kind: str,
        params: TransformParams | Mapping[str, Any] | None,
        geometry: GeometryBuffer,
        progress: Optional[ProgressCallback] = None,
    ) -> DeformationJob:
        kind, params = self._resolve(kind, params)
        total = len(plan_chunks(geometry.n_vertices, self.config.chunk_size)) if self.size else 1
        self._acquire()

        job = DeformationJob(total=max(1, total))

        def on_progress(completed: int, total_: int) -> None:
            job._completed = completed
            if progress is not None:
                progress(completed, total_)

        def coordinator() -> None:
            result: Optional[GeometryBuffer] = None
            error: Optional[BaseException] = None
            try:
                result = self._coordinate(kind, params, geometry, on_progress)
            except BaseException as e:
                error = e
            self._release()
            if error is not None:
                job._future.set_exception(error)
            else:
                job._future.set_result(result)

        try:
            threading.Thread(target=coordinator, name="meshwarp-coordinator", daemon=True).start()
        except BaseException:
            self._release()
            raise
        return job

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self.size = 0

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -------------------------
    # Internals
    # -------------------------
    @staticmethod
    def _resolve(kind: str, params) -> Tuple[str, TransformParams]:
        key = (kind or "").lower().strip()
        if key not in VERTEX_TRANSFORMS:
            raise UnsupportedTransformError(kind)
        return key, build_params(key, params)

    def _acquire(self) -> None:
        with self._lock:
            if self._busy:
                raise WorkerPoolBusyError("A deformation job is already in flight.")
            self._busy = True

    def _release(self) -> None:
        with self._lock:
            self._busy = False

    def _fallback(self, kind, params, geometry, progress) -> GeometryBuffer:
        logger.warning("No workers available, falling back to single-threaded processing.")
        out = apply_vertex_transform(kind, geometry.vertices.copy(), params, geometry.bounds)
        if progress is not None:
            progress(1, 1)
        return geometry.with_vertices(out)

    def _submit_task(self, task: DeformationTask) -> Future:
        try:
            return self._executor.submit(run_task, task)  # type: ignore[union-attr]
        except RuntimeError as e:
            # shut down or broken executor: report it as this chunk's failure
            fut: Future = Future()
            fut.set_exception(e)
            return fut

    @staticmethod
    def _collect(fut: Future, task: DeformationTask) -> DeformationResult:
        try:
            res = fut.result()
        except Exception as e:
            return DeformationResult(task.chunk_id, None, False, f"{type(e).__name__}: {e}")
        if res.success and (res.vertices is None or res.vertices.shape != task.vertices.shape):
            return DeformationResult(task.chunk_id, None, False, "result shape mismatch", res.worker)
        return res

    def _coordinate(
        self,
        kind: str,
        params: TransformParams,
        geometry: GeometryBuffer,
        progress: Optional[ProgressCallback],
    ) -> GeometryBuffer:
        if self.size == 0 or self._executor is None:
            return self._fallback(kind, params, geometry, progress)

        chunk_size = int(self.config.chunk_size)
        bounds = (geometry.bounds[0].copy(), geometry.bounds[1].copy())
        pending: Deque[DeformationTask] = deque(
            DeformationTask(chunk_id=spec.chunk_id, kind=kind, params=params, vertices=rows, bounds=bounds)
            for spec, rows in iter_chunks(geometry.vertices, chunk_size)
        )
        total = len(pending)
        if total == 0:
            return geometry.with_vertices(geometry.vertices.copy())

        logger.debug("Job %s: %d vertices in %d chunks on %d workers", kind, geometry.n_vertices, total, self.size)

        results: Dict[int, np.ndarray] = {}
        attempts: Dict[int, int] = defaultdict(int)
        in_flight: Dict[Future, DeformationTask] = {}
        completed = 0
        policy = ChunkErrorPolicy(self.config.error_policy)

        def dispatch() -> None:
            while pending and len(in_flight) < self.size:
                task = pending.popleft()
                attempts[task.chunk_id] += 1
                in_flight[self._submit_task(task)] = task

        dispatch()
        while in_flight:
            done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
            for fut in done:
                task = in_flight.pop(fut)
                res = self._collect(fut, task)

                if res.success:
                    results[task.chunk_id] = res.vertices  # type: ignore[assignment]
                else:
                    logger.error("Worker %s error on chunk %d: %s", res.worker or "?", task.chunk_id, res.error)
                    if policy is ChunkErrorPolicy.FAIL:
                        for other in in_flight:
                            other.cancel()
                        raise ChunkFailedError(task.chunk_id, res.error)
                    if policy is ChunkErrorPolicy.RETRY and attempts[task.chunk_id] <= self.config.max_retries:
                        pending.appendleft(task)
                        continue

                completed += 1
                if progress is not None:
                    progress(completed, total)
            dispatch()

        merged, missing = merge_chunks(results, geometry.n_vertices, chunk_size)
        if missing:
            logger.warning("Missing chunk(s) %s during deformation; leaving zeros.", missing)
        return geometry.with_vertices(merged)
