import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from meshwarp.core.buffer import GeometryBuffer
from meshwarp.deform.library import VERTEX_TRANSFORMS, apply_vertex_transform
from meshwarp.deform.params import UnsupportedTransformError, build_params
from meshwarp.parallel.chunking import iter_chunks, merge_chunks, plan_chunks
from meshwarp.parallel.pool import (
    ChunkErrorPolicy,
    ChunkFailedError,
    WorkerPool,
    WorkerPoolBusyError,
    WorkerPoolConfig,
)
from meshwarp.parallel.tasks import DeformationTask, run_task


def _params(kind):
    p = build_params(kind)
    if kind == "idw":
        p = p.with_control_points([[1.0, 0.0, 0.0], [0.0, -3.0, 2.0]])
    return p


def _thread_pool(**kw):
    kw.setdefault("max_workers", 3)
    kw.setdefault("chunk_size", 100)
    return WorkerPool(WorkerPoolConfig(executor="thread", **kw))


def _boom(task):
    raise RuntimeError("boom")


class FlakyExecutor(ThreadPoolExecutor):
    """Fails the first `times` submissions of each chunk id in `fail`."""

    def __init__(self, n, fail, times=1):
        super().__init__(max_workers=n)
        self.left = {k: times for k in fail}

    def submit(self, fn, task):
        if self.left.get(task.chunk_id, 0) > 0:
            self.left[task.chunk_id] -= 1
            return super().submit(_boom, task)
        return super().submit(fn, task)


class GatedExecutor(ThreadPoolExecutor):
    """Holds every task until `gate` is set."""

    def __init__(self, n, gate):
        super().__init__(max_workers=n)
        self.gate = gate

    def submit(self, fn, task):
        def gated():
            self.gate.wait(10)
            return fn(task)
        return super().submit(gated)


# ---------- chunking ----------

def test_plan_chunks():
    specs = plan_chunks(25, 10)
    assert [(s.chunk_id, s.start, s.stop) for s in specs] == [(0, 0, 10), (1, 10, 20), (2, 20, 25)]
    assert plan_chunks(0, 10) == []
    with pytest.raises(ValueError):
        plan_chunks(5, 0)


def test_iter_chunks_owns_copies(cloud):
    for spec, rows in iter_chunks(cloud, 300):
        rows[:] = 0.0
    assert np.abs(cloud).sum() > 0


def test_merge_is_order_independent(cloud):
    parts = [(spec.chunk_id, rows * 2.0) for spec, rows in iter_chunks(cloud, 128)]
    fwd, missing = merge_chunks(parts, cloud.shape[0], 128)
    rev, _ = merge_chunks(list(reversed(parts)), cloud.shape[0], 128)
    assert missing == []
    assert np.array_equal(fwd, rev)
    assert np.array_equal(fwd, cloud * 2.0)


def test_merge_zero_fills_missing(cloud):
    parts = {spec.chunk_id: rows for spec, rows in iter_chunks(cloud, 400) if spec.chunk_id != 1}
    out, missing = merge_chunks(parts, cloud.shape[0], 400)
    assert missing == [1]
    assert np.all(out[400:800] == 0.0)
    assert np.array_equal(out[:400], cloud[:400])


def test_run_task_reports_errors(cloud):
    task = DeformationTask(0, "melt", build_params("noise"), cloud[:10].copy(), (cloud.min(0), cloud.max(0)))
    res = run_task(task)
    assert not res.success
    assert res.vertices is None
    assert "UnsupportedTransformError" in res.error


# ---------- pool ----------

@pytest.mark.parametrize("kind", sorted(VERTEX_TRANSFORMS))
def test_chunked_matches_whole_buffer(kind, sphere):
    p = _params(kind)
    expected = apply_vertex_transform(kind, sphere.vertices, p, sphere.bounds)
    with _thread_pool(chunk_size=57) as pool:
        out = pool.run(kind, p, sphere)
    assert out.n_vertices == sphere.n_vertices
    np.testing.assert_allclose(out.vertices, expected, rtol=0, atol=1e-9)


def test_fallback_matches_pool(sphere):
    p = _params("twist")
    with WorkerPool(WorkerPoolConfig(max_workers=0)) as solo, _thread_pool() as pool:
        assert solo.size == 0
        a = solo.run("twist", p, sphere)
        b = pool.run("twist", p, sphere)
    np.testing.assert_allclose(a.vertices, b.vertices, rtol=0, atol=1e-9)


def test_index_buffer_copied_verbatim(sphere):
    g = GeometryBuffer(vertices=sphere.vertices, faces=sphere.faces.astype(np.uint16))
    with _thread_pool() as pool:
        out = pool.run("noise", None, g)
    assert out.faces.dtype == np.uint16
    assert np.array_equal(out.faces, g.faces)


def test_soup_stays_soup(sphere):
    soup = sphere.to_non_indexed()
    with _thread_pool() as pool:
        out = pool.run("sine", {"amplitude": 1.0}, soup)
    assert out.faces is None
    assert out.n_vertices == soup.n_vertices


def test_progress_is_strictly_increasing(sphere):
    calls = []
    with _thread_pool(chunk_size=50) as pool:
        pool.run("inflate", None, sphere, progress=lambda done, total: calls.append((done, total)))
    total = len(plan_chunks(sphere.n_vertices, 50))
    assert calls == [(k, total) for k in range(1, total + 1)]


def test_unknown_kind_rejected_before_work(sphere):
    with _thread_pool() as pool:
        with pytest.raises(UnsupportedTransformError):
            pool.run("tessellate", None, sphere)
        assert not pool.busy


def test_retry_recovers_failed_chunk(sphere):
    p = _params("ripple")
    cfg = WorkerPoolConfig(max_workers=2, chunk_size=100, executor="thread", max_retries=1)
    with WorkerPool(cfg, executor_factory=lambda n: FlakyExecutor(n, fail={1})) as pool:
        out = pool.run("ripple", p, sphere)
    expected = apply_vertex_transform("ripple", sphere.vertices, p, sphere.bounds)
    np.testing.assert_allclose(out.vertices, expected, rtol=0, atol=1e-9)


def test_retry_exhausted_zero_fills(sphere, caplog):
    cfg = WorkerPoolConfig(max_workers=2, chunk_size=100, executor="thread", max_retries=1)
    with WorkerPool(cfg, executor_factory=lambda n: FlakyExecutor(n, fail={2}, times=2)) as pool:
        out = pool.run("warp", None, sphere)
    assert np.all(out.vertices[200:300] == 0.0)
    assert np.any(out.vertices[:200] != 0.0)
    assert "Missing chunk" in caplog.text


def test_zero_fill_policy(sphere, caplog):
    cfg = WorkerPoolConfig(
        max_workers=2, chunk_size=100, executor="thread", error_policy=ChunkErrorPolicy.ZERO_FILL
    )
    with WorkerPool(cfg, executor_factory=lambda n: FlakyExecutor(n, fail={0})) as pool:
        out = pool.run("warp", None, sphere)
    assert np.all(out.vertices[:100] == 0.0)
    assert "error on chunk 0" in caplog.text


def test_fail_policy_raises(sphere):
    cfg = WorkerPoolConfig(max_workers=2, chunk_size=100, executor="thread", error_policy=ChunkErrorPolicy.FAIL)
    with WorkerPool(cfg, executor_factory=lambda n: FlakyExecutor(n, fail={3})) as pool:
        with pytest.raises(ChunkFailedError) as exc:
            pool.run("warp", None, sphere)
        assert exc.value.chunk_id == 3
        assert not pool.busy


def test_busy_pool_rejects_second_job(sphere):
    gate = threading.Event()
    cfg = WorkerPoolConfig(max_workers=2, chunk_size=100, executor="thread")
    with WorkerPool(cfg, executor_factory=lambda n: GatedExecutor(n, gate)) as pool:
        job = pool.submit("sine", None, sphere)
        assert pool.busy
        with pytest.raises(WorkerPoolBusyError):
            pool.run("sine", None, sphere)
        with pytest.raises(WorkerPoolBusyError):
            pool.submit("noise", None, sphere)
        gate.set()
        out = job.result(timeout=30)
        assert job.done()
        assert job.progress == (job.total, job.total)
        assert out.n_vertices == sphere.n_vertices
        assert not pool.busy


def test_rejected_submit_leaves_pool_idle(sphere):
    with _thread_pool(chunk_size=0) as pool:
        with pytest.raises(ValueError):
            pool.submit("sine", None, sphere)
        assert not pool.busy
        pool.config.chunk_size = 100
        out = pool.submit("sine", None, sphere).result(timeout=30)
    assert out.n_vertices == sphere.n_vertices


def test_executor_failure_degrades_to_fallback(sphere, caplog):
    def broken(n):
        raise OSError("no processes here")

    with WorkerPool(WorkerPoolConfig(max_workers=4), executor_factory=broken) as pool:
        assert pool.size == 0
        out = pool.run("bend", None, sphere)
    assert "Failed to create workers" in caplog.text
    expected = apply_vertex_transform("bend", sphere.vertices, build_params("bend"), sphere.bounds)
    np.testing.assert_allclose(out.vertices, expected, rtol=0, atol=1e-12)


def test_env_worker_count(monkeypatch):
    monkeypatch.setenv("MESHWARP_MAX_WORKERS", "3")
    assert WorkerPoolConfig().resolved_workers() == 3
    assert WorkerPoolConfig(max_workers=0).resolved_workers() == 0
    monkeypatch.setenv("MESHWARP_MAX_WORKERS", "64")
    assert WorkerPoolConfig().resolved_workers() == 8
    assert WorkerPoolConfig(max_workers=32).resolved_workers() == 8
    monkeypatch.delenv("MESHWARP_MAX_WORKERS")
    assert 1 <= WorkerPoolConfig().resolved_workers() <= 8


def test_process_pool_smoke(sphere):
    p = _params("noise")
    cfg = WorkerPoolConfig(max_workers=2, chunk_size=200, executor="process")
    with WorkerPool(cfg) as pool:
        out = pool.run("noise", p, sphere)
    expected = apply_vertex_transform("noise", sphere.vertices, p, sphere.bounds)
    np.testing.assert_allclose(out.vertices, expected, rtol=0, atol=1e-9)
