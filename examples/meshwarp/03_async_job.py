from meshwarp import WorkerPool, WorkerPoolConfig
from meshwarp.gen.primitives import build_primitive


def main():
    g = build_primitive("cylinder", radius=5.0, height=30.0, sections=256)

    pool = WorkerPool(WorkerPoolConfig(max_workers=4, chunk_size=128))
    job = pool.submit("bend", {"strength": 0.5, "axis": "z"}, g)
    job.add_done_callback(lambda j: print("done:", j.progress))

    out = job.result(timeout=60)
    print("vertices:", out.n_vertices, "bounds:", out.bounds)
    pool.close()


if __name__ == "__main__":
    # process workers need the main guard on spawn platforms
    main()
