import numpy as np

from meshwarp import apply_transform, WorkerPool, WorkerPoolConfig
from meshwarp.gen.primitives import build_primitive
from meshwarp.ops.features import compute_vertex_normals


def main():
    g = build_primitive("sphere", radius=20.0, subdivisions=4)

    with WorkerPool(WorkerPoolConfig(max_workers=4, chunk_size=2_000)) as pool:
        for kind, params in [
            ("twist", {"angle": 120, "axis": "y"}),
            ("ripple", {"amplitude": 2.0, "frequency": 0.4, "axis": "xz"}),
            ("noise", {"intensity": 1.0, "seed": 7}),
        ]:
            out = apply_transform(kind, params, g, pool=pool)
            out.normals = compute_vertex_normals(out)
            shift = np.linalg.norm(out.vertices - g.vertices, axis=1)
            print(f"{kind:>7}: {out.n_vertices} vertices, mean shift {shift.mean():.3f}, max {shift.max():.3f}")


if __name__ == "__main__":
    main()
