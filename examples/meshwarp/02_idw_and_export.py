from pathlib import Path

from meshwarp import DeformSession, WorkerPoolConfig
from meshwarp.gen.primitives import build_primitive
from meshwarp.logging_config import setup_logging


def main():
    setup_logging("INFO")

    out_dir = Path("out_meshwarp")
    out_dir.mkdir(exist_ok=True)

    with DeformSession(pool_config=WorkerPoolConfig(max_workers=2)) as s:
        s.load(build_primitive("box", extents=(40, 20, 10)))

        # tessellate first so the IDW field has vertices to move
        s.set_params("tessellate", steps=2)
        s.generate("tessellate")

        s.load(s.results["tessellate"])
        s.set_preprocessing(merge_epsilon=1e-6)
        s.set_params("idw", num_points=6, seed=3, weight=-2.0, scale=3.0)
        s.generate("idw")
        print("control points:\n", s.control_points)
        print(s.stats("idw").as_text())

        s.export("idw", out_dir / "box_idw.stl")
        s.export("idw", out_dir / "box_idw.vtu")


if __name__ == "__main__":
    main()
