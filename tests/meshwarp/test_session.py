import logging

import numpy as np
import pytest

from meshwarp.__main__ import main, parse_param_args
from meshwarp.core.session import DeformSession
from meshwarp.io.stl import load_stl, save_stl
from meshwarp.logging_config import setup_logging
from meshwarp.parallel.pool import WorkerPoolConfig


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger("meshwarp")
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def session():
    s = DeformSession(pool_config=WorkerPoolConfig(max_workers=2, chunk_size=200, executor="thread"))
    yield s
    s.close()


def test_load_centers_and_adds_normals(session, box):
    g = session.load(box.with_vertices(box.vertices + 10.0))
    assert np.allclose(g.center(), 0.0)
    assert g.normals is not None and g.normals.shape == g.vertices.shape


def test_generate_and_stats(session, sphere):
    session.load(sphere)
    session.set_params("twist", angle=90, axis="z")
    out = session.generate("twist")
    assert session.results["twist"] is out
    assert out.normals.shape == out.vertices.shape
    st = session.stats("twist")
    assert st.original_vertices == st.result_vertices == sphere.n_vertices
    assert st.elapsed_s >= 0
    assert "twist" in st.as_text()
    with pytest.raises(KeyError):
        session.stats("bend")


def test_generate_requires_geometry(session):
    with pytest.raises(RuntimeError):
        session.generate("noise")


def test_control_points_are_cached(session, sphere):
    session.load(sphere)
    session.set_params("idw", num_points=5)
    assert session.control_points is None
    session.generate("idw")
    first = session.control_points
    assert first.shape == (5, 3)
    session.generate("idw")
    assert np.array_equal(first, session.control_points)
    session.set_params("idw", num_points=3)
    session.generate("idw")
    assert session.control_points.shape == (3, 3)


def test_load_resets_results(session, box):
    session.load(box)
    session.generate("tessellate")
    assert "tessellate" in session.results
    session.load(box)
    assert session.results == {}


def test_preprocessing_and_export(session, sphere, tmp_path):
    session.load(sphere.to_non_indexed())
    session.set_preprocessing(merge_epsilon=1e-6)
    out = session.generate("inflate")
    assert out.n_vertices == sphere.n_vertices
    p = session.export("inflate", tmp_path / "out.stl")
    assert load_stl(p).n_faces == sphere.n_faces
    with pytest.raises(KeyError):
        session.export("warp", tmp_path / "warp.stl")


def test_parse_param_args():
    assert parse_param_args(["angle=90", "axis=z", "scale=0.5", "manual_points=true"]) == {
        "angle": 90,
        "axis": "z",
        "scale": 0.5,
        "manual_points": True,
    }
    with pytest.raises(ValueError):
        parse_param_args(["angle"])


def test_cli_end_to_end(box, tmp_path):
    src = save_stl(box, tmp_path / "in.stl")
    dst = tmp_path / "out.stl"
    code = main([str(src), str(dst), "--transform", "twist", "-p", "angle=45", "--workers", "0", "--log-level", "warning"])
    assert code == 0
    assert load_stl(dst).n_faces == box.n_faces


def test_cli_rejects_bad_param(box, tmp_path):
    src = save_stl(box, tmp_path / "in.stl")
    assert main([str(src), str(tmp_path / "o.stl"), "-p", "oops", "--workers", "0"]) == 2


def test_setup_logging(tmp_path):
    log_file = tmp_path / "run.log"
    setup_logging("debug", str(log_file))
    logger = logging.getLogger("meshwarp")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    setup_logging(logging.WARNING)
    assert len(logger.handlers) == 1
    with pytest.raises(ValueError):
        setup_logging("loud")
