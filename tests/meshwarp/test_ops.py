import numpy as np
import pytest

from meshwarp.core.buffer import GeometryBuffer
from meshwarp.ops.features import (
    center_geometry,
    compute_face_areas,
    compute_face_normals,
    compute_vertex_normals,
)
from meshwarp.ops.simplify import PreprocessSpec, decimate, preprocess, weld_vertices
from meshwarp.ops.topology import menger_carve, menger_mask, tessellate


def _single_triangle():
    return GeometryBuffer(vertices=np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 2.0, 0.0]]))


# ---------- simplify ----------

def test_decimate_reduces_vertices(sphere):
    soup = sphere.to_non_indexed()
    out = decimate(soup, 50)
    assert out.is_indexed
    assert 0 < out.n_vertices < soup.n_vertices
    assert out.n_vertices <= sphere.n_vertices
    tris = out.triangles()
    cross = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    assert (np.einsum("ij,ij->i", cross, cross) > 1e-12).all()


def test_decimate_vertex_count_never_grows(sphere):
    soup = sphere.to_non_indexed()
    counts = [decimate(soup, pct).n_vertices for pct in range(100, 9, -1)]
    assert counts[0] == soup.n_vertices
    assert all(b <= a for a, b in zip(counts, counts[1:]))
    assert counts[-1] < counts[1]


def test_decimate_full_keep_is_noop(sphere):
    assert decimate(sphere, 100) is sphere
    assert decimate(sphere, 99.95) is sphere


def test_decimate_collapse_returns_input(caplog):
    # collinear corners: no face has any area
    g = GeometryBuffer(vertices=np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]))
    out = decimate(g, 10)
    assert out is g
    assert "removed all faces" in caplog.text


def test_weld_vertices(box):
    soup = box.to_non_indexed()
    out = weld_vertices(soup, 1e-6)
    assert out.n_vertices == 8
    assert out.n_faces == 12
    assert np.allclose(out.triangles(), box.triangles())
    assert weld_vertices(soup, 0.0) is soup


def test_weld_rounds_half_cells_up():
    g = GeometryBuffer(vertices=np.array([[0.5, 0.0, 0.0], [1.4, 0.0, 0.0], [0.0, 3.0, 0.0]]))
    out = weld_vertices(g, 1.0)
    assert out.n_vertices == 2
    assert out.faces.tolist() == [[0, 0, 1]]
    assert out.vertices[0].tolist() == [0.5, 0.0, 0.0]


def test_preprocess(box):
    assert preprocess(box, None) is box
    assert preprocess(box, PreprocessSpec()) is box
    out = preprocess(box, PreprocessSpec(merge_epsilon=1e-6))
    assert out.n_vertices == 8


# ---------- topology ----------

def test_tessellate_single_triangle():
    tri = _single_triangle()
    one = tessellate(tri, 1)
    assert one.n_faces == 4
    assert one.n_vertices == 12
    assert not one.is_indexed
    assert compute_face_areas(one).sum() == pytest.approx(2.0)
    assert tessellate(tri, 2).n_faces == 16


def test_tessellate_indexed_input(box):
    out = tessellate(box, 1)
    assert out.n_faces == 4 * box.n_faces
    assert np.allclose(out.bounds[0], box.bounds[0])
    assert np.allclose(out.bounds[1], box.bounds[1])


def test_menger_mask_levels():
    pts = np.array(
        [
            [0.5, 0.5, 0.5],
            [0.1, 0.1, 0.1],
            [0.5, 0.5, 0.1],
            [0.5, 0.1, 0.1],
            [0.15, 0.15, 0.05],
        ]
    )
    assert menger_mask(pts, 1).tolist() == [False, True, False, True, True]
    assert menger_mask(pts, 2).tolist() == [False, True, False, True, False]


def test_menger_keeps_boundary_triangles(box):
    out = menger_carve(box, iterations=1, keep_ratio=0.0)
    # every triangle of a box lies on a bounding face
    assert out.n_faces == tessellate(box, 1).n_faces


def test_menger_carves_interior(sphere):
    full = tessellate(sphere, 2)
    out = menger_carve(sphere, iterations=2, keep_ratio=0.0)
    assert not out.is_indexed
    assert 0 < out.n_faces <= full.n_faces
    assert menger_carve(sphere, iterations=1, keep_ratio=1.0).n_faces == tessellate(sphere, 1).n_faces


# ---------- features ----------

def test_face_areas_and_normals(box):
    assert compute_face_areas(box).sum() == pytest.approx(2 * (2 * 4 + 2 * 6 + 4 * 6))
    fn = compute_face_normals(box)
    assert np.allclose(np.linalg.norm(fn, axis=1), 1.0)
    # outward: normal points away from the center
    centroids = box.triangles().mean(axis=1)
    assert (np.einsum("ij,ij->i", fn, centroids) > 0).all()


def test_vertex_normals_both_layouts(box):
    vn = compute_vertex_normals(box)
    assert vn.shape == box.vertices.shape
    assert np.allclose(np.linalg.norm(vn, axis=1), 1.0)
    soup = box.to_non_indexed()
    assert np.allclose(compute_vertex_normals(soup), np.repeat(compute_face_normals(box), 3, axis=0))


def test_center_geometry(box):
    g = box.with_vertices(box.vertices + [5.0, -1.0, 2.0])
    center_geometry(g)
    assert np.allclose(g.center(), 0.0)
