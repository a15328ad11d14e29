import numpy as np
import pytest

from meshwarp.core.buffer import BufferLayout, GeometryBuffer


def test_layout_is_resolved_at_construction(box):
    assert box.layout is BufferLayout.INDEXED
    soup = box.to_non_indexed()
    assert soup.layout is BufferLayout.TRIANGLE_SOUP
    assert soup.n_vertices == 3 * box.n_faces
    assert soup.n_faces == box.n_faces
    assert np.allclose(soup.triangles(), box.triangles())


def test_bounds_and_helpers(box):
    assert np.allclose(box.bounds[0], [-1.0, -2.0, -3.0])
    assert np.allclose(box.bounds[1], [1.0, 2.0, 3.0])
    assert np.allclose(box.bbox_size(), [2.0, 4.0, 6.0])
    assert np.allclose(box.center(), 0.0)
    assert box.diagonal() == pytest.approx(np.sqrt(56.0))


def test_empty_buffer_has_zero_bounds():
    g = GeometryBuffer(vertices=np.zeros((0, 3)))
    assert g.n_vertices == 0
    assert np.all(g.bounds[0] == 0) and np.all(g.bounds[1] == 0)


def test_out_of_range_index_is_rejected():
    v = np.zeros((3, 3))
    with pytest.raises(ValueError):
        GeometryBuffer(vertices=v, faces=np.array([[0, 1, 3]]))
    with pytest.raises(ValueError):
        GeometryBuffer(vertices=v, faces=np.array([[0, 1, -1]]))


def test_soup_triangles_need_multiple_of_three():
    g = GeometryBuffer(vertices=np.zeros((4, 3)))
    with pytest.raises(ValueError):
        g.triangles()


def test_with_vertices_keeps_index_dtype(box):
    g = GeometryBuffer(vertices=box.vertices, faces=box.faces.astype(np.uint16))
    out = g.with_vertices(g.vertices * 2.0)
    assert out.faces.dtype == np.uint16
    assert np.array_equal(out.faces, g.faces)
    assert out.faces is not g.faces
    assert np.allclose(out.bounds[1], [2.0, 4.0, 6.0])


def test_summary(box):
    s = box.summary()
    assert s["n_vertices"] == 8
    assert s["n_faces"] == 12
    assert s["layout"] == "indexed"
