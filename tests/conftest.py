import os

import numpy as np
import pytest
import trimesh

from meshwarp.core.buffer import GeometryBuffer


@pytest.fixture(scope="session")
def rng_seed():
    return int(os.environ.get("MESHWARP_TEST_SEED", "1234"))


@pytest.fixture
def box():
    tm = trimesh.creation.box(extents=(2.0, 4.0, 6.0))
    return GeometryBuffer(vertices=np.asarray(tm.vertices), faces=np.asarray(tm.faces))


@pytest.fixture
def sphere():
    tm = trimesh.creation.icosphere(subdivisions=3, radius=10.0)
    return GeometryBuffer(vertices=np.asarray(tm.vertices), faces=np.asarray(tm.faces))


@pytest.fixture
def cloud(rng_seed):
    rng = np.random.default_rng(rng_seed)
    return rng.uniform(-5.0, 5.0, size=(1000, 3))
