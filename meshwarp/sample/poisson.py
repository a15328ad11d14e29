from __future__ import annotations

import math
from collections import defaultdict
from typing import DefaultDict, List, Sequence, Tuple

import numpy as np

from .raycast import RayIntersector

Cell = Tuple[int, int, int]

N_CANDIDATES = 30
SELF_HIT_EPS = 1e-3
INSIDE_VOTE_FRACTION = 0.6
MIN_RAYS = 6

_DIRECTIONS = np.array(
    [
        [1, 0, 0],
        [-1, 0, 0],
        [0, 1, 0],
        [0, -1, 0],
        [0, 0, 1],
        [0, 0, -1],
        [1, 1, 1],
        [-1, 1, 1],
        [1, -1, 1],
        [1, 1, -1],
    ],
    dtype=np.float64,
)
RAY_DIRECTIONS = _DIRECTIONS / np.linalg.norm(_DIRECTIONS, axis=1, keepdims=True)


class LCGRandom:
    """Seeded linear-congruential generator; same seed -> same sequence."""

    def __init__(self, seed: int = 0):
        self.state = int(seed)

    def __call__(self) -> float:
        self.state = (self.state * 9301 + 49297) % 233280
        return self.state / 233280.0


class PoissonDiskSampler:
    """
    Dart-throwing Poisson-disk sampler in an axis-aligned box.

    Accepted samples are bucketed in a sparse grid of cell size r/sqrt(2);
    candidates are checked against every cell within r, so the pairwise
    minimum distance holds in 3-D. The generator state carries over between
    generate() calls on the same sampler.
    """

    def __init__(self, seed: int = 0):
        self.seed = int(seed)
        self.random = LCGRandom(seed)

    def generate(self, min_distance: float, max_samples: int, bounds: Sequence) -> np.ndarray:
        bmin = np.asarray(bounds[0], dtype=np.float64).reshape(3)
        bmax = np.asarray(bounds[1], dtype=np.float64).reshape(3)
        if max_samples <= 0:
            return np.zeros((0, 3))

        rnd = self.random
        r = float(min_distance)
        if r <= 0:
            raise ValueError(f"min_distance must be positive, got {min_distance}")

        cell = r / math.sqrt(2.0)
        reach = int(math.ceil(r / cell))
        grid: DefaultDict[Cell, List[np.ndarray]] = defaultdict(list)

        def cell_of(p: np.ndarray) -> Cell:
            g = np.floor((p - bmin) / cell).astype(np.int64)
            return int(g[0]), int(g[1]), int(g[2])

        def too_close(p: np.ndarray) -> bool:
            cx, cy, cz = cell_of(p)
            for dx in range(-reach, reach + 1):
                for dy in range(-reach, reach + 1):
                    for dz in range(-reach, reach + 1):
                        for q in grid.get((cx + dx, cy + dy, cz + dz), ()):
                            if np.linalg.norm(p - q) < r:
                                return True
            return False

        first = bmin + np.array([rnd(), rnd(), rnd()]) * (bmax - bmin)
        samples: List[np.ndarray] = [first]
        active: List[np.ndarray] = [first]
        grid[cell_of(first)].append(first)

        while active and len(samples) < max_samples:
            idx = int(math.floor(rnd() * len(active)))
            base = active[idx]

            found = False
            for _ in range(N_CANDIDATES):
                a1 = rnd() * math.pi * 2.0
                a2 = rnd() * math.pi * 2.0
                radius = r * (1.0 + rnd())
                cand = base + radius * np.array(
                    [math.sin(a1) * math.cos(a2), math.sin(a1) * math.sin(a2), math.cos(a1)]
                )
                if np.any(cand < bmin) or np.any(cand > bmax):
                    continue
                if too_close(cand):
                    continue
                samples.append(cand)
                active.append(cand)
                grid[cell_of(cand)].append(cand)
                found = True
                break

            if not found:
                active.pop(idx)

        return np.asarray(samples, dtype=np.float64).reshape(-1, 3)


class InsideClassifier:
    """
    Ray-parity inside test.

    A direction votes "inside" when the ray crosses the surface an odd number
    of times (hits closer than SELF_HIT_EPS are ignored); a point is inside
    when at least 60% of the directions vote inside.
    """

    def __init__(self, intersector: RayIntersector, rays: int = MIN_RAYS):
        n = max(MIN_RAYS, min(int(rays), RAY_DIRECTIONS.shape[0]))
        self.intersector = intersector
        self.directions = RAY_DIRECTIONS[:n]

    def is_inside(self, point: Sequence[float]) -> bool:
        votes = 0
        for d in self.directions:
            hits = self.intersector.intersect(point, d)
            if int(np.count_nonzero(hits > SELF_HIT_EPS)) % 2 == 1:
                votes += 1
        return votes >= math.ceil(len(self.directions) * INSIDE_VOTE_FRACTION)

    def filter_inside(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        keep = [i for i, p in enumerate(pts) if self.is_inside(p)]
        return pts[keep]
