from __future__ import annotations

import logging
import math
import re
from typing import Optional

import numpy as np

from meshwarp.core.buffer import GeometryBuffer
from meshwarp.deform.params import IDWParams

from .poisson import InsideClassifier, PoissonDiskSampler
from .raycast import RayIntersector, TriangleRayIntersector

logger = logging.getLogger(__name__)

MIN_DISTANCE_FRACTION = 0.08
FIRST_PASS_OVERSAMPLE = 10
SECOND_PASS_OVERSAMPLE = 5
_FALLBACK_FREQS = (123.45, 678.90, 111.11)


def parse_control_points(text: str) -> np.ndarray:
    """
    Parse manual control points, one per line (or separated by ';').

    Numbers are split on commas/whitespace; lines with fewer than three
    numbers are skipped, extra numbers are ignored.
    """
    points = []
    for line in re.split(r"[\n;]", text or ""):
        nums = []
        for tok in re.split(r"[,\s]+", line.strip()):
            if not tok:
                continue
            try:
                nums.append(float(tok))
            except ValueError:
                continue
        if len(nums) >= 3:
            points.append(nums[:3])
    return np.asarray(points, dtype=np.float64).reshape(-1, 3)


def _dedupe_rows(points: np.ndarray) -> np.ndarray:
    if points.shape[0] < 2:
        return points
    _, first = np.unique(points, axis=0, return_index=True)
    return points[np.sort(first)]


def fallback_points(bounds, count: int, start: int, seed: int) -> np.ndarray:
    """
    Deterministic points scattered around the box center, spreading outward
    with the sample index k (depth 0.1 .. 0.9 of 30% of the largest extent).
    """
    bmin = np.asarray(bounds[0], dtype=np.float64)
    bmax = np.asarray(bounds[1], dtype=np.float64)
    center = 0.5 * (bmin + bmax)
    max_dim = float(np.max(bmax - bmin))

    out = []
    for k in range(start, count):
        depth = (k / count) * 0.8 + 0.1
        offset_scale = max_dim * depth * 0.3
        jitter = [math.sin(seed + k * f) * 0.5 + 0.5 for f in _FALLBACK_FREQS]
        out.append(center + (np.asarray(jitter) - 0.5) * offset_scale)
    return np.asarray(out, dtype=np.float64).reshape(-1, 3)


def generate_control_points(
    geometry: GeometryBuffer,
    params: IDWParams,
    intersector: Optional[RayIntersector] = None,
) -> np.ndarray:
    """
    Well-spread control points inside the mesh volume.

    Always returns exactly `params.num_points` points:
      1) Poisson-disk candidates (spacing 8% of the largest extent) filtered
         by the inside test
      2) if short, a second pass at half the spacing
      3) deterministic fallback points around the center for the rest
    """
    n = int(params.num_points)
    if n <= 0:
        return np.zeros((0, 3))

    bounds = geometry.bounds
    max_dim = float(np.max(geometry.bbox_size()))
    if max_dim <= 0:
        logger.warning("Degenerate bounding box; using fallback control points only.")
        return fallback_points(bounds, n, 0, int(params.seed))

    if intersector is None:
        intersector = TriangleRayIntersector(geometry)
    classifier = InsideClassifier(intersector, rays=int(params.rays))
    sampler = PoissonDiskSampler(int(params.seed))

    min_distance = max_dim * MIN_DISTANCE_FRACTION
    candidates = sampler.generate(min_distance, n * FIRST_PASS_OVERSAMPLE, bounds)
    points = classifier.filter_inside(candidates)
    logger.debug("Generated %d candidates, %d inside mesh volume", candidates.shape[0], points.shape[0])

    if points.shape[0] < n:
        logger.info("Only %d points inside mesh volume, retrying with smaller spacing", points.shape[0])
        extra = sampler.generate(min_distance * 0.5, n * SECOND_PASS_OVERSAMPLE, bounds)
        points = _dedupe_rows(np.concatenate([points, classifier.filter_inside(extra)], axis=0))

    points = points[:n]
    if points.shape[0] < n:
        logger.warning("Padding %d control points with fallback positions", n - points.shape[0])
        points = np.concatenate([points, fallback_points(bounds, n, points.shape[0], int(params.seed))], axis=0)

    return points
