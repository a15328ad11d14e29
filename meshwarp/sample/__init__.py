from .raycast import RayIntersector, TriangleRayIntersector
from .poisson import LCGRandom, PoissonDiskSampler, InsideClassifier, RAY_DIRECTIONS
from .control_points import generate_control_points, parse_control_points, fallback_points

__all__ = [
    "RayIntersector",
    "TriangleRayIntersector",
    "LCGRandom",
    "PoissonDiskSampler",
    "InsideClassifier",
    "RAY_DIRECTIONS",
    "generate_control_points",
    "parse_control_points",
    "fallback_points",
]
