from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Type

from meshwarp.deform.params import PARAMS_BY_KIND, TransformParams, UnsupportedTransformError


@dataclass(frozen=True)
class TransformEntry:
    """
    Registry row for one transform kind.

    uses_workers: vertex-preserving transforms are chunked across the worker
    pool; topology-changing ones run synchronously on the whole mesh.
    """
    key: str
    label: str
    uses_workers: bool

    @property
    def params_cls(self) -> Type[TransformParams]:
        return PARAMS_BY_KIND[self.key]


_ENTRIES = [
    TransformEntry("noise", "Noise", True),
    TransformEntry("sine", "Sine Wave", True),
    TransformEntry("pixel", "Pixelate", True),
    TransformEntry("idw", "IDW Shepard", True),
    TransformEntry("inflate", "Inflate", True),
    TransformEntry("twist", "Twist", True),
    TransformEntry("bend", "Bend", True),
    TransformEntry("ripple", "Ripple", True),
    TransformEntry("warp", "Warp", True),
    TransformEntry("hyper", "Hyperbolic Stretch", True),
    TransformEntry("tessellate", "Tessellate", False),
    TransformEntry("boundary", "Boundary Disruption", True),
    TransformEntry("menger", "Menger Sponge", False),
]

TRANSFORM_REGISTRY: Dict[str, TransformEntry] = {e.key: e for e in _ENTRIES}


def get_transform(kind: str) -> TransformEntry:
    entry = TRANSFORM_REGISTRY.get((kind or "").lower().strip())
    if entry is None:
        raise UnsupportedTransformError(kind)
    return entry


def list_transforms() -> List[str]:
    return [e.key for e in _ENTRIES]


def is_vertex_preserving(kind: str) -> bool:
    return get_transform(kind).uses_workers
