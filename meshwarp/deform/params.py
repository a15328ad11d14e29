from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, ClassVar, Dict, Mapping, Tuple, Type

import numpy as np


class UnsupportedTransformError(ValueError):
    """Raised for a transform kind without a registered implementation."""

    def __init__(self, kind: str):
        super().__init__(f"Unsupported transform: {kind!r}")
        self.kind = kind


@dataclass(frozen=True)
class TransformParams:
    """
    Base class of the per-transform parameter sets.

    Each subclass is tagged with a `kind` string. Instances are immutable for
    the duration of a job; use `.replace(**kw)` to derive a variant.
    Values are taken as given: clamping to UI ranges is the caller's job.
    """
    kind: ClassVar[str] = ""

    def replace(self, **changes: Any) -> "TransformParams":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if isinstance(v, np.ndarray):
                v = v.tolist()
            elif isinstance(v, tuple):
                v = [list(p) if isinstance(p, tuple) else p for p in v]
            out[f.name] = v
        return out


@dataclass(frozen=True)
class NoiseParams(TransformParams):
    kind: ClassVar[str] = "noise"
    intensity: float = 1.5
    scale: float = 0.02
    axis: str = "all"
    seed: int = 0


@dataclass(frozen=True)
class SineParams(TransformParams):
    kind: ClassVar[str] = "sine"
    amplitude: float = 15.0
    frequency: float = 0.05
    driver_axis: str = "x"
    disp_axis: str = "x"


@dataclass(frozen=True)
class PixelateParams(TransformParams):
    kind: ClassVar[str] = "pixel"
    size: float = 5.0
    axis: str = "all"


@dataclass(frozen=True)
class IDWParams(TransformParams):
    """
    Inverse-distance-weighting (Shepard) displacement.

    control_points: (x,y,z) triples. Left empty, the pipeline fills them from
    `points_text` (when manual_points) or from the Poisson sampler.
    """
    kind: ClassVar[str] = "idw"
    num_points: int = 8
    seed: int = 0
    weight: float = 2.0
    power: float = 2.0
    scale: float = 2.0
    rays: int = 6
    manual_points: bool = False
    points_text: str = ""
    control_points: Tuple[Tuple[float, float, float], ...] = ()

    def with_control_points(self, points: Any) -> "IDWParams":
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        return replace(self, control_points=tuple(tuple(float(c) for c in p) for p in pts))


@dataclass(frozen=True)
class InflateParams(TransformParams):
    kind: ClassVar[str] = "inflate"
    amount: float = 0.6


@dataclass(frozen=True)
class TwistParams(TransformParams):
    kind: ClassVar[str] = "twist"
    angle: float = 180.0  # degrees, end to end
    axis: str = "y"


@dataclass(frozen=True)
class BendParams(TransformParams):
    kind: ClassVar[str] = "bend"
    strength: float = 0.8
    axis: str = "y"


@dataclass(frozen=True)
class RippleParams(TransformParams):
    kind: ClassVar[str] = "ripple"
    amplitude: float = 4.0
    frequency: float = 0.3
    axis: str = "y"


@dataclass(frozen=True)
class WarpParams(TransformParams):
    kind: ClassVar[str] = "warp"
    strength: float = 1.0
    scale: float = 0.2


@dataclass(frozen=True)
class HyperParams(TransformParams):
    kind: ClassVar[str] = "hyper"
    amount: float = 0.6
    axis: str = "y"


@dataclass(frozen=True)
class BoundaryParams(TransformParams):
    kind: ClassVar[str] = "boundary"
    threshold: float = 0.08  # fraction of the extent per axis
    jitter: float = 2.0


@dataclass(frozen=True)
class TessellateParams(TransformParams):
    kind: ClassVar[str] = "tessellate"
    steps: int = 1


@dataclass(frozen=True)
class MengerParams(TransformParams):
    kind: ClassVar[str] = "menger"
    iterations: int = 1
    keep_ratio: float = 0.7


PARAMS_BY_KIND: Dict[str, Type[TransformParams]] = {
    cls.kind: cls
    for cls in (
        NoiseParams,
        SineParams,
        PixelateParams,
        IDWParams,
        InflateParams,
        TwistParams,
        BendParams,
        RippleParams,
        WarpParams,
        HyperParams,
        BoundaryParams,
        TessellateParams,
        MengerParams,
    )
}


def build_params(kind: str, values: Mapping[str, Any] | TransformParams | None = None) -> TransformParams:
    """
    Build the params object for `kind` from a plain dict (or pass one through).

    Unknown keys raise TypeError, like the dataclass constructor does.
    """
    key = (kind or "").lower().strip()
    if key not in PARAMS_BY_KIND:
        raise UnsupportedTransformError(kind)
    cls = PARAMS_BY_KIND[key]

    if values is None:
        return cls()
    if isinstance(values, TransformParams):
        if not isinstance(values, cls):
            raise TypeError(f"Expected {cls.__name__} for '{key}', got {type(values).__name__}")
        return values

    values = dict(values)
    if key == "idw" and values.get("control_points") is not None:
        pts = np.asarray(values.pop("control_points"), dtype=np.float64).reshape(-1, 3)
        return cls(**values).with_control_points(pts)  # type: ignore[attr-defined]
    return cls(**values)
