from .params import (
    TransformParams,
    UnsupportedTransformError,
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
    PARAMS_BY_KIND,
    build_params,
)
from .library import VERTEX_TRANSFORMS, apply_vertex_transform, axis_mask, axis_list

__all__ = [
    "TransformParams",
    "UnsupportedTransformError",
    "NoiseParams",
    "SineParams",
    "PixelateParams",
    "IDWParams",
    "InflateParams",
    "TwistParams",
    "BendParams",
    "RippleParams",
    "WarpParams",
    "HyperParams",
    "BoundaryParams",
    "TessellateParams",
    "MengerParams",
    "PARAMS_BY_KIND",
    "build_params",
    "VERTEX_TRANSFORMS",
    "apply_vertex_transform",
    "axis_mask",
    "axis_list",
]
