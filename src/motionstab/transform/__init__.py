from .types import TransformParams, MotionSample, PARAM_NAMES, NUM_PARAMS
from .algebra import (
    identity, wrap_degrees, decompose, compose, compose_params, compose_array,
    is_valid, constrain, weighted_average, inverse, accumulate, correction,
)

__all__ = [
    "TransformParams", "MotionSample", "PARAM_NAMES", "NUM_PARAMS",
    "identity", "wrap_degrees", "decompose", "compose", "compose_params", "compose_array",
    "is_valid", "constrain", "weighted_average", "inverse", "accumulate", "correction",
]
