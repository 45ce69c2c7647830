"""
Value types that travel between pipeline stages.

Transforms themselves move as 3x3 float64 matrices (Mat3x3); TransformParams
is their decomposed form, used wherever a stage reasons about individual
parameters (smoothing, clamping, blending).
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..ransac.types import FloatArray, Mat3x3

# Order of the decomposed parameters in every 5-vector in the package.
PARAM_NAMES = ("scale_x", "scale_y", "rotation_deg", "tx", "ty")
NUM_PARAMS = len(PARAM_NAMES)

# Indices used by the adaptive smoother and the trajectory optimizer.
ROTATION, TX, TY = 2, 3, 4


@dataclass(frozen=True)
class TransformParams:
    """
    Decomposed 2D affine transform.

    - scale_x, scale_y: > 0
    - rotation_deg: (-180, 180], counter-clockwise in image coordinates
    - tx, ty: translation in pixels
    """
    scale_x: float = 1.0
    scale_y: float = 1.0
    rotation_deg: float = 0.0
    tx: float = 0.0
    ty: float = 0.0

    @classmethod
    def identity(cls) -> "TransformParams":
        return cls()

    @classmethod
    def from_array(cls, values: np.ndarray) -> "TransformParams":
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        if values.shape[0] != NUM_PARAMS:
            raise ValueError(f"Expected {NUM_PARAMS} parameters, got {values.shape[0]}")
        return cls(*(float(v) for v in values))

    def as_array(self) -> FloatArray:
        return np.array(
            [self.scale_x, self.scale_y, self.rotation_deg, self.tx, self.ty],
            dtype=np.float64,
        )


@dataclass(frozen=True, eq=False)
class MotionSample:
    """
    One frame's estimated transform.

    The matrix is copied and frozen on construction so the stage that
    receives a sample can never mutate the producer's data.
    """
    transform: Mat3x3
    frame_index: int
    timestamp_ms: int

    def __post_init__(self) -> None:
        T = np.array(self.transform, dtype=np.float64, copy=True)
        if T.shape != (3, 3):
            raise ValueError(f"MotionSample expects a (3,3) transform, got {T.shape}")
        T.setflags(write=False)
        object.__setattr__(self, "transform", T)
        object.__setattr__(self, "frame_index", int(self.frame_index))
        object.__setattr__(self, "timestamp_ms", int(self.timestamp_ms))
