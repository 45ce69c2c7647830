"""
2D affine transform algebra.

Matrices follow the column-vector convention used by ransac.homography.apply_T:

    [x', y', 1]^T = T @ [x, y, 1]^T

A transform built from decomposed parameters is

    T = Translate(tx, ty) @ Rotate(theta) @ Scale(sx, sy)

i.e. scale first, then rotate, then translate. decompose() inverts that
exactly for shear-free matrices:

    sx    = ||column 0||
    sy    = ||column 1||
    theta = atan2(m10, m00)
    t     = column 2

None of these functions raise on numerically bad input; callers test with
is_valid() and fall back to identity.
"""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np

from ..ransac.types import Mat3x3
from .types import TransformParams

TranslationLimit = Union[float, Sequence[float]]

# Below this |det| a transform is treated as singular.
_DET_EPS = 1e-12


def identity() -> Mat3x3:
    return np.eye(3, dtype=np.float64)


def wrap_degrees(angle: float) -> float:
    """
    Map an angle to (-180, 180].
    """
    a = math.fmod(float(angle) + 180.0, 360.0)
    if a < 0.0:
        a += 360.0
    a -= 180.0
    return 180.0 if a == -180.0 else a


def decompose(T: Mat3x3) -> TransformParams:
    """
    Matrix -> (scale_x, scale_y, rotation_deg, tx, ty).
    """
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (3, 3):
        raise ValueError(f"Expected T shape (3,3), got {T.shape}")

    scale_x = math.hypot(T[0, 0], T[1, 0])
    scale_y = math.hypot(T[0, 1], T[1, 1])
    rotation = wrap_degrees(math.degrees(math.atan2(T[1, 0], T[0, 0])))
    return TransformParams(scale_x, scale_y, rotation, float(T[0, 2]), float(T[1, 2]))


def compose(scale_x: float, scale_y: float, rotation_deg: float, tx: float, ty: float) -> Mat3x3:
    """
    (scale_x, scale_y, rotation_deg, tx, ty) -> matrix.
    """
    theta = math.radians(rotation_deg)
    c, s = math.cos(theta), math.sin(theta)
    return np.array(
        [
            [c * scale_x, -s * scale_y, tx],
            [s * scale_x, c * scale_y, ty],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def compose_params(p: TransformParams) -> Mat3x3:
    return compose(p.scale_x, p.scale_y, p.rotation_deg, p.tx, p.ty)


def compose_array(values: np.ndarray) -> Mat3x3:
    """
    compose() from a 5-vector in PARAM_NAMES order.
    """
    v = np.asarray(values, dtype=np.float64).reshape(-1)
    return compose(v[0], v[1], v[2], v[3], v[4])


def is_valid(T: Mat3x3) -> bool:
    """
    False on wrong shape, NaN/Inf, or a (numerically) singular matrix.
    """
    if not isinstance(T, np.ndarray) or T.shape != (3, 3):
        return False
    if not np.isfinite(T).all():
        return False
    return abs(float(np.linalg.det(T))) > _DET_EPS


def constrain(
        T: Mat3x3,
        max_translation: TranslationLimit,
        max_scale_delta: float,
        max_rotation_deg: float,
) -> Mat3x3:
    """
    Clamp each decomposed parameter independently and recompose.

    - scale      -> [1 - max_scale_delta, 1 + max_scale_delta]
    - rotation   -> [-max_rotation_deg, max_rotation_deg]
    - translation-> [-max_translation, max_translation]; either one bound
                    for both axes or an (x, y) pair

    Any shear in T is dropped by the recomposition.
    """
    if np.isscalar(max_translation):
        max_tx = max_ty = float(max_translation)
    else:
        max_tx, max_ty = (float(v) for v in max_translation)

    p = decompose(T)
    lo, hi = 1.0 - max_scale_delta, 1.0 + max_scale_delta
    return compose(
        float(np.clip(p.scale_x, lo, hi)),
        float(np.clip(p.scale_y, lo, hi)),
        float(np.clip(p.rotation_deg, -max_rotation_deg, max_rotation_deg)),
        float(np.clip(p.tx, -max_tx, max_tx)),
        float(np.clip(p.ty, -max_ty, max_ty)),
    )


def weighted_average(a: Mat3x3, b: Mat3x3, weight_a: float) -> Mat3x3:
    """
    Parameter-wise linear blend: weight_a * params(a) + (1 - weight_a) * params(b).
    """
    pa = decompose(a).as_array()
    pb = decompose(b).as_array()
    return compose_array(weight_a * pa + (1.0 - weight_a) * pb)


def inverse(T: Mat3x3) -> Mat3x3:
    """
    Matrix inverse, or identity when T is not invertible.
    """
    if not is_valid(T):
        return identity()
    try:
        return np.linalg.inv(T)
    except np.linalg.LinAlgError:
        return identity()


def accumulate(previous: Mat3x3, new: Mat3x3) -> Mat3x3:
    """
    Chain a frame-to-frame transform onto the running one: previous @ new.
    """
    return np.asarray(previous, dtype=np.float64) @ np.asarray(new, dtype=np.float64)


def correction(original: Mat3x3, target: Mat3x3) -> Mat3x3:
    """
    Warp that moves a frame from its measured path onto the target path:

        C = target @ inverse(original)

    For pure translations this is (target_t - original_t).
    """
    return np.asarray(target, dtype=np.float64) @ inverse(original)
