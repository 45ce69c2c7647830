"""
OpenCV warp adapter for the per-frame corrections.

Corrections are 3x3 homogeneous affine matrices (Mat3x3) in the forward
direction: a pixel at p in the captured frame is drawn at C @ p.
cv2.warpAffine takes that forward 2x3 block directly.

Exposed pixels are handled by the border policy:
  - "crop":   constant fill, then zoom about the center by 1 / crop_ratio
              so the fill is pushed out of view
  - "fill":   constant fill (border_value), no zoom
  - "deform": edge pixels replicated into the gap, no zoom
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import cv2

from ..config import BorderPolicy
from ..ransac.types import Mat3x3

_BORDER_MODES = {
    "crop": cv2.BORDER_CONSTANT,
    "fill": cv2.BORDER_CONSTANT,
    "deform": cv2.BORDER_REPLICATE,
}


@dataclass(frozen=True)
class WarpParams:
    """
    border_policy:
      - see module docstring
    crop_ratio:
      - visible fraction of each dimension under "crop", in (0, 1]
    border_value:
      - fill color for constant borders; a 3-tuple for BGR frames
    interpolation:
      - cv2.INTER_LINEAR is a good default for video
    """
    border_policy: BorderPolicy = "crop"
    crop_ratio: float = 0.9
    border_value: Tuple[int, int, int] = (0, 0, 0)
    interpolation: int = cv2.INTER_LINEAR

    def __post_init__(self) -> None:
        if self.border_policy not in _BORDER_MODES:
            raise ValueError(f"Unknown border policy: {self.border_policy!r}")
        if not (0.0 < self.crop_ratio <= 1.0):
            raise ValueError(f"crop_ratio must be in (0, 1], got {self.crop_ratio}")

    @property
    def border_mode(self) -> int:
        return _BORDER_MODES[self.border_policy]


def crop_zoom(width: int, height: int, crop_ratio: float) -> Mat3x3:
    """
    Scale by 1 / crop_ratio about the frame center.
    """
    s = 1.0 / float(crop_ratio)
    cx, cy = width / 2.0, height / 2.0
    return np.array(
        [
            [s, 0.0, cx - s * cx],
            [0.0, s, cy - s * cy],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def output_transform(T: Mat3x3, width: int, height: int, params: WarpParams) -> Mat3x3:
    """
    The matrix actually handed to OpenCV: T, preceded on the output side by
    the crop zoom under the "crop" policy.
    """
    if params.border_policy == "crop" and params.crop_ratio < 1.0:
        return crop_zoom(width, height, params.crop_ratio) @ T
    return np.asarray(T, dtype=np.float64)


def warp_frame_affine(
        frame: np.ndarray,
        T: Mat3x3,
        *,
        params: WarpParams = WarpParams(),
) -> np.ndarray:
    """
    Warp a (H,W) or (H,W,C) frame by the affine part of T.

    Output has the input's shape. An empty frame is returned unchanged.
    """
    if frame is None or frame.size == 0:
        return frame

    if T.shape != (3, 3):
        raise ValueError(f"warp_frame_affine expected T shape (3,3), got {T.shape}")

    H, W = frame.shape[:2]
    A = output_transform(T, W, H, params)[:2, :]

    return cv2.warpAffine(
        frame,
        A,
        (W, H),
        flags=params.interpolation,
        borderMode=params.border_mode,
        borderValue=params.border_value,
    )
