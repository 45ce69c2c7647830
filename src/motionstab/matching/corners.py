"""
Corner detection for the optical-flow estimator.

Shi–Tomasi via cv2.goodFeaturesToTrack, plus the gray conversion every
estimator runs on incoming frames.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import cv2

from ..ransac.types import Points2D


@dataclass(frozen=True)
class ShiTomasiParams:
    """
    Parameters for Shi–Tomasi corner detection (goodFeaturesToTrack).

    maxCorners:
      - Upper bound on number of corners returned.
    qualityLevel:
      - Rejects corners with response < qualityLevel * best_response.
    minDistance:
      - Minimum allowed distance between detected corners (px).
    blockSize:
      - Size of neighborhood used for corner score.
    """
    maxCorners: int = 500
    qualityLevel: float = 0.01
    minDistance: float = 10.0
    blockSize: int = 3


def to_gray(frame: np.ndarray) -> np.ndarray:
    """
    (H,W) passes through; (H,W,3) BGR and (H,W,4) BGRA are converted.
    """
    if frame.ndim == 2:
        return frame
    if frame.ndim == 3 and frame.shape[2] == 3:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    if frame.ndim == 3 and frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"Expected a gray, BGR or BGRA frame, got shape {frame.shape}")


def shitomasi_detect(
        gray: np.ndarray,
        *,
        params: ShiTomasiParams = ShiTomasiParams(),
) -> Points2D:
    """
    Detect Shi–Tomasi corners on a grayscale image.

    Input:
      gray: (H,W) grayscale image (uint8 preferred)
    Output:
      pts: (N,2) float64 points, N may be 0
    """
    if gray.ndim != 2:
        raise ValueError(f"shitomasi_detect expects grayscale (H,W), got {gray.shape}")

    pts = cv2.goodFeaturesToTrack(
        gray,
        maxCorners=params.maxCorners,
        qualityLevel=params.qualityLevel,
        minDistance=params.minDistance,
        blockSize=params.blockSize,
    )

    if pts is None:
        return np.zeros((0, 2), dtype=np.float64)

    return pts.reshape(-1, 2).astype(np.float64)
