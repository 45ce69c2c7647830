"""
Pyramidal Lucas–Kanade tracking.

Output is shaped for the RANSAC loop: (N,2) float64 point arrays and a
per-point status vector.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import cv2

from ..ransac.types import Points2D


@dataclass(frozen=True)
class LKParams:
    """
    Parameters for pyramidal Lucas–Kanade tracking.

    winSize:
      - Search window at each pyramid level.
    maxLevel:
      - Number of pyramid levels above the base image (0 = single scale).
    criteria:
      - (type, max_iter, epsilon); iteration stops at whichever comes first.
    """
    winSize: Tuple[int, int] = (15, 15)
    maxLevel: int = 3
    criteria: Tuple[int, int, float] = (cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT, 30, 0.01)


def lk_track(
        gray0: np.ndarray,
        gray1: np.ndarray,
        pts0: Points2D,
        *,
        params: LKParams = LKParams(),
) -> tuple[Points2D, Points2D, np.ndarray, np.ndarray]:
    """
    Track points from gray0 -> gray1.

    Returns (pts0, pts1, status, err):
      - pts0: (N,2) float64 copy of the input points
      - pts1: (N,2) float64 tracked positions
      - status: (N,) uint8, 1 = tracked
      - err: (N,) float64 OpenCV tracking error

    An empty input or an OpenCV failure yields status all 0.
    """
    if gray0.ndim != 2 or gray1.ndim != 2:
        raise ValueError("lk_track expects grayscale frames (H,W). Convert BGR->gray before calling.")

    pts0 = np.asarray(pts0, dtype=np.float32)
    if pts0.ndim != 2 or pts0.shape[1] != 2:
        raise ValueError(f"pts0 must be (N,2), got {pts0.shape}")

    n = pts0.shape[0]
    if n == 0:
        empty = np.zeros((0, 2), dtype=np.float64)
        return empty, empty.copy(), np.zeros((0,), dtype=np.uint8), np.zeros((0,), dtype=np.float64)

    p1, status, err = cv2.calcOpticalFlowPyrLK(
        gray0,
        gray1,
        pts0.reshape(-1, 1, 2),
        None,
        winSize=params.winSize,
        maxLevel=params.maxLevel,
        criteria=params.criteria,
    )

    if p1 is None or status is None:
        return (
            pts0.astype(np.float64),
            pts0.astype(np.float64, copy=True),
            np.zeros((n,), dtype=np.uint8),
            np.full((n,), np.inf, dtype=np.float64),
        )

    pts1 = p1.reshape(-1, 2).astype(np.float64)
    st_out = status.reshape(-1).astype(np.uint8)
    err_out = err.reshape(-1).astype(np.float64) if err is not None else np.zeros((n,), dtype=np.float64)

    return pts0.astype(np.float64), pts1, st_out, err_out
