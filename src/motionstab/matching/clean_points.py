"""
Correspondence filtering ahead of the robust fit.

Drops pairs the tracker flagged as lost and pairs with non-finite
coordinates. Implausibly large displacements are left to RANSAC and the
per-frame range limit.
"""

from __future__ import annotations

import numpy as np

from ..ransac.types import Points2D, BoolArray


def clean_points(
        pts0: Points2D,
        pts1: Points2D,
        *,
        status: np.ndarray | None = None,
) -> tuple[Points2D, Points2D, BoolArray]:
    """
    Returns (pts0_kept, pts1_kept, keep_mask).
    """
    pts0 = np.asarray(pts0, dtype=np.float64)
    pts1 = np.asarray(pts1, dtype=np.float64)

    if pts0.ndim != 2 or pts0.shape != pts1.shape or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts0/pts1 shape (N,2) matching; got {pts0.shape} vs {pts1.shape}")

    keep = np.isfinite(pts0).all(axis=1) & np.isfinite(pts1).all(axis=1)

    if status is not None:
        status = np.asarray(status).reshape(-1)
        if status.shape[0] != pts0.shape[0]:
            raise ValueError(f"status must have length N; got {status.shape[0]} vs {pts0.shape[0]}")
        keep &= status.astype(np.uint8) == 1

    return pts0[keep], pts1[keep], keep
