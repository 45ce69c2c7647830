"""
Adapter: homography model for the generic RANSAC loop.

The motion estimators fit a homography between consecutive frames and then
reduce it to the affine part they track.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .types import Points2D, Mat3x3, FloatArray, ModelFitter
from .homography import (
    fit_homography_minimal,
    fit_homography_least_squares,
    residuals_L2,
)


@dataclass(frozen=True)
class HomographyFitter(ModelFitter[Mat3x3]):
    """
    4-point minimal fit, normalized-DLT refit, forward reprojection error.
    """
    eps_area: float = 1e-6
    min_samples: int = 4

    def fit_minimal(self, pts0: Points2D, pts1: Points2D) -> Optional[Mat3x3]:
        return fit_homography_minimal(pts0, pts1, eps_area=self.eps_area)

    def fit_least_squares(self, pts0: Points2D, pts1: Points2D) -> Optional[Mat3x3]:
        return fit_homography_least_squares(pts0, pts1)

    def residuals(self, model: Mat3x3, pts0: Points2D, pts1: Points2D) -> FloatArray:
        return residuals_L2(model, pts0, pts1)
