"""
RANSAC package

- A reusable, model-agnostic RANSAC loop
- Typed geometry primitives
- Homography model fitter
"""

from .types import (
    FloatArray, BoolArray, Points2D, PointsHomog, Mask2D, Mat3x3,
    ModelFitter, RansacResult, as_homogeneous, is_valid_mat3x3,
)

from .homography import (
    fit_homography_minimal, fit_homography_least_squares, homography_to_affine,
    apply_T, residuals_L2,
)

from .homography_fitter import HomographyFitter

from .core import ransac, required_iterations

__all__ = [
    "FloatArray", "BoolArray", "Points2D", "PointsHomog", "Mask2D", "Mat3x3",
    "ModelFitter", "RansacResult", "as_homogeneous", "is_valid_mat3x3",
    "fit_homography_minimal", "fit_homography_least_squares", "homography_to_affine",
    "apply_T", "residuals_L2",
    "HomographyFitter",
    "ransac", "required_iterations",
]
