"""
Shared typed primitives for the motion pipeline.

Defines:
- Typed NumPy aliases
    - Points are (N,2) float64 arrays
    - Transforms are 3x3 homogeneous matrices
- The model-fitter protocol the generic RANSAC loop is written against
- The RANSAC result container
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypeVar, Generic, Optional, TypeAlias

import numpy as np
import numpy.typing as npt

# ---------- Numpy typing aliases ----------
# float64 for geometry (linear algebra is better conditioned), bool_ for masks.

FloatArray: TypeAlias = npt.NDArray[np.float64]
BoolArray: TypeAlias = npt.NDArray[np.bool_]

# Points in image coordinates (pixels).
Points2D: TypeAlias = FloatArray      # shape: (N, 2)

# Homogeneous points [x, y, 1].
PointsHomog: TypeAlias = FloatArray   # shape: (N, 3)

# Inlier mask: True = inlier.
Mask2D: TypeAlias = BoolArray         # shape: (N,)

# 3x3 homogeneous transform. Affine transforms keep the last row at [0, 0, 1].
Mat3x3: TypeAlias = FloatArray        # shape: (3, 3)

M = TypeVar("M")


class ModelFitter(Protocol[M]):
    """
    What a model must provide to be used by ransac():

    1) fit from a minimal sample (the hypothesis step)
    2) refit from all inliers (least squares)
    3) a per-correspondence residual used for the inlier test
    """

    # Number of correspondences needed by fit_minimal.
    min_samples: int

    def fit_minimal(self, pts0: Points2D, pts1: Points2D) -> Optional[M]:
        """
        Fit from exactly min_samples correspondences.
        Return None for a degenerate sample.
        """
        ...

    def fit_least_squares(self, pts0: Points2D, pts1: Points2D) -> Optional[M]:
        """
        Refit from all inliers.
        Return None if the set is degenerate or the solve fails.
        """
        ...

    def residuals(self, model: M, pts0: Points2D, pts1: Points2D) -> FloatArray:
        """
        Reprojection error per correspondence, shape (N,). Pixels.
        """
        ...


@dataclass(frozen=True)
class RansacResult(Generic[M]):
    model: M            # refit model (falls back to the best minimal model)
    inliers: Mask2D     # inlier mask under the best hypothesis
    num_inliers: int
    num_total: int      # correspondences the fit was run on
    rms_error: float    # inlier RMS under the returned model
    iterations: int     # hypotheses actually drawn
    threshold: float    # reprojection threshold (px)

    @property
    def inlier_ratio(self) -> float:
        return self.num_inliers / max(1, self.num_total)


# ---------- Helpers ----------
def as_homogeneous(pts: Points2D) -> PointsHomog:
    """
    (N,2) -> (N,3) by appending a column of ones.
    """
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected points shape (N, 2) but got {pts.shape}")

    ones = np.ones((pts.shape[0], 1), dtype=np.float64)
    return np.hstack([pts.astype(np.float64), ones])


def is_valid_mat3x3(T: Mat3x3) -> bool:
    """
    Shape and finiteness check used to reject failed fits.
    """
    return isinstance(T, np.ndarray) and T.shape == (3, 3) and bool(np.isfinite(T).all())
