"""
Homography model utilities (normalized DLT).

We estimate a projective H such that:

    w * [x', y', 1]^T  =  H @ [x, y, 1]^T

H has 8 degrees of freedom (9 entries up to scale), so 4 correspondences in
general position determine it. Each correspondence contributes two rows of
the DLT system A h = 0:

    [-x, -y, -1,  0,  0,  0, x'x, x'y, x']
    [ 0,  0,  0, -x, -y, -1, y'x, y'y, y']

h is the right singular vector of A with the smallest singular value.
Points are Hartley-normalized first (centroid at origin, mean distance
sqrt(2)); without it the system is badly conditioned for pixel coordinates.
"""

from __future__ import annotations

from itertools import combinations
from typing import Optional

import numpy as np

from .types import Points2D, PointsHomog, Mat3x3, FloatArray, as_homogeneous, is_valid_mat3x3


def _normalize_points(pts: Points2D) -> tuple[Points2D, Mat3x3]:
    """
    Return (normalized points, similarity transform that produced them).
    """
    centroid = pts.mean(axis=0)
    shifted = pts - centroid
    mean_dist = float(np.mean(np.linalg.norm(shifted, axis=1)))
    if mean_dist < 1e-12:
        # All points coincide; keep the identity scale, the solve will fail later.
        mean_dist = 1.0
    s = np.sqrt(2.0) / mean_dist

    N = np.array(
        [
            [s, 0.0, -s * centroid[0]],
            [0.0, s, -s * centroid[1]],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )
    return shifted * s, N


def triangle_area2(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> float:
    """
    Twice the area of triangle (p1, p2, p3): |(p2 - p1) x (p3 - p1)|.
    """
    u = p2 - p1
    v = p3 - p1
    return float(abs(u[0] * v[1] - u[1] * v[0]))


def _has_collinear_triplet(pts: Points2D, eps_area: float) -> bool:
    for i, j, k in combinations(range(pts.shape[0]), 3):
        if triangle_area2(pts[i], pts[j], pts[k]) < eps_area:
            return True
    return False


def _solve_dlt(pts0: Points2D, pts1: Points2D) -> Optional[Mat3x3]:
    """
    Normalized DLT shared by the minimal and least-squares fits.
    """
    n0, N0 = _normalize_points(pts0)
    n1, N1 = _normalize_points(pts1)

    n = pts0.shape[0]
    x, y = n0[:, 0], n0[:, 1]
    u, v = n1[:, 0], n1[:, 1]
    zeros = np.zeros(n, dtype=np.float64)
    ones = np.ones(n, dtype=np.float64)

    A = np.empty((2 * n, 9), dtype=np.float64)
    A[0::2] = np.stack([-x, -y, -ones, zeros, zeros, zeros, u * x, u * y, u], axis=1)
    A[1::2] = np.stack([zeros, zeros, zeros, -x, -y, -ones, v * x, v * y, v], axis=1)

    try:
        _, sing, vt = np.linalg.svd(A)
    except np.linalg.LinAlgError:
        return None

    # A one-dimensional null space is required. With exactly 4 points the
    # 8x9 system has 8 singular values; a near-zero 8th one means degenerate.
    if sing.shape[0] >= 8 and sing[7] < 1e-10 * max(1.0, float(sing[0])):
        return None

    Hn = vt[-1].reshape(3, 3)

    # Undo the normalization: H = N1^-1 @ Hn @ N0
    try:
        H = np.linalg.inv(N1) @ Hn @ N0
    except np.linalg.LinAlgError:
        return None

    if abs(H[2, 2]) < 1e-12:
        return None
    H = H / H[2, 2]
    return H if is_valid_mat3x3(H) else None


def fit_homography_minimal(pts0: Points2D, pts1: Points2D, eps_area: float = 1e-6) -> Optional[Mat3x3]:
    """
    Exact homography from 4 correspondences.

    Returns None if any three points (in either image) are collinear.
    """
    if pts0.shape != (4, 2) or pts1.shape != (4, 2):
        raise ValueError(f"fit_homography_minimal expects (4,2) inputs, got {pts0.shape} and {pts1.shape}")

    if _has_collinear_triplet(pts0, eps_area) or _has_collinear_triplet(pts1, eps_area):
        return None

    return _solve_dlt(pts0.astype(np.float64), pts1.astype(np.float64))


def fit_homography_least_squares(pts0: Points2D, pts1: Points2D) -> Optional[Mat3x3]:
    """
    Algebraic least-squares homography from N >= 4 correspondences.
    """
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    if pts0.ndim != 2 or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts0.shape}")
    if pts0.shape[0] < 4:
        return None

    return _solve_dlt(pts0.astype(np.float64), pts1.astype(np.float64))


def homography_to_affine(H: Mat3x3) -> Mat3x3:
    """
    Keep the top 2x3 block of a homography and reset the projective row.

    H is expected to be normalized (H[2,2] == 1).
    """
    A = np.eye(3, dtype=np.float64)
    A[:2, :] = H[:2, :]
    return A


# ---------- Apply transform + residuals ----------
def apply_T(T: Mat3x3, pts: Points2D) -> Points2D:
    """
    Map (N,2) points through a 3x3 transform, dividing by the homogeneous w
    (always 1 for an affine T). Points mapped to w ~ 0 come back as inf so
    they fail any inlier test.
    """
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts.shape}")
    if T.shape != (3, 3):
        raise ValueError(f"Expected T shape (3,3), got {T.shape}")

    ph: PointsHomog = as_homogeneous(pts)
    ph_t = ph @ T.T

    w = ph_t[:, 2:3]
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(np.abs(w) > 1e-12, ph_t[:, :2] / w, np.inf)
    return out.astype(np.float64)


def residuals_L2(H: Mat3x3, pts0: Points2D, pts1: Points2D) -> FloatArray:
    """
    Forward reprojection error e_i = || apply_T(H, pts0[i]) - pts1[i] ||, shape (N,).
    """
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    diff = apply_T(H, pts0) - pts1.astype(np.float64)
    return np.linalg.norm(diff, axis=1).astype(np.float64)
