"""
Generic RANSAC loop (model-agnostic).

- Draw a minimal subset of correspondences
- Fit a candidate model from it
- Score every correspondence by its residual
- Inliers are residual < tau
- Keep the hypothesis with the most inliers (ties: lower inlier RMS)
- Refit on all inliers of the winner

The number of hypotheses adapts to the best inlier ratio seen so far, so a
clean correspondence set finishes after a handful of draws.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, TypeVar

import numpy as np

from .types import Points2D, Mask2D, ModelFitter, RansacResult

M = TypeVar("M")

logger = logging.getLogger(__name__)
_RANSAC_DEBUG = os.environ.get("MOTIONSTAB_RANSAC_DEBUG", "0") == "1"


def required_iterations(
        *,
        confidence: float,
        inlier_ratio: float,
        sample_size: int,
) -> int:
    """
    Hypotheses needed so that, with probability >= confidence, at least one
    minimal sample is all inliers.

    With inlier ratio w and sample size s:

        P(one sample all inliers)         = w^s
        P(k samples, none all inliers)    = (1 - w^s)^k
        k >= log(1 - p) / log(1 - w^s)
    """
    p = float(np.clip(confidence, 1e-12, 1.0 - 1e-12))
    w = float(np.clip(inlier_ratio, 0.0, 1.0))
    s = int(sample_size)

    if s <= 0:
        raise ValueError("sample_size must be >= 1")
    if w >= 1.0:
        return 1
    if w <= 0.0:
        # Unbounded; the caller's max_iters cap applies.
        return int(1e9)

    w_to_s = float(np.clip(w ** s, 1e-12, 1.0 - 1e-12))
    k = int(np.ceil(np.log(1.0 - p) / np.log(1.0 - w_to_s)))
    return max(1, k)


def ransac(
        model_fitter: ModelFitter[M],
        pts0: Points2D,
        pts1: Points2D,
        *,
        tau: float = 3.0,
        confidence: float = 0.99,
        max_iters: int = 2000,
        seed: int = 0,
        min_samples: Optional[int] = None,
) -> Optional[RansacResult[M]]:
    """
    Fit model_fitter's model from pts0 -> pts1 robustly.

    - model_fitter: fit_minimal / fit_least_squares / residuals
    - pts0, pts1: (N,2) correspondences
    - tau: inlier threshold (reprojection error, px)
    - confidence: stop once an all-inlier sample has been drawn with this probability
    - max_iters: hard cap on hypotheses
    - seed: RNG seed, sampling is reproducible
    - min_samples: override the fitter's minimal sample size

    Returns None when there are too few correspondences or no hypothesis
    gathers at least min_samples inliers.
    """
    if pts0.shape != pts1.shape:
        raise ValueError(f"pts0 and pts1 must have same shape, got {pts0.shape} vs {pts1.shape}")
    if pts0.ndim != 2 or pts0.shape[1] != 2:
        raise ValueError(f"Expected pts shape (N,2), got {pts0.shape}")

    s = int(min_samples if min_samples is not None else model_fitter.min_samples)
    n = pts0.shape[0]
    if n < s:
        return None

    pts0 = pts0.astype(np.float64, copy=False)
    pts1 = pts1.astype(np.float64, copy=False)
    rng = np.random.default_rng(seed)

    best_model: Optional[M] = None
    best_inliers: Optional[Mask2D] = None
    best_num_inliers = -1
    best_rms = float("inf")

    target_iters = max_iters
    iters_run = 0

    while iters_run < min(max_iters, target_iters):
        iters_run += 1

        sample_idx = rng.choice(n, size=s, replace=False)
        model = model_fitter.fit_minimal(pts0[sample_idx], pts1[sample_idx])
        if model is None:
            continue

        err = model_fitter.residuals(model, pts0, pts1)
        inliers: Mask2D = err < tau
        num_inliers = int(np.count_nonzero(inliers))
        if num_inliers < s:
            continue

        inlier_err = err[inliers]
        rms = float(np.sqrt(np.mean(inlier_err * inlier_err)))

        if num_inliers > best_num_inliers or (num_inliers == best_num_inliers and rms < best_rms):
            best_model = model
            best_inliers = inliers
            best_num_inliers = num_inliers
            best_rms = rms

            w = best_num_inliers / float(n)
            needed = required_iterations(confidence=confidence, inlier_ratio=w, sample_size=s)
            target_iters = min(target_iters, max(needed, iters_run))

            if _RANSAC_DEBUG:
                logger.debug(
                    "better model: inliers=%d/%d w=%.3f target_iters=%d",
                    best_num_inliers, n, w, target_iters,
                )

    if best_model is None or best_inliers is None:
        return None

    refit = model_fitter.fit_least_squares(pts0[best_inliers], pts1[best_inliers])
    final_model = refit if refit is not None else best_model

    final_err = model_fitter.residuals(final_model, pts0, pts1)[best_inliers]
    final_rms = float(np.sqrt(np.mean(final_err * final_err)))

    return RansacResult(
        model=final_model,
        inliers=best_inliers,
        num_inliers=int(np.count_nonzero(best_inliers)),
        num_total=int(n),
        rms_error=final_rms,
        iterations=iters_run,
        threshold=float(tau),
    )
