from __future__ import annotations

from typing import Literal, Optional

from .adaptive import AdaptiveParams, AdaptiveSmoother
from .base import BaseSmoother, DEFAULT_STRENGTH, DEFAULT_WINDOW_SIZE
from .gaussian import GaussianSmoother
from .kalman import KalmanSmoother

SmootherKind = Literal["kalman", "gaussian", "adaptive"]
SMOOTHER_KINDS = ("kalman", "gaussian", "adaptive")


def create_smoother(
        kind: SmootherKind,
        window_size: int = DEFAULT_WINDOW_SIZE,
        strength: float = DEFAULT_STRENGTH,
        *,
        causal: bool = False,
        adaptive_params: Optional[AdaptiveParams] = None,
) -> BaseSmoother:
    """
    Build and initialize a smoother.

    causal=True asks for a strategy that never looks ahead: "adaptive"
    then runs restricted to the Kalman filter, and "gaussian" is refused.
    """
    if kind == "kalman":
        smoother: BaseSmoother = KalmanSmoother()
    elif kind == "gaussian":
        if causal:
            raise ValueError("The gaussian smoother needs future samples and cannot run causally")
        smoother = GaussianSmoother()
    elif kind == "adaptive":
        smoother = AdaptiveSmoother(adaptive_params=adaptive_params or AdaptiveParams(), causal=causal)
    else:
        raise ValueError(f"Unknown smoother: {kind!r} (expected one of {SMOOTHER_KINDS})")

    smoother.initialize(window_size, strength)
    return smoother
