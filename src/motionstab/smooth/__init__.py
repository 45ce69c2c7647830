"""
Transform smoothing and trajectory optimization
"""
from .base import BaseSmoother, MotionSmoother, DEFAULT_WINDOW_SIZE, DEFAULT_STRENGTH
from .gaussian import GaussianSmoother, gaussian_kernel
from .kalman import KalmanSmoother
from .adaptive import AdaptiveParams, AdaptiveSmoother
from .factory import SmootherKind, SMOOTHER_KINDS, create_smoother
from .trajectory import TrajectoryOptimizer, TrajectoryRecord, trajectory_bounds

__all__ = [
    "BaseSmoother", "MotionSmoother", "DEFAULT_WINDOW_SIZE", "DEFAULT_STRENGTH",
    "GaussianSmoother", "gaussian_kernel",
    "KalmanSmoother",
    "AdaptiveParams", "AdaptiveSmoother",
    "SmootherKind", "SMOOTHER_KINDS", "create_smoother",
    "TrajectoryOptimizer", "TrajectoryRecord", "trajectory_bounds",
]
