"""
Whole-sequence trajectory optimization with a boundary constraint.

After the whole clip has been analysed:

  1) smooth the full original sequence with the configured smoother
  2) bounds = [min_x, min_y, max_x, max_y] of translation, for the original
     and the smoothed sequence
  3) diff = smooth_bounds - original_bounds
  4) factor_i = min(1, (i / N) / ramp_fraction) * boundary_constraint
  5) optimized translation = smoothed translation - diff[min_x, min_y] * factor_i
  6) with a non-zero constraint, optimized translation is clipped into
     original_bounds

Scale and rotation pass through from the smoothed sequence. The correction
pulls a long clip's smoothed path back toward the region the original path
visited, ramping in over the first ramp_fraction of the clip. Kalman and
adaptive output can overshoot both edges of the original range; step 6
keeps every smoother inside it.

optimize_trajectory() builds into locals and publishes a complete new
TrajectoryRecord only when it finishes; a cancelled or failed run leaves
the previously published record in place.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import StabilizationCancelled
from ..ransac.types import FloatArray, Mat3x3
from ..transform import MotionSample, compose, decompose, identity
from .adaptive import AdaptiveParams
from .factory import SmootherKind, create_smoother

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int], None]

DEFAULT_BOUNDARY_CONSTRAINT = 0.1
DEFAULT_RAMP_FRACTION = 0.2


def trajectory_bounds(transforms: Sequence[Mat3x3]) -> FloatArray:
    """
    [min_x, min_y, max_x, max_y] of the translation column; zeros when empty.
    """
    if len(transforms) == 0:
        return np.zeros(4, dtype=np.float64)
    t = np.array([[T[0, 2], T[1, 2]] for T in transforms], dtype=np.float64)
    mins = t.min(axis=0)
    maxs = t.max(axis=0)
    return np.array([mins[0], mins[1], maxs[0], maxs[1]], dtype=np.float64)


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise StabilizationCancelled("trajectory optimization cancelled")


@dataclass(frozen=True, eq=False)
class TrajectoryRecord:
    original: Tuple[Mat3x3, ...] = ()
    smoothed: Tuple[Mat3x3, ...] = ()
    optimized: Tuple[Mat3x3, ...] = ()
    original_bounds: FloatArray = field(default_factory=lambda: np.zeros(4))
    smooth_bounds: FloatArray = field(default_factory=lambda: np.zeros(4))

    def __len__(self) -> int:
        return len(self.optimized)


@dataclass
class TrajectoryOptimizer:
    """
    Usage:
        opt.initialize("gaussian", 30, 0.5, 0.1)
        for sample in motion_samples:
            opt.add_sample(sample)
        record = opt.optimize_trajectory()
    """
    smoother_kind: SmootherKind = "gaussian"
    window_size: int = 30
    smoothing_strength: float = 0.5
    boundary_constraint: float = DEFAULT_BOUNDARY_CONSTRAINT
    ramp_fraction: float = DEFAULT_RAMP_FRACTION
    adaptive_params: Optional[AdaptiveParams] = None

    _original: List[Mat3x3] = field(default_factory=list, init=False)
    _timestamps: List[int] = field(default_factory=list, init=False)
    _record: TrajectoryRecord = field(default_factory=TrajectoryRecord, init=False)

    def __post_init__(self) -> None:
        self.boundary_constraint = float(np.clip(self.boundary_constraint, 0.0, 1.0))
        if not (0.0 < self.ramp_fraction <= 1.0):
            raise ValueError(f"ramp_fraction must be in (0, 1], got {self.ramp_fraction}")

    def initialize(
            self,
            smoother_kind: SmootherKind,
            window_size: int,
            smoothing_strength: float,
            boundary_constraint: float,
    ) -> None:
        self.smoother_kind = smoother_kind
        self.window_size = int(window_size)
        self.smoothing_strength = float(smoothing_strength)
        self.boundary_constraint = float(np.clip(boundary_constraint, 0.0, 1.0))
        logger.debug(
            "trajectory optimizer: %s window=%d strength=%.2f constraint=%.2f",
            smoother_kind, self.window_size, self.smoothing_strength, self.boundary_constraint,
        )

    def add_transform(self, transform: Mat3x3, timestamp_ms: Optional[int] = None) -> None:
        T = np.array(transform, dtype=np.float64, copy=True)
        if T.shape != (3, 3):
            raise ValueError(f"add_transform expects a (3,3) transform, got {T.shape}")
        self._original.append(T)
        self._timestamps.append(len(self._timestamps) if timestamp_ms is None else int(timestamp_ms))

    def add_sample(self, sample: MotionSample) -> None:
        self.add_transform(sample.transform, sample.timestamp_ms)

    def __len__(self) -> int:
        return len(self._original)

    @property
    def record(self) -> TrajectoryRecord:
        return self._record

    def optimize_trajectory(
            self,
            cancel: Optional[threading.Event] = None,
            progress: Optional[ProgressFn] = None,
    ) -> TrajectoryRecord:
        """
        Smooth and boundary-correct the whole sequence, publish and return it.

        Raises StabilizationCancelled when cancel is set between frames.
        """
        original = tuple(T.copy() for T in self._original)
        n = len(original)

        smoother = create_smoother(
            self.smoother_kind,
            self.window_size,
            self.smoothing_strength,
            adaptive_params=self.adaptive_params,
        )
        for i, T in enumerate(original):
            _check_cancel(cancel)
            smoother.add_transform(T, self._timestamps[i])
            if progress is not None:
                progress(i + 1, 2 * n)
        smoothed = tuple(smoother.get_all_smooth_transforms())
        smoother.release()

        original_bounds = trajectory_bounds(original)
        smooth_bounds = trajectory_bounds(smoothed)
        diff = smooth_bounds - original_bounds

        lo, hi = original_bounds[:2], original_bounds[2:]
        optimized: List[Mat3x3] = []
        for i, S in enumerate(smoothed):
            _check_cancel(cancel)
            factor = min(1.0, (i / n) / self.ramp_fraction) * self.boundary_constraint
            p = decompose(S)
            t = np.array([p.tx - diff[0] * factor, p.ty - diff[1] * factor])
            if self.boundary_constraint > 0.0:
                t = np.clip(t, lo, hi)
            optimized.append(compose(p.scale_x, p.scale_y, p.rotation_deg, t[0], t[1]))
            if progress is not None:
                progress(n + i + 1, 2 * n)

        self._record = TrajectoryRecord(
            original=original,
            smoothed=smoothed,
            optimized=tuple(optimized),
            original_bounds=original_bounds,
            smooth_bounds=smooth_bounds,
        )
        logger.info("trajectory optimized over %d frames (bounds diff %s)", n, np.round(diff, 3).tolist())
        return self._record

    def _get(self, seq: Sequence[Mat3x3], index: int) -> Mat3x3:
        if index < 0 or index >= len(seq):
            return identity()
        return seq[index].copy()

    def get_original_transform(self, index: int) -> Mat3x3:
        return self._get(self._original, index)

    def get_smooth_transform(self, index: int) -> Mat3x3:
        return self._get(self._record.smoothed, index)

    def get_optimized_transform(self, index: int) -> Mat3x3:
        return self._get(self._record.optimized, index)

    def reset(self) -> None:
        self._original.clear()
        self._timestamps.clear()
        self._record = TrajectoryRecord()

    def release(self) -> None:
        self.reset()
