"""
Shared machinery for the motion estimators.

Every estimator turns consecutive frames into ONE cumulative transform
(frame 0 -> current frame). This class is STATEFUL.

It manages:
  - lifecycle state (uninitialized / ready / tracking / reacquiring / failed)
  - the cumulative transform
  - the correspondence -> validated frame motion step

Lifecycle:
  - initialize(width, height)
  - estimate_motion(prev_frame, curr_frame)  (repeated)
  - reset()    back to identity, reference dropped, still initialized
  - release()  also drops detectors and buffers, uninitialized again

Degraded input never raises. The cumulative transform is returned unchanged
(identity motion for that frame) and the estimator reacquires its reference
on the next call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Protocol

import numpy as np

from ..context import VisionContext
from ..errors import InitializationError
from ..ransac import HomographyFitter, homography_to_affine, ransac
from ..ransac.types import Mat3x3, Points2D
from ..transform import accumulate, constrain, identity, is_valid

logger = logging.getLogger(__name__)

EstimatorState = Literal["uninitialized", "ready", "tracking", "reacquiring", "failed"]


@dataclass(frozen=True)
class EstimatorParams:
    """
    Knobs shared by every estimator.

    min_points:
      - fewer correspondences than this -> no estimate for the frame
    ransac_tau / ransac_confidence / ransac_max_iters / ransac_seed:
      - forwarded to the RANSAC loop (tau in px)
    min_inlier_ratio:
      - below this the fit is rejected
    max_translation_fraction:
      - per-frame translation limit as a fraction of frame width / height
    max_scale_delta / max_rotation_deg:
      - per-frame scale and rotation limits
    """
    min_points: int = 10
    ransac_tau: float = 3.0
    ransac_confidence: float = 0.99
    ransac_max_iters: int = 2000
    ransac_seed: int = 0
    min_inlier_ratio: float = 0.5
    max_translation_fraction: float = 0.2
    max_scale_delta: float = 0.2
    max_rotation_deg: float = 30.0


class MotionEstimator(Protocol):
    """
    What drivers and the factory rely on.
    """
    last_info: Dict[str, Any]

    @property
    def state(self) -> EstimatorState: ...

    def initialize(self, width: int, height: int) -> None: ...

    def estimate_motion(self, prev_frame: Optional[np.ndarray], curr_frame: np.ndarray) -> Mat3x3: ...

    def reset(self) -> None: ...

    def release(self) -> None: ...


@dataclass
class BaseMotionEstimator:
    """
    Base class; subclasses implement estimate_motion() and the reference hooks.

    last_info:
      Debug dict refreshed by every estimate_motion() call
      (point counts, inlier ratio, "reason" when the frame was skipped).
    """
    params: EstimatorParams = field(default_factory=EstimatorParams)
    context: Optional[VisionContext] = None

    last_info: Dict[str, Any] = field(default_factory=dict, init=False)

    _width: int = field(default=0, init=False)
    _height: int = field(default=0, init=False)
    _state: EstimatorState = field(default="uninitialized", init=False)
    _previous_transform: Mat3x3 = field(default_factory=identity, init=False)
    _last_motion: Mat3x3 = field(default_factory=identity, init=False)
    _reacquire: bool = field(default=False, init=False)

    # ---------- lifecycle ----------
    def initialize(self, width: int, height: int) -> None:
        """
        Bind the frame size and verify the vision context.

        Raises InitializationError (state -> "failed") when OpenCV lacks a
        capability; ValueError on a non-positive size.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Frame size must be positive, got {width}x{height}")

        if self.context is None:
            self.context = VisionContext()
        try:
            self.context.ensure_initialized()
        except InitializationError:
            self._state = "failed"
            raise

        self._width = int(width)
        self._height = int(height)
        self._previous_transform = identity()
        self._last_motion = identity()
        self._reacquire = False
        self.last_info = {}
        self._clear_reference()
        self._on_initialize()
        self._state = "ready"
        logger.debug("%s initialized for %dx%d", type(self).__name__, self._width, self._height)

    def reset(self) -> None:
        self._previous_transform = identity()
        self._last_motion = identity()
        self._reacquire = False
        self.last_info = {}
        self._clear_reference()
        if self._state not in ("uninitialized", "failed"):
            self._state = "ready"

    def release(self) -> None:
        self.reset()
        self._release_resources()
        self._state = "uninitialized"
        logger.debug("%s released", type(self).__name__)

    @property
    def state(self) -> EstimatorState:
        return self._state

    @property
    def frame_size(self) -> tuple[int, int]:
        return self._width, self._height

    @property
    def previous_transform(self) -> Mat3x3:
        """Cumulative transform after the latest call (copy)."""
        return self._previous_transform.copy()

    @property
    def last_motion(self) -> Mat3x3:
        """Frame-to-frame motion of the latest call; identity when skipped."""
        return self._last_motion.copy()

    def estimate_motion(self, prev_frame: Optional[np.ndarray], curr_frame: np.ndarray) -> Mat3x3:
        raise NotImplementedError

    # ---------- subclass hooks ----------
    def _on_initialize(self) -> None:
        """Create detectors / matchers."""

    def _clear_reference(self) -> None:
        """Drop the stored reference frame data."""

    def _release_resources(self) -> None:
        """Drop detectors / matchers."""

    def _motion_from_model(self, H: Mat3x3) -> Mat3x3:
        """Homography -> affine frame motion."""
        return homography_to_affine(H)

    # ---------- shared steps ----------
    def _require_initialized(self) -> None:
        if self._state in ("uninitialized", "failed"):
            raise RuntimeError("Call initialize() first.")

    def _check_frame(self, frame: np.ndarray) -> None:
        if frame.shape[:2] != (self._height, self._width):
            raise ValueError(
                f"Frame shape {frame.shape[:2]} does not match initialized size "
                f"({self._height}, {self._width})"
            )

    def _accept(self, motion: Mat3x3) -> Mat3x3:
        self._last_motion = motion
        self._previous_transform = accumulate(self._previous_transform, motion)
        self._state = "tracking"
        self.last_info["reason"] = None
        return self._previous_transform.copy()

    def _skip(self, reason: str, *, reacquire: bool = True) -> Mat3x3:
        """
        Identity motion for this frame; the cumulative transform is unchanged.
        """
        self._last_motion = identity()
        self.last_info["reason"] = reason
        if reacquire:
            self._reacquire = True
            self._state = "reacquiring"
        logger.debug("%s: frame skipped (%s)", type(self).__name__, reason)
        return self._previous_transform.copy()

    def fit_frame_motion(self, pts0: Points2D, pts1: Points2D) -> Optional[Mat3x3]:
        """
        Validated, range-limited frame motion from correspondences, or None.

        Fills last_info with the counts and the failure reason.
        """
        n = int(pts0.shape[0])
        self.last_info["num_points"] = n
        self.last_info["num_inliers"] = 0
        self.last_info["inlier_ratio"] = 0.0

        if n < self.params.min_points:
            self.last_info["reason"] = "too_few_points"
            return None

        result = ransac(
            HomographyFitter(),
            pts0,
            pts1,
            tau=self.params.ransac_tau,
            confidence=self.params.ransac_confidence,
            max_iters=self.params.ransac_max_iters,
            seed=self.params.ransac_seed,
        )
        if result is None:
            self.last_info["reason"] = "no_model"
            return None

        self.last_info["num_inliers"] = result.num_inliers
        self.last_info["inlier_ratio"] = result.inlier_ratio
        self.last_info["rms_error"] = result.rms_error

        if result.inlier_ratio < self.params.min_inlier_ratio:
            logger.debug("low inlier ratio %.3f", result.inlier_ratio)
            self.last_info["reason"] = "low_inlier_ratio"
            return None

        motion = self._motion_from_model(result.model)
        if not is_valid(motion):
            logger.warning("%s: invalid transform, using identity", type(self).__name__)
            self.last_info["reason"] = "invalid_transform"
            return None

        p = self.params
        return constrain(
            motion,
            (p.max_translation_fraction * self._width, p.max_translation_fraction * self._height),
            p.max_scale_delta,
            p.max_rotation_deg,
        )

    def estimate_from_correspondences(self, pts0: Points2D, pts1: Points2D) -> Mat3x3:
        """
        Run the shared estimation step on given correspondences and
        accumulate the result.

        Returns the new cumulative transform; on failure it is unchanged
        and the estimator reacquires on its next frame.
        """
        self._require_initialized()
        pts0 = np.asarray(pts0, dtype=np.float64)
        pts1 = np.asarray(pts1, dtype=np.float64)
        if pts0.shape != pts1.shape or pts0.ndim != 2 or pts0.shape[1] != 2:
            raise ValueError(f"Expected pts0/pts1 shape (N,2) matching; got {pts0.shape} vs {pts1.shape}")

        motion = self.fit_frame_motion(pts0, pts1)
        if motion is None:
            return self._skip(self.last_info["reason"])
        return self._accept(motion)
