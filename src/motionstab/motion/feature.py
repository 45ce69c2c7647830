"""
Feature-based motion: ORB keypoints matched frame to frame.

Per call:
  1) detect ORB on the current frame
  2) match the stored reference descriptors against it
  3) RANSAC homography, normalized so h22 == 1
  4) validate, range-limit, accumulate
  5) current frame becomes the reference (also when the frame was skipped)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import numpy as np

from ..matching import OrbParams, create_matcher, create_orb, match_keypoints, orb_detect, to_gray
from ..ransac.types import Mat3x3
from .base import BaseMotionEstimator

logger = logging.getLogger(__name__)


@dataclass
class FeatureMotionEstimator(BaseMotionEstimator):
    orb_params: OrbParams = field(default_factory=OrbParams)

    _orb: Any = field(default=None, init=False)
    _matcher: Any = field(default=None, init=False)
    _ref_keypoints: Optional[Sequence[Any]] = field(default=None, init=False)
    _ref_descriptors: Optional[np.ndarray] = field(default=None, init=False)

    def _on_initialize(self) -> None:
        self._orb = create_orb(self.orb_params)
        self._matcher = create_matcher()

    def _clear_reference(self) -> None:
        self._ref_keypoints = None
        self._ref_descriptors = None

    def _release_resources(self) -> None:
        self._orb = None
        self._matcher = None

    def _motion_from_model(self, H: Mat3x3) -> Mat3x3:
        h22 = H[2, 2]
        if h22 != 0.0 and h22 != 1.0:
            H = H / h22
        return H

    def _set_reference(self, gray: np.ndarray) -> int:
        self._ref_keypoints, self._ref_descriptors = orb_detect(gray, self._orb)
        return len(self._ref_keypoints)

    def estimate_motion(self, prev_frame: Optional[np.ndarray], curr_frame: np.ndarray) -> Mat3x3:
        self._require_initialized()
        self._check_frame(curr_frame)
        self.last_info = {"reacquired": False}

        if self._ref_keypoints is None:
            seed = curr_frame if prev_frame is None else prev_frame
            self._check_frame(seed)
            n_ref = self._set_reference(to_gray(seed))
            self.last_info["num_ref_keypoints"] = n_ref
            self._state = "ready"
            logger.debug("reference frame: %d keypoints", n_ref)
            if prev_frame is None:
                self.last_info["reason"] = "first_frame"
                return self._previous_transform.copy()

        if self._reacquire:
            self.last_info["reacquired"] = True
            self._reacquire = False

        gray = to_gray(curr_frame)
        kp1, des1 = orb_detect(gray, self._orb)
        kp0, des0 = self._ref_keypoints, self._ref_descriptors
        self._ref_keypoints, self._ref_descriptors = kp1, des1

        self.last_info["num_ref_keypoints"] = len(kp0)
        self.last_info["num_keypoints"] = len(kp1)

        if len(kp0) < self.params.min_points or len(kp1) < self.params.min_points:
            logger.warning("not enough keypoints: ref=%d curr=%d", len(kp0), len(kp1))
            return self._skip("too_few_keypoints")

        pts0, pts1, num_raw = match_keypoints(kp0, des0, kp1, des1, self._matcher, params=self.orb_params)
        self.last_info["num_matches"] = num_raw
        self.last_info["num_good_matches"] = int(pts0.shape[0])

        motion = self.fit_frame_motion(pts0, pts1)
        if motion is None:
            return self._skip(self.last_info["reason"])
        return self._accept(motion)
