"""
Optical-flow motion: Shi–Tomasi corners tracked with pyramidal LK.

Per call:
  - reacquire (re-detect corners on the reference frame) when requested
    or when fewer than min_points corners remain
  - track reference -> current, keep successful tracks
  - RANSAC homography, keep its top 2x3 block
  - tracked points become the next reference; if fewer than
    min_points / 2 survive, the next call reacquires
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ..matching import LKParams, ShiTomasiParams, clean_points, lk_track, shitomasi_detect, to_gray
from ..ransac.types import Mat3x3, Points2D
from .base import BaseMotionEstimator

logger = logging.getLogger(__name__)


@dataclass
class OpticalFlowMotionEstimator(BaseMotionEstimator):
    corner_params: ShiTomasiParams = field(default_factory=ShiTomasiParams)
    lk_params: LKParams = field(default_factory=LKParams)

    _ref_gray: Optional[np.ndarray] = field(default=None, init=False)
    _ref_pts: Optional[Points2D] = field(default=None, init=False)

    def _clear_reference(self) -> None:
        self._ref_gray = None
        self._ref_pts = None

    def _redetect(self) -> None:
        self._ref_pts = shitomasi_detect(self._ref_gray, params=self.corner_params)

    def estimate_motion(self, prev_frame: Optional[np.ndarray], curr_frame: np.ndarray) -> Mat3x3:
        self._require_initialized()
        self._check_frame(curr_frame)
        self.last_info = {"reacquired": False}

        if self._ref_gray is None:
            seed = curr_frame if prev_frame is None else prev_frame
            self._check_frame(seed)
            self._ref_gray = to_gray(seed)
            self._redetect()
            self._reacquire = False
            self._state = "ready"
            logger.debug("reference frame: %d corners", self._ref_pts.shape[0])
            if prev_frame is None:
                self.last_info["reason"] = "first_frame"
                return self._previous_transform.copy()

        gray = to_gray(curr_frame)

        if self._reacquire or self._ref_pts is None or self._ref_pts.shape[0] < self.params.min_points:
            self._redetect()
            self._reacquire = False
            self.last_info["reacquired"] = True
            if self._ref_pts.shape[0] < self.params.min_points:
                logger.warning("not enough corners to track: %d", self._ref_pts.shape[0])
                self._ref_gray = gray
                return self._skip("too_few_corners")

        pts0_raw, pts1_raw, status, _ = lk_track(self._ref_gray, gray, self._ref_pts, params=self.lk_params)
        pts0, pts1, _ = clean_points(pts0_raw, pts1_raw, status=status)
        self.last_info["num_corners"] = int(pts0_raw.shape[0])
        self.last_info["num_tracked"] = int(pts0.shape[0])

        self._ref_gray = gray

        if pts0.shape[0] < self.params.min_points:
            logger.warning("not enough tracked points: %d", pts0.shape[0])
            return self._skip("too_few_tracked")

        motion = self.fit_frame_motion(pts0, pts1)

        self._ref_pts = pts1
        if pts1.shape[0] < self.params.min_points // 2:
            self._reacquire = True

        if motion is None:
            return self._skip(self.last_info["reason"])
        return self._accept(motion)
