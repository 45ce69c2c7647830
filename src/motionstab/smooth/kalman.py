"""
Constant-velocity Kalman smoother (causal), on cv2.KalmanFilter.

State (10): the 5 decomposed parameters and their per-frame velocities.

    A = [[I5, I5],
         [ 0, I5]]          position += velocity
    H = [I5, 0]             only positions are measured
    Q = 1e-4 * (1 - strength) * I10
    R = 1e-1 * strength * I5
    P0 = I10

Each sample runs predict() then correct() and emits the corrected
positions. The state starts at the identity transform with zero velocity.

Higher strength means more measurement noise relative to process noise,
which makes the filter trust its own prediction longer: the output is
smoother and takes more samples to settle on a step change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import cv2

from ..ransac.types import FloatArray
from ..transform import NUM_PARAMS, TransformParams
from .base import BaseSmoother

logger = logging.getLogger(__name__)

STATE_DIM = 2 * NUM_PARAMS
PROCESS_NOISE = 1e-4
MEASUREMENT_NOISE = 1e-1


def _identity_state() -> np.ndarray:
    state = np.zeros((STATE_DIM, 1), dtype=np.float64)
    state[:NUM_PARAMS, 0] = TransformParams.identity().as_array()
    return state


@dataclass
class KalmanSmoother(BaseSmoother):
    _kf: Any = field(default=None, init=False)

    def _on_initialize(self) -> None:
        kf = cv2.KalmanFilter(STATE_DIM, NUM_PARAMS, 0, cv2.CV_64F)

        A = np.eye(STATE_DIM, dtype=np.float64)
        A[:NUM_PARAMS, NUM_PARAMS:] = np.eye(NUM_PARAMS)
        kf.transitionMatrix = A

        H = np.zeros((NUM_PARAMS, STATE_DIM), dtype=np.float64)
        H[:, :NUM_PARAMS] = np.eye(NUM_PARAMS)
        kf.measurementMatrix = H

        kf.processNoiseCov = PROCESS_NOISE * (1.0 - self.strength) * np.eye(STATE_DIM, dtype=np.float64)
        kf.measurementNoiseCov = MEASUREMENT_NOISE * self.strength * np.eye(NUM_PARAMS, dtype=np.float64)
        kf.errorCovPost = np.eye(STATE_DIM, dtype=np.float64)
        kf.statePost = _identity_state()
        self._kf = kf
        logger.debug("Kalman filter rebuilt (strength=%.2f)", self.strength)

    def _on_release(self) -> None:
        self._kf = None

    def seed(self, params: FloatArray, velocity: Optional[FloatArray] = None) -> None:
        """
        Start the filter from a known position (and velocity) instead of identity.
        """
        if self._kf is None:
            raise RuntimeError("Call initialize() first.")
        state = np.zeros((STATE_DIM, 1), dtype=np.float64)
        state[:NUM_PARAMS, 0] = np.asarray(params, dtype=np.float64).reshape(-1)
        if velocity is not None:
            state[NUM_PARAMS:, 0] = np.asarray(velocity, dtype=np.float64).reshape(-1)
        self._kf.statePost = state

    @property
    def state(self) -> Optional[FloatArray]:
        """Current posterior state, (10,)."""
        if self._kf is None:
            return None
        return np.asarray(self._kf.statePost, dtype=np.float64).reshape(-1).copy()

    def _smooth_latest(self) -> None:
        measurement = self._params[-1].reshape(NUM_PARAMS, 1).astype(np.float64)
        self._kf.predict()
        corrected = self._kf.correct(measurement)
        self._smoothed.append(self._recompose(np.asarray(corrected).reshape(-1)[:NUM_PARAMS]))
