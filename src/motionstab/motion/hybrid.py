"""
Hybrid motion: optical flow blended with the sensor estimate.

Frame motion = weighted_average(vision, sensor, vision_weight) when both
produced an estimate for the frame; whichever one did otherwise; identity
when neither did.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from ..ransac.types import Mat3x3
from ..transform import weighted_average
from .base import BaseMotionEstimator
from .optical_flow import OpticalFlowMotionEstimator
from .sensor import SensorMotionEstimator, SensorParams

logger = logging.getLogger(__name__)


@dataclass
class HybridMotionEstimator(BaseMotionEstimator):
    vision_weight: float = 0.7
    sensor_params: SensorParams = field(default_factory=SensorParams)

    _vision: Optional[OpticalFlowMotionEstimator] = field(default=None, init=False)
    _sensor: Optional[SensorMotionEstimator] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if not (0.0 <= self.vision_weight <= 1.0):
            raise ValueError(f"vision_weight must be in [0, 1], got {self.vision_weight}")

    @property
    def sensor_weight(self) -> float:
        return 1.0 - self.vision_weight

    def _on_initialize(self) -> None:
        self._vision = OpticalFlowMotionEstimator(params=self.params, context=self.context)
        self._sensor = SensorMotionEstimator(
            params=self.params, context=self.context, sensor_params=self.sensor_params,
        )
        self._vision.initialize(self._width, self._height)
        self._sensor.initialize(self._width, self._height)

    def _clear_reference(self) -> None:
        if self._vision is not None:
            self._vision.reset()
        if self._sensor is not None:
            self._sensor.reset()

    def _release_resources(self) -> None:
        if self._vision is not None:
            self._vision.release()
        if self._sensor is not None:
            self._sensor.release()
        self._vision = None
        self._sensor = None

    def add_sensor_sample(self, gyro: Sequence[float], accel: Sequence[float], timestamp_ms: int) -> None:
        self._require_initialized()
        self._sensor.add_sensor_sample(gyro, accel, timestamp_ms)

    set_sensor_data = add_sensor_sample

    def estimate_motion(self, prev_frame: Optional[np.ndarray], curr_frame: np.ndarray) -> Mat3x3:
        self._require_initialized()
        self._vision.estimate_motion(prev_frame, curr_frame)
        self._sensor.estimate_motion(prev_frame, curr_frame)

        vision_ok = self._vision.last_info.get("reason") is None
        sensor_ok = self._sensor.last_info.get("reason") is None
        self.last_info = {
            "vision": dict(self._vision.last_info),
            "sensor": dict(self._sensor.last_info),
        }

        if vision_ok and sensor_ok:
            motion = weighted_average(self._vision.last_motion, self._sensor.last_motion, self.vision_weight)
            self.last_info["source"] = "blend"
        elif vision_ok:
            motion = self._vision.last_motion
            self.last_info["source"] = "vision"
        elif sensor_ok:
            motion = self._sensor.last_motion
            self.last_info["source"] = "sensor"
        else:
            self.last_info["source"] = None
            return self._skip(self._vision.last_info.get("reason") or "no_estimate", reacquire=False)

        return self._accept(motion)
