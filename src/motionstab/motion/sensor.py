"""
Sensor-based motion from gyroscope / accelerometer samples.

Samples are pushed as they arrive (add_sensor_sample). Each
estimate_motion() call integrates every sample received since the previous
call, using rectangle integration over consecutive timestamps:

    angle_axis = sum(rate_axis[i] * dt[i])

and maps the camera rotation onto the image plane (device axes: x right,
y up, z toward the viewer; rear camera; image y points down):

    rotation_deg = degrees(angle_z)
    tx           = focal_px * angle_y
    ty           = focal_px * angle_x

With pixels_per_meter > 0 the accelerometer (gravity already removed) is
integrated twice and adds

    tx -= pixels_per_meter * dx
    ty += pixels_per_meter * dy

No samples since the previous call -> identity motion. A first call with
prev_frame=None marks the start of the clip: samples queued until then are
not integrated.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional, Sequence, Tuple

import numpy as np

from ..ransac.types import Mat3x3
from ..transform import compose, constrain
from .base import BaseMotionEstimator

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class SensorSample:
    timestamp_ms: int
    gyro: Vec3
    accel: Vec3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class SensorParams:
    """
    focal_px:
      - focal length in pixels; None -> max(width, height)
    pixels_per_meter:
      - accelerometer displacement scale; 0 disables the term
    max_pending:
      - cap on buffered samples between two frames (oldest dropped)
    """
    focal_px: Optional[float] = None
    pixels_per_meter: float = 0.0
    max_pending: int = 1000


def _as_vec3(values: Sequence[float], name: str) -> Vec3:
    v = tuple(float(x) for x in values)
    if len(v) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(v)}")
    return v  # type: ignore[return-value]


@dataclass
class SensorMotionEstimator(BaseMotionEstimator):
    sensor_params: SensorParams = field(default_factory=SensorParams)

    _pending: Deque[SensorSample] = field(default_factory=deque, init=False)
    _last_sample: Optional[SensorSample] = field(default=None, init=False)
    _velocity: np.ndarray = field(default_factory=lambda: np.zeros(2), init=False)

    def _on_initialize(self) -> None:
        self._pending = deque(maxlen=self.sensor_params.max_pending)

    def _clear_reference(self) -> None:
        self._pending = deque(maxlen=self.sensor_params.max_pending)
        self._last_sample = None
        self._velocity = np.zeros(2)

    @property
    def focal_px(self) -> float:
        if self.sensor_params.focal_px is not None:
            return float(self.sensor_params.focal_px)
        return float(max(self._width, self._height))

    def add_sensor_sample(self, gyro: Sequence[float], accel: Sequence[float], timestamp_ms: int) -> None:
        """
        Queue one sample. gyro in rad/s, accel in m/s^2.
        """
        sample = SensorSample(int(timestamp_ms), _as_vec3(gyro, "gyro"), _as_vec3(accel, "accel"))
        if self._pending and sample.timestamp_ms < self._pending[-1].timestamp_ms:
            logger.debug("out-of-order sensor sample at %d ms dropped", sample.timestamp_ms)
            return
        self._pending.append(sample)

    set_sensor_data = add_sensor_sample

    def integrate_pending(self) -> Optional[Mat3x3]:
        """
        Consume the queued samples. None when there were none.
        """
        if not self._pending:
            return None

        samples = list(self._pending)
        self._pending.clear()

        angle = np.zeros(3)
        disp = np.zeros(2)
        prev = self._last_sample
        for s in samples:
            dt = 0.0 if prev is None else max(0.0, (s.timestamp_ms - prev.timestamp_ms) / 1000.0)
            angle += np.asarray(s.gyro) * dt
            if self.sensor_params.pixels_per_meter > 0.0:
                self._velocity = self._velocity + np.asarray(s.accel[:2]) * dt
                disp += self._velocity * dt
            prev = s
        self._last_sample = prev

        f = self.focal_px
        ppm = self.sensor_params.pixels_per_meter
        tx = f * angle[1] - ppm * disp[0]
        ty = f * angle[0] + ppm * disp[1]
        self.last_info["num_samples"] = len(samples)
        self.last_info["angle_rad"] = angle.tolist()
        return compose(1.0, 1.0, math.degrees(angle[2]), tx, ty)

    def estimate_motion(self, prev_frame: Optional[np.ndarray], curr_frame: np.ndarray) -> Mat3x3:
        """
        Frames only fix the call cadence; motion comes from the samples.
        """
        self._require_initialized()
        self.last_info = {}

        if prev_frame is None and self._last_sample is None:
            # Samples before the first frame only anchor the integration start.
            if self._pending:
                self._last_sample = self._pending[-1]
                self._pending.clear()
            self.last_info["reason"] = "first_frame"
            return self._previous_transform.copy()

        motion = self.integrate_pending()
        if motion is None:
            return self._skip("no_sensor_data", reacquire=False)

        p = self.params
        motion = constrain(
            motion,
            (p.max_translation_fraction * self._width, p.max_translation_fraction * self._height),
            p.max_scale_delta,
            p.max_rotation_deg,
        )
        return self._accept(motion)
