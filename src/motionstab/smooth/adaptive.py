"""
Motion-adaptive smoother.

Owns one Gaussian and one Kalman smoother and feeds both every sample.
After each sample it measures recent motion:

    velocity[t]     = params[t] - params[t-1]
    intensity       = mean over (rotation, tx, ty) of
                      mean(|velocity|) over the last min(history, t) steps

and adapts:

    intensity < threshold_low   -> Gaussian, window += step (<= max),
                                   strength += step (<= max)
    intensity > threshold_high  -> Kalman,   window -= step (>= min),
                                   strength -= step (>= min)
    otherwise                   -> unchanged

A parameter change re-initializes the selected sub-smoother only (its
strategy state, not the history). The Kalman filter is re-seeded from its
last output so a rebuild does not jump back to identity.

causal=True never selects the Gaussian (it needs future samples); the
low-motion branch then keeps the Kalman filter and only raises strength.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Literal, Optional, Tuple

import numpy as np

from ..ransac.types import FloatArray, Mat3x3
from ..transform import identity
from ..transform.types import ROTATION, TX, TY
from .base import BaseSmoother
from .gaussian import GaussianSmoother
from .kalman import KalmanSmoother

logger = logging.getLogger(__name__)

Strategy = Literal["gaussian", "kalman"]


@dataclass(frozen=True)
class AdaptiveParams:
    """
    Thresholds and adaptation steps. Intensities are in decomposed-parameter
    units per frame (degrees for rotation, px for translation).
    """
    threshold_low: float = 0.01
    threshold_high: float = 0.1
    min_window: int = 5
    max_window: int = 60
    window_step: int = 5
    min_strength: float = 0.1
    max_strength: float = 1.0
    strength_step: float = 0.1
    history: int = 10

    def __post_init__(self) -> None:
        if self.threshold_low > self.threshold_high:
            raise ValueError("threshold_low must not exceed threshold_high")
        if self.min_window < 1 or self.min_window > self.max_window:
            raise ValueError("window bounds must satisfy 1 <= min_window <= max_window")
        if self.history < 1:
            raise ValueError("history must be >= 1")


@dataclass
class AdaptiveSmoother(BaseSmoother):
    adaptive_params: AdaptiveParams = field(default_factory=AdaptiveParams)
    causal: bool = False

    _gaussian: Optional[GaussianSmoother] = field(default=None, init=False)
    _kalman: Optional[KalmanSmoother] = field(default=None, init=False)
    _velocities: Deque[FloatArray] = field(default_factory=deque, init=False)
    _active: Strategy = field(default="gaussian", init=False)
    _selections: List[Strategy] = field(default_factory=list, init=False)
    _last_intensity: float = field(default=0.0, init=False)
    _initial: Tuple[int, float] = field(default=(0, 0.0), init=False)

    def initialize(self, window_size: int, strength: float) -> None:
        super().initialize(window_size, strength)
        self._initial = (self.window_size, self.strength)
        self._gaussian = GaussianSmoother()
        self._gaussian.initialize(self.window_size, self.strength)
        self._kalman = KalmanSmoother()
        self._kalman.initialize(self.window_size, self.strength)
        self._velocities = deque(maxlen=self.adaptive_params.history)
        self._active = "kalman" if self.causal else "gaussian"
        self._selections = []

    @property
    def active_strategy(self) -> Strategy:
        return self._active

    @property
    def selections(self) -> List[Strategy]:
        """Strategy used for each frame so far."""
        return list(self._selections)

    @property
    def motion_intensity(self) -> float:
        return self._last_intensity

    def reset(self) -> None:
        """Clear history and return to the window/strength given to initialize()."""
        super().reset()
        if self._initialized:
            self.window_size, self.strength = self._initial
        for sub in (self._gaussian, self._kalman):
            if sub is not None:
                sub.reset()
                sub.initialize(self.window_size, self.strength)
        self._velocities.clear()
        self._selections = []
        self._last_intensity = 0.0
        self._active = "kalman" if self.causal else "gaussian"

    def _on_release(self) -> None:
        if self._gaussian is not None:
            self._gaussian.release()
        if self._kalman is not None:
            self._kalman.release()
        self._gaussian = None
        self._kalman = None
        self._velocities.clear()
        self._selections = []

    def _adapt(self) -> None:
        ap = self.adaptive_params
        recent = np.abs(np.asarray(self._velocities))
        mean_abs = recent.mean(axis=0)
        intensity = float((mean_abs[ROTATION] + mean_abs[TX] + mean_abs[TY]) / 3.0)
        self._last_intensity = intensity

        window, strength = self.window_size, self.strength
        if intensity < ap.threshold_low:
            if not self.causal:
                self._active = "gaussian"
            window = min(ap.max_window, window + ap.window_step)
            strength = min(ap.max_strength, strength + ap.strength_step)
        elif intensity > ap.threshold_high:
            self._active = "kalman"
            window = max(ap.min_window, window - ap.window_step)
            strength = max(ap.min_strength, strength - ap.strength_step)
        else:
            return

        strength = round(strength, 6)
        if window == self.window_size and strength == self.strength:
            return

        logger.debug(
            "adaptive: intensity=%.4f -> %s window=%d strength=%.2f",
            intensity, self._active, window, strength,
        )
        self.window_size, self.strength = window, strength
        if self._active == "gaussian":
            self._gaussian.initialize(window, strength)
        else:
            last = self._kalman.last_smoothed_params()
            velocity = self._kalman.state
            self._kalman.initialize(window, strength)
            if last is not None:
                self._kalman.seed(last, None if velocity is None else velocity[len(last):])

    def _smooth_latest(self) -> None:
        if len(self._params) > 1:
            self._velocities.append(self._params[-1] - self._params[-2])
            self._adapt()

        T = self._originals[-1]
        ts = self._timestamps[-1]
        k_out = self._kalman.add_transform(T, ts)
        if self.causal:
            out = k_out
        else:
            g_out = self._gaussian.add_transform(T, ts)
            out = g_out if self._active == "gaussian" else k_out

        self._selections.append(self._active)
        self._smoothed.append(out)

    def get_smooth_transform(self, index: int) -> Mat3x3:
        """
        Gaussian-selected frames report the Gaussian's latest (refreshed)
        value for that frame; Kalman-selected frames what was emitted.
        """
        if index < 0 or index >= len(self._smoothed):
            return identity()
        if self._selections[index] == "gaussian" and self._gaussian is not None:
            return self._gaussian.get_smooth_transform(index)
        return self._smoothed[index].copy()
