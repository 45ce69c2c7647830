"""
Shared history handling for the transform smoothers.

A smoother consumes a stream of transforms (one per frame, in order) and
keeps three parallel lists:

  - originals  (as received)
  - smoothed   (what the strategy produced; acausal strategies may revise
                earlier entries as later samples arrive)
  - timestamps (ms)

Strategies work on the decomposed 5-vector of each transform
(scale_x, scale_y, rotation_deg, tx, ty) and recompose the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import numpy as np

from ..ransac.types import FloatArray, Mat3x3
from ..transform import MotionSample, compose_array, decompose, identity

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 30
DEFAULT_STRENGTH = 0.5


class MotionSmoother(Protocol):
    def initialize(self, window_size: int, strength: float) -> None: ...

    def add_transform(self, transform: Mat3x3, timestamp_ms: int = 0) -> Mat3x3: ...

    def add_sample(self, sample: MotionSample) -> Mat3x3: ...

    def get_smooth_transform(self, index: int) -> Mat3x3: ...

    def get_all_smooth_transforms(self) -> List[Mat3x3]: ...

    def reset(self) -> None: ...

    def release(self) -> None: ...


def to_params(T: Mat3x3) -> FloatArray:
    return decompose(T).as_array()


@dataclass
class BaseSmoother:
    """
    Subclasses implement _smooth_latest(), which must append exactly one
    entry to _smoothed (and may overwrite earlier ones).

    Adding a transform before initialize() initializes with the defaults.
    """
    window_size: int = DEFAULT_WINDOW_SIZE
    strength: float = DEFAULT_STRENGTH

    _originals: List[Mat3x3] = field(default_factory=list, init=False)
    _params: List[FloatArray] = field(default_factory=list, init=False)
    _smoothed: List[Mat3x3] = field(default_factory=list, init=False)
    _timestamps: List[int] = field(default_factory=list, init=False)
    _initialized: bool = field(default=False, init=False)

    def initialize(self, window_size: int, strength: float) -> None:
        """
        Set the strategy parameters and rebuild strategy state.

        History is kept; strength is clamped to [0, 1].
        """
        if int(window_size) < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.window_size = int(window_size)
        self.strength = float(np.clip(strength, 0.0, 1.0))
        self._on_initialize()
        self._initialized = True

    @property
    def initialized(self) -> bool:
        return self._initialized

    def __len__(self) -> int:
        return len(self._originals)

    def add_transform(self, transform: Mat3x3, timestamp_ms: int = 0) -> Mat3x3:
        if not self._initialized:
            self.initialize(self.window_size, self.strength)

        T = np.array(transform, dtype=np.float64, copy=True)
        if T.shape != (3, 3):
            raise ValueError(f"add_transform expects a (3,3) transform, got {T.shape}")

        self._originals.append(T)
        self._params.append(to_params(T))
        self._timestamps.append(int(timestamp_ms))
        self._smooth_latest()
        return self._smoothed[-1].copy()

    def add_sample(self, sample: MotionSample) -> Mat3x3:
        return self.add_transform(sample.transform, sample.timestamp_ms)

    def get_original_transform(self, index: int) -> Mat3x3:
        if index < 0 or index >= len(self._originals):
            return identity()
        return self._originals[index].copy()

    def get_smooth_transform(self, index: int) -> Mat3x3:
        """Smoothed transform at index; identity when out of range."""
        if index < 0 or index >= len(self._smoothed):
            return identity()
        return self._smoothed[index].copy()

    def get_all_smooth_transforms(self) -> List[Mat3x3]:
        return [self.get_smooth_transform(i) for i in range(len(self._smoothed))]

    def last_smoothed_params(self) -> Optional[FloatArray]:
        """Decomposed form of the newest smoothed transform, None when empty."""
        if not self._smoothed:
            return None
        return to_params(self._smoothed[-1])

    @property
    def timestamps(self) -> List[int]:
        return list(self._timestamps)

    def reset(self) -> None:
        self._originals.clear()
        self._params.clear()
        self._smoothed.clear()
        self._timestamps.clear()
        if self._initialized:
            self._on_initialize()

    def release(self) -> None:
        self.reset()
        self._on_release()
        self._initialized = False

    # ---------- subclass hooks ----------
    def _on_initialize(self) -> None:
        """Rebuild strategy state (kernel, filter)."""

    def _on_release(self) -> None:
        """Drop strategy state."""

    def _smooth_latest(self) -> None:
        raise NotImplementedError

    @staticmethod
    def _recompose(values: FloatArray) -> Mat3x3:
        return compose_array(values)

