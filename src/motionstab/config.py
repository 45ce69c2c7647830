"""
Stabilizer configuration.

Out-of-range numbers are clamped (with a warning); unknown algorithm /
smoother / border names and unknown keys are rejected with ValueError.

YAML layout (every key optional):

    stabilization_strength: 0.5
    algorithm: feature            # feature | opticalflow | sensor | hybrid
    smoother: gaussian            # kalman | gaussian | adaptive
    window_size: 30
    boundary_constraint: 0.1
    border_policy: crop           # crop | fill | deform
    crop_ratio: 0.9
    target_fps: 30
    min_inlier_ratio: 0.5
    motion_threshold_low: 0.01
    motion_threshold_high: 0.1
    ramp_fraction: 0.2
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Literal, Mapping, Union

import numpy as np
import yaml

from .motion import ESTIMATOR_KINDS, EstimatorKind, EstimatorParams
from .smooth import AdaptiveParams, SMOOTHER_KINDS, SmootherKind

logger = logging.getLogger(__name__)

BorderPolicy = Literal["crop", "fill", "deform"]
BORDER_POLICIES = ("crop", "fill", "deform")

# field -> (low, high); None means unbounded on that side
_RANGES = {
    "stabilization_strength": (0.0, 1.0),
    "window_size": (1, None),
    "boundary_constraint": (0.0, 1.0),
    "crop_ratio": (0.1, 1.0),
    "target_fps": (1e-3, None),
    "min_inlier_ratio": (0.0, 1.0),
    "motion_threshold_low": (0.0, None),
    "motion_threshold_high": (0.0, None),
    "ramp_fraction": (1e-3, 1.0),
}


@dataclass(frozen=True)
class StabilizerConfig:
    stabilization_strength: float = 0.5
    algorithm: EstimatorKind = "feature"
    smoother: SmootherKind = "gaussian"
    window_size: int = 30
    boundary_constraint: float = 0.1
    border_policy: BorderPolicy = "crop"
    crop_ratio: float = 0.9
    target_fps: float = 30.0
    min_inlier_ratio: float = 0.5
    motion_threshold_low: float = 0.01
    motion_threshold_high: float = 0.1
    ramp_fraction: float = 0.2

    def __post_init__(self) -> None:
        if self.algorithm not in ESTIMATOR_KINDS:
            raise ValueError(f"Unknown algorithm: {self.algorithm!r} (expected one of {ESTIMATOR_KINDS})")
        if self.smoother not in SMOOTHER_KINDS:
            raise ValueError(f"Unknown smoother: {self.smoother!r} (expected one of {SMOOTHER_KINDS})")
        if self.border_policy not in BORDER_POLICIES:
            raise ValueError(f"Unknown border policy: {self.border_policy!r} (expected one of {BORDER_POLICIES})")

        for name, (lo, hi) in _RANGES.items():
            value = getattr(self, name)
            clamped = float(np.clip(value, lo if lo is not None else -np.inf, hi if hi is not None else np.inf))
            if name == "window_size":
                clamped = int(round(clamped))
            if clamped != value:
                logger.warning("config: %s=%r out of range, clamped to %r", name, value, clamped)
            object.__setattr__(self, name, clamped)

        if self.motion_threshold_low > self.motion_threshold_high:
            logger.warning(
                "config: motion_threshold_low %.4f above motion_threshold_high %.4f, swapped",
                self.motion_threshold_low, self.motion_threshold_high,
            )
            low, high = self.motion_threshold_high, self.motion_threshold_low
            object.__setattr__(self, "motion_threshold_low", low)
            object.__setattr__(self, "motion_threshold_high", high)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StabilizerConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(data))

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def estimator_params(self) -> EstimatorParams:
        return EstimatorParams(min_inlier_ratio=self.min_inlier_ratio)

    def adaptive_params(self) -> AdaptiveParams:
        return AdaptiveParams(
            threshold_low=self.motion_threshold_low,
            threshold_high=self.motion_threshold_high,
        )


def load_config(path: Union[str, Path]) -> StabilizerConfig:
    """
    Read a StabilizerConfig from a YAML file. An empty file gives the defaults.
    """
    path = Path(path)
    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if raw is None:
        return StabilizerConfig()
    if not isinstance(raw, Mapping):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(raw).__name__}")

    logger.debug("loaded configuration from %s", path)
    return StabilizerConfig.from_dict(raw)
