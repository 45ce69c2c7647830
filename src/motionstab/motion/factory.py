from __future__ import annotations

import logging
from typing import Literal, Optional

from ..context import VisionContext
from .base import BaseMotionEstimator, EstimatorParams
from .feature import FeatureMotionEstimator
from .hybrid import HybridMotionEstimator
from .optical_flow import OpticalFlowMotionEstimator
from .sensor import SensorMotionEstimator

logger = logging.getLogger(__name__)

EstimatorKind = Literal["feature", "opticalflow", "sensor", "hybrid"]

_ESTIMATORS = {
    "feature": FeatureMotionEstimator,
    "opticalflow": OpticalFlowMotionEstimator,
    "sensor": SensorMotionEstimator,
    "hybrid": HybridMotionEstimator,
}
ESTIMATOR_KINDS = tuple(_ESTIMATORS)


def create_motion_estimator(
        kind: EstimatorKind,
        width: int,
        height: int,
        context: Optional[VisionContext] = None,
        *,
        params: Optional[EstimatorParams] = None,
) -> BaseMotionEstimator:
    """
    Build and initialize an estimator.

    Raises ValueError on an unknown kind, InitializationError when the
    vision context is unusable.
    """
    try:
        cls = _ESTIMATORS[kind]
    except KeyError:
        raise ValueError(f"Unknown motion estimator: {kind!r} (expected one of {ESTIMATOR_KINDS})") from None

    estimator = cls(params=params or EstimatorParams(), context=context)
    estimator.initialize(width, height)
    logger.info("Using %s motion estimator", kind)
    return estimator
