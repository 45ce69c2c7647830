"""
Motion estimation
"""
from .base import BaseMotionEstimator, EstimatorParams, EstimatorState, MotionEstimator
from .feature import FeatureMotionEstimator
from .optical_flow import OpticalFlowMotionEstimator
from .sensor import SensorMotionEstimator, SensorParams, SensorSample
from .hybrid import HybridMotionEstimator
from .factory import ESTIMATOR_KINDS, EstimatorKind, create_motion_estimator

__all__ = [
    "BaseMotionEstimator", "EstimatorParams", "EstimatorState", "MotionEstimator",
    "FeatureMotionEstimator",
    "OpticalFlowMotionEstimator",
    "SensorMotionEstimator", "SensorParams", "SensorSample",
    "HybridMotionEstimator",
    "ESTIMATOR_KINDS", "EstimatorKind", "create_motion_estimator",
]
