"""
Explicit vision-library context.

Each estimator checks that OpenCV provides what it needs before the first
frame. The check runs once per context object, and the context is owned by
whoever builds the pipeline (usually OfflineStabilizer / RealTimeStabilizer)
and handed down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Tuple

import cv2

from .errors import InitializationError

logger = logging.getLogger(__name__)

# OpenCV entry points the estimators call.
DEFAULT_CAPABILITIES: Tuple[str, ...] = (
    "cvtColor",
    "goodFeaturesToTrack",
    "calcOpticalFlowPyrLK",
    "ORB_create",
    "BFMatcher",
    "KalmanFilter",
)


@dataclass
class VisionContext:
    """
    Tracks whether the vision primitives have been verified.

    required:
      Names that must exist on the cv2 module.
    """
    required: Tuple[str, ...] = DEFAULT_CAPABILITIES

    _initialized: bool = field(default=False, init=False)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def ensure_initialized(self) -> None:
        """
        Verify the required capabilities. Idempotent.

        Raises InitializationError naming every missing entry point.
        """
        if self._initialized:
            return

        missing = [name for name in self.required if not hasattr(cv2, name)]
        if missing:
            logger.error("OpenCV is missing required capabilities: %s", ", ".join(missing))
            raise InitializationError(
                f"OpenCV {cv2.__version__} lacks required capabilities: {', '.join(missing)}"
            )

        self._initialized = True
        logger.debug("Vision context ready (OpenCV %s)", cv2.__version__)
