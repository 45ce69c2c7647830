from .warp import WarpParams, crop_zoom, output_transform, warp_frame_affine
from .pipeline import (
    AnalysisWorker, OfflineStabilizer, RealTimeStabilizer, StabilizationResult,
)


__all__ = [
    "WarpParams", "crop_zoom", "output_transform", "warp_frame_affine",
    "AnalysisWorker", "OfflineStabilizer", "RealTimeStabilizer", "StabilizationResult",
]
