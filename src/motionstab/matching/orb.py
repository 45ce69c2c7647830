"""
ORB keypoints and brute-force Hamming matching.

Match selection:
  - match reference descriptors (query) against current ones (train)
  - keep matches with distance < max(distance_ratio * min_distance, distance_floor)
  - sort by distance, cap at max_matches

The floor keeps the filter meaningful when the best match is exact
(min_distance == 0), which otherwise rejects everything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import cv2

from ..ransac.types import Points2D


@dataclass(frozen=True)
class OrbParams:
    """
    nfeatures .. fastThreshold:
      - forwarded to cv2.ORB_create
    max_matches:
      - cap on matches handed to RANSAC
    distance_ratio / distance_floor:
      - Hamming distance filter (see module docstring)
    """
    nfeatures: int = 500
    scaleFactor: float = 1.2
    nlevels: int = 8
    edgeThreshold: int = 31
    firstLevel: int = 0
    WTA_K: int = 2
    patchSize: int = 31
    fastThreshold: int = 20

    max_matches: int = 500
    distance_ratio: float = 3.0
    distance_floor: float = 30.0


def create_orb(params: OrbParams = OrbParams()) -> "cv2.ORB":
    return cv2.ORB_create(
        nfeatures=params.nfeatures,
        scaleFactor=params.scaleFactor,
        nlevels=params.nlevels,
        edgeThreshold=params.edgeThreshold,
        firstLevel=params.firstLevel,
        WTA_K=params.WTA_K,
        scoreType=cv2.ORB_HARRIS_SCORE,
        patchSize=params.patchSize,
        fastThreshold=params.fastThreshold,
    )


def create_matcher() -> "cv2.BFMatcher":
    return cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)


def orb_detect(
        gray: np.ndarray,
        orb: "cv2.ORB",
) -> Tuple[Sequence["cv2.KeyPoint"], Optional[np.ndarray]]:
    """
    Keypoints and descriptors for one grayscale frame.

    descriptors is None when no keypoint was found.
    """
    if gray.ndim != 2:
        raise ValueError(f"orb_detect expects grayscale (H,W), got {gray.shape}")
    keypoints, descriptors = orb.detectAndCompute(gray, None)
    return tuple(keypoints), descriptors


def select_matches(
        matches: Sequence["cv2.DMatch"],
        *,
        params: OrbParams = OrbParams(),
) -> list["cv2.DMatch"]:
    if len(matches) == 0:
        return []
    min_dist = min(m.distance for m in matches)
    threshold = max(params.distance_ratio * min_dist, params.distance_floor)
    good = sorted((m for m in matches if m.distance < threshold), key=lambda m: m.distance)
    return good[:params.max_matches]


def match_keypoints(
        kp0: Sequence["cv2.KeyPoint"],
        des0: Optional[np.ndarray],
        kp1: Sequence["cv2.KeyPoint"],
        des1: Optional[np.ndarray],
        matcher: "cv2.BFMatcher",
        *,
        params: OrbParams = OrbParams(),
) -> tuple[Points2D, Points2D, int]:
    """
    Match reference (kp0, des0) to current (kp1, des1).

    Returns (pts0, pts1, num_raw_matches); the point arrays hold only the
    selected matches, (0,2) when nothing matched.
    """
    empty = np.zeros((0, 2), dtype=np.float64)
    if des0 is None or des1 is None or len(kp0) == 0 or len(kp1) == 0:
        return empty, empty.copy(), 0

    raw = matcher.match(des0, des1)
    good = select_matches(raw, params=params)
    if not good:
        return empty, empty.copy(), len(raw)

    pts0 = np.array([kp0[m.queryIdx].pt for m in good], dtype=np.float64)
    pts1 = np.array([kp1[m.trainIdx].pt for m in good], dtype=np.float64)
    return pts0, pts1, len(raw)
