"""
Correspondence primitives
"""
from .corners import shitomasi_detect, ShiTomasiParams, to_gray
from .lk_tracking import lk_track, LKParams
from .clean_points import clean_points
from .orb import OrbParams, create_orb, create_matcher, orb_detect, select_matches, match_keypoints

__all__ = [
    "shitomasi_detect", "ShiTomasiParams", "to_gray",
    "lk_track", "LKParams",
    "clean_points",
    "OrbParams", "create_orb", "create_matcher", "orb_detect", "select_matches", "match_keypoints",
]
