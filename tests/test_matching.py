import numpy as np
import pytest

from motionstab.matching import (
    OrbParams, clean_points, create_matcher, create_orb, lk_track,
    match_keypoints, orb_detect, shitomasi_detect, to_gray,
)

from .conftest import crop


def test_to_gray_accepts_gray_bgr_bgra(canvas):
    gray = crop(canvas)
    bgr = crop(canvas, bgr=True)
    assert to_gray(gray) is gray
    assert to_gray(bgr).shape == gray.shape
    bgra = np.dstack([bgr, np.full(gray.shape, 255, np.uint8)])
    assert to_gray(bgra).shape == gray.shape
    with pytest.raises(ValueError):
        to_gray(np.zeros((4, 4, 2), np.uint8))


def test_shitomasi_on_blank_frame_is_empty(blank_frame):
    assert shitomasi_detect(blank_frame).shape == (0, 2)


def test_lk_tracks_a_shift(canvas):
    g0, g1 = crop(canvas), crop(canvas, dx=-3, dy=2)
    pts = shitomasi_detect(g0)
    assert pts.shape[0] > 50
    p0, p1, status, _ = lk_track(g0, g1, pts)
    p0, p1, _ = clean_points(p0, p1, status=status)
    flow = np.median(p1 - p0, axis=0)
    np.testing.assert_allclose(flow, [3.0, -2.0], atol=0.2)


def test_lk_empty_input(canvas):
    g = crop(canvas)
    p0, p1, status, err = lk_track(g, g, np.zeros((0, 2)))
    assert p0.shape == p1.shape == (0, 2)
    assert status.shape == (0,)


def test_clean_points_filters():
    p0 = np.array([[0.0, 0.0], [1.0, 1.0], [np.nan, 2.0], [3.0, 3.0]])
    p1 = np.array([[1.0, 0.0], [50.0, 1.0], [2.0, 2.0], [3.0, 4.0]])
    a, b, keep = clean_points(p0, p1, status=[1, 1, 1, 0])
    np.testing.assert_array_equal(keep, [True, True, False, False])
    assert a.shape == b.shape == (2, 2)
    np.testing.assert_array_equal(b[1], [50.0, 1.0])
    with pytest.raises(ValueError):
        clean_points(p0, p1[:2])


def test_orb_matches_a_shifted_frame(canvas):
    orb = create_orb(OrbParams())
    g0, g1 = crop(canvas), crop(canvas, dx=4)
    kp0, des0 = orb_detect(g0, orb)
    kp1, des1 = orb_detect(g1, orb)
    pts0, pts1, num_raw = match_keypoints(kp0, des0, kp1, des1, create_matcher())
    assert num_raw >= pts0.shape[0] > 20
    flow = np.median(pts1 - pts0, axis=0)
    np.testing.assert_allclose(flow, [-4.0, 0.0], atol=1.0)


def test_match_keypoints_without_descriptors(blank_frame):
    kp, des = orb_detect(blank_frame, create_orb())
    assert len(kp) == 0 and des is None
    pts0, pts1, num_raw = match_keypoints(kp, des, kp, des, create_matcher())
    assert pts0.shape == (0, 2) and num_raw == 0
