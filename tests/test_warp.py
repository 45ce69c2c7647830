import numpy as np
import pytest

from motionstab.stabilize import WarpParams, crop_zoom, output_transform, warp_frame_affine
from motionstab.transform import compose, identity


def _dot_frame(x: int = 50, y: int = 60) -> np.ndarray:
    frame = np.zeros((120, 160), dtype=np.uint8)
    frame[y, x] = 255
    return frame


def test_translation_moves_content_forward():
    out = warp_frame_affine(_dot_frame(), compose(1, 1, 0, 5.0, -3.0), params=WarpParams(border_policy="fill"))
    assert out.shape == (120, 160)
    assert np.unravel_index(out.argmax(), out.shape) == (57, 55)


def test_fill_uses_border_value():
    frame = np.full((40, 40, 3), 100, dtype=np.uint8)
    params = WarpParams(border_policy="fill", border_value=(0, 0, 255))
    out = warp_frame_affine(frame, compose(1, 1, 0, 10.0, 0.0), params=params)
    assert tuple(out[20, 2]) == (0, 0, 255)
    assert tuple(out[20, 30]) == (100, 100, 100)


def test_deform_replicates_edges():
    frame = np.full((40, 40), 80, dtype=np.uint8)
    out = warp_frame_affine(frame, compose(1, 1, 0, 10.0, 0.0), params=WarpParams(border_policy="deform"))
    assert (out == 80).all()


def test_crop_zoom_keeps_center_fixed():
    Z = crop_zoom(160, 120, 0.8)
    np.testing.assert_allclose(Z @ [80.0, 60.0, 1.0], [80.0, 60.0, 1.0])
    assert Z[0, 0] == pytest.approx(1.25)


def test_crop_policy_prepends_zoom():
    T = compose(1, 1, 0, 4.0, 0.0)
    params = WarpParams(border_policy="crop", crop_ratio=0.5)
    np.testing.assert_allclose(output_transform(T, 160, 120, params), crop_zoom(160, 120, 0.5) @ T)
    np.testing.assert_allclose(output_transform(T, 160, 120, WarpParams(crop_ratio=1.0)), T)


def test_invalid_params():
    with pytest.raises(ValueError):
        WarpParams(border_policy="wrap")
    with pytest.raises(ValueError):
        WarpParams(crop_ratio=0.0)
    with pytest.raises(ValueError):
        warp_frame_affine(_dot_frame(), np.eye(2))


def test_empty_frame_passes_through():
    empty = np.zeros((0, 0), dtype=np.uint8)
    assert warp_frame_affine(empty, identity()) is empty
