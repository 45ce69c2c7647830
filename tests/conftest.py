from __future__ import annotations

import cv2
import numpy as np
import pytest

FRAME_W, FRAME_H = 320, 240
MARGIN = 40


def make_canvas(seed: int = 0) -> np.ndarray:
    """
    Blurred random blocks, large enough to crop shifted frames from.
    """
    rng = np.random.default_rng(seed)
    blocks = rng.integers(0, 256, size=(40, 50), dtype=np.uint8)
    canvas = cv2.resize(blocks, (FRAME_W + 2 * MARGIN, FRAME_H + 2 * MARGIN), interpolation=cv2.INTER_NEAREST)
    return cv2.GaussianBlur(canvas, (5, 5), 1.5)


def crop(canvas: np.ndarray, dx: int = 0, dy: int = 0, *, bgr: bool = False) -> np.ndarray:
    """
    Frame viewed with the camera moved by (dx, dy); the content moves by (-dx, -dy).
    """
    x, y = MARGIN + dx, MARGIN + dy
    frame = np.ascontiguousarray(canvas[y:y + FRAME_H, x:x + FRAME_W])
    return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR) if bgr else frame


@pytest.fixture
def canvas() -> np.ndarray:
    return make_canvas()


@pytest.fixture
def blank_frame() -> np.ndarray:
    return np.zeros((FRAME_H, FRAME_W), dtype=np.uint8)
