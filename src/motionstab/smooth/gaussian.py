"""
Gaussian-window smoother (acausal).

Kernel over offsets -w..w:

    g[i]  = exp(-i^2 / (2 sigma^2)),  sigma = w * 0.3 * strength
    g    /= sum(g)

Frame k is the weighted average of each decomposed parameter over
[k-w, k+w] clipped to the samples that exist, with the weights of the
clipped window renormalized to 1.

Streaming use: add_transform() returns the value computable from the
samples seen so far and refreshes the previous w stored values, so once w
later samples exist a stored value equals the full-window result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ..ransac.types import FloatArray
from .base import BaseSmoother

SIGMA_FACTOR = 0.3
_MIN_SIGMA = 1e-6


def gaussian_kernel(window_size: int, strength: float) -> FloatArray:
    """
    Normalized (2 * window_size + 1,) kernel.

    strength == 0 degenerates to a unit impulse (no smoothing).
    """
    w = int(window_size)
    if w < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    sigma = max(w * SIGMA_FACTOR * float(strength), _MIN_SIGMA)
    offsets = np.arange(-w, w + 1, dtype=np.float64)
    kernel = np.exp(-(offsets * offsets) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


@dataclass
class GaussianSmoother(BaseSmoother):
    _kernel: Optional[FloatArray] = field(default=None, init=False)

    @property
    def kernel(self) -> Optional[FloatArray]:
        return None if self._kernel is None else self._kernel.copy()

    def _on_initialize(self) -> None:
        self._kernel = gaussian_kernel(self.window_size, self.strength)

    def _on_release(self) -> None:
        self._kernel = None

    def smooth_at(self, k: int) -> FloatArray:
        """
        Renormalized window average of the decomposed parameters at frame k.
        """
        w = self.window_size
        n = len(self._params)
        lo = max(0, k - w)
        hi = min(n - 1, k + w)

        weights = self._kernel[lo - k + w: hi - k + w + 1]
        values = np.asarray(self._params[lo:hi + 1])
        total = weights.sum()
        if total <= 0.0:
            return self._params[k].copy()
        return (weights @ values) / total

    def _smooth_latest(self) -> None:
        n = len(self._params)
        self._smoothed.append(None)  # type: ignore[arg-type]
        for k in range(max(0, n - 1 - self.window_size), n):
            self._smoothed[k] = self._recompose(self.smooth_at(k))
