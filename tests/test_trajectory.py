import threading

import numpy as np
import pytest

from motionstab.errors import StabilizationCancelled
from motionstab.smooth import TrajectoryOptimizer, trajectory_bounds
from motionstab.transform import MotionSample, compose, decompose, identity


def _shaky_path(n: int = 60, seed: int = 5):
    rng = np.random.default_rng(seed)
    tx = np.cumsum(rng.normal(0.5, 2.0, n))
    ty = np.cumsum(rng.normal(0.0, 2.0, n))
    return [compose(1.0, 1.0, 0.0, x, y) for x, y in zip(tx, ty)]


def _filled(path, **kwargs) -> TrajectoryOptimizer:
    opt = TrajectoryOptimizer(**kwargs)
    for i, T in enumerate(path):
        opt.add_transform(T, i * 33)
    return opt


def test_trajectory_bounds():
    path = [compose(1, 1, 0, 1.0, -2.0), compose(1, 1, 0, -3.0, 5.0)]
    np.testing.assert_allclose(trajectory_bounds(path), [-3.0, -2.0, 1.0, 5.0])
    np.testing.assert_array_equal(trajectory_bounds([]), np.zeros(4))


def test_empty_optimizer_returns_identity():
    opt = TrajectoryOptimizer()
    record = opt.optimize_trajectory()
    assert len(record) == 0
    np.testing.assert_array_equal(opt.get_optimized_transform(0), identity())
    np.testing.assert_array_equal(opt.get_smooth_transform(-1), identity())


def test_boundary_correction_follows_ramp():
    path = _shaky_path()
    opt = _filled(path, window_size=10, smoothing_strength=0.8, boundary_constraint=1.0, ramp_fraction=0.2)
    record = opt.optimize_trajectory()
    n = len(path)
    assert len(record) == n

    diff = record.smooth_bounds - record.original_bounds
    for i in (0, 5, 30, n - 1):
        factor = min(1.0, (i / n) / 0.2)
        s, o = decompose(record.smoothed[i]), decompose(record.optimized[i])
        assert o.tx == pytest.approx(s.tx - diff[0] * factor)
        assert o.ty == pytest.approx(s.ty - diff[1] * factor)

    # past the ramp the optimized minimum lands on the original one
    tail = record.optimized[int(0.2 * n):]
    assert trajectory_bounds(tail)[0] >= record.original_bounds[0] - 1e-9


@pytest.mark.parametrize("kind", ["gaussian", "kalman", "adaptive"])
@pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
def test_full_constraint_keeps_path_inside_original_bounds(kind, seed):
    rng = np.random.default_rng(seed)
    tx = np.cumsum(rng.normal(0.0, 1.5, 80))
    ty = np.cumsum(rng.normal(0.0, 1.5, 80))
    path = [compose(1.0, 1.0, 0.0, x, y) for x, y in zip(tx, ty)]
    record = _filled(
        path, smoother_kind=kind, window_size=10, smoothing_strength=0.8, boundary_constraint=1.0,
    ).optimize_trajectory()

    lo_x, lo_y, hi_x, hi_y = record.original_bounds
    for O in record.optimized:
        assert lo_x - 1e-9 <= O[0, 2] <= hi_x + 1e-9
        assert lo_y - 1e-9 <= O[1, 2] <= hi_y + 1e-9
    min_x, min_y, max_x, max_y = trajectory_bounds(record.optimized)
    assert min_x >= lo_x - 1e-9 and min_y >= lo_y - 1e-9
    assert max_x <= hi_x + 1e-9 and max_y <= hi_y + 1e-9


def test_clipping_leaves_rotation_and_scale_alone():
    path = [compose(1.0 + 0.01 * (i % 3), 1.0, float(i % 4), 3.0 * (i % 2), 0.0) for i in range(30)]
    record = _filled(path, smoother_kind="kalman", window_size=5, boundary_constraint=1.0).optimize_trajectory()
    for S, O in zip(record.smoothed, record.optimized):
        s, o = decompose(S), decompose(O)
        assert o.rotation_deg == pytest.approx(s.rotation_deg)
        assert (o.scale_x, o.scale_y) == pytest.approx((s.scale_x, s.scale_y))


def test_add_sample_matches_add_transform():
    path = _shaky_path(15)
    by_sample = TrajectoryOptimizer(window_size=4)
    for i, T in enumerate(path):
        by_sample.add_sample(MotionSample(T, i, i * 33))
    a = by_sample.optimize_trajectory()
    b = _filled(path, window_size=4).optimize_trajectory()
    for x, y in zip(a.optimized, b.optimized):
        np.testing.assert_allclose(x, y, atol=1e-12)


def test_zero_constraint_keeps_smoothed_path():
    path = _shaky_path(30)
    record = _filled(path, window_size=5, boundary_constraint=0.0).optimize_trajectory()
    for S, O in zip(record.smoothed, record.optimized):
        np.testing.assert_allclose(O, S, atol=1e-9)


def test_smoothing_reduces_path_roughness():
    path = _shaky_path()
    record = _filled(path, window_size=10, smoothing_strength=1.0).optimize_trajectory()
    rough = np.diff([T[0, 2] for T in record.original], 2)
    smooth = np.diff([T[0, 2] for T in record.smoothed], 2)
    assert np.abs(smooth).mean() < 0.5 * np.abs(rough).mean()


@pytest.mark.parametrize("kind", ["kalman", "adaptive"])
def test_other_smoothers(kind):
    path = _shaky_path(20)
    record = _filled(path, smoother_kind=kind, window_size=5).optimize_trajectory()
    assert len(record.smoothed) == 20


def test_progress_reports_both_passes():
    seen = []
    opt = _filled(_shaky_path(10), window_size=3)
    opt.optimize_trajectory(progress=lambda done, total: seen.append((done, total)))
    assert seen[0] == (1, 20)
    assert seen[-1] == (20, 20)


def test_cancel_keeps_previous_record():
    opt = _filled(_shaky_path(10), window_size=3)
    first = opt.optimize_trajectory()
    opt.add_transform(identity())

    cancel = threading.Event()
    cancel.set()
    with pytest.raises(StabilizationCancelled):
        opt.optimize_trajectory(cancel)
    assert opt.record is first
    assert len(opt) == 11


def test_initialize_and_reset():
    opt = TrajectoryOptimizer()
    opt.initialize("kalman", 12, 0.3, 5.0)
    assert opt.boundary_constraint == 1.0
    assert opt.smoother_kind == "kalman"
    opt.add_transform(identity())
    opt.optimize_trajectory()
    opt.reset()
    assert len(opt) == 0 and len(opt.record) == 0
    with pytest.raises(ValueError):
        TrajectoryOptimizer(ramp_fraction=0.0)
