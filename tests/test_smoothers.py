import numpy as np
import pytest

from motionstab.smooth import (
    AdaptiveParams, AdaptiveSmoother, GaussianSmoother, KalmanSmoother,
    create_smoother, gaussian_kernel,
)
from motionstab.transform import MotionSample, compose, decompose, identity


def _tx(T) -> float:
    return decompose(T).tx


def test_gaussian_kernel_normalized_and_symmetric():
    k = gaussian_kernel(30, 0.5)
    assert k.shape == (61,)
    assert k.sum() == pytest.approx(1.0)
    np.testing.assert_allclose(k, k[::-1])
    assert k.argmax() == 30


@pytest.mark.parametrize("window", [1, 2, 7, 30, 60])
@pytest.mark.parametrize("strength", [0.01, 0.25, 0.5, 0.9, 1.0])
def test_gaussian_kernel_sums_to_one(window, strength):
    k = gaussian_kernel(window, strength)
    assert k.shape == (2 * window + 1,)
    assert abs(k.sum() - 1.0) < 1e-5
    assert np.all(k >= 0.0)


def test_gaussian_kernel_zero_strength_is_impulse():
    k = gaussian_kernel(5, 0.0)
    assert k[5] == pytest.approx(1.0)
    assert k.sum() == pytest.approx(1.0)


def test_gaussian_constant_path_unchanged():
    sm = create_smoother("gaussian", 5, 0.8)
    T = compose(1.0, 1.0, 2.0, 7.0, 3.0)
    for i in range(20):
        sm.add_transform(T, i)
    for S in sm.get_all_smooth_transforms():
        np.testing.assert_allclose(S, T, atol=1e-9)


def test_gaussian_suppresses_jitter_and_refreshes_history():
    sm = GaussianSmoother()
    sm.initialize(5, 1.0)
    first = sm.add_transform(compose(1, 1, 0, 1.0, 0.0), 0)
    assert _tx(first) == pytest.approx(1.0)
    for i in range(1, 20):
        sm.add_transform(compose(1, 1, 0, 1.0 if i % 2 == 0 else -1.0, 0.0), i)
    assert abs(_tx(sm.get_smooth_transform(10))) < 0.5
    # frame 0 was revised once later samples arrived
    assert _tx(sm.get_smooth_transform(0)) < 1.0


def test_out_of_range_index_is_identity():
    sm = KalmanSmoother()
    sm.initialize(10, 0.5)
    np.testing.assert_array_equal(sm.get_smooth_transform(0), identity())
    sm.add_transform(identity())
    np.testing.assert_array_equal(sm.get_smooth_transform(-1), identity())
    np.testing.assert_array_equal(sm.get_smooth_transform(5), identity())


def _kalman_step_response(strength: float, n: int = 45) -> np.ndarray:
    sm = KalmanSmoother()
    sm.initialize(30, strength)
    T = compose(1.0, 1.0, 0.0, 1.0, 0.0)
    return np.array([_tx(sm.add_transform(T, i)) for i in range(n)])


def test_kalman_low_strength_follows_measurements():
    out = _kalman_step_response(0.1)
    assert np.all(np.abs(out[2:] - 1.0) < 0.01)


def test_kalman_high_strength_settles_slower():
    out = _kalman_step_response(0.9)
    assert abs(out[9] - 1.0) > 0.01
    assert abs(out[29] - 1.0) < 0.01
    low = _kalman_step_response(0.1)
    assert np.abs(out - 1.0).sum() > np.abs(low - 1.0).sum()


def test_kalman_seed_and_state():
    sm = KalmanSmoother()
    with pytest.raises(RuntimeError):
        sm.seed(np.zeros(5))
    sm.initialize(10, 0.5)
    sm.seed([1.0, 1.0, 0.0, 5.0, 0.0])
    assert sm.state[3] == pytest.approx(5.0)


def test_strength_clamped_and_window_validated():
    sm = KalmanSmoother()
    sm.initialize(10, 3.0)
    assert sm.strength == 1.0
    with pytest.raises(ValueError):
        sm.initialize(0, 0.5)


def test_add_before_initialize_uses_defaults():
    sm = GaussianSmoother()
    sm.add_transform(identity(), 0)
    assert sm.initialized
    assert len(sm) == 1


def test_add_sample_takes_transform_and_timestamp():
    sm = create_smoother("kalman", 10, 0.5)
    T = compose(1, 1, 0, 2.0, 0.0)
    sample = MotionSample(T, 0, 1234)
    out = sm.add_sample(sample)
    assert sm.timestamps == [1234]
    np.testing.assert_array_equal(sm.get_original_transform(0), T)
    np.testing.assert_array_equal(out, sm.get_smooth_transform(0))


def test_reset_clears_history():
    sm = create_smoother("kalman")
    for i in range(3):
        sm.add_transform(compose(1, 1, 0, float(i), 0.0), i * 33)
    assert sm.timestamps == [0, 33, 66]
    sm.reset()
    assert len(sm) == 0
    assert sm.get_all_smooth_transforms() == []


def test_adaptive_high_motion_selects_kalman():
    sm = create_smoother("adaptive", 30, 0.5)
    for i in range(20):
        sm.add_transform(compose(1, 1, 0, float(i % 2), 0.0), i)
    assert sm.active_strategy == "kalman"
    assert sm.selections[-1] == "kalman"
    assert sm.motion_intensity > 0.1
    assert sm.window_size == 5
    assert sm.strength == pytest.approx(0.1)


def test_adaptive_low_motion_selects_gaussian():
    sm = create_smoother("adaptive", 30, 0.5)
    for i in range(20):
        sm.add_transform(identity(), i)
    assert sm.active_strategy == "gaussian"
    assert set(sm.selections) == {"gaussian"}
    assert sm.window_size == 60
    assert sm.strength == pytest.approx(1.0)


def test_adaptive_causal_never_selects_gaussian():
    sm = create_smoother("adaptive", 30, 0.5, causal=True)
    for i in range(15):
        sm.add_transform(identity(), i)
    for i in range(15):
        sm.add_transform(compose(1, 1, 0, float(i % 2), 0.0), 15 + i)
    assert "gaussian" not in sm.selections
    assert len(sm.selections) == 30


def test_adaptive_reset_restores_initial_parameters():
    sm = create_smoother("adaptive", 30, 0.5)
    for i in range(20):
        sm.add_transform(compose(1, 1, 0, float(i % 2), 0.0), i)
    assert (sm.window_size, sm.strength) == (5, pytest.approx(0.1))

    sm.reset()
    assert len(sm) == 0 and sm.selections == []
    assert sm.window_size == 30
    assert sm.strength == pytest.approx(0.5)
    assert sm.active_strategy == "gaussian"
    # the first sample after a reset is smoothed from scratch
    out = sm.add_transform(compose(1, 1, 0, 4.0, 0.0), 0)
    assert _tx(out) == pytest.approx(4.0)


def test_adaptive_params_validated():
    with pytest.raises(ValueError):
        AdaptiveParams(threshold_low=0.5, threshold_high=0.1)
    with pytest.raises(ValueError):
        AdaptiveParams(min_window=10, max_window=5)


def test_adaptive_custom_thresholds():
    sm = AdaptiveSmoother(adaptive_params=AdaptiveParams(threshold_low=2.0, threshold_high=5.0))
    sm.initialize(10, 0.5)
    for i in range(10):
        sm.add_transform(compose(1, 1, 0, float(i % 2), 0.0), i)
    # |velocity| of 1 px on tx is below the raised low threshold
    assert sm.active_strategy == "gaussian"


def test_factory_errors():
    with pytest.raises(ValueError):
        create_smoother("gaussian", causal=True)
    with pytest.raises(ValueError):
        create_smoother("median")
