"""
Stabilization drivers.

OfflineStabilizer (batch):
    1) run the motion estimator over every frame -> cumulative path
       (frame 0 is identity)
    2) TrajectoryOptimizer over the whole path -> optimized path
    3) correction for frame k = optimized_k @ inverse(original_k)

AnalysisWorker:
    Runs OfflineStabilizer.analyze on its own thread, fed through a bounded
    queue by a decode thread. None ends the stream. Cancellation is
    cooperative and checked between frames; a cancelled run publishes
    nothing.

RealTimeStabilizer (streaming):
    Estimate + smooth each frame as it arrives with a causal smoother only,
    returning the correction for that frame before the next one arrives.
    Per-frame time is measured against 1000 / target_fps ms.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np

from ..config import StabilizerConfig
from ..context import VisionContext
from ..errors import StabilizationCancelled
from ..motion import BaseMotionEstimator, SensorSample, create_motion_estimator
from ..ransac.types import Mat3x3
from ..smooth import BaseSmoother, TrajectoryOptimizer, TrajectoryRecord, create_smoother
from ..transform import MotionSample, correction, identity
from .warp import WarpParams, warp_frame_affine

logger = logging.getLogger(__name__)

# (stage, done, total); total is 0 while the frame count is unknown
ProgressFn = Callable[[str, int, int], None]
SensorSource = Callable[[int], Iterable[SensorSample]]

_SKIP_OK = (None, "first_frame")


@dataclass(frozen=True, eq=False)
class StabilizationResult:
    """
    corrections[k]:
      forward warp for frame k (captured -> stabilized)
    """
    record: TrajectoryRecord
    corrections: Tuple[Mat3x3, ...]
    frame_size: Tuple[int, int]
    skipped_frames: int = 0

    def __len__(self) -> int:
        return len(self.corrections)

    def correction_for(self, index: int) -> Mat3x3:
        if index < 0 or index >= len(self.corrections):
            return identity()
        return self.corrections[index].copy()


def _warp_params(config: StabilizerConfig) -> WarpParams:
    return WarpParams(border_policy=config.border_policy, crop_ratio=config.crop_ratio)


def _push_sensor_samples(estimator: BaseMotionEstimator, samples: Iterable[SensorSample]) -> None:
    add = getattr(estimator, "add_sensor_sample", None)
    if add is None:
        return
    for s in samples:
        add(s.gyro, s.accel, s.timestamp_ms)


@dataclass
class OfflineStabilizer:
    config: StabilizerConfig = field(default_factory=StabilizerConfig)
    context: VisionContext = field(default_factory=VisionContext)

    _result: Optional[StabilizationResult] = field(default=None, init=False)

    @property
    def result(self) -> Optional[StabilizationResult]:
        """Latest completed analysis; None until one finishes."""
        return self._result

    def _make_optimizer(self) -> TrajectoryOptimizer:
        cfg = self.config
        return TrajectoryOptimizer(
            smoother_kind=cfg.smoother,
            window_size=cfg.window_size,
            smoothing_strength=cfg.stabilization_strength,
            boundary_constraint=cfg.boundary_constraint,
            ramp_fraction=cfg.ramp_fraction,
            adaptive_params=cfg.adaptive_params(),
        )

    def analyze(
            self,
            frames: Iterable[np.ndarray],
            *,
            progress: Optional[ProgressFn] = None,
            cancel: Optional[threading.Event] = None,
            sensor_source: Optional[SensorSource] = None,
    ) -> StabilizationResult:
        """
        Estimate, smooth and optimize a whole clip.

        sensor_source(k) may return the sensor samples recorded up to frame k
        (used by the sensor and hybrid estimators).

        Raises StabilizationCancelled when cancel is set; the previously
        published result is kept.
        """
        total = len(frames) if isinstance(frames, Sequence) else 0
        optimizer = self._make_optimizer()
        estimator: Optional[BaseMotionEstimator] = None
        prev: Optional[np.ndarray] = None
        skipped = 0
        size = (0, 0)

        try:
            for k, frame in enumerate(frames):
                if cancel is not None and cancel.is_set():
                    raise StabilizationCancelled(f"analysis cancelled at frame {k}")

                if estimator is None:
                    size = (frame.shape[1], frame.shape[0])
                    estimator = create_motion_estimator(
                        self.config.algorithm, size[0], size[1], self.context,
                        params=self.config.estimator_params(),
                    )

                if sensor_source is not None:
                    _push_sensor_samples(estimator, sensor_source(k))

                T = estimator.estimate_motion(prev, frame)
                if k == 0:
                    T = identity()
                elif estimator.last_info.get("reason") not in _SKIP_OK:
                    skipped += 1
                optimizer.add_sample(MotionSample(T, k, k))
                prev = frame

                if progress is not None:
                    progress("analyze", k + 1, total)
        finally:
            if estimator is not None:
                estimator.release()

        if cancel is not None and cancel.is_set():
            raise StabilizationCancelled("analysis cancelled")

        record = optimizer.optimize_trajectory(
            cancel,
            None if progress is None else (lambda done, n: progress("optimize", done, n)),
        )
        corrections = tuple(correction(o, t) for o, t in zip(record.original, record.optimized))

        self._result = StabilizationResult(
            record=record,
            corrections=corrections,
            frame_size=size,
            skipped_frames=skipped,
        )
        logger.info("analysed %d frames (%d without a motion estimate)", len(corrections), skipped)
        return self._result

    def stabilize_frame(self, frame: np.ndarray, index: int) -> np.ndarray:
        if self._result is None:
            raise RuntimeError("Call analyze() first.")
        return warp_frame_affine(frame, self._result.correction_for(index), params=_warp_params(self.config))


class AnalysisWorker:
    """
    Producer/consumer wrapper around OfflineStabilizer.analyze.

        worker = AnalysisWorker(stabilizer)
        worker.start()
        for frame in decoder:
            worker.submit(frame)
        worker.finish()
        result = worker.result()
    """

    _POLL_S = 0.1

    def __init__(self, stabilizer: OfflineStabilizer, *, max_queue: int = 64,
                 progress: Optional[ProgressFn] = None) -> None:
        self._stabilizer = stabilizer
        self._progress = progress
        self._queue: "queue.Queue[Optional[np.ndarray]]" = queue.Queue(maxsize=max_queue)
        self._cancel = threading.Event()
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._run, name="motionstab-analysis", daemon=True)
        self._result: Optional[StabilizationResult] = None
        self._error: Optional[BaseException] = None

    def start(self) -> None:
        self._thread.start()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def submit(self, frame: np.ndarray) -> None:
        """
        Queue one frame (copied). Blocks while the queue is full.
        """
        item = np.array(frame, copy=True)
        while True:
            if self._done.is_set() or self._cancel.is_set():
                raise RuntimeError("analysis worker is no longer accepting frames")
            try:
                self._queue.put(item, timeout=self._POLL_S)
                return
            except queue.Full:
                continue

    def finish(self) -> None:
        """End of stream."""
        while not self._done.is_set():
            try:
                self._queue.put(None, timeout=self._POLL_S)
                return
            except queue.Full:
                continue

    def cancel(self) -> None:
        self._cancel.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def result(self, timeout: Optional[float] = None) -> StabilizationResult:
        """
        Wait for the worker; re-raise whatever stopped it.
        """
        if not self.join(timeout):
            raise TimeoutError("analysis worker still running")
        if self._error is not None:
            raise self._error
        if self._result is None:
            raise RuntimeError("analysis worker produced no result")
        return self._result

    def _frames(self) -> Iterator[np.ndarray]:
        while True:
            try:
                item = self._queue.get(timeout=self._POLL_S)
            except queue.Empty:
                if self._cancel.is_set():
                    return
                continue
            if item is None:
                return
            yield item

    def _run(self) -> None:
        try:
            self._result = self._stabilizer.analyze(
                self._frames(), progress=self._progress, cancel=self._cancel,
            )
        except StabilizationCancelled as e:
            logger.info("analysis cancelled")
            self._error = e
        except Exception as e:
            logger.exception("analysis failed")
            self._error = e
        finally:
            self._done.set()


@dataclass
class RealTimeStabilizer:
    """
    process(frame) -> correction for that frame, causal only.

    A "gaussian" smoother request is served by the Kalman filter (it would
    need future frames); "adaptive" runs restricted to causal strategies.
    """
    config: StabilizerConfig = field(default_factory=StabilizerConfig)
    context: VisionContext = field(default_factory=VisionContext)

    overrun_count: int = field(default=0, init=False)
    last_elapsed_ms: float = field(default=0.0, init=False)

    _estimator: Optional[BaseMotionEstimator] = field(default=None, init=False)
    _smoother: Optional[BaseSmoother] = field(default=None, init=False)
    _prev: Optional[np.ndarray] = field(default=None, init=False)
    _frame_index: int = field(default=0, init=False)

    @property
    def frame_budget_ms(self) -> float:
        return 1000.0 / self.config.target_fps

    @property
    def frame_index(self) -> int:
        return self._frame_index

    @property
    def smoother(self) -> Optional[BaseSmoother]:
        return self._smoother

    def initialize(self, width: int, height: int) -> None:
        cfg = self.config
        kind = cfg.smoother
        if kind == "gaussian":
            logger.warning("gaussian smoothing needs future frames; using kalman for real-time")
            kind = "kalman"

        self._estimator = create_motion_estimator(
            cfg.algorithm, width, height, self.context, params=cfg.estimator_params(),
        )
        self._smoother = create_smoother(
            kind, cfg.window_size, cfg.stabilization_strength,
            causal=True, adaptive_params=cfg.adaptive_params(),
        )
        self._prev = None
        self._frame_index = 0
        self.overrun_count = 0

    def add_sensor_sample(self, gyro: Sequence[float], accel: Sequence[float], timestamp_ms: int) -> None:
        if self._estimator is None:
            raise RuntimeError("Call initialize() first.")
        _push_sensor_samples(self._estimator, [SensorSample(int(timestamp_ms), tuple(gyro), tuple(accel))])

    def process(self, frame: np.ndarray, timestamp_ms: Optional[int] = None) -> Mat3x3:
        """
        Correction for this frame. Initializes on the first frame.
        """
        if self._estimator is None:
            self.initialize(frame.shape[1], frame.shape[0])

        t0 = time.perf_counter()
        ts = self._frame_index if timestamp_ms is None else int(timestamp_ms)

        sample = MotionSample(self._estimator.estimate_motion(self._prev, frame), self._frame_index, ts)
        S = self._smoother.add_sample(sample)
        C = correction(sample.transform, S)

        self._prev = frame
        self._frame_index += 1

        self.last_elapsed_ms = (time.perf_counter() - t0) * 1000.0
        if self.last_elapsed_ms > self.frame_budget_ms:
            self.overrun_count += 1
            logger.warning(
                "frame %d took %.1f ms (budget %.1f ms)",
                self._frame_index - 1, self.last_elapsed_ms, self.frame_budget_ms,
            )
        return C

    def stabilize(self, frame: np.ndarray, timestamp_ms: Optional[int] = None) -> np.ndarray:
        return warp_frame_affine(frame, self.process(frame, timestamp_ms), params=_warp_params(self.config))

    def reset(self) -> None:
        if self._estimator is not None:
            self._estimator.reset()
        if self._smoother is not None:
            self._smoother.reset()
        self._prev = None
        self._frame_index = 0
        self.overrun_count = 0

    def release(self) -> None:
        if self._estimator is not None:
            self._estimator.release()
        if self._smoother is not None:
            self._smoother.release()
        self._estimator = None
        self._smoother = None
        self._prev = None
        self._frame_index = 0
