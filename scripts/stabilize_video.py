"""
Stabilize a prerecorded video.

  offline:  decode -> AnalysisWorker (estimate + optimize the whole path),
            then a second pass warps every frame and writes the output
  realtime: per-frame causal stabilization with a live preview

    python scripts/stabilize_video.py input.mov -o stable.mp4
    python scripts/stabilize_video.py input.mov --mode realtime --config stab.yaml
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterator, Optional

import cv2
import numpy as np

from motionstab.config import StabilizerConfig, load_config
from motionstab.stabilize import AnalysisWorker, OfflineStabilizer, RealTimeStabilizer

logger = logging.getLogger("stabilize_video")


def read_frames(video_path: Path) -> Iterator[np.ndarray]:
    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video: {video_path}")
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            yield frame
    finally:
        cap.release()


def video_fps(video_path: Path, default: float = 30.0) -> float:
    cap = cv2.VideoCapture(str(video_path))
    fps = cap.get(cv2.CAP_PROP_FPS) if cap.isOpened() else 0.0
    cap.release()
    return fps if fps and fps > 0 else default


def side_by_side(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.hstack([a, b])


def run_offline(video_path: Path, out_path: Path, cfg: StabilizerConfig, *, show: bool) -> None:
    def report(stage: str, done: int, total: int) -> None:
        if done % 50 == 0:
            logger.info("%s: %d%s", stage, done, f"/{total}" if total else "")

    stabilizer = OfflineStabilizer(cfg)
    worker = AnalysisWorker(stabilizer, progress=report)
    worker.start()
    try:
        for frame in read_frames(video_path):
            worker.submit(frame)
    except KeyboardInterrupt:
        worker.cancel()
        raise
    finally:
        worker.finish()
    result = worker.result()
    logger.info("analysis done: %d frames, %d without motion", len(result), result.skipped_frames)

    W, H = result.frame_size
    writer = cv2.VideoWriter(str(out_path), cv2.VideoWriter_fourcc(*"mp4v"), video_fps(video_path), (W, H))
    if not writer.isOpened():
        raise RuntimeError(f"Could not open writer: {out_path}")

    try:
        for k, frame in enumerate(read_frames(video_path)):
            stable = stabilizer.stabilize_frame(frame, k)
            writer.write(stable)
            if show:
                cv2.imshow("Input | Stabilized", side_by_side(frame, stable))
                key = cv2.waitKey(1) & 0xFF
                if key == 27 or key == ord("q"):
                    break
    finally:
        writer.release()
        cv2.destroyAllWindows()
    logger.info("wrote %s", out_path)


def run_realtime(video_path: Path, out_path: Optional[Path], cfg: StabilizerConfig) -> None:
    stabilizer = RealTimeStabilizer(cfg)
    writer = None

    try:
        for frame in read_frames(video_path):
            stable = stabilizer.stabilize(frame)

            if out_path is not None:
                if writer is None:
                    H, W = frame.shape[:2]
                    writer = cv2.VideoWriter(str(out_path), cv2.VideoWriter_fourcc(*"mp4v"), cfg.target_fps, (W, H))
                writer.write(stable)

            cv2.imshow("Input | Stabilized", side_by_side(frame, stable))
            key = cv2.waitKey(1) & 0xFF
            if key == 27 or key == ord("q"):
                break
    finally:
        if writer is not None:
            writer.release()
        cv2.destroyAllWindows()
        logger.info(
            "processed %d frames, %d over the %.1f ms budget",
            stabilizer.frame_index, stabilizer.overrun_count, stabilizer.frame_budget_ms,
        )
        stabilizer.release()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("video", type=Path)
    parser.add_argument("-o", "--output", type=Path, default=None)
    parser.add_argument("--mode", choices=("offline", "realtime"), default="offline")
    parser.add_argument("--config", type=Path, default=None, help="YAML stabilizer configuration")
    parser.add_argument("--show", action="store_true", help="preview while writing (offline)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.video.exists():
        raise FileNotFoundError(f"Video not found: {args.video}.")

    cfg = load_config(args.config) if args.config is not None else StabilizerConfig()

    if args.mode == "offline":
        out = args.output or args.video.with_name(f"{args.video.stem}_stabilized.mp4")
        run_offline(args.video, out, cfg, show=args.show)
    else:
        run_realtime(args.video, args.output, cfg)


if __name__ == "__main__":
    main()
