"""
Frame source for video files.
Yields VideoFrame(image, index, fps, video_time, timestamp) in decode order.
"""
from __future__ import annotations

import logging
from typing import Generator, NamedTuple, Optional

import cv2
import numpy as np

from .pose import create_pose_detector, process_frame
from .posetrack import PoseTrack, PoseTrackFrame

logger = logging.getLogger(__name__)


class VideoFrame(NamedTuple):
    image: np.ndarray
    index: int
    fps: float
    video_time: float  # s
    timestamp: float  # ms


def video_frames(video_path: str) -> Generator[VideoFrame, None, None]:
    """Frames from a video file. Times come from the frame index and fps."""
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {video_path}")
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        idx = 0
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            video_time = idx / fps
            yield VideoFrame(frame, idx, fps, video_time, video_time * 1000.0)
            idx += 1
    finally:
        cap.release()


def extract_pose_track(
    video_path: str,
    detector=None,
    on_frame=None,
    max_frames: Optional[int] = None,
) -> PoseTrack:
    """
    Run pose estimation over every frame. Frames without a detected pose keep
    their slot with no keypoints and score 0. on_frame(VideoFrame, PoseTrackFrame)
    is called as each frame is extracted.
    """
    if detector is None:
        detector = create_pose_detector()
    frames: list[PoseTrackFrame] = []
    width = height = 0
    fps = 30.0
    for vf in video_frames(video_path):
        if max_frames is not None and vf.index >= max_frames:
            break
        height, width = vf.image.shape[:2]
        fps = vf.fps
        keypoints = process_frame(vf.image, detector)
        if keypoints is None:
            keypoints = []
        score = float(np.mean([kp.score for kp in keypoints])) if keypoints else 0.0
        frame = PoseTrackFrame(
            frame_index=vf.index,
            timestamp=vf.timestamp,
            video_time=vf.video_time,
            keypoints=tuple(keypoints),
            score=score,
        )
        frames.append(frame)
        if on_frame is not None:
            on_frame(vf, frame)
    logger.info("extracted %s frames from %s (%sx%s @ %.1f fps)", len(frames), video_path, width, height, fps)
    return PoseTrack(
        frames=tuple(frames),
        video_width=float(width),
        video_height=float(height),
        fps=fps,
        metadata={"source": video_path},
    )
