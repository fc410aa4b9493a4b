"""
MediaPipe Pose estimation. Returns 33 keypoints in image coordinates (pixel)
with the landmark visibility as confidence score.
Uses Pose Landmarker task (MediaPipe 0.10+). CPU-only.
"""
from __future__ import annotations

import os
import urllib.request
from typing import NamedTuple, Optional

import cv2
import numpy as np

NUM_LANDMARKS = 33


# MediaPipe Pose landmark indices (same as PoseLandmark)
class LandmarkIdx:
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class Keypoint(NamedTuple):
    """One tracked landmark: pixel x/y and confidence in [0, 1]."""

    x: float
    y: float
    score: float


# Pose Landmarker model URL (lite = faster, CPU-friendly)
_POSE_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
_POSE_MODEL_FILENAME = "pose_landmarker_lite.task"


def _get_model_path(cache_dir: Optional[str] = None) -> str:
    """Return path to pose landmarker model, downloading if needed."""
    if cache_dir is None:
        cache_dir = os.path.join(os.path.dirname(__file__), "..", "outputs")
    os.makedirs(cache_dir, exist_ok=True)
    path = os.path.join(cache_dir, _POSE_MODEL_FILENAME)
    if not os.path.isfile(path):
        urllib.request.urlretrieve(_POSE_MODEL_URL, path)
    return path


def create_pose_detector(cache_dir: Optional[str] = None):
    """Create PoseLandmarker instance (MediaPipe 0.10+ tasks API)."""
    from mediapipe.tasks.python.core import base_options
    from mediapipe.tasks.python.vision import PoseLandmarker, PoseLandmarkerOptions
    from mediapipe.tasks.python.vision.core import vision_task_running_mode

    model_path = _get_model_path(cache_dir)
    base = base_options.BaseOptions(model_asset_path=model_path)
    options = PoseLandmarkerOptions(
        base_options=base,
        running_mode=vision_task_running_mode.VisionTaskRunningMode.IMAGE,
        num_poses=1,
        min_pose_detection_confidence=0.5,
        min_pose_presence_confidence=0.5,
        min_tracking_confidence=0.5,
    )
    return PoseLandmarker.create_from_options(options)


def process_frame(frame_bgr: np.ndarray, detector) -> Optional[list[Keypoint]]:
    """
    Run pose estimation on one BGR frame.
    Returns 33 keypoints in pixel coords, or None if no pose.
    """
    from mediapipe.tasks.python.vision.core import image as mp_image

    h, w = frame_bgr.shape[:2]
    rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
    mp_img = mp_image.Image(image_format=mp_image.ImageFormat.SRGB, data=rgb)
    result = detector.detect(mp_img)
    if not result.pose_landmarks:
        return None
    return landmarks_to_keypoints(result.pose_landmarks[0], w, h)


def landmarks_to_keypoints(landmarks, width: int, height: int) -> list[Keypoint]:
    """Convert normalized MediaPipe landmarks to pixel keypoints."""
    keypoints = []
    for lm in landmarks:
        visibility = getattr(lm, "visibility", None)
        score = float(visibility) if visibility is not None else 1.0
        keypoints.append(Keypoint(lm.x * width, lm.y * height, max(0.0, min(1.0, score))))
    return keypoints
