"""
Debug overlay and filmstrip thumbnails with OpenCV. Drawing is in place.
"""
from __future__ import annotations

from typing import Mapping, Optional, Sequence

import cv2
import numpy as np

from .analyzer import HudConfig
from .config import CropConfig
from .crop import CropOptions, calculate_person_centered_crop
from .hud import format_hud_metric
from .pose import Keypoint, NUM_LANDMARKS
from .skeleton import MIN_KEYPOINT_CONFIDENCE
from .units import VideoHeight, VideoWidth

# Filmstrip thumbnails are 3:4 portrait.
THUMB_WIDTH = 120
THUMB_HEIGHT = 160

# Pose skeleton connections (33 landmarks)
_POSE_CONNECTIONS = frozenset([
    (0, 1), (1, 2), (2, 3), (3, 7), (0, 4), (4, 5), (5, 6), (6, 8), (9, 10),
    (11, 12), (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
    (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    (11, 23), (12, 24), (23, 24), (23, 25), (24, 26), (25, 27), (26, 28),
    (27, 29), (28, 30), (29, 31), (30, 32), (27, 31), (28, 32),
])


def _pt(kp: Keypoint) -> tuple[int, int]:
    return (int(round(kp.x)), int(round(kp.y)))


def _usable(kp: Optional[Keypoint]) -> bool:
    return kp is not None and kp.score >= MIN_KEYPOINT_CONFIDENCE


def draw_skeleton(
    frame: np.ndarray,
    keypoints: Sequence[Optional[Keypoint]],
    color: tuple[int, int, int] = (0, 255, 0),
    thickness: int = 2,
) -> None:
    """Bones and joints between confident keypoints only."""
    if not keypoints or len(keypoints) < NUM_LANDMARKS:
        return
    for (i, j) in _POSE_CONNECTIONS:
        if _usable(keypoints[i]) and _usable(keypoints[j]):
            cv2.line(frame, _pt(keypoints[i]), _pt(keypoints[j]), color, thickness)
    for kp in keypoints:
        if _usable(kp):
            cv2.circle(frame, _pt(kp), 3, color, -1)


def draw_hud(
    frame: np.ndarray,
    hud: HudConfig,
    angles: Mapping[str, float],
    phase: str,
    rep_count: int,
    status: Optional[str] = None,
) -> None:
    """Semi-transparent panel with rep count, phase and the exercise's HUD metrics."""
    w = frame.shape[1]
    lines = [f"Rep: {rep_count}", f"Phase: {phase}"]
    lines += [format_hud_metric(m, angles.get(m.key)) for m in hud.metrics]
    if status:
        lines.append(status)

    y0, dy = 28, 28
    panel_h = y0 + dy * len(lines) - 10
    overlay = frame.copy()
    cv2.rectangle(overlay, (0, 0), (w, panel_h), (40, 40, 40), -1)
    cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)
    for i, line in enumerate(lines):
        # degree sign is outside Hershey fonts
        text = line.replace("°", " deg")
        cv2.putText(frame, text, (12, y0 + i * dy), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2, cv2.LINE_AA)


def crop_thumbnail(
    frame: np.ndarray,
    keypoints: Sequence[Optional[Keypoint]],
    width: int = THUMB_WIDTH,
    height: int = THUMB_HEIGHT,
    crop_config: Optional[CropConfig] = None,
) -> np.ndarray:
    """Person-centered crop of frame resized to width x height."""
    cfg = crop_config or CropConfig()
    h, w = frame.shape[:2]
    crop = calculate_person_centered_crop(
        keypoints,
        CropOptions(
            thumb_width=width,
            thumb_height=height,
            video_width=VideoWidth(w),
            video_height=VideoHeight(h),
            min_confidence=cfg.min_confidence,
            min_crop_height_fraction=cfg.min_crop_height_fraction,
            width_padding=cfg.width_padding,
            height_padding=cfg.height_padding,
        ),
    )
    x0 = int(round(crop.crop_x))
    y0 = int(round(crop.crop_y))
    x1 = min(w, x0 + max(1, int(round(crop.crop_width))))
    y1 = min(h, y0 + max(1, int(round(crop.crop_height))))
    region = frame[y0:y1, x0:x1]
    return cv2.resize(region, (width, height), interpolation=cv2.INTER_AREA)
