"""
Squat depth from head height.

Ear Y (image coordinates, 0 = top) is steadier than knee angles for single-leg
squats. Standing puts the ears near 15% of frame height, a full squat near 65%.
"""
from __future__ import annotations

from typing import Optional, Sequence

from .pose import Keypoint, LandmarkIdx
from .skeleton import MIN_KEYPOINT_CONFIDENCE
from .units import DepthPercent, NormalizedY, PixelY, VideoHeight, round_half_up

STANDING_EAR_Y = 0.15
# Ear Y travel from standing to full squat
SQUAT_RANGE = 0.5


def _usable(keypoints: Sequence[Optional[Keypoint]], idx: int, min_confidence: float) -> Optional[Keypoint]:
    if idx >= len(keypoints):
        return None
    kp = keypoints[idx]
    if kp is None or kp.score < min_confidence:
        return None
    return kp


def get_ear_y_pixels(
    keypoints: Sequence[Optional[Keypoint]],
    min_confidence: float = MIN_KEYPOINT_CONFIDENCE,
) -> Optional[PixelY]:
    """Average ear Y; one ear if only one is visible; nose as last resort."""
    left = _usable(keypoints, LandmarkIdx.LEFT_EAR, min_confidence)
    right = _usable(keypoints, LandmarkIdx.RIGHT_EAR, min_confidence)
    if left is not None and right is not None:
        return PixelY((left.y + right.y) / 2.0)
    if left is not None:
        return PixelY(left.y)
    if right is not None:
        return PixelY(right.y)
    nose = _usable(keypoints, LandmarkIdx.NOSE, min_confidence)
    if nose is not None:
        return PixelY(nose.y)
    return None


def calculate_depth_from_ear_y(ear_y: NormalizedY) -> DepthPercent:
    """0.15 -> 0%, 0.4 -> 50%, 0.65 -> 100%; rounded and clamped to [0, 100]."""
    depth_raw = (ear_y - STANDING_EAR_Y) / SQUAT_RANGE * 100.0
    return DepthPercent(max(0, min(100, int(round_half_up(depth_raw)))))


def calculate_depth_from_keypoints(
    keypoints: Sequence[Optional[Keypoint]],
    video_height: VideoHeight,
) -> Optional[DepthPercent]:
    if video_height <= 0:
        return None
    ear_y = get_ear_y_pixels(keypoints)
    if ear_y is None:
        return None
    return calculate_depth_from_ear_y(NormalizedY(ear_y / video_height))
