"""
Per-frame skeleton: joint angles and calibrated wrist velocity from 33 keypoints.
Every getter returns None when the landmarks it needs are missing or below
the confidence threshold; callers decide whether to substitute a default.
"""
from __future__ import annotations

import math
from typing import Literal, Optional, Sequence

from .pose import Keypoint, LandmarkIdx
from .units import AngleDegrees, HeightCm, MetersPerSecond, DEFAULT_USER_HEIGHT_CM

Side = Literal["left", "right"]
Point = tuple[float, float]

# Keypoints below this confidence are treated as missing.
MIN_KEYPOINT_CONFIDENCE = 0.3
# Velocity is undefined across gaps longer than this (seek / dropped frames).
MAX_VELOCITY_DT_SEC = 0.5
# Nose-to-ankle distance as a fraction of standing body height.
NOSE_TO_ANKLE_FRACTION = 0.87

_SIDE_LANDMARKS = {
    "left": {
        "shoulder": LandmarkIdx.LEFT_SHOULDER,
        "elbow": LandmarkIdx.LEFT_ELBOW,
        "wrist": LandmarkIdx.LEFT_WRIST,
        "hip": LandmarkIdx.LEFT_HIP,
        "knee": LandmarkIdx.LEFT_KNEE,
        "ankle": LandmarkIdx.LEFT_ANKLE,
        "ear": LandmarkIdx.LEFT_EAR,
    },
    "right": {
        "shoulder": LandmarkIdx.RIGHT_SHOULDER,
        "elbow": LandmarkIdx.RIGHT_ELBOW,
        "wrist": LandmarkIdx.RIGHT_WRIST,
        "hip": LandmarkIdx.RIGHT_HIP,
        "knee": LandmarkIdx.RIGHT_KNEE,
        "ankle": LandmarkIdx.RIGHT_ANKLE,
        "ear": LandmarkIdx.RIGHT_EAR,
    },
}


def other_side(side: Side) -> Side:
    return "left" if side == "right" else "right"


def _midpoint(a: Optional[Point], b: Optional[Point]) -> Optional[Point]:
    if a is None or b is None:
        return None
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def _midpoint_or_either(a: Optional[Point], b: Optional[Point]) -> Optional[Point]:
    mid = _midpoint(a, b)
    if mid is not None:
        return mid
    return a if a is not None else b


def _angle_deg(
    a: Optional[Point],
    b: Optional[Point],
    c: Optional[Point],
) -> Optional[float]:
    """Angle at b for triangle a-b-c, in degrees."""
    if a is None or b is None or c is None:
        return None
    ba = (a[0] - b[0], a[1] - b[1])
    bc = (c[0] - b[0], c[1] - b[1])
    denom = math.hypot(ba[0], ba[1]) * math.hypot(bc[0], bc[1])
    if denom < 1e-6:
        return None
    cos_val = (ba[0] * bc[0] + ba[1] * bc[1]) / denom
    cos_val = max(-1.0, min(1.0, cos_val))
    return math.degrees(math.acos(cos_val))


def _angle_from_down(origin: Optional[Point], end: Optional[Point]) -> Optional[float]:
    """Angle of origin->end against straight down (image y grows downward)."""
    if origin is None or end is None:
        return None
    dx = end[0] - origin[0]
    dy = end[1] - origin[1]
    if abs(dx) + abs(dy) < 1e-6:
        return None
    return math.degrees(math.atan2(abs(dx), dy))


def _mean_of_available(values: Sequence[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


class Skeleton:
    """Immutable view over one frame's keypoints."""

    __slots__ = ("_keypoints",)

    def __init__(self, keypoints: Sequence[Optional[Keypoint]]):
        self._keypoints: tuple[Optional[Keypoint], ...] = tuple(
            Keypoint(*kp) if kp is not None and not isinstance(kp, Keypoint) else kp
            for kp in keypoints
        )

    @property
    def keypoints(self) -> tuple[Optional[Keypoint], ...]:
        return self._keypoints

    def get_keypoint(self, idx: int) -> Optional[Keypoint]:
        """Keypoint at idx if present and confident enough."""
        if idx >= len(self._keypoints):
            return None
        kp = self._keypoints[idx]
        if kp is None or kp.score < MIN_KEYPOINT_CONFIDENCE:
            return None
        return kp

    def _point(self, idx: int) -> Optional[Point]:
        kp = self.get_keypoint(idx)
        return (kp.x, kp.y) if kp is not None else None

    def _side_point(self, side: Side, part: str) -> Optional[Point]:
        return self._point(_SIDE_LANDMARKS[side][part])

    def _mid(self, part: str) -> Optional[Point]:
        return _midpoint_or_either(self._side_point("left", part), self._side_point("right", part))

    def has_confident_keypoints(self) -> bool:
        return any(self.get_keypoint(i) is not None for i in range(len(self._keypoints)))

    # ---- angles ----

    def get_spine_angle(self) -> Optional[AngleDegrees]:
        """Trunk angle from vertical. 0 = upright, larger = more forward hinge."""
        shoulder = self._mid("shoulder")
        hip = self._mid("hip")
        # shoulder->hip points straight down when upright
        angle = _angle_from_down(shoulder, hip)
        return AngleDegrees(angle) if angle is not None else None

    def get_hip_angle_for_side(self, side: Side) -> Optional[AngleDegrees]:
        angle = _angle_deg(
            self._side_point(side, "shoulder"),
            self._side_point(side, "hip"),
            self._side_point(side, "knee"),
        )
        return AngleDegrees(angle) if angle is not None else None

    def get_knee_angle_for_side(self, side: Side) -> Optional[AngleDegrees]:
        angle = _angle_deg(
            self._side_point(side, "hip"),
            self._side_point(side, "knee"),
            self._side_point(side, "ankle"),
        )
        return AngleDegrees(angle) if angle is not None else None

    def get_hip_angle(self) -> Optional[AngleDegrees]:
        angle = _mean_of_available([self.get_hip_angle_for_side("left"), self.get_hip_angle_for_side("right")])
        return AngleDegrees(angle) if angle is not None else None

    def get_knee_angle(self) -> Optional[AngleDegrees]:
        angle = _mean_of_available([self.get_knee_angle_for_side("left"), self.get_knee_angle_for_side("right")])
        return AngleDegrees(angle) if angle is not None else None

    def get_arm_to_spine_angle(self, side: Optional[Side] = None) -> Optional[AngleDegrees]:
        """Angle at the shoulder between hip and wrist. 0 = arm along the torso."""
        if side is None:
            angle = _mean_of_available([self.get_arm_to_spine_angle("left"), self.get_arm_to_spine_angle("right")])
            return AngleDegrees(angle) if angle is not None else None
        angle = _angle_deg(
            self._side_point(side, "hip"),
            self._side_point(side, "shoulder"),
            self._side_point(side, "wrist"),
        )
        return AngleDegrees(angle) if angle is not None else None

    def get_arm_to_vertical_angle(self, side: Optional[Side] = None) -> Optional[AngleDegrees]:
        """Shoulder->wrist against straight down: 0 hanging, 90 horizontal, 180 overhead."""
        if side is None:
            angle = _mean_of_available(
                [self.get_arm_to_vertical_angle("left"), self.get_arm_to_vertical_angle("right")]
            )
            return AngleDegrees(angle) if angle is not None else None
        angle = _angle_from_down(self._side_point(side, "shoulder"), self._side_point(side, "wrist"))
        return AngleDegrees(angle) if angle is not None else None

    # ---- calibration / velocity ----

    def get_head_point(self) -> Optional[Point]:
        nose = self._point(LandmarkIdx.NOSE)
        if nose is not None:
            return nose
        return self._mid("ear")

    def get_height_pixels(self) -> Optional[float]:
        """Head-to-ankle distance in pixels."""
        head = self.get_head_point()
        ankle = self._mid("ankle")
        if head is None or ankle is None:
            return None
        dist = math.hypot(head[0] - ankle[0], head[1] - ankle[1])
        if dist < 1e-6:
            return None
        return dist

    def meters_per_pixel(self, user_height_cm: HeightCm = DEFAULT_USER_HEIGHT_CM) -> Optional[float]:
        height_px = self.get_height_pixels()
        if height_px is None or user_height_cm <= 0:
            return None
        body_px = height_px / NOSE_TO_ANKLE_FRACTION
        return (user_height_cm / 100.0) / body_px

    def get_wrist_velocity_from_prev(
        self,
        prev: "Skeleton",
        dt_seconds: float,
        user_height_cm: HeightCm = DEFAULT_USER_HEIGHT_CM,
        preferred_side: Side = "right",
    ) -> Optional[MetersPerSecond]:
        """
        Wrist speed (m/s) between prev and this skeleton.
        None when dt is outside (0, 0.5] or either skeleton lacks wrist / calibration landmarks.
        """
        if dt_seconds <= 0 or dt_seconds > MAX_VELOCITY_DT_SEC:
            return None
        scale = self.meters_per_pixel(user_height_cm)
        if scale is None or prev.get_height_pixels() is None:
            return None
        for side in (preferred_side, other_side(preferred_side)):
            curr = self._side_point(side, "wrist")
            before = prev._side_point(side, "wrist")
            if curr is None or before is None:
                continue
            dist_px = math.hypot(curr[0] - before[0], curr[1] - before[1])
            return MetersPerSecond(dist_px * scale / dt_seconds)
        return None
