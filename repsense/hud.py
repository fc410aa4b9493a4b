"""
HUD helpers: per-frame display angles and swing position estimation.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .analyzer import HudMetric
from .depth import calculate_depth_from_keypoints
from .skeleton import Skeleton
from .units import AngleDegrees, VideoHeight, round_half_up

# Unknown knee/hip angles display as fully extended.
NEUTRAL_JOINT_DEG = 180.0


@dataclass(frozen=True)
class HudAngles:
    spine_angle: int
    arm_angle: int
    speed: float
    knee_angle: int
    hip_angle: int
    depth: float

    def to_dict(self) -> dict:
        return {
            "spineAngle": self.spine_angle,
            "armAngle": self.arm_angle,
            "speed": self.speed,
            "kneeAngle": self.knee_angle,
            "hipAngle": self.hip_angle,
            "depth": self.depth,
        }


def _or(value: Optional[float], default: float) -> float:
    return float(value) if value is not None else default


def extract_hud_angles(
    skeleton: Skeleton,
    video_height: VideoHeight,
    precomputed_speed: Optional[float] = None,
) -> HudAngles:
    """
    Rounded display values. Knee and hip are the more bent side; unknown
    spine/arm read 0, unknown knee/hip 180, unknown depth 0.
    """
    knee = min(
        _or(skeleton.get_knee_angle_for_side("left"), NEUTRAL_JOINT_DEG),
        _or(skeleton.get_knee_angle_for_side("right"), NEUTRAL_JOINT_DEG),
    )
    hip = min(
        _or(skeleton.get_hip_angle_for_side("left"), NEUTRAL_JOINT_DEG),
        _or(skeleton.get_hip_angle_for_side("right"), NEUTRAL_JOINT_DEG),
    )
    depth = calculate_depth_from_keypoints(skeleton.keypoints, video_height)
    return HudAngles(
        spine_angle=int(round_half_up(_or(skeleton.get_spine_angle(), 0.0))),
        arm_angle=int(round_half_up(_or(skeleton.get_arm_to_vertical_angle(), 0.0))),
        speed=precomputed_speed if precomputed_speed is not None else 0.0,
        knee_angle=int(round_half_up(knee)),
        hip_angle=int(round_half_up(hip)),
        depth=depth if depth is not None else 0.0,
    )


class SwingPosition(str, Enum):
    TOP = "Top"
    RELEASE = "Release"
    CONNECT = "Connect"
    BOTTOM = "Bottom"


@dataclass(frozen=True)
class SpineAngleThresholds:
    top_max: float = 25.0  # below = Top
    release_max: float = 41.0  # top_max..release_max = Release
    connect_max: float = 60.0  # release_max..connect_max = Connect, above = Bottom


DEFAULT_SPINE_THRESHOLDS = SpineAngleThresholds()


def estimate_swing_position(
    spine_angle: AngleDegrees,
    thresholds: SpineAngleThresholds = DEFAULT_SPINE_THRESHOLDS,
) -> Optional[SwingPosition]:
    """Position from spine angle alone; None for negative or non-finite input."""
    if not math.isfinite(spine_angle) or spine_angle < 0:
        return None
    if spine_angle < thresholds.top_max:
        return SwingPosition.TOP
    if spine_angle < thresholds.release_max:
        return SwingPosition.RELEASE
    if spine_angle < thresholds.connect_max:
        return SwingPosition.CONNECT
    return SwingPosition.BOTTOM


def is_hinged_position(spine_angle: AngleDegrees, threshold: float = 60.0) -> bool:
    return math.isfinite(spine_angle) and spine_angle >= threshold


def is_upright_position(spine_angle: AngleDegrees, threshold: float = 25.0) -> bool:
    return math.isfinite(spine_angle) and spine_angle < threshold


def format_hud_metric(metric: HudMetric, value: Optional[float]) -> str:
    """'Spine: 42°', 'Speed: 1.25 m/s'; '--' for unknown values."""
    if value is None or not math.isfinite(value):
        text = "--"
    else:
        text = f"{value:.{metric.decimals}f}"
    sep = "" if metric.unit in ("°", "%") else " "
    return f"{metric.label}: {text}{sep}{metric.unit}" if text != "--" else f"{metric.label}: --"
