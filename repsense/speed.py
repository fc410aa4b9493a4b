"""
Batch wrist-speed pass over an extracted pose track.

Raw frame-to-frame speeds are smoothed with a centered window. Median is the
default: a direction change produces one genuine near-zero sample next to
high ones, and the median keeps the peaks while still dropping lone spikes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Literal, Optional, Sequence

import numpy as np

from .posetrack import FrameAngles, PoseTrackFrame
from .skeleton import Side, Skeleton
from .units import DEFAULT_USER_HEIGHT_CM, HeightCm, MetersPerSecond, round_half_up

logger = logging.getLogger(__name__)

SmoothingMethod = Literal["median", "mean"]

DEFAULT_WINDOW_SIZE = 3
SPEED_DECIMALS = 2


@dataclass(frozen=True)
class SpeedComputationConfig:
    window_size: int = DEFAULT_WINDOW_SIZE
    user_height_cm: HeightCm = DEFAULT_USER_HEIGHT_CM
    preferred_side: Side = "right"
    smoothing_method: SmoothingMethod = "median"

    def __post_init__(self) -> None:
        if self.window_size < 1 or self.window_size % 2 == 0:
            raise ValueError(f"window_size must be an odd integer >= 1, got {self.window_size}")
        if self.user_height_cm <= 0:
            raise ValueError(f"user_height_cm must be positive, got {self.user_height_cm}")
        if self.preferred_side not in ("left", "right"):
            raise ValueError(f"preferred_side must be 'left' or 'right', got {self.preferred_side!r}")
        if self.smoothing_method not in ("median", "mean"):
            raise ValueError(f"smoothing_method must be 'median' or 'mean', got {self.smoothing_method!r}")


def compute_raw_speeds(
    frames: Sequence[PoseTrackFrame],
    config: SpeedComputationConfig,
) -> list[Optional[MetersPerSecond]]:
    """Speed between each frame and its predecessor; index 0 has none."""
    raw: list[Optional[MetersPerSecond]] = []
    prev_skeleton: Optional[Skeleton] = None
    prev_time: Optional[float] = None
    for frame in frames:
        skeleton = frame.skeleton()
        speed = None
        if prev_skeleton is not None and prev_time is not None:
            speed = skeleton.get_wrist_velocity_from_prev(
                prev_skeleton,
                frame.video_time - prev_time,
                user_height_cm=config.user_height_cm,
                preferred_side=config.preferred_side,
            )
        raw.append(speed)
        prev_skeleton = skeleton
        prev_time = frame.video_time
    return raw


def smooth_speeds(
    raw: Sequence[Optional[float]],
    window_size: int = DEFAULT_WINDOW_SIZE,
    method: SmoothingMethod = "median",
) -> list[float]:
    """
    Centered window over defined values only, clipped at the sequence bounds.
    Windows with nothing defined smooth to 0. Values are not rounded here.
    """
    half = window_size // 2
    n = len(raw)
    out: list[float] = []
    for i in range(n):
        window = [v for v in raw[max(0, i - half):min(n, i + half + 1)] if v is not None]
        if not window:
            out.append(0.0)
        elif method == "mean":
            out.append(float(np.mean(window)))
        else:
            out.append(float(np.median(window)))
    return out


def compute_frame_speeds(
    frames: Sequence[PoseTrackFrame],
    config: Optional[SpeedComputationConfig] = None,
) -> list[PoseTrackFrame]:
    """
    Return new frames with angles.wrist_speed set (m/s, 2 decimals).
    Existing angles are kept; frames without angles get them from the skeleton.
    The input frames are not modified.
    """
    if not frames:
        return []
    config = config or SpeedComputationConfig()
    raw = compute_raw_speeds(frames, config)
    smoothed = smooth_speeds(raw, config.window_size, config.smoothing_method)

    out: list[PoseTrackFrame] = []
    for frame, speed in zip(frames, smoothed):
        angles = frame.angles or FrameAngles.from_skeleton(frame.skeleton())
        angles = replace(angles, wrist_speed=round_half_up(speed, SPEED_DECIMALS))
        out.append(replace(frame, angles=angles))

    defined = sum(1 for v in raw if v is not None)
    logger.info(
        "speeds computed: %s frames, %s raw samples, window=%s method=%s",
        len(frames), defined, config.window_size, config.smoothing_method,
    )
    return out


def get_precomputed_speed(frame: PoseTrackFrame) -> Optional[MetersPerSecond]:
    if frame.angles is None or frame.angles.wrist_speed is None:
        return None
    return MetersPerSecond(frame.angles.wrist_speed)
