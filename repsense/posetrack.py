"""
Pose track records and their JSON round trip.

Wire keys are camelCase (frameIndex, videoTime, wristSpeed, ...), the format
shared with the pose-track cache.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

from .pose import Keypoint
from .skeleton import Skeleton

logger = logging.getLogger(__name__)


class CropRegion(NamedTuple):
    """Axis-aligned rectangle in source-video pixels."""

    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class FrameAngles:
    spine_angle: float
    arm_to_spine_angle: float
    arm_to_vertical_angle: float
    wrist_speed: Optional[float] = None

    @classmethod
    def from_skeleton(cls, skeleton: Skeleton) -> "FrameAngles":
        """Unknown angles are stored as 0.0."""
        return cls(
            spine_angle=_or_zero(skeleton.get_spine_angle()),
            arm_to_spine_angle=_or_zero(skeleton.get_arm_to_spine_angle()),
            arm_to_vertical_angle=_or_zero(skeleton.get_arm_to_vertical_angle()),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "spineAngle": self.spine_angle,
            "armToSpineAngle": self.arm_to_spine_angle,
            "armToVerticalAngle": self.arm_to_vertical_angle,
        }
        if self.wrist_speed is not None:
            out["wristSpeed"] = self.wrist_speed
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FrameAngles":
        speed = data.get("wristSpeed")
        return cls(
            spine_angle=float(data.get("spineAngle", 0.0)),
            arm_to_spine_angle=float(data.get("armToSpineAngle", 0.0)),
            arm_to_vertical_angle=float(data.get("armToVerticalAngle", 0.0)),
            wrist_speed=float(speed) if speed is not None else None,
        )


def _or_zero(value: Optional[float]) -> float:
    return float(value) if value is not None else 0.0


@dataclass(frozen=True)
class PoseTrackFrame:
    frame_index: int
    timestamp: float  # ms
    video_time: float  # s
    keypoints: tuple[Keypoint, ...]
    score: float
    angles: Optional[FrameAngles] = None

    def skeleton(self) -> Skeleton:
        return Skeleton(self.keypoints)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "frameIndex": self.frame_index,
            "timestamp": self.timestamp,
            "videoTime": self.video_time,
            "keypoints": [
                {"x": round(kp.x, 4), "y": round(kp.y, 4), "score": round(kp.score, 4)}
                for kp in self.keypoints
            ],
            "score": self.score,
        }
        if self.angles is not None:
            out["angles"] = self.angles.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PoseTrackFrame":
        try:
            keypoints = tuple(
                Keypoint(float(kp["x"]), float(kp["y"]), float(kp.get("score", 0.0)))
                for kp in data.get("keypoints", [])
            )
            angles = data.get("angles")
            return cls(
                frame_index=int(data["frameIndex"]),
                timestamp=float(data["timestamp"]),
                video_time=float(data["videoTime"]),
                keypoints=keypoints,
                score=float(data.get("score", 0.0)),
                angles=FrameAngles.from_dict(angles) if angles else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed pose track frame: {e}") from e


@dataclass(frozen=True)
class PoseTrack:
    frames: tuple[PoseTrackFrame, ...]
    video_width: float
    video_height: float
    fps: float = 30.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "videoWidth": self.video_width,
            "videoHeight": self.video_height,
            "fps": self.fps,
            "metadata": dict(self.metadata),
            "frames": [f.to_dict() for f in self.frames],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PoseTrack":
        if not isinstance(data, dict):
            raise ValueError("Pose track must be a JSON object")
        try:
            width = float(data["videoWidth"])
            height = float(data["videoHeight"])
            fps = float(data.get("fps") or 30.0)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed pose track header: {e}") from e
        frames = data.get("frames", [])
        if not isinstance(frames, list):
            raise ValueError("Pose track 'frames' must be a list")
        return cls(
            frames=tuple(PoseTrackFrame.from_dict(f) for f in frames),
            video_width=width,
            video_height=height,
            fps=fps,
            metadata=dict(data.get("metadata") or {}),
        )


def save_pose_track(track: PoseTrack, path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w") as f:
        json.dump(track.to_dict(), f)
    logger.info("pose track saved: %s (%s frames)", path, len(track.frames))


def load_pose_track(path: str) -> PoseTrack:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Pose track not found: {path}")
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Pose track is not valid JSON: {path}") from e
    track = PoseTrack.from_dict(data)
    logger.info("pose track loaded: %s (%s frames)", path, len(track.frames))
    return track
