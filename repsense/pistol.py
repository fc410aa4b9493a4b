"""
Pistol squat: standing -> descending -> bottom -> ascending -> standing.

Phase is driven by depth from ear height, which stays readable when the
working knee is hidden behind the extended leg.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from .analyzer import (
    DEFAULT_MIN_FRAMES_IN_PHASE,
    FormAnalyzerResult,
    HudConfig,
    HudMetric,
    PhasePeak,
    RepQuality,
    RepTracker,
    clean_angles,
    score_closeness,
)
from .depth import calculate_depth_from_keypoints
from .skeleton import Side, Skeleton
from .units import (
    DEFAULT_VIDEO_HEIGHT,
    QualityScore,
    RepCount,
    TimestampMs,
    VideoHeight,
    VideoTimeSeconds,
)

logger = logging.getLogger(__name__)

# Depth (%) thresholds
DESCENDING_ENTER = 20.0
BOTTOM_ENTER = 50.0
# Rising this many points above the rep's deepest depth starts the ascent.
ASCENT_RISE = 10.0
STANDING_ENTER = 15.0

# Target depth for the in-between positions.
MIDWAY_TARGET = 35.0
MIDWAY_TOLERANCE = 35.0

# Unknown joint angles read as fully extended.
NEUTRAL_JOINT_DEG = 180.0

# Rep quality
MIN_DEPTH = 70.0
MAX_KNEE_DEG = 90.0
MAX_LEAN_DEG = 50.0


class PistolPhase(str, Enum):
    STANDING = "standing"
    DESCENDING = "descending"
    BOTTOM = "bottom"
    ASCENDING = "ascending"


PISTOL_HUD = HudConfig(
    metrics=(
        HudMetric("depth", "Depth", "%"),
        HudMetric("knee", "Knee", "°"),
        HudMetric("hip", "Hip", "°"),
    )
)


def _joint_or_neutral(value: Optional[float]) -> float:
    return float(value) if value is not None else NEUTRAL_JOINT_DEG


class PistolSquatAnalyzer:
    def __init__(
        self,
        video_height: VideoHeight = DEFAULT_VIDEO_HEIGHT,
        min_frames_in_phase: int = DEFAULT_MIN_FRAMES_IN_PHASE,
    ):
        self.tracker: RepTracker[PistolPhase] = RepTracker(
            PistolPhase, PistolPhase.STANDING, min_frames_in_phase
        )
        self.video_height = video_height
        self._working_leg: Optional[Side] = None
        self._reset_rep_metrics()

    def get_exercise_name(self) -> str:
        return "Pistol Squat"

    def get_phases(self) -> list[str]:
        return [p.value for p in PistolPhase]

    def get_phase(self) -> str:
        return self.tracker.phase.value

    def get_rep_count(self) -> RepCount:
        return self.tracker.rep_count

    def get_last_rep_quality(self) -> Optional[RepQuality]:
        return self.tracker.last_rep_quality

    def get_hud_config(self) -> HudConfig:
        return PISTOL_HUD

    def get_working_leg(self) -> Optional[str]:
        return self._working_leg

    def reset(self) -> None:
        """Back to standing with no reps, peaks or working leg."""
        self.tracker.reset()
        self.tracker.phase = PistolPhase.STANDING
        self._working_leg = None
        self._reset_rep_metrics()

    def process_frame(
        self,
        skeleton: Skeleton,
        timestamp: TimestampMs,
        video_time: Optional[VideoTimeSeconds] = None,
        frame_image: Any = None,
    ) -> FormAnalyzerResult:
        tracker = self.tracker
        tracker.tick()

        depth = calculate_depth_from_keypoints(skeleton.keypoints, self.video_height)
        left_knee = _joint_or_neutral(skeleton.get_knee_angle_for_side("left"))
        right_knee = _joint_or_neutral(skeleton.get_knee_angle_for_side("right"))
        hip = min(
            _joint_or_neutral(skeleton.get_hip_angle_for_side("left")),
            _joint_or_neutral(skeleton.get_hip_angle_for_side("right")),
        )
        knee = min(left_knee, right_knee)
        spine = skeleton.get_spine_angle()
        angles = clean_angles({"depth": depth, "knee": knee, "hip": hip, "spine": spine})
        if depth is None:
            return tracker.build_result(angles)

        self._update_rep_metrics(depth, knee, spine)

        completed = None
        if tracker.can_transition():
            phase = tracker.phase
            if phase is PistolPhase.STANDING and depth >= DESCENDING_ENTER:
                tracker.transition_to(PistolPhase.DESCENDING)
            elif phase is PistolPhase.DESCENDING and depth >= BOTTOM_ENTER:
                tracker.transition_to(PistolPhase.BOTTOM)
            elif phase is PistolPhase.BOTTOM and depth <= self._max_depth - ASCENT_RISE:
                tracker.transition_to(PistolPhase.ASCENDING)
            elif phase is PistolPhase.ASCENDING and depth <= STANDING_ENTER:
                tracker.transition_to(PistolPhase.STANDING)
                completed = tracker.complete_rep(self._calculate_rep_quality())
                self._reset_rep_metrics()
                self._update_rep_metrics(depth, knee, spine)

        stored = tracker.offer_peak(
            tracker.phase,
            PhasePeak(
                phase=tracker.phase.value,
                skeleton=skeleton,
                timestamp=timestamp,
                video_time=video_time,
                score=self._peak_score(tracker.phase, depth),
                angles=angles,
                frame_image=frame_image,
            ),
        )
        if stored and tracker.phase is PistolPhase.BOTTOM and left_knee != right_knee:
            # the working leg is the more bent one at the deepest point
            self._working_leg = "left" if left_knee < right_knee else "right"
        return tracker.build_result(angles, completed)

    @staticmethod
    def _peak_score(phase: PistolPhase, depth: float) -> QualityScore:
        if phase is PistolPhase.STANDING:
            return QualityScore(100.0 - depth)
        if phase is PistolPhase.BOTTOM:
            return QualityScore(depth)
        return score_closeness(depth, MIDWAY_TARGET, MIDWAY_TOLERANCE)

    def _reset_rep_metrics(self) -> None:
        self._max_depth = 0.0
        self._min_knee = NEUTRAL_JOINT_DEG
        self._max_spine: Optional[float] = None

    def _update_rep_metrics(self, depth: float, knee: float, spine: Optional[float]) -> None:
        self._max_depth = max(self._max_depth, depth)
        self._min_knee = min(self._min_knee, knee)
        if spine is not None:
            self._max_spine = spine if self._max_spine is None else max(self._max_spine, spine)

    def _calculate_rep_quality(self) -> RepQuality:
        score = 100.0
        feedback = []
        if self._max_depth < MIN_DEPTH:
            score -= 25
            feedback.append("Sit deeper: aim for hip below knee")
        if self._min_knee > MAX_KNEE_DEG:
            score -= 15
            feedback.append("Bend the working knee past 90°")
        if self._max_spine is not None and self._max_spine > MAX_LEAN_DEG:
            score -= 15
            feedback.append("Keep your chest up: too much forward lean")
        if not feedback:
            feedback.append("Solid rep")

        metrics = clean_angles({
            "maxDepth": self._max_depth,
            "minKneeAngle": self._min_knee,
            "maxSpineAngle": self._max_spine,
        })
        return RepQuality(score=QualityScore(max(0.0, score)), feedback=tuple(feedback), metrics=metrics)
