"""
Kettlebell swing: top -> connect -> bottom -> release -> top.

Phase is driven by the spine angle from vertical. Peaks are picked by
score, not by threshold crossing: top is the frame with the arms highest,
bottom the deepest hinge.
"""
from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Any, Optional

import numpy as np

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
from .skeleton import MAX_VELOCITY_DT_SEC, Side, Skeleton
from .units import (
    DEFAULT_USER_HEIGHT_CM,
    HeightCm,
    QualityScore,
    RepCount,
    TimestampMs,
    VideoTimeSeconds,
)

logger = logging.getLogger(__name__)

# Spine angle (deg) thresholds for each transition.
CONNECT_ENTER_DEG = 41.0
BOTTOM_ENTER_DEG = 60.0
RELEASE_ENTER_DEG = 55.0
TOP_ENTER_DEG = 25.0

# Target spine angles for the in-between positions.
CONNECT_TARGET_DEG = 45.0
RELEASE_TARGET_DEG = 37.0
PEAK_TOLERANCE_DEG = 30.0

# Rep quality
MIN_HINGE_DEG = 60.0
MAX_LOCKOUT_DEG = 20.0
MIN_ARM_HEIGHT_DEG = 70.0

# Live speed is the median of the last few defined samples.
SPEED_HISTORY = 3


class SwingPhase(str, Enum):
    TOP = "top"
    CONNECT = "connect"
    BOTTOM = "bottom"
    RELEASE = "release"


SWING_HUD = HudConfig(
    metrics=(
        HudMetric("spine", "Spine", "°"),
        HudMetric("arm", "Arm", "°"),
        HudMetric("speed", "Speed", "m/s", decimals=2),
    )
)


class KettlebellSwingAnalyzer:
    def __init__(
        self,
        min_frames_in_phase: int = DEFAULT_MIN_FRAMES_IN_PHASE,
        user_height_cm: HeightCm = DEFAULT_USER_HEIGHT_CM,
        preferred_side: Side = "right",
    ):
        self.tracker: RepTracker[SwingPhase] = RepTracker(SwingPhase, SwingPhase.TOP, min_frames_in_phase)
        self.user_height_cm = user_height_cm
        self.preferred_side = preferred_side
        self._prev_skeleton: Optional[Skeleton] = None
        self._prev_time: Optional[float] = None
        self._speeds: deque[float] = deque(maxlen=SPEED_HISTORY)
        self._reset_rep_metrics()

    # ---- protocol ----

    def get_exercise_name(self) -> str:
        return "Kettlebell Swing"

    def get_phases(self) -> list[str]:
        return [p.value for p in SwingPhase]

    def get_phase(self) -> str:
        return self.tracker.phase.value

    def get_rep_count(self) -> RepCount:
        return self.tracker.rep_count

    def get_last_rep_quality(self) -> Optional[RepQuality]:
        return self.tracker.last_rep_quality

    def get_hud_config(self) -> HudConfig:
        return SWING_HUD

    def get_working_leg(self) -> Optional[str]:
        return None

    def reset(self) -> None:
        """Back to top with no reps, peaks or speed history."""
        self.tracker.reset()
        self.tracker.phase = SwingPhase.TOP
        self._prev_skeleton = None
        self._prev_time = None
        self._speeds.clear()
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

        spine = skeleton.get_spine_angle()
        arm = skeleton.get_arm_to_vertical_angle()
        speed = self._update_speed(skeleton, timestamp, video_time)
        angles = clean_angles({
            "spine": spine,
            "arm": arm,
            "arm_to_spine": skeleton.get_arm_to_spine_angle(),
            "speed": speed,
        })
        if spine is None:
            return tracker.build_result(angles)

        self._update_rep_metrics(spine, arm, speed)

        completed = None
        if tracker.can_transition():
            phase = tracker.phase
            if phase is SwingPhase.TOP and spine >= CONNECT_ENTER_DEG:
                tracker.transition_to(SwingPhase.CONNECT)
            elif phase is SwingPhase.CONNECT and spine >= BOTTOM_ENTER_DEG:
                tracker.transition_to(SwingPhase.BOTTOM)
            elif phase is SwingPhase.BOTTOM and spine < RELEASE_ENTER_DEG:
                tracker.transition_to(SwingPhase.RELEASE)
            elif phase is SwingPhase.RELEASE and spine < TOP_ENTER_DEG:
                tracker.transition_to(SwingPhase.TOP)
                completed = tracker.complete_rep(self._calculate_rep_quality())
                self._reset_rep_metrics()
                self._update_rep_metrics(spine, arm, speed)

        tracker.offer_peak(
            tracker.phase,
            PhasePeak(
                phase=tracker.phase.value,
                skeleton=skeleton,
                timestamp=timestamp,
                video_time=video_time,
                score=self._peak_score(tracker.phase, spine, arm),
                angles=angles,
                frame_image=frame_image,
            ),
        )
        return tracker.build_result(angles, completed)

    # ---- internals ----

    def _update_speed(
        self,
        skeleton: Skeleton,
        timestamp: TimestampMs,
        video_time: Optional[VideoTimeSeconds],
    ) -> Optional[float]:
        now = video_time if video_time is not None else timestamp / 1000.0
        speed = None
        if self._prev_skeleton is not None and self._prev_time is not None:
            dt = now - self._prev_time
            if dt <= 0 or dt > MAX_VELOCITY_DT_SEC:
                # seek or discontinuity: speed is unknown until new samples arrive
                self._prev_skeleton = skeleton
                self._prev_time = now
                self._speeds.clear()
                return None
            speed = skeleton.get_wrist_velocity_from_prev(
                self._prev_skeleton,
                dt,
                user_height_cm=self.user_height_cm,
                preferred_side=self.preferred_side,
            )
        self._prev_skeleton = skeleton
        self._prev_time = now
        if speed is not None:
            self._speeds.append(speed)
        if not self._speeds:
            return None
        return float(np.median(self._speeds))

    @staticmethod
    def _peak_score(phase: SwingPhase, spine: float, arm: Optional[float]) -> QualityScore:
        if phase is SwingPhase.TOP:
            # uprightness stands in when the wrists are not visible
            if arm is not None:
                return QualityScore(arm / 180.0 * 100.0)
            return QualityScore(max(0.0, 100.0 - spine))
        if phase is SwingPhase.BOTTOM:
            return QualityScore(min(100.0, spine / 90.0 * 100.0))
        if phase is SwingPhase.CONNECT:
            return score_closeness(spine, CONNECT_TARGET_DEG, PEAK_TOLERANCE_DEG)
        return score_closeness(spine, RELEASE_TARGET_DEG, PEAK_TOLERANCE_DEG)

    def _reset_rep_metrics(self) -> None:
        self._max_spine: Optional[float] = None
        self._min_spine: Optional[float] = None
        self._max_arm: Optional[float] = None
        self._peak_speed: Optional[float] = None

    def _update_rep_metrics(self, spine: float, arm: Optional[float], speed: Optional[float]) -> None:
        self._max_spine = spine if self._max_spine is None else max(self._max_spine, spine)
        self._min_spine = spine if self._min_spine is None else min(self._min_spine, spine)
        if arm is not None:
            self._max_arm = arm if self._max_arm is None else max(self._max_arm, arm)
        if speed is not None:
            self._peak_speed = speed if self._peak_speed is None else max(self._peak_speed, speed)

    def _calculate_rep_quality(self) -> RepQuality:
        score = 100.0
        feedback = []
        if self._max_spine is not None and self._max_spine < MIN_HINGE_DEG:
            score -= 25
            feedback.append("Hinge deeper: push the hips back at the bottom")
        if self._min_spine is not None and self._min_spine > MAX_LOCKOUT_DEG:
            score -= 20
            feedback.append("Stand tall at the top: squeeze glutes to lock out")
        if self._max_arm is not None and self._max_arm < MIN_ARM_HEIGHT_DEG:
            score -= 15
            feedback.append("Drive the bell higher with a stronger hip snap")
        if not feedback:
            feedback.append("Solid rep")

        metrics = clean_angles({
            "maxSpineAngle": self._max_spine,
            "minSpineAngle": self._min_spine,
            "maxArmAngle": self._max_arm,
            "peakSpeed": self._peak_speed,
        })
        return RepQuality(score=QualityScore(max(0.0, score)), feedback=tuple(feedback), metrics=metrics)
