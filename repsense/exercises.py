"""
Exercise registry and selection state.

Detection itself happens elsewhere; this module consumes its events
(exercise, confidence, working leg) and decides which analyzer to run.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .analyzer import DEFAULT_MIN_FRAMES_IN_PHASE, FormAnalyzer
from .pistol import PistolSquatAnalyzer
from .skeleton import Side
from .swing import KettlebellSwingAnalyzer
from .units import DEFAULT_USER_HEIGHT_CM, DEFAULT_VIDEO_HEIGHT, HeightCm, VideoHeight

logger = logging.getLogger(__name__)

# Detection at or above this confidence locks the selection.
LOCK_CONFIDENCE = 90.0
DEFAULT_PHASES = ["top", "connect", "bottom", "release"]


class ExerciseType(str, Enum):
    KETTLEBELL_SWING = "kettlebell-swing"
    PISTOL_SQUAT = "pistol-squat"
    UNKNOWN = "unknown"


def parse_exercise(value: str) -> ExerciseType:
    try:
        return ExerciseType(value)
    except ValueError:
        choices = ", ".join(e.value for e in ExerciseType)
        raise ValueError(f"Unknown exercise {value!r}; expected one of: {choices}") from None


def create_form_analyzer(
    exercise: ExerciseType,
    video_height: VideoHeight = DEFAULT_VIDEO_HEIGHT,
    min_frames_in_phase: int = DEFAULT_MIN_FRAMES_IN_PHASE,
    user_height_cm: HeightCm = DEFAULT_USER_HEIGHT_CM,
    preferred_side: Side = "right",
) -> FormAnalyzer:
    """Analyzer for exercise; unknown falls back to the swing."""
    if exercise is ExerciseType.PISTOL_SQUAT:
        return PistolSquatAnalyzer(video_height=video_height, min_frames_in_phase=min_frames_in_phase)
    return KettlebellSwingAnalyzer(
        min_frames_in_phase=min_frames_in_phase,
        user_height_cm=user_height_cm,
        preferred_side=preferred_side,
    )


class ExerciseSelection:
    """
    Which exercise is active, how sure detection is, and whether the user pinned it.

    Detection events below LOCK_CONFIDENCE are applied but can be replaced by
    later ones. A confident detection or a manual choice locks the selection
    and further detections are ignored until reset().
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.exercise = ExerciseType.UNKNOWN
        self.confidence = 0.0
        self.locked = False
        self.phases = list(DEFAULT_PHASES)
        self.working_leg: Optional[Side] = None

    def handle_detection(
        self,
        exercise: ExerciseType,
        confidence: float,
        working_leg: Optional[Side] = None,
        phases: Optional[list[str]] = None,
    ) -> bool:
        """Apply a detection event unless already locked. Returns True if applied."""
        if self.locked:
            return False
        self.exercise = exercise
        self.confidence = confidence
        self.locked = confidence >= LOCK_CONFIDENCE
        self.phases = list(phases) if phases else list(DEFAULT_PHASES)
        self.working_leg = working_leg
        if self.locked:
            logger.info("exercise locked: %s (confidence %.0f)", exercise.value, confidence)
        return True

    def set_exercise(self, exercise: ExerciseType, phases: Optional[list[str]] = None) -> None:
        """Manual override; always locks."""
        self.exercise = exercise
        self.locked = True
        self.phases = list(phases) if phases else list(DEFAULT_PHASES)
        logger.info("exercise set manually: %s", exercise.value)
