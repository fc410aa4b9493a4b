"""
One analysis session: feeds pose-track frames to a single analyzer, in order,
and collects what each completed rep captured.

Frames may come live from extraction or back-to-back from a cached track;
the analyzer sees the same sequence either way.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from .analyzer import FormAnalyzer, FormAnalyzerResult, RepPosition, RepQuality
from .checkpoints import Checkpoint, build_checkpoint_list
from .posetrack import PoseTrackFrame

logger = logging.getLogger(__name__)

# Consecutive failed frames before the degraded notice is shown.
MAX_CONSECUTIVE_ERRORS = 5
DEGRADED_STATUS = "Analysis experiencing errors - some frames may be skipped"


class AnalysisSession:
    def __init__(self, analyzer: FormAnalyzer):
        self.analyzer = analyzer
        self.rep_positions: dict[int, tuple[RepPosition, ...]] = {}
        self.rep_qualities: dict[int, RepQuality] = {}
        self.consecutive_errors = 0
        self.frames_processed = 0
        self.frames_skipped = 0
        self.status: Optional[str] = None
        self.last_result: Optional[FormAnalyzerResult] = None

    @property
    def is_degraded(self) -> bool:
        return self.consecutive_errors >= MAX_CONSECUTIVE_ERRORS

    def process_frame(self, frame: PoseTrackFrame, frame_image: Any = None) -> Optional[FormAnalyzerResult]:
        """
        Run one frame through the analyzer. An analyzer exception skips the
        frame and returns None; it never escapes this call.
        """
        try:
            result = self.analyzer.process_frame(
                frame.skeleton(),
                frame.timestamp,
                frame.video_time,
                frame_image,
            )
        except Exception:
            self.consecutive_errors += 1
            self.frames_skipped += 1
            logger.exception(
                "frame %s skipped (%s consecutive errors)", frame.frame_index, self.consecutive_errors
            )
            if self.consecutive_errors == MAX_CONSECUTIVE_ERRORS:
                logger.warning("analysis degraded after %s consecutive errors", self.consecutive_errors)
            if self.is_degraded:
                self.status = DEGRADED_STATUS
            return None

        self.consecutive_errors = 0
        self.status = None
        self.frames_processed += 1
        self.last_result = result
        if result.rep_completed:
            self.rep_positions[result.rep_count] = result.rep_positions or ()
            if result.rep_quality is not None:
                self.rep_qualities[result.rep_count] = result.rep_quality
        return result

    def replay(self, frames: Iterable[PoseTrackFrame]) -> list[FormAnalyzerResult]:
        """Process frames in order; skipped frames produce no result."""
        results = []
        for frame in frames:
            result = self.process_frame(frame)
            if result is not None:
                results.append(result)
        return results

    def checkpoints(self) -> list[Checkpoint]:
        return build_checkpoint_list(self.rep_positions, self.analyzer.get_phases())

    def reset(self) -> None:
        self.analyzer.reset()
        self.rep_positions = {}
        self.rep_qualities = {}
        self.consecutive_errors = 0
        self.frames_processed = 0
        self.frames_skipped = 0
        self.status = None
        self.last_result = None

    def summary(self) -> dict[str, Any]:
        reps = []
        for rep_num in sorted(self.rep_positions):
            quality = self.rep_qualities.get(rep_num)
            reps.append({
                "rep": rep_num,
                "quality": quality.to_dict() if quality is not None else None,
                "positions": [p.to_dict() for p in self.rep_positions[rep_num]],
            })
        return {
            "exercise": self.analyzer.get_exercise_name(),
            "phases": self.analyzer.get_phases(),
            "repCount": self.analyzer.get_rep_count(),
            "workingLeg": self.analyzer.get_working_leg(),
            "hud": self.analyzer.get_hud_config().to_dict(),
            "reps": reps,
            "checkpoints": [cp.to_dict() for cp in self.checkpoints()],
            "framesProcessed": self.frames_processed,
            "framesSkipped": self.frames_skipped,
            "status": self.status,
        }
