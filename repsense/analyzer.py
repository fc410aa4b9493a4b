"""
Shared form-analysis toolkit.

Exercise strategies (swing, pistol) own a RepTracker and call into it for
debouncing, peak storage and rep completion. The FormAnalyzer protocol is the
surface the session and the service talk to.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, Protocol, TypeVar, runtime_checkable

from .skeleton import Skeleton
from .units import FrameCount, QualityScore, RepCount, TimestampMs, VideoTimeSeconds

logger = logging.getLogger(__name__)

# Minimum consecutive frames in a phase before it may be left.
DEFAULT_MIN_FRAMES_IN_PHASE = 2

P = TypeVar("P", bound=Enum)


# ---- records ----


@dataclass(frozen=True)
class HudMetric:
    key: str
    label: str
    unit: str
    decimals: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "label": self.label, "unit": self.unit, "decimals": self.decimals}


@dataclass(frozen=True)
class HudConfig:
    metrics: tuple[HudMetric, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"metrics": [m.to_dict() for m in self.metrics]}


@dataclass(frozen=True)
class PhasePeak:
    """Best frame seen so far for one phase of the rep in progress."""

    phase: str
    skeleton: Skeleton
    timestamp: TimestampMs
    video_time: Optional[VideoTimeSeconds]
    score: QualityScore
    angles: dict[str, float]
    frame_image: Any = None


@dataclass(frozen=True)
class RepPosition:
    name: str
    skeleton: Skeleton
    timestamp: TimestampMs
    video_time: Optional[VideoTimeSeconds]
    angles: dict[str, float]
    score: QualityScore
    frame_image: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "timestamp": self.timestamp,
            "videoTime": self.video_time,
            "angles": {k: round(v, 2) for k, v in self.angles.items()},
            "score": round(self.score, 1),
        }


@dataclass(frozen=True)
class RepQuality:
    score: QualityScore
    feedback: tuple[str, ...] = ()
    metrics: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "metrics": {k: round(v, 2) for k, v in self.metrics.items()},
            "feedback": list(self.feedback),
        }


@dataclass(frozen=True)
class FormAnalyzerResult:
    phase: str
    rep_completed: bool
    rep_count: RepCount
    angles: dict[str, float]
    rep_positions: Optional[tuple[RepPosition, ...]] = None
    rep_quality: Optional[RepQuality] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "phase": self.phase,
            "repCompleted": self.rep_completed,
            "repCount": self.rep_count,
            "angles": {k: round(v, 2) for k, v in self.angles.items()},
        }
        if self.rep_positions is not None:
            out["repPositions"] = [p.to_dict() for p in self.rep_positions]
        if self.rep_quality is not None:
            out["repQuality"] = self.rep_quality.to_dict()
        return out


@runtime_checkable
class FormAnalyzer(Protocol):
    def process_frame(
        self,
        skeleton: Skeleton,
        timestamp: TimestampMs,
        video_time: Optional[VideoTimeSeconds] = None,
        frame_image: Any = None,
    ) -> FormAnalyzerResult: ...

    def get_phase(self) -> str: ...

    def get_phases(self) -> list[str]: ...

    def get_rep_count(self) -> RepCount: ...

    def get_last_rep_quality(self) -> Optional[RepQuality]: ...

    def get_exercise_name(self) -> str: ...

    def get_hud_config(self) -> HudConfig: ...

    def get_working_leg(self) -> Optional[str]: ...

    def reset(self) -> None: ...


# ---- helpers ----


def score_closeness(value: float, target: float, tolerance: float) -> QualityScore:
    """100 at target, falling linearly to 0 at target +/- tolerance."""
    if tolerance <= 0:
        return QualityScore(100.0 if value == target else 0.0)
    return QualityScore(max(0.0, 100.0 - abs(value - target) / tolerance * 100.0))


def clean_angles(angles: dict[str, Optional[float]]) -> dict[str, float]:
    """Drop unknown measurements so telemetry never carries None."""
    return {k: float(v) for k, v in angles.items() if v is not None}


class RepTracker(Generic[P]):
    """
    Phase state, dwell counter, per-phase peaks and rep count for one analyzer.

    The peak map always holds every phase of the enum, with None for phases
    that have no captured frame in the rep in progress.
    """

    def __init__(
        self,
        phase_type: type[P],
        initial_phase: P,
        min_frames_in_phase: int = DEFAULT_MIN_FRAMES_IN_PHASE,
    ):
        if min_frames_in_phase < 0:
            raise ValueError(f"min_frames_in_phase must be >= 0, got {min_frames_in_phase}")
        self.phase_type = phase_type
        self.phase: P = initial_phase
        self.min_frames_in_phase = FrameCount(min_frames_in_phase)
        self.frames_in_phase = FrameCount(0)
        self.rep_count = RepCount(0)
        self.last_rep_quality: Optional[RepQuality] = None
        self.peaks: dict[P, Optional[PhasePeak]] = {p: None for p in phase_type}

    def tick(self) -> None:
        self.frames_in_phase = FrameCount(self.frames_in_phase + 1)

    def can_transition(self) -> bool:
        return self.frames_in_phase >= self.min_frames_in_phase

    def transition_to(self, new_phase: P) -> None:
        logger.debug("phase %s -> %s after %s frames", self.phase.value, new_phase.value, self.frames_in_phase)
        self.phase = new_phase
        self.frames_in_phase = FrameCount(0)

    def store_peak(self, phase: P, peak: PhasePeak) -> None:
        self.peaks[phase] = peak

    def get_peak(self, phase: P) -> Optional[PhasePeak]:
        return self.peaks[phase]

    def offer_peak(self, phase: P, peak: PhasePeak) -> bool:
        """Store peak if the phase has none yet or the new score is strictly higher."""
        current = self.peaks[phase]
        if current is None or peak.score > current.score:
            self.peaks[phase] = peak
            return True
        return False

    def completed_positions(self) -> tuple[RepPosition, ...]:
        positions = []
        for phase in self.phase_type:
            peak = self.peaks[phase]
            if peak is None:
                continue
            positions.append(
                RepPosition(
                    name=phase.value,
                    skeleton=peak.skeleton,
                    timestamp=peak.timestamp,
                    video_time=peak.video_time,
                    angles=dict(peak.angles),
                    score=peak.score,
                    frame_image=peak.frame_image,
                )
            )
        return tuple(positions)

    def clear_peaks(self) -> None:
        self.peaks = {p: None for p in self.phase_type}

    def complete_rep(self, quality: RepQuality) -> tuple[tuple[RepPosition, ...], RepQuality]:
        """Count the rep, keep its quality, turn peaks into positions and clear them."""
        self.rep_count = RepCount(self.rep_count + 1)
        self.last_rep_quality = quality
        positions = self.completed_positions()
        self.clear_peaks()
        logger.info(
            "rep %s completed: score=%s positions=%s",
            self.rep_count, quality.score, [p.name for p in positions],
        )
        return positions, quality

    def build_result(
        self,
        angles: dict[str, float],
        completed: Optional[tuple[tuple[RepPosition, ...], RepQuality]] = None,
    ) -> FormAnalyzerResult:
        if completed is None:
            return FormAnalyzerResult(
                phase=self.phase.value,
                rep_completed=False,
                rep_count=self.rep_count,
                angles=angles,
            )
        positions, quality = completed
        return FormAnalyzerResult(
            phase=self.phase.value,
            rep_completed=True,
            rep_count=self.rep_count,
            angles=angles,
            rep_positions=positions,
            rep_quality=quality,
        )

    def reset(self) -> None:
        """Zero counters and clear quality and peaks. The phase is left to the caller."""
        self.rep_count = RepCount(0)
        self.frames_in_phase = FrameCount(0)
        self.last_rep_quality = None
        self.clear_peaks()
