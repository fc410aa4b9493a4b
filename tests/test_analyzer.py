"""
Tests for the shared rep tracker and the two exercise analyzers.
"""

import pytest

from posefactory import (
    ear_y_for_depth,
    make_keypoints,
    pistol_depth_sequence,
    swing_spine_sequence,
)
from repsense.analyzer import (
    FormAnalyzer,
    PhasePeak,
    RepQuality,
    RepTracker,
    score_closeness,
)
from repsense.pistol import PistolPhase, PistolSquatAnalyzer
from repsense.skeleton import Skeleton
from repsense.swing import KettlebellSwingAnalyzer, SwingPhase

VIDEO_HEIGHT = 1000.0


def _peak(phase, score, t=0.0):
    return PhasePeak(
        phase=phase.value,
        skeleton=Skeleton(make_keypoints()),
        timestamp=t * 1000,
        video_time=t,
        score=score,
        angles={"spine": 1.0},
    )


def _run_swing(analyzer, spines, arm_deg=90.0, fps=30.0, start=0):
    results = []
    for i, spine in enumerate(spines, start=start):
        sk = Skeleton(make_keypoints(spine_deg=spine, arm_deg=arm_deg if spine < 25 else 0.0))
        results.append(analyzer.process_frame(sk, i / fps * 1000, i / fps))
    return results


def _bent_left_knee(depth):
    # knee pushed forward at depth: about 80 degrees
    return (780.0, 1250.0) if depth >= 60 else None


def _run_pistol(analyzer, depths, fps=30.0):
    results = []
    for i, depth in enumerate(depths):
        kps = make_keypoints(ear_y=ear_y_for_depth(depth, VIDEO_HEIGHT), left_knee=_bent_left_knee(depth))
        results.append(analyzer.process_frame(Skeleton(kps), i / fps * 1000, i / fps))
    return results


# ============================================================================
# RepTracker
# ============================================================================

class TestRepTracker:

    def test_peak_map_holds_every_phase(self):
        tracker = RepTracker(SwingPhase, SwingPhase.TOP)
        assert set(tracker.peaks) == set(SwingPhase)
        assert all(v is None for v in tracker.peaks.values())

    def test_debounce(self):
        tracker = RepTracker(SwingPhase, SwingPhase.TOP, min_frames_in_phase=2)
        tracker.tick()
        assert not tracker.can_transition()
        tracker.tick()
        assert tracker.can_transition()
        tracker.transition_to(SwingPhase.CONNECT)
        assert tracker.frames_in_phase == 0
        assert not tracker.can_transition()

    def test_offer_peak_keeps_strictly_better(self):
        tracker = RepTracker(SwingPhase, SwingPhase.TOP)
        assert tracker.offer_peak(SwingPhase.TOP, _peak(SwingPhase.TOP, 50, t=1.0))
        assert not tracker.offer_peak(SwingPhase.TOP, _peak(SwingPhase.TOP, 50, t=2.0))
        assert tracker.offer_peak(SwingPhase.TOP, _peak(SwingPhase.TOP, 60, t=3.0))
        assert tracker.get_peak(SwingPhase.TOP).video_time == 3.0

    def test_complete_rep_orders_positions_and_clears(self):
        tracker = RepTracker(SwingPhase, SwingPhase.TOP)
        tracker.store_peak(SwingPhase.BOTTOM, _peak(SwingPhase.BOTTOM, 80))
        tracker.store_peak(SwingPhase.TOP, _peak(SwingPhase.TOP, 70))
        positions, quality = tracker.complete_rep(RepQuality(score=90, feedback=("ok",)))
        assert [p.name for p in positions] == ["top", "bottom"]
        assert tracker.rep_count == 1
        assert tracker.last_rep_quality is quality
        assert all(v is None for v in tracker.peaks.values())

    def test_reset_leaves_phase(self):
        tracker = RepTracker(SwingPhase, SwingPhase.TOP)
        tracker.transition_to(SwingPhase.BOTTOM)
        tracker.store_peak(SwingPhase.BOTTOM, _peak(SwingPhase.BOTTOM, 80))
        tracker.complete_rep(RepQuality(score=90))
        tracker.tick()
        tracker.reset()
        assert tracker.rep_count == 0
        assert tracker.frames_in_phase == 0
        assert tracker.last_rep_quality is None
        assert all(v is None for v in tracker.peaks.values())
        assert tracker.phase is SwingPhase.BOTTOM

    def test_negative_dwell_rejected(self):
        with pytest.raises(ValueError):
            RepTracker(SwingPhase, SwingPhase.TOP, min_frames_in_phase=-1)

    def test_score_closeness(self):
        assert score_closeness(45, 45, 30) == 100
        assert score_closeness(60, 45, 30) == pytest.approx(50)
        assert score_closeness(100, 45, 30) == 0


# ============================================================================
# Kettlebell swing
# ============================================================================

class TestKettlebellSwing:

    def test_implements_protocol(self):
        assert isinstance(KettlebellSwingAnalyzer(), FormAnalyzer)

    def test_one_rep_four_positions(self):
        analyzer = KettlebellSwingAnalyzer()
        results = _run_swing(analyzer, swing_spine_sequence(3))
        completed = [r for r in results if r.rep_completed]
        assert len(completed) == 1
        rep = completed[0]
        assert rep.rep_count == 1
        assert [p.name for p in rep.rep_positions] == ["top", "connect", "bottom", "release"]
        assert rep.rep_quality is not None
        assert results[-1].phase == "top"

    def test_rep_count_monotonic(self):
        analyzer = KettlebellSwingAnalyzer()
        spines = swing_spine_sequence(3) * 3
        counts = [r.rep_count for r in _run_swing(analyzer, spines)]
        assert counts == sorted(counts)
        assert counts[-1] == 3

    def test_single_frame_spike_is_ignored(self):
        analyzer = KettlebellSwingAnalyzer()
        _run_swing(analyzer, [10, 10, 10])
        results = _run_swing(analyzer, [50], start=3)
        assert results[0].phase == "connect"
        # one frame in connect is not enough to leave it
        results = _run_swing(analyzer, [70], start=4)
        assert results[0].phase == "connect"

    def test_bottom_peak_is_deepest_hinge(self):
        analyzer = KettlebellSwingAnalyzer()
        spines = [10, 10, 10, 50, 50, 50, 65, 80, 70, 65, 50, 50, 30, 30, 10]
        results = _run_swing(analyzer, spines)
        rep = [r for r in results if r.rep_completed][0]
        bottom = [p for p in rep.rep_positions if p.name == "bottom"][0]
        assert bottom.angles["spine"] == pytest.approx(80, abs=0.01)

    def test_quality_feedback(self):
        analyzer = KettlebellSwingAnalyzer()
        # shallow hinge, never fully upright
        spines = [22] * 3 + [45] * 3 + [61] * 3 + [45] * 3 + [22] * 3
        results = _run_swing(analyzer, spines, arm_deg=90)
        quality = [r for r in results if r.rep_completed][0].rep_quality
        assert quality.score < 100
        assert any("Stand tall" in f for f in quality.feedback)
        assert quality.metrics["minSpineAngle"] == pytest.approx(22, abs=0.01)

    def test_missing_spine_does_not_raise(self):
        analyzer = KettlebellSwingAnalyzer()
        result = analyzer.process_frame(Skeleton(make_keypoints(score=0.1)), 0.0, 0.0)
        assert result.phase == "top"
        assert "spine" not in result.angles

    def test_live_speed_reported(self):
        analyzer = KettlebellSwingAnalyzer()
        results = _run_swing(analyzer, [10, 20, 30])
        assert "speed" not in results[0].angles
        assert results[2].angles["speed"] > 0

    def test_seek_makes_speed_unknown(self):
        analyzer = KettlebellSwingAnalyzer()
        for i in range(4):
            sk = Skeleton(make_keypoints(wrist_shift=(i * 10.0, 0.0)))
            before = analyzer.process_frame(sk, i / 30 * 1000, i / 30)
        assert before.angles["speed"] > 0

        # jump 5 s ahead
        after = analyzer.process_frame(Skeleton(make_keypoints(wrist_shift=(500.0, 0.0))), 5000.0, 5.0)
        assert "speed" not in after.angles

        # history restarts from post-seek samples only
        t = 5.0 + 1 / 30
        resumed = analyzer.process_frame(Skeleton(make_keypoints(wrist_shift=(510.0, 0.0))), t * 1000, t)
        assert resumed.angles["speed"] == pytest.approx(before.angles["speed"])

    def test_reset_returns_to_top(self):
        analyzer = KettlebellSwingAnalyzer()
        _run_swing(analyzer, swing_spine_sequence(3) + [50, 50, 50])
        assert analyzer.get_rep_count() == 1
        assert analyzer.get_phase() == "connect"
        analyzer.reset()
        assert analyzer.get_rep_count() == 0
        assert analyzer.get_last_rep_quality() is None
        assert analyzer.get_phase() == "top"
        assert all(v is None for v in analyzer.tracker.peaks.values())

    def test_metadata(self):
        analyzer = KettlebellSwingAnalyzer()
        assert analyzer.get_phases() == ["top", "connect", "bottom", "release"]
        assert [m.key for m in analyzer.get_hud_config().metrics] == ["spine", "arm", "speed"]
        assert analyzer.get_working_leg() is None


# ============================================================================
# Pistol squat
# ============================================================================

class TestPistolSquat:

    def test_implements_protocol(self):
        assert isinstance(PistolSquatAnalyzer(VIDEO_HEIGHT), FormAnalyzer)

    def test_one_rep(self):
        analyzer = PistolSquatAnalyzer(VIDEO_HEIGHT)
        results = _run_pistol(analyzer, pistol_depth_sequence(3))
        completed = [r for r in results if r.rep_completed]
        assert len(completed) == 1
        rep = completed[0]
        assert [p.name for p in rep.rep_positions] == ["standing", "descending", "bottom", "ascending"]
        bottom = [p for p in rep.rep_positions if p.name == "bottom"][0]
        assert bottom.angles["depth"] == 80
        assert rep.rep_quality.score == 100
        assert results[-1].phase == "standing"

    def test_working_leg_is_more_bent_knee(self):
        analyzer = PistolSquatAnalyzer(VIDEO_HEIGHT)
        _run_pistol(analyzer, pistol_depth_sequence(3))
        assert analyzer.get_working_leg() == "left"

    def test_shallow_rep_is_penalized(self):
        analyzer = PistolSquatAnalyzer(VIDEO_HEIGHT)
        depths = [0] * 3 + [30] * 3 + [55] * 3 + [40] * 3 + [5] * 3
        results = _run_pistol(analyzer, depths)
        quality = [r for r in results if r.rep_completed][0].rep_quality
        assert quality.score <= 75
        assert quality.metrics["maxDepth"] == 55

    def test_unknown_knees_default_to_straight(self):
        analyzer = PistolSquatAnalyzer(VIDEO_HEIGHT)
        result = analyzer.process_frame(Skeleton(make_keypoints(score=0.1)), 0.0, 0.0)
        assert result.angles["knee"] == 180
        assert "depth" not in result.angles
        assert result.phase == "standing"

    def test_reset_returns_to_standing(self):
        analyzer = PistolSquatAnalyzer(VIDEO_HEIGHT)
        _run_pistol(analyzer, pistol_depth_sequence(3) + [30, 30, 30])
        assert analyzer.get_phase() == PistolPhase.DESCENDING.value
        analyzer.reset()
        assert analyzer.get_phase() == "standing"
        assert analyzer.get_rep_count() == 0
        assert analyzer.get_working_leg() is None
        assert analyzer.get_last_rep_quality() is None
