"""
Tests for checkpoint building and navigation.
"""

import pytest

from posefactory import make_keypoints
from repsense.analyzer import RepPosition
from repsense.checkpoints import (
    Checkpoint,
    build_checkpoint_list,
    find_next_checkpoint,
    find_previous_checkpoint,
    find_rep_checkpoint,
    format_position_for_display,
    resolve_rep_and_position,
    step_rep_index,
)
from repsense.skeleton import Skeleton

PHASES = ["top", "connect", "bottom", "release"]


def _pos(name, video_time):
    return RepPosition(
        name=name,
        skeleton=Skeleton(make_keypoints()),
        timestamp=(video_time or 0) * 1000,
        video_time=video_time,
        angles={},
        score=50,
    )


@pytest.fixture
def rep_positions():
    return {
        1: [_pos("top", 1.0), _pos("bottom", 2.0)],
        2: [_pos("top", 3.0), _pos("bottom", 4.0)],
    }


class TestBuildCheckpointList:

    def test_sorted_by_time(self, rep_positions):
        cps = build_checkpoint_list(rep_positions, PHASES)
        assert [cp.video_time for cp in cps] == [1.0, 2.0, 3.0, 4.0]
        assert cps[2] == Checkpoint(2, "top", 3.0)

    def test_ties_broken_by_rep_then_phase(self):
        positions = {
            2: [_pos("top", 1.0)],
            1: [_pos("release", 1.0), _pos("connect", 1.0)],
        }
        cps = build_checkpoint_list(positions, PHASES)
        assert [(cp.rep_num, cp.position) for cp in cps] == [(1, "connect"), (1, "release"), (2, "top")]

    def test_positions_without_time_are_skipped(self):
        cps = build_checkpoint_list({1: [_pos("top", None), _pos("bottom", 2.0)]}, PHASES)
        assert cps == [Checkpoint(1, "bottom", 2.0)]

    def test_empty(self):
        assert build_checkpoint_list({}, PHASES) == []


class TestNavigation:

    def test_previous_and_next(self, rep_positions):
        cps = build_checkpoint_list(rep_positions, PHASES)
        assert find_previous_checkpoint(cps, 3.5).video_time == 3.0
        assert find_next_checkpoint(cps, 3.5).video_time == 4.0

    def test_strictness(self, rep_positions):
        cps = build_checkpoint_list(rep_positions, PHASES)
        assert find_previous_checkpoint(cps, 3.0).video_time == 2.0
        assert find_next_checkpoint(cps, 3.0).video_time == 4.0

    def test_boundaries(self, rep_positions):
        cps = build_checkpoint_list(rep_positions, PHASES)
        assert find_previous_checkpoint(cps, 0.5) is None
        assert find_previous_checkpoint(cps, 1.0) is None
        assert find_next_checkpoint(cps, 4.0) is None
        assert find_next_checkpoint([], 1.0) is None

    def test_resolve_rep_and_position(self, rep_positions):
        cps = build_checkpoint_list(rep_positions, PHASES)
        assert resolve_rep_and_position(cps, 0.2) == (1, None)
        assert resolve_rep_and_position(cps, 2.5) == (1, "bottom")
        # within frame jitter of the 3.0 checkpoint
        assert resolve_rep_and_position(cps, 2.96) == (2, "top")
        assert resolve_rep_and_position(cps, 10.0) == (2, "bottom")
        assert resolve_rep_and_position([], 1.0) == (1, None)

    def test_find_rep_checkpoint_keeps_phase(self, rep_positions):
        assert find_rep_checkpoint(rep_positions, 2, "Bottom") == Checkpoint(2, "bottom", 4.0)
        assert find_rep_checkpoint(rep_positions, 2, "connect") == Checkpoint(2, "top", 3.0)
        assert find_rep_checkpoint(rep_positions, 2) == Checkpoint(2, "top", 3.0)
        assert find_rep_checkpoint(rep_positions, 9, "top") is None

    def test_step_rep_index(self):
        assert step_rep_index(0, -1, 3) == 0
        assert step_rep_index(0, 1, 3) == 1
        assert step_rep_index(2, 1, 3) == 2
        assert step_rep_index(0, 1, 0) == 0

    def test_format_position(self):
        assert format_position_for_display("top") == "Top"
        assert format_position_for_display("BOTTOM") == "Bottom"
        assert format_position_for_display(None) == ""
