"""
Tests for the command-line entry point on cached pose tracks.
"""

import json

import pytest

import run
from posefactory import make_frame, make_keypoints, swing_spine_sequence
from repsense.config import Settings
from repsense.exercises import ExerciseType
from repsense.posetrack import PoseTrack, load_pose_track, save_pose_track
from repsense.speed import compute_frame_speeds


def _save_track(tmp_path, with_speeds=False):
    spines = swing_spine_sequence(3)
    frames = [make_frame(i, make_keypoints(spine_deg=s, arm_deg=90 if s < 25 else 0)) for i, s in enumerate(spines)]
    if with_speeds:
        frames = compute_frame_speeds(frames)
    path = str(tmp_path / "pose_track.json")
    save_pose_track(PoseTrack(frames=tuple(frames), video_width=1080, video_height=1920), path)
    return path


class TestAnalyzeTrack:

    def test_speeds_filled_when_missing(self, tmp_path):
        track, session = run.analyze_track(_save_track(tmp_path), ExerciseType.KETTLEBELL_SWING, Settings())
        assert all(f.angles is not None and f.angles.wrist_speed is not None for f in track.frames)
        assert session.analyzer.get_rep_count() == 1

    def test_existing_speeds_kept(self, tmp_path):
        path = _save_track(tmp_path, with_speeds=True)
        before = [f.angles.wrist_speed for f in load_pose_track(path).frames]
        track, _ = run.analyze_track(path, ExerciseType.KETTLEBELL_SWING, Settings())
        assert [f.angles.wrist_speed for f in track.frames] == before

    def test_report(self, tmp_path):
        track, session = run.analyze_track(_save_track(tmp_path), ExerciseType.KETTLEBELL_SWING, Settings())
        path = run.write_report(track, session, Settings(), str(tmp_path))
        with open(path) as f:
            report = json.load(f)
        assert report["repCount"] == 1
        assert report["video"]["height"] == 1920
        assert report["speed"]["smoothingMethod"] == "median"
        assert set(report["cropRegion"]) == {"x", "y", "width", "height"}


class TestMain:

    def test_track_mode(self, tmp_path, capsys):
        track_path = _save_track(tmp_path)
        out_dir = tmp_path / "out"
        run.main(["--track", track_path, "--output-dir", str(out_dir), "--window", "5"])
        assert "1 reps" in capsys.readouterr().out
        report = json.loads((out_dir / "analysis.json").read_text())
        assert report["speed"]["windowSize"] == 5

    @pytest.mark.parametrize("argv", [
        [],
        ["--video", "a.mp4", "--track", "b.json"],
        ["--track", "missing.json"],
        ["--track", "x.json", "--exercise", "yoga"],
    ])
    def test_errors_exit_1(self, tmp_path, argv, capsys):
        argv = [a if not a.endswith(".json") else str(tmp_path / a) for a in argv]
        with pytest.raises(SystemExit) as exc:
            run.main(argv + ["--output-dir", str(tmp_path)])
        assert exc.value.code == 1
        assert "Error" in capsys.readouterr().err
