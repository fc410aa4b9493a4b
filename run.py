#!/usr/bin/env python3
"""
Rep and form analysis from a video or a cached pose track.
Usage:
  From video: python run.py --video path/to/video.mp4 [--exercise pistol-squat] [--thumbnails] [--annotate]
  From track: python run.py --track outputs/pose_track.json
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import cv2
from dotenv import load_dotenv

from repsense.config import Settings, load_settings
from repsense.crop import calculate_stable_crop_region
from repsense.exercises import ExerciseType, create_form_analyzer, parse_exercise
from repsense.io_stream import extract_pose_track
from repsense.overlay import crop_thumbnail, draw_hud, draw_skeleton
from repsense.posetrack import PoseTrack, load_pose_track, save_pose_track
from repsense.session import AnalysisSession
from repsense.speed import compute_frame_speeds
from repsense.units import HeightCm, VideoHeight

logger = logging.getLogger("repsense.run")


def _build_session(track_height: float, exercise: ExerciseType, settings: Settings) -> AnalysisSession:
    analyzer = create_form_analyzer(
        exercise,
        video_height=VideoHeight(track_height),
        min_frames_in_phase=settings.analyzer.min_frames_in_phase,
        user_height_cm=settings.speed.user_height_cm,
        preferred_side=settings.speed.preferred_side,
    )
    return AnalysisSession(analyzer)


def _write_thumbnails(session: AnalysisSession, output_dir: str) -> int:
    thumbs_dir = os.path.join(output_dir, "thumbnails")
    os.makedirs(thumbs_dir, exist_ok=True)
    written = 0
    for rep_num, positions in session.rep_positions.items():
        for pos in positions:
            if pos.frame_image is None:
                continue
            cv2.imwrite(os.path.join(thumbs_dir, f"rep{rep_num:02d}_{pos.name}.png"), pos.frame_image)
            written += 1
    return written


def analyze_video(
    video_path: str,
    exercise: ExerciseType,
    settings: Settings,
    output_dir: str,
    thumbnails: bool = False,
    annotate: bool = False,
) -> tuple[PoseTrack, AnalysisSession]:
    """
    Extract poses and analyze while extracting, then add smoothed speeds to the
    saved track. With annotate, annotated.mp4 gets the skeleton and HUD drawn on.
    """
    # video height is only known once the first frame is decoded
    sessions: list[AnalysisSession] = []
    writer: Optional[cv2.VideoWriter] = None

    def on_frame(vf, frame) -> None:
        nonlocal writer
        if not sessions:
            sessions.append(_build_session(vf.image.shape[0], exercise, settings))
        session = sessions[0]
        image = crop_thumbnail(vf.image, frame.keypoints, crop_config=settings.crop) if thumbnails else None
        result = session.process_frame(frame, frame_image=image)
        if not annotate:
            return
        if writer is None:
            fourcc = cv2.VideoWriter_fourcc(*"mp4v")
            h, w = vf.image.shape[:2]
            writer = cv2.VideoWriter(os.path.join(output_dir, "annotated.mp4"), fourcc, max(1, int(vf.fps)), (w, h))
        out = vf.image.copy()
        draw_skeleton(out, frame.keypoints)
        analyzer = session.analyzer
        draw_hud(
            out,
            analyzer.get_hud_config(),
            result.angles if result is not None else {},
            analyzer.get_phase(),
            analyzer.get_rep_count(),
            session.status,
        )
        writer.write(out)

    try:
        track = extract_pose_track(video_path, on_frame=on_frame)
    finally:
        if writer is not None:
            writer.release()
    session = sessions[0] if sessions else _build_session(track.video_height, exercise, settings)
    track = replace(track, frames=tuple(compute_frame_speeds(track.frames, settings.speed)))
    save_pose_track(track, os.path.join(output_dir, "pose_track.json"))
    return track, session


def analyze_track(track_path: str, exercise: ExerciseType, settings: Settings) -> tuple[PoseTrack, AnalysisSession]:
    """Replay a cached track. Speeds are computed only if the track has none yet."""
    track = load_pose_track(track_path)
    if any(f.angles is None or f.angles.wrist_speed is None for f in track.frames):
        track = replace(track, frames=tuple(compute_frame_speeds(track.frames, settings.speed)))
    session = _build_session(track.video_height, exercise, settings)
    session.replay(track.frames)
    return track, session


def write_report(track: PoseTrack, session: AnalysisSession, settings: Settings, output_dir: str) -> str:
    report = session.summary()
    crop = calculate_stable_crop_region(
        track.frames,
        track.video_width,
        track.video_height,
        width_padding=settings.crop.width_padding,
        height_padding=settings.crop.height_padding,
        min_confidence=settings.crop.min_confidence,
    )
    report["cropRegion"] = crop.to_dict() if crop is not None else None
    report["video"] = {"width": track.video_width, "height": track.video_height, "fps": track.fps}
    report["speed"] = {
        "windowSize": settings.speed.window_size,
        "smoothingMethod": settings.speed.smoothing_method,
        "userHeightCm": settings.speed.user_height_cm,
    }
    path = os.path.join(output_dir, "analysis.json")
    with open(path, "w") as f:
        json.dump(report, f, indent=2)
    return path


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    speed = settings.speed
    if args.window is not None:
        speed = replace(speed, window_size=args.window)
    if args.smoothing is not None:
        speed = replace(speed, smoothing_method=args.smoothing)
    if args.height_cm is not None:
        speed = replace(speed, user_height_cm=HeightCm(args.height_cm))
    return replace(settings, speed=speed)


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    load_dotenv(Path(__file__).resolve().parent / ".env")

    ap = argparse.ArgumentParser(description="Rep and form analysis from a video or a cached pose track")
    ap.add_argument("--video", type=str, default=None, help="Path to video file")
    ap.add_argument("--track", type=str, default=None, help="Path to a saved pose_track.json")
    ap.add_argument(
        "--exercise",
        type=str,
        default=ExerciseType.KETTLEBELL_SWING.value,
        help="kettlebell-swing, pistol-squat or unknown (default kettlebell-swing)",
    )
    ap.add_argument("--height-cm", type=float, default=None, help="User height for speed calibration")
    ap.add_argument("--window", type=int, default=None, help="Speed smoothing window (odd)")
    ap.add_argument("--smoothing", type=str, default=None, choices=["median", "mean"], help="Speed smoothing method")
    ap.add_argument("--output-dir", type=str, default="outputs", help="Output directory")
    ap.add_argument("--thumbnails", action="store_true", help="Save a thumbnail per captured position (video only)")
    ap.add_argument("--annotate", action="store_true", help="Save annotated.mp4 with skeleton and HUD (video only)")
    args = ap.parse_args(argv)

    if bool(args.video) == bool(args.track):
        print("Error: provide exactly one of --video or --track", file=sys.stderr)
        sys.exit(1)

    try:
        settings = _apply_overrides(load_settings(), args)
        exercise = parse_exercise(args.exercise)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    os.makedirs(args.output_dir, exist_ok=True)

    try:
        if args.video:
            if not os.path.isfile(args.video):
                print(f"Error: video file not found: {args.video}", file=sys.stderr)
                sys.exit(1)
            track, session = analyze_video(
                args.video, exercise, settings, args.output_dir, args.thumbnails, args.annotate
            )
        else:
            track, session = analyze_track(args.track, exercise, settings)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    report_path = write_report(track, session, settings, args.output_dir)
    if args.thumbnails:
        count = _write_thumbnails(session, args.output_dir)
        logger.info("wrote %s thumbnails", count)

    print(f"{session.analyzer.get_exercise_name()}: {session.analyzer.get_rep_count()} reps")
    for rep_num in sorted(session.rep_qualities):
        quality = session.rep_qualities[rep_num]
        print(f"  rep {rep_num}: score={quality.score:.0f} {'; '.join(quality.feedback)}")
    if session.status:
        print(f"Warning: {session.status}", file=sys.stderr)
    print(f"Report: {report_path}")


if __name__ == "__main__":
    main()
