from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
from typing import Any

# Make rep and crop logging visible when running under uvicorn
logging.getLogger("repsense").setLevel(logging.INFO)

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi import WebSocket, WebSocketDisconnect

from repsense.analyzer import DEFAULT_MIN_FRAMES_IN_PHASE
from repsense.crop import calculate_stable_crop_region
from repsense.exercises import ExerciseSelection, ExerciseType, create_form_analyzer, parse_exercise
from repsense.hud import extract_hud_angles
from repsense.posetrack import PoseTrack, PoseTrackFrame
from repsense.session import AnalysisSession
from repsense.speed import SpeedComputationConfig, compute_frame_speeds, get_precomputed_speed
from repsense.units import DEFAULT_USER_HEIGHT_CM, DEFAULT_VIDEO_HEIGHT, HeightCm, VideoHeight

logger = logging.getLogger("repsense.web_app")

app = FastAPI(title="RepSense")

# One worker: frames of a socket are analyzed strictly in arrival order.
_ANALYSIS_EXECUTOR = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="analysis")


def _new_session(
    exercise: ExerciseType,
    video_height: float,
    user_height_cm: float,
    preferred_side: str = "right",
    min_frames_in_phase: int = DEFAULT_MIN_FRAMES_IN_PHASE,
) -> AnalysisSession:
    analyzer = create_form_analyzer(
        exercise,
        video_height=VideoHeight(video_height),
        min_frames_in_phase=min_frames_in_phase,
        user_height_cm=HeightCm(user_height_cm),
        preferred_side=preferred_side,  # type: ignore[arg-type]
    )
    return AnalysisSession(analyzer)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/analyze/track")
def analyze_track(
    payload: dict[str, Any] = Body(...),
    exercise: str = Query("kettlebell-swing"),
    window_size: int = Query(3),
    smoothing_method: str = Query("median"),
    user_height_cm: float = Query(float(DEFAULT_USER_HEIGHT_CM)),
    preferred_side: str = Query("right"),
    min_frames_in_phase: int = Query(DEFAULT_MIN_FRAMES_IN_PHASE),
) -> dict[str, Any]:
    """Analyze a posted pose track. Speeds are filled in when the track has none."""
    try:
        track = PoseTrack.from_dict(payload)
        config = SpeedComputationConfig(
            window_size=window_size,
            user_height_cm=HeightCm(user_height_cm),
            preferred_side=preferred_side,  # type: ignore[arg-type]
            smoothing_method=smoothing_method,  # type: ignore[arg-type]
        )
        session = _new_session(
            parse_exercise(exercise),
            track.video_height,
            user_height_cm,
            preferred_side=preferred_side,
            min_frames_in_phase=min_frames_in_phase,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    frames = track.frames
    if any(f.angles is None or f.angles.wrist_speed is None for f in frames):
        frames = tuple(compute_frame_speeds(frames, config))
    session.replay(frames)

    result = session.summary()
    crop = calculate_stable_crop_region(frames, track.video_width, track.video_height)
    result["cropRegion"] = crop.to_dict() if crop is not None else None
    result["speeds"] = [get_precomputed_speed(f) for f in frames]
    logger.info("track analyzed: %s frames, %s reps", len(frames), result["repCount"])
    return result


def _frame_result(session: AnalysisSession, frame: PoseTrackFrame, video_height: float) -> dict[str, Any]:
    result = session.process_frame(frame)
    hud = extract_hud_angles(frame.skeleton(), VideoHeight(video_height), get_precomputed_speed(frame))
    return {
        "type": "result",
        "frameIndex": frame.frame_index,
        "result": result.to_dict() if result is not None else None,
        "hud": hud.to_dict(),
        "status": session.status,
    }


@app.websocket("/ws/track")
async def track_socket(
    websocket: WebSocket,
    exercise: str = "kettlebell-swing",
    video_height: float = float(DEFAULT_VIDEO_HEIGHT),
    user_height_cm: float = float(DEFAULT_USER_HEIGHT_CM),
) -> None:
    """
    One pose-track frame per message ({"type": "frame", "frame": {...}}), one
    result per message back. {"type": "stop"} returns the session summary.

    {"type": "detection", "exercise": ..., "confidence": ...} comes from an
    exercise detector and {"type": "select", "exercise": ...} from the user.
    Both go through ExerciseSelection, and a changed exercise starts a fresh
    session with the matching analyzer.
    """
    await websocket.accept()
    try:
        current = parse_exercise(exercise)
        session = _new_session(current, video_height, user_height_cm)
    except ValueError as e:
        await websocket.send_text(json.dumps({"type": "error", "detail": str(e)}))
        await websocket.close(code=1008)
        return
    logger.info("ws: session started (%s)", session.analyzer.get_exercise_name())
    selection = ExerciseSelection()
    loop = asyncio.get_event_loop()
    frames = 0
    try:
        while True:
            msg = await websocket.receive_text()
            try:
                payload = json.loads(msg)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"type": "error", "detail": "invalid JSON"}))
                continue
            kind = payload.get("type") if isinstance(payload, dict) else None
            if kind == "stop":
                logger.info("ws: stop received (frames=%s, reps=%s)", frames, session.analyzer.get_rep_count())
                await websocket.send_text(json.dumps({"type": "summary", "summary": session.summary()}))
                await websocket.close()
                return
            if kind in ("detection", "select"):
                try:
                    chosen = parse_exercise(str(payload.get("exercise", "")))
                    phases = payload.get("phases")
                    if phases is not None and not isinstance(phases, list):
                        raise ValueError("phases must be a list")
                    if kind == "select":
                        selection.set_exercise(chosen, phases)
                        applied = True
                    else:
                        leg = payload.get("workingLeg")
                        applied = selection.handle_detection(
                            chosen,
                            float(payload.get("confidence", 0.0)),
                            leg if leg in ("left", "right") else None,
                            phases,
                        )
                except (TypeError, ValueError) as e:
                    await websocket.send_text(json.dumps({"type": "error", "detail": str(e)}))
                    continue
                if applied and selection.exercise not in (current, ExerciseType.UNKNOWN):
                    current = selection.exercise
                    session = _new_session(current, video_height, user_height_cm)
                    logger.info("ws: switched analyzer to %s", session.analyzer.get_exercise_name())
                await websocket.send_text(json.dumps({
                    "type": "exercise",
                    "exercise": current.value,
                    "applied": applied,
                    "locked": selection.locked,
                }))
                continue
            if kind == "reset":
                session.reset()
                await websocket.send_text(json.dumps({"type": "reset"}))
                continue
            if kind != "frame":
                await websocket.send_text(json.dumps({"type": "error", "detail": f"unknown message type {kind!r}"}))
                continue
            try:
                frame = PoseTrackFrame.from_dict(payload.get("frame") or {})
            except ValueError as e:
                await websocket.send_text(json.dumps({"type": "error", "detail": str(e)}))
                continue
            out = await loop.run_in_executor(_ANALYSIS_EXECUTOR, _frame_result, session, frame, video_height)
            frames += 1
            await websocket.send_text(json.dumps(out))
    except WebSocketDisconnect:
        logger.info("ws: client disconnected (frames=%s, reps=%s)", frames, session.analyzer.get_rep_count())
        return


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web_app:app", host="0.0.0.0", port=8000, reload=True)
