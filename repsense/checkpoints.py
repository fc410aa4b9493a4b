"""
Chronological navigation over captured rep positions.

A checkpoint is (rep, position, video time). The list is always rebuilt from
the rep positions; nothing here is stored on its own.
"""
from __future__ import annotations

from typing import Mapping, NamedTuple, Optional, Sequence

from .analyzer import RepPosition

# Absorbs frame-quantization jitter when syncing playback to checkpoints.
SYNC_TOLERANCE_SEC = 0.05


class Checkpoint(NamedTuple):
    rep_num: int
    position: str
    video_time: float

    def to_dict(self) -> dict:
        return {"repNum": self.rep_num, "position": self.position, "videoTime": self.video_time}


def _phase_index(phase_order: Sequence[str], name: str) -> int:
    try:
        return list(phase_order).index(name)
    except ValueError:
        return len(phase_order)


def build_checkpoint_list(
    rep_positions: Mapping[int, Sequence[RepPosition]],
    phase_order: Sequence[str],
) -> list[Checkpoint]:
    """Sorted by video time, then rep number, then phase order. Positions without a time are skipped."""
    entries = []
    for rep_num, positions in rep_positions.items():
        for pos in positions:
            if pos.video_time is None:
                continue
            entries.append(Checkpoint(rep_num, pos.name, float(pos.video_time)))
    entries.sort(key=lambda cp: (cp.video_time, cp.rep_num, _phase_index(phase_order, cp.position)))
    return entries


def find_previous_checkpoint(checkpoints: Sequence[Checkpoint], current_time: float) -> Optional[Checkpoint]:
    """Last checkpoint strictly before current_time."""
    found = None
    for cp in checkpoints:
        if cp.video_time < current_time:
            found = cp
        else:
            break
    return found


def find_next_checkpoint(checkpoints: Sequence[Checkpoint], current_time: float) -> Optional[Checkpoint]:
    """First checkpoint strictly after current_time."""
    for cp in checkpoints:
        if cp.video_time > current_time:
            return cp
    return None


def resolve_rep_and_position(
    checkpoints: Sequence[Checkpoint],
    video_time: float,
    tolerance: float = SYNC_TOLERANCE_SEC,
) -> tuple[int, Optional[str]]:
    """(rep, position) of the last checkpoint at or before video_time; (1, None) before the first."""
    rep_num, position = 1, None
    for cp in checkpoints:
        if video_time >= cp.video_time - tolerance:
            rep_num, position = cp.rep_num, cp.position
        else:
            break
    return rep_num, position


def find_rep_checkpoint(
    rep_positions: Mapping[int, Sequence[RepPosition]],
    rep_num: int,
    current_position: Optional[str] = None,
) -> Optional[Checkpoint]:
    """
    Checkpoint to jump to in rep_num: same phase as current_position when that
    rep captured it, else the rep's first position.
    """
    positions = [p for p in rep_positions.get(rep_num, ()) if p.video_time is not None]
    if not positions:
        return None
    target = positions[0]
    if current_position:
        key = current_position.lower()
        for pos in positions:
            if pos.name.lower() == key:
                target = pos
                break
    return Checkpoint(rep_num, target.name, float(target.video_time))


def step_rep_index(current_index: int, delta: int, rep_count: int) -> int:
    """Zero-based rep index moved by delta and clamped to the reps available."""
    if rep_count <= 0:
        return 0
    return max(0, min(rep_count - 1, current_index + delta))


def format_position_for_display(position: Optional[str]) -> str:
    """'top' -> 'Top', 'BOTTOM' -> 'Bottom'."""
    if not position:
        return ""
    return position[0].upper() + position[1:].lower()
