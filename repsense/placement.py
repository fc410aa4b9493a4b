"""
Placement of a video inside a display box.

Contain letterboxes the whole frame. Cover fills the box and pans so a crop
region's center stays in view. All sizes are pixels; results are plain
numbers for whatever draws the overlay.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

from .posetrack import CropRegion

# Width/height ratio above which a video counts as landscape.
LANDSCAPE_THRESHOLD = 1.2


class VideoDimensions(NamedTuple):
    video_width: float
    video_height: float


class RenderedBox(NamedTuple):
    width: float
    height: float


class Offset(NamedTuple):
    x: float = 0.0
    y: float = 0.0


class CanvasPlacement(NamedTuple):
    width: float
    height: float
    left: float
    top: float
    object_position: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"width": self.width, "height": self.height, "left": self.left, "top": self.top}
        if self.object_position is not None:
            out["objectPosition"] = self.object_position
        return out


def _format_percent(value: float) -> str:
    """Full-precision percent; whole numbers drop the trailing ".0"."""
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}%"


def _degenerate(video: VideoDimensions, container: RenderedBox) -> bool:
    return video.video_width <= 0 or video.video_height <= 0 or container.width <= 0 or container.height <= 0


def _container_box(container: RenderedBox, offset: Offset) -> CanvasPlacement:
    return CanvasPlacement(
        width=max(0.0, container.width),
        height=max(0.0, container.height),
        left=offset.x,
        top=offset.y,
    )


def calculate_contain_placement(
    video: VideoDimensions,
    container: RenderedBox,
    offset: Offset = Offset(),
) -> CanvasPlacement:
    """Fit inside, keep aspect, center the letterbox."""
    if _degenerate(video, container):
        return _container_box(container, offset)

    video_aspect = video.video_width / video.video_height
    container_aspect = container.width / container.height
    if video_aspect > container_aspect:
        # wider than the box: bars top and bottom
        width = container.width
        height = container.width / video_aspect
        off_x, off_y = 0.0, (container.height - height) / 2
    else:
        height = container.height
        width = container.height * video_aspect
        off_x, off_y = (container.width - width) / 2, 0.0

    return CanvasPlacement(width=width, height=height, left=offset.x + off_x, top=offset.y + off_y)


def calculate_cover_placement(
    video: VideoDimensions,
    container: RenderedBox,
    offset: Offset,
    crop: CropRegion,
) -> CanvasPlacement:
    """Fill the box and pan so the crop center sits where the object position puts it."""
    if _degenerate(video, container):
        return _container_box(container, offset)

    scale = max(container.width / video.video_width, container.height / video.video_height)
    scaled_w = video.video_width * scale
    scaled_h = video.video_height * scale

    center_x = (crop.x + crop.width / 2) / video.video_width
    center_y = (crop.y + crop.height / 2) / video.video_height

    overflow_x = scaled_w - container.width
    overflow_y = scaled_h - container.height
    return CanvasPlacement(
        width=scaled_w,
        height=scaled_h,
        left=offset.x - overflow_x * center_x,
        top=offset.y - overflow_y * center_y,
        object_position=f"{_format_percent(center_x * 100)} {_format_percent(center_y * 100)}",
    )


def calculate_canvas_placement(
    video: VideoDimensions,
    container: RenderedBox,
    offset: Offset = Offset(),
    is_zoomed: bool = False,
    crop: Optional[CropRegion] = None,
) -> CanvasPlacement:
    if is_zoomed and crop is not None:
        return calculate_cover_placement(video, container, offset, crop)
    return calculate_contain_placement(video, container, offset)


def calculate_scale_factors(video: VideoDimensions, placement: CanvasPlacement) -> tuple[float, float]:
    """(scale_x, scale_y) mapping native pixels onto the placed box."""
    if video.video_width <= 0 or video.video_height <= 0:
        return 1.0, 1.0
    return placement.width / video.video_width, placement.height / video.video_height


def is_landscape_video(width: float, height: float, threshold: float = LANDSCAPE_THRESHOLD) -> bool:
    if height <= 0:
        return False
    return width / height > threshold
