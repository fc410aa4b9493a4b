"""
Person-centered crops from keypoint bounding boxes, for thumbnails and the
stabilized zoom region. Keypoints are pixel coordinates.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional, Sequence

from .pose import Keypoint
from .posetrack import CropRegion, PoseTrackFrame
from .skeleton import MIN_KEYPOINT_CONFIDENCE
from .units import PixelX, PixelY, VideoHeight, VideoWidth, round_half_up

logger = logging.getLogger(__name__)

# Crop height never exceeds this fraction of the source, so there is always some zoom.
MAX_CROP_HEIGHT_FRACTION = 0.85
DEFAULT_MIN_CROP_HEIGHT_FRACTION = 0.4
DEFAULT_WIDTH_PADDING = 1.4
DEFAULT_HEIGHT_PADDING = 1.3
# Portrait 3:4, same as thumbnails
STABLE_CROP_ASPECT = 3 / 4


class BoundingBox(NamedTuple):
    min_x: PixelX
    min_y: PixelY
    max_x: PixelX
    max_y: PixelY

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass(frozen=True)
class CropOptions:
    thumb_width: float
    thumb_height: float
    video_width: VideoWidth
    video_height: VideoHeight
    min_confidence: float = MIN_KEYPOINT_CONFIDENCE
    min_crop_height_fraction: float = DEFAULT_MIN_CROP_HEIGHT_FRACTION
    width_padding: float = DEFAULT_WIDTH_PADDING
    height_padding: float = DEFAULT_HEIGHT_PADDING


class ThumbnailCrop(NamedTuple):
    crop_x: float
    crop_y: float
    crop_width: float
    crop_height: float


def calculate_bounding_box(
    keypoints: Iterable[Optional[Keypoint]],
    min_confidence: float = MIN_KEYPOINT_CONFIDENCE,
) -> Optional[BoundingBox]:
    """Box around keypoints with score >= min_confidence, or None."""
    confident = [kp for kp in keypoints if kp is not None and kp.score >= min_confidence]
    if not confident:
        return None
    xs = [kp.x for kp in confident]
    ys = [kp.y for kp in confident]
    return BoundingBox(PixelX(min(xs)), PixelY(min(ys)), PixelX(max(xs)), PixelY(max(ys)))


def merge_bounding_boxes(boxes: Sequence[BoundingBox]) -> Optional[BoundingBox]:
    if not boxes:
        return None
    return BoundingBox(
        PixelX(min(b.min_x for b in boxes)),
        PixelY(min(b.min_y for b in boxes)),
        PixelX(max(b.max_x for b in boxes)),
        PixelY(max(b.max_y for b in boxes)),
    )


def _fit_to_aspect(width: float, height: float, aspect: float) -> tuple[float, float]:
    """Grow the short side so width/height == aspect."""
    if width > height * aspect:
        return width, width / aspect
    return height * aspect, height


def _fit_inside(width: float, height: float, aspect: float, max_w: float, max_h: float) -> tuple[float, float]:
    if width > max_w:
        width = max_w
        height = width / aspect
    if height > max_h:
        height = max_h
        width = height * aspect
    return width, height


def _clamp_origin(center: float, size: float, limit: float) -> float:
    """Top-left of a span centered on center, translated to stay within [0, limit]."""
    return max(0.0, min(center - size / 2, limit - size))


def calculate_person_centered_crop(
    keypoints: Sequence[Optional[Keypoint]],
    options: CropOptions,
) -> ThumbnailCrop:
    """
    Crop rectangle in source pixels centered on the person.

    With no confident keypoint the crop is centered on the frame at 85% of
    the source height. Clamping only moves the rectangle, never shrinks it.
    """
    video_w = float(options.video_width)
    video_h = float(options.video_height)
    aspect = options.thumb_width / options.thumb_height
    max_height = video_h * MAX_CROP_HEIGHT_FRACTION

    box = calculate_bounding_box(keypoints, options.min_confidence)
    if box is None:
        center_x, center_y = video_w / 2, video_h / 2
        crop_h = max_height
        crop_w = crop_h * aspect
    else:
        center_x, center_y = box.center
        crop_w, crop_h = _fit_to_aspect(
            box.width * options.width_padding,
            box.height * options.height_padding,
            aspect,
        )
        min_height = video_h * options.min_crop_height_fraction
        if crop_h < min_height:
            crop_h = min_height
            crop_w = crop_h * aspect
        if crop_h > max_height:
            crop_h = max_height
            crop_w = crop_h * aspect

    crop_w, crop_h = _fit_inside(crop_w, crop_h, aspect, video_w, video_h)
    return ThumbnailCrop(
        crop_x=_clamp_origin(center_x, crop_w, video_w),
        crop_y=_clamp_origin(center_y, crop_h, video_h),
        crop_width=crop_w,
        crop_height=crop_h,
    )


def calculate_stable_crop_region(
    frames: Iterable[PoseTrackFrame],
    video_width: VideoWidth,
    video_height: VideoHeight,
    width_padding: float = DEFAULT_WIDTH_PADDING,
    height_padding: float = DEFAULT_HEIGHT_PADDING,
    min_confidence: float = MIN_KEYPOINT_CONFIDENCE,
) -> Optional[CropRegion]:
    """
    One portrait crop covering every detected person position in frames.
    Returns None when no frame has a confident keypoint.
    """
    boxes = []
    for frame in frames:
        if not frame.keypoints:
            continue
        box = calculate_bounding_box(frame.keypoints, min_confidence)
        if box is not None:
            boxes.append(box)

    union = merge_bounding_boxes(boxes)
    if union is None:
        logger.info("stable crop: no person detected in frames")
        return None

    crop_w, crop_h = _fit_to_aspect(
        union.width * width_padding,
        union.height * height_padding,
        STABLE_CROP_ASPECT,
    )
    max_height = video_height * MAX_CROP_HEIGHT_FRACTION
    if crop_h > max_height:
        crop_h = max_height
        crop_w = crop_h * STABLE_CROP_ASPECT
    crop_w, crop_h = _fit_inside(crop_w, crop_h, STABLE_CROP_ASPECT, video_width, video_height)

    center_x, center_y = union.center
    crop_x = _clamp_origin(center_x, crop_w, video_width)
    crop_y = _clamp_origin(center_y, crop_h, video_height)
    region = CropRegion(*(int(round_half_up(v)) for v in (crop_x, crop_y, crop_w, crop_h)))
    logger.info(
        "stable crop: %s,%s %sx%s (%.2f aspect) from %s frames",
        region.x, region.y, region.width, region.height, STABLE_CROP_ASPECT, len(boxes),
    )
    return region
