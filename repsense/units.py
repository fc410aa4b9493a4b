"""
Unit-tagged scalars. Pixel vs normalized coordinates, angles, speeds and
percentages are distinct types for the type checker and plain numbers at runtime.
"""
from __future__ import annotations

import math
from typing import NewType

# Coordinates (0 = left / top edge)
PixelX = NewType("PixelX", float)
PixelY = NewType("PixelY", float)
NormalizedX = NewType("NormalizedX", float)
NormalizedY = NewType("NormalizedY", float)

# Dimensions
VideoWidth = NewType("VideoWidth", float)
VideoHeight = NewType("VideoHeight", float)

# Physical measurements
HeightCm = NewType("HeightCm", float)
Meters = NewType("Meters", float)

# Time
Seconds = NewType("Seconds", float)
Milliseconds = NewType("Milliseconds", float)
TimestampMs = NewType("TimestampMs", float)
VideoTimeSeconds = NewType("VideoTimeSeconds", float)

# Velocity
MetersPerSecond = NewType("MetersPerSecond", float)
PixelsPerSecond = NewType("PixelsPerSecond", float)

# Angles
AngleDegrees = NewType("AngleDegrees", float)
AngleRadians = NewType("AngleRadians", float)

# Percentages and scores
DepthPercent = NewType("DepthPercent", float)  # 0 = standing, 100 = full squat
Percent = NewType("Percent", float)
Confidence = NewType("Confidence", float)  # 0..1
QualityScore = NewType("QualityScore", float)  # 0..100

# Counters
RepCount = NewType("RepCount", int)
FrameCount = NewType("FrameCount", int)

DEFAULT_VIDEO_WIDTH = VideoWidth(1920)
DEFAULT_VIDEO_HEIGHT = VideoHeight(1080)
# Average adult (~5'8")
DEFAULT_USER_HEIGHT_CM = HeightCm(173)


def normalize_x(pixel_x: PixelX, video_width: VideoWidth) -> NormalizedX:
    return NormalizedX(pixel_x / video_width)


def normalize_y(pixel_y: PixelY, video_height: VideoHeight) -> NormalizedY:
    return NormalizedY(pixel_y / video_height)


def denormalize_x(normalized_x: NormalizedX, video_width: VideoWidth) -> PixelX:
    return PixelX(normalized_x * video_width)


def denormalize_y(normalized_y: NormalizedY, video_height: VideoHeight) -> PixelY:
    return PixelY(normalized_y * video_height)


def cm_to_meters(height_cm: HeightCm) -> Meters:
    return Meters(height_cm / 100.0)


def meters_to_cm(meters: Meters) -> HeightCm:
    return HeightCm(meters * 100.0)


def ms_to_seconds(ms: Milliseconds) -> Seconds:
    return Seconds(ms / 1000.0)


def seconds_to_ms(seconds: Seconds) -> Milliseconds:
    return Milliseconds(seconds * 1000.0)


def degrees_to_radians(degrees: AngleDegrees) -> AngleRadians:
    return AngleRadians(math.radians(degrees))


def radians_to_degrees(radians: AngleRadians) -> AngleDegrees:
    return AngleDegrees(math.degrees(radians))


def round_half_up(value: float, decimals: int = 0) -> float:
    """Halves go toward +inf: 2.5 -> 3, -2.5 -> -2, 0.125 -> 0.13."""
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor
