"""
Runtime settings from environment variables (REPSENSE_*).

run.py loads .env with python-dotenv before calling load_settings, so the
same keys work from a file or the shell.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .analyzer import DEFAULT_MIN_FRAMES_IN_PHASE
from .crop import DEFAULT_HEIGHT_PADDING, DEFAULT_MIN_CROP_HEIGHT_FRACTION, DEFAULT_WIDTH_PADDING
from .skeleton import MIN_KEYPOINT_CONFIDENCE
from .speed import DEFAULT_WINDOW_SIZE, SpeedComputationConfig
from .units import DEFAULT_USER_HEIGHT_CM, HeightCm

ENV_PREFIX = "REPSENSE_"


@dataclass(frozen=True)
class AnalyzerConfig:
    min_frames_in_phase: int = DEFAULT_MIN_FRAMES_IN_PHASE

    def __post_init__(self) -> None:
        if self.min_frames_in_phase < 0:
            raise ValueError(f"min_frames_in_phase must be >= 0, got {self.min_frames_in_phase}")


@dataclass(frozen=True)
class CropConfig:
    min_confidence: float = MIN_KEYPOINT_CONFIDENCE
    min_crop_height_fraction: float = DEFAULT_MIN_CROP_HEIGHT_FRACTION
    width_padding: float = DEFAULT_WIDTH_PADDING
    height_padding: float = DEFAULT_HEIGHT_PADDING

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError(f"min_confidence must be within [0, 1], got {self.min_confidence}")
        if not 0.0 < self.min_crop_height_fraction <= 1.0:
            raise ValueError(f"min_crop_height_fraction must be within (0, 1], got {self.min_crop_height_fraction}")
        if self.width_padding <= 0 or self.height_padding <= 0:
            raise ValueError(
                f"crop padding must be positive, got width={self.width_padding} height={self.height_padding}"
            )


@dataclass(frozen=True)
class Settings:
    speed: SpeedComputationConfig = field(default_factory=SpeedComputationConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    crop: CropConfig = field(default_factory=CropConfig)
    log_level: str = "INFO"


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from env (os.environ by default). Bad values raise ValueError."""
    if env is None:
        env = os.environ
    speed = SpeedComputationConfig(
        window_size=_int(env, "WINDOW_SIZE", DEFAULT_WINDOW_SIZE),
        user_height_cm=HeightCm(_float(env, "USER_HEIGHT_CM", DEFAULT_USER_HEIGHT_CM)),
        preferred_side=(_get(env, "PREFERRED_SIDE") or "right").lower(),  # type: ignore[arg-type]
        smoothing_method=(_get(env, "SMOOTHING_METHOD") or "median").lower(),  # type: ignore[arg-type]
    )
    return Settings(
        speed=speed,
        analyzer=AnalyzerConfig(
            min_frames_in_phase=_int(env, "MIN_FRAMES_IN_PHASE", DEFAULT_MIN_FRAMES_IN_PHASE),
        ),
        crop=CropConfig(
            min_confidence=_float(env, "CROP_MIN_CONFIDENCE", MIN_KEYPOINT_CONFIDENCE),
            min_crop_height_fraction=_float(env, "CROP_MIN_HEIGHT_FRACTION", DEFAULT_MIN_CROP_HEIGHT_FRACTION),
            width_padding=_float(env, "CROP_WIDTH_PADDING", DEFAULT_WIDTH_PADDING),
            height_padding=_float(env, "CROP_HEIGHT_PADDING", DEFAULT_HEIGHT_PADDING),
        ),
        log_level=(_get(env, "LOG_LEVEL") or "INFO").upper(),
    )
