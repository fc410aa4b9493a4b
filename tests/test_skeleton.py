"""
Tests for per-frame skeleton angles, depth and calibrated wrist velocity.
"""

import pytest

from posefactory import make_keypoints
from repsense.depth import (
    STANDING_EAR_Y,
    calculate_depth_from_ear_y,
    calculate_depth_from_keypoints,
    get_ear_y_pixels,
)
from repsense.pose import Keypoint, LandmarkIdx
from repsense.skeleton import NOSE_TO_ANKLE_FRACTION, Skeleton, other_side
from repsense.units import (
    HeightCm,
    NormalizedY,
    VideoHeight,
    cm_to_meters,
    denormalize_y,
    ms_to_seconds,
    normalize_x,
    round_half_up,
)


def _with(keypoints, idx, score):
    kps = list(keypoints)
    kp = kps[idx]
    kps[idx] = Keypoint(kp.x, kp.y, score)
    return kps


# ============================================================================
# Units
# ============================================================================

class TestUnits:

    def test_conversions(self):
        assert normalize_x(960, 1920) == 0.5
        assert denormalize_y(NormalizedY(0.25), VideoHeight(1080)) == 270
        assert cm_to_meters(HeightCm(173)) == pytest.approx(1.73)
        assert ms_to_seconds(1500) == 1.5

    @pytest.mark.parametrize("value,decimals,expected", [
        (12.5, 0, 13),
        (2.5, 0, 3),
        (-2.5, 0, -2),
        (12.4, 0, 12),
        (0.125, 2, 0.13),
    ])
    def test_round_half_up(self, value, decimals, expected):
        assert round_half_up(value, decimals) == expected


# ============================================================================
# Angles
# ============================================================================

class TestAngles:

    def test_upright_spine_is_zero(self):
        sk = Skeleton(make_keypoints(spine_deg=0))
        assert sk.get_spine_angle() == pytest.approx(0.0, abs=1e-6)

    @pytest.mark.parametrize("lean", [10, 45, 70])
    def test_spine_follows_lean(self, lean):
        sk = Skeleton(make_keypoints(spine_deg=lean))
        assert sk.get_spine_angle() == pytest.approx(lean, abs=1e-6)

    def test_low_confidence_gives_none(self):
        sk = Skeleton(make_keypoints(score=0.2))
        assert sk.get_spine_angle() is None
        assert sk.get_knee_angle() is None
        assert sk.get_arm_to_vertical_angle() is None
        assert not sk.has_confident_keypoints()

    def test_empty_keypoints_are_valid_input(self):
        sk = Skeleton([])
        assert sk.get_spine_angle() is None
        assert sk.get_height_pixels() is None

    def test_straight_legs(self):
        sk = Skeleton(make_keypoints())
        assert sk.get_knee_angle_for_side("left") == pytest.approx(180.0)
        assert sk.get_knee_angle() == pytest.approx(180.0)
        assert sk.get_hip_angle() == pytest.approx(180.0)

    def test_one_side_missing_uses_the_other(self):
        kps = _with(make_keypoints(), LandmarkIdx.LEFT_KNEE, 0.0)
        sk = Skeleton(kps)
        assert sk.get_knee_angle_for_side("left") is None
        assert sk.get_knee_angle() == pytest.approx(180.0)

    def test_arm_angles(self):
        sk = Skeleton(make_keypoints(spine_deg=0, arm_deg=90))
        assert sk.get_arm_to_vertical_angle() == pytest.approx(90.0)
        assert sk.get_arm_to_vertical_angle("right") == pytest.approx(90.0)
        assert sk.get_arm_to_spine_angle() == pytest.approx(90.0)

    def test_arm_hanging(self):
        sk = Skeleton(make_keypoints(arm_deg=0))
        assert sk.get_arm_to_vertical_angle() == pytest.approx(0.0, abs=1e-6)

    def test_other_side(self):
        assert other_side("left") == "right"
        assert other_side("right") == "left"


# ============================================================================
# Velocity
# ============================================================================

class TestWristVelocity:

    def _expected(self, dist_px, dt):
        height_px = 880.0  # nose (y=620) to ankles (y=1500)
        meters_per_px = 1.73 / (height_px / NOSE_TO_ANKLE_FRACTION)
        return dist_px * meters_per_px / dt

    def test_height_pixels(self):
        assert Skeleton(make_keypoints()).get_height_pixels() == pytest.approx(880.0)

    def test_calibrated_speed(self):
        prev = Skeleton(make_keypoints())
        curr = Skeleton(make_keypoints(wrist_shift=(10.0, 0.0)))
        speed = curr.get_wrist_velocity_from_prev(prev, 1 / 30)
        assert speed == pytest.approx(self._expected(10.0, 1 / 30))

    def test_taller_user_is_faster(self):
        prev = Skeleton(make_keypoints())
        curr = Skeleton(make_keypoints(wrist_shift=(10.0, 0.0)))
        short = curr.get_wrist_velocity_from_prev(prev, 0.1, user_height_cm=150)
        tall = curr.get_wrist_velocity_from_prev(prev, 0.1, user_height_cm=190)
        assert tall > short

    @pytest.mark.parametrize("dt", [0.0, -0.1, 0.51, 2.0])
    def test_invalid_dt_is_unknown(self, dt):
        prev = Skeleton(make_keypoints())
        curr = Skeleton(make_keypoints(wrist_shift=(10.0, 0.0)))
        assert curr.get_wrist_velocity_from_prev(prev, dt) is None

    def test_dt_at_limit_is_defined(self):
        prev = Skeleton(make_keypoints())
        curr = Skeleton(make_keypoints(wrist_shift=(10.0, 0.0)))
        assert curr.get_wrist_velocity_from_prev(prev, 0.5) is not None

    def test_falls_back_to_other_wrist(self):
        prev = Skeleton(make_keypoints())
        kps = _with(make_keypoints(wrist_shift=(10.0, 0.0)), LandmarkIdx.RIGHT_WRIST, 0.1)
        speed = Skeleton(kps).get_wrist_velocity_from_prev(prev, 1 / 30, preferred_side="right")
        assert speed == pytest.approx(self._expected(10.0, 1 / 30))

    def test_no_wrists_is_unknown(self):
        prev = Skeleton(make_keypoints())
        kps = make_keypoints()
        kps = _with(kps, LandmarkIdx.RIGHT_WRIST, 0.0)
        kps = _with(kps, LandmarkIdx.LEFT_WRIST, 0.0)
        assert Skeleton(kps).get_wrist_velocity_from_prev(prev, 1 / 30) is None

    def test_missing_calibration_is_unknown(self):
        prev = Skeleton(make_keypoints())
        kps = make_keypoints(wrist_shift=(10.0, 0.0))
        kps = _with(kps, LandmarkIdx.LEFT_ANKLE, 0.0)
        kps = _with(kps, LandmarkIdx.RIGHT_ANKLE, 0.0)
        assert Skeleton(kps).get_wrist_velocity_from_prev(prev, 1 / 30) is None


# ============================================================================
# Depth
# ============================================================================

class TestDepth:

    @pytest.mark.parametrize("ear_y,expected", [
        (0.15, 0),
        (0.4, 50),
        (0.65, 100),
        (0.05, 0),
        (0.9, 100),
    ])
    def test_depth_from_ear_y(self, ear_y, expected):
        assert calculate_depth_from_ear_y(ear_y) == expected

    def test_half_percent_rounds_up(self):
        # 0.0625 above standing is exactly 12.5%
        assert calculate_depth_from_ear_y(STANDING_EAR_Y + 0.0625) == 13

    def test_ear_y_averages_both_ears(self):
        kps = make_keypoints(ear_y=400.0)
        assert get_ear_y_pixels(kps) == pytest.approx(400.0)

    def test_ear_y_falls_back_to_nose(self):
        kps = make_keypoints(ear_y=300.0)
        kps = _with(kps, LandmarkIdx.LEFT_EAR, 0.0)
        kps = _with(kps, LandmarkIdx.RIGHT_EAR, 0.0)
        assert get_ear_y_pixels(kps) == pytest.approx(300.0)

    def test_ear_y_none_without_head(self):
        kps = make_keypoints()
        for idx in (LandmarkIdx.LEFT_EAR, LandmarkIdx.RIGHT_EAR, LandmarkIdx.NOSE):
            kps = _with(kps, idx, 0.0)
        assert get_ear_y_pixels(kps) is None
        assert calculate_depth_from_keypoints(kps, 1000) is None

    def test_depth_from_keypoints(self):
        kps = make_keypoints(ear_y=400.0)
        assert calculate_depth_from_keypoints(kps, 1000) == 50
        assert calculate_depth_from_keypoints(kps, 0) is None
