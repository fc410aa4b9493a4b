"""
Tests for OpenCV drawing and thumbnails.
"""

import numpy as np

from posefactory import make_keypoints
from repsense.config import CropConfig
from repsense.overlay import THUMB_HEIGHT, THUMB_WIDTH, crop_thumbnail, draw_hud, draw_skeleton
from repsense.pose import Keypoint
from repsense.swing import SWING_HUD


def _frame(h=1600, w=1000):
    return np.zeros((h, w, 3), dtype=np.uint8)


class TestOverlay:

    def test_skeleton_draws_on_frame(self):
        frame = _frame()
        draw_skeleton(frame, make_keypoints())
        assert frame.any()

    def test_skeleton_skips_low_confidence(self):
        frame = _frame()
        draw_skeleton(frame, make_keypoints(score=0.1))
        assert not frame.any()

    def test_skeleton_needs_full_landmark_set(self):
        frame = _frame()
        draw_skeleton(frame, make_keypoints()[:10])
        assert not frame.any()

    def test_hud_panel(self):
        frame = _frame()
        draw_hud(frame, SWING_HUD, {"spine": 42.0, "speed": 1.2}, "connect", 3, status="degraded")
        assert frame[:60].any()
        assert not frame[-100:].any()

    def test_thumbnail_shape(self):
        frame = _frame()
        frame[600:1500, 400:600] = 255
        thumb = crop_thumbnail(frame, make_keypoints())
        assert thumb.shape == (THUMB_HEIGHT, THUMB_WIDTH, 3)
        assert thumb.any()

    def test_thumbnail_without_person(self):
        thumb = crop_thumbnail(_frame(720, 1280), [], width=60, height=80)
        assert thumb.shape == (80, 60, 3)

    def test_thumbnail_follows_crop_config(self):
        # rows get brighter downward, so a taller crop covers a wider brightness range
        frame = _frame()
        frame[:] = (np.arange(frame.shape[0]) * 255 // frame.shape[0]).astype(np.uint8)[:, None, None]
        person = [Keypoint(500, 800, 0.9), Keypoint(520, 820, 0.9)]
        near = crop_thumbnail(frame, person)
        far = crop_thumbnail(frame, person, crop_config=CropConfig(min_crop_height_fraction=0.8))
        assert near.shape == far.shape
        near_span = int(near[-1, 0, 0]) - int(near[0, 0, 0])
        far_span = int(far[-1, 0, 0]) - int(far[0, 0, 0])
        assert far_span > near_span
