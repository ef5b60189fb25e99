"""Tests for the display-space to pixel-space crop transform."""

import pytest

from core.errors import InvalidGeometry
from core.imaging.geometry import (
    Rect,
    Size,
    aspect_fit_rect,
    aspect_fit_scale,
    map_display_rect_to_image_rect,
    map_image_rect_to_display_rect,
)


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def tall_image():
    return Size(1000, 2000)


@pytest.fixture
def exact_frame():
    """300x600 frame at (10, 10): same aspect as the tall image, scale 0.3."""
    return Rect(10, 10, 300, 600)


class TestAspectFit:
    def test_scale_is_limiting_axis(self, tall_image):
        assert aspect_fit_scale(Rect(0, 0, 600, 600), tall_image) == pytest.approx(0.3)

    def test_wide_frame_letterboxes_horizontally(self, tall_image):
        displayed = aspect_fit_rect(Rect(0, 0, 600, 600), tall_image)
        assert displayed.width == pytest.approx(300)
        assert displayed.height == pytest.approx(600)
        assert displayed.x == pytest.approx(150)
        assert displayed.y == pytest.approx(0)

    def test_offset_includes_frame_origin(self, tall_image, exact_frame):
        displayed = aspect_fit_rect(exact_frame, tall_image)
        assert (displayed.x, displayed.y) == (pytest.approx(10), pytest.approx(10))

    @pytest.mark.parametrize("frame", [Rect(0, 0, 0, 600), Rect(0, 0, 300, -1)])
    def test_degenerate_frame_rejected(self, tall_image, frame):
        with pytest.raises(InvalidGeometry):
            aspect_fit_scale(frame, tall_image)

    def test_degenerate_image_rejected(self, exact_frame):
        with pytest.raises(InvalidGeometry):
            aspect_fit_scale(exact_frame, Size(0, 100))


class TestDisplayToImage:
    def test_end_to_end_scenario(self, tall_image, exact_frame):
        pixel = map_display_rect_to_image_rect(Rect(50, 100, 90, 120), exact_frame, tall_image)
        assert pixel.x == pytest.approx(133.33, abs=0.01)
        assert pixel.y == pytest.approx(300)
        assert pixel.width == pytest.approx(300)
        assert pixel.height == pytest.approx(400)

    def test_letterbox_offset_is_removed(self, tall_image):
        frame = Rect(0, 0, 600, 600)
        pixel = map_display_rect_to_image_rect(Rect(150, 0, 300, 600), frame, tall_image)
        assert pixel.x == pytest.approx(0)
        assert pixel.y == pytest.approx(0)
        assert pixel.width == pytest.approx(1000)
        assert pixel.height == pytest.approx(2000)

    def test_crop_overhanging_image_is_clipped(self, tall_image):
        frame = Rect(0, 0, 600, 600)
        pixel = map_display_rect_to_image_rect(Rect(100, -50, 200, 200), frame, tall_image)
        assert pixel.x == pytest.approx(0)
        assert pixel.y == pytest.approx(0)
        assert pixel.width == pytest.approx(150 / 0.3)
        assert pixel.height == pytest.approx(150 / 0.3)

    def test_result_stays_inside_image(self, tall_image, exact_frame):
        pixel = map_display_rect_to_image_rect(Rect(200, 500, 500, 500), exact_frame, tall_image)
        assert pixel.x >= 0 and pixel.y >= 0
        assert pixel.max_x <= tall_image.width + 1e-9
        assert pixel.max_y <= tall_image.height + 1e-9

    def test_crop_outside_displayed_image_raises(self, tall_image):
        frame = Rect(0, 0, 600, 600)
        with pytest.raises(InvalidGeometry):
            map_display_rect_to_image_rect(Rect(0, 0, 100, 100), frame, tall_image)

    def test_zero_frame_raises(self, tall_image):
        with pytest.raises(InvalidGeometry):
            map_display_rect_to_image_rect(Rect(0, 0, 10, 10), Rect(0, 0, 0, 0), tall_image)

    def test_deterministic(self, tall_image, exact_frame):
        crop = Rect(37.5, 81.25, 123.0, 211.0)
        first = map_display_rect_to_image_rect(crop, exact_frame, tall_image)
        second = map_display_rect_to_image_rect(crop, exact_frame, tall_image)
        assert first == second

    def test_round_trip_through_display(self, tall_image, exact_frame):
        pixel = Rect(120, 240, 400, 800)
        display = map_image_rect_to_display_rect(pixel, exact_frame, tall_image)
        back = map_display_rect_to_image_rect(display, exact_frame, tall_image)
        assert back.x == pytest.approx(pixel.x)
        assert back.y == pytest.approx(pixel.y)
        assert back.width == pytest.approx(pixel.width)
        assert back.height == pytest.approx(pixel.height)


class TestRect:
    def test_disjoint_intersection_is_empty(self):
        empty = Rect(0, 0, 10, 10).intersection(Rect(20, 20, 5, 5))
        assert empty.area == 0

    def test_as_box(self):
        assert Rect(1, 2, 3, 4).as_box() == (1, 2, 4, 6)
