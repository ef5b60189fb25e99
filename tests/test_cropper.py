"""Tests for the Pillow-backed crop executor and image encoding helpers."""

import hashlib

import pytest
from PIL import Image

from core.errors import CropFailure
from core.imaging.cropper import ImageCropper
from core.imaging.encoding import content_hash, decode_image, encode_jpeg, jpeg_data_url
from core.imaging.geometry import Rect


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def cropper():
    return ImageCropper()


@pytest.fixture
def tall_image():
    return Image.new("RGB", (1000, 2000), color=(255, 255, 255))


class TestCrop:
    def test_rounds_to_nearest_pixel(self, cropper, tall_image):
        cropped = cropper.crop(tall_image, Rect(133.33, 300, 300, 400))
        assert cropped.size == (300, 400)

    def test_empty_box_raises(self, cropper, tall_image):
        with pytest.raises(CropFailure):
            cropper.crop(tall_image, Rect(10, 10, 0.2, 50))


class TestDisplaySelection:
    def test_crops_selection(self, cropper, tall_image):
        result = cropper.crop_display_selection(tall_image, Rect(50, 100, 90, 120), Rect(10, 10, 300, 600))
        assert not result.fell_back
        assert result.image.size == (300, 400)
        assert result.pixel_rect.y == pytest.approx(300)

    def test_falls_back_when_selection_misses_image(self, cropper, tall_image):
        result = cropper.crop_display_selection(tall_image, Rect(0, 0, 100, 100), Rect(0, 0, 600, 600))
        assert result.fell_back
        assert result.image is tall_image
        assert result.pixel_rect is None
        assert result.reason

    def test_falls_back_on_degenerate_frame(self, cropper, tall_image, caplog):
        with caplog.at_level("WARNING"):
            result = cropper.crop_display_selection(tall_image, Rect(0, 0, 100, 100), Rect(0, 0, 0, 0))
        assert result.fell_back
        assert "uncropped" in caplog.text


class TestEncoding:
    def test_rgba_is_flattened_to_jpeg(self):
        data = encode_jpeg(Image.new("RGBA", (20, 20), color=(0, 0, 0, 128)))
        assert data[:2] == b"\xff\xd8"
        assert decode_image(data).mode == "RGB"

    def test_content_hash_is_sha256(self):
        assert content_hash(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_data_url(self):
        assert jpeg_data_url(b"\x00\x01") == "data:image/jpeg;base64,AAE="

    def test_decode_garbage_raises(self):
        with pytest.raises(CropFailure):
            decode_image(b"not an image")
