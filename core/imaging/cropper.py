# Path: core/imaging/cropper.py
# Purpose: Crop source images to a selection made in display space.
# Layer: core/imaging.
# Details: Applies the coordinate transform, crops with Pillow, and falls back to the original image on failure.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from core.errors import CropFailure, InvalidGeometry
from .geometry import Rect, Size, map_display_rect_to_image_rect

logger = logging.getLogger(__name__)


@dataclass
class CropResult:
    """Outcome of a display-space crop.

    ``fell_back`` is True when the original image was returned because the
    geometry was degenerate or the bitmap crop failed.
    """

    image: Image.Image
    pixel_rect: Optional[Rect] = None
    fell_back: bool = False
    reason: Optional[str] = None


class ImageCropper:
    """Crop Pillow images by pixel rectangles or by on-screen selections."""

    def crop(self, image: Image.Image, pixel_rect: Rect) -> Image.Image:
        """Return a new image containing ``pixel_rect`` of ``image``.

        Raises:
            CropFailure: if the rounded box is empty or Pillow cannot produce a bitmap.
        """

        width, height = image.size
        left = max(0, min(width, int(math.floor(pixel_rect.min_x + 0.5))))
        top = max(0, min(height, int(math.floor(pixel_rect.min_y + 0.5))))
        right = max(0, min(width, int(math.floor(pixel_rect.max_x + 0.5))))
        bottom = max(0, min(height, int(math.floor(pixel_rect.max_y + 0.5))))
        if right <= left or bottom <= top:
            raise CropFailure(f"Crop box {(left, top, right, bottom)} has no area.")

        try:
            cropped = image.crop((left, top, right, bottom))
            cropped.load()
        except (OSError, ValueError) as exc:
            raise CropFailure(f"Failed to crop image: {exc}") from exc
        return cropped

    def crop_display_selection(self, image: Image.Image, crop_rect: Rect, display_frame: Rect) -> CropResult:
        """
        Crop ``image`` to the part under ``crop_rect`` as rendered in ``display_frame``.

        External calls:
        - core/imaging/geometry.py::map_display_rect_to_image_rect - converts the selection to pixels.
        - core/imaging/cropper.py::ImageCropper.crop - performs the bitmap crop.
        """

        image_size = Size(float(image.width), float(image.height))
        try:
            pixel_rect = map_display_rect_to_image_rect(crop_rect, display_frame, image_size)
            cropped = self.crop(image, pixel_rect)
        except (InvalidGeometry, CropFailure) as exc:
            logger.warning("Crop failed, using the uncropped image: %s", exc)
            return CropResult(image=image, fell_back=True, reason=str(exc))

        logger.debug("Cropped %sx%s image to %s", image.width, image.height, pixel_rect)
        return CropResult(image=cropped, pixel_rect=pixel_rect)
