# Path: core/imaging/__init__.py
# Purpose: Package initializer for image geometry, cropping, and encoding helpers.
# Layer: core/imaging.
# Details: Exposes the crop rectangle model, the coordinate transform, and the crop executor.

from .crop_rect import Corner, CropRect
from .cropper import CropResult, ImageCropper
from .encoding import content_hash, decode_image, encode_jpeg, jpeg_data_url, to_base64
from .geometry import (
    Point,
    Rect,
    Size,
    aspect_fit_rect,
    map_display_rect_to_image_rect,
    map_image_rect_to_display_rect,
)

__all__ = [
    "Corner",
    "CropRect",
    "CropResult",
    "ImageCropper",
    "Point",
    "Rect",
    "Size",
    "aspect_fit_rect",
    "content_hash",
    "decode_image",
    "encode_jpeg",
    "jpeg_data_url",
    "map_display_rect_to_image_rect",
    "map_image_rect_to_display_rect",
    "to_base64",
]
