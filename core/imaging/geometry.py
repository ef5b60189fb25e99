# Path: core/imaging/geometry.py
# Purpose: Map crop rectangles between display space and source-image pixel space.
# Layer: core/imaging.
# Details: Models aspect-fit scaling with letterboxing; all functions are pure and deterministic.

from __future__ import annotations

from dataclasses import dataclass

from core.errors import InvalidGeometry


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float

    @property
    def is_positive(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle given by its top-left origin and size."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_size(cls, size: Size) -> "Rect":
        return cls(0.0, 0.0, size.width, size.height)

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def origin(self) -> Point:
        return Point(self.x, self.y)

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, point: Point) -> bool:
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y

    def intersection(self, other: "Rect") -> "Rect":
        """Return the overlapping rectangle; disjoint rectangles yield a zero-size rect."""

        left = max(self.min_x, other.min_x)
        top = max(self.min_y, other.min_y)
        right = min(self.max_x, other.max_x)
        bottom = min(self.max_y, other.max_y)
        return Rect(left, top, max(0.0, right - left), max(0.0, bottom - top))

    def as_box(self) -> tuple[float, float, float, float]:
        """Return ``(left, top, right, bottom)`` as used by Pillow."""

        return (self.min_x, self.min_y, self.max_x, self.max_y)


def aspect_fit_scale(display_frame: Rect, image_size: Size) -> float:
    """Return the scale factor an aspect-fit render applies to the image."""

    if not display_frame.size.is_positive:
        raise InvalidGeometry(f"Display frame must have positive size, got {display_frame.width}x{display_frame.height}.")
    if not image_size.is_positive:
        raise InvalidGeometry(f"Image size must be positive, got {image_size.width}x{image_size.height}.")
    return min(display_frame.width / image_size.width, display_frame.height / image_size.height)


def aspect_fit_rect(display_frame: Rect, image_size: Size) -> Rect:
    """Return where the image is actually drawn inside ``display_frame`` (centered, letterboxed)."""

    scale = aspect_fit_scale(display_frame, image_size)
    displayed_width = image_size.width * scale
    displayed_height = image_size.height * scale
    offset_x = (display_frame.width - displayed_width) / 2.0
    offset_y = (display_frame.height - displayed_height) / 2.0
    return Rect(display_frame.x + offset_x, display_frame.y + offset_y, displayed_width, displayed_height)


def map_display_rect_to_image_rect(crop_rect: Rect, display_frame: Rect, image_size: Size) -> Rect:
    """
    Convert an on-screen crop rectangle into a pixel rectangle of the source image.

    The crop is first expressed relative to the displayed image (not the full
    frame), clipped to the displayed image without moving its origin outward,
    then scaled by ``1/scale`` and intersected with the image bounds.

    Raises:
        InvalidGeometry: if the frame or image size is not positive, or the
            clipped crop has no area.
    """

    displayed = aspect_fit_rect(display_frame, image_size)
    scale = aspect_fit_scale(display_frame, image_size)

    relative_x = crop_rect.x - displayed.x
    relative_y = crop_rect.y - displayed.y

    left = max(0.0, relative_x)
    top = max(0.0, relative_y)
    right = min(relative_x + crop_rect.width, displayed.width)
    bottom = min(relative_y + crop_rect.height, displayed.height)
    clipped_width = max(0.0, right - left)
    clipped_height = max(0.0, bottom - top)

    inverse = 1.0 / scale
    pixel_rect = Rect(left * inverse, top * inverse, clipped_width * inverse, clipped_height * inverse)
    valid = pixel_rect.intersection(Rect.from_size(image_size))

    if valid.width <= 0 or valid.height <= 0:
        raise InvalidGeometry("Crop rectangle does not overlap the displayed image.")
    return valid


def map_image_rect_to_display_rect(pixel_rect: Rect, display_frame: Rect, image_size: Size) -> Rect:
    """Project a pixel rectangle of the source image back into display space."""

    displayed = aspect_fit_rect(display_frame, image_size)
    scale = aspect_fit_scale(display_frame, image_size)
    return Rect(
        displayed.x + pixel_rect.x * scale,
        displayed.y + pixel_rect.y * scale,
        pixel_rect.width * scale,
        pixel_rect.height * scale,
    )
