# Path: core/imaging/crop_rect.py
# Purpose: Model the user-adjustable crop rectangle and its drag gestures.
# Layer: core/imaging.
# Details: Corner drags and whole-rect moves clamp their deltas so the minimum size always holds.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .geometry import Point, Rect, Size

DEFAULT_MIN_DIMENSION = 100.0
DEFAULT_MOVE_SENSITIVITY = 0.25


class Corner(str, Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"


@dataclass
class CropRect:
    """Mutable crop rectangle in display coordinates.

    Every mutation keeps ``width >= min_dimension`` and ``height >= min_dimension``.
    """

    x: float
    y: float
    width: float
    height: float
    min_dimension: float = DEFAULT_MIN_DIMENSION
    move_sensitivity: float = DEFAULT_MOVE_SENSITIVITY

    def __post_init__(self) -> None:
        if self.min_dimension <= 0:
            raise ValueError("min_dimension must be positive.")
        self.width = max(self.width, self.min_dimension)
        self.height = max(self.height, self.min_dimension)

    @classmethod
    def centered(
        cls,
        bounds: Size,
        width_ratio: float = 0.8,
        height_ratio: float = 0.4,
        min_dimension: float = DEFAULT_MIN_DIMENSION,
        move_sensitivity: float = DEFAULT_MOVE_SENSITIVITY,
    ) -> "CropRect":
        """Create the initial crop rectangle centered inside ``bounds``."""

        width = max(bounds.width * width_ratio, min_dimension)
        height = max(bounds.height * height_ratio, min_dimension)
        return cls(
            x=(bounds.width - width) / 2.0,
            y=(bounds.height - height) / 2.0,
            width=width,
            height=height,
            min_dimension=min_dimension,
            move_sensitivity=move_sensitivity,
        )

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    def to_rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def contains(self, point: Point) -> bool:
        return self.to_rect().contains(point)

    def drag_corner(self, corner: Corner, location: Point) -> None:
        """Move one corner to ``location`` while the opposite corner stays fixed."""

        if corner in (Corner.TOP_LEFT, Corner.BOTTOM_LEFT):
            new_x = min(self.max_x - self.min_dimension, location.x)
            self.width = self.max_x - new_x
            self.x = new_x
        else:
            self.width = max(self.min_dimension, location.x - self.x)

        if corner in (Corner.TOP_LEFT, Corner.TOP_RIGHT):
            new_y = min(self.max_y - self.min_dimension, location.y)
            self.height = self.max_y - new_y
            self.y = new_y
        else:
            self.height = max(self.min_dimension, location.y - self.y)

    def move_by(self, translation: Point, bounds: Size, sensitivity: Optional[float] = None) -> None:
        """Translate the rectangle by a damped drag, keeping it inside ``bounds``."""

        if sensitivity is None:
            sensitivity = self.move_sensitivity
        potential_x = self.x + translation.x * sensitivity
        potential_y = self.y + translation.y * sensitivity
        self.x = max(0.0, min(potential_x, bounds.width - self.width))
        self.y = max(0.0, min(potential_y, bounds.height - self.height))
