"""Field sizing rules: per-type defaults, click/drag resolution, clamping and resizing."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from signflow.geometry.shapes import Point, Rect, Size
from signflow.model.field import FieldType

_FIELD_DIMENSIONS: dict[FieldType, Size] = {
    FieldType.SIGNATURE: Size(200.0, 60.0),
    FieldType.INITIALS: Size(100.0, 50.0),
    FieldType.TEXT: Size(150.0, 40.0),
    FieldType.DATE: Size(120.0, 40.0),
    FieldType.CHECKBOX: Size(30.0, 30.0),
}
DEFAULT_DIMENSIONS = Size(150.0, 50.0)

HANDLE_SIZE = 10.0


class Handle(str, Enum):
    TOP_LEFT = "top-left"
    TOP_MIDDLE = "top-middle"
    TOP_RIGHT = "top-right"
    MIDDLE_RIGHT = "middle-right"
    BOTTOM_RIGHT = "bottom-right"
    BOTTOM_MIDDLE = "bottom-middle"
    BOTTOM_LEFT = "bottom-left"
    MIDDLE_LEFT = "middle-left"

    @property
    def moves_left(self) -> bool:
        return self.value.endswith("left")

    @property
    def moves_right(self) -> bool:
        return self.value.endswith("right")

    @property
    def moves_top(self) -> bool:
        return self.value.startswith("top")

    @property
    def moves_bottom(self) -> bool:
        return self.value.startswith("bottom")

    def anchor(self, rect: Rect) -> Point:
        if self.moves_left:
            x = rect.x
        elif self.moves_right:
            x = rect.right
        else:
            x = rect.x + rect.width / 2.0
        if self.moves_top:
            y = rect.y
        elif self.moves_bottom:
            y = rect.bottom
        else:
            y = rect.y + rect.height / 2.0
        return Point(x, y)


def minimum_dimensions(field_type: FieldType | str) -> Size:
    try:
        return _FIELD_DIMENSIONS[FieldType(field_type)]
    except ValueError:
        return DEFAULT_DIMENSIONS


def clamp_to_surface(rect: Rect, surface: Size) -> Rect:
    """Translate ``rect`` so it lies inside ``surface``; its size is kept."""
    x = max(0.0, min(rect.x, surface.width - rect.width))
    y = max(0.0, min(rect.y, surface.height - rect.height))
    return Rect(x, y, rect.width, rect.height)


def fit_to_surface(rect: Rect, surface: Size) -> Rect:
    """Clamp like :func:`clamp_to_surface`, shrinking only a rect larger than the surface."""
    width = min(rect.width, surface.width)
    height = min(rect.height, surface.height)
    return clamp_to_surface(Rect(rect.x, rect.y, width, height), surface)


def handle_at(rect: Rect, point: Point, size: float = HANDLE_SIZE) -> Handle | None:
    half = size / 2.0
    for handle in Handle:
        anchor = handle.anchor(rect)
        if abs(point.x - anchor.x) <= half and abs(point.y - anchor.y) <= half:
            return handle
    return None


@dataclass(frozen=True, slots=True)
class PlacementPolicy:
    click_threshold: float = 5.0
    min_draw_width: float = 50.0
    min_draw_height: float = 30.0
    min_resize: float = 30.0

    def is_click(self, start: Point, end: Point) -> bool:
        return (
            abs(end.x - start.x) < self.click_threshold
            and abs(end.y - start.y) < self.click_threshold
        )

    def resolve_drawn_rect(self, start: Point, end: Point, field_type: FieldType | str) -> Rect:
        if self.is_click(start, end):
            dims = minimum_dimensions(field_type)
            return Rect(start.x, start.y, dims.width, dims.height)
        box = Rect.normalized(start, end)
        return Rect(
            box.x,
            box.y,
            max(box.width, self.min_draw_width),
            max(box.height, self.min_draw_height),
        )

    def resize(
        self,
        start: Rect,
        handle: Handle,
        dx: float,
        dy: float,
        bounds: Size | None = None,
    ) -> Rect:
        # fields already below the floor keep their size but cannot shrink further
        min_width = min(self.min_resize, start.width)
        min_height = min(self.min_resize, start.height)
        left, top, width, height = start.x, start.y, start.width, start.height

        if handle.moves_right:
            width = max(start.width + dx, min_width)
            if bounds is not None:
                width = max(min(width, bounds.width - left), min_width)
        if handle.moves_bottom:
            height = max(start.height + dy, min_height)
            if bounds is not None:
                height = max(min(height, bounds.height - top), min_height)
        if handle.moves_left:
            right = start.right
            left = min(start.x + dx, right - min_width)
            if bounds is not None:
                left = max(left, 0.0)
            width = right - left
        if handle.moves_top:
            bottom = start.bottom
            top = min(start.y + dy, bottom - min_height)
            if bounds is not None:
                top = max(top, 0.0)
            height = bottom - top

        return Rect(left, top, width, height)


DEFAULT_POLICY = PlacementPolicy()


def resolve_drawn_rect(start: Point, end: Point, field_type: FieldType | str) -> Rect:
    return DEFAULT_POLICY.resolve_drawn_rect(start, end, field_type)


def resize_rect(
    start: Rect,
    handle: Handle,
    dx: float,
    dy: float,
    bounds: Size | None = None,
) -> Rect:
    return DEFAULT_POLICY.resize(start, handle, dx, dy, bounds)


def zoom_in(scale: float, factor: float = 1.25, maximum: float = 3.0) -> float:
    return min(scale * factor, maximum)


def zoom_out(scale: float, factor: float = 0.8, minimum: float = 0.5) -> float:
    return max(scale * factor, minimum)
