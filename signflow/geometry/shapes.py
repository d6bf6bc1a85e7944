"""Plain geometry values shared by the placement engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Size:
    width: float
    height: float

    @property
    def is_positive(self) -> bool:
        return self.width > 0 and self.height > 0

    def scaled(self, factor: float) -> Size:
        return Size(self.width * factor, self.height * factor)


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class Rect:
    """Axis-aligned rectangle with a top-left origin unless stated otherwise."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def top_left(self) -> Point:
        return Point(self.x, self.y)

    def contains(self, point: Point) -> bool:
        return self.x <= point.x <= self.right and self.y <= point.y <= self.bottom

    def translated(self, dx: float, dy: float) -> Rect:
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def scaled(self, factor: float) -> Rect:
        return Rect(self.x * factor, self.y * factor, self.width * factor, self.height * factor)

    @classmethod
    def normalized(cls, a: Point, b: Point) -> Rect:
        left = min(a.x, b.x)
        top = min(a.y, b.y)
        return cls(left, top, abs(b.x - a.x), abs(b.y - a.y))


PERCENT_SURFACE = Size(100.0, 100.0)
