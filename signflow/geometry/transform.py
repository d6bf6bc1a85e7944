"""Conversions between surface pixels, page percentages and PDF page space.

Field rectangles are persisted as percentages (0-100) of the page rendering
surface so they stay put across zoom levels and clients. Screen space has a
top-left origin; PDF page space has a bottom-left origin.
"""

from __future__ import annotations

from signflow.geometry.shapes import Rect, Size


def _require_surface(surface: Size) -> None:
    if not surface.is_positive:
        raise ValueError(f"Surface size must be positive: {surface}")


def pixels_to_percent(surface: Size, rect: Rect) -> Rect:
    _require_surface(surface)
    return Rect(
        x=rect.x * 100.0 / surface.width,
        y=rect.y * 100.0 / surface.height,
        width=rect.width * 100.0 / surface.width,
        height=rect.height * 100.0 / surface.height,
    )


def percent_to_pixels(surface: Size, rect: Rect) -> Rect:
    _require_surface(surface)
    return Rect(
        x=rect.x * surface.width / 100.0,
        y=rect.y * surface.height / 100.0,
        width=rect.width * surface.width / 100.0,
        height=rect.height * surface.height / 100.0,
    )


def flip_y_for_burn_in(page_height: float, y_top_left: float, element_height: float) -> float:
    """Return the bottom edge of an element measured from the page bottom.

    Applying it twice with the same page and element height yields the input.
    """
    return page_height - y_top_left - element_height


def percent_to_page_rect(page: Size, rect: Rect) -> Rect:
    """Map a percentage rectangle to a bottom-left origin page rectangle."""
    pixels = percent_to_pixels(page, rect)
    return Rect(
        x=pixels.x,
        y=flip_y_for_burn_in(page.height, pixels.y, pixels.height),
        width=pixels.width,
        height=pixels.height,
    )
