"""Tests for pixel/percent/page-space conversions."""

from __future__ import annotations

import random

import pytest

from signflow.geometry.shapes import Rect, Size
from signflow.geometry.transform import (
    flip_y_for_burn_in,
    percent_to_page_rect,
    percent_to_pixels,
    pixels_to_percent,
)


def _approx_rect(actual: Rect, expected: Rect, tol: float = 1e-6) -> None:
    assert actual.x == pytest.approx(expected.x, abs=tol)
    assert actual.y == pytest.approx(expected.y, abs=tol)
    assert actual.width == pytest.approx(expected.width, abs=tol)
    assert actual.height == pytest.approx(expected.height, abs=tol)


def _random_cases(seed: int, n: int) -> list[tuple[Size, Rect]]:
    rng = random.Random(seed)
    cases = []
    for _ in range(n):
        surface = Size(rng.uniform(1.0, 5000.0), rng.uniform(1.0, 5000.0))
        x = rng.uniform(0.0, surface.width)
        y = rng.uniform(0.0, surface.height)
        rect = Rect(x, y, rng.uniform(0.0, surface.width - x), rng.uniform(0.0, surface.height - y))
        cases.append((surface, rect))
    return cases


class TestPercentConversion:
    def test_pixels_to_percent(self) -> None:
        result = pixels_to_percent(Size(1000, 800), Rect(50, 50, 150, 40))
        _approx_rect(result, Rect(5.0, 6.25, 15.0, 5.0))

    def test_percent_to_pixels(self) -> None:
        result = percent_to_pixels(Size(600, 800), Rect(10, 10, 15, 5))
        _approx_rect(result, Rect(60, 80, 90, 40))

    @pytest.mark.parametrize("surface, rect", _random_cases(seed=1234, n=25))
    def test_round_trip_is_stable(self, surface: Size, rect: Rect) -> None:
        percent = pixels_to_percent(surface, rect)
        again = pixels_to_percent(surface, percent_to_pixels(surface, percent))
        _approx_rect(again, percent)

    @pytest.mark.parametrize("surface", [Size(0, 100), Size(100, 0), Size(-5, 10)])
    def test_non_positive_surface_is_rejected(self, surface: Size) -> None:
        with pytest.raises(ValueError):
            pixels_to_percent(surface, Rect(0, 0, 1, 1))
        with pytest.raises(ValueError):
            percent_to_pixels(surface, Rect(0, 0, 1, 1))


class TestBurnInFlip:
    def test_flip_example(self) -> None:
        assert flip_y_for_burn_in(800, 80, 40) == 680

    @pytest.mark.parametrize("page_height, y, height", [(800, 80, 40), (792, 0, 792), (612.5, 300.25, 12.0)])
    def test_flip_is_self_inverse(self, page_height: float, y: float, height: float) -> None:
        flipped = flip_y_for_burn_in(page_height, y, height)
        assert flip_y_for_burn_in(page_height, flipped, height) == pytest.approx(y)

    def test_percent_to_page_rect_uses_bottom_left_origin(self) -> None:
        result = percent_to_page_rect(Size(600, 800), Rect(10, 10, 15, 5))
        _approx_rect(result, Rect(60, 680, 90, 40))

    def test_top_left_field_lands_at_page_top(self) -> None:
        result = percent_to_page_rect(Size(612, 792), Rect(0, 0, 50, 10))
        assert result.y + result.height == pytest.approx(792)
