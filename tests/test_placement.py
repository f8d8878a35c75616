import pytest

from placement import (
    PRINT_AREAS, analyze_placement, center_transform, default_transform, fit_to_area, is_rotated,
    normalize_rotation, position_descriptor, print_dimensions, rotate,
)
from schemas import ArtworkTransform, PrintLocation

FRONT = PrintLocation.FRONT


def test_large_front_artwork_is_oversize_but_not_rotated():
    transform = ArtworkTransform(x=100, y=100, scale=0.5, rotation=370)
    report = analyze_placement(1000, 1000, transform, FRONT)

    assert report.dimensions.width_in == pytest.approx(33.33, abs=0.01)
    assert report.oversize is True
    assert report.rotated is False
    assert any("exceeds maximum print area" in w for w in report.warnings)


def test_print_dimensions_follow_calibration():
    dims = print_dimensions(165, 255, ArtworkTransform(x=0, y=0, scale=1.0), FRONT)
    assert dims.width_in == pytest.approx(11.0)
    assert dims.height_in == pytest.approx(17.0)


@pytest.mark.parametrize("rotation, rotated", [
    (0, False), (15, False), (16, True), (180, True), (344, True), (345, False), (-10, False), (-20, True),
])
def test_rotation_tolerance(rotation, rotated):
    assert is_rotated(ArtworkTransform(x=0, y=0, rotation=rotation)) is rotated


def test_normalize_rotation():
    assert normalize_rotation(370) == 10
    assert normalize_rotation(-90) == 270


def test_small_scale_is_flagged_undersized():
    report = analyze_placement(100, 100, ArtworkTransform(x=250, y=282.5, scale=0.2), FRONT)
    assert report.undersized is True
    assert report.oversize is False


@pytest.mark.parametrize("x, y, expected", [
    (250, 282.5, "Centered"),
    (255, 278, "Centered"),
    (250, 200, "Top"),
    (250, 350, "Bottom"),
    (200, 282.5, "Left"),
    (300, 200, "Top-Right"),
    (200, 350, "Bottom-Left"),
])
def test_position_descriptor(x, y, expected):
    assert position_descriptor(ArtworkTransform(x=x, y=y), FRONT) == expected


def test_default_transform_is_centered_and_never_upscaled():
    small = default_transform(50, 50, FRONT)
    assert small.scale == pytest.approx(0.8)

    big = default_transform(1000, 2000, FRONT)
    area = PRINT_AREAS[FRONT]
    assert big.scale == pytest.approx(min(area.width / 1000, area.height / 2000) * 0.8)
    assert big.x + 1000 * big.scale / 2 == pytest.approx(area.x + area.width / 2)


def test_fit_to_area_stays_inside_print_area():
    transform = fit_to_area(600, 300, PrintLocation.LEFT_CHEST)
    dims = print_dimensions(600, 300, transform, PrintLocation.LEFT_CHEST)
    assert dims.width_in <= PRINT_AREAS[PrintLocation.LEFT_CHEST].max_width_in
    assert dims.width_in == pytest.approx(4 * 0.95)


def test_center_keeps_scale_and_resets_rotation():
    moved = ArtworkTransform(x=10, y=10, scale=0.5, rotation=45)
    centered = center_transform(200, 200, moved, FRONT)
    assert centered.scale == 0.5
    assert centered.rotation == 0


def test_rotate_wraps_around():
    assert rotate(ArtworkTransform(x=0, y=0, rotation=350), 20).rotation == 10
