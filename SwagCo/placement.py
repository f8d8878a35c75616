# placement.py
"""
Artwork placement engine.

Turns an image's pixel size and its transform on the design canvas into
real-world print dimensions, and classifies the placement. All warnings
produced here are advisory: they never block checkout.
"""

from dataclasses import dataclass
from typing import Dict, List

from schemas import ArtworkTransform, PrintLocation

CANVAS_WIDTH = 500
CANVAS_HEIGHT = 550

UNDERSIZED_SCALE = 0.3
ROTATION_TOLERANCE_DEGREES = 15
POSITION_TOLERANCE_PX = 10
DEFAULT_FILL = 0.8
FIT_FILL = 0.95


@dataclass(frozen=True)
class PrintArea:
    """Print area on the canvas (pixels) and the physical size it maps to (inches)."""
    width: float
    height: float
    x: float
    y: float
    max_width_in: float
    max_height_in: float

    @property
    def px_per_inch_x(self) -> float:
        return self.width / self.max_width_in

    @property
    def px_per_inch_y(self) -> float:
        return self.height / self.max_height_in

    @property
    def center(self):
        return self.x + self.width / 2, self.y + self.height / 2


PRINT_AREAS: Dict[PrintLocation, PrintArea] = {
    PrintLocation.FRONT: PrintArea(165, 255, 167.5, 155, 11, 17),
    PrintLocation.BACK: PrintArea(165, 255, 167.5, 130, 11, 17),
    PrintLocation.LEFT_CHEST: PrintArea(60, 60, 290, 165, 4, 4),
    PrintLocation.RIGHT_CHEST: PrintArea(60, 60, 150, 165, 4, 4),
    PrintLocation.FULL_BACK: PrintArea(195, 285, 152.5, 125, 13, 19),
}

LOCATION_LABELS = {
    PrintLocation.FRONT: "Front",
    PrintLocation.BACK: "Back",
    PrintLocation.LEFT_CHEST: "Left Chest",
    PrintLocation.RIGHT_CHEST: "Right Chest",
    PrintLocation.FULL_BACK: "Full Back",
}


@dataclass(frozen=True)
class PrintDimensions:
    width_in: float
    height_in: float


@dataclass(frozen=True)
class PlacementReport:
    location: PrintLocation
    dimensions: PrintDimensions
    oversize: bool
    undersized: bool
    rotated: bool
    position: str

    @property
    def warnings(self) -> List[str]:
        area = PRINT_AREAS[self.location]
        messages = []
        if self.oversize:
            messages.append(
                f'Design exceeds maximum print area of {area.max_width_in:g}" x {area.max_height_in:g}". Please resize.'
            )
        if self.undersized:
            messages.append("Design appears very small. Consider using a larger design for better print quality.")
        if self.rotated:
            messages.append("Design is rotated. Rotated designs may have different pricing or printing considerations.")
        return messages


# ===================================================================
# Measurements & classification
# ===================================================================

def print_dimensions(image_width: int, image_height: int, transform: ArtworkTransform,
                     location: PrintLocation) -> PrintDimensions:
    area = PRINT_AREAS[location]
    return PrintDimensions(
        width_in=(image_width * transform.scale) / area.px_per_inch_x,
        height_in=(image_height * transform.scale) / area.px_per_inch_y,
    )


def is_oversize(dimensions: PrintDimensions, location: PrintLocation) -> bool:
    area = PRINT_AREAS[location]
    return dimensions.width_in > area.max_width_in or dimensions.height_in > area.max_height_in


def is_undersized(transform: ArtworkTransform) -> bool:
    return transform.scale < UNDERSIZED_SCALE


def normalize_rotation(rotation: float) -> float:
    return rotation % 360


def is_rotated(transform: ArtworkTransform) -> bool:
    """True when the rotation is more than 15 degrees away from upright in either direction."""
    angle = normalize_rotation(transform.rotation)
    return ROTATION_TOLERANCE_DEGREES < angle < 360 - ROTATION_TOLERANCE_DEGREES


def position_descriptor(transform: ArtworkTransform, location: PrintLocation) -> str:
    center_x, center_y = PRINT_AREAS[location].center
    tol = POSITION_TOLERANCE_PX

    if abs(transform.x - center_x) < tol and abs(transform.y - center_y) < tol:
        return "Centered"

    position = ""
    if transform.y < center_y - tol:
        position = "Top"
    elif transform.y > center_y + tol:
        position = "Bottom"

    if transform.x < center_x - tol:
        position = f"{position}-Left" if position else "Left"
    elif transform.x > center_x + tol:
        position = f"{position}-Right" if position else "Right"

    return position or "Centered"


def analyze_placement(image_width: int, image_height: int, transform: ArtworkTransform,
                      location: PrintLocation) -> PlacementReport:
    dimensions = print_dimensions(image_width, image_height, transform, location)
    return PlacementReport(
        location=location,
        dimensions=dimensions,
        oversize=is_oversize(dimensions, location),
        undersized=is_undersized(transform),
        rotated=is_rotated(transform),
        position=position_descriptor(transform, location),
    )


# ===================================================================
# Transform helpers
# ===================================================================

def _centered(image_width: int, image_height: int, scale: float, location: PrintLocation) -> ArtworkTransform:
    area = PRINT_AREAS[location]
    return ArtworkTransform(
        x=area.x + (area.width - image_width * scale) / 2,
        y=area.y + (area.height - image_height * scale) / 2,
        scale=scale,
        rotation=0.0,
    )


def default_transform(image_width: int, image_height: int, location: PrintLocation) -> ArtworkTransform:
    """Initial placement: centered, 80% of the largest fit, never upscaled."""
    area = PRINT_AREAS[location]
    scale = min(area.width / image_width, area.height / image_height, 1) * DEFAULT_FILL
    return _centered(image_width, image_height, scale, location)


def fit_to_area(image_width: int, image_height: int, location: PrintLocation) -> ArtworkTransform:
    area = PRINT_AREAS[location]
    scale = min(area.width / image_width, area.height / image_height) * FIT_FILL
    return _centered(image_width, image_height, scale, location)


def center_transform(image_width: int, image_height: int, transform: ArtworkTransform,
                     location: PrintLocation) -> ArtworkTransform:
    """Keeps the scale, recenters, and resets rotation."""
    return _centered(image_width, image_height, transform.scale, location)


def rotate(transform: ArtworkTransform, angle: float) -> ArtworkTransform:
    return transform.model_copy(update={"rotation": (transform.rotation + angle) % 360})
