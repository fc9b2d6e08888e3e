from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass
class Spec:
    W: int = 1080
    H: int = 1350  # Instagram portrait 4:5

    # Text
    text_pad_x: int = 80  # wrap width = W - 2 * text_pad_x
    text_top_y: int = 140
    text_bottom_gap: int = 260  # bottom zones end this far above the canvas bottom
    text_center_y_ratio: float = 0.30  # center zone sits in the upper third, above the subject's body
    text_edge_margin: int = 20
    base_font_size: int = 180
    min_start_font_size: int = 110
    max_font_size: int = 260
    floor_font_size: int = 100
    font_step: int = 10
    line_height_ratio: float = 1.3

    # Subject
    subject_min_visible: int = 40

    # Logo (slide 1)
    logo_box: int = 200
    logo_pad: int = 40
    logo_plate_pad: int = 16
    logo_plate_radius: int = 24

    # Slide indicator
    dot_y_from_bottom: int = 50
    dot_spacing: int = 30
    dot_radius: int = 6

    @property
    def wrap_width(self) -> int:
        return self.W - 2 * self.text_pad_x


@dataclass(frozen=True)
class Theme:
    name: str
    gradient: Tuple[str, ...]
    positions: Tuple[float, ...]
    diagonal: bool  # True: top-left -> bottom-right, False: top -> bottom
    text_color: str
    pattern: str  # 'rings' | 'dots' | 'hatch'


THEMES: dict[int, Theme] = {
    1: Theme(
        name="Cyan & Magenta",
        gradient=("#00D4FF", "#00A3CC", "#FF69B4"),
        positions=(0.0, 0.5, 1.0),
        diagonal=True,
        text_color="#FF1493",
        pattern="rings",
    ),
    2: Theme(
        name="Pink & Blue",
        gradient=("#FFE4EC", "#FFB6C1", "#B0E0E6", "#87CEEB"),
        positions=(0.0, 0.4, 0.7, 1.0),
        diagonal=False,
        text_color="#4169E1",
        pattern="dots",
    ),
    3: Theme(
        name="Yellow & Gray",
        gradient=("#FFF8DC", "#FFD700", "#DAA520", "#A0A0A0"),
        positions=(0.0, 0.3, 0.7, 1.0),
        diagonal=True,
        text_color="#FF8C00",
        pattern="hatch",
    ),
}


@dataclass(frozen=True)
class SlideProfile:
    subject_order: Tuple[str, ...]  # preferred subject positions, most preferred first
    text_base_offset: int
    text_zone_height_ratio: float
    subject_height: float  # fraction of canvas height
    subject_bias_x: float  # fraction of canvas width, added to the position's base x
    subject_sink: float  # fraction of subject height pushed below the bottom edge


# Orders differ per slide so three slides without hints don't all look alike.
SLIDE_PROFILES: dict[int, SlideProfile] = {
    1: SlideProfile(("right", "center", "left"), -10, 0.38, 0.80, 0.03, 0.05),
    2: SlideProfile(("left", "right", "center"), 5, 0.32, 0.85, -0.03, 0.04),
    3: SlideProfile(("center", "left", "right"), 15, 0.36, 0.82, 0.0, 0.06),
}

# Text zones that stay clear of each subject position, preferred first.
# Kept as-is: bottom zones are never offered while a subject stands at the bottom edge.
SAFE_TEXT_ZONES: dict[str, Tuple[str, ...]] = {
    "left": ("top-right", "center", "top-left"),
    "right": ("top-left", "center", "top-right"),
    "center": ("top-left", "top-right", "center"),
}

PREFERRED_PICK_PROBABILITY = 0.65
TEXT_JITTER_RANGE = (-10, 19)
SUBJECT_JITTER_X = 0.05  # +/- fraction of canvas width
SUBJECT_JITTER_Y = 0.02  # 0..fraction of canvas height
PERSON_SCALE_RANGE = (0.2, 3.0)


def zone_alignment(zone: str) -> str:
    if zone.endswith("left"):
        return "left"
    if zone.endswith("right"):
        return "right"
    return "center"


def zone_anchor(spec: Spec, zone: str) -> tuple[float, float, str]:
    """Return (x, y, vertical) for a zone.

    vertical tells how y relates to the text block: 'top' (block starts at y),
    'bottom' (block ends at y) or 'middle' (block centred on y).
    """
    if zone == "top-left":
        return spec.text_pad_x, spec.text_top_y, "top"
    if zone == "top-right":
        return spec.W - spec.text_pad_x, spec.text_top_y, "top"
    if zone == "bottom-left":
        return spec.text_pad_x, spec.H - spec.text_bottom_gap, "bottom"
    if zone == "bottom-right":
        return spec.W - spec.text_pad_x, spec.H - spec.text_bottom_gap, "bottom"
    return spec.W / 2, spec.H * spec.text_center_y_ratio, "middle"
