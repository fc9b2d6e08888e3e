from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Optional, Tuple

from errors import CarouselInputError


SUBJECT_POSITIONS: tuple[str, ...] = ("left", "center", "right")
TEXT_ZONES: tuple[str, ...] = ("top-left", "top-right", "bottom-left", "bottom-right", "center")
SLIDE_INDICES: tuple[int, ...] = (1, 2, 3)
DESIGN_IDS: tuple[int, ...] = (1, 2, 3)


def _number(raw: Any) -> Optional[float]:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if math.isnan(raw) or math.isinf(raw):
        return None
    return float(raw)


@dataclass(frozen=True)
class PhotoAnalysis:
    """Advisory hint about a photo: where the person is and which zones are empty."""

    subject_position: Optional[str] = None
    recommended_text_zone: Optional[str] = None
    empty_zones: Tuple[str, ...] = ()
    brightness: Optional[str] = None  # 'dark' | 'medium' | 'bright'
    face_position: Optional[Tuple[float, float]] = None  # relative (x, y)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["PhotoAnalysis"]:
        """Build from vision-model JSON (camelCase or snake_case). Invalid values are dropped."""
        if not isinstance(raw, dict):
            return None

        def pick(*keys: str) -> Any:
            for k in keys:
                if k in raw:
                    return raw[k]
            return None

        subject = pick("personPosition", "subject_position", "subjectPosition")
        zone = pick("recommendedTextPosition", "recommended_text_zone", "recommendedTextZone")
        empty = pick("emptySpaces", "empty_zones", "rankedEmptyZones") or []
        brightness = pick("brightness")
        face = pick("facePosition", "face_position")

        face_xy = None
        if isinstance(face, dict):
            fx, fy = _number(face.get("x")), _number(face.get("y"))
            if fx is not None and fy is not None:
                face_xy = (fx, fy)

        zones: list[str] = []
        if isinstance(empty, (list, tuple)):
            for z in empty:
                if z in TEXT_ZONES and z not in zones:
                    zones.append(z)

        return cls(
            subject_position=subject if subject in SUBJECT_POSITIONS else None,
            recommended_text_zone=zone if zone in TEXT_ZONES else None,
            empty_zones=tuple(zones),
            brightness=brightness if brightness in ("dark", "medium", "bright") else None,
            face_position=face_xy,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "personPosition": self.subject_position,
            "recommendedTextPosition": self.recommended_text_zone,
            "emptySpaces": list(self.empty_zones),
            "brightness": self.brightness,
            "facePosition": {"x": self.face_position[0], "y": self.face_position[1]} if self.face_position else None,
        }


# camelCase keys sent by the browser editor -> field names
_OVERRIDE_KEYS = {
    "personPosition": "person_position",
    "textPosition": "text_position",
    "fontScale": "font_scale",
    "personOffsetX": "person_offset_x",
    "personOffsetY": "person_offset_y",
    "personScale": "person_scale",
    "textYOffset": "text_y_offset",
    "textAreaRatio": "text_area_ratio",
    "textOffsetX": "text_offset_x",
    "textOffsetY": "text_offset_y",
}


@dataclass(frozen=True)
class ManualOverride:
    """Operator-supplied per-slide values. Any field that is set wins over computed layout."""

    person_position: Optional[str] = None
    text_position: Optional[str] = None
    font_scale: Optional[float] = None
    person_offset_x: Optional[float] = None
    person_offset_y: Optional[float] = None
    person_scale: Optional[float] = None
    text_y_offset: Optional[float] = None
    text_area_ratio: Optional[float] = None
    text_offset_x: Optional[float] = None
    text_offset_y: Optional[float] = None

    def __post_init__(self) -> None:
        if self.person_position is not None and self.person_position not in SUBJECT_POSITIONS:
            raise CarouselInputError(f"person position must be one of {SUBJECT_POSITIONS}, got {self.person_position!r}")
        if self.text_position is not None and self.text_position not in TEXT_ZONES:
            raise CarouselInputError(f"text position must be one of {TEXT_ZONES}, got {self.text_position!r}")

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["ManualOverride"]:
        if not isinstance(raw, dict):
            return None

        values: dict[str, Any] = {}
        for key, val in raw.items():
            name = _OVERRIDE_KEYS.get(key, key)
            if name == "person_position":
                if val in SUBJECT_POSITIONS:
                    values[name] = val
            elif name == "text_position":
                if val in TEXT_ZONES:
                    values[name] = val
            elif name in _OVERRIDE_KEYS.values():
                num = _number(val)
                if num is not None:
                    values[name] = num

        return cls(**values) if values else None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


@dataclass(frozen=True)
class CustomDesign:
    background_image: Optional[bytes] = None
    text_color: Optional[str] = None  # '#RRGGBB'
    font_family: Optional[str] = None


@dataclass
class SlideSpec:
    """Everything needed to render one slide. Built fresh per render and discarded afterwards."""

    photo: bytes
    text_lines: Tuple[str, str]
    slide_index: int
    design_id: int
    custom_design: Optional[CustomDesign] = None
    logo: Optional[bytes] = None
    analysis: Optional[PhotoAnalysis] = None
    override: Optional[ManualOverride] = None

    def __post_init__(self) -> None:
        if not isinstance(self.photo, (bytes, bytearray)) or not self.photo:
            raise CarouselInputError(f"slide {self.slide_index}: photo bytes are required")
        lines = self.text_lines
        if not isinstance(lines, (tuple, list)) or len(lines) != 2:
            count = len(lines) if isinstance(lines, (tuple, list)) else type(lines).__name__
            raise CarouselInputError(f"slide {self.slide_index}: expected 2 text lines, got {count}")
        if not all(isinstance(line, str) for line in lines):
            raise CarouselInputError(f"slide {self.slide_index}: text lines must be strings")
        self.text_lines = (lines[0], lines[1])
        if self.slide_index not in SLIDE_INDICES:
            raise CarouselInputError(f"slide index must be 1, 2 or 3, got {self.slide_index!r}")
        if self.design_id not in DESIGN_IDS:
            raise CarouselInputError(f"design id must be 1, 2 or 3, got {self.design_id!r}")

    @property
    def text(self) -> str:
        return "".join(self.text_lines)


@dataclass(frozen=True)
class LayoutDecision:
    subject_position: str
    text_zone: str
    text_vertical_offset: float
    text_zone_height_ratio: float


@dataclass(frozen=True)
class FittedText:
    font_size: int
    lines: Tuple[str, ...]
    line_height: float

    @property
    def block_height(self) -> float:
        return len(self.lines) * self.line_height


@dataclass
class SlideContent:
    """Generated copy for one carousel: two lines per slide plus the post caption."""

    slide1: Tuple[str, str]
    slide2: Tuple[str, str]
    slide3: Tuple[str, str]
    caption: str
    style_tags: list[str] = field(default_factory=list)

    @property
    def slides(self) -> list[Tuple[str, str]]:
        return [self.slide1, self.slide2, self.slide3]

    def to_dict(self) -> dict[str, Any]:
        return {
            "slide1": list(self.slide1),
            "slide2": list(self.slide2),
            "slide3": list(self.slide3),
            "caption": self.caption,
            "style_tags": list(self.style_tags),
        }
