from __future__ import annotations

import io
import logging
import random
from dataclasses import dataclass
from typing import Optional

import skia
from PIL import Image, ImageOps

from design import (
    PERSON_SCALE_RANGE,
    SLIDE_PROFILES,
    SUBJECT_JITTER_X,
    SUBJECT_JITTER_Y,
    THEMES,
    SlideProfile,
    Spec,
    Theme,
    zone_alignment,
    zone_anchor,
)
from errors import CarouselInputError
from models import FittedText, LayoutDecision, ManualOverride, SlideSpec
from typography import make_font, text_runs

logger = logging.getLogger(__name__)

PATTERN_ALPHA = 38  # ~15%
SHADOW_ALPHA = 77  # ~30%
LOGO_PLATE_ALPHA = 217  # ~85%


# -------------------- Color + image helpers --------------------

def hex_to_color(value: str, alpha: int = 255) -> int:
    h = value.strip().lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    if len(h) != 6:
        raise ValueError(f"not a hex color: {value!r}")
    r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    return skia.ColorSetARGB(alpha, r, g, b)


def resolve_text_color(slide: SlideSpec, theme: Theme) -> int:
    custom = slide.custom_design.text_color if slide.custom_design else None
    if custom:
        try:
            return hex_to_color(custom)
        except ValueError:
            logger.warning("invalid custom text color %r, using theme color", custom)
    return hex_to_color(theme.text_color)


def open_rgba(data: bytes) -> Image.Image:
    pil = Image.open(io.BytesIO(data))
    pil = ImageOps.exif_transpose(pil)
    return pil.convert("RGBA")


def pil_to_skia(pil: Image.Image) -> skia.Image:
    return skia.Image.frombytes(pil.tobytes(), pil.size, skia.ColorType.kRGBA_8888_ColorType)


def cover_fit_pil(pil: Image.Image, w: int, h: int, centering=(0.5, 0.5)) -> Image.Image:
    return ImageOps.fit(pil, (w, h), method=Image.Resampling.LANCZOS, centering=centering)


# -------------------- Background --------------------

def draw_gradient(canvas: skia.Canvas, spec: Spec, theme: Theme) -> None:
    end = skia.Point(spec.W, spec.H) if theme.diagonal else skia.Point(0, spec.H)
    shader = skia.GradientShader.MakeLinear(
        points=[skia.Point(0, 0), end],
        colors=[hex_to_color(c) for c in theme.gradient],
        positions=list(theme.positions),
    )
    canvas.drawRect(skia.Rect.MakeWH(spec.W, spec.H), skia.Paint(Shader=shader, AntiAlias=True))


def draw_pattern(canvas: skia.Canvas, spec: Spec, theme: Theme, rng: random.Random) -> None:
    white = skia.ColorSetARGB(PATTERN_ALPHA, 255, 255, 255)

    if theme.pattern == "rings":
        paint = skia.Paint(AntiAlias=True, Color=white, Style=skia.Paint.kStroke_Style, StrokeWidth=3)
        for _ in range(3):
            cx, cy = rng.uniform(0, spec.W), rng.uniform(0, spec.H)
            for r in range(60, 301, 60):
                canvas.drawCircle(cx, cy, r, paint)
    elif theme.pattern == "dots":
        paint = skia.Paint(AntiAlias=True, Color=white)
        for x in range(0, spec.W, 60):
            for y in range(0, spec.H, 60):
                canvas.drawCircle(x + rng.uniform(0, 20), y + rng.uniform(0, 20), 8, paint)
    elif theme.pattern == "hatch":
        paint = skia.Paint(AntiAlias=True, Color=white, Style=skia.Paint.kStroke_Style, StrokeWidth=2)
        for i in range(-spec.H, spec.W + spec.H, 80):
            canvas.drawLine(i, 0, i + spec.H, spec.H, paint)


def draw_background(
    canvas: skia.Canvas,
    spec: Spec,
    theme: Theme,
    custom_background: Optional[bytes],
    rng: random.Random,
) -> None:
    if custom_background:
        try:
            pil = cover_fit_pil(open_rgba(custom_background), spec.W, spec.H)
            canvas.drawImageRect(pil_to_skia(pil), skia.Rect.MakeWH(spec.W, spec.H))
            return
        except Exception as e:
            logger.warning("custom background could not be loaded, using gradient: %s", e)

    draw_gradient(canvas, spec, theme)
    draw_pattern(canvas, spec, theme, rng)


# -------------------- Subject --------------------

@dataclass(frozen=True)
class SubjectBox:
    x: float
    y: float
    w: float
    h: float


def place_subject(
    spec: Spec,
    profile: SlideProfile,
    position: str,
    img_w: int,
    img_h: int,
    override: ManualOverride,
    rng: random.Random,
) -> SubjectBox:
    """Scale and position the cut-out, then clamp so at least 40px stays on canvas."""
    person_scale = override.person_scale if override.person_scale and override.person_scale > 0 else 1.0
    person_scale = min(max(person_scale, PERSON_SCALE_RANGE[0]), PERSON_SCALE_RANGE[1])
    h = spec.H * profile.subject_height * person_scale
    w = img_w * (h / img_h)

    if position == "left":
        x = -w * 0.1
    elif position == "right":
        x = spec.W - w + w * 0.1
    else:
        x = (spec.W - w) / 2
    x += profile.subject_bias_x * spec.W
    x += rng.uniform(-SUBJECT_JITTER_X, SUBJECT_JITTER_X) * spec.W
    x += override.person_offset_x or 0

    y = spec.H - h + h * profile.subject_sink
    y += rng.uniform(0, SUBJECT_JITTER_Y) * spec.H
    y += override.person_offset_y or 0

    m = spec.subject_min_visible
    x = min(max(x, m - w), spec.W - m)
    y = min(max(y, m - h), spec.H - m)
    return SubjectBox(x, y, w, h)


def load_subject(subject: bytes, photo: bytes) -> Image.Image:
    try:
        return open_rgba(subject)
    except Exception as e:
        if subject is photo or subject == photo:
            raise CarouselInputError(f"photo could not be decoded: {e}") from e
        logger.warning("cut-out could not be decoded, using original photo: %s", e)
    try:
        return open_rgba(photo)
    except Exception as e:
        raise CarouselInputError(f"photo could not be decoded: {e}") from e


def draw_subject_shadow(canvas: skia.Canvas, spec: Spec, box: SubjectBox) -> None:
    cx = box.x + box.w / 2
    cy = min(box.y + box.h, spec.H) - 20
    rx, ry = box.w * 0.35, 30
    paint = skia.Paint(
        AntiAlias=True,
        Color=skia.ColorSetARGB(SHADOW_ALPHA, 0, 0, 0),
        MaskFilter=skia.MaskFilter.MakeBlur(skia.kNormal_BlurStyle, 12.0),
    )
    canvas.drawOval(skia.Rect.MakeLTRB(cx - rx, cy - ry, cx + rx, cy + ry), paint)


def draw_subject(canvas: skia.Canvas, pil: Image.Image, box: SubjectBox) -> None:
    size = (max(1, int(round(box.w))), max(1, int(round(box.h))))
    if size[0] <= pil.width and size[1] <= pil.height:
        canvas.drawImage(pil_to_skia(pil.resize(size, Image.Resampling.LANCZOS)), box.x, box.y)
        return
    # Upscale on the canvas; a PIL resize would allocate the full enlarged bitmap
    canvas.drawImageRect(
        pil_to_skia(pil),
        skia.Rect.MakeXYWH(box.x, box.y, box.w, box.h),
        skia.SamplingOptions(skia.FilterMode.kLinear),
    )


# -------------------- Text --------------------

def text_block_top(spec: Spec, fitted: FittedText, layout: LayoutDecision, override: ManualOverride) -> float:
    _, anchor_y, vertical = zone_anchor(spec, layout.text_zone)
    block_h = fitted.block_height
    if vertical == "top":
        top = anchor_y
    elif vertical == "bottom":
        top = anchor_y - block_h
    else:
        top = anchor_y - block_h / 2
    top += layout.text_vertical_offset + (override.text_offset_y or 0)

    # Keep the block on canvas; a block taller than the canvas starts at the top margin.
    lo = spec.text_edge_margin
    hi = max(lo, spec.H - spec.text_edge_margin - block_h)
    return min(max(top, lo), hi)


def draw_text(
    canvas: skia.Canvas,
    spec: Spec,
    fitted: FittedText,
    layout: LayoutDecision,
    override: ManualOverride,
    color: int,
    family: Optional[str] = None,
) -> None:
    if not fitted.lines:
        return

    size = fitted.font_size
    font = make_font(size, family)
    metrics = font.getMetrics()
    glyph_h = metrics.fDescent - metrics.fAscent

    anchor_x, _, _ = zone_anchor(spec, layout.text_zone)
    anchor_x += override.text_offset_x or 0
    align = zone_alignment(layout.text_zone)
    top = text_block_top(spec, fitted, layout, override)

    outline = skia.Paint(
        AntiAlias=True,
        Color=skia.ColorBLACK,
        Style=skia.Paint.kStroke_Style,
        StrokeWidth=max(30, size * 0.18),
        StrokeJoin=skia.Paint.kRound_Join,
    )
    inline = skia.Paint(
        AntiAlias=True,
        Color=skia.ColorWHITE,
        Style=skia.Paint.kStroke_Style,
        StrokeWidth=max(15, size * 0.1),
        StrokeJoin=skia.Paint.kRound_Join,
    )
    fill = skia.Paint(AntiAlias=True, Color=color)

    for i, line in enumerate(fitted.lines):
        runs = [(run, make_font(size, typeface=tf)) for run, tf in text_runs(line, family)]
        w = sum(f.measureText(run) for run, f in runs)
        if align == "left":
            x = anchor_x
        elif align == "right":
            x = anchor_x - w
        else:
            x = anchor_x - w / 2
        baseline = top + i * fitted.line_height + (fitted.line_height - glyph_h) / 2 - metrics.fAscent
        # Every stroke of a line goes down before its fill
        for paint in (outline, inline, fill):
            xx = x
            for run, f in runs:
                canvas.drawString(run, xx, baseline, f, paint)
                xx += f.measureText(run)


# -------------------- Logo + indicator --------------------

def draw_logo(canvas: skia.Canvas, spec: Spec, logo: bytes) -> None:
    try:
        pil = ImageOps.contain(open_rgba(logo), (spec.logo_box, spec.logo_box), method=Image.Resampling.LANCZOS)
    except Exception as e:
        logger.warning("logo could not be loaded, skipping: %s", e)
        return

    lw, lh = pil.size
    x1 = spec.W - spec.logo_pad
    x0 = x1 - lw
    y0 = spec.logo_pad
    y1 = y0 + lh
    p = spec.logo_plate_pad
    plate = skia.Rect.MakeLTRB(x0 - p, y0 - p, x1 + p, y1 + p)
    canvas.drawRoundRect(
        plate,
        spec.logo_plate_radius,
        spec.logo_plate_radius,
        skia.Paint(AntiAlias=True, Color=skia.ColorSetARGB(LOGO_PLATE_ALPHA, 255, 255, 255)),
    )
    canvas.drawImage(pil_to_skia(pil), x0, y0)


def draw_indicator(canvas: skia.Canvas, spec: Spec, active: int, total: int = 3) -> None:
    y = spec.H - spec.dot_y_from_bottom
    start_x = (spec.W - (total - 1) * spec.dot_spacing) / 2
    filled = skia.Paint(AntiAlias=True, Color=skia.ColorWHITE)
    outlined = skia.Paint(AntiAlias=True, Color=skia.ColorWHITE, Style=skia.Paint.kStroke_Style, StrokeWidth=2)
    for i in range(1, total + 1):
        x = start_x + (i - 1) * spec.dot_spacing
        canvas.drawCircle(x, y, spec.dot_radius, filled if i == active else outlined)


# -------------------- Slide --------------------

def render_slide_image(
    slide: SlideSpec,
    layout: LayoutDecision,
    subject: bytes,
    fitted: FittedText,
    rng: Optional[random.Random] = None,
    spec: Optional[Spec] = None,
) -> bytes:
    """Draw one slide and return it as PNG bytes.

    Order: background, subject shadow, subject, text, logo (slide 1), indicator.
    """
    spec = spec or Spec()
    rng = rng or random.Random()
    theme = THEMES[slide.design_id]
    profile = SLIDE_PROFILES[slide.slide_index]
    override = slide.override or ManualOverride()
    custom = slide.custom_design

    person = load_subject(subject, slide.photo)

    surface = skia.Surface(spec.W, spec.H)
    canvas = surface.getCanvas()
    canvas.clear(skia.ColorWHITE)

    draw_background(canvas, spec, theme, custom.background_image if custom else None, rng)

    box = place_subject(spec, profile, layout.subject_position, person.width, person.height, override, rng)
    draw_subject_shadow(canvas, spec, box)
    draw_subject(canvas, person, box)

    color = resolve_text_color(slide, theme)
    draw_text(canvas, spec, fitted, layout, override, color, custom.font_family if custom else None)

    if slide.slide_index == 1 and slide.logo:
        draw_logo(canvas, spec, slide.logo)

    draw_indicator(canvas, spec, slide.slide_index)

    img = surface.makeImageSnapshot()
    data = img.encodeToData(skia.EncodedImageFormat.kPNG, 100)
    return bytes(data)
