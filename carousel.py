"""
Three-slide carousel rendering.

Each slide runs cut-out -> layout -> text fit -> composite independently, so
the three slides are rendered concurrently. Results are returned in slide
order regardless of completion order.
"""

from __future__ import annotations

import logging
import random
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

import config
from compositor import render_slide_image
from errors import CarouselInputError
from layout_policy import decide_layout
from models import CustomDesign, ManualOverride, PhotoAnalysis, SlideSpec
from subject_extractor import extract_subject
from typography import ensure_fonts, fit_text

logger = logging.getLogger(__name__)

SLIDE_COUNT = 3

Extractor = Callable[[bytes], bytes]


def render_slide(
    slide: SlideSpec,
    subject: Optional[bytes] = None,
    rng: Optional[random.Random] = None,
    extractor: Extractor = extract_subject,
) -> bytes:
    """Render one slide. Pass subject to reuse an existing cut-out and skip segmentation."""
    rng = rng or random.Random()
    ensure_fonts()

    if subject is None:
        logger.info("slide %d: removing background", slide.slide_index)
        subject = extractor(slide.photo)

    override = slide.override or ManualOverride()
    layout = decide_layout(slide.slide_index, slide.analysis, override, rng=rng)
    family = slide.custom_design.font_family if slide.custom_design else None
    fitted = fit_text(
        slide.text_lines,
        layout.text_zone_height_ratio,
        font_family=family,
        scale_hint=override.font_scale,
    )

    png = render_slide_image(slide, layout, subject, fitted, rng=rng)
    logger.info(
        "slide %d rendered (subject: %s, text: %s, %dpx x %d lines)",
        slide.slide_index,
        layout.subject_position,
        layout.text_zone,
        fitted.font_size,
        len(fitted.lines),
    )
    return png


def _per_slide(values: Optional[Sequence], name: str) -> list:
    if values is None:
        return [None] * SLIDE_COUNT
    if len(values) != SLIDE_COUNT:
        raise CarouselInputError(f"expected {SLIDE_COUNT} {name}, got {len(values)}")
    return list(values)


def build_slides(
    photos: Sequence[bytes],
    texts: Sequence[Sequence[str]],
    design_id: int,
    logo: Optional[bytes] = None,
    custom_design: Optional[CustomDesign] = None,
    analyses: Optional[Sequence[Optional[PhotoAnalysis]]] = None,
    overrides: Optional[Sequence[Optional[ManualOverride]]] = None,
) -> list[SlideSpec]:
    """Validate carousel input and build one SlideSpec per slide. The logo only goes to slide 1."""
    if photos is None or len(photos) != SLIDE_COUNT:
        raise CarouselInputError(f"expected {SLIDE_COUNT} photos, got {0 if photos is None else len(photos)}")
    if texts is None or len(texts) != SLIDE_COUNT:
        raise CarouselInputError(f"expected {SLIDE_COUNT} slide texts, got {0 if texts is None else len(texts)}")
    analyses = _per_slide(analyses, "photo analyses")
    overrides = _per_slide(overrides, "overrides")

    return [
        SlideSpec(
            photo=photos[i],
            text_lines=texts[i],
            slide_index=i + 1,
            design_id=design_id,
            custom_design=custom_design,
            logo=logo if i == 0 else None,
            analysis=analyses[i],
            override=overrides[i],
        )
        for i in range(SLIDE_COUNT)
    ]


def render_carousel(
    photos: Sequence[bytes],
    texts: Sequence[Sequence[str]],
    design_id: int,
    logo: Optional[bytes] = None,
    custom_design: Optional[CustomDesign] = None,
    analyses: Optional[Sequence[Optional[PhotoAnalysis]]] = None,
    overrides: Optional[Sequence[Optional[ManualOverride]]] = None,
    subjects: Optional[Sequence[Optional[bytes]]] = None,
    seed: Optional[int] = None,
    extractor: Extractor = extract_subject,
) -> list[bytes]:
    """Render the three slides concurrently and return their PNG bytes in slide order.

    subjects: cut-outs from a previous run; a None entry is extracted again.
    seed: makes layout choices reproducible (each slide gets its own generator).
    """
    slides = build_slides(photos, texts, design_id, logo, custom_design, analyses, overrides)
    cached = _per_slide(subjects, "subjects")
    rngs = [random.Random(f"{seed}:{i}") if seed is not None else random.Random() for i in range(SLIDE_COUNT)]

    # Warm the font registry before the workers race for it.
    ensure_fonts()

    logger.info("rendering carousel (design %d)", design_id)
    with ThreadPoolExecutor(max_workers=max(1, min(SLIDE_COUNT, config.RENDER_WORKERS))) as pool:
        futures = [
            pool.submit(render_slide, slide, cached[i], rngs[i], extractor)
            for i, slide in enumerate(slides)
        ]
        results = [f.result() for f in futures]
    logger.info("carousel rendered")
    return results
