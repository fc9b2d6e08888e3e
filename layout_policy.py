"""
Layout policy: where the subject stands and which zone holds the text.

The subject position comes from a per-slide preference order (optionally led
by a photo-analysis hint), the text zone from the safe-zone table for that
position. Both picks are biased-random: the first candidate wins most of the
time, otherwise any candidate may be chosen, so repeated generations vary.
Manual overrides replace single fields and are never filtered.
"""

from __future__ import annotations

import logging
import random
from typing import Optional, Sequence

from design import (
    PREFERRED_PICK_PROBABILITY,
    SAFE_TEXT_ZONES,
    SLIDE_PROFILES,
    TEXT_JITTER_RANGE,
)
from errors import CarouselInputError, LayoutConfigError
from models import SUBJECT_POSITIONS, LayoutDecision, ManualOverride, PhotoAnalysis

logger = logging.getLogger(__name__)


def biased_choice(candidates: Sequence[str], rng: random.Random) -> str:
    """First candidate with 65% probability, else uniform over all candidates."""
    if not candidates:
        raise LayoutConfigError("no layout candidates to choose from")
    if rng.random() < PREFERRED_PICK_PROBABILITY:
        return candidates[0]
    return candidates[rng.randrange(len(candidates))]


def subject_candidates(slide_index: int, analysis: Optional[PhotoAnalysis] = None) -> list[str]:
    profile = SLIDE_PROFILES[slide_index]
    order = list(profile.subject_order)
    hinted = analysis.subject_position if analysis else None
    if hinted in SUBJECT_POSITIONS:
        order = [hinted] + [p for p in order if p != hinted]
    return order


def safe_zone_candidates(subject_position: str, analysis: Optional[PhotoAnalysis] = None) -> list[str]:
    safe = list(SAFE_TEXT_ZONES.get(subject_position, ()))
    if not safe or analysis is None:
        return safe

    # Recommended zone first, then the analysis' empty zones in rank order; only safe ones count.
    preferred: list[str] = []
    hinted = [analysis.recommended_text_zone] if analysis.recommended_text_zone else []
    for zone in hinted + list(analysis.empty_zones):
        if zone in safe and zone not in preferred:
            preferred.append(zone)
    return preferred + [z for z in safe if z not in preferred]


def decide_layout(
    slide_index: int,
    analysis: Optional[PhotoAnalysis] = None,
    override: Optional[ManualOverride] = None,
    rng: Optional[random.Random] = None,
) -> LayoutDecision:
    if slide_index not in SLIDE_PROFILES:
        raise CarouselInputError(f"slide index must be 1, 2 or 3, got {slide_index!r}")
    rng = rng or random.Random()
    profile = SLIDE_PROFILES[slide_index]
    override = override or ManualOverride()

    if override.person_position:
        subject_position = override.person_position
    else:
        subject_position = biased_choice(subject_candidates(slide_index, analysis), rng)

    if override.text_position:
        text_zone = override.text_position
    else:
        text_zone = biased_choice(safe_zone_candidates(subject_position, analysis), rng)

    if override.text_y_offset is not None:
        offset = override.text_y_offset
    else:
        offset = profile.text_base_offset + rng.randint(*TEXT_JITTER_RANGE)

    if override.text_area_ratio is not None:
        ratio = float(override.text_area_ratio)
    else:
        ratio = profile.text_zone_height_ratio

    decision = LayoutDecision(
        subject_position=subject_position,
        text_zone=text_zone,
        text_vertical_offset=offset,
        text_zone_height_ratio=ratio,
    )
    logger.debug("slide %d layout: %s", slide_index, decision)
    return decision
