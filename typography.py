"""
Font registration and text fitting.

Slide copy is Japanese, which has no mandatory spaces between words, so text
is wrapped per character rather than per word. The two supplied lines are
treated as one piece of prose and re-flowed to the wrap width.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Optional, Sequence

import skia

import config
from design import Spec
from models import FittedText

logger = logging.getLogger(__name__)

Measure = Callable[[str, float], float]

# Any face used for slide copy must have a glyph for this character.
JAPANESE_SAMPLE = "あ"
LANGUAGES = ["ja"]

# Tried in order when the bundled font file is missing.
CJK_FAMILIES = [
    "Noto Sans CJK JP",
    "Noto Sans JP",
    "Hiragino Sans",
    "Hiragino Kaku Gothic ProN",
    "Yu Gothic",
    "Meiryo",
]
LATIN_FAMILIES = ["Helvetica Neue", "Arial", "Helvetica"]


def has_glyph(tf: Optional[skia.Typeface], ch: str) -> bool:
    return tf is not None and tf.unicharToGlyph(ord(ch)) != 0


class FontRegistry:
    """Loads typefaces once per process. Safe to call from concurrent slide renders."""

    def __init__(self, font_path: Optional[str] = None, font_mgr: Optional[skia.FontMgr] = None):
        self.font_path = font_path
        self._font_mgr = font_mgr
        self._lock = threading.Lock()
        self._primary: Optional[skia.Typeface] = None
        self._families: dict[str, skia.Typeface] = {}
        self._fallbacks: dict[str, skia.Typeface] = {}

    @property
    def font_mgr(self) -> skia.FontMgr:
        return self._font_mgr or skia.FontMgr.RefDefault()

    def primary(self) -> skia.Typeface:
        if self._primary is not None:
            return self._primary
        with self._lock:
            if self._primary is None:
                self._primary = self._load_primary()
        return self._primary

    def typeface(self, family: Optional[str] = None) -> skia.Typeface:
        """Typeface for a configured family name, falling back to the primary font.

        A family without Japanese glyphs is rejected: fontconfig happily
        substitutes a Latin face for any name it does not know.
        """
        primary = self.primary()
        if not family:
            return primary
        with self._lock:
            tf = self._families.get(family)
            if tf is None:
                tf = self.font_mgr.matchFamilyStyle(family, skia.FontStyle.Bold())
                if not has_glyph(tf, JAPANESE_SAMPLE):
                    logger.warning("font family %r missing or without Japanese glyphs, using primary font", family)
                    tf = primary
                self._families[family] = tf
        return tf

    def fallback(self, ch: str) -> skia.Typeface:
        """Installed face that can draw ch; the primary font when nothing can."""
        with self._lock:
            tf = self._fallbacks.get(ch)
            if tf is None:
                tf = self.font_mgr.matchFamilyStyleCharacter("", skia.FontStyle.Bold(), LANGUAGES, ord(ch))
                if not has_glyph(tf, ch):
                    tf = skia.Typeface.MakeDefault()
                    if not has_glyph(tf, ch):
                        tf = self._primary or tf
                self._fallbacks[ch] = tf
        return tf

    def _load_primary(self) -> skia.Typeface:
        path = self.font_path or config.FONT_PATH
        if path and os.path.exists(path):
            tf = skia.Typeface.MakeFromFile(path)
            if tf is not None:
                logger.info("registered font %s", path)
                return tf
            logger.warning("could not load font file %s", path)
        else:
            logger.warning("font file not found: %s", path)

        fm = self.font_mgr
        tf = fm.matchFamilyStyleCharacter("", skia.FontStyle.Bold(), LANGUAGES, ord(JAPANESE_SAMPLE))
        if has_glyph(tf, JAPANESE_SAMPLE):
            logger.info("using system Japanese font %r", tf.getFamilyName())
            return tf
        for family in CJK_FAMILIES:
            tf = fm.matchFamilyStyle(family, skia.FontStyle.Bold())
            if has_glyph(tf, JAPANESE_SAMPLE):
                logger.info("using system font %r", family)
                return tf

        logger.warning("no Japanese font installed; Japanese copy will not render correctly")
        for family in LATIN_FAMILIES:
            tf = fm.matchFamilyStyle(family, skia.FontStyle.Bold())
            if tf is not None:
                return tf
        return skia.Typeface.MakeDefault()


_registry = FontRegistry()


def ensure_fonts() -> skia.Typeface:
    return _registry.primary()


def typeface_for(family: Optional[str] = None) -> skia.Typeface:
    return _registry.typeface(family)


def make_font(size: float, family: Optional[str] = None, typeface: Optional[skia.Typeface] = None) -> skia.Font:
    font = skia.Font(typeface or typeface_for(family), size)
    font.setEdging(skia.Font.Edging.kAntiAlias)
    return font


def glyph_runs(
    text: str,
    primary: skia.Typeface,
    fallback: Callable[[str], skia.Typeface],
) -> list[tuple[str, skia.Typeface]]:
    """Split text into runs drawable with one typeface each.

    Characters the primary face lacks go to the fallback face for that
    character. Whitespace stays in the current run.
    """
    runs: list[tuple[str, skia.Typeface]] = []
    cur_tf: Optional[skia.Typeface] = None
    run = ""
    for ch in text:
        if ch.isspace() and cur_tf is not None:
            tf = cur_tf
        elif has_glyph(primary, ch):
            tf = primary
        else:
            tf = fallback(ch)
        if cur_tf is not None and tf is not cur_tf:
            runs.append((run, cur_tf))
            run = ""
        cur_tf = tf
        run += ch
    if run:
        runs.append((run, cur_tf))
    return runs


def text_runs(text: str, family: Optional[str] = None) -> list[tuple[str, skia.Typeface]]:
    return glyph_runs(text, typeface_for(family), _registry.fallback)


def skia_measure(family: Optional[str] = None) -> Measure:
    def measure(text: str, size: float) -> float:
        return sum(make_font(size, typeface=tf).measureText(run) for run, tf in text_runs(text, family))

    return measure


def wrap_chars(text: str, max_w: float, size: float, measure: Measure) -> list[str]:
    """Greedy per-character wrap. A single glyph wider than max_w still gets its own line."""
    lines: list[str] = []
    cur = ""
    for ch in text:
        trial = cur + ch
        if cur and measure(trial, size) > max_w:
            lines.append(cur)
            cur = ch.lstrip()
        else:
            cur = trial
    if cur:
        lines.append(cur)
    return lines


def start_font_size(scale_hint: Optional[float], spec: Spec) -> int:
    scale = scale_hint if scale_hint and scale_hint > 0 else 1.0
    size = int(round(spec.base_font_size * scale))
    return max(spec.min_start_font_size, min(spec.max_font_size, size))


def fit_text(
    lines: Sequence[str],
    zone_height_ratio: float,
    font_family: Optional[str] = None,
    scale_hint: Optional[float] = None,
    measure: Optional[Measure] = None,
    spec: Optional[Spec] = None,
) -> FittedText:
    """Pick a font size and wrap the slide copy so it fits the text zone.

    Starts from the base size times scale_hint (clamped), then steps down by
    10px while the wrapped block is taller than the zone, never going below
    the floor size. At the floor the block may overflow the zone slightly;
    text is never dropped.
    """
    spec = spec or Spec()
    measure = measure or skia_measure(font_family)
    text = "".join(lines).replace("\n", "")

    size = start_font_size(scale_hint, spec)
    max_h = zone_height_ratio * spec.H

    wrapped = wrap_chars(text, spec.wrap_width, size, measure)
    while len(wrapped) * size * spec.line_height_ratio > max_h and size > spec.floor_font_size:
        size = max(spec.floor_font_size, size - spec.font_step)
        wrapped = wrap_chars(text, spec.wrap_width, size, measure)

    return FittedText(font_size=size, lines=tuple(wrapped), line_height=size * spec.line_height_ratio)
