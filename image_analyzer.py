"""
Photo analysis for layout hints.

Produces an advisory PhotoAnalysis for each photo:
- where the person stands (left / center / right)
- which text zones look empty, best first
- overall brightness

The vision model is asked first when OPENAI_API_KEY is set. Without a key,
or when the call fails, a local heuristic based on edge energy is used
instead, so a hint is always available.
"""

from __future__ import annotations

import base64
import io
import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

import numpy as np
from openai import OpenAI
from PIL import Image, ImageOps

import config
from models import TEXT_ZONES, PhotoAnalysis

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """You are an expert in image layout. Analyse the photo and decide where text can be placed.

Return JSON only:
{
  "personPosition": "left" | "center" | "right",
  "facePosition": { "x": 0-1, "y": 0-1 } | null,
  "emptySpaces": ["top-left", "top-right", "bottom-left", "bottom-right", "center"],
  "brightness": "dark" | "medium" | "bright",
  "recommendedTextPosition": "top-left" | "top-right" | "bottom-left" | "bottom-right" | "center"
}

Rules:
- personPosition: where the person is in the frame
- facePosition: relative face centre, null when there is no face
- emptySpaces: zones free of people and clutter, best first
- recommendedTextPosition: the single most readable zone, never over a face or body
"""

# Zone boxes as fractions of (width, height)
ZONE_BOXES: dict[str, tuple[float, float, float, float]] = {
    "top-left": (0.0, 0.0, 0.5, 0.33),
    "top-right": (0.5, 0.0, 1.0, 0.33),
    "bottom-left": (0.0, 0.67, 0.5, 1.0),
    "bottom-right": (0.5, 0.67, 1.0, 1.0),
    "center": (0.25, 0.33, 0.75, 0.67),
}


def _encode_image_b64(data: bytes, max_size: int = 1024) -> str:
    """Encode photo as a JPEG data URL, resized to max_size to reduce payload."""
    img = ImageOps.exif_transpose(Image.open(io.BytesIO(data)))

    # Convert to RGB if necessary (remove alpha channel)
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        img = background
    elif img.mode != "RGB":
        img = img.convert("RGB")

    if max(img.size) > max_size:
        img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=85, optimize=True)
    return "data:image/jpeg;base64," + base64.b64encode(buffer.getvalue()).decode("utf-8")


def _gray(data: bytes, max_size: int = 256) -> np.ndarray:
    img = ImageOps.exif_transpose(Image.open(io.BytesIO(data))).convert("L")
    img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    return np.asarray(img, dtype=np.float32)


def edge_energy(gray: np.ndarray) -> np.ndarray:
    """Simple gradient magnitude (no OpenCV)."""
    gx = np.zeros_like(gray)
    gy = np.zeros_like(gray)
    gx[:, 1:-1] = gray[:, 2:] - gray[:, :-2]
    gy[1:-1, :] = gray[2:, :] - gray[:-2, :]
    return np.abs(gx) + np.abs(gy)


def subject_position_from_edges(edges: np.ndarray) -> str:
    """Column third with the most visual activity, with a slight centre bias."""
    w = edges.shape[1]
    third = max(1, w // 3)
    activity = {
        "left": float(edges[:, :third].sum()),
        "center": float(edges[:, third:2 * third].sum()) * 1.1,
        "right": float(edges[:, 2 * third:].sum()),
    }
    return max(activity, key=activity.get)


def score_zone(gray: np.ndarray, edges: np.ndarray, box: tuple[float, float, float, float]) -> float:
    """Lower is better: low edges (clean space), low variance, not too bright."""
    h, w = gray.shape
    x0, y0, x1, y1 = box
    sl = (slice(int(y0 * h), max(int(y0 * h) + 1, int(y1 * h))), slice(int(x0 * w), max(int(x0 * w) + 1, int(x1 * w))))
    region = gray[sl]
    mean = float(region.mean())
    var = float(region.var())
    e = float(edges[sl].mean())
    bright_penalty = max(0.0, (mean - 145.0) / 50.0)
    return e * 1.0 + (var ** 0.5) * 0.12 + bright_penalty * 25.0


def brightness_label(gray: np.ndarray) -> str:
    mean = float(gray.mean())
    if mean < 85:
        return "dark"
    if mean > 170:
        return "bright"
    return "medium"


def estimate_layout_locally(photo: bytes) -> PhotoAnalysis:
    gray = _gray(photo)
    edges = edge_energy(gray)
    ranked = sorted(TEXT_ZONES, key=lambda z: score_zone(gray, edges, ZONE_BOXES[z]))
    return PhotoAnalysis(
        subject_position=subject_position_from_edges(edges),
        recommended_text_zone=ranked[0],
        empty_zones=tuple(ranked),
        brightness=brightness_label(gray),
    )


def parse_analysis(content: str) -> Optional[PhotoAnalysis]:
    match = re.search(r"\{[\s\S]*\}", content or "")
    if not match:
        return None
    try:
        raw = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return PhotoAnalysis.from_dict(raw)


def ask_vision_model(photo: bytes, client: Optional[OpenAI] = None) -> Optional[PhotoAnalysis]:
    client = client or OpenAI(api_key=config.openai_api_key(), timeout=config.ANALYSIS_TIMEOUT)
    response = client.chat.completions.create(
        model=config.VISION_MODEL,
        messages=[
            {"role": "system", "content": ANALYSIS_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Analyse this photo and tell me where text should go."},
                    {"type": "image_url", "image_url": {"url": _encode_image_b64(photo)}},
                ],
            },
        ],
        max_tokens=500,
        temperature=0.3,
    )
    content = response.choices[0].message.content or ""
    logger.debug("vision response: %s", content)
    return parse_analysis(content)


def analyze_photo_layout(photo: bytes, client: Optional[OpenAI] = None) -> Optional[PhotoAnalysis]:
    """Best-effort hint for one photo. Returns None only if the photo itself can't be read."""
    if client is not None or config.openai_api_key():
        try:
            analysis = ask_vision_model(photo, client=client)
            if analysis is not None:
                return analysis
            logger.warning("vision model returned no usable JSON, using local analysis")
        except Exception as e:
            logger.warning("vision analysis failed, using local analysis: %s", e)

    try:
        return estimate_layout_locally(photo)
    except Exception as e:
        logger.warning("local photo analysis failed: %s", e)
        return None


def analyze_photos(photos: Sequence[bytes], client: Optional[OpenAI] = None) -> list[Optional[PhotoAnalysis]]:
    with ThreadPoolExecutor(max_workers=max(1, len(photos))) as pool:
        return list(pool.map(lambda p: analyze_photo_layout(p, client=client), photos))
