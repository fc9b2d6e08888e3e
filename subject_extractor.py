"""
Subject cut-outs via remove.bg.

extract_subject never raises: any failure (no API key, network error,
timeout, bad response) returns the original photo bytes so the slide can
still be rendered with the full photo.
"""

from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

import requests
from PIL import Image, ImageOps

import config
from errors import SegmentationError

logger = logging.getLogger(__name__)

MAX_SEGMENTATION_BYTES = 22 * 1024 * 1024
MAX_EDGE = 2000
JPEG_QUALITY = 80


def compress_for_segmentation(data: bytes, max_bytes: int = MAX_SEGMENTATION_BYTES) -> bytes:
    """Shrink oversized photos (longest edge 2000px, JPEG q80) to fit the upload limit."""
    if len(data) < max_bytes:
        return data

    logger.info("photo is %.1fMB, compressing before segmentation", len(data) / 1024 / 1024)
    img = Image.open(io.BytesIO(data))
    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    img.thumbnail((MAX_EDGE, MAX_EDGE), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    out = buffer.getvalue()
    logger.info("compressed to %.1fMB", len(out) / 1024 / 1024)
    return out


def remove_background(
    data: bytes,
    api_key: Optional[str],
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> bytes:
    """One remove.bg round-trip. Raises SegmentationError on any failure."""
    if not api_key:
        raise SegmentationError("REMOVEBG_API_KEY is not set")

    http = session or requests
    try:
        r = http.post(
            config.REMOVEBG_URL,
            headers={"X-Api-Key": api_key},
            files={"image_file": ("image.png", data)},
            data={"size": "auto", "format": "png"},
            timeout=timeout if timeout is not None else config.SEGMENTATION_TIMEOUT,
        )
    except requests.RequestException as e:
        raise SegmentationError(f"remove.bg request failed: {e}") from e

    if r.status_code != 200:
        raise SegmentationError(f"remove.bg error {r.status_code}: {r.text[:200]}", status_code=r.status_code)
    if "image" not in r.headers.get("content-type", "") or not r.content:
        raise SegmentationError("remove.bg returned a non-image body")
    return r.content


def extract_subject(
    photo: bytes,
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> bytes:
    api_key = api_key if api_key is not None else config.removebg_api_key()
    try:
        payload = compress_for_segmentation(photo)
        result = remove_background(payload, api_key, timeout=timeout, session=session)
    except Exception as e:
        logger.warning("background removal failed, using original photo: %s", e)
        return photo
    logger.info("background removed (%d bytes)", len(result))
    return result


def extract_subjects(photos: Sequence[bytes], api_key: Optional[str] = None) -> list[bytes]:
    """Cut out every photo concurrently. Result order matches input order."""
    with ThreadPoolExecutor(max_workers=max(1, len(photos))) as pool:
        return list(pool.map(lambda p: extract_subject(p, api_key=api_key), photos))
