from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, Response
from PIL import Image
from pydantic import BaseModel

from env import load_env

load_env()

import config
from carousel import render_carousel
from content import generate_content
from errors import CarouselInputError, ContentGenerationError, NotionError
from image_analyzer import analyze_photos
from models import CustomDesign, ManualOverride, PhotoAnalysis, SlideContent
from notion import NotionClient, extract_page_id
from storage import JobStore
from subject_extractor import extract_subjects

logger = logging.getLogger(__name__)

app = FastAPI(title="Staff Interview Carousel")

STORE = JobStore()

NO_CACHE = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

_DATA_URL = re.compile(r"^data:[\w/+.-]+;base64,")


class CustomDesignPayload(BaseModel):
    backgroundImage: Optional[str] = None
    textColor: Optional[str] = None
    fontFamily: Optional[str] = None


class GenerateRequest(BaseModel):
    surveyText: str
    designNumber: int
    photos: list[str]
    notionPageUrl: str = ""
    clientContext: str = ""
    logoImage: Optional[str] = None
    customDesign: Optional[CustomDesignPayload] = None


class SlideTexts(BaseModel):
    slide1: str
    slide2: str
    slide3: str


class RegenerateRequest(BaseModel):
    jobId: str
    slides: SlideTexts
    caption: str = ""
    overrides: list[Optional[dict[str, Any]]] = []


class NotionSaveRequest(BaseModel):
    jobId: str


def decode_image(data: str, what: str, verify: bool = False) -> bytes:
    """Base64 (optionally a data: URL) -> bytes. Raises CarouselInputError.

    verify: also require Pillow to recognise the bytes as an image.
    """
    try:
        raw = base64.b64decode(_DATA_URL.sub("", data.strip()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise CarouselInputError(f"{what} is not valid base64") from e
    if not raw:
        raise CarouselInputError(f"{what} is empty")
    if verify:
        try:
            with Image.open(io.BytesIO(raw)) as img:
                img.verify()
        except (OSError, SyntaxError, ValueError) as e:
            raise CarouselInputError(f"{what} is not a readable image") from e
    return raw


def _custom_design(payload: Optional[CustomDesignPayload]) -> Optional[CustomDesign]:
    if payload is None:
        return None
    background = None
    if payload.backgroundImage:
        try:
            background = decode_image(payload.backgroundImage, "background image")
        except CarouselInputError as e:
            # Decorative asset: fall back to the theme gradient
            logger.warning("ignoring custom background: %s", e)
    return CustomDesign(background_image=background, text_color=payload.textColor, font_family=payload.fontFamily)


def _text_tuple(text: str) -> tuple[str, str]:
    return ((text or "").strip(), "")


def _job_or_404(job_id: str):
    job = STORE.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="job not found; the server may have restarted, generate again")
    return job


@app.post("/api/generate")
def generate_api(payload: GenerateRequest):
    if not payload.surveyText.strip() or len(payload.photos) != 3:
        raise HTTPException(status_code=400, detail="surveyText and exactly 3 photos are required")
    if payload.designNumber not in (1, 2, 3):
        raise HTTPException(status_code=400, detail="designNumber must be 1, 2 or 3")

    notion_page_id = ""
    if payload.notionPageUrl.strip():
        notion_page_id = extract_page_id(payload.notionPageUrl.strip()) or ""
        if not notion_page_id:
            raise HTTPException(status_code=400, detail="invalid Notion page URL")
        if config.notion_api_key():
            try:
                NotionClient().verify_page(notion_page_id)
            except NotionError as e:
                return JSONResponse(
                    {"success": False, "error": str(e), "missingProperties": e.missing_properties},
                    status_code=400,
                )

    try:
        photos = [decode_image(p, f"photo {i + 1}", verify=True) for i, p in enumerate(payload.photos)]
        logo = decode_image(payload.logoImage, "logo") if payload.logoImage else None
    except CarouselInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    job = STORE.create(
        payload.surveyText,
        payload.designNumber,
        notion_page_id=notion_page_id,
        notion_page_url=payload.notionPageUrl,
        logo=logo,
        custom_design=_custom_design(payload.customDesign),
    )
    STORE.update(job.id, photo_paths=STORE.save_photos(job.id, photos), status="processing")

    try:
        content = generate_content(payload.surveyText, client_context=payload.clientContext)
    except ContentGenerationError as e:
        STORE.update(job.id, status="failed", error=str(e))
        return JSONResponse(
            {"success": False, "jobId": job.id, "error": str(e), "details": e.errors},
            status_code=400,
        )
    STORE.update(job.id, content=content)

    try:
        analyses = analyze_photos(photos)
        subjects = extract_subjects(photos)
        STORE.update(job.id, analyses=analyses, subject_paths=STORE.save_subjects(job.id, subjects))
        images = render_carousel(
            photos,
            content.slides,
            payload.designNumber,
            logo=logo,
            custom_design=job.custom_design,
            analyses=analyses,
            subjects=subjects,
        )
    except Exception as e:
        logger.exception("image generation failed for job %s", job.id)
        STORE.update(job.id, status="failed", error="image generation failed")
        return JSONResponse(
            {"success": False, "jobId": job.id, "error": f"image generation failed: {e}", "data": content.to_dict()},
            status_code=500,
        )

    job = STORE.update(job.id, output_paths=STORE.save_outputs(job.id, images), status="success")
    return JSONResponse({"success": True, "jobId": job.id, "data": {**content.to_dict(), "images": job.output_urls}})


@app.post("/api/regenerate")
def regenerate_api(payload: RegenerateRequest):
    job = _job_or_404(payload.jobId)
    if len(job.photo_paths) != 3:
        raise HTTPException(status_code=400, detail="photos are missing; cannot re-render")
    if len(payload.overrides) > 3:
        raise HTTPException(status_code=400, detail="at most 3 overrides")

    photos = [STORE.read(p) for p in job.photo_paths]
    subjects = [STORE.read(p) for p in job.subject_paths] if len(job.subject_paths) == 3 else None
    analyses: list[Optional[PhotoAnalysis]] = list(job.analyses) if len(job.analyses) == 3 else analyze_photos(photos)
    raw = list(payload.overrides) + [None] * (3 - len(payload.overrides))
    overrides = [ManualOverride.from_dict(o) for o in raw]

    texts = [_text_tuple(payload.slides.slide1), _text_tuple(payload.slides.slide2), _text_tuple(payload.slides.slide3)]
    try:
        images = render_carousel(
            photos,
            texts,
            job.design_id,
            logo=job.logo,
            custom_design=job.custom_design,
            analyses=analyses,
            overrides=overrides,
            subjects=subjects,
        )
    except CarouselInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    content = SlideContent(
        slide1=texts[0],
        slide2=texts[1],
        slide3=texts[2],
        caption=payload.caption,
        style_tags=job.content.style_tags if job.content else [],
    )
    job = STORE.update(job.id, content=content, output_paths=STORE.save_outputs(job.id, images), status="success")

    return JSONResponse(
        {
            "success": True,
            "data": {
                "images": job.output_urls,
                "slide1": list(texts[0]),
                "slide2": list(texts[1]),
                "slide3": list(texts[2]),
                "caption": payload.caption,
            },
        }
    )


@app.get("/api/job/{job_id}")
def job_status(job_id: str):
    return JSONResponse({"job": _job_or_404(job_id).to_dict()})


@app.get("/api/images/{job_id}/{slide_number}")
def get_image(job_id: str, slide_number: int):
    job = _job_or_404(job_id)
    if slide_number < 1 or slide_number > len(job.output_paths):
        raise HTTPException(status_code=404, detail="image not found")
    return Response(content=STORE.read(job.output_paths[slide_number - 1]), media_type="image/png", headers=NO_CACHE)


@app.post("/api/notion/save")
def notion_save(payload: NotionSaveRequest):
    job = _job_or_404(payload.jobId)
    if not job.notion_page_id:
        raise HTTPException(status_code=400, detail="job has no Notion page")
    if job.content is None:
        raise HTTPException(status_code=400, detail="job has no generated content")

    base = config.PUBLIC_BASE_URL.rstrip("/")
    try:
        NotionClient().update_page(job.notion_page_id, job.content, [base + url for url in job.output_urls])
    except NotionError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=502 if e.status_code else 400)
    return JSONResponse({"success": True})


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
