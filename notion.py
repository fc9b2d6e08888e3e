from __future__ import annotations

import logging
import re
from typing import Any, Optional
from urllib.parse import urlparse

import requests

import config
from errors import NotionError
from models import SlideContent

logger = logging.getLogger(__name__)

# Property names of the Notion database the posts are tracked in
PROPERTY_NAMES = {
    "title": "タイトル",
    "slide2": "2枚目",
    "slide3": "3枚目",
    "caption": "投稿文",
    "media_files": "Media & Files",
}

REQUIRED_PROPERTIES = [PROPERTY_NAMES[k] for k in ("title", "slide2", "slide3", "caption")]

_HEX32 = re.compile(r"([a-f0-9]{32})$", re.IGNORECASE)
_UUID = re.compile(r"([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})", re.IGNORECASE)


def extract_page_id(url: str) -> Optional[str]:
    """Page id (32 hex chars, no dashes) from a Notion page URL.

    Accepts workspace/ID, bare ID and Title-ID forms, with or without dashes.
    """
    try:
        path = urlparse(url).path
    except (ValueError, AttributeError):
        return None
    parts = [p for p in path.split("/") if p]
    if not parts:
        return None
    last = parts[-1]
    match = _HEX32.search(last) or _UUID.search(last)
    if not match:
        return None
    return match.group(1).replace("-", "").lower()


def format_page_id(page_id: str) -> str:
    """8-4-4-4-12 dashed form expected by the API."""
    if "-" in page_id:
        return page_id
    return f"{page_id[:8]}-{page_id[8:12]}-{page_id[12:16]}-{page_id[16:20]}-{page_id[20:]}"


def _rich_text(text: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": text}}]


def build_properties(content: SlideContent, image_urls: Optional[list[str]] = None) -> dict[str, Any]:
    props: dict[str, Any] = {
        PROPERTY_NAMES["title"]: {"title": _rich_text("".join(content.slide1))},
        PROPERTY_NAMES["slide2"]: {"rich_text": _rich_text("".join(content.slide2))},
        PROPERTY_NAMES["slide3"]: {"rich_text": _rich_text("".join(content.slide3))},
        PROPERTY_NAMES["caption"]: {"rich_text": _rich_text(content.caption)},
    }
    if image_urls:
        props[PROPERTY_NAMES["media_files"]] = {
            "files": [
                {"type": "external", "name": f"carousel_{i + 1}.png", "external": {"url": url}}
                for i, url in enumerate(image_urls)
            ]
        }
    return props


class NotionClient:
    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key or config.notion_api_key()
        if not self.api_key:
            raise NotionError("NOTION_API_KEY is not set")
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {self.api_key}",
                "Notion-Version": config.NOTION_VERSION,
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            r = self.session.request(method, f"{config.NOTION_API_URL}{path}", timeout=config.NOTION_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise NotionError(f"Notion request failed: {e}") from e
        if r.status_code != 200:
            raise NotionError(f"Notion API error {r.status_code}: {r.text[:200]}", status_code=r.status_code)
        return r.json()

    def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return self._request("GET", f"/pages/{format_page_id(page_id)}")

    def verify_page(self, page_id: str) -> None:
        """Raise NotionError when the page is missing any property we write to."""
        page = self.retrieve_page(page_id)
        props = page.get("properties") or {}
        missing = [name for name in REQUIRED_PROPERTIES if name not in props]
        if missing:
            raise NotionError("page is missing required properties", missing_properties=missing)

    def update_page(self, page_id: str, content: SlideContent, image_urls: Optional[list[str]] = None) -> None:
        self._request("PATCH", f"/pages/{format_page_id(page_id)}", json={"properties": build_properties(content, image_urls)})
        logger.info("notion page %s updated", page_id)
