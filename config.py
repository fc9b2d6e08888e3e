import os
from pathlib import Path

PROJECT_DIR = Path(__file__).resolve().parent

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
VISION_MODEL = os.getenv("VISION_MODEL", OPENAI_MODEL)

# remove.bg is used for subject cut-outs. Without a key every slide falls back to the full photo.
REMOVEBG_URL = os.getenv("REMOVEBG_URL", "https://api.remove.bg/v1.0/removebg")
SEGMENTATION_TIMEOUT = float(os.getenv("SEGMENTATION_TIMEOUT", "30"))
ANALYSIS_TIMEOUT = float(os.getenv("ANALYSIS_TIMEOUT", "30"))

NOTION_API_URL = os.getenv("NOTION_API_URL", "https://api.notion.com/v1")
NOTION_VERSION = os.getenv("NOTION_VERSION", "2022-06-28")
NOTION_TIMEOUT = float(os.getenv("NOTION_TIMEOUT", "15"))

# Bundled bold font for Japanese copy. Missing file -> system CJK font -> skia default.
FONT_PATH = os.getenv("FONT_PATH", str(PROJECT_DIR / "assets" / "fonts" / "NotoSansJP-Bold.otf"))

RUNS_DIR = Path(os.getenv("RUNS_DIR", str(PROJECT_DIR / "runs")))

# Used to build absolute image URLs for Notion (Notion only accepts external URLs)
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

RENDER_WORKERS = int(os.getenv("RENDER_WORKERS", "3"))


def openai_api_key() -> str | None:
    return os.getenv("OPENAI_API_KEY") or None


def removebg_api_key() -> str | None:
    return os.getenv("REMOVEBG_API_KEY") or None


def notion_api_key() -> str | None:
    return os.getenv("NOTION_API_KEY") or None
