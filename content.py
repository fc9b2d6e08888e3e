"""
Slide copy and caption generation from a staff-interview survey.

One chat completion per request. The reply must be JSON with two lines per
slide, a caption and style tags; it is parsed and checked against the
character limits before it is handed to the renderer.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from openai import OpenAI

import config
from errors import ContentGenerationError
from models import SlideContent

logger = logging.getLogger(__name__)

# Characters per slide, both lines together, newlines not counted
CHAR_LIMITS = {
    "slide1": (30, 35),
    "slide2": (70, 75),
    "slide3": (70, 75),
}

FORBIDDEN_PATTERNS = ['"', "「」"]

# Fixed phrases the model uses when it refuses; treated as a failed generation
LLM_FAILURE_MESSAGES = [
    "申し訳ございませんが",
    "エラーが発生しました",
    "生成できませんでした",
]

SYSTEM_PROMPT = """You write Instagram recruiting carousels for Japanese medical and care facilities.

From a staff-interview survey, write the copy for a three-slide carousel in Japanese.

Output JSON only, in exactly this shape:
{
  "slide1": ["line 1", "line 2"],
  "slide2": ["line 1", "line 2"],
  "slide3": ["line 1", "line 2"],
  "caption": "full post caption",
  "style_tags": ["tag1", "tag2", "tag3"]
}

Character counts (both lines together, newlines not counted):
- slide1: 30-35 characters. A catchy hook.
- slide2: 70-75 characters. What makes the work rewarding, concretely.
- slide3: 70-75 characters. A closing message that invites the reader to act.

Caption: summarise the interview and the workplace in 300-500 characters,
2-5 emoji, 5-10 hashtags.

style_tags: three mood words for the visuals (e.g. "warm", "professional", "friendly").

Never use double quotes inside the copy. No exaggeration, no negative wording.
"""


def build_system_prompt(client_context: str = "") -> str:
    if client_context:
        return SYSTEM_PROMPT + "\n\nFacility-specific knowledge:\n" + client_context
    return SYSTEM_PROMPT


def build_user_prompt(survey_text: str, photos_meta: str = "") -> str:
    prompt = f"Survey answers:\n{survey_text}"
    if photos_meta:
        prompt += f"\n\nPhoto notes:\n{photos_meta}"
    return prompt


def count_characters(lines: tuple[str, str] | list[str]) -> int:
    return sum(len(line.replace("\n", "")) for line in lines)


def is_failure_message(text: str) -> bool:
    return any(msg in text for msg in LLM_FAILURE_MESSAGES)


def _extract_json(text: str) -> str:
    fenced = re.search(r"```json\s*([\s\S]*?)\s*```", text)
    if fenced:
        return fenced.group(1)
    obj = re.search(r"\{[\s\S]*\}", text)
    if obj:
        return obj.group(0)
    return text


def parse_slide_content(text: str) -> Optional[SlideContent]:
    """Parse the model reply. Returns None when the JSON or its shape is wrong."""
    try:
        parsed: Any = json.loads(_extract_json(text).strip())
    except json.JSONDecodeError:
        logger.warning("could not parse model reply as JSON: %.200s", text)
        return None

    if not isinstance(parsed, dict) or not parsed.get("caption"):
        return None
    slides = []
    for key in ("slide1", "slide2", "slide3"):
        value = parsed.get(key)
        if not isinstance(value, list) or len(value) != 2 or not all(isinstance(v, str) for v in value):
            logger.warning("invalid %s in model reply: %r", key, value)
            return None
        slides.append((value[0], value[1]))

    tags = parsed.get("style_tags") or []
    return SlideContent(
        slide1=slides[0],
        slide2=slides[1],
        slide3=slides[2],
        caption=str(parsed["caption"]),
        style_tags=[str(t) for t in tags] if isinstance(tags, list) else [],
    )


def validate_slide_content(content: SlideContent) -> list[str]:
    """Return human-readable problems; an empty list means the copy is usable."""
    errors: list[str] = []
    for key, lines in zip(("slide1", "slide2", "slide3"), content.slides):
        lo, hi = CHAR_LIMITS[key]
        n = count_characters(lines)
        if n < lo or n > hi:
            errors.append(f"{key} has {n} characters (allowed {lo}-{hi})")

    all_text = "".join([*content.slide1, *content.slide2, *content.slide3, content.caption])
    for pattern in FORBIDDEN_PATTERNS:
        if pattern in all_text:
            errors.append(f"forbidden pattern {pattern!r} found")
    return errors


def demo_content(survey_text: str) -> SlideContent:
    """Fixed copy used when no OpenAI key is configured."""
    return SlideContent(
        slide1=("働きやすさNo.1", "私たちの職場へ"),
        slide2=("スタッフ同士の仲が良く", "困った時はすぐに助け合える環境です"),
        slide3=("あなたも一緒に", "温かいチームで働きませんか？"),
        caption=(
            "✨ スタッフインタビュー ✨\n\n"
            f"{survey_text[:100]}...\n\n"
            "当施設では、スタッフ一人ひとりが輝ける環境づくりを大切にしています。\n\n"
            "📍 詳しくはプロフィールのリンクから！\n\n"
            "#採用 #求人 #医療 #介護 #看護師 #介護士 #働きやすい職場 #チームワーク"
        ),
        style_tags=["warm", "professional", "friendly"],
    )


def generate_content(
    survey_text: str,
    client_context: str = "",
    photos_meta: str = "",
    client: Optional[OpenAI] = None,
) -> SlideContent:
    if client is None and not config.openai_api_key():
        logger.info("OPENAI_API_KEY not set, returning demo content")
        return demo_content(survey_text)

    client = client or OpenAI(api_key=config.openai_api_key())
    messages = [
        {"role": "system", "content": build_system_prompt(client_context)},
        {"role": "user", "content": build_user_prompt(survey_text, photos_meta)},
    ]

    try:
        response = client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=messages,
            temperature=0.8,
            max_tokens=3000,
        )
    except Exception as e:
        logger.error("OpenAI API error: %s", e)
        raise ContentGenerationError("LLM API error") from e

    text = response.choices[0].message.content or ""
    if is_failure_message(text):
        raise ContentGenerationError("generation refused; check the survey text")

    content = parse_slide_content(text)
    if content is None:
        raise ContentGenerationError("model reply was not valid slide JSON")

    errors = validate_slide_content(content)
    if errors:
        logger.warning("slide copy failed validation: %s", "; ".join(errors))
        raise ContentGenerationError("slide copy failed validation", errors=errors)
    return content
