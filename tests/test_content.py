import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from content import (
    count_characters,
    demo_content,
    generate_content,
    is_failure_message,
    parse_slide_content,
    validate_slide_content,
)
from errors import ContentGenerationError
from models import SlideContent

# 15 + 17 = 32 characters, 35 + 37 = 72 characters
GOOD = {
    "slide1": ["あ" * 15, "い" * 17],
    "slide2": ["う" * 35, "え" * 37],
    "slide3": ["お" * 36, "か" * 36],
    "caption": "スタッフインタビュー #採用",
    "style_tags": ["warm", "friendly"],
}


def _client(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        message = SimpleNamespace(content=content)
        client.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])
    return client


class TestParse:
    def test_bare_json(self):
        content = parse_slide_content(json.dumps(GOOD, ensure_ascii=False))
        assert content.slide1 == ("あ" * 15, "い" * 17)
        assert content.style_tags == ["warm", "friendly"]

    def test_fenced_json_with_chatter(self):
        text = "Here you go:\n```json\n" + json.dumps(GOOD, ensure_ascii=False) + "\n```\nEnjoy!"
        assert parse_slide_content(text).caption == GOOD["caption"]

    @pytest.mark.parametrize(
        "broken",
        [
            {**GOOD, "slide2": ["only one"]},
            {**GOOD, "slide3": "not a list"},
            {**GOOD, "caption": ""},
            {k: v for k, v in GOOD.items() if k != "slide1"},
        ],
    )
    def test_wrong_shape(self, broken):
        assert parse_slide_content(json.dumps(broken, ensure_ascii=False)) is None

    def test_not_json(self):
        assert parse_slide_content("I could not do that.") is None


class TestValidate:
    def test_good_copy_passes(self):
        assert validate_slide_content(parse_slide_content(json.dumps(GOOD))) == []

    def test_character_limits(self):
        content = SlideContent(slide1=("短い", ""), slide2=GOOD["slide2"], slide3=("お" * 80, ""), caption="c")
        errors = validate_slide_content(content)
        assert len(errors) == 2
        assert errors[0].startswith("slide1")
        assert errors[1].startswith("slide3")

    def test_forbidden_quote(self):
        content = SlideContent(slide1=tuple(GOOD["slide1"]), slide2=tuple(GOOD["slide2"]), slide3=tuple(GOOD["slide3"]), caption='he said "hi"')
        assert validate_slide_content(content) == ["forbidden pattern '\"' found"]

    def test_newlines_not_counted(self):
        assert count_characters(("あい\nう", "え")) == 4


def test_failure_messages():
    assert is_failure_message("申し訳ございませんが、対応できません")
    assert not is_failure_message("働きやすい職場です")


class TestGenerate:
    def test_demo_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        content = generate_content("とても働きやすい職場です")
        assert content == demo_content("とても働きやすい職場です")
        assert "とても働きやすい職場です" in content.caption

    def test_valid_reply(self):
        client = _client(json.dumps(GOOD, ensure_ascii=False))
        content = generate_content("survey", client_context="訪問看護ステーション", client=client)
        assert content.slide2 == tuple(GOOD["slide2"])
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert "訪問看護ステーション" in messages[0]["content"]
        assert "survey" in messages[1]["content"]

    def test_invalid_copy_raises_with_details(self):
        bad = {**GOOD, "slide1": ["短い", "です"]}
        with pytest.raises(ContentGenerationError) as exc:
            generate_content("survey", client=_client(json.dumps(bad, ensure_ascii=False)))
        assert exc.value.errors
        assert exc.value.errors[0].startswith("slide1")

    def test_refusal_raises(self):
        with pytest.raises(ContentGenerationError):
            generate_content("survey", client=_client("申し訳ございませんが、お手伝いできません。"))

    def test_unparseable_raises(self):
        with pytest.raises(ContentGenerationError):
            generate_content("survey", client=_client("nope"))

    def test_api_error_raises(self):
        with pytest.raises(ContentGenerationError):
            generate_content("survey", client=_client(error=RuntimeError("rate limited")))

    def test_single_call(self):
        client = _client("nope")
        with pytest.raises(ContentGenerationError):
            generate_content("survey", client=client)
        assert client.chat.completions.create.call_count == 1
