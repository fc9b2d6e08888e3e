import io
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests
from PIL import Image

from errors import SegmentationError
from subject_extractor import (
    compress_for_segmentation,
    extract_subject,
    extract_subjects,
    remove_background,
)


def _response(status=200, content=b"\x89PNG cut-out", content_type="image/png"):
    r = MagicMock()
    r.status_code = status
    r.content = content
    r.text = "error body"
    r.headers = {"content-type": content_type}
    return r


class TestExtractSubject:
    def test_network_error_returns_original_bytes(self, photo_bytes):
        with patch("subject_extractor.requests.post", side_effect=requests.ConnectionError("down")):
            out = extract_subject(photo_bytes, api_key="key")
        assert out == photo_bytes
        assert out is photo_bytes

    def test_timeout_returns_original_bytes(self, photo_bytes):
        with patch("subject_extractor.requests.post", side_effect=requests.Timeout("slow")):
            assert extract_subject(photo_bytes, api_key="key") == photo_bytes

    def test_missing_key_returns_original_without_calling(self, photo_bytes, monkeypatch):
        monkeypatch.delenv("REMOVEBG_API_KEY", raising=False)
        with patch("subject_extractor.requests.post") as post:
            assert extract_subject(photo_bytes) == photo_bytes
        post.assert_not_called()

    @pytest.mark.parametrize(
        "response",
        [_response(status=402), _response(content_type="application/json"), _response(content=b"")],
    )
    def test_bad_response_returns_original(self, photo_bytes, response):
        with patch("subject_extractor.requests.post", return_value=response):
            assert extract_subject(photo_bytes, api_key="key") == photo_bytes

    def test_success_returns_cutout(self, photo_bytes):
        with patch("subject_extractor.requests.post", return_value=_response()) as post:
            assert extract_subject(photo_bytes, api_key="key") == b"\x89PNG cut-out"
        kwargs = post.call_args.kwargs
        assert kwargs["headers"] == {"X-Api-Key": "key"}
        assert kwargs["data"] == {"size": "auto", "format": "png"}
        assert kwargs["timeout"] > 0

    def test_session_is_used_when_given(self, photo_bytes):
        session = MagicMock()
        session.post.return_value = _response()
        assert extract_subject(photo_bytes, api_key="key", session=session) == b"\x89PNG cut-out"
        session.post.assert_called_once()

    def test_batch_keeps_order(self):
        photos = [b"one", b"two", b"three"]
        with patch("subject_extractor.requests.post", side_effect=requests.ConnectionError("down")):
            assert extract_subjects(photos, api_key="key") == photos


class TestRemoveBackground:
    def test_raises_with_status(self):
        with patch("subject_extractor.requests.post", return_value=_response(status=403)):
            with pytest.raises(SegmentationError) as exc:
                remove_background(b"img", "key")
        assert exc.value.status_code == 403

    def test_raises_without_key(self):
        with pytest.raises(SegmentationError):
            remove_background(b"img", None)


class TestCompression:
    def test_small_input_untouched(self, photo_bytes):
        assert compress_for_segmentation(photo_bytes) is photo_bytes

    def test_large_input_recompressed(self):
        rng = np.random.default_rng(0)
        noise = rng.integers(0, 256, size=(120, 2400, 4), dtype=np.uint8)
        buf = io.BytesIO()
        Image.fromarray(noise, "RGBA").save(buf, format="PNG")
        data = buf.getvalue()

        out = compress_for_segmentation(data, max_bytes=1024)
        img = Image.open(io.BytesIO(out))
        assert img.format == "JPEG"
        assert max(img.size) <= 2000
