"""Tests for the image host upload client."""
from io import BytesIO

import pytest
import requests

from app.storefront.modules.catalog import media
from app.storefront.modules.catalog.media import MediaUploadClient, MediaUploadError, client_from_config


class _Resp:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


@pytest.fixture()
def calls(monkeypatch):
    """Records requests.post calls; tests push the replies they want onto `replies`."""
    record = {"posts": [], "replies": [], "sleeps": []}

    def fake_post(url, data=None, files=None, timeout=None):
        record["posts"].append({"url": url, "data": data, "files": files, "timeout": timeout})
        reply = record["replies"].pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(media.requests, "post", fake_post)
    monkeypatch.setattr(media.time, "sleep", lambda s: record["sleeps"].append(s))
    return record


def _client(**kw):
    return MediaUploadClient(upload_url="https://media.example/upload", upload_preset="storefront", **kw)


def test_upload_returns_secure_url(calls):
    calls["replies"].append(_Resp(200, {"secure_url": "https://cdn.example/img.png"}))
    url = _client(timeout_seconds=5).upload(BytesIO(b"img"), "my photo.png", "image/png")
    assert url == "https://cdn.example/img.png"

    post = calls["posts"][0]
    assert post["url"] == "https://media.example/upload"
    assert post["data"] == {"upload_preset": "storefront"}
    assert post["files"]["file"] == ("my_photo.png", b"img", "image/png")
    assert post["timeout"] == 5
    assert calls["sleeps"] == []


def test_upload_retries_server_errors_and_network_failures(calls):
    calls["replies"].extend(
        [
            _Resp(503),
            requests.ConnectionError("boom"),
            _Resp(200, {"secure_url": "https://cdn.example/ok.png"}),
        ]
    )
    assert _client(retries=2).upload(BytesIO(b"img"), "a.png") == "https://cdn.example/ok.png"
    assert len(calls["posts"]) == 3
    assert calls["sleeps"] == [1, 2]


def test_upload_gives_up_after_retries(calls):
    calls["replies"].extend([_Resp(500), _Resp(502)])
    with pytest.raises(MediaUploadError, match="Upload failed after retries"):
        _client(retries=1).upload(BytesIO(b"img"), "a.png")


def test_client_errors_are_not_retried(calls):
    calls["replies"].append(_Resp(400, text="bad preset"))
    with pytest.raises(MediaUploadError, match="HTTP 400"):
        _client().upload(BytesIO(b"img"), "a.png")
    assert len(calls["posts"]) == 1


def test_reply_without_secure_url(calls):
    calls["replies"].append(_Resp(200, {"url": "http://insecure"}))
    with pytest.raises(MediaUploadError, match="no secure_url"):
        _client().upload(BytesIO(b"img"), "a.png")


def test_unconfigured_and_empty_uploads(calls):
    with pytest.raises(MediaUploadError, match="not configured"):
        client_from_config({}).upload(BytesIO(b"img"), "a.png")
    with pytest.raises(MediaUploadError, match="Empty file"):
        _client().upload(BytesIO(b""), "a.png")
    assert calls["posts"] == []


def test_client_from_config():
    c = client_from_config(
        {"MEDIA_UPLOAD_URL": " https://media.example/upload ", "MEDIA_UPLOAD_PRESET": "p", "MEDIA_UPLOAD_TIMEOUT": 12}
    )
    assert c.upload_url == "https://media.example/upload"
    assert c.upload_preset == "p"
    assert c.timeout_seconds == 12.0
