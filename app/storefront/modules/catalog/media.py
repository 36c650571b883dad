from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, BinaryIO

import requests
from werkzeug.utils import secure_filename


class MediaUploadError(RuntimeError):
    pass


@dataclass(frozen=True)
class MediaUploadClient:
    """
    Unsigned uploads to a Cloudinary-style image host.

    POST multipart `file` + `upload_preset` to `upload_url`; the JSON reply
    carries the public `secure_url`.
    """

    upload_url: str
    upload_preset: str
    timeout_seconds: float = 30
    retries: int = 2

    def upload(self, stream: BinaryIO, filename: str, content_type: str | None = None) -> str:
        if not self.upload_url or not self.upload_preset:
            raise MediaUploadError("Media upload is not configured (MEDIA_UPLOAD_URL / MEDIA_UPLOAD_PRESET).")
        data = stream.read()
        if not data:
            raise MediaUploadError(f"Empty file: {filename}")
        name = secure_filename(filename) or "image"

        last_err: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                resp = requests.post(
                    self.upload_url,
                    data={"upload_preset": self.upload_preset},
                    files={"file": (name, data, content_type or "application/octet-stream")},
                    timeout=self.timeout_seconds,
                )
            except requests.RequestException as e:
                last_err = e
                time.sleep(min(1 * (attempt + 1), 3))
                continue
            if resp.status_code >= 500:
                last_err = MediaUploadError(f"HTTP {resp.status_code} from media host")
                time.sleep(min(1 * (attempt + 1), 3))
                continue
            return self._secure_url(resp)
        raise MediaUploadError(f"Upload failed after retries: {last_err}")

    @staticmethod
    def _secure_url(resp: requests.Response) -> str:
        if not resp.ok:
            raise MediaUploadError(f"HTTP {resp.status_code} from media host: {resp.text[:300]}")
        try:
            body: dict[str, Any] = resp.json()
        except ValueError as e:
            raise MediaUploadError("Invalid JSON from media host") from e
        url = body.get("secure_url") if isinstance(body, dict) else None
        if not url:
            raise MediaUploadError("Media host reply has no secure_url")
        return str(url)


def client_from_config(config: dict) -> MediaUploadClient:
    return MediaUploadClient(
        upload_url=(config.get("MEDIA_UPLOAD_URL") or "").strip(),
        upload_preset=(config.get("MEDIA_UPLOAD_PRESET") or "").strip(),
        timeout_seconds=float(config.get("MEDIA_UPLOAD_TIMEOUT") or 30),
    )


def upload_image(config: dict, file_storage) -> str:
    """Upload one werkzeug FileStorage; returns its public URL."""
    return client_from_config(config).upload(file_storage.stream, file_storage.filename or "image", file_storage.mimetype)


def upload_images(config: dict, files) -> list[str]:
    client = client_from_config(config)
    urls = []
    for f in files:
        if not f or not f.filename:
            continue
        urls.append(client.upload(f.stream, f.filename, f.mimetype))
    return urls
