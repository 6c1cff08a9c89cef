"""Fuentes de media para subidas (base64, disco local, URL remota).

Reglas:
- Todo origen está acotado por `STRAPI_MAX_UPLOAD_SIZE`.
- Desde disco solo se leen ficheros dentro de `STRAPI_ALLOWED_UPLOAD_DIRS`
  (vacío = deshabilitado).
- Las descargas remotas usan `STRAPI_UPLOAD_TIMEOUT_SECONDS`.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence
from urllib.parse import unquote, urlparse

import httpx

from adapters.http_client import describe_http_error
from core.config import AppSettings
from core.errors import InvalidRequest, UpstreamUnavailable

DEFAULT_MIME = "application/octet-stream"


@dataclass
class MediaFile:
    name: str
    content: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    def as_multipart(self) -> list[tuple[str, tuple[str, bytes, str]]]:
        return [("files", (self.name, self.content, self.mime_type))]


def _guess_mime(name: str, declared: str | None = None) -> str:
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_MIME


def _check_size(size: int, max_size: int, label: str) -> None:
    if size > max_size:
        raise InvalidRequest(f"{label} is {size} bytes, above the {max_size} byte upload limit")


def from_base64(
    data: str,
    file_name: str,
    mime_type: str | None,
    *,
    max_size: int,
) -> MediaFile:
    payload = data.strip()
    # Acepta data URIs (`data:image/png;base64,....`).
    if payload.startswith("data:") and "," in payload:
        header, payload = payload.split(",", 1)
        if not mime_type and ";" in header:
            mime_type = header[5:].split(";", 1)[0] or None
    if not payload:
        raise InvalidRequest("file_data is empty")
    _check_size(len(payload.rstrip("=")) * 3 // 4, max_size, "Decoded file")
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidRequest("file_data is not valid base64") from exc
    _check_size(len(content), max_size, "Decoded file")
    return MediaFile(name=file_name, content=content, mime_type=_guess_mime(file_name, mime_type))


def from_path(
    path: str | Path,
    *,
    allowed_dirs: Sequence[Path],
    max_size: int,
    file_name: str | None = None,
    mime_type: str | None = None,
) -> MediaFile:
    if not allowed_dirs:
        raise InvalidRequest("Uploads from disk are disabled; set STRAPI_ALLOWED_UPLOAD_DIRS")
    resolved = Path(path).expanduser().resolve()
    if not any(resolved.is_relative_to(base) for base in allowed_dirs):
        raise InvalidRequest(f"{resolved} is outside the allowed upload directories")
    if not resolved.is_file():
        raise InvalidRequest(f"{resolved} does not exist or is not a file")
    _check_size(resolved.stat().st_size, max_size, str(resolved))
    name = file_name or resolved.name
    return MediaFile(
        name=name,
        content=resolved.read_bytes(),
        mime_type=_guess_mime(name, mime_type),
    )


async def from_url(
    url: str,
    *,
    settings: AppSettings,
    file_name: str | None = None,
    mime_type: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> MediaFile:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidRequest(f"Only http(s) URLs can be uploaded: {url}")

    name = file_name or unquote(Path(parsed.path).name) or "download"
    owns_client = client is None
    client = client or httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upload_timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    )
    chunks: list[bytes] = []
    received = 0
    try:
        async with client.stream("GET", url) as response:
            if response.status_code >= 400:
                raise InvalidRequest(f"Could not download {url}: HTTP {response.status_code}")
            declared = response.headers.get("content-length")
            if declared and declared.isdigit():
                _check_size(int(declared), settings.max_upload_size, url)
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                _check_size(received, settings.max_upload_size, url)
                chunks.append(chunk)
            header_mime = response.headers.get("content-type", "").split(";", 1)[0].strip()
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(f"Could not download {url}: {describe_http_error(exc)}") from exc
    finally:
        if owns_client:
            await client.aclose()

    return MediaFile(
        name=name,
        content=b"".join(chunks),
        mime_type=_guess_mime(name, mime_type or header_mime or None),
    )
