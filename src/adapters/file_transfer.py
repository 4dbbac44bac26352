"""Transferencia de ficheros con IFC Pipeline.

- Subida: `POST /upload/{tipo}` multipart con una única parte `file`.
- Descarga en dos pasos: `POST /create_download_link` -> token,
  luego `GET /download/{token}` con los bytes tal cual.
- Descarga desde URL al servidor: `POST /download-from-url`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

from core.domain.models import DownloadedFile
from core.errors import RemoteError, RequestValidationError
from core.interfaces.pipeline_api import PipelineApi

logger = logging.getLogger(__name__)

UploadKind = Literal["ifc", "ids", "csv", "other"]

DEFAULT_MIME_TYPE = "application/octet-stream"

_MIME_BY_EXTENSION: dict[str, str] = {
    ".ifc": "application/x-step",
    ".ids": "application/xml",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",
    ".html": "text/html",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def classify_mime_type(file_name: str) -> str:
    """MIME por extensión del nombre de destino (sin distinguir mayúsculas)."""

    lowered = file_name.lower()
    for extension, mime in _MIME_BY_EXTENSION.items():
        if lowered.endswith(extension):
            return mime
    return DEFAULT_MIME_TYPE


def infer_upload_kind(file_name: str) -> UploadKind:
    suffix = Path(file_name).suffix.lower().lstrip(".")
    if suffix in ("ifc", "ids", "csv"):
        return suffix  # type: ignore[return-value]
    return "other"


async def upload_file(
    api: PipelineApi,
    *,
    file_name: str,
    content: bytes,
    kind: UploadKind | None = None,
    content_type: str | None = None,
) -> Any:
    kind = kind or infer_upload_kind(file_name)
    if kind not in ("ifc", "ids", "csv", "other"):
        raise RequestValidationError(f"Unsupported upload type: {kind!r}")

    logger.info("Uploading %s (%d bytes) as %s", file_name, len(content), kind)
    return await api.upload(
        f"/upload/{kind}",
        filename=file_name or "file",
        content=content,
        content_type=content_type or classify_mime_type(file_name),
    )


async def download_file(api: PipelineApi, file_path: str) -> DownloadedFile:
    """Descarga `file_path` del servidor mediante un token de corta duración."""

    if not file_path:
        raise RequestValidationError("file_path is required")

    link = await api.request("POST", "/create_download_link", {"file_path": file_path})
    token = link.get("token") if isinstance(link, dict) else None
    if not token:
        raise RemoteError("Download link response did not include a token")

    data = await api.download("GET", f"/download/{token}")
    file_name = file_path.rstrip("/").rsplit("/", 1)[-1]
    return DownloadedFile(file_name=file_name, mime_type=classify_mime_type(file_name), data=data)


async def download_from_url(api: PipelineApi, url: str) -> Any:
    """Pide al servidor que descargue `url` a su almacenamiento."""

    if not url:
        raise RequestValidationError("url is required")
    return await api.request("POST", "/download-from-url", {"url": url})
