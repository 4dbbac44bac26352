"""Wrapper de httpx para la API de IFC Pipeline.

Por qué un wrapper:
- Estandariza timeouts, headers (X-API-Key) y la normalización de errores.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.

Política:
- Sin reintentos: cualquier fallo de red o status no-2xx se convierte en
  `ApiError` y se devuelve al llamador inmediatamente.
- La API key nunca aparece en logs ni en mensajes de error.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

import httpx

from core.config import AppSettings
from core.domain.models import ApiRequest, Credential
from core.errors import RemoteError, TransportError

logger = logging.getLogger(__name__)

_ERROR_PREVIEW = 300

# InvalidURL y StreamError no heredan de httpx.HTTPError.
_TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError)


def build_async_client(
    credential: Credential,
    settings: AppSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` autenticado con defaults seguros."""

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
        "X-API-Key": credential.api_key.get_secret_value(),
    }
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def _compact(mapping: Mapping[str, Any] | None) -> dict[str, Any] | None:
    # Un body/query vacío se omite: el servidor aplica su comportamiento por defecto.
    if not mapping:
        return None
    return dict(mapping)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("detail", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()[:_ERROR_PREVIEW]
            if value:
                return json.dumps(value, ensure_ascii=False)[:_ERROR_PREVIEW]

    text = response.text.strip()
    if text:
        return text[:_ERROR_PREVIEW]
    return response.reason_phrase or "Request failed"


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class IfcPipelineClient:
    """Capa de peticiones autenticadas (implementa `PipelineApi`).

    Uso:

        async with IfcPipelineClient(credential) as api:
            files = await api.request("GET", "/list_directories")
    """

    def __init__(
        self,
        credential: Credential,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credential = credential
        self._settings = settings or AppSettings()
        self._client = build_async_client(credential, self._settings, transport=transport)

    async def __aenter__(self) -> "IfcPipelineClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        api_request: ApiRequest,
        *,
        files: dict[str, tuple[str, bytes, str]] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        url = self._credential.url_for(api_request.path)
        kwargs: dict[str, Any] = {}
        if api_request.body is not None:
            kwargs["json"] = api_request.body
        if api_request.query is not None:
            kwargs["params"] = api_request.query
        if files is not None:
            kwargs["files"] = files
        if timeout is not None:
            kwargs["timeout"] = httpx.Timeout(timeout)

        try:
            response = await self._client.request(api_request.method, url, **kwargs)
        except _TRANSPORT_ERRORS as exc:
            logger.error("HTTP %s %s failed: %s", api_request.method, api_request.path, exc.__class__.__name__)
            raise TransportError(
                f"{api_request.method} {api_request.path} failed: {exc.__class__.__name__}",
                cause=exc,
            ) from exc

        logger.debug("HTTP %s %s -> %s", api_request.method, api_request.path, response.status_code)
        if response.is_success:
            return response

        message = _error_message(response)
        logger.error("HTTP %s %s -> %s: %s", api_request.method, api_request.path, response.status_code, message)
        raise RemoteError(message, status_code=response.status_code)

    async def request(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> Any:
        api_request = ApiRequest(method=method.upper(), path=path, body=_compact(body), query=_compact(query))
        response = await self._send(api_request)
        return _decode_body(response)

    async def download(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> bytes:
        api_request = ApiRequest(method=method.upper(), path=path, body=_compact(body), query=_compact(query))
        response = await self._send(api_request, timeout=self._settings.download_timeout_seconds)
        return response.content

    async def upload(
        self,
        path: str,
        *,
        filename: str,
        content: bytes,
        content_type: str,
        field_name: str = "file",
        query: Mapping[str, Any] | None = None,
    ) -> Any:
        api_request = ApiRequest(method="POST", path=path, query=_compact(query))
        response = await self._send(
            api_request,
            files={field_name: (filename, content, content_type)},
            timeout=self._settings.download_timeout_seconds,
        )
        return _decode_body(response)

    async def health(self) -> Any:
        return await self.request("GET", "/health")
