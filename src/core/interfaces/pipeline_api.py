"""Contrato de la capa de peticiones autenticadas.

Por qué Protocol:
- El motor de jobs y el servicio de descubrimiento dependen de este contrato
  estructural, no de `httpx`.
- Permite sustituir el cliente real por un fake en tests.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class PipelineApi(Protocol):
    """Contrato mínimo de la API de IFC Pipeline.

    Reglas de diseño:
    - Todas las llamadas son asíncronas (I/O HTTP).
    - Cualquier fallo se reporta como `core.errors.ApiError`.
    """

    async def request(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> Any:
        """Envía una petición JSON y devuelve el cuerpo decodificado."""

        ...

    async def download(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> bytes:
        """Igual que `request`, pero devuelve los bytes sin decodificar."""

        ...

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
        """POST multipart con una única parte de fichero."""

        ...
