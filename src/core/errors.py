"""Taxonomía de errores del cliente.

- `TransportError` / `RemoteError` llegan al llamador como `ApiError`.
- `JobFailedError` es el fallo explícito reportado por un job remoto.
- `JobTimeoutError` es distinto de un fallo: el job puede seguir ejecutándose.
- `RequestValidationError` se lanza antes de hacer ninguna llamada.

Ningún mensaje incluye la API key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.domain.models import Job, JobStatus


class IfcPipelineError(Exception):
    """Raíz de todos los errores del paquete."""


class ApiError(IfcPipelineError):
    """Fallo de la capa de peticiones autenticadas."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.cause = cause

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


class TransportError(ApiError):
    """Error de red/conexión (no hubo respuesta HTTP)."""


class RemoteError(ApiError):
    """Respuesta no exitosa del servicio remoto."""


class JobFailedError(RemoteError):
    """El job remoto terminó en estado `failed`."""

    def __init__(self, job: Job) -> None:
        super().__init__(job.error or f"Job {job.id} failed")
        self.job = job


class JobTimeoutError(IfcPipelineError, TimeoutError):
    """Se agotó el presupuesto de polling sin estado terminal."""

    def __init__(
        self,
        job_id: str,
        *,
        elapsed_seconds: float,
        last_status: JobStatus | None = None,
    ) -> None:
        status = last_status.value if last_status is not None else "unknown"
        super().__init__(
            f"Job {job_id} did not finish within {elapsed_seconds:.1f}s "
            f"(last status: {status}); it may still be running remotely"
        )
        self.job_id = job_id
        self.elapsed_seconds = elapsed_seconds
        self.last_status = last_status


class RequestValidationError(IfcPipelineError, ValueError):
    """Parámetros inválidos o ausentes antes de llamar a la API."""
