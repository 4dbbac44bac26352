"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta en el borde (respuestas heterogéneas del servicio remoto).
- Documentación autocontenida (Field) sin acoplar el Core a librerías de I/O.

Nota:
- Todas las entidades son transitorias: se reconstruyen en cada llamada.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic.config import ConfigDict


class Credential(BaseModel):
    """Credencial del host: base URL + API key. Inmutable."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(
        ...,
        min_length=1,
        description="Base URL de la API (se toleran '/' finales).",
    )
    api_key: SecretStr = Field(
        ...,
        description="API key (cabecera X-API-Key). Nunca se imprime.",
    )

    def url_for(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


class ApiRequest(BaseModel):
    """Petición efímera. Una por llamada; nunca se reintenta."""

    model_config = ConfigDict(frozen=True)

    method: str = Field(default="GET")
    path: str = Field(..., min_length=1)
    body: dict[str, Any] | None = None
    query: dict[str, Any] | None = None


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)

    @classmethod
    def from_remote(cls, value: object) -> "JobStatus":
        """Normaliza los estados del worker remoto (estilo RQ) al enum."""

        raw = str(value or "").strip().lower()
        if raw in _PENDING_STATUSES:
            return cls.PENDING
        if raw in _SUCCEEDED_STATUSES:
            return cls.SUCCEEDED
        if raw in _FAILED_STATUSES:
            return cls.FAILED
        # started / running / desconocido
        return cls.RUNNING


_PENDING_STATUSES = frozenset({"pending", "queued", "deferred", "scheduled"})
_SUCCEEDED_STATUSES = frozenset({"succeeded", "finished", "completed", "success", "done"})
_FAILED_STATUSES = frozenset({"failed", "error", "stopped", "canceled", "cancelled"})


class Job(BaseModel):
    """Unidad de trabajo remota observada por el cliente."""

    id: str = Field(..., min_length=1)
    status: JobStatus = Field(default=JobStatus.PENDING)
    result: Any = None
    error: str | None = None

    @classmethod
    def from_payload(cls, job_id: str, payload: object) -> "Job":
        data = payload if isinstance(payload, dict) else {}
        error = data.get("error") or data.get("exc_info")
        return cls(
            id=str(data.get("job_id") or data.get("id") or job_id),
            status=JobStatus.from_remote(data.get("status")),
            result=data.get("result"),
            error=str(error) if error else None,
        )


class PollingPolicy(BaseModel):
    """Presupuesto de polling de una invocación."""

    model_config = ConfigDict(frozen=True)

    interval_seconds: float = Field(default=2.0, gt=0)
    timeout_seconds: float = Field(default=300.0, gt=0)


class RunState(str, Enum):
    INLINE = "inline"
    SUBMITTED = "submitted"
    SUCCEEDED = "succeeded"


class JobRun(BaseModel):
    """Resultado client-side de `JobRunner.run_job`."""

    state: RunState
    job_id: str | None = None
    response: Any = None
    job: Job | None = None

    @property
    def result(self) -> Any:
        if self.job is not None:
            return self.job.result
        return self.response

    def to_output(self) -> dict[str, Any]:
        """Representación JSON-friendly para exportar o imprimir."""

        if self.state is RunState.SUCCEEDED and self.job is not None:
            return {
                "job_id": self.job.id,
                "status": self.job.status.value,
                "result": self.job.result,
            }
        if isinstance(self.response, dict):
            return dict(self.response)
        return {"result": self.response}


class FileDescriptor(BaseModel):
    path: str = Field(..., min_length=1)
    extension: str = Field(default="")

    @classmethod
    def from_path(cls, path: str) -> "FileDescriptor":
        name = path.rsplit("/", 1)[-1]
        extension = f".{name.rsplit('.', 1)[-1].lower()}" if "." in name else ""
        return cls(path=path, extension=extension)

    def matches(self, extensions: set[str] | frozenset[str]) -> bool:
        if not extensions:
            return True
        lowered = self.path.lower()
        return any(lowered.endswith(ext.lower()) for ext in extensions)


class RecipeParameter(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    type: str = Field(default="str")
    description: str = Field(default="")
    required: bool | None = None
    default: Any = None


class RecipeDescriptor(BaseModel):
    """Receta de IfcPatch (built-in o custom)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    description: str = Field(default="")
    is_custom: bool = Field(default=False, alias="isCustom")
    parameters: list[RecipeParameter] | None = None

    @field_validator("parameters", mode="before")
    @classmethod
    def _coerce_parameters(cls, value: Any) -> Any:
        """Acepta nombres sueltos y descarta entradas sin nombre."""

        if not isinstance(value, list):
            return value
        out: list[Any] = []
        for item in value:
            if isinstance(item, RecipeParameter):
                out.append(item)
            elif isinstance(item, str) and item.strip():
                out.append({"name": item.strip()})
            elif isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"].strip():
                out.append(item)
        return out


class SelectOption(BaseModel):
    """Opción uniforme para poblar controles de selección."""

    value: str
    label: str
    description: str | None = None


class DownloadedFile(BaseModel):
    file_name: str
    mime_type: str
    data: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)
