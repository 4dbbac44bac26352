"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Los adaptadores HTTP leen timeouts/credenciales de un único contrato.

La credencial (base URL + API key) pertenece al host: aquí solo se lee, nunca
se persiste.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.models import Credential, PollingPolicy
from core.errors import RequestValidationError


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "ifcpipe"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "ifcpipe"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "ifcpipe"
    return Path.home() / ".config" / "ifcpipe"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


class AppSettings(BaseSettings):
    """Configuración central de la aplicación."""

    model_config = SettingsConfigDict(
        env_prefix="IFCPIPE_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    base_url: str = Field(
        default="http://api-gateway",
        min_length=1,
        description="Base URL de la instancia de IFC Pipeline (con o sin '/' final).",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key enviada en la cabecera X-API-Key.",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request JSON (segundos).",
    )
    download_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Timeout para descargas/subidas binarias (segundos).",
    )
    user_agent: str = Field(
        default="ifcpipe-client/0.1",
        min_length=1,
        description="User-Agent de las peticiones.",
    )

    poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Intervalo por defecto entre consultas de estado de un job.",
    )
    poll_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Presupuesto máximo por defecto para esperar un job.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging para la CLI (DEBUG, INFO, WARNING...).",
    )

    def credential(self) -> Credential:
        """Construye la `Credential` inmutable a partir de la configuración."""

        if self.api_key is None or not self.api_key.get_secret_value():
            raise RequestValidationError(
                "No API key configured (set IFCPIPE_API_KEY or pass --api-key)."
            )
        return Credential(base_url=self.base_url, api_key=self.api_key)

    def polling_policy(
        self,
        *,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ) -> PollingPolicy:
        return PollingPolicy(
            interval_seconds=interval_seconds or self.poll_interval_seconds,
            timeout_seconds=timeout_seconds or self.poll_timeout_seconds,
        )
