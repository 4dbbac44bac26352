"""Carga de ficheros batch (JSON).

Formatos soportados:
- Lista: [{"operation": "convert", "parameters": {...}}, ...]
- Objeto: {"continue_on_error": true, "operations": [...]}
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from core.domain.operations import BatchFile
from core.errors import RequestValidationError


def load_batch_file(path: Path) -> BatchFile:
    raw = path.read_text(encoding="utf-8")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RequestValidationError(f"{path}: invalid JSON ({exc.msg} at line {exc.lineno})") from exc

    if isinstance(data, list):
        data = {"operations": data}
    try:
        return BatchFile.model_validate(data)
    except ValidationError as exc:
        raise RequestValidationError(f"{path}: invalid batch file: {exc.error_count()} error(s)\n{exc}") from exc
