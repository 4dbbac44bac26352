"""Exportación JSON de resultados.

Por qué JSON:
- Interoperabilidad con el host/otras herramientas del pipeline.
- Permite guardar el resultado de un job sin depender de la salida Rich.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def export_results_json(*, results: Any, output_path: Path) -> Path:
    """Exporta resultados a JSON UTF-8 con formato estable."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(results, ensure_ascii=False, indent=2, sort_keys=True, default=str) + "\n",
        encoding="utf-8",
    )
    return output_path
