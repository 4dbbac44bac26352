"""Descubrimiento de recursos remotos (ficheros y recetas de IfcPatch).

Responsabilidad:
- Listar ficheros (`GET /list_directories`) aplanando la agrupación por
  directorio y filtrando por extensión.
- Listar recetas (`POST /patch/recipes/list`) con un orden determinista.
- Normalizar todo a `SelectOption` para poblar controles de selección.

Los listados para menús nunca lanzan: ante cualquier fallo devuelven una única
opción centinela.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from pydantic import ValidationError

from core.domain.models import FileDescriptor, RecipeDescriptor, SelectOption
from core.errors import ApiError
from core.interfaces.pipeline_api import PipelineApi

logger = logging.getLogger(__name__)

LIST_DIRECTORIES_PATH = "/list_directories"
LIST_RECIPES_PATH = "/patch/recipes/list"

FILES_LOAD_FAILED = "Failed to load files"
RECIPES_LOAD_FAILED = "Failed to load recipes"

# Claves que agrupan entradas sin aportar un segmento de ruta.
_CONTAINER_KEYS = frozenset(
    {
        "files",
        "items",
        "entries",
        "children",
        "contents",
        "directories",
        "subdirectories",
        "directory_structure",
    }
)
_PATH_KEYS = ("path", "file_path", "filepath")


def _join(prefix: str, name: str) -> str:
    if not prefix or name.startswith("/") or "://" in name:
        return name
    return f"{prefix.rstrip('/')}/{name.lstrip('/')}"


def _iter_paths(node: Any, prefix: str = "") -> Iterator[str]:
    if isinstance(node, str):
        if node.strip():
            yield _join(prefix, node.strip())
        return

    if isinstance(node, list):
        for item in node:
            yield from _iter_paths(item, prefix)
        return

    if not isinstance(node, dict):
        return

    for key in _PATH_KEYS:
        value = node.get(key)
        if isinstance(value, str) and value.strip():
            yield _join(prefix, value.strip())
            return

    name = node.get("name")
    if isinstance(name, str) and name.strip():
        if not any(k in node for k in _CONTAINER_KEYS):
            yield _join(prefix, name.strip())
            return
        # Directorio con nombre: sus hijos cuelgan de él.
        prefix = _join(prefix, name.strip())

    for key, value in node.items():
        if key in _CONTAINER_KEYS:
            yield from _iter_paths(value, prefix)
        elif key == "name":
            continue
        elif isinstance(value, (list, dict)):
            yield from _iter_paths(value, _join(prefix, str(key)))


def flatten_listing(payload: Any) -> list[FileDescriptor]:
    """Aplana un listado de directorios en una secuencia de ficheros (orden de origen)."""

    return [FileDescriptor.from_path(path) for path in _iter_paths(payload)]


def normalize_extensions(extensions: Iterable[str] | None) -> frozenset[str]:
    out: set[str] = set()
    for ext in extensions or ():
        ext = ext.strip().lower()
        if not ext:
            continue
        out.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(out)


async def list_files(api: PipelineApi, extensions: Iterable[str] | None = None) -> list[SelectOption]:
    """Opciones `{value, label}` para los ficheros con alguna de las extensiones.

    Un filtro vacío acepta todo. Nunca lanza: ante fallo devuelve un centinela.
    """

    accepted = normalize_extensions(extensions)
    try:
        payload = await api.request("GET", LIST_DIRECTORIES_PATH)
    except ApiError as exc:
        logger.warning("File listing failed: %s", exc)
        return [SelectOption(value="", label=FILES_LOAD_FAILED, description=str(exc))]

    return [
        SelectOption(value=descriptor.path, label=descriptor.path)
        for descriptor in flatten_listing(payload)
        if descriptor.matches(accepted)
    ]


def _recipe_items(payload: Any) -> list[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("recipes", "items", "data"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise ValueError("Unexpected recipe listing payload")


def parse_recipes(payload: Any) -> list[RecipeDescriptor]:
    recipes: list[RecipeDescriptor] = []
    for item in _recipe_items(payload):
        if isinstance(item, str):
            recipes.append(RecipeDescriptor(name=item))
            continue
        if not isinstance(item, dict):
            continue
        try:
            recipes.append(RecipeDescriptor.model_validate(item))
        except ValidationError:
            logger.debug("Skipping malformed recipe entry: %r", item)
            continue
    return recipes


async def fetch_recipes(
    api: PipelineApi,
    *,
    include_builtin: bool = True,
    include_custom: bool = True,
) -> list[RecipeDescriptor]:
    """Descriptores de recetas tal como los devuelve el servidor. Sí lanza `ApiError`."""

    payload = await api.request(
        "POST",
        LIST_RECIPES_PATH,
        {"include_builtin": include_builtin, "include_custom": include_custom},
    )
    try:
        return parse_recipes(payload)
    except ValueError as exc:
        raise ApiError("Malformed recipe listing response", cause=exc) from exc


def sort_recipes(recipes: Iterable[RecipeDescriptor]) -> list[RecipeDescriptor]:
    """Built-ins primero y luego custom; cada grupo por nombre sin mayúsculas (estable)."""

    return sorted(recipes, key=lambda r: (r.is_custom, r.name.casefold()))


def recipe_option(recipe: RecipeDescriptor, *, show_parameter_count: bool = False) -> SelectOption:
    label = recipe.name
    if recipe.is_custom:
        label += " [Custom]"
    if show_parameter_count and recipe.parameters:
        count = len(recipe.parameters)
        label += f" ({count} param{'s' if count != 1 else ''})"
    return SelectOption(value=recipe.name, label=label, description=recipe.description or None)


async def list_recipes(api: PipelineApi, *, show_parameter_count: bool = False) -> list[SelectOption]:
    """Opciones de recetas built-in + custom. Nunca lanza."""

    try:
        recipes = await fetch_recipes(api)
    except ApiError as exc:
        logger.warning("Recipe listing failed: %s", exc)
        return [SelectOption(value="", label=RECIPES_LOAD_FAILED, description=str(exc))]

    return [recipe_option(r, show_parameter_count=show_parameter_count) for r in sort_recipes(recipes)]


class RecipeCatalog:
    """Metadatos de recetas cacheados durante una operación lógica.

    Se consulta una sola vez (perezosamente) y se reutiliza para todos los
    items de un batch. `invalidate()` fuerza una nueva consulta.
    """

    def __init__(self, api: PipelineApi) -> None:
        self._api = api
        self._recipes: dict[str, RecipeDescriptor] | None = None

    async def _load(self) -> dict[str, RecipeDescriptor]:
        if self._recipes is None:
            recipes = await fetch_recipes(self._api)
            self._recipes = {r.name: r for r in recipes}
        return self._recipes

    async def get(self, name: str) -> RecipeDescriptor | None:
        return (await self._load()).get(name)

    async def is_custom(self, name: str) -> bool:
        """`True` si la receta es custom; `False` si no se pueden obtener metadatos."""

        try:
            recipe = await self.get(name)
        except ApiError as exc:
            logger.warning("Recipe metadata unavailable, assuming built-in %r: %s", name, exc)
            return False
        return bool(recipe and recipe.is_custom)

    def invalidate(self) -> None:
        self._recipes = None
