"""
Schemas de metadata pluggables.

Un schema es un valor (no una clase a heredar): nombre, versión y una lista
de `FieldDef`. Cada campo declara un `FieldKind` (chequeo estructural) y,
opcionalmente, un validador custom con la firma:

    validate(value, config) -> None | str

`None` significa aceptado; un string es el motivo del rechazo, legible por
humanos. Los validadores son funciones puras: no deben tener efectos.

Los schemas son *cerrados*: un campo no declarado se rechaza siempre, a
cualquier nivel de anidamiento, salvo que el schema se registre con
`allow_additional=True`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..errors import DuplicateSchema, SchemaValidationError, UnknownSchema

logger = logging.getLogger(__name__)

Validator = Callable[[Any, Dict[str, Any]], Optional[str]]


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATETIME = "datetime"
    REFERENCE = "reference"
    BOOLEAN = "boolean"
    LIST = "list"
    OBJECT = "object"
    TASKS = "tasks"


# Tipo indexable que el colaborador de búsqueda debe declarar por cada kind.
INDEX_TYPES: Dict[FieldKind, str] = {
    FieldKind.TEXT: "text",
    FieldKind.NUMBER: "float",
    FieldKind.DATETIME: "date",
    FieldKind.REFERENCE: "keyword",
    FieldKind.BOOLEAN: "boolean",
    FieldKind.LIST: "keyword",
    FieldKind.OBJECT: "object",
    FieldKind.TASKS: "object",
}


@dataclass(frozen=True)
class FieldDef:
    """
    Definición de un campo de metadata.

    Attributes:
        name: nombre del campo dentro del registro.
        kind: chequeo estructural a aplicar.
        required: si el campo debe estar presente (y no ser None).
        config: configuración que recibe el validador (ej: {"max": 140}).
            La clave "index" permite forzar el tipo indexable ("keyword",
            "integer", ...) en lugar del default del kind.
        validator: validador custom; puede ser una función o el nombre de
            uno de los validadores de `VALIDATORS`.
        fields: subcampos para `FieldKind.OBJECT` (también cerrados).
    """

    name: str
    kind: FieldKind
    required: bool = False
    config: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    validator: Validator | str | None = field(default=None, hash=False, compare=False)
    fields: Tuple["FieldDef", ...] = ()

    def resolve_validator(self) -> Optional[Validator]:
        if self.validator is None or callable(self.validator):
            return self.validator
        try:
            return VALIDATORS[self.validator]
        except KeyError:
            raise ValueError(f"Validador desconocido: '{self.validator}'") from None


@dataclass(frozen=True)
class MetadataSchema:
    name: str
    version: int
    fields: Tuple[FieldDef, ...]
    allow_additional: bool = False

    def get_field(self, name: str) -> Optional[FieldDef]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def validate(self, value: Any) -> Dict[str, Any]:
        """
        Valida un registro completo y devuelve su versión normalizada.

        Raises:
            SchemaValidationError: en el primer campo que falla.
        """
        return _validate_object(self.fields, value, self.allow_additional, prefix="")

    def index_mapping(self) -> Dict[str, Any]:
        """
        Tipo indexable por campo, para el store de búsqueda.

        Todo campo declarado tiene que tener su contraparte indexable
        antes de usarse.
        """
        return _mapping(self.fields)


def _mapping(fields: Tuple[FieldDef, ...]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields:
        if f.kind is FieldKind.OBJECT and f.fields:
            out[f.name] = {"type": "object", "properties": _mapping(f.fields)}
        else:
            out[f.name] = f.config.get("index", INDEX_TYPES[f.kind])
    return out


# ============================================================
# Chequeos estructurales
# ============================================================

def _validate_object(
    fields: Tuple[FieldDef, ...],
    value: Any,
    allow_additional: bool,
    prefix: str,
) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaValidationError(prefix.rstrip(".") or "<record>", "se esperaba un objeto")

    declared = {f.name: f for f in fields}
    for key in value:
        if key not in declared and not allow_additional:
            raise SchemaValidationError(f"{prefix}{key}", "campo no declarado en el schema")

    out: Dict[str, Any] = {}
    for f in fields:
        path = f"{prefix}{f.name}"
        raw = value.get(f.name)
        if raw is None:
            if f.required:
                raise SchemaValidationError(path, "campo requerido")
            continue

        normalized = _check_kind(f, raw, path)
        validator = f.resolve_validator()
        if validator is not None:
            reason = validator(normalized, f.config)
            if reason:
                raise SchemaValidationError(path, reason)
        out[f.name] = normalized

    if allow_additional:
        for key, extra in value.items():
            if key not in declared and extra is not None:
                out[key] = extra
    return out


def _check_kind(f: FieldDef, value: Any, path: str) -> Any:
    kind = f.kind
    if kind is FieldKind.TEXT:
        if not isinstance(value, str):
            raise SchemaValidationError(path, "se esperaba texto")
        return value

    if kind is FieldKind.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise SchemaValidationError(path, "se esperaba un número")
        return value

    if kind is FieldKind.BOOLEAN:
        if not isinstance(value, bool):
            raise SchemaValidationError(path, "se esperaba un booleano")
        return value

    if kind is FieldKind.DATETIME:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, str):
            try:
                datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                raise SchemaValidationError(path, "fecha no es ISO-8601") from None
            return value
        raise SchemaValidationError(path, "se esperaba una fecha")

    if kind is FieldKind.REFERENCE:
        if isinstance(value, str) and value:
            return {"id": value}
        if isinstance(value, dict) and isinstance(value.get("id"), str) and value["id"]:
            extra = set(value) - {"id", "type"}
            if extra:
                raise SchemaValidationError(f"{path}.{sorted(extra)[0]}", "campo no declarado en el schema")
            if "type" in value and not isinstance(value["type"], str):
                raise SchemaValidationError(f"{path}.type", "se esperaba texto")
            return dict(value)
        raise SchemaValidationError(path, "se esperaba una referencia {id, type}")

    if kind is FieldKind.LIST:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise SchemaValidationError(path, "se esperaba una lista de textos")
        return list(value)

    if kind is FieldKind.OBJECT:
        return _validate_object(f.fields, value, False, prefix=f"{path}.")

    if kind is FieldKind.TASKS:
        return _check_tasks(value, path)

    raise SchemaValidationError(path, f"kind no soportado: {kind}")


def _check_tasks(value: Any, path: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaValidationError(path, "se esperaba un objeto de tareas")
    out: Dict[str, Any] = {}
    for task_name, task in value.items():
        task_path = f"{path}.{task_name}"
        if not isinstance(task, dict):
            raise SchemaValidationError(task_path, "se esperaba un objeto")
        extra = set(task) - {"state_index"}
        if extra:
            raise SchemaValidationError(f"{task_path}.{sorted(extra)[0]}", "campo no declarado en el schema")
        index = task.get("state_index")
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise SchemaValidationError(f"{task_path}.state_index", "se esperaba un entero >= 0")
        out[task_name] = {"state_index": index}
    return out


# ============================================================
# Validadores predefinidos
# ============================================================

def _max_length(value: Any, config: Dict[str, Any]) -> Optional[str]:
    limit = config.get("max_length")
    if limit is not None and len(value) > limit:
        return f"supera el largo máximo de {limit}"
    return None


def _min_max(value: Any, config: Dict[str, Any]) -> Optional[str]:
    lo, hi = config.get("min"), config.get("max")
    if lo is not None and value < lo:
        return f"debe ser >= {lo}"
    if hi is not None and value > hi:
        return f"debe ser <= {hi}"
    return None


def _one_of(value: Any, config: Dict[str, Any]) -> Optional[str]:
    allowed = config.get("values", [])
    if value not in allowed:
        return f"valor '{value}' no permitido (opciones: {', '.join(map(str, allowed))})"
    return None


def _not_empty(value: Any, config: Dict[str, Any]) -> Optional[str]:
    if isinstance(value, str) and not value.strip():
        return "no puede estar vacío"
    if isinstance(value, (list, dict)) and not value:
        return "no puede estar vacío"
    return None


def _pattern(value: Any, config: Dict[str, Any]) -> Optional[str]:
    regex = config.get("pattern", "")
    if not re.fullmatch(regex, value):
        return f"no cumple el patrón {regex}"
    return None


VALIDATORS: Dict[str, Validator] = {
    "max_length": _max_length,
    "min_max": _min_max,
    "one_of": _one_of,
    "not_empty": _not_empty,
    "pattern": _pattern,
}


# ============================================================
# Registro
# ============================================================

class SchemaRegistry:
    """
    Registro de proceso de schemas de metadata, keyed por nombre.

    Se llena al arrancar (config del deployment) y se congela.
    """

    def __init__(self) -> None:
        self._schemas: Dict[str, MetadataSchema] = {}
        self._frozen = False

    def register_schema(
        self,
        name: str,
        fields: List[FieldDef] | Tuple[FieldDef, ...],
        version: int = 1,
        allow_additional: bool = False,
    ) -> MetadataSchema:
        if self._frozen:
            raise RuntimeError("El registro de schemas está congelado")
        if name in self._schemas:
            raise DuplicateSchema(name)
        for f in fields:
            f.resolve_validator()
        schema = MetadataSchema(
            name=name,
            version=version,
            fields=tuple(fields),
            allow_additional=allow_additional,
        )
        self._schemas[name] = schema
        logger.info("Schema de metadata registrado: %s (v%s, %d campos)", name, version, len(fields))
        return schema

    def get(self, name: str) -> MetadataSchema:
        try:
            return self._schemas[name]
        except KeyError:
            raise UnknownSchema(name) from None

    def names(self) -> List[str]:
        return list(self._schemas)

    def freeze(self) -> None:
        self._frozen = True
