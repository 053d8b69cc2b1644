"""
Transformaciones de importación (registro de plugins).

Una transformación es un *registro con nombre*, no una subclase: dice qué
tipo de componente y qué directivas usar para cada parte de un artículo
externo. El pipeline (`pipeline.py`) es el único que la ejecuta.

También vive acá la extracción de metadata del proveedor, que es igual
para todas las transformaciones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import DuplicateTransformation, UnknownTransformation
from .metadata.schema import FieldDef, FieldKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transformation:
    """
    Mapeo artículo → componentes.

    Attributes:
        name: identificador (ej: "agency").
        header_type / title_directive: componente y directiva del titular.
        paragraph_type / text_directive: componente y directiva de cada bloque.
        image_type / image_directive: componente y directiva de cada asset.
        caption_directive: directiva opcional para el epígrafe del asset.
    """

    name: str
    header_type: str
    title_directive: str
    paragraph_type: str
    text_directive: str
    image_type: str
    image_directive: str
    caption_directive: Optional[str] = None


class TransformationRegistry:
    def __init__(self) -> None:
        self._items: Dict[str, Transformation] = {}

    def register(self, transformation: Transformation) -> Transformation:
        if transformation.name in self._items:
            raise DuplicateTransformation(transformation.name)
        self._items[transformation.name] = transformation
        logger.info("Transformación registrada: %s", transformation.name)
        return transformation

    def get(self, name: str) -> Transformation:
        try:
            return self._items[name]
        except KeyError:
            raise UnknownTransformation(name) from None

    def names(self) -> List[str]:
        return list(self._items)


# Transformación por defecto para el design `basic` (designs.BASIC_V1)
AGENCY = Transformation(
    name="agency",
    header_type="head",
    title_directive="title",
    paragraph_type="p",
    text_directive="text",
    image_type="image",
    image_directive="image",
    caption_directive="caption",
)


# ============================================================
# Metadata del proveedor
# ============================================================

PROVIDER_FIELDS = ("id", "category", "urgency", "source", "timestamp", "service", "keywords")

# Schema que acompaña a la metadata extraída; se registra con el namespace
# configurado (`Settings.import_namespace`).
PROVIDER_SCHEMA_FIELDS = (
    FieldDef("id", FieldKind.TEXT, required=True, validator="not_empty", config={"index": "keyword"}),
    FieldDef("category", FieldKind.TEXT, config={"index": "keyword"}),
    FieldDef("urgency", FieldKind.NUMBER, validator="min_max", config={"min": 1, "max": 8, "index": "integer"}),
    FieldDef("source", FieldKind.TEXT, config={"index": "keyword"}),
    FieldDef("timestamp", FieldKind.DATETIME),
    FieldDef("service", FieldKind.TEXT, config={"index": "keyword"}),
    FieldDef("keywords", FieldKind.LIST),
)


def extract_provider_metadata(provider: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extrae la metadata conocida del payload del proveedor.

    - Solo se toman los campos de `PROVIDER_FIELDS`; el resto se ignora.
    - `keywords` acepta lista o string separado por comas.
    - `urgency` numérica en string ("3") se convierte a int.
    - Campos ausentes o vacíos se omiten (la validación decide si faltan).
    """
    out: Dict[str, Any] = {}
    for key in PROVIDER_FIELDS:
        value = provider.get(key)
        if value is None or value == "":
            continue
        if key == "keywords" and isinstance(value, str):
            value = [k.strip() for k in value.split(",") if k.strip()]
        elif key == "urgency" and isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        elif key == "id" and isinstance(value, int):
            value = str(value)
        out[key] = value
    return out
