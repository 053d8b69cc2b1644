"""
Registro de designs y designs predefinidos.

Un design define *qué* componentes y directivas puede tener un documento.
Este módulo expone:
- `DesignRegistry`: registro de proceso, se llena al arrancar y luego se congela.
- `design_from_dict`: construye un `Design` desde su forma JSON (config/DB).
- `BASIC_V1`: design mínimo (cabecera, párrafo, imagen) usado por la
  transformación de agencias y por los tests.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .domain_models import ComponentType, ContentKind, Design, DirectiveSpec, Layout
from .errors import DuplicateDesign, UnknownDesign

logger = logging.getLogger(__name__)


class DesignRegistry:
    """
    Registro de designs indexado por (name, version).

    Se construye una sola vez al arrancar y se pasa por inyección a quien lo
    necesite. Después de `freeze()` es de solo lectura, así que los lectores
    concurrentes no necesitan locks.
    """

    def __init__(self) -> None:
        self._designs: Dict[tuple[str, str], Design] = {}
        self._frozen = False

    def register_design(self, design: Design) -> Design:
        if self._frozen:
            raise RuntimeError("El registro de designs está congelado")
        key = (design.name, design.version)
        if key in self._designs:
            raise DuplicateDesign(design.name, design.version)
        self._designs[key] = design
        logger.info("Design registrado: %s", design.key)
        return design

    def get(self, name: str, version: str | None = None) -> Design:
        """
        Devuelve un design. Sin `version`, devuelve la última registrada
        para ese nombre.
        """
        if version is not None:
            design = self._designs.get((name, version))
            if design is None:
                raise UnknownDesign(name, version)
            return design

        candidates = [d for (n, _), d in self._designs.items() if n == name]
        if not candidates:
            raise UnknownDesign(name)
        return candidates[-1]

    def designs(self) -> List[Design]:
        return list(self._designs.values())

    def freeze(self) -> None:
        self._frozen = True

    def __contains__(self, key: object) -> bool:
        return key in self._designs


def design_from_dict(data: Dict[str, Any]) -> Design:
    """
    Construye un `Design` desde su representación serializada.

    Formato esperado:
        {
          "name": "basic",
          "version": "1.0.0",
          "layouts": [{"name": "article", "caption": "Artículo"}],
          "components": [
            {"name": "head", "label": "Título",
             "directives": [{"name": "title", "kind": "text"}]}
          ]
        }

    Un `kind` desconocido levanta `ValueError`.
    """
    component_types = tuple(
        ComponentType(
            name=c["name"],
            label=c.get("label", ""),
            directives=tuple(
                DirectiveSpec(name=d["name"], kind=ContentKind(d["kind"]))
                for d in c.get("directives", [])
            ),
        )
        for c in data.get("components", [])
    )
    layouts = tuple(
        Layout(name=layout["name"], caption=layout.get("caption", ""))
        for layout in data.get("layouts", [])
    )
    return Design(
        name=data["name"],
        version=str(data["version"]),
        component_types=component_types,
        layouts=layouts,
    )


# ============================================================
# Designs predefinidos (V1)
# ============================================================

BASIC_V1 = design_from_dict(
    {
        "name": "basic",
        "version": "1.0.0",
        "layouts": [
            {"name": "article", "caption": "Artículo"},
            {"name": "gallery", "caption": "Galería"},
        ],
        "components": [
            {
                "name": "head",
                "label": "Título",
                "directives": [{"name": "title", "kind": "text"}],
            },
            {
                "name": "p",
                "label": "Párrafo",
                "directives": [{"name": "text", "kind": "rich_text"}],
            },
            {
                "name": "image",
                "label": "Imagen",
                "directives": [
                    {"name": "image", "kind": "media"},
                    {"name": "caption", "kind": "text"},
                ],
            },
            {
                "name": "container",
                "label": "Contenedor",
                "directives": [{"name": "config", "kind": "structured"}],
            },
        ],
    }
)
