"""
livingdoc_core.domain_models
============================

Modelos de dominio (dataclasses) usados a lo largo del core.

Objetivo
--------
Este módulo define las estructuras "neutras" del sistema:

- El contrato de un design (`Design`, `ComponentType`, `DirectiveSpec`, `Layout`)
- Los valores que pueden vivir dentro de una directiva (`RichText`, `MediaReference`)
- El payload externo que entra al pipeline de importación (`Article`, `MediaSource`)
- El destino de una importación (`ImportTarget`)
- El agregado final (`Livingdoc`) y su agrupación (`Channel`)

Principios de diseño
--------------------
- Dataclasses sin lógica pesada: este módulo NO habla con DB, HTTP ni asyncio.
- Los designs son inmutables (`frozen=True`): se registran al arrancar y
  después solo se leen, así que pueden compartirse entre hilos sin locks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .errors import ChannelDesignMismatch

if TYPE_CHECKING:
    from .component_tree import ComponentTree


# ============================================================
# Design: tipos de componente, directivas y layouts
# ============================================================

class ContentKind(str, Enum):
    """
    Tipos de contenido que acepta una directiva.

    - text: string plano.
    - rich_text: HTML envuelto en `RichText`.
    - media: referencia a un asset procesado (`MediaReference`).
    - structured: valor JSON (dict o list).
    """

    TEXT = "text"
    RICH_TEXT = "rich_text"
    MEDIA = "media"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class DirectiveSpec:
    """Slot de contenido con nombre y tipo dentro de un componente."""

    name: str
    kind: ContentKind


@dataclass(frozen=True)
class ComponentType:
    """
    Definición de un tipo de componente dentro de un design.

    Attributes:
        name:
            Identificador estable del tipo (ej: "head", "p", "image").
        directives:
            Slots que el componente puede llenar. Un componente nunca puede
            tener contenido en una directiva que no esté acá.
        label:
            Etiqueta humana (para el editor / debugging).
    """

    name: str
    directives: Tuple[DirectiveSpec, ...]
    label: str = ""

    def directive(self, name: str) -> Optional[DirectiveSpec]:
        for d in self.directives:
            if d.name == name:
                return d
        return None


@dataclass(frozen=True)
class Layout:
    name: str
    caption: str = ""


@dataclass(frozen=True)
class Design:
    """
    Contrato inmutable de qué puede contener un documento.

    Un design se identifica por `name` + `version`. Todo árbol de componentes
    se construye ligado a exactamente un design y solo acepta los tipos de
    componente y directivas que este declara.
    """

    name: str
    version: str
    component_types: Tuple[ComponentType, ...]
    layouts: Tuple[Layout, ...] = ()
    _types_by_name: Dict[str, ComponentType] = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        by_name = {ct.name: ct for ct in self.component_types}
        if len(by_name) != len(self.component_types):
            raise ValueError(f"El design {self.name} declara tipos de componente repetidos")
        object.__setattr__(self, "_types_by_name", by_name)

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"

    def component_type(self, name: str) -> Optional[ComponentType]:
        return self._types_by_name.get(name)

    def has_layout(self, name: str) -> bool:
        return any(layout.name == name for layout in self.layouts)


# ============================================================
# Valores de contenido
# ============================================================

@dataclass(frozen=True)
class RichText:
    """HTML de una directiva de texto enriquecido."""

    html: str


@dataclass(frozen=True)
class MediaReference:
    """
    Asset ya procesado por el servicio externo de imágenes.

    Es a la vez la respuesta del servicio (`{url, width, height, size, mimeType}`)
    y el valor que se guarda en una directiva de tipo `media`.
    """

    url: str
    width: int
    height: int
    size: int
    mime_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "size": self.size,
            "mimeType": self.mime_type,
        }


# ============================================================
# Payload de importación
# ============================================================

@dataclass
class MediaSource:
    """Referencia a un asset externo tal cual viene del proveedor."""

    source_url: str
    caption: str = ""


@dataclass
class Article:
    """
    Artículo externo (agencia, feed, CMS legado) listo para transformar.

    Attributes:
        title:
            Titular. Se convierte en el componente de cabecera.
        blocks:
            Bloques de texto en orden de lectura. Cada uno es un párrafo.
        media:
            Assets en el orden en que deben aparecer en el documento.
        provider:
            Metadata cruda del proveedor (id, category, urgency, source,
            timestamp, service, keywords). Se valida antes de guardarse.
    """

    title: str
    blocks: List[str] = field(default_factory=list)
    media: List[MediaSource] = field(default_factory=list)
    provider: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportTarget:
    """Destino preseleccionado de una importación: design + layout + transformación."""

    design: Design
    layout: str
    transformation: str


# ============================================================
# Agregado final
# ============================================================

@dataclass
class Livingdoc:
    """
    Documento vivo: design + árbol de componentes + metadata + canal.

    `metadata` es un dict namespace → registro ya validado por el store.
    """

    id: str
    tree: "ComponentTree"
    metadata: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    channel: Optional[str] = None

    @property
    def design(self) -> Design:
        return self.tree.design


@dataclass(frozen=True)
class Channel:
    """
    Agrupación de documentos que comparten un único design.
    """

    handle: str
    design: Design

    def create_document(
        self,
        document_id: str,
        tree: "ComponentTree",
        metadata: Dict[str, Dict[str, Any]] | None = None,
    ) -> Livingdoc:
        if tree.design.key != self.design.key:
            raise ChannelDesignMismatch(self.handle, self.design.key, tree.design.key)
        return Livingdoc(
            id=document_id,
            tree=tree,
            metadata=dict(metadata or {}),
            channel=self.handle,
        )
