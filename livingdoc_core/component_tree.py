"""
livingdoc_core.component_tree
=============================

Árbol ordenado de componentes ligado a un design.

Modelo
------
- El árbol es dueño exclusivo de sus componentes. Internamente es un *arena*:
  un dict id → `Component` más listas ordenadas de ids hijos por padre.
  Los componentes NO guardan referencias a su padre ni a sus hijos.
- El design se fija al construir el árbol y no se puede cambiar: para
  "re-bindear" hay que construir un árbol nuevo.
- Toda operación valida antes de mutar; si algo falla no queda nada a medias.

El árbol no se comparte entre operaciones concurrentes, así que no usa locks.
La persistencia es responsabilidad de quien lo consume (`to_dict()`).
"""

from __future__ import annotations

import itertools
import uuid
from typing import Any, Dict, Iterator, List, Optional

from .domain_models import ComponentType, ContentKind, Design, MediaReference, RichText
from .errors import (
    ContentKindMismatch,
    StructuralError,
    UnknownComponentType,
    UnknownDirective,
    UnknownLayout,
)


def _kind_of(value: Any) -> str:
    if isinstance(value, str):
        return ContentKind.TEXT.value
    if isinstance(value, RichText):
        return ContentKind.RICH_TEXT.value
    if isinstance(value, MediaReference):
        return ContentKind.MEDIA.value
    if isinstance(value, (dict, list)):
        return ContentKind.STRUCTURED.value
    return type(value).__name__


def _serialize(value: Any) -> Any:
    if isinstance(value, RichText):
        return value.html
    if isinstance(value, MediaReference):
        return value.to_dict()
    return value


class Component:
    """
    Instancia de un `ComponentType`.

    Se crea siempre desde `ComponentTree.create_component()`; el árbol que la
    crea es el único que puede insertarla.
    """

    def __init__(self, component_type: ComponentType, owner: str) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.type = component_type
        self._owner = owner
        self._content: Dict[str, Any] = {}

    @property
    def type_name(self) -> str:
        return self.type.name

    @property
    def content(self) -> Dict[str, Any]:
        return dict(self._content)

    def set_content(self, directive: str, value: Any) -> None:
        """
        Asigna contenido a una directiva.

        `None` borra el contenido de la directiva.

        Raises:
            UnknownDirective: si el tipo no declara la directiva.
            ContentKindMismatch: si el valor no es del tipo declarado.
        """
        declared = self.type.directive(directive)
        if declared is None:
            raise UnknownDirective(self.type.name, directive)
        if value is None:
            self._content.pop(directive, None)
            return
        actual = _kind_of(value)
        if actual != declared.kind.value:
            raise ContentKindMismatch(directive, declared.kind.value, actual)
        self._content[directive] = value

    def get_content(self, directive: str) -> Any:
        if self.type.directive(directive) is None:
            raise UnknownDirective(self.type.name, directive)
        return self._content.get(directive)

    def __repr__(self) -> str:
        return f"Component({self.type.name!r}, id={self.id!r})"


class ComponentTree:
    """
    Documento como árbol ordenado de componentes.

    La raíz es implícita (`parent=None`); `append`/`insert_at` sin padre
    operan sobre los hijos de la raíz.

    El árbol solo guarda los componentes insertados: uno creado y nunca
    insertado (o quitado con `remove`) no queda referenciado por el árbol.
    """

    _ids = itertools.count(1)

    def __init__(self, design: Design, layout: str) -> None:
        if not design.has_layout(layout):
            raise UnknownLayout(design.key, layout)
        self._design = design
        self._layout = layout
        self._token = f"tree-{next(self._ids)}"
        self._components: Dict[str, Component] = {}
        self._children: Dict[Optional[str], List[str]] = {None: []}
        self._parent: Dict[str, Optional[str]] = {}

    @property
    def design(self) -> Design:
        return self._design

    @property
    def layout(self) -> str:
        return self._layout

    # ------------------------------------------------------------
    # Construcción
    # ------------------------------------------------------------

    def create_component(self, type_name: str) -> Component:
        component_type = self._design.component_type(type_name)
        if component_type is None:
            raise UnknownComponentType(self._design.key, type_name)
        return Component(component_type, owner=self._token)

    def append(self, component: Component, parent: Component | None = None) -> Component:
        siblings = self._check_insertable(component, parent)
        siblings.append(component.id)
        self._attach(component, parent)
        return component

    def insert_at(self, index: int, component: Component, parent: Component | None = None) -> Component:
        siblings = self._check_insertable(component, parent)
        if not 0 <= index <= len(siblings):
            raise IndexError(f"Posición {index} fuera de rango (0..{len(siblings)})")
        siblings.insert(index, component.id)
        self._attach(component, parent)
        return component

    def remove(self, component: Component) -> None:
        """Quita el componente y todo su subárbol."""
        if component.id not in self._parent:
            raise StructuralError(f"{component!r} no está insertado en este árbol")
        self._children[self._parent[component.id]].remove(component.id)
        for node in list(self._walk_ids(component.id)):
            self._parent.pop(node, None)
            self._children.pop(node, None)
            self._components.pop(node, None)

    def _check_insertable(self, component: Component, parent: Component | None) -> List[str]:
        if component._owner != self._token:
            raise StructuralError(f"{component!r} no fue creado por este árbol")
        if component.id in self._parent:
            raise StructuralError(f"{component!r} ya está insertado")
        if parent is None:
            return self._children[None]
        if parent.id not in self._parent:
            raise StructuralError(f"El padre {parent!r} no está insertado en este árbol")
        return self._children.setdefault(parent.id, [])

    def _attach(self, component: Component, parent: Component | None) -> None:
        self._components[component.id] = component
        self._parent[component.id] = parent.id if parent is not None else None
        self._children.setdefault(component.id, [])

    # ------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------

    def children(self, parent: Component | None = None) -> List[Component]:
        key = parent.id if parent is not None else None
        return [self._components[i] for i in self._children.get(key, [])]

    def parent_of(self, component: Component) -> Optional[Component]:
        parent_id = self._parent.get(component.id)
        return self._components[parent_id] if parent_id else None

    def _walk_ids(self, start: Optional[str]) -> Iterator[str]:
        if start is not None:
            yield start
        for child in self._children.get(start, []):
            yield from self._walk_ids(child)

    def walk(self) -> Iterator[Component]:
        """Recorre los componentes insertados en orden de documento (DFS)."""
        for node in self._walk_ids(None):
            yield self._components[node]

    def find(self, type_name: str) -> List[Component]:
        return [c for c in self.walk() if c.type_name == type_name]

    def __len__(self) -> int:
        return len(self._parent)

    def __contains__(self, component: object) -> bool:
        return isinstance(component, Component) and component.id in self._components

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot serializable para el colaborador de persistencia."""

        def node(component_id: str) -> Dict[str, Any]:
            component = self._components[component_id]
            return {
                "id": component.id,
                "component": component.type_name,
                "content": {k: _serialize(v) for k, v in component._content.items()},
                "children": [node(c) for c in self._children.get(component_id, [])],
            }

        return {
            "design": {"name": self._design.name, "version": self._design.version},
            "layout": self._layout,
            "content": [node(c) for c in self._children[None]],
        }


def create_tree(design: Design, layout_name: str) -> ComponentTree:
    """
    Crea un árbol vacío ligado a `design`.

    Raises:
        UnknownLayout: si el design no declara `layout_name`.
    """
    return ComponentTree(design, layout_name)
