"""
livingdoc_core.errors
=====================

Taxonomía de errores del core.

Todas las excepciones heredan de `LivingdocError` y se agrupan en familias
que la capa llamadora (API HTTP, scripts) puede mapear sin mirar mensajes:

- `StructuralError`: tipo/directiva/layout/schema desconocido o duplicado.
  Es un bug de configuración o del llamador; no se reintenta.
- `ValidationError`: contenido o metadata que no cumple una regla declarada.
  Siempre lleva el nombre del campo/slot y el motivo.
- `ExternalJobError`: falla del servicio externo de assets. Aborta la
  transformación completa.
- `ConcurrencyConflict`: se perdió una carrera (transición de estado o
  escritura de metadata). El llamador debe releer y reintentar.
- `TerminalTask`: resultado esperado del dominio (la tarea ya terminó).

Los mensajes están pensados para humanos; los atributos, para código.
"""

from __future__ import annotations

from typing import Any


class LivingdocError(Exception):
    """Raíz de todos los errores del core."""


# ============================================================
# Errores estructurales
# ============================================================

class StructuralError(LivingdocError):
    pass


class DuplicateDesign(StructuralError):
    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        super().__init__(f"El design {name}@{version} ya está registrado")


class UnknownDesign(StructuralError):
    def __init__(self, name: str, version: str | None = None):
        self.name = name
        self.version = version
        label = f"{name}@{version}" if version else name
        super().__init__(f"Design no registrado: {label}")


class UnknownLayout(StructuralError):
    def __init__(self, design: str, layout: str):
        self.design = design
        self.layout = layout
        super().__init__(f"El design {design} no declara el layout '{layout}'")


class UnknownComponentType(StructuralError):
    def __init__(self, design: str, type_name: str):
        self.design = design
        self.type_name = type_name
        super().__init__(f"El design {design} no declara el componente '{type_name}'")


class UnknownDirective(StructuralError):
    def __init__(self, type_name: str, directive: str):
        self.type_name = type_name
        self.directive = directive
        super().__init__(f"El componente '{type_name}' no tiene la directiva '{directive}'")


class DuplicateSchema(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"El schema de metadata '{name}' ya está registrado")


class UnknownSchema(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Schema de metadata no registrado: '{name}'")


class ReservedNamespace(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"El namespace '{name}' es reservado; solo lo escribe su dueño")


class DuplicateTaskType(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"El tipo de tarea '{name}' ya está registrado")


class UnknownTaskType(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tipo de tarea no registrado: '{name}'")


class DuplicateTransformation(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"La transformación '{name}' ya está registrada")


class UnknownTransformation(StructuralError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Transformación no registrada: '{name}'")


class ChannelDesignMismatch(StructuralError):
    def __init__(self, channel: str, expected: str, actual: str):
        self.channel = channel
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"El canal '{channel}' usa el design {expected}, no {actual}"
        )


# ============================================================
# Errores de validación
# ============================================================

class ValidationError(LivingdocError):
    pass


class ContentKindMismatch(ValidationError):
    def __init__(self, directive: str, expected: str, actual: str):
        self.directive = directive
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"La directiva '{directive}' espera contenido '{expected}', se recibió '{actual}'"
        )


class SchemaValidationError(ValidationError):
    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"Campo '{field_name}' inválido: {reason}")


# ============================================================
# Errores externos
# ============================================================

class ExternalJobError(LivingdocError):
    pass


class AssetJobError(ExternalJobError):
    def __init__(self, source_url: str, cause: Any):
        self.source_url = source_url
        self.cause = cause
        super().__init__(f"Falló el procesamiento del asset {source_url}: {cause}")


class ImportFailed(ExternalJobError):
    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"La importación falló: {cause}")


# ============================================================
# Concurrencia, lectura y workflow
# ============================================================

class ConcurrencyConflict(LivingdocError):
    def __init__(self, key: str, expected: Any, actual: Any):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Conflicto de concurrencia en {key}: se esperaba {expected!r}, el estado actual es {actual!r}"
        )


class NotFound(LivingdocError):
    def __init__(self, document_id: str, schema_name: str):
        self.document_id = document_id
        self.schema_name = schema_name
        super().__init__(f"No hay metadata '{schema_name}' para el documento {document_id}")


class TerminalTask(LivingdocError):
    def __init__(self, task_type: str, state: str):
        self.task_type = task_type
        self.state = state
        super().__init__(f"La tarea '{task_type}' ya está completa (estado '{state}')")
