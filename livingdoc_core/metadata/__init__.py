"""
Metadata pluggable: schemas (registro de proceso) y store por documento.
"""

from .schema import VALIDATORS, FieldDef, FieldKind, MetadataSchema, SchemaRegistry
from .store import MemoryBackend, MetadataStore, SqlAlchemyBackend, StoredRecord

__all__ = [
    "VALIDATORS",
    "FieldDef",
    "FieldKind",
    "MetadataSchema",
    "SchemaRegistry",
    "MemoryBackend",
    "MetadataStore",
    "SqlAlchemyBackend",
    "StoredRecord",
]
