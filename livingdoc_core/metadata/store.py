"""
Store de metadata por documento y namespace.

Reglas
------
- `set()` valida el registro completo contra su schema y recién después lo
  persiste. Leer la revisión + persistir es una sección crítica por
  (document_id, schema_name): dos escrituras al mismo registro no se pisan.
- Si falla la validación no se escribe nada (el reemplazo es atómico por
  namespace).
- Se guarda el valor *validado* (normalizado), nunca el crudo.
- `expected_revision` permite compare-and-set: si el registro cambió desde
  que el llamador lo leyó, se levanta `ConcurrencyConflict`.
  El backend repite el chequeo al escribir, así que vale también entre
  procesos que comparten la base.
- Un namespace reservado (`reserve()`) solo lo escribe quien tiene el token.

La persistencia concreta está detrás de un backend (`MemoryBackend` o
`SqlAlchemyBackend`); el store solo habla con su interfaz.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, Optional, Protocol, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConcurrencyConflict, NotFound, ReservedNamespace
from .schema import SchemaRegistry

logger = logging.getLogger(__name__)

_LOCK_STRIPES = 64
_MAX_WRITE_ATTEMPTS = 3


@dataclass(frozen=True)
class StoredRecord:
    document_id: str
    schema_name: str
    revision: int
    data: Dict[str, Any]


class MetadataBackend(Protocol):
    def load(self, document_id: str, schema_name: str) -> Optional[Tuple[int, Dict[str, Any]]]:
        ...

    def save(
        self,
        document_id: str,
        schema_name: str,
        expected_revision: int,
        data: Dict[str, Any],
    ) -> bool:
        """
        Guarda `data` con revisión `expected_revision + 1` solo si la revisión
        guardada sigue siendo `expected_revision` (0 = no existe). Devuelve
        False si otro escritor ganó.
        """
        ...


class MemoryBackend:
    """Backend en memoria (un proceso). Útil para tests y scripts."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], Tuple[int, Dict[str, Any]]] = {}
        self._guard = threading.Lock()

    def load(self, document_id: str, schema_name: str) -> Optional[Tuple[int, Dict[str, Any]]]:
        return self._records.get((document_id, schema_name))

    def save(
        self,
        document_id: str,
        schema_name: str,
        expected_revision: int,
        data: Dict[str, Any],
    ) -> bool:
        key = (document_id, schema_name)
        with self._guard:
            current = self._records.get(key)
            if (current[0] if current else 0) != expected_revision:
                return False
            self._records[key] = (expected_revision + 1, data)
        return True


class SqlAlchemyBackend:
    """
    Backend sobre la tabla `metadata_records`.

    Recibe una fábrica de sesiones con la semántica de `get_db_session()`
    (context manager que hace commit/rollback).

    El compare-and-set lo resuelve la base: el UPDATE lleva la revisión
    esperada en el WHERE y el primer INSERT depende del unique
    (document_id, schema_name). Así dos procesos sobre la misma base no
    pueden ganar la misma revisión.
    """

    def __init__(self, session_factory: Callable[[], ContextManager[Session]] | None = None) -> None:
        if session_factory is None:
            from ..db.database import get_db_session

            session_factory = get_db_session
        self._session_factory = session_factory

    def load(self, document_id: str, schema_name: str) -> Optional[Tuple[int, Dict[str, Any]]]:
        from ..db.models import MetadataRecord

        with self._session_factory() as session:
            row = (
                session.query(MetadataRecord)
                .filter_by(document_id=document_id, schema_name=schema_name)
                .first()
            )
            if row is None:
                return None
            return row.revision, json.loads(row.data_json)

    def save(
        self,
        document_id: str,
        schema_name: str,
        expected_revision: int,
        data: Dict[str, Any],
    ) -> bool:
        from ..db.models import MetadataRecord

        payload = json.dumps(data, ensure_ascii=False, sort_keys=True)
        try:
            with self._session_factory() as session:
                if expected_revision == 0:
                    session.add(
                        MetadataRecord(
                            document_id=document_id,
                            schema_name=schema_name,
                            revision=1,
                            data_json=payload,
                        )
                    )
                    session.flush()
                    return True

                result = session.execute(
                    update(MetadataRecord)
                    .where(
                        MetadataRecord.document_id == document_id,
                        MetadataRecord.schema_name == schema_name,
                        MetadataRecord.revision == expected_revision,
                    )
                    .values(revision=expected_revision + 1, data_json=payload)
                )
                return result.rowcount == 1
        except IntegrityError:
            # otro escritor insertó primero el mismo (document_id, schema_name)
            return False


class MetadataStore:
    def __init__(self, registry: SchemaRegistry, backend: MetadataBackend | None = None) -> None:
        self._registry = registry
        self._backend = backend if backend is not None else MemoryBackend()
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]
        self._reserved: Dict[str, object] = {}

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    def _lock_for(self, document_id: str, schema_name: str) -> threading.Lock:
        # pool fijo: dos claves pueden compartir lock, nunca crece
        return self._locks[hash((document_id, schema_name)) % len(self._locks)]

    def reserve(self, schema_name: str) -> object:
        """
        Reserva un namespace para un único dueño y devuelve su token.

        Sin el token, `set()` sobre ese namespace levanta `ReservedNamespace`.
        Lo usa el workflow de tareas: los estados solo cambian vía `advance`.
        """
        self._registry.get(schema_name)
        if schema_name in self._reserved:
            raise ReservedNamespace(schema_name)
        token = object()
        self._reserved[schema_name] = token
        logger.info("Namespace de metadata reservado: %s", schema_name)
        return token

    def is_reserved(self, schema_name: str) -> bool:
        return schema_name in self._reserved

    def validate(self, schema_name: str, value: Any) -> Dict[str, Any]:
        """Valida sin escribir; devuelve el registro normalizado."""
        schema = self._registry.get(schema_name)
        return schema.validate(copy.deepcopy(value))

    def set(
        self,
        document_id: str,
        schema_name: str,
        value: Any,
        expected_revision: int | None = None,
        owner: object | None = None,
    ) -> StoredRecord:
        """
        Reemplaza el registro `schema_name` del documento.

        Args:
            expected_revision: si se indica, la escritura solo procede si la
                revisión guardada coincide (0 = todavía no existe).
            owner: token de `reserve()`, obligatorio en namespaces reservados.

        Raises:
            UnknownSchema: si el namespace no está registrado.
            ReservedNamespace: namespace reservado y `owner` no es su token.
            SchemaValidationError: primer campo inválido; no se escribe nada.
            ConcurrencyConflict: si `expected_revision` no coincide.
        """
        schema = self._registry.get(schema_name)
        token = self._reserved.get(schema_name)
        if token is not None and owner is not token:
            raise ReservedNamespace(schema_name)

        data = schema.validate(copy.deepcopy(value))

        with self._lock_for(document_id, schema_name):
            for _ in range(_MAX_WRITE_ATTEMPTS):
                current = self._backend.load(document_id, schema_name)
                current_revision = current[0] if current else 0
                if expected_revision is not None and expected_revision != current_revision:
                    self._conflict(document_id, schema_name, expected_revision, current_revision)
                if self._backend.save(document_id, schema_name, current_revision, data):
                    break
                # otro proceso escribió entre load y save
                if expected_revision is not None:
                    actual = self._backend.load(document_id, schema_name)
                    self._conflict(
                        document_id, schema_name, expected_revision, actual[0] if actual else 0
                    )
            else:
                self._conflict(document_id, schema_name, current_revision, None)

        revision = current_revision + 1
        logger.debug("Metadata %s/%s guardada (rev %d)", document_id, schema_name, revision)
        return StoredRecord(document_id, schema_name, revision, copy.deepcopy(data))

    @staticmethod
    def _conflict(document_id: str, schema_name: str, expected: Any, actual: Any) -> None:
        logger.warning(
            "Conflicto escribiendo %s/%s: revisión esperada %s, actual %s",
            document_id, schema_name, expected, actual,
        )
        raise ConcurrencyConflict(f"{document_id}/{schema_name}", expected, actual)

    def get_record(self, document_id: str, schema_name: str) -> StoredRecord:
        self._registry.get(schema_name)
        current = self._backend.load(document_id, schema_name)
        if current is None:
            raise NotFound(document_id, schema_name)
        revision, data = current
        return StoredRecord(document_id, schema_name, revision, copy.deepcopy(data))

    def get(self, document_id: str, schema_name: str) -> Dict[str, Any]:
        """Último registro válido del namespace, o `NotFound`."""
        return self.get_record(document_id, schema_name).data
