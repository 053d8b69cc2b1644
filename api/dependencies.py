"""
Dependencias de FastAPI.

Este módulo proporciona:
- El `LivingdocEngine` de proceso (armado una sola vez al primer uso).
- La traducción de errores del core a `HTTPException`.

En tests se reemplaza `get_engine` con `app.dependency_overrides`.
"""

from functools import lru_cache
import logging

from fastapi import HTTPException

from livingdoc_core.db.database import init_db
from livingdoc_core.engine import LivingdocEngine, build_engine
from livingdoc_core.errors import (
    ConcurrencyConflict,
    ExternalJobError,
    LivingdocError,
    NotFound,
    StructuralError,
    TerminalTask,
    UnknownSchema,
    UnknownTaskType,
    ValidationError,
)
from livingdoc_core.metadata.store import SqlAlchemyBackend

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> LivingdocEngine:
    """
    Arma el engine con el store persistido en la base configurada.
    """
    init_db()
    engine = build_engine(backend=SqlAlchemyBackend())
    logger.info("Engine listo para la API")
    return engine


def to_http_exception(exc: LivingdocError) -> HTTPException:
    """
    Mapea la taxonomía de errores del core a códigos HTTP.
    """
    if isinstance(exc, (NotFound, UnknownSchema, UnknownTaskType)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StructuralError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ValidationError):
        detail = {"message": str(exc)}
        field_name = getattr(exc, "field_name", None) or getattr(exc, "directive", None)
        if field_name:
            detail["field"] = field_name
        return HTTPException(status_code=422, detail=detail)
    if isinstance(exc, (ConcurrencyConflict, TerminalTask)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ExternalJobError):
        return HTTPException(status_code=502, detail=str(exc))
    logger.exception("Error no mapeado del core")
    return HTTPException(status_code=500, detail=str(exc))
