"""Rutas de la API."""

from . import documents, imports

__all__ = ["documents", "imports"]
