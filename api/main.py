"""
API HTTP principal para livingdoc-core.

Esta aplicación FastAPI expone endpoints REST que usan el core interno
(livingdoc_core.engine).

Uso:
    uvicorn api.main:app --reload --port 8000
"""

import logging

from fastapi import FastAPI

from livingdoc_core import __version__
from livingdoc_core.config import get_settings

from .routes import documents, imports

settings = get_settings()

# Configurar logging según ambiente
log_level = getattr(logging, settings.log_level, logging.INFO)
logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)
logger.info(f"🚀 Iniciando API en ambiente: {settings.environment}")

app = FastAPI(
    title="Livingdoc Core API",
    description="Importación de artículos, metadata validada y workflow editorial",
    version=__version__,
)

# Registrar rutas
app.include_router(imports.router)
app.include_router(documents.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "livingdoc-core-api"}


@app.get("/health")
async def health():
    """Health check detallado."""
    return {
        "status": "ok",
        "service": "livingdoc-core-api",
        "version": __version__,
    }
