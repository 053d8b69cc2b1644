from dataclasses import dataclass
from functools import lru_cache
import os

from dotenv import load_dotenv

"""
livingdoc_core.config
=====================

Gestión centralizada de configuración de la aplicación.

Este módulo define:
- La estructura de configuración (`Settings`)
- El mecanismo para cargar variables desde entorno (.env)
- Un acceso único y cacheado a la configuración (`get_settings`)

Convenciones
------------
- Las variables de entorno se cargan desde un archivo `.env` si existe.
- Los defaults están pensados para desarrollo local.
- Si falta un valor crítico (ej. URL del servicio de assets), el error se
  lanza donde se usa, no acá.
"""

# Cargar variables de entorno desde .env (si existe)
load_dotenv()


@dataclass
class Settings:
    """
    Contenedor tipado de configuración global.

    Attributes
    ----------
    database_url:
        URL SQLAlchemy del store de metadata.
    asset_service_url:
        URL base del servicio externo que procesa imágenes.
    asset_service_timeout:
        Timeout (segundos) por job de asset.
    import_namespace:
        Namespace de metadata donde se guarda la metadata del proveedor.
    tasks_namespace:
        Namespace reservado para las tareas del workflow editorial.
    log_level / environment:
        Usados por la capa HTTP al configurar logging.
    """

    database_url: str
    asset_service_url: str
    asset_service_timeout: float = 30.0

    import_namespace: str = "source"
    tasks_namespace: str = "tasks"

    log_level: str = "INFO"
    environment: str = "local"


@lru_cache
def get_settings() -> Settings:
    """
    Devuelve una instancia única y cacheada de `Settings`.

    Variables de entorno utilizadas
    -------------------------------
    - DATABASE_URL (default: sqlite:///data/livingdoc_core.sqlite)
    - ASSET_SERVICE_URL (default: http://localhost:9000)
    - ASSET_SERVICE_TIMEOUT (default: 30)
    - IMPORT_METADATA_NAMESPACE (default: "source")
    - TASKS_NAMESPACE (default: "tasks")
    - LOG_LEVEL (default: "INFO")
    - ENVIRONMENT (default: "local")
    """
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///data/livingdoc_core.sqlite"),
        asset_service_url=os.getenv("ASSET_SERVICE_URL", "http://localhost:9000"),
        asset_service_timeout=float(os.getenv("ASSET_SERVICE_TIMEOUT", "30")),
        import_namespace=os.getenv("IMPORT_METADATA_NAMESPACE", "source"),
        tasks_namespace=os.getenv("TASKS_NAMESPACE", "tasks"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        environment=os.getenv("ENVIRONMENT", "local"),
    )
