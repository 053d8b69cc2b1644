"""
livingdoc_core.assets
=====================

Cliente del servicio externo de procesamiento de assets (imágenes).

El servicio es un colaborador opaco: recibe un job `{sourceUrl}` y devuelve
`{url, width, height, size, mimeType}` o un error. Reintentos, storage y
procesamiento de imagen son responsabilidad del servicio, no del core.

Cualquier cosa que implemente `AssetService` sirve (en tests se usa un fake).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Protocol

import httpx

from .domain_models import MediaReference
from .errors import AssetJobError

logger = logging.getLogger(__name__)


class AssetService(Protocol):
    """
    Interfaz mínima del servicio de assets.

    `process` se llama exactamente una vez por asset y por transformación.
    """

    async def process(self, source_url: str) -> MediaReference:
        ...


def parse_asset_response(source_url: str, data: Any) -> MediaReference:
    """
    Convierte la respuesta JSON del servicio en un `MediaReference`.

    Raises:
        AssetJobError: si falta algún campo o tiene tipo inválido.
    """
    if not isinstance(data, dict):
        raise AssetJobError(source_url, "respuesta no es un objeto JSON")
    try:
        return MediaReference(
            url=str(data["url"]),
            width=int(data["width"]),
            height=int(data["height"]),
            size=int(data["size"]),
            mime_type=str(data["mimeType"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise AssetJobError(source_url, f"respuesta inválida ({e})") from e


class HttpAssetService:
    """
    Implementación HTTP del servicio de assets (`POST {base_url}/jobs`).

    Usa un `httpx.AsyncClient` por llamada, salvo que se inyecte uno
    (útil para compartir conexiones o para tests con `MockTransport`).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def process(self, source_url: str) -> MediaReference:
        payload: Dict[str, Any] = {"sourceUrl": source_url}
        logger.debug("Enviando job de asset: %s", source_url)
        try:
            if self._client is not None:
                response = await self._client.post(
                    f"{self.base_url}/jobs", json=payload, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(f"{self.base_url}/jobs", json=payload)
        except httpx.HTTPError as e:
            raise AssetJobError(source_url, e) from e

        if response.status_code >= 300:
            raise AssetJobError(source_url, f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise AssetJobError(source_url, "respuesta no es JSON") from e
        return parse_asset_response(source_url, data)
