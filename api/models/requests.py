"""
Modelos de request/response para la API.

Validan la forma de los requests HTTP antes de pasarlos al core. La
validación de *contenido* (schemas de metadata, design) la hace el core.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MediaSourceIn(BaseModel):
    source_url: str = Field(..., description="URL del asset en el proveedor")
    caption: str = Field(default="", description="Epígrafe opcional")


class ArticleImportRequest(BaseModel):
    """
    Request para importar un artículo externo a un canal.

    El design, layout y transformación salen de la configuración del canal.
    """

    channel: str = Field(..., description="Handle del canal destino")
    document_id: Optional[str] = Field(default=None, description="Id a usar (opcional)")
    title: str = Field(..., description="Titular del artículo")
    blocks: List[str] = Field(default_factory=list, description="Bloques de texto en orden")
    media: List[MediaSourceIn] = Field(default_factory=list, description="Assets en orden")
    provider: Dict[str, Any] = Field(default_factory=dict, description="Metadata del proveedor")


class ArticleImportResponse(BaseModel):
    document_id: str
    channel: Optional[str] = None
    design: str
    content: Dict[str, Any] = Field(..., description="Snapshot serializado del árbol")
    metadata: Dict[str, Any]


class MetadataWriteRequest(BaseModel):
    data: Dict[str, Any]
    expected_revision: Optional[int] = Field(
        default=None,
        description="Si se indica, la escritura falla con 409 si el registro cambió",
    )


class MetadataResponse(BaseModel):
    document_id: str
    schema_name: str
    revision: int
    data: Dict[str, Any]


class TaskStateResponse(BaseModel):
    task_type: str
    state_index: int
    state: str
    label: str
    is_terminal: bool


class TaskAdvanceRequest(BaseModel):
    """El estado que el editor estaba viendo cuando pidió avanzar."""

    state_index: int = Field(..., ge=0)


class PublishCheckResponse(BaseModel):
    document_id: str
    allowed: bool
    reason: Optional[str] = None
