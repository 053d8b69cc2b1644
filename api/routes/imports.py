"""
Endpoint de importación de artículos externos.

- POST /api/v1/imports: transforma un artículo en un documento del canal.
"""

import logging

from fastapi import APIRouter, Depends

from livingdoc_core.domain_models import Article, MediaSource
from livingdoc_core.engine import LivingdocEngine
from livingdoc_core.errors import LivingdocError

from ..dependencies import get_engine, to_http_exception
from ..models.requests import ArticleImportRequest, ArticleImportResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/imports", tags=["imports"])


@router.post("", response_model=ArticleImportResponse)
async def import_article(
    request: ArticleImportRequest,
    engine: LivingdocEngine = Depends(get_engine),
):
    """
    Importa un artículo usando el design/layout/transformación del canal.

    Todo o nada: si falla cualquier asset no se crea nada (502).
    """
    article = Article(
        title=request.title,
        blocks=list(request.blocks),
        media=[MediaSource(source_url=m.source_url, caption=m.caption) for m in request.media],
        provider=dict(request.provider),
    )
    try:
        doc, record = await engine.import_article(
            article,
            request.channel,
            document_id=request.document_id,
        )
    except LivingdocError as e:
        logger.warning("Importación rechazada (canal %s): %s", request.channel, e)
        raise to_http_exception(e)

    return ArticleImportResponse(
        document_id=doc.id,
        channel=doc.channel,
        design=doc.design.key,
        content=doc.tree.to_dict(),
        metadata=record,
    )
