"""
livingdoc_core.pipeline
=======================

Pipeline de importación: artículo externo → Livingdoc + metadata.

Flujo
-----
1) Árbol vacío ligado a `target.design` / `target.layout`.
2) Titular → componente de cabecera; cada bloque de texto → párrafo.
   Síncrono, en el orden de entrada.
3) Assets: un job por asset contra el servicio externo, todos en paralelo.
   Los resultados se guardan en un array de slots indexado por la posición
   original y recién cuando están TODOS se agregan al árbol, en orden de
   entrada (fan-out asíncrono, fan-in ordenado).
4) Si un job falla se cancelan los pendientes y se levanta `ImportFailed`.
   No se devuelve árbol parcial: el árbol es local a `transform()`.
5) La metadata del proveedor y el mapeo de la transformación se validan
   antes de lanzar los jobs. La metadata se persiste en el store recién
   cuando el Livingdoc está armado.

La latencia total queda acotada por el job más lento, no por la suma.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .assets import AssetService
from .component_tree import ComponentTree, create_tree
from .domain_models import (
    Article,
    Channel,
    ContentKind,
    Design,
    ImportTarget,
    Livingdoc,
    MediaReference,
    MediaSource,
    RichText,
)
from .errors import (
    ChannelDesignMismatch,
    ContentKindMismatch,
    ImportFailed,
    UnknownComponentType,
    UnknownDirective,
)
from .metadata.store import MetadataStore
from .transformations import Transformation, TransformationRegistry, extract_provider_metadata

logger = logging.getLogger(__name__)

ImportResult = Tuple[Livingdoc, Dict[str, Any]]


class ImportPipeline:
    def __init__(
        self,
        transformations: TransformationRegistry,
        store: MetadataStore,
        asset_service: AssetService,
        namespace: str = "source",
    ) -> None:
        self.transformations = transformations
        self.store = store
        self.asset_service = asset_service
        self.namespace = namespace

    async def transform(
        self,
        article: Article,
        target: ImportTarget,
        document_id: str | None = None,
        channel: Channel | None = None,
    ) -> ImportResult:
        """
        Convierte `article` en un Livingdoc ligado a `target.design`.

        Args:
            article: payload externo (titular, bloques, assets, metadata).
            target: design + layout + nombre de transformación.
            document_id: id del documento; si no se indica se genera uno.
            channel: si se indica, el documento se crea dentro del canal
                (y su design tiene que coincidir con el del target).

        Returns:
            (Livingdoc, registro de metadata validado)

        Raises:
            StructuralError: layout/tipo/directiva/transformación desconocidos,
                o canal con otro design. Se detectan antes de lanzar jobs.
            SchemaValidationError: metadata del proveedor inválida.
            ImportFailed: algún job de asset falló (causa encadenada).
        """
        transformation = self.transformations.get(target.transformation)
        document_id = document_id or uuid.uuid4().hex

        # todo lo que puede fallar sin depender de los assets, antes del primer job
        if channel is not None and channel.design.key != target.design.key:
            raise ChannelDesignMismatch(channel.handle, channel.design.key, target.design.key)
        self._check_image_mapping(target.design, transformation)
        record = self.store.validate(self.namespace, extract_provider_metadata(article.provider))

        tree = create_tree(target.design, target.layout)
        self._add_text_components(tree, transformation, article)

        logger.info(
            "Importando documento %s: %d bloques, %d assets",
            document_id, len(article.blocks), len(article.media),
        )
        try:
            processed = await self._process_assets(article.media)
        except ImportFailed:
            logger.error("Importación %s abortada; se descarta el árbol", document_id)
            raise

        for source, media in zip(article.media, processed):
            self._add_image(tree, transformation, source, media)

        if channel is not None:
            doc = channel.create_document(document_id, tree)
        else:
            doc = Livingdoc(id=document_id, tree=tree)

        stored = self.store.set(document_id, self.namespace, record)
        doc.metadata[self.namespace] = stored.data

        logger.info("Documento %s importado (%d componentes)", document_id, len(tree))
        return doc, stored.data

    # ------------------------------------------------------------
    # Componentes
    # ------------------------------------------------------------

    @staticmethod
    def _add_text_components(tree: ComponentTree, t: Transformation, article: Article) -> None:
        header = tree.create_component(t.header_type)
        header.set_content(t.title_directive, article.title)
        tree.append(header)

        for block in article.blocks:
            paragraph = tree.create_component(t.paragraph_type)
            paragraph.set_content(t.text_directive, RichText(block))
            tree.append(paragraph)

    @staticmethod
    def _check_image_mapping(design: Design, t: Transformation) -> None:
        image_type = design.component_type(t.image_type)
        if image_type is None:
            raise UnknownComponentType(design.key, t.image_type)
        expected = ((t.image_directive, ContentKind.MEDIA), (t.caption_directive, ContentKind.TEXT))
        for directive, kind in expected:
            if directive is None:
                continue
            declared = image_type.directive(directive)
            if declared is None:
                raise UnknownDirective(image_type.name, directive)
            if declared.kind is not kind:
                raise ContentKindMismatch(directive, declared.kind.value, kind.value)

    @staticmethod
    def _add_image(tree: ComponentTree, t: Transformation, source: MediaSource, media: MediaReference) -> None:
        image = tree.create_component(t.image_type)
        image.set_content(t.image_directive, media)
        if t.caption_directive and source.caption:
            image.set_content(t.caption_directive, source.caption)
        tree.append(image)

    # ------------------------------------------------------------
    # Assets: fan-out / fan-in ordenado
    # ------------------------------------------------------------

    async def _process_assets(self, sources: Sequence[MediaSource]) -> List[MediaReference]:
        if not sources:
            return []

        slots: List[Optional[MediaReference]] = [None] * len(sources)

        async def job(index: int, source: MediaSource) -> None:
            slots[index] = await self.asset_service.process(source.source_url)

        tasks = [asyncio.create_task(job(i, s)) for i, s in enumerate(sources)]
        logger.debug("Lanzados %d jobs de assets", len(tasks))
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for index, task in enumerate(tasks):
                if task in done and not task.cancelled() and task.exception() is not None:
                    cause = task.exception()
                    logger.warning("Falló el asset #%d (%s): %s", index, sources[index].source_url, cause)
                    raise ImportFailed(cause) from cause
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        missing = [i for i, slot in enumerate(slots) if slot is None]
        if missing:
            raise ImportFailed(RuntimeError(f"assets sin resultado: {missing}"))
        return list(slots)
