"""
livingdoc_core.engine
=====================

Punto de armado del core: construye una sola vez los registros de proceso
(designs, schemas, transformaciones, tipos de tarea) y los componentes que
dependen de ellos (store, pipeline, workflow), y expone una API interna
estable para scripts y para la capa HTTP.

La idea es que:

- Los registros se llenan al arrancar y se congelan; después solo se leen.
- Nadie usa estado global: quien necesite un registro lo recibe del
  `LivingdocEngine` (inyección), lo que mantiene los tests herméticos.
- La API HTTP (`api/`) NUNCA construye pipelines por su cuenta; habla con
  este engine.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Tuple

from .assets import AssetService, HttpAssetService
from .config import Settings, get_settings
from .designs import BASIC_V1, DesignRegistry
from .domain_models import Article, Channel, Design, ImportTarget, Livingdoc
from .errors import StructuralError, UnknownLayout
from .metadata.schema import SchemaRegistry
from .metadata.store import MetadataBackend, MetadataStore
from .pipeline import ImportPipeline
from .transformations import AGENCY, PROVIDER_SCHEMA_FIELDS, Transformation, TransformationRegistry
from .workflow import (
    EDITORIAL_REVIEW_V1,
    PublishGate,
    TaskType,
    TaskTypeRegistry,
    TaskWorkflow,
    state_equals,
    tasks_schema_fields,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelConfig:
    """
    Configuración por canal: su design y el target de importación por defecto.
    """

    channel: Channel
    layout: str
    transformation: str

    def target(self) -> ImportTarget:
        return ImportTarget(
            design=self.channel.design,
            layout=self.layout,
            transformation=self.transformation,
        )


@dataclass
class LivingdocEngine:
    designs: DesignRegistry
    schemas: SchemaRegistry
    transformations: TransformationRegistry
    task_types: TaskTypeRegistry
    store: MetadataStore
    pipeline: ImportPipeline
    workflow: TaskWorkflow
    channels: Dict[str, ChannelConfig] = field(default_factory=dict)

    def channel(self, handle: str) -> ChannelConfig:
        try:
            return self.channels[handle]
        except KeyError:
            raise StructuralError(f"Canal no configurado: '{handle}'") from None

    async def import_article(
        self,
        article: Article,
        channel: str,
        document_id: str | None = None,
    ) -> Tuple[Livingdoc, Dict[str, Any]]:
        """Importa un artículo usando el target configurado para el canal."""
        config = self.channel(channel)
        return await self.pipeline.transform(
            article,
            config.target(),
            document_id=document_id,
            channel=config.channel,
        )


def build_engine(
    *,
    settings: Settings | None = None,
    asset_service: AssetService | None = None,
    backend: MetadataBackend | None = None,
    designs: Iterable[Design] = (BASIC_V1,),
    transformations: Iterable[Transformation] = (AGENCY,),
    task_types: Iterable[TaskType] = (EDITORIAL_REVIEW_V1,),
    channels: Iterable[Tuple[str, Design, str, str]] = (("news", BASIC_V1, "article", "agency"),),
    gate: PublishGate | None = None,
    allow_reset: bool = False,
) -> LivingdocEngine:
    """
    Arma un `LivingdocEngine` completo.

    Todos los parámetros tienen defaults pensados para desarrollo local:
    design `basic`, transformación `agency`, tarea `editorial-review` y un
    canal `news`. Si no se pasa `gate`, se usa
    "editorial-review está en el estado editorial-review".

    Args:
        channels: tuplas (handle, design, layout, transformación).
        backend: backend del store (default: en memoria).
        asset_service: default `HttpAssetService` contra
            `settings.asset_service_url`.
    """
    settings = settings or get_settings()

    design_registry = DesignRegistry()
    for design in designs:
        design_registry.register_design(design)

    transformation_registry = TransformationRegistry()
    for transformation in transformations:
        transformation_registry.register(transformation)

    task_registry = TaskTypeRegistry()
    for task_type in task_types:
        task_registry.register(task_type)

    schema_registry = SchemaRegistry()
    schema_registry.register_schema(settings.import_namespace, PROVIDER_SCHEMA_FIELDS)
    schema_registry.register_schema(settings.tasks_namespace, tasks_schema_fields(task_registry))

    design_registry.freeze()
    schema_registry.freeze()

    store = MetadataStore(schema_registry, backend=backend)
    if asset_service is None:
        asset_service = HttpAssetService(
            settings.asset_service_url,
            timeout=settings.asset_service_timeout,
        )

    if gate is None and EDITORIAL_REVIEW_V1.name in task_registry:
        gate = state_equals(EDITORIAL_REVIEW_V1.name, "editorial-review")

    channel_configs: Dict[str, ChannelConfig] = {}
    for handle, design, layout, transformation_name in channels:
        registered = design_registry.get(design.name, design.version)
        if not registered.has_layout(layout):
            raise UnknownLayout(registered.key, layout)
        transformation_registry.get(transformation_name)
        channel_configs[handle] = ChannelConfig(
            channel=Channel(handle=handle, design=registered),
            layout=layout,
            transformation=transformation_name,
        )

    logger.info(
        "Engine armado: %d designs, %d schemas, %d canales",
        len(design_registry.designs()), len(schema_registry.names()), len(channel_configs),
    )
    return LivingdocEngine(
        designs=design_registry,
        schemas=schema_registry,
        transformations=transformation_registry,
        task_types=task_registry,
        store=store,
        pipeline=ImportPipeline(
            transformation_registry,
            store,
            asset_service,
            namespace=settings.import_namespace,
        ),
        workflow=TaskWorkflow(
            task_registry,
            store,
            namespace=settings.tasks_namespace,
            gate=gate,
            allow_reset=allow_reset,
        ),
        channels=channel_configs,
    )


def run_import(
    engine: LivingdocEngine,
    article: Article,
    channel: str,
    document_id: Optional[str] = None,
) -> Tuple[Livingdoc, Dict[str, Any]]:
    """
    Versión síncrona de `LivingdocEngine.import_article` para scripts/CLI.

    NO usar desde código que ya corre dentro de un event loop.
    """
    return asyncio.run(engine.import_article(article, channel, document_id=document_id))
