"""
Endpoints de metadata y workflow de documentos.

Este módulo maneja:
- GET  /api/v1/documents/{document_id}/metadata/{schema_name}
- PUT  /api/v1/documents/{document_id}/metadata/{schema_name}
- GET  /api/v1/documents/{document_id}/tasks
- POST /api/v1/documents/{document_id}/tasks/{task_type}/start
- POST /api/v1/documents/{document_id}/tasks/{task_type}/advance
- GET  /api/v1/documents/{document_id}/publish-check

La publicación en sí NO vive acá: `publish-check` solo responde si el
documento puede publicarse.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from livingdoc_core.engine import LivingdocEngine
from livingdoc_core.errors import LivingdocError
from livingdoc_core.workflow import PublishBlocked, TaskInstance

from ..dependencies import get_engine, to_http_exception
from ..models.requests import (
    MetadataResponse,
    MetadataWriteRequest,
    PublishCheckResponse,
    TaskAdvanceRequest,
    TaskStateResponse,
)

router = APIRouter(prefix="/api/v1/documents", tags=["documents"])


def _task_response(instance: TaskInstance) -> TaskStateResponse:
    return TaskStateResponse(
        task_type=instance.task_type.name,
        state_index=instance.state_index,
        state=instance.state.name,
        label=instance.state.label,
        is_terminal=instance.is_terminal,
    )


# ============================================================
# Metadata
# ============================================================

@router.get("/{document_id}/metadata/{schema_name}", response_model=MetadataResponse)
async def get_metadata(
    document_id: str,
    schema_name: str,
    engine: LivingdocEngine = Depends(get_engine),
):
    try:
        record = engine.store.get_record(document_id, schema_name)
    except LivingdocError as e:
        raise to_http_exception(e)
    return MetadataResponse(
        document_id=record.document_id,
        schema_name=record.schema_name,
        revision=record.revision,
        data=record.data,
    )


@router.put("/{document_id}/metadata/{schema_name}", response_model=MetadataResponse)
async def put_metadata(
    document_id: str,
    schema_name: str,
    request: MetadataWriteRequest,
    engine: LivingdocEngine = Depends(get_engine),
):
    """
    Reemplaza el registro completo del namespace (validado contra su schema).

    El namespace de tareas es reservado (400): se cambia con `advance`.
    """
    try:
        record = engine.store.set(
            document_id,
            schema_name,
            request.data,
            expected_revision=request.expected_revision,
        )
    except LivingdocError as e:
        raise to_http_exception(e)
    return MetadataResponse(
        document_id=record.document_id,
        schema_name=record.schema_name,
        revision=record.revision,
        data=record.data,
    )


# ============================================================
# Tareas
# ============================================================

@router.get("/{document_id}/tasks", response_model=List[TaskStateResponse])
async def list_tasks(
    document_id: str,
    engine: LivingdocEngine = Depends(get_engine),
):
    try:
        instances = engine.workflow.instances(document_id)
    except LivingdocError as e:
        raise to_http_exception(e)
    return [_task_response(i) for i in instances.values()]


@router.post("/{document_id}/tasks/{task_type}/start", response_model=TaskStateResponse)
async def start_task(
    document_id: str,
    task_type: str,
    engine: LivingdocEngine = Depends(get_engine),
):
    try:
        instance = engine.workflow.start(document_id, task_type)
    except LivingdocError as e:
        raise to_http_exception(e)
    return _task_response(instance)


@router.post("/{document_id}/tasks/{task_type}/advance", response_model=TaskStateResponse)
async def advance_task(
    document_id: str,
    task_type: str,
    request: TaskAdvanceRequest,
    engine: LivingdocEngine = Depends(get_engine),
):
    """
    Avanza la tarea un estado.

    `state_index` es el estado que el editor estaba viendo: si otro editor
    avanzó antes, responde 409 y hay que releer.
    """
    try:
        definition = engine.task_types.get(task_type)
        if request.state_index >= len(definition.states):
            raise HTTPException(
                status_code=422,
                detail=f"La tarea '{task_type}' no tiene el estado {request.state_index}",
            )
        seen = TaskInstance(definition, request.state_index)
        instance = engine.workflow.advance(document_id, seen)
    except LivingdocError as e:
        raise to_http_exception(e)
    return _task_response(instance)


@router.get("/{document_id}/publish-check", response_model=PublishCheckResponse)
async def publish_check(
    document_id: str,
    engine: LivingdocEngine = Depends(get_engine),
):
    try:
        decision = engine.workflow.can_publish(document_id)
    except LivingdocError as e:
        raise to_http_exception(e)
    if isinstance(decision, PublishBlocked):
        return PublishCheckResponse(document_id=document_id, allowed=False, reason=decision.reason)
    return PublishCheckResponse(document_id=document_id, allowed=True)
