"""
livingdoc_core.workflow
=======================

Workflow editorial por tareas.

Un `TaskType` declara una secuencia ordenada de estados. Cada documento
tiene a lo sumo una instancia por tipo de tarea, guardada dentro del
namespace reservado de metadata (por defecto "tasks") como:

    {"<task_type>": {"state_index": <int>}}

Reglas
------
- Estado inicial: índice 0.
- `advance` mueve exactamente un estado hacia adelante. Nunca salta ni
  retrocede. En un estado que completa la tarea levanta `TerminalTask`.
- `advance` es compare-and-set: el llamador pasa la instancia que leyó; si
  el estado guardado ya no es ese (otro llamador ganó la transición) se
  levanta `ConcurrencyConflict`. Nunca se avanza dos veces "sin querer".
- Volver atrás (`reset`) solo existe si el deployment lo habilita
  (`allow_reset=True`).
- El namespace queda reservado en el store: nadie más puede escribirlo, así
  que un estado final solo se alcanza pasando por todos los anteriores.
- `can_publish` solo responde la pregunta; publicar es de otro colaborador.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from .errors import (
    ConcurrencyConflict,
    DuplicateTaskType,
    NotFound,
    StructuralError,
    TerminalTask,
    UnknownTaskType,
)
from .metadata.schema import FieldDef, FieldKind
from .metadata.store import MetadataStore

logger = logging.getLogger(__name__)


# ============================================================
# Definiciones
# ============================================================

@dataclass(frozen=True)
class TaskState:
    name: str
    label: str = ""
    completes_task: bool = False


@dataclass(frozen=True)
class TaskType:
    """
    Secuencia ordenada de estados de una tarea.

    Se valida al construir: al menos un estado, nombres únicos y al menos un
    estado que complete la tarea.
    """

    name: str
    states: Tuple[TaskState, ...]
    label: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", tuple(self.states))
        if not self.states:
            raise StructuralError(f"El tipo de tarea '{self.name}' no declara estados")
        names = [s.name for s in self.states]
        if len(set(names)) != len(names):
            raise StructuralError(f"El tipo de tarea '{self.name}' repite nombres de estado")
        if not any(s.completes_task for s in self.states):
            raise StructuralError(f"El tipo de tarea '{self.name}' no tiene estado final")

    def index_of(self, state_name: str) -> int:
        for i, state in enumerate(self.states):
            if state.name == state_name:
                return i
        raise StructuralError(f"El tipo de tarea '{self.name}' no tiene el estado '{state_name}'")


@dataclass(frozen=True)
class TaskInstance:
    task_type: TaskType
    state_index: int = 0

    @property
    def state(self) -> TaskState:
        return self.task_type.states[self.state_index]

    @property
    def is_terminal(self) -> bool:
        return self.state.completes_task

    def to_dict(self) -> Dict[str, int]:
        return {"state_index": self.state_index}


class TaskTypeRegistry:
    def __init__(self) -> None:
        self._types: Dict[str, TaskType] = {}

    def register(self, task_type: TaskType) -> TaskType:
        if task_type.name in self._types:
            raise DuplicateTaskType(task_type.name)
        self._types[task_type.name] = task_type
        logger.info("Tipo de tarea registrado: %s (%d estados)", task_type.name, len(task_type.states))
        return task_type

    def get(self, name: str) -> TaskType:
        try:
            return self._types[name]
        except KeyError:
            raise UnknownTaskType(name) from None

    def names(self) -> List[str]:
        return list(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._types


def tasks_schema_fields(task_types: TaskTypeRegistry) -> Tuple[FieldDef, ...]:
    """
    Campos del namespace de tareas. Además del chequeo estructural, valida
    que cada tarea sea de un tipo registrado y que su índice exista.
    """

    def known_states(value: Dict[str, Dict[str, int]], config: Dict) -> Optional[str]:
        for name, data in value.items():
            if name not in task_types:
                return f"tipo de tarea desconocido: '{name}'"
            if data["state_index"] >= len(task_types.get(name).states):
                return f"la tarea '{name}' no tiene el estado {data['state_index']}"
        return None

    return (FieldDef("tasks", FieldKind.TASKS, required=True, validator=known_states),)


# ============================================================
# Gate de publicación
# ============================================================

@dataclass(frozen=True)
class PublishAllowed:
    allowed: bool = True


@dataclass(frozen=True)
class PublishBlocked:
    reason: str
    allowed: bool = False


PublishDecision = Union[PublishAllowed, PublishBlocked]

# predicate(tasks) -> None si permite, o el motivo del bloqueo
GatePredicate = Callable[[Dict[str, TaskInstance]], Optional[str]]


@dataclass(frozen=True)
class PublishGate:
    name: str
    predicate: GatePredicate

    def evaluate(self, tasks: Dict[str, TaskInstance]) -> Optional[str]:
        return self.predicate(tasks)


def state_equals(task_type: str, state_name: str) -> PublishGate:
    """Permite publicar solo si la tarea `task_type` está en `state_name`."""

    def predicate(tasks: Dict[str, TaskInstance]) -> Optional[str]:
        instance = tasks.get(task_type)
        if instance is None:
            return f"La tarea '{task_type}' no fue iniciada"
        if instance.state.name != state_name:
            return (
                f"La tarea '{task_type}' está en '{instance.state.name}', "
                f"se requiere '{state_name}'"
            )
        return None

    return PublishGate(f"{task_type}=={state_name}", predicate)


def task_completed(task_type: str) -> PublishGate:
    """Permite publicar solo si la tarea llegó a un estado final."""

    def predicate(tasks: Dict[str, TaskInstance]) -> Optional[str]:
        instance = tasks.get(task_type)
        if instance is None:
            return f"La tarea '{task_type}' no fue iniciada"
        if not instance.is_terminal:
            return f"La tarea '{task_type}' no está completa (estado '{instance.state.name}')"
        return None

    return PublishGate(f"{task_type} completa", predicate)


def all_of(*gates: PublishGate) -> PublishGate:
    def predicate(tasks: Dict[str, TaskInstance]) -> Optional[str]:
        for gate in gates:
            reason = gate.evaluate(tasks)
            if reason:
                return reason
        return None

    return PublishGate(" && ".join(g.name for g in gates), predicate)


# ============================================================
# Motor
# ============================================================

class TaskWorkflow:
    def __init__(
        self,
        task_types: TaskTypeRegistry,
        store: MetadataStore,
        namespace: str = "tasks",
        gate: PublishGate | None = None,
        allow_reset: bool = False,
    ) -> None:
        self.task_types = task_types
        self.store = store
        self.namespace = namespace
        self.gate = gate
        self.allow_reset = allow_reset
        # solo el workflow escribe el namespace de tareas
        self._owner = store.reserve(namespace)

    # ------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------

    def _read(self, document_id: str) -> Tuple[int, Dict[str, Dict[str, int]]]:
        try:
            record = self.store.get_record(document_id, self.namespace)
        except NotFound:
            return 0, {}
        return record.revision, record.data.get("tasks", {})

    def instances(self, document_id: str) -> Dict[str, TaskInstance]:
        _, raw = self._read(document_id)
        return {
            name: TaskInstance(self.task_types.get(name), data["state_index"])
            for name, data in raw.items()
        }

    def instance(self, document_id: str, task_type: str) -> TaskInstance:
        found = self.instances(document_id).get(task_type)
        if found is None:
            raise NotFound(document_id, f"{self.namespace}.{task_type}")
        return found

    # ------------------------------------------------------------
    # Transiciones
    # ------------------------------------------------------------

    def _write(
        self,
        document_id: str,
        revision: int,
        raw: Dict[str, Dict[str, int]],
        instance: TaskInstance,
    ) -> TaskInstance:
        tasks = dict(raw)
        tasks[instance.task_type.name] = instance.to_dict()
        self.store.set(
            document_id,
            self.namespace,
            {"tasks": tasks},
            expected_revision=revision,
            owner=self._owner,
        )
        return instance

    def start(self, document_id: str, task_type: str) -> TaskInstance:
        """Crea la instancia en el estado 0 (o devuelve la existente)."""
        definition = self.task_types.get(task_type)
        revision, raw = self._read(document_id)
        if task_type in raw:
            return TaskInstance(definition, raw[task_type]["state_index"])
        logger.info("Tarea %s iniciada en %s", task_type, document_id)
        return self._write(document_id, revision, raw, TaskInstance(definition, 0))

    def advance(self, document_id: str, instance: TaskInstance) -> TaskInstance:
        """
        Avanza la tarea exactamente un estado.

        Args:
            instance: la instancia tal como la vio el llamador.

        Raises:
            TerminalTask: la instancia ya está en un estado final.
            ConcurrencyConflict: el estado guardado ya no es el de `instance`.
        """
        if instance.is_terminal:
            raise TerminalTask(instance.task_type.name, instance.state.name)

        name = instance.task_type.name
        revision, raw = self._read(document_id)
        # una tarea todavía no guardada está en el estado inicial
        stored = raw.get(name, {}).get("state_index", 0)
        if stored != instance.state_index:
            logger.warning(
                "Conflicto al avanzar %s en %s: visto %d, guardado %d",
                name, document_id, instance.state_index, stored,
            )
            raise ConcurrencyConflict(f"{document_id}/{name}", instance.state_index, stored)

        advanced = TaskInstance(instance.task_type, instance.state_index + 1)
        self._write(document_id, revision, raw, advanced)
        logger.info(
            "Tarea %s en %s: %s -> %s",
            name, document_id, instance.state.name, advanced.state.name,
        )
        return advanced

    def reset(self, document_id: str, task_type: str, state_index: int = 0) -> TaskInstance:
        """
        Lleva la tarea a un estado anterior. Solo si el deployment lo permite.
        """
        if not self.allow_reset:
            raise StructuralError("El reset de tareas no está habilitado en este deployment")
        definition = self.task_types.get(task_type)
        if not 0 <= state_index < len(definition.states):
            raise StructuralError(f"Índice de estado inválido para '{task_type}': {state_index}")
        revision, raw = self._read(document_id)
        logger.info("Tarea %s en %s reseteada al estado %d", task_type, document_id, state_index)
        return self._write(document_id, revision, raw, TaskInstance(definition, state_index))

    # ------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------

    def can_publish(self, document_id: str) -> PublishDecision:
        if self.gate is None:
            return PublishAllowed()
        reason = self.gate.evaluate(self.instances(document_id))
        if reason:
            return PublishBlocked(reason)
        return PublishAllowed()


# ============================================================
# Tipos de tarea predefinidos (V1)
# ============================================================

EDITORIAL_REVIEW_V1 = TaskType(
    name="editorial-review",
    label="Revisión editorial",
    states=(
        TaskState("ready", "Lista para revisión"),
        TaskState("content-review", "Revisión de contenido"),
        TaskState("design-review", "Revisión de diseño"),
        TaskState("editorial-review", "Revisión editorial", completes_task=True),
    ),
)
