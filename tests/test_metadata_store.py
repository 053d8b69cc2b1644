import threading
from datetime import datetime, timezone

import pytest

from livingdoc_core.errors import (
    ConcurrencyConflict,
    DuplicateSchema,
    NotFound,
    ReservedNamespace,
    SchemaValidationError,
    UnknownSchema,
)
from livingdoc_core.metadata import FieldDef, FieldKind, MetadataStore, SchemaRegistry, SqlAlchemyBackend


def _no_breaking(value, config):
    return "el título no puede estar en mayúsculas" if value.isupper() else None


@pytest.fixture
def registry():
    registry = SchemaRegistry()
    registry.register_schema(
        "article",
        [
            FieldDef("title", FieldKind.TEXT, required=True, validator=_no_breaking),
            FieldDef("teaser", FieldKind.TEXT, validator="max_length", config={"max_length": 20}),
            FieldDef("priority", FieldKind.NUMBER, validator="min_max", config={"min": 1, "max": 5}),
            FieldDef("published", FieldKind.DATETIME),
            FieldDef("author", FieldKind.REFERENCE),
            FieldDef("tags", FieldKind.LIST),
            FieldDef(
                "seo",
                FieldKind.OBJECT,
                fields=(
                    FieldDef("slug", FieldKind.TEXT, validator="pattern", config={"pattern": r"[a-z0-9-]+"}),
                    FieldDef("noindex", FieldKind.BOOLEAN),
                ),
            ),
        ],
    )
    return registry


@pytest.fixture
def store(registry):
    return MetadataStore(registry)


# ============================================================
# Registro de schemas
# ============================================================

def test_register_schema_duplicate(registry):
    with pytest.raises(DuplicateSchema):
        registry.register_schema("article", [])


def test_register_schema_unknown_validator():
    with pytest.raises(ValueError):
        SchemaRegistry().register_schema("x", [FieldDef("a", FieldKind.TEXT, validator="nope")])


def test_index_mapping_covers_every_field(registry):
    mapping = registry.get("article").index_mapping()

    assert mapping == {
        "title": "text",
        "teaser": "text",
        "priority": "float",
        "published": "date",
        "author": "keyword",
        "tags": "keyword",
        "seo": {"type": "object", "properties": {"slug": "text", "noindex": "boolean"}},
    }


# ============================================================
# set / get
# ============================================================

def test_set_then_get_returns_validated_value(store):
    when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    record = store.set(
        "doc-1",
        "article",
        {"title": "Hola", "published": when, "author": "user-7", "teaser": None},
    )

    assert record.revision == 1
    assert store.get("doc-1", "article") == {
        "title": "Hola",
        "published": when.isoformat(),
        "author": {"id": "user-7"},
    }


def test_set_is_idempotent(store):
    value = {"title": "Hola", "tags": ["a", "b"]}
    store.set("doc-1", "article", value)
    first = store.get("doc-1", "article")
    store.set("doc-1", "article", value)

    assert store.get("doc-1", "article") == first


def test_get_without_record(store):
    with pytest.raises(NotFound):
        store.get("doc-x", "article")
    with pytest.raises(UnknownSchema):
        store.get("doc-x", "nope")


@pytest.mark.parametrize(
    "value",
    [
        {"title": "Hola", "extra": 1},
        {"title": "Hola", "a": 1, "b": 2, "c": 3},
        {"title": "Hola", "seo": {"slug": "ok", "canonical": "x"}},
        {"title": "Hola", "author": {"id": "u1", "name": "Ana"}},
    ],
)
def test_closed_schema_rejects_undeclared_fields(store, value):
    with pytest.raises(SchemaValidationError) as exc:
        store.set("doc-1", "article", value)
    assert "no declarado" in exc.value.reason


@pytest.mark.parametrize(
    "value, field_name",
    [
        ({}, "title"),
        ({"title": 3}, "title"),
        ({"title": "GRITANDO"}, "title"),
        ({"title": "ok", "teaser": "x" * 21}, "teaser"),
        ({"title": "ok", "priority": 9}, "priority"),
        ({"title": "ok", "priority": True}, "priority"),
        ({"title": "ok", "published": "ayer"}, "published"),
        ({"title": "ok", "tags": ["a", 1]}, "tags"),
        ({"title": "ok", "seo": {"slug": "Con Espacios"}}, "seo.slug"),
    ],
)
def test_set_failure_names_the_field(store, value, field_name):
    with pytest.raises(SchemaValidationError) as exc:
        store.set("doc-1", "article", value)
    assert exc.value.field_name == field_name
    assert exc.value.reason


def test_invalid_set_writes_nothing(store):
    store.set("doc-1", "article", {"title": "Original"})
    with pytest.raises(SchemaValidationError):
        store.set("doc-1", "article", {"title": "Nuevo", "priority": 99})

    assert store.get("doc-1", "article") == {"title": "Original"}
    assert store.get_record("doc-1", "article").revision == 1


def test_store_does_not_share_references_with_caller(store):
    value = {"title": "Hola", "tags": ["a"]}
    store.set("doc-1", "article", value)
    value["tags"].append("b")
    read = store.get("doc-1", "article")
    read["tags"].append("c")

    assert store.get("doc-1", "article")["tags"] == ["a"]


# ============================================================
# Concurrencia
# ============================================================

def test_expected_revision_detects_conflict(store):
    store.set("doc-1", "article", {"title": "v1"}, expected_revision=0)
    with pytest.raises(ConcurrencyConflict):
        store.set("doc-1", "article", {"title": "v2"}, expected_revision=0)
    store.set("doc-1", "article", {"title": "v2"}, expected_revision=1)
    assert store.get("doc-1", "article") == {"title": "v2"}


def test_concurrent_writes_with_same_revision_single_winner(store):
    barrier = threading.Barrier(8)
    results = []

    def writer(i):
        barrier.wait()
        try:
            store.set("doc-1", "article", {"title": f"t{i}"}, expected_revision=0)
            results.append("ok")
        except ConcurrencyConflict:
            results.append("conflict")

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("conflict") == 7
    assert store.get_record("doc-1", "article").revision == 1


# ============================================================
# Backend SQLAlchemy
# ============================================================

def test_sqlalchemy_backend_persists_validated_record(registry, session_factory):
    store = MetadataStore(registry, backend=SqlAlchemyBackend(session_factory))
    store.set("doc-1", "article", {"title": "Hola", "author": "u1"})
    store.set("doc-1", "article", {"title": "Chau"})

    # otro store sobre la misma base ve lo mismo
    other = MetadataStore(registry, backend=SqlAlchemyBackend(session_factory))
    record = other.get_record("doc-1", "article")
    assert record.data == {"title": "Chau"}
    assert record.revision == 2

    with pytest.raises(SchemaValidationError):
        other.set("doc-1", "article", {"title": "Hola", "nope": 1})
    assert other.get("doc-1", "article") == {"title": "Chau"}


class StaleBackend(SqlAlchemyBackend):
    """Backend cuya primera lectura devuelve una foto vieja (otro proceso escribió después)."""

    def __init__(self, session_factory, stale):
        super().__init__(session_factory)
        self._stale = [stale]

    def load(self, document_id, schema_name):
        if self._stale:
            return self._stale.pop()
        return super().load(document_id, schema_name)


def test_sqlalchemy_backend_update_checks_revision_in_database(registry, session_factory):
    writer = MetadataStore(registry, backend=SqlAlchemyBackend(session_factory))
    writer.set("doc-1", "article", {"title": "v1"})
    writer.set("doc-1", "article", {"title": "v2"}, expected_revision=1)

    # otro proceso leyó la revisión 1 antes de que se escribiera la 2
    other = MetadataStore(registry, backend=StaleBackend(session_factory, (1, {"title": "v1"})))
    with pytest.raises(ConcurrencyConflict) as exc:
        other.set("doc-1", "article", {"title": "v3"}, expected_revision=1)

    assert exc.value.actual == 2
    assert writer.get_record("doc-1", "article").data == {"title": "v2"}


def test_sqlalchemy_backend_first_insert_race_is_conflict(registry, session_factory):
    writer = MetadataStore(registry, backend=SqlAlchemyBackend(session_factory))
    writer.set("doc-1", "article", {"title": "primero"}, expected_revision=0)

    # el otro proceso todavía no veía el registro
    other = MetadataStore(registry, backend=StaleBackend(session_factory, None))
    with pytest.raises(ConcurrencyConflict):
        other.set("doc-1", "article", {"title": "segundo"}, expected_revision=0)

    assert writer.get("doc-1", "article") == {"title": "primero"}


def test_sqlalchemy_backend_retries_write_without_expected_revision(registry, session_factory):
    writer = MetadataStore(registry, backend=SqlAlchemyBackend(session_factory))
    writer.set("doc-1", "article", {"title": "v1"})
    writer.set("doc-1", "article", {"title": "v2"})

    other = MetadataStore(registry, backend=StaleBackend(session_factory, (1, {"title": "v1"})))
    record = other.set("doc-1", "article", {"title": "v3"})

    assert record.revision == 3
    assert writer.get("doc-1", "article") == {"title": "v3"}


def test_locks_do_not_grow_with_documents(store):
    locks = list(store._locks)
    for i in range(500):
        store.set(f"doc-{i}", "article", {"title": "Hola"})

    assert store._locks == locks
    assert store._lock_for("doc-1", "article") is store._lock_for("doc-1", "article")


def test_reserved_namespace_requires_owner_token(store):
    token = store.reserve("article")

    with pytest.raises(ReservedNamespace):
        store.set("doc-1", "article", {"title": "Hola"})
    with pytest.raises(ReservedNamespace):
        store.set("doc-1", "article", {"title": "Hola"}, owner=object())
    with pytest.raises(ReservedNamespace):
        store.reserve("article")

    store.set("doc-1", "article", {"title": "Hola"}, owner=token)
    assert store.get("doc-1", "article") == {"title": "Hola"}
