import pytest

from livingdoc_core.component_tree import create_tree
from livingdoc_core.designs import BASIC_V1, DesignRegistry, design_from_dict
from livingdoc_core.domain_models import Channel, MediaReference, RichText
from livingdoc_core.errors import (
    ChannelDesignMismatch,
    ContentKindMismatch,
    DuplicateDesign,
    StructuralError,
    UnknownComponentType,
    UnknownDesign,
    UnknownDirective,
    UnknownLayout,
)


OTHER_V1 = design_from_dict(
    {
        "name": "magazine",
        "version": "1.0.0",
        "layouts": [{"name": "feature"}],
        "components": [
            {"name": "quote", "directives": [{"name": "text", "kind": "text"}]},
        ],
    }
)


@pytest.fixture
def tree():
    return create_tree(BASIC_V1, "article")


def _paragraph(tree, text):
    p = tree.create_component("p")
    p.set_content("text", RichText(text))
    return p


# ============================================================
# Registro de designs
# ============================================================

def test_register_design_rejects_duplicate():
    registry = DesignRegistry()
    registry.register_design(BASIC_V1)
    with pytest.raises(DuplicateDesign):
        registry.register_design(BASIC_V1)


def test_get_design_without_version_returns_latest():
    v2 = design_from_dict({"name": "basic", "version": "2.0.0", "layouts": [{"name": "article"}]})
    registry = DesignRegistry()
    registry.register_design(BASIC_V1)
    registry.register_design(v2)

    assert registry.get("basic") is v2
    assert registry.get("basic", "1.0.0") is BASIC_V1
    with pytest.raises(UnknownDesign):
        registry.get("basic", "9.9.9")


def test_frozen_registry_rejects_designs():
    registry = DesignRegistry()
    registry.freeze()
    with pytest.raises(RuntimeError):
        registry.register_design(BASIC_V1)


def test_design_from_dict_rejects_unknown_kind():
    with pytest.raises(ValueError):
        design_from_dict(
            {
                "name": "x",
                "version": "1",
                "components": [{"name": "c", "directives": [{"name": "d", "kind": "video"}]}],
            }
        )


# ============================================================
# Árbol
# ============================================================

def test_create_tree_unknown_layout():
    with pytest.raises(UnknownLayout):
        create_tree(BASIC_V1, "landing")


def test_create_component_type_not_declared_by_design(tree):
    # "quote" existe en otro design, pero no en BASIC_V1
    for type_name in ["quote", "video", ""]:
        with pytest.raises(UnknownComponentType):
            tree.create_component(type_name)


def test_set_content_unknown_directive(tree):
    head = tree.create_component("head")
    with pytest.raises(UnknownDirective):
        head.set_content("subtitle", "x")


def test_set_content_wrong_kind(tree):
    p = tree.create_component("p")
    with pytest.raises(ContentKindMismatch) as exc:
        p.set_content("text", "texto plano")
    assert exc.value.directive == "text"
    assert exc.value.expected == "rich_text"
    assert exc.value.actual == "text"

    image = tree.create_component("image")
    with pytest.raises(ContentKindMismatch):
        image.set_content("image", {"url": "x"})

    container = tree.create_component("container")
    container.set_content("config", {"columns": 2})
    assert container.get_content("config") == {"columns": 2}


def test_set_content_none_clears(tree):
    head = tree.create_component("head")
    head.set_content("title", "Hola")
    head.set_content("title", None)
    assert head.content == {}


def test_append_and_insert_at_keep_order(tree):
    a = tree.append(_paragraph(tree, "a"))
    c = tree.append(_paragraph(tree, "c"))
    b = tree.insert_at(1, _paragraph(tree, "b"))
    first = tree.insert_at(0, _paragraph(tree, "0"))

    assert tree.children() == [first, a, b, c]
    assert len(tree) == 4


def test_insert_at_out_of_range_inserts_nothing(tree):
    tree.append(_paragraph(tree, "a"))
    p = _paragraph(tree, "b")
    with pytest.raises(IndexError):
        tree.insert_at(5, p)
    assert len(tree) == 1
    # sigue siendo insertable
    tree.append(p)
    assert len(tree) == 2


def test_nested_components_walk_in_document_order(tree):
    container = tree.append(tree.create_component("container"))
    inner_a = tree.append(_paragraph(tree, "a"), parent=container)
    inner_b = tree.append(_paragraph(tree, "b"), parent=container)
    after = tree.append(_paragraph(tree, "after"))

    assert list(tree.walk()) == [container, inner_a, inner_b, after]
    assert tree.children(container) == [inner_a, inner_b]
    assert tree.parent_of(inner_a) is container
    assert tree.parent_of(container) is None
    assert tree.find("p") == [inner_a, inner_b, after]


def test_component_cannot_be_inserted_twice_or_in_other_tree(tree):
    p = tree.append(_paragraph(tree, "a"))
    with pytest.raises(StructuralError):
        tree.append(p)

    other = create_tree(BASIC_V1, "article")
    with pytest.raises(StructuralError):
        other.append(p)
    assert len(other) == 0


def test_remove_drops_subtree(tree):
    container = tree.append(tree.create_component("container"))
    tree.append(_paragraph(tree, "a"), parent=container)
    keep = tree.append(_paragraph(tree, "keep"))

    tree.remove(container)

    assert list(tree.walk()) == [keep]
    assert len(tree) == 1


def test_tree_only_holds_inserted_components(tree):
    detached = _paragraph(tree, "nunca insertado")
    kept = tree.append(_paragraph(tree, "a"))

    assert detached not in tree
    assert kept in tree

    tree.remove(kept)
    assert kept not in tree
    # un componente quitado vuelve a ser insertable
    tree.append(kept)
    assert list(tree.walk()) == [kept]


def test_to_dict_serializes_content(tree):
    head = tree.create_component("head")
    head.set_content("title", "Titular")
    tree.append(head)
    image = tree.create_component("image")
    image.set_content("image", MediaReference("https://cdn/x.jpg", 10, 20, 300, "image/jpeg"))
    tree.append(image)

    snapshot = tree.to_dict()

    assert snapshot["design"] == {"name": "basic", "version": "1.0.0"}
    assert snapshot["layout"] == "article"
    assert [c["component"] for c in snapshot["content"]] == ["head", "image"]
    assert snapshot["content"][1]["content"]["image"]["mimeType"] == "image/jpeg"


def test_tree_design_is_immutable(tree):
    with pytest.raises(AttributeError):
        tree.design = OTHER_V1


# ============================================================
# Canal
# ============================================================

def test_channel_rejects_tree_of_other_design():
    channel = Channel(handle="news", design=BASIC_V1)
    with pytest.raises(ChannelDesignMismatch):
        channel.create_document("doc-1", create_tree(OTHER_V1, "feature"))

    doc = channel.create_document("doc-2", create_tree(BASIC_V1, "article"))
    assert doc.channel == "news"
    assert doc.design is BASIC_V1
