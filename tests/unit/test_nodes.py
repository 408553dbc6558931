from __future__ import annotations

import pytest

from nodeforge.core.catalogue import TypeCatalogue
from nodeforge.core.errors import NodeStateError
from nodeforge.core.nodes import NodeFactory, SourceLocation


def test_allocate_applies_defaults_without_sharing(factory: NodeFactory) -> None:
    first = factory.make("Fundef")
    second = factory.make("Fundef")

    assert first.attr("Name") == ""
    assert first.attr("Type") == []
    assert first.attr("Type") is not second.attr("Type")
    assert first.flag("IsExported") is False
    assert first.son("Body") is None
    assert first.state == "live"
    assert first.location == SourceLocation()


def test_nodes_expose_their_type(factory: NodeFactory, catalogue: TypeCatalogue) -> None:
    node = factory.make("num", attributes={"Value": 5})
    assert node.kind == "Num"
    assert node.tag == catalogue.node_types["Num"].tag
    assert dict(node.attributes()) == {"Value": 5, "Cache": 7}
    assert node.next is None


def test_attach_enforces_son_targets(factory: NodeFactory) -> None:
    block = factory.make("Block")
    factory.attach(block, "Stmts", factory.make("Num"))
    factory.attach(block, "Stmts", factory.make("Id"))
    with pytest.raises(TypeError, match="Block.Stmts"):
        factory.attach(block, "Stmts", factory.make("Module"))


def test_unknown_fields_raise_key_error(factory: NodeFactory) -> None:
    node = factory.make("Id")
    with pytest.raises(KeyError):
        node.son("Body")
    with pytest.raises(KeyError):
        node.set_attr("Value", 1)
    with pytest.raises(KeyError):
        node.flag("Dirty")


def test_freed_nodes_reject_access(factory: NodeFactory) -> None:
    node = factory.make("Id", attributes={"Name": "x"})
    node.release()
    assert node.state == "freed"
    with pytest.raises(NodeStateError):
        node.attr("Name")
    with pytest.raises(NodeStateError):
        node.set_son("Next", None)


def test_chain_links_nodes_through_next(factory: NodeFactory) -> None:
    ids = [factory.make("Id", attributes={"Name": name}) for name in "abc"]
    head = factory.chain(ids)
    assert head is ids[0]
    assert head.next is ids[1]
    assert ids[1].next is ids[2]
    assert ids[2].next is None
    assert factory.chain([]) is None
