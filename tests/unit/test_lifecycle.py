from __future__ import annotations

from typing import Any

from nodeforge.core.attributes import AttributeHandlers
from nodeforge.core.catalogue import TypeCatalogue
from nodeforge.core.lifecycle import Destroyer, derive_destroy_plan
from nodeforge.core.nodes import Node, NodeFactory


def _id_chain(factory: NodeFactory, count: int) -> list[Node]:
    nodes = [factory.make("Id", attributes={"Name": f"v{index}"}) for index in range(1, count + 1)]
    factory.chain(nodes)
    return nodes


def test_destroy_plan_for_zombie_type(catalogue: TypeCatalogue) -> None:
    plan = derive_destroy_plan(catalogue, catalogue.node_types["Fundef"])
    assert plan.ops() == [
        "zombify",
        "destroy_error",
        "destroy_tail",
        "destroy_attribute",
        "destroy_attribute",
        "destroy_son",
        "destroy_son",
        "retain",
    ]
    assert [step.target for step in plan.steps if step.op == "destroy_attribute"] == ["Extra", "Ann"]


def test_destroy_plan_skips_literal_attributes(catalogue: TypeCatalogue) -> None:
    assert derive_destroy_plan(catalogue, catalogue.node_types["Id"]).ops() == [
        "destroy_error",
        "destroy_tail",
        "release",
    ]
    assert derive_destroy_plan(catalogue, catalogue.node_types["Block"]).ops() == [
        "destroy_error",
        "destroy_son",
        "release",
    ]


def test_destroy_tree_frees_the_whole_chain(catalogue: TypeCatalogue, factory: NodeFactory) -> None:
    nodes = _id_chain(factory, 5)
    assert Destroyer(catalogue).destroy_tree(nodes[0]) is None
    assert all(node.state == "freed" for node in nodes)


def test_stop_marker_keeps_the_rest_of_the_chain(catalogue: TypeCatalogue, factory: NodeFactory) -> None:
    nodes = _id_chain(factory, 5)
    result = Destroyer(catalogue).destroy(nodes[0], stop=nodes[2])

    assert result is nodes[2]
    assert [node.state for node in nodes] == ["freed", "freed", "live", "live", "live"]
    assert nodes[2].next is nodes[3]
    assert nodes[3].next is nodes[4]


def test_destroy_node_returns_its_successor(catalogue: TypeCatalogue, factory: NodeFactory) -> None:
    nodes = _id_chain(factory, 3)
    result = Destroyer(catalogue).destroy_node(nodes[1])
    assert result is nodes[2]
    assert nodes[1].state == "freed"
    assert nodes[2].state == "live"


def test_cyclic_chain_is_destroyed_once(catalogue: TypeCatalogue, factory: NodeFactory) -> None:
    nodes = _id_chain(factory, 3)
    nodes[2].set_son("Next", nodes[0])
    assert Destroyer(catalogue).destroy_tree(nodes[0]) is None
    assert all(node.state == "freed" for node in nodes)


def test_error_side_node_and_owned_sons_are_freed(catalogue: TypeCatalogue, factory: NodeFactory) -> None:
    error = factory.make("Error", attributes={"Message": "bad token"})
    stmt = factory.make("Num", attributes={"Value": 1})
    block = factory.make("Block", sons={"Stmts": stmt}, error=error)

    assert Destroyer(catalogue).destroy_tree(block) is None
    assert error.state == "freed"
    assert stmt.state == "freed"
    assert block.state == "freed"


def test_zombie_keeps_identity_and_releases_owned_parts(
    catalogue: TypeCatalogue, program: dict[str, Node]
) -> None:
    released: list[Any] = []
    handlers = AttributeHandlers()
    handlers.register("TypeList", destroy=lambda value, parent: released.append(list(value)))

    f1 = program["f1"]
    result = Destroyer(catalogue, handlers).destroy_node(f1)

    assert result is f1
    assert f1.state == "zombie"
    assert f1.attr("Name") == "first"
    assert f1.attr("Mod") == "main"
    assert f1.attr("Type") == ["int", "int"]
    assert f1.attr("Extra") is None
    assert released == [["inline"]]
    assert f1.attr("Ann") is None
    assert program["ann"].state == "freed"
    assert f1.son("Body") is None
    assert program["body"].state == "freed"
    assert program["ident"].state == "freed"
    assert f1.son("Args") is None
    assert program["a1"].state == "freed"
    assert program["a2"].state == "freed"
    # destroy_node leaves the tail alone
    assert f1.son("Next") is program["f2"]
    assert program["f2"].state == "live"


def test_zombie_in_a_chain_stays_linked(catalogue: TypeCatalogue, program: dict[str, Node]) -> None:
    module = program["module"]
    Destroyer(catalogue).destroy_tree(module)

    assert module.state == "freed"
    assert program["f1"].state == "zombie"
    assert program["f2"].state == "zombie"
    assert program["f1"].son("Next") is program["f2"]
    assert program["f2"].attr("Impl") is program["f1"]


def test_function_attributes_default_to_type_default(catalogue: TypeCatalogue, factory: NodeFactory) -> None:
    node = factory.make("Fundef", attributes={"Extra": ["x"]})
    Destroyer(catalogue).destroy_node(node)
    assert node.attr("Extra") == []
