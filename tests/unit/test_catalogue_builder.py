from __future__ import annotations

import pytest

from nodeforge.core.catalogue import (
    AttributeDesc,
    AttributeType,
    CatalogueBuilder,
    NodeTypeDesc,
    SonSpec,
    TraversalDesc,
    TypeCatalogue,
)
from nodeforge.core.catalogue.models import FlagSpec
from nodeforge.core.config import CataloguePolicies, ZombiePolicy
from nodeforge.core.errors import (
    ERROR_CODE_DUPLICATE_NAME,
    ERROR_CODE_INVALID_NAME,
    ERROR_CODE_UNKNOWN_ATTRIBUTE_TYPE,
    ERROR_CODE_UNRESOLVED_REFERENCE,
    SchemaError,
)


def _builder() -> CatalogueBuilder:
    builder = CatalogueBuilder()
    builder.register_attribute_type(AttributeType(name="String", representation="string", default=""))
    builder.register_attribute_type(AttributeType(name="Link", representation="link"))
    return builder


def test_tags_follow_registration_order_and_zero_is_undefined() -> None:
    builder = _builder()
    assert builder.register_node_type(NodeTypeDesc(name="Leaf")) == 1
    assert builder.register_node_type(NodeTypeDesc(name="Pair", sons=[SonSpec("Left"), SonSpec("Right")])) == 2
    catalogue = builder.finalize()

    assert [node_type.name for node_type in catalogue.tags] == ["Leaf", "Pair"]
    assert catalogue.node_type_for_tag(2).name == "Pair"
    assert catalogue.node_type_for_tag(0) is None
    assert catalogue.node_type_for_tag(3) is None


def test_node_lookup_is_case_insensitive(catalogue: TypeCatalogue) -> None:
    assert catalogue.node_type("fundef").name == "Fundef"
    assert catalogue.node_type("FUNDEF") is catalogue.node_types["Fundef"]
    with pytest.raises(KeyError):
        catalogue.node_type("Lambda")


def test_duplicate_node_names_clash_case_insensitively() -> None:
    builder = _builder()
    builder.register_node_type(NodeTypeDesc(name="Call"))
    with pytest.raises(SchemaError) as exc_info:
        builder.register_node_type(NodeTypeDesc(name="CALL"))
    assert exc_info.value.code == ERROR_CODE_DUPLICATE_NAME


def test_nodeset_shares_the_node_namespace() -> None:
    builder = _builder()
    builder.register_node_type(NodeTypeDesc(name="Call"))
    with pytest.raises(SchemaError) as exc_info:
        builder.register_nodeset("Call", ["Call"])
    assert exc_info.value.code == ERROR_CODE_DUPLICATE_NAME


def test_duplicate_field_names_inside_one_node_are_rejected() -> None:
    builder = _builder()
    desc = NodeTypeDesc(
        name="Call",
        sons=[SonSpec("Args")],
        attributes=[AttributeDesc(name="ARGS", type="String")],
    )
    with pytest.raises(SchemaError) as exc_info:
        builder.register_node_type(desc)
    assert exc_info.value.code == ERROR_CODE_DUPLICATE_NAME
    assert exc_info.value.entity == "Call.ARGS"


@pytest.mark.parametrize("name", ["call", "9Call", "Call-Expr", ""])
def test_invalid_node_names_are_rejected(name: str) -> None:
    with pytest.raises(SchemaError) as exc_info:
        _builder().register_node_type(NodeTypeDesc(name=name))
    assert exc_info.value.code == ERROR_CODE_INVALID_NAME


def test_traversal_names_allow_lowercase_and_underscores() -> None:
    builder = _builder()
    builder.register_node_type(NodeTypeDesc(name="Leaf"))
    assert builder.register_traversal(TraversalDesc(name="free_vars")) == "free_vars"
    with pytest.raises(SchemaError):
        builder.register_traversal(TraversalDesc(name="_hidden"))


def test_unknown_attribute_type_is_rejected_at_registration() -> None:
    builder = _builder()
    desc = NodeTypeDesc(name="Num", attributes=[AttributeDesc(name="Value", type="Float")])
    with pytest.raises(SchemaError) as exc_info:
        builder.register_node_type(desc)
    assert exc_info.value.code == ERROR_CODE_UNKNOWN_ATTRIBUTE_TYPE


def test_link_representation_is_reserved() -> None:
    builder = CatalogueBuilder()
    with pytest.raises(SchemaError) as exc_info:
        builder.register_attribute_type(AttributeType(name="Pointer", representation="link"))
    assert exc_info.value.code == ERROR_CODE_INVALID_NAME
    with pytest.raises(SchemaError):
        builder.register_attribute_type(AttributeType(name="Link", representation="node", disposition="node"))


def test_unresolved_son_target_fails_finalize() -> None:
    builder = _builder()
    builder.register_node_type(NodeTypeDesc(name="Call", sons=[SonSpec("Callee", target="Expr")]))
    with pytest.raises(SchemaError) as exc_info:
        builder.finalize()
    assert exc_info.value.code == ERROR_CODE_UNRESOLVED_REFERENCE
    assert exc_info.value.entity == "Call.Callee"


def test_unresolved_nodeset_member_fails_finalize() -> None:
    builder = _builder()
    builder.register_nodeset("Expr", ["Call"])
    with pytest.raises(SchemaError) as exc_info:
        builder.finalize()
    assert exc_info.value.code == ERROR_CODE_UNRESOLVED_REFERENCE


def test_traversal_nodesets_expand_to_members(catalogue: TypeCatalogue) -> None:
    strict = catalogue.traversals["strict_walk"]
    assert strict.behavior_for("Id") == "error"
    assert strict.behavior_for("Num") == "error"
    assert strict.behavior_for("Module") == "sons"


def test_finalize_is_idempotent_and_closes_registration() -> None:
    builder = _builder()
    builder.register_node_type(NodeTypeDesc(name="Leaf"))
    first = builder.finalize()
    assert builder.finalize() is first
    with pytest.raises(RuntimeError):
        builder.register_node_type(NodeTypeDesc(name="Other"))


def test_layout_places_sons_then_attributes_then_flags(catalogue: TypeCatalogue) -> None:
    layout = catalogue.node_types["Fundef"].layout
    assert dict(layout.sons) == {"Next": 0, "Body": 1, "Args": 2}
    assert layout.attributes["Name"] == 3
    assert layout.flags["IsExported"] == 9
    assert layout.size == 11


def test_link_slots_are_numbered_from_one(catalogue: TypeCatalogue) -> None:
    fundef = catalogue.node_types["Fundef"]
    assert fundef.slot_of("Impl") == 1
    assert fundef.attribute_for_slot(1).name == "Impl"
    assert fundef.attribute_for_slot(0) is None
    assert [item.name for item in fundef.node_attributes] == ["Ann"]


def test_default_policies_are_filtered_to_the_schema(catalogue: TypeCatalogue) -> None:
    assert catalogue.policies.zombie.node == "Fundef"
    assert catalogue.policies.zombie.retain == ("Name", "Mod", "Type", "Impl")
    assert dict(catalogue.policies.detached.sons) == {"Fundef": ("Next", "Body")}
    assert catalogue.next_node_types == frozenset({"Fundef", "Id"})


def test_explicit_zombie_policy_must_resolve() -> None:
    builder = _builder()
    builder.register_node_type(NodeTypeDesc(name="Leaf"))
    builder.set_policies(CataloguePolicies(zombie=ZombiePolicy(node="Fundef", retain=(), explicit=True)))
    with pytest.raises(SchemaError) as exc_info:
        builder.finalize()
    assert exc_info.value.code == ERROR_CODE_UNRESOLVED_REFERENCE


def test_digest_is_stable_and_sensitive_to_shape() -> None:
    def build(flag_default: bool) -> TypeCatalogue:
        builder = _builder()
        builder.register_node_type(NodeTypeDesc(name="Leaf", flags=[FlagSpec("Marked", default=flag_default)]))
        return builder.finalize()

    assert build(False).digest == build(False).digest
    assert build(False).digest != build(True).digest


def test_duplicate_attribute_type_names_are_rejected() -> None:
    builder = _builder()
    with pytest.raises(SchemaError) as exc_info:
        builder.register_attribute_type(AttributeType(name="String", representation="string"))
    assert exc_info.value.code == ERROR_CODE_DUPLICATE_NAME
    assert exc_info.value.entity == "String"


@pytest.mark.parametrize("disposition", ["literal", "function"])
def test_node_representation_requires_node_copy(disposition: str) -> None:
    with pytest.raises(SchemaError) as exc_info:
        _builder().register_attribute_type(
            AttributeType(name="Tree", representation="node", disposition=disposition)  # type: ignore[arg-type]
        )
    assert exc_info.value.code == ERROR_CODE_INVALID_NAME
    assert exc_info.value.field == "copy"
