from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from nodeforge.core.config import CataloguePolicies
from nodeforge.core.constants import DEFAULT_TRAVERSAL_BEHAVIOR, NEXT_SON

Representation = Literal["scalar", "string", "structure", "node", "link"]
Disposition = Literal["literal", "function", "node"]
TraversalBehavior = Literal["user", "sons", "error", "none"]

VALID_REPRESENTATIONS = {"scalar", "string", "structure", "node", "link"}
VALID_DISPOSITIONS = {"literal", "function", "node"}
VALID_TRAVERSAL_BEHAVIORS = {"user", "sons", "error", "none"}


@dataclass(slots=True, frozen=True)
class AttributeType:
    name: str
    representation: Representation = "scalar"
    disposition: Disposition = "literal"
    persist: bool = True
    default: Any = None

    @property
    def is_link(self) -> bool:
        return self.representation == "link"

    def to_dict(self) -> dict[str, Any]:
        return {
            "representation": self.representation,
            "copy": self.disposition,
            "persist": self.persist,
            "default": self.default,
        }


@dataclass(slots=True, frozen=True)
class SonSpec:
    name: str
    target: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"target": self.target}


@dataclass(slots=True, frozen=True)
class AttributeSpec:
    name: str
    attribute_type: AttributeType
    persist_override: bool | None = None

    @property
    def disposition(self) -> Disposition:
        return self.attribute_type.disposition

    @property
    def is_link(self) -> bool:
        return self.attribute_type.is_link

    @property
    def persisted(self) -> bool:
        # Link values are restored by fix records, never inline.
        if self.attribute_type.is_link:
            return False
        if self.persist_override is not None:
            return self.persist_override
        return self.attribute_type.persist

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.attribute_type.name}
        if self.persist_override is not None:
            payload["persist"] = self.persist_override
        return payload


@dataclass(slots=True, frozen=True)
class FlagSpec:
    name: str
    default: bool = False
    persist: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"default": self.default, "persist": self.persist}


@dataclass(slots=True, frozen=True)
class NodeLayout:
    """Fixed cell offsets of one node type's combined storage block.

    Sons come first, then attributes, then flags, each in declaration order.
    """

    sons: Mapping[str, int]
    attributes: Mapping[str, int]
    flags: Mapping[str, int]
    size: int

    @classmethod
    def build(
        cls,
        sons: Iterable[SonSpec],
        attributes: Iterable[AttributeSpec],
        flags: Iterable[FlagSpec],
    ) -> NodeLayout:
        offset = 0
        son_offsets: dict[str, int] = {}
        for son in sons:
            son_offsets[son.name] = offset
            offset += 1
        attribute_offsets: dict[str, int] = {}
        for attribute in attributes:
            attribute_offsets[attribute.name] = offset
            offset += 1
        flag_offsets: dict[str, int] = {}
        for flag in flags:
            flag_offsets[flag.name] = offset
            offset += 1
        return cls(
            sons=MappingProxyType(son_offsets),
            attributes=MappingProxyType(attribute_offsets),
            flags=MappingProxyType(flag_offsets),
            size=offset,
        )


@dataclass(slots=True, frozen=True)
class NodeType:
    name: str
    tag: int
    sons: tuple[SonSpec, ...]
    attributes: tuple[AttributeSpec, ...]
    flags: tuple[FlagSpec, ...]
    layout: NodeLayout
    link_attributes: tuple[AttributeSpec, ...] = ()
    node_attributes: tuple[AttributeSpec, ...] = ()

    @property
    def has_next(self) -> bool:
        return NEXT_SON in self.layout.sons

    def son_spec(self, name: str) -> SonSpec:
        for son in self.sons:
            if son.name == name:
                return son
        raise KeyError(f"Node type {self.name} has no son {name!r}")

    def attribute_spec(self, name: str) -> AttributeSpec:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        raise KeyError(f"Node type {self.name} has no attribute {name!r}")

    def flag_spec(self, name: str) -> FlagSpec:
        for flag in self.flags:
            if flag.name == name:
                return flag
        raise KeyError(f"Node type {self.name} has no flag {name!r}")

    def slot_of(self, attribute_name: str) -> int:
        """1-based ordinal of a Link/CodeLink attribute among this type's links."""
        for index, attribute in enumerate(self.link_attributes, start=1):
            if attribute.name == attribute_name:
                return index
        raise KeyError(f"Node type {self.name} has no link attribute {attribute_name!r}")

    def attribute_for_slot(self, slot: int) -> AttributeSpec | None:
        if 1 <= slot <= len(self.link_attributes):
            return self.link_attributes[slot - 1]
        return None

    def to_dict(self) -> dict[str, Any]:
        # Declaration order fixes the record layout, so fields stay as ordered pairs.
        return {
            "tag": self.tag,
            "sons": [[son.name, son.to_dict()] for son in self.sons],
            "attributes": [[attribute.name, attribute.to_dict()] for attribute in self.attributes],
            "flags": [[flag.name, flag.to_dict()] for flag in self.flags],
        }


@dataclass(slots=True, frozen=True)
class NodeSet:
    name: str
    members: tuple[str, ...]

    def to_dict(self) -> list[str]:
        return list(self.members)


@dataclass(slots=True, frozen=True)
class Traversal:
    name: str
    default: TraversalBehavior = DEFAULT_TRAVERSAL_BEHAVIOR
    behaviors: Mapping[str, TraversalBehavior] = field(default_factory=lambda: MappingProxyType({}))

    def behavior_for(self, node_name: str) -> TraversalBehavior:
        return self.behaviors.get(node_name, self.default)

    def to_dict(self) -> dict[str, Any]:
        return {"default": self.default, "nodes": dict(self.behaviors)}


@dataclass(slots=True, frozen=True)
class TypeCatalogue:
    attribute_types: Mapping[str, AttributeType]
    node_types: Mapping[str, NodeType]
    nodesets: Mapping[str, NodeSet]
    traversals: Mapping[str, Traversal]
    policies: CataloguePolicies
    tags: tuple[NodeType, ...]
    folded_names: Mapping[str, str]
    next_node_types: frozenset[str]
    digest: str

    def node_type(self, name: str) -> NodeType:
        node_type = self.node_types.get(name)
        if node_type is not None:
            return node_type
        canonical = self.folded_names.get(name.casefold())
        if canonical is None or canonical not in self.node_types:
            raise KeyError(f"Unknown node type: {name}")
        return self.node_types[canonical]

    def node_type_for_tag(self, tag: int) -> NodeType | None:
        # Tag 0 stays reserved for "undefined".
        if isinstance(tag, bool) or not isinstance(tag, int) or not 1 <= tag <= len(self.tags):
            return None
        return self.tags[tag - 1]

    def accepts(self, son: SonSpec, node_type: NodeType) -> bool:
        if son.target is None or son.target == node_type.name:
            return True
        nodeset = self.nodesets.get(son.target)
        return nodeset is not None and node_type.name in nodeset.members

    def is_zombie_type(self, node_type: NodeType) -> bool:
        return self.policies.zombie.node == node_type.name

    def detached_sons(self, node_type: NodeType) -> tuple[str, ...]:
        return self.policies.detached.for_node(node_type.name)


__all__ = [
    "VALID_DISPOSITIONS",
    "VALID_REPRESENTATIONS",
    "VALID_TRAVERSAL_BEHAVIORS",
    "AttributeSpec",
    "AttributeType",
    "Disposition",
    "FlagSpec",
    "NodeLayout",
    "NodeSet",
    "NodeType",
    "Representation",
    "SonSpec",
    "Traversal",
    "TraversalBehavior",
    "TypeCatalogue",
]
