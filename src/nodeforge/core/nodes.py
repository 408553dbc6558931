from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from nodeforge.core.catalogue.models import NodeType, TypeCatalogue
from nodeforge.core.constants import NEXT_SON
from nodeforge.core.errors import NodeStateError

NodeState = Literal["live", "freed", "zombie"]


@dataclass(slots=True, frozen=True)
class SourceLocation:
    file: str | None = None
    line: int = 0
    col: int = 0


class Node:
    """A live AST node whose storage is one block laid out by its node type."""

    __slots__ = ("node_type", "location", "error", "state", "visited", "cells")

    def __init__(self, node_type: NodeType, *, location: SourceLocation | None = None) -> None:
        self.node_type = node_type
        self.location = location or SourceLocation()
        self.error: Node | None = None
        self.state: NodeState = "live"
        self.visited = False
        self.cells: list[Any] = [None] * node_type.layout.size

    @property
    def kind(self) -> str:
        return self.node_type.name

    @property
    def tag(self) -> int:
        return self.node_type.tag

    def _offset(self, offsets: Mapping[str, int], name: str, what: str) -> int:
        if self.state == "freed":
            raise NodeStateError(f"Access to {what} {name!r} of freed {self.kind} node")
        try:
            return offsets[name]
        except KeyError:
            raise KeyError(f"Node type {self.kind} has no {what} {name!r}") from None

    def son(self, name: str) -> Node | None:
        return self.cells[self._offset(self.node_type.layout.sons, name, "son")]

    def set_son(self, name: str, value: Node | None) -> None:
        self.cells[self._offset(self.node_type.layout.sons, name, "son")] = value

    def attr(self, name: str) -> Any:
        return self.cells[self._offset(self.node_type.layout.attributes, name, "attribute")]

    def set_attr(self, name: str, value: Any) -> None:
        self.cells[self._offset(self.node_type.layout.attributes, name, "attribute")] = value

    def flag(self, name: str) -> bool:
        return bool(self.cells[self._offset(self.node_type.layout.flags, name, "flag")])

    def set_flag(self, name: str, value: bool) -> None:
        self.cells[self._offset(self.node_type.layout.flags, name, "flag")] = bool(value)

    @property
    def next(self) -> Node | None:
        if not self.node_type.has_next:
            return None
        return self.son(NEXT_SON)

    def sons(self) -> Iterator[tuple[str, Node | None]]:
        for son in self.node_type.sons:
            yield son.name, self.son(son.name)

    def attributes(self) -> Iterator[tuple[str, Any]]:
        for attribute in self.node_type.attributes:
            yield attribute.name, self.attr(attribute.name)

    def flags(self) -> Iterator[tuple[str, bool]]:
        for flag in self.node_type.flags:
            yield flag.name, self.flag(flag.name)

    def release(self) -> None:
        self.state = "freed"
        self.cells = []
        self.error = None

    def __repr__(self) -> str:
        return f"<Node {self.kind} {self.state} at 0x{id(self):x}>"


class NodeFactory:
    """Allocates nodes of a finalized catalogue and checks son constraints."""

    def __init__(self, catalogue: TypeCatalogue) -> None:
        self.catalogue = catalogue

    def allocate(self, node_type: NodeType, *, location: SourceLocation | None = None) -> Node:
        node = Node(node_type, location=location)
        for attribute in node_type.attributes:
            node.set_attr(attribute.name, copy.deepcopy(attribute.attribute_type.default))
        for flag in node_type.flags:
            node.set_flag(flag.name, flag.default)
        return node

    def make(
        self,
        type_name: str,
        *,
        location: SourceLocation | None = None,
        sons: Mapping[str, Node | None] | None = None,
        attributes: Mapping[str, Any] | None = None,
        flags: Mapping[str, bool] | None = None,
        error: Node | None = None,
    ) -> Node:
        node = self.allocate(self.catalogue.node_type(type_name), location=location)
        for name, value in (attributes or {}).items():
            node.set_attr(name, value)
        for name, value in (flags or {}).items():
            node.set_flag(name, value)
        for name, child in (sons or {}).items():
            self.attach(node, name, child)
        node.error = error
        return node

    def attach(self, parent: Node, son_name: str, child: Node | None) -> None:
        spec = parent.node_type.son_spec(son_name)
        if child is not None and not self.catalogue.accepts(spec, child.node_type):
            raise TypeError(
                f"Son {parent.kind}.{son_name} accepts {spec.target}, got {child.kind}"
            )
        parent.set_son(son_name, child)

    def chain(self, nodes: Sequence[Node]) -> Node | None:
        for current, following in zip(nodes, nodes[1:]):
            self.attach(current, NEXT_SON, following)
        return nodes[0] if nodes else None


__all__ = ["Node", "NodeFactory", "NodeState", "SourceLocation"]
