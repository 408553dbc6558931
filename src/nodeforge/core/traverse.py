from __future__ import annotations

from collections.abc import Callable, Mapping

from nodeforge.core.catalogue.models import TypeCatalogue
from nodeforge.core.errors import TraversalError
from nodeforge.core.nodes import Node

NodeHandler = Callable[[Node, "TraversalRunner"], "Node | None"]


class TraversalRunner:
    """Walks a tree with one catalogue traversal.

    Per node type the traversal selects the user handler, a plain descent
    into the sons, an error, or nothing at all.
    """

    def __init__(
        self,
        catalogue: TypeCatalogue,
        traversal: str,
        handlers: Mapping[str, NodeHandler] | None = None,
    ) -> None:
        if traversal not in catalogue.traversals:
            raise KeyError(f"Unknown traversal: {traversal}")
        self.catalogue = catalogue
        self.traversal = catalogue.traversals[traversal]
        self.handlers = dict(handlers or {})

        missing = [
            node_type.name
            for node_type in catalogue.tags
            if self.traversal.behavior_for(node_type.name) == "user" and node_type.name not in self.handlers
        ]
        if missing:
            raise TraversalError(
                f"Traversal {self.traversal.name} needs user handlers for: {', '.join(missing)}"
            )

    def visit(self, node: Node) -> Node | None:
        behavior = self.traversal.behavior_for(node.kind)
        if behavior == "user":
            return self.handlers[node.kind](node, self)
        if behavior == "sons":
            return self.visit_sons(node)
        if behavior == "error":
            raise TraversalError(f"Traversal {self.traversal.name} must not reach {node.kind} nodes")
        return node

    def visit_sons(self, node: Node) -> Node:
        for name, child in node.sons():
            if child is not None:
                node.set_son(name, self.visit(child))
        return node


__all__ = ["NodeHandler", "TraversalRunner"]
