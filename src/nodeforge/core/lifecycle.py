"""Destroy operations derived from the catalogue.

Every node type gets a destroy plan: release the diagnostic side-node, the
``Next`` tail (unless the stop marker says otherwise), every Function/Node
attribute and every other owned son, then release the node itself.  The
zombie node type is never released; its plan keeps the retained identity
attributes and the storage so that non-owning links into it stay valid.

A destroy returns what should take the node's place in its parent: the next
surviving sibling for ordinary nodes, the node itself for a zombie.
"""

from __future__ import annotations

import logging

from nodeforge.core.attributes import AttributeHandlers
from nodeforge.core.catalogue.models import NodeType, TypeCatalogue
from nodeforge.core.constants import NEXT_SON
from nodeforge.core.nodes import Node
from nodeforge.core.plans import OperationPlan, Step

logger = logging.getLogger(__name__)

_HEAD_OPS = {"zombify", "destroy_error"}


def derive_destroy_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    zombie = catalogue.is_zombie_type(node_type)
    retained = set(catalogue.policies.zombie.retain) if zombie else set()

    steps: list[Step] = []
    if zombie:
        steps.append(Step(op="zombify"))
    steps.append(Step(op="destroy_error"))
    if node_type.has_next:
        steps.append(Step(op="destroy_tail", target=NEXT_SON))

    for attribute in node_type.attributes:
        if attribute.disposition == "literal" or attribute.name in retained:
            continue
        steps.append(
            Step(
                op="destroy_attribute",
                target=attribute.name,
                attribute_type=attribute.attribute_type.name,
                disposition=attribute.disposition,
            )
        )

    for son in node_type.sons:
        if son.name == NEXT_SON:
            continue
        steps.append(Step(op="destroy_son", target=son.name))

    steps.append(Step(op="retain" if zombie else "release"))
    return OperationPlan(operation="destroy", node_type=node_type.name, steps=tuple(steps))


class Destroyer:
    def __init__(self, catalogue: TypeCatalogue, handlers: AttributeHandlers | None = None) -> None:
        self.catalogue = catalogue
        self.handlers = handlers or AttributeHandlers()
        self._plans = {node_type.tag: derive_destroy_plan(catalogue, node_type) for node_type in catalogue.tags}

    def plan_for(self, node_type: NodeType) -> OperationPlan:
        return self._plans[node_type.tag]

    def destroy(self, node: Node, *, stop: Node | None = None) -> Node | None:
        """Destroy ``node`` and its ``Next`` tail up to, not including, ``stop``.

        With ``stop is node`` only the node itself is destroyed.  Returns the
        node that now follows in the chain (``None`` at the end of a chain).
        """
        chain = self._collect_chain(node, stop)
        logger.debug("processing %s chain of %d at 0x%x", node.kind, len(chain), id(node))

        # Side effects match the recursive order: each head runs before its
        # tail is destroyed, each body after.
        for member in chain:
            self._run(member, head=True)

        result: Node | None = None
        for index in range(len(chain) - 1, -1, -1):
            member = chain[index]
            if index + 1 < len(chain):
                member.set_son(NEXT_SON, result)
            result = self._run(member, head=False)
        return result

    def destroy_tree(self, node: Node) -> Node | None:
        return self.destroy(node, stop=None)

    def destroy_node(self, node: Node) -> Node | None:
        return self.destroy(node, stop=node)

    def _collect_chain(self, node: Node, stop: Node | None) -> list[Node]:
        chain = [node]
        seen = {id(node)}
        current = node
        while current.node_type.has_next and current is not stop:
            tail = current.son(NEXT_SON)
            # A chain closed through its tail is cut at the first repeat.
            if tail is None or tail is stop:
                break
            if id(tail) in seen:
                current.set_son(NEXT_SON, None)
                break
            chain.append(tail)
            seen.add(id(tail))
            current = tail
        return chain

    def _run(self, node: Node, *, head: bool) -> Node | None:
        plan = self._plans[node.tag]
        result: Node | None = None
        for step in plan.steps:
            if (step.op in _HEAD_OPS) != head:
                continue
            if step.op == "zombify":
                logger.debug("transforming %s at 0x%x into a zombie", node.kind, id(node))
                node.state = "zombie"
            elif step.op == "destroy_error":
                if node.error is not None:
                    node.error = self.destroy_tree(node.error)
            elif step.op == "destroy_tail":
                continue
            elif step.op == "destroy_attribute":
                self._destroy_attribute(node, step)
            elif step.op == "destroy_son":
                child = node.son(step.target)  # type: ignore[arg-type]
                if child is not None:
                    node.set_son(step.target, self.destroy_tree(child))  # type: ignore[arg-type]
            elif step.op == "release":
                result = node.next
                logger.debug("freeing node %s at 0x%x", node.kind, id(node))
                node.release()
            elif step.op == "retain":
                result = node
            else:
                raise ValueError(f"Unknown destroy step: {step.op}")
        return result

    def _destroy_attribute(self, node: Node, step: Step) -> None:
        name = step.target
        if name is None:
            raise ValueError("destroy_attribute step has no target")
        value = node.attr(name)
        if value is None:
            return
        if step.disposition == "node":
            node.set_attr(name, self.destroy_tree(value))
            return
        attribute_type = self.catalogue.attribute_types[step.attribute_type]  # type: ignore[index]
        node.set_attr(name, self.handlers.destroy(attribute_type, value, node))


__all__ = ["Destroyer", "derive_destroy_plan"]
