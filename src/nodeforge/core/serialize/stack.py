"""Phase 1 of serialization: stack-position assignment.

Nodes are numbered in a deterministic depth-first pre-order: the node
itself, then its owned sons in declaration order, then its persisted
Node-disposition attributes in declaration order.  Detached sons (definition
chains and bodies) are never entered by this walk; the chain driver queues
their targets as further roots, numbered after the current root is exhausted.

Emission writes one construct record per position and reconstruction
allocates one node per record, so the numbering is the only contract the
three phases share.  A non-persisted Node attribute is re-initialized on
reconstruction and therefore never gets a position here.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field

from nodeforge.core.catalogue.models import NodeType, TypeCatalogue
from nodeforge.core.constants import SERSTACK_NOT_FOUND
from nodeforge.core.nodes import Node
from nodeforge.core.plans import OperationPlan, Step


def derive_buildstack_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    detached = set(catalogue.detached_sons(node_type))
    steps = [Step(op="push")]
    for son in node_type.sons:
        op = "queue_detached" if son.name in detached else "stack_son"
        steps.append(Step(op=op, target=son.name))
    for attribute in node_type.node_attributes:
        if not attribute.persisted:
            continue
        steps.append(
            Step(
                op="stack_attribute",
                target=attribute.name,
                attribute_type=attribute.attribute_type.name,
                disposition=attribute.disposition,
            )
        )
    return OperationPlan(operation="buildstack", node_type=node_type.name, steps=tuple(steps))


class SerStack:
    def __init__(self) -> None:
        self._nodes: list[Node] = []
        self._positions: dict[int, int] = {}

    def push(self, node: Node) -> int:
        position = len(self._nodes)
        self._nodes.append(node)
        self._positions[id(node)] = position
        return position

    def find_pos(self, node: Node) -> int:
        return self._positions.get(id(node), SERSTACK_NOT_FOUND)

    def lookup(self, position: int) -> Node:
        return self._nodes[position]

    def __contains__(self, node: object) -> bool:
        return id(node) in self._positions

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)


@dataclass(slots=True)
class BuiltStack:
    stack: SerStack
    roots: list[Node] = field(default_factory=list)


class StackBuilder:
    def __init__(self, catalogue: TypeCatalogue) -> None:
        self.catalogue = catalogue
        self._plans = {item.tag: derive_buildstack_plan(catalogue, item) for item in catalogue.tags}

    def build(self, root: Node) -> BuiltStack:
        built = BuiltStack(stack=SerStack())
        queue: deque[Node] = deque([root])

        while queue:
            candidate = queue.popleft()
            if candidate in built.stack:
                continue
            built.roots.append(candidate)
            pending: list[Node] = [candidate]

            while pending:
                node = pending.pop()
                if node in built.stack:
                    continue
                built.stack.push(node)

                children: list[Node] = []
                for step in self._plans[node.tag].steps:
                    if step.op == "push":
                        continue
                    if step.op == "stack_attribute":
                        value = node.attr(step.target)  # type: ignore[arg-type]
                        if value is not None:
                            children.append(value)
                        continue
                    child = node.son(step.target)  # type: ignore[arg-type]
                    if child is None:
                        continue
                    if step.op == "stack_son":
                        children.append(child)
                    elif step.op == "queue_detached":
                        queue.append(child)
                    else:
                        raise ValueError(f"Unknown buildstack step: {step.op}")
                pending.extend(reversed(children))

        return built


__all__ = ["BuiltStack", "SerStack", "StackBuilder", "derive_buildstack_plan"]
