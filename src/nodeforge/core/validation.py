from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from nodeforge.core.catalogue.models import NodeType, TypeCatalogue
from nodeforge.core.constants import NEXT_SON
from nodeforge.core.nodes import Node
from nodeforge.core.plans import OperationPlan, Step

FindingCode = Literal["shared_node", "freed_node", "shared_attribute"]

_UNTRACKED_VALUES = (str, bytes, int, float, bool, tuple, frozenset)


def derive_reset_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    steps = [Step(op="clear_visited")]
    steps.extend(Step(op="reset_son", target=son.name) for son in node_type.sons)
    return OperationPlan(operation="reset", node_type=node_type.name, steps=tuple(steps))


def derive_check_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    steps = [Step(op="touch_node"), Step(op="check_error")]
    if node_type.has_next:
        steps.append(Step(op="check_son", target=NEXT_SON))
    for attribute in node_type.attributes:
        if attribute.disposition == "literal":
            continue
        steps.append(
            Step(
                op="touch_attribute",
                target=attribute.name,
                attribute_type=attribute.attribute_type.name,
                disposition=attribute.disposition,
            )
        )
    for son in node_type.sons:
        if son.name == NEXT_SON:
            continue
        steps.append(Step(op="check_son", target=son.name))
    return OperationPlan(operation="check", node_type=node_type.name, steps=tuple(steps))


@dataclass(slots=True)
class CheckFinding:
    code: FindingCode
    node_type: str
    path: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "node_type": self.node_type,
            "path": self.path,
            "message": self.message,
        }


@dataclass(slots=True)
class CheckReport:
    findings: list[CheckFinding] = field(default_factory=list)
    visited: int = 0
    touched: int = 0

    @property
    def ok(self) -> bool:
        return not self.findings


class TreeChecker:
    """Reset and check walks used to audit a live tree.

    ``reset`` clears the visited markers below a node; ``check`` marks them
    again and reports nodes or owned attribute values reachable twice, and
    freed nodes still hanging in the tree.
    """

    def __init__(self, catalogue: TypeCatalogue) -> None:
        self.catalogue = catalogue
        self._reset_plans = {item.tag: derive_reset_plan(catalogue, item) for item in catalogue.tags}
        self._check_plans = {item.tag: derive_check_plan(catalogue, item) for item in catalogue.tags}

    def reset(self, node: Node) -> Node:
        # Started on one chain element, the walk must not escape into its
        # siblings.
        detach = node.node_type.has_next
        keep_next: Node | None = None
        if detach:
            keep_next = node.son(NEXT_SON)
            node.set_son(NEXT_SON, None)
        try:
            self._reset_walk(node)
        finally:
            if detach:
                node.set_son(NEXT_SON, keep_next)
        return node

    def _reset_walk(self, root: Node) -> None:
        pending = [root]
        seen: set[int] = set()
        while pending:
            node = pending.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            node.visited = False
            if node.state == "freed":
                continue
            children: list[Node] = []
            for step in self._reset_plans[node.tag].steps:
                if step.op == "reset_son":
                    child = node.son(step.target)  # type: ignore[arg-type]
                    if child is not None:
                        children.append(child)
            pending.extend(reversed(children))

    def check(self, node: Node) -> CheckReport:
        report = CheckReport()
        touched: dict[int, str] = {}
        keep_alive: list[Any] = []

        def touch(value: Any, path: str, code: FindingCode, node_type: str) -> None:
            report.touched += 1
            previous = touched.get(id(value))
            if previous is not None:
                report.findings.append(
                    CheckFinding(
                        code=code,
                        node_type=node_type,
                        path=path,
                        message=f"{path} is also reachable as {previous}",
                    )
                )
                return
            touched[id(value)] = path
            keep_alive.append(value)

        pending: list[tuple[Node, str]] = [(node, node.kind)]
        while pending:
            current, path = pending.pop()
            if current.state == "freed":
                report.findings.append(
                    CheckFinding(
                        code="freed_node",
                        node_type=current.kind,
                        path=path,
                        message=f"{path} refers to a freed {current.kind} node",
                    )
                )
                continue
            if current.visited:
                report.findings.append(
                    CheckFinding(
                        code="shared_node",
                        node_type=current.kind,
                        path=path,
                        message=f"{path} was already visited through another owned edge",
                    )
                )
                continue
            current.visited = True
            report.visited += 1

            children: list[tuple[Node, str]] = []
            for step in self._check_plans[current.tag].steps:
                if step.op == "touch_node":
                    touch(current, path, "shared_node", current.kind)
                elif step.op == "check_error":
                    if current.error is not None:
                        children.append((current.error, f"{path}.<error>"))
                elif step.op == "touch_attribute":
                    value = current.attr(step.target)  # type: ignore[arg-type]
                    if value is not None and not isinstance(value, _UNTRACKED_VALUES):
                        touch(value, f"{path}.{step.target}", "shared_attribute", current.kind)
                elif step.op == "check_son":
                    child = current.son(step.target)  # type: ignore[arg-type]
                    if child is not None:
                        children.append((child, f"{path}.{step.target}"))
                else:
                    raise ValueError(f"Unknown check step: {step.op}")
            pending.extend(reversed(children))
        return report


__all__ = [
    "CheckFinding",
    "CheckReport",
    "FindingCode",
    "TreeChecker",
    "derive_check_plan",
    "derive_reset_plan",
]
