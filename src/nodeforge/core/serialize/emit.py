from __future__ import annotations

import logging
from typing import Any

from nodeforge.core.attributes import AttributeHandlers
from nodeforge.core.catalogue.models import NodeType, TypeCatalogue
from nodeforge.core.constants import DETACHED_SON_SLOT, SERSTACK_NOT_FOUND
from nodeforge.core.nodes import Node
from nodeforge.core.plans import OperationPlan, Step
from nodeforge.core.serialize.stack import SerStack, StackBuilder
from nodeforge.core.serialize.stream import (
    FileTable,
    FixRecord,
    SerializedGraph,
    StreamHeader,
    make_ref,
)

logger = logging.getLogger(__name__)


def derive_serialize_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    detached = set(catalogue.detached_sons(node_type))
    steps = [Step(op="emit_header")]
    for attribute in node_type.attributes:
        if not attribute.persisted:
            continue
        steps.append(
            Step(
                op="emit_attribute",
                target=attribute.name,
                attribute_type=attribute.attribute_type.name,
                disposition=attribute.disposition,
            )
        )
    for son in node_type.sons:
        steps.append(Step(op="emit_null" if son.name in detached else "emit_son", target=son.name))
    for flag in node_type.flags:
        if flag.persist:
            steps.append(Step(op="emit_flag", target=flag.name))
    return OperationPlan(operation="serialize", node_type=node_type.name, steps=tuple(steps))


def derive_link_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    detached = set(catalogue.detached_sons(node_type))
    steps: list[Step] = []
    for slot, attribute in enumerate(node_type.link_attributes, start=1):
        steps.append(
            Step(op="fix_link", target=attribute.name, attribute_type=attribute.attribute_type.name, slot=slot)
        )
    for son in node_type.sons:
        if son.name in detached:
            steps.append(Step(op="fix_detached", target=son.name, slot=DETACHED_SON_SLOT))
    return OperationPlan(operation="link", node_type=node_type.name, steps=tuple(steps))


class Serializer:
    """Flattens a node graph into construct and fix records.

    Phase 1 numbers the nodes (:class:`StackBuilder`).  Phase 2 emits one
    flat construct record per position; owned sons and Node attributes are
    written as ``{"ref": k}`` position references.  Phase 3 walks the same
    positions and emits a fix record for every link whose target got a
    position and for every detached son.
    """

    def __init__(self, catalogue: TypeCatalogue, handlers: AttributeHandlers | None = None) -> None:
        self.catalogue = catalogue
        self.handlers = handlers or AttributeHandlers()
        self._stack_builder = StackBuilder(catalogue)
        self._serialize_plans = {item.tag: derive_serialize_plan(catalogue, item) for item in catalogue.tags}
        self._link_plans = {item.tag: derive_link_plan(catalogue, item) for item in catalogue.tags}

    def serialize(self, root: Node) -> SerializedGraph:
        built = self._stack_builder.build(root)
        files = FileTable()
        constructs = [self._emit(node, built.stack, files) for node in built.stack]
        fixes = self._emit_links(built.stack)
        logger.debug(
            "serialized %d nodes in %d roots with %d fixes",
            len(built.stack),
            len(built.roots),
            len(fixes),
        )
        header = StreamHeader(catalogue_digest=self.catalogue.digest, files=files.names)
        return SerializedGraph(header=header, constructs=constructs, fixes=fixes)

    def _ref(self, child: Node | None, stack: SerStack) -> dict[str, int] | None:
        if child is None:
            return None
        return make_ref(stack.find_pos(child))

    def _emit(self, node: Node, stack: SerStack, files: FileTable) -> dict[str, Any]:
        record: dict[str, Any] = {}
        attrs: list[Any] = []
        sons: list[Any] = []
        flags: list[int] = []
        for step in self._serialize_plans[node.tag].steps:
            if step.op == "emit_header":
                record["tag"] = node.tag
                record["loc"] = [files.intern(node.location.file), node.location.line, node.location.col]
            elif step.op == "emit_attribute":
                value = node.attr(step.target)  # type: ignore[arg-type]
                if step.disposition == "node":
                    attrs.append(self._ref(value, stack))
                elif step.disposition == "function" and value is not None:
                    attribute_type = self.catalogue.attribute_types[step.attribute_type]  # type: ignore[index]
                    attrs.append(self.handlers.encode(attribute_type, value, node))
                else:
                    attrs.append(value)
            elif step.op == "emit_son":
                sons.append(self._ref(node.son(step.target), stack))  # type: ignore[arg-type]
            elif step.op == "emit_null":
                sons.append(None)
            elif step.op == "emit_flag":
                flags.append(1 if node.flag(step.target) else 0)  # type: ignore[arg-type]
            else:
                raise ValueError(f"Unknown serialize step: {step.op}")
        record["attrs"] = attrs
        record["sons"] = sons
        record["flags"] = flags
        return record

    def _emit_links(self, stack: SerStack) -> list[FixRecord]:
        fixes: list[FixRecord] = []
        for position, node in enumerate(stack):
            for step in self._link_plans[node.tag].steps:
                if step.op == "fix_link":
                    target = node.attr(step.target)  # type: ignore[arg-type]
                    if target is None:
                        continue
                    to_position = stack.find_pos(target)
                    if to_position != SERSTACK_NOT_FOUND:
                        fixes.append(FixRecord(from_position=position, slot=step.slot, to_position=to_position))  # type: ignore[arg-type]
                elif step.op == "fix_detached":
                    child = node.son(step.target)  # type: ignore[arg-type]
                    if child is not None:
                        fixes.append(
                            FixRecord(
                                from_position=position,
                                slot=DETACHED_SON_SLOT,
                                to_position=stack.find_pos(child),
                                son=step.target,
                            )
                        )
                else:
                    raise ValueError(f"Unknown link step: {step.op}")
        return fixes


__all__ = ["Serializer", "derive_link_plan", "derive_serialize_plan"]
