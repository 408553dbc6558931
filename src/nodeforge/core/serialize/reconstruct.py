from __future__ import annotations

import copy
import logging
from typing import Any

from nodeforge.core.attributes import AttributeHandlers
from nodeforge.core.catalogue.models import NodeType, TypeCatalogue
from nodeforge.core.constants import DETACHED_SON_SLOT, SERSTACK_NOT_FOUND, STREAM_FORMAT_VERSION
from nodeforge.core.errors import (
    ERROR_CODE_CATALOGUE_MISMATCH,
    ERROR_CODE_MALFORMED_RECORD,
    ERROR_CODE_UNMATCHED_SLOT,
    ERROR_CODE_UNMATCHED_TYPE,
    ERROR_CODE_UNRESOLVED_POSITION,
    StructuralCorruption,
)
from nodeforge.core.nodes import Node, SourceLocation
from nodeforge.core.plans import OperationPlan, Step
from nodeforge.core.serialize.stream import (
    FixRecord,
    SerializedGraph,
    StreamHeader,
    is_ref,
    validate_construct,
)

logger = logging.getLogger(__name__)


def derive_construct_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    steps: list[Step] = []
    for attribute in node_type.attributes:
        op = "read_attribute" if attribute.persisted else "init_attribute"
        steps.append(
            Step(
                op=op,
                target=attribute.name,
                attribute_type=attribute.attribute_type.name,
                disposition=attribute.disposition,
            )
        )
    for son in node_type.sons:
        steps.append(Step(op="read_son", target=son.name))
    for flag in node_type.flags:
        steps.append(Step(op="read_flag" if flag.persist else "init_flag", target=flag.name))
    return OperationPlan(operation="construct", node_type=node_type.name, steps=tuple(steps))


def derive_fixup_plan(catalogue: TypeCatalogue, node_type: NodeType) -> OperationPlan:
    steps = [
        Step(op="patch_link", target=attribute.name, attribute_type=attribute.attribute_type.name, slot=slot)
        for slot, attribute in enumerate(node_type.link_attributes, start=1)
    ]
    steps.extend(
        Step(op="patch_son", target=son_name, slot=DETACHED_SON_SLOT)
        for son_name in catalogue.detached_sons(node_type)
    )
    return OperationPlan(operation="fixup", node_type=node_type.name, steps=tuple(steps))


def _arity(plan: OperationPlan, op: str) -> int:
    return sum(1 for step in plan.steps if step.op == op)


class Deserializer:
    """Replays construct records, then fix records, against a catalogue.

    Every construct record allocates one node, appended to the runtime array
    in record order, so array indices equal the serializer's stack positions.
    Sons and Node attributes are position references into that array and are
    resolved once every record has been allocated.
    """

    def __init__(self, catalogue: TypeCatalogue, handlers: AttributeHandlers | None = None) -> None:
        self.catalogue = catalogue
        self.handlers = handlers or AttributeHandlers()
        self._construct_plans = {item.tag: derive_construct_plan(catalogue, item) for item in catalogue.tags}
        self._fixups: dict[int, dict[tuple[int, str | None], Step]] = {}
        for item in catalogue.tags:
            table: dict[tuple[int, str | None], Step] = {}
            for step in derive_fixup_plan(catalogue, item).steps:
                key = (step.slot, step.target if step.op == "patch_son" else None)
                table[key] = step  # type: ignore[index]
            self._fixups[item.tag] = table

    def reconstruct(self, graph: SerializedGraph) -> list[Node]:
        """Rebuild every node of ``graph`` and return the runtime array."""
        self._check_header(graph.header)
        allocated = [self._allocate(record, graph.header.files) for record in graph.constructs]
        built = [node for node, _ in allocated]
        for node, data in allocated:
            self._populate(node, data, built)
        for fix in graph.fixes:
            self._apply_fix(fix, built)
        logger.debug("reconstructed %d nodes, applied %d fixes", len(built), len(graph.fixes))
        return built

    def reconstruct_root(self, graph: SerializedGraph) -> Node | None:
        built = self.reconstruct(graph)
        return built[0] if built else None

    def _check_header(self, header: StreamHeader) -> None:
        if header.format_version != STREAM_FORMAT_VERSION:
            raise StructuralCorruption(
                ERROR_CODE_MALFORMED_RECORD,
                f"Unsupported stream format_version '{header.format_version}'. Expected '{STREAM_FORMAT_VERSION}'.",
            )
        if header.catalogue_digest != self.catalogue.digest:
            raise StructuralCorruption(
                ERROR_CODE_CATALOGUE_MISMATCH,
                "Stream was written for a different catalogue",
                expected=self.catalogue.digest,
                found=header.catalogue_digest,
            )

    def _location(self, loc: list[Any], files: list[str]) -> SourceLocation:
        file_id, line, col = loc
        if file_id is None:
            return SourceLocation(file=None, line=line, col=col)
        if not 0 <= file_id < len(files):
            raise StructuralCorruption(ERROR_CODE_MALFORMED_RECORD, f"Unknown file id {file_id}", file_id=file_id)
        return SourceLocation(file=files[file_id], line=line, col=col)

    def _resolve(self, position: Any, built: list[Node]) -> Node:
        if isinstance(position, bool) or not isinstance(position, int) or not 0 <= position < len(built):
            raise StructuralCorruption(
                ERROR_CODE_UNRESOLVED_POSITION,
                f"Position {position!r} does not name a constructed node",
                position=position,
                constructed=len(built),
            )
        return built[position]

    def _reference(self, raw: Any, built: list[Node]) -> Node | None:
        if raw is None:
            return None
        if is_ref(raw):
            return self._resolve(raw["ref"], built)
        raise StructuralCorruption(ERROR_CODE_MALFORMED_RECORD, f"Expected a position reference, got {raw!r}")

    def _allocate(self, record: Any, files: list[str]) -> tuple[Node, dict[str, Any]]:
        data = validate_construct(record)
        node_type = self.catalogue.node_type_for_tag(data["tag"])
        if node_type is None:
            raise StructuralCorruption(ERROR_CODE_UNMATCHED_TYPE, f"Unknown node type tag {data['tag']}", tag=data["tag"])
        plan = self._construct_plans[node_type.tag]

        for key, op in (("attrs", "read_attribute"), ("sons", "read_son"), ("flags", "read_flag")):
            expected = _arity(plan, op)
            if len(data[key]) != expected:
                raise StructuralCorruption(
                    ERROR_CODE_MALFORMED_RECORD,
                    f"{node_type.name} record carries {len(data[key])} {key}, expected {expected}",
                    tag=node_type.tag,
                )
        return Node(node_type, location=self._location(data["loc"], files)), data

    def _populate(self, node: Node, data: dict[str, Any], built: list[Node]) -> None:
        node_type = node.node_type
        attrs = iter(data["attrs"])
        sons = iter(data["sons"])
        flags = iter(data["flags"])

        for step in self._construct_plans[node_type.tag].steps:
            name = step.target
            if name is None:
                raise ValueError(f"Construct step {step.op} has no target")
            if step.op == "read_attribute":
                raw = next(attrs)
                if step.disposition == "node":
                    node.set_attr(name, self._reference(raw, built))
                elif step.disposition == "function" and raw is not None:
                    attribute_type = self.catalogue.attribute_types[step.attribute_type]  # type: ignore[index]
                    node.set_attr(name, self.handlers.decode(attribute_type, raw))
                else:
                    node.set_attr(name, raw)
            elif step.op == "init_attribute":
                attribute_type = self.catalogue.attribute_types[step.attribute_type]  # type: ignore[index]
                node.set_attr(name, copy.deepcopy(attribute_type.default))
            elif step.op == "read_son":
                child = self._reference(next(sons), built)
                if child is not None and not self.catalogue.accepts(node_type.son_spec(name), child.node_type):
                    raise StructuralCorruption(
                        ERROR_CODE_UNMATCHED_TYPE,
                        f"Son {node_type.name}.{name} cannot hold a {child.kind} node",
                        tag=node_type.tag,
                    )
                node.set_son(name, child)
            elif step.op == "read_flag":
                raw = next(flags)
                if raw not in (0, 1):
                    raise StructuralCorruption(ERROR_CODE_MALFORMED_RECORD, f"Flag {node_type.name}.{name} must be 0 or 1")
                node.set_flag(name, bool(raw))
            elif step.op == "init_flag":
                node.set_flag(name, node_type.flag_spec(name).default)
            else:
                raise ValueError(f"Unknown construct step: {step.op}")

    def _apply_fix(self, fix: FixRecord, built: list[Node]) -> None:
        source = self._resolve(fix.from_position, built)
        target = None if fix.to_position == SERSTACK_NOT_FOUND else self._resolve(fix.to_position, built)
        key = (fix.slot, fix.son if fix.slot == DETACHED_SON_SLOT else None)
        step = self._fixups[source.tag].get(key)
        if step is None:
            raise StructuralCorruption(
                ERROR_CODE_UNMATCHED_SLOT,
                f"{source.kind} has no link slot {fix.slot}" + (f" for son {fix.son}" if fix.son else ""),
                tag=source.tag,
                slot=fix.slot,
            )
        if step.op == "patch_son":
            spec = source.node_type.son_spec(step.target)  # type: ignore[arg-type]
            if target is not None and not self.catalogue.accepts(spec, target.node_type):
                raise StructuralCorruption(
                    ERROR_CODE_UNMATCHED_TYPE,
                    f"Son {source.kind}.{spec.name} cannot hold a {target.kind} node",
                    tag=source.tag,
                    slot=fix.slot,
                )
            source.set_son(step.target, target)  # type: ignore[arg-type]
        else:
            source.set_attr(step.target, target)  # type: ignore[arg-type]


__all__ = ["Deserializer", "derive_construct_plan", "derive_fixup_plan"]
