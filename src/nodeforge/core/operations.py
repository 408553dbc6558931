from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from nodeforge.core.catalogue.models import TypeCatalogue
from nodeforge.core.lifecycle import derive_destroy_plan
from nodeforge.core.plans import OPERATION_KINDS, OperationKind, OperationPlan
from nodeforge.core.serialize.emit import derive_link_plan, derive_serialize_plan
from nodeforge.core.serialize.reconstruct import derive_construct_plan, derive_fixup_plan
from nodeforge.core.serialize.stack import derive_buildstack_plan
from nodeforge.core.validation import derive_check_plan, derive_reset_plan


@dataclass(slots=True, frozen=True)
class NodeOperations:
    node_type: str
    tag: int
    destroy: OperationPlan
    reset: OperationPlan
    check: OperationPlan
    buildstack: OperationPlan
    serialize: OperationPlan
    link: OperationPlan
    construct: OperationPlan
    fixup: OperationPlan

    def plan(self, operation: OperationKind) -> OperationPlan:
        if operation not in OPERATION_KINDS:
            raise KeyError(f"Unknown operation: {operation}")
        return getattr(self, operation)

    def to_dict(self, operations: tuple[OperationKind, ...] = OPERATION_KINDS) -> dict[str, Any]:
        return {
            "tag": self.tag,
            "operations": {name: [step.to_dict() for step in self.plan(name).steps] for name in operations},
        }


@dataclass(slots=True, frozen=True)
class OperationCatalogue:
    digest: str
    nodes: Mapping[str, NodeOperations]

    def __getitem__(self, node_type: str) -> NodeOperations:
        return self.nodes[node_type]

    def __iter__(self) -> Iterator[NodeOperations]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def to_dict(
        self,
        *,
        node_types: tuple[str, ...] | None = None,
        operations: tuple[OperationKind, ...] = OPERATION_KINDS,
    ) -> dict[str, Any]:
        selected = node_types if node_types is not None else tuple(self.nodes)
        return {
            "catalogue_digest": self.digest,
            "nodes": {name: self.nodes[name].to_dict(operations) for name in selected},
        }


def derive_operations(catalogue: TypeCatalogue) -> OperationCatalogue:
    """Derive every per-node-type plan from a finalized catalogue, in tag order."""
    nodes: dict[str, NodeOperations] = {}
    for node_type in catalogue.tags:
        nodes[node_type.name] = NodeOperations(
            node_type=node_type.name,
            tag=node_type.tag,
            destroy=derive_destroy_plan(catalogue, node_type),
            reset=derive_reset_plan(catalogue, node_type),
            check=derive_check_plan(catalogue, node_type),
            buildstack=derive_buildstack_plan(catalogue, node_type),
            serialize=derive_serialize_plan(catalogue, node_type),
            link=derive_link_plan(catalogue, node_type),
            construct=derive_construct_plan(catalogue, node_type),
            fixup=derive_fixup_plan(catalogue, node_type),
        )
    return OperationCatalogue(digest=catalogue.digest, nodes=MappingProxyType(nodes))


__all__ = ["NodeOperations", "OperationCatalogue", "derive_operations"]
