from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

OperationKind = Literal[
    "destroy",
    "reset",
    "check",
    "buildstack",
    "serialize",
    "link",
    "construct",
    "fixup",
]

OPERATION_KINDS: tuple[OperationKind, ...] = (
    "destroy",
    "reset",
    "check",
    "buildstack",
    "serialize",
    "link",
    "construct",
    "fixup",
)


@dataclass(slots=True, frozen=True)
class Step:
    op: str
    target: str | None = None
    attribute_type: str | None = None
    disposition: str | None = None
    slot: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"op": self.op}
        if self.target is not None:
            payload["target"] = self.target
        if self.attribute_type is not None:
            payload["attribute_type"] = self.attribute_type
        if self.disposition is not None:
            payload["disposition"] = self.disposition
        if self.slot is not None:
            payload["slot"] = self.slot
        return payload


@dataclass(slots=True, frozen=True)
class OperationPlan:
    operation: OperationKind
    node_type: str
    steps: tuple[Step, ...]

    def ops(self) -> list[str]:
        return [step.op for step in self.steps]

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "node_type": self.node_type,
            "steps": [step.to_dict() for step in self.steps],
        }


__all__ = ["OPERATION_KINDS", "OperationKind", "OperationPlan", "Step"]
