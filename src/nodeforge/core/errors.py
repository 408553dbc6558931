from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ErrorKind = Literal[
    "SCHEMA",
    "CORRUPTION",
]

ERROR_CODE_DUPLICATE_NAME = "DUPLICATE_NAME"
ERROR_CODE_INVALID_NAME = "INVALID_NAME"
ERROR_CODE_UNKNOWN_ATTRIBUTE_TYPE = "UNKNOWN_ATTRIBUTE_TYPE"
ERROR_CODE_UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"

ERROR_CODE_UNRESOLVED_POSITION = "UNRESOLVED_POSITION"
ERROR_CODE_UNMATCHED_TYPE = "UNMATCHED_TYPE"
ERROR_CODE_UNMATCHED_SLOT = "UNMATCHED_SLOT"
ERROR_CODE_MALFORMED_RECORD = "MALFORMED_RECORD"
ERROR_CODE_CATALOGUE_MISMATCH = "CATALOGUE_MISMATCH"

SCHEMA_ERROR_CODES = {
    ERROR_CODE_DUPLICATE_NAME,
    ERROR_CODE_INVALID_NAME,
    ERROR_CODE_UNKNOWN_ATTRIBUTE_TYPE,
    ERROR_CODE_UNRESOLVED_REFERENCE,
}

CORRUPTION_ERROR_CODES = {
    ERROR_CODE_UNRESOLVED_POSITION,
    ERROR_CODE_UNMATCHED_TYPE,
    ERROR_CODE_UNMATCHED_SLOT,
    ERROR_CODE_MALFORMED_RECORD,
    ERROR_CODE_CATALOGUE_MISMATCH,
}


@dataclass(slots=True, frozen=True)
class NodeforgeError:
    code: str
    message: str
    kind: ErrorKind | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }
        if self.kind is not None:
            payload["kind"] = self.kind
        return payload


class SchemaError(ValueError):
    """Rejection of a schema during catalogue assembly."""

    def __init__(self, code: str, message: str, *, entity: str | None = None, field: str | None = None) -> None:
        if code not in SCHEMA_ERROR_CODES:
            raise ValueError(f"Unknown schema error code: {code}")
        super().__init__(message)
        self.code = code
        self.entity = entity
        self.field = field

    def to_error(self) -> NodeforgeError:
        details: dict[str, Any] = {}
        if self.entity is not None:
            details["entity"] = self.entity
        if self.field is not None:
            details["field"] = self.field
        return NodeforgeError(code=self.code, message=str(self), kind="SCHEMA", details=details)


class StructuralCorruption(RuntimeError):
    """A serialized stream disagrees with the catalogue reconstructing it."""

    def __init__(self, code: str, message: str, **details: Any) -> None:
        if code not in CORRUPTION_ERROR_CODES:
            raise ValueError(f"Unknown corruption error code: {code}")
        super().__init__(message)
        self.code = code
        self.details = details

    def to_error(self) -> NodeforgeError:
        return NodeforgeError(code=self.code, message=str(self), kind="CORRUPTION", details=dict(self.details))


class NodeStateError(RuntimeError):
    pass


class TraversalError(RuntimeError):
    pass


__all__ = [
    "CORRUPTION_ERROR_CODES",
    "ERROR_CODE_CATALOGUE_MISMATCH",
    "ERROR_CODE_DUPLICATE_NAME",
    "ERROR_CODE_INVALID_NAME",
    "ERROR_CODE_MALFORMED_RECORD",
    "ERROR_CODE_UNKNOWN_ATTRIBUTE_TYPE",
    "ERROR_CODE_UNMATCHED_SLOT",
    "ERROR_CODE_UNMATCHED_TYPE",
    "ERROR_CODE_UNRESOLVED_POSITION",
    "ERROR_CODE_UNRESOLVED_REFERENCE",
    "SCHEMA_ERROR_CODES",
    "ErrorKind",
    "NodeStateError",
    "NodeforgeError",
    "SchemaError",
    "StructuralCorruption",
    "TraversalError",
]
