from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from nodeforge.core.constants import DETACHED_SON_SLOT, SERSTACK_NOT_FOUND, STREAM_FORMAT_VERSION
from nodeforge.core.errors import ERROR_CODE_MALFORMED_RECORD, StructuralCorruption


def _malformed(message: str, **details: Any) -> StructuralCorruption:
    return StructuralCorruption(ERROR_CODE_MALFORMED_RECORD, message, **details)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(slots=True)
class StreamHeader:
    catalogue_digest: str
    files: list[str] = field(default_factory=list)
    format_version: str = STREAM_FORMAT_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "header",
            "format_version": self.format_version,
            "catalogue_digest": self.catalogue_digest,
            "files": list(self.files),
        }


@dataclass(slots=True)
class FixRecord:
    from_position: int
    slot: int
    to_position: int
    son: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": "fix",
            "from": self.from_position,
            "slot": self.slot,
            "to": self.to_position,
        }
        if self.son is not None:
            payload["son"] = self.son
        return payload


@dataclass(slots=True)
class SerializedGraph:
    header: StreamHeader
    constructs: list[dict[str, Any]] = field(default_factory=list)
    fixes: list[FixRecord] = field(default_factory=list)

    def records(self) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = [self.header.to_dict()]
        rows.extend({"kind": "construct", "node": record} for record in self.constructs)
        rows.extend(fix.to_dict() for fix in self.fixes)
        return rows


class FileTable:
    def __init__(self) -> None:
        self.names: list[str] = []
        self._ids: dict[str, int] = {}

    def intern(self, name: str | None) -> int | None:
        if name is None:
            return None
        file_id = self._ids.get(name)
        if file_id is None:
            file_id = len(self.names)
            self.names.append(name)
            self._ids[name] = file_id
        return file_id


def make_ref(position: int) -> dict[str, int]:
    return {"ref": position}


def is_ref(value: Any) -> bool:
    return isinstance(value, dict) and set(value.keys()) == {"ref"}


def validate_header(data: Any) -> StreamHeader:
    if not isinstance(data, dict) or data.get("kind") != "header":
        raise _malformed("Stream must start with a header record")
    digest = data.get("catalogue_digest")
    if not isinstance(digest, str) or not digest:
        raise _malformed("Stream header requires non-empty string field `catalogue_digest`")
    format_version = data.get("format_version")
    if not isinstance(format_version, str) or not format_version:
        raise _malformed("Stream header requires non-empty string field `format_version`")
    files = data.get("files", [])
    if not isinstance(files, list) or not all(isinstance(item, str) for item in files):
        raise _malformed("Stream header field `files` must be a list of strings")
    return StreamHeader(catalogue_digest=digest, files=list(files), format_version=format_version)


def validate_fix(data: Any) -> FixRecord:
    if not isinstance(data, dict) or data.get("kind") != "fix":
        raise _malformed("Expected a fix record", record=data)
    from_position = data.get("from")
    slot = data.get("slot")
    to_position = data.get("to")
    if not _is_int(from_position) or from_position < 0:
        raise _malformed("Fix record requires non-negative integer `from`", record=data)
    if not _is_int(slot) or slot < DETACHED_SON_SLOT:
        raise _malformed("Fix record requires non-negative integer `slot`", record=data)
    if not _is_int(to_position) or to_position < SERSTACK_NOT_FOUND:
        raise _malformed("Fix record requires integer `to` (-1 for no link)", record=data)
    son = data.get("son")
    if slot == DETACHED_SON_SLOT and not isinstance(son, str):
        raise _malformed("Fix record for slot 0 requires string field `son`", record=data)
    return FixRecord(from_position=from_position, slot=slot, to_position=to_position, son=son)


def validate_construct(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise _malformed("Construct record must be an object", record=data)
    tag = data.get("tag")
    if not _is_int(tag):
        raise _malformed("Construct record requires integer `tag`", record=data)
    loc = data.get("loc")
    if not isinstance(loc, list) or len(loc) != 3:
        raise _malformed("Construct record requires `loc` as [file, line, col]", tag=tag)
    file_id, line, col = loc
    if (file_id is not None and not _is_int(file_id)) or not _is_int(line) or not _is_int(col):
        raise _malformed("Construct record `loc` entries must be integers", tag=tag)
    for key in ("attrs", "sons", "flags"):
        if not isinstance(data.get(key), list):
            raise _malformed(f"Construct record requires list field `{key}`", tag=tag)
    return data


__all__ = [
    "FileTable",
    "FixRecord",
    "SerializedGraph",
    "StreamHeader",
    "is_ref",
    "make_ref",
    "validate_construct",
    "validate_fix",
    "validate_header",
]
