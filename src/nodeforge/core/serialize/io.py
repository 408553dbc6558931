from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from nodeforge.core.errors import ERROR_CODE_MALFORMED_RECORD, StructuralCorruption
from nodeforge.core.serialize.stream import (
    SerializedGraph,
    validate_construct,
    validate_fix,
    validate_header,
)


def _dump_row(row: dict[str, Any]) -> str:
    return json.dumps(row, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def dumps_stream(graph: SerializedGraph) -> str:
    return "".join(_dump_row(row) + "\n" for row in graph.records())


def write_stream(path: Path, graph: SerializedGraph) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        for row in graph.records():
            handle.write(_dump_row(row))
            handle.write("\n")


def _parse_rows(lines: Iterable[str]) -> SerializedGraph:
    graph: SerializedGraph | None = None
    in_fixes = False
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped:
            continue
        try:
            row = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise StructuralCorruption(
                ERROR_CODE_MALFORMED_RECORD, f"Line {number} is not valid JSON: {exc.msg}", line=number
            ) from exc

        if graph is None:
            graph = SerializedGraph(header=validate_header(row))
            continue
        kind = row.get("kind") if isinstance(row, dict) else None
        if kind == "construct":
            if in_fixes:
                raise StructuralCorruption(
                    ERROR_CODE_MALFORMED_RECORD, f"Line {number}: construct record after fix records", line=number
                )
            graph.constructs.append(validate_construct(row.get("node")))
        elif kind == "fix":
            in_fixes = True
            graph.fixes.append(validate_fix(row))
        else:
            raise StructuralCorruption(
                ERROR_CODE_MALFORMED_RECORD, f"Line {number}: unexpected record kind {kind!r}", line=number
            )

    if graph is None:
        raise StructuralCorruption(ERROR_CODE_MALFORMED_RECORD, "Stream is empty")
    return graph


def loads_stream(text: str) -> SerializedGraph:
    return _parse_rows(text.splitlines())


def read_stream(path: Path) -> SerializedGraph:
    with path.open("r", encoding="utf-8") as handle:
        return _parse_rows(handle)


__all__ = ["dumps_stream", "loads_stream", "read_stream", "write_stream"]
