from __future__ import annotations

import re
from typing import Literal

NameKind = Literal["node", "nodeset", "attrtype", "traversal", "field"]

_GRAMMARS: dict[str, re.Pattern[str]] = {
    "node": re.compile(r"[A-Z][A-Za-z0-9]*"),
    "nodeset": re.compile(r"[A-Z][A-Za-z0-9]*"),
    "attrtype": re.compile(r"[A-Z][A-Za-z0-9]*"),
    "traversal": re.compile(r"[A-Za-z][A-Za-z0-9_]*"),
    "field": re.compile(r"[A-Z][A-Za-z0-9]*"),
}


def is_valid_name(kind: NameKind, name: object) -> bool:
    if not isinstance(name, str):
        return False
    return _GRAMMARS[kind].fullmatch(name) is not None


def fold_name(name: str) -> str:
    return name.casefold()


__all__ = ["NameKind", "fold_name", "is_valid_name"]
