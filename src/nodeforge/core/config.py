from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from nodeforge.core.constants import (
    DEFAULT_DETACHED_SONS,
    DEFAULT_ZOMBIE_NODE,
    DEFAULT_ZOMBIE_RETAINED,
)


@dataclass(slots=True, frozen=True)
class ZombiePolicy:
    node: str | None = DEFAULT_ZOMBIE_NODE
    retain: tuple[str, ...] = DEFAULT_ZOMBIE_RETAINED
    explicit: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"node": self.node, "retain": list(self.retain)}


@dataclass(slots=True, frozen=True)
class DetachedPolicy:
    sons: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_DETACHED_SONS))
    )
    explicit: bool = False

    def for_node(self, node_name: str) -> tuple[str, ...]:
        return self.sons.get(node_name, ())

    def to_dict(self) -> dict[str, Any]:
        return {name: list(sons) for name, sons in self.sons.items()}


@dataclass(slots=True, frozen=True)
class CataloguePolicies:
    zombie: ZombiePolicy = field(default_factory=ZombiePolicy)
    detached: DetachedPolicy = field(default_factory=DetachedPolicy)

    def to_dict(self) -> dict[str, Any]:
        return {"zombie": self.zombie.to_dict(), "detached": self.detached.to_dict()}


def _ensure_mapping(raw: Any, *, field_name: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{field_name} must be a mapping")
    return raw


def _parse_string_list(raw: Any, *, field_name: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"{field_name} must be a list")
    return tuple(str(item) for item in raw)


def _parse_zombie(raw: Any) -> ZombiePolicy:
    if raw is None:
        return ZombiePolicy()
    block = _ensure_mapping(raw, field_name="policies.zombie")
    node = block.get("node")
    if node is not None and not isinstance(node, str):
        raise ValueError("policies.zombie.node must be a string or null")
    retain = _parse_string_list(block.get("retain"), field_name="policies.zombie.retain")
    return ZombiePolicy(node=node, retain=retain, explicit=True)


def _parse_detached(raw: Any) -> DetachedPolicy:
    if raw is None:
        return DetachedPolicy()
    block = _ensure_mapping(raw, field_name="policies.detached")
    sons = {
        str(node_name): _parse_string_list(son_names, field_name=f"policies.detached.{node_name}")
        for node_name, son_names in block.items()
    }
    return DetachedPolicy(sons=MappingProxyType(sons), explicit=True)


def parse_policies(raw: Any) -> CataloguePolicies:
    block = _ensure_mapping(raw, field_name="policies")
    return CataloguePolicies(
        zombie=_parse_zombie(block.get("zombie")),
        detached=_parse_detached(block.get("detached")),
    )


__all__ = [
    "CataloguePolicies",
    "DetachedPolicy",
    "ZombiePolicy",
    "parse_policies",
]
