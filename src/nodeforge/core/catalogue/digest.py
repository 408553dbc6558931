"""Catalogue digest stamped into every serialized stream.

The digest covers everything a construct record's layout depends on: node
tags, the declaration order of each node type's sons, attributes and flags,
attribute types, nodesets, traversals and the resolved policies.  Node types
and their fields are hashed as ordered ``[name, spec]`` pairs; registries
whose order carries no meaning are plain mappings and get sorted keys.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from typing import Any

from nodeforge.core.catalogue.models import AttributeType, NodeSet, NodeType, Traversal
from nodeforge.core.config import CataloguePolicies


def catalogue_payload(
    *,
    attribute_types: Iterable[AttributeType],
    node_types: Iterable[NodeType],
    nodesets: Iterable[NodeSet],
    traversals: Iterable[Traversal],
    policies: CataloguePolicies,
) -> dict[str, Any]:
    return {
        "attrtypes": {item.name: item.to_dict() for item in attribute_types},
        "nodes": [[item.name, item.to_dict()] for item in node_types],
        "nodesets": {item.name: item.to_dict() for item in nodesets},
        "traversals": {item.name: item.to_dict() for item in traversals},
        "policies": policies.to_dict(),
    }


def payload_json(payload: dict[str, Any]) -> str:
    # Attribute defaults come from the schema document; anything JSON cannot
    # carry is hashed through its string form.
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)


def catalogue_digest(
    *,
    attribute_types: Iterable[AttributeType],
    node_types: Iterable[NodeType],
    nodesets: Iterable[NodeSet],
    traversals: Iterable[Traversal],
    policies: CataloguePolicies,
) -> str:
    payload = catalogue_payload(
        attribute_types=attribute_types,
        node_types=node_types,
        nodesets=nodesets,
        traversals=traversals,
        policies=policies,
    )
    return hashlib.sha256(payload_json(payload).encode("utf-8")).hexdigest()


__all__ = ["catalogue_digest", "catalogue_payload", "payload_json"]
