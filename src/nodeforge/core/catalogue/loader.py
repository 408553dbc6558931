from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from nodeforge.core.catalogue.builder import (
    AttributeDesc,
    CatalogueBuilder,
    NodeTypeDesc,
    TraversalDesc,
)
from nodeforge.core.catalogue.models import AttributeType, FlagSpec, SonSpec, TypeCatalogue
from nodeforge.core.config import parse_policies
from nodeforge.core.constants import DEFAULT_TRAVERSAL_BEHAVIOR
from nodeforge.core.errors import ERROR_CODE_INVALID_NAME, SchemaError


def _malformed(message: str, *, entity: str, field: str | None = None) -> SchemaError:
    return SchemaError(ERROR_CODE_INVALID_NAME, message, entity=entity, field=field)


def _section(raw: Any, *, entity: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise _malformed(f"{entity} must be a mapping", entity=entity)
    return raw


def _optional_bool(raw: Any, *, entity: str, field: str) -> bool | None:
    if raw is None:
        return None
    if not isinstance(raw, bool):
        raise _malformed(f"{entity}.{field} must be a boolean", entity=entity, field=field)
    return raw


def _parse_attribute_type(name: str, raw: Any) -> AttributeType:
    block = _section(raw, entity=f"attrtypes.{name}")
    persist = _optional_bool(block.get("persist"), entity=name, field="persist")
    return AttributeType(
        name=name,
        representation=str(block.get("representation", "scalar")).strip().lower(),  # type: ignore[arg-type]
        disposition=str(block.get("copy", "literal")).strip().lower(),  # type: ignore[arg-type]
        persist=True if persist is None else persist,
        default=block.get("default"),
    )


def _parse_node_type(name: str, raw: Any) -> NodeTypeDesc:
    block = _section(raw, entity=f"nodes.{name}")

    sons: list[SonSpec] = []
    for son_name, son_raw in _section(block.get("sons"), entity=f"{name}.sons").items():
        son_block = _section(son_raw, entity=f"{name}.{son_name}")
        target = son_block.get("target")
        if target is not None and not isinstance(target, str):
            raise _malformed(f"{name}.{son_name}.target must be a string", entity=f"{name}.{son_name}", field="target")
        sons.append(SonSpec(name=str(son_name), target=target))

    attributes: list[AttributeDesc] = []
    for attribute_name, attribute_raw in _section(block.get("attributes"), entity=f"{name}.attributes").items():
        entity = f"{name}.{attribute_name}"
        attribute_block = _section(attribute_raw, entity=entity)
        type_name = attribute_block.get("type")
        if not isinstance(type_name, str) or not type_name:
            raise _malformed(f"{entity} requires non-empty string field `type`", entity=entity, field="type")
        attributes.append(
            AttributeDesc(
                name=str(attribute_name),
                type=type_name,
                persist=_optional_bool(attribute_block.get("persist"), entity=entity, field="persist"),
            )
        )

    flags: list[FlagSpec] = []
    for flag_name, flag_raw in _section(block.get("flags"), entity=f"{name}.flags").items():
        entity = f"{name}.{flag_name}"
        flag_block = _section(flag_raw, entity=entity)
        default = _optional_bool(flag_block.get("default"), entity=entity, field="default")
        persist = _optional_bool(flag_block.get("persist"), entity=entity, field="persist")
        flags.append(
            FlagSpec(
                name=str(flag_name),
                default=bool(default),
                persist=True if persist is None else persist,
            )
        )

    return NodeTypeDesc(name=name, sons=sons, attributes=attributes, flags=flags)


def _parse_traversal(name: str, raw: Any) -> TraversalDesc:
    block = _section(raw, entity=f"traversals.{name}")
    nodes = _section(block.get("nodes"), entity=f"traversals.{name}.nodes")
    return TraversalDesc(
        name=name,
        default=str(block.get("default", DEFAULT_TRAVERSAL_BEHAVIOR)).strip().lower(),
        nodes={str(target): str(behavior).strip().lower() for target, behavior in nodes.items()},
    )


def catalogue_from_dict(data: dict[str, Any]) -> TypeCatalogue:
    """Assemble and finalize a catalogue from an untyped schema tree.

    Registration order is attribute types, nodesets, node types, traversals;
    cross-registry references are resolved at finalize time.
    """
    if not isinstance(data, dict):
        raise ValueError("Schema must be a mapping")

    try:
        policies = parse_policies(data.get("policies"))
    except ValueError as exc:
        raise _malformed(str(exc), entity="policies") from exc

    builder = CatalogueBuilder(policies=policies)
    for name, raw in _section(data.get("attrtypes"), entity="attrtypes").items():
        builder.register_attribute_type(_parse_attribute_type(str(name), raw))

    for name, raw in _section(data.get("nodesets"), entity="nodesets").items():
        if not isinstance(raw, list):
            raise _malformed(f"nodesets.{name} must be a list of node names", entity=str(name))
        builder.register_nodeset(str(name), [str(member) for member in raw])

    for name, raw in _section(data.get("nodes"), entity="nodes").items():
        builder.register_node_type(_parse_node_type(str(name), raw))

    for name, raw in _section(data.get("traversals"), entity="traversals").items():
        builder.register_traversal(_parse_traversal(str(name), raw))

    return builder.finalize()


def _load_document(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            loaded = json.loads(text)
        else:
            loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Schema file is not valid YAML: {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Schema file must be a mapping: {path}")
    return loaded


def load_catalogue(path: Path) -> TypeCatalogue:
    return catalogue_from_dict(_load_document(path))


__all__ = ["catalogue_from_dict", "load_catalogue"]
