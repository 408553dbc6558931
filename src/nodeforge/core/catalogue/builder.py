from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from types import MappingProxyType

from nodeforge.core.catalogue.digest import catalogue_digest
from nodeforge.core.catalogue.models import (
    VALID_DISPOSITIONS,
    VALID_REPRESENTATIONS,
    VALID_TRAVERSAL_BEHAVIORS,
    AttributeSpec,
    AttributeType,
    FlagSpec,
    NodeLayout,
    NodeSet,
    NodeType,
    SonSpec,
    Traversal,
    TraversalBehavior,
    TypeCatalogue,
)
from nodeforge.core.catalogue.naming import fold_name, is_valid_name
from nodeforge.core.config import CataloguePolicies, DetachedPolicy, ZombiePolicy
from nodeforge.core.constants import DEFAULT_TRAVERSAL_BEHAVIOR, LINK_TYPE_NAMES
from nodeforge.core.errors import (
    ERROR_CODE_DUPLICATE_NAME,
    ERROR_CODE_INVALID_NAME,
    ERROR_CODE_UNKNOWN_ATTRIBUTE_TYPE,
    ERROR_CODE_UNRESOLVED_REFERENCE,
    SchemaError,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AttributeDesc:
    name: str
    type: str
    persist: bool | None = None


@dataclass(slots=True)
class NodeTypeDesc:
    name: str
    sons: list[SonSpec] = field(default_factory=list)
    attributes: list[AttributeDesc] = field(default_factory=list)
    flags: list[FlagSpec] = field(default_factory=list)


@dataclass(slots=True)
class TraversalDesc:
    name: str
    default: str = DEFAULT_TRAVERSAL_BEHAVIOR
    nodes: dict[str, str] = field(default_factory=dict)


def _invalid(message: str, *, entity: str, field: str | None = None) -> SchemaError:
    return SchemaError(ERROR_CODE_INVALID_NAME, message, entity=entity, field=field)


def _unresolved(message: str, *, entity: str, field: str | None = None) -> SchemaError:
    return SchemaError(ERROR_CODE_UNRESOLVED_REFERENCE, message, entity=entity, field=field)


class CatalogueBuilder:
    """Collects attribute types, node types, nodesets and traversals.

    Registration validates names and local consistency eagerly; references
    across registries are resolved by :meth:`finalize`, which returns the
    immutable :class:`TypeCatalogue`.
    """

    def __init__(self, policies: CataloguePolicies | None = None) -> None:
        self._attribute_types: dict[str, AttributeType] = {}
        self._node_types: dict[str, NodeTypeDesc] = {}
        self._nodesets: dict[str, tuple[str, ...]] = {}
        self._traversals: dict[str, TraversalDesc] = {}
        self._folded_names: dict[str, str] = {}
        self._folded_traversals: dict[str, str] = {}
        self._policies = policies or CataloguePolicies()
        self._catalogue: TypeCatalogue | None = None

    def _ensure_open(self) -> None:
        if self._catalogue is not None:
            raise RuntimeError("Catalogue is finalized; no further registration is possible")

    def _claim_node_name(self, name: str, *, kind: str) -> None:
        if not is_valid_name(kind, name):  # type: ignore[arg-type]
            raise _invalid(f"Invalid {kind} name: {name!r}", entity=str(name), field="name")
        existing = self._folded_names.get(fold_name(name))
        if existing is not None:
            raise SchemaError(
                ERROR_CODE_DUPLICATE_NAME,
                f"Duplicate {kind} name {name!r} (clashes with {existing!r})",
                entity=name,
                field="name",
            )
        self._folded_names[fold_name(name)] = name

    def set_policies(self, policies: CataloguePolicies) -> None:
        self._ensure_open()
        self._policies = policies

    def register_attribute_type(self, desc: AttributeType) -> str:
        self._ensure_open()
        name = desc.name
        if not is_valid_name("attrtype", name):
            raise _invalid(f"Invalid attribute type name: {name!r}", entity=str(name), field="name")
        if desc.representation not in VALID_REPRESENTATIONS:
            raise _invalid(
                f"Attribute type {name} has unknown representation {desc.representation!r}",
                entity=name,
                field="representation",
            )
        if desc.disposition not in VALID_DISPOSITIONS:
            raise _invalid(
                f"Attribute type {name} has unknown copy disposition {desc.disposition!r}",
                entity=name,
                field="copy",
            )
        if name in LINK_TYPE_NAMES and (desc.representation != "link" or desc.disposition != "literal"):
            raise _invalid(
                f"Attribute type {name} is reserved for non-owning links (representation link, copy literal)",
                entity=name,
                field="representation",
            )
        if desc.representation == "node" and desc.disposition != "node":
            allowed = ", ".join(sorted(LINK_TYPE_NAMES))
            raise _invalid(
                f"Attribute type {name} holds nodes and must use copy 'node'; "
                f"non-owning references are reserved to {allowed}",
                entity=name,
                field="copy",
            )
        if desc.representation == "link" and name not in LINK_TYPE_NAMES:
            allowed = ", ".join(sorted(LINK_TYPE_NAMES))
            raise _invalid(
                f"Representation 'link' is reserved to {allowed}; got {name}",
                entity=name,
                field="representation",
            )
        if name in self._attribute_types:
            raise SchemaError(
                ERROR_CODE_DUPLICATE_NAME,
                f"Duplicate attribute type name: {name}",
                entity=name,
                field="name",
            )
        self._attribute_types[name] = desc
        logger.debug("registered attribute type %s (%s)", name, desc.disposition)
        return name

    def register_nodeset(self, name: str, members: Iterable[str]) -> str:
        self._ensure_open()
        self._claim_node_name(name, kind="nodeset")
        self._nodesets[name] = tuple(members)
        return name

    def register_node_type(self, desc: NodeTypeDesc) -> int:
        self._ensure_open()
        name = desc.name
        if not is_valid_name("node", name):
            raise _invalid(f"Invalid node name: {name!r}", entity=str(name), field="name")

        seen: dict[str, str] = {}
        fields = [
            *(("son", son.name) for son in desc.sons),
            *(("attribute", attribute.name) for attribute in desc.attributes),
            *(("flag", flag.name) for flag in desc.flags),
        ]
        for kind, field_name in fields:
            entity = f"{name}.{field_name}"
            if not is_valid_name("field", field_name):
                raise _invalid(f"Invalid {kind} name: {entity!r}", entity=entity, field=kind)
            folded = fold_name(field_name)
            if folded in seen:
                raise SchemaError(
                    ERROR_CODE_DUPLICATE_NAME,
                    f"Duplicate {kind} name {field_name!r} in node {name} (clashes with {seen[folded]!r})",
                    entity=entity,
                    field=kind,
                )
            seen[folded] = field_name

        for son in desc.sons:
            if son.target is not None and not is_valid_name("node", son.target):
                raise _invalid(
                    f"Invalid target {son.target!r} for son {name}.{son.name}",
                    entity=f"{name}.{son.name}",
                    field="target",
                )

        for attribute in desc.attributes:
            if attribute.type not in self._attribute_types:
                raise SchemaError(
                    ERROR_CODE_UNKNOWN_ATTRIBUTE_TYPE,
                    f"Attribute {name}.{attribute.name} references unregistered type {attribute.type!r}",
                    entity=f"{name}.{attribute.name}",
                    field="type",
                )

        self._claim_node_name(name, kind="node")
        self._node_types[name] = desc
        tag = len(self._node_types)
        logger.debug("registered node type %s with tag %d", name, tag)
        return tag

    def register_traversal(self, desc: TraversalDesc) -> str:
        self._ensure_open()
        name = desc.name
        if not is_valid_name("traversal", name):
            raise _invalid(f"Invalid traversal name: {name!r}", entity=str(name), field="name")
        existing = self._folded_traversals.get(fold_name(name))
        if existing is not None:
            raise SchemaError(
                ERROR_CODE_DUPLICATE_NAME,
                f"Duplicate traversal name {name!r} (clashes with {existing!r})",
                entity=name,
                field="name",
            )
        behaviors = [("default", desc.default), *desc.nodes.items()]
        for target, behavior in behaviors:
            if behavior not in VALID_TRAVERSAL_BEHAVIORS:
                raise _invalid(
                    f"Traversal {name} uses unknown behavior {behavior!r} for {target}",
                    entity=f"{name}.{target}",
                    field="behavior",
                )
        self._folded_traversals[fold_name(name)] = name
        self._traversals[name] = desc
        return name

    def _build_node_type(self, tag: int, desc: NodeTypeDesc) -> NodeType:
        attributes = tuple(
            AttributeSpec(
                name=attribute.name,
                attribute_type=self._attribute_types[attribute.type],
                persist_override=attribute.persist,
            )
            for attribute in desc.attributes
        )
        sons = tuple(desc.sons)
        flags = tuple(desc.flags)
        return NodeType(
            name=desc.name,
            tag=tag,
            sons=sons,
            attributes=attributes,
            flags=flags,
            layout=NodeLayout.build(sons, attributes, flags),
            link_attributes=tuple(item for item in attributes if item.is_link),
            node_attributes=tuple(item for item in attributes if item.disposition == "node"),
        )

    def _resolve_nodesets(self) -> dict[str, NodeSet]:
        nodesets: dict[str, NodeSet] = {}
        for name, members in self._nodesets.items():
            for member in members:
                if member not in self._node_types:
                    raise _unresolved(
                        f"Nodeset {name} lists unknown node type {member!r}",
                        entity=name,
                        field="members",
                    )
            nodesets[name] = NodeSet(name=name, members=members)
        return nodesets

    def _resolve_traversal(self, desc: TraversalDesc, nodesets: dict[str, NodeSet]) -> Traversal:
        behaviors: dict[str, TraversalBehavior] = {}
        for target, behavior in desc.nodes.items():
            if target in self._node_types:
                behaviors[target] = behavior  # type: ignore[assignment]
            elif target in nodesets:
                for member in nodesets[target].members:
                    behaviors[member] = behavior  # type: ignore[assignment]
            else:
                raise _unresolved(
                    f"Traversal {desc.name} references unknown node or nodeset {target!r}",
                    entity=f"{desc.name}.{target}",
                    field="nodes",
                )
        return Traversal(
            name=desc.name,
            default=desc.default,  # type: ignore[arg-type]
            behaviors=MappingProxyType(behaviors),
        )

    def _resolve_zombie(self, node_types: dict[str, NodeType]) -> ZombiePolicy:
        policy = self._policies.zombie
        if policy.node is None:
            return ZombiePolicy(node=None, retain=(), explicit=policy.explicit)
        node_type = node_types.get(policy.node)
        if node_type is None:
            if policy.explicit:
                raise _unresolved(
                    f"Zombie policy names unknown node type {policy.node!r}",
                    entity="policies.zombie",
                    field="node",
                )
            return ZombiePolicy(node=None, retain=(), explicit=False)
        attribute_names = {attribute.name for attribute in node_type.attributes}
        retain: list[str] = []
        for name in policy.retain:
            if name in attribute_names:
                retain.append(name)
            elif policy.explicit:
                raise _unresolved(
                    f"Zombie policy retains unknown attribute {node_type.name}.{name}",
                    entity="policies.zombie",
                    field="retain",
                )
        return ZombiePolicy(node=node_type.name, retain=tuple(retain), explicit=policy.explicit)

    def _resolve_detached(self, node_types: dict[str, NodeType]) -> DetachedPolicy:
        policy = self._policies.detached
        resolved: dict[str, tuple[str, ...]] = {}
        for node_name, son_names in policy.sons.items():
            node_type = node_types.get(node_name)
            if node_type is None:
                if policy.explicit:
                    raise _unresolved(
                        f"Detached-son policy names unknown node type {node_name!r}",
                        entity="policies.detached",
                        field=node_name,
                    )
                continue
            kept: list[str] = []
            for son_name in son_names:
                if son_name in node_type.layout.sons:
                    kept.append(son_name)
                elif policy.explicit:
                    raise _unresolved(
                        f"Detached-son policy names unknown son {node_name}.{son_name}",
                        entity="policies.detached",
                        field=node_name,
                    )
            if kept:
                resolved[node_name] = tuple(kept)
        return DetachedPolicy(sons=MappingProxyType(resolved), explicit=policy.explicit)

    def finalize(self) -> TypeCatalogue:
        if self._catalogue is not None:
            return self._catalogue

        node_types = {
            name: self._build_node_type(tag, desc)
            for tag, (name, desc) in enumerate(self._node_types.items(), start=1)
        }
        nodesets = self._resolve_nodesets()

        for node_type in node_types.values():
            for son in node_type.sons:
                if son.target is not None and son.target not in node_types and son.target not in nodesets:
                    raise _unresolved(
                        f"Son {node_type.name}.{son.name} targets unknown node or nodeset {son.target!r}",
                        entity=f"{node_type.name}.{son.name}",
                        field="target",
                    )

        traversals = {
            name: self._resolve_traversal(desc, nodesets) for name, desc in self._traversals.items()
        }
        policies = CataloguePolicies(
            zombie=self._resolve_zombie(node_types),
            detached=self._resolve_detached(node_types),
        )

        digest = catalogue_digest(
            attribute_types=self._attribute_types.values(),
            node_types=node_types.values(),
            nodesets=nodesets.values(),
            traversals=traversals.values(),
            policies=policies,
        )
        self._catalogue = TypeCatalogue(
            attribute_types=MappingProxyType(dict(self._attribute_types)),
            node_types=MappingProxyType(node_types),
            nodesets=MappingProxyType(nodesets),
            traversals=MappingProxyType(traversals),
            policies=policies,
            tags=tuple(node_types.values()),
            folded_names=MappingProxyType({fold_name(name): name for name in node_types}),
            next_node_types=frozenset(name for name, item in node_types.items() if item.has_next),
            digest=digest,
        )
        logger.debug(
            "finalized catalogue: %d attribute types, %d node types, %d traversals (digest %s)",
            len(self._attribute_types),
            len(node_types),
            len(traversals),
            digest[:12],
        )
        return self._catalogue


__all__ = [
    "AttributeDesc",
    "CatalogueBuilder",
    "NodeTypeDesc",
    "TraversalDesc",
]
