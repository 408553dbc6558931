from __future__ import annotations

from nodeforge.core.attributes import AttributeHandlers
from nodeforge.core.catalogue.models import TypeCatalogue
from nodeforge.core.nodes import Node
from nodeforge.core.serialize.emit import Serializer, derive_link_plan, derive_serialize_plan
from nodeforge.core.serialize.io import dumps_stream, loads_stream, read_stream, write_stream
from nodeforge.core.serialize.reconstruct import Deserializer, derive_construct_plan, derive_fixup_plan
from nodeforge.core.serialize.stack import BuiltStack, SerStack, StackBuilder, derive_buildstack_plan
from nodeforge.core.serialize.stream import FixRecord, SerializedGraph, StreamHeader


def serialize_graph(
    catalogue: TypeCatalogue,
    root: Node,
    handlers: AttributeHandlers | None = None,
) -> SerializedGraph:
    return Serializer(catalogue, handlers).serialize(root)


def reconstruct_graph(
    catalogue: TypeCatalogue,
    graph: SerializedGraph,
    handlers: AttributeHandlers | None = None,
) -> Node | None:
    """Rebuild the graph and return the node that was passed to serialization."""
    return Deserializer(catalogue, handlers).reconstruct_root(graph)


__all__ = [
    "BuiltStack",
    "Deserializer",
    "FixRecord",
    "SerStack",
    "SerializedGraph",
    "Serializer",
    "StackBuilder",
    "StreamHeader",
    "derive_buildstack_plan",
    "derive_construct_plan",
    "derive_fixup_plan",
    "derive_link_plan",
    "derive_serialize_plan",
    "dumps_stream",
    "loads_stream",
    "read_stream",
    "reconstruct_graph",
    "serialize_graph",
    "write_stream",
]
