from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from nodeforge.core.catalogue.models import AttributeType
from nodeforge.core.nodes import Node

Destructor = Callable[[Any, Node], Any]
Encoder = Callable[[Any, Node], Any]
Decoder = Callable[[Any], Any]


@dataclass(slots=True)
class AttributeHandler:
    destroy: Destructor | None = None
    encode: Encoder | None = None
    decode: Decoder | None = None


class AttributeHandlers:
    """Per attribute-type hooks for Function-disposition values.

    ``destroy(value, parent)`` releases a value and returns what the slot
    holds afterwards.  ``encode(value, parent)`` and ``decode(raw)`` map a
    persisted value to and from its JSON form.  Types without a hook fall back
    to resetting to the type default and to identity encoding.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, AttributeHandler] = {}

    def register(
        self,
        type_name: str,
        *,
        destroy: Destructor | None = None,
        encode: Encoder | None = None,
        decode: Decoder | None = None,
    ) -> None:
        self._handlers[type_name] = AttributeHandler(destroy=destroy, encode=encode, decode=decode)

    def destroy(self, attribute_type: AttributeType, value: Any, parent: Node) -> Any:
        handler = self._handlers.get(attribute_type.name)
        if handler is not None and handler.destroy is not None:
            return handler.destroy(value, parent)
        return copy.deepcopy(attribute_type.default)

    def encode(self, attribute_type: AttributeType, value: Any, parent: Node) -> Any:
        handler = self._handlers.get(attribute_type.name)
        if handler is not None and handler.encode is not None:
            return handler.encode(value, parent)
        return value

    def decode(self, attribute_type: AttributeType, raw: Any) -> Any:
        handler = self._handlers.get(attribute_type.name)
        if handler is not None and handler.decode is not None:
            return handler.decode(raw)
        return raw


__all__ = ["AttributeHandler", "AttributeHandlers", "Decoder", "Destructor", "Encoder"]
