from nodeforge.core.catalogue.builder import (
    AttributeDesc,
    CatalogueBuilder,
    NodeTypeDesc,
    TraversalDesc,
)
from nodeforge.core.catalogue.loader import catalogue_from_dict, load_catalogue
from nodeforge.core.catalogue.models import (
    AttributeSpec,
    AttributeType,
    FlagSpec,
    NodeLayout,
    NodeSet,
    NodeType,
    SonSpec,
    Traversal,
    TypeCatalogue,
)

__all__ = [
    "AttributeDesc",
    "AttributeSpec",
    "AttributeType",
    "CatalogueBuilder",
    "FlagSpec",
    "NodeLayout",
    "NodeSet",
    "NodeType",
    "NodeTypeDesc",
    "SonSpec",
    "Traversal",
    "TraversalDesc",
    "TypeCatalogue",
    "catalogue_from_dict",
    "load_catalogue",
]
