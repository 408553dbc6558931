from __future__ import annotations

STREAM_FORMAT_VERSION = "1"

NEXT_SON = "Next"
LINK_TYPE = "Link"
CODE_LINK_TYPE = "CodeLink"
LINK_TYPE_NAMES = frozenset({LINK_TYPE, CODE_LINK_TYPE})

UNDEFINED_NODE_TAG = 0

# Serialization stack lookups and the "no link" fix target.
SERSTACK_NOT_FOUND = -1

# Fix records with this slot restore a detached son instead of a link.
DETACHED_SON_SLOT = 0

DEFAULT_ZOMBIE_NODE = "Fundef"
DEFAULT_ZOMBIE_RETAINED = ("Name", "Mod", "LinkMod", "Type", "Types", "Impl")
DEFAULT_DETACHED_SONS: dict[str, tuple[str, ...]] = {
    "Fundef": (NEXT_SON, "Body"),
    "Typedef": (NEXT_SON,),
    "Objdef": (NEXT_SON,),
}

DEFAULT_TRAVERSAL_BEHAVIOR = "sons"

LOG_LEVEL_ENV = "NODEFORGE_LOG_LEVEL"

EXIT_SUCCESS = 0
EXIT_SCHEMA_ERROR = 1
EXIT_INTERNAL_ERROR = 2
