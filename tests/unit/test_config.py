from __future__ import annotations

import pytest

from nodeforge.core.config import CataloguePolicies, parse_policies
from nodeforge.core.constants import DEFAULT_DETACHED_SONS, DEFAULT_ZOMBIE_NODE


def test_missing_policies_use_defaults() -> None:
    policies = parse_policies(None)
    assert policies == CataloguePolicies()
    assert policies.zombie.node == DEFAULT_ZOMBIE_NODE
    assert policies.zombie.explicit is False
    assert dict(policies.detached.sons) == DEFAULT_DETACHED_SONS


def test_explicit_policies_are_marked() -> None:
    policies = parse_policies({"zombie": {"node": "Procdef", "retain": ["Name"]}, "detached": {"Procdef": ["Next"]}})
    assert policies.zombie.explicit
    assert policies.detached.explicit
    assert policies.detached.for_node("Procdef") == ("Next",)
    assert policies.detached.for_node("Fundef") == ()
    assert policies.to_dict() == {
        "zombie": {"node": "Procdef", "retain": ["Name"]},
        "detached": {"Procdef": ["Next"]},
    }


@pytest.mark.parametrize(
    "raw",
    [
        ["zombie"],
        {"zombie": "Fundef"},
        {"zombie": {"node": 3}},
        {"detached": {"Fundef": "Next"}},
    ],
)
def test_malformed_policies_raise(raw: object) -> None:
    with pytest.raises(ValueError):
        parse_policies(raw)
