from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from nodeforge.core.catalogue import TypeCatalogue, catalogue_from_dict
from nodeforge.core.nodes import Node, NodeFactory, SourceLocation

SAMPLE_SCHEMA_YAML = """
attrtypes:
  String:
    representation: string
    copy: literal
    default: ""
  Int:
    representation: scalar
    copy: literal
    default: 0
  Scratch:
    representation: scalar
    copy: literal
    persist: false
    default: 7
  Link:
    representation: link
    copy: literal
  TypeList:
    representation: structure
    copy: function
    default: []
  Tree:
    representation: node
    copy: node

nodesets:
  Expr: [Id, Num]

nodes:
  Module:
    sons:
      Defs: {target: Fundef}
    attributes:
      Name: {type: String}
  Fundef:
    sons:
      Next: {target: Fundef}
      Body: {target: Block}
      Args: {target: Id}
    attributes:
      Name: {type: String}
      Mod: {type: String}
      Type: {type: TypeList}
      Impl: {type: Link}
      Extra: {type: TypeList}
      Ann: {type: Tree}
    flags:
      IsExported: {}
      Dirty: {persist: false}
  Block:
    sons:
      Stmts: {target: Expr}
  Id:
    sons:
      Next: {target: Id}
    attributes:
      Name: {type: String}
      Decl: {type: Link}
  Num:
    attributes:
      Value: {type: Int}
      Cache: {type: Scratch}
  Error:
    attributes:
      Message: {type: String}

traversals:
  Rename:
    default: sons
    nodes:
      Id: user
      Num: none
  strict_walk:
    default: sons
    nodes:
      Expr: error
"""


@pytest.fixture
def schema_dict() -> dict[str, Any]:
    return yaml.safe_load(SAMPLE_SCHEMA_YAML)


@pytest.fixture
def schema_file(tmp_path: Path) -> Path:
    path = tmp_path / "lang.schema.yaml"
    path.write_text(SAMPLE_SCHEMA_YAML.strip() + "\n", encoding="utf-8")
    return path


@pytest.fixture
def catalogue(schema_dict: dict[str, Any]) -> TypeCatalogue:
    return catalogue_from_dict(schema_dict)


@pytest.fixture
def factory(catalogue: TypeCatalogue) -> NodeFactory:
    return NodeFactory(catalogue)


def build_program(factory: NodeFactory) -> dict[str, Node]:
    """Module with two chained definitions, a body, an argument chain and links.

    ``f1.Body`` holds an identifier linking to ``f2``; ``f2.Impl`` links back
    to ``f1``; ``f1.Ann`` owns a number.
    """
    f2 = factory.make("Fundef", attributes={"Name": "second", "Type": ["int"]})
    ident = factory.make("Id", attributes={"Name": "x", "Decl": f2}, location=SourceLocation("main.src", 4, 2))
    body = factory.make("Block", sons={"Stmts": ident})
    a2 = factory.make("Id", attributes={"Name": "b"})
    a1 = factory.make("Id", attributes={"Name": "a"}, sons={"Next": a2})
    ann = factory.make("Num", attributes={"Value": 3, "Cache": 99})
    f1 = factory.make(
        "Fundef",
        location=SourceLocation("main.src", 1, 0),
        attributes={"Name": "first", "Mod": "main", "Type": ["int", "int"], "Extra": ["inline"], "Ann": ann},
        sons={"Next": f2, "Body": body, "Args": a1},
        flags={"IsExported": True, "Dirty": True},
    )
    f2.set_attr("Impl", f1)
    module = factory.make("Module", attributes={"Name": "main"}, sons={"Defs": f1})
    return {
        "module": module,
        "f1": f1,
        "f2": f2,
        "body": body,
        "ident": ident,
        "a1": a1,
        "a2": a2,
        "ann": ann,
    }


@pytest.fixture
def program(factory: NodeFactory) -> dict[str, Node]:
    return build_program(factory)
