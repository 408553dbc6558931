from __future__ import annotations

import pytest

from nodeforge.core.catalogue import TypeCatalogue
from nodeforge.core.errors import (
    ERROR_CODE_CATALOGUE_MISMATCH,
    ERROR_CODE_MALFORMED_RECORD,
    ERROR_CODE_UNMATCHED_SLOT,
    ERROR_CODE_UNMATCHED_TYPE,
    ERROR_CODE_UNRESOLVED_POSITION,
    StructuralCorruption,
)
from nodeforge.core.nodes import Node
from nodeforge.core.serialize import Deserializer, FixRecord, SerializedGraph, serialize_graph


@pytest.fixture
def graph(catalogue: TypeCatalogue, program: dict[str, Node]) -> SerializedGraph:
    return serialize_graph(catalogue, program["module"])


def _corruption_code(catalogue: TypeCatalogue, graph: SerializedGraph) -> str:
    with pytest.raises(StructuralCorruption) as exc_info:
        Deserializer(catalogue).reconstruct(graph)
    return exc_info.value.code


def test_catalogue_digest_mismatch(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.header.catalogue_digest = "0" * 64
    assert _corruption_code(catalogue, graph) == ERROR_CODE_CATALOGUE_MISMATCH


def test_format_version_mismatch(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.header.format_version = "2"
    assert _corruption_code(catalogue, graph) == ERROR_CODE_MALFORMED_RECORD


def test_unknown_tag(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.constructs[1]["tag"] = 99
    assert _corruption_code(catalogue, graph) == ERROR_CODE_UNMATCHED_TYPE


def test_arity_mismatch(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.constructs[0]["sons"] = []
    assert _corruption_code(catalogue, graph) == ERROR_CODE_MALFORMED_RECORD


def test_son_of_the_wrong_type(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    # position 6 is the Block body
    graph.constructs[0]["sons"][0] = {"ref": 6}
    assert _corruption_code(catalogue, graph) == ERROR_CODE_UNMATCHED_TYPE


def test_reference_past_the_constructed_nodes(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.constructs[1]["sons"][2] = {"ref": 40}
    assert _corruption_code(catalogue, graph) == ERROR_CODE_UNRESOLVED_POSITION


def test_inline_record_where_a_reference_is_expected(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.constructs[0]["sons"][0] = dict(graph.constructs[1])
    assert _corruption_code(catalogue, graph) == ERROR_CODE_MALFORMED_RECORD


def test_fix_from_unknown_position(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.fixes.append(FixRecord(from_position=99, slot=1, to_position=0))
    assert _corruption_code(catalogue, graph) == ERROR_CODE_UNRESOLVED_POSITION


def test_fix_with_unknown_slot(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.fixes.append(FixRecord(from_position=0, slot=1, to_position=1))
    assert _corruption_code(catalogue, graph) == ERROR_CODE_UNMATCHED_SLOT


def test_detached_fix_for_an_undetached_son(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.fixes.append(FixRecord(from_position=1, slot=0, to_position=2, son="Args"))
    assert _corruption_code(catalogue, graph) == ERROR_CODE_UNMATCHED_SLOT


def test_detached_fix_to_the_wrong_type(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.fixes[0] = FixRecord(from_position=1, slot=0, to_position=0, son="Next")
    assert _corruption_code(catalogue, graph) == ERROR_CODE_UNMATCHED_TYPE


def test_no_link_sentinel_restores_null(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.fixes[-1] = FixRecord(from_position=7, slot=1, to_position=-1)
    module = Deserializer(catalogue).reconstruct_root(graph)
    assert module.son("Defs").son("Body").son("Stmts").attr("Decl") is None


def test_bad_flag_value(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.constructs[1]["flags"] = [3]
    assert _corruption_code(catalogue, graph) == ERROR_CODE_MALFORMED_RECORD


def test_corruption_renders_as_error_dict(catalogue: TypeCatalogue, graph: SerializedGraph) -> None:
    graph.header.catalogue_digest = "f" * 64
    with pytest.raises(StructuralCorruption) as exc_info:
        Deserializer(catalogue).reconstruct(graph)
    payload = exc_info.value.to_error().to_dict()
    assert payload["kind"] == "CORRUPTION"
    assert payload["details"]["expected"] == catalogue.digest
