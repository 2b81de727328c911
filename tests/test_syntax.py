"""Tests for the tree-sitter helpers."""

import pytest
import tree_sitter_python
from tree_sitter import Language, Parser

from codeatlas.syntax import (
    ancestors,
    child_by_type,
    find_nodes_by_type,
    line_range,
    node_text,
    parse_source,
    preceding_comments,
    walk,
)

SOURCE = """def outer():
    def inner():
        return 1
    return inner()

x = outer()
"""


@pytest.fixture
def parse_result():
    """Parse SOURCE with a Python tree-sitter parser."""
    parser = Parser(Language(tree_sitter_python.language()))
    return parse_source(parser, SOURCE, "pkg/mod.py", "python")


def test_parse_result_metadata(parse_result):
    assert parse_result.file_path == "pkg/mod.py"
    assert parse_result.language == "python"
    assert parse_result.source == SOURCE.encode("utf8")
    assert parse_result.root.type == "module"
    assert not parse_result.has_errors()


def test_syntax_errors_are_reported():
    parser = Parser(Language(tree_sitter_python.language()))
    result = parse_source(parser, "def broken(:\n", "bad.py", "python")
    assert result.has_errors()


def test_find_nodes_in_document_order(parse_result):
    functions = parse_result.find_nodes_by_type("function_definition")
    names = [parse_result.node_text(f.child_by_field_name("name")) for f in functions]
    assert names == ["outer", "inner"]


def test_find_nodes_includes_root():
    parser = Parser(Language(tree_sitter_python.language()))
    result = parse_source(parser, "x = 1\n", "a.py", "python")
    assert find_nodes_by_type(result.root, "module") == [result.root]


def test_node_text(parse_result):
    call = parse_result.find_nodes_by_type("call")[0]
    assert parse_result.node_text(call) == "inner()"


def test_node_text_out_of_range_is_empty(parse_result):
    call = parse_result.find_nodes_by_type("call")[0]
    assert node_text(call, b"short") == ""


def test_node_text_none_is_empty():
    assert node_text(None, b"source") == ""


def test_walk_can_skip_children(parse_result):
    visited = []

    def visit(node):
        visited.append(node.type)
        return node.type != "function_definition"

    walk(parse_result.root, visit)

    assert visited.count("function_definition") == 1
    assert "return_statement" not in visited


def test_ancestors_walk_to_root(parse_result):
    inner_return = parse_result.find_nodes_by_type("return_statement")[0]
    types = [node.type for node in ancestors(inner_return)]
    assert types[-1] == "module"
    assert types.count("function_definition") == 2


def test_child_by_type(parse_result):
    statement = parse_result.find_nodes_by_type("expression_statement")[-1]
    assert child_by_type(statement, "assignment") is not None
    assert child_by_type(statement, "call") is None
    assert child_by_type(None, "call") is None


def test_line_range_is_one_based(parse_result):
    outer = parse_result.find_nodes_by_type("function_definition")[0]
    assert line_range(outer) == (1, 4)
    assert parse_result.node_location(outer) == "pkg/mod.py:1"


COMMENTED = """# Module header.

x = 1  # trailing
# First line.
# Second line.
def documented():
    pass

# Detached.

def detached():
    pass
"""


def _function(result, name):
    for node in result.find_nodes_by_type("function_definition"):
        if result.node_text(node.child_by_field_name("name")) == name:
            return node
    raise AssertionError(name)


def test_preceding_comments_collects_adjacent_block():
    parser = Parser(Language(tree_sitter_python.language()))
    result = parse_source(parser, COMMENTED, "a.py", "python")
    assert preceding_comments(_function(result, "documented"), result.source) == "# First line.\n# Second line."


def test_preceding_comments_stop_at_blank_line():
    parser = Parser(Language(tree_sitter_python.language()))
    result = parse_source(parser, COMMENTED, "a.py", "python")
    assert preceding_comments(_function(result, "detached"), result.source) == ""


def test_preceding_comments_skip_trailing_comment_of_previous_line():
    parser = Parser(Language(tree_sitter_python.language()))
    result = parse_source(parser, "x = 1  # trailing\ny = 2\n", "a.py", "python")
    statement = result.root.named_children[-1]
    assert preceding_comments(statement, result.source) == ""


def test_preceding_comments_of_none():
    assert preceding_comments(None, b"") == ""
