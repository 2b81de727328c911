"""Thin helpers over tree-sitter parse trees.

Node text extraction is bounds-checked against the source buffer: error
recovery can leave nodes whose byte span runs past the end of the source,
and those read as an empty string.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass

from tree_sitter import Node, Parser, Tree


@dataclass
class ParseResult:
    """A parse tree together with the source it was parsed from."""
    tree: Tree
    source: bytes
    file_path: str
    language: str

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def has_errors(self) -> bool:
        return self.root.has_error

    def node_text(self, node: Node | None) -> str:
        return node_text(node, self.source)

    def find_nodes_by_type(self, *node_types: str) -> list[Node]:
        return find_nodes_by_type(self.root, *node_types)

    def node_location(self, node: Node) -> str:
        """Return `file:line` (1-based) for a node."""
        return f"{self.file_path}:{node.start_point[0] + 1}"


def parse_source(parser: Parser, source_code: str, file_path: str, language: str) -> ParseResult:
    """Parse source code with a configured tree-sitter parser."""
    source = bytes(source_code, "utf8")
    tree = parser.parse(source)
    return ParseResult(tree=tree, source=source, file_path=file_path, language=language)


def node_text(node: Node | None, source: bytes) -> str:
    """Return the source text spanned by a node, or "" if out of range."""
    if node is None or not source:
        return ""
    start, end = node.start_byte, node.end_byte
    if start < 0 or end > len(source) or start > end:
        return ""
    return source[start:end].decode("utf8", errors="replace")


def walk(node: Node, visitor: Callable[[Node], bool]) -> None:
    """Depth-first, pre-order traversal.

    The visitor returns False to skip the children of the visited node.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        if visitor(current) is False:
            continue
        stack.extend(reversed(current.children))


def find_nodes_by_type(root: Node, *node_types: str) -> list[Node]:
    """Return all descendants (root included) whose type is in node_types, in document order."""
    found = []

    def visit(node: Node) -> bool:
        if node.type in node_types:
            found.append(node)
        return True

    walk(root, visit)
    return found


def ancestors(node: Node) -> Iterator[Node]:
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


def child_by_type(node: Node | None, *node_types: str) -> Node | None:
    """Return the first direct child whose type is in node_types."""
    if node is None:
        return None
    for child in node.children:
        if child.type in node_types:
            return child
    return None


def line_range(node: Node) -> tuple[int, int]:
    """Return the 1-based inclusive (start, end) lines of a node."""
    return node.start_point[0] + 1, node.end_point[0] + 1


def preceding_comments(node: Node | None, source: bytes, skip_types: tuple[str, ...] = ()) -> str:
    """Return the comment block directly above a node, or "".

    Only comments on consecutive lines ending right above the node count: a
    blank line or any other statement ends the block, and a trailing comment
    sharing a line with earlier code is not included. Siblings whose type is
    in skip_types (decorators) are stepped over.
    """
    if node is None:
        return ""

    comments = []
    next_row = node.start_point[0]
    sibling = node.prev_sibling
    while sibling is not None:
        if sibling.type in skip_types:
            next_row = sibling.start_point[0]
        elif not sibling.is_named and not node_text(sibling, source).strip():
            # Newline terminators
            pass
        elif sibling.type != "comment" or sibling.end_point[0] + 1 != next_row:
            break
        elif source[source.rfind(b"\n", 0, sibling.start_byte) + 1:sibling.start_byte].strip():
            # Trailing comment of the line above
            break
        else:
            comments.append(node_text(sibling, source))
            next_row = sibling.start_point[0]
        sibling = sibling.prev_sibling

    return "\n".join(reversed(comments))
