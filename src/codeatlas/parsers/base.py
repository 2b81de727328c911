from abc import ABC, abstractmethod

from tree_sitter import Language, Node, Parser

from codeatlas.builtins import get_builtin_table
from codeatlas.hashing import compute_hashes
from codeatlas.models import DepType, Entity, EntityWithNode, NodeRole, build_skeleton
from codeatlas.syntax import ParseResult, ancestors, node_text, parse_source


class BaseParser(ABC):
    """Abstract base class for language front-ends.

    A front-end does two jobs: it turns a parse tree into entities, and it
    answers the small set of node-shape questions the dependency resolver
    asks while walking those entities' subtrees.
    """

    #: Language name, used for builtin tables and `Entity.language`.
    name: str = ""
    scope_separator: str = "."

    conditional_node_types: frozenset[str] = frozenset()
    #: Function, class and closure nodes. Conditional detection stops here.
    boundary_node_types: frozenset[str] = frozenset()
    type_declaration_types: frozenset[str] = frozenset()
    #: Wrapper nodes skipped when looking for a method's owning type.
    wrapper_node_types: frozenset[str] = frozenset()
    decorator_node_types: frozenset[str] = frozenset()

    def __init__(self):
        self.language = Language(self._language_capsule())
        self.parser = Parser(self.language)
        self.builtins = get_builtin_table(self.name)

    @abstractmethod
    def _language_capsule(self):
        """Return the grammar's language pointer for tree_sitter.Language."""

    @abstractmethod
    def extract_entities_with_nodes(self, parse_result: ParseResult) -> list[EntityWithNode]:
        """Extract all entities, each paired with its defining syntax node.

        Args:
            parse_result: Parsed file

        Returns:
            List of EntityWithNode in document order
        """

    @abstractmethod
    def classify_node(self, node: Node) -> NodeRole | None:
        """Classify a node as a call, construction, type reference, or nothing."""

    @abstractmethod
    def reference_name(self, node: Node, role: NodeRole, source: bytes) -> str:
        """Return the raw target name of a classified node.

        Returns "" when the target is not a simple or qualified identifier
        (e.g. calling the result of another call).
        """

    @abstractmethod
    def find_body(self, node: Node) -> Node | None:
        """Return the body block of a declaration, or None if it has none."""

    def parse(self, source_code: str, file_path: str) -> ParseResult:
        return parse_source(self.parser, source_code, file_path, self.name)

    def extract_entities(self, source_code: str, file_path: str) -> list[Entity]:
        """Extract all entities from source code.

        Args:
            source_code: The source code to parse
            file_path: Relative path to the file (for Entity.file)

        Returns:
            List of Entity objects found in the source code
        """
        parse_result = self.parse(source_code, file_path)
        return [item.entity for item in self.extract_entities_with_nodes(parse_result)]

    def is_builtin(self, name: str) -> bool:
        return self.builtins.is_builtin(name)

    def is_conditional_node(self, node: Node) -> bool:
        return node.type in self.conditional_node_types

    def is_boundary_node(self, node: Node) -> bool:
        return node.type in self.boundary_node_types

    def is_decorator_node(self, node: Node) -> bool:
        return node.type in self.decorator_node_types

    def decorator_nodes(self, node: Node) -> list[Node]:
        """Return the decorator/annotation nodes attached to a declaration."""
        return []

    def base_references(self, node: Node, source: bytes) -> list[tuple[str, DepType, Node]]:
        """Return (raw name, EXTENDS or IMPLEMENTS, node) for a type's base clauses."""
        return []

    def declaration_name(self, node: Node, source: bytes) -> str:
        return node_text(node.child_by_field_name("name"), source)

    def method_owner_name(self, node: Node, source: bytes) -> str:
        """Return the name of the type a method belongs to, or "".

        Walks ancestors to the nearest enclosing type declaration, skipping
        wrapper nodes and giving up at any other function boundary.
        """
        for parent in ancestors(node):
            if parent.type in self.type_declaration_types:
                return self.declaration_name(parent, source)
            if parent.type in self.wrapper_node_types:
                continue
            if parent.type in self.boundary_node_types:
                return ""
        return ""


MAX_VALUE_LENGTH = 50


def truncate_value(value: str) -> str:
    """Truncate a textual value to 50 characters ("..." marks the cut)."""
    if len(value) > MAX_VALUE_LENGTH:
        return value[:MAX_VALUE_LENGTH - 3] + "..."
    return value


def finalize_entity(entity: Entity) -> Entity:
    """Fill in the derived fields of a freshly extracted entity: hashes and skeleton."""
    compute_hashes(entity)
    entity.skeleton = build_skeleton(entity)
    return entity
