import tree_sitter_python
from tree_sitter import Node

from codeatlas.models import (
    DepType,
    Entity,
    EntityKind,
    EntityWithNode,
    EnumValue,
    Field,
    NodeRole,
    Param,
    TypeKind,
    Visibility,
)
from codeatlas.parsers.base import BaseParser, finalize_entity, truncate_value
from codeatlas.syntax import ParseResult, ancestors, child_by_type, line_range, node_text, preceding_comments

ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})
INTERFACE_BASES = frozenset({"Protocol", "ABC"})


class PythonParser(BaseParser):
    """Front-end for Python source code using tree-sitter."""

    name = "python"
    conditional_node_types = frozenset({
        "if_statement", "elif_clause", "match_statement", "try_statement", "except_clause",
    })
    boundary_node_types = frozenset({
        "function_definition", "class_definition", "decorated_definition", "lambda",
    })
    type_declaration_types = frozenset({"class_definition"})
    wrapper_node_types = frozenset({"decorated_definition"})
    decorator_node_types = frozenset({"decorator"})

    def _language_capsule(self):
        return tree_sitter_python.language()

    def extract_entities_with_nodes(self, parse_result: ParseResult) -> list[EntityWithNode]:
        """Extract functions, methods, classes, enums, module-level values and imports.

        Functions nested inside methods are skipped; decorated declarations are
        paired with their decorated_definition node so decorators stay reachable.
        """
        results = []
        nodes = parse_result.find_nodes_by_type(
            "function_definition",
            "class_definition",
            "expression_statement",
            "import_statement",
            "import_from_statement",
        )

        for node in nodes:
            if node.type == "function_definition":
                owner = self._owning_class(node)
                if owner is not None:
                    entity = self._extract_function(node, parse_result, owner)
                elif self._is_inside_class(node):
                    continue
                else:
                    entity = self._extract_function(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, self._definition_node(node), parse_result))

            elif node.type == "class_definition":
                entity = self._extract_class(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, self._definition_node(node), parse_result))

            elif node.type == "expression_statement":
                if node.parent is not None and node.parent.type == "module":
                    for entity in self._extract_module_values(node, parse_result):
                        results.append(EntityWithNode(entity, node, parse_result))

            elif node.type == "import_statement":
                for entity in self._extract_import(node, parse_result):
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type == "import_from_statement":
                for entity in self._extract_import_from(node, parse_result):
                    results.append(EntityWithNode(entity, node, parse_result))

        return results

    def _definition_node(self, node: Node) -> Node:
        """Return the decorated_definition wrapping node, or node itself."""
        parent = node.parent
        if parent is not None and parent.type == "decorated_definition":
            return parent
        return node

    def _owning_class(self, node: Node) -> Node | None:
        """Return the class_definition a function is directly declared in."""
        container = self._definition_node(node).parent
        if container is None or container.type != "block":
            return None
        if container.parent is not None and container.parent.type == "class_definition":
            return container.parent
        return None

    def _is_inside_class(self, node: Node) -> bool:
        return any(parent.type == "class_definition" for parent in ancestors(node))

    def _extract_function(self, node: Node, parse_result: ParseResult, owner: Node | None = None) -> Entity | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        name = parse_result.node_text(name_node)
        if not name:
            return None

        definition = self._definition_node(node)
        decorators = self._decorator_names(definition, parse_result.source)

        receiver = ""
        if owner is not None:
            receiver = parse_result.node_text(owner.child_by_field_name("name"))
            if "staticmethod" in decorators:
                receiver += " (static)"

        skip_first = owner is not None and "staticmethod" not in decorators
        params = self._extract_parameters(node, parse_result.source, skip_first)

        returns = []
        return_type = node_text(node.child_by_field_name("return_type"), parse_result.source).strip()
        if return_type:
            returns.append(return_type)

        body = node.child_by_field_name("body")
        start_line, end_line = line_range(definition)

        entity = Entity(
            kind=EntityKind.METHOD if owner is not None else EntityKind.FUNCTION,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            params=params,
            returns=returns,
            receiver=receiver,
            is_async=any(child.type == "async" for child in node.children),
            decorators=decorators,
            doc_comment=docstring(body, parse_result.source),
            raw_body=parse_result.node_text(body),
            visibility=python_visibility(name),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _extract_parameters(self, node: Node, source: bytes, skip_first: bool = False) -> list[Param]:
        """Extract parameter list from function/method definition.

        Args:
            node: function_definition tree-sitter node
            source: Source bytes for text extraction
            skip_first: Drop the leading self/cls parameter

        Returns:
            List of Param objects
        """
        parameters = []

        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            return parameters

        for child in params_node.named_children:
            param_name = None
            param_type = ""

            if child.type == "identifier":
                # Simple parameter: def foo(x):
                param_name = node_text(child, source)

            elif child.type == "typed_parameter":
                # Parameter with type hint: def foo(x: int) or def foo(*args: int)
                for subchild in child.children:
                    if param_name is None and subchild.type in (
                        "identifier", "list_splat_pattern", "dictionary_splat_pattern"
                    ):
                        param_name = node_text(subchild, source)
                    elif subchild.type == "type":
                        param_type = node_text(subchild, source)

            elif child.type in ("default_parameter", "typed_default_parameter"):
                # def foo(x=5) / def foo(x: int = 5)
                param_name = node_text(child.child_by_field_name("name"), source)
                param_type = node_text(child.child_by_field_name("type"), source)

            elif child.type in ("list_splat_pattern", "dictionary_splat_pattern"):
                # *args and **kwargs keep their prefix
                param_name = node_text(child, source)

            if not param_name:
                continue
            if skip_first:
                skip_first = False
                continue
            parameters.append(Param(name=param_name, type=param_type))

        return parameters

    def _decorator_names(self, node: Node, source: bytes) -> list[str]:
        return [
            name
            for name in (self.reference_name(d, NodeRole.DECORATOR, source) for d in self.decorator_nodes(node))
            if name
        ]

    def _extract_class(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        name = parse_result.node_text(name_node)
        if not name:
            return None

        definition = self._definition_node(node)
        bases = [base for base, _, _ in self.base_references(node, parse_result.source)]
        base_roots = {base.rsplit(".", 1)[-1] for base in bases}
        body = node.child_by_field_name("body")
        start_line, end_line = line_range(definition)

        entity = Entity(
            kind=EntityKind.TYPE,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            decorators=self._decorator_names(definition, parse_result.source),
            implements=bases,
            doc_comment=docstring(body, parse_result.source),
            visibility=python_visibility(name),
            language=self.name,
        )

        enum_bases = base_roots & ENUM_BASES
        if enum_bases:
            entity.kind = EntityKind.ENUM
            entity.value_type = sorted(enum_bases)[0]
            entity.enum_values = self._extract_enum_values(body, parse_result.source)
        else:
            entity.type_kind = TypeKind.INTERFACE if base_roots & INTERFACE_BASES else TypeKind.STRUCT
            entity.fields = self._extract_class_fields(body, parse_result.source)

        finalize_entity(entity)
        return entity

    def _class_assignments(self, body: Node | None):
        """Yield the assignment nodes that are direct statements of a class body."""
        if body is None:
            return
        for statement in body.named_children:
            if statement.type != "expression_statement":
                continue
            assignment = child_by_type(statement, "assignment")
            if assignment is not None:
                yield assignment

    def _extract_class_fields(self, body: Node | None, source: bytes) -> list[Field]:
        """Extract annotated class attributes (name: type [= value])."""
        fields = []
        for assignment in self._class_assignments(body):
            left = assignment.child_by_field_name("left")
            type_node = assignment.child_by_field_name("type")
            if left is None or left.type != "identifier" or type_node is None:
                continue
            name = node_text(left, source)
            fields.append(Field(name=name, type=node_text(type_node, source), visibility=python_visibility(name)))
        return fields

    def _extract_enum_values(self, body: Node | None, source: bytes) -> list[EnumValue]:
        values = []
        for assignment in self._class_assignments(body):
            left = assignment.child_by_field_name("left")
            if left is None or left.type != "identifier":
                continue
            value = node_text(assignment.child_by_field_name("right"), source)
            values.append(EnumValue(name=node_text(left, source), value=truncate_value(value)))
        return values

    def _extract_module_values(self, node: Node, parse_result: ParseResult) -> list[Entity]:
        """Extract module-level assignments; UPPER_CASE names are constants."""
        assignment = child_by_type(node, "assignment")
        if assignment is None:
            return []
        left = assignment.child_by_field_name("left")
        if left is None or left.type != "identifier":
            return []

        name = parse_result.node_text(left)
        start_line, _ = line_range(node)
        entity = Entity(
            kind=EntityKind.CONSTANT if is_constant_name(name) else EntityKind.VARIABLE,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=start_line,
            value_type=parse_result.node_text(assignment.child_by_field_name("type")),
            value=truncate_value(parse_result.node_text(assignment.child_by_field_name("right"))),
            doc_comment=preceding_comments(node, parse_result.source),
            visibility=python_visibility(name),
            language=self.name,
        )
        finalize_entity(entity)
        return [entity]

    def _extract_import(self, node: Node, parse_result: ParseResult) -> list[Entity]:
        """Extract one entity per module in `import a.b, c as d`."""
        entities = []
        for child in node.children_by_field_name("name"):
            path, alias = self._import_name_and_alias(child, parse_result.source)
            if not path:
                continue
            entities.append(self._import_entity(node, parse_result, path, alias))
        return entities

    def _extract_import_from(self, node: Node, parse_result: ParseResult) -> list[Entity]:
        """Extract one entity per imported name in `from module import a, b as c`."""
        module = parse_result.node_text(node.child_by_field_name("module_name"))
        entities = []

        names = node.children_by_field_name("name")
        if not names and child_by_type(node, "wildcard_import") is not None:
            names = [child_by_type(node, "wildcard_import")]

        for child in names:
            name, alias = self._import_name_and_alias(child, parse_result.source)
            if not name:
                continue
            if not module:
                path = name
            elif module.endswith("."):
                path = module + name
            else:
                path = f"{module}.{name}"
            entities.append(self._import_entity(node, parse_result, path, alias))
        return entities

    def _import_name_and_alias(self, node: Node, source: bytes) -> tuple[str, str]:
        if node.type == "aliased_import":
            return (
                node_text(node.child_by_field_name("name"), source),
                node_text(node.child_by_field_name("alias"), source),
            )
        return node_text(node, source), ""

    def _import_entity(self, node: Node, parse_result: ParseResult, path: str, alias: str) -> Entity:
        start_line, _ = line_range(node)
        entity = Entity(
            kind=EntityKind.IMPORT,
            name=alias or path.rsplit(".", 1)[-1],
            file=parse_result.file_path,
            start_line=start_line,
            end_line=start_line,
            import_path=path,
            import_alias=alias,
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    # Resolver hooks

    def classify_node(self, node: Node) -> NodeRole | None:
        if node.type == "call":
            return NodeRole.CALL
        if node.type in ("identifier", "attribute") and self._in_annotation(node):
            return NodeRole.TYPE_REF
        return None

    def _in_annotation(self, node: Node) -> bool:
        """Check if a name is (the outermost part of) a type annotation."""
        if node.parent is not None and node.parent.type == "attribute":
            return False
        for parent in ancestors(node):
            if parent.type == "type":
                return True
            if parent.type in ("block", "module", "expression_statement", "parameters") or self.is_boundary_node(parent):
                return False
        return False

    def reference_name(self, node: Node, role: NodeRole, source: bytes) -> str:
        if role == NodeRole.CALL:
            return self._dotted_name(node.child_by_field_name("function"), source)
        if role == NodeRole.TYPE_REF:
            return self._dotted_name(node, source)
        if role == NodeRole.DECORATOR:
            expression = node.named_children[0] if node.named_children else None
            if expression is not None and expression.type == "call":
                expression = expression.child_by_field_name("function")
            return self._dotted_name(expression, source)
        return ""

    def _dotted_name(self, node: Node | None, source: bytes) -> str:
        """Return `a` or `a.b.c` for identifier/attribute chains, else ""."""
        if node is None or not self._is_dotted(node):
            return ""
        return node_text(node, source)

    def _is_dotted(self, node: Node | None) -> bool:
        if node is None:
            return False
        if node.type == "identifier":
            return True
        if node.type == "attribute":
            return self._is_dotted(node.child_by_field_name("object"))
        return False

    def find_body(self, node: Node) -> Node | None:
        if node.type == "decorated_definition":
            node = node.child_by_field_name("definition")
            if node is None:
                return None
        return node.child_by_field_name("body")

    def decorator_nodes(self, node: Node) -> list[Node]:
        if node.type != "decorated_definition":
            return []
        return [child for child in node.children if child.type == "decorator"]

    def base_references(self, node: Node, source: bytes) -> list[tuple[str, DepType, Node]]:
        """Base classes of a class. Python has no separate implements clause."""
        if node.type == "decorated_definition":
            node = node.child_by_field_name("definition")
        if node is None or node.type != "class_definition":
            return []

        superclasses = node.child_by_field_name("superclasses")
        if superclasses is None:
            return []

        bases = []
        for child in superclasses.named_children:
            if child.type == "keyword_argument":
                # metaclass=...
                continue
            target = child.child_by_field_name("value") if child.type == "subscript" else child
            name = self._dotted_name(target, source)
            if name:
                bases.append((name, DepType.EXTENDS, child))
        return bases


def python_visibility(name: str) -> Visibility:
    """Names with a leading underscore are private; dunder names are public."""
    if name.startswith("__") and name.endswith("__"):
        return Visibility.PUBLIC
    if name.startswith("_"):
        return Visibility.PRIVATE
    return Visibility.PUBLIC


def is_constant_name(name: str) -> bool:
    """UPPER_CASE names are treated as constants."""
    return any(c.isalpha() for c in name) and name == name.upper()


def docstring(body: Node | None, source: bytes) -> str:
    """Return the docstring literal opening a function or class body, or ""."""
    if body is None:
        return ""
    for statement in body.named_children:
        if statement.type == "comment":
            continue
        if statement.type == "expression_statement" and statement.named_child_count == 1:
            expression = statement.named_children[0]
            if expression.type == "string":
                return node_text(expression, source)
        return ""
    return ""
