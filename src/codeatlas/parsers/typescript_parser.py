import tree_sitter_typescript
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

CLASS_DECLARATIONS = ("class_declaration", "abstract_class_declaration")
FUNCTION_VALUES = ("arrow_function", "function_expression", "function")
METHOD_NODES = ("method_definition", "abstract_method_signature")

# Declarations whose `name` is a type_identifier that defines rather than references a type
_NAMING_PARENTS = frozenset({
    "class_declaration",
    "abstract_class_declaration",
    "class",
    "interface_declaration",
    "type_alias_declaration",
    "type_parameter",
})


class TypeScriptParser(BaseParser):
    """Front-end for TypeScript source code using tree-sitter."""

    name = "typescript"
    conditional_node_types = frozenset({
        "if_statement", "switch_statement", "ternary_expression", "try_statement", "catch_clause",
    })
    boundary_node_types = frozenset({
        "function_declaration",
        "generator_function_declaration",
        "method_definition",
        "class_declaration",
        "abstract_class_declaration",
        "class",
        "arrow_function",
        "function_expression",
        "function",
    })
    type_declaration_types = frozenset(CLASS_DECLARATIONS) | {"class"}
    decorator_node_types = frozenset({"decorator"})

    def _language_capsule(self):
        return tree_sitter_typescript.language_typescript()

    def extract_entities_with_nodes(self, parse_result: ParseResult) -> list[EntityWithNode]:
        """Extract functions, classes, methods, interfaces, type aliases, enums,
        top-level constants/variables and imports."""
        results = []
        nodes = parse_result.find_nodes_by_type(
            "function_declaration",
            "generator_function_declaration",
            *CLASS_DECLARATIONS,
            *METHOD_NODES,
            "interface_declaration",
            "type_alias_declaration",
            "enum_declaration",
            "lexical_declaration",
            "variable_declaration",
            "import_statement",
        )

        for node in nodes:
            if node.type in ("function_declaration", "generator_function_declaration"):
                if self._is_inside_class(node):
                    continue
                entity = self._extract_function(node, node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type in CLASS_DECLARATIONS:
                entity = self._extract_class(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type in METHOD_NODES:
                entity = self._extract_method(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type == "interface_declaration":
                entity = self._extract_interface(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type == "type_alias_declaration":
                entity = self._extract_type_alias(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type == "enum_declaration":
                entity = self._extract_enum(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type in ("lexical_declaration", "variable_declaration"):
                if not self._is_top_level(node):
                    continue
                for declarator, entity in self._extract_declarators(node, parse_result):
                    results.append(EntityWithNode(entity, declarator, parse_result))

            elif node.type == "import_statement":
                results.extend(
                    EntityWithNode(entity, node, parse_result)
                    for entity in self._extract_import(node, parse_result)
                )

        return results

    def _is_top_level(self, node: Node) -> bool:
        parent = node.parent
        if parent is not None and parent.type == "export_statement":
            parent = parent.parent
        return parent is not None and parent.type == "program"

    def _is_exported(self, node: Node) -> bool:
        return node.parent is not None and node.parent.type == "export_statement"

    def _is_inside_class(self, node: Node) -> bool:
        return any(parent.type == "class_body" for parent in ancestors(node))

    def _doc_comment(self, node: Node, source: bytes) -> str:
        """Comment block above a declaration, or above the export statement wrapping it."""
        if self._is_exported(node):
            node = node.parent
        return preceding_comments(node, source, skip_types=("decorator",))

    def _module_visibility(self, node: Node) -> Visibility:
        """Exported top-level declarations are public, everything else private to the module."""
        return Visibility.PUBLIC if self._is_exported(node) else Visibility.PRIVATE

    def _extract_function(self, node: Node, function: Node, parse_result: ParseResult,
                          name: str = "") -> Entity | None:
        """Build a function entity.

        `node` is the declaration the entity spans; `function` carries the
        parameters and body (they differ for `const f = () => ...`).
        """
        name = name or parse_result.node_text(function.child_by_field_name("name"))
        if not name:
            return None

        declaration = node if node.type != "variable_declarator" else node.parent
        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.FUNCTION,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            params=self._extract_parameters(function, parse_result.source),
            returns=self._return_types(function, parse_result.source),
            is_async=child_by_type(function, "async") is not None,
            doc_comment=self._doc_comment(declaration, parse_result.source),
            raw_body=parse_result.node_text(function.child_by_field_name("body")),
            visibility=self._module_visibility(declaration),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _extract_method(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name = parse_result.node_text(node.child_by_field_name("name"))
        class_name = self.method_owner_name(node, parse_result.source)
        if not name or not class_name:
            return None

        receiver = class_name
        if child_by_type(node, "static") is not None:
            receiver += " (static)"

        source = parse_result.source
        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.METHOD,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            params=self._extract_parameters(node, source),
            returns=self._return_types(node, source),
            receiver=receiver,
            is_async=child_by_type(node, "async") is not None,
            decorators=self._decorator_names(node, source),
            doc_comment=preceding_comments(node, source, skip_types=("decorator",)),
            raw_body=parse_result.node_text(node.child_by_field_name("body")),
            visibility=self._member_visibility(node, name, source),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _member_visibility(self, node: Node, name: str, source: bytes) -> Visibility:
        if name.startswith("#"):
            return Visibility.PRIVATE
        modifier = node_text(child_by_type(node, "accessibility_modifier"), source)
        if modifier == "private":
            return Visibility.PRIVATE
        if modifier == "protected":
            return Visibility.PROTECTED
        return Visibility.PUBLIC

    def _extract_parameters(self, node: Node, source: bytes) -> list[Param]:
        """Extract parameters from a function, method or arrow function node."""
        params_node = node.child_by_field_name("parameters")
        if params_node is None:
            # Arrow function with a single bare parameter: x => x
            single = node.child_by_field_name("parameter")
            return [Param(name=node_text(single, source))] if single is not None else []

        parameters = []
        for child in params_node.named_children:
            if child.type not in ("required_parameter", "optional_parameter"):
                continue
            name = node_text(child.child_by_field_name("pattern"), source)
            if not name or name == "this":
                continue
            parameters.append(Param(name=name, type=self._annotation_text(child.child_by_field_name("type"), source)))
        return parameters

    def _return_types(self, node: Node, source: bytes) -> list[str]:
        return_type = self._annotation_text(node.child_by_field_name("return_type"), source)
        return [return_type] if return_type else []

    def _annotation_text(self, node: Node | None, source: bytes) -> str:
        """Return the type inside a `: T` annotation node."""
        if node is None:
            return ""
        if node.type.endswith("type_annotation") and node.named_children:
            return node_text(node.named_children[0], source)
        return node_text(node, source).lstrip(":").strip()

    def _decorator_names(self, node: Node, source: bytes) -> list[str]:
        return [
            name
            for name in (self.reference_name(d, NodeRole.DECORATOR, source) for d in self.decorator_nodes(node))
            if name
        ]

    def _extract_class(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name = parse_result.node_text(node.child_by_field_name("name"))
        if not name:
            return None

        source = parse_result.source
        fields = []
        body = node.child_by_field_name("body")
        if body is not None:
            for member in body.named_children:
                if member.type not in ("public_field_definition", "property_signature"):
                    continue
                field_name = node_text(member.child_by_field_name("name"), source)
                if not field_name:
                    continue
                fields.append(Field(
                    name=field_name,
                    type=self._annotation_text(member.child_by_field_name("type"), source),
                    visibility=self._member_visibility(member, field_name, source),
                ))

        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.TYPE,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            decorators=self._decorator_names(node, source),
            type_kind=TypeKind.STRUCT,
            fields=fields,
            implements=[base for base, _, _ in self.base_references(node, source)],
            doc_comment=self._doc_comment(node, source),
            visibility=self._module_visibility(node),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _object_members(self, body: Node | None, source: bytes) -> list[Field]:
        """Extract property and method signatures from an interface body or object type."""
        fields = []
        if body is None:
            return fields
        for member in body.named_children:
            member_name = node_text(member.child_by_field_name("name"), source)
            if not member_name:
                continue
            if member.type == "property_signature":
                member_type = self._annotation_text(member.child_by_field_name("type"), source)
            elif member.type == "method_signature":
                member_type = node_text(member.child_by_field_name("parameters"), source)
                returns = self._return_types(member, source)
                if returns:
                    member_type += ": " + returns[0]
            else:
                continue
            fields.append(Field(name=member_name, type=member_type))
        return fields

    def _extract_interface(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name = parse_result.node_text(node.child_by_field_name("name"))
        if not name:
            return None

        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.TYPE,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            type_kind=TypeKind.INTERFACE,
            fields=self._object_members(node.child_by_field_name("body"), parse_result.source),
            implements=[base for base, _, _ in self.base_references(node, parse_result.source)],
            doc_comment=self._doc_comment(node, parse_result.source),
            visibility=self._module_visibility(node),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _extract_type_alias(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name = parse_result.node_text(node.child_by_field_name("name"))
        value = node.child_by_field_name("value")
        if not name or value is None:
            return None

        fields = []
        if value.type == "union_type":
            type_kind = TypeKind.UNION
        elif value.type == "object_type":
            type_kind = TypeKind.STRUCT
            fields = self._object_members(value, parse_result.source)
        else:
            type_kind = TypeKind.ALIAS

        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.TYPE,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            type_kind=type_kind,
            fields=fields,
            value_type=parse_result.node_text(value),
            doc_comment=self._doc_comment(node, parse_result.source),
            visibility=self._module_visibility(node),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _extract_enum(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name = parse_result.node_text(node.child_by_field_name("name"))
        if not name:
            return None

        values = []
        body = node.child_by_field_name("body")
        for member in body.named_children if body is not None else []:
            if member.type == "enum_assignment":
                values.append(EnumValue(
                    name=parse_result.node_text(member.child_by_field_name("name")),
                    value=truncate_value(parse_result.node_text(member.child_by_field_name("value"))),
                ))
            elif member.type in ("property_identifier", "string"):
                values.append(EnumValue(name=parse_result.node_text(member)))

        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.ENUM,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            enum_values=values,
            doc_comment=self._doc_comment(node, parse_result.source),
            visibility=self._module_visibility(node),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _extract_declarators(self, node: Node, parse_result: ParseResult):
        """Yield (declarator, entity) for each name in a top-level const/let/var.

        Arrow functions and function expressions become function entities.
        """
        is_const = child_by_type(node, "const") is not None
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            name = parse_result.node_text(name_node)
            value = declarator.child_by_field_name("value")

            if value is not None and value.type in FUNCTION_VALUES:
                entity = self._extract_function(declarator, value, parse_result, name=name)
            else:
                line, _ = line_range(declarator)
                entity = Entity(
                    kind=EntityKind.CONSTANT if is_const else EntityKind.VARIABLE,
                    name=name,
                    file=parse_result.file_path,
                    start_line=line,
                    end_line=line,
                    value_type=self._annotation_text(declarator.child_by_field_name("type"), parse_result.source),
                    value=truncate_value(parse_result.node_text(value)),
                    doc_comment=self._doc_comment(node, parse_result.source),
                    visibility=self._module_visibility(node),
                    language=self.name,
                )
                finalize_entity(entity)

            if entity:
                yield declarator, entity

    def _extract_import(self, node: Node, parse_result: ParseResult) -> list[Entity]:
        """Extract one entity per imported binding.

        Side-effect imports (`import "./polyfill"`) produce a single entity
        named after the last path segment.
        """
        source_node = node.child_by_field_name("source")
        path = parse_result.node_text(source_node).strip("'\"`")
        if not path:
            return []

        bindings = []
        clause = child_by_type(node, "import_clause")
        for child in clause.named_children if clause is not None else []:
            if child.type == "identifier":
                bindings.append((parse_result.node_text(child), ""))
            elif child.type == "namespace_import":
                alias = parse_result.node_text(child_by_type(child, "identifier"))
                bindings.append((alias, alias))
            elif child.type == "named_imports":
                for specifier in child.named_children:
                    if specifier.type != "import_specifier":
                        continue
                    bindings.append((
                        parse_result.node_text(specifier.child_by_field_name("name")),
                        parse_result.node_text(specifier.child_by_field_name("alias")),
                    ))
        if clause is None:
            bindings.append((path.rstrip("/").rsplit("/", 1)[-1], ""))

        line, _ = line_range(node)
        entities = []
        for name, alias in bindings:
            if not name:
                continue
            entity = Entity(
                kind=EntityKind.IMPORT,
                name=alias or name,
                file=parse_result.file_path,
                start_line=line,
                end_line=line,
                import_path=path,
                import_alias=alias,
                language=self.name,
            )
            finalize_entity(entity)
            entities.append(entity)
        return entities

    # Resolver hooks

    def classify_node(self, node: Node) -> NodeRole | None:
        if node.type == "call_expression":
            return NodeRole.CALL
        if node.type == "new_expression":
            return NodeRole.CONSTRUCT
        if node.type == "nested_type_identifier":
            return NodeRole.TYPE_REF
        if node.type == "type_identifier":
            parent = node.parent
            if parent is None or parent.type == "nested_type_identifier":
                return None
            if parent.type in _NAMING_PARENTS and parent.child_by_field_name("name") == node:
                return None
            return NodeRole.TYPE_REF
        return None

    def reference_name(self, node: Node, role: NodeRole, source: bytes) -> str:
        if role == NodeRole.CALL:
            return self._dotted_name(node.child_by_field_name("function"), source)
        if role == NodeRole.CONSTRUCT:
            return self._dotted_name(node.child_by_field_name("constructor"), source)
        if role == NodeRole.TYPE_REF:
            return node_text(node, source)
        if role == NodeRole.DECORATOR:
            expression = node.named_children[0] if node.named_children else None
            if expression is not None and expression.type == "call_expression":
                expression = expression.child_by_field_name("function")
            return self._dotted_name(expression, source)
        return ""

    def _dotted_name(self, node: Node | None, source: bytes) -> str:
        """Return `a`, `this.a` or `a.b.c` for identifier/member chains, else ""."""
        if node is None or not self._is_dotted(node):
            return ""
        return node_text(node, source)

    def _is_dotted(self, node: Node | None) -> bool:
        if node is None:
            return False
        if node.type in ("identifier", "this"):
            return True
        if node.type == "member_expression":
            return self._is_dotted(node.child_by_field_name("object"))
        return False

    def find_body(self, node: Node) -> Node | None:
        if node.type == "variable_declarator":
            value = node.child_by_field_name("value")
            return value.child_by_field_name("body") if value is not None else None
        if node.type == "type_alias_declaration":
            return node.child_by_field_name("value")
        return node.child_by_field_name("body")

    def decorator_nodes(self, node: Node) -> list[Node]:
        """Decorators are children of a class, or preceding siblings of a class member."""
        decorators = [child for child in node.children if child.type == "decorator"]

        if node.type in METHOD_NODES:
            leading = []
            sibling = node.prev_sibling
            while sibling is not None and sibling.type == "decorator":
                leading.append(sibling)
                sibling = sibling.prev_sibling
            decorators = list(reversed(leading)) + decorators

        parent = node.parent
        if node.type in CLASS_DECLARATIONS and parent is not None and parent.type == "export_statement":
            decorators = [child for child in parent.children if child.type == "decorator"] + decorators

        return decorators

    def base_references(self, node: Node, source: bytes) -> list[tuple[str, DepType, Node]]:
        """Extends/implements clauses of classes and interfaces."""
        bases = []

        if node.type in CLASS_DECLARATIONS:
            heritage = child_by_type(node, "class_heritage")
            for clause in heritage.named_children if heritage is not None else []:
                if clause.type == "extends_clause":
                    value = clause.child_by_field_name("value")
                    name = self._dotted_name(value, source)
                    if name:
                        bases.append((name, DepType.EXTENDS, value))
                elif clause.type == "implements_clause":
                    for type_node in clause.named_children:
                        name = self._heritage_type_name(type_node, source)
                        if name:
                            bases.append((name, DepType.IMPLEMENTS, type_node))

        elif node.type == "interface_declaration":
            clause = child_by_type(node, "extends_type_clause")
            for type_node in clause.named_children if clause is not None else []:
                name = self._heritage_type_name(type_node, source)
                if name:
                    bases.append((name, DepType.EXTENDS, type_node))

        return bases

    def _heritage_type_name(self, node: Node, source: bytes) -> str:
        """Name of a heritage type, without type arguments (`Repo<User>` -> `Repo`)."""
        if node.type == "generic_type":
            node = node.child_by_field_name("name")
        if node is None or node.type not in ("type_identifier", "nested_type_identifier"):
            return ""
        return node_text(node, source)


class TsxParser(TypeScriptParser):
    """TypeScript front-end for .tsx files (JSX enabled grammar)."""

    def _language_capsule(self):
        return tree_sitter_typescript.language_tsx()
