import tree_sitter_go
from tree_sitter import Node

from codeatlas.models import (
    DepType,
    Entity,
    EntityKind,
    EntityWithNode,
    Field,
    NodeRole,
    Param,
    TypeKind,
    Visibility,
    receiver_type_name,
)
from codeatlas.parsers.base import BaseParser, finalize_entity, truncate_value
from codeatlas.syntax import ParseResult, ancestors, child_by_type, line_range, node_text, preceding_comments

# type_identifier parents for which the identifier names, rather than references, a type
_NAMING_PARENTS = frozenset({"type_spec", "type_alias", "type_parameter_declaration"})


class GoParser(BaseParser):
    """Front-end for Go source code using tree-sitter."""

    name = "go"
    conditional_node_types = frozenset({
        "if_statement", "expression_switch_statement", "type_switch_statement", "select_statement",
    })
    boundary_node_types = frozenset({"function_declaration", "method_declaration", "func_literal"})
    type_declaration_types = frozenset({"type_spec", "type_alias"})

    def _language_capsule(self):
        return tree_sitter_go.language()

    def extract_entities_with_nodes(self, parse_result: ParseResult) -> list[EntityWithNode]:
        results = []
        nodes = parse_result.find_nodes_by_type(
            "function_declaration",
            "method_declaration",
            "type_spec",
            "type_alias",
            "const_spec",
            "var_spec",
            "import_spec",
        )

        for node in nodes:
            if node.type in ("function_declaration", "method_declaration"):
                entity = self._extract_function(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type in ("type_spec", "type_alias"):
                if not self._is_top_level(node):
                    continue
                entity = self._extract_type(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

            elif node.type in ("const_spec", "var_spec"):
                if not self._is_top_level(node):
                    continue
                results.extend(
                    EntityWithNode(entity, node, parse_result)
                    for entity in self._extract_values(node, parse_result)
                )

            elif node.type == "import_spec":
                entity = self._extract_import(node, parse_result)
                if entity:
                    results.append(EntityWithNode(entity, node, parse_result))

        return results

    def _is_top_level(self, node: Node) -> bool:
        """Check that a spec belongs to a declaration directly under source_file."""
        parent = node.parent
        while parent is not None and parent.type.endswith(("_spec_list", "_declaration")):
            if parent.type.endswith("_declaration"):
                return parent.parent is not None and parent.parent.type == "source_file"
            parent = parent.parent
        return False

    def _extract_function(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name = parse_result.node_text(node.child_by_field_name("name"))
        if not name:
            return None

        source = parse_result.source
        receiver = ""
        if node.type == "method_declaration":
            receiver = self._receiver_type(node, source)

        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.METHOD if receiver else EntityKind.FUNCTION,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            params=self._extract_parameters(node.child_by_field_name("parameters"), source),
            returns=self._result_types(node.child_by_field_name("result"), source),
            receiver=receiver,
            doc_comment=preceding_comments(node, source),
            raw_body=parse_result.node_text(node.child_by_field_name("body")),
            visibility=go_visibility(name),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _doc_comment(self, spec: Node, source: bytes) -> str:
        """Comment above a spec, else above the declaration that holds it.

        A comment above `type X int` belongs to the type_declaration, while
        grouped `const ( ... )` blocks carry one comment per spec.
        """
        comment = preceding_comments(spec, source)
        if comment:
            return comment
        for parent in ancestors(spec):
            if parent.type.endswith("_declaration"):
                return preceding_comments(parent, source)
        return ""

    def _receiver_type(self, node: Node, source: bytes) -> str:
        """Return the receiver type as written, e.g. "*Server"."""
        receiver = node.child_by_field_name("receiver")
        declaration = child_by_type(receiver, "parameter_declaration")
        if declaration is None:
            return ""
        return node_text(declaration.child_by_field_name("type"), source)

    def _extract_parameters(self, params_node: Node | None, source: bytes) -> list[Param]:
        """One Param per name; unnamed parameters get an empty name."""
        parameters = []
        if params_node is None:
            return parameters

        for declaration in params_node.named_children:
            if declaration.type == "parameter_declaration":
                param_type = node_text(declaration.child_by_field_name("type"), source)
            elif declaration.type == "variadic_parameter_declaration":
                param_type = "..." + node_text(declaration.child_by_field_name("type"), source)
            else:
                continue

            names = [node_text(n, source) for n in declaration.children_by_field_name("name")]
            if not names:
                parameters.append(Param(name="", type=param_type))
            for name in names:
                parameters.append(Param(name=name, type=param_type))

        return parameters

    def _result_types(self, result: Node | None, source: bytes) -> list[str]:
        if result is None:
            return []
        if result.type == "parameter_list":
            return [param.type for param in self._extract_parameters(result, source)]
        return [node_text(result, source)]

    def _extract_type(self, node: Node, parse_result: ParseResult) -> Entity | None:
        name = parse_result.node_text(node.child_by_field_name("name"))
        type_node = node.child_by_field_name("type")
        if not name or type_node is None:
            return None

        source = parse_result.source
        fields = []
        value_type = ""
        if node.type == "type_alias":
            type_kind = TypeKind.ALIAS
            value_type = node_text(type_node, source)
        elif type_node.type == "struct_type":
            type_kind = TypeKind.STRUCT
            fields = self._struct_fields(type_node, source)
        elif type_node.type == "interface_type":
            type_kind = TypeKind.INTERFACE
            fields = self._interface_methods(type_node, source)
        else:
            # type ID string
            type_kind = TypeKind.ALIAS
            value_type = node_text(type_node, source)

        start_line, end_line = line_range(node)
        entity = Entity(
            kind=EntityKind.TYPE,
            name=name,
            file=parse_result.file_path,
            start_line=start_line,
            end_line=end_line,
            type_kind=type_kind,
            fields=fields,
            implements=[base for base, _, _ in self.base_references(node, source)],
            value_type=value_type,
            doc_comment=self._doc_comment(node, source),
            visibility=go_visibility(name),
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    def _struct_fields(self, struct: Node, source: bytes) -> list[Field]:
        """Named struct fields. Embedded fields are reported as base references."""
        fields = []
        field_list = child_by_type(struct, "field_declaration_list")
        for declaration in field_list.named_children if field_list is not None else []:
            if declaration.type != "field_declaration":
                continue
            field_type = node_text(declaration.child_by_field_name("type"), source)
            for name_node in declaration.children_by_field_name("name"):
                name = node_text(name_node, source)
                fields.append(Field(name=name, type=field_type, visibility=go_visibility(name)))
        return fields

    def _interface_methods(self, interface: Node, source: bytes) -> list[Field]:
        fields = []
        for member in interface.named_children:
            if member.type not in ("method_elem", "method_spec"):
                continue
            member_type = node_text(member.child_by_field_name("parameters"), source)
            result = node_text(member.child_by_field_name("result"), source)
            if result:
                member_type += " " + result
            name = node_text(member.child_by_field_name("name"), source)
            fields.append(Field(name=name, type=member_type, visibility=go_visibility(name)))
        return fields

    def _extract_values(self, node: Node, parse_result: ParseResult) -> list[Entity]:
        """One entity per name in a top-level const or var spec."""
        kind = EntityKind.CONSTANT if node.type == "const_spec" else EntityKind.VARIABLE
        value_type = parse_result.node_text(node.child_by_field_name("type"))
        values_node = node.child_by_field_name("value")
        values = values_node.named_children if values_node is not None else []

        doc_comment = self._doc_comment(node, parse_result.source)
        line, _ = line_range(node)
        entities = []
        for index, name_node in enumerate(node.children_by_field_name("name")):
            name = parse_result.node_text(name_node)
            if not name or name == "_":
                continue
            value = parse_result.node_text(values[index]) if index < len(values) else ""
            entity = Entity(
                kind=kind,
                name=name,
                file=parse_result.file_path,
                start_line=line,
                end_line=line,
                value_type=value_type,
                value=truncate_value(value),
                doc_comment=doc_comment,
                visibility=go_visibility(name),
                language=self.name,
            )
            finalize_entity(entity)
            entities.append(entity)
        return entities

    def _extract_import(self, node: Node, parse_result: ParseResult) -> Entity | None:
        path = parse_result.node_text(node.child_by_field_name("path")).strip('"`')
        if not path:
            return None
        alias = parse_result.node_text(node.child_by_field_name("name"))

        line, _ = line_range(node)
        entity = Entity(
            kind=EntityKind.IMPORT,
            name=alias or path.rsplit("/", 1)[-1],
            file=parse_result.file_path,
            start_line=line,
            end_line=line,
            import_path=path,
            import_alias=alias,
            language=self.name,
        )
        finalize_entity(entity)
        return entity

    # Resolver hooks

    def classify_node(self, node: Node) -> NodeRole | None:
        if node.type == "call_expression":
            return NodeRole.CALL
        if node.type == "composite_literal":
            return NodeRole.INSTANTIATE
        if node.type == "qualified_type":
            return NodeRole.TYPE_REF
        if node.type == "type_identifier":
            parent = node.parent
            if parent is None or parent.type in ("qualified_type", "composite_literal"):
                return None
            if parent.type in _NAMING_PARENTS and parent.child_by_field_name("name") == node:
                return None
            return NodeRole.TYPE_REF
        return None

    def reference_name(self, node: Node, role: NodeRole, source: bytes) -> str:
        if role == NodeRole.CALL:
            return self._dotted_name(node.child_by_field_name("function"), source)
        if role == NodeRole.INSTANTIATE:
            type_node = node.child_by_field_name("type")
            if type_node is not None and type_node.type == "generic_type":
                type_node = type_node.child_by_field_name("type")
            if type_node is None or type_node.type not in ("type_identifier", "qualified_type"):
                return ""
            return node_text(type_node, source)
        if role == NodeRole.TYPE_REF:
            return node_text(node, source)
        return ""

    def _dotted_name(self, node: Node | None, source: bytes) -> str:
        """Return `f` or `pkg.f` / `s.store.Save` for selector chains, else ""."""
        if node is None or not self._is_dotted(node):
            return ""
        return node_text(node, source)

    def _is_dotted(self, node: Node | None) -> bool:
        if node is None:
            return False
        if node.type == "identifier":
            return True
        if node.type == "selector_expression":
            return self._is_dotted(node.child_by_field_name("operand"))
        return False

    def find_body(self, node: Node) -> Node | None:
        if node.type in self.type_declaration_types:
            return node.child_by_field_name("type")
        return node.child_by_field_name("body")

    def method_owner_name(self, node: Node, source: bytes) -> str:
        """Methods belong to their receiver's base type (`*Server[T]` -> `Server`)."""
        if node.type != "method_declaration":
            return ""
        return receiver_type_name(self._receiver_type(node, source))

    def base_references(self, node: Node, source: bytes) -> list[tuple[str, DepType, Node]]:
        """Embedded struct fields extend; embedded interfaces are implemented."""
        type_node = node.child_by_field_name("type") if node.type == "type_spec" else None
        if type_node is None:
            return []

        bases = []
        if type_node.type == "struct_type":
            field_list = child_by_type(type_node, "field_declaration_list")
            for declaration in field_list.named_children if field_list is not None else []:
                if declaration.type != "field_declaration" or declaration.child_by_field_name("name") is not None:
                    continue
                embedded = declaration.child_by_field_name("type")
                name = node_text(embedded, source).lstrip("*")
                if name:
                    bases.append((name, DepType.EXTENDS, embedded))

        elif type_node.type == "interface_type":
            for member in type_node.named_children:
                if member.type not in ("type_elem", "constraint_elem", "interface_type_name"):
                    continue
                embedded = member.named_children[0] if member.named_children else member
                if embedded.type not in ("type_identifier", "qualified_type"):
                    continue
                bases.append((node_text(embedded, source), DepType.IMPLEMENTS, embedded))

        return bases


def go_visibility(name: str) -> Visibility:
    """Exported (capitalized) names are public."""
    return Visibility.PUBLIC if name[:1].isupper() else Visibility.PRIVATE

