from dataclasses import dataclass, field
from enum import Enum

from tree_sitter import Node

from codeatlas.syntax import ParseResult


class EntityKind(str, Enum):
    """Kind of an extracted declaration."""
    FUNCTION = "function"
    METHOD = "method"
    TYPE = "type"
    CONSTANT = "constant"
    VARIABLE = "variable"
    ENUM = "enum"
    IMPORT = "import"


class TypeKind(str, Enum):
    """Specific kind of a type declaration."""
    STRUCT = "struct"
    INTERFACE = "interface"
    ALIAS = "alias"
    UNION = "union"


class Visibility(str, Enum):
    """Visibility of an entity, in its compact form."""
    PUBLIC = "pub"
    PRIVATE = "priv"
    PROTECTED = "prot"


class DepType(str, Enum):
    """Relationship carried by a dependency edge."""
    CALLS = "calls"
    USES_TYPE = "uses_type"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    METHOD_OF = "method_of"
    INSTANTIATES = "instantiates"


class NodeRole(Enum):
    """Classification a language front-end assigns to a syntax node."""
    CALL = "call"
    CONSTRUCT = "construct"
    INSTANTIATE = "instantiate"
    TYPE_REF = "type_ref"
    DECORATOR = "decorator"


CALLABLE_KINDS = (EntityKind.FUNCTION, EntityKind.METHOD)


@dataclass
class Param:
    """A function/method parameter."""
    name: str
    type: str = ""  # Empty if no type annotation


@dataclass
class Field:
    """A struct/class field or interface member."""
    name: str
    type: str = ""
    visibility: Visibility | None = None


@dataclass
class EnumValue:
    """An enum member."""
    name: str
    value: str = ""


@dataclass
class Entity:
    """One extracted declaration.

    Line numbers are 1-based and inclusive. `raw_body` only feeds the body
    hash and is never serialized.
    """
    kind: EntityKind
    name: str
    file: str
    start_line: int
    end_line: int

    # Callables
    params: list[Param] = field(default_factory=list)
    returns: list[str] = field(default_factory=list)
    receiver: str = ""
    is_async: bool = False
    decorators: list[str] = field(default_factory=list)

    # Types
    type_kind: TypeKind | None = None
    fields: list[Field] = field(default_factory=list)
    implements: list[str] = field(default_factory=list)

    # Constants / variables
    value_type: str = ""
    value: str = ""

    # Enums
    enum_values: list[EnumValue] = field(default_factory=list)

    # Imports
    import_path: str = ""
    import_alias: str = ""

    # Outline
    doc_comment: str = ""  # Raw leading comment or docstring
    skeleton: str = ""

    visibility: Visibility | None = None
    sig_hash: str = ""
    body_hash: str = ""
    raw_body: str = field(default="", repr=False)
    language: str = ""

    @property
    def is_callable(self) -> bool:
        return self.kind in CALLABLE_KINDS

    def format_location(self) -> str:
        """Format as `file:line`, or `file:line-end` for multi-line entities."""
        if self.end_line > self.start_line:
            return f"{self.file}:{self.start_line}-{self.end_line}"
        return f"{self.file}:{self.start_line}"

    def format_signature(self) -> str:
        """Format as `(name: type, ...) -> ret`.

        Parameters without a name render their type only; multiple return
        types are parenthesized.
        """
        parts = []
        for param in self.params:
            if param.name:
                parts.append(f"{param.name}: {param.type}")
            else:
                parts.append(param.type)
        signature = "(" + ", ".join(parts) + ")"

        if len(self.returns) == 1:
            signature += " -> " + self.returns[0]
        elif self.returns:
            signature += " -> (" + ", ".join(self.returns) + ")"

        return signature

    def format_fields(self) -> str:
        return "{" + ", ".join(f"{f.name}: {f.type}" for f in self.fields) + "}"


@dataclass
class EntityWithNode:
    """Pairs an entity with the syntax node it was extracted from."""
    entity: Entity
    node: Node
    parse_result: ParseResult


@dataclass
class CallGraphEntity:
    """Resolver-facing projection of an entity.

    `node` is borrowed from `parse_result.tree`; the pair must not outlive
    the resolution pass it was built for.
    """
    id: str
    name: str
    qualified_name: str
    type: str
    location: str
    node: Node | None = None
    parse_result: ParseResult | None = None
    language: str = ""


@dataclass
class Dependency:
    """A directed edge between entities. Empty `to_id` means unresolved."""
    from_id: str
    to_name: str
    dep_type: DepType
    to_qualified: str = ""
    to_id: str = ""
    location: str = ""
    optional: bool = False

    @property
    def resolved(self) -> bool:
        return bool(self.to_id)


def receiver_type_name(receiver: str) -> str:
    """Reduce a receiver to its type name.

    Drops a leading pointer marker, type arguments and any trailing modifier:
    "*Server[T]" -> "Server", "Foo (static)" -> "Foo".
    """
    name = receiver.split(" ", 1)[0].lstrip("*")
    return name.split("[", 1)[0]


def build_skeleton(entity: Entity) -> str:
    """Render an entity as a declaration-only outline in its own language.

    Callables keep their signature with the body elided, types keep their
    fields and values keep their declaration. Go and TypeScript doc comments
    go above the declaration; Python docstrings go inside it.

    Args:
        entity: Entity with its declaration fields and `doc_comment` filled in

    Returns:
        Skeleton source text, possibly spanning several lines
    """
    render = _SKELETON_RENDERERS.get(entity.language, _generic_skeleton)
    return render(entity)


def _with_comment(entity: Entity, lines: list[str]) -> str:
    if entity.doc_comment:
        lines = entity.doc_comment.splitlines() + lines
    return "\n".join(lines)


def _generic_skeleton(entity: Entity) -> str:
    if entity.is_callable:
        line = entity.name + entity.format_signature()
    elif entity.kind == EntityKind.TYPE:
        type_kind = entity.type_kind.value if entity.type_kind else "type"
        line = f"{type_kind} {entity.name} {entity.format_fields()}"
    elif entity.kind == EntityKind.IMPORT:
        line = entity.import_path
    else:
        line = f"{entity.name} = {entity.value}" if entity.value else entity.name
    return _with_comment(entity, [line])


# Python

def _python_docstring(docstring: str, indent: str) -> list[str]:
    """Re-indent a docstring literal under `indent`."""
    return [indent + line.strip() if line.strip() else "" for line in docstring.splitlines()]


def _python_skeleton(entity: Entity) -> str:
    indent = "    "
    lines = [f"@{decorator}" for decorator in entity.decorators]

    if entity.is_callable:
        params = [f"{p.name}: {p.type}" if p.type else p.name for p in entity.params]
        if entity.receiver and "staticmethod" not in entity.decorators:
            params.insert(0, "cls" if "classmethod" in entity.decorators else "self")
        head = f"{'async ' if entity.is_async else ''}def {entity.name}({', '.join(params)})"
        if entity.returns:
            head += f" -> {entity.returns[0]}"
        if not entity.doc_comment:
            return "\n".join(lines + [head + ": ..."])
        return "\n".join(lines + [head + ":"] + _python_docstring(entity.doc_comment, indent) + [indent + "..."])

    if entity.kind in (EntityKind.TYPE, EntityKind.ENUM):
        bases = list(entity.implements)
        head = f"class {entity.name}({', '.join(bases)}):" if bases else f"class {entity.name}:"
        body = _python_docstring(entity.doc_comment, indent) if entity.doc_comment else []
        if entity.kind == EntityKind.ENUM:
            body += [f"{indent}{v.name} = {v.value or '...'}" for v in entity.enum_values]
        else:
            body += [f"{indent}{f.name}: {f.type}" for f in entity.fields]
        return "\n".join(lines + [head] + (body or [indent + "..."]))

    if entity.kind == EntityKind.IMPORT:
        module, sep, name = entity.import_path.rpartition(".")
        alias = f" as {entity.import_alias}" if entity.import_alias else ""
        if not sep:
            return f"import {name}{alias}"
        if not module.strip("."):
            # Relative import: ".x" is "from . import x", "..x" is "from .. import x"
            module += "."
        return f"from {module} import {name}{alias}"

    declaration = entity.name + (f": {entity.value_type}" if entity.value_type else "")
    if entity.value:
        declaration += f" = {entity.value}"
    return _with_comment(entity, [declaration])


# TypeScript

def _ts_param(param: Param) -> str:
    return f"{param.name}: {param.type}" if param.type else param.name


def _ts_member_prefix(visibility: Visibility | None) -> str:
    if visibility == Visibility.PRIVATE:
        return "private "
    if visibility == Visibility.PROTECTED:
        return "protected "
    return ""


def _typescript_skeleton(entity: Entity) -> str:
    indent = "  "
    lines = [f"@{decorator}" for decorator in entity.decorators]
    export = "export " if entity.visibility == Visibility.PUBLIC and not entity.receiver else ""

    if entity.is_callable:
        signature = f"({', '.join(_ts_param(p) for p in entity.params)})"
        if entity.returns:
            signature += f": {entity.returns[0]}"
        is_async = "async " if entity.is_async else ""
        if entity.receiver:
            static = "static " if entity.receiver.endswith("(static)") else ""
            head = f"{_ts_member_prefix(entity.visibility)}{static}{is_async}{entity.name}"
        else:
            head = f"{export}{is_async}function {entity.name}"
        return _with_comment(entity, lines + [f"{head}{signature} {{ ... }}"])

    if entity.kind == EntityKind.TYPE:
        if entity.type_kind == TypeKind.INTERFACE:
            members = [
                f"{indent}{f.name}{f.type};" if f.type.startswith("(") else f"{indent}{f.name}: {f.type};"
                for f in entity.fields
            ]
            lines += [f"{export}interface {entity.name} {{"] + members + ["}"]
        elif entity.type_kind == TypeKind.STRUCT and not entity.value_type:
            members = [f"{indent}{_ts_member_prefix(f.visibility)}{f.name}: {f.type};" for f in entity.fields]
            lines += [f"{export}class {entity.name} {{"] + members + ["}"]
        else:
            lines.append(f"{export}type {entity.name} = {entity.value_type};")
        return _with_comment(entity, lines)

    if entity.kind == EntityKind.ENUM:
        members = [f"{indent}{v.name} = {v.value}," if v.value else f"{indent}{v.name}," for v in entity.enum_values]
        return _with_comment(entity, [f"{export}enum {entity.name} {{"] + members + ["}"])

    if entity.kind == EntityKind.IMPORT:
        if entity.import_alias:
            return f'import * as {entity.import_alias} from "{entity.import_path}";'
        return f'import {{ {entity.name} }} from "{entity.import_path}";'

    keyword = "const" if entity.kind == EntityKind.CONSTANT else "let"
    declaration = f"{export}{keyword} {entity.name}"
    if entity.value_type:
        declaration += f": {entity.value_type}"
    if entity.value:
        declaration += f" = {entity.value}"
    return _with_comment(entity, [declaration + ";"])


# Go

def _go_signature(entity: Entity) -> str:
    params = ", ".join(f"{p.name} {p.type}" if p.name else p.type for p in entity.params)
    signature = f"({params})"
    if len(entity.returns) == 1:
        signature += f" {entity.returns[0]}"
    elif entity.returns:
        signature += f" ({', '.join(entity.returns)})"
    return signature


def _go_skeleton(entity: Entity) -> str:
    indent = "\t"

    if entity.is_callable:
        head = "func "
        if entity.receiver:
            # The receiver's variable name is not kept; use the type's initial
            type_name = receiver_type_name(entity.receiver)
            head += f"({(type_name[:1] or 'r').lower()} {entity.receiver}) "
        return _with_comment(entity, [f"{head}{entity.name}{_go_signature(entity)} {{ ... }}"])

    if entity.kind == EntityKind.TYPE:
        if entity.type_kind == TypeKind.STRUCT:
            members = [indent + base for base in entity.implements]
            members += [f"{indent}{f.name} {f.type}" for f in entity.fields]
            lines = [f"type {entity.name} struct {{"] + members + ["}"]
        elif entity.type_kind == TypeKind.INTERFACE:
            members = [indent + base for base in entity.implements]
            members += [f"{indent}{f.name}{f.type}" for f in entity.fields]
            lines = [f"type {entity.name} interface {{"] + members + ["}"]
        else:
            lines = [f"type {entity.name} {entity.value_type}"]
        return _with_comment(entity, lines)

    if entity.kind == EntityKind.IMPORT:
        alias = f"{entity.import_alias} " if entity.import_alias else ""
        return f'import {alias}"{entity.import_path}"'

    keyword = "const" if entity.kind == EntityKind.CONSTANT else "var"
    declaration = f"{keyword} {entity.name}"
    if entity.value_type:
        declaration += f" {entity.value_type}"
    if entity.value:
        declaration += f" = {entity.value}"
    return _with_comment(entity, [declaration])


_SKELETON_RENDERERS = {
    "python": _python_skeleton,
    "typescript": _typescript_skeleton,
    "go": _go_skeleton,
}
