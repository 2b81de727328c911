"""Name-based dependency resolution over a batch of extracted entities.

The resolver is language-agnostic: every question about node shapes is
delegated to the entity's front-end (`BaseParser`). Resolution is
best-effort and purely textual; it is not scope- or overload-aware.
"""

import logging
from collections.abc import Mapping

from tree_sitter import Node

from codeatlas.errors import ContractViolationError
from codeatlas.hashing import generate_entity_id
from codeatlas.models import (
    CallGraphEntity,
    Dependency,
    DepType,
    Entity,
    EntityKind,
    NodeRole,
    receiver_type_name,
)
from codeatlas.parsers.base import BaseParser
from codeatlas.syntax import ParseResult, ancestors, walk

logger = logging.getLogger(__name__)

CALLABLE_TYPES = frozenset({"function", "method"})
TYPE_TYPES = frozenset({"struct", "interface", "alias", "union", "type"})

_ROLE_DEP_TYPES = {
    NodeRole.CALL: DepType.CALLS,
    NodeRole.CONSTRUCT: DepType.CALLS,
    NodeRole.DECORATOR: DepType.CALLS,
    NodeRole.INSTANTIATE: DepType.INSTANTIATES,
    NodeRole.TYPE_REF: DepType.USES_TYPE,
}


def to_call_graph_entity(entity: Entity, node: Node | None, parse_result: ParseResult | None) -> CallGraphEntity:
    """Project an entity and its defining node into the resolver's view.

    Args:
        entity: Extracted entity
        node: Syntax node the entity was extracted from
        parse_result: Parse result owning `node`

    Returns:
        CallGraphEntity with the entity's stable ID and coarse type tag
    """
    if entity.receiver:
        qualified_name = f"{receiver_type_name(entity.receiver)}.{entity.name}"
    else:
        qualified_name = entity.name

    if entity.is_callable:
        type_tag = entity.kind.value
    elif entity.kind == EntityKind.TYPE:
        type_tag = entity.type_kind.value if entity.type_kind else "type"
    else:
        type_tag = entity.kind.value

    return CallGraphEntity(
        id=generate_entity_id(entity),
        name=entity.name,
        qualified_name=qualified_name,
        type=type_tag,
        location=f"{entity.file}:{entity.start_line}",
        node=node,
        parse_result=parse_result,
        language=entity.language,
    )


class NameTable:
    """Maps a name to every entity registered under it, in insertion order.

    Ambiguous names resolve to the most recently inserted candidate.
    """

    def __init__(self):
        self._candidates: dict[str, list[CallGraphEntity]] = {}

    def add(self, entity: CallGraphEntity) -> None:
        self._candidates.setdefault(entity.name, []).append(entity)
        if entity.qualified_name and entity.qualified_name != entity.name:
            self._candidates.setdefault(entity.qualified_name, []).append(entity)

    def lookup(self, name: str) -> CallGraphEntity | None:
        candidates = self._candidates.get(name)
        return candidates[-1] if candidates else None

    def candidates(self, name: str) -> list[CallGraphEntity]:
        return list(self._candidates.get(name, []))

    def __contains__(self, name: str) -> bool:
        return name in self._candidates

    def __len__(self) -> int:
        return len(self._candidates)


class CallGraphExtractor:
    """Resolve dependencies between the entities of one batch.

    The batch may span files and languages. `parsers` maps a language name
    to the front-end answering node-shape questions for that language.
    Imports are not registered as resolution targets: they name a binding,
    not a definition.
    """

    def __init__(self, entities: list[CallGraphEntity], parsers: Mapping[str, BaseParser]):
        if entities is None:
            raise ContractViolationError("Entity batch must not be None")

        self.entities = list(entities)
        self.parsers = parsers
        self.names = NameTable()
        self.by_id: dict[str, CallGraphEntity] = {}

        for entity in self.entities:
            self.by_id[entity.id] = entity
            if entity.type != EntityKind.IMPORT.value:
                self.names.add(entity)

    def resolve_target(self, name: str, separator: str = ".") -> CallGraphEntity | None:
        """Exact lookup, then a single retry with the last segment of a qualified name."""
        target = self.names.lookup(name)
        if target is None and separator in name:
            target = self.names.lookup(name.rsplit(separator, 1)[-1])
        return target

    def _parser_for(self, entity: CallGraphEntity) -> BaseParser:
        parser = self.parsers.get(entity.language)
        if parser is None:
            raise ContractViolationError(
                f"No front-end registered for language {entity.language!r} ({entity.id})"
            )
        return parser

    def extract_dependencies(self) -> list[Dependency]:
        """Emit every dependency of the batch, sorted by (from_id, dep_type, to_name)."""
        dependencies = []

        for entity in self.entities:
            if entity.type in CALLABLE_TYPES:
                parser = self._require_node(entity)
                dependencies.extend(self._callable_dependencies(entity, parser))
                if entity.type == EntityKind.METHOD.value:
                    dependency = self._method_owner_dependency(entity, parser)
                    if dependency:
                        dependencies.append(dependency)

            elif entity.type in TYPE_TYPES:
                parser = self._require_node(entity)
                dependencies.extend(self._type_dependencies(entity, parser))

        unresolved = sum(1 for dep in dependencies if not dep.resolved)
        logger.debug(f"Resolved {len(dependencies) - unresolved}/{len(dependencies)} dependencies "
                     f"across {len(self.entities)} entities")

        dependencies.sort(key=lambda dep: (dep.from_id, dep.dep_type.value, dep.to_name))
        return dependencies

    def _require_node(self, entity: CallGraphEntity) -> BaseParser:
        if entity.node is None or entity.parse_result is None:
            raise ContractViolationError(f"Entity {entity.id} has no syntax node")
        return self._parser_for(entity)

    def _callable_dependencies(self, entity: CallGraphEntity, parser: BaseParser) -> list[Dependency]:
        node = entity.node
        dependencies: list[Dependency] = []
        seen: set[tuple[DepType, str]] = set()

        body = parser.find_body(node)
        if body is not None:
            body_start, body_end = body.start_byte, body.end_byte

            def visit(current: Node) -> bool:
                if parser.is_decorator_node(current):
                    return False
                role = parser.classify_node(current)
                if role is None or role == NodeRole.DECORATOR:
                    return True
                in_body = body_start <= current.start_byte and current.end_byte <= body_end
                if role == NodeRole.TYPE_REF or in_body:
                    self._add_reference(dependencies, seen, entity, parser, current, role)
                return True

            walk(node, visit)

        self._add_decorators(dependencies, seen, entity, parser)
        return dependencies

    def _type_dependencies(self, entity: CallGraphEntity, parser: BaseParser) -> list[Dependency]:
        node = entity.node
        parse_result = entity.parse_result
        dependencies: list[Dependency] = []
        seen: set[tuple[DepType, str]] = set()

        base_names = set()
        for name, dep_type, base_node in parser.base_references(node, parse_result.source):
            base_names.add(name)
            if (dep_type, name) in seen or parser.is_builtin(name):
                continue
            seen.add((dep_type, name))
            dependencies.append(self._make_dependency(entity, parser, name, dep_type, base_node))

        body = parser.find_body(node)
        if body is not None:

            def visit(current: Node) -> bool:
                if current != body and parser.is_boundary_node(current):
                    return False
                if parser.classify_node(current) != NodeRole.TYPE_REF:
                    return True
                name = parser.reference_name(current, NodeRole.TYPE_REF, parse_result.source)
                if name not in base_names:
                    self._add_reference(dependencies, seen, entity, parser, current, NodeRole.TYPE_REF)
                return True

            walk(body, visit)

        self._add_decorators(dependencies, seen, entity, parser)
        return dependencies

    def _add_decorators(self, dependencies, seen, entity: CallGraphEntity, parser: BaseParser) -> None:
        for decorator in parser.decorator_nodes(entity.node):
            self._add_reference(dependencies, seen, entity, parser, decorator, NodeRole.DECORATOR)

    def _add_reference(self, dependencies: list[Dependency], seen: set[tuple[DepType, str]],
                       entity: CallGraphEntity, parser: BaseParser, node: Node, role: NodeRole) -> None:
        """Append one dependency for a classified node unless filtered or already seen."""
        name = parser.reference_name(node, role, entity.parse_result.source)
        if not name:
            return

        dep_type = _ROLE_DEP_TYPES[role]
        key = (dep_type, name)
        if key in seen:
            return
        seen.add(key)

        if parser.is_builtin(name):
            return

        dependencies.append(self._make_dependency(entity, parser, name, dep_type, node))

    def _make_dependency(self, entity: CallGraphEntity, parser: BaseParser, name: str,
                         dep_type: DepType, node: Node) -> Dependency:
        separator = parser.scope_separator
        target = self.resolve_target(name, separator)
        return Dependency(
            from_id=entity.id,
            to_name=name.rsplit(separator, 1)[-1],
            to_qualified=name if separator in name else "",
            to_id=target.id if target else "",
            dep_type=dep_type,
            location=entity.parse_result.node_location(node),
            optional=self._is_conditional(node, parser),
        )

    def _is_conditional(self, node: Node, parser: BaseParser) -> bool:
        """Check for a conditional ancestor below the nearest function, class or closure."""
        for parent in ancestors(node):
            if parser.is_boundary_node(parent):
                return False
            if parser.is_conditional_node(parent):
                return True
        return False

    def _method_owner_dependency(self, entity: CallGraphEntity, parser: BaseParser) -> Dependency | None:
        owner = parser.method_owner_name(entity.node, entity.parse_result.source)
        if not owner:
            logger.debug(f"No owning type found for method {entity.qualified_name} ({entity.id})")
            return None

        target = self.resolve_target(owner)
        return Dependency(
            from_id=entity.id,
            to_name=owner,
            to_id=target.id if target else "",
            dep_type=DepType.METHOD_OF,
            location=entity.location,
        )
