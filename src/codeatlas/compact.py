"""Compact pipe-delimited encoding of entities and dependencies.

One line per record; names and paths are emitted literally::

    function/method: file:line[-end]|(p1: t1, p2: t2) -> ret|sighash[:bodyhash][|r=receiver][|v=visibility]
    type:            file:line[-end]|kind|{name: type, ...}|sighash[|i=impl1,impl2]
    const/var:       file:line|type=value
    enum:            file:line[-end]|basetype|[Name=val,Name=val,...]
    import:          file:line|importpath[|alias]
    dependency:      from_id|dep_type|to_name|to_id|location[|q=to_qualified][|opt]

Type expressions may themselves contain "|" (TypeScript unions), so the
parser anchors on the fixed leading and trailing segments of each line and
treats whatever is left in the middle as the free-form part.
"""

import re
from dataclasses import dataclass, field

from codeatlas.errors import CompactFormatError
from codeatlas.models import Dependency, Entity, EntityKind

_LINE_RANGE = re.compile(r"^(\d+)(?:-(\d+))?$")
_HASHES = re.compile(r"^([0-9a-f]{8})(?::([0-9a-f]{8})?)?$")

_OPENERS = "([{<"
_CLOSERS = ")]}>"


def to_compact(entity: Entity) -> str:
    """Render an entity as its compact line. Never fails."""
    if entity.kind in (EntityKind.FUNCTION, EntityKind.METHOD):
        return _format_callable(entity)
    if entity.kind == EntityKind.TYPE:
        return _format_type(entity)
    if entity.kind in (EntityKind.CONSTANT, EntityKind.VARIABLE):
        return f"{entity.file}:{entity.start_line}|{entity.value_type}={entity.value}"
    if entity.kind == EntityKind.ENUM:
        values = ",".join(f"{v.name}={v.value}" for v in entity.enum_values)
        return f"{entity.format_location()}|{entity.value_type}|[{values}]"
    if entity.kind == EntityKind.IMPORT:
        line = f"{entity.file}:{entity.start_line}|{entity.import_path}"
        if entity.import_alias:
            line += f"|{entity.import_alias}"
        return line
    return f"{entity.file}:{entity.start_line}|{entity.kind.value}|{entity.name}"


def _format_callable(entity: Entity) -> str:
    hashes = entity.sig_hash
    if entity.body_hash:
        hashes += f":{entity.body_hash}"

    parts = [entity.format_location(), entity.format_signature(), hashes]
    if entity.receiver:
        parts.append(f"r={entity.receiver}")
    if entity.visibility:
        parts.append(f"v={entity.visibility.value}")
    return "|".join(parts)


def _format_type(entity: Entity) -> str:
    type_kind = entity.type_kind.value if entity.type_kind else ""
    parts = [entity.format_location(), type_kind, entity.format_fields(), entity.sig_hash]
    if entity.implements:
        parts.append("i=" + ",".join(entity.implements))
    return "|".join(parts)


def dependency_to_compact(dependency: Dependency) -> str:
    """Render a dependency edge as its compact line."""
    parts = [
        dependency.from_id,
        dependency.dep_type.value,
        dependency.to_name,
        dependency.to_id,
        dependency.location,
    ]
    if dependency.to_qualified:
        parts.append(f"q={dependency.to_qualified}")
    if dependency.optional:
        parts.append("opt")
    return "|".join(parts)


@dataclass
class CompactRecord:
    """Fields recovered from a compact entity line.

    Only what the line carries is recovered: parameters and returns come back
    as their rendered strings, hashes as hex strings.
    """
    kind: EntityKind
    file: str
    start_line: int
    end_line: int
    signature: str = ""
    params: list[str] = field(default_factory=list)
    returns: list[str] = field(default_factory=list)
    sig_hash: str = ""
    body_hash: str = ""
    receiver: str = ""
    visibility: str = ""
    type_kind: str = ""
    fields: list[str] = field(default_factory=list)
    implements: list[str] = field(default_factory=list)
    value_type: str = ""
    value: str = ""
    enum_values: list[tuple[str, str]] = field(default_factory=list)
    import_path: str = ""
    import_alias: str = ""


def parse_compact(line: str, kind: EntityKind) -> CompactRecord:
    """Parse a compact entity line back into its fields.

    Args:
        line: Compact line produced by `to_compact`
        kind: Kind of the entity the line describes (the line does not carry it)

    Returns:
        CompactRecord with the recovered fields

    Raises:
        CompactFormatError: If the line does not match the grammar for `kind`
    """
    kind = EntityKind(kind)
    parts = line.rstrip("\n").split("|")
    if len(parts) < 2:
        raise CompactFormatError(f"Not a compact {kind.value} line: {line!r}")

    file, start_line, end_line = _parse_location(parts[0], line)
    record = CompactRecord(kind=kind, file=file, start_line=start_line, end_line=end_line)

    if kind in (EntityKind.FUNCTION, EntityKind.METHOD):
        _parse_callable(record, parts[1:], line)
    elif kind == EntityKind.TYPE:
        _parse_type(record, parts[1:], line)
    elif kind in (EntityKind.CONSTANT, EntityKind.VARIABLE):
        value_type, sep, value = "|".join(parts[1:]).partition("=")
        if not sep:
            raise CompactFormatError(f"Missing type=value in {line!r}")
        record.value_type = value_type
        record.value = value
    elif kind == EntityKind.ENUM:
        _parse_enum(record, parts[1:], line)
    elif kind == EntityKind.IMPORT:
        record.import_path = parts[1]
        if len(parts) > 2:
            record.import_alias = "|".join(parts[2:])

    return record


def _parse_location(location: str, line: str) -> tuple[str, int, int]:
    file, sep, lines = location.rpartition(":")
    match = _LINE_RANGE.match(lines)
    if not sep or not file or match is None:
        raise CompactFormatError(f"Malformed location {location!r} in {line!r}")

    start_line = int(match.group(1))
    end_line = int(match.group(2)) if match.group(2) else start_line
    if end_line < start_line:
        raise CompactFormatError(f"End line before start line in {line!r}")
    return file, start_line, end_line


def _parse_callable(record: CompactRecord, parts: list[str], line: str) -> None:
    parts = list(parts)
    while parts and parts[-1].startswith(("r=", "v=")):
        suffix = parts.pop()
        if suffix.startswith("r="):
            record.receiver = suffix[2:]
        else:
            record.visibility = suffix[2:]

    if len(parts) < 2:
        raise CompactFormatError(f"Missing signature or hashes in {line!r}")
    match = _HASHES.match(parts[-1])
    if match is None:
        raise CompactFormatError(f"Malformed hashes {parts[-1]!r} in {line!r}")
    record.sig_hash = match.group(1)
    record.body_hash = match.group(2) or ""

    record.signature = "|".join(parts[:-1])
    record.params, record.returns = _parse_signature(record.signature, line)


def _parse_signature(signature: str, line: str) -> tuple[list[str], list[str]]:
    """Split "(a: int, b: int) -> (x, y)" into params and returns."""
    if not signature.startswith("("):
        raise CompactFormatError(f"Malformed signature {signature!r} in {line!r}")

    close = _matching_paren(signature, 0)
    if close < 0:
        raise CompactFormatError(f"Unbalanced signature {signature!r} in {line!r}")
    params = _split_top_level(signature[1:close])

    rest = signature[close + 1:]
    if not rest:
        return params, []
    if not rest.startswith(" -> "):
        raise CompactFormatError(f"Malformed return clause {rest!r} in {line!r}")

    returns = rest[4:]
    if returns.startswith("(") and _matching_paren(returns, 0) == len(returns) - 1:
        return params, _split_top_level(returns[1:-1])
    return params, [returns]


def _matching_paren(text: str, start: int) -> int:
    depth = 0
    for index in range(start, len(text)):
        if text[index] == "(":
            depth += 1
        elif text[index] == ")":
            depth -= 1
            if depth == 0:
                return index
    return -1


def _split_top_level(text: str) -> list[str]:
    """Split on ", " outside of brackets.

    Arrows are not brackets: "=>" and "->" do not close one, and the Go
    channel arrow in "<-chan T" / "chan<- T" does not open one.
    """
    items = []
    depth = 0
    current = []
    index = 0
    while index < len(text):
        char = text[index]
        if char in _OPENERS and not (char == "<" and text.startswith("-", index + 1)):
            depth += 1
        elif char in _CLOSERS and not (char == ">" and index > 0 and text[index - 1] in "=-"):
            depth -= 1
        if depth == 0 and text.startswith(", ", index):
            items.append("".join(current))
            current = []
            index += 2
            continue
        current.append(char)
        index += 1

    if current or items:
        items.append("".join(current))
    return items


def _parse_type(record: CompactRecord, parts: list[str], line: str) -> None:
    parts = list(parts)
    if parts and parts[-1].startswith("i="):
        record.implements = [name for name in parts.pop()[2:].split(",") if name]

    if len(parts) < 3:
        raise CompactFormatError(f"Missing kind, fields or hash in {line!r}")
    match = _HASHES.match(parts[-1])
    if match is None:
        raise CompactFormatError(f"Malformed hash {parts[-1]!r} in {line!r}")
    record.sig_hash = match.group(1)
    record.type_kind = parts[0]

    fields = "|".join(parts[1:-1])
    if not (fields.startswith("{") and fields.endswith("}")):
        raise CompactFormatError(f"Malformed fields {fields!r} in {line!r}")
    record.fields = _split_top_level(fields[1:-1])


def _parse_enum(record: CompactRecord, parts: list[str], line: str) -> None:
    if len(parts) < 2:
        raise CompactFormatError(f"Missing base type or values in {line!r}")
    record.value_type = parts[0]

    values = "|".join(parts[1:])
    if not (values.startswith("[") and values.endswith("]")):
        raise CompactFormatError(f"Malformed enum values {values!r} in {line!r}")
    for item in values[1:-1].split(","):
        if not item:
            continue
        name, _, value = item.partition("=")
        record.enum_values.append((name, value))
