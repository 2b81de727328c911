"""Stable identity and content hashes for extracted entities.

Entity IDs depend only on (kind, file, start line, name), so moving a
declaration changes its ID even when its hashes stay the same. Hashes are
truncated SHA-256 digests used for change detection, not for security.
"""

import hashlib
import re

from codeatlas.models import Entity, EntityKind

HASH_LENGTH = 8
PATH_HASH_LENGTH = 6
MAX_ID_NAME_LENGTH = 32

_TYPE_CODES = {
    EntityKind.FUNCTION: "fn",
    EntityKind.METHOD: "fn",
    EntityKind.TYPE: "type",
    EntityKind.CONSTANT: "const",
    EntityKind.VARIABLE: "var",
    EntityKind.ENUM: "enum",
    EntityKind.IMPORT: "imp",
}

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_]")


def compute_hash(content: str, length: int = HASH_LENGTH) -> str:
    """Compute SHA-256 hash and truncate to `length` hex characters.

    Args:
        content: Content string to hash
        length: Number of hex characters to keep

    Returns:
        Lowercase hex hash string
    """
    hash_obj = hashlib.sha256(content.encode("utf8"))
    return hash_obj.hexdigest()[:length]


def compute_file_hash(content: bytes) -> str:
    """Compute the truncated hash of raw file content."""
    return hashlib.sha256(content).hexdigest()[:HASH_LENGTH]


def normalize_body(body: str) -> str:
    """Normalize a body for hashing.

    Each line is trimmed and blank lines are dropped, so indentation and
    blank-line churn do not change the hash while any token change does.
    """
    lines = (line.strip() for line in body.split("\n"))
    return "\n".join(line for line in lines if line)


def signature_string(entity: Entity) -> str:
    """Build the string the signature hash is computed from.

    Callables: name, ",type" per parameter, "->", comma-joined returns and
    "|receiver" when present. Types: name, "|kind", then ",name:type" per field.
    Other kinds hash their name only.
    """
    parts = [entity.name]

    if entity.is_callable:
        for param in entity.params:
            parts.append("," + param.type)
        parts.append("->")
        parts.append(",".join(entity.returns))
        if entity.receiver:
            parts.append("|" + entity.receiver)

    elif entity.kind == EntityKind.TYPE:
        type_kind = entity.type_kind.value if entity.type_kind else ""
        parts.append("|" + type_kind)
        for f in entity.fields:
            parts.append(f",{f.name}:{f.type}")

    return "".join(parts)


def compute_hashes(entity: Entity) -> None:
    """Set `sig_hash` and, when the entity has a raw body, `body_hash`."""
    entity.sig_hash = compute_hash(signature_string(entity))
    if entity.raw_body:
        entity.body_hash = compute_hash(normalize_body(entity.raw_body))
    else:
        entity.body_hash = ""


def type_code(kind: EntityKind) -> str:
    return _TYPE_CODES.get(kind, "unk")


def sanitize_name(name: str) -> str:
    """Truncate to 32 characters and replace anything outside [A-Za-z0-9_] with "_"."""
    return _UNSAFE_ID_CHARS.sub("_", name[:MAX_ID_NAME_LENGTH])


def generate_entity_id(entity: Entity) -> str:
    """Generate the stable entity ID.

    Format: sa-<type code>-<path hash>-<start line>-<sanitized name>

    Args:
        entity: Entity to identify

    Returns:
        ID string such as "sa-fn-1a2b3c-12-parse_file"
    """
    path_hash = compute_hash(entity.file, PATH_HASH_LENGTH)
    return f"sa-{type_code(entity.kind)}-{path_hash}-{entity.start_line}-{sanitize_name(entity.name)}"


def format_hash_pair(sig_hash: str, body_hash: str) -> str:
    return f"{sig_hash}:{body_hash}"


def parse_hash_pair(hash_pair: str) -> tuple[str, str]:
    """Split a "sig:body" pair. Without a colon the whole string is the sig hash."""
    sig_hash, sep, body_hash = hash_pair.partition(":")
    if not sep:
        return hash_pair, ""
    return sig_hash, body_hash


def compare_hashes(old: str, new: str) -> tuple[bool, bool]:
    """Compare two "sig:body" pairs.

    Returns:
        (sig_changed, body_changed). Both are True when either pair is empty.
    """
    old_sig, old_body = parse_hash_pair(old)
    new_sig, new_body = parse_hash_pair(new)

    if not old_sig and not old_body:
        return True, True
    if not new_sig and not new_body:
        return True, True

    return old_sig != new_sig, old_body != new_body
