"""Two-phase indexing of an explicit list of source files.

Phase 1 extracts entities from every file in parallel. Phase 2 starts only
once every file has been collected: it builds the resolver's name tables
from the complete batch and emits dependencies across files.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from codeatlas.callgraph import CallGraphExtractor, to_call_graph_entity
from codeatlas.config import IndexConfig, load_index_config
from codeatlas.errors import UnsupportedLanguageError
from codeatlas.models import Dependency, Entity, EntityWithNode
from codeatlas.parsers import get_parser_for_file, get_parser_for_language, language_from_extension

logger = logging.getLogger(__name__)


@dataclass
class IndexResult:
    """Entities and dependencies of one indexing run, in stable order."""
    entities: list[Entity] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def relative_path(path: Path, root: Path) -> str:
    """Return path relative to root in POSIX form, or the path itself if outside root."""
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def extract_file(path: Path, root: Path) -> list[EntityWithNode]:
    """Parse one file and extract its entities with their syntax nodes.

    A fresh parser is created per call; tree-sitter parsers are not shared
    between threads.

    Raises:
        UnsupportedLanguageError: If no front-end handles the file's extension
        OSError, UnicodeDecodeError: If the file cannot be read as UTF-8
    """
    parser = get_parser_for_file(path)
    if parser is None:
        raise UnsupportedLanguageError(path.suffix or path.name)

    source_code = path.read_text(encoding="utf8")
    parse_result = parser.parse(source_code, relative_path(path, root))
    if parse_result.has_errors():
        logger.debug(f"Syntax errors in {parse_result.file_path}; extracting what parsed")

    return parser.extract_entities_with_nodes(parse_result)


def _extract_or_skip(path: Path, root: Path) -> tuple[Path, list[EntityWithNode] | None]:
    try:
        return path, extract_file(path, root)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Skipping unreadable file {path}: {e}")
        return path, None


def _select_files(paths: list[Path], config: IndexConfig) -> list[Path]:
    """Drop duplicates and files whose language is disabled in config."""
    selected = []
    seen = set()
    for path in paths:
        language = language_from_extension(path)
        if language is None:
            raise UnsupportedLanguageError(path.suffix or path.name)
        if language not in config.languages:
            logger.info(f"Skipping {path}: language {language} is disabled")
            continue
        key = path.resolve()
        if key in seen:
            continue
        seen.add(key)
        selected.append(path)
    return selected


def collect_entities(paths: list[Path], root: Path, workers: int = 1) -> tuple[list[EntityWithNode], list[str]]:
    """Phase 1: extract every file, in parallel when workers > 1.

    Returns:
        (entities sorted by (file, start_line, name), skipped file paths)
    """
    collected: list[EntityWithNode] = []
    skipped: list[str] = []

    if workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(_extract_or_skip, path, root) for path in paths]
            results = [future.result() for future in as_completed(futures)]
    else:
        results = [_extract_or_skip(path, root) for path in paths]

    for path, items in results:
        if items is None:
            skipped.append(path.as_posix())
        else:
            collected.extend(items)

    collected.sort(key=lambda item: (item.entity.file, item.entity.start_line, item.entity.name))
    return collected, sorted(skipped)


def resolve_dependencies(items: list[EntityWithNode]) -> list[Dependency]:
    """Phase 2: resolve dependencies across the whole collected batch."""
    parsers = {
        language: get_parser_for_language(language)
        for language in sorted({item.entity.language for item in items})
    }
    batch = [to_call_graph_entity(item.entity, item.node, item.parse_result) for item in items]
    return CallGraphExtractor(batch, parsers).extract_dependencies()


def index_files(paths: list[Path], root: Path | None = None, config: IndexConfig | None = None) -> IndexResult:
    """Index an explicit list of files.

    Args:
        paths: Source files to index
        root: Directory entity file paths are made relative to (default: cwd)
        config: Index configuration (default: loaded from root/.codeatlas)

    Returns:
        IndexResult with sorted entities and dependencies

    Raises:
        UnsupportedLanguageError: If a file's extension has no front-end
    """
    if root is None:
        root = Path.cwd()
    if config is None:
        config = load_index_config(root)

    selected = _select_files([Path(p) for p in paths], config)
    items, skipped = collect_entities(selected, root, workers=config.workers)
    logger.info(f"Extracted {len(items)} entities from {len(selected) - len(skipped)} files")

    dependencies = resolve_dependencies(items)
    if not config.include_unresolved:
        dependencies = [dep for dep in dependencies if dep.resolved]

    return IndexResult(
        entities=[item.entity for item in items],
        dependencies=dependencies,
        skipped=skipped,
    )
