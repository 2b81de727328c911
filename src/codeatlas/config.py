"""Configuration management for codeatlas indexing."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".codeatlas"


def _default_languages() -> list[str]:
    return ["python", "typescript", "go"]


@dataclass
class IndexConfig:
    """Configuration for an indexing run.

    Attributes:
        workers: Number of parallel extraction workers.
        include_unresolved: Keep dependencies whose target could not be resolved.
        languages: Languages to index; files in other languages are skipped.
    """
    workers: int = 4
    include_unresolved: bool = True
    languages: list[str] = field(default_factory=_default_languages)


def load_index_config(repo_root: Path | None = None) -> IndexConfig:
    """Load index configuration from .codeatlas file in repository root.

    Args:
        repo_root: Path to repository root. If None, uses current directory.

    Returns:
        IndexConfig object with loaded or default values.

    Notes:
        If .codeatlas file doesn't exist or can't be parsed, returns default config.
        Expected YAML structure:

        ```yaml
        index:
          workers: 4
          include_unresolved: true
          languages: [python, typescript, go]
        ```
    """
    if repo_root is None:
        repo_root = Path.cwd()

    config_path = repo_root / CONFIG_FILE_NAME

    if not config_path.exists():
        return IndexConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            return IndexConfig()

        index_config = data.get("index", {})
        if not isinstance(index_config, dict):
            return IndexConfig()

        workers = int(index_config.get("workers", IndexConfig.workers))
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        languages = index_config.get("languages")
        if languages is None:
            languages = _default_languages()
        elif not isinstance(languages, list):
            raise TypeError("languages must be a list")

        include_unresolved = index_config.get("include_unresolved", IndexConfig.include_unresolved)
        if not isinstance(include_unresolved, bool):
            raise TypeError(f"include_unresolved must be true or false, got {include_unresolved!r}")

        return IndexConfig(
            workers=workers,
            include_unresolved=include_unresolved,
            languages=[str(language) for language in languages],
        )
    except (yaml.YAMLError, OSError, KeyError, TypeError, ValueError) as e:
        # Return default config on any parsing errors
        logger.warning(f"Ignoring invalid {config_path}: {e}")
        return IndexConfig()
