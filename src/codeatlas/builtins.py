"""Per-language builtin identifier tables.

The tables live in `data/builtins.yaml` so they can be reviewed and extended
independently of the traversal code.
"""

from dataclasses import dataclass
from functools import lru_cache
from importlib import resources

import yaml

from codeatlas.errors import UnsupportedLanguageError


@dataclass(frozen=True)
class BuiltinTable:
    """Builtin identifiers for one language."""
    names: frozenset[str]
    namespaces: frozenset[str]
    separator: str = "."

    def is_builtin(self, name: str) -> bool:
        """Check a raw reference against the table.

        Qualified references are also filtered when their first segment is a
        builtin namespace (e.g. "console.log").
        """
        if name in self.names:
            return True
        if self.separator in name:
            root = name.split(self.separator, 1)[0]
            return root in self.namespaces
        return False


@lru_cache(maxsize=1)
def _load_tables() -> dict:
    text = resources.files("codeatlas").joinpath("data").joinpath("builtins.yaml").read_text(encoding="utf8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


@lru_cache(maxsize=None)
def get_builtin_table(language: str) -> BuiltinTable:
    """Return the builtin table for a language.

    Raises:
        UnsupportedLanguageError: If the language has no table
    """
    section = _load_tables().get(language)
    if not isinstance(section, dict):
        raise UnsupportedLanguageError(language)

    return BuiltinTable(
        names=frozenset(str(n) for n in section.get("names") or []),
        namespaces=frozenset(str(n) for n in section.get("namespaces") or []),
        separator=str(section.get("separator", ".")),
    )


def supported_builtin_languages() -> list[str]:
    return sorted(_load_tables())
