from pathlib import Path

from codeatlas.errors import UnsupportedLanguageError
from codeatlas.parsers.base import BaseParser
from codeatlas.parsers.go_parser import GoParser
from codeatlas.parsers.python_parser import PythonParser
from codeatlas.parsers.typescript_parser import TsxParser, TypeScriptParser

_PARSERS_BY_EXTENSION: dict[str, type[BaseParser]] = {
    ".py": PythonParser,
    ".pyi": PythonParser,
    ".ts": TypeScriptParser,
    ".mts": TypeScriptParser,
    ".cts": TypeScriptParser,
    ".tsx": TsxParser,
    ".go": GoParser,
}

_PARSERS_BY_LANGUAGE: dict[str, type[BaseParser]] = {
    PythonParser.name: PythonParser,
    TypeScriptParser.name: TypeScriptParser,
    GoParser.name: GoParser,
}


def supported_languages() -> list[str]:
    return sorted(_PARSERS_BY_LANGUAGE)


def language_from_extension(file_path: Path) -> str | None:
    """Return the language name for a file, or None if unsupported."""
    parser_class = _PARSERS_BY_EXTENSION.get(file_path.suffix.lower())
    return parser_class.name if parser_class else None


def get_parser_for_file(file_path: Path) -> BaseParser | None:
    """Get appropriate parser for a file based on its extension.

    Args:
        file_path: Path to source file

    Returns:
        Parser instance if file type is supported, None otherwise
    """
    parser_class = _PARSERS_BY_EXTENSION.get(file_path.suffix.lower())
    return parser_class() if parser_class else None


def get_parser_for_language(language: str) -> BaseParser:
    """Get a parser for a language name.

    Raises:
        UnsupportedLanguageError: If no front-end handles the language
    """
    parser_class = _PARSERS_BY_LANGUAGE.get(language)
    if parser_class is None:
        raise UnsupportedLanguageError(language)
    return parser_class()


__all__ = [
    "BaseParser",
    "GoParser",
    "PythonParser",
    "TsxParser",
    "TypeScriptParser",
    "get_parser_for_file",
    "get_parser_for_language",
    "language_from_extension",
    "supported_languages",
]
