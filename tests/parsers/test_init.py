from pathlib import Path

import pytest

from codeatlas.errors import UnsupportedLanguageError
from codeatlas.parsers import (
    get_parser_for_file,
    get_parser_for_language,
    language_from_extension,
    supported_languages,
)
from codeatlas.parsers.go_parser import GoParser
from codeatlas.parsers.python_parser import PythonParser
from codeatlas.parsers.typescript_parser import TsxParser, TypeScriptParser


def test_get_parser_for_python_file():
    parser = get_parser_for_file(Path("test.py"))

    assert parser is not None
    assert isinstance(parser, PythonParser)


def test_get_parser_for_uppercase_extension():
    parser = get_parser_for_file(Path("test.PY"))

    assert parser is not None
    assert isinstance(parser, PythonParser)


def test_get_parser_for_typescript_file():
    parser = get_parser_for_file(Path("src/app.ts"))

    assert type(parser) is TypeScriptParser


def test_get_parser_for_tsx_file():
    parser = get_parser_for_file(Path("src/App.tsx"))

    assert isinstance(parser, TsxParser)
    assert parser.name == "typescript"


def test_get_parser_for_go_file():
    assert isinstance(get_parser_for_file(Path("cmd/main.go")), GoParser)


def test_get_parser_for_unsupported_file():
    assert get_parser_for_file(Path("test.txt")) is None


def test_get_parser_for_javascript_file():
    # Plain JavaScript is not indexed
    assert get_parser_for_file(Path("test.js")) is None


def test_language_from_extension():
    assert language_from_extension(Path("a.pyi")) == "python"
    assert language_from_extension(Path("a.mts")) == "typescript"
    assert language_from_extension(Path("a.tsx")) == "typescript"
    assert language_from_extension(Path("a.go")) == "go"
    assert language_from_extension(Path("Makefile")) is None


def test_get_parser_for_language():
    assert isinstance(get_parser_for_language("go"), GoParser)


def test_get_parser_for_unknown_language():
    with pytest.raises(UnsupportedLanguageError) as exc_info:
        get_parser_for_language("cobol")

    assert exc_info.value.language == "cobol"
    assert "cobol" in str(exc_info.value)


def test_supported_languages():
    assert supported_languages() == ["go", "python", "typescript"]
