import pytest

from codeatlas.hashing import generate_entity_id
from codeatlas.models import EntityKind, EnumValue, Field, NodeRole, Param, TypeKind, Visibility
from codeatlas.parsers.python_parser import PythonParser, is_constant_name, python_visibility


@pytest.fixture(scope="module")
def parser():
    return PythonParser()


def by_name(entities):
    return {entity.name: entity for entity in entities}


def test_extract_simple_function(parser):
    source = """def add(a: int, b: int) -> int:
    return a + b
"""
    entities = parser.extract_entities(source, "math.py")

    assert len(entities) == 1
    add = entities[0]
    assert add.kind == EntityKind.FUNCTION
    assert add.name == "add"
    assert add.file == "math.py"
    assert (add.start_line, add.end_line) == (1, 2)
    assert add.params == [Param("a", "int"), Param("b", "int")]
    assert add.returns == ["int"]
    assert add.receiver == ""
    assert add.visibility == Visibility.PUBLIC
    assert add.language == "python"
    assert len(add.sig_hash) == 8
    assert len(add.body_hash) == 8


def test_extract_multiple_functions(parser):
    source = """def first():
    pass

def second():
    pass

def third():
    pass
"""
    entities = parser.extract_entities(source, "test.py")

    assert [e.name for e in entities] == ["first", "second", "third"]
    assert all(e.kind == EntityKind.FUNCTION for e in entities)


def test_async_function(parser):
    source = """async def fetch(url):
    return await get(url)
"""
    entities = parser.extract_entities(source, "test.py")

    assert entities[0].is_async


def test_parameter_shapes(parser):
    source = """def run(a, b: str, c=1, d: int = 2, *args, **kwargs):
    pass
"""
    entities = parser.extract_entities(source, "test.py")

    assert entities[0].params == [
        Param("a", ""),
        Param("b", "str"),
        Param("c", ""),
        Param("d", "int"),
        Param("*args", ""),
        Param("**kwargs", ""),
    ]


def test_keyword_only_separator_is_not_a_parameter(parser):
    source = """def run(a, *, b):
    pass
"""
    entities = parser.extract_entities(source, "test.py")

    assert [p.name for p in entities[0].params] == ["a", "b"]


def test_decorated_function_starts_at_decorator(parser):
    source = """import app

@app.route("/users")
@login_required
def list_users():
    pass
"""
    entities = by_name(parser.extract_entities(source, "views.py"))

    handler = entities["list_users"]
    assert handler.decorators == ["app.route", "login_required"]
    assert (handler.start_line, handler.end_line) == (3, 6)


def test_methods(parser):
    source = """class Repo:
    def save(self, item: Item) -> None:
        self.items.append(item)

    @staticmethod
    def create(name: str) -> "Repo":
        return Repo()

    @classmethod
    def default(cls):
        return cls()

    def _flush(self):
        pass

    def __len__(self):
        return 0
"""
    entities = by_name(parser.extract_entities(source, "repo.py"))

    save = entities["save"]
    assert save.kind == EntityKind.METHOD
    assert save.receiver == "Repo"
    assert save.params == [Param("item", "Item")]
    assert save.returns == ["None"]

    create = entities["create"]
    assert create.receiver == "Repo (static)"
    assert create.params == [Param("name", "str")]
    assert create.decorators == ["staticmethod"]

    assert entities["default"].receiver == "Repo"
    assert entities["default"].params == []

    assert entities["_flush"].visibility == Visibility.PRIVATE
    assert entities["__len__"].visibility == Visibility.PUBLIC


def test_functions_nested_in_methods_are_skipped(parser):
    source = """class Repo:
    def save(self):
        def validate():
            pass
        validate()
"""
    entities = parser.extract_entities(source, "repo.py")

    assert [e.name for e in entities] == ["Repo", "save"]


def test_functions_nested_in_functions_are_kept(parser):
    source = """def outer():
    def inner():
        pass
    return inner
"""
    entities = parser.extract_entities(source, "test.py")

    assert [(e.name, e.kind) for e in entities] == [
        ("outer", EntityKind.FUNCTION),
        ("inner", EntityKind.FUNCTION),
    ]


def test_class(parser):
    source = """@dataclass
class User(Base, mixins.Serializable, metaclass=Meta):
    id: int
    name: str = ""
    _secret: str = ""
    count = 0

    def greet(self):
        pass
"""
    entities = by_name(parser.extract_entities(source, "user.py"))

    user = entities["User"]
    assert user.kind == EntityKind.TYPE
    assert user.type_kind == TypeKind.STRUCT
    assert user.implements == ["Base", "mixins.Serializable"]
    assert user.decorators == ["dataclass"]
    assert user.fields == [
        Field("id", "int", Visibility.PUBLIC),
        Field("name", "str", Visibility.PUBLIC),
        Field("_secret", "str", Visibility.PRIVATE),
    ]
    assert (user.start_line, user.end_line) == (1, 9)
    assert user.body_hash == ""


def test_protocol_is_interface(parser):
    source = """class Readable(Protocol):
    def read(self) -> bytes: ...
"""
    entities = by_name(parser.extract_entities(source, "io.py"))

    assert entities["Readable"].type_kind == TypeKind.INTERFACE


def test_generic_base(parser):
    source = """class Box(Generic[T]):
    pass
"""
    entities = parser.extract_entities(source, "box.py")

    assert entities[0].implements == ["Generic"]


def test_enum(parser):
    source = """from enum import Enum

class Color(Enum):
    RED = 1
    GREEN = "green"
"""
    entities = by_name(parser.extract_entities(source, "color.py"))

    color = entities["Color"]
    assert color.kind == EntityKind.ENUM
    assert color.value_type == "Enum"
    assert color.enum_values == [EnumValue("RED", "1"), EnumValue("GREEN", '"green"')]


def test_module_values(parser):
    source = """MAX_SIZE = 100
TIMEOUT: float = 1.5
logger = get_logger()
_cache = {}
"""
    entities = by_name(parser.extract_entities(source, "settings.py"))

    assert entities["MAX_SIZE"].kind == EntityKind.CONSTANT
    assert entities["MAX_SIZE"].value == "100"
    assert entities["TIMEOUT"].value_type == "float"
    assert entities["TIMEOUT"].value == "1.5"
    assert entities["logger"].kind == EntityKind.VARIABLE
    assert entities["_cache"].visibility == Visibility.PRIVATE
    assert entities["MAX_SIZE"].start_line == entities["MAX_SIZE"].end_line == 1


def test_long_values_are_truncated(parser):
    source = 'BANNER = "' + "x" * 60 + '"\n'
    entities = parser.extract_entities(source, "banner.py")

    value = entities[0].value
    assert len(value) == 50
    assert value.endswith("...")
    assert value.startswith('"xxx')


def test_local_assignments_are_not_entities(parser):
    source = """def run():
    LIMIT = 3
    return LIMIT
"""
    entities = parser.extract_entities(source, "test.py")

    assert [e.name for e in entities] == ["run"]


def test_imports(parser):
    source = """import os.path
import numpy as np
from typing import Optional, List as L
from . import sibling
from .models import User
from pkg import *
"""
    entities = parser.extract_entities(source, "mod.py")

    assert [(e.name, e.import_path, e.import_alias) for e in entities] == [
        ("path", "os.path", ""),
        ("np", "numpy", "np"),
        ("Optional", "typing.Optional", ""),
        ("L", "typing.List", "L"),
        ("sibling", ".sibling", ""),
        ("User", ".models.User", ""),
        ("*", "pkg.*", ""),
    ]
    assert all(e.kind == EntityKind.IMPORT for e in entities)


def test_ids_are_deterministic(parser):
    source = """class Repo:
    def save(self):
        pass

def helper():
    pass
"""
    first = [generate_entity_id(e) for e in parser.extract_entities(source, "repo.py")]
    second = [generate_entity_id(e) for e in parser.extract_entities(source, "repo.py")]

    assert first == second
    assert len(set(first)) == 3


def test_reindented_body_keeps_body_hash(parser):
    original = parser.extract_entities("def f():\n    return 1\n", "a.py")[0]
    reindented = parser.extract_entities("def f():\n\n        return 1\n", "a.py")[0]

    assert original.body_hash == reindented.body_hash
    assert original.sig_hash == reindented.sig_hash


def test_syntax_errors_do_not_stop_extraction(parser):
    source = """def good():
    pass

def broken(:
    pass
"""
    entities = parser.extract_entities(source, "test.py")

    assert "good" in [e.name for e in entities]


def test_empty_file(parser):
    assert parser.extract_entities("", "empty.py") == []


class TestResolverHooks:
    """Node-shape answers used by the dependency resolver."""

    def test_call_names(self, parser):
        result = parser.parse("a()\nself.repo.save()\nmake()()\n", "t.py")
        calls = result.find_nodes_by_type("call")
        names = [parser.reference_name(c, parser.classify_node(c), result.source) for c in calls]

        assert names == ["a", "self.repo.save", "", "make"]

    def test_annotation_type_refs(self, parser):
        result = parser.parse("def f(x: models.User, y: int) -> Optional[Item]:\n    z = User\n", "t.py")
        refs = [
            result.node_text(node)
            for node in result.find_nodes_by_type("identifier", "attribute")
            if parser.classify_node(node) == NodeRole.TYPE_REF
        ]

        assert refs == ["models.User", "int", "Optional", "Item"]

    def test_conditional_nodes(self, parser):
        result = parser.parse("if a:\n    pass\nelif b:\n    pass\n", "t.py")

        assert parser.is_conditional_node(result.find_nodes_by_type("if_statement")[0])
        assert parser.is_conditional_node(result.find_nodes_by_type("elif_clause")[0])

    def test_method_owner(self, parser):
        result = parser.parse("class A:\n    @property\n    def x(self):\n        pass\n", "t.py")
        method = result.find_nodes_by_type("function_definition")[0]

        assert parser.method_owner_name(method, result.source) == "A"


def test_visibility_helper():
    assert python_visibility("public") == Visibility.PUBLIC
    assert python_visibility("_private") == Visibility.PRIVATE
    assert python_visibility("__mangled") == Visibility.PRIVATE
    assert python_visibility("__init__") == Visibility.PUBLIC


def test_constant_name_helper():
    assert is_constant_name("MAX_SIZE")
    assert is_constant_name("V2")
    assert not is_constant_name("max_size")
    assert not is_constant_name("_")


def test_doc_comments(parser):
    source = '''# Retry budget.
MAX_RETRIES = 3


class Repo:
    """Stores items."""

    def load(self, key: str) -> bytes:
        # Not a docstring
        """Read one item."""
        return b""

    def save(self):
        x = "not a docstring"
'''
    entities = by_name(parser.extract_entities(source, "repo.py"))

    assert entities["MAX_RETRIES"].doc_comment == "# Retry budget."
    assert entities["Repo"].doc_comment == '"""Stores items."""'
    assert entities["load"].doc_comment == '"""Read one item."""'
    assert entities["save"].doc_comment == ""


def test_skeletons(parser):
    source = '''class Repo(Base):
    """Stores items."""

    limit: int = 10

    @classmethod
    def open(cls, path: str) -> "Repo":
        return cls()
'''
    entities = by_name(parser.extract_entities(source, "repo.py"))

    assert entities["Repo"].skeleton == 'class Repo(Base):\n    """Stores items."""\n    limit: int'
    assert entities["open"].skeleton == '@classmethod\ndef open(cls, path: str) -> "Repo": ...'
