"""End-to-end tests for indexing a mixed-language batch of files."""

import pytest

from codeatlas.config import IndexConfig
from codeatlas.errors import UnsupportedLanguageError
from codeatlas.hashing import generate_entity_id
from codeatlas.models import DepType, EntityKind
from codeatlas.pipeline import index_files

MODELS_PY = '''class User:
    name: str


def load_user(user_id: int) -> User:
    return User()
'''

SERVICE_PY = '''from models import load_user


def greet(user_id):
    user = load_user(user_id)
    if user:
        return render(user)
'''

SERVER_GO = '''package main

type Server struct {
	addr string
}

func (s *Server) Start() error {
	return listen(s.addr)
}
'''

FORMAT_TS = '''export function formatName(value: string): string {
  return value.trim();
}
'''

PAGE_TS = '''import { formatName } from "./format";

export class Page {
  title(): string {
    return formatName("home");
  }
}
'''


@pytest.fixture
def repo(tmp_path):
    files = {
        "models.py": MODELS_PY,
        "service.py": SERVICE_PY,
        "server.go": SERVER_GO,
        "web/format.ts": FORMAT_TS,
        "web/page.ts": PAGE_TS,
    }
    for name, content in files.items():
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return tmp_path


def all_files(repo):
    return [repo / "service.py", repo / "web/page.ts", repo / "models.py", repo / "server.go",
            repo / "web/format.ts"]


def entity_ids(result):
    return {
        entity.name: generate_entity_id(entity)
        for entity in result.entities
        if entity.kind != EntityKind.IMPORT
    }


class TestIndexE2E:
    """Index realistic files across Python, TypeScript and Go."""

    def test_entities_are_sorted_with_relative_paths(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1))

        keys = [(e.file, e.start_line, e.name) for e in result.entities]
        assert keys == sorted(keys)
        assert {e.file for e in result.entities} == {
            "models.py", "service.py", "server.go", "web/format.ts", "web/page.ts",
        }
        assert result.skipped == []

    def test_cross_file_python_resolution(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1))
        ids = entity_ids(result)

        greet_deps = {d.to_name: d for d in result.dependencies if d.from_id == ids["greet"]}
        assert set(greet_deps) == {"load_user", "render"}
        assert greet_deps["load_user"].to_id == ids["load_user"]
        assert greet_deps["load_user"].location == "service.py:5"
        assert greet_deps["load_user"].optional is False
        assert greet_deps["render"].to_id == ""
        assert greet_deps["render"].optional is True

    def test_cross_file_typescript_resolution(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1))
        ids = entity_ids(result)

        title_deps = [d for d in result.dependencies if d.from_id == ids["title"]]
        assert {(d.dep_type, d.to_name, d.to_id) for d in title_deps} == {
            (DepType.CALLS, "formatName", ids["formatName"]),
            (DepType.METHOD_OF, "Page", ids["Page"]),
        }

    def test_imports_are_entities_but_not_targets(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1))

        imports = [e for e in result.entities if e.kind == EntityKind.IMPORT]
        assert {(e.file, e.name) for e in imports} == {("service.py", "load_user"), ("web/page.ts", "formatName")}
        import_ids = {generate_entity_id(e) for e in imports}
        assert not any(d.to_id in import_ids for d in result.dependencies)

    def test_go_method_dependencies(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1))
        ids = entity_ids(result)

        start_deps = {(d.dep_type, d.to_name, d.to_id) for d in result.dependencies if d.from_id == ids["Start"]}
        assert start_deps == {
            (DepType.CALLS, "listen", ""),
            (DepType.USES_TYPE, "Server", ids["Server"]),
            (DepType.METHOD_OF, "Server", ids["Server"]),
        }

    def test_dependencies_are_sorted(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1))

        keys = [(d.from_id, d.dep_type.value, d.to_name) for d in result.dependencies]
        assert keys == sorted(keys)

    def test_parallel_extraction_matches_serial(self, repo):
        serial = index_files(all_files(repo), repo, IndexConfig(workers=1))
        parallel = index_files(all_files(repo), repo, IndexConfig(workers=4))

        assert parallel.entities == serial.entities
        assert parallel.dependencies == serial.dependencies

    def test_resolution_does_not_depend_on_file_order(self, repo):
        forward = index_files(all_files(repo), repo, IndexConfig(workers=1))
        backward = index_files(list(reversed(all_files(repo))), repo, IndexConfig(workers=1))

        assert backward.dependencies == forward.dependencies

    def test_unresolved_dependencies_can_be_dropped(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1, include_unresolved=False))

        assert result.dependencies
        assert all(d.to_id for d in result.dependencies)
        assert "render" not in {d.to_name for d in result.dependencies}

    def test_disabled_language_is_skipped(self, repo):
        result = index_files(all_files(repo), repo, IndexConfig(workers=1, languages=["python"]))

        assert {e.language for e in result.entities} == {"python"}

    def test_duplicate_paths_are_indexed_once(self, repo):
        result = index_files([repo / "models.py", repo / "models.py"], repo, IndexConfig(workers=2))

        assert [e.name for e in result.entities] == ["User", "load_user"]

    def test_undecodable_file_is_skipped(self, repo):
        bad = repo / "broken.py"
        bad.write_bytes(b"def f():\n    return '\xff\xfe'\n")

        result = index_files([bad, repo / "models.py"], repo, IndexConfig(workers=1))

        assert result.skipped == [bad.as_posix()]
        assert [e.name for e in result.entities] == ["User", "load_user"]

    def test_unsupported_extension_raises(self, repo):
        notes = repo / "notes.md"
        notes.write_text("# notes\n")

        with pytest.raises(UnsupportedLanguageError):
            index_files([notes, repo / "models.py"], repo, IndexConfig(workers=1))

    def test_config_is_loaded_from_root(self, repo):
        (repo / ".codeatlas").write_text("index:\n  workers: 2\n  languages: [go]\n")

        result = index_files(all_files(repo), repo)

        assert {e.name for e in result.entities} == {"Server", "Start"}
