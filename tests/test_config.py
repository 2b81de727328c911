"""Tests for config module."""

from pathlib import Path
from tempfile import TemporaryDirectory

from codeatlas.config import IndexConfig, load_index_config


class TestIndexConfig:
    """Tests for IndexConfig dataclass."""

    def test_default_values(self):
        """Test that IndexConfig has correct default values."""
        config = IndexConfig()
        assert config.workers == 4
        assert config.include_unresolved is True
        assert config.languages == ["python", "typescript", "go"]

    def test_default_languages_are_not_shared(self):
        """Test that each config gets its own languages list."""
        first = IndexConfig()
        first.languages.append("rust")
        assert IndexConfig().languages == ["python", "typescript", "go"]


class TestLoadIndexConfig:
    """Tests for load_index_config function."""

    def test_no_config_file_returns_defaults(self):
        """Test that missing .codeatlas file returns default config."""
        with TemporaryDirectory() as tmpdir:
            assert load_index_config(Path(tmpdir)) == IndexConfig()

    def test_load_valid_config(self):
        """Test loading valid .codeatlas configuration file."""
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / ".codeatlas"
            config_path.write_text("""
index:
  workers: 2
  include_unresolved: false
  languages: [python]
""")

            config = load_index_config(Path(tmpdir))
            assert config.workers == 2
            assert config.include_unresolved is False
            assert config.languages == ["python"]

    def test_partial_config_uses_defaults(self):
        """Test that missing keys fall back to defaults."""
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text("index:\n  workers: 8\n")

            config = load_index_config(Path(tmpdir))
            assert config.workers == 8
            assert config.include_unresolved is True
            assert config.languages == ["python", "typescript", "go"]

    def test_invalid_yaml_returns_defaults(self):
        """Test that unparseable YAML returns default config."""
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text("index: [unclosed\n")
            assert load_index_config(Path(tmpdir)) == IndexConfig()

    def test_non_dict_yaml_returns_defaults(self):
        """Test that a YAML list or scalar returns default config."""
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text("- just\n- a list\n")
            assert load_index_config(Path(tmpdir)) == IndexConfig()

    def test_non_dict_index_section_returns_defaults(self):
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text("index: 5\n")
            assert load_index_config(Path(tmpdir)) == IndexConfig()

    def test_invalid_worker_count_returns_defaults(self):
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text("index:\n  workers: 0\n")
            assert load_index_config(Path(tmpdir)) == IndexConfig()

    def test_non_numeric_workers_returns_defaults(self):
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text("index:\n  workers: many\n")
            assert load_index_config(Path(tmpdir)) == IndexConfig()

    def test_other_sections_are_ignored(self):
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text("search:\n  max_results: 3\n")
            assert load_index_config(Path(tmpdir)) == IndexConfig()

    def test_quoted_boolean_returns_defaults(self):
        """Test that a quoted "false" is rejected rather than read as truthy."""
        with TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / ".codeatlas").write_text('index:\n  include_unresolved: "false"\n  workers: 2\n')

            config = load_index_config(Path(tmpdir))
            assert config == IndexConfig()
            assert config.include_unresolved is True
