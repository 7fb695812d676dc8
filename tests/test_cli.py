"""Integration tests for CLI commands."""

from pathlib import Path

from typer.testing import CliRunner

from codecontext import __version__
from codecontext.cli import app
from codecontext.config_manager import load_engine_config

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"codecontext v{__version__}" in result.stdout


class TestIndexAndSearch:
    """Tests for 'index' and 'search'."""

    def test_index_project(self, sample_project_path: Path):
        result = runner.invoke(app, ["index", str(sample_project_path)])

        assert result.exit_code == 0
        assert "Indexed" in result.stdout
        assert "Files: 9" in result.stdout
        assert (sample_project_path / ".codecontext/cache/semantic-items.json").exists()

    def test_index_nonexistent_path(self):
        result = runner.invoke(app, ["index", "/nonexistent/path"])
        assert result.exit_code != 0

    def test_search_builds_index_on_demand(self, sample_project_path: Path):
        result = runner.invoke(
            app, ["search", "sessions", "--path", str(sample_project_path), "--kind", "function"]
        )

        assert result.exit_code == 0
        assert "[function] login" in result.stdout
        assert "src/services/auth.ts:" in result.stdout

    def test_search_uses_saved_index(self, sample_project_path: Path):
        runner.invoke(app, ["index", str(sample_project_path)])

        result = runner.invoke(app, ["search", "read_env", "--path", str(sample_project_path)])

        assert result.exit_code == 0
        assert "read_env" in result.stdout

    def test_search_no_matches(self, sample_project_path: Path):
        result = runner.invoke(app, ["search", "qwertyuiop", "--path", str(sample_project_path)])

        assert result.exit_code == 0
        assert "No matches found." in result.stdout

    def test_search_rejects_unknown_kind(self, sample_project_path: Path):
        result = runner.invoke(app, ["search", "x", "--path", str(sample_project_path), "--kind", "module"])
        assert result.exit_code != 0

    def test_search_rejects_missing_project(self):
        result = runner.invoke(app, ["search", "x", "--path", "/nonexistent/path"])
        assert result.exit_code != 0


class TestSelect:
    """Tests for 'select'."""

    def test_select_files(self, sample_project_path: Path):
        result = runner.invoke(
            app, ["select", "auth", "--path", str(sample_project_path), "--no-recent"]
        )

        assert result.exit_code == 0
        assert "Selected Files" in result.stdout
        assert "Total tokens:" in result.stdout
        assert "/ 8000" in result.stdout

    def test_select_over_budget(self, sample_project_path: Path):
        result = runner.invoke(
            app, ["select", "auth", "--path", str(sample_project_path), "--max-tokens", "1"]
        )

        assert result.exit_code == 0
        assert "No relevant file fits in 1 tokens" in result.stdout

    def test_select_nothing_relevant(self, sample_project_path: Path):
        result = runner.invoke(
            app, ["select", "qwertyuiop", "--path", str(sample_project_path)]
        )

        assert result.exit_code == 0
        assert "No relevant files found." in result.stdout


class TestGraphCommands:
    """Tests for 'graph' and 'cycles'."""

    def test_graph_dot(self, sample_project_path: Path):
        result = runner.invoke(app, ["graph", str(sample_project_path)])

        assert result.exit_code == 0
        assert "digraph DependencyGraph {" in result.stdout

    def test_graph_mermaid(self, sample_project_path: Path):
        result = runner.invoke(app, ["graph", str(sample_project_path), "--format", "mermaid"])

        assert result.exit_code == 0
        assert "graph LR" in result.stdout

    def test_graph_export(self, sample_project_path: Path, temp_dir: Path):
        output = temp_dir / "graph.json"
        result = runner.invoke(
            app, ["graph", str(sample_project_path), "--format", "json", "--output", str(output)]
        )

        assert result.exit_code == 0
        assert "Exported graph to" in result.stdout
        assert output.exists()

    def test_graph_rejects_unknown_format(self, sample_project_path: Path):
        result = runner.invoke(app, ["graph", str(sample_project_path), "--format", "svg"])
        assert result.exit_code != 0

    def test_cycles_found(self, cyclic_project: Path):
        result = runner.invoke(app, ["cycles", str(cyclic_project)])

        assert result.exit_code == 0
        assert "Cycle 1:" in result.stdout

    def test_no_cycles(self, sample_project_path: Path):
        result = runner.invoke(app, ["cycles", str(sample_project_path)])

        assert result.exit_code == 0
        assert "No circular dependencies found." in result.stdout


class TestFileCommands:
    """Tests for 'tokens', 'chunks' and 'clear-cache'."""

    def test_tokens(self, sample_project_path: Path):
        result = runner.invoke(app, ["tokens", str(sample_project_path / "src/index.ts")])

        assert result.exit_code == 0
        assert "Total:" in result.stdout
        assert "9 lines" in result.stdout

    def test_chunks(self, sample_project_path: Path):
        result = runner.invoke(
            app,
            [
                "chunks", str(sample_project_path / "src/services/auth.ts"),
                "--max-tokens", "50", "--path", str(sample_project_path),
            ],
        )

        assert result.exit_code == 0
        assert "Chunk 1: lines 1-" in result.stdout
        assert "Chunk 2:" in result.stdout

    def test_clear_cache(self, sample_project_path: Path):
        runner.invoke(app, ["index", str(sample_project_path)])

        result = runner.invoke(app, ["clear-cache", str(sample_project_path)])

        assert result.exit_code == 0
        assert "Cleared cache in" in result.stdout
        assert not (sample_project_path / ".codecontext/cache/semantic-items.json").exists()


class TestConfigCommands:
    """Tests for 'config show' and 'config set'."""

    def test_show_defaults(self):
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "max_workers" in result.stdout
        assert "Source: defaults" in result.stdout

    def test_set_value(self):
        result = runner.invoke(app, ["config", "set", "max_workers", "3"])

        assert result.exit_code == 0
        assert "Set max_workers = 3" in result.stdout
        assert load_engine_config()["max_workers"] == 3

    def test_set_unknown_key(self):
        result = runner.invoke(app, ["config", "set", "colour", "blue"])
        assert result.exit_code != 0

    def test_set_invalid_value(self):
        result = runner.invoke(app, ["config", "set", "max_workers", "many"])
        assert result.exit_code != 0
