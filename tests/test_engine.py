"""Tests for the engine facade wiring the components together."""

from pathlib import Path

from codecontext.config_manager import EngineSettings
from codecontext.engine import CodeContextEngine


def test_default_cache_dir_is_project_local(sample_project_path: Path):
    engine = CodeContextEngine(sample_project_path)

    assert engine.cache_dir == sample_project_path.resolve() / ".codecontext/cache"
    assert engine.cache_dir.is_dir()


def test_absolute_cache_dir(sample_project_path: Path, temp_dir: Path):
    cache = temp_dir / "elsewhere"
    engine = CodeContextEngine(sample_project_path, EngineSettings(cache_dir=str(cache)))

    assert engine.cache_dir == cache
    assert engine.context.index_path.parent == cache


def test_index_save_and_load(sample_project_path: Path):
    engine = CodeContextEngine(sample_project_path)
    assert engine.index() > 0
    saved = engine.save_index()

    fresh = CodeContextEngine(sample_project_path)
    assert fresh.load_index()
    assert saved == fresh.items_path
    assert [r.item.id for r in fresh.search("issuetoken")] == [r.item.id for r in engine.search("issuetoken")]


def test_index_skips_cache_directory(sample_project_path: Path):
    engine = CodeContextEngine(sample_project_path)
    engine.index()
    engine.save_index()

    engine.index()

    assert all(not item.file_path.startswith(".codecontext") for item in engine.indexer.find_by_kind("file"))


def test_settings_flow_into_components(sample_project_path: Path):
    settings = EngineSettings(max_workers=3, graph_patterns=["**/*.py"], min_relevance=0.5)
    engine = CodeContextEngine(sample_project_path, settings)

    graph = engine.build_graph()
    assert {n.id for n in graph.nodes} == {"lib/__init__.py", "lib/config.py", "lib/helpers.py"}

    result = engine.select_relevant_files("auth", 10_000, prioritize_recent=False)
    assert [f.file_path for f in result.files] == ["src/index.ts"]


def test_clear_cache(sample_project_path: Path):
    engine = CodeContextEngine(sample_project_path)
    engine.index()
    engine.save_index()

    engine.clear_cache()

    assert len(engine.indexer) == 0
    assert not engine.load_index()
