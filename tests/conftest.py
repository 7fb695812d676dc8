"""Pytest configuration and fixtures for codecontext tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the user settings file at a throwaway location.

    Keeps tests from reading or writing ``~/.codecontext/config.toml``.
    """
    home = tmp_path_factory.mktemp("codecontext_home")
    monkeypatch.setattr("codecontext.config.BASE_DIR", home)
    monkeypatch.setattr("codecontext.config.CONFIG_FILE", home / "config.toml")
    return home / "config.toml"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path(temp_dir: Path) -> Path:
    """A writable copy of the TypeScript / Python sample project."""
    target = temp_dir / "sample_project"
    shutil.copytree(FIXTURES / "sample_project", target)
    return target


@pytest.fixture
def write_files(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: content}`` under the temp dir and return it."""

    def _write(files: Dict[str, str]) -> Path:
        for rel, content in files.items():
            path = temp_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return temp_dir

    return _write


@pytest.fixture
def cyclic_project(write_files) -> Path:
    """Three TypeScript files importing each other in a ring."""
    return write_files({
        "a.ts": "import { b } from './b';\nexport const a = 1;\n",
        "b.ts": "import { c } from './c';\nexport const b = 2;\n",
        "c.ts": "import { a } from './a';\nexport const c = 3;\n",
    })
