"""Tests for the lexical definition extractor."""

from pathlib import Path

import pytest

from codecontext.extractor import (
    DefinitionExtractor,
    find_brace_block_end,
    find_indent_block_end,
    parse_parameters,
)
from codecontext.indexer import SemanticIndexer
from codecontext.models import DefinitionKind


@pytest.fixture
def extractor() -> DefinitionExtractor:
    return DefinitionExtractor()


def _by_name(definitions, name):
    matches = [d for d in definitions if d.name == name]
    assert matches, f"{name} not extracted"
    return matches[0]


class TestBlockScans:
    """Tests for block end detection."""

    def test_brace_block_end(self):
        lines = ["function f() {", "  if (x) {", "  }", "}", "after"]
        assert find_brace_block_end(lines, 0) == 3

    def test_brace_block_unbalanced_returns_start(self):
        assert find_brace_block_end(["function f() {", "  return 1;"], 0) == 0

    def test_brace_inside_string_ends_block_early(self):
        lines = ["function f() {", "  const s = '}';", "  return s;", "}"]
        assert find_brace_block_end(lines, 0) == 1

    def test_indent_block_end(self):
        lines = ["def f():", "    x = 1", "", "    return x", "y = 2"]
        assert find_indent_block_end(lines, 0) == 3

    def test_indent_block_runs_to_end_of_file(self):
        assert find_indent_block_end(["def f():", "    pass"], 0) == 1


class TestTypeScriptExtraction:
    """Tests for brace-language rules."""

    def test_function_with_parameters(self, extractor):
        source = "export async function load(path: string, retries?: number = 3): Promise<string> {\n  return path;\n}\n"
        fn = _by_name(extractor.extract(source, "src/load.ts"), "load")

        assert fn.kind == DefinitionKind.FUNCTION
        assert (fn.start_line, fn.end_line) == (1, 3)
        assert fn.metadata.is_async
        assert fn.metadata.is_exported
        assert fn.metadata.return_type == "Promise<string>"
        assert [p.name for p in fn.metadata.parameters] == ["path", "retries"]
        assert fn.metadata.parameters[1].optional
        assert fn.metadata.parameters[1].default_value == "3"

    def test_arrow_function_expression_body(self, extractor):
        source = "const double = (n: number): number => n * 2;\n"
        fn = _by_name(extractor.extract(source, "math.ts"), "double")

        assert fn.kind == DefinitionKind.FUNCTION
        assert fn.start_line == fn.end_line == 1
        assert fn.metadata.return_type == "number"

    def test_class_methods_and_inheritance(self, extractor, sample_project_path: Path):
        source = (sample_project_path / "src/services/auth.ts").read_text()
        defs = extractor.extract(source, "src/services/auth.ts")

        cls = _by_name(defs, "AuthService")
        assert cls.kind == DefinitionKind.CLASS
        assert cls.metadata.extends == "BaseService"
        assert cls.metadata.implements == ("Disposable",)
        assert cls.metadata.is_exported
        assert cls.doc_comment == "Handles session tokens for users."
        assert (cls.start_line, cls.end_line) == (7, 23)

        login = _by_name(defs, "login")
        assert login.metadata.is_method
        assert login.metadata.is_async
        assert (login.start_line, login.end_line) == (10, 14)
        assert {"issueToken", "dispose"} <= {d.name for d in defs if d.metadata.is_method}

    def test_interface_and_type_alias(self, extractor, sample_project_path: Path):
        source = (sample_project_path / "src/models/user.ts").read_text()
        defs = extractor.extract(source, "src/models/user.ts")

        user = _by_name(defs, "User")
        assert user.kind == DefinitionKind.INTERFACE
        assert (user.start_line, user.end_line) == (1, 4)
        alias = _by_name(defs, "UserId")
        assert alias.kind == DefinitionKind.TYPE_ALIAS
        assert alias.metadata.is_exported

    def test_imports_are_deduplicated(self, extractor):
        source = (
            "import { a, b as c } from './mod';\n"
            "import Default from './other';\n"
            "import './side-effect';\n"
            "const x = require('./mod');\n"
        )
        imports = [d for d in extractor.extract(source, "x.ts") if d.kind == DefinitionKind.IMPORT]

        assert [d.name for d in imports] == ["./mod", "./other", "./side-effect"]
        assert imports[0].dependencies == ("./mod",)
        assert imports[0].metadata.named_imports == ("a", "c")
        assert imports[1].metadata.default_import == "Default"

    def test_reexport(self, extractor):
        defs = extractor.extract("export * from './format';\n", "index.ts")

        assert len(defs) == 1
        assert defs[0].kind == DefinitionKind.EXPORT
        assert defs[0].metadata.is_reexport
        assert defs[0].dependencies == ("./format",)

    def test_export_list_marks_definitions(self, extractor):
        source = "function helper() {\n  return 1;\n}\nexport { helper };\n"
        fn = _by_name(extractor.extract(source, "h.js"), "helper")
        assert fn.metadata.is_exported

    def test_comments(self, extractor):
        source = "/* block\n comment */\nconst a = 1; // trailing\n"
        comments = extractor.extract_comments(source, "a.ts")

        assert [(c.line, c.is_block) for c in comments] == [(1, True), (3, False)]
        assert comments[1].content == "// trailing"


class TestPythonExtraction:
    """Tests for indentation-language rules."""

    def test_classes_methods_and_functions(self, extractor, sample_project_path: Path):
        source = (sample_project_path / "lib/config.py").read_text()
        defs = extractor.extract(source, "lib/config.py")

        settings = _by_name(defs, "Settings")
        assert settings.kind == DefinitionKind.CLASS
        assert settings.start_line == 9
        assert settings.metadata.extends == "object"
        assert settings.doc_comment == "Runtime settings."

        init = _by_name(defs, "__init__")
        assert init.metadata.is_method
        assert init.metadata.parameters[1].default_value == "DEFAULT_TIMEOUT"

        load_settings = _by_name(defs, "load_settings")
        assert not load_settings.metadata.is_method
        assert (load_settings.start_line, load_settings.end_line) == (21, 22)

        timeout = _by_name(defs, "DEFAULT_TIMEOUT")
        assert timeout.kind == DefinitionKind.VARIABLE

    def test_imports(self, extractor, sample_project_path: Path):
        source = (sample_project_path / "lib/config.py").read_text()
        imports = [d for d in extractor.extract(source, "lib/config.py") if d.kind == DefinitionKind.IMPORT]

        assert [d.dependencies for d in imports] == [("os",), (".helpers",)]
        assert imports[1].metadata.named_imports == ("read_env",)

    def test_from_dot_import_names_sibling_modules(self, extractor):
        defs = extractor.extract("from . import alpha, beta\n", "pkg/mod.py")
        assert defs[0].dependencies == (".alpha", ".beta")

    def test_async_def_and_docstring(self, extractor):
        source = 'async def fetch(url: str) -> bytes:\n    """Fetch a URL."""\n    return b""\n'
        fn = _by_name(extractor.extract(source, "net.py"), "fetch")

        assert fn.metadata.is_async
        assert fn.metadata.return_type == "bytes"
        assert fn.doc_comment == "Fetch a URL."

    def test_wrapped_signature_includes_body(self, extractor):
        source = (
            "def handle(\n"
            "    request,\n"
            "    session,\n"
            ") -> int:\n"
            '    """Handle one request."""\n'
            "    token = session.issue(request)\n"
            "    return token\n"
            "\n"
            "\n"
            "def after():\n"
            "    pass\n"
        )
        handle = _by_name(extractor.extract(source, "app.py"), "handle")

        assert (handle.start_line, handle.end_line) == (1, 7)
        assert [p.name for p in handle.metadata.parameters] == ["request", "session"]
        assert handle.metadata.return_type == "int"
        assert handle.doc_comment == "Handle one request."

    def test_nested_calls_in_defaults_and_bases(self, extractor):
        source = (
            "from pathlib import Path\n"
            "\n"
            "\n"
            "def load(root=Path('.'), names=dict(a=1, b=2)):\n"
            "    return root\n"
            "\n"
            "\n"
            "class Point(namedtuple('Point', 'x y'), Mixin):\n"
            "    pass\n"
        )
        defs = extractor.extract(source, "geo.py")

        load = _by_name(defs, "load")
        assert (load.start_line, load.end_line) == (4, 5)
        assert [(p.name, p.default_value) for p in load.metadata.parameters] == [
            ("root", "Path('.')"),
            ("names", "dict(a=1, b=2)"),
        ]

        point = _by_name(defs, "Point")
        assert point.metadata.extends == "namedtuple('Point', 'x y')"
        assert point.metadata.implements == ("Mixin",)

    def test_wrapped_signature_is_searchable_by_body(self, temp_dir: Path):
        path = temp_dir / "app.py"
        path.write_text("def handle(\n    request,\n) -> int:\n    return refresh_session(request)\n")
        indexer = SemanticIndexer()
        indexer.index_file(path, display_path="app.py")

        results = indexer.search("refresh_session", kind="function")
        assert [r.item.name for r in results] == ["handle"]

    def test_hash_comments(self, extractor, sample_project_path: Path):
        source = (sample_project_path / "lib/config.py").read_text()
        comments = extractor.extract_comments(source, "lib/config.py")
        assert [c.line for c in comments] == [16]


class TestDefinitionExtractor:
    """Tests for the facade and its file cache."""

    def test_unknown_extension_yields_nothing(self, extractor):
        assert extractor.extract("function x() {}", "notes.txt") == []
        assert not extractor.supports("notes.txt")

    def test_extract_file_missing_returns_empty(self, extractor, temp_dir: Path):
        assert extractor.extract_file(temp_dir / "missing.ts") == []

    def test_extract_file_cache_respects_ttl(self, temp_dir: Path):
        now = [1000.0]
        extractor = DefinitionExtractor(cache_ttl=30, clock=lambda: now[0])
        path = temp_dir / "a.ts"
        path.write_text("function one() {}\n")
        assert [d.name for d in extractor.extract_file(path)] == ["one"]

        path.write_text("function two() {}\n")
        now[0] += 10
        assert [d.name for d in extractor.extract_file(path)] == ["one"]

        now[0] += 30
        assert [d.name for d in extractor.extract_file(path)] == ["two"]

    def test_extract_directory_uses_relative_paths(self, extractor, sample_project_path: Path):
        defs = extractor.extract_directory(sample_project_path, ["**/*.ts"])

        assert {d.file_path for d in defs} >= {"src/index.ts", "src/services/auth.ts"}
        assert DefinitionExtractor.find_by_name(defs, "main")[0].file_path == "src/index.ts"
        assert all(d.kind == DefinitionKind.CLASS for d in DefinitionExtractor.find_by_kind(defs, DefinitionKind.CLASS))


def test_indent_block_end_skips_wrapped_header():
    lines = ["def f(", "    a,", "):", "    return a", "x = 1"]
    assert find_indent_block_end(lines, 0) == 1
    assert find_indent_block_end(lines, 0, header_end=2) == 3
    assert find_indent_block_end(["def f(", "):", ""], 0, header_end=1) == 1


def test_parse_parameters_defaults_type_to_any():
    params = parse_parameters("a, b: string")
    assert [(p.name, p.type) for p in params] == [("a", "any"), ("b", "string")]
