"""Lexical definition extractor.

Definitions are found with ordered regular-expression rules over the raw
text rather than a grammar:

- Brace languages (TypeScript / JavaScript and friends) find the end of a
  block by counting ``{`` / ``}`` from the opening line.
- Indentation languages (Python) end a block at the first non-blank line
  whose indentation drops back to the definition's own level.

Brace counting does not skip braces inside string or comment literals, so a
literal such as ``"}"`` can end a block early.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .discovery import iter_source_files, read_text, relative_posix
from .models import Comment, Definition, DefinitionKind, DefinitionMetadata, ParameterInfo

logger = logging.getLogger(__name__)

BRACE_EXTENSIONS: Set[str] = {
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".java", ".go", ".rs", ".cs",
}
INDENT_EXTENSIONS: Set[str] = {".py", ".pyi"}

_RESERVED_WORDS: Set[str] = {
    "if", "else", "for", "while", "do", "switch", "case", "break", "continue",
    "return", "try", "catch", "finally", "throw", "new", "this", "super",
    "class", "function", "var", "let", "const", "import", "export", "default",
    "from", "async", "await", "yield", "true", "false", "null", "undefined",
    "typeof", "instanceof", "void", "delete", "with", "in", "of",
}


def line_of(content: str, offset: int) -> int:
    """1-based line number of *offset* in *content*."""
    return content.count("\n", 0, offset) + 1


def dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    seen: Set[str] = set()
    ordered: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return tuple(ordered)


def find_brace_block_end(lines: Sequence[str], start: int) -> int:
    """Index of the line closing the first ``{`` at or after line *start*.

    Indices are 0-based.  Returns *start* when no balanced block is found.
    """
    depth = 0
    opened = False
    for i in range(start, len(lines)):
        for char in lines[i]:
            if char == "{":
                depth += 1
                opened = True
            elif char == "}":
                depth -= 1
                if opened and depth == 0:
                    return i
    return start


def find_indent_block_end(lines: Sequence[str], start: int, header_end: Optional[int] = None) -> int:
    """Index of the last non-blank line indented deeper than line *start*.

    A header wrapped over several lines is skipped by passing the index of
    its last line as *header_end*.  Returns the header's last line when the
    block has no body.
    """
    if start >= len(lines):
        return start
    base = len(lines[start]) - len(lines[start].lstrip())
    last = start if header_end is None else max(start, header_end)
    for i in range(last + 1, len(lines)):
        line = lines[i]
        if not line.strip():
            continue
        if len(line) - len(line.lstrip()) <= base:
            break
        last = i
    return last


def _definition_id(file_path: str, kind: DefinitionKind, name: str, line: int) -> str:
    return f"{file_path}#{kind.value}:{name}:{line}"


# ===================================================================
# Abstract extractor
# ===================================================================

class Extractor(ABC):
    """Base class for per-language-family rule sets."""

    extensions: Set[str] = set()

    def supports(self, file_path: str) -> bool:
        return Path(file_path).suffix.lower() in self.extensions

    @abstractmethod
    def extract(self, content: str, file_path: str) -> List[Definition]:
        """Return every definition found in *content*."""
        ...

    @abstractmethod
    def extract_comments(self, content: str) -> List[Comment]:
        """Return every comment in *content* with its 1-based line."""
        ...


# ===================================================================
# Brace languages
# ===================================================================

_FUNCTION_RE = re.compile(
    r"(?P<async>async\s+)?\bfunction\s*\*?\s*(?P<name>\w+)\s*(?:<[^>(]*>)?"
    r"\s*\((?P<params>[^)]*)\)(?:\s*:\s*(?P<ret>[^{;=\n]+))?"
)
_ARROW_RE = re.compile(
    r"\b(?:const|let|var)\s+(?P<name>\w+)\s*(?::\s*[^=\n]+)?=\s*(?P<async>async\s*)?"
    r"(?:\((?P<params>[^)]*)\)|(?P<single>\w+))\s*(?::\s*(?P<ret>[^=\n]+?))?\s*=>"
)
_METHOD_RE = re.compile(
    r"^(?P<indent>[ \t]+)(?P<mods>(?:(?:public|private|protected|static|readonly|async|override|abstract|get|set)\s+)*)"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*\((?P<params>[^)]*)\)(?:\s*:\s*(?P<ret>[^{;\n]+?))?\s*\{",
    re.MULTILINE,
)
_CLASS_RE = re.compile(
    r"\bclass\s+(?P<name>\w+)(?:<[^>{]*>)?"
    r"(?:\s+extends\s+(?P<extends>[\w.$]+)(?:<[^>{]*>)?)?"
    r"(?:\s+implements\s+(?P<implements>[^{]+))?\s*\{"
)
_INTERFACE_RE = re.compile(
    r"\binterface\s+(?P<name>\w+)(?:<[^>{]*>)?\s*(?:extends\s+(?P<extends>[^{]+?))?\s*\{"
)
_TYPE_ALIAS_RE = re.compile(r"\btype\s+(?P<name>\w+)(?:<[^>=]*>)?\s*=\s*[^;]+;")
_IMPORT_FROM_RE = re.compile(
    r"\bimport\s+(?:type\s+)?(?P<clause>[\w$*{}\s,]+?)\s+from\s+['\"](?P<module>[^'\"]+)['\"]"
)
_IMPORT_BARE_RE = re.compile(r"^[ \t]*import\s+['\"](?P<module>[^'\"]+)['\"]", re.MULTILINE)
_REQUIRE_RE = re.compile(r"\b(?:require|import)\s*\(\s*['\"](?P<module>[^'\"]+)['\"]\s*\)")
_REEXPORT_RE = re.compile(
    r"\bexport\s+(?:type\s+)?(?:\*(?:\s+as\s+\w+)?|\{(?P<names>[^}]*)\})\s*from\s+['\"](?P<module>[^'\"]+)['\"]"
)
_EXPORT_DECL_RE = re.compile(
    r"\bexport\s+(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:async\s+)?"
    r"(?P<keyword>function|class|const|let|var|interface|type|enum)\s*\*?\s*(?P<name>\w+)"
)
_EXPORT_LIST_RE = re.compile(r"\bexport\s*\{(?P<names>[^}]*)\}(?!\s*from)")

_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)

_EXPORT_KINDS: Dict[str, DefinitionKind] = {
    "function": DefinitionKind.FUNCTION,
    "class": DefinitionKind.CLASS,
    "interface": DefinitionKind.INTERFACE,
    "type": DefinitionKind.TYPE_ALIAS,
    "const": DefinitionKind.VARIABLE,
    "let": DefinitionKind.VARIABLE,
    "var": DefinitionKind.VARIABLE,
    "enum": DefinitionKind.VARIABLE,
}


def parse_parameters(params: str) -> Tuple[ParameterInfo, ...]:
    """Split a TypeScript-style ``name?: type = default`` parameter list."""
    if not params or not params.strip():
        return ()
    parsed: List[ParameterInfo] = []
    for raw in params.split(","):
        raw = raw.strip()
        if not raw:
            continue
        default: Optional[str] = None
        if "=" in raw:
            raw, default = (part.strip() for part in raw.split("=", 1))
        name, _, type_ = raw.partition(":")
        name = name.strip()
        optional = name.endswith("?") or default is not None
        parsed.append(ParameterInfo(
            name=name.rstrip("?"),
            type=type_.strip() or "any",
            optional=optional,
            default_value=default,
        ))
    return tuple(parsed)


def _names_in_braces(text: str) -> Tuple[str, ...]:
    names = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        # "a as b" binds b locally
        names.append(part.split(" as ")[-1].strip())
    return dedupe(names)


def _doc_comment_above(lines: Sequence[str], index: int) -> Optional[str]:
    """Return the ``/** ... */`` block that ends on the line above *index*."""
    i = index - 1
    if i < 0 or not lines[i].strip().endswith("*/"):
        return None
    collected: List[str] = []
    while i >= 0:
        stripped = lines[i].strip()
        collected.append(stripped)
        if stripped.startswith("/**"):
            break
        if stripped.startswith("/*"):
            return None
        i -= 1
    else:
        return None
    body = []
    for raw in reversed(collected):
        text = raw.removeprefix("/**").removesuffix("*/").strip()
        text = text.lstrip("*").strip()
        if text:
            body.append(text)
    return "\n".join(body) or None


class BraceLanguageExtractor(Extractor):
    """Rules for TypeScript, JavaScript and other ``{}``-scoped languages."""

    extensions = BRACE_EXTENSIONS

    def extract(self, content: str, file_path: str) -> List[Definition]:
        lines = content.split("\n")
        definitions: List[Definition] = []
        rules: List[Callable[[str, List[str], str], List[Definition]]] = [
            self._functions,
            self._arrow_functions,
            self._methods,
            self._classes,
            self._interfaces,
            self._type_aliases,
            self._imports,
            self._reexports,
        ]
        for rule in rules:
            try:
                definitions.extend(rule(content, lines, file_path))
            except Exception as exc:
                logger.debug("Rule %s failed on %s: %s", rule.__name__, file_path, exc)
                return definitions
        try:
            definitions = self._apply_exports(content, file_path, definitions)
        except Exception as exc:
            logger.debug("Export rule failed on %s: %s", file_path, exc)
        return definitions

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _functions(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _FUNCTION_RE.finditer(content):
            start = line_of(content, m.start())
            end = find_brace_block_end(lines, start - 1) + 1
            name = m.group("name")
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.FUNCTION, name, start),
                kind=DefinitionKind.FUNCTION,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=end,
                signature=f"function {name}({m.group('params').strip()})",
                doc_comment=_doc_comment_above(lines, start - 1),
                metadata=DefinitionMetadata(
                    parameters=parse_parameters(m.group("params")),
                    return_type=(m.group("ret") or "").strip() or None,
                    is_async=bool(m.group("async")),
                ),
            ))
        return found

    def _arrow_functions(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _ARROW_RE.finditer(content):
            start = line_of(content, m.start())
            eol = content.find("\n", m.end())
            rest = content[m.end(): eol if eol != -1 else len(content)]
            # Expression bodies end on the same line
            end = find_brace_block_end(lines, start - 1) + 1 if "{" in rest else start
            name = m.group("name")
            params = m.group("params") if m.group("params") is not None else (m.group("single") or "")
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.FUNCTION, name, start),
                kind=DefinitionKind.FUNCTION,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=end,
                signature=m.group(0).strip(),
                doc_comment=_doc_comment_above(lines, start - 1),
                metadata=DefinitionMetadata(
                    parameters=parse_parameters(params),
                    return_type=(m.group("ret") or "").strip() or None,
                    is_async=bool(m.group("async")),
                ),
            ))
        return found

    def _methods(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _METHOD_RE.finditer(content):
            name = m.group("name")
            if name in _RESERVED_WORDS:
                continue
            start = line_of(content, m.start("name"))
            end = find_brace_block_end(lines, start - 1) + 1
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.FUNCTION, name, start),
                kind=DefinitionKind.FUNCTION,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=end,
                signature=m.group(0).strip().rstrip("{").strip(),
                doc_comment=_doc_comment_above(lines, start - 1),
                metadata=DefinitionMetadata(
                    parameters=parse_parameters(m.group("params")),
                    return_type=(m.group("ret") or "").strip() or None,
                    is_async="async" in m.group("mods").split(),
                    is_method=True,
                ),
            ))
        return found

    def _classes(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _CLASS_RE.finditer(content):
            start = line_of(content, m.start())
            name = m.group("name")
            implements = tuple(
                part.strip().split("<")[0]
                for part in (m.group("implements") or "").split(",")
                if part.strip()
            )
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.CLASS, name, start),
                kind=DefinitionKind.CLASS,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=find_brace_block_end(lines, start - 1) + 1,
                signature=m.group(0).rstrip("{").strip(),
                doc_comment=_doc_comment_above(lines, start - 1),
                metadata=DefinitionMetadata(extends=m.group("extends"), implements=implements),
            ))
        return found

    def _interfaces(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _INTERFACE_RE.finditer(content):
            start = line_of(content, m.start())
            name = m.group("name")
            parents = [p.strip().split("<")[0] for p in (m.group("extends") or "").split(",") if p.strip()]
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.INTERFACE, name, start),
                kind=DefinitionKind.INTERFACE,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=find_brace_block_end(lines, start - 1) + 1,
                signature=m.group(0).rstrip("{").strip(),
                doc_comment=_doc_comment_above(lines, start - 1),
                metadata=DefinitionMetadata(
                    extends=parents[0] if parents else None,
                    implements=tuple(parents[1:]),
                ),
            ))
        return found

    def _type_aliases(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _TYPE_ALIAS_RE.finditer(content):
            start = line_of(content, m.start())
            name = m.group("name")
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.TYPE_ALIAS, name, start),
                kind=DefinitionKind.TYPE_ALIAS,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=start + m.group(0).count("\n"),
                signature=m.group(0),
                doc_comment=_doc_comment_above(lines, start - 1),
            ))
        return found

    def _imports(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        matches: List[Tuple[int, str, Tuple[str, ...], Optional[str]]] = []
        for m in _IMPORT_FROM_RE.finditer(content):
            clause = m.group("clause")
            named: Tuple[str, ...] = ()
            default: Optional[str] = None
            brace = re.search(r"\{([^}]*)\}", clause)
            if brace:
                named = _names_in_braces(brace.group(1))
            namespace = re.search(r"\*\s+as\s+(\w+)", clause)
            if namespace:
                named = named + (namespace.group(1),)
            head = clause.split("{")[0].split(",")[0].strip()
            if head and head != "*" and re.fullmatch(r"[\w$]+", head):
                default = head
            matches.append((m.start(), m.group("module"), named, default))
        for pattern in (_IMPORT_BARE_RE, _REQUIRE_RE):
            for m in pattern.finditer(content):
                matches.append((m.start(), m.group("module"), (), None))

        found = []
        seen: Set[str] = set()
        for offset, module, named, default in sorted(matches, key=lambda t: t[0]):
            if module in seen:
                continue
            seen.add(module)
            start = line_of(content, offset)
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.IMPORT, module, start),
                kind=DefinitionKind.IMPORT,
                name=module,
                file_path=file_path,
                start_line=start,
                end_line=start,
                signature=lines[start - 1].strip() if start - 1 < len(lines) else None,
                dependencies=dedupe([module]),
                metadata=DefinitionMetadata(
                    module_path=module,
                    named_imports=named,
                    default_import=default,
                ),
            ))
        return found

    def _reexports(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        seen: Set[str] = set()
        for m in _REEXPORT_RE.finditer(content):
            module = m.group("module")
            if module in seen:
                continue
            seen.add(module)
            start = line_of(content, m.start())
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.EXPORT, module, start),
                kind=DefinitionKind.EXPORT,
                name=module,
                file_path=file_path,
                start_line=start,
                end_line=start,
                signature=m.group(0),
                dependencies=dedupe([module]),
                metadata=DefinitionMetadata(
                    module_path=module,
                    named_imports=_names_in_braces(m.group("names") or ""),
                    is_exported=True,
                    is_reexport=True,
                ),
            ))
        return found

    def _apply_exports(
        self,
        content: str,
        file_path: str,
        definitions: List[Definition],
    ) -> List[Definition]:
        """Flag exported definitions; add plain exported variables."""
        exported_at: Dict[Tuple[str, int], str] = {}
        for m in _EXPORT_DECL_RE.finditer(content):
            exported_at[(m.group("name"), line_of(content, m.start()))] = m.group("keyword")
        exported_names: Set[str] = set()
        for m in _EXPORT_LIST_RE.finditer(content):
            exported_names.update(_names_in_braces(m.group("names")))

        if not exported_at and not exported_names:
            return definitions

        covered: Set[Tuple[str, int]] = set()
        result: List[Definition] = []
        for d in definitions:
            key = (d.name, d.start_line)
            if d.kind not in (DefinitionKind.IMPORT, DefinitionKind.EXPORT) and (
                key in exported_at or d.name in exported_names
            ):
                covered.add(key)
                d = replace(d, metadata=replace(d.metadata, is_exported=True))
            result.append(d)

        for (name, line), keyword in exported_at.items():
            if (name, line) in covered:
                continue
            kind = _EXPORT_KINDS[keyword]
            result.append(Definition(
                id=_definition_id(file_path, kind, name, line),
                kind=kind,
                name=name,
                file_path=file_path,
                start_line=line,
                end_line=line,
                metadata=DefinitionMetadata(is_exported=True),
            ))
        return result

    def extract_comments(self, content: str) -> List[Comment]:
        comments = [
            Comment(content=m.group(0), line=line_of(content, m.start()), is_block=True)
            for m in _BLOCK_COMMENT_RE.finditer(content)
        ]
        comments.extend(
            Comment(content=m.group(0), line=line_of(content, m.start()), is_block=False)
            for m in _LINE_COMMENT_RE.finditer(content)
        )
        return comments


# ===================================================================
# Indentation languages
# ===================================================================

# Argument lists may wrap lines and hold one level of nested calls: f(x=Path("."))
_PY_ARGS = r"(?:[^()]|\([^()]*\))*"
_PY_DEF_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<async>async\s+)?def\s+(?P<name>\w+)\s*\((?P<params>" + _PY_ARGS + r")\)"
    r"\s*(?:->\s*(?P<ret>[^:]+))?:",
    re.MULTILINE,
)
_PY_CLASS_RE = re.compile(
    r"^(?P<indent>[ \t]*)class\s+(?P<name>\w+)\s*(?:\((?P<bases>" + _PY_ARGS + r")\))?\s*:",
    re.MULTILINE,
)
_PY_IMPORT_RE = re.compile(r"^[ \t]*import\s+(?P<modules>[\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*)", re.MULTILINE)
_PY_FROM_RE = re.compile(
    r"^[ \t]*from\s+(?P<module>\.+[\w.]*|[\w.]+)\s+import\s+(?P<names>\([^)]*\)|[^\n#]+)",
    re.MULTILINE,
)
_PY_VARIABLE_RE = re.compile(r"^(?P<name>[A-Za-z_]\w*)\s*(?::\s*[^=\n]+)?=(?!=)", re.MULTILINE)
_PY_COMMENT_RE = re.compile(r"#.*$", re.MULTILINE)
_PY_DOCSTRING_RE = re.compile(r"^\s*[rRuUbB]?(?:\"\"\"|''')\s*(?P<first>[^\n]*?)\s*(?:\"\"\"|''')?\s*$")


def split_top_level(text: str) -> List[str]:
    """Split on commas that are not inside brackets."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for char in text:
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def parse_python_parameters(params: str) -> Tuple[ParameterInfo, ...]:
    if not params or not params.strip():
        return ()
    parsed: List[ParameterInfo] = []
    for raw in split_top_level(params):
        raw = raw.strip()
        if not raw or raw in ("*", "/"):
            continue
        default: Optional[str] = None
        if "=" in raw:
            raw, default = (part.strip() for part in raw.split("=", 1))
        name, _, annotation = raw.partition(":")
        parsed.append(ParameterInfo(
            name=name.strip(),
            type=annotation.strip() or "any",
            optional=default is not None,
            default_value=default,
        ))
    return tuple(parsed)


class IndentLanguageExtractor(Extractor):
    """Rules for Python-like, indentation-scoped sources."""

    extensions = INDENT_EXTENSIONS

    def extract(self, content: str, file_path: str) -> List[Definition]:
        lines = content.split("\n")
        definitions: List[Definition] = []
        class_spans: List[Tuple[int, int, int]] = []
        try:
            classes = self._classes(content, lines, file_path)
            definitions.extend(classes)
            for d in classes:
                indent = len(lines[d.start_line - 1]) - len(lines[d.start_line - 1].lstrip())
                class_spans.append((d.start_line, d.end_line, indent))
            definitions.extend(self._functions(content, lines, file_path, class_spans))
            definitions.extend(self._variables(content, lines, file_path))
            definitions.extend(self._imports(content, lines, file_path))
        except Exception as exc:
            logger.debug("Python rules failed on %s: %s", file_path, exc)
        return definitions

    def _docstring(self, content: str, lines: List[str], header_end: int) -> Optional[str]:
        body_index = line_of(content, header_end)
        for line in lines[body_index:]:
            if not line.strip():
                continue
            m = _PY_DOCSTRING_RE.match(line)
            if m is None:
                return None
            return m.group("first") or None
        return None

    def _classes(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _PY_CLASS_RE.finditer(content):
            start = line_of(content, m.start("name"))
            name = m.group("name")
            bases = [
                b.strip() for b in split_top_level(m.group("bases") or "")
                if b.strip() and "=" not in b
            ]
            header_end = line_of(content, m.end()) - 1
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.CLASS, name, start),
                kind=DefinitionKind.CLASS,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=find_indent_block_end(lines, start - 1, header_end) + 1,
                signature=" ".join(m.group(0).split()),
                doc_comment=self._docstring(content, lines, m.end()),
                metadata=DefinitionMetadata(
                    extends=bases[0] if bases else None,
                    implements=tuple(bases[1:]),
                ),
            ))
        return found

    def _functions(
        self,
        content: str,
        lines: List[str],
        file_path: str,
        class_spans: List[Tuple[int, int, int]],
    ) -> List[Definition]:
        found = []
        for m in _PY_DEF_RE.finditer(content):
            start = line_of(content, m.start("name"))
            name = m.group("name")
            indent = len(m.group("indent").expandtabs())
            is_method = any(
                c_start < start <= c_end and c_indent < indent
                for c_start, c_end, c_indent in class_spans
            )
            prefix = "async def" if m.group("async") else "def"
            header_end = line_of(content, m.end()) - 1
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.FUNCTION, name, start),
                kind=DefinitionKind.FUNCTION,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=find_indent_block_end(lines, start - 1, header_end) + 1,
                signature=f"{prefix} {name}({' '.join(m.group('params').split())}):",
                doc_comment=self._docstring(content, lines, m.end()),
                metadata=DefinitionMetadata(
                    parameters=parse_python_parameters(m.group("params")),
                    return_type=(m.group("ret") or "").strip() or None,
                    is_async=bool(m.group("async")),
                    is_method=is_method,
                ),
            ))
        return found

    def _variables(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        found = []
        for m in _PY_VARIABLE_RE.finditer(content):
            name = m.group("name")
            start = line_of(content, m.start())
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.VARIABLE, name, start),
                kind=DefinitionKind.VARIABLE,
                name=name,
                file_path=file_path,
                start_line=start,
                end_line=start,
                signature=lines[start - 1].strip(),
                metadata=DefinitionMetadata(is_exported=not name.startswith("_")),
            ))
        return found

    def _imports(self, content: str, lines: List[str], file_path: str) -> List[Definition]:
        matches: List[Tuple[int, str, Tuple[str, ...], Tuple[str, ...]]] = []
        for m in _PY_IMPORT_RE.finditer(content):
            for part in m.group("modules").split(","):
                module = part.strip().split()[0]
                matches.append((m.start(), module, (), (module,)))
        for m in _PY_FROM_RE.finditer(content):
            module = m.group("module")
            names = _names_in_braces(m.group("names").strip().strip("()").replace("\n", " "))
            if module.strip("."):
                deps: Tuple[str, ...] = (module,)
            else:
                # "from . import a, b" refers to sibling modules a and b
                deps = tuple(module + n for n in names if n != "*")
            matches.append((m.start(), module, names, deps))

        found = []
        seen: Set[str] = set()
        for offset, module, names, deps in sorted(matches, key=lambda t: t[0]):
            if module in seen:
                continue
            seen.add(module)
            start = line_of(content, offset)
            found.append(Definition(
                id=_definition_id(file_path, DefinitionKind.IMPORT, module, start),
                kind=DefinitionKind.IMPORT,
                name=module,
                file_path=file_path,
                start_line=start,
                end_line=start,
                signature=lines[start - 1].strip(),
                dependencies=dedupe(deps),
                metadata=DefinitionMetadata(module_path=module, named_imports=names),
            ))
        return found

    def extract_comments(self, content: str) -> List[Comment]:
        return [
            Comment(content=m.group(0), line=line_of(content, m.start()), is_block=False)
            for m in _PY_COMMENT_RE.finditer(content)
        ]


# ===================================================================
# Facade with per-process file cache
# ===================================================================

@dataclass
class _CacheEntry:
    content_hash: str
    timestamp: float
    definitions: List[Definition]


class DefinitionExtractor:
    """Selects the rule set by file extension and caches per-file results.

    Usage::

        extractor = DefinitionExtractor()
        defs = extractor.extract(source, "src/app.ts")
        defs = extractor.extract_file(Path("src/app.ts"))
    """

    def __init__(
        self,
        cache_ttl: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._extractors: List[Extractor] = [BraceLanguageExtractor(), IndentLanguageExtractor()]
        self._cache: Dict[Tuple[str, str], _CacheEntry] = {}

    def extractor_for(self, file_path: str) -> Optional[Extractor]:
        for extractor in self._extractors:
            if extractor.supports(file_path):
                return extractor
        return None

    def supports(self, file_path: str) -> bool:
        return self.extractor_for(file_path) is not None

    def extract(self, content: str, file_path: str) -> List[Definition]:
        extractor = self.extractor_for(file_path)
        if extractor is None:
            return []
        try:
            return extractor.extract(content, file_path)
        except Exception as exc:
            logger.debug("Extraction failed for %s: %s", file_path, exc)
            return []

    def extract_comments(self, content: str, file_path: str) -> List[Comment]:
        extractor = self.extractor_for(file_path)
        if extractor is None:
            return []
        try:
            return extractor.extract_comments(content)
        except Exception as exc:
            logger.debug("Comment extraction failed for %s: %s", file_path, exc)
            return []

    def extract_file(self, path: Path, display_path: Optional[str] = None) -> List[Definition]:
        """Read and extract *path*; unreadable files yield no definitions."""
        path = Path(path)
        label = display_path or str(path)
        key = (str(path.resolve()), label)
        now = self._clock()

        entry = self._cache.get(key)
        if entry is not None and now - entry.timestamp < self.cache_ttl:
            return list(entry.definitions)

        content = read_text(path)
        if content is None:
            self._cache.pop(key, None)
            return []

        digest = hashlib.md5(content.encode("utf-8")).hexdigest()
        if entry is not None and entry.content_hash == digest:
            entry.timestamp = now
            return list(entry.definitions)

        definitions = self.extract(content, label)
        self._cache[key] = _CacheEntry(content_hash=digest, timestamp=now, definitions=definitions)
        return list(definitions)

    def extract_directory(
        self,
        root: Path,
        include: Sequence[str],
        exclude: Optional[Sequence[str]] = None,
    ) -> List[Definition]:
        definitions: List[Definition] = []
        for path in iter_source_files(root, include, exclude):
            definitions.extend(self.extract_file(path, relative_posix(path, root)))
        return definitions

    @staticmethod
    def find_by_name(definitions: Iterable[Definition], name: str) -> List[Definition]:
        return [d for d in definitions if d.name == name]

    @staticmethod
    def find_by_kind(definitions: Iterable[Definition], kind: DefinitionKind) -> List[Definition]:
        return [d for d in definitions if d.kind == kind]

    def clear_cache(self) -> None:
        self._cache.clear()
