"""Token-budgeted context selection for LLM prompts.

Includes:
- **Semantic summary**: a per-file record of functions, classes, imports,
  exports and domain keywords, cached on disk for an hour.
- **Relevance scoring**: a small additive score per file for a query, with an
  optional boost for recently modified files.
- **Budget selection**: greedy packing of the best files into ``max_tokens``
  and line-boundary chunking for files that are too large on their own.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from . import config
from .discovery import list_source_files, read_text, relative_posix
from .models import (
    CacheStats,
    ContextSelectionOptions,
    ContextSelectionResult,
    FileChunk,
    FileRelevance,
    SemanticIndexEntry,
    SemanticMatch,
    TokenEstimate,
)
from .tokens import estimate_tokens, line_cost

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CHUNK_BUDGET_RATIO = 0.8
DAY_SECONDS = 24 * 60 * 60

HIGH_VALUE_EXTENSIONS = (".ts", ".js", ".py", ".java")

KEYWORDS = (
    "async", "await", "promise", "callback", "event", "handler",
    "component", "hook", "state", "props", "context",
    "api", "request", "response", "endpoint",
    "database", "query", "mutation",
    "auth", "token", "session",
)

_RESERVED_WORDS: Set[str] = {
    "if", "else", "for", "while", "do", "switch", "case", "break", "continue",
    "return", "try", "catch", "finally", "throw", "new", "this", "super",
    "class", "function", "var", "let", "const", "import", "export", "default",
    "from", "async", "await", "yield", "true", "false", "null", "undefined",
}

_FUNCTION_PATTERNS = (
    re.compile(r"(?:function|def|fun|func)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)"),
    re.compile(r"(?:const|let|var)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)\s*="),
    re.compile(r"([a-zA-Z_$][a-zA-Z0-9_$]*)\s*\([^)]*\)\s*\{"),
)
_CLASS_PATTERN = re.compile(r"(?:class|interface)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)")
_IMPORT_PATTERNS = (
    re.compile(r"import\s+(?:\{[^}]*\}|\*)\s+from\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"import\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"from\s+['\"]([^'\"]+)['\"]"),
)
_EXPORT_PATTERNS = (
    re.compile(r"export\s+(?:const|let|var|function|class|interface)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)"),
    re.compile(r"export\s+\{\s*([^}]+)\s*\}"),
)


# ===================================================================
# Lightweight symbol summary
# ===================================================================

def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def extract_functions(content: str) -> List[str]:
    return _unique(
        m.group(1)
        for pattern in _FUNCTION_PATTERNS
        for m in pattern.finditer(content)
        if m.group(1) not in _RESERVED_WORDS
    )


def extract_classes(content: str) -> List[str]:
    return _unique(m.group(1) for m in _CLASS_PATTERN.finditer(content))


def extract_imports(content: str) -> List[str]:
    return _unique(m.group(1) for pattern in _IMPORT_PATTERNS for m in pattern.finditer(content))


def extract_exports(content: str) -> List[str]:
    names: List[str] = []
    for pattern in _EXPORT_PATTERNS:
        for m in pattern.finditer(content):
            names.extend(n.strip() for n in m.group(1).split(","))
    return _unique(n for n in names if n and n not in _RESERVED_WORDS)


def extract_keywords(content: str) -> List[str]:
    lowered = content.lower()
    return [keyword for keyword in KEYWORDS if keyword in lowered]


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def select_within_budget(candidates: Sequence[FileRelevance], max_tokens: int) -> ContextSelectionResult:
    """Greedily take *candidates* in order while they fit in *max_tokens*.

    A file that would overflow is skipped, not cut; later smaller files may
    still fit.
    """
    total = 0
    selected: List[FileRelevance] = []
    skipped: List[str] = []
    for candidate in candidates:
        if total + candidate.token_count <= max_tokens:
            selected.append(candidate)
            total += candidate.token_count
        else:
            skipped.append(candidate.file_path)
    return ContextSelectionResult(
        files=selected,
        total_tokens=total,
        truncated=len(selected) < len(candidates),
        chunking_required=total > max_tokens * CHUNK_BUDGET_RATIO,
        skipped_files=skipped,
    )


@dataclass
class _CachedFile:
    content: str
    content_hash: str
    timestamp: float


# ===================================================================
# ContextManager
# ===================================================================

class ContextManager:
    """Pick the files most relevant to a query within a token budget.

    Paths handed in may be absolute or relative to *root*; paths handed out
    are always root-relative posix strings.

    Usage::

        manager = ContextManager(Path("./project"))
        result = manager.select_relevant_files(
            ContextSelectionOptions(query="auth", max_tokens=8000)
        )
        for file in result.files:
            print(file.file_path, file.score, file.match_reasons)
    """

    def __init__(
        self,
        root: Path,
        cache_dir: Optional[Path] = None,
        file_cache_ttl: float = config.FILE_CACHE_TTL,
        index_cache_ttl: float = config.INDEX_CACHE_TTL,
        index_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = Path(root).resolve()
        self.cache_dir = Path(cache_dir) if cache_dir else self.root / config.CACHE_DIR_NAME
        self.file_cache_ttl = file_cache_ttl
        self.index_cache_ttl = index_cache_ttl
        self.index_patterns = list(index_patterns or config.INDEX_SOURCE_PATTERNS)
        self.exclude_patterns = list(
            config.DEFAULT_EXCLUDE_PATTERNS if exclude_patterns is None else exclude_patterns
        )
        self._clock = clock
        self._file_cache: Dict[str, _CachedFile] = {}
        self._semantic_index: Dict[str, SemanticIndexEntry] = {}
        self._index_built_at: Optional[float] = None
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    @property
    def index_path(self) -> Path:
        return self.cache_dir / config.SEMANTIC_INDEX_CACHE

    # ------------------------------------------------------------------
    # Token estimation
    # ------------------------------------------------------------------

    def estimate_tokens(self, content: str) -> TokenEstimate:
        return estimate_tokens(content)

    def estimate_file_tokens(self, path: PathLike) -> Optional[TokenEstimate]:
        content = self._read_cached(self._absolute(path))
        if content is None:
            return None
        return estimate_tokens(content)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_relevant_files(self, options: ContextSelectionOptions) -> ContextSelectionResult:
        include = options.include_patterns or config.DEFAULT_INCLUDE_PATTERNS
        exclude = (
            config.DEFAULT_EXCLUDE_PATTERNS
            if options.exclude_patterns is None
            else options.exclude_patterns
        )
        self.build_semantic_index()

        candidates: List[FileRelevance] = []
        for path in list_source_files(self.root, include, exclude):
            relevance = self.score_file_relevance(relative_posix(path, self.root), options.query)
            if relevance.score < options.min_relevance:
                continue
            content = self._read_cached(path)
            if content is None:
                continue
            relevance.token_count = estimate_tokens(content).tokens
            candidates.append(relevance)

        if options.prioritize_recent:
            boosted = {
                c.file_path: c.score * (1 + self.get_recency_bonus(c.file_path))
                for c in candidates
            }
            candidates.sort(key=lambda c: boosted[c.file_path], reverse=True)
        else:
            candidates.sort(key=lambda c: c.score, reverse=True)

        result = select_within_budget(candidates, options.max_tokens)
        logger.debug(
            "Selected %d/%d files (%d tokens) for '%s'",
            len(result.files), len(candidates), result.total_tokens, options.query,
        )
        return result

    def score_file_relevance(self, file_path: str, query: str) -> FileRelevance:
        """Additive relevance of one root-relative file for *query*, in [0, 1]."""
        lowered = query.lower()
        score = 0.0
        reasons: List[str] = []

        if lowered in file_path.lower():
            score += 0.3
            reasons.append("Path contains query")

        entry = self._semantic_index.get(file_path)
        if entry is not None:
            for func in entry.functions:
                if lowered in func.lower():
                    score += 0.4
                    reasons.append(f"Contains function: {func}")
                    break
            for imp in entry.imports:
                if lowered in imp.lower():
                    score += 0.2
                    reasons.append(f"Imports matching: {imp}")
            for keyword in entry.keywords:
                if lowered in keyword.lower():
                    score += 0.1
                    reasons.append(f"Contains keyword: {keyword}")

        if file_path.endswith(HIGH_VALUE_EXTENSIONS):
            score += 0.05

        return FileRelevance(file_path=file_path, score=min(score, 1.0), match_reasons=reasons)

    def get_recency_bonus(self, path: PathLike) -> float:
        try:
            age = self._clock() - self._absolute(path).stat().st_mtime
        except OSError:
            return 0.0
        if age < DAY_SECONDS:
            return 0.3
        if age < 7 * DAY_SECONDS:
            return 0.2
        if age < 30 * DAY_SECONDS:
            return 0.1
        return 0.0

    # ------------------------------------------------------------------
    # Semantic summary cache
    # ------------------------------------------------------------------

    def build_semantic_index(self) -> Dict[str, SemanticIndexEntry]:
        """Load the on-disk summary when fresh, otherwise rebuild and save it."""
        now = self._clock()
        if self._index_built_at is not None and now - self._index_built_at < self.index_cache_ttl:
            return self._semantic_index

        if self._load_semantic_index(now):
            return self._semantic_index

        self._semantic_index = {}
        for path in list_source_files(self.root, self.index_patterns, self.exclude_patterns):
            entry = self._summarize(path)
            if entry is not None:
                self._semantic_index[entry.file_path] = entry
        self._index_built_at = now
        self._save_semantic_index()
        logger.info("Built semantic summary for %d files", len(self._semantic_index))
        return self._semantic_index

    def semantic_search(
        self,
        query: str,
        files: Optional[Sequence[str]] = None,
        max_results: int = 10,
        min_score: float = 0.1,
    ) -> List[SemanticMatch]:
        self.build_semantic_index()
        lowered = query.lower()
        matches: List[SemanticMatch] = []

        for file_path in files if files is not None else list(self._semantic_index):
            entry = self._semantic_index.get(file_path)
            if entry is None:
                continue
            score = 0.0
            context = ""
            for func in entry.functions:
                if lowered in func.lower():
                    score += 0.5
                    context = f"Function: {func}"
            for cls in entry.classes:
                if lowered in cls.lower():
                    score += 0.4
                    context = f"Class: {cls}"
            for keyword in entry.keywords:
                if keyword == lowered:
                    score += 0.2
                    context = f"Keyword: {keyword}"
            if score >= min_score:
                matches.append(SemanticMatch(file_path=entry.file_path, score=min(score, 1.0), context=context))

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:max_results]

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------

    def split_large_file(self, path: PathLike, max_tokens: int) -> List[FileChunk]:
        """Split a file into line-aligned chunks of at most 80% of *max_tokens*.

        A single line costing more than the chunk budget becomes a chunk of
        its own.
        """
        absolute = self._absolute(path)
        content = self._read_cached(absolute)
        if content is None:
            return []
        file_path = relative_posix(absolute, self.root)
        budget = max_tokens * CHUNK_BUDGET_RATIO
        lines = content.split("\n")

        chunks: List[FileChunk] = []
        current: List[str] = []
        current_tokens = 0
        start_line = 1
        for number, line in enumerate(lines, start=1):
            cost = line_cost(line)
            if current and current_tokens + cost > budget:
                chunks.append(FileChunk(
                    content="\n".join(current),
                    file_path=file_path,
                    start_line=start_line,
                    end_line=number - 1,
                    token_count=current_tokens,
                ))
                current = []
                current_tokens = 0
                start_line = number
            current.append(line)
            current_tokens += cost

        if current:
            chunks.append(FileChunk(
                content="\n".join(current),
                file_path=file_path,
                start_line=start_line,
                end_line=len(lines),
                token_count=current_tokens,
            ))
        return chunks

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def invalidate_cache(self, path: Optional[PathLike] = None) -> None:
        """Forget cached state for one file, or for everything.

        A single invalidated file is re-read and re-summarized at once, so it
        keeps its relevance signals while the rest of the summary stays fresh.
        A file that no longer exists drops out of the summary.
        """
        if path is None:
            self._file_cache.clear()
            self._semantic_index.clear()
            self._index_built_at = None
            return
        absolute = self._absolute(path)
        self._file_cache.pop(str(absolute), None)
        key = relative_posix(absolute, self.root)
        if self._index_built_at is None:
            self._semantic_index.pop(key, None)
            return
        entry = self._summarize(absolute)
        if entry is None:
            self._semantic_index.pop(key, None)
        else:
            self._semantic_index[key] = entry
        self._save_semantic_index()

    def clear_cache(self) -> None:
        """Drop in-memory caches and delete every file in the cache directory."""
        self.invalidate_cache()
        if not self.cache_dir.is_dir():
            return
        for entry in self.cache_dir.iterdir():
            if entry.is_file():
                try:
                    entry.unlink()
                except OSError as exc:
                    logger.warning("Could not delete cache file %s: %s", entry, exc)

    def get_cache_stats(self) -> CacheStats:
        size = 0
        for path in self._file_cache:
            try:
                size += Path(path).stat().st_size
            except OSError:
                continue
        return CacheStats(
            files_cached=len(self._file_cache),
            index_entries=len(self._semantic_index),
            cache_size=format_bytes(size),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _absolute(self, path: PathLike) -> Path:
        path = Path(path)
        return (path if path.is_absolute() else self.root / path).resolve()

    def _read_cached(self, path: Path) -> Optional[str]:
        key = str(Path(path).resolve())
        now = self._clock()
        cached = self._file_cache.get(key)
        if cached is not None and now - cached.timestamp < self.file_cache_ttl:
            return cached.content

        content = read_text(Path(key))
        if content is None:
            self._file_cache.pop(key, None)
            return None
        self._file_cache[key] = _CachedFile(
            content=content,
            content_hash=hashlib.md5(content.encode("utf-8")).hexdigest(),
            timestamp=now,
        )
        return content

    def _summarize(self, path: Path) -> Optional[SemanticIndexEntry]:
        content = self._read_cached(path)
        if content is None:
            return None
        try:
            modified = path.stat().st_mtime
        except OSError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None
        functions = extract_functions(content)
        classes = extract_classes(content)
        return SemanticIndexEntry(
            file_path=relative_posix(path, self.root),
            symbols=functions + classes,
            imports=extract_imports(content),
            exports=extract_exports(content),
            functions=functions,
            classes=classes,
            keywords=extract_keywords(content),
            last_modified=modified,
            content_hash=hashlib.md5(content.encode("utf-8")).hexdigest(),
        )

    def _save_semantic_index(self) -> None:
        payload = {
            "timestamp": self._index_built_at,
            "entries": {key: asdict(entry) for key, entry in self._semantic_index.items()},
        }
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self.index_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write semantic index cache %s: %s", self.index_path, exc)

    def _load_semantic_index(self, now: float) -> bool:
        text = read_text(self.index_path)
        if text is None:
            return False
        try:
            cached = json.loads(text)
            timestamp = float(cached["timestamp"])
            entries = {key: SemanticIndexEntry(**value) for key, value in cached["entries"].items()}
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Rebuilding corrupt semantic index cache %s: %s", self.index_path, exc)
            return False
        if now - timestamp >= self.index_cache_ttl:
            return False
        self._semantic_index = entries
        self._index_built_at = timestamp
        return True
