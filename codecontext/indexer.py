"""Inverted-index keyword search over files, definitions and comments.

Every indexed file contributes one ``file`` item, one item per extracted
definition and one item per comment.  The indexer owns both the item map
(keyed by a stable id) and the token -> id inverted index, and keeps the two
in step on every insert and delete.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from . import config as defaults
from .discovery import list_source_files, read_text, relative_posix
from .extractor import DefinitionExtractor
from .models import Comment, Definition, DefinitionKind, IndexConfig, IndexedItem, SearchResult

logger = logging.getLogger(__name__)

INDEX_FORMAT_VERSION = 1
MAX_HIGHLIGHTS = 5
EXACT_MATCH_BOOST = 0.5

STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "need",
    "this", "that", "these", "those", "it", "its", "if", "then", "else",
    "when", "where", "why", "how", "all", "each", "every", "both", "few",
    "more", "most", "other", "some", "such", "no", "nor", "not", "only",
    "own", "same", "so", "than", "too", "very", "just", "also",
})

# Definition kinds that become searchable items; imports and re-exports do not
_INDEXED_KINDS = {
    DefinitionKind.FUNCTION,
    DefinitionKind.CLASS,
    DefinitionKind.INTERFACE,
    DefinitionKind.TYPE_ALIAS,
    DefinitionKind.VARIABLE,
}

_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_STRING_RE = re.compile(r"['\"`][^'\"`]*['\"`]")
_SPLIT_RE = re.compile(r"[^a-z0-9_]+")


def item_id(key: str) -> str:
    """Stable 16-hex-char id derived from an item key."""
    return hashlib.md5(key.encode("utf-8")).hexdigest()[:16]


def similarity(query_tokens: Iterable[str], item_tokens: Iterable[str]) -> float:
    """Jaccard similarity plus a flat boost per shared token.

    The boost means an item sharing more query tokens always outranks one
    sharing fewer, and scores are not bounded by 1.
    """
    query = set(query_tokens)
    tokens = set(item_tokens)
    if not query or not tokens:
        return 0.0
    shared = len(query & tokens)
    return shared / len(query | tokens) + shared * EXACT_MATCH_BOOST


def find_highlights(content: str, query_tokens: Iterable[str]) -> List[str]:
    """Up to five distinct trimmed lines containing a query token, in order."""
    tokens = list(query_tokens)
    highlights: List[str] = []
    for line in content.split("\n"):
        lowered = line.lower()
        if not any(token in lowered for token in tokens):
            continue
        trimmed = line.strip()
        if trimmed and trimmed not in highlights:
            highlights.append(trimmed)
            if len(highlights) >= MAX_HIGHLIGHTS:
                break
    return highlights


class SemanticIndexer:
    """Keyword index with Jaccard-style ranking.

    Usage::

        indexer = SemanticIndexer()
        indexer.index_directory(Path("./project"))
        for result in indexer.search("parse config", limit=5):
            print(result.item.file_path, result.score)
    """

    def __init__(
        self,
        config: Optional[IndexConfig] = None,
        extractor: Optional[DefinitionExtractor] = None,
    ) -> None:
        self.config = config or IndexConfig()
        self.extractor = extractor or DefinitionExtractor()
        self._items: Dict[str, IndexedItem] = {}
        self._inverted: Dict[str, Set[str]] = {}

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------
    # Tokenization
    # ------------------------------------------------------------------

    def tokenize(self, content: str) -> FrozenSet[str]:
        cleaned = _LINE_COMMENT_RE.sub("", content)
        cleaned = _BLOCK_COMMENT_RE.sub("", cleaned)
        cleaned = _STRING_RE.sub("", cleaned)
        lo, hi = self.config.min_token_length, self.config.max_token_length
        return frozenset(
            word for word in _SPLIT_RE.split(cleaned.lower())
            if lo <= len(word) <= hi and word not in STOP_WORDS
        )

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index_file(self, path: Path, display_path: Optional[str] = None) -> List[IndexedItem]:
        """Index one file, replacing anything previously indexed for it.

        Definitions are keyed by file and name, so two methods with the same
        name in one file collapse into a single item holding the later one.
        Returns the items actually stored.
        """
        path = Path(path)
        file_path = display_path or path.as_posix()
        content = read_text(path)
        if content is None:
            return []
        try:
            modified = path.stat().st_mtime
        except OSError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return []
        items = self._build_items(
            file_path,
            content,
            self.extractor.extract(content, file_path),
            self.extractor.extract_comments(content, file_path),
            modified,
        )
        self._replace_file(file_path, items)
        return items

    def index_directory(
        self,
        path: Path,
        patterns: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        max_workers: int = 1,
    ) -> int:
        """Index every matching file under *path*; returns the item count added."""
        root = Path(path).resolve()
        files = list_source_files(
            root,
            list(patterns or defaults.SEARCH_SOURCE_PATTERNS),
            defaults.SEARCH_EXCLUDE_PATTERNS if exclude is None else list(exclude),
        )

        def prepare(file: Path) -> Optional[Tuple[str, List[IndexedItem]]]:
            rel = relative_posix(file, root)
            content = read_text(file)
            if content is None:
                return None
            try:
                modified = file.stat().st_mtime
            except OSError as exc:
                logger.warning("Skipping %s: %s", file, exc)
                return None
            return rel, self._build_items(
                rel,
                content,
                self.extractor.extract(content, rel),
                self.extractor.extract_comments(content, rel),
                modified,
            )

        if max_workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                prepared = list(pool.map(prepare, files))
        else:
            prepared = [prepare(f) for f in files]

        count = 0
        for entry in prepared:
            if entry is None:
                continue
            rel, items = entry
            self._replace_file(rel, items)
            count += len(items)
        logger.info("Indexed %d items from %d files under %s", count, len(files), root)
        return count

    def add_item(self, item: IndexedItem) -> None:
        """Insert *item*, replacing any item with the same id."""
        if item.id in self._items:
            self._remove(item.id)
        self._items[item.id] = item
        for token in item.tokens:
            self._inverted.setdefault(token, set()).add(item.id)

    def remove_file(self, file_path: str) -> int:
        ids = [item.id for item in self._items.values() if item.file_path == file_path]
        for id_ in ids:
            self._remove(id_)
        return len(ids)

    def clear(self) -> None:
        self._items.clear()
        self._inverted.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        limit: int = 10,
        kind: Optional[str] = None,
        file_path: Optional[str] = None,
        min_score: float = 0.0,
    ) -> List[SearchResult]:
        query_tokens = self.tokenize(query)
        if not query_tokens:
            return []

        candidate_ids: Set[str] = set()
        for token in query_tokens:
            candidate_ids.update(self._inverted.get(token, ()))

        results: List[SearchResult] = []
        for id_, item in self._items.items():
            if id_ not in candidate_ids:
                continue
            if kind and item.kind != kind:
                continue
            if file_path and file_path not in item.file_path:
                continue
            score = similarity(query_tokens, item.tokens)
            if score <= 0 or score < min_score:
                continue
            results.append(SearchResult(
                item=item,
                score=score,
                highlights=find_highlights(item.content, query_tokens),
            ))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def find_similar(self, file_path: str, line_start: int, line_end: int, limit: int = 5) -> List[SearchResult]:
        """Items resembling the tightest indexed item enclosing the line range."""
        enclosing = [
            item for item in self.find_by_file(file_path)
            if item.line_start <= line_start and item.line_end >= line_end
        ]
        if not enclosing:
            return []
        target = min(enclosing, key=lambda item: item.line_end - item.line_start)
        results = self.search(target.content, limit=limit + 1)
        return [r for r in results if r.item.id != target.id][:limit]

    def find_by_file(self, file_path: str) -> List[IndexedItem]:
        return [item for item in self._items.values() if item.file_path == file_path]

    def find_by_kind(self, kind: str) -> List[IndexedItem]:
        return [item for item in self._items.values() if item.kind == kind]

    def get(self, id_: str) -> Optional[IndexedItem]:
        return self._items.get(id_)

    def get_stats(self) -> Dict[str, int]:
        return {
            "item_count": len(self._items),
            "token_count": len(self._inverted),
            "files_indexed": len({item.file_path for item in self._items.values()}),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_index(self, path: Path) -> None:
        path = Path(path)
        payload = {
            "version": INDEX_FORMAT_VERSION,
            "config": asdict(self.config),
            "items": [item.to_dict() for item in self._items.values()],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload), encoding="utf-8")

    def load_index(self, path: Path) -> bool:
        """Replace the index with a saved one; False leaves it untouched."""
        path = Path(path)
        text = read_text(path)
        if text is None:
            return False
        try:
            payload = json.loads(text)
            loaded_config = IndexConfig(**payload.get("config", {}))
            items = [IndexedItem.from_dict(raw) for raw in payload["items"]]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring corrupt index %s: %s", path, exc)
            return False

        self.config = loaded_config
        self.clear()
        for item in items:
            self.add_item(item)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_items(
        self,
        file_path: str,
        content: str,
        definitions: Iterable[Definition],
        comments: Iterable[Comment],
        modified: float,
    ) -> List[IndexedItem]:
        lines = content.split("\n")
        items = [IndexedItem(
            id=item_id(file_path),
            kind="file",
            file_path=file_path,
            name=Path(file_path).name,
            content=content,
            tokens=self.tokenize(content),
            line_start=1,
            line_end=len(lines),
            metadata={
                "extension": Path(file_path).suffix.lower(),
                "size": len(content),
                "last_modified": modified,
            },
        )]

        for d in definitions:
            if d.kind not in _INDEXED_KINDS:
                continue
            body = "\n".join(lines[d.start_line - 1:d.end_line])
            items.append(IndexedItem(
                id=item_id(f"{file_path}:{d.name}"),
                kind=d.kind.value,
                file_path=file_path,
                name=d.name,
                content=body,
                tokens=self.tokenize(body),
                line_start=d.start_line,
                line_end=d.end_line,
                metadata=_definition_metadata(d),
            ))

        for comment in comments:
            items.append(IndexedItem(
                id=item_id(f"{file_path}:comment:{comment.line}"),
                kind="comment",
                file_path=file_path,
                name=f"comment-{comment.line}",
                content=comment.content,
                tokens=self.tokenize(comment.content),
                line_start=comment.line,
                line_end=comment.line,
                metadata={"is_block_comment": comment.is_block},
            ))

        # Same-named definitions in one file share an id; the later one wins
        unique: Dict[str, IndexedItem] = {}
        for item in items:
            unique[item.id] = item
        return list(unique.values())

    def _replace_file(self, file_path: str, items: List[IndexedItem]) -> None:
        self.remove_file(file_path)
        for item in items:
            self.add_item(item)

    def _remove(self, id_: str) -> None:
        item = self._items.pop(id_, None)
        if item is None:
            return
        for token in item.tokens:
            ids = self._inverted.get(token)
            if ids is None:
                continue
            ids.discard(id_)
            if not ids:
                del self._inverted[token]


def _definition_metadata(definition: Definition) -> Dict[str, Any]:
    meta = definition.metadata
    payload: Dict[str, Any] = {"signature": definition.signature}
    if meta.parameters:
        payload["parameters"] = [p.name for p in meta.parameters]
    if meta.return_type:
        payload["return_type"] = meta.return_type
    if meta.extends:
        payload["extends"] = meta.extends
    if meta.is_exported:
        payload["is_exported"] = True
    if definition.doc_comment:
        payload["doc_comment"] = definition.doc_comment
    return payload
