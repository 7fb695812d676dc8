"""Engine value coordinating extraction, graph, indexing and context selection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from . import config
from .config_manager import EngineSettings
from .context_manager import ContextManager
from .dependency_graph import DependencyGraphBuilder
from .extractor import DefinitionExtractor
from .indexer import SemanticIndexer
from .models import (
    ContextSelectionOptions,
    ContextSelectionResult,
    DependencyGraph,
    FileChunk,
    SearchResult,
    TokenEstimate,
)
from .tokens import estimate_tokens

logger = logging.getLogger(__name__)


class CodeContextEngine:
    """Owns every component for one project root.

    Construct one per project and pass it to whatever needs it; nothing is
    created at import time.  The cache directory is created on construction.
    """

    def __init__(self, root: Path, settings: Optional[EngineSettings] = None):
        self.root = Path(root).resolve()
        self.settings = settings or EngineSettings()
        cache_dir = Path(self.settings.cache_dir)
        self.cache_dir = cache_dir if cache_dir.is_absolute() else self.root / cache_dir

        self.extractor = DefinitionExtractor(cache_ttl=self.settings.extractor_cache_ttl)
        self.graph_builder = DependencyGraphBuilder(
            extractor=self.extractor,
            include_patterns=self.settings.graph_patterns,
            exclude_patterns=self.settings.exclude_patterns,
            max_workers=self.settings.max_workers,
        )
        self.indexer = SemanticIndexer(extractor=self.extractor)
        self.context = ContextManager(
            self.root,
            cache_dir=self.cache_dir,
            file_cache_ttl=self.settings.file_cache_ttl,
            index_cache_ttl=self.settings.index_cache_ttl,
            exclude_patterns=self.settings.exclude_patterns,
        )

    @property
    def items_path(self) -> Path:
        return self.cache_dir / config.SEMANTIC_ITEMS_CACHE

    def index(self) -> int:
        return self.indexer.index_directory(
            self.root,
            patterns=self.settings.search_patterns,
            exclude=self.settings.exclude_patterns + config.SEARCH_EXTRA_EXCLUDES,
            max_workers=self.settings.max_workers,
        )

    def search(
        self,
        query: str,
        limit: int = 10,
        kind: Optional[str] = None,
        file_path: Optional[str] = None,
    ) -> List[SearchResult]:
        return self.indexer.search(query, limit=limit, kind=kind, file_path=file_path)

    def select_relevant_files(
        self,
        query: str,
        max_tokens: int,
        prioritize_recent: bool = True,
        min_relevance: Optional[float] = None,
    ) -> ContextSelectionResult:
        return self.context.select_relevant_files(ContextSelectionOptions(
            query=query,
            max_tokens=max_tokens,
            include_patterns=self.settings.include_patterns,
            exclude_patterns=self.settings.exclude_patterns,
            prioritize_recent=prioritize_recent,
            min_relevance=self.settings.min_relevance if min_relevance is None else min_relevance,
        ))

    def estimate_tokens(self, content: str) -> TokenEstimate:
        return estimate_tokens(content)

    def build_graph(self) -> DependencyGraph:
        return self.graph_builder.build(self.root)

    def split_large_file(self, path: Path, max_tokens: int) -> List[FileChunk]:
        return self.context.split_large_file(path, max_tokens)

    def save_index(self, path: Optional[Path] = None) -> Path:
        target = path or self.items_path
        self.indexer.save_index(target)
        return target

    def load_index(self, path: Optional[Path] = None) -> bool:
        return self.indexer.load_index(path or self.items_path)

    def invalidate_cache(self, path: Optional[Path] = None) -> None:
        self.context.invalidate_cache(path)
        if path is None:
            self.extractor.clear_cache()

    def clear_cache(self) -> None:
        self.context.clear_cache()
        self.extractor.clear_cache()
        self.indexer.clear()
        logger.debug("Cleared caches under %s", self.cache_dir)
