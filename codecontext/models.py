"""Core data models shared by extraction, graph, indexing and context layers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


# ===================================================================
# Definitions
# ===================================================================

class DefinitionKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE_ALIAS = "type-alias"
    VARIABLE = "variable"
    IMPORT = "import"
    EXPORT = "export"


@dataclass(frozen=True)
class ParameterInfo:
    name: str
    type: str = "any"
    optional: bool = False
    default_value: Optional[str] = None


@dataclass(frozen=True)
class DefinitionMetadata:
    """Optional facts about a definition; unused fields stay at their defaults."""

    parameters: Tuple[ParameterInfo, ...] = ()
    return_type: Optional[str] = None
    extends: Optional[str] = None
    implements: Tuple[str, ...] = ()
    is_async: bool = False
    is_exported: bool = False
    is_method: bool = False
    module_path: Optional[str] = None
    named_imports: Tuple[str, ...] = ()
    default_import: Optional[str] = None
    is_reexport: bool = False


@dataclass(frozen=True)
class Definition:
    id: str
    kind: DefinitionKind
    name: str
    file_path: str
    start_line: int
    end_line: int
    signature: Optional[str] = None
    dependencies: Tuple[str, ...] = ()
    doc_comment: Optional[str] = None
    metadata: DefinitionMetadata = field(default_factory=DefinitionMetadata)


@dataclass(frozen=True)
class Comment:
    content: str
    line: int
    is_block: bool


# ===================================================================
# Dependency graph
# ===================================================================

class DependencyEdgeKind(str, Enum):
    IMPORTS = "imports"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    CALLS = "calls"
    USES = "uses"
    EXPORTS = "exports"


@dataclass
class DependencyNode:
    id: str
    file_path: str
    name: str
    kind: str = "file"
    incoming_edges: int = 0
    outgoing_edges: int = 0
    size: int = 0


@dataclass
class DependencyEdge:
    source: str
    target: str
    kind: DependencyEdgeKind
    weight: int = 1
    file_path: str = ""
    line: Optional[int] = None


@dataclass
class GraphMetrics:
    total_nodes: int = 0
    total_edges: int = 0
    average_degree: float = 0.0
    max_depth: int = 0
    cycle_count: int = 0
    density: float = 0.0


@dataclass
class CircularDependency:
    path: List[str]
    files: List[str]


@dataclass
class DependencyGraph:
    nodes: List[DependencyNode]
    edges: List[DependencyEdge]
    strongly_connected_components: List[List[str]]
    has_cycles: bool
    metrics: GraphMetrics

    def node(self, node_id: str) -> Optional[DependencyNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def successors(self, node_id: str) -> List[str]:
        return [e.target for e in self.edges if e.source == node_id]

    def find_circular_dependencies(self) -> List[CircularDependency]:
        return [
            CircularDependency(path=list(component), files=list(component))
            for component in self.strongly_connected_components
        ]

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for edge in payload["edges"]:
            edge["kind"] = DependencyEdgeKind(edge["kind"]).value
        return payload


# ===================================================================
# Semantic index
# ===================================================================

ITEM_KINDS = ("file", "function", "class", "interface", "type-alias", "variable", "comment")


@dataclass
class IndexedItem:
    id: str
    kind: str
    file_path: str
    name: str
    content: str
    tokens: FrozenSet[str]
    line_start: int
    line_end: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "file_path": self.file_path,
            "name": self.name,
            "content": self.content,
            "tokens": sorted(self.tokens),
            "line_start": self.line_start,
            "line_end": self.line_end,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "IndexedItem":
        return cls(
            id=payload["id"],
            kind=payload["kind"],
            file_path=payload["file_path"],
            name=payload["name"],
            content=payload["content"],
            tokens=frozenset(payload["tokens"]),
            line_start=int(payload["line_start"]),
            line_end=int(payload["line_end"]),
            metadata=dict(payload.get("metadata") or {}),
        )


@dataclass
class SearchResult:
    item: IndexedItem
    score: float
    highlights: List[str] = field(default_factory=list)


@dataclass
class IndexConfig:
    chunk_size: int = 1000
    chunk_overlap: int = 100
    min_token_length: int = 2
    max_token_length: int = 50


# ===================================================================
# Context selection
# ===================================================================

@dataclass
class TokenBreakdown:
    code: int = 0
    comments: int = 0
    strings: int = 0
    whitespace: int = 0


@dataclass
class TokenEstimate:
    tokens: int
    characters: int
    lines: int
    breakdown: TokenBreakdown


@dataclass
class FileChunk:
    content: str
    file_path: str
    start_line: int
    end_line: int
    token_count: int
    relevance: float = 0.0


@dataclass
class SemanticIndexEntry:
    file_path: str
    symbols: List[str] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    last_modified: float = 0.0
    content_hash: str = ""


@dataclass
class FileRelevance:
    file_path: str
    score: float
    match_reasons: List[str] = field(default_factory=list)
    token_count: int = 0


@dataclass
class ContextSelectionOptions:
    query: str
    max_tokens: int
    include_patterns: Optional[List[str]] = None
    exclude_patterns: Optional[List[str]] = None
    prioritize_recent: bool = True
    min_relevance: float = 0.1


@dataclass
class ContextSelectionResult:
    files: List[FileRelevance]
    total_tokens: int
    truncated: bool
    chunking_required: bool
    skipped_files: List[str] = field(default_factory=list)


@dataclass
class SemanticMatch:
    file_path: str
    score: float
    context: str


@dataclass
class CacheStats:
    files_cached: int
    index_entries: int
    cache_size: str
