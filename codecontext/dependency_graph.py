"""File-level dependency graph with cycle detection and structural metrics.

The graph is rebuilt from scratch on every :meth:`DependencyGraphBuilder.build`
call.  One node is created per readable source file; edges come from the
import / re-export / inheritance references found by the definition
extractor.  References that cannot be resolved to a file inside the graph
(third-party packages, typos, generated code) are dropped without an error,
so import edges undercount external dependencies.
"""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from . import config
from .discovery import list_source_files, read_text, relative_posix
from .extractor import INDENT_EXTENSIONS, DefinitionExtractor
from .models import (
    Definition,
    DefinitionKind,
    DependencyEdge,
    DependencyEdgeKind,
    DependencyGraph,
    DependencyNode,
    GraphMetrics,
)

logger = logging.getLogger(__name__)

RESOLVE_EXTENSIONS: Tuple[str, ...] = (".ts", ".js", ".tsx", ".jsx", ".py", "/index.ts", "/index.js")
PYTHON_RESOLVE_EXTENSIONS: Tuple[str, ...] = (".py", "/__init__.py")
PACKAGE_DIR = "node_modules"
PACKAGE_MANIFEST = "package.json"


@dataclass
class _ScannedFile:
    path: Path
    rel_path: str
    size: int
    definitions: List[Definition]


# ===================================================================
# Graph algorithms
# ===================================================================

def tarjan_scc(adjacency: Dict[str, List[str]]) -> List[List[str]]:
    """Strongly connected components with more than one member.

    Iterative form of Tarjan's algorithm, so deep import chains cannot hit
    the interpreter recursion limit.  Self-loops are not reported.
    """
    index: Dict[str, int] = {}
    low: Dict[str, int] = {}
    stack: List[str] = []
    on_stack: Set[str] = set()
    components: List[List[str]] = []
    counter = 0

    for root in adjacency:
        if root in index:
            continue
        index[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(adjacency.get(root, ())))]

        while work:
            node, neighbors = work[-1]
            descended = False
            for nxt in neighbors:
                if nxt not in index:
                    index[nxt] = low[nxt] = counter
                    counter += 1
                    stack.append(nxt)
                    on_stack.add(nxt)
                    work.append((nxt, iter(adjacency.get(nxt, ()))))
                    descended = True
                    break
                if nxt in on_stack:
                    low[node] = min(low[node], index[nxt])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])

            if low[node] == index[node]:
                component: List[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1:
                    components.append(component)

    return components


def longest_path_depth(adjacency: Dict[str, List[str]]) -> int:
    """Longest simple path length (in edges) reachable from any node.

    Uses a DFS with a per-path visited set, which is exponential on dense
    graphs.  Source trees are sparse enough in practice.
    """

    def depth(node: str, visited: frozenset) -> int:
        if node in visited:
            return 0
        neighbors = adjacency.get(node, [])
        if not neighbors:
            return 0
        visited = visited | {node}
        return 1 + max(depth(n, visited) for n in neighbors)

    return max((depth(n, frozenset()) for n in adjacency), default=0)


def compute_metrics(
    node_count: int,
    edge_count: int,
    adjacency: Dict[str, List[str]],
    components: Sequence[Sequence[str]],
) -> GraphMetrics:
    max_edges = node_count * (node_count - 1) / 2
    return GraphMetrics(
        total_nodes=node_count,
        total_edges=edge_count,
        average_degree=(edge_count * 2) / node_count if node_count else 0.0,
        max_depth=longest_path_depth(adjacency),
        cycle_count=len(components),
        density=edge_count / max_edges if max_edges > 0 else 0.0,
    )


# ===================================================================
# Builder
# ===================================================================

class DependencyGraphBuilder:
    """Build a :class:`DependencyGraph` for a source directory.

    Usage::

        builder = DependencyGraphBuilder()
        graph = builder.build(Path("./project"))
        if graph.has_cycles:
            for cycle in graph.find_circular_dependencies():
                print(" -> ".join(cycle.files))
    """

    def __init__(
        self,
        extractor: Optional[DefinitionExtractor] = None,
        include_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None,
        max_workers: int = 1,
    ) -> None:
        self.extractor = extractor or DefinitionExtractor()
        self.include_patterns = list(include_patterns or config.GRAPH_SOURCE_PATTERNS)
        self.exclude_patterns = list(
            config.DEFAULT_EXCLUDE_PATTERNS if exclude_patterns is None else exclude_patterns
        )
        self.max_workers = max(1, max_workers)
        self._resolve_cache: Dict[Tuple[str, bool, str], Optional[Path]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, root_dir: Path) -> DependencyGraph:
        root = Path(root_dir).resolve()
        self._resolve_cache = {}

        files = list_source_files(root, self.include_patterns, self.exclude_patterns)
        scanned = self._scan(files, root)

        nodes: Dict[str, DependencyNode] = {}
        id_by_path: Dict[Path, str] = {}
        for item in scanned:
            nodes[item.rel_path] = DependencyNode(
                id=item.rel_path,
                file_path=item.rel_path,
                name=item.path.name,
                kind="file",
                size=item.size,
            )
            id_by_path[item.path] = item.rel_path

        symbols = self._symbol_table(scanned)
        edges: List[DependencyEdge] = []
        edge_keys: Set[Tuple[str, str, DependencyEdgeKind]] = set()
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in nodes}

        def add_edge(source: str, target: str, kind: DependencyEdgeKind, line: int) -> None:
            key = (source, target, kind)
            if key in edge_keys:
                return
            edge_keys.add(key)
            edges.append(DependencyEdge(
                source=source, target=target, kind=kind, weight=1,
                file_path=source, line=line,
            ))
            if target not in adjacency[source]:
                adjacency[source].append(target)

        for item in scanned:
            for definition in item.definitions:
                edge_kind = (
                    DependencyEdgeKind.EXPORTS
                    if definition.metadata.is_reexport
                    else DependencyEdgeKind.IMPORTS
                )
                for dependency in definition.dependencies:
                    resolved = self.resolve_dependency(item.path, dependency, root)
                    target = id_by_path.get(resolved) if resolved is not None else None
                    if target is None:
                        logger.debug("Unresolved '%s' in %s", dependency, item.rel_path)
                        continue
                    add_edge(item.rel_path, target, edge_kind, definition.start_line)

                for parent, kind in self._inheritance(definition):
                    target = symbols.get(parent)
                    if target is not None and target != item.rel_path:
                        add_edge(item.rel_path, target, kind, definition.start_line)

        for edge in edges:
            nodes[edge.source].outgoing_edges += 1
            nodes[edge.target].incoming_edges += 1

        components = tarjan_scc(adjacency)
        metrics = compute_metrics(len(nodes), len(edges), adjacency, components)
        logger.info(
            "Dependency graph for %s: %d nodes, %d edges, %d cycles",
            root, metrics.total_nodes, metrics.total_edges, metrics.cycle_count,
        )
        return DependencyGraph(
            nodes=list(nodes.values()),
            edges=edges,
            strongly_connected_components=components,
            has_cycles=bool(components),
            metrics=metrics,
        )

    def resolve_dependency(self, from_file: Path, dependency: str, root: Path) -> Optional[Path]:
        """Map an import string to a file path, or None when unresolvable."""
        python_style = from_file.suffix.lower() in INDENT_EXTENSIONS and "/" not in dependency
        cache_key = (str(from_file.parent), python_style, dependency)
        if cache_key in self._resolve_cache:
            return self._resolve_cache[cache_key]

        if python_style:
            resolved = self._resolve_python(from_file, dependency, root)
        else:
            resolved = self._resolve_module(from_file, dependency, root)

        self._resolve_cache[cache_key] = resolved
        return resolved

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _scan(self, files: Sequence[Path], root: Path) -> List[_ScannedFile]:
        if self.max_workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(lambda p: self._scan_one(p, root), files))
        else:
            results = [self._scan_one(p, root) for p in files]
        return [r for r in results if r is not None]

    def _scan_one(self, path: Path, root: Path) -> Optional[_ScannedFile]:
        path = path.resolve()
        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None
        content = read_text(path)
        if content is None:
            return None
        rel_path = relative_posix(path, root)
        return _ScannedFile(
            path=path,
            rel_path=rel_path,
            size=size,
            definitions=self.extractor.extract(content, rel_path),
        )

    @staticmethod
    def _symbol_table(scanned: Iterable[_ScannedFile]) -> Dict[str, str]:
        """Class / interface name -> id of the first file defining it."""
        table: Dict[str, str] = {}
        for item in scanned:
            for d in item.definitions:
                if d.kind in (DefinitionKind.CLASS, DefinitionKind.INTERFACE):
                    table.setdefault(d.name, item.rel_path)
        return table

    @staticmethod
    def _inheritance(definition: Definition) -> List[Tuple[str, DependencyEdgeKind]]:
        meta = definition.metadata
        if definition.kind == DefinitionKind.INTERFACE:
            parents = ([meta.extends] if meta.extends else []) + list(meta.implements)
            return [(p.split(".")[-1], DependencyEdgeKind.EXTENDS) for p in parents]
        if definition.kind == DefinitionKind.CLASS:
            found = []
            if meta.extends:
                found.append((meta.extends.split(".")[-1], DependencyEdgeKind.EXTENDS))
            found.extend(
                (name.split(".")[-1], DependencyEdgeKind.IMPLEMENTS) for name in meta.implements
            )
            return found
        return []

    # ------------------------------------------------------------------
    # Module resolution
    # ------------------------------------------------------------------

    @staticmethod
    def _first_file(bases: Iterable[str], extensions: Sequence[str]) -> Optional[Path]:
        for base in bases:
            for ext in extensions:
                candidate = Path(os.path.normpath(base + ext))
                if candidate.is_file():
                    return candidate.resolve()
        return None

    def _resolve_module(self, from_file: Path, dependency: str, root: Path) -> Optional[Path]:
        dependency = dependency.split("?")[0]
        if not dependency:
            return None
        directory = from_file.parent

        base = os.path.normpath(str(directory / dependency))
        if Path(base).is_file():
            return Path(base).resolve()
        resolved = self._first_file([base], RESOLVE_EXTENSIONS)
        if resolved is not None:
            return resolved

        if not dependency.startswith("."):
            basename = dependency.rstrip("/").split("/")[-1]
            resolved = self._first_file([str(directory / basename)], RESOLVE_EXTENSIONS)
            if resolved is not None:
                return resolved
            return self._resolve_package(directory, dependency, root)
        return None

    def _resolve_package(self, directory: Path, dependency: str, root: Path) -> Optional[Path]:
        """Look for ``node_modules/<dependency>`` from *directory* up to *root*."""
        current = directory
        while True:
            package = current / PACKAGE_DIR / dependency
            if package.is_file():
                return package.resolve()
            if package.is_dir():
                manifest = package / PACKAGE_MANIFEST
                main = "index.js"
                if manifest.is_file():
                    try:
                        main = json.loads(read_text(manifest) or "{}").get("main") or main
                    except (json.JSONDecodeError, AttributeError) as exc:
                        logger.debug("Bad manifest %s: %s", manifest, exc)
                entry = package / main
                if entry.is_file():
                    return entry.resolve()
                fallback = self._first_file([str(entry)], RESOLVE_EXTENSIONS)
                if fallback is not None:
                    return fallback
                index = package / "index.js"
                if index.is_file():
                    return index.resolve()
            if current == root or current.parent == current:
                return None
            current = current.parent

    def _resolve_python(self, from_file: Path, dependency: str, root: Path) -> Optional[Path]:
        dots = len(dependency) - len(dependency.lstrip("."))
        rest = dependency.lstrip(".").replace(".", "/")
        if dots:
            base_dir = from_file.parent
            for _ in range(dots - 1):
                base_dir = base_dir.parent
            bases = [str(base_dir / rest) if rest else str(base_dir)]
        else:
            bases = [str(from_file.parent / rest), str(root / rest)]
        return self._first_file(bases, PYTHON_RESOLVE_EXTENSIONS)
