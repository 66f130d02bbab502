"""Build a file dependency graph from per-file analyses."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

import networkx as nx

from codectx.analysis.models import FileAnalysis, FileType, ImportInfo
from codectx.config import GraphConfig
from codectx.graph.models import (
    DependencyEdge,
    DependencyGraph,
    EdgeKind,
    FileNode,
    GraphStats,
    MatchConfidence,
)

logger = logging.getLogger("codectx.graph")

# Suffixes tried by the fuzzy scan when the base path has no extension
_FUZZY_SUFFIXES = (".ts", ".tsx")


class DependencyGraphBuilder:
    """Builds and maintains the file dependency graph.

    Nodes are files, edges are resolved local imports. Import resolution is
    deliberately lossy: an import that matches no known file produces no
    edge and no error, since the analysis corpus may be incomplete.
    """

    def __init__(self, config: GraphConfig | None = None) -> None:
        self.config = config or GraphConfig()

    @property
    def aliases(self) -> dict[str, str]:
        return self.config.aliases

    def build_graph(self, analyses: Iterable[FileAnalysis]) -> DependencyGraph:
        """Build the complete graph from a full set of analyses.

        Args:
            analyses: One analysis per file. Later duplicates of a path win.

        Returns:
            A new DependencyGraph with all derived data computed.
        """
        files: dict[str, FileNode] = {}
        for analysis in analyses:
            files[analysis.path] = FileNode(path=analysis.path, analysis=analysis)

        edges: list[DependencyEdge] = []
        for node in files.values():
            edges.extend(self._edges_for(node.analysis, files))

        graph = self._assemble(files, edges)
        logger.info(
            "Built dependency graph: %d files, %d edges, %d cycles",
            graph.stats.total_files,
            graph.stats.total_edges,
            graph.stats.circular_dependencies,
        )
        return graph

    def update_graph(
        self, graph: DependencyGraph, changed_analyses: Iterable[FileAnalysis]
    ) -> DependencyGraph:
        """Apply changed analyses to an existing graph.

        Only edges originating at the changed files are replaced; edges from
        untouched files are kept as-is. Everything derived (degrees, roots,
        leaves, depths, cycles, stats) is then recomputed from the full edge
        set. The input graph is left unmodified.
        """
        files = {
            path: FileNode(path=path, analysis=node.analysis)
            for path, node in graph.files.items()
        }
        edges = list(graph.edges)

        changed = list(changed_analyses)
        for analysis in changed:
            files[analysis.path] = FileNode(path=analysis.path, analysis=analysis)

        changed_paths = {a.path for a in changed}
        edges = [e for e in edges if e.from_path not in changed_paths]
        for analysis in changed:
            edges.extend(self._edges_for(analysis, files))

        updated = self._assemble(files, edges)
        logger.info(
            "Updated dependency graph for %d file(s): %d files, %d edges",
            len(changed_paths),
            updated.stats.total_files,
            updated.stats.total_edges,
        )
        return updated

    # -------------------------------------------------------------------
    # Edge construction
    # -------------------------------------------------------------------

    def _edges_for(
        self, analysis: FileAnalysis, files: dict[str, FileNode]
    ) -> list[DependencyEdge]:
        edges = []
        for imp in analysis.imports:
            if imp.is_external:
                continue
            edge = self._edge_for_import(analysis.path, imp, files)
            if edge is not None:
                edges.append(edge)
        return edges

    def _edge_for_import(
        self, from_path: str, imp: ImportInfo, files: dict[str, FileNode]
    ) -> DependencyEdge | None:
        base = self.resolve_import_path(imp.source, from_path)
        if not base:
            logger.debug("Unresolvable import %r in %s", imp.source, from_path)
            return None

        match = self.find_matching_file(base, files)
        if match is None:
            logger.debug("No file matches import %r in %s", imp.source, from_path)
            return None

        target, confidence = match
        return DependencyEdge(
            from_path=from_path,
            to_path=target,
            kind=EdgeKind.TYPE_ONLY if imp.is_type_only else EdgeKind.DIRECT,
            symbols=tuple(imp.symbol_names),
            confidence=confidence,
        )

    def resolve_import_path(self, import_path: str, from_path: str) -> str:
        """Turn an import specifier into a candidate path relative to the root."""
        for alias, replacement in self.aliases.items():
            if import_path.startswith(alias):
                import_path = replacement + import_path[len(alias):]
                break

        if import_path.startswith("."):
            from_dir = from_path.rsplit("/", 1)[0] if "/" in from_path else ""
            return normalize_path(join_paths(from_dir, import_path))

        if import_path.startswith(("@/", "~/")):
            return import_path[2:]

        return import_path

    def find_matching_file(
        self, base_path: str, files: dict[str, FileNode]
    ) -> tuple[str, MatchConfidence] | None:
        """Match a resolved base path against known files.

        Tries the exact path, then each configured extension, then a fuzzy
        substring/suffix scan over every path.
        """
        if base_path in files:
            return base_path, MatchConfidence.EXACT

        for ext in self.config.extensions:
            candidate = base_path + ext
            if candidate in files:
                return candidate, MatchConfidence.EXACT
            normalized = normalize_path(candidate)
            if normalized in files:
                return normalized, MatchConfidence.EXACT

        for file_path in files:
            if base_path in file_path or any(
                file_path.endswith(base_path + suffix) for suffix in _FUZZY_SUFFIXES
            ):
                return file_path, MatchConfidence.FUZZY

        return None

    # -------------------------------------------------------------------
    # Derived data
    # -------------------------------------------------------------------

    def _assemble(
        self, files: dict[str, FileNode], edges: list[DependencyEdge]
    ) -> DependencyGraph:
        """Index the edges and recompute every derived field."""
        index = nx.MultiDiGraph()
        index.add_nodes_from(files)
        for edge in edges:
            index.add_edge(edge.from_path, edge.to_path, kind=edge.kind.value)

        for path, node in files.items():
            node.in_degree = index.in_degree(path)
            node.out_degree = index.out_degree(path)

        roots = find_roots(files)
        leaves = find_leaves(files)
        calculate_depths(index, files, roots)

        if self.config.cycle_detection == "scc":
            cycles = detect_cycles_scc(index, files)
        else:
            cycles = detect_cycles(index, files)

        return DependencyGraph(
            files=files,
            edges=edges,
            roots=roots,
            leaves=leaves,
            cycles=cycles,
            stats=calculate_stats(files, edges, cycles),
            index=index,
        )


def find_roots(files: dict[str, FileNode]) -> list[str]:
    """Entry points: pages/layouts, plus any non-test file nothing imports."""
    roots = []
    for path, node in files.items():
        file_type = node.analysis.file_type
        if (
            file_type in (FileType.PAGE, FileType.LAYOUT)
            or "page." in path
            or "layout." in path
        ):
            roots.append(path)
        elif node.in_degree == 0 and file_type != FileType.TEST:
            roots.append(path)
    return roots


def find_leaves(files: dict[str, FileNode]) -> list[str]:
    return [
        path
        for path, node in files.items()
        if node.out_degree == 0 and node.analysis.file_type != FileType.TEST
    ]


def calculate_depths(
    index: nx.MultiDiGraph, files: dict[str, FileNode], roots: list[str]
) -> None:
    """BFS layering from the roots; unreachable files keep an infinite depth."""
    for node in files.values():
        node.depth = math.inf
    if not roots:
        return
    for depth, layer in enumerate(nx.bfs_layers(index, roots)):
        for path in layer:
            files[path].depth = depth


def detect_cycles(index: nx.MultiDiGraph, files: dict[str, FileNode]) -> list[list[str]]:
    """DFS with a recursion stack.

    Each time a node already on the stack is reached again, the stack slice
    from its first occurrence to the top is reported. This yields one cycle
    per re-entered node, not every elementary cycle in the graph.
    """
    cycles: list[list[str]] = []
    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    for start in files:
        if start in visited:
            continue
        visited.add(start)
        on_stack.add(start)
        path.append(start)
        stack = [iter(index.successors(start))]

        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                on_stack.discard(path.pop())
                continue
            if child in on_stack:
                cycles.append(path[path.index(child):])
                continue
            if child in visited:
                continue
            visited.add(child)
            on_stack.add(child)
            path.append(child)
            stack.append(iter(index.successors(child)))

    return cycles


def detect_cycles_scc(
    index: nx.MultiDiGraph, files: dict[str, FileNode]
) -> list[list[str]]:
    """Every cyclic strongly connected component, members in file order."""
    order = {path: i for i, path in enumerate(files)}
    cycles = []
    for component in nx.strongly_connected_components(index):
        if len(component) == 1:
            (only,) = component
            if not index.has_edge(only, only):
                continue
        cycles.append(sorted(component, key=order.__getitem__))
    cycles.sort(key=lambda c: order[c[0]])
    return cycles


def calculate_stats(
    files: dict[str, FileNode],
    edges: list[DependencyEdge],
    cycles: list[list[str]],
) -> GraphStats:
    total_files = len(files)
    max_depth = 0
    total_in = 0
    total_out = 0
    for node in files.values():
        if node.reachable and node.depth > max_depth:
            max_depth = int(node.depth)
        total_in += node.in_degree
        total_out += node.out_degree

    return GraphStats(
        total_files=total_files,
        total_edges=len(edges),
        max_depth=max_depth,
        avg_in_degree=total_in / total_files if total_files else 0.0,
        avg_out_degree=total_out / total_files if total_files else 0.0,
        circular_dependencies=len(cycles),
    )


def normalize_path(path: str) -> str:
    """Collapse `.` and `..` segments and drop empty ones."""
    result: list[str] = []
    for part in path.split("/"):
        if part == "..":
            if result:
                result.pop()
        elif part not in (".", ""):
            result.append(part)
    return "/".join(result)


def join_paths(base: str, relative: str) -> str:
    if relative.startswith("/"):
        return relative
    return f"{base}/{relative}" if base else relative
