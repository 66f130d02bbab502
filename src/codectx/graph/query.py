"""High-level query interface for the dependency graph."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from codectx.analysis.models import FileType
from codectx.graph.models import DependencyGraph

DEFAULT_TRANSITIVE_DEPTH = 10


@dataclass
class DependencyHint:
    """What a file imports and who uses it, for downstream prompts."""

    file: str
    imports: list[dict] = field(default_factory=list)  # [{"from": path, "symbols": [...]}]
    used_by: list[str] = field(default_factory=list)


class GraphQuery:
    """Query engine for the dependency graph.

    Provides the common questions asked of a built graph: what does a file
    import, who imports it, how are two files connected, and so on.
    Transitive walks are depth-limited so pathological graphs stay bounded.
    """

    def __init__(
        self, graph: DependencyGraph, max_depth: int = DEFAULT_TRANSITIVE_DEPTH
    ) -> None:
        self.graph = graph
        self.max_depth = max_depth

    def dependencies(self, path: str) -> list[str]:
        """Files that `path` imports directly."""
        return self.graph.dependencies_of(path)

    def dependents(self, path: str) -> list[str]:
        """Files that import `path` directly."""
        return self.graph.dependents_of(path)

    def transitive_dependencies(self, path: str, max_depth: int | None = None) -> list[str]:
        """All files `path` depends on, in discovery order."""
        return self._walk(path, self.dependencies, max_depth)

    def transitive_dependents(self, path: str, max_depth: int | None = None) -> list[str]:
        """All files that depend on `path`, in discovery order."""
        return self._walk(path, self.dependents, max_depth)

    def _walk(self, start: str, neighbors, max_depth: int | None) -> list[str]:
        limit = self.max_depth if max_depth is None else max_depth
        visited: set[str] = set()
        result: list[str] = []

        def _traverse(path: str, depth: int) -> None:
            if depth >= limit or path in visited:
                return
            visited.add(path)
            for nxt in neighbors(path):
                if nxt not in visited:
                    result.append(nxt)
                    _traverse(nxt, depth + 1)

        _traverse(start, 0)
        # A file reached along two branches before being expanded is listed once
        return list(dict.fromkeys(result))

    def find_path(self, from_path: str, to_path: str) -> list[str] | None:
        """Shortest import chain from one file to another, or None."""
        if from_path == to_path:
            return [from_path]
        index = self.graph.index
        if not index.has_node(from_path) or not index.has_node(to_path):
            return None
        try:
            return nx.shortest_path(index, from_path, to_path)
        except nx.NetworkXNoPath:
            return None

    def find_related_files(self, path: str) -> list[str]:
        """Files sharing at least one dependency with `path`."""
        deps = set(self.dependencies(path))
        if not deps:
            return []
        return [
            other
            for other in self.graph.files
            if other != path and deps.intersection(self.dependencies(other))
        ]

    def find_file_exporting(self, symbol: str) -> str | None:
        """First file (in graph order) exporting `symbol`."""
        for path, node in self.graph.files.items():
            if any(e.name == symbol for e in node.analysis.exports):
                return path
        return None

    def files_by_type(self, types: Iterable[FileType | str]) -> list[str]:
        wanted = {FileType(t) for t in types}
        return [
            path
            for path, node in self.graph.files.items()
            if node.analysis.file_type in wanted
        ]

    def dependency_hint(self, path: str, max_used_by: int = 5) -> DependencyHint | None:
        """Local imports and (up to `max_used_by`) importers of a file."""
        analysis = self.graph.analysis_of(path)
        if analysis is None:
            return None

        imports = [
            {"from": imp.resolved_path or imp.source, "symbols": imp.symbol_names}
            for imp in analysis.imports
            if not imp.is_external
        ]
        used_by = self.dependents(path)
        if not imports and not used_by:
            return None
        return DependencyHint(file=path, imports=imports, used_by=used_by[:max_used_by])
