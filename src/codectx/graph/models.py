"""Data structures for the file dependency graph."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

import networkx as nx

from codectx.analysis.models import FileAnalysis


class EdgeKind(str, Enum):
    DIRECT = "direct"
    TYPE_ONLY = "type-only"


class MatchConfidence(str, Enum):
    """How an import was matched to its target file."""

    EXACT = "exact"  # exact path or path + known extension
    FUZZY = "fuzzy"  # substring/suffix scan over all paths


@dataclass
class FileNode:
    """A file in the dependency graph."""

    path: str
    analysis: FileAnalysis
    depth: float = math.inf  # BFS distance from nearest root
    in_degree: int = 0
    out_degree: int = 0

    @property
    def reachable(self) -> bool:
        return self.depth != math.inf


@dataclass(frozen=True)
class DependencyEdge:
    """An import edge: `from_path` imports `to_path`."""

    from_path: str
    to_path: str
    kind: EdgeKind = EdgeKind.DIRECT
    symbols: tuple[str, ...] = ()
    confidence: MatchConfidence = MatchConfidence.EXACT


@dataclass
class GraphStats:
    total_files: int = 0
    total_edges: int = 0
    max_depth: int = 0
    avg_in_degree: float = 0.0
    avg_out_degree: float = 0.0
    circular_dependencies: int = 0

    def as_dict(self) -> dict:
        return {
            "total_files": self.total_files,
            "total_edges": self.total_edges,
            "max_depth": self.max_depth,
            "avg_in_degree": round(self.avg_in_degree, 3),
            "avg_out_degree": round(self.avg_out_degree, 3),
            "circular_dependencies": self.circular_dependencies,
        }


@dataclass
class DependencyGraph:
    """Files, import edges and everything derived from them.

    `edges` is the source of truth. `index` mirrors it as a networkx
    MultiDiGraph (one graph edge per import edge, so parallel imports count
    towards the degrees) and backs the dependents/dependencies lookups.
    Roots, leaves, depths, cycles and stats are always recomputed together
    by the builder; never edit them piecemeal.
    """

    files: dict[str, FileNode] = field(default_factory=dict)
    edges: list[DependencyEdge] = field(default_factory=list)
    roots: list[str] = field(default_factory=list)
    leaves: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    stats: GraphStats = field(default_factory=GraphStats)
    index: nx.MultiDiGraph = field(default_factory=nx.MultiDiGraph, repr=False)

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)

    def analysis_of(self, path: str) -> FileAnalysis | None:
        node = self.files.get(path)
        return node.analysis if node else None

    def dependencies_of(self, path: str) -> list[str]:
        """Files `path` imports, in edge order, de-duplicated."""
        if not self.index.has_node(path):
            return []
        return list(self.index.successors(path))

    def dependents_of(self, path: str) -> list[str]:
        """Files importing `path`, de-duplicated."""
        if not self.index.has_node(path):
            return []
        return list(self.index.predecessors(path))

    def edges_from(self, path: str) -> list[DependencyEdge]:
        return [e for e in self.edges if e.from_path == path]
