"""File dependency graph: construction and queries."""

from codectx.graph.builder import DependencyGraphBuilder
from codectx.graph.models import DependencyEdge, DependencyGraph, FileNode, GraphStats
from codectx.graph.query import GraphQuery

__all__ = [
    "DependencyEdge",
    "DependencyGraph",
    "DependencyGraphBuilder",
    "FileNode",
    "GraphQuery",
    "GraphStats",
]
