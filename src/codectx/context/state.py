"""The snapshot of a codebase that selection runs against."""

from __future__ import annotations

from dataclasses import dataclass, field

from codectx.analysis.models import FileAnalysis, FileContent
from codectx.graph.models import DependencyGraph


@dataclass
class CodeContextState:
    """Files, their analyses and the graph built from them.

    `version` must change whenever files or analyses change; cached
    selection results are keyed on it.
    """

    files: dict[str, FileContent] = field(default_factory=dict)
    analyses: dict[str, FileAnalysis] = field(default_factory=dict)
    graph: DependencyGraph = field(default_factory=DependencyGraph)
    version: int = 0
    files_by_phase: dict[int, list[str]] = field(default_factory=dict)

    def direct_dependencies(self, path: str) -> list[str]:
        """Resolved imports of `path`: graph edges first, then any paths the
        analyzer resolved that the graph did not."""
        deps = self.graph.dependencies_of(path)
        analysis = self.analyses.get(path)
        if analysis:
            deps.extend(d for d in analysis.dependencies if d not in deps)
        return deps

    def previous_phase_files(self, phase_number: int) -> list[str]:
        files: list[str] = []
        for phase, paths in sorted(self.files_by_phase.items()):
            if phase < phase_number:
                files.extend(p for p in paths if p not in files)
        return files
