"""Orchestration of graph, cache and selector for one application.

The service owns a `CodeContextState` and keeps it consistent: file updates
refresh the graph, bump the state version and drop cached selections.
Instances are created explicitly by the host; there is no global registry.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from codectx.analysis.models import FileAnalysis, FileType, FileUpdate
from codectx.cache.context_cache import CacheStats, ContextCache
from codectx.config import ProjectConfig
from codectx.context.models import (
    ContextSelectionRequest,
    ContextSnapshot,
    FileRepresentation,
    ModificationIntent,
    NewPhaseIntent,
    OmittedSummary,
    SelectedFile,
)
from codectx.context.selector import ContextSelector
from codectx.context.state import CodeContextState
from codectx.graph.builder import DependencyGraphBuilder
from codectx.graph.models import DependencyGraph
from codectx.graph.query import GraphQuery

logger = logging.getLogger("codectx.service")

DEFAULT_PHASE_MAX_TOKENS = 32000
DEFAULT_MINIMAL_MAX_TOKENS = 8000
MINIMAL_CONTEXT_PRIORITY = 0.85


@dataclass
class UpdateResult:
    """What an `update_context` call actually did."""

    files_processed: int = 0
    changed_paths: list[str] = field(default_factory=list)
    needs_analysis: list[str] = field(default_factory=list)  # no analysis supplied or cached
    version: int = 0


class CodeContextService:
    """Keeps the code state of one application and answers context requests.

    Usage:
        service = CodeContextService("app-1", "Shop")
        service.update_context(load_corpus("corpus.json"), phase_number=1)
        snapshot = service.get_modification_context("src/App.tsx", "add a cart badge")
    """

    def __init__(
        self,
        app_id: str,
        app_name: str = "Untitled App",
        config: ProjectConfig | None = None,
        builder: DependencyGraphBuilder | None = None,
        selector: ContextSelector | None = None,
        cache: ContextCache | None = None,
    ) -> None:
        self.app_id = app_id
        self.app_name = app_name
        self.config = config or ProjectConfig(name=app_name)
        self.cache = cache or ContextCache(self.config.cache)
        self.builder = builder or DependencyGraphBuilder(self.config.graph)
        self.selector = selector or ContextSelector(self.config.selector, cache=self.cache)
        self.state = CodeContextState()

    @property
    def graph(self) -> DependencyGraph:
        return self.state.graph

    @property
    def query(self) -> GraphQuery:
        return GraphQuery(self.state.graph, self.config.graph.transitive_depth_limit)

    # -------------------------------------------------------------------
    # Context management
    # -------------------------------------------------------------------

    def update_context(
        self,
        updates: Iterable[FileUpdate],
        incremental: bool = True,
        phase_number: int | None = None,
    ) -> UpdateResult:
        """Apply new or changed files.

        Args:
            updates: File contents, each with its analysis or without one
                (then the analysis cache is consulted).
            incremental: Skip files whose hash is unchanged and patch the
                graph instead of rebuilding it.
            phase_number: Record the accepted files as produced in this phase.
        """
        result = UpdateResult()
        changed: list[FileAnalysis] = []
        added_paths = False

        for update in updates:
            result.files_processed += 1
            path = update.path
            content = update.content
            existing = self.state.files.get(path)

            if (
                incremental
                and existing is not None
                and existing.hash == content.hash
                and path in self.state.analyses
            ):
                continue

            analysis = update.analysis
            if analysis is None:
                analysis = self.cache.get_analysis(path, content.hash)
            if analysis is None:
                logger.debug("No analysis available for %s", path)
                result.needs_analysis.append(path)
                continue

            if content.token_count == 0 and analysis.token_count > 0:
                content = content.model_copy(update={"token_count": analysis.token_count})

            added_paths = added_paths or path not in self.state.analyses
            self.state.files[path] = content
            self.state.analyses[path] = analysis
            self.cache.set_analysis(path, analysis)
            changed.append(analysis)

            if phase_number is not None:
                phase_files = self.state.files_by_phase.setdefault(phase_number, [])
                if path not in phase_files:
                    phase_files.append(path)

        if changed:
            # A new file can satisfy imports of untouched files, so only
            # pure modifications are patched in place.
            if incremental and not added_paths:
                self.state.graph = self.builder.update_graph(self.state.graph, changed)
            else:
                self.state.graph = self.builder.build_graph(self.state.analyses.values())
            self._bump_version()
            result.changed_paths = [a.path for a in changed]

        result.version = self.state.version
        logger.debug(
            "Processed %d update(s): %d changed, %d need analysis",
            result.files_processed,
            len(result.changed_paths),
            len(result.needs_analysis),
        )
        return result

    def remove_files(self, paths: Iterable[str]) -> list[str]:
        """Drop files from the state. Returns the paths that were present."""
        removed = []
        for path in paths:
            had_file = self.state.files.pop(path, None) is not None
            had_analysis = self.state.analyses.pop(path, None) is not None
            if (had_file or had_analysis) and path not in removed:
                removed.append(path)

        if removed:
            for phase_files in self.state.files_by_phase.values():
                phase_files[:] = [p for p in phase_files if p not in removed]
            self.cache.invalidate_analysis(removed)
            self.state.graph = self.builder.build_graph(self.state.analyses.values())
            self._bump_version()
        return removed

    def _bump_version(self) -> None:
        self.state.version += 1
        self.cache.invalidate_selections()

    # -------------------------------------------------------------------
    # Context selection
    # -------------------------------------------------------------------

    def get_context(self, request: ContextSelectionRequest) -> ContextSnapshot:
        """Select context for any request and package it as a snapshot."""
        result = self.selector.select(self.state, request)
        return self._build_snapshot(result.files, result.strategy, result.warnings)

    def get_phase_context(
        self,
        phase_number: int,
        features: list[str],
        max_tokens: int = DEFAULT_PHASE_MAX_TOKENS,
    ) -> ContextSnapshot:
        """Context for generating a new build phase."""
        request = ContextSelectionRequest(
            intent=NewPhaseIntent(
                features=features, dependencies=self.infer_dependencies(features)
            ),
            max_tokens=max_tokens,
            phase_number=phase_number,
            previous_phase_files=self.state.previous_phase_files(phase_number),
        )
        return self.get_context(request)

    def get_modification_context(
        self,
        target_file: str,
        change_description: str,
        max_tokens: int = DEFAULT_PHASE_MAX_TOKENS,
    ) -> ContextSnapshot:
        request = ContextSelectionRequest(
            intent=ModificationIntent(
                target_file=target_file, change_description=change_description
            ),
            max_tokens=max_tokens,
            focus_files=[target_file],
        )
        return self.get_context(request)

    def get_minimal_context(self, max_tokens: int = DEFAULT_MINIMAL_MAX_TOKENS) -> ContextSnapshot:
        """Only type definitions, rendered types-only, in graph order."""
        selected: list[SelectedFile] = []
        used = 0

        for path in self.files_by_type([FileType.TYPE_DEFINITION]):
            analysis = self.state.analyses.get(path)
            content = self.state.files.get(path)
            if analysis is None or content is None:
                continue

            text, tokens = self.selector.materialize(
                content, analysis, FileRepresentation.TYPES_ONLY
            )
            if used + tokens > max_tokens:
                continue
            selected.append(
                SelectedFile(
                    path=path,
                    content=text,
                    representation=FileRepresentation.TYPES_ONLY,
                    token_count=tokens,
                    priority=MINIMAL_CONTEXT_PRIORITY,
                    reason="Type definitions",
                )
            )
            used += tokens

        return self._build_snapshot(selected, "Minimal: type definitions only")

    def infer_dependencies(self, features: list[str]) -> list[str]:
        """Guess which existing files a phase with these features will need."""
        text = " ".join(features).lower()
        deps: list[str] = []

        if "auth" in text or "login" in text:
            deps.extend(
                p for p in self.files_by_type([FileType.CONTEXT_PROVIDER]) if "auth" in p.lower()
            )
        if "api" in text or "fetch" in text:
            deps.extend(self.files_by_type([FileType.API_ROUTE]))
        if "database" in text or "db" in text:
            deps.extend(p for p in self.state.analyses if "db" in p or "database" in p)

        deps.extend(self.files_by_type([FileType.TYPE_DEFINITION]))
        return list(dict.fromkeys(deps))

    def _build_snapshot(
        self,
        selected: list[SelectedFile],
        strategy: str = "",
        warnings: list[str] | None = None,
    ) -> ContextSnapshot:
        included = {f.path for f in selected}
        omitted = OmittedSummary()
        for path, analysis in self.state.analyses.items():
            if path in included:
                continue
            omitted.file_count += 1
            omitted.total_tokens += analysis.token_count
            omitted.categories[analysis.file_type] = (
                omitted.categories.get(analysis.file_type, 0) + 1
            )

        query = self.query
        hints = []
        for f in selected:
            hint = query.dependency_hint(f.path)
            if hint is not None:
                hints.append(hint)

        return ContextSnapshot(
            app_id=self.app_id,
            app_name=self.app_name,
            version=self.state.version,
            context=selected,
            total_tokens=sum(f.token_count for f in selected),
            strategy=strategy,
            omitted_summary=omitted,
            dependency_hints=hints,
            warnings=list(warnings or []),
        )

    # -------------------------------------------------------------------
    # Graph queries
    # -------------------------------------------------------------------

    def get_dependencies(self, path: str) -> list[str]:
        return self.query.dependencies(path)

    def get_dependents(self, path: str) -> list[str]:
        return self.query.dependents(path)

    def get_transitive_dependencies(self, path: str, max_depth: int | None = None) -> list[str]:
        return self.query.transitive_dependencies(path, max_depth)

    def get_file_analysis(self, path: str) -> FileAnalysis | None:
        return self.state.analyses.get(path)

    def files_by_type(self, types: Iterable[FileType | str]) -> list[str]:
        return self.query.files_by_type(types)

    def find_file_exporting(self, symbol: str) -> str | None:
        return self.query.find_file_exporting(symbol)

    def find_related_files(self, path: str) -> list[str]:
        return self.query.find_related_files(path)

    # -------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------

    def needs_reanalysis(self, path: str, content_hash: str) -> bool:
        return self.cache.needs_reanalysis(path, content_hash)

    def get_cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def clear_cache(self) -> None:
        self.cache.clear()
