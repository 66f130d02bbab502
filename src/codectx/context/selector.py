"""Budgeted context selection.

Given the current code state and a request (intent + token budget), pick
which files go into the context and at what fidelity.

Algorithm:
  1. Must-include set: explicit focus files, plus for a modification the
     target and its first few direct dependencies. Each is placed at the
     richest representation that fits, falling back to its minimal
     representation; if even that does not fit it is excluded with a
     warning.
  2. Every other file is scored in [0, 1]: base importance adjusted by
     intent-specific signals. Files under the relevance floor are dropped.
  3. Greedy fill in descending score order. A file that does not fit at
     its preferred representation gets one retry at its minimal
     representation if its score is high enough.
  4. Output is ordered by priority (must-include first).

Selection never raises for a well-formed request: every omission is
reported as an excluded entry with a reason.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from codectx.analysis.models import FileAnalysis, FileContent, FileType
from codectx.config import SelectorConfig
from codectx.context.models import (
    ContextIntent,
    ContextSelectionRequest,
    ContextSelectionResult,
    CrossReferenceIntent,
    ExcludedFile,
    FileRepresentation,
    FullContextIntent,
    ModificationIntent,
    NewPhaseIntent,
    SelectedFile,
    TokenEstimator,
    TypeCheckIntent,
)
from codectx.context.representation import (
    RepresentationRenderer,
    choose_representation,
    minimal_representation,
)
from codectx.context.state import CodeContextState

if TYPE_CHECKING:
    from codectx.cache.context_cache import ContextCache

logger = logging.getLogger("codectx.context")


# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

_MODIFICATION_BOOSTS: dict[str, float] = {
    "imported_by_target": 0.35,
    "imports_target": 0.25,
    "target_types": 0.30,
}
_KEYWORD_MATCH_BOOST = 0.05
_KEYWORD_MATCH_CAP = 0.20
_MAX_KEYWORDS = 20

_PREVIOUS_PHASE_BOOST = 0.20
_FEATURE_RELEVANCE_WEIGHT = 0.30
_PHASE_DEPENDENCY_BOOST = 0.25

_CROSS_REFERENCE_SCORES: dict[str, float] = {
    "exports": 1.0,
    "type": 0.9,
    "source": 0.8,
}

_TYPE_CHECK_SCORES: dict[str, float] = {
    "type_definition": 0.9,
    "has_types": 0.7,
}

REASON_TARGET = "Modification target"
REASON_TARGET_DEPENDENCY = "Imported by modification target"
REASON_FOCUS = "Explicit focus file"


class ContextSelector:
    """Scores files for an intent and fills a token budget greedily.

    Usage:
        selector = ContextSelector(SelectorConfig(), cache=ContextCache())
        result = selector.select(state, request)
        prompt_context = result.render()
    """

    def __init__(
        self,
        config: SelectorConfig | None = None,
        cache: ContextCache | None = None,
        token_counter: Callable[[str], int] = TokenEstimator.estimate,
    ) -> None:
        self.config = config or SelectorConfig()
        self.cache = cache
        self.count_tokens = token_counter
        self.renderer = RepresentationRenderer(self.config.comment_prefix)

    # -------------------------------------------------------------------
    # Main entry point
    # -------------------------------------------------------------------

    def select(
        self, state: CodeContextState, request: ContextSelectionRequest
    ) -> ContextSelectionResult:
        """Select context for a request.

        Args:
            state: Files, analyses and dependency graph to select from.
            request: Intent, budget and optional focus/exclude lists.

        Returns:
            The selected files ordered by priority, plus everything that was
            left out and why. Served from the cache when one is attached
            and the state version has not changed. Callers always get
            their own copy, so mutating a result never touches the cache.
        """
        key = None
        if self.cache is not None:
            key = self.cache.selection_key(request, state.version)
            cached = self.cache.get_selection(key)
            if cached is not None:
                logger.debug("Selection cache hit for %s", key)
                return cached.model_copy(deep=True)

        result = self._select(state, request)

        if self.cache is not None and key is not None:
            self.cache.set_selection(key, result.model_copy(deep=True))
        return result

    def _select(
        self, state: CodeContextState, request: ContextSelectionRequest
    ) -> ContextSelectionResult:
        budget = request.effective_budget
        strategy = describe_strategy(request.intent)

        if budget < 0:
            return ContextSelectionResult(
                strategy=strategy,
                excluded=[
                    ExcludedFile(path=path, reason="No token budget available")
                    for path in state.analyses
                ],
                warnings=[
                    f"Reserved tokens ({request.reserved_tokens}) exceed max tokens "
                    f"({request.max_tokens}); no files selected"
                ],
            )

        selected: list[SelectedFile] = []
        excluded: list[ExcludedFile] = []
        reasons: dict[str, str] = {}
        warnings: list[str] = []
        used = 0

        # Phase 1: must-include files
        must_include = self._must_include_files(state, request, excluded, warnings)

        for path, reason in must_include.items():
            placed = self._place(
                state.analyses[path],
                state.files[path],
                budget - used,
                priority=1.0,
                reason=reason,
                allow_reduced=True,
            )
            if placed is None:
                excluded.append(
                    ExcludedFile(
                        path=path,
                        reason="Budget exceeded even at minimal representation",
                    )
                )
                warnings.append(f"Critical file {path} could not be included due to budget")
                continue
            selected.append(placed)
            reasons[path] = placed.reason
            used += placed.token_count

        # Phase 2: score everything else
        scored = self._score_files(state, request, skip=must_include)

        # Phase 3: greedy fill, best first (sort is stable, ties keep file order)
        scored.sort(key=lambda c: c["score"], reverse=True)
        exclude = set(request.exclude_files)

        for cand in scored:
            path = cand["path"]
            score = cand["score"]

            if path in exclude:
                excluded.append(ExcludedFile(path=path, reason="Explicitly excluded"))
                continue

            content = state.files.get(path)
            if content is None:
                excluded.append(ExcludedFile(path=path, reason="No content available"))
                continue

            if score < self.config.min_relevance:
                excluded.append(
                    ExcludedFile(path=path, reason=f"Low relevance score: {score:.2f}")
                )
                continue

            placed = self._place(
                state.analyses[path],
                content,
                budget - used,
                priority=score,
                reason=cand["reason"],
                allow_reduced=score >= self.config.reduced_retry_threshold,
            )
            if placed is None:
                excluded.append(ExcludedFile(path=path, reason="Budget exceeded"))
                continue
            selected.append(placed)
            reasons[path] = placed.reason
            used += placed.token_count

        # Phase 4: priority order
        selected.sort(key=lambda f: f.priority, reverse=True)

        logger.debug(
            "Selected %d file(s), %d/%d tokens (%s); %d excluded",
            len(selected),
            used,
            budget,
            strategy,
            len(excluded),
        )

        return ContextSelectionResult(
            files=selected,
            total_tokens=used,
            strategy=strategy,
            selection_reason=reasons,
            excluded=excluded,
            warnings=warnings,
        )

    # -------------------------------------------------------------------
    # Phase 1: must-include set
    # -------------------------------------------------------------------

    def _must_include_files(
        self,
        state: CodeContextState,
        request: ContextSelectionRequest,
        excluded: list[ExcludedFile],
        warnings: list[str],
    ) -> dict[str, str]:
        """Ordered path -> reason map of files exempt from scoring.

        Focus files come first, so they get the richer tiers when the budget
        is tight. A focused modification target keeps the target reason.
        Unknown focus or target paths are reported instead of raising.
        """
        must: dict[str, str] = {}
        reported: set[str] = set()

        def _add(path: str, reason: str) -> None:
            if path in must or path in reported:
                return
            if path not in state.files or path not in state.analyses:
                reported.add(path)
                excluded.append(ExcludedFile(path=path, reason="Unknown file"))
                warnings.append(f"Critical file {path} is not part of the current context")
                return
            must[path] = reason

        for path in request.focus_files:
            _add(path, REASON_FOCUS)

        intent = request.intent
        if isinstance(intent, ModificationIntent):
            if intent.target_file in must:
                must[intent.target_file] = REASON_TARGET
            else:
                _add(intent.target_file, REASON_TARGET)
            deps = [
                d
                for d in state.direct_dependencies(intent.target_file)
                if d in state.files and d in state.analyses
            ]
            for dep in deps[: self.config.must_include_dependency_limit]:
                _add(dep, REASON_TARGET_DEPENDENCY)

        return must

    # -------------------------------------------------------------------
    # Phase 2: scoring
    # -------------------------------------------------------------------

    def _score_files(
        self,
        state: CodeContextState,
        request: ContextSelectionRequest,
        skip: dict[str, str],
    ) -> list[dict]:
        """Score every non-must-include file for the request's intent."""
        intent = request.intent
        scorer = self._scorer_for(state, request)

        scores: list[dict] = []
        for path, analysis in state.analyses.items():
            if path in skip:
                continue
            score, reason = scorer(path, analysis)
            scores.append({
                "path": path,
                "score": min(1.0, max(0.0, score)),
                "reason": reason,
            })

        logger.debug("Scored %d candidate(s) for %s intent", len(scores), intent.type)
        return scores

    def _scorer_for(
        self, state: CodeContextState, request: ContextSelectionRequest
    ) -> Callable[[str, FileAnalysis], tuple[float, str]]:
        """Bind the per-file scoring function for an intent.

        Per-request work (target lookups, keyword extraction) happens once
        here rather than once per file.
        """
        intent = request.intent

        if isinstance(intent, ModificationIntent):
            target = intent.target_file
            target_analysis = state.analyses.get(target)
            target_deps = set(state.direct_dependencies(target))
            target_uses_types = target_analysis is not None and imports_types(target_analysis)
            keywords = extract_keywords(intent.change_description)

            def _score(path: str, analysis: FileAnalysis) -> tuple[float, str]:
                if path == target:
                    return 1.0, REASON_TARGET
                score = analysis.base_importance
                reason = "Base importance"
                if path in target_deps:
                    score += _MODIFICATION_BOOSTS["imported_by_target"]
                    reason = REASON_TARGET_DEPENDENCY
                if target in state.direct_dependencies(path):
                    score += _MODIFICATION_BOOSTS["imports_target"]
                    reason = "Imports modification target"
                if analysis.file_type == FileType.TYPE_DEFINITION and target_uses_types:
                    score += _MODIFICATION_BOOSTS["target_types"]
                    reason = "Type definitions for target"
                matches = count_keyword_matches(analysis, keywords)
                if matches > 0:
                    score += min(_KEYWORD_MATCH_CAP, matches * _KEYWORD_MATCH_BOOST)
                    reason = f"Matches {matches} keywords from change description"
                return score, reason

            return _score

        if isinstance(intent, NewPhaseIntent):
            previous = set(request.previous_phase_files)
            phase_deps = set(intent.dependencies)
            type_boosts = {
                FileType.TYPE_DEFINITION: (self.config.type_priority_boost, "Type definitions"),
                FileType.API_ROUTE: (self.config.api_route_priority_boost, "API contract"),
                FileType.HOOK: (self.config.hook_priority_boost, "Reusable hook"),
                FileType.CONTEXT_PROVIDER: (self.config.context_provider_boost, "Context provider"),
            }

            def _score(path: str, analysis: FileAnalysis) -> tuple[float, str]:
                score = analysis.base_importance
                reason = "Base importance"
                if path in previous:
                    score += _PREVIOUS_PHASE_BOOST
                    reason = "From previous phase"
                if analysis.file_type in type_boosts:
                    boost, reason = type_boosts[analysis.file_type]
                    score += boost
                relevance = feature_relevance(analysis, intent.features)
                if relevance > 0:
                    score += relevance * _FEATURE_RELEVANCE_WEIGHT
                    reason = "Relevant to phase features"
                if path in phase_deps:
                    score += _PHASE_DEPENDENCY_BOOST
                    reason = "Phase dependency"
                return score, reason

            return _score

        if isinstance(intent, CrossReferenceIntent):
            symbol = intent.symbol

            def _score(path: str, analysis: FileAnalysis) -> tuple[float, str]:
                if symbol:
                    if any(e.name == symbol for e in analysis.exports):
                        return _CROSS_REFERENCE_SCORES["exports"], f"Exports {symbol}"
                    if any(t.name == symbol or symbol in t.definition for t in analysis.types):
                        return _CROSS_REFERENCE_SCORES["type"], f"Type definition for {symbol}"
                if path == intent.from_file:
                    return _CROSS_REFERENCE_SCORES["source"], "Source file"
                return analysis.base_importance, "Base importance"

            return _score

        if isinstance(intent, TypeCheckIntent):

            def _score(path: str, analysis: FileAnalysis) -> tuple[float, str]:
                if analysis.file_type == FileType.TYPE_DEFINITION:
                    return _TYPE_CHECK_SCORES["type_definition"], "Type definition for type checking"
                if analysis.types:
                    return _TYPE_CHECK_SCORES["has_types"], "Contains type definitions"
                return analysis.base_importance, "Base importance"

            return _score

        def _score(path: str, analysis: FileAnalysis) -> tuple[float, str]:
            return analysis.base_importance, f"{analysis.file_type.value} file"

        return _score

    # -------------------------------------------------------------------
    # Phase 3 helpers: representation and placement
    # -------------------------------------------------------------------

    def _place(
        self,
        analysis: FileAnalysis,
        content: FileContent,
        remaining: int,
        priority: float,
        reason: str,
        allow_reduced: bool,
    ) -> SelectedFile | None:
        """Fit a file into `remaining` tokens, or return None."""
        representation = choose_representation(analysis, remaining)
        text, tokens = self.materialize(content, analysis, representation)
        if tokens <= remaining:
            return SelectedFile(
                path=analysis.path,
                content=text,
                representation=representation,
                token_count=tokens,
                priority=priority,
                reason=reason,
            )

        if not allow_reduced:
            return None

        minimal = minimal_representation(analysis)
        if minimal == representation:
            return None
        text, tokens = self.materialize(content, analysis, minimal)
        if tokens <= remaining:
            return SelectedFile(
                path=analysis.path,
                content=text,
                representation=minimal,
                token_count=tokens,
                priority=priority,
                reason=f"{reason} (reduced)",
            )
        return None

    def materialize(
        self,
        content: FileContent,
        analysis: FileAnalysis,
        representation: FileRepresentation,
    ) -> tuple[str, int]:
        """Render a file at a tier and count what it costs."""
        text = self.renderer.render(content.content, analysis, representation)
        if representation == FileRepresentation.FULL and content.token_count > 0:
            return text, content.token_count
        return text, self.count_tokens(text)


# ---------------------------------------------------------------------------
# Text signals
# ---------------------------------------------------------------------------


def extract_keywords(text: str) -> list[str]:
    """Lowercased words longer than two characters, first 20 only."""
    words = [w for w in re.split(r"\W+", text.lower()) if len(w) > 2]
    return words[:_MAX_KEYWORDS]


def count_keyword_matches(analysis: FileAnalysis, keywords: list[str]) -> int:
    if not keywords:
        return 0
    file_text = " ".join(
        [
            analysis.path,
            analysis.summary,
            *(e.name for e in analysis.exports),
            *(c.name for c in analysis.components),
        ]
    ).lower()
    return sum(1 for k in keywords if k in file_text)


def feature_relevance(analysis: FileAnalysis, features: list[str]) -> float:
    """Fraction (capped at 1) of feature keywords found in the file's names."""
    if not features:
        return 0.0
    file_text = " ".join(
        [
            analysis.path,
            analysis.summary,
            *(e.name for e in analysis.exports),
            *(c.name for c in analysis.components),
            *(h.name for h in analysis.hooks),
            *(t.name for t in analysis.types),
        ]
    ).lower()

    matches = 0
    for feature in features:
        for keyword in feature.lower().split():
            if len(keyword) > 2 and keyword in file_text:
                matches += 1
    return min(1.0, matches / (len(features) * 2))


def imports_types(analysis: FileAnalysis) -> bool:
    """Whether a file appears to import types (type-only or capitalized names)."""
    return any(
        imp.is_type_only or any(s.name[:1].isupper() for s in imp.imports)
        for imp in analysis.imports
    )


def describe_strategy(intent: ContextIntent) -> str:
    if isinstance(intent, ModificationIntent):
        return f"Modification-focused: target={intent.target_file}"
    if isinstance(intent, NewPhaseIntent):
        return f"Phase-focused: features={', '.join(intent.features)}"
    if isinstance(intent, CrossReferenceIntent):
        return f"Cross-reference: symbol={intent.symbol}"
    if isinstance(intent, TypeCheckIntent):
        return "Type-check: prioritizing type definitions"
    if isinstance(intent, FullContextIntent):
        return "Full context: importance-based selection"
    return "Unknown strategy"
