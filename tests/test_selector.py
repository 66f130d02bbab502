"""Tests for budgeted context selection."""

from __future__ import annotations

import pytest

from codectx.analysis.models import FileType, ImportedSymbol, ImportInfo, TypeInfo
from codectx.cache.context_cache import ContextCache
from codectx.config import SelectorConfig
from codectx.context.models import (
    ContextSelectionRequest,
    CrossReferenceIntent,
    FileRepresentation,
    FullContextIntent,
    ModificationIntent,
    NewPhaseIntent,
    TypeCheckIntent,
)
from codectx.context.selector import (
    ContextSelector,
    count_keyword_matches,
    describe_strategy,
    extract_keywords,
    feature_relevance,
)


def _big_type(name: str) -> TypeInfo:
    body = "field: string; " * 200
    return TypeInfo(
        name=name,
        definition=f"export interface {name} {{ {body}}}",
        token_count=750,
    )


@pytest.fixture
def selector() -> ContextSelector:
    return ContextSelector()


def _reasons(result) -> dict[str, str]:
    return {e.path: e.reason for e in result.excluded}


class TestModificationScenario:
    def test_target_and_its_import_are_selected(self, selector, make_analysis, make_state):
        state = make_state([
            make_analysis("src/target.ts", imports=["./utils"]),
            make_analysis("src/utils.ts"),
        ])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(target_file="src/target.ts"), max_tokens=10000
            ),
        )

        target = result.get("src/target.ts")
        utils = result.get("src/utils.ts")
        assert target is not None and utils is not None
        assert target.priority == 1.0
        assert "Modification target" in target.reason
        assert "Imported by modification target" in utils.reason
        assert target.representation == FileRepresentation.FULL
        assert result.total_tokens == 200

    def test_dependency_limit(self, make_analysis, make_state):
        deps = [f"./d{i}" for i in range(7)]
        state = make_state(
            [make_analysis("src/target.ts", imports=deps)]
            + [make_analysis(f"src/d{i}.ts") for i in range(7)]
        )
        result = ContextSelector().select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(target_file="src/target.ts"), max_tokens=100000
            ),
        )
        pinned = [f.path for f in result.files if f.priority == 1.0]
        assert pinned == ["src/target.ts"] + [f"src/d{i}.ts" for i in range(5)]
        # The rest still score highly as imports of the target
        assert result.get("src/d6.ts").reason == "Imported by modification target"
        assert result.get("src/d6.ts").priority == pytest.approx(0.85)

    def test_keyword_matches_boost(self, selector, make_analysis, make_state):
        state = make_state([
            make_analysis("src/target.ts"),
            make_analysis("src/avatar.ts"),
            make_analysis("src/other.ts"),
        ])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(
                    target_file="src/target.ts", change_description="Resize avatar images"
                ),
                max_tokens=10000,
            ),
        )
        avatar = result.get("src/avatar.ts")
        assert avatar.reason == "Matches 1 keywords from change description"
        assert avatar.priority == pytest.approx(0.55)
        assert result.get("src/other.ts").reason == "Base importance"
        assert result.paths == ["src/target.ts", "src/avatar.ts", "src/other.ts"]

    def test_importers_and_type_files(self, selector, make_analysis, make_state):
        state = make_state([
            make_analysis(
                "src/target.ts",
                imports=[
                    ImportInfo(
                        source="react", is_external=True, imports=[ImportedSymbol(name="FC")]
                    )
                ],
            ),
            make_analysis("src/caller.ts", imports=["./target"]),
            make_analysis("src/types.ts", FileType.TYPE_DEFINITION),
        ])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(target_file="src/target.ts"), max_tokens=10000
            ),
        )
        assert result.get("src/caller.ts").reason == "Imports modification target"
        assert result.get("src/caller.ts").priority == pytest.approx(0.75)
        assert result.get("src/types.ts").reason == "Type definitions for target"
        # 0.85 + 0.30 is clamped
        assert result.get("src/types.ts").priority == 1.0


class TestBudget:
    def test_components_with_large_signatures_are_excluded(
        self, selector, make_analysis, make_state
    ):
        state = make_state([
            make_analysis(
                f"src/components/C{i}.tsx",
                FileType.COMPONENT,
                importance=0.55,
                token_count=1000,
                types=[_big_type(f"C{i}Props")],
            )
            for i in range(100)
        ])
        result = selector.select(
            state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=500)
        )
        assert result.files == []
        assert result.total_tokens == 0
        assert len(result.excluded) == 100
        assert all(e.reason == "Budget exceeded" for e in result.excluded)

    def test_many_components_fill_budget_with_signatures(
        self, selector, make_analysis, make_state
    ):
        state = make_state([
            make_analysis(
                f"src/components/C{i}.tsx", FileType.COMPONENT, importance=0.55, token_count=1000
            )
            for i in range(100)
        ])
        result = selector.select(
            state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=500)
        )
        # A bare signature is a single header line, so most components still fit
        assert len(result.files) == 71
        assert all(f.representation == FileRepresentation.SIGNATURE for f in result.files)
        assert all(f.token_count == 7 for f in result.files)
        assert result.total_tokens == 497
        assert result.paths[:2] == ["src/components/C0.tsx", "src/components/C1.tsx"]
        assert len(result.excluded) == 29
        assert all(e.reason == "Budget exceeded" for e in result.excluded)

    @pytest.mark.parametrize("budget", [0, 50, 300, 1000, 5000])
    @pytest.mark.parametrize(
        "intent",
        [
            FullContextIntent(),
            TypeCheckIntent(),
            ModificationIntent(target_file="src/components/UserCard.tsx"),
            NewPhaseIntent(features=["user list"]),
            CrossReferenceIntent(from_file="src/app/page.tsx", symbol="User"),
        ],
    )
    def test_never_exceeds_budget(self, selector, sample_state, intent, budget):
        request = ContextSelectionRequest(intent=intent, max_tokens=budget + 100, reserved_tokens=100)
        result = selector.select(sample_state, request)
        assert result.total_tokens <= budget
        assert result.total_tokens == sum(f.token_count for f in result.files)

    def test_every_file_is_accounted_for(self, selector, sample_state):
        result = selector.select(
            sample_state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=600)
        )
        accounted = set(result.paths) | {e.path for e in result.excluded}
        assert accounted == set(sample_state.analyses)

    def test_shrinking_budget_on_uniform_files(self, selector, make_analysis, make_state):
        state = make_state([make_analysis(f"src/u{i}.ts") for i in range(5)])
        totals = [
            selector.select(
                state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=budget)
            ).total_tokens
            for budget in (1000, 400, 100, 10)
        ]
        assert totals == sorted(totals, reverse=True)
        assert totals[0] == 500
        assert totals[-1] == 0

    def test_shrinking_budget_can_admit_more_tokens(
        self, selector, make_analysis, make_state
    ):
        state = make_state([
            make_analysis("src/A.tsx", FileType.COMPONENT, importance=0.9, token_count=200),
            make_analysis(
                "src/B.tsx",
                FileType.COMPONENT,
                importance=0.5,
                token_count=1000,
                types=[
                    TypeInfo(
                        name="BProps",
                        definition="export interface BProps { " + "field: string; " * 214 + "}",
                    )
                ],
            ),
        ])
        big = selector.select(
            state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=1000)
        )
        small = selector.select(
            state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=990)
        )

        # At 1000 tokens A goes in full and leaves no room for B's signature
        assert big.paths == ["src/A.tsx"]
        assert big.total_tokens == 200
        # At 990 A drops to its signature, which frees enough room for B
        assert small.get("src/A.tsx").representation == FileRepresentation.SIGNATURE
        assert small.paths == ["src/A.tsx", "src/B.tsx"]
        assert small.total_tokens == 818
        assert small.total_tokens > big.total_tokens

    def test_reduced_retry_for_high_scores(self, selector, make_analysis, make_state):
        state = make_state([
            make_analysis(
                "src/hooks/useBig.ts",
                FileType.HOOK,
                token_count=2000,
                types=[_big_type("BigResult")],
            )
        ])
        result = selector.select(
            state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=300)
        )
        hook = result.get("src/hooks/useBig.ts")
        assert hook is not None
        assert hook.representation == FileRepresentation.SUMMARY
        assert hook.reason.endswith("(reduced)")

    def test_negative_budget(self, selector, sample_state):
        result = selector.select(
            sample_state,
            ContextSelectionRequest(intent=FullContextIntent(), max_tokens=100, reserved_tokens=200),
        )
        assert result.files == []
        assert result.total_tokens == 0
        assert len(result.excluded) == len(sample_state.analyses)
        assert len(result.warnings) == 1

    def test_injected_token_counter(self, make_analysis, make_state):
        state = make_state([make_analysis("src/util.ts", token_count=400)])
        selector = ContextSelector(token_counter=lambda text: 1)
        result = selector.select(
            state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=1000)
        )
        assert result.files[0].representation == FileRepresentation.SUMMARY
        assert result.total_tokens == 1


class TestMustInclude:
    def test_unknown_focus_file_is_warned(self, selector, sample_state):
        result = selector.select(
            sample_state,
            ContextSelectionRequest(
                intent=FullContextIntent(), max_tokens=10000, focus_files=["src/ghost.ts"]
            ),
        )
        assert _reasons(result)["src/ghost.ts"] == "Unknown file"
        assert any("src/ghost.ts" in w for w in result.warnings)

    def test_focus_file_reason(self, selector, sample_state):
        result = selector.select(
            sample_state,
            ContextSelectionRequest(
                intent=FullContextIntent(),
                max_tokens=10000,
                focus_files=["tests/api.test.ts"],
            ),
        )
        focused = result.get("tests/api.test.ts")
        assert focused.reason == "Explicit focus file"
        assert focused.priority == 1.0

    def test_focus_files_are_placed_before_target(self, selector, make_analysis, make_state):
        state = make_state([
            make_analysis("src/target.ts"),
            make_analysis("src/focus.ts"),
        ])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(target_file="src/target.ts"),
                max_tokens=400,
                focus_files=["src/focus.ts"],
            ),
        )
        # The focus file takes the full tier, the target gets what is left
        assert result.paths == ["src/focus.ts", "src/target.ts"]
        assert result.get("src/focus.ts").representation == FileRepresentation.FULL
        assert result.get("src/focus.ts").reason == "Explicit focus file"
        assert result.get("src/target.ts").representation == FileRepresentation.SUMMARY
        assert result.get("src/target.ts").reason == "Modification target"

    def test_focused_target_keeps_target_reason(self, selector, make_analysis, make_state):
        state = make_state([make_analysis("src/target.ts")])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(target_file="src/target.ts"),
                max_tokens=10000,
                focus_files=["src/target.ts"],
            ),
        )
        assert result.get("src/target.ts").reason == "Modification target"
        assert result.warnings == []

    def test_target_too_big_for_budget(self, selector, make_analysis, make_state):
        state = make_state([make_analysis("src/target.ts", token_count=5000)])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(target_file="src/target.ts"), max_tokens=10
            ),
        )
        assert result.files == []
        assert _reasons(result)["src/target.ts"] == "Budget exceeded even at minimal representation"
        assert result.warnings == [
            "Critical file src/target.ts could not be included due to budget"
        ]

    def test_target_falls_back_to_minimal(self, selector, make_analysis, make_state):
        state = make_state([
            make_analysis(
                "src/Big.tsx",
                FileType.COMPONENT,
                token_count=5000,
                types=[_big_type("BigProps")],
            )
        ])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=ModificationIntent(target_file="src/Big.tsx"), max_tokens=100
            ),
        )
        target = result.get("src/Big.tsx")
        assert target.representation == FileRepresentation.SUMMARY
        assert target.reason == "Modification target (reduced)"
        assert result.warnings == []

    def test_must_include_is_selected_or_warned(self, selector, sample_state):
        focus = ["src/types/index.ts", "src/lib/api.ts", "src/ghost.ts"]
        for budget in (0, 20, 200, 5000):
            result = selector.select(
                sample_state,
                ContextSelectionRequest(
                    intent=ModificationIntent(target_file="src/app/page.tsx"),
                    max_tokens=budget,
                    focus_files=focus,
                ),
            )
            for path in ["src/app/page.tsx", "src/components/UserCard.tsx", *focus]:
                assert path in result.paths or any(path in w for w in result.warnings)


class TestExclusions:
    def test_explicit_exclude(self, selector, sample_state):
        result = selector.select(
            sample_state,
            ContextSelectionRequest(
                intent=FullContextIntent(), max_tokens=10000, exclude_files=["src/lib/api.ts"]
            ),
        )
        assert "src/lib/api.ts" not in result.paths
        assert _reasons(result)["src/lib/api.ts"] == "Explicitly excluded"

    def test_low_relevance(self, selector, sample_state):
        result = selector.select(
            sample_state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=10000)
        )
        assert _reasons(result)["tests/api.test.ts"] == "Low relevance score: 0.20"

    def test_missing_content(self, selector, sample_state):
        del sample_state.files["src/lib/api.ts"]
        result = selector.select(
            sample_state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=10000)
        )
        assert _reasons(result)["src/lib/api.ts"] == "No content available"

    def test_min_relevance_is_configurable(self, sample_state):
        selector = ContextSelector(SelectorConfig(min_relevance=0.0))
        result = selector.select(
            sample_state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=10000)
        )
        assert "tests/api.test.ts" in result.paths


class TestIntents:
    def test_full_context_orders_by_importance(self, selector, sample_state):
        result = selector.select(
            sample_state, ContextSelectionRequest(intent=FullContextIntent(), max_tokens=100000)
        )
        assert result.paths[0] == "src/types/index.ts"
        assert result.get("src/types/index.ts").reason == "type-definition file"
        priorities = [f.priority for f in result.files]
        assert priorities == sorted(priorities, reverse=True)
        assert result.strategy == "Full context: importance-based selection"

    def test_cross_reference(self, selector, sample_state):
        result = selector.select(
            sample_state,
            ContextSelectionRequest(
                intent=CrossReferenceIntent(from_file="src/app/page.tsx", symbol="useAuth"),
                max_tokens=100000,
            ),
        )
        assert result.paths[0] == "src/context/AuthContext.tsx"
        assert result.get("src/context/AuthContext.tsx").reason == "Exports useAuth"
        assert result.get("src/app/page.tsx").reason == "Source file"
        assert result.get("src/app/page.tsx").priority == pytest.approx(0.8)

    def test_cross_reference_by_type_body(self, selector, make_analysis, make_state):
        state = make_state([
            make_analysis(
                "src/types.ts",
                FileType.TYPE_DEFINITION,
                types=[TypeInfo(name="Order", definition="interface Order { total: Money }")],
            ),
            make_analysis("src/a.ts"),
        ])
        result = selector.select(
            state,
            ContextSelectionRequest(
                intent=CrossReferenceIntent(from_file="src/a.ts", symbol="Money"),
                max_tokens=10000,
            ),
        )
        assert result.get("src/types.ts").reason == "Type definition for Money"
        assert result.get("src/types.ts").priority == pytest.approx(0.9)

    def test_type_check(self, selector, sample_state):
        result = selector.select(
            sample_state,
            ContextSelectionRequest(intent=TypeCheckIntent(), max_tokens=100000),
        )
        types_file = result.get("src/types/index.ts")
        assert types_file.reason == "Type definition for type checking"
        assert types_file.priority == pytest.approx(0.9)

    def test_new_phase(self, selector, sample_state):
        result = selector.select(
            sample_state,
            ContextSelectionRequest(
                intent=NewPhaseIntent(
                    features=["user profile"], dependencies=["src/app/api/users/route.ts"]
                ),
                max_tokens=100000,
                previous_phase_files=["src/app/page.tsx"],
            ),
        )
        assert result.get("src/app/api/users/route.ts").reason == "Phase dependency"
        assert result.get("src/app/page.tsx").reason == "From previous phase"
        assert result.get("src/app/page.tsx").priority == pytest.approx(0.8)
        assert result.strategy == "Phase-focused: features=user profile"


class TestDeterminismAndCaching:
    def test_idempotent(self, selector, sample_state):
        request = ContextSelectionRequest(
            intent=ModificationIntent(
                target_file="src/hooks/useUser.ts", change_description="cache user lookups"
            ),
            max_tokens=900,
        )
        first = selector.select(sample_state, request)
        second = selector.select(sample_state, request)
        assert first.paths == second.paths
        assert first.total_tokens == second.total_tokens
        assert first == second

    def test_cached_result_is_reused(self, sample_state):
        cache = ContextCache()
        selector = ContextSelector(cache=cache)
        request = ContextSelectionRequest(intent=FullContextIntent(), max_tokens=1000)

        first = selector.select(sample_state, request)
        assert selector.select(sample_state, request) == first
        assert cache.get_stats().hits == 1

        sample_state.version += 1
        selector.select(sample_state, request)
        assert cache.get_stats().hits == 1
        assert cache.get_stats().misses == 2

    def test_cached_result_is_not_shared(self, sample_state):
        selector = ContextSelector(cache=ContextCache())
        request = ContextSelectionRequest(intent=FullContextIntent(), max_tokens=1000)

        first = selector.select(sample_state, request)
        paths = first.paths
        first.files.clear()
        first.warnings.append("changed by caller")

        second = selector.select(sample_state, request)
        assert second.paths == paths
        assert second.warnings == []
        second.files.clear()
        assert selector.select(sample_state, request).paths == paths

    def test_reserved_tokens_are_not_served_from_cache(self, make_analysis, make_state):
        state = make_state([make_analysis(f"src/u{i}.ts") for i in range(5)])
        selector = ContextSelector(cache=ContextCache())

        roomy = ContextSelectionRequest(intent=FullContextIntent(), max_tokens=1000)
        tight = ContextSelectionRequest(
            intent=FullContextIntent(), max_tokens=1000, reserved_tokens=900
        )
        assert selector.select(state, roomy).total_tokens == 500

        result = selector.select(state, tight)
        assert result.total_tokens <= tight.effective_budget
        assert result == ContextSelector().select(state, tight)

    def test_previous_phase_files_are_not_served_from_cache(self, sample_state):
        selector = ContextSelector(cache=ContextCache())
        intent = NewPhaseIntent(features=["checkout"])

        fresh = selector.select(
            sample_state, ContextSelectionRequest(intent=intent, max_tokens=100000)
        )
        assert fresh.get("src/app/page.tsx").reason != "From previous phase"

        result = selector.select(
            sample_state,
            ContextSelectionRequest(
                intent=intent, max_tokens=100000, previous_phase_files=["src/app/page.tsx"]
            ),
        )
        assert result.get("src/app/page.tsx").reason == "From previous phase"


class TestHelpers:
    def test_extract_keywords(self):
        words = extract_keywords("Fix the login-button on /auth page, ok?")
        assert words == ["fix", "the", "login", "button", "auth", "page"]
        assert len(extract_keywords(" ".join(f"word{i}" for i in range(40)))) == 20

    def test_count_keyword_matches(self, make_analysis):
        a = make_analysis("src/auth/login.ts", exports=["signIn"])
        assert count_keyword_matches(a, ["login", "signin", "logout"]) == 2
        assert count_keyword_matches(a, []) == 0

    def test_feature_relevance(self, make_analysis):
        a = make_analysis("src/cart/CartList.tsx", exports=["CartList"])
        assert feature_relevance(a, ["shopping cart"]) == 0.5
        assert feature_relevance(a, ["cart list", "cart"]) == 0.75
        assert feature_relevance(a, []) == 0.0

    def test_describe_strategy(self):
        assert describe_strategy(ModificationIntent(target_file="a.ts")) == (
            "Modification-focused: target=a.ts"
        )
        assert describe_strategy(TypeCheckIntent()) == "Type-check: prioritizing type definitions"
        assert describe_strategy(CrossReferenceIntent(from_file="a", symbol="X")) == (
            "Cross-reference: symbol=X"
        )
