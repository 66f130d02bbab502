"""Shared test fixtures for codectx."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from codectx.analysis.models import (
    ExportInfo,
    FileAnalysis,
    FileContent,
    FileType,
    ImportedSymbol,
    ImportInfo,
    TypeInfo,
)
from codectx.config import GraphConfig
from codectx.context.state import CodeContextState
from codectx.graph.builder import DependencyGraphBuilder


def _import(item: str | ImportInfo) -> ImportInfo:
    if isinstance(item, ImportInfo):
        return item
    return ImportInfo(source=item, is_external=not item.startswith((".", "@/", "~/", "src/")))


def _type(item: str | TypeInfo) -> TypeInfo:
    if isinstance(item, TypeInfo):
        return item
    return TypeInfo(
        name=item,
        definition=f"export interface {item} {{ id: string; }}",
        token_count=10,
    )


def _build_analysis(
    path: str,
    file_type: FileType | str = FileType.UTILITY,
    imports=(),
    exports=(),
    types=(),
    token_count: int = 100,
    importance: float | None = None,
    summary: str = "",
    dependencies=(),
    **extra,
) -> FileAnalysis:
    return FileAnalysis(
        path=path,
        hash=f"hash-{path}",
        file_type=FileType(file_type),
        imports=[_import(i) for i in imports],
        exports=[
            e if isinstance(e, ExportInfo) else ExportInfo(name=e, kind="function", signature="()")
            for e in exports
        ],
        types=[_type(t) for t in types],
        token_count=token_count,
        importance_score=importance,
        summary=summary,
        dependencies=list(dependencies),
        **extra,
    )


def _build_state(
    analyses: list[FileAnalysis], graph_config: GraphConfig | None = None
) -> CodeContextState:
    builder = DependencyGraphBuilder(graph_config)
    return CodeContextState(
        files={
            a.path: FileContent(
                path=a.path,
                content=f"// source of {a.path}\n",
                hash=a.hash,
                token_count=a.token_count,
            )
            for a in analyses
        },
        analyses={a.path: a for a in analyses},
        graph=builder.build_graph(analyses),
        version=1,
    )


@pytest.fixture
def make_analysis():
    """Factory for FileAnalysis objects with sensible defaults.

    String imports starting with '.', '@/', '~/' or 'src/' are local,
    anything else is treated as an external package.
    """
    return _build_analysis


@pytest.fixture
def make_state():
    """Factory turning a list of analyses into a CodeContextState with a built graph."""
    return _build_state


@pytest.fixture
def sample_app() -> list[FileAnalysis]:
    """A small React-style app with one file of each common kind."""
    return [
        _build_analysis(
            "src/types/index.ts",
            FileType.TYPE_DEFINITION,
            exports=[ExportInfo(name="User", kind="interface"), ExportInfo(name="Product", kind="interface")],
            types=["User", "Product"],
            token_count=200,
            summary="Shared domain types",
        ),
        _build_analysis(
            "src/lib/api.ts",
            FileType.UTILITY,
            imports=[
                ImportInfo(
                    source="../types",
                    is_type_only=True,
                    imports=[ImportedSymbol(name="User")],
                ),
            ],
            exports=["fetchUser", "fetchProducts"],
            token_count=300,
            summary="HTTP client for the backend",
        ),
        _build_analysis(
            "src/hooks/useUser.ts",
            FileType.HOOK,
            imports=["../lib/api", "../types", "react"],
            exports=["useUser"],
            token_count=150,
        ),
        _build_analysis(
            "src/components/UserCard.tsx",
            FileType.COMPONENT,
            imports=[
                "../hooks/useUser",
                ImportInfo(source="../types", imports=[ImportedSymbol(name="User")]),
                "react",
            ],
            exports=["UserCard"],
            token_count=400,
            summary="Card showing a user's avatar and name",
        ),
        _build_analysis(
            "src/app/page.tsx",
            FileType.PAGE,
            imports=["../components/UserCard"],
            exports=[ExportInfo(name="Home", kind="function", is_default=True, signature="()")],
            token_count=250,
        ),
        _build_analysis(
            "src/context/AuthContext.tsx",
            FileType.CONTEXT_PROVIDER,
            imports=["../lib/api", "react"],
            exports=["AuthProvider", "useAuth"],
            token_count=350,
            summary="Authentication state and login helpers",
        ),
        _build_analysis(
            "src/app/api/users/route.ts",
            FileType.API_ROUTE,
            imports=["../../../lib/api"],
            exports=["GET"],
            token_count=180,
        ),
        _build_analysis(
            "tests/api.test.ts",
            FileType.TEST,
            imports=["../src/lib/api"],
            token_count=120,
        ),
    ]


@pytest.fixture
def sample_state(sample_app: list[FileAnalysis]) -> CodeContextState:
    return _build_state(sample_app)


@pytest.fixture
def corpus_file(tmp_path: Path) -> Path:
    """A corpus JSON file in the format the CLI reads."""
    data = {
        "files": [
            {
                "path": "src/types/index.ts",
                "content": "export interface User { id: string; name: string; }\n",
                "analysis": {
                    "type": "type-definition",
                    "exports": [{"name": "User", "kind": "interface"}],
                    "types": [
                        {
                            "name": "User",
                            "definition": "export interface User { id: string; name: string; }",
                            "token_count": 12,
                        }
                    ],
                    "token_count": 12,
                },
            },
            {
                "path": "src/lib/api.ts",
                "content": "import type { User } from '../types';\nexport async function fetchUser() {}\n",
                "analysis": {
                    "type": "utility",
                    "imports": [
                        {
                            "source": "../types",
                            "is_type_only": True,
                            "imports": [{"name": "User"}],
                        }
                    ],
                    "exports": [
                        {"name": "fetchUser", "kind": "function", "is_async": True, "signature": "()"}
                    ],
                    "summary": "HTTP client",
                },
            },
            {
                "path": "src/components/UserCard.tsx",
                "content": "import { fetchUser } from '../lib/api';\nexport function UserCard() {}\n",
                "analysis": {
                    "type": "component",
                    "imports": [{"source": "../lib/api", "imports": [{"name": "fetchUser"}]}],
                    "exports": [{"name": "UserCard", "kind": "function", "signature": "()"}],
                },
            },
            {
                "path": "src/app/page.tsx",
                "content": "import { UserCard } from '../components/UserCard';\n",
                "analysis": {
                    "type": "page",
                    "imports": [
                        {"source": "../components/UserCard", "imports": [{"name": "UserCard"}]}
                    ],
                },
            },
            {"path": "README.md", "content": "# demo\n"},
        ]
    }
    path = tmp_path / "corpus.json"
    path.write_text(json.dumps(data))
    return path
