"""Data models for per-file analyses supplied by an upstream analyzer."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FileType(str, Enum):
    """Classification of a source file."""

    COMPONENT = "component"
    PAGE = "page"
    API_ROUTE = "api-route"
    HOOK = "hook"
    CONTEXT_PROVIDER = "context-provider"
    TYPE_DEFINITION = "type-definition"
    UTILITY = "utility"
    STYLE = "style"
    CONFIG = "config"
    TEST = "test"
    LAYOUT = "layout"
    OTHER = "other"


# Base importance by classification, used to seed relevance scores
FILE_TYPE_IMPORTANCE: dict[FileType, float] = {
    FileType.TYPE_DEFINITION: 0.85,
    FileType.CONTEXT_PROVIDER: 0.8,
    FileType.API_ROUTE: 0.75,
    FileType.HOOK: 0.7,
    FileType.LAYOUT: 0.65,
    FileType.PAGE: 0.6,
    FileType.COMPONENT: 0.55,
    FileType.UTILITY: 0.5,
    FileType.CONFIG: 0.45,
    FileType.STYLE: 0.3,
    FileType.TEST: 0.2,
    FileType.OTHER: 0.4,
}


class ExportInfo(BaseModel):
    """A single export from a file."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: Literal[
        "function", "class", "const", "let", "type", "interface", "enum", "default"
    ] = "const"
    is_default: bool = False
    is_async: bool = False
    signature: str | None = None  # e.g. "(id: string) => Promise<User>"
    type_signature: str | None = None  # full definition for types/interfaces
    line: int | None = None


class ImportedSymbol(BaseModel):
    """A single symbol pulled in by an import."""

    model_config = ConfigDict(frozen=True)

    name: str
    alias: str | None = None
    is_default: bool = False
    is_namespace: bool = False


class ImportInfo(BaseModel):
    """A single import statement."""

    model_config = ConfigDict(frozen=True)

    source: str  # the import path as written
    resolved_path: str | None = None
    is_external: bool = False
    is_type_only: bool = False
    imports: list[ImportedSymbol] = Field(default_factory=list)

    @property
    def symbol_names(self) -> list[str]:
        return [s.alias or s.name for s in self.imports]


class PropInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "unknown"
    required: bool = True
    default_value: str | None = None


class ComponentInfo(BaseModel):
    """A UI component defined in a file."""

    model_config = ConfigDict(frozen=True)

    name: str
    is_default: bool = False
    is_function_component: bool = True
    is_class_component: bool = False
    props: list[PropInfo] = Field(default_factory=list)
    hooks: list[str] = Field(default_factory=list)
    child_components: list[str] = Field(default_factory=list)
    has_forward_ref: bool = False
    has_memo: bool = False
    line: int | None = None


class HookInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    is_custom: bool = True
    parameters: list[str] = Field(default_factory=list)
    return_type: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    line: int | None = None


class TypeInfo(BaseModel):
    """A type, interface or enum definition."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: Literal["interface", "type", "enum"] = "interface"
    exported: bool = True
    definition: str = ""
    token_count: int = 0
    extends: list[str] = Field(default_factory=list)
    line: int | None = None


class APIEndpointInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
    path: str
    has_auth: bool = False
    request_type: str | None = None
    response_type: str | None = None
    description: str | None = None
    line: int | None = None


class FileAnalysis(BaseModel):
    """Complete semantic analysis of a single file.

    Immutable: a re-analysis replaces the whole value. Back-references
    (which files import this one) live on the dependency graph, not here.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    hash: str
    file_type: FileType = Field(default=FileType.OTHER, alias="type")

    exports: list[ExportInfo] = Field(default_factory=list)
    imports: list[ImportInfo] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)  # resolved local paths

    components: list[ComponentInfo] = Field(default_factory=list)
    hooks: list[HookInfo] = Field(default_factory=list)
    types: list[TypeInfo] = Field(default_factory=list)
    api_endpoints: list[APIEndpointInfo] = Field(default_factory=list)

    token_count: int = 0
    importance_score: float | None = Field(default=None, ge=0.0, le=1.0)
    last_modified: float = 0.0
    summary: str = ""

    @property
    def base_importance(self) -> float:
        """Importance score, falling back to the classification default."""
        if self.importance_score is not None:
            return self.importance_score
        return FILE_TYPE_IMPORTANCE[self.file_type]

    @property
    def types_token_count(self) -> int:
        return sum(t.token_count for t in self.types)


class FileContent(BaseModel):
    """Raw file text with metadata, used to materialize `full` representations."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str
    hash: str = ""
    token_count: int = 0
    last_modified: float = 0.0


class FileUpdate(BaseModel):
    """A changed file handed to the service: its content plus, optionally, its analysis.

    When `analysis` is omitted the service tries the analysis cache.
    """

    content: FileContent
    analysis: FileAnalysis | None = None

    @property
    def path(self) -> str:
        return self.content.path
