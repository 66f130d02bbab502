"""Data models for budgeted context selection."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from codectx.analysis.models import FileType
from codectx.graph.query import DependencyHint


class FileRepresentation(str, Enum):
    """Fidelity tier a file is rendered at, richest first."""

    FULL = "full"  # complete file content
    SIGNATURE = "signature"  # types, export headers, component/hook/API headers
    TYPES_ONLY = "types-only"  # type/interface/enum definitions only
    SUMMARY = "summary"  # classification, names and text summary


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------


class ModificationIntent(BaseModel):
    type: Literal["modification"] = "modification"
    target_file: str
    change_description: str = ""


class NewPhaseIntent(BaseModel):
    type: Literal["new-phase"] = "new-phase"
    features: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


class CrossReferenceIntent(BaseModel):
    type: Literal["cross-reference"] = "cross-reference"
    from_file: str
    symbol: str


class TypeCheckIntent(BaseModel):
    type: Literal["type-check"] = "type-check"
    files: list[str] = Field(default_factory=list)


class FullContextIntent(BaseModel):
    type: Literal["full-context"] = "full-context"


ContextIntent = Annotated[
    Union[
        ModificationIntent,
        NewPhaseIntent,
        CrossReferenceIntent,
        TypeCheckIntent,
        FullContextIntent,
    ],
    Field(discriminator="type"),
]


class ContextSelectionRequest(BaseModel):
    """What to select context for, and how much room there is."""

    intent: ContextIntent
    max_tokens: int
    reserved_tokens: int = 0  # held back for system prompts etc.
    focus_files: list[str] = Field(default_factory=list)
    exclude_files: list[str] = Field(default_factory=list)
    phase_number: int | None = None
    previous_phase_files: list[str] = Field(default_factory=list)

    @property
    def effective_budget(self) -> int:
        return self.max_tokens - self.reserved_tokens


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class SelectedFile(BaseModel):
    """A file included in the context, already materialized."""

    path: str
    content: str
    representation: FileRepresentation
    token_count: int
    priority: float  # 0-1, must-include files are 1.0
    reason: str


class ExcludedFile(BaseModel):
    path: str
    reason: str


class ContextSelectionResult(BaseModel):
    """Outcome of one selection: what went in, what stayed out, and why."""

    files: list[SelectedFile] = Field(default_factory=list)
    total_tokens: int = 0
    strategy: str = ""
    selection_reason: dict[str, str] = Field(default_factory=dict)
    excluded: list[ExcludedFile] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def get(self, path: str) -> SelectedFile | None:
        for f in self.files:
            if f.path == path:
                return f
        return None

    def render(self, include_metadata: bool = True) -> str:
        """Render the selected files as one text block for a prompt."""
        sections: list[str] = []

        if include_metadata:
            sections.append(f"# Code context ({self.strategy})")
            sections.append(f"# {len(self.files)} files, ~{self.total_tokens:,} tokens")
            sections.append("")

        for f in self.files:
            header = f"## {f.path}"
            if include_metadata:
                header += f" [{f.representation.value}]"
            sections.append(header)
            if include_metadata and f.reason:
                sections.append(f"# Included because: {f.reason}")
            sections.append(f.content)
            sections.append("")

        return "\n".join(sections)

    def summary(self) -> str:
        """Human-readable summary of the selection."""
        lines = [
            f"Strategy: {self.strategy}",
            f"Tokens: {self.total_tokens:,}",
            f"Files: {len(self.files)} selected, {len(self.excluded)} excluded",
            "",
            "Selected:",
        ]
        for f in self.files:
            lines.append(
                f"  {f.path} [{f.representation.value}] "
                f"priority={f.priority:.2f} ~{f.token_count}tok"
            )
            lines.append(f"    reason: {f.reason}")
        if self.warnings:
            lines.append("")
            lines.append("Warnings:")
            lines.extend(f"  {w}" for w in self.warnings)
        return "\n".join(lines)


class OmittedSummary(BaseModel):
    """Aggregate view of the files a selection left out."""

    file_count: int = 0
    total_tokens: int = 0
    categories: dict[FileType, int] = Field(default_factory=dict)


class ContextSnapshot(BaseModel):
    """Selection result packaged for transmission to a generation request."""

    app_id: str
    app_name: str
    version: int
    context: list[SelectedFile] = Field(default_factory=list)
    total_tokens: int = 0
    strategy: str = ""
    omitted_summary: OmittedSummary = Field(default_factory=OmittedSummary)
    dependency_hints: list[DependencyHint] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TokenEstimator:
    """Estimate token counts for code."""

    # Rough heuristic: 1 token ≈ 4 characters for code
    CHARS_PER_TOKEN = 4.0

    @classmethod
    def estimate(cls, text: str) -> int:
        """Estimate token count for a string."""
        return max(1, int(len(text) / cls.CHARS_PER_TOKEN))
