"""Fidelity tiers: which representation a file gets, and how it is rendered.

A file can enter the context whole (``full``) or as progressively cheaper
renderings built only from its analysis: ``signature`` (types plus headers),
``types-only`` and ``summary``. Everything except ``full`` is rendered as
comment lines plus type definitions, so it never needs the file text.
"""

from __future__ import annotations

from codectx.analysis.models import FileAnalysis, FileType
from codectx.context.models import FileRepresentation

# Share of the remaining budget a file may take at each tier
FULL_SHARE = 0.2
REDUCED_SHARE = 0.3

_SIGNATURE_PREFERRED = {FileType.COMPONENT, FileType.HOOK, FileType.API_ROUTE}


def choose_representation(
    analysis: FileAnalysis, remaining_budget: int
) -> FileRepresentation:
    """Pick the richest sensible tier for a file given the remaining budget."""
    if analysis.token_count <= remaining_budget * FULL_SHARE:
        return FileRepresentation.FULL

    if analysis.file_type == FileType.TYPE_DEFINITION:
        if analysis.types_token_count <= remaining_budget * REDUCED_SHARE:
            return FileRepresentation.TYPES_ONLY
        return FileRepresentation.SIGNATURE

    if analysis.file_type in _SIGNATURE_PREFERRED:
        return FileRepresentation.SIGNATURE

    if analysis.token_count > remaining_budget * REDUCED_SHARE:
        return FileRepresentation.SUMMARY

    return FileRepresentation.FULL


def minimal_representation(analysis: FileAnalysis) -> FileRepresentation:
    """Cheapest tier that still carries something useful."""
    if analysis.file_type == FileType.TYPE_DEFINITION:
        return FileRepresentation.TYPES_ONLY
    return FileRepresentation.SUMMARY


class RepresentationRenderer:
    """Materializes a file at a given tier."""

    def __init__(self, comment_prefix: str = "//") -> None:
        self.comment = comment_prefix

    def render(
        self,
        content: str,
        analysis: FileAnalysis,
        representation: FileRepresentation,
    ) -> str:
        if representation == FileRepresentation.SUMMARY:
            return self.summary(analysis)
        if representation == FileRepresentation.SIGNATURE:
            return self.signature(analysis)
        if representation == FileRepresentation.TYPES_ONLY:
            return self.types_only(analysis)
        return content

    def summary(self, analysis: FileAnalysis) -> str:
        c = self.comment
        lines = [f"{c} File: {analysis.path}", f"{c} Type: {analysis.file_type.value}"]

        if analysis.exports:
            lines.append(f"{c} Exports: {', '.join(e.name for e in analysis.exports)}")
        if analysis.components:
            lines.append(f"{c} Components: {', '.join(x.name for x in analysis.components)}")
        if analysis.hooks:
            lines.append(f"{c} Hooks: {', '.join(h.name for h in analysis.hooks)}")
        if analysis.types:
            lines.append(f"{c} Types: {', '.join(t.name for t in analysis.types)}")
        if analysis.api_endpoints:
            endpoints = ", ".join(f"{e.method} {e.path}" for e in analysis.api_endpoints)
            lines.append(f"{c} API Endpoints: {endpoints}")

        lines.append(f"{c} Summary: {analysis.summary}")
        return "\n".join(lines)

    def signature(self, analysis: FileAnalysis) -> str:
        c = self.comment
        lines = [f"{c} File: {analysis.path}"]

        for t in analysis.types:
            lines.append(t.definition)

        for exp in analysis.exports:
            if exp.type_signature:
                lines.append(f"export {exp.type_signature}")
            elif exp.signature:
                keyword = "async function" if exp.is_async else "function"
                default = "default " if exp.is_default else ""
                lines.append(f"export {default}{keyword} {exp.name}{exp.signature};")
            elif exp.kind not in ("type", "interface"):
                target = "default" if exp.kind == "default" else f"const {exp.name}"
                lines.append(f"export {target};")

        for comp in analysis.components:
            if comp.props:
                props = ", ".join(
                    f"{p.name}{'' if p.required else '?'}: {p.type}" for p in comp.props
                )
                props = f"{{ {props} }}"
            else:
                props = "{}"
            lines.append(f"{c} Component: {comp.name}(props: {props})")
            if comp.hooks:
                lines.append(f"{c}   Uses: {', '.join(comp.hooks)}")

        for hook in analysis.hooks:
            returns = f": {hook.return_type}" if hook.return_type else ""
            lines.append(f"{c} Hook: {hook.name}({', '.join(hook.parameters)}){returns}")

        for endpoint in analysis.api_endpoints:
            lines.append(f"{c} API: {endpoint.method} {endpoint.path}")
            if endpoint.request_type:
                lines.append(f"{c}   Request: {endpoint.request_type}")
            if endpoint.response_type:
                lines.append(f"{c}   Response: {endpoint.response_type}")

        return "\n".join(lines)

    def types_only(self, analysis: FileAnalysis) -> str:
        lines = [f"{self.comment} File: {analysis.path} (types only)"]

        for t in analysis.types:
            lines.append(t.definition)
            lines.append("")

        # Type exports the analyzer did not also list as types
        defined = {t.name for t in analysis.types}
        for exp in analysis.exports:
            if exp.kind in ("type", "interface") and exp.type_signature and exp.name not in defined:
                lines.append(exp.type_signature)
                lines.append("")

        return "\n".join(lines)
