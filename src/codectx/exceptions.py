"""Custom exceptions for codectx.

The selection engine itself never raises for well-formed input; these are
used by the host layer (config files, corpus loading, CLI).
"""


class CodeCtxError(Exception):
    """Base exception for all codectx errors."""


class ConfigError(CodeCtxError):
    """Configuration-related errors."""


class CorpusError(CodeCtxError):
    """Raised when a corpus file cannot be read or validated."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid corpus '{path}': {reason}")


class GraphError(CodeCtxError):
    """Dependency graph errors."""
