"""Per-file analysis models and corpus loading."""

from codectx.analysis.models import (
    FILE_TYPE_IMPORTANCE,
    FileAnalysis,
    FileContent,
    FileType,
    FileUpdate,
)

__all__ = [
    "FILE_TYPE_IMPORTANCE",
    "FileAnalysis",
    "FileContent",
    "FileType",
    "FileUpdate",
]
