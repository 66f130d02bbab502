"""Intent-driven, token-budgeted context selection."""

from codectx.context.models import (
    ContextSelectionRequest,
    ContextSelectionResult,
    ContextSnapshot,
    CrossReferenceIntent,
    ExcludedFile,
    FileRepresentation,
    FullContextIntent,
    ModificationIntent,
    NewPhaseIntent,
    OmittedSummary,
    SelectedFile,
    TokenEstimator,
    TypeCheckIntent,
)
from codectx.context.selector import ContextSelector
from codectx.context.state import CodeContextState

__all__ = [
    "CodeContextState",
    "ContextSelectionRequest",
    "ContextSelectionResult",
    "ContextSelector",
    "ContextSnapshot",
    "CrossReferenceIntent",
    "ExcludedFile",
    "FileRepresentation",
    "FullContextIntent",
    "ModificationIntent",
    "NewPhaseIntent",
    "OmittedSummary",
    "SelectedFile",
    "TokenEstimator",
    "TypeCheckIntent",
]
