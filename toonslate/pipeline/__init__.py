"""Chapter translation pipeline: state machine and retry policy."""

from .orchestrator import (
    FinalizedChapter,
    PipelineState,
    TranslationOrchestrator,
    apply_suggestions,
    parse_suggestion_replacement,
)
from .retry import RetryPolicy

__all__ = [
    "FinalizedChapter",
    "PipelineState",
    "RetryPolicy",
    "TranslationOrchestrator",
    "apply_suggestions",
    "parse_suggestion_replacement",
]
