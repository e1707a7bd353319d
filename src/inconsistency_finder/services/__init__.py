"""Service layer for the Inconsistency Finder.

Re-exports public service types for convenient top-level access::

    from inconsistency_finder.services import (
        AnalysisOrchestrator, KeyPool, RetryScheduler,
        ResultMerger, PromptBuilder, Continuation, Done, drive,
    )
"""

from inconsistency_finder.services.key_pool import KeyPool
from inconsistency_finder.services.merger import ResultMerger, merge_results, quality
from inconsistency_finder.services.orchestrator import AnalysisOrchestrator
from inconsistency_finder.services.parsing import (
    extract_json_from_string,
    interpret_response,
    validate_response_shape,
)
from inconsistency_finder.services.prompts import PromptBuilder, summarize_context
from inconsistency_finder.services.retry import RetryScheduler
from inconsistency_finder.services.semantic import are_similar, detect_script
from inconsistency_finder.services.steps import Continuation, Done, Step, drive

__all__ = [
    "AnalysisOrchestrator",
    "Continuation",
    "Done",
    "KeyPool",
    "PromptBuilder",
    "ResultMerger",
    "RetryScheduler",
    "Step",
    "are_similar",
    "detect_script",
    "drive",
    "extract_json_from_string",
    "interpret_response",
    "merge_results",
    "quality",
    "summarize_context",
    "validate_response_shape",
]
