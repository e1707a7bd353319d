"""Domain layer for the Inconsistency Finder.

Re-exports all public domain types so that consumers can write::

    from inconsistency_finder.domain import Finding, KeyState, KeyStatus
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    ErrorClassification,
    KeyStatus,
    Priority,
    ResponseKind,
    RunStatus,
    ScriptCategory,
)

# -- Findings -----------------------------------------------------------------
from .findings import (
    ErrorRecord,
    Finding,
    ResultItem,
    Suggestion,
    Variation,
    result_from_dict,
    sanitize_results,
    sanitize_suggestion,
)

# -- Value Objects ------------------------------------------------------------
from .values import (
    AcquiredKey,
    Chapter,
    InitialResponse,
    KeyState,
    ResponseShape,
    VerificationResponse,
    combine_chapters,
)

# -- Entities -----------------------------------------------------------------
from .entities import RunState

# -- Domain Events ------------------------------------------------------------
from .events import (
    AnalysisFinished,
    DomainEvent,
    IterationCompleted,
    KeyStateChanged,
    RetryScheduled,
    StatusChanged,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    BudgetExceededError,
    ContentParseError,
    ExhaustionError,
    FormatError,
    InconsistencyFinderError,
    ProviderError,
    ShellParseError,
    TransportError,
    friendly_error_message,
)

__all__ = [
    # enums
    "ErrorClassification",
    "KeyStatus",
    "Priority",
    "ResponseKind",
    "RunStatus",
    "ScriptCategory",
    # findings
    "ErrorRecord",
    "Finding",
    "ResultItem",
    "Suggestion",
    "Variation",
    "result_from_dict",
    "sanitize_results",
    "sanitize_suggestion",
    # values
    "AcquiredKey",
    "Chapter",
    "InitialResponse",
    "KeyState",
    "ResponseShape",
    "VerificationResponse",
    "combine_chapters",
    # entities
    "RunState",
    # events
    "AnalysisFinished",
    "DomainEvent",
    "IterationCompleted",
    "KeyStateChanged",
    "RetryScheduled",
    "StatusChanged",
    # exceptions
    "BudgetExceededError",
    "ContentParseError",
    "ExhaustionError",
    "FormatError",
    "InconsistencyFinderError",
    "ProviderError",
    "ShellParseError",
    "TransportError",
    "friendly_error_message",
]
