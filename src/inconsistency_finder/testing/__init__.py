"""Testing utilities for the Inconsistency Finder."""

from inconsistency_finder.testing.scripted_transport import (
    ScriptedTransport,
    SentRequest,
    empty_candidate,
    findings_response,
    provider_error,
    text_response,
    verification_response,
)

__all__ = [
    "ScriptedTransport",
    "SentRequest",
    "empty_candidate",
    "findings_response",
    "provider_error",
    "text_response",
    "verification_response",
]
