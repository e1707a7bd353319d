"""Inconsistency Finder.

Detects terminology inconsistencies across machine-translated novel chapters
with Gemini: rotating API keys with per-key cooldowns, bounded retries, and
multi-round deep analysis whose findings are merged with script-aware
deduplication.
"""

__version__ = "0.1.0"

from inconsistency_finder.domain import Chapter, ErrorRecord, Finding
from inconsistency_finder.services import AnalysisOrchestrator, KeyPool

__all__ = [
    "AnalysisOrchestrator",
    "Chapter",
    "ErrorRecord",
    "Finding",
    "KeyPool",
]
