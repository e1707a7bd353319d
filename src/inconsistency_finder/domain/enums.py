"""Domain enumerations for the Inconsistency Finder.

These enums capture the fixed vocabularies used across the domain layer:
credential lifecycle states, finding priorities, script categories used as a
merge safety gate, provider error classifications, and run states.
"""

from enum import Enum


class KeyStatus(Enum):
    """Lifecycle status of a single API credential."""

    AVAILABLE = "AVAILABLE"
    ON_COOLDOWN = "ON_COOLDOWN"
    EXHAUSTED = "EXHAUSTED"  # daily quota used up
    INVALID = "INVALID"  # removed from rotation until manual reset


class Priority(Enum):
    """Impact-based priority assigned to a finding by the model."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    STYLISTIC = "STYLISTIC"
    INFO = "INFO"

    @property
    def weight(self) -> int:
        """Base quality weight used when ranking and merging findings."""
        return _PRIORITY_WEIGHTS[self]

    @classmethod
    def parse(cls, value: object) -> "Priority | None":
        """Return the matching member for *value*, or ``None`` if unknown.

        Matching ignores case and surrounding whitespace, so ``"high"`` ranks
        as ``HIGH`` when findings are scored.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


_PRIORITY_WEIGHTS = {
    Priority.CRITICAL: 100,
    Priority.HIGH: 80,
    Priority.MEDIUM: 60,
    Priority.LOW: 40,
    Priority.STYLISTIC: 20,
    Priority.INFO: 10,
}


class ScriptCategory(Enum):
    """Coarse Unicode classification of a concept string."""

    LATIN = "latin"
    CJK = "cjk"
    CYRILLIC = "cyrillic"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class ErrorClassification(Enum):
    """Classified cause of a failed request, used to pick a key cooldown."""

    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"  # 429 rate limit / quota
    INTERNAL = "INTERNAL"  # 500
    UNAVAILABLE = "UNAVAILABLE"  # 503 overloaded
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"  # 504 timeout
    NETWORK = "NETWORK"
    UNKNOWN = "UNKNOWN"


class RunStatus(Enum):
    """States reported on the caller-visible status channel."""

    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


class ResponseKind(Enum):
    """Shape of a successfully parsed model response."""

    INITIAL = "initial"
    VERIFICATION = "verification"
