"""Infrastructure layer: configuration, events, persistence and transport."""

from inconsistency_finder.infrastructure.config import (
    AnalysisConfig,
    KeyPoolConfig,
    RetryConfig,
    Settings,
    load_config_file,
    load_config_from_json,
)
from inconsistency_finder.infrastructure.event_bus import EventBus, EventStore, subscribe_status
from inconsistency_finder.infrastructure.key_store import (
    InMemoryKeyStateStore,
    JsonFileKeyStateStore,
    KeyStateStore,
)
from inconsistency_finder.infrastructure.session_store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionSnapshot,
    SessionStore,
)

__all__ = [
    "AnalysisConfig",
    "EventBus",
    "EventStore",
    "InMemoryKeyStateStore",
    "InMemorySessionStore",
    "JsonFileKeyStateStore",
    "JsonFileSessionStore",
    "KeyPoolConfig",
    "KeyStateStore",
    "RetryConfig",
    "SessionSnapshot",
    "SessionStore",
    "Settings",
    "load_config_file",
    "load_config_from_json",
    "subscribe_status",
]
