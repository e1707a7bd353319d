"""Configuration dataclasses for the Inconsistency Finder.

Each config is a frozen ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid combinations, plus ``to_dict()`` / ``from_dict()``
for persistence.  ``load_config_file`` reads JSON or YAML files whose
top-level keys name config sections (``analysis``, ``retry``, ``key_pool``).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

API_KEYS_ENV = "INCONSISTENCY_FINDER_API_KEYS"

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _from_dict(cls: type, data: dict[str, Any]) -> Any:
    valid_keys = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_keys}
    cfg = cls(**filtered)
    cfg.validate()
    return cfg


# ===================================================================== #
#  Retry Configuration                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class RetryConfig:
    """Parameters governing retry scheduling.

    Attributes
    ----------
    max_retries_per_key:
        Attempt ceiling per configured key; the total ceiling is
        ``max(1, number_of_keys) * max_retries_per_key``.
    base_backoff_ms:
        Delay before the first retry.  Doubles on each retry.
    max_backoff_ms:
        Upper bound on a single backoff delay.
    max_total_duration_ms:
        Wall-clock ceiling for one retry chain.
    immediate_retry:
        Skip the backoff delay entirely (key rotation still applies).
    """

    max_retries_per_key: int = 3
    base_backoff_ms: int = 2000
    max_backoff_ms: int = 60000
    max_total_duration_ms: int = 300000
    immediate_retry: bool = False

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if self.max_retries_per_key < 1:
            raise ValueError(
                f"max_retries_per_key must be >= 1, got {self.max_retries_per_key}"
            )
        if self.base_backoff_ms < 0:
            raise ValueError(f"base_backoff_ms must be >= 0, got {self.base_backoff_ms}")
        if self.max_backoff_ms < self.base_backoff_ms:
            raise ValueError(
                f"max_backoff_ms ({self.max_backoff_ms}) must be >= "
                f"base_backoff_ms ({self.base_backoff_ms})"
            )
        if self.max_total_duration_ms < 1:
            raise ValueError(
                f"max_total_duration_ms must be >= 1, got {self.max_total_duration_ms}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryConfig:
        return _from_dict(cls, data)


# ===================================================================== #
#  Key Pool Configuration                                                #
# ===================================================================== #

@dataclass(frozen=True)
class KeyPoolConfig:
    """Cooldown durations per error classification, in milliseconds.

    Attributes
    ----------
    exhausted_cooldown_ms:
        Daily quota window for ``RESOURCE_EXHAUSTED``.
    server_cooldown_ms:
        ``UNAVAILABLE`` and ``INTERNAL`` server errors.
    deadline_cooldown_ms:
        ``DEADLINE_EXCEEDED`` timeouts.
    network_cooldown_ms:
        Transport-level failures.
    default_cooldown_ms:
        Anything unclassified.
    max_failures:
        Consecutive failures after which a key is marked ``INVALID``.
    """

    exhausted_cooldown_ms: int = 24 * 60 * 60 * 1000
    server_cooldown_ms: int = 60 * 1000
    deadline_cooldown_ms: int = 30 * 1000
    network_cooldown_ms: int = 1000
    default_cooldown_ms: int = 60 * 1000
    max_failures: int = 3

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name.endswith("_ms") and value < 0:
                raise ValueError(f"{f.name} must be >= 0, got {value}")
        if self.max_failures < 1:
            raise ValueError(f"max_failures must be >= 1, got {self.max_failures}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyPoolConfig:
        return _from_dict(cls, data)


# ===================================================================== #
#  Analysis Configuration                                                #
# ===================================================================== #

@dataclass(frozen=True)
class AnalysisConfig:
    """Describes one analysis setup: credentials, model and iteration policy.

    Attributes
    ----------
    api_keys:
        Ordered credentials.  Rotation follows this order.
    model:
        Gemini model identifier.
    temperature:
        Sampling temperature.
    deep_analysis_depth:
        Number of iterations for deep analysis (1 means single pass).
    context_limit:
        Maximum prior findings forwarded to the model as context.
    iteration_delay_ms:
        Pause between deep-analysis iterations.
    merge_quality_threshold:
        Quality margin an incoming finding needs to replace an existing one.
    merge_single_continuation:
        Merge instead of replace when a depth-1 continuation returns.
    logging_enabled:
        Raise the package log level to ``INFO``.
    base_url:
        Generative Language API root.
    request_timeout:
        Seconds before an HTTP request is abandoned.
    """

    api_keys: tuple[str, ...] = ()
    model: str = DEFAULT_MODEL
    temperature: float = 0.5
    deep_analysis_depth: int = 1
    context_limit: int = 30
    iteration_delay_ms: int = 1000
    merge_quality_threshold: int = 40
    merge_single_continuation: bool = False
    logging_enabled: bool = False
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 120.0

    def __post_init__(self) -> None:
        # frozen=True prevents normal assignment; coerce lists from JSON.
        if not isinstance(self.api_keys, tuple):
            object.__setattr__(self, "api_keys", tuple(self.api_keys or ()))

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if not all(isinstance(k, str) for k in self.api_keys):
            raise ValueError("api_keys must contain only strings")
        if not self.model:
            raise ValueError("model must not be empty")
        if not (0.0 <= self.temperature <= 2.0):
            raise ValueError(f"temperature must be in [0, 2], got {self.temperature}")
        if self.deep_analysis_depth < 1:
            raise ValueError(
                f"deep_analysis_depth must be >= 1, got {self.deep_analysis_depth}"
            )
        if self.context_limit < 1:
            raise ValueError(f"context_limit must be >= 1, got {self.context_limit}")
        if self.iteration_delay_ms < 0:
            raise ValueError(
                f"iteration_delay_ms must be >= 0, got {self.iteration_delay_ms}"
            )
        if self.merge_quality_threshold < 0:
            raise ValueError(
                f"merge_quality_threshold must be >= 0, got {self.merge_quality_threshold}"
            )
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")

    def with_keys(self, keys: list[str] | tuple[str, ...]) -> AnalysisConfig:
        """Return a copy whose key list is extended by *keys* (deduplicated)."""
        merged = list(self.api_keys)
        for key in keys:
            key = key.strip()
            if key and key not in merged:
                merged.append(key)
        data = self.to_dict()
        data["api_keys"] = merged
        return AnalysisConfig.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["api_keys"] = list(self.api_keys)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisConfig:
        data = dict(data)
        legacy = data.pop("api_key", None)
        if legacy and not data.get("api_keys"):
            logger.info("Migrating legacy single API key to the api_keys list")
            data["api_keys"] = [legacy]
        return _from_dict(cls, data)


# ===================================================================== #
#  Unified config loader                                                 #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "analysis": AnalysisConfig,
    "retry": RetryConfig,
    "key_pool": KeyPoolConfig,
}


@dataclass(frozen=True)
class Settings:
    """The three typed sections of a config file, with defaults filled in."""

    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    key_pool: KeyPoolConfig = field(default_factory=KeyPoolConfig)


def _sections(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError("Top-level config must be an object")
    result: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            result[section] = cls.from_dict(data)
        else:
            result[section] = data
    return result


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Parse a JSON string into a dict of typed config objects.

    Known sections (``analysis``, ``retry``, ``key_pool``) become config
    instances; unknown sections are preserved as raw values.
    """
    return _sections(json.loads(json_str))


def load_config_from_yaml(yaml_str: str) -> dict[str, Any]:
    """YAML counterpart of ``load_config_from_json``."""
    return _sections(yaml.safe_load(yaml_str) or {})


def load_config_file(path: str | os.PathLike[str] | None = None) -> Settings:
    """Load settings from *path* and the environment.

    ``.yaml`` / ``.yml`` files are read with PyYAML, everything else as JSON.
    Keys listed in ``INCONSISTENCY_FINDER_API_KEYS`` (comma separated) are
    appended to the configured keys.
    """
    sections: dict[str, Any] = {}
    if path is not None:
        p = Path(path)
        text = p.read_text(encoding="utf-8")
        if p.suffix.lower() in (".yaml", ".yml"):
            sections = load_config_from_yaml(text)
        else:
            sections = load_config_from_json(text)
        logger.debug("Loaded config sections %s from %s", sorted(sections), p)

    analysis = sections.get("analysis")
    if not isinstance(analysis, AnalysisConfig):
        analysis = AnalysisConfig()
    env_keys = os.environ.get(API_KEYS_ENV, "")
    if env_keys.strip():
        analysis = analysis.with_keys(env_keys.split(","))

    retry = sections.get("retry")
    key_pool = sections.get("key_pool")
    return Settings(
        analysis=analysis,
        retry=retry if isinstance(retry, RetryConfig) else RetryConfig(),
        key_pool=key_pool if isinstance(key_pool, KeyPoolConfig) else KeyPoolConfig(),
    )
