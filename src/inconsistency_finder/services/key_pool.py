"""Rotating pool of API credentials with per-key lifecycle state.

State lives in a ``KeyStateStore`` and is re-read on every call: cooldowns
that have elapsed are promoted back to ``AVAILABLE`` before anything else
happens, so a stale ``ON_COOLDOWN`` entry is never observed.  Only the
rotation cursor is held in memory.

Status transitions::

    AVAILABLE --mark_failure--> ON_COOLDOWN / EXHAUSTED --(unlock time)--> AVAILABLE
    any --(max_failures reached)--> INVALID --reset--> AVAILABLE
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from inconsistency_finder.domain.enums import ErrorClassification, KeyStatus
from inconsistency_finder.domain.events import KeyStateChanged
from inconsistency_finder.domain.values import AcquiredKey, KeyState, now_ms
from inconsistency_finder.infrastructure.config import KeyPoolConfig
from inconsistency_finder.infrastructure.key_store import InMemoryKeyStateStore, KeyStateStore

logger = logging.getLogger(__name__)


class KeyPool:
    """Hand out credentials in rotation and track their health.

    Parameters
    ----------
    api_keys:
        Credentials in rotation order.  A key's index is its position here.
    store:
        Persistence for key state.  Defaults to an in-memory store.
    config:
        Cooldown durations and the invalidation threshold.
    clock:
        Returns the current time in epoch milliseconds.
    event_bus:
        Optional bus for ``KeyStateChanged`` events.
    """

    def __init__(
        self,
        api_keys: Sequence[str],
        store: KeyStateStore | None = None,
        config: KeyPoolConfig | None = None,
        clock: Callable[[], int] | None = None,
        event_bus: object | None = None,
    ) -> None:
        self._keys = tuple(api_keys)
        self._store = store if store is not None else InMemoryKeyStateStore()
        self.config = config or KeyPoolConfig()
        self._clock = clock or now_ms
        self._event_bus = event_bus
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def cursor(self) -> int:
        """Index the next ``acquire`` starts scanning from."""
        return self._cursor

    # -- reads ----------------------------------------------------------------

    def _read(self) -> dict[int, KeyState]:
        """Load state for every configured key, promoting elapsed cooldowns."""
        now = self._clock()
        stored = self._store.load()
        states: dict[int, KeyState] = {}
        changed = set(stored) != set(range(len(self._keys)))
        for index in range(len(self._keys)):
            state = stored.get(index, KeyState())
            if state.is_due(now):
                logger.info(
                    "Key %d recovered from %s", index, state.status.value
                )
                state = state.evolve(status=KeyStatus.AVAILABLE, unlock_time=None)
                changed = True
                self._publish(index, state)
            states[index] = state
        if changed:
            self._store.save(states)
        return states

    def snapshot(self) -> dict[int, KeyState]:
        """Current (normalized) state of every key."""
        return self._read()

    def available_count(self) -> int:
        return sum(1 for state in self._read().values() if state.is_available)

    # -- acquisition ----------------------------------------------------------

    def acquire(self) -> AcquiredKey | None:
        """Return the next usable key, or ``None`` if none is usable now.

        ``None`` is a backpressure signal, not an error: every key is on
        cooldown, exhausted or invalid.
        """
        count = len(self._keys)
        if count == 0:
            return None
        states = self._read()
        now = self._clock()

        for offset in range(count):
            index = (self._cursor + offset) % count
            if states[index].is_available:
                return self._hand_out(index, states[index], states, now)

        # Double-check for a cooldown that elapsed between the read and the scan.
        for index, state in states.items():
            if (
                state.status is KeyStatus.ON_COOLDOWN
                and state.unlock_time is not None
                and state.unlock_time <= now
            ):
                promoted = state.evolve(status=KeyStatus.AVAILABLE, unlock_time=None)
                return self._hand_out(index, promoted, states, now)

        logger.warning("No API key available: all %d key(s) are benched", count)
        return None

    def _hand_out(
        self, index: int, state: KeyState, states: dict[int, KeyState], now: int
    ) -> AcquiredKey:
        state = state.evolve(failure_count=0, last_used=now)
        self._save(index, state, states)
        self._cursor = (index + 1) % len(self._keys)
        logger.debug("Acquired key %d", index)
        return AcquiredKey(key=self._keys[index], index=index, state=state)

    # -- state updates --------------------------------------------------------

    def cooldown_for(self, classification: ErrorClassification) -> tuple[KeyStatus, int]:
        """Status and cooldown duration (ms) for a classified failure."""
        cfg = self.config
        if classification is ErrorClassification.RESOURCE_EXHAUSTED:
            return KeyStatus.EXHAUSTED, cfg.exhausted_cooldown_ms
        if classification in (ErrorClassification.UNAVAILABLE, ErrorClassification.INTERNAL):
            return KeyStatus.ON_COOLDOWN, cfg.server_cooldown_ms
        if classification is ErrorClassification.DEADLINE_EXCEEDED:
            return KeyStatus.ON_COOLDOWN, cfg.deadline_cooldown_ms
        if classification is ErrorClassification.NETWORK:
            return KeyStatus.ON_COOLDOWN, cfg.network_cooldown_ms
        return KeyStatus.ON_COOLDOWN, cfg.default_cooldown_ms

    def mark_failure(self, index: int, classification: ErrorClassification) -> KeyState:
        """Bench key *index* according to *classification*."""
        status, duration = self.cooldown_for(classification)
        state = self.update_state(
            index, status, unlock_time=self._clock() + duration, failure_increment=1
        )
        logger.warning(
            "Key %d marked %s after %s (failures=%d)",
            index, state.status.value, classification.value, state.failure_count,
        )
        return state

    def mark_success(self, index: int) -> KeyState:
        """Clear the failure count and move the cursor past *index*."""
        state = self.update_state(index, KeyStatus.AVAILABLE)
        self._cursor = (index + 1) % len(self._keys)
        return state

    def mark_invalid(self, index: int) -> KeyState:
        """Remove key *index* from rotation until ``reset``."""
        return self.update_state(index, KeyStatus.INVALID)

    def update_state(
        self,
        index: int,
        status: KeyStatus,
        unlock_time: int | None = None,
        failure_increment: int = 0,
    ) -> KeyState:
        """Read-modify-write one key's state.

        Reaching ``config.max_failures`` forces ``INVALID`` whatever *status*
        was requested.  Setting ``AVAILABLE`` resets the failure count.
        """
        self._check_index(index)
        states = self._read()
        current = states[index]
        now = self._clock()

        failures = 0 if status is KeyStatus.AVAILABLE else current.failure_count + failure_increment
        if status is not KeyStatus.INVALID and failures >= self.config.max_failures:
            logger.warning(
                "Key %d reached %d consecutive failures; marking INVALID", index, failures
            )
            status = KeyStatus.INVALID

        benched = status in (KeyStatus.ON_COOLDOWN, KeyStatus.EXHAUSTED)
        state = KeyState(
            status=status,
            unlock_time=unlock_time if benched else None,
            failure_count=failures,
            last_used=current.last_used,
            last_reset=now if status is KeyStatus.EXHAUSTED else current.last_reset,
        )
        self._save(index, state, states)
        return state

    def reset(self, index: int | None = None) -> None:
        """Return one key (or every key) to a clean ``AVAILABLE`` state."""
        states = self._read()
        targets = range(len(self._keys)) if index is None else [index]
        for i in targets:
            self._check_index(i)
            states[i] = KeyState(last_used=states[i].last_used)
            self._publish(i, states[i])
        self._store.save(states)
        logger.info("Reset key state for %s", "all keys" if index is None else f"key {index}")

    # -- helpers --------------------------------------------------------------

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._keys):
            raise IndexError(f"key index {index} out of range for {len(self._keys)} key(s)")

    def _save(self, index: int, state: KeyState, states: dict[int, KeyState]) -> None:
        previous = states.get(index)
        states[index] = state
        self._store.save(states)
        if previous is None or previous.status is not state.status:
            self._publish(index, state)

    def _publish(self, index: int, state: KeyState) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(
                KeyStateChanged(
                    source_id="key_pool",
                    index=index,
                    status=state.status,
                    unlock_time=state.unlock_time,
                    failure_count=state.failure_count,
                )
            )
