"""Bounded retry scheduling with exponential backoff.

Every retriable failure passes through ``RetryScheduler.schedule``, which
enforces two ceilings before anything is retried:

* attempts: ``retry_count >= max_retries`` ends the chain;
* wall clock: more than ``max_total_duration_ms`` since ``started_at``.

Otherwise it returns a ``Continuation`` whose delay follows
``min(base * 2**retry_count, max)``.  Exceptions raised by the continuation
are converted into a terminal report instead of propagating to the host.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from inconsistency_finder.domain.enums import RunStatus
from inconsistency_finder.domain.events import RetryScheduled, StatusChanged
from inconsistency_finder.domain.exceptions import BudgetExceededError
from inconsistency_finder.domain.values import now_ms
from inconsistency_finder.infrastructure.config import RetryConfig
from inconsistency_finder.services.steps import Continuation, Step

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[str], Step]
NextStep = Callable[[], Awaitable[Step]]


class RetryScheduler:
    """Decide whether and when a failed operation runs again.

    Parameters
    ----------
    config:
        Backoff and ceiling settings.
    on_error:
        Terminal error callback.  Receives the user-facing message and
        returns the step the run ends with.  Can be overridden per call.
    clock:
        Returns the current time in epoch milliseconds.
    event_bus:
        Optional bus for ``RetryScheduled`` and ``StatusChanged`` events.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        on_error: ErrorCallback | None = None,
        clock: Callable[[], int] | None = None,
        event_bus: object | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._on_error = on_error
        self._clock = clock or now_ms
        self._event_bus = event_bus

    def backoff_delay_ms(self, retry_count: int) -> int:
        """Delay before retry number ``retry_count + 1``."""
        if self.config.immediate_retry:
            return 0
        # Cap the exponent so huge retry counts cannot overflow into floats.
        exponent = min(retry_count, 32)
        return min(self.config.base_backoff_ms * 2**exponent, self.config.max_backoff_ms)

    def max_retries_for(self, num_keys: int) -> int:
        return max(1, num_keys) * self.config.max_retries_per_key

    def check_budget(
        self,
        op_name: str,
        retry_count: int,
        max_retries: int,
        started_at: int,
    ) -> BudgetExceededError | None:
        """Return the ceiling that has been hit, if any."""
        if retry_count >= max_retries:
            return BudgetExceededError(
                f"{op_name} failed after {retry_count} attempts across all keys. "
                "Please check your API keys or wait a while.",
                operation=op_name,
                attempts=retry_count,
            )
        if self._clock() - started_at > self.config.max_total_duration_ms:
            return BudgetExceededError(
                f"{op_name} failed after repeated retries over an extended period. "
                "Please wait a while before trying again.",
                operation=op_name,
                attempts=retry_count,
            )
        return None

    def schedule(
        self,
        op_name: str,
        retry_count: int,
        max_retries: int,
        started_at: int,
        next_step: NextStep,
        on_error: ErrorCallback | None = None,
    ) -> Step:
        """Return a ``Continuation`` for *next_step*, or the terminal step.

        When a ceiling is hit, *next_step* is never called and the error
        callback fires exactly once.
        """
        report = on_error or self._on_error
        if report is None:
            raise ValueError("RetryScheduler.schedule requires an error callback")

        exceeded = self.check_budget(op_name, retry_count, max_retries, started_at)
        if exceeded is not None:
            logger.error("%s", exceeded)
            return report(str(exceeded))

        delay = self.backoff_delay_ms(retry_count)
        logger.warning(
            "%s: scheduling retry #%d with backoff delay %dms",
            op_name, retry_count + 1, delay,
        )
        self._publish(RetryScheduled(
            source_id="retry", operation=op_name, attempt=retry_count + 1, delay_ms=delay,
        ))
        self._publish(StatusChanged(
            source_id="retry",
            state=RunStatus.RUNNING,
            message=f"Retrying in {round(delay / 1000)}s...",
        ))

        async def resume() -> Step:
            try:
                return await next_step()
            except Exception:
                logger.exception("Unexpected error during scheduled retry for %s", op_name)
                return report(
                    f"{op_name} encountered an unexpected error during retry. "
                    "Please try again."
                )

        return Continuation(label=f"retry {op_name}", delay_ms=delay, resume=resume)

    def _publish(self, event: object) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
