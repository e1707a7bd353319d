"""Step objects returned by the orchestrator and the retry scheduler.

Instead of scheduling its own timers, the core returns either a
``Continuation`` (wait ``delay_ms``, then await ``resume()`` for the next
step) or a ``Done`` carrying the final run status.  The host decides how to
wait; ``drive`` is the default asyncio driver.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Union

from inconsistency_finder.domain.enums import RunStatus
from inconsistency_finder.domain.findings import ResultItem

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Continuation:
    """Resume the run after ``delay_ms`` milliseconds."""

    label: str
    delay_ms: int
    resume: Callable[[], Awaitable["Step"]] = field(repr=False)


@dataclass(frozen=True)
class Done:
    """The run reached a terminal state."""

    status: RunStatus
    results: list[ResultItem] = field(default_factory=list)
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.COMPLETE


Step = Union[Continuation, Done]


async def drive(step: Step, sleep: SleepFunc = asyncio.sleep) -> Done:
    """Follow continuations until a ``Done`` step is reached."""
    while isinstance(step, Continuation):
        logger.debug("Continuing %s after %dms", step.label, step.delay_ms)
        if step.delay_ms > 0:
            await sleep(step.delay_ms / 1000)
        step = await step.resume()
    return step
