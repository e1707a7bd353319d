"""Analysis orchestration: single passes and multi-iteration deep analysis.

The orchestrator owns one ``RunState``.  Each request attempt acquires a key,
sends the prompt, interprets the response and then either

* finishes the pass (``_finish_single`` / ``_finish_iteration``),
* hands a retriable failure to the ``RetryScheduler``, or
* ends the run through ``_fail``, the single terminal error path, which
  appends an ``ErrorRecord`` and reports the message on the status channel.

Methods return ``Continuation`` / ``Done`` steps rather than sleeping
themselves; ``run()`` drives them to completion with an injectable sleep.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from functools import partial

from inconsistency_finder.domain.entities import RunState
from inconsistency_finder.domain.enums import ErrorClassification, RunStatus
from inconsistency_finder.domain.events import (
    AnalysisFinished,
    DomainEvent,
    IterationCompleted,
    StatusChanged,
)
from inconsistency_finder.domain.exceptions import (
    ContentParseError,
    ExhaustionError,
    FormatError,
    ProviderError,
    ShellParseError,
    TransportError,
    friendly_error_message,
)
from inconsistency_finder.domain.findings import ResultItem, findings_only
from inconsistency_finder.domain.values import (
    Chapter,
    ResponseShape,
    VerificationResponse,
    now_ms,
)
from inconsistency_finder.infrastructure.config import AnalysisConfig, RetryConfig
from inconsistency_finder.infrastructure.event_bus import EventBus
from inconsistency_finder.infrastructure.llm import Transport
from inconsistency_finder.infrastructure.session_store import SessionStore
from inconsistency_finder.services.key_pool import KeyPool
from inconsistency_finder.services.merger import ResultMerger
from inconsistency_finder.services.parsing import interpret_response
from inconsistency_finder.services.prompts import PromptBuilder
from inconsistency_finder.services.retry import RetryScheduler
from inconsistency_finder.services.semantic import are_similar
from inconsistency_finder.services.steps import Continuation, Done, SleepFunc, Step, drive

logger = logging.getLogger(__name__)

SINGLE_OPERATION = "Analysis"


@dataclass(frozen=True)
class _Attempt:
    """Everything needed to (re)issue one request of a pass."""

    operation: str
    chapters: tuple[Chapter, ...]
    context: tuple[ResultItem, ...]
    started_at: int
    on_success: Callable[[ResponseShape], Awaitable[Step]] = field(repr=False)
    retry_count: int = 0
    parse_retry_count: int = 0
    announce: bool = True

    @property
    def verification(self) -> bool:
        return len(self.context) > 0

    def next(self, parse_increment: int = 0) -> _Attempt:
        return replace(
            self,
            retry_count=self.retry_count + 1,
            parse_retry_count=self.parse_retry_count + parse_increment,
        )


class AnalysisOrchestrator:
    """Drive analysis runs against a key pool and a transport.

    Parameters
    ----------
    key_pool:
        Credential rotation and health tracking.
    transport:
        Sends requests; see ``inconsistency_finder.infrastructure.llm``.
    config:
        Model, temperature, depth and merge settings.
    retry_config:
        Backoff and ceiling settings for the retry scheduler.
    prompt_builder, merger:
        Override the default prompt construction or merge policy.
    session_store:
        If given, cumulative results are saved after every successful pass.
    event_bus:
        Receives status, retry, iteration and completion events.
    clock:
        Returns epoch milliseconds; tests pass a fake clock.
    sleep:
        Awaited for continuation delays in ``run()``.
    """

    def __init__(
        self,
        key_pool: KeyPool,
        transport: Transport,
        config: AnalysisConfig | None = None,
        *,
        retry_config: RetryConfig | None = None,
        prompt_builder: PromptBuilder | None = None,
        merger: ResultMerger | None = None,
        session_store: SessionStore | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], int] | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self.config = config or AnalysisConfig()
        self.key_pool = key_pool
        self.transport = transport
        self.prompts = prompt_builder or PromptBuilder(self.config.context_limit)
        self.merger = merger or ResultMerger(self.config.merge_quality_threshold)
        self.session_store = session_store
        self.event_bus = event_bus
        self._clock = clock or now_ms
        self._sleep = sleep or asyncio.sleep
        self.retry = RetryScheduler(
            retry_config, on_error=self._fail, clock=self._clock, event_bus=event_bus
        )
        self.state = RunState()

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def results(self) -> list[ResultItem]:
        return list(self.state.cumulative)

    # ================================================================== #
    #  Entry point                                                        #
    # ================================================================== #

    async def run(
        self,
        chapters: Sequence[Chapter],
        prior_results: Sequence[ResultItem] = (),
        depth: int | None = None,
    ) -> Done:
        """Analyze *chapters* and return the terminal step.

        With *prior_results* the run is a continuation: prior findings seed
        the cumulative results and are sent to the model for verification.
        Nothing raised inside the run escapes this method; failures end as a
        ``Done`` with ``RunStatus.ERROR``.
        """
        if self.state.is_running:
            logger.warning("Analysis already running; ignoring new request")
            return Done(RunStatus.ERROR, self.results, "An analysis is already running.")

        depth = depth or self.config.deep_analysis_depth
        self.state.begin(depth, findings_only(prior_results))
        logger.info(
            "Starting analysis of %d chapter(s), depth %d, %d prior finding(s)",
            len(chapters), depth, len(self.state.cumulative),
        )

        try:
            step = await self.run_deep(chapters, self.state.cumulative, depth)
            done = await drive(step, self._sleep)
        except Exception as exc:
            logger.exception("Unexpected error during analysis")
            done = self._fail(f"Analysis encountered an unexpected error: {exc}")

        self._publish(AnalysisFinished(
            source_id="orchestrator",
            state=done.status,
            result_count=len(done.results),
            message=done.message,
        ))
        return done

    # ================================================================== #
    #  Passes                                                             #
    # ================================================================== #

    async def run_single(
        self,
        chapters: Sequence[Chapter],
        prior_results: Sequence[ResultItem] = (),
        retry_count: int = 0,
        parse_retry_count: int = 0,
    ) -> Step:
        """One analysis pass whose response replaces the cumulative results."""
        if self.state.started_at is None:
            self.state.started_at = self._clock()
        attempt = _Attempt(
            operation=SINGLE_OPERATION,
            chapters=tuple(chapters),
            context=tuple(prior_results),
            started_at=self.state.started_at,
            on_success=self._finish_single,
            retry_count=retry_count,
            parse_retry_count=parse_retry_count,
        )
        return await self._execute(attempt)

    async def run_deep(
        self,
        chapters: Sequence[Chapter],
        prior_results: Sequence[ResultItem],
        target_depth: int,
        current_depth: int = 1,
    ) -> Step:
        """Iteration *current_depth* of *target_depth*.

        Depth 1 delegates to ``run_single``.  Deeper runs merge each
        iteration into the cumulative results and continue after
        ``iteration_delay_ms``.
        """
        if current_depth > target_depth:
            return self._complete(target_depth)

        self.state.is_running = True
        self.state.current_iteration = current_depth
        self.state.total_iterations = target_depth
        if target_depth > 1 or current_depth > 1:
            self._status(RunStatus.RUNNING, f"Deep Analysis ({current_depth}/{target_depth})...")
        else:
            self._status(RunStatus.RUNNING, "Analyzing...")

        context = list(self.state.cumulative) or list(prior_results)
        if target_depth == 1:
            return await self.run_single(chapters, context)

        started_at = self.state.iteration_started_at.setdefault(current_depth, self._clock())
        attempt = _Attempt(
            operation=f"Deep analysis iteration {current_depth}/{target_depth}",
            chapters=tuple(chapters),
            context=tuple(context),
            started_at=started_at,
            on_success=partial(self._finish_iteration, tuple(chapters), target_depth, current_depth),
            announce=False,
        )
        return await self._execute(attempt)

    # ================================================================== #
    #  One request                                                        #
    # ================================================================== #

    async def _execute(self, attempt: _Attempt) -> Step:
        max_retries = self.retry.max_retries_for(len(self.key_pool))
        exceeded = self.retry.check_budget(
            attempt.operation, attempt.retry_count, max_retries, attempt.started_at
        )
        if exceeded is not None:
            return self._fail(str(exceeded))

        acquired = self.key_pool.acquire()
        if acquired is None:
            return self._fail(str(ExhaustionError()))

        self.state.is_running = True
        self.state.current_key_index = acquired.index
        if attempt.announce:
            self._status(
                RunStatus.RUNNING,
                f"{attempt.operation} (Key {acquired.index + 1}, Attempt {attempt.retry_count + 1})...",
            )

        combined = self.prompts.combine_chapters(attempt.chapters)
        prompt = self.prompts.build(combined, attempt.context)
        payload = self.prompts.build_payload(prompt, self.config.temperature)
        logger.info(
            "%s: sending %d characters with key %d (attempt %d)",
            attempt.operation, len(combined), acquired.index, attempt.retry_count + 1,
        )

        try:
            raw = await self.transport.send(acquired.key, payload)
            shape = interpret_response(raw, verification=attempt.verification)
        except TransportError as exc:
            logger.warning("%s: network error with key %d: %s", attempt.operation, acquired.index, exc)
            self.key_pool.mark_failure(acquired.index, ErrorClassification.NETWORK)
            return self._schedule(attempt, attempt.operation, max_retries)
        except ShellParseError as exc:
            logger.warning("%s: unreadable response body: %s", attempt.operation, exc)
            return self._schedule(attempt, f"{attempt.operation} (shell parse recovery)", max_retries)
        except ProviderError as exc:
            if not exc.retriable:
                return self._fail(str(exc))
            logger.warning(
                "%s: retriable API error (Status: %s) with key %d",
                attempt.operation, exc.status, acquired.index,
            )
            self.key_pool.mark_failure(acquired.index, exc.classification)
            self._status(RunStatus.RUNNING, friendly_error_message(exc.status, exc.provider_message))
            return self._schedule(attempt, attempt.operation, max_retries)
        except ContentParseError as exc:
            if attempt.parse_retry_count < 1:
                logger.warning("%s: malformed AI response content: %s", attempt.operation, exc)
                self._status(RunStatus.RUNNING, "AI response malformed. Retrying...")
                return self._schedule(
                    attempt, f"{attempt.operation} (parse recovery)", max_retries, parse_increment=1
                )
            return self._fail(
                f"{attempt.operation} failed to process AI response content after retry: {exc}"
            )
        except FormatError as exc:
            return self._fail(str(exc))

        self.key_pool.mark_success(acquired.index)
        self.state.current_key_index = (acquired.index + 1) % len(self.key_pool)
        return await attempt.on_success(shape)

    def _schedule(
        self, attempt: _Attempt, op_name: str, max_retries: int, parse_increment: int = 0
    ) -> Step:
        retry = attempt.next(parse_increment)
        return self.retry.schedule(
            op_name,
            attempt.retry_count,
            max_retries,
            attempt.started_at,
            lambda: self._execute(retry),
        )

    # ================================================================== #
    #  Success paths                                                      #
    # ================================================================== #

    async def _finish_single(self, shape: ResponseShape) -> Step:
        items = shape.flagged()
        if isinstance(shape, VerificationResponse):
            logger.info(
                "Verification complete. %d concept(s) re-verified, %d new",
                len(shape.verified), len(shape.new),
            )
        previous = self.state.findings

        if self.config.merge_single_continuation:
            self.state.cumulative = self.merger.merge(previous, items)
        else:
            dropped = [
                f for f in previous
                if not any(are_similar(f.concept, item.concept) for item in items)
            ]
            if dropped:
                logger.warning(
                    "Continuation replaced the accumulated results; %d finding(s) "
                    "not re-confirmed this pass were dropped",
                    len(dropped),
                )
            self.state.cumulative = list(items)

        self._persist()
        return self._complete(1)

    async def _finish_iteration(
        self,
        chapters: tuple[Chapter, ...],
        target_depth: int,
        current_depth: int,
        shape: ResponseShape,
    ) -> Step:
        items = shape.flagged()
        verified = len(shape.verified) if isinstance(shape, VerificationResponse) else 0
        self.state.cumulative = self.merger.merge(self.state.cumulative, items)
        self._persist()
        self.state.iteration_started_at.pop(current_depth, None)
        self._publish(IterationCompleted(
            source_id="orchestrator",
            iteration=current_depth,
            total=target_depth,
            verified=verified,
            new=len(items) - verified,
            cumulative=len(self.state.cumulative),
        ))
        logger.info(
            "Deep analysis iteration %d/%d merged: %d result(s) total",
            current_depth, target_depth, len(self.state.cumulative),
        )

        self.state.current_iteration = current_depth + 1
        if current_depth >= target_depth:
            return self._complete(target_depth)

        cumulative = list(self.state.cumulative)
        return Continuation(
            label=f"deep analysis iteration {current_depth + 1}/{target_depth}",
            delay_ms=self.config.iteration_delay_ms,
            resume=lambda: self.run_deep(chapters, cumulative, target_depth, current_depth + 1),
        )

    # ================================================================== #
    #  Terminal states                                                    #
    # ================================================================== #

    def _complete(self, depth: int) -> Done:
        self.state.finish()
        message = f"Complete! (Deep Analysis: {depth} iterations)" if depth > 1 else "Complete!"
        self._status(RunStatus.COMPLETE, message)
        return Done(RunStatus.COMPLETE, self.results, message)

    def _fail(self, message: str) -> Done:
        """The single terminal error path."""
        logger.error("%s", message)
        self.state.record_error(message)
        self._status(RunStatus.ERROR, message)
        return Done(RunStatus.ERROR, self.results, message)

    # ================================================================== #
    #  Helpers                                                            #
    # ================================================================== #

    def _persist(self) -> None:
        if self.session_store is None:
            return
        self.session_store.save(
            self.state.cumulative,
            model=self.config.model,
            temperature=self.config.temperature,
        )

    def _status(self, state: RunStatus, message: str) -> None:
        self._publish(StatusChanged(source_id="orchestrator", state=state, message=message))

    def _publish(self, event: DomainEvent) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)
