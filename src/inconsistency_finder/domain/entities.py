"""Domain entities for the Inconsistency Finder.

``RunState`` is the one mutable object in the domain: it tracks a single
analysis run (iteration counters, retry timers, the cumulative result set)
and is owned by exactly one orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .findings import ErrorRecord, Finding, ResultItem, findings_only


@dataclass
class RunState:
    """Mutable state of the analysis in progress.

    ``started_at`` is the wall-clock start of the current single-pass retry
    chain; ``iteration_started_at`` keeps one start time per deep-analysis
    iteration so that each iteration has its own retry budget.
    """

    is_running: bool = False
    current_iteration: int = 1
    total_iterations: int = 1
    cumulative: list[ResultItem] = field(default_factory=list)
    current_key_index: int = 0
    started_at: int | None = None
    iteration_started_at: dict[int, int] = field(default_factory=dict)

    # -- lifecycle transitions ------------------------------------------------

    def begin(self, total_iterations: int, seed: list[Finding]) -> None:
        self.is_running = True
        self.current_iteration = 1
        self.total_iterations = total_iterations
        self.cumulative = list(seed)
        self.started_at = None
        self.iteration_started_at.clear()

    def finish(self) -> None:
        self.is_running = False
        self.started_at = None
        self.iteration_started_at.clear()

    def record_error(self, message: str) -> ErrorRecord:
        """Append a terminal error without discarding earlier findings."""
        record = ErrorRecord(error=message)
        self.cumulative.append(record)
        self.finish()
        return record

    @property
    def findings(self) -> list[Finding]:
        return findings_only(self.cumulative)
