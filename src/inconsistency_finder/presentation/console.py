"""Rich-based console rendering for findings and key state.

:class:`ConsoleDashboard` prints the result table of an analysis, the
credential health table, and one-line status updates from the event bus.
"""

from __future__ import annotations

import sys
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.table import Table
from rich.text import Text

from inconsistency_finder.domain.enums import KeyStatus, Priority, RunStatus
from inconsistency_finder.domain.findings import ErrorRecord, Finding, ResultItem
from inconsistency_finder.domain.values import KeyState

# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------

_PRIORITY_STYLES = {
    Priority.CRITICAL: "bold red",
    Priority.HIGH: "red",
    Priority.MEDIUM: "yellow",
    Priority.LOW: "cyan",
    Priority.STYLISTIC: "magenta",
    Priority.INFO: "dim",
}

_KEY_STYLES = {
    KeyStatus.AVAILABLE: "green",
    KeyStatus.ON_COOLDOWN: "yellow",
    KeyStatus.EXHAUSTED: "red",
    KeyStatus.INVALID: "bold red",
}

_STATUS_STYLES = {
    RunStatus.RUNNING: "cyan",
    RunStatus.COMPLETE: "bold green",
    RunStatus.ERROR: "bold red",
}


def _format_ms(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _recommended(finding: Finding) -> str:
    for suggestion in finding.suggestions:
        if suggestion.is_recommended:
            return suggestion.suggestion
    return finding.suggestions[0].suggestion if finding.suggestions else ""


# ---------------------------------------------------------------------------
# ConsoleDashboard
# ---------------------------------------------------------------------------

class ConsoleDashboard:
    """Console presentation layer for analysis results.

    Parameters
    ----------
    file:
        Output stream.  Defaults to ``sys.stdout``.
    width:
        Fixed console width; ``None`` lets rich detect it.
    """

    def __init__(self, file: Any = None, width: int | None = None) -> None:
        self._console = Console(file=file or sys.stdout, width=width)

    @property
    def console(self) -> Console:
        return self._console

    # -- status channel ----------------------------------------------------

    def print_status(self, state: RunStatus, message: str) -> None:
        """Status sink suitable for ``subscribe_status``."""
        style = _STATUS_STYLES.get(state, "")
        self._console.print(Text(f"[{state.value}] {message}", style=style))

    # -- results -----------------------------------------------------------

    def print_results(self, results: Sequence[ResultItem]) -> None:
        """Print findings as a table, followed by any recorded errors."""
        findings = [r for r in results if isinstance(r, Finding)]
        errors = [r for r in results if isinstance(r, ErrorRecord)]

        if not findings:
            self._console.print("[dim]No inconsistencies found.[/dim]")
        else:
            table = Table(title=f"Inconsistencies ({len(findings)})", show_lines=True)
            table.add_column("#", justify="right", style="dim")
            table.add_column("Concept", style="bold")
            table.add_column("Priority")
            table.add_column("Variations")
            table.add_column("Recommended")
            table.add_column("Flags", style="dim")

            for number, finding in enumerate(findings, start=1):
                priority = Priority.parse(finding.priority)
                style = _PRIORITY_STYLES.get(priority, "") if priority else ""
                variations = ", ".join(
                    f"{v.phrase} (ch. {v.chapter})" if v.chapter else v.phrase
                    for v in finding.variations
                )
                flags = []
                if finding.is_verified:
                    flags.append("verified")
                if finding.is_new:
                    flags.append("new")
                table.add_row(
                    str(number),
                    finding.concept,
                    Text(finding.priority or "-", style=style),
                    variations,
                    _recommended(finding),
                    ", ".join(flags),
                )
            self._console.print(table)

        for record in errors:
            self._console.print(Text(f"Error: {record.error}", style="bold red"))

    # -- credentials -------------------------------------------------------

    def print_key_states(self, states: Mapping[int, KeyState]) -> None:
        """Print one row per configured key (never the key itself)."""
        table = Table(title="API keys")
        table.add_column("Key", justify="right")
        table.add_column("Status")
        table.add_column("Failures", justify="right")
        table.add_column("Unlocks at")
        table.add_column("Last used")

        for index, state in sorted(states.items()):
            table.add_row(
                str(index + 1),
                Text(state.status.value, style=_KEY_STYLES.get(state.status, "")),
                str(state.failure_count),
                _format_ms(state.unlock_time),
                _format_ms(state.last_used),
            )
        self._console.print(table)
