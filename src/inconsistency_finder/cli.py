"""Command-line interface for the Inconsistency Finder.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    inconsistency-finder = "inconsistency_finder.cli:main"

Usage examples::

    inconsistency-finder analyze chapters/ --depth 3 --output session.json
    inconsistency-finder analyze ch12.txt ch13.txt --prior session.json
    inconsistency-finder keys --reset
    inconsistency-finder version

API keys come from the ``analysis.api_keys`` list of the config file, from
``--api-key`` options, and from the ``INCONSISTENCY_FINDER_API_KEYS``
environment variable (comma separated).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from inconsistency_finder.domain.enums import RunStatus
from inconsistency_finder.domain.findings import ResultItem
from inconsistency_finder.domain.values import Chapter
from inconsistency_finder.infrastructure.config import AnalysisConfig, Settings, load_config_file
from inconsistency_finder.infrastructure.event_bus import EventBus, subscribe_status
from inconsistency_finder.infrastructure.key_store import JsonFileKeyStateStore
from inconsistency_finder.infrastructure.llm import GeminiTransport, Transport
from inconsistency_finder.infrastructure.session_store import (
    JsonFileSessionStore,
    SessionSnapshot,
)
from inconsistency_finder.presentation.console import ConsoleDashboard
from inconsistency_finder.services.key_pool import KeyPool
from inconsistency_finder.services.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_KEYS_FILE = Path.home() / ".inconsistency_finder" / "key_state.json"

_DIGITS = re.compile(r"(\d+)")


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="inconsistency-finder",
        description=(
            "Inconsistency Finder -- detect terminology inconsistencies across "
            "machine-translated chapters with Gemini."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- analyze -----------------------------------------------------------
    analyze = subparsers.add_parser(
        "analyze",
        help="Analyze chapter text files.",
        description=(
            "Analyze chapter files.  A directory argument expands to its .txt "
            "files in natural order; the chapter id is the file name stem."
        ),
    )
    analyze.add_argument("paths", nargs="+", help="Chapter files or directories.")
    analyze.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Deep analysis iterations. (default: from config, else 1)",
    )
    analyze.add_argument("--config", type=str, default=None, help="JSON or YAML config file.")
    analyze.add_argument(
        "--api-key",
        dest="api_keys",
        action="append",
        default=[],
        help="API key to add to the rotation.  Repeatable.",
    )
    analyze.add_argument(
        "--keys-file",
        type=str,
        default=str(DEFAULT_KEYS_FILE),
        help=f"Persisted key state. (default: {DEFAULT_KEYS_FILE})",
    )
    analyze.add_argument(
        "--prior",
        type=str,
        default=None,
        help="Saved session (or JSON result list) to continue from.",
    )
    analyze.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the session snapshot to this JSON file after every pass.",
    )
    analyze.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print results as JSON instead of a table.",
    )
    analyze.add_argument("--verbose", "-v", action="store_true", default=False)

    # -- keys --------------------------------------------------------------
    keys = subparsers.add_parser(
        "keys",
        help="Show or reset persisted key state.",
        description="Show the health of every configured API key, or reset it.",
    )
    keys.add_argument("--config", type=str, default=None, help="JSON or YAML config file.")
    keys.add_argument("--api-key", dest="api_keys", action="append", default=[])
    keys.add_argument("--keys-file", type=str, default=str(DEFAULT_KEYS_FILE))
    keys.add_argument(
        "--reset",
        nargs="?",
        type=int,
        const=0,
        default=None,
        metavar="KEY",
        help="Reset key number KEY (1-based), or every key when omitted.",
    )

    # -- version -----------------------------------------------------------
    subparsers.add_parser("version", help="Show the installed version.")

    return parser


# =========================================================================
# Helpers
# =========================================================================

def _configure_logging(verbose: bool, enabled: bool = False) -> None:
    if verbose:
        level = logging.DEBUG
    elif enabled:
        level = logging.INFO
    else:
        level = logging.WARNING
    package_logger = logging.getLogger("inconsistency_finder")
    package_logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


def _natural_key(path: Path) -> list[Any]:
    return [int(part) if part.isdigit() else part.lower() for part in _DIGITS.split(path.stem)]


def load_chapters(paths: list[str]) -> list[Chapter]:
    """Read chapter files; directories expand to their ``.txt`` files."""
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(sorted(path.glob("*.txt"), key=_natural_key))
        elif path.is_file():
            files.append(path)
        else:
            raise FileNotFoundError(f"No such file or directory: {path}")
    return [Chapter(chapter=f.stem, text=f.read_text(encoding="utf-8")) for f in files]


def load_prior(path: str) -> list[ResultItem]:
    """Load prior results from a session snapshot or a bare result list."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        data = {"results": data}
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a session or a result list")
    return SessionSnapshot.from_dict(data).results


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = load_config_file(args.config)
    if args.api_keys:
        settings = Settings(
            analysis=settings.analysis.with_keys(args.api_keys),
            retry=settings.retry,
            key_pool=settings.key_pool,
        )
    return settings


def _make_transport(config: AnalysisConfig) -> Transport:
    return GeminiTransport(
        model=config.model,
        base_url=config.base_url,
        timeout=config.request_timeout,
    )


# =========================================================================
# Subcommand handlers
# =========================================================================

def _cmd_analyze(args: argparse.Namespace) -> int:
    """Handle the ``analyze`` subcommand."""
    settings = _load_settings(args)
    _configure_logging(args.verbose, settings.analysis.logging_enabled)
    dashboard = ConsoleDashboard()

    if not settings.analysis.api_keys:
        print("Error: no API keys configured.", file=sys.stderr)
        return 2

    chapters = load_chapters(args.paths)
    if not chapters:
        print("Error: no chapter files found.", file=sys.stderr)
        return 1
    prior = load_prior(args.prior) if args.prior else []

    bus = EventBus()
    if not args.json:
        subscribe_status(bus, dashboard.print_status)

    pool = KeyPool(
        settings.analysis.api_keys,
        store=JsonFileKeyStateStore(args.keys_file),
        config=settings.key_pool,
        event_bus=bus,
    )

    async def _run() -> Any:
        async with _make_transport(settings.analysis) as transport:
            orchestrator = AnalysisOrchestrator(
                pool,
                transport,
                settings.analysis,
                retry_config=settings.retry,
                session_store=JsonFileSessionStore(args.output) if args.output else None,
                event_bus=bus,
            )
            return await orchestrator.run(chapters, prior, args.depth)

    done = asyncio.run(_run())

    if args.json:
        print(json.dumps([item.to_dict() for item in done.results], indent=2, ensure_ascii=False))
    else:
        dashboard.print_results(done.results)
    return 0 if done.status is RunStatus.COMPLETE else 1


def _cmd_keys(args: argparse.Namespace) -> int:
    """Handle the ``keys`` subcommand."""
    settings = _load_settings(args)
    dashboard = ConsoleDashboard()
    if not settings.analysis.api_keys:
        print("Error: no API keys configured.", file=sys.stderr)
        return 2

    pool = KeyPool(
        settings.analysis.api_keys,
        store=JsonFileKeyStateStore(args.keys_file),
        config=settings.key_pool,
    )
    if args.reset is not None:
        pool.reset(None if args.reset == 0 else args.reset - 1)
        print("Key state reset.")
    dashboard.print_key_states(pool.snapshot())
    return 0


def _cmd_version(args: argparse.Namespace) -> int:
    """Handle the ``version`` subcommand."""
    from inconsistency_finder import __version__

    print(f"inconsistency-finder {__version__}")
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handlers: dict[str, Any] = {
        "analyze": _cmd_analyze,
        "keys": _cmd_keys,
        "version": _cmd_version,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except (OSError, ValueError, IndexError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)
