"""Presentation layer: console rendering of results and key state."""

from inconsistency_finder.presentation.console import ConsoleDashboard

__all__ = ["ConsoleDashboard"]
