"""Result data models for tag guard runs."""

from .result import Decision, Existence, ExitStatus, GuardReport, GuardSummary, TagCheckResult

__all__ = [
    "Decision",
    "Existence",
    "ExitStatus",
    "GuardReport",
    "GuardSummary",
    "TagCheckResult",
]
