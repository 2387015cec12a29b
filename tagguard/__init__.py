"""Immutable tag guard for container image pushes.

Decides, for each candidate image tag, whether pushing it is safe:
release tags (``alpine-<major>.<minor>.<patch>``) that already exist on the
registry are skipped, everything else is pushed, and failed registry checks
are reported as errors.
"""

__version__ = "0.1.0"

from .config import GuardConfig
from .guard import TagGuard
from .models import Decision, Existence, ExitStatus, GuardReport, GuardSummary, TagCheckResult
from .pattern import is_immutable_tag
from .registry import AuthError, QueryError, RegistryClient, RegistryError

__all__ = [
    "AuthError",
    "Decision",
    "Existence",
    "ExitStatus",
    "GuardConfig",
    "GuardReport",
    "GuardSummary",
    "QueryError",
    "RegistryClient",
    "RegistryError",
    "TagCheckResult",
    "TagGuard",
    "is_immutable_tag",
]
