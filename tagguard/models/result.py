"""Per-tag results and invocation summary."""

from enum import Enum

from pydantic import BaseModel, computed_field


class Decision(str, Enum):
    """Outcome for a single tag."""

    PUSH = "PUSH"
    SKIP = "SKIP"
    ERROR = "ERROR"


class Existence(str, Enum):
    """Answer from the registry about one tag."""

    EXISTS = "exists"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ExitStatus(str, Enum):
    """Overall status of an invocation, highest priority first."""

    ERROR = "error"
    SKIP = "skip"
    SUCCESS = "success"

    @property
    def exit_code(self) -> int:
        return {ExitStatus.SUCCESS: 0, ExitStatus.SKIP: 1, ExitStatus.ERROR: 2}[self]


class TagCheckResult(BaseModel):
    """Decision for one tag in one invocation."""

    tag: str
    registry: str
    is_immutable_pattern: bool
    exists: bool | None = None  # None: not checked, or the check failed
    decision: Decision
    reason: str
    detail: str | None = None

    @computed_field
    @property
    def exists_on_registry(self) -> bool:
        return self.exists is True

    @computed_field
    @property
    def should_skip_push(self) -> bool:
        return self.decision == Decision.SKIP

    @computed_field
    @property
    def api_error(self) -> bool:
        return self.decision == Decision.ERROR

    def exists_label(self) -> str:
        """Existence as shown in log lines."""
        if not self.is_immutable_pattern:
            return "n/a"
        if self.exists is None:
            return "unknown"
        return "true" if self.exists else "false"

    def text_line(self) -> str:
        """One-line plain text rendering."""
        return f"{self.decision.value} {self.registry}:{self.tag} ({self.reason})"


class GuardSummary(BaseModel):
    """Decision counts across all tags of an invocation."""

    total_tags: int = 0
    push_count: int = 0
    skip_count: int = 0
    error_count: int = 0

    @computed_field
    @property
    def has_skips(self) -> bool:
        return self.skip_count > 0

    @computed_field
    @property
    def has_api_errors(self) -> bool:
        return self.error_count > 0

    @property
    def exit_status(self) -> ExitStatus:
        if self.error_count > 0:
            return ExitStatus.ERROR
        if self.skip_count > 0:
            return ExitStatus.SKIP
        return ExitStatus.SUCCESS

    @classmethod
    def from_results(cls, results: list[TagCheckResult]) -> "GuardSummary":
        """Count decisions in a list of results."""
        decisions = [r.decision for r in results]
        return cls(
            total_tags=len(results),
            push_count=decisions.count(Decision.PUSH),
            skip_count=decisions.count(Decision.SKIP),
            error_count=decisions.count(Decision.ERROR),
        )


class GuardReport(BaseModel):
    """Final output of a run: every result in input order plus the summary."""

    registry: str
    results: list[TagCheckResult] = []
    summary: GuardSummary = GuardSummary()

    @classmethod
    def from_results(cls, registry: str, results: list[TagCheckResult]) -> "GuardReport":
        return cls(
            registry=registry,
            results=list(results),
            summary=GuardSummary.from_results(results),
        )

    @property
    def exit_status(self) -> ExitStatus:
        return self.summary.exit_status

    @property
    def exit_code(self) -> int:
        return self.summary.exit_status.exit_code
