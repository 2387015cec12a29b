"""Output rendering, logging setup and GitHub Actions integration.

Results go to stdout (text lines or one JSON document). Diagnostics go to
stderr through the ``tagguard`` logger, mirrored as workflow commands when
running on GitHub Actions.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO

from .config import GuardConfig
from .models.result import GuardReport

logger = logging.getLogger(__name__)

ROOT_LOGGER = "tagguard"
LOG_FORMAT = "[%(levelname)s] %(message)s"

_ANNOTATIONS = {
    logging.INFO: "notice",
    logging.WARNING: "warning",
    logging.ERROR: "error",
}


class GitHubActionsHandler(logging.Handler):
    """Mirror log records as GitHub Actions workflow commands."""

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__(level=logging.INFO)
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno > logging.ERROR:
            command = "error"
        else:
            command = _ANNOTATIONS.get(record.levelno)
        if command is None:
            return
        try:
            message = (
                record.getMessage()
                .replace("%", "%25")
                .replace("\r", "%0D")
                .replace("\n", "%0A")
            )
            stream = self.stream if self.stream is not None else sys.stderr
            stream.write(f"::{command}::{message}\n")
            stream.flush()
        except Exception:
            self.handleError(record)


def setup_logging(config: GuardConfig, stream: TextIO | None = None) -> logging.Logger:
    """Configure the package logger for one invocation.

    Level is DEBUG with debug, ERROR with quiet, INFO otherwise. Calling it
    again replaces previously installed handlers.
    """
    if config.debug:
        level = logging.DEBUG
    elif config.quiet:
        level = logging.ERROR
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(stream if stream is not None else sys.stderr)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)

    if config.github_actions:
        root.addHandler(GitHubActionsHandler(stream))

    root.setLevel(level)
    root.propagate = False
    return root


@contextmanager
def log_group(title: str, config: GuardConfig, stream: TextIO | None = None) -> Iterator[None]:
    """Group log output under a title (a collapsible group on Actions)."""
    out = stream if stream is not None else sys.stderr
    if config.github_actions:
        out.write(f"::group::{title}\n")
        out.flush()
    else:
        logger.info(f"=== {title} ===")
    try:
        yield
    finally:
        if config.github_actions:
            out.write("::endgroup::\n")
            out.flush()


def render_text(report: GuardReport) -> str:
    """One ``<DECISION> <registry>:<tag> (<reason>)`` line per tag."""
    return "\n".join(result.text_line() for result in report.results)


def render_json(report: GuardReport) -> str:
    """Serialize the full report as an indented JSON document."""
    return report.model_dump_json(indent=2)


def log_summary(report: GuardReport) -> None:
    """Log decision counts at levels matching their severity."""
    s = report.summary
    logger.info(
        f"Tag analysis complete: {s.push_count} push, {s.skip_count} skip, "
        f"{s.error_count} error (total: {s.total_tags})"
    )
    if s.push_count:
        logger.info(f"{s.push_count} tag(s) are safe to push")
    if s.skip_count:
        logger.warning(f"{s.skip_count} tag(s) should be skipped (immutable and exist)")
    if s.error_count:
        logger.error(f"{s.error_count} tag(s) had API errors during checking")


def github_outputs(report: GuardReport) -> dict[str, str]:
    """Step outputs exposed to later workflow steps."""
    s = report.summary
    return {
        "push_count": str(s.push_count),
        "skip_count": str(s.skip_count),
        "error_count": str(s.error_count),
        "has_skips": "true" if s.has_skips else "false",
        "has_api_errors": "true" if s.has_api_errors else "false",
    }


def write_github_outputs(report: GuardReport, github_output_path: str) -> None:
    """Append summary key=value lines to the $GITHUB_OUTPUT file."""
    with open(Path(github_output_path), "a", encoding="utf-8") as f:
        for key, value in github_outputs(report).items():
            f.write(f"{key}={value}\n")
    logger.debug("GitHub Actions outputs set for downstream workflow steps")
