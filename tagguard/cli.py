"""Command line entry point: check-immutable-tags.

Exit codes:
    0   all tags are safe to push
    1   at least one tag is immutable and already exists (skip its push)
    2   at least one registry check failed, or the run itself failed
    64  usage error (no tags, unknown option, invalid value)
"""

import argparse
import json
import logging
import sys
from collections.abc import Mapping, Sequence
from typing import NoReturn

import httpx
from pydantic import ValidationError

from . import __version__
from .config import DEFAULT_REGISTRY, GuardConfig
from .guard import TagGuard
from .registry.client import RegistryClient, validate_repository
from .reporting import (
    log_group,
    log_summary,
    render_json,
    render_text,
    setup_logging,
    write_github_outputs,
)
from .validators.report import validate_report

EXIT_ERROR = 2
EXIT_USAGE = 64

EPILOG = f"""\
examples:
  %(prog)s alpine-3.22.1
  %(prog)s -j alpine-3.22.1 alpine-3.21.4
  %(prog)s -r myregistry/base alpine-3.22.1
  OUTPUT_FORMAT=json %(prog)s alpine-3.22.1

exit codes:
  0   all tags are safe to push (mutable, or immutable and not yet pushed)
  1   one or more tags are immutable and exist (do not push them)
  2   one or more registry checks failed, or outputs could not be written
  {EXIT_USAGE}  usage error
"""


class UsageError(Exception):
    """The invocation itself is malformed."""


class GuardArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting with 2."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


def build_parser() -> GuardArgumentParser:
    parser = GuardArgumentParser(
        prog="check-immutable-tags",
        description="Check whether image tags match the immutable release "
        "pattern and already exist on the registry.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("tags", nargs="*", metavar="TAG", help="Tags to check")
    parser.add_argument(
        "-r",
        "--registry",
        default=None,
        help=f"Registry repository reference (default: {DEFAULT_REGISTRY})",
    )
    parser.add_argument("-j", "--json", action="store_true", help="Output in JSON format")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug output")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress info output (errors only)"
    )
    parser.add_argument(
        "--prefix", default=None, help="Immutable tag prefix (default: alpine)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of tags checked in parallel (default: 1)",
    )
    parser.add_argument(
        "--cache-tokens",
        action="store_true",
        help="Reuse pull tokens across tags within their validity window",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args: argparse.Namespace, environ: Mapping[str, str] | None) -> GuardConfig:
    """Merge parsed flags over the environment.

    Raises:
        UsageError: If a value is invalid or no tags were given.
    """
    if not args.tags:
        raise UsageError("No tags provided")

    try:
        config = GuardConfig.from_env(
            environ,
            registry=args.registry,
            tag_prefix=args.prefix,
            timeout=args.timeout,
            max_workers=args.workers,
            cache_tokens=args.cache_tokens or None,
            output_format="json" if args.json else None,
            debug=args.debug or None,
            quiet=args.quiet or None,
        )
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise UsageError(f"Invalid configuration: {details}") from e

    try:
        validate_repository(config.registry)
    except ValueError as e:
        raise UsageError(str(e)) from e

    return config


def run(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> int:
    """Run the guard and return the process exit code.

    Args:
        argv: Arguments without the program name (defaults to sys.argv[1:]).
        environ: Environment mapping (defaults to os.environ).
        transport: Optional httpx transport for the registry client.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        config = load_config(args, environ)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return EXIT_USAGE

    logger = setup_logging(config)
    logger.debug(f"Registry: {config.registry}")
    logger.debug(f"Tags to check: {' '.join(args.tags)}")
    logger.debug(f"Output format: {config.output_format}")
    logger.debug(f"GitHub Actions mode: {str(config.github_actions).lower()}")

    with RegistryClient(config, transport=transport) as client:
        guard = TagGuard(config, client)
        with log_group(f"Immutable Tag Analysis for {config.registry}", config):
            report = guard.check_tags(args.tags)

    contract_ok = True
    if config.output_format == "json":
        document = render_json(report)
        contract_ok, errors = validate_report(json.loads(document))
        for error in errors:
            logger.error(f"Report does not match its schema: {error}")
        print(document)
    else:
        print(render_text(report))
        with log_group("Analysis Summary", config):
            log_summary(report)

    if config.github_output:
        try:
            write_github_outputs(report, config.github_output)
        except OSError as e:
            logger.error(f"Failed to write GitHub Actions outputs to {config.github_output}: {e}")
            return EXIT_ERROR

    if not contract_ok:
        return EXIT_ERROR
    return report.exit_code


def main() -> None:
    """CLI entry point for the immutable tag guard.

    An unexpected failure exits with the error code so CI never reads it as a skip.
    """
    try:
        code = run()
    except Exception:
        logging.getLogger("tagguard").exception("Unexpected error while checking tags")
        code = EXIT_ERROR
    sys.exit(code)


if __name__ == "__main__":
    main()
