"""Push-safety decisions for candidate image tags.

Per tag:
- mutable pattern            -> PUSH (no registry call)
- immutable, not on registry -> PUSH
- immutable, on registry     -> SKIP
- immutable, check failed    -> ERROR

Every tag is checked; one failure never stops the others.
"""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from .config import GuardConfig
from .models.result import Decision, Existence, GuardReport, TagCheckResult
from .pattern import is_immutable_tag
from .registry.client import RegistryClient
from .registry.errors import RegistryError

logger = logging.getLogger(__name__)

REASON_MUTABLE = "mutable tag pattern"
REASON_NOT_FOUND = "immutable tag doesn't exist yet"
REASON_EXISTS = "immutable tag exists on registry"
REASON_FAILED = "registry check failed"

_LOG_LEVELS = {
    Decision.PUSH: logging.INFO,
    Decision.SKIP: logging.WARNING,
    Decision.ERROR: logging.ERROR,
}


def log_tag_analysis(result: TagCheckResult) -> None:
    """Log one structured analysis line at a level matching the decision."""
    message = (
        f"Tag analysis: {result.tag} | Immutable: {str(result.is_immutable_pattern).lower()} "
        f"| Exists: {result.exists_label()} | Decision: {result.decision.value} "
        f"| Reason: {result.reason}"
    )
    if result.detail:
        message = f"{message} | Detail: {result.detail}"
    logger.log(_LOG_LEVELS[result.decision], message)


class TagGuard:
    """Combines pattern classification and registry existence into decisions."""

    def __init__(self, config: GuardConfig, client: RegistryClient | None = None) -> None:
        """Initialize the guard.

        Args:
            config: Guard configuration.
            client: Registry client; one is created from config when omitted
                and closed by close().
        """
        self.config = config
        self._owns_client = client is None
        self.client = client if client is not None else RegistryClient(config)

    def __enter__(self) -> "TagGuard":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def check_tag(self, tag: str) -> TagCheckResult:
        """Decide whether one tag is safe to push."""
        registry = self.config.registry
        logger.info(f"Checking tag: {registry}:{tag}")

        if not is_immutable_tag(tag, self.config.tag_prefix):
            logger.debug(f"Tag '{tag}' does not match immutable pattern")
            result = TagCheckResult(
                tag=tag,
                registry=registry,
                is_immutable_pattern=False,
                decision=Decision.PUSH,
                reason=REASON_MUTABLE,
            )
            log_tag_analysis(result)
            return result

        logger.debug(f"Tag '{tag}' matches immutable pattern")
        try:
            existence = self.client.tag_exists(registry, tag)
        except RegistryError as e:
            logger.error(f"Registry check failed for {registry}:{tag}: {e}")
            result = TagCheckResult(
                tag=tag,
                registry=registry,
                is_immutable_pattern=True,
                exists=None,
                decision=Decision.ERROR,
                reason=REASON_FAILED,
                detail=str(e),
            )
        else:
            exists = existence == Existence.EXISTS
            result = TagCheckResult(
                tag=tag,
                registry=registry,
                is_immutable_pattern=True,
                exists=exists,
                decision=Decision.SKIP if exists else Decision.PUSH,
                reason=REASON_EXISTS if exists else REASON_NOT_FOUND,
            )

        log_tag_analysis(result)
        return result

    def check_tags(self, tags: Iterable[str]) -> GuardReport:
        """Check every tag and aggregate the results in input order."""
        tags = list(tags)
        logger.info(f"Analyzing {len(tags)} tag(s) for immutability and registry existence")

        if self.config.max_workers > 1 and len(tags) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                # map() yields in submission order
                results = list(pool.map(self.check_tag, tags))
        else:
            results = [self.check_tag(tag) for tag in tags]

        return GuardReport.from_results(self.config.registry, results)
