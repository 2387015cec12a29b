"""Docker Registry v2 client for tag existence checks.

Two steps per check:
1. GET <auth_url>?service=<service>&scope=repository:<ref>:pull -> bearer token
2. HEAD <registry_url>/v2/<ref>/manifests/<tag> with the token

200 means the tag exists, 404 means it does not. Everything else is
indeterminate and raised as a RegistryError.
"""

import json
import logging
import re
import threading
import time
from collections.abc import Callable

import httpx

from ..config import GuardConfig
from ..models.result import Existence
from .errors import AuthError, QueryError

logger = logging.getLogger(__name__)

# Repository path: components of lowercase alphanumerics joined by
# ".", "_", "__" or runs of "-", separated by "/"
_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
REPOSITORY_RE = re.compile(rf"{_COMPONENT}(?:/{_COMPONENT})*")
MAX_REPOSITORY_LENGTH = 255

# Lifetime assumed when the token response omits expires_in
DEFAULT_TOKEN_TTL = 60
# Tokens are dropped this many seconds before they expire
TOKEN_EXPIRY_MARGIN = 5


def validate_repository(repository: str) -> None:
    """Validate a repository reference such as ``liskl/base``.

    Raises:
        ValueError: If the reference is empty, too long or malformed.
    """
    if not repository or len(repository) > MAX_REPOSITORY_LENGTH:
        raise ValueError(
            f"Invalid registry reference: must be 1-{MAX_REPOSITORY_LENGTH} characters"
        )
    if REPOSITORY_RE.fullmatch(repository) is None:
        raise ValueError(
            f"Invalid registry reference '{repository}': expected lowercase "
            "path components like 'organization/repository'"
        )


def _describe_status(status_code: int) -> str:
    if status_code in (401, 403):
        return f"authentication failed or access denied (HTTP {status_code})"
    if status_code == 429:
        return f"rate limit exceeded (HTTP {status_code})"
    if 500 <= status_code <= 599:
        return f"registry server error (HTTP {status_code})"
    return f"unexpected HTTP response (HTTP {status_code})"


class RegistryClient:
    """Checks whether tags exist in a registry repository.

    A single attempt is made for each step; retrying is left to the caller.
    """

    def __init__(
        self,
        config: GuardConfig,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            config: Guard configuration (endpoints, timeout, token caching).
            transport: Optional httpx transport, used by tests to fake the registry.
            clock: Monotonic clock used for token expiry.
        """
        self.config = config
        self._clock = clock
        self._http = httpx.Client(timeout=config.timeout, transport=transport)
        self._tokens: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "RegistryClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def fetch_token(self, repository: str) -> str:
        """Request a pull-scoped bearer token for a repository.

        Raises:
            AuthError: On transport failure, non-2xx status, undecodable body
                or a response without a usable token.
        """
        if self.config.cache_tokens:
            cached = self._cached_token(repository)
            if cached is not None:
                logger.debug(f"Reusing cached pull token for {repository}")
                return cached

        params = {
            "service": self.config.auth_service,
            "scope": f"repository:{repository}:pull",
        }
        url = self.config.auth_url
        logger.debug(f"AUTH_REQUEST: {url} scope={params['scope']}")

        try:
            response = self._http.get(url, params=params)
        except httpx.TimeoutException as e:
            raise AuthError(f"Token request timed out after {self.config.timeout}s: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AuthError(f"Token request failed: {e}") from e

        logger.debug(f"AUTH_REQUEST: {url} (HTTP {response.status_code})")

        if not response.is_success:
            raise AuthError(
                f"Token endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise AuthError(f"Token response is not valid JSON: {e}") from e

        if not isinstance(body, dict):
            raise AuthError("Token response is not a JSON object")

        token = body.get("token") or body.get("access_token")
        if not isinstance(token, str) or not token or token == "null":
            raise AuthError("Token response does not contain a usable token")
        # Sent back in an HTTP header, so it must be printable ASCII
        if not token.isascii() or not token.isprintable():
            raise AuthError("Token response contains characters not allowed in a header")

        if self.config.cache_tokens:
            self._store_token(repository, token, body.get("expires_in"))

        return token

    def check_manifest(self, repository: str, tag: str, token: str) -> Existence:
        """Ask the registry whether a manifest exists for ``repository:tag``.

        Returns:
            Existence.EXISTS on 200, Existence.NOT_FOUND on 404.

        Raises:
            QueryError: On transport failure or any other status.
        """
        url = f"{self.config.registry_url.rstrip('/')}/v2/{repository}/manifests/{tag}"
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": self.config.accept_header,
        }
        logger.debug(f"MANIFEST_CHECK: {url}")

        try:
            response = self._http.head(url, headers=headers)
        except httpx.TimeoutException as e:
            raise QueryError(f"Manifest request timed out after {self.config.timeout}s: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise QueryError(f"Manifest request failed: {e}") from e

        status = response.status_code
        logger.debug(f"MANIFEST_CHECK: {url} (HTTP {status})")

        if status == 200:
            return Existence.EXISTS
        if status == 404:
            return Existence.NOT_FOUND
        if status == 429:
            logger.warning(f"Registry rate limit exceeded for {repository}:{tag}")
        raise QueryError(_describe_status(status), status_code=status)

    def tag_exists(self, repository: str, tag: str) -> Existence:
        """Authenticate, then query the manifest for one tag.

        Raises:
            RegistryError: If existence cannot be determined.
        """
        logger.debug(f"Checking if tag exists: {repository}:{tag}")
        token = self.fetch_token(repository)
        return self.check_manifest(repository, tag, token)

    def _cached_token(self, repository: str) -> str | None:
        with self._lock:
            entry = self._tokens.get(repository)
            if entry is None:
                return None
            token, expires_at = entry
            if self._clock() >= expires_at:
                del self._tokens[repository]
                return None
            return token

    def _store_token(self, repository: str, token: str, expires_in: object) -> None:
        ttl = expires_in if isinstance(expires_in, int) and expires_in > 0 else DEFAULT_TOKEN_TTL
        expires_at = self._clock() + ttl - TOKEN_EXPIRY_MARGIN
        with self._lock:
            self._tokens[repository] = (token, expires_at)
