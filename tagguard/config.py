"""Guard configuration.

One GuardConfig is built per invocation (defaults, then environment, then
CLI flags) and handed to the registry client and the decision engine.
"""

import os
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_REGISTRY = "liskl/base"
DEFAULT_TAG_PREFIX = "alpine"
DEFAULT_AUTH_URL = "https://auth.docker.io/token"
DEFAULT_AUTH_SERVICE = "registry.docker.io"
DEFAULT_REGISTRY_URL = "https://registry-1.docker.io"

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})

# Environment variable -> config field
ENV_FIELDS = {
    "TAGGUARD_REGISTRY": "registry",
    "TAGGUARD_TAG_PREFIX": "tag_prefix",
    "TAGGUARD_AUTH_URL": "auth_url",
    "TAGGUARD_AUTH_SERVICE": "auth_service",
    "TAGGUARD_REGISTRY_URL": "registry_url",
    "TAGGUARD_TIMEOUT": "timeout",
    "TAGGUARD_WORKERS": "max_workers",
    "TAGGUARD_CACHE_TOKENS": "cache_tokens",
    "OUTPUT_FORMAT": "output_format",
    "DEBUG": "debug",
    "QUIET": "quiet",
    "GITHUB_ACTIONS": "github_actions",
    "GITHUB_OUTPUT": "github_output",
}

BOOL_FIELDS = frozenset({"cache_tokens", "debug", "quiet", "github_actions"})


def parse_bool(value: str) -> bool:
    """Interpret an environment string as a boolean flag."""
    return value.strip().lower() in TRUE_VALUES


class GuardConfig(BaseModel):
    """Settings for one guard invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    registry: str = DEFAULT_REGISTRY
    tag_prefix: str = Field(DEFAULT_TAG_PREFIX, min_length=1)
    auth_url: str = DEFAULT_AUTH_URL
    auth_service: str = DEFAULT_AUTH_SERVICE
    registry_url: str = DEFAULT_REGISTRY_URL
    manifest_media_types: tuple[str, ...] = (
        DOCKER_MANIFEST_V2,
        DOCKER_MANIFEST_LIST,
        OCI_MANIFEST,
        OCI_INDEX,
    )
    timeout: float = Field(10.0, gt=0)
    max_workers: int = Field(1, ge=1)
    cache_tokens: bool = False
    output_format: Literal["text", "json"] = "text"
    debug: bool = False
    quiet: bool = False
    github_actions: bool = False
    github_output: str | None = None

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> "GuardConfig":
        """Build a config from environment variables plus explicit overrides.

        Args:
            environ: Mapping to read from (defaults to os.environ).
            **overrides: Field values that win over the environment. None
                values are ignored so unset CLI flags fall through.

        Raises:
            pydantic.ValidationError: If any resulting value is invalid.
        """
        if environ is None:
            environ = os.environ

        values: dict[str, Any] = {}
        for env_name, field_name in ENV_FIELDS.items():
            raw = environ.get(env_name)
            if raw is None or raw == "":
                continue
            values[field_name] = parse_bool(raw) if field_name in BOOL_FIELDS else raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)

    @property
    def accept_header(self) -> str:
        """Accept header value naming every configured manifest media type."""
        return ", ".join(self.manifest_media_types)
