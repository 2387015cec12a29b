"""Immutable tag pattern classification.

Release tags look like ``<prefix>-<major>.<minor>.<patch>`` (for example
``alpine-3.22.1``) and must never be overwritten on the registry. Every
other tag is mutable.
"""

import re
from functools import lru_cache

from .config import DEFAULT_TAG_PREFIX


@lru_cache(maxsize=16)
def immutable_pattern(prefix: str = DEFAULT_TAG_PREFIX) -> re.Pattern[str]:
    """Compiled pattern for immutable tags with the given literal prefix."""
    # [0-9] rather than \d: \d also matches non-ASCII digits
    return re.compile(rf"{re.escape(prefix)}-[0-9]+\.[0-9]+\.[0-9]+")


def is_immutable_tag(tag: str, prefix: str = DEFAULT_TAG_PREFIX) -> bool:
    """Return True if the whole tag matches the immutable release pattern.

    Examples:
        >>> is_immutable_tag("alpine-3.22.1")
        True
        >>> is_immutable_tag("alpine-3.22.1-dev")
        False
        >>> is_immutable_tag("latest")
        False
    """
    return immutable_pattern(prefix).fullmatch(tag) is not None
