"""Registry existence checks over the Docker Registry v2 API."""

from .client import RegistryClient, validate_repository
from .errors import AuthError, QueryError, RegistryError

__all__ = [
    "AuthError",
    "QueryError",
    "RegistryClient",
    "RegistryError",
    "validate_repository",
]
