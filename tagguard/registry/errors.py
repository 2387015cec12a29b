"""Registry error types."""


class RegistryError(Exception):
    """The registry could not answer whether a tag exists."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(RegistryError):
    """Pull token could not be obtained."""


class QueryError(RegistryError):
    """Manifest existence query failed or returned an unexpected status."""
