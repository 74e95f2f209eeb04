"""Custom exception hierarchy for watchstate."""


class WatchStateError(Exception):
    """Base for all watchstate errors."""


class ConfigurationError(WatchStateError):
    """A version chain is malformed. Raised when the chain is built."""


class ParseError(WatchStateError):
    """Persisted bytes could not be decoded into a versioned payload."""


class MigrationError(WatchStateError):
    """A structural migration step failed during load."""

    def __init__(self, message: str, version: int | None = None) -> None:
        super().__init__(message)
        self.version = version


class LookupMiss(WatchStateError):
    """The metadata service returned no acceptable match."""


class StructuralMismatch(WatchStateError):
    """Resolved metadata lacks an expected season or episode position."""
